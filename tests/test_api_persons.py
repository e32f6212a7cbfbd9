import pytest

from ecdemis.core.errors import FetchError
from ecdemis.services.identifiers import IdentifierIssuer
from ecdemis.services.person_store import PersonRecordStore

from tests.conftest import PNG_BYTES


@pytest.fixture
def school(make_institution):
    return make_institution(unique_code="T001")


def register(client, headers, **fields):
    data = {
        "program": "ecde",
        "first_name": "Amina",
        "last_name": "Wafula",
        "gender": "female",
        "dob": "2020-01-01",
    }
    data.update(fields)
    return client.post("/api/persons", data=data, headers=headers)


def test_requires_bearer_token(client):
    assert client.get("/api/persons").status_code in (401, 403)
    bad = client.get("/api/persons", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_user_without_institution_is_rejected(client, auth_headers):
    response = client.get("/api/persons", headers=auth_headers(institution_id=None))
    assert response.status_code == 400


def test_register_and_list(client, school, auth_headers):
    headers = auth_headers(school.id)

    response = register(client, headers)
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["upi"] == "BT001"
    assert body["status"] == "enrolled"
    assert body["course"] == "Early Childhood Development"
    assert body["institution_id"] == school.id

    register(client, headers, program="vocational", first_name="Kevin", gender="male", dob="2005-02-14")

    listed = client.get("/api/persons", headers=headers).json()
    assert [p["upi"] for p in listed] == ["BT001", "BT002"]

    vocational = client.get("/api/persons", params={"program_type": "vocational"}, headers=headers).json()
    assert [p["first_name"] for p in vocational] == ["Kevin"]

    found = client.get("/api/persons/by-upi/bt002", headers=headers)
    assert found.status_code == 200
    assert found.json()["program"] == "vocational"


def test_register_with_photo(client, school, auth_headers, storage):
    response = client.post(
        "/api/persons",
        data={"program": "ecde", "first_name": "Amina", "last_name": "Wafula", "gender": "female", "dob": "2020-01-01"},
        files={"photo": ("amina.png", PNG_BYTES, "image/png")},
        headers=auth_headers(school.id),
    )
    assert response.status_code == 201, response.text
    assert response.json()["photo"] == f"https://files.test/learner-photos/{school.id}/BT001.png"
    assert f"learner-photos/{school.id}/BT001.png" in storage.files


def test_missing_fields_return_400_with_field_names(client, school, auth_headers):
    response = register(client, auth_headers(school.id), last_name="", gender="")
    assert response.status_code == 400
    assert response.json()["fields"] == ["last_name", "gender"]


def test_other_institution_cannot_see_record(client, school, make_institution, auth_headers):
    other = make_institution(unique_code="K002")
    upi = register(client, auth_headers(school.id)).json()["upi"]

    response = client.get(f"/api/persons/by-upi/{upi}", headers=auth_headers(other.id))
    assert response.status_code == 404


def test_edit_person(client, school, auth_headers):
    headers = auth_headers(school.id)
    person = register(client, headers).json()

    response = client.patch(f"/api/persons/ecde/{person['id']}", json={"other_name": "Nafula"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["full_name"] == "Amina Nafula Wafula"

    assert client.get(f"/api/persons/vocational/{person['id']}", headers=headers).status_code == 404


def test_transfer_between_institutions(client, school, make_institution, auth_headers):
    destination = make_institution(unique_code="K002")
    source_headers = auth_headers(school.id)
    destination_headers = auth_headers(destination.id)
    person = register(client, source_headers).json()

    released = client.post(
        f"/api/persons/ecde/{person['id']}/release",
        json={"reason": "Family relocated", "destination_institution_id": destination.id},
        headers=source_headers,
    )
    assert released.status_code == 200, released.text
    assert released.json()["state"] == "pending"

    pending = client.get("/api/transfers", params={"direction": "incoming", "state": "pending"},
                         headers=destination_headers).json()
    assert [t["upi"] for t in pending] == [person["upi"]]

    received = client.post("/api/transfers/receive", json={"upi": person["upi"]}, headers=destination_headers)
    assert received.status_code == 200, received.text
    assert received.json()["institution_id"] == destination.id

    again = client.post("/api/transfers/receive", json={"upi": person["upi"]}, headers=destination_headers)
    assert again.status_code == 409

    history = client.get(f"/api/persons/ecde/{person['id']}/history", headers=destination_headers).json()
    assert [e["new_status"] for e in history] == ["enrolled", "transferred", "enrolled"]


def test_mark_deceased_and_reports(client, school, auth_headers):
    headers = auth_headers(school.id)
    person = register(client, headers).json()
    register(client, headers, first_name="Kevin", gender="male")

    response = client.post(
        f"/api/persons/ecde/{person['id']}/deceased",
        json={"date_of_death": "2024-03-01", "cause_of_death": "illness", "reported_by": "Mary Wafula"},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    assert response.json()["deceased"] is True

    assert [p["first_name"] for p in client.get("/api/persons", headers=headers).json()] == ["Kevin"]
    assert client.get(f"/api/persons/by-upi/{person['upi']}", headers=headers).json()["deceased"] is True

    deceased = client.get("/api/persons/deceased", headers=headers).json()
    assert [p["cause_of_death"] for p in deceased] == ["illness"]

    summary = client.get("/api/persons/summary", headers=headers).json()
    assert summary["total"] == 1 and summary["male"] == 1

    report = client.get("/api/persons/upi-report", headers=headers).json()
    assert (report["total"], report["deceased"]) == (2, 1)

    again = client.post(
        f"/api/persons/ecde/{person['id']}/deceased",
        json={"date_of_death": "2024-03-01", "cause_of_death": "illness"},
        headers=headers,
    )
    assert again.status_code == 409


def test_suspend_and_reinstate(client, school, auth_headers):
    headers = auth_headers(school.id)
    person = register(client, headers, program="vocational", dob="2004-05-05").json()

    suspended = client.post(f"/api/persons/vocational/{person['id']}/suspend", json={"reason": "Fees"}, headers=headers)
    assert suspended.json()["status"] == "suspended"

    reinstated = client.post(f"/api/persons/vocational/{person['id']}/reinstate", json={}, headers=headers)
    assert reinstated.json()["status"] == "enrolled"

    graduated = client.post(f"/api/persons/vocational/{person['id']}/graduate", json={}, headers=headers)
    assert graduated.json()["status"] == "graduated"


def test_super_admin_can_target_any_institution(client, school, make_institution, auth_headers):
    other = make_institution(unique_code="K002")
    register(client, auth_headers(other.id))

    admin = auth_headers(None, roles=("super_admin",))
    listed = client.get("/api/persons", headers={**admin, "X-Institution-ID": str(other.id)})
    assert listed.status_code == 200
    assert len(listed.json()) == 1

    clerk = auth_headers(school.id)
    ignored = client.get("/api/persons", headers={**clerk, "X-Institution-ID": str(other.id)})
    assert ignored.json() == []


def test_store_failure_returns_503(client, school, auth_headers, monkeypatch):
    headers = auth_headers(school.id)

    def broken(self, program, institution_id, include_deceased=False):
        raise FetchError(f"Failed to load {program.value} records")

    monkeypatch.setattr(PersonRecordStore, "find_by_institution", broken)
    response = client.get("/api/persons", headers=headers)
    assert response.status_code == 503
    assert response.json() == {"detail": "Failed to load ecde records"}


def test_exhausted_upi_space_returns_409(client, school, auth_headers, monkeypatch):
    monkeypatch.setattr(IdentifierIssuer, "_next_sequence", lambda self, code: None)

    response = register(client, auth_headers(school.id))
    assert response.status_code == 409
    assert "prefix BT" in response.json()["detail"]
    assert client.get("/api/persons", headers=auth_headers(school.id)).json() == []
