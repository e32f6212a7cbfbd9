import pytest

from tests.conftest import PNG_BYTES


@pytest.fixture
def school(make_institution):
    return make_institution(unique_code="T001", name="Amukura ECDE Centre")


def test_super_admin_creates_institution(client, auth_headers):
    admin = auth_headers(None, roles=("super_admin",))
    response = client.post(
        "/api/institutions",
        json={"name": "Nambale VTC", "unique_code": "N010", "type": "VTC", "subcounty": "Nambale"},
        headers=admin,
    )
    assert response.status_code == 201, response.text
    assert response.json()["unique_code"] == "N010"

    duplicate = client.post("/api/institutions", json={"name": "Other", "unique_code": "N010"}, headers=admin)
    assert duplicate.status_code == 400


def test_clerk_cannot_create_institution(client, school, auth_headers):
    response = client.post("/api/institutions", json={"name": "Nope"}, headers=auth_headers(school.id))
    assert response.status_code == 403


def test_view_and_update_bio_data(client, school, auth_headers):
    admin = auth_headers(school.id, roles=("institution_admin",))

    mine = client.get("/api/institutions/mine", headers=admin).json()
    assert mine["name"] == "Amukura ECDE Centre"

    updated = client.patch(
        "/api/institutions/mine",
        json={"ward": "Amukura Central", "sbp_compliance": True, "registration_date": "2015-04-01"},
        headers=admin,
    )
    assert updated.status_code == 200
    assert updated.json()["ward"] == "Amukura Central"
    assert updated.json()["name"] == "Amukura ECDE Centre"

    clerk = auth_headers(school.id)
    assert client.patch("/api/institutions/mine", json={"ward": "X"}, headers=clerk).status_code == 403


def test_ownership_document_upload(client, school, auth_headers, storage):
    admin = auth_headers(school.id, roles=("institution_admin",))
    response = client.post(
        "/api/institutions/mine/ownership-document",
        files={"file": ("title-deed.pdf", b"%PDF-1.7 deed", "application/pdf")},
        headers=admin,
    )
    assert response.status_code == 200, response.text
    assert response.json()["ownership_doc"].startswith(f"https://files.test/ownership-documents/{school.id}/")
    assert len(storage.files) == 1


def test_assets_are_scoped_to_institution(client, school, make_institution, auth_headers):
    other = make_institution(unique_code="K002")
    headers = auth_headers(school.id)

    created = client.post(
        "/api/institutions/mine/books",
        json={"title": "Let's Learn Kiswahili", "subject": "Kiswahili", "quantity": 30, "unit_price": "250.00"},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    client.post("/api/institutions/mine/bank-accounts",
                json={"bank_name": "KCB", "branch": "Busia", "account_number": "1100223344"}, headers=headers)
    client.post("/api/institutions/mine/infrastructure",
                json={"asset_name": "Classroom block", "quantity": 2, "year_of_acquisition": 2019}, headers=headers)
    client.post("/api/institutions/mine/emergencies",
                json={"calamity_name": "Flooding", "reporting_date": "2024-05-02"}, headers=headers)

    assert [b["title"] for b in client.get("/api/institutions/mine/books", headers=headers).json()] == ["Let's Learn Kiswahili"]
    assert client.get("/api/institutions/mine/books", headers=auth_headers(other.id)).json() == []
    assert len(client.get("/api/institutions/mine/bank-accounts", headers=headers).json()) == 1
    assert client.get("/api/institutions/mine/emergencies", headers=headers).json()[0]["status"] == "reported"

    invalid = client.post("/api/institutions/mine/books", json={"title": "X", "quantity": -1}, headers=headers)
    assert invalid.status_code == 422


def test_capitation_receipt_with_scan(client, school, auth_headers, storage):
    headers = auth_headers(school.id)
    response = client.post(
        "/api/institutions/mine/capitation-receipts",
        data={"receipt_no": "CAP-2024-001", "amount": "150000.00", "date_received": "2024-02-20"},
        files={"file": ("receipt.jpg", PNG_BYTES, "image/jpeg")},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    assert response.json()["file_path"].startswith(f"https://files.test/receipts/{school.id}/")

    overview = client.get("/api/institutions/mine/overview", headers=headers).json()
    assert overview["capitationReceived"] == 150000.0
    assert overview["total"] == 0


def test_overview_counts(client, school, make_institution, auth_headers):
    destination = make_institution(unique_code="K002")
    headers = auth_headers(school.id)
    data = {"program": "ecde", "first_name": "Amina", "last_name": "Wafula", "gender": "female", "dob": "2020-01-01"}
    person = client.post("/api/persons", data=data, headers=headers).json()
    client.post("/api/persons", data={**data, "program": "vocational", "dob": "2005-01-01"}, headers=headers)
    client.post(f"/api/persons/ecde/{person['id']}/release",
                json={"reason": "Moved", "destination_institution_id": destination.id}, headers=headers)

    overview = client.get("/api/institutions/mine/overview", headers=headers).json()
    assert overview["learners"] == {"total": 1, "active": 0}
    assert overview["students"] == {"total": 1, "active": 1}
    assert overview["pendingTransfersOut"] == 1

    incoming = client.get("/api/institutions/mine/overview", headers=auth_headers(destination.id)).json()
    assert incoming["pendingTransfersIn"] == 1
