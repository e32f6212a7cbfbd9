from datetime import date

import pytest
from sqlalchemy import select

from ecdemis.core.errors import ValidationError, NotFoundError
from ecdemis.models import UpiRegistration, PersonStatusEvent
from ecdemis.services.dataclasses import Program, PhotoUpload
from ecdemis.services.identifiers import IdentifierIssuer
from ecdemis.services.person_store import PersonRecordStore
from ecdemis.services.registration import RegistrationService

from tests.conftest import TODAY, PNG_BYTES


def test_register_ecde_learner(db, make_institution, storage):
    make_institution(id=42, unique_code="T042", name="Busia Township ECDE")

    record = RegistrationService(db, storage=storage, today=TODAY).register(
        institution_id=42,
        program=Program.ECDE,
        first_name="Amina",
        last_name="Wafula",
        gender="female",
        dob=date(2020, 1, 1),
    )
    db.commit()

    assert IdentifierIssuer(db).is_valid(record.upi)
    stored = PersonRecordStore(db).find_by_upi(record.upi, institution_id=42)
    assert stored.institution_id == 42
    assert stored.status == "enrolled"
    assert stored.deceased is False
    assert stored.full_name == "Amina Wafula"
    assert stored.admission_date == TODAY

    event = db.execute(select(PersonStatusEvent).where(PersonStatusEvent.upi == record.upi)).scalar_one()
    assert (event.prev_status, event.new_status) == (None, "enrolled")


def test_register_with_photo_stores_it_under_institution(db, make_institution, storage):
    institution = make_institution(unique_code="T001")
    record = RegistrationService(db, storage=storage, today=TODAY).register(
        institution_id=institution.id,
        program=Program.VOCATIONAL,
        first_name="Kevin",
        last_name="Barasa",
        gender="Male",
        dob=date(2005, 2, 14),
        photo=PhotoUpload("passport.PNG", PNG_BYTES, "image/png"),
    )

    path = f"learner-photos/{institution.id}/{record.upi}.png"
    assert path in storage.files
    assert record.photo == f"https://files.test/{path}"
    assert record.gender == "male"


def test_validation_happens_before_a_upi_is_spent(db, make_institution, storage):
    institution = make_institution(unique_code="T001")
    service = RegistrationService(db, storage=storage, today=TODAY)

    with pytest.raises(ValidationError) as exc:
        service.register(institution.id, Program.ECDE, "Amina", "", None, date(2020, 1, 1))
    assert exc.value.fields == ["last_name", "gender"]

    with pytest.raises(ValidationError):
        service.register(institution.id, Program.ECDE, "Amina", "Wafula", "unknown", date(2020, 1, 1))
    with pytest.raises(ValidationError):
        service.register(institution.id, Program.ECDE, "Amina", "Wafula", "female", date(2030, 1, 1))
    with pytest.raises(ValidationError):
        service.register(institution.id, Program.ECDE, "Amina", "Wafula", "female", date(2020, 1, 1),
                         photo=PhotoUpload("cv.docx", b"data", "application/msword"))

    assert db.execute(select(UpiRegistration)).first() is None


def test_register_requires_institution(db, storage):
    service = RegistrationService(db, storage=storage, today=TODAY)
    with pytest.raises(ValidationError) as exc:
        service.register(None, Program.ECDE, "Amina", "Wafula", "female", date(2020, 1, 1))
    assert exc.value.fields == ["institution_id"]

    with pytest.raises(NotFoundError):
        service.register(404, Program.ECDE, "Amina", "Wafula", "female", date(2020, 1, 1))


def test_attach_photo_replaces_photo(db, make_institution, storage, register):
    institution = make_institution(unique_code="T001")
    learner = register(institution.id, Program.ECDE)

    updated = RegistrationService(db, storage=storage).attach_photo(
        Program.ECDE, learner.id, institution.id, PhotoUpload("new.jpg", PNG_BYTES, "image/jpeg")
    )
    assert updated.photo.startswith(f"https://files.test/learner-photos/{institution.id}/{learner.upi}_")
    assert updated.photo.endswith(".jpg")
