# ecdemis/services/registration.py
"""
Learner / student registration.

Registration issues the UPI first, stores the passport photo under the
institution's folder and then inserts the record. The UPI reservation,
the insert and the "enrolled" status event all share the caller's
transaction; if anything fails the caller rolls back and the UPI is
released again.
"""

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ecdemis.core.config import settings
from ecdemis.core.errors import ValidationError, InvalidTransitionError
from ecdemis.models.lifecycle import PersonStatusEvent
from ecdemis.services.dataclasses import Program, PersonStatus, PersonRecord, NewPerson, PhotoUpload
from ecdemis.services.identifiers import IdentifierIssuer
from ecdemis.services.person_store import PersonRecordStore, check_demographics, missing_fields, REQUIRED_FIELDS
from ecdemis.services.storage import BlobStorage, IMAGE_CONTENT_TYPES, storage_path, validate_upload

logger = logging.getLogger(__name__)


class RegistrationService:
    def __init__(
        self,
        db: Session,
        storage: Optional[BlobStorage] = None,
        issuer: Optional[IdentifierIssuer] = None,
        actor_id: Optional[str] = None,
        today: Optional[date] = None,
    ):
        self.db = db
        self.store = PersonRecordStore(db, today=today)
        self.issuer = issuer or IdentifierIssuer(db)
        self.storage = storage
        self.actor_id = actor_id
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def register(
        self,
        institution_id: Optional[int],
        program: Program,
        first_name: Optional[str],
        last_name: Optional[str],
        gender: Optional[str],
        dob: Optional[date],
        other_name: Optional[str] = None,
        admission_date: Optional[date] = None,
        photo: Optional[PhotoUpload] = None,
    ) -> PersonRecord:
        """Register a new ECDE learner or vocational student and return the stored record"""
        program = Program(program)

        # 1. Validate before a UPI is spent
        missing = missing_fields({
            "institution_id": institution_id,
            "first_name": first_name,
            "last_name": last_name,
            "gender": gender,
            "dob": dob,
        }, required=REQUIRED_FIELDS)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

        gender = gender.strip().lower()
        check_demographics(gender, dob, admission_date, self.today)
        if photo is not None:
            self._validate_photo(photo)

        # 2. Reserve the UPI
        upi = self.issuer.issue(institution_id, program)

        # 3. Store the photo under the UPI
        photo_url = self._store_photo(institution_id, upi, photo) if photo is not None else None

        # 4. Insert the record
        record = self.store.insert(NewPerson(
            program=program,
            institution_id=institution_id,
            upi=upi,
            first_name=first_name,
            last_name=last_name,
            other_name=other_name,
            gender=gender,
            dob=dob,
            admission_date=admission_date or self.today,
            photo=photo_url,
        ))

        # 5. Log enrollment event
        self.db.add(PersonStatusEvent(
            institution_id=institution_id,
            program=program.value,
            person_id=record.id,
            upi=record.upi,
            prev_status=None,
            new_status=PersonStatus.ENROLLED.value,
            reason="New registration",
            event_date=record.admission_date or self.today,
            recorded_by=self.actor_id,
        ))
        self.db.flush()

        logger.info(f"Registered {program.value} {record.full_name} as {record.upi} at institution {institution_id}")
        return record

    def attach_photo(self, program: Program, person_id: int, institution_id: int, photo: PhotoUpload) -> PersonRecord:
        """Replace the passport photo of an existing record"""
        record = self.store.get(program, person_id, institution_id)
        if record.deceased:
            raise InvalidTransitionError(f"{record.upi} is recorded as deceased and can no longer be edited")
        self._validate_photo(photo)
        # Stored blobs are never overwritten; a replacement gets a fresh name
        url = self._store_photo(institution_id, f"{record.upi}_{uuid.uuid4().hex[:8]}", photo)
        return self.store.update(program, person_id, {"photo": url}, institution_id)

    def _validate_photo(self, photo: PhotoUpload):
        validate_upload(photo.content, photo.content_type, allowed=IMAGE_CONTENT_TYPES)

    def _store_photo(self, institution_id: int, name: str, photo: PhotoUpload) -> str:
        if self.storage is None:
            raise ValidationError("Photo uploads are not configured", fields=["photo"])
        filename = f"{name}.{photo.extension}" if photo.extension else name
        path = storage_path(settings.LEARNER_PHOTO_FOLDER, institution_id, filename)
        stored = self.storage.upload(path, photo.content, photo.content_type)
        return self.storage.get_public_url(stored)
