# ecdemis/services/person_store.py
"""
PersonRecordStore

ECDE learners live in `learners`, vocational students in `students`.
This module is the only place that knows that: callers pass a Program and
get PersonRecord objects back, never ORM rows.
"""

import logging
from datetime import date
from typing import Optional, List, Dict

from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ecdemis.core.errors import (
    ValidationError, NotFoundError, FetchError, ConflictError, InvalidTransitionError
)
from ecdemis.models.person import Learner, Student
from ecdemis.services.dataclasses import (
    Program, PersonStatus, PersonRecord, NewPerson, ProgramCounts, InstitutionCounts
)

logger = logging.getLogger(__name__)

_MODELS = {
    Program.ECDE: Learner,
    Program.VOCATIONAL: Student,
}

REQUIRED_FIELDS = ("institution_id", "first_name", "last_name", "gender", "dob")

GENDERS = ("male", "female")

# Fields a plain edit may touch; status, death and institution changes go
# through LifecycleTransitions
EDITABLE_FIELDS = {"first_name", "last_name", "other_name", "gender", "dob", "admission_date", "photo"}

TRANSITION_FIELDS = {
    "status", "deceased", "date_of_death", "cause_of_death", "death_details", "institution_id"
}


def model_for(program: Program):
    return _MODELS[Program(program)]


def normalize_upi(upi: str) -> str:
    return (upi or "").strip().upper()


def to_record(program: Program, row) -> PersonRecord:
    return PersonRecord(
        program=Program(program),
        id=row.id,
        upi=row.upi,
        first_name=row.first_name,
        last_name=row.last_name,
        other_name=row.other_name,
        gender=row.gender,
        dob=row.dob,
        admission_date=row.admission_date,
        photo=row.photo,
        status=row.status,
        deceased=bool(row.deceased),
        date_of_death=row.date_of_death,
        cause_of_death=row.cause_of_death,
        death_details=row.death_details,
        institution_id=row.institution_id,
        created_at=row.created_at,
    )


def missing_fields(values: Dict, required=REQUIRED_FIELDS) -> List[str]:
    missing = []
    for name in required:
        value = values.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def check_demographics(gender: str, dob: date, admission_date: Optional[date], today: Optional[date] = None):
    """Rules every stored learner satisfies, at registration and after any edit"""
    today = today or date.today()
    if gender not in GENDERS:
        raise ValidationError(f"Gender must be one of: {', '.join(GENDERS)}", fields=["gender"])
    if dob > today:
        raise ValidationError("Date of birth cannot be in the future", fields=["dob"])
    if admission_date is not None and admission_date < dob:
        raise ValidationError("Admission date is before date of birth", fields=["admission_date"])


class PersonRecordStore:
    """Reads and single-row writes for both backing collections"""

    def __init__(self, db: Session, today: Optional[date] = None):
        self.db = db
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_institution(
        self,
        program: Program,
        institution_id: int,
        include_deceased: bool = False,
    ) -> List[PersonRecord]:
        program = Program(program)
        model = model_for(program)
        query = select(model).where(model.institution_id == institution_id)
        if not include_deceased:
            query = query.where(model.deceased.is_(False))

        try:
            rows = self.db.execute(query.order_by(model.id)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch {program.value} records for institution {institution_id}: {e}")
            raise FetchError(f"Failed to load {program.value} records") from e

        return [to_record(program, row) for row in rows]

    def find_by_upi(
        self,
        upi: str,
        institution_id: Optional[int] = None,
        scoped: bool = True,
    ) -> Optional[PersonRecord]:
        """
        Look a UPI up in both collections.

        When scoped (the default) only a record owned by `institution_id`
        is returned. `scoped=False` is for receiving transfers, where the
        record still belongs to the releasing institution.
        """
        upi = normalize_upi(upi)
        if not upi:
            raise ValidationError("UPI is required", fields=["upi"])
        if scoped and institution_id is None:
            raise ValidationError("institution_id is required for a scoped UPI lookup", fields=["institution_id"])

        for program, model in _MODELS.items():
            conditions = [model.upi == upi]
            if scoped:
                conditions.append(model.institution_id == institution_id)
            try:
                row = self.db.execute(select(model).where(and_(*conditions))).scalar_one_or_none()
            except SQLAlchemyError as e:
                logger.error(f"UPI lookup failed for {upi}: {e}")
                raise FetchError("Failed to search for learner") from e
            if row is not None:
                return to_record(program, row)
        return None

    def get(self, program: Program, person_id: int, institution_id: int) -> PersonRecord:
        program = Program(program)
        return to_record(program, self._get_row(program, person_id, institution_id))

    def count_by_institution(self, institution_id: int) -> InstitutionCounts:
        counts = InstitutionCounts()
        for program, model in _MODELS.items():
            try:
                total, active = self.db.execute(
                    select(
                        func.count(model.id),
                        func.count(model.id).filter(model.status == PersonStatus.ENROLLED.value),
                    ).where(model.institution_id == institution_id)
                ).one()
            except SQLAlchemyError as e:
                logger.error(f"Failed to count {program.value} records for institution {institution_id}: {e}")
                raise FetchError("Failed to load learner counts") from e
            counts.by_program[program.value] = ProgramCounts(total=int(total or 0), active=int(active or 0))
        return counts

    def upi_exists(self, upi: str) -> bool:
        upi = normalize_upi(upi)
        for model in _MODELS.values():
            found = self.db.execute(select(model.id).where(model.upi == upi)).first()
            if found:
                return True
        return False

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, new: NewPerson) -> PersonRecord:
        values = {
            "institution_id": new.institution_id,
            "first_name": new.first_name,
            "last_name": new.last_name,
            "gender": new.gender,
            "dob": new.dob,
        }
        missing = missing_fields(values)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)
        check_demographics(new.gender.strip().lower(), new.dob, new.admission_date, self.today)

        program = Program(new.program)
        upi = normalize_upi(new.upi)
        if not upi:
            raise ValidationError("UPI is required", fields=["upi"])
        if self.upi_exists(upi):
            raise ConflictError(f"UPI {upi} is already assigned")

        model = model_for(program)
        row = model(
            upi=upi,
            first_name=new.first_name.strip(),
            last_name=new.last_name.strip(),
            other_name=(new.other_name or "").strip() or None,
            gender=new.gender.strip().lower(),
            dob=new.dob,
            admission_date=new.admission_date,
            photo=new.photo,
            institution_id=new.institution_id,
            status=PersonStatus.ENROLLED.value,
            deceased=False,
        )
        try:
            with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError as e:
            logger.warning(f"Insert of {program.value} record with UPI {upi} rejected: {e.orig}")
            raise ConflictError(f"UPI {upi} is already assigned") from e

        return to_record(program, row)

    def update(self, program: Program, person_id: int, patch: Dict, institution_id: int) -> PersonRecord:
        program = Program(program)
        unknown = set(patch) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited directly: {', '.join(sorted(unknown))}", fields=sorted(unknown))

        row = self._get_row(program, person_id, institution_id)
        if row.deceased:
            raise InvalidTransitionError(f"{row.upi} is recorded as deceased and can no longer be edited")

        for name in ("first_name", "last_name", "gender", "dob"):
            if name in patch and missing_fields(patch, required=(name,)):
                raise ValidationError(f"{name} cannot be blank", fields=[name])

        changes = {}
        for name, value in patch.items():
            if isinstance(value, str):
                value = value.strip() or None
                if name == "gender" and value:
                    value = value.lower()
            changes[name] = value

        # Checked against the row as it will be after the edit
        check_demographics(
            changes.get("gender", row.gender),
            changes.get("dob", row.dob),
            changes.get("admission_date", row.admission_date),
            self.today,
        )

        for name, value in changes.items():
            setattr(row, name, value)
        self.db.flush()
        return to_record(program, row)

    def apply_transition(self, record: PersonRecord, **changes) -> PersonRecord:
        """Write lifecycle fields for a record previously read from this store"""
        unknown = set(changes) - TRANSITION_FIELDS
        if unknown:
            raise ValueError(f"Not lifecycle fields: {', '.join(sorted(unknown))}")

        row = self._get_row(record.program, record.id, record.institution_id)
        for name, value in changes.items():
            setattr(row, name, value)
        self.db.flush()
        return to_record(record.program, row)

    def _get_row(self, program: Program, person_id: int, institution_id: int):
        model = model_for(program)
        try:
            row = self.db.execute(
                select(model).where(
                    and_(model.id == person_id, model.institution_id == institution_id)
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load {Program(program).value} record {person_id}: {e}")
            raise FetchError("Failed to load learner") from e

        if row is None:
            raise NotFoundError(f"{Program(program).value} record {person_id} not found in institution {institution_id}")
        return row
