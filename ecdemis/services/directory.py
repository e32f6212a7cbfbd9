# ecdemis/services/directory.py
"""
PersonDirectoryService - the read path behind every learner listing,
search, report and transfer screen.

Both collections are fetched for the institution, normalised into
PersonView rows and filtered in memory. If either fetch fails the whole
call fails; a half-populated list is never returned.
"""

import logging
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ecdemis.core.errors import ValidationError
from ecdemis.services.dataclasses import (
    Program, PersonStatus, PersonRecord, PersonView, DirectoryFilters
)
from ecdemis.services.person_store import PersonRecordStore

logger = logging.getLogger(__name__)

ALL = "all"
ORDERS = ("insertion", "recent")
RECENT_ADMISSIONS_LIMIT = 10


def compute_age(dob: date, today: Optional[date] = None) -> int:
    """Whole years, one less until this year's birthday has been reached"""
    today = today or date.today()
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


def parse_age_range(value) -> Optional[Tuple[int, int]]:
    """Accepts (min, max), "min-max" or "all"/None"""
    if value is None or value == ALL:
        return None
    if isinstance(value, str):
        try:
            low, high = (int(part) for part in value.split("-", 1))
        except ValueError:
            raise ValidationError(f"Invalid age range '{value}', expected e.g. 3-5", fields=["age_range"])
    else:
        low, high = value
    if low > high:
        raise ValidationError(f"Invalid age range {low}-{high}", fields=["age_range"])
    return int(low), int(high)


def _is_all(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip().lower() in ("", ALL))


def to_view(record: PersonRecord, today: Optional[date] = None) -> PersonView:
    program = Program(record.program)
    return PersonView(
        program=program.value,
        id=record.id,
        upi=record.upi,
        first_name=record.first_name,
        last_name=record.last_name,
        other_name=record.other_name,
        full_name=record.full_name,
        gender=record.gender,
        date_of_birth=record.dob,
        age=compute_age(record.dob, today),
        admission_date=record.admitted_on,
        status=record.status,
        photo=record.photo,
        course=program.course,
        level=program.level,
        institution_id=record.institution_id,
        deceased=record.deceased,
        date_of_death=record.date_of_death,
        cause_of_death=record.cause_of_death,
    )


class PersonDirectoryService:
    def __init__(self, db: Session, today: Optional[date] = None):
        self.db = db
        self.store = PersonRecordStore(db, today=today)
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def _collect(self, institution_id: int, include_deceased: bool = False) -> List[PersonView]:
        views: List[PersonView] = []
        for program in (Program.ECDE, Program.VOCATIONAL):
            records = self.store.find_by_institution(program, institution_id, include_deceased=include_deceased)
            views.extend(to_view(r, self.today) for r in records)
        return views

    def list(
        self,
        institution_id: int,
        filters: Optional[DirectoryFilters] = None,
        order: str = "insertion",
    ) -> List[PersonView]:
        """
        Living learners and students of an institution matching `filters`.

        order="insertion" keeps ECDE rows first then vocational rows, each in
        capture order; order="recent" sorts by admission date, newest first.
        """
        if order not in ORDERS:
            raise ValidationError(f"Unknown order '{order}'", fields=["order"])

        views = self.search(self._collect(institution_id), filters or DirectoryFilters())
        if order == "recent":
            views.sort(key=lambda v: v.admission_date or date.min, reverse=True)
        return views

    def search(self, views: List[PersonView], filters: DirectoryFilters) -> List[PersonView]:
        """Pure in-memory filter over an already fetched set"""
        term = (filters.search_term or "").strip().lower()
        age_range = parse_age_range(filters.age_range)
        admission_year = None
        if not _is_all(filters.admission_year):
            try:
                admission_year = int(filters.admission_year)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid admission year '{filters.admission_year}'", fields=["admission_year"])
        program_type = None if _is_all(filters.program_type) else filters.program_type.lower()
        gender = None if _is_all(filters.gender) else filters.gender.lower()
        status = None if _is_all(filters.status) else filters.status.lower()

        if program_type is not None and program_type not in {p.value for p in Program}:
            raise ValidationError(f"Unknown program type '{filters.program_type}'", fields=["program_type"])

        def matches(view: PersonView) -> bool:
            # Deceased records never show up in directory results
            if view.deceased:
                return False
            if term and not any(
                term in (text or "").lower()
                for text in (view.first_name, view.last_name, view.other_name, view.upi, view.course)
            ):
                return False
            if program_type and view.program != program_type:
                return False
            if gender and (view.gender or "").lower() != gender:
                return False
            if status and (view.status or "").lower() != status:
                return False
            if admission_year is not None:
                if view.admission_date is None or view.admission_date.year != admission_year:
                    return False
            if age_range is not None:
                low, high = age_range
                if not (low <= view.age <= high):
                    return False
            return True

        return [v for v in views if matches(v)]

    def recent_admissions(self, institution_id: int, limit: int = RECENT_ADMISSIONS_LIMIT) -> List[PersonView]:
        views = self.list(
            institution_id,
            DirectoryFilters(status=PersonStatus.ENROLLED.value),
            order="recent",
        )
        return views[:limit]

    def summary(self, institution_id: int) -> dict:
        """Headline numbers for the dashboard and admission report"""
        views = self._collect(institution_id)
        enrolled = [v for v in views if v.status == PersonStatus.ENROLLED.value]
        ages = [v.age for v in enrolled]

        return {
            "total": len(views),
            "enrolled": len(enrolled),
            "ecde": sum(1 for v in views if v.program == Program.ECDE.value),
            "vocational": sum(1 for v in views if v.program == Program.VOCATIONAL.value),
            "male": sum(1 for v in enrolled if (v.gender or "").lower() == "male"),
            "female": sum(1 for v in enrolled if (v.gender or "").lower() == "female"),
            "average_age": round(sum(ages) / len(ages), 1) if ages else 0,
            "by_status": {
                s.value: sum(1 for v in views if v.status == s.value)
                for s in PersonStatus if s is not PersonStatus.DECEASED
            },
        }

    def deceased_register(self, institution_id: int) -> List[PersonView]:
        views = [v for v in self._collect(institution_id, include_deceased=True) if v.deceased]
        views.sort(key=lambda v: v.date_of_death or date.min, reverse=True)
        return views

    def upi_report(self, institution_id: int) -> dict:
        """Every UPI held at the institution, deceased included"""
        views = self._collect(institution_id, include_deceased=True)
        return {
            "total": len(views),
            "active": sum(1 for v in views if v.status == PersonStatus.ENROLLED.value),
            "ecde": sum(1 for v in views if v.program == Program.ECDE.value),
            "vocational": sum(1 for v in views if v.program == Program.VOCATIONAL.value),
            "deceased": sum(1 for v in views if v.deceased),
            "records": views,
        }
