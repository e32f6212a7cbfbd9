# ecdemis/services/dataclasses.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple, Union


class Program(str, Enum):
    ECDE = "ecde"
    VOCATIONAL = "vocational"

    @property
    def course(self) -> str:
        return "Early Childhood Development" if self is Program.ECDE else "Vocational Training"

    @property
    def level(self) -> str:
        return "ECDE" if self is Program.ECDE else "Technical"


class PersonStatus(str, Enum):
    ENROLLED = "enrolled"
    TRANSFERRED = "transferred"
    GRADUATED = "graduated"
    SUSPENDED = "suspended"
    DECEASED = "deceased"


@dataclass
class PersonRecord:
    """A learner or student as the rest of the system sees it"""
    program: Program
    id: int
    upi: str
    first_name: str
    last_name: str
    other_name: Optional[str]
    gender: str
    dob: date
    admission_date: Optional[date]
    photo: Optional[str]
    status: str
    deceased: bool
    date_of_death: Optional[date]
    cause_of_death: Optional[str]
    death_details: Optional[dict]
    institution_id: int
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.other_name, self.last_name) if p)

    @property
    def admitted_on(self) -> Optional[date]:
        """Admission date, falling back to the day the record was captured"""
        if self.admission_date:
            return self.admission_date
        return self.created_at.date() if self.created_at else None


@dataclass
class NewPerson:
    program: Program
    institution_id: Optional[int]
    upi: str
    first_name: Optional[str]
    last_name: Optional[str]
    gender: Optional[str]
    dob: Optional[date]
    other_name: Optional[str] = None
    admission_date: Optional[date] = None
    photo: Optional[str] = None


@dataclass
class PersonView:
    """Row shape shared by every listing, search and report"""
    program: str
    id: int
    upi: str
    first_name: str
    last_name: str
    other_name: Optional[str]
    full_name: str
    gender: str
    date_of_birth: date
    age: int
    admission_date: Optional[date]
    status: str
    photo: Optional[str]
    course: str
    level: str
    institution_id: int
    deceased: bool = False
    date_of_death: Optional[date] = None
    cause_of_death: Optional[str] = None


AgeRange = Union[Tuple[int, int], str, None]


@dataclass
class DirectoryFilters:
    """
    Options recognised by PersonDirectoryService.list.
    "all" (or None) means no constraint; everything is AND-combined.
    """
    search_term: Optional[str] = None
    program_type: str = "all"
    gender: str = "all"
    status: str = "all"
    admission_year: Union[int, str, None] = "all"
    age_range: AgeRange = "all"


@dataclass
class DeathInfo:
    date_of_death: Optional[date]
    cause_of_death: Optional[str]
    place_of_death: Optional[str] = None
    reported_by: Optional[str] = None
    reporter_relation: Optional[str] = None
    reporter_contact: Optional[str] = None
    certificate_number: Optional[str] = None
    notes: Optional[str] = None

    def details(self) -> dict:
        return {
            "place_of_death": self.place_of_death,
            "reported_by": self.reported_by,
            "reporter_relation": self.reporter_relation,
            "reporter_contact": self.reporter_contact,
            "certificate_number": self.certificate_number,
            "notes": self.notes,
        }


@dataclass
class PhotoUpload:
    filename: str
    content: bytes
    content_type: str

    @property
    def extension(self) -> str:
        return self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else ""


@dataclass
class ProgramCounts:
    total: int = 0
    active: int = 0


@dataclass
class InstitutionCounts:
    by_program: dict = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(c.total for c in self.by_program.values())

    @property
    def active(self) -> int:
        return sum(c.active for c in self.by_program.values())
