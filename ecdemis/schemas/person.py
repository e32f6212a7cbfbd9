# ecdemis/schemas/person.py
from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


class PersonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    program: str
    id: int
    upi: str
    first_name: str
    last_name: str
    other_name: Optional[str] = None
    full_name: str
    gender: str
    date_of_birth: date
    age: int
    admission_date: Optional[date] = None
    status: str
    photo: Optional[str] = None
    course: str
    level: str
    institution_id: int
    deceased: bool = False
    date_of_death: Optional[date] = None
    cause_of_death: Optional[str] = None


class PersonUpdate(BaseModel):
    """Demographic edit; status and institution change through lifecycle endpoints"""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    other_name: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[date] = None
    admission_date: Optional[date] = None


class ReleaseRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    destination_institution_id: Optional[int] = None
    effective_date: Optional[date] = None
    notes: Optional[str] = None


class StatusChangeRequest(BaseModel):
    reason: Optional[str] = None


class DeathReport(BaseModel):
    date_of_death: date
    cause_of_death: str = Field(..., min_length=1)
    place_of_death: Optional[str] = None
    reported_by: Optional[str] = None
    reporter_relation: Optional[str] = None
    reporter_contact: Optional[str] = None
    certificate_number: Optional[str] = None
    notes: Optional[str] = None


class ReceiveRequest(BaseModel):
    upi: str = Field(..., min_length=1)
    received_on: Optional[date] = None


class TransferOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    upi: str
    program: str
    person_id: int
    source_institution_id: int
    destination_institution_id: Optional[int] = None
    reason: str
    notes: Optional[str] = None
    effective_date: date
    state: str
    received_on: Optional[date] = None
    received_by_institution_id: Optional[int] = None


class StatusEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    upi: str
    prev_status: Optional[str] = None
    new_status: str
    reason: Optional[str] = None
    event_date: date
    institution_id: int
    recorded_by: Optional[str] = None
    created_at: datetime


class DirectorySummary(BaseModel):
    total: int
    enrolled: int
    ecde: int
    vocational: int
    male: int
    female: int
    average_age: float
    by_status: dict


class UpiReport(BaseModel):
    total: int
    active: int
    ecde: int
    vocational: int
    deceased: int
    records: List[PersonOut]
