# ecdemis/schemas/institution.py
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InstitutionBase(BaseModel):
    unique_code: Optional[str] = None
    type: Optional[str] = None
    level: Optional[str] = None
    category: Optional[str] = None
    ownership: Optional[str] = None
    education_system: Optional[str] = None
    county: Optional[str] = None
    subcounty: Optional[str] = None
    ward: Optional[str] = None
    zone: Optional[str] = None
    location: Optional[str] = None
    nearest_town: Optional[str] = None
    nearest_police: Optional[str] = None
    nearest_health: Optional[str] = None
    geo_lat: Optional[str] = None
    geo_lng: Optional[str] = None
    kra_pin: Optional[str] = None
    registration_no: Optional[str] = None
    registration_date: Optional[date] = None
    sbp_compliance: Optional[bool] = None


class InstitutionCreate(InstitutionBase):
    name: str = Field(..., min_length=1)


class InstitutionUpdate(InstitutionBase):
    name: Optional[str] = None


class InstitutionOut(InstitutionBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    ownership_doc: Optional[str] = None


class InstitutionOverview(BaseModel):
    institution: str
    learners: dict
    students: dict
    total: int
    active: int
    pendingTransfersIn: int
    pendingTransfersOut: int
    capitationReceived: float
    books: int
    infrastructure: int
    openEmergencies: int


# Assets

class BankAccountIn(BaseModel):
    bank_name: str = Field(..., min_length=1)
    branch: Optional[str] = None
    account_number: str = Field(..., min_length=1)


class BankAccountOut(BankAccountIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    institution_id: int
    created_at: datetime


class BookIn(BaseModel):
    title: str = Field(..., min_length=1)
    author: Optional[str] = None
    publisher: Optional[str] = None
    isbn: Optional[str] = None
    subject: Optional[str] = None
    level: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    quantity: int = Field(1, ge=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    year_published: Optional[int] = None


class BookOut(BookIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    institution_id: int
    created_at: datetime


class InfrastructureIn(BaseModel):
    asset_name: str = Field(..., min_length=1)
    asset_type: Optional[str] = None
    classification: Optional[str] = None
    quantity: int = Field(1, ge=0)
    cost: Optional[Decimal] = Field(None, ge=0)
    year_of_acquisition: Optional[int] = None


class InfrastructureOut(InfrastructureIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    institution_id: int
    created_at: datetime


class EmergencyIn(BaseModel):
    calamity_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    reporting_date: date
    response: Optional[str] = None
    status: str = "reported"


class EmergencyOut(EmergencyIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    institution_id: int
    created_at: datetime


class CapitationReceiptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    institution_id: int
    receipt_no: str
    amount: Decimal
    date_received: date
    file_path: Optional[str] = None
    created_at: datetime
