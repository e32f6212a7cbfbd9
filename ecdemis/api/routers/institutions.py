# ecdemis/api/routers/institutions.py
from datetime import date
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ecdemis.api.deps.auth import ActorContext
from ecdemis.api.deps.tenancy import require_institution, require_roles
from ecdemis.api.routers.persons import read_upload
from ecdemis.core.db import get_db
from ecdemis.core.errors import ValidationError
from ecdemis.schemas.institution import (
    InstitutionCreate, InstitutionUpdate, InstitutionOut, InstitutionOverview,
    BankAccountIn, BankAccountOut, BookIn, BookOut, InfrastructureIn, InfrastructureOut,
    EmergencyIn, EmergencyOut, CapitationReceiptOut,
)
from ecdemis.services import institutions as service
from ecdemis.services.storage import BlobStorage, get_storage

router = APIRouter(prefix="/institutions", tags=["Institutions"])

ADMINS = ("super_admin", "institution_admin")


@router.post("", response_model=InstitutionOut, status_code=201)
def create_institution(
    data: InstitutionCreate,
    ctx: ActorContext = Depends(require_roles("super_admin")),
    db: Session = Depends(get_db),
):
    try:
        institution = service.create_institution(db, data.model_dump(exclude_none=True))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return InstitutionOut.model_validate(institution)


@router.get("/mine", response_model=InstitutionOut)
def my_institution(
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    return InstitutionOut.model_validate(service.get_institution(db, institution_id))


@router.patch("/mine", response_model=InstitutionOut)
def update_my_institution(
    data: InstitutionUpdate,
    ctx: ActorContext = Depends(require_roles(*ADMINS)),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    try:
        institution = service.update_institution(db, institution_id, data.model_dump(exclude_unset=True))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return InstitutionOut.model_validate(institution)


@router.get("/mine/overview", response_model=InstitutionOverview)
def my_institution_overview(
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    return service.get_institution_overview(db, institution_id)


@router.post("/mine/ownership-document", response_model=InstitutionOut)
async def upload_ownership_document(
    file: UploadFile = File(...),
    ctx: ActorContext = Depends(require_roles(*ADMINS)),
    institution_id: int = Depends(require_institution),
    storage: BlobStorage = Depends(get_storage),
    db: Session = Depends(get_db),
):
    upload = await read_upload(file)
    if upload is None:
        raise ValidationError("A file is required", fields=["file"])
    try:
        institution = service.attach_ownership_document(db, storage, institution_id, upload)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return InstitutionOut.model_validate(institution)


# ----------------------------------------------------------------------
# Assets
# ----------------------------------------------------------------------

def _create(db: Session, kind: str, institution_id: int, data: dict):
    try:
        row = service.add_asset(db, kind, institution_id, data)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return row


@router.get("/mine/bank-accounts", response_model=List[BankAccountOut])
def list_bank_accounts(institution_id: int = Depends(require_institution), db: Session = Depends(get_db)):
    return service.list_assets(db, "bank-accounts", institution_id)


@router.post("/mine/bank-accounts", response_model=BankAccountOut, status_code=201)
def add_bank_account(data: BankAccountIn, institution_id: int = Depends(require_institution), db: Session = Depends(get_db)):
    return _create(db, "bank-accounts", institution_id, data.model_dump())


@router.get("/mine/books", response_model=List[BookOut])
def list_books(institution_id: int = Depends(require_institution), db: Session = Depends(get_db)):
    return service.list_assets(db, "books", institution_id)


@router.post("/mine/books", response_model=BookOut, status_code=201)
def add_book(data: BookIn, institution_id: int = Depends(require_institution), db: Session = Depends(get_db)):
    return _create(db, "books", institution_id, data.model_dump())


@router.get("/mine/infrastructure", response_model=List[InfrastructureOut])
def list_infrastructure(institution_id: int = Depends(require_institution), db: Session = Depends(get_db)):
    return service.list_assets(db, "infrastructure", institution_id)


@router.post("/mine/infrastructure", response_model=InfrastructureOut, status_code=201)
def add_infrastructure(data: InfrastructureIn, institution_id: int = Depends(require_institution), db: Session = Depends(get_db)):
    return _create(db, "infrastructure", institution_id, data.model_dump())


@router.get("/mine/emergencies", response_model=List[EmergencyOut])
def list_emergencies(institution_id: int = Depends(require_institution), db: Session = Depends(get_db)):
    return service.list_assets(db, "emergencies", institution_id)


@router.post("/mine/emergencies", response_model=EmergencyOut, status_code=201)
def report_emergency(data: EmergencyIn, institution_id: int = Depends(require_institution), db: Session = Depends(get_db)):
    return _create(db, "emergencies", institution_id, data.model_dump())


@router.get("/mine/capitation-receipts", response_model=List[CapitationReceiptOut])
def list_capitation_receipts(institution_id: int = Depends(require_institution), db: Session = Depends(get_db)):
    return service.list_assets(db, "capitation-receipts", institution_id)


@router.post("/mine/capitation-receipts", response_model=CapitationReceiptOut, status_code=201)
async def add_capitation_receipt(
    receipt_no: str = Form(...),
    amount: Decimal = Form(...),
    date_received: date = Form(...),
    file: UploadFile | None = File(None),
    institution_id: int = Depends(require_institution),
    storage: BlobStorage = Depends(get_storage),
    db: Session = Depends(get_db),
):
    upload = await read_upload(file)
    try:
        row = service.add_capitation_receipt(
            db, storage, institution_id,
            {"receipt_no": receipt_no, "amount": amount, "date_received": date_received},
            upload=upload,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return row
