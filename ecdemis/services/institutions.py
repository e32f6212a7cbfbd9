# ecdemis/services/institutions.py
import logging
import uuid
from typing import Optional, Dict, Any, List, Type

from sqlalchemy.orm import Session
from sqlalchemy import select, func

from ecdemis.core.config import settings
from ecdemis.core.errors import ValidationError, NotFoundError
from ecdemis.models.base import Base
from ecdemis.models.institution import Institution
from ecdemis.models.assets import BankAccount, Book, InfrastructureAsset, Emergency, CapitationReceipt
from ecdemis.models.lifecycle import TransferRecord
from ecdemis.services.dataclasses import PhotoUpload, Program
from ecdemis.services.person_store import PersonRecordStore, missing_fields
from ecdemis.services.storage import BlobStorage, storage_path

logger = logging.getLogger(__name__)

INSTITUTION_FIELDS = {
    "name", "unique_code", "type", "level", "category", "ownership", "education_system",
    "county", "subcounty", "ward", "zone", "location", "nearest_town", "nearest_police",
    "nearest_health", "geo_lat", "geo_lng", "kra_pin", "registration_no",
    "registration_date", "sbp_compliance",
}

# Asset kind -> (model, required fields)
ASSET_KINDS: Dict[str, tuple] = {
    "bank-accounts": (BankAccount, ("bank_name", "account_number")),
    "books": (Book, ("title",)),
    "infrastructure": (InfrastructureAsset, ("asset_name",)),
    "emergencies": (Emergency, ("calamity_name", "reporting_date")),
    "capitation-receipts": (CapitationReceipt, ("receipt_no", "amount", "date_received")),
}


def get_institution(db: Session, institution_id: int) -> Institution:
    institution = db.get(Institution, institution_id)
    if institution is None:
        raise NotFoundError(f"Institution {institution_id} not found")
    return institution


def _check_unique_code(db: Session, unique_code: Optional[str], exclude_id: Optional[int] = None):
    if not unique_code:
        return
    query = select(Institution.id).where(Institution.unique_code == unique_code)
    if exclude_id is not None:
        query = query.where(Institution.id != exclude_id)
    if db.execute(query).first():
        raise ValidationError("unique_code already in use", fields=["unique_code"])


def create_institution(db: Session, data: Dict[str, Any]) -> Institution:
    unknown = set(data) - INSTITUTION_FIELDS
    if unknown:
        raise ValidationError(f"Unknown institution fields: {', '.join(sorted(unknown))}", fields=sorted(unknown))
    if missing_fields(data, required=("name",)):
        raise ValidationError("Institution name is required", fields=["name"])

    _check_unique_code(db, data.get("unique_code"))
    institution = Institution(**data)
    db.add(institution)
    db.flush()

    logger.info(f"Created institution {institution.id} ({institution.name})")
    return institution


def update_institution(db: Session, institution_id: int, patch: Dict[str, Any]) -> Institution:
    """Bio-data edit; only the keys present in `patch` change"""
    unknown = set(patch) - INSTITUTION_FIELDS
    if unknown:
        raise ValidationError(f"Unknown institution fields: {', '.join(sorted(unknown))}", fields=sorted(unknown))
    if "name" in patch and missing_fields(patch, required=("name",)):
        raise ValidationError("Institution name cannot be blank", fields=["name"])

    institution = get_institution(db, institution_id)
    if "unique_code" in patch:
        _check_unique_code(db, patch["unique_code"], exclude_id=institution_id)

    for name, value in patch.items():
        setattr(institution, name, value)
    db.flush()

    logger.info(f"Updated institution {institution_id}: {', '.join(sorted(patch))}")
    return institution


def upload_document(
    storage: BlobStorage,
    institution_id: int,
    upload: PhotoUpload,
    folder: Optional[str] = None,
) -> str:
    """Store a supporting document for an institution and return its public URL"""
    name = uuid.uuid4().hex
    filename = f"{name}.{upload.extension}" if upload.extension else name
    path = storage_path(folder or settings.DOCUMENT_FOLDER, institution_id, filename)
    stored = storage.upload(path, upload.content, upload.content_type)
    return storage.get_public_url(stored)


def attach_ownership_document(db: Session, storage: BlobStorage, institution_id: int, upload: PhotoUpload) -> Institution:
    institution = get_institution(db, institution_id)
    institution.ownership_doc = upload_document(storage, institution_id, upload, folder="ownership-documents")
    db.flush()

    logger.info(f"Stored ownership document for institution {institution_id}")
    return institution


# ----------------------------------------------------------------------
# Assets
# ----------------------------------------------------------------------

def asset_model(kind: str) -> Type[Base]:
    try:
        return ASSET_KINDS[kind][0]
    except KeyError:
        raise NotFoundError(f"Unknown asset kind '{kind}'")


def list_assets(db: Session, kind: str, institution_id: int) -> List[Base]:
    model = asset_model(kind)
    return db.execute(
        select(model).where(model.institution_id == institution_id).order_by(model.created_at.desc(), model.id.desc())
    ).scalars().all()


def add_asset(db: Session, kind: str, institution_id: int, data: Dict[str, Any]) -> Base:
    model, required = ASSET_KINDS.get(kind, (None, ()))
    if model is None:
        raise NotFoundError(f"Unknown asset kind '{kind}'")

    missing = missing_fields(data, required=required)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)
    for name in ("quantity", "amount", "cost", "unit_price"):
        if data.get(name) is not None and data[name] < 0:
            raise ValidationError(f"{name} cannot be negative", fields=[name])

    get_institution(db, institution_id)
    values = {k: v for k, v in data.items() if k not in ("id", "institution_id", "created_at")}
    row = model(institution_id=institution_id, **values)
    db.add(row)
    db.flush()

    logger.info(f"Added {kind} entry {row.id} for institution {institution_id}")
    return row


def add_capitation_receipt(
    db: Session,
    storage: Optional[BlobStorage],
    institution_id: int,
    data: Dict[str, Any],
    upload: Optional[PhotoUpload] = None,
) -> CapitationReceipt:
    """Record a capitation receipt, storing the scanned receipt when one is supplied"""
    data = dict(data)
    if upload is not None:
        if storage is None:
            raise ValidationError("File uploads are not configured", fields=["file"])
        data["file_path"] = upload_document(storage, institution_id, upload)
    return add_asset(db, "capitation-receipts", institution_id, data)


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------

def get_institution_overview(db: Session, institution_id: int) -> dict:
    """
    Return key stats for the institution dashboard:
      - learners / students: total and active (enrolled) per programme
      - pendingTransfersIn / pendingTransfersOut: open transfer records
      - capitationReceived: sum of capitation receipts
      - books, infrastructure, openEmergencies: asset counts
    """
    institution = get_institution(db, institution_id)
    counts = PersonRecordStore(db).count_by_institution(institution_id)
    ecde = counts.by_program[Program.ECDE.value]
    vocational = counts.by_program[Program.VOCATIONAL.value]

    pending_in = db.execute(
        select(func.count()).select_from(TransferRecord).where(
            TransferRecord.destination_institution_id == institution_id,
            TransferRecord.state == "pending",
        )
    ).scalar_one() or 0

    pending_out = db.execute(
        select(func.count()).select_from(TransferRecord).where(
            TransferRecord.source_institution_id == institution_id,
            TransferRecord.state == "pending",
        )
    ).scalar_one() or 0

    capitation = db.execute(
        select(func.coalesce(func.sum(CapitationReceipt.amount), 0)).where(CapitationReceipt.institution_id == institution_id)
    ).scalar_one() or 0

    books = db.execute(
        select(func.coalesce(func.sum(Book.quantity), 0)).where(Book.institution_id == institution_id)
    ).scalar_one() or 0

    infrastructure = db.execute(
        select(func.count()).select_from(InfrastructureAsset).where(InfrastructureAsset.institution_id == institution_id)
    ).scalar_one() or 0

    open_emergencies = db.execute(
        select(func.count()).select_from(Emergency).where(
            Emergency.institution_id == institution_id,
            Emergency.status != "resolved",
        )
    ).scalar_one() or 0

    return {
        "institution": institution.name,
        "learners": {"total": ecde.total, "active": ecde.active},
        "students": {"total": vocational.total, "active": vocational.active},
        "total": counts.total,
        "active": counts.active,
        "pendingTransfersIn": int(pending_in),
        "pendingTransfersOut": int(pending_out),
        "capitationReceived": float(capitation),
        "books": int(books),
        "infrastructure": int(infrastructure),
        "openEmergencies": int(open_emergencies),
    }
