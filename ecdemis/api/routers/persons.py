# ecdemis/api/routers/persons.py
"""
Learner and student endpoints.

Every route is scoped to the caller's institution (require_institution);
domain errors propagate to the handler installed in ecdemis.main after the
session is rolled back.
"""

from datetime import date
from typing import Optional, List

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ecdemis.api.deps.auth import ActorContext, get_current_user
from ecdemis.api.deps.tenancy import require_institution
from ecdemis.core.db import get_db
from ecdemis.core.errors import NotFoundError
from ecdemis.schemas.person import (
    PersonOut, PersonUpdate, ReleaseRequest, StatusChangeRequest, DeathReport,
    TransferOut, StatusEventOut, DirectorySummary, UpiReport,
)
from ecdemis.services.dataclasses import Program, DirectoryFilters, DeathInfo, PhotoUpload
from ecdemis.services.directory import PersonDirectoryService, to_view
from ecdemis.services.lifecycle import LifecycleTransitions
from ecdemis.services.person_store import PersonRecordStore
from ecdemis.services.registration import RegistrationService
from ecdemis.services.storage import BlobStorage, get_storage

router = APIRouter(prefix="/persons", tags=["Persons"])


async def read_upload(file: Optional[UploadFile]) -> Optional[PhotoUpload]:
    if file is None or not file.filename:
        return None
    content = await file.read()
    return PhotoUpload(filename=file.filename, content=content, content_type=file.content_type or "")


def _out(record) -> PersonOut:
    return PersonOut.model_validate(to_view(record))


# ----------------------------------------------------------------------
# Directory and reports
# ----------------------------------------------------------------------

@router.get("", response_model=List[PersonOut])
def list_persons(
    search_term: Optional[str] = Query(None),
    program_type: str = Query("all"),
    gender: str = Query("all"),
    status: str = Query("all"),
    admission_year: str = Query("all"),
    age_range: str = Query("all", description="e.g. 3-5"),
    order: str = Query("insertion", description="insertion | recent"),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    filters = DirectoryFilters(
        search_term=search_term,
        program_type=program_type,
        gender=gender,
        status=status,
        admission_year=admission_year,
        age_range=age_range,
    )
    views = PersonDirectoryService(db).list(institution_id, filters, order=order)
    return [PersonOut.model_validate(v) for v in views]


@router.get("/summary", response_model=DirectorySummary)
def directory_summary(
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    return PersonDirectoryService(db).summary(institution_id)


@router.get("/recent", response_model=List[PersonOut])
def recent_admissions(
    limit: int = Query(10, ge=1, le=100),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    views = PersonDirectoryService(db).recent_admissions(institution_id, limit=limit)
    return [PersonOut.model_validate(v) for v in views]


@router.get("/deceased", response_model=List[PersonOut])
def deceased_register(
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    views = PersonDirectoryService(db).deceased_register(institution_id)
    return [PersonOut.model_validate(v) for v in views]


@router.get("/upi-report", response_model=UpiReport)
def upi_report(
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    report = PersonDirectoryService(db).upi_report(institution_id)
    report["records"] = [PersonOut.model_validate(v) for v in report["records"]]
    return report


@router.get("/by-upi/{upi}", response_model=PersonOut)
def get_by_upi(
    upi: str,
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    record = PersonRecordStore(db).find_by_upi(upi, institution_id=institution_id)
    if record is None:
        raise NotFoundError(f"No learner with UPI {upi} at this institution")
    return _out(record)


# ----------------------------------------------------------------------
# Registration and edits
# ----------------------------------------------------------------------

@router.post("", response_model=PersonOut, status_code=201)
async def register_person(
    program: Program = Form(...),
    first_name: Optional[str] = Form(None),
    last_name: Optional[str] = Form(None),
    other_name: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    dob: Optional[date] = Form(None),
    admission_date: Optional[date] = Form(None),
    photo: Optional[UploadFile] = File(None),
    ctx: ActorContext = Depends(get_current_user),
    institution_id: int = Depends(require_institution),
    storage: BlobStorage = Depends(get_storage),
    db: Session = Depends(get_db),
):
    """Register a learner (ECDE) or student (vocational); the UPI is generated"""
    upload = await read_upload(photo)
    try:
        record = RegistrationService(db, storage=storage, actor_id=ctx.user_id).register(
            institution_id=institution_id,
            program=program,
            first_name=first_name,
            last_name=last_name,
            gender=gender,
            dob=dob,
            other_name=other_name,
            admission_date=admission_date,
            photo=upload,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _out(record)


@router.get("/{program}/{person_id}", response_model=PersonOut)
def get_person(
    program: Program,
    person_id: int,
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    return _out(PersonRecordStore(db).get(program, person_id, institution_id))


@router.patch("/{program}/{person_id}", response_model=PersonOut)
def update_person(
    program: Program,
    person_id: int,
    payload: PersonUpdate,
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    try:
        record = PersonRecordStore(db).update(
            program, person_id, payload.model_dump(exclude_unset=True), institution_id
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _out(record)


@router.post("/{program}/{person_id}/photo", response_model=PersonOut)
async def upload_photo(
    program: Program,
    person_id: int,
    photo: UploadFile = File(...),
    institution_id: int = Depends(require_institution),
    storage: BlobStorage = Depends(get_storage),
    db: Session = Depends(get_db),
):
    upload = await read_upload(photo)
    try:
        record = RegistrationService(db, storage=storage).attach_photo(program, person_id, institution_id, upload)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _out(record)


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------

@router.post("/{program}/{person_id}/release", response_model=TransferOut)
def release_person(
    program: Program,
    person_id: int,
    payload: ReleaseRequest,
    ctx: ActorContext = Depends(get_current_user),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    """Release an enrolled learner so another institution can receive them"""
    try:
        transfer = LifecycleTransitions(db, actor_id=ctx.user_id).release(
            program, person_id, institution_id,
            reason=payload.reason,
            destination_institution_id=payload.destination_institution_id,
            effective_date=payload.effective_date,
            notes=payload.notes,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return TransferOut.model_validate(transfer)


@router.post("/{program}/{person_id}/graduate", response_model=PersonOut)
def graduate_person(
    program: Program,
    person_id: int,
    payload: StatusChangeRequest,
    ctx: ActorContext = Depends(get_current_user),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    try:
        record = LifecycleTransitions(db, actor_id=ctx.user_id).graduate(program, person_id, institution_id, payload.reason)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _out(record)


@router.post("/{program}/{person_id}/suspend", response_model=PersonOut)
def suspend_person(
    program: Program,
    person_id: int,
    payload: StatusChangeRequest,
    ctx: ActorContext = Depends(get_current_user),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    try:
        record = LifecycleTransitions(db, actor_id=ctx.user_id).suspend(program, person_id, institution_id, payload.reason)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _out(record)


@router.post("/{program}/{person_id}/reinstate", response_model=PersonOut)
def reinstate_person(
    program: Program,
    person_id: int,
    payload: StatusChangeRequest,
    ctx: ActorContext = Depends(get_current_user),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    try:
        record = LifecycleTransitions(db, actor_id=ctx.user_id).reinstate(program, person_id, institution_id, payload.reason)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _out(record)


@router.post("/{program}/{person_id}/deceased", response_model=PersonOut)
def mark_deceased(
    program: Program,
    person_id: int,
    payload: DeathReport,
    ctx: ActorContext = Depends(get_current_user),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    try:
        record = LifecycleTransitions(db, actor_id=ctx.user_id).mark_deceased(
            program, person_id, institution_id, DeathInfo(**payload.model_dump())
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _out(record)


@router.get("/{program}/{person_id}/history", response_model=List[StatusEventOut])
def status_history(
    program: Program,
    person_id: int,
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    events = LifecycleTransitions(db).history(program, person_id, institution_id)
    return [StatusEventOut.model_validate(e) for e in events]
