# ecdemis/api/routers/transfers.py
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ecdemis.api.deps.auth import ActorContext, get_current_user
from ecdemis.api.deps.tenancy import require_institution
from ecdemis.core.db import get_db
from ecdemis.schemas.person import PersonOut, ReceiveRequest, TransferOut
from ecdemis.services.directory import to_view
from ecdemis.services.lifecycle import LifecycleTransitions

router = APIRouter(prefix="/transfers", tags=["Transfers"])


@router.post("/receive", response_model=PersonOut)
def receive_transfer(
    payload: ReceiveRequest,
    ctx: ActorContext = Depends(get_current_user),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    """Receive a released learner into the caller's institution by UPI"""
    try:
        record = LifecycleTransitions(db, actor_id=ctx.user_id).receive(
            payload.upi, institution_id, received_on=payload.received_on
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return PersonOut.model_validate(to_view(record))


@router.get("", response_model=List[TransferOut])
def list_transfers(
    direction: str = Query("all", description="all | incoming | outgoing"),
    state: Optional[str] = Query(None, description="pending | received"),
    institution_id: int = Depends(require_institution),
    db: Session = Depends(get_db),
):
    transfers = LifecycleTransitions(db).transfers(institution_id, direction=direction, state=state)
    return [TransferOut.model_validate(t) for t in transfers]
