# ecdemis/services/lifecycle.py
"""
Lifecycle transitions for learners and students.

    enrolled --release--> transferred --receive--> enrolled (new institution)
    enrolled --graduate--> graduated
    enrolled --suspend--> suspended --reinstate--> enrolled
    any living state --mark_deceased--> deceased (terminal)

Every transition writes a PersonStatusEvent. Releases also write a
TransferRecord which the receiving institution closes.
"""

import logging
from datetime import date
from typing import Optional, List

from sqlalchemy import select, func, and_, or_
from sqlalchemy.orm import Session

from ecdemis.core.errors import ValidationError, NotFoundError, InvalidTransitionError
from ecdemis.models.institution import Institution
from ecdemis.models.lifecycle import PersonStatusEvent, TransferRecord
from ecdemis.services.dataclasses import Program, PersonStatus, PersonRecord, DeathInfo
from ecdemis.services.person_store import PersonRecordStore

logger = logging.getLogger(__name__)

TRANSFER_PENDING = "pending"
TRANSFER_RECEIVED = "received"


class LifecycleTransitions:
    def __init__(self, db: Session, actor_id: Optional[str] = None, today: Optional[date] = None):
        self.db = db
        self.store = PersonRecordStore(db, today=today)
        self.actor_id = actor_id
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def release(
        self,
        program: Program,
        person_id: int,
        institution_id: int,
        reason: str,
        destination_institution_id: Optional[int] = None,
        effective_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> TransferRecord:
        """Release an enrolled learner from the caller's institution"""
        if not reason or not reason.strip():
            raise ValidationError("A reason for the transfer is required", fields=["reason"])

        record = self.store.get(program, person_id, institution_id)
        self._require_living(record)
        if record.status != PersonStatus.ENROLLED.value:
            raise InvalidTransitionError(f"{record.upi} is {record.status}; only enrolled learners can be released")

        if destination_institution_id is not None:
            if destination_institution_id == institution_id:
                raise ValidationError("Destination must be a different institution", fields=["destination_institution_id"])
            if self.db.get(Institution, destination_institution_id) is None:
                raise NotFoundError(f"Destination institution {destination_institution_id} not found")

        effective_date = effective_date or self.today
        if effective_date > self.today:
            raise ValidationError("Transfer date cannot be in the future", fields=["effective_date"])
        earliest = self._earliest_transition_date(record)
        if effective_date < earliest:
            raise ValidationError(
                f"Transfer date is before {record.upi}'s admission or last status change ({earliest})",
                fields=["effective_date"],
            )

        record = self.store.apply_transition(record, status=PersonStatus.TRANSFERRED.value)

        transfer = TransferRecord(
            upi=record.upi,
            program=record.program.value,
            person_id=record.id,
            source_institution_id=institution_id,
            destination_institution_id=destination_institution_id,
            reason=reason.strip(),
            notes=notes,
            effective_date=effective_date,
            state=TRANSFER_PENDING,
        )
        self.db.add(transfer)
        self._log_event(record, PersonStatus.ENROLLED.value, reason.strip(), effective_date)
        self.db.flush()

        logger.info(
            f"Released {record.upi} from institution {institution_id} "
            f"(destination {destination_institution_id or 'unspecified'})"
        )
        return transfer

    def receive(self, upi: str, institution_id: int, received_on: Optional[date] = None) -> PersonRecord:
        """
        Take in a learner released by another institution (or re-admit one
        this institution released). The UPI lookup is deliberately unscoped.
        """
        record = self.store.find_by_upi(upi, scoped=False)
        if record is None:
            raise NotFoundError(f"No learner found with UPI {upi}")
        self._require_living(record)

        if record.status != PersonStatus.TRANSFERRED.value:
            if record.institution_id == institution_id:
                raise InvalidTransitionError(f"{record.upi} is already {record.status} at this institution")
            raise InvalidTransitionError(
                f"{record.upi} is {record.status} at another institution and must be released first"
            )

        transfer = self._pending_transfer(record.upi)
        if transfer is not None and transfer.destination_institution_id not in (None, institution_id):
            raise InvalidTransitionError(f"{record.upi} was released to a different institution")

        received_on = received_on or self.today
        if received_on > self.today:
            raise ValidationError("Date received cannot be in the future", fields=["received_on"])
        if transfer is not None and received_on < transfer.effective_date:
            raise ValidationError(
                f"Date received is before the transfer date ({transfer.effective_date})",
                fields=["received_on"],
            )

        prev_status = record.status
        record = self.store.apply_transition(
            record,
            institution_id=institution_id,
            status=PersonStatus.ENROLLED.value,
        )

        if transfer is not None:
            transfer.state = TRANSFER_RECEIVED
            transfer.received_on = received_on
            transfer.received_by_institution_id = institution_id

        self._log_event(record, prev_status, "Received on transfer", received_on)
        self.db.flush()

        logger.info(f"Received {record.upi} into institution {institution_id}")
        return record

    # ------------------------------------------------------------------
    # Death
    # ------------------------------------------------------------------

    def mark_deceased(
        self,
        program: Program,
        person_id: int,
        institution_id: int,
        death_info: DeathInfo,
    ) -> PersonRecord:
        missing = []
        if death_info.date_of_death is None:
            missing.append("date_of_death")
        if not (death_info.cause_of_death or "").strip():
            missing.append("cause_of_death")
        if missing:
            raise ValidationError("Please provide date of death and cause of death", fields=missing)

        if death_info.date_of_death > self.today:
            raise ValidationError("Date of death cannot be in the future", fields=["date_of_death"])

        record = self.store.get(program, person_id, institution_id)
        self._require_living(record)
        if death_info.date_of_death < record.dob:
            raise ValidationError("Date of death is before date of birth", fields=["date_of_death"])

        prev_status = record.status
        record = self.store.apply_transition(
            record,
            deceased=True,
            status=PersonStatus.DECEASED.value,
            date_of_death=death_info.date_of_death,
            cause_of_death=death_info.cause_of_death.strip(),
            death_details=death_info.details(),
        )
        self._log_event(record, prev_status, death_info.cause_of_death.strip(), death_info.date_of_death)
        self.db.flush()

        logger.info(f"Recorded death of {record.upi} at institution {institution_id}")
        return record

    # ------------------------------------------------------------------
    # Other status changes
    # ------------------------------------------------------------------

    def graduate(self, program: Program, person_id: int, institution_id: int, reason: Optional[str] = None) -> PersonRecord:
        return self._change_status(
            program, person_id, institution_id,
            allowed_from=(PersonStatus.ENROLLED,),
            new_status=PersonStatus.GRADUATED,
            reason=reason or "Completed programme",
        )

    def suspend(self, program: Program, person_id: int, institution_id: int, reason: str) -> PersonRecord:
        if not reason or not reason.strip():
            raise ValidationError("A reason for the suspension is required", fields=["reason"])
        return self._change_status(
            program, person_id, institution_id,
            allowed_from=(PersonStatus.ENROLLED,),
            new_status=PersonStatus.SUSPENDED,
            reason=reason.strip(),
        )

    def reinstate(self, program: Program, person_id: int, institution_id: int, reason: Optional[str] = None) -> PersonRecord:
        return self._change_status(
            program, person_id, institution_id,
            allowed_from=(PersonStatus.SUSPENDED,),
            new_status=PersonStatus.ENROLLED,
            reason=reason or "Reinstated",
        )

    def _change_status(self, program, person_id, institution_id, allowed_from, new_status, reason) -> PersonRecord:
        record = self.store.get(program, person_id, institution_id)
        self._require_living(record)
        if record.status not in {s.value for s in allowed_from}:
            raise InvalidTransitionError(f"{record.upi} is {record.status}; cannot change to {new_status.value}")

        prev_status = record.status
        record = self.store.apply_transition(record, status=new_status.value)
        self._log_event(record, prev_status, reason, self.today)
        self.db.flush()

        logger.info(f"{record.upi}: {prev_status} -> {new_status.value}")
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def history(self, program: Program, person_id: int, institution_id: int) -> List[PersonStatusEvent]:
        record = self.store.get(program, person_id, institution_id)
        return self.db.execute(
            select(PersonStatusEvent).where(
                and_(
                    PersonStatusEvent.program == record.program.value,
                    PersonStatusEvent.person_id == record.id,
                )
            ).order_by(PersonStatusEvent.event_date, PersonStatusEvent.id)
        ).scalars().all()

    def transfers(self, institution_id: int, direction: str = "all", state: Optional[str] = None) -> List[TransferRecord]:
        if direction == "outgoing":
            scope = TransferRecord.source_institution_id == institution_id
        elif direction == "incoming":
            scope = or_(
                TransferRecord.destination_institution_id == institution_id,
                TransferRecord.received_by_institution_id == institution_id,
            )
        elif direction == "all":
            scope = or_(
                TransferRecord.source_institution_id == institution_id,
                TransferRecord.destination_institution_id == institution_id,
                TransferRecord.received_by_institution_id == institution_id,
            )
        else:
            raise ValidationError(f"Unknown direction '{direction}'", fields=["direction"])

        query = select(TransferRecord).where(scope)
        if state:
            query = query.where(TransferRecord.state == state)
        return self.db.execute(query.order_by(TransferRecord.created_at.desc(), TransferRecord.id.desc())).scalars().all()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_living(self, record: PersonRecord):
        if record.deceased:
            raise InvalidTransitionError(f"{record.upi} is recorded as deceased")

    def _earliest_transition_date(self, record: PersonRecord) -> date:
        """A new status event may not predate admission or the latest recorded event"""
        last_event = self.db.execute(
            select(func.max(PersonStatusEvent.event_date)).where(
                and_(
                    PersonStatusEvent.program == record.program.value,
                    PersonStatusEvent.person_id == record.id,
                )
            )
        ).scalar_one()
        dates = [d for d in (record.admitted_on, record.dob, last_event) if d is not None]
        return max(dates)

    def _pending_transfer(self, upi: str) -> Optional[TransferRecord]:
        return self.db.execute(
            select(TransferRecord).where(
                and_(TransferRecord.upi == upi, TransferRecord.state == TRANSFER_PENDING)
            ).order_by(TransferRecord.id.desc())
        ).scalars().first()

    def _log_event(self, record: PersonRecord, prev_status: Optional[str], reason: Optional[str], event_date: date):
        self.db.add(PersonStatusEvent(
            institution_id=record.institution_id,
            program=record.program.value,
            person_id=record.id,
            upi=record.upi,
            prev_status=prev_status,
            new_status=record.status,
            reason=(reason or "")[:256] or None,
            event_date=event_date,
            recorded_by=self.actor_id,
        ))
