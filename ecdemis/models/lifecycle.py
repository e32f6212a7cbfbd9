# ecdemis/models/lifecycle.py - status audit trail and transfers
from __future__ import annotations
from datetime import date, datetime
from sqlalchemy import String, Integer, Date, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from ecdemis.models.base import Base


class PersonStatusEvent(Base):
    __tablename__ = "person_status_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    institution_id: Mapped[int] = mapped_column(ForeignKey("institutions.id", ondelete="RESTRICT"), index=True, nullable=False)
    program: Mapped[str] = mapped_column(String(16), nullable=False)
    person_id: Mapped[int] = mapped_column(Integer, nullable=False)
    upi: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    prev_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    new_status: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(256), nullable=True)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    recorded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_person_status_events_person", "program", "person_id", "event_date"),
    )


class TransferRecord(Base):
    """
    A release from one institution, optionally naming the destination.
    `receive` at the destination closes it.
    """
    __tablename__ = "transfer_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    upi: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    program: Mapped[str] = mapped_column(String(16), nullable=False)
    person_id: Mapped[int] = mapped_column(Integer, nullable=False)
    source_institution_id: Mapped[int] = mapped_column(ForeignKey("institutions.id", ondelete="RESTRICT"), index=True, nullable=False)
    destination_institution_id: Mapped[int | None] = mapped_column(ForeignKey("institutions.id", ondelete="RESTRICT"), index=True, nullable=True)
    reason: Mapped[str] = mapped_column(String(256), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    state: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending|received
    received_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    received_by_institution_id: Mapped[int | None] = mapped_column(ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("state IN ('pending','received')", name="ck_transfer_records_state"),
    )
