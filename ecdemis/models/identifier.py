# ecdemis/models/identifier.py
from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from ecdemis.models.base import Base

class UpiRegistration(Base):
    """
    One row per UPI ever issued, across both programs.
    The unique constraints are what make concurrent issuance safe.
    """
    __tablename__ = "upi_registry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    upi: Mapped[str] = mapped_column(String(16), nullable=False)
    jurisdiction: Mapped[str] = mapped_column(String(1), nullable=False)
    institution_code: Mapped[str] = mapped_column(String(1), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    institution_id: Mapped[int] = mapped_column(ForeignKey("institutions.id", ondelete="RESTRICT"), index=True, nullable=False)
    program: Mapped[str] = mapped_column(String(16), nullable=False)  # ecde|vocational

    issued_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("upi", name="uq_upi_registry_upi"),
        UniqueConstraint("jurisdiction", "institution_code", "sequence", name="uq_upi_registry_sequence"),
        CheckConstraint("sequence > 0", name="ck_upi_registry_sequence_positive"),
        CheckConstraint("program IN ('ecde','vocational')", name="ck_upi_registry_program"),
    )
