# ecdemis/models/person.py - ECDE learners and vocational students
from __future__ import annotations
from datetime import date, datetime
from sqlalchemy import (
    String, Integer, Boolean, Date, DateTime, ForeignKey, CheckConstraint, JSON
)
from sqlalchemy.orm import Mapped, mapped_column, declared_attr
from ecdemis.models.base import Base

PERSON_STATUSES = ("enrolled", "transferred", "graduated", "suspended", "deceased")


class PersonColumns:
    """
    Column set shared by `learners` and `students`.
    Both tables are only ever touched through PersonRecordStore.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    upi: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)

    first_name: Mapped[str] = mapped_column(String(64), nullable=False)
    last_name: Mapped[str] = mapped_column(String(64), nullable=False)
    other_name: Mapped[str | None] = mapped_column(String(64))
    gender: Mapped[str] = mapped_column(String(16), nullable=False)
    dob: Mapped[date] = mapped_column(Date, nullable=False)
    admission_date: Mapped[date | None] = mapped_column(Date)
    photo: Mapped[str | None] = mapped_column(String(512))

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="enrolled")
    deceased: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    date_of_death: Mapped[date | None] = mapped_column(Date)
    cause_of_death: Mapped[str | None] = mapped_column(String(128))
    death_details: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @declared_attr
    def institution_id(cls) -> Mapped[int]:
        return mapped_column(
            ForeignKey("institutions.id", ondelete="RESTRICT"), index=True, nullable=False
        )

    @declared_attr.directive
    def __table_args__(cls):
        table = cls.__tablename__
        statuses = ",".join(f"'{s}'" for s in PERSON_STATUSES)
        return (
            CheckConstraint(f"status IN ({statuses})", name=f"ck_{table}_status"),
            # deceased and status='deceased' always move together
            CheckConstraint(
                "(deceased AND status = 'deceased') OR (NOT deceased AND status <> 'deceased')",
                name=f"ck_{table}_deceased_status",
            ),
        )


class Learner(PersonColumns, Base):
    """ECDE learner"""
    __tablename__ = "learners"


class Student(PersonColumns, Base):
    """Vocational training student"""
    __tablename__ = "students"
