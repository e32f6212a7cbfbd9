# ecdemis/models/institution.py
from __future__ import annotations
from datetime import datetime, date
from sqlalchemy import String, Integer, Boolean, Date, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from ecdemis.models.base import Base

class Institution(Base):
    __tablename__ = "institutions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)

    # The first letter of unique_code becomes the institution letter of a UPI
    unique_code: Mapped[str | None] = mapped_column(String(32), unique=True)
    type: Mapped[str | None] = mapped_column(String(64))              # ECDE centre | VTC | ...
    level: Mapped[str | None] = mapped_column(String(64))
    category: Mapped[str | None] = mapped_column(String(64))
    ownership: Mapped[str | None] = mapped_column(String(64))         # public | private | faith-based
    education_system: Mapped[str | None] = mapped_column(String(64))  # CBC | TVET-CDACC | ...

    # Location
    county: Mapped[str | None] = mapped_column(String(64))
    subcounty: Mapped[str | None] = mapped_column(String(64))
    ward: Mapped[str | None] = mapped_column(String(64))
    zone: Mapped[str | None] = mapped_column(String(64))
    location: Mapped[str | None] = mapped_column(String(128))
    nearest_town: Mapped[str | None] = mapped_column(String(128))
    nearest_police: Mapped[str | None] = mapped_column(String(128))
    nearest_health: Mapped[str | None] = mapped_column(String(128))
    geo_lat: Mapped[str | None] = mapped_column(String(32))
    geo_lng: Mapped[str | None] = mapped_column(String(32))

    # Registration and compliance
    kra_pin: Mapped[str | None] = mapped_column(String(32))
    registration_no: Mapped[str | None] = mapped_column(String(64))
    registration_date: Mapped[date | None] = mapped_column(Date)
    sbp_compliance: Mapped[bool | None] = mapped_column(Boolean)
    ownership_doc: Mapped[str | None] = mapped_column(String(512))

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
