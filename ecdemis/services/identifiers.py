# ecdemis/services/identifiers.py
"""
UPI issuance.

A UPI is <jurisdiction letter><institution code letter><sequence>, e.g. BT007.
Numbers are reserved by inserting into `upi_registry`, whose unique
constraints arbitrate between concurrent registrations: a reservation that
loses the race is rolled back to its savepoint and retried with a fresh
candidate. The reservation belongs to the caller's transaction, so a
registration that fails and rolls back gives its number back.
"""

import logging
import re
from typing import Optional, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ecdemis.core.config import settings
from ecdemis.core.errors import ValidationError, NotFoundError, ExhaustedError, ConflictError
from ecdemis.models.institution import Institution
from ecdemis.models.identifier import UpiRegistration
from ecdemis.services.dataclasses import Program

logger = logging.getLogger(__name__)


class IdentifierIssuer:
    """Hands out system-wide unique UPIs"""

    def __init__(
        self,
        db: Session,
        jurisdiction: Optional[str] = None,
        fallback_code: Optional[str] = None,
        width: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        self.db = db
        self.jurisdiction = (jurisdiction or settings.UPI_JURISDICTION_LETTER).upper()
        self.fallback_code = (fallback_code or settings.UPI_FALLBACK_INSTITUTION_CODE).upper()
        self.width = width or settings.UPI_SEQUENCE_WIDTH
        self.max_attempts = max_attempts or settings.UPI_MAX_ATTEMPTS
        self._pattern = re.compile(rf"^([A-Z])([A-Z])(\d{{{self.width}}})$")

    @property
    def capacity(self) -> int:
        """Highest sequence number the configured width can hold"""
        return 10 ** self.width - 1

    def institution_code(self, institution: Institution) -> str:
        for ch in institution.unique_code or "":
            if ch.isalpha() and ch.isascii():
                return ch.upper()
        return self.fallback_code

    def format(self, code: str, sequence: int) -> str:
        return f"{self.jurisdiction}{code}{sequence:0{self.width}d}"

    def parse(self, upi: str) -> Tuple[str, str, int]:
        """Split a UPI into (jurisdiction, institution code, sequence)"""
        match = self._pattern.match((upi or "").strip().upper())
        if not match:
            raise ValidationError(f"'{upi}' is not a valid UPI", fields=["upi"])
        jurisdiction, code, digits = match.groups()
        return jurisdiction, code, int(digits)

    def is_valid(self, upi: str) -> bool:
        try:
            self.parse(upi)
        except ValidationError:
            return False
        return True

    def issue(self, institution_id: int, program: Program) -> str:
        """
        Reserve and return the next UPI for an institution.

        Raises ExhaustedError when every sequence number for the institution
        code is taken, ConflictError when the reservation keeps losing races.
        """
        if institution_id is None:
            raise ValidationError("You must be assigned to an institution to register learners", fields=["institution_id"])
        institution = self.db.get(Institution, institution_id)
        if institution is None:
            raise NotFoundError(f"Institution {institution_id} not found")

        program = Program(program)
        code = self.institution_code(institution)

        for attempt in range(1, self.max_attempts + 1):
            sequence = self._next_sequence(code)
            if sequence is None:
                logger.error(f"UPI space exhausted for prefix {self.jurisdiction}{code}")
                raise ExhaustedError(
                    f"All {self.capacity} UPIs for prefix {self.jurisdiction}{code} are taken; "
                    "widen the sequence or assign a new institution code"
                )

            upi = self.format(code, sequence)
            try:
                with self.db.begin_nested():
                    self.db.add(UpiRegistration(
                        upi=upi,
                        jurisdiction=self.jurisdiction,
                        institution_code=code,
                        sequence=sequence,
                        institution_id=institution_id,
                        program=program.value,
                    ))
            except IntegrityError:
                logger.warning(f"UPI {upi} taken by a concurrent registration (attempt {attempt}/{self.max_attempts})")
                continue

            logger.info(f"Reserved UPI {upi} for {program.value} registration at institution {institution_id}")
            return upi

        raise ConflictError(
            f"Could not reserve a UPI for prefix {self.jurisdiction}{code} after {self.max_attempts} attempts"
        )

    def _next_sequence(self, code: str) -> Optional[int]:
        """Next number after the highest issued; once the top is reached, the lowest gap"""
        scope = and_(
            UpiRegistration.jurisdiction == self.jurisdiction,
            UpiRegistration.institution_code == code,
        )
        highest = self.db.execute(select(func.max(UpiRegistration.sequence)).where(scope)).scalar_one()
        highest = highest or 0
        if highest < self.capacity:
            return highest + 1

        taken = set(self.db.execute(select(UpiRegistration.sequence).where(scope)).scalars())
        for candidate in range(1, self.capacity + 1):
            if candidate not in taken:
                return candidate
        return None
