from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import delete, select

from ecdemis.core.errors import ConflictError, ExhaustedError, NotFoundError, ValidationError
from ecdemis.models import UpiRegistration
from ecdemis.services.dataclasses import Program
from ecdemis.services.identifiers import IdentifierIssuer


def test_upi_format_uses_first_letter_of_institution_code(db, make_institution):
    institution = make_institution(unique_code="kak-001")
    upi = IdentifierIssuer(db).issue(institution.id, Program.ECDE)
    assert upi == "BK001"


@pytest.mark.parametrize("unique_code", [None, "", "0042"])
def test_institution_without_letter_falls_back_to_t(db, make_institution, unique_code):
    institution = make_institution(unique_code=unique_code or None)
    assert IdentifierIssuer(db).issue(institution.id, Program.VOCATIONAL) == "BT001"


def test_sequence_is_shared_by_institutions_with_same_letter(db, make_institution):
    first = make_institution(unique_code="T100")
    second = make_institution(unique_code=None)
    issuer = IdentifierIssuer(db)

    assert issuer.issue(first.id, Program.ECDE) == "BT001"
    assert issuer.issue(second.id, Program.VOCATIONAL) == "BT002"
    assert issuer.issue(first.id, Program.VOCATIONAL) == "BT003"


def test_parse_and_validate():
    issuer = IdentifierIssuer(db=None)
    assert issuer.parse("BT007") == ("B", "T", 7)
    assert issuer.parse(" bt007 ") == ("B", "T", 7)
    assert issuer.is_valid("BK120")
    assert not issuer.is_valid("BT07")
    assert not issuer.is_valid("B1007")
    with pytest.raises(ValidationError):
        issuer.parse("")


def test_issue_requires_institution(db, make_institution):
    with pytest.raises(ValidationError):
        IdentifierIssuer(db).issue(None, Program.ECDE)
    with pytest.raises(NotFoundError):
        IdentifierIssuer(db).issue(9999, Program.ECDE)


def test_concurrent_issuance_never_duplicates(session_factory, make_institution):
    institution = make_institution(unique_code="T001")

    def issue_one(_):
        session = session_factory()
        try:
            upi = IdentifierIssuer(session).issue(institution.id, Program.ECDE)
            session.commit()
            return upi
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        upis = list(pool.map(issue_one, range(24)))

    assert len(set(upis)) == 24
    assert all(IdentifierIssuer(db=None).is_valid(u) for u in upis)


def test_issue_retries_when_candidate_was_taken(db, make_institution, monkeypatch):
    institution = make_institution(unique_code="T001")
    issuer = IdentifierIssuer(db)
    assert issuer.issue(institution.id, Program.ECDE) == "BT001"
    db.commit()

    # Simulate a concurrent issuer that read the max before BT001 committed
    real_next = issuer._next_sequence
    stale = iter([1])

    def next_sequence(code):
        return next(stale, None) or real_next(code)

    monkeypatch.setattr(issuer, "_next_sequence", next_sequence)
    assert issuer.issue(institution.id, Program.ECDE) == "BT002"


def test_issue_gives_up_after_max_attempts(db, make_institution, monkeypatch):
    institution = make_institution(unique_code="T001")
    issuer = IdentifierIssuer(db, max_attempts=3)
    issuer.issue(institution.id, Program.ECDE)
    db.commit()

    monkeypatch.setattr(issuer, "_next_sequence", lambda code: 1)
    with pytest.raises(ConflictError):
        issuer.issue(institution.id, Program.ECDE)


def test_exhausted_space_raises_and_gaps_are_reused(db, make_institution):
    institution = make_institution(unique_code="T001")
    issuer = IdentifierIssuer(db, width=1)

    issued = [issuer.issue(institution.id, Program.ECDE) for _ in range(9)]
    assert issued[0] == "BT1" and issued[-1] == "BT9"

    with pytest.raises(ExhaustedError):
        issuer.issue(institution.id, Program.ECDE)

    db.execute(delete(UpiRegistration).where(UpiRegistration.sequence == 4))
    assert issuer.issue(institution.id, Program.ECDE) == "BT4"


def test_rolled_back_registration_does_not_burn_a_number(db, make_institution):
    institution = make_institution(unique_code="T001")
    issuer = IdentifierIssuer(db)

    assert issuer.issue(institution.id, Program.ECDE) == "BT001"
    db.rollback()

    assert issuer.issue(institution.id, Program.ECDE) == "BT001"
    db.commit()
    count = len(db.execute(select(UpiRegistration)).scalars().all())
    assert count == 1
