# Overview: Service-layer operations for document numbers; encapsulates business logic and database work.

from __future__ import annotations

import secrets
import string

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from backoffice.time_utils import bangkok_today_str

DOCUMENT_ORDER = "ORDER"
DOCUMENT_RECEIPT = "RECEIPT"

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _allocate(document_type: str, period: str) -> int:
    """
    Atomically take the next number for (document_type, period).

    Runs inside the caller's transaction; the UPDATE takes the row lock so
    concurrent callers serialize on it.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, period=period)
            .scalar()
        )
        return current - 1

    # First number of the period. A concurrent insert of the same row fails
    # with IntegrityError on flush; callers run under run_with_retry(retry_on=IntegrityError).
    seq = DocumentSequence(document_type=document_type, period=period, next_number=2)
    db.session.add(seq)
    db.session.flush()
    return 1


def _random_suffix(length: int = 3) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def next_order_number() -> str:
    """ORD-YYYYMMDD-NNNNN-RRR (Bangkok day, per-day counter, random suffix)."""
    period = bangkok_today_str()
    number = _allocate(DOCUMENT_ORDER, period)
    return f"ORD-{period}-{number:05d}-{_random_suffix()}"


def next_receipt_number() -> str:
    """RCP-YYYYMMDD-NNNNN."""
    period = bangkok_today_str()
    number = _allocate(DOCUMENT_RECEIPT, period)
    return f"RCP-{period}-{number:05d}"
