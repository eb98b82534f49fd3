"""
Document Number Generator

Sequential, human-readable numbers of the form ``{PREFIX}-{YYYY}-{SEQ}``,
scoped by prefix and year. The next number is derived from the highest one
already stored with the same prefix.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from evdms.core.config import settings


def parse_sequence(document_number: str) -> Optional[int]:
    """Numeric suffix of a document number, or None when it has none"""
    if not document_number:
        return None
    tail = document_number.rsplit("-", 1)[-1]
    return int(tail) if tail.isdigit() else None


def generate_document_number(
    db: Session,
    column,
    prefix: str,
    year: Optional[int] = None,
    sequence_length: Optional[int] = None
) -> str:
    """
    Generate the next document number for ``prefix`` in ``year``.

    Args:
        db: Database session
        column: Mapped column holding existing numbers (e.g. ``PartsIssue.issue_number``)
        prefix: Document prefix such as ``PI``
        year: Year to scope the sequence to, defaults to the current year
        sequence_length: Zero padding for the sequence

    Returns:
        The next free number, e.g. ``PI-2026-0007``
    """
    year = year or datetime.now(timezone.utc).year
    sequence_length = sequence_length or settings.ISSUE_NUMBER_SEQUENCE_LENGTH
    scope = f"{prefix}-{year}-"

    existing = db.query(column).filter(column.like(f"{scope}%")).all()
    sequences = [parse_sequence(row[0]) for row in existing]
    last_seq = max((seq for seq in sequences if seq is not None), default=0)

    return f"{scope}{str(last_seq + 1).zfill(sequence_length)}"
