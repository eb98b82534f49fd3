"""
Part Resolver

Maps a client-supplied part reference (id, part number, part name, or any
combination) to a central inventory part. Resolution is an ordered chain of
lookup functions; the first one that returns a part wins.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from evdms.core.config import settings
from evdms.core.exceptions import UnresolvablePartError, ValidationError
from evdms.models.inventory import CentralInventoryPart


def normalize(value: Optional[str]) -> Optional[str]:
    """Case-insensitive, trimmed comparison key"""
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


@dataclass(frozen=True)
class PartReference:
    """How a request line identifies its part"""

    part_id: Optional[int] = None
    part_number: Optional[str] = None
    part_name: Optional[str] = None

    @property
    def number_key(self) -> Optional[str]:
        return normalize(self.part_number)

    @property
    def name_key(self) -> Optional[str]:
        return normalize(self.part_name)

    @property
    def is_empty(self) -> bool:
        return self.part_id is None and self.number_key is None and self.name_key is None

    def describe(self) -> str:
        labels = []
        if self.part_id is not None:
            labels.append(f"id={self.part_id}")
        if self.number_key:
            labels.append(f"number={self.part_number.strip()}")
        if self.name_key:
            labels.append(f"name={self.part_name.strip()}")
        return ", ".join(labels) or "empty reference"


Resolver = Callable[[Session, PartReference], Optional[CentralInventoryPart]]


LIKE_ESCAPE = "\\"


def contains_pattern(value: str) -> str:
    """``%value%`` with LIKE wildcards in ``value`` matched literally; pair with ``escape=LIKE_ESCAPE``"""
    escaped = value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", r"\%").replace("_", r"\_")
    return f"%{escaped}%"


def _number_column():
    return func.lower(func.trim(CentralInventoryPart.part_number))


def _name_column():
    return func.lower(func.trim(CentralInventoryPart.part_name))


def by_id(db: Session, ref: PartReference) -> Optional[CentralInventoryPart]:
    """Exact id, unless the supplied number or name contradicts the row (stale client cache)"""
    if ref.part_id is None:
        return None
    part = db.get(CentralInventoryPart, ref.part_id)
    if part is None:
        return None
    if ref.number_key and normalize(part.part_number) != ref.number_key:
        return None
    if ref.name_key and normalize(part.part_name) != ref.name_key:
        return None
    return part


def by_number_and_name(db: Session, ref: PartReference) -> Optional[CentralInventoryPart]:
    if not (ref.number_key and ref.name_key):
        return None
    return (
        db.query(CentralInventoryPart)
        .filter(_number_column() == ref.number_key, _name_column() == ref.name_key)
        .order_by(CentralInventoryPart.id)
        .first()
    )


def by_number(db: Session, ref: PartReference) -> Optional[CentralInventoryPart]:
    # When both number and name are given, only the joint match above applies
    if not ref.number_key or ref.name_key:
        return None
    return (
        db.query(CentralInventoryPart)
        .filter(_number_column() == ref.number_key)
        .order_by(CentralInventoryPart.id)
        .first()
    )


def by_name_exact(db: Session, ref: PartReference) -> Optional[CentralInventoryPart]:
    if not ref.name_key or ref.number_key:
        return None
    return (
        db.query(CentralInventoryPart)
        .filter(_name_column() == ref.name_key)
        .order_by(CentralInventoryPart.id)
        .first()
    )


def by_name_substring(db: Session, ref: PartReference) -> Optional[CentralInventoryPart]:
    if not ref.name_key or ref.number_key:
        return None
    return (
        db.query(CentralInventoryPart)
        .filter(_name_column().like(contains_pattern(ref.name_key), escape=LIKE_ESCAPE))
        .order_by(func.length(CentralInventoryPart.part_name), CentralInventoryPart.id)
        .first()
    )


# Tried in order; first match wins
RESOLVERS: List[Resolver] = [
    by_id,
    by_number_and_name,
    by_number,
    by_name_exact,
    by_name_substring,
]


def suggest_parts(db: Session, ref: PartReference, limit: Optional[int] = None) -> List[str]:
    """Near matches on any word of the supplied number or name"""
    limit = limit or settings.PART_SUGGESTION_LIMIT
    terms = set()
    for key in (ref.number_key, ref.name_key):
        if key:
            terms.add(key)
            terms.update(word for word in key.split() if len(word) >= 3)
    if not terms:
        return []

    conditions = []
    for term in sorted(terms):
        conditions.append(_name_column().like(contains_pattern(term), escape=LIKE_ESCAPE))
        conditions.append(_number_column().like(contains_pattern(term), escape=LIKE_ESCAPE))

    parts = (
        db.query(CentralInventoryPart)
        .filter(or_(*conditions))
        .order_by(CentralInventoryPart.part_name, CentralInventoryPart.id)
        .limit(limit)
        .all()
    )
    return [
        f"{part.part_name} ({part.part_number})" if part.part_number else part.part_name
        for part in parts
    ]


def resolve_part(
    db: Session,
    ref: PartReference,
    resolvers: Optional[List[Resolver]] = None
) -> CentralInventoryPart:
    """
    Resolve ``ref`` through the resolver chain.

    Raises:
        ValidationError: The reference carries no identifier at all
        UnresolvablePartError: No resolver matched; carries similar part names
    """
    if ref.is_empty:
        raise ValidationError("Each item needs a part id, part number or part name")

    for resolver in resolvers or RESOLVERS:
        part = resolver(db, ref)
        if part is not None:
            return part

    raise UnresolvablePartError(ref.describe(), suggest_parts(db, ref))
