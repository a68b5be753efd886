"""
Identifier Generator
=====================
Produces the legally meaningful numbers printed on case files, exhibit
labels and custody reports.

  Lab / case number   FB/CYBER/<year>/<seq:04d>      scope = year
  Exhibit number      CYB/LAB/<labSeq>/A<n>          scope = CYB/LAB/<labSeq>

Allocation contract:
  - Each scope owns one counter row in ``identifier_sequences``.
  - A number is taken with a single atomic
    ``UPDATE ... SET last_value = last_value + 1 RETURNING last_value``
    inside the caller's transaction, so two concurrent requests in the same
    scope serialize on the row and can never observe the same value.
  - A scope's counter is seeded from the highest number already in use,
    so legacy rows imported without a counter are never re-issued.
  - Unique constraints on the issued numbers back this up; a collision is
    surfaced as ConflictError, never retried here.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cyberlab.core.errors import ConflictError, ValidationError
from cyberlab.models.case import Case
from cyberlab.models.exhibit import Exhibit
from cyberlab.models.sequence import IdentifierSequence

logger = logging.getLogger(__name__)

LAB_PREFIX = "FB/CYBER"
EXHIBIT_PREFIX = "CYB/LAB"

_LAB_NUMBER_RE = re.compile(r"^FB/CYBER/(\d{4})/(\d{4,})$")
_LAB_SEQUENCE_RE = re.compile(r"/(\d{4,})$")

# A brand-new scope row may be raced by another writer creating it too.
_SEED_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_lab_number(year: int, sequence: int) -> str:
    return f"{LAB_PREFIX}/{year}/{sequence:04d}"


def lab_sequence(lab_number: str | None) -> str:
    """Return the trailing sequence of a lab number, e.g. ``0003``."""
    if not lab_number:
        return "0000"
    match = _LAB_SEQUENCE_RE.search(lab_number)
    return match.group(1) if match else "0000"


def exhibit_number(lab_number: str, item: int) -> str:
    """Stored, immutable exhibit number for the *item*-th exhibit of a lab number."""
    if item < 1:
        raise ValidationError("Exhibit item must be >= 1", item=item)
    return f"{EXHIBIT_PREFIX}/{lab_sequence(lab_number)}/A{item}"


def format_exhibit_number(lab_number: str | None, index: int, total: int) -> str:
    """
    Label printed on legal documents.

    A case holding exactly one exhibit shows the bare ``A``; otherwise
    exhibits are ``A1 .. AN`` by their 0-based *index*.
    """
    suffix = "A" if total == 1 else f"A{index + 1}"
    return f"{EXHIBIT_PREFIX}/{lab_sequence(lab_number)}/{suffix}"


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------


def allocate(db: Session, scope: str, seed: Callable[[], int] | None = None) -> int:
    """
    Take the next value of *scope*'s counter inside the current transaction.

    *seed* returns the highest value already used in the scope and is only
    consulted when the counter row does not exist yet.
    """
    bump = (
        update(IdentifierSequence)
        .where(IdentifierSequence.scope == scope)
        .values(last_value=IdentifierSequence.last_value + 1)
        .returning(IdentifierSequence.last_value)
        .execution_options(synchronize_session=False)
    )

    for _ in range(_SEED_ATTEMPTS):
        value = db.execute(bump).scalar_one_or_none()
        if value is not None:
            return value

        start = seed() if seed is not None else 0
        try:
            with db.begin_nested():
                db.add(IdentifierSequence(scope=scope, last_value=start))
            logger.info("Seeded identifier scope %s at %d", scope, start)
        except IntegrityError:
            logger.info("Identifier scope %s created concurrently; retrying", scope)

    raise ConflictError("Could not allocate identifier", scope=scope)


def _max_lab_sequence(db: Session, year: int) -> int:
    rows = db.execute(
        select(Case.lab_number).where(Case.lab_number.like(f"{LAB_PREFIX}/{year}/%"))
    ).scalars()
    highest = 0
    for number in rows:
        match = _LAB_NUMBER_RE.match(number)
        if match:
            highest = max(highest, int(match.group(2)))
    return highest


def next_lab_number(db: Session, year: int | None = None) -> str:
    """Allocate the next ``FB/CYBER/<year>/<seq>`` number."""
    year = year or datetime.now(timezone.utc).year
    seq = allocate(db, f"lab:{year}", seed=lambda: _max_lab_sequence(db, year))
    return format_lab_number(year, seq)


def next_exhibit_number(db: Session, case: Case) -> tuple[int, str]:
    """
    Allocate the next exhibit item for *case*; returns ``(n, exhibit_number)``.

    The counter is keyed on the printed prefix ``CYB/LAB/<labSeq>`` rather
    than the full lab number. Lab sequences restart every year, so cases
    from different years can share a prefix; they then share one run of
    ``A<n>`` suffixes and each printed number is still issued once.
    """
    prefix = f"{EXHIBIT_PREFIX}/{lab_sequence(case.lab_number)}"

    def _seed() -> int:
        return db.execute(
            select(func.coalesce(func.max(Exhibit.lab_item), 0)).where(
                Exhibit.exhibit_number.like(f"{prefix}/A%")
            )
        ).scalar_one()

    item = allocate(db, f"exhibit:{prefix}", seed=_seed)
    return item, exhibit_number(case.lab_number, item)
