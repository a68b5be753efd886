"""
Custody Ledger
==============
Per-exhibit, append-only chain of custody.

Design principles:
  - ``append_event`` is the only write path. It is called by the exhibit
    registry inside the same unit of work as the mutation it records, so a
    status change and its event commit or roll back together.
  - Events are never edited or removed. Each event carries the SHA-256 of
    its predecessor, making the serialized log tamper-evident.
  - Every read validates the stored JSON against the CustodyEvent schema;
    a malformed ledger raises LedgerIntegrityError instead of being shown.
  - Exporting is a pure projection: deterministic text, no writes.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

from cyberlab.auth.principal import Principal
from cyberlab.core.config import settings
from cyberlab.core.errors import LedgerIntegrityError, NotFoundError
from cyberlab.models.enums import CustodyEventType, ExhibitStatus
from cyberlab.models.exhibit import Exhibit

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class CustodyEvent(BaseModel):
    """One entry of an exhibit's chain of custody."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    sequence: int = Field(..., ge=0)
    timestamp: datetime
    event_type: CustodyEventType
    description: str = Field(..., min_length=1)
    officer_id: str
    officer_name: str
    officer_badge: str
    location: str | None = None
    previous_status: ExhibitStatus | None = None
    new_status: ExhibitStatus | None = None
    notes: str | None = None
    prev_hash: str = Field(..., min_length=64, max_length=64)
    event_hash: str = Field(..., min_length=64, max_length=64)

    def hashed_fields(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"event_hash"})


def canonical_json(obj: Any) -> str:
    """Deterministic JSON: sorted keys, no extra whitespace."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)


def compute_event_hash(fields: dict[str, Any]) -> str:
    return hashlib.sha256(canonical_json(fields).encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


def append_event(
    exhibit: Exhibit,
    *,
    event_type: CustodyEventType,
    description: str,
    officer: Principal,
    location: str | None = None,
    previous_status: ExhibitStatus | None = None,
    new_status: ExhibitStatus | None = None,
    notes: str | None = None,
    timestamp: datetime | None = None,
) -> CustodyEvent:
    """
    Append one event to *exhibit*'s ledger (in memory, flushed by the caller's
    unit of work).
    """
    chain = list(exhibit.chain_of_custody or [])
    prev_hash = chain[-1]["event_hash"] if chain else GENESIS_HASH

    fields = {
        "sequence": len(chain),
        "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
        "event_type": event_type.value,
        "description": description,
        "officer_id": officer.id,
        "officer_name": officer.display_name,
        "officer_badge": officer.badge,
        "location": location,
        "previous_status": previous_status.value if previous_status else None,
        "new_status": new_status.value if new_status else None,
        "notes": notes,
        "prev_hash": prev_hash,
    }
    # Normalize through the schema so the hash covers exactly what is read back
    draft = CustodyEvent.model_validate({**fields, "event_hash": GENESIS_HASH})
    hashed = draft.hashed_fields()
    record = {**hashed, "event_hash": compute_event_hash(hashed)}

    # Assign a new list so the ORM sees the change; never mutate in place.
    exhibit.chain_of_custody = chain + [record]

    logger.info(
        "custody event %s #%d on %s by %s",
        event_type.value,
        record["sequence"],
        exhibit.exhibit_number,
        officer.id,
    )
    return CustodyEvent.model_validate(record)


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


def _load_exhibit(db: Session, exhibit_id: uuid.UUID) -> Exhibit:
    exhibit = db.get(Exhibit, exhibit_id)
    if exhibit is None:
        raise NotFoundError("Exhibit not found", exhibit_id=str(exhibit_id))
    return exhibit


def parse_chain(exhibit: Exhibit) -> list[CustodyEvent]:
    """Validate *exhibit*'s stored ledger and return it oldest first."""
    raw = exhibit.chain_of_custody
    if not isinstance(raw, list) or not raw:
        raise LedgerIntegrityError(
            "Custody ledger is missing or not a list",
            exhibit_number=exhibit.exhibit_number,
        )

    events: list[CustodyEvent] = []
    for position, entry in enumerate(raw):
        try:
            ev = CustodyEvent.model_validate(entry)
        except SchemaError as exc:
            raise LedgerIntegrityError(
                "Custody event failed schema validation",
                exhibit_number=exhibit.exhibit_number,
                position=position,
                errors=exc.errors(include_url=False),
            ) from exc
        if ev.sequence != position:
            raise LedgerIntegrityError(
                "Custody events are out of order",
                exhibit_number=exhibit.exhibit_number,
                position=position,
                sequence=ev.sequence,
            )
        events.append(ev)

    if events[0].event_type is not CustodyEventType.received:
        raise LedgerIntegrityError(
            "Custody ledger does not start with a receipt event",
            exhibit_number=exhibit.exhibit_number,
        )
    return events


def history(db: Session, exhibit_id: uuid.UUID) -> list[CustodyEvent]:
    """Ordered (oldest first) custody events of an exhibit."""
    return parse_chain(_load_exhibit(db, exhibit_id))


@dataclass(frozen=True)
class ChainVerification:
    valid: bool
    event_count: int
    head_hash: str
    broken_at: int | None = None
    reason: str | None = None


def verify_events(events: list[CustodyEvent]) -> ChainVerification:
    """Recompute the hash chain over *events*."""
    expected_prev = GENESIS_HASH
    for ev in events:
        if ev.prev_hash != expected_prev:
            return ChainVerification(
                False, len(events), expected_prev, ev.sequence, "prev_hash mismatch"
            )
        if compute_event_hash(ev.hashed_fields()) != ev.event_hash:
            return ChainVerification(
                False, len(events), expected_prev, ev.sequence, "event_hash mismatch"
            )
        expected_prev = ev.event_hash
    return ChainVerification(True, len(events), expected_prev)


def verify_chain(db: Session, exhibit_id: uuid.UUID) -> ChainVerification:
    return verify_events(history(db, exhibit_id))


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustodyReport:
    exhibit_number: str
    text: str
    sha256: str
    event_count: int
    head_hash: str
    chain_valid: bool

    @property
    def filename(self) -> str:
        return f"custody-report-{self.exhibit_number.replace('/', '-')}.txt"


def _humanize(value: str) -> str:
    return value.replace("_", " ")


def _fmt_ts(value: datetime | None) -> str:
    if value is None:
        return "N/A"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def render_report(
    exhibit: Exhibit,
    events: list[CustodyEvent],
    generated_at: datetime,
) -> CustodyReport:
    """Build the custody report text for already-validated *events*."""
    rule = "=" * 80
    thin = "-" * 80
    case = exhibit.case
    verification = verify_events(events)

    lines = [
        "CHAIN OF CUSTODY REPORT",
        rule,
        "",
        "EXHIBIT INFORMATION",
        thin,
        f"Exhibit Number: {exhibit.exhibit_number}",
        f"Device Name: {exhibit.device_name}",
        f"Exhibit Type: {_humanize(exhibit.exhibit_type.value).upper()}",
        f"Case Number: {case.case_number if case else 'N/A'}",
        f"Lab Number: {case.lab_number if case else 'N/A'}",
        f"Current Status: {_humanize(exhibit.status.value).upper()}",
        f"Received Date: {_fmt_ts(exhibit.received_date)}",
        "",
        f"CUSTODY CHAIN EVENTS ({len(events)} Total)",
        rule,
        "",
    ]

    for ev in events:
        lines.append(f"Event #{ev.sequence + 1}")
        lines.append(thin)
        lines.append(f"Date/Time: {_fmt_ts(ev.timestamp)}")
        lines.append(f"Event Type: {_humanize(ev.event_type.value).upper()}")
        lines.append(f"Officer: {ev.officer_name} (Badge: {ev.officer_badge})")
        if ev.location:
            lines.append(f"Location: {ev.location}")
        if ev.previous_status and ev.new_status and ev.previous_status != ev.new_status:
            lines.append(
                f"Status Change: {_humanize(ev.previous_status.value)} -> "
                f"{_humanize(ev.new_status.value)}"
            )
        lines.append(f"Description: {ev.description}")
        if ev.notes:
            lines.append(f"Notes: {ev.notes}")
        lines.append(f"Event Hash: {ev.event_hash}")
        lines.append("")

    body = "\n".join(lines) + "\n"
    body_sha = hashlib.sha256(body.encode("utf-8")).hexdigest()

    statement = [
        rule,
        "INTEGRITY STATEMENT",
        thin,
        f"Ledger Events: {verification.event_count}",
        f"Hash Chain: {'VERIFIED' if verification.valid else 'BROKEN at event #%d' % ((verification.broken_at or 0) + 1)}",
        f"Chain Head SHA-256: {verification.head_hash}",
        f"Report Body SHA-256: {body_sha}",
        "This report is a read-only projection of the append-only custody",
        "ledger. No ledger entry was created, altered or removed by its export.",
        "",
        f"Report Generated: {_fmt_ts(generated_at)}",
        f"{settings.organization_name} - {settings.unit_name}",
        "Evidence Management System",
    ]
    text = body + "\n".join(statement) + "\n"

    return CustodyReport(
        exhibit_number=exhibit.exhibit_number,
        text=text,
        sha256=hashlib.sha256(text.encode("utf-8")).hexdigest(),
        event_count=len(events),
        head_hash=verification.head_hash,
        chain_valid=verification.valid,
    )


def export_report(
    db: Session,
    exhibit_id: uuid.UUID,
    *,
    generated_at: datetime | None = None,
) -> CustodyReport:
    """Deterministic custody report for an exhibit (same inputs → same bytes)."""
    exhibit = _load_exhibit(db, exhibit_id)
    events = parse_chain(exhibit)
    report = render_report(exhibit, events, generated_at or datetime.now(timezone.utc))
    if not report.chain_valid:
        logger.warning("Custody chain for %s failed verification", exhibit.exhibit_number)
    return report
