"""
Case Registry
=============
Case creation, assignment and the ungated edges of the case lifecycle.

Gated transitions (report submission through archival) are driven only by
``services.approvals``. This module owns:
  - intake: open, with a freshly allocated lab number
  - open → under_investigation when an analyst is assigned
  - role-gated priority changes
  - analyst_status, owned by the assigned analyst
  - administrative override with a mandatory reason
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from cyberlab.auth.principal import Principal
from cyberlab.auth.role_policy import require, require_assigned_analyst, require_priority
from cyberlab.core.database import unit_of_work
from cyberlab.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from cyberlab.models.case import Case
from cyberlab.models.enums import (
    TERMINAL_CASE_STATUSES,
    AnalystStatus,
    CasePriority,
    CaseStatus,
)
from cyberlab.services.activity import record_activity
from cyberlab.services.identifiers import format_exhibit_number, next_lab_number

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value.strip()


def _coerce(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown {field}", **{field: str(value)}) from exc


def load_case(db: Session, case_id: uuid.UUID) -> Case:
    case = db.get(Case, case_id)
    if case is None:
        raise NotFoundError("Case not found", case_id=str(case_id))
    return case


def ensure_not_terminal(case: Case) -> None:
    if case.status in TERMINAL_CASE_STATUSES:
        raise InvalidTransitionError(
            "Case is archived and can no longer be changed",
            lab_number=case.lab_number,
            status=case.status.value,
        )


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


def create_case(
    db: Session,
    principal: Principal,
    *,
    title: str,
    description: str | None = None,
    location: str | None = None,
    incident_date: datetime | None = None,
    priority: CasePriority = CasePriority.medium,
    case_number: str | None = None,
    investigator_id: str | None = None,
    supervisor_id: str | None = None,
    year: int | None = None,
) -> Case:
    """Open a new case and allocate its lab number."""
    require(principal, "case.create")
    priority = _coerce(CasePriority, priority, "priority")
    require_priority(principal, priority)
    title = _require_text(title, "title")

    with unit_of_work(db):
        lab_number = next_lab_number(db, year)
        case = Case(
            lab_number=lab_number,
            case_number=(case_number or "").strip() or lab_number,
            title=title,
            description=description,
            location=location,
            incident_date=incident_date,
            priority=priority,
            status=CaseStatus.open,
            analyst_status=AnalystStatus.pending,
            investigator_id=investigator_id,
            supervisor_id=supervisor_id,
            exhibit_officer_id=principal.id,
            created_by=principal.id,
        )
        db.add(case)
        db.flush()
        record_activity(
            db,
            subject_id=case.id,
            case_id=case.id,
            actor=principal,
            activity_type="case_created",
            description=f"Case {lab_number} opened: {title}",
            metadata={"lab_number": lab_number, "priority": priority.value},
        )

    logger.info("Case %s created by %s", case.lab_number, principal.id)
    return case


# ---------------------------------------------------------------------------
# Assignment / attributes
# ---------------------------------------------------------------------------


def assign_case(
    db: Session,
    principal: Principal,
    case_id: uuid.UUID,
    *,
    analyst_id: str | None = None,
    supervisor_id: str | None = None,
    investigator_id: str | None = None,
) -> Case:
    """
    Bind personnel to a case. Assigning an analyst to an open case moves
    it to under_investigation.
    """
    require(principal, "case.assign")
    if not any((analyst_id, supervisor_id, investigator_id)):
        raise ValidationError("Nothing to assign")

    with unit_of_work(db):
        case = load_case(db, case_id)
        ensure_not_terminal(case)
        changes: dict[str, str] = {}

        if analyst_id and analyst_id != case.analyst_id:
            changes["analyst_id"] = analyst_id
            case.analyst_id = analyst_id
            case.analyst_status = AnalystStatus.pending
        if supervisor_id:
            changes["supervisor_id"] = supervisor_id
            case.supervisor_id = supervisor_id
        if investigator_id:
            changes["investigator_id"] = investigator_id
            case.investigator_id = investigator_id

        if case.analyst_id and case.status is CaseStatus.open:
            case.status = CaseStatus.under_investigation
            changes["status"] = CaseStatus.under_investigation.value

        record_activity(
            db,
            subject_id=case.id,
            case_id=case.id,
            actor=principal,
            activity_type="case_assigned",
            description=f"Case {case.lab_number} assignment updated",
            metadata=changes,
        )
    return case


def update_priority(
    db: Session,
    principal: Principal,
    case_id: uuid.UUID,
    priority: CasePriority,
) -> Case:
    require(principal, "case.priority")
    priority = _coerce(CasePriority, priority, "priority")
    require_priority(principal, priority)

    with unit_of_work(db):
        case = load_case(db, case_id)
        ensure_not_terminal(case)
        previous = case.priority
        case.priority = priority
        record_activity(
            db,
            subject_id=case.id,
            case_id=case.id,
            actor=principal,
            activity_type="priority_changed",
            description=f"Priority {previous.value} -> {priority.value}",
            metadata={"from": previous.value, "to": priority.value},
        )
    return case


def update_analyst_status(
    db: Session,
    principal: Principal,
    case_id: uuid.UUID,
    analyst_status: AnalystStatus,
) -> Case:
    """Set analyst_status. Only the assigned analyst may; case.status is untouched."""
    analyst_status = _coerce(AnalystStatus, analyst_status, "analyst_status")

    with unit_of_work(db):
        case = load_case(db, case_id)
        require_assigned_analyst(principal, case.analyst_id)
        ensure_not_terminal(case)
        previous = case.analyst_status
        case.analyst_status = analyst_status
        record_activity(
            db,
            subject_id=case.id,
            case_id=case.id,
            actor=principal,
            activity_type="analyst_status_changed",
            description=f"Analyst status {previous.value} -> {analyst_status.value}",
            metadata={"from": previous.value, "to": analyst_status.value},
        )
    return case


def update_case_notes(
    db: Session,
    principal: Principal,
    case_id: uuid.UUID,
    notes: str,
) -> Case:
    require(principal, "case.notes")

    with unit_of_work(db):
        case = load_case(db, case_id)
        ensure_not_terminal(case)
        case.case_notes = notes
        record_activity(
            db,
            subject_id=case.id,
            case_id=case.id,
            actor=principal,
            activity_type="notes_updated",
            description=f"Notes updated on {case.lab_number}",
        )
    return case


def override_status(
    db: Session,
    principal: Principal,
    case_id: uuid.UUID,
    status: CaseStatus,
    reason: str,
) -> Case:
    """Administrative jump to any status. Archived cases cannot be reopened."""
    require(principal, "case.override_status")
    status = _coerce(CaseStatus, status, "status")
    reason = _require_text(reason, "reason")

    with unit_of_work(db):
        case = load_case(db, case_id)
        ensure_not_terminal(case)
        previous = case.status
        case.status = status
        if status is CaseStatus.closed:
            case.closed_date = _utcnow()
        record_activity(
            db,
            subject_id=case.id,
            case_id=case.id,
            actor=principal,
            activity_type="status_override",
            description=f"Status overridden {previous.value} -> {status.value}: {reason}",
            metadata={"from": previous.value, "to": status.value, "reason": reason},
        )

    logger.warning(
        "Case %s status overridden %s -> %s by %s",
        case.lab_number,
        previous.value,
        status.value,
        principal.id,
    )
    return case


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_case(db: Session, principal: Principal, case_id: uuid.UUID) -> Case:
    require(principal, "case.view")
    return load_case(db, case_id)


def list_cases(
    db: Session,
    principal: Principal,
    *,
    status: CaseStatus | None = None,
    analyst_id: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Case]:
    require(principal, "case.view")
    stmt = select(Case)
    if status is not None:
        stmt = stmt.where(Case.status == _coerce(CaseStatus, status, "status"))
    if analyst_id is not None:
        stmt = stmt.where(Case.analyst_id == analyst_id)
    stmt = stmt.order_by(Case.created_at.desc()).offset(offset).limit(limit)
    return list(db.execute(stmt).scalars())


def exhibit_labels(db: Session, principal: Principal, case_id: uuid.UUID) -> dict[str, str]:
    """Document labels for a case's exhibits, keyed by stored exhibit number."""
    case = get_case(db, principal, case_id)
    total = len(case.exhibits)
    return {
        exhibit.exhibit_number: format_exhibit_number(case.lab_number, index, total)
        for index, exhibit in enumerate(case.exhibits)
    }
