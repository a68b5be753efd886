"""
Approval Workflow Engine
========================
Submits and resolves the approvals that gate case transitions.

  report_submission   under_investigation .. report_submitted → report_approved
  report_approval     report_approved                        → evidence_returned
  evidence_return     evidence_returned                      → closed
  final_closure       closed                                 → archived

Concurrency:
  - At most one pending approval per (case, type), enforced by a partial
    unique index; the pre-check here only produces a friendlier error.
  - Resolution is a compare-and-swap
    ``UPDATE approvals ... WHERE id = :id AND approval_status = 'pending'``.
    Exactly one of N concurrent resolvers matches a row; the rest get
    ConflictError.
  - The case transition for an approval commits in the same transaction
    as the resolution, or neither does.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from cyberlab.auth.principal import Principal
from cyberlab.auth.role_policy import require
from cyberlab.core.database import unit_of_work
from cyberlab.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from cyberlab.models.approval import Approval
from cyberlab.models.case import Case
from cyberlab.models.enums import (
    APPROVAL_GATES,
    ApprovalStatus,
    ApprovalType,
    CaseStatus,
    Decision,
)
from cyberlab.services.activity import record_activity
from cyberlab.services.cases import load_case

logger = logging.getLogger(__name__)


def _check_gate(case: Case, approval_type: ApprovalType) -> None:
    gate = APPROVAL_GATES[approval_type]
    if case.status not in gate.sources:
        raise InvalidTransitionError(
            f"Case in status {case.status.value} cannot take a {approval_type.value} approval",
            lab_number=case.lab_number,
            status=case.status.value,
            allowed=sorted(s.value for s in gate.sources),
        )


def _load_approval(db: Session, approval_id: uuid.UUID) -> Approval:
    approval = db.get(Approval, approval_id)
    if approval is None:
        raise NotFoundError("Approval not found", approval_id=str(approval_id))
    return approval


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


def submit(
    db: Session,
    principal: Principal,
    case_id: uuid.UUID,
    approval_type: ApprovalType,
    *,
    comments: str | None = None,
    document_path: str | None = None,
) -> Approval:
    """Raise a pending approval request against a case."""
    require(principal, "approval.submit")
    try:
        approval_type = ApprovalType(approval_type)
    except ValueError as exc:
        raise ValidationError("Unknown approval type", approval_type=str(approval_type)) from exc

    with unit_of_work(db):
        case = load_case(db, case_id)
        _check_gate(case, approval_type)

        existing = db.execute(
            select(Approval.id).where(
                Approval.case_id == case.id,
                Approval.approval_type == approval_type,
                Approval.approval_status == ApprovalStatus.pending,
            )
        ).first()
        if existing is not None:
            raise ConflictError(
                f"A {approval_type.value} approval is already pending for this case",
                lab_number=case.lab_number,
                approval_id=str(existing.id),
            )

        approval = Approval(
            case_id=case.id,
            approval_type=approval_type,
            approval_status=ApprovalStatus.pending,
            submitted_by=principal.id,
            comments=comments,
            document_path=document_path,
        )
        db.add(approval)
        db.flush()
        record_activity(
            db,
            subject_id=case.id,
            case_id=case.id,
            actor=principal,
            activity_type="approval_submitted",
            description=f"{approval_type.value} submitted for {case.lab_number}",
            metadata={"approval_id": str(approval.id), "approval_type": approval_type.value},
        )

    logger.info("Approval %s (%s) submitted by %s", approval.id, approval_type.value, principal.id)
    return approval


# ---------------------------------------------------------------------------
# Resolve
# ---------------------------------------------------------------------------


def resolve(
    db: Session,
    principal: Principal,
    approval_id: uuid.UUID,
    decision: Decision,
    *,
    comments: str | None = None,
) -> Approval:
    """
    Approve, reject or request revision of a pending approval.

    Approving applies the gated case transition atomically with the
    resolution. Rejection and revision requests need comments and leave
    the case untouched.
    """
    require(principal, "approval.resolve")
    try:
        decision = Decision(decision)
    except ValueError as exc:
        raise ValidationError("Unknown decision", decision=str(decision)) from exc
    if decision is not Decision.approve and not (comments or "").strip():
        raise ValidationError(
            "Comments are required when rejecting or requesting revision",
            field="comments",
        )

    now = datetime.now(timezone.utc)
    with unit_of_work(db):
        approval = _load_approval(db, approval_id)
        result = db.execute(
            update(Approval)
            .where(
                Approval.id == approval.id,
                Approval.approval_status == ApprovalStatus.pending,
            )
            .values(
                approval_status=decision.resulting_status,
                approved_by=principal.id,
                approved_at=now,
                resolution_comments=comments,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                "Approval has already been resolved",
                approval_id=str(approval.id),
            )
        # Rolled back with the unit of work, so the approval stays pending.
        if approval.submitted_by == principal.id:
            raise AuthorizationError(
                "An approval cannot be resolved by its submitter",
                approval_id=str(approval.id),
            )

        case = load_case(db, approval.case_id)
        transition = None
        if decision is Decision.approve:
            _check_gate(case, approval.approval_type)
            target = APPROVAL_GATES[approval.approval_type].target
            transition = (case.status.value, target.value)
            case.status = target
            if target is CaseStatus.closed:
                case.closed_date = now

        record_activity(
            db,
            subject_id=case.id,
            case_id=case.id,
            actor=principal,
            activity_type=f"approval_{decision.resulting_status.value}",
            description=(
                f"{approval.approval_type.value} {decision.resulting_status.value} "
                f"for {case.lab_number}"
            ),
            metadata={
                "approval_id": str(approval.id),
                "decision": decision.value,
                "comments": comments,
                "transition": list(transition) if transition else None,
            },
        )

    db.refresh(approval)
    logger.info(
        "Approval %s resolved as %s by %s",
        approval.id,
        approval.approval_status.value,
        principal.id,
    )
    return approval


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_approval(db: Session, principal: Principal, approval_id: uuid.UUID) -> Approval:
    require(principal, "case.view")
    return _load_approval(db, approval_id)


def list_pending(
    db: Session,
    principal: Principal,
    *,
    case_id: uuid.UUID | None = None,
) -> list[Approval]:
    """Pending approvals, oldest first."""
    require(principal, "case.view")
    stmt = select(Approval).where(Approval.approval_status == ApprovalStatus.pending)
    if case_id is not None:
        stmt = stmt.where(Approval.case_id == case_id)
    return list(db.execute(stmt.order_by(Approval.created_at)).scalars())


def approval_history(db: Session, principal: Principal, case_id: uuid.UUID) -> list[Approval]:
    require(principal, "case.view")
    load_case(db, case_id)
    stmt = select(Approval).where(Approval.case_id == case_id).order_by(Approval.created_at)
    return list(db.execute(stmt).scalars())
