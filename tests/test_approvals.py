"""
Approval Workflow Tests
=======================

Validates:
  1. Submission is gated on the case status and is unique per pending
     (case, type).
  2. Approval applies the gated transition; reject / revision leave the
     case untouched and require comments.
  3. A resolved approval can never be resolved again.
  4. The full lifecycle through to archived.
  5. Resolution and case transition commit together or not at all.
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from cyberlab.core.database import unit_of_work
from cyberlab.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from cyberlab.models.approval import Approval
from cyberlab.models.enums import ApprovalStatus, ApprovalType, CaseStatus, Decision
from cyberlab.services import activity, approvals, cases


def _pending_count(db, case_id, approval_type):
    return db.execute(
        select(func.count())
        .select_from(Approval)
        .where(
            Approval.case_id == case_id,
            Approval.approval_type == approval_type,
            Approval.approval_status == ApprovalStatus.pending,
        )
    ).scalar_one()


class TestSubmit:
    def test_submit_creates_pending(self, db, investigating_case, analyst):
        approval = approvals.submit(
            db, analyst, investigating_case.id, ApprovalType.report_submission,
            comments="Extraction report attached",
        )
        assert approval.approval_status is ApprovalStatus.pending
        assert approval.submitted_by == analyst.id
        assert approval.approved_by is None

    def test_duplicate_pending_is_conflict(self, db, investigating_case, analyst):
        approvals.submit(db, analyst, investigating_case.id, ApprovalType.report_submission)
        with pytest.raises(ConflictError):
            approvals.submit(db, analyst, investigating_case.id, ApprovalType.report_submission)
        assert _pending_count(db, investigating_case.id, ApprovalType.report_submission) == 1

    def test_pending_index_backs_the_check(self, db, investigating_case, analyst):
        approvals.submit(db, analyst, investigating_case.id, ApprovalType.report_submission)
        with pytest.raises(ConflictError):
            with unit_of_work(db):
                db.add(Approval(
                    case_id=investigating_case.id,
                    approval_type=ApprovalType.report_submission,
                    submitted_by="someone",
                ))
                db.flush()

    def test_open_case_cannot_submit_report(self, db, make_case, analyst):
        case = make_case()
        with pytest.raises(InvalidTransitionError):
            approvals.submit(db, analyst, case.id, ApprovalType.report_submission)

    def test_wrong_stage_for_type(self, db, investigating_case, analyst):
        with pytest.raises(InvalidTransitionError):
            approvals.submit(db, analyst, investigating_case.id, ApprovalType.final_closure)

    def test_unknown_case(self, db, analyst):
        with pytest.raises(NotFoundError):
            approvals.submit(db, analyst, uuid.uuid4(), ApprovalType.report_submission)

    def test_submission_does_not_move_case(self, db, investigating_case, analyst):
        approvals.submit(db, analyst, investigating_case.id, ApprovalType.report_submission)
        assert investigating_case.status is CaseStatus.under_investigation


class TestResolve:
    @pytest.fixture()
    def pending(self, db, investigating_case, analyst):
        return approvals.submit(
            db, analyst, investigating_case.id, ApprovalType.report_submission
        )

    def test_reject_keeps_case_and_allows_resubmission(
        self, db, investigating_case, pending, supervisor, analyst
    ):
        resolved = approvals.resolve(
            db, supervisor, pending.id, Decision.reject, comments="insufficient detail"
        )
        assert resolved.approval_status is ApprovalStatus.rejected
        assert resolved.resolution_comments == "insufficient detail"
        assert resolved.approved_by == supervisor.id
        db.refresh(investigating_case)
        assert investigating_case.status is CaseStatus.under_investigation

        again = approvals.submit(
            db, analyst, investigating_case.id, ApprovalType.report_submission
        )
        assert again.id != pending.id
        assert again.approval_status is ApprovalStatus.pending

    def test_request_revision(self, db, investigating_case, pending, supervisor):
        resolved = approvals.resolve(
            db, supervisor, pending.id, Decision.request_revision, comments="Add hashes"
        )
        assert resolved.approval_status is ApprovalStatus.revision_requested
        db.refresh(investigating_case)
        assert investigating_case.status is CaseStatus.under_investigation

    @pytest.mark.parametrize("decision", [Decision.reject, Decision.request_revision])
    @pytest.mark.parametrize("comments", [None, "", "   "])
    def test_rejection_requires_comments(self, db, pending, supervisor, decision, comments):
        with pytest.raises(ValidationError):
            approvals.resolve(db, supervisor, pending.id, decision, comments=comments)
        db.refresh(pending)
        assert pending.approval_status is ApprovalStatus.pending

    def test_approve_transitions_case(self, db, investigating_case, pending, supervisor):
        resolved = approvals.resolve(db, supervisor, pending.id, Decision.approve)
        assert resolved.approval_status is ApprovalStatus.approved
        assert resolved.approved_at is not None
        db.refresh(investigating_case)
        assert investigating_case.status is CaseStatus.report_approved

    def test_second_resolution_is_conflict(self, db, pending, supervisor, commander):
        approvals.resolve(db, supervisor, pending.id, Decision.approve)
        with pytest.raises(ConflictError):
            approvals.resolve(db, commander, pending.id, Decision.reject, comments="Too late")
        db.refresh(pending)
        assert pending.approval_status is ApprovalStatus.approved
        assert pending.approved_by == supervisor.id

    def test_submitter_cannot_resolve(self, db, investigating_case, supervisor):
        own = approvals.submit(db, supervisor, investigating_case.id, ApprovalType.report_submission)
        with pytest.raises(AuthorizationError):
            approvals.resolve(db, supervisor, own.id, Decision.approve)
        db.refresh(own)
        assert own.approval_status is ApprovalStatus.pending

    def test_submitter_resolving_resolved_approval_is_conflict(
        self, db, investigating_case, supervisor, commander
    ):
        own = approvals.submit(db, supervisor, investigating_case.id, ApprovalType.report_submission)
        approvals.resolve(db, commander, own.id, Decision.approve)
        with pytest.raises(ConflictError):
            approvals.resolve(db, supervisor, own.id, Decision.reject, comments="Withdrawn")

    def test_analyst_cannot_resolve(self, db, pending, other_analyst):
        with pytest.raises(AuthorizationError):
            approvals.resolve(db, other_analyst, pending.id, Decision.approve)

    def test_unknown_approval(self, db, supervisor):
        with pytest.raises(NotFoundError):
            approvals.resolve(db, supervisor, uuid.uuid4(), Decision.approve)

    def test_stale_gate_rolls_back_resolution(self, db, investigating_case, pending, supervisor, admin):
        # Case moved on by an administrator after the approval was raised
        cases.override_status(db, admin, investigating_case.id, CaseStatus.closed, "Withdrawn")
        with pytest.raises(InvalidTransitionError):
            approvals.resolve(db, supervisor, pending.id, Decision.approve)
        db.refresh(pending)
        assert pending.approval_status is ApprovalStatus.pending
        assert pending.approved_by is None

    def test_resolution_is_logged(self, db, investigating_case, pending, supervisor, admin):
        approvals.resolve(db, supervisor, pending.id, Decision.approve)
        entry = activity.list_activity(db, admin, case_id=investigating_case.id)[0]
        assert entry.activity_type == "approval_approved"
        assert entry.actor_id == supervisor.id
        assert entry.metadata_json["transition"] == ["under_investigation", "report_approved"]


class TestLifecycle:
    def test_through_to_archived(self, db, investigating_case, analyst, supervisor, commander, admin):
        steps = [
            (ApprovalType.report_submission, CaseStatus.report_approved),
            (ApprovalType.report_approval, CaseStatus.evidence_returned),
            (ApprovalType.evidence_return, CaseStatus.closed),
            (ApprovalType.final_closure, CaseStatus.archived),
        ]
        last = None
        for approval_type, expected in steps:
            last = approvals.submit(db, analyst, investigating_case.id, approval_type)
            approvals.resolve(db, commander, last.id, Decision.approve)
            db.refresh(investigating_case)
            assert investigating_case.status is expected

        assert investigating_case.closed_date is not None

        with pytest.raises(ConflictError):
            approvals.resolve(db, admin, last.id, Decision.reject, comments="Reopen")
        db.refresh(last)
        assert last.approval_status is ApprovalStatus.approved

        history = approvals.approval_history(db, supervisor, investigating_case.id)
        assert [a.approval_type for a in history] == [s[0] for s in steps]
        assert approvals.list_pending(db, supervisor) == []

    def test_list_pending_by_case(self, db, make_case, supervisor, analyst, admin):
        first = cases.assign_case(db, supervisor, make_case("One").id, analyst_id=analyst.id)
        second = cases.assign_case(db, supervisor, make_case("Two").id, analyst_id=analyst.id)
        a1 = approvals.submit(db, analyst, first.id, ApprovalType.report_submission)
        approvals.submit(db, analyst, second.id, ApprovalType.report_submission)

        assert len(approvals.list_pending(db, admin)) == 2
        assert [a.id for a in approvals.list_pending(db, admin, case_id=first.id)] == [a1.id]
