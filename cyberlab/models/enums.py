"""
Status Vocabulary
=================
Single authoritative enumeration of every status, type and decision used
by cases, exhibits, custody events and approvals, plus the transition
tables that drive the state machines.

The tables are checked for exhaustiveness at import time: adding a member
to an enum without deciding its edges fails loudly.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class CaseStatus(str, enum.Enum):
    open = "open"
    under_investigation = "under_investigation"
    pending_review = "pending_review"
    analysis_complete = "analysis_complete"
    report_submitted = "report_submitted"
    report_approved = "report_approved"
    evidence_returned = "evidence_returned"
    closed = "closed"
    archived = "archived"


class CasePriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class AnalystStatus(str, enum.Enum):
    pending = "pending"
    in_analysis = "in_analysis"
    complete = "complete"


class ExhibitType(str, enum.Enum):
    mobile_device = "mobile_device"
    computer = "computer"
    storage_media = "storage_media"
    network_device = "network_device"
    other = "other"


class ExhibitStatus(str, enum.Enum):
    received = "received"
    in_analysis = "in_analysis"
    analysis_complete = "analysis_complete"
    released = "released"
    archived = "archived"
    destroyed = "destroyed"

    @classmethod
    def parse(cls, value: "str | ExhibitStatus") -> "ExhibitStatus":
        """Accept the legacy spellings ``analyzed`` and ``returned``."""
        if isinstance(value, cls):
            return value
        return cls(_EXHIBIT_STATUS_ALIASES.get(value, value))


_EXHIBIT_STATUS_ALIASES = {
    "analyzed": "analysis_complete",
    "returned": "released",
}


class CustodyEventType(str, enum.Enum):
    received = "received"
    assigned = "assigned"
    status_change = "status_change"
    transferred = "transferred"
    returned = "returned"


class ApprovalType(str, enum.Enum):
    report_submission = "report_submission"
    report_approval = "report_approval"
    evidence_return = "evidence_return"
    final_closure = "final_closure"


class ApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    revision_requested = "revision_requested"


class Decision(str, enum.Enum):
    approve = "approve"
    reject = "reject"
    request_revision = "request_revision"

    @property
    def resulting_status(self) -> ApprovalStatus:
        return _DECISION_OUTCOME[self]


_DECISION_OUTCOME = {
    Decision.approve: ApprovalStatus.approved,
    Decision.reject: ApprovalStatus.rejected,
    Decision.request_revision: ApprovalStatus.revision_requested,
}


# ---------------------------------------------------------------------------
# Case lifecycle: approval gates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApprovalGate:
    """Case statuses an approval type may be raised from, and where it leads."""

    sources: frozenset[CaseStatus]
    target: CaseStatus


APPROVAL_GATES: dict[ApprovalType, ApprovalGate] = {
    # Observed mapping kept as-is: an approved report submission lands on
    # report_approved, skipping report_submitted.
    ApprovalType.report_submission: ApprovalGate(
        sources=frozenset({
            CaseStatus.under_investigation,
            CaseStatus.pending_review,
            CaseStatus.analysis_complete,
            CaseStatus.report_submitted,
        }),
        target=CaseStatus.report_approved,
    ),
    ApprovalType.report_approval: ApprovalGate(
        sources=frozenset({CaseStatus.report_approved}),
        target=CaseStatus.evidence_returned,
    ),
    ApprovalType.evidence_return: ApprovalGate(
        sources=frozenset({CaseStatus.evidence_returned}),
        target=CaseStatus.closed,
    ),
    ApprovalType.final_closure: ApprovalGate(
        sources=frozenset({CaseStatus.closed}),
        target=CaseStatus.archived,
    ),
}

TERMINAL_CASE_STATUSES = frozenset({CaseStatus.archived})


# ---------------------------------------------------------------------------
# Exhibit lifecycle
# ---------------------------------------------------------------------------

EXHIBIT_TRANSITIONS: dict[ExhibitStatus, frozenset[ExhibitStatus]] = {
    ExhibitStatus.received: frozenset({ExhibitStatus.in_analysis, ExhibitStatus.released}),
    ExhibitStatus.in_analysis: frozenset({
        ExhibitStatus.in_analysis,
        ExhibitStatus.analysis_complete,
        ExhibitStatus.received,
    }),
    ExhibitStatus.analysis_complete: frozenset({
        ExhibitStatus.in_analysis,
        ExhibitStatus.released,
    }),
    ExhibitStatus.released: frozenset({ExhibitStatus.archived, ExhibitStatus.destroyed}),
    ExhibitStatus.archived: frozenset(),
    ExhibitStatus.destroyed: frozenset(),
}


def _check_exhaustive() -> None:
    missing = set(ApprovalType) - set(APPROVAL_GATES)
    if missing:
        raise RuntimeError(f"APPROVAL_GATES missing {sorted(m.value for m in missing)}")
    missing = set(ExhibitStatus) - set(EXHIBIT_TRANSITIONS)
    if missing:
        raise RuntimeError(f"EXHIBIT_TRANSITIONS missing {sorted(m.value for m in missing)}")
    if set(Decision) - set(_DECISION_OUTCOME):
        raise RuntimeError("Decision outcome table is incomplete")


_check_exhaustive()
