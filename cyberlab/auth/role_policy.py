"""
Centralized Role Policy
========================
All role-based access control decisions are made here. No service should
perform ad-hoc role checks. Use ``require`` / ``check_permission``.

Design principles:
  - Fail closed: undocumented action → deny.
  - Denials raise AuthorizationError with the allowed roles attached.
  - Ownership rules (assigned analyst) are checked alongside the matrix.
"""

from __future__ import annotations

from cyberlab.auth.principal import Principal, Role
from cyberlab.core.errors import AuthorizationError
from cyberlab.models.enums import CasePriority

# ---------------------------------------------------------------------------
# Role groups
# ---------------------------------------------------------------------------

ADMINISTRATORS = frozenset({Role.administrator, Role.admin, Role.chief_of_cyber})
COMMAND = frozenset({Role.commanding_officer, Role.officer_commanding_unit})
ANALYSTS = frozenset({Role.forensic_analyst, Role.analyst})
REVIEWERS = ADMINISTRATORS | COMMAND | {Role.supervisor}
INTAKE = ADMINISTRATORS | {Role.exhibit_officer}

ALL_ROLES = frozenset(Role)


# ---------------------------------------------------------------------------
# Role matrix: documents which roles can perform which actions
# ---------------------------------------------------------------------------

ROLE_MATRIX: dict[str, frozenset[Role]] = {
    "case.create": INTAKE,
    "case.view": ALL_ROLES,
    "case.assign": REVIEWERS,
    "case.priority": REVIEWERS | INTAKE,
    "case.notes": REVIEWERS | ANALYSTS | {Role.investigator, Role.case_officer},
    "case.analyst_status": ANALYSTS,
    "case.override_status": ADMINISTRATORS,
    "exhibit.register": INTAKE,
    "exhibit.view": ALL_ROLES,
    "exhibit.assign": INTAKE | REVIEWERS,
    "exhibit.status": INTAKE | REVIEWERS | ANALYSTS,
    "exhibit.transfer": INTAKE,
    "exhibit.return": INTAKE,
    "custody.export": ALL_ROLES,
    "approval.submit": ALL_ROLES,
    "approval.resolve": REVIEWERS,
    "activity.view": ADMINISTRATORS | COMMAND,
}

# Highest priority each role may set. Roles not listed stop at medium.
_PRIORITY_CEILING: dict[Role, CasePriority] = {
    Role.commanding_officer: CasePriority.critical,
    Role.chief_of_cyber: CasePriority.critical,
    Role.administrator: CasePriority.critical,
    Role.admin: CasePriority.critical,
    Role.officer_commanding_unit: CasePriority.high,
}

_PRIORITY_ORDER = [
    CasePriority.low,
    CasePriority.medium,
    CasePriority.high,
    CasePriority.critical,
]


def check_permission(principal: Principal | None, action: str) -> bool:
    """
    Check whether *principal* is permitted to perform *action*.

    Returns True if allowed, False otherwise. Does NOT raise.
    """
    allowed = ROLE_MATRIX.get(action)
    if allowed is None or principal is None:
        return False
    return principal.role in allowed


def require(principal: Principal | None, action: str) -> None:
    """Raise AuthorizationError unless *principal* may perform *action*."""
    if not check_permission(principal, action):
        allowed = sorted(r.value for r in ROLE_MATRIX.get(action, ()))
        raise AuthorizationError(
            f"Role '{principal.role.value if principal else None}' may not perform '{action}'",
            action=action,
            allowed_roles=allowed,
        )


def allowed_priorities(role: Role) -> list[CasePriority]:
    """Priorities *role* may assign, lowest first."""
    ceiling = _PRIORITY_CEILING.get(role, CasePriority.medium)
    return _PRIORITY_ORDER[: _PRIORITY_ORDER.index(ceiling) + 1]


def require_priority(principal: Principal, priority: CasePriority) -> None:
    if priority not in allowed_priorities(principal.role):
        raise AuthorizationError(
            f"Role '{principal.role.value}' may not set priority '{priority.value}'",
            priority=priority.value,
            allowed=[p.value for p in allowed_priorities(principal.role)],
        )


def require_assigned_analyst(principal: Principal, analyst_id: str | None) -> None:
    """Only the analyst assigned to a case may change its analyst_status."""
    require(principal, "case.analyst_status")
    if analyst_id is None or principal.id != analyst_id:
        raise AuthorizationError(
            "Only the assigned analyst may update analyst status",
            assigned_analyst=analyst_id,
        )
