"""
Error Taxonomy
==============
Every failure a service operation can surface to its caller.

  ValidationError      malformed or incomplete request        422
  AuthorizationError   principal's role lacks the right       403
  ConflictError        state conflict (duplicate / resolved)  409
  NotFoundError        referenced record does not exist       404
  DependencyError      persistence or blob store unavailable  503

State-mutating operations never swallow these. The only downgrade is an
activity-log DependencyError, which is logged and does not abort the
primary mutation (see services/activity.py).
"""

from __future__ import annotations

from typing import Any


class CustodyError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    code = "custody_error"

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, "detail": self.detail}


class ValidationError(CustodyError):
    status_code = 422
    code = "validation_error"


class AuthorizationError(CustodyError):
    status_code = 403
    code = "authorization_error"


class ConflictError(CustodyError):
    status_code = 409
    code = "conflict"


class InvalidTransitionError(ConflictError):
    """Requested status change is not an edge of the state machine."""

    code = "invalid_transition"


class LedgerIntegrityError(ConflictError):
    """Stored custody ledger failed schema or hash-chain validation."""

    code = "ledger_integrity"


class NotFoundError(CustodyError):
    status_code = 404
    code = "not_found"


class DependencyError(CustodyError):
    status_code = 503
    code = "dependency_unavailable"
