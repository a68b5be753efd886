"""Request dependencies: the acting principal, taken from identity headers."""

from __future__ import annotations

from fastapi import Header

from cyberlab.auth.principal import Principal, Role
from cyberlab.core.errors import AuthorizationError


def get_principal(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
    x_user_name: str | None = Header(None),
    x_user_badge: str | None = Header(None),
) -> Principal:
    """
    Build the principal from headers set by the upstream identity provider.

    The headers are trusted as-is; a missing id or unknown role is rejected.
    """
    if not x_user_id or not x_user_role:
        raise AuthorizationError("Missing identity headers", required=["X-User-Id", "X-User-Role"])
    try:
        role = Role(x_user_role.strip().lower())
    except ValueError as exc:
        raise AuthorizationError("Unknown role", role=x_user_role) from exc
    return Principal(
        id=x_user_id.strip(),
        role=role,
        name=(x_user_name or "").strip(),
        badge_number=(x_user_badge or "").strip(),
    )
