"""
Activity Log
============
Append-only record of every significant mutation, plus best-effort
notification fan-out.

  - ``record_activity`` writes inside a savepoint of the caller's unit of
    work. A failure there is logged at WARNING and never aborts the
    primary mutation.
  - Notifications are queued on the session and handed to the registered
    sinks only after the transaction commits; a rollback discards them.
    Delivery is at-most-once and sink errors are logged, not raised.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Protocol

from sqlalchemy import event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cyberlab.auth.principal import Principal
from cyberlab.auth.role_policy import require
from cyberlab.core.errors import DependencyError
from cyberlab.models.activity import ActivityEntry

logger = logging.getLogger(__name__)

_PENDING_KEY = "cyberlab.pending_notifications"


class NotificationSink(Protocol):
    def notify(self, notification: dict[str, Any]) -> None: ...


_sinks: list[NotificationSink] = []


def register_sink(sink: NotificationSink) -> None:
    _sinks.append(sink)


def unregister_sink(sink: NotificationSink) -> None:
    if sink in _sinks:
        _sinks.remove(sink)


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


def _insert(db: Session, entry: ActivityEntry) -> None:
    with db.begin_nested():
        db.add(entry)


def record_activity(
    db: Session,
    *,
    subject_id: uuid.UUID | str,
    activity_type: str,
    description: str,
    actor: Principal | None = None,
    case_id: uuid.UUID | None = None,
    metadata: dict[str, Any] | None = None,
) -> ActivityEntry | None:
    """
    Append an activity entry and queue its notification.

    Returns the entry, or None when the write failed (logged, not raised).
    Errors from the caller's own pending changes are raised, not logged:
    they are flushed here before the savepoint opens.
    """
    db.flush()
    entry = ActivityEntry(
        subject_id=str(subject_id),
        case_id=case_id,
        actor_id=actor.id if actor else None,
        activity_type=activity_type,
        description=description,
        metadata_json=dict(metadata or {}),
    )
    try:
        _insert(db, entry)
    except (SQLAlchemyError, DependencyError) as exc:
        logger.warning(
            "Activity log write failed for %s %s: %s", activity_type, subject_id, exc
        )
        return None

    db.info.setdefault(_PENDING_KEY, []).append({
        "subject_id": str(subject_id),
        "type": activity_type,
        "description": description,
        "metadata": dict(metadata or {}),
    })
    return entry


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


@event.listens_for(Session, "after_commit")
def _dispatch_notifications(session):
    pending = session.info.pop(_PENDING_KEY, None)
    if not pending:
        return
    for notification in pending:
        for sink in list(_sinks):
            try:
                sink.notify(notification)
            except Exception as exc:
                logger.warning(
                    "Notification sink %r failed for %s: %s",
                    sink,
                    notification["type"],
                    exc,
                )


@event.listens_for(Session, "after_rollback")
def _drop_notifications(session):
    session.info.pop(_PENDING_KEY, None)


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


def list_activity(
    db: Session,
    principal: Principal,
    *,
    case_id: uuid.UUID | None = None,
    subject_id: str | None = None,
    limit: int = 100,
) -> list[ActivityEntry]:
    """Most recent activity first."""
    require(principal, "activity.view")
    stmt = select(ActivityEntry)
    if case_id is not None:
        stmt = stmt.where(ActivityEntry.case_id == case_id)
    if subject_id is not None:
        stmt = stmt.where(ActivityEntry.subject_id == subject_id)
    stmt = stmt.order_by(ActivityEntry.created_at.desc()).limit(limit)
    return list(db.execute(stmt).scalars())
