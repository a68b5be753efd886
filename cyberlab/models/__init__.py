"""ORM models package — re-exports all models for Alembic auto-detection."""

from cyberlab.models.case import Case  # noqa: F401
from cyberlab.models.exhibit import Exhibit  # noqa: F401
from cyberlab.models.approval import Approval  # noqa: F401
from cyberlab.models.activity import ActivityEntry  # noqa: F401
from cyberlab.models.sequence import IdentifierSequence  # noqa: F401
