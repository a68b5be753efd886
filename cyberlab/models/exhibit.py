"""
Exhibit model — a single evidence item registered against a case.

The chain of custody is stored as a serialized, append-only JSON list on
the exhibit row. Only ``services.custody_ledger.append_event`` writes it;
the ``before_flush`` guard below rejects any flush that would rewrite or
truncate an existing chain.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    event,
    inspect,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from cyberlab.core.database import Base
from cyberlab.core.errors import LedgerIntegrityError
from cyberlab.models.enums import ExhibitStatus, ExhibitType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


LedgerJSON = JSON().with_variant(JSONB(), "postgresql")


class Exhibit(Base):
    __tablename__ = "exhibits"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Immutable once assigned: CYB/LAB/<labSeq>/A<n>
    exhibit_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    lab_item: Mapped[int] = mapped_column(Integer, nullable=False)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id"), nullable=False, index=True
    )

    exhibit_type: Mapped[ExhibitType] = mapped_column(
        Enum(ExhibitType, name="exhibit_type", native_enum=False, length=32),
        nullable=False,
    )
    status: Mapped[ExhibitStatus] = mapped_column(
        Enum(ExhibitStatus, name="exhibit_status", native_enum=False, length=32),
        default=ExhibitStatus.received,
        nullable=False,
        index=True,
    )

    device_name: Mapped[str] = mapped_column(String(256), nullable=False)
    brand: Mapped[str | None] = mapped_column(String(128), nullable=True)
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    serial_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    imei: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mac_address: Mapped[str | None] = mapped_column(String(32), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    storage_location: Mapped[str | None] = mapped_column(String(256), nullable=True)

    assigned_analyst_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    received_by: Mapped[str] = mapped_column(String(128), nullable=False)
    received_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    chain_of_custody: Mapped[list] = mapped_column(LedgerJSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("case_id", "lab_item", name="uq_exhibit_case_item"),
    )
    __mapper_args__ = {"version_id_col": version}

    case = relationship("Case", back_populates="exhibits")

    def __repr__(self):
        return f"<Exhibit {self.exhibit_number}: {self.status.value}>"


# ---------------------------------------------------------------------------
# Append-only guard
# ---------------------------------------------------------------------------


@event.listens_for(Session, "before_flush")
def _guard_custody_chain(session, flush_context, instances):
    for obj in session.deleted:
        if isinstance(obj, Exhibit):
            raise LedgerIntegrityError(
                "Exhibits carry a custody ledger and cannot be deleted",
                exhibit_number=obj.exhibit_number,
            )

    for obj in session.dirty:
        if not isinstance(obj, Exhibit):
            continue
        history = inspect(obj).attrs.chain_of_custody.history
        if not history.deleted:
            continue
        before = list(history.deleted[0] or [])
        after = list(obj.chain_of_custody or [])
        if len(after) <= len(before) or after[: len(before)] != before:
            raise LedgerIntegrityError(
                "Custody ledger is append-only; existing events cannot be changed",
                exhibit_number=obj.exhibit_number,
            )

    for obj in session.new:
        if isinstance(obj, Exhibit) and not obj.chain_of_custody:
            raise LedgerIntegrityError(
                "An exhibit must be stored with its receipt event",
                exhibit_number=obj.exhibit_number,
            )
