"""Approval model — a gated request that must be resolved before a case advances."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cyberlab.core.database import Base
from cyberlab.models.enums import ApprovalStatus, ApprovalType


class Approval(Base):
    __tablename__ = "approvals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id"), nullable=False, index=True
    )
    approval_type: Mapped[ApprovalType] = mapped_column(
        Enum(ApprovalType, name="approval_type", native_enum=False, length=32),
        nullable=False,
    )
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, name="approval_status", native_enum=False, length=32),
        default=ApprovalStatus.pending,
        nullable=False,
    )
    submitted_by: Mapped[str] = mapped_column(String(128), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Blob-store key of the submitted report, if any
    document_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # Set only on resolution
    approved_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # At most one pending approval per (case, type)
    __table_args__ = (
        Index(
            "uq_approval_pending_per_type",
            "case_id",
            "approval_type",
            unique=True,
            sqlite_where=text("approval_status = 'pending'"),
            postgresql_where=text("approval_status = 'pending'"),
        ),
    )

    case = relationship("Case", back_populates="approvals")

    def __repr__(self):
        return f"<Approval {self.approval_type.value} {self.approval_status.value}>"
