"""Case model — top-level entity for an investigation."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cyberlab.core.database import Base
from cyberlab.models.enums import AnalystStatus, CasePriority, CaseStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Case(Base):
    __tablename__ = "cases"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    # Primary human-facing identifier (FB/CYBER/<year>/<seq>)
    lab_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(512), nullable=True)
    incident_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[CaseStatus] = mapped_column(
        Enum(CaseStatus, name="case_status", native_enum=False, length=32),
        default=CaseStatus.open,
        nullable=False,
        index=True,
    )
    priority: Mapped[CasePriority] = mapped_column(
        Enum(CasePriority, name="case_priority", native_enum=False, length=16),
        default=CasePriority.medium,
        nullable=False,
    )
    analyst_status: Mapped[AnalystStatus] = mapped_column(
        Enum(AnalystStatus, name="analyst_status", native_enum=False, length=16),
        default=AnalystStatus.pending,
        nullable=False,
    )

    # Role-bound assignments (principal ids from the identity provider)
    investigator_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    supervisor_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    analyst_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    exhibit_officer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    opened_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    closed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    case_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    exhibits = relationship(
        "Exhibit", back_populates="case", order_by="Exhibit.lab_item", lazy="selectin"
    )
    approvals = relationship(
        "Approval", back_populates="case", order_by="Approval.created_at", lazy="selectin"
    )

    def __repr__(self):
        return f"<Case {self.lab_number}: {self.status.value}>"
