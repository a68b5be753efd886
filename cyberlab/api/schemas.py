"""Pydantic request / response schemas for the API layer."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cyberlab.models.enums import (
    AnalystStatus,
    ApprovalStatus,
    ApprovalType,
    CasePriority,
    CaseStatus,
    Decision,
    ExhibitStatus,
    ExhibitType,
)


# ── Cases ────────────────────────────────────────────────────────────


class CaseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    description: str | None = None
    location: str | None = Field(None, max_length=512)
    incident_date: datetime | None = None
    priority: CasePriority = CasePriority.medium
    case_number: str | None = Field(None, max_length=64)
    investigator_id: str | None = None
    supervisor_id: str | None = None


class CaseAssign(BaseModel):
    analyst_id: str | None = None
    supervisor_id: str | None = None
    investigator_id: str | None = None


class PriorityUpdate(BaseModel):
    priority: CasePriority


class AnalystStatusUpdate(BaseModel):
    analyst_status: AnalystStatus


class NotesUpdate(BaseModel):
    case_notes: str


class StatusOverride(BaseModel):
    status: CaseStatus
    reason: str = Field(..., min_length=1)


class CaseOut(BaseModel):
    id: uuid.UUID
    case_number: str
    lab_number: str
    title: str
    description: str | None
    location: str | None
    incident_date: datetime | None
    status: CaseStatus
    priority: CasePriority
    analyst_status: AnalystStatus
    investigator_id: str | None
    supervisor_id: str | None
    analyst_id: str | None
    exhibit_officer_id: str | None
    opened_date: datetime
    closed_date: datetime | None
    case_notes: str | None
    created_by: str
    version: int

    class Config:
        from_attributes = True


# ── Exhibits ─────────────────────────────────────────────────────────


class ExhibitCreate(BaseModel):
    exhibit_type: ExhibitType
    device_name: str = Field(..., max_length=256)
    brand: str | None = Field(None, max_length=128)
    model: str | None = Field(None, max_length=128)
    serial_number: str | None = Field(None, max_length=128)
    imei: str | None = Field(None, max_length=32)
    mac_address: str | None = Field(None, max_length=32)
    description: str | None = None
    storage_location: str | None = Field(None, max_length=256)
    notes: str | None = None


class ExhibitAssign(BaseModel):
    analyst_id: str = Field(..., min_length=1)
    notes: str | None = None


class ExhibitStatusChange(BaseModel):
    # Plain string so the legacy aliases (analyzed, returned) reach the service
    status: str = Field(..., min_length=1)
    notes: str | None = None
    location: str | None = None


class ExhibitTransfer(BaseModel):
    to_location: str = Field(..., min_length=1, max_length=256)
    notes: str | None = None


class ExhibitReturn(BaseModel):
    returned_to: str = Field(..., min_length=1)
    notes: str | None = None


class ExhibitOut(BaseModel):
    id: uuid.UUID
    case_id: uuid.UUID
    exhibit_number: str
    lab_item: int
    exhibit_type: ExhibitType
    status: ExhibitStatus
    device_name: str
    brand: str | None
    model: str | None
    serial_number: str | None
    imei: str | None
    mac_address: str | None
    description: str | None
    storage_location: str | None
    assigned_analyst_id: str | None
    received_by: str
    received_date: datetime
    version: int

    class Config:
        from_attributes = True


class ExhibitLabel(BaseModel):
    exhibit_number: str
    label: str


# ── Custody ──────────────────────────────────────────────────────────


class ChainVerificationOut(BaseModel):
    valid: bool
    event_count: int
    head_hash: str
    broken_at: int | None = None
    reason: str | None = None


class CustodyReportOut(BaseModel):
    exhibit_number: str
    sha256: str
    event_count: int
    head_hash: str
    chain_valid: bool
    text: str
    archived_key: str | None = None


# ── Approvals ────────────────────────────────────────────────────────


class ApprovalSubmit(BaseModel):
    case_id: uuid.UUID
    approval_type: ApprovalType
    comments: str | None = None
    document_path: str | None = Field(None, max_length=1024)


class ApprovalResolve(BaseModel):
    decision: Decision
    comments: str | None = None


class ApprovalOut(BaseModel):
    id: uuid.UUID
    case_id: uuid.UUID
    approval_type: ApprovalType
    approval_status: ApprovalStatus
    submitted_by: str
    comments: str | None
    document_path: str | None
    approved_by: str | None
    approved_at: datetime | None
    resolution_comments: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class DocumentPreview(BaseModel):
    url: str
    expires_in: int


# ── Activity ─────────────────────────────────────────────────────────


class ActivityOut(BaseModel):
    id: uuid.UUID
    subject_id: str
    case_id: uuid.UUID | None
    actor_id: str | None
    activity_type: str
    description: str
    metadata: dict[str, Any] = Field(validation_alias="metadata_json")
    created_at: datetime

    class Config:
        from_attributes = True
