"""Cases API — intake, assignment and ungated case updates."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cyberlab.api.deps import get_principal
from cyberlab.api.schemas import (
    AnalystStatusUpdate,
    CaseAssign,
    CaseCreate,
    CaseOut,
    ExhibitLabel,
    NotesUpdate,
    PriorityUpdate,
    StatusOverride,
)
from cyberlab.auth.principal import Principal
from cyberlab.core.database import get_db
from cyberlab.models.enums import CaseStatus
from cyberlab.services import cases

router = APIRouter(prefix="/api/v1/cases", tags=["cases"])


@router.post("", response_model=CaseOut, status_code=201)
def create_case(
    body: CaseCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return cases.create_case(db, principal, **body.model_dump())


@router.get("", response_model=list[CaseOut])
def list_cases(
    status: Optional[CaseStatus] = Query(None),
    analyst_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return cases.list_cases(
        db, principal, status=status, analyst_id=analyst_id, limit=limit, offset=offset
    )


@router.get("/{case_id}", response_model=CaseOut)
def get_case(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return cases.get_case(db, principal, case_id)


@router.post("/{case_id}/assign", response_model=CaseOut)
def assign_case(
    case_id: uuid.UUID,
    body: CaseAssign,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return cases.assign_case(db, principal, case_id, **body.model_dump())


@router.put("/{case_id}/priority", response_model=CaseOut)
def update_priority(
    case_id: uuid.UUID,
    body: PriorityUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return cases.update_priority(db, principal, case_id, body.priority)


@router.put("/{case_id}/analyst-status", response_model=CaseOut)
def update_analyst_status(
    case_id: uuid.UUID,
    body: AnalystStatusUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return cases.update_analyst_status(db, principal, case_id, body.analyst_status)


@router.put("/{case_id}/notes", response_model=CaseOut)
def update_notes(
    case_id: uuid.UUID,
    body: NotesUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return cases.update_case_notes(db, principal, case_id, body.case_notes)


@router.post("/{case_id}/override-status", response_model=CaseOut)
def override_status(
    case_id: uuid.UUID,
    body: StatusOverride,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return cases.override_status(db, principal, case_id, body.status, body.reason)


@router.get("/{case_id}/exhibit-labels", response_model=list[ExhibitLabel])
def exhibit_labels(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    labels = cases.exhibit_labels(db, principal, case_id)
    return [ExhibitLabel(exhibit_number=k, label=v) for k, v in labels.items()]
