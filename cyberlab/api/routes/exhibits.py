"""Exhibits API — registration and lifecycle of evidence items."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cyberlab.api.deps import get_principal
from cyberlab.api.schemas import (
    ExhibitAssign,
    ExhibitCreate,
    ExhibitOut,
    ExhibitReturn,
    ExhibitStatusChange,
    ExhibitTransfer,
)
from cyberlab.auth.principal import Principal
from cyberlab.core.database import get_db
from cyberlab.services import exhibits

router = APIRouter(prefix="/api/v1", tags=["exhibits"])


@router.post("/cases/{case_id}/exhibits", response_model=ExhibitOut, status_code=201)
def register_exhibit(
    case_id: uuid.UUID,
    body: ExhibitCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return exhibits.register_exhibit(db, principal, case_id, **body.model_dump())


@router.get("/cases/{case_id}/exhibits", response_model=list[ExhibitOut])
def list_exhibits(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return exhibits.list_exhibits(db, principal, case_id)


@router.get("/exhibits/{exhibit_id}", response_model=ExhibitOut)
def get_exhibit(
    exhibit_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return exhibits.get_exhibit(db, principal, exhibit_id)


@router.post("/exhibits/{exhibit_id}/assign", response_model=ExhibitOut)
def assign_exhibit(
    exhibit_id: uuid.UUID,
    body: ExhibitAssign,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return exhibits.assign_exhibit(db, principal, exhibit_id, body.analyst_id, notes=body.notes)


@router.post("/exhibits/{exhibit_id}/status", response_model=ExhibitOut)
def change_status(
    exhibit_id: uuid.UUID,
    body: ExhibitStatusChange,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return exhibits.change_exhibit_status(
        db, principal, exhibit_id, body.status, notes=body.notes, location=body.location
    )


@router.post("/exhibits/{exhibit_id}/transfer", response_model=ExhibitOut)
def transfer(
    exhibit_id: uuid.UUID,
    body: ExhibitTransfer,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return exhibits.transfer_custody(
        db, principal, exhibit_id, to_location=body.to_location, notes=body.notes
    )


@router.post("/exhibits/{exhibit_id}/return", response_model=ExhibitOut)
def return_exhibit(
    exhibit_id: uuid.UUID,
    body: ExhibitReturn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return exhibits.return_exhibit(
        db, principal, exhibit_id, returned_to=body.returned_to, notes=body.notes
    )
