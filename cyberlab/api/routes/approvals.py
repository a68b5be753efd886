"""Approvals API — submit and resolve gated case transitions."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cyberlab.api.deps import get_principal
from cyberlab.api.schemas import ApprovalOut, ApprovalResolve, ApprovalSubmit, DocumentPreview
from cyberlab.auth.principal import Principal
from cyberlab.core.config import settings
from cyberlab.core.database import get_db
from cyberlab.core.errors import NotFoundError
from cyberlab.services import approvals, blob_store

router = APIRouter(prefix="/api/v1", tags=["approvals"])


@router.post("/approvals", response_model=ApprovalOut, status_code=201)
def submit_approval(
    body: ApprovalSubmit,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return approvals.submit(
        db,
        principal,
        body.case_id,
        body.approval_type,
        comments=body.comments,
        document_path=body.document_path,
    )


@router.get("/approvals/pending", response_model=list[ApprovalOut])
def list_pending(
    case_id: Optional[uuid.UUID] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return approvals.list_pending(db, principal, case_id=case_id)


@router.get("/approvals/{approval_id}", response_model=ApprovalOut)
def get_approval(
    approval_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return approvals.get_approval(db, principal, approval_id)


@router.post("/approvals/{approval_id}/resolve", response_model=ApprovalOut)
def resolve_approval(
    approval_id: uuid.UUID,
    body: ApprovalResolve,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return approvals.resolve(db, principal, approval_id, body.decision, comments=body.comments)


@router.get("/approvals/{approval_id}/document", response_model=DocumentPreview)
def preview_document(
    approval_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    approval = approvals.get_approval(db, principal, approval_id)
    if not approval.document_path:
        raise NotFoundError("Approval has no attached document", approval_id=str(approval_id))
    return DocumentPreview(
        url=blob_store.presigned_get_url(approval.document_path),
        expires_in=settings.preview_url_ttl_seconds,
    )


@router.get("/cases/{case_id}/approvals", response_model=list[ApprovalOut])
def approval_history(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return approvals.approval_history(db, principal, case_id)
