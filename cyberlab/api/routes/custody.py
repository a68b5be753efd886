"""Custody API — read-only views of an exhibit's chain of custody."""

from __future__ import annotations

import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from cyberlab.api.deps import get_principal
from cyberlab.api.schemas import ChainVerificationOut, CustodyReportOut
from cyberlab.auth.principal import Principal
from cyberlab.auth.role_policy import require
from cyberlab.core.database import get_db
from cyberlab.services import blob_store, custody_ledger
from cyberlab.services.custody_ledger import CustodyEvent

router = APIRouter(prefix="/api/v1/exhibits", tags=["custody"])


@router.get("/{exhibit_id}/custody", response_model=list[CustodyEvent])
def custody_history(
    exhibit_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    require(principal, "exhibit.view")
    return custody_ledger.history(db, exhibit_id)


@router.get("/{exhibit_id}/custody/verify", response_model=ChainVerificationOut)
def verify_custody(
    exhibit_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    require(principal, "exhibit.view")
    result = custody_ledger.verify_chain(db, exhibit_id)
    return ChainVerificationOut(**asdict(result))


@router.get("/{exhibit_id}/custody/report", response_model=CustodyReportOut)
def custody_report(
    exhibit_id: uuid.UUID,
    archive: bool = Query(False, description="Also store the report in the blob store."),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    require(principal, "custody.export")
    report = custody_ledger.export_report(db, exhibit_id)
    archived_key = None
    if archive:
        archived_key = blob_store.upload_bytes(
            blob_store.custody_report_key(report.exhibit_number, report.sha256),
            report.text.encode("utf-8"),
            content_type="text/plain; charset=utf-8",
        )
    return CustodyReportOut(
        exhibit_number=report.exhibit_number,
        sha256=report.sha256,
        event_count=report.event_count,
        head_hash=report.head_hash,
        chain_valid=report.chain_valid,
        text=report.text,
        archived_key=archived_key,
    )


@router.get("/{exhibit_id}/custody/report.txt", response_class=PlainTextResponse)
def custody_report_text(
    exhibit_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    require(principal, "custody.export")
    report = custody_ledger.export_report(db, exhibit_id)
    return PlainTextResponse(
        report.text,
        headers={
            "Content-Disposition": f'attachment; filename="{report.filename}"',
            "X-Content-SHA256": report.sha256,
        },
    )
