"""Activity API — recent audit trail, visible to command and administrators."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cyberlab.api.deps import get_principal
from cyberlab.api.schemas import ActivityOut
from cyberlab.auth.principal import Principal
from cyberlab.core.database import get_db
from cyberlab.services.activity import list_activity

router = APIRouter(prefix="/api/v1/activity", tags=["activity"])


@router.get("", response_model=list[ActivityOut])
def recent_activity(
    case_id: Optional[uuid.UUID] = Query(None),
    subject_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return list_activity(db, principal, case_id=case_id, subject_id=subject_id, limit=limit)
