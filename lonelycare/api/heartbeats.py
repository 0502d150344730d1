"""Heartbeat reporting API."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lonelycare.core.deps import get_current_user
from lonelycare.db.session import get_db
from lonelycare.models.heartbeat import Heartbeat
from lonelycare.models.user import User
from lonelycare.schemas.monitor import HeartbeatCreate, HeartbeatResponse

router = APIRouter(prefix="/heartbeats", tags=["heartbeats"])


@router.post("", response_model=HeartbeatResponse)
def record_heartbeat(
    data: HeartbeatCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Device reports that the current user is alive."""
    heartbeat = Heartbeat(
        user_id=current_user.id,
        timestamp=data.timestamp or datetime.now(timezone.utc),
        source=data.source,
    )
    db.add(heartbeat)
    db.commit()
    db.refresh(heartbeat)
    return heartbeat
