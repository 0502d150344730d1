"""In-app alert API: interaction permission, pending confirmations, local histories."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from lonelycare.core.deps import get_current_user, get_registry
from lonelycare.models.user import User
from lonelycare.schemas.monitor import AlertEntry, HistoryResponse
from lonelycare.services.registry import MonitorRegistry

router = APIRouter(tags=["alerts"])


@router.post("/interaction")
def record_interaction(
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """Client reports a user gesture, which unlocks sound and vibration alerts."""
    registry.permissions.record_interaction(current_user.id)
    return {"status": "ok", "sound_enabled": True}


@router.get("/alerts/pending", response_model=list[AlertEntry])
def pending_alerts(
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """Alerts that could not be delivered by any channel and still need confirmation."""
    return registry.pending.pending(current_user.id)


@router.post("/alerts/{alert_id}/ack")
def acknowledge_alert(
    alert_id: int,
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    if not registry.pending.acknowledge(current_user.id, alert_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")
    return {"status": "acknowledged", "id": alert_id}


@router.get("/notifications/history", response_model=HistoryResponse)
def notification_history(
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    return HistoryResponse(entries=registry.notification_history.entries(current_user.id))


@router.get("/emergencies/history", response_model=HistoryResponse)
def emergency_history(
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    return HistoryResponse(entries=registry.emergency_history.entries())
