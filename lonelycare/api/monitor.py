"""Evaluation pass and cooldown API."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from lonelycare.core.config import settings
from lonelycare.core.deps import get_current_user, get_registry
from lonelycare.models.user import User
from lonelycare.schemas.monitor import (
    ContactEvaluationResponse,
    CooldownResetResponse,
    CooldownStatusResponse,
    MonitorRunResponse,
    MonitorStartRequest,
    MonitorStateResponse,
    PassSummaryResponse,
)
from lonelycare.services.alert_levels import Tier
from lonelycare.services.monitor import PassSummary
from lonelycare.services.registry import MonitorRegistry

router = APIRouter(prefix="/monitor", tags=["monitor"])


def _reporter(user: User) -> dict:
    return {"id": user.id, "name": user.name, "phone": user.phone}


def _summary_response(summary: PassSummary) -> PassSummaryResponse:
    return PassSummaryResponse(
        owner_id=summary.owner_id,
        started_at=summary.started_at,
        finished_at=summary.finished_at,
        notifications_sent=summary.notifications_sent,
        evaluations=[
            ContactEvaluationResponse(
                contact_id=e.contact_id,
                contact_name=e.contact_name,
                tier=e.tier.value,
                notified=e.notified,
                cooldown_blocked=e.cooldown_blocked,
                escalation=e.escalation,
                channels=e.channels,
                error=e.error,
            )
            for e in summary.evaluations
        ],
    )


def _state(registry: MonitorRegistry, user_id: int) -> MonitorStateResponse:
    monitor = registry.monitor_for(user_id)
    return MonitorStateResponse(owner_id=user_id, scheduled=monitor.is_scheduled, running=monitor.is_running)


@router.post("/run", response_model=MonitorRunResponse)
async def run_pass(
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """Evaluate the current user's contacts once. Skipped if a pass is already running."""
    summary = await registry.run_once(current_user.id, _reporter(current_user))
    if summary is None:
        return MonitorRunResponse(skipped=True)
    return MonitorRunResponse(skipped=False, summary=_summary_response(summary))


@router.post("/start", response_model=MonitorStateResponse)
async def start_monitor(
    data: MonitorStartRequest | None = Body(default=None),
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """Start periodic evaluation for the current user."""
    minutes = (data.interval_minutes if data else None) or settings.check_interval_minutes
    registry.start(current_user.id, minutes * 60, _reporter(current_user))
    return _state(registry, current_user.id)


@router.post("/stop", response_model=MonitorStateResponse)
async def stop_monitor(
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """Stop periodic evaluation; an in-flight pass finishes first."""
    await registry.stop(current_user.id)
    return _state(registry, current_user.id)


@router.get("/last", response_model=PassSummaryResponse)
def last_pass(
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """Summary of the most recent pass for the current user."""
    summary = registry.monitor_for(current_user.id).last_summary
    if summary is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No evaluation pass has run yet")
    return _summary_response(summary)


@router.get("/cooldowns", response_model=CooldownStatusResponse)
def cooldown_status(
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    cooldown = registry.monitor_for(current_user.id).cooldown
    return CooldownStatusResponse(
        cooldown_minutes=int(cooldown.cooldown.total_seconds() // 60),
        contacts=cooldown.status(),
    )


@router.delete("/cooldowns", response_model=CooldownResetResponse)
def reset_cooldowns(
    contact_id: int | None = Query(default=None),
    tier: Tier | None = Query(default=None),
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """Clear cooldowns for one contact+tier, one contact, or all contacts."""
    if tier is not None and contact_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="tier requires contact_id")
    cleared = registry.monitor_for(current_user.id).cooldown.reset(contact_id, tier)
    return CooldownResetResponse(cleared=cleared)
