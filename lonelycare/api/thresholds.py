"""Notification threshold API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from lonelycare.core.deps import get_current_user, get_registry
from lonelycare.models.user import User
from lonelycare.schemas.thresholds import ThresholdsResponse, ThresholdsUpdate
from lonelycare.services.registry import MonitorRegistry

router = APIRouter(prefix="/thresholds", tags=["thresholds"])


@router.get("", response_model=ThresholdsResponse)
async def get_thresholds(
    refresh: bool = False,
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """Effective thresholds and where they came from (remote, cache, or default)."""
    if refresh:
        registry.thresholds.invalidate()
    thresholds = await registry.thresholds.get_thresholds()
    return ThresholdsResponse(**thresholds.model_dump(), source=registry.thresholds.last_source or "default")


@router.put("", response_model=ThresholdsResponse)
async def update_thresholds(
    data: ThresholdsUpdate,
    registry: MonitorRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """Store new thresholds as the remote configuration."""
    try:
        thresholds = await registry.thresholds.update_thresholds(
            data.warning, data.danger, data.emergency, updated_by=str(current_user.id)
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ThresholdsResponse(**thresholds.model_dump(), source="remote")
