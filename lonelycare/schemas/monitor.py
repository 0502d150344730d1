"""Monitoring API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class HeartbeatCreate(BaseModel):
    timestamp: datetime | None = Field(default=None, description="Defaults to server time")
    source: str = Field(default="app", pattern="^(app|motion|service)$")


class HeartbeatResponse(BaseModel):
    user_id: int
    timestamp: datetime
    source: str

    model_config = {"from_attributes": True}


class ContactEvaluationResponse(BaseModel):
    contact_id: int
    contact_name: str
    tier: str
    notified: bool
    cooldown_blocked: bool
    escalation: str | None = None
    channels: dict[str, str] = Field(default_factory=dict)
    error: str | None = None


class PassSummaryResponse(BaseModel):
    owner_id: int
    started_at: datetime
    finished_at: datetime | None
    notifications_sent: int
    evaluations: list[ContactEvaluationResponse]


class MonitorRunResponse(BaseModel):
    skipped: bool
    summary: PassSummaryResponse | None = None


class MonitorStartRequest(BaseModel):
    interval_minutes: float | None = Field(default=None, gt=0, le=24 * 60)


class MonitorStateResponse(BaseModel):
    owner_id: int
    scheduled: bool
    running: bool


class CooldownEntry(BaseModel):
    can_send: bool
    minutes_remaining: int
    last_sent_at: datetime
    next_allowed_at: datetime


class CooldownStatusResponse(BaseModel):
    cooldown_minutes: int
    contacts: dict[int, dict[str, CooldownEntry]]


class CooldownResetResponse(BaseModel):
    cleared: int


class AlertEntry(BaseModel):
    id: int
    contact_id: int
    contact_name: str
    tier: str
    title: str
    body: str
    urgent: bool
    created_at: datetime


class HistoryResponse(BaseModel):
    entries: list[dict[str, Any]]
