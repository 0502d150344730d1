"""Notification threshold schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from lonelycare.core.alert_policies import (
    DEFAULT_DANGER_MINUTES,
    DEFAULT_EMERGENCY_MINUTES,
    DEFAULT_WARNING_MINUTES,
    MAX_THRESHOLD_MINUTES,
)


class Thresholds(BaseModel):
    """Tier boundaries in minutes. Must be positive and strictly increasing."""

    warning: int = Field(gt=0)
    danger: int = Field(gt=0)
    emergency: int = Field(gt=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_increasing(self) -> "Thresholds":
        if not (self.warning < self.danger < self.emergency):
            raise ValueError("Thresholds must satisfy warning < danger < emergency")
        return self

    @classmethod
    def defaults(cls) -> "Thresholds":
        return cls(
            warning=DEFAULT_WARNING_MINUTES,
            danger=DEFAULT_DANGER_MINUTES,
            emergency=DEFAULT_EMERGENCY_MINUTES,
        )


class ThresholdsUpdate(BaseModel):
    warning: int = Field(gt=0, le=MAX_THRESHOLD_MINUTES, description="Minutes of inactivity before WARNING")
    danger: int = Field(gt=0, le=MAX_THRESHOLD_MINUTES, description="Minutes of inactivity before DANGER")
    emergency: int = Field(gt=0, le=MAX_THRESHOLD_MINUTES, description="Minutes of inactivity before EMERGENCY")


class ThresholdsResponse(BaseModel):
    warning: int
    danger: int
    emergency: int
    source: str  # remote | cache | default
