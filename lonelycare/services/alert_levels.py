"""Alert tier classification from inactivity time.

Everything here is pure: the caller supplies ``now`` (or accepts the current
UTC time) and gets the same answer for the same inputs.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

from lonelycare.core.alert_policies import BANNER_DISMISS_SECONDS, EMERGENCY_BANNER_DISMISS_SECONDS
from lonelycare.schemas.thresholds import Thresholds


class Tier(str, enum.Enum):
    NORMAL = "normal"
    WARNING = "warning"
    DANGER = "danger"
    EMERGENCY = "emergency"

    @property
    def priority(self) -> int:
        return TIER_INFO[self].priority

    @property
    def is_alerting(self) -> bool:
        return self is not Tier.NORMAL


@dataclass(frozen=True)
class TierInfo:
    """Presentation and channel parameters for a tier."""

    priority: int
    label: str
    color: str
    # (first tone Hz, second tone Hz, seconds per tone); None = silent
    sound: tuple[int, int, float] | None
    vibration: list[int] = field(default_factory=list)
    banner_seconds: int = BANNER_DISMISS_SECONDS
    requires_interaction: bool = False


TIER_INFO: dict[Tier, TierInfo] = {
    Tier.NORMAL: TierInfo(priority=0, label="Normal", color="#28a745", sound=None, vibration=[200]),
    Tier.WARNING: TierInfo(
        priority=1,
        label="Warning",
        color="#ffc107",
        sound=(700, 600, 0.8),
        vibration=[200, 100, 200],
    ),
    Tier.DANGER: TierInfo(
        priority=2,
        label="Danger",
        color="#fd7e14",
        sound=(850, 700, 0.9),
        vibration=[300, 100, 300, 100, 300],
    ),
    Tier.EMERGENCY: TierInfo(
        priority=3,
        label="Emergency",
        color="#dc3545",
        sound=(1000, 850, 1.0),
        vibration=[500, 100, 500, 100, 500, 100, 500],
        banner_seconds=EMERGENCY_BANNER_DISMISS_SECONDS,
        requires_interaction=True,
    ),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_minutes(last_activity: datetime, now: datetime | None = None) -> float:
    """Minutes since last_activity, clamped at 0 for clock skew."""
    now = as_utc(now) if now is not None else utcnow()
    delta = (now - as_utc(last_activity)).total_seconds() / 60
    return max(0.0, delta)


def classify(last_activity: datetime | None, thresholds: Thresholds, now: datetime | None = None) -> Tier:
    """Map the last heartbeat time onto a tier, most severe match first.

    No heartbeat at all is NORMAL: missing history is not evidence of inactivity.
    """
    if last_activity is None:
        return Tier.NORMAL
    return classify_elapsed(elapsed_minutes(last_activity, now), thresholds)


def classify_elapsed(minutes: float, thresholds: Thresholds) -> Tier:
    minutes = max(0.0, minutes)
    if minutes >= thresholds.emergency:
        return Tier.EMERGENCY
    if minutes >= thresholds.danger:
        return Tier.DANGER
    if minutes >= thresholds.warning:
        return Tier.WARNING
    return Tier.NORMAL


def compare_tiers(a: Tier, b: Tier) -> int:
    """Sort key helper: negative when a is more severe than b."""
    return b.priority - a.priority


ELAPSED_TEMPLATES: dict[str, dict[str, str]] = {
    "en": {
        "just_now": "just now",
        "minutes": "{n} minutes ago",
        "minute": "1 minute ago",
        "hours": "{n} hours ago",
        "hour": "1 hour ago",
        "days": "{n} days ago",
        "day": "1 day ago",
    },
}


def format_elapsed(minutes: float, locale: str = "en") -> str:
    """Human-readable relative time. Unknown locales fall back to English."""
    templates = ELAPSED_TEMPLATES.get(locale, ELAPSED_TEMPLATES["en"])
    whole = int(max(0.0, minutes))
    if whole < 1:
        return templates["just_now"]
    if whole < 60:
        return templates["minute"] if whole == 1 else templates["minutes"].format(n=whole)
    hours = whole // 60
    if hours < 24:
        return templates["hour"] if hours == 1 else templates["hours"].format(n=hours)
    days = hours // 24
    return templates["day"] if days == 1 else templates["days"].format(n=days)
