"""Notification delivery channels.

Each channel takes a Notification and either returns an outcome or raises.
The notifier treats any exception as a FAILED outcome for that channel only.
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol

from lonelycare.core.alert_policies import (
    NOTIFICATION_HISTORY_CACHE_KEY,
    NOTIFICATION_HISTORY_LIMIT,
    TAKEOVER_EXPIRE_SECONDS,
)
from lonelycare.core.cache import LocalCache
from lonelycare.core.errors import ChannelUnavailable
from lonelycare.services.alert_levels import TIER_INFO, Tier, utcnow
from lonelycare.services.friend_status_service import Contact
from lonelycare.services.push_client import PushClient, PushRequest

logger = logging.getLogger(__name__)


class ChannelOutcome(str, enum.Enum):
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class Notification:
    owner_id: int
    contact: Contact
    tier: Tier
    title: str
    body: str
    urgent: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def as_event(self) -> dict[str, Any]:
        info = TIER_INFO[self.tier]
        return {
            "contact_id": self.contact.id,
            "contact_name": self.contact.name,
            "tier": self.tier.value,
            "title": self.title,
            "body": self.body,
            "color": info.color,
            "urgent": self.urgent,
            "last_activity": self.contact.last_activity.isoformat() if self.contact.last_activity else None,
            "created_at": self.created_at.isoformat(),
        }


class Channel(Protocol):
    name: str

    async def deliver(self, notification: Notification) -> ChannelOutcome: ...


class EventSender(Protocol):
    async def send_to_user(self, user_id: int, event: str, data: Any) -> int: ...


class PushChannel:
    """Remote push through the dispatch endpoint. Skipped when no client is configured."""

    name = "push"

    def __init__(self, client: PushClient | None) -> None:
        self._client = client

    async def deliver(self, notification: Notification) -> ChannelOutcome:
        if self._client is None:
            return ChannelOutcome.SKIPPED
        contact = notification.contact
        request = PushRequest(
            user_id=str(notification.owner_id),
            title=notification.title,
            body=notification.body,
            tier=notification.tier.value,
            metadata={
                "friend_id": str(contact.id),
                "friend_name": contact.name,
                "last_activity": contact.last_activity.isoformat() if contact.last_activity else "",
                "timestamp": notification.created_at.isoformat(),
                "source": "friend_status_monitor",
            },
        )
        await self._client.send(request)
        return ChannelOutcome.DELIVERED


class BannerChannel:
    """Transient in-app banner, auto-dismissed after a tier-dependent time."""

    name = "banner"

    def __init__(self, sender: EventSender) -> None:
        self._sender = sender

    async def deliver(self, notification: Notification) -> ChannelOutcome:
        data = notification.as_event()
        data["dismiss_after_seconds"] = TIER_INFO[notification.tier].banner_seconds
        data["dismissible"] = True
        if not await self._sender.send_to_user(notification.owner_id, "alert.banner", data):
            raise ChannelUnavailable(f"No open connection for user {notification.owner_id}")
        return ChannelOutcome.DELIVERED


class NotificationHistory:
    """Bounded local record of notification attempts."""

    def __init__(self, cache: LocalCache, limit: int = NOTIFICATION_HISTORY_LIMIT) -> None:
        self._cache = cache
        self.limit = limit

    def append(self, notification: Notification) -> None:
        entries = list(self._cache.get(NOTIFICATION_HISTORY_CACHE_KEY) or [])
        entries.append(
            {
                "owner_id": notification.owner_id,
                "contact_id": notification.contact.id,
                "contact_name": notification.contact.name,
                "tier": notification.tier.value,
                "title": notification.title,
                "body": notification.body,
                "timestamp": notification.created_at.isoformat(),
            }
        )
        self._cache.set(NOTIFICATION_HISTORY_CACHE_KEY, entries[-self.limit:])

    def entries(self, owner_id: int | None = None) -> list[dict[str, Any]]:
        entries = list(self._cache.get(NOTIFICATION_HISTORY_CACHE_KEY) or [])
        if owner_id is not None:
            entries = [e for e in entries if e.get("owner_id") == owner_id]
        return entries


class AuditLogChannel:
    """Local notification history. A successful append counts as delivery."""

    name = "audit_log"

    def __init__(self, history: NotificationHistory) -> None:
        self._history = history

    async def deliver(self, notification: Notification) -> ChannelOutcome:
        self._history.append(notification)
        return ChannelOutcome.DELIVERED


class InteractionPermissions:
    """Owners whose client has reported a user gesture, which unlocks audio and vibration."""

    def __init__(self) -> None:
        self._granted: set[int] = set()

    def record_interaction(self, owner_id: int) -> None:
        self._granted.add(owner_id)

    def allowed(self, owner_id: int) -> bool:
        return owner_id in self._granted


class SoundVibrationChannel:
    name = "sound_vibration"

    def __init__(self, sender: EventSender, permissions: InteractionPermissions) -> None:
        self._sender = sender
        self._permissions = permissions

    async def deliver(self, notification: Notification) -> ChannelOutcome:
        info = TIER_INFO[notification.tier]
        if not notification.tier.is_alerting or info.sound is None:
            return ChannelOutcome.SKIPPED
        if not self._permissions.allowed(notification.owner_id):
            logger.debug("Sound/vibration skipped for owner=%s: no user interaction yet", notification.owner_id)
            return ChannelOutcome.SKIPPED
        first_hz, second_hz, seconds = info.sound
        data = {
            "contact_id": notification.contact.id,
            "tier": notification.tier.value,
            "tones": [
                {"frequency_hz": first_hz, "duration_seconds": seconds},
                {"frequency_hz": second_hz, "duration_seconds": seconds},
            ],
            "vibration_pattern_ms": list(info.vibration),
        }
        if not await self._sender.send_to_user(notification.owner_id, "alert.sound", data):
            raise ChannelUnavailable(f"No open connection for user {notification.owner_id}")
        return ChannelOutcome.DELIVERED


class TakeoverChannel:
    """Blocking full-screen alert for the emergency tier; needs acknowledgement, expires if ignored."""

    name = "takeover"

    def __init__(self, sender: EventSender, expire_seconds: int = TAKEOVER_EXPIRE_SECONDS) -> None:
        self._sender = sender
        self.expire_seconds = expire_seconds

    async def deliver(self, notification: Notification) -> ChannelOutcome:
        if notification.tier is not Tier.EMERGENCY:
            return ChannelOutcome.SKIPPED
        data = notification.as_event()
        data["requires_acknowledgement"] = True
        data["expires_at"] = (notification.created_at + timedelta(seconds=self.expire_seconds)).isoformat()
        if not await self._sender.send_to_user(notification.owner_id, "alert.takeover", data):
            raise ChannelUnavailable(f"No open connection for user {notification.owner_id}")
        return ChannelOutcome.DELIVERED


class PendingAlertQueue:
    """Alerts the host UI must confirm. Used as the last resort when every channel failed."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._pending: dict[int, dict[int, dict[str, Any]]] = {}

    def enqueue(self, notification: Notification) -> bool:
        alert_id = next(self._ids)
        entry = notification.as_event()
        entry["id"] = alert_id
        self._pending.setdefault(notification.owner_id, {})[alert_id] = entry
        logger.warning(
            "Queued alert %s for owner=%s confirmation (contact=%s %s)",
            alert_id,
            notification.owner_id,
            notification.contact.id,
            notification.tier.value,
        )
        return True

    def pending(self, owner_id: int) -> list[dict[str, Any]]:
        return list(self._pending.get(owner_id, {}).values())

    def acknowledge(self, owner_id: int, alert_id: int) -> bool:
        return self._pending.get(owner_id, {}).pop(alert_id, None) is not None
