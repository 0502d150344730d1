"""Per-contact, per-tier notification cooldown."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from lonelycare.core.alert_policies import COOLDOWN_CACHE_KEY, COOLDOWN_SECONDS, DIAGNOSTIC_COOLDOWN_SECONDS
from lonelycare.core.cache import LocalCache
from lonelycare.services.alert_levels import Tier, as_utc, utcnow

logger = logging.getLogger(__name__)


def cooldown_seconds(diagnostic_mode: bool) -> int:
    return DIAGNOSTIC_COOLDOWN_SECONDS if diagnostic_mode else COOLDOWN_SECONDS


@dataclass
class NotificationRecord:
    contact_id: int
    tier: Tier
    sent_at: datetime


class NotificationCooldown:
    """Tracks the last successful send per (contact, tier).

    Records are only written through mark_sent, which callers invoke after a
    dispatch reported success; a failed dispatch leaves nothing behind and the
    next pass retries immediately.
    """

    def __init__(
        self,
        cooldown: timedelta | None = None,
        *,
        diagnostic_mode: bool = False,
        cache: LocalCache | None = None,
        suppress_tier_flapping: bool = False,
        cache_key: str = COOLDOWN_CACHE_KEY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.cooldown = cooldown if cooldown is not None else timedelta(seconds=cooldown_seconds(diagnostic_mode))
        self.suppress_tier_flapping = suppress_tier_flapping
        self._cache = cache
        self._cache_key = cache_key
        self._clock = clock
        self._records: dict[tuple[int, Tier], NotificationRecord] = {}
        logger.info(
            "Notification cooldown %ss (%s mode)",
            int(self.cooldown.total_seconds()),
            "diagnostic" if diagnostic_mode else "production",
        )
        self.load()

    def _now(self, now: datetime | None) -> datetime:
        return as_utc(now) if now is not None else self._clock()

    def get(self, contact_id: int, tier: Tier) -> NotificationRecord | None:
        return self._records.get((contact_id, tier))

    def _within_window(self, record: NotificationRecord, now: datetime) -> bool:
        return (now - record.sent_at) < self.cooldown

    def should_send(self, contact_id: int, tier: Tier, now: datetime | None = None) -> bool:
        now = self._now(now)
        record = self._records.get((contact_id, tier))
        if record is not None and self._within_window(record, now):
            return False
        if self.suppress_tier_flapping:
            for other in self._records.values():
                if (
                    other.contact_id == contact_id
                    and other.tier.priority > tier.priority
                    and self._within_window(other, now)
                ):
                    logger.debug("contact=%s %s suppressed by recent %s", contact_id, tier.value, other.tier.value)
                    return False
        return True

    def mark_sent(self, contact_id: int, tier: Tier, now: datetime | None = None) -> NotificationRecord:
        record = NotificationRecord(contact_id=contact_id, tier=tier, sent_at=self._now(now))
        self._records[(contact_id, tier)] = record
        logger.info(
            "contact=%s %s cooldown armed until %s",
            contact_id,
            tier.value,
            (record.sent_at + self.cooldown).isoformat(),
        )
        self._persist()
        return record

    def reset(self, contact_id: int | None = None, tier: Tier | None = None) -> int:
        """Clear records for one pair, one contact, or everything. Returns how many were removed."""
        if contact_id is not None and tier is not None:
            keys = [(contact_id, tier)] if (contact_id, tier) in self._records else []
        elif contact_id is not None:
            keys = [k for k in self._records if k[0] == contact_id]
        else:
            keys = list(self._records)
        for key in keys:
            del self._records[key]
        logger.info("Cooldown reset contact=%s tier=%s (%s cleared)", contact_id, tier.value if tier else None, len(keys))
        self._persist()
        return len(keys)

    def status(self, now: datetime | None = None) -> dict[int, dict[str, dict]]:
        now = self._now(now)
        result: dict[int, dict[str, dict]] = {}
        for record in self._records.values():
            next_allowed = record.sent_at + self.cooldown
            remaining = max(timedelta(0), next_allowed - now)
            result.setdefault(record.contact_id, {})[record.tier.value] = {
                "can_send": remaining == timedelta(0),
                "minutes_remaining": round(remaining.total_seconds() / 60),
                "last_sent_at": record.sent_at,
                "next_allowed_at": next_allowed,
            }
        return result

    def load(self) -> None:
        if self._cache is None:
            return
        try:
            raw = self._cache.get(self._cache_key) or {}
            for key, sent_at in raw.items():
                contact_id, tier = key.split(":", 1)
                record = NotificationRecord(
                    contact_id=int(contact_id),
                    tier=Tier(tier),
                    sent_at=as_utc(datetime.fromisoformat(sent_at)),
                )
                self._records[(record.contact_id, record.tier)] = record
        except (ValueError, AttributeError, TypeError) as exc:
            logger.warning("Ignoring unreadable cooldown cache: %s", exc)
            self._records.clear()

    def _persist(self) -> None:
        if self._cache is None:
            return
        data = {f"{r.contact_id}:{r.tier.value}": r.sent_at.isoformat() for r in self._records.values()}
        try:
            self._cache.set(self._cache_key, data)
        except Exception as exc:
            logger.warning("Could not persist cooldowns: %s", exc)
