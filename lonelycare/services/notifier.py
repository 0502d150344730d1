"""Multi-channel notification dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from lonelycare.services.alert_levels import TIER_INFO, Tier, elapsed_minutes, format_elapsed, utcnow
from lonelycare.services.channels import Channel, ChannelOutcome, Notification
from lonelycare.services.friend_status_service import Contact

logger = logging.getLogger(__name__)


@dataclass
class ChannelResult:
    channel: str
    outcome: ChannelOutcome
    error: str | None = None


@dataclass
class DispatchResult:
    contact_id: int
    tier: Tier
    results: list[ChannelResult] = field(default_factory=list)
    last_resort_used: bool = False

    @property
    def delivered(self) -> bool:
        return any(r.outcome is ChannelOutcome.DELIVERED for r in self.results)

    def __bool__(self) -> bool:
        return self.delivered

    def summary(self) -> dict[str, str]:
        return {r.channel: r.outcome.value for r in self.results}


def build_message(contact: Contact, tier: Tier, locale: str = "en", now: datetime | None = None) -> tuple[str, str]:
    """Title and body for a status notification."""
    label = TIER_INFO[tier].label
    title = f"{contact.name} safety check ({label})"
    if contact.last_activity is None:
        body = f"No recent activity recorded for {contact.name}. Please check on them."
    else:
        elapsed = format_elapsed(elapsed_minutes(contact.last_activity, now), locale)
        body = f"{contact.name} was last active {elapsed}. Please check on them."
    return title, body


class MultiChannelNotifier:
    """Tries every channel in order; dispatch succeeds if any one delivered.

    The optional last_resort callable is synchronous and runs only when no
    channel delivered. Its True return counts as delivery.
    """

    def __init__(
        self,
        channels: Sequence[Channel],
        last_resort: Callable[[Notification], bool] | None = None,
        locale: str = "en",
    ) -> None:
        self.channels = list(channels)
        self._last_resort = last_resort
        self.locale = locale

    async def dispatch(
        self,
        owner_id: int,
        contact: Contact,
        tier: Tier,
        *,
        title: str | None = None,
        body: str | None = None,
        urgent: bool = False,
        now: datetime | None = None,
    ) -> DispatchResult:
        now = now or utcnow()
        if title is None or body is None:
            default_title, default_body = build_message(contact, tier, self.locale, now)
            title = title or default_title
            body = body or default_body
        notification = Notification(
            owner_id=owner_id,
            contact=contact,
            tier=tier,
            title=title,
            body=body,
            urgent=urgent,
            created_at=now,
        )

        result = DispatchResult(contact_id=contact.id, tier=tier)
        for channel in self.channels:
            try:
                outcome = await channel.deliver(notification)
                result.results.append(ChannelResult(channel=channel.name, outcome=outcome))
            except Exception as exc:
                logger.warning("Channel %s failed for contact=%s: %s", channel.name, contact.id, exc)
                result.results.append(ChannelResult(channel=channel.name, outcome=ChannelOutcome.FAILED, error=str(exc)))

        if not result.delivered and self._last_resort is not None:
            result.last_resort_used = True
            try:
                delivered = bool(self._last_resort(notification))
            except Exception as exc:
                logger.exception("Last-resort alert failed for contact=%s", contact.id)
                result.results.append(ChannelResult(channel="last_resort", outcome=ChannelOutcome.FAILED, error=str(exc)))
            else:
                outcome = ChannelOutcome.DELIVERED if delivered else ChannelOutcome.FAILED
                result.results.append(ChannelResult(channel="last_resort", outcome=outcome))

        if result.delivered:
            logger.info("Notified owner=%s about contact=%s %s: %s", owner_id, contact.id, tier.value, result.summary())
        else:
            logger.error(
                "All notification channels failed for owner=%s contact=%s %s: %s",
                owner_id,
                contact.id,
                tier.value,
                result.summary(),
            )
        return result
