"""Periodic evaluation of an owner's contacts.

One pass: thresholds -> resolve contacts -> classify -> cooldown gate ->
dispatch -> escalate (emergency tier) -> arm cooldown on delivery. Passes
never overlap and contacts are handled one at a time.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from lonelycare.services.alert_levels import Tier, classify, elapsed_minutes, format_elapsed, utcnow
from lonelycare.services.cooldown import NotificationCooldown
from lonelycare.services.escalation_service import EmergencyEscalator
from lonelycare.services.friend_status_service import FriendStatusResolver
from lonelycare.services.notifier import MultiChannelNotifier
from lonelycare.services.threshold_service import ThresholdManager

logger = logging.getLogger(__name__)


@dataclass
class ContactEvaluation:
    contact_id: int
    contact_name: str
    tier: Tier
    notified: bool = False
    cooldown_blocked: bool = False
    escalation: str | None = None
    channels: dict[str, str] = field(default_factory=dict)
    error: str | None = None


@dataclass
class PassSummary:
    owner_id: int
    started_at: datetime
    finished_at: datetime | None = None
    evaluations: list[ContactEvaluation] = field(default_factory=list)

    @property
    def notifications_sent(self) -> int:
        return sum(1 for e in self.evaluations if e.notified)


class StatusMonitor:
    def __init__(
        self,
        thresholds: ThresholdManager,
        resolver: FriendStatusResolver,
        cooldown: NotificationCooldown,
        notifier: MultiChannelNotifier,
        escalator: EmergencyEscalator | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.thresholds = thresholds
        self.resolver = resolver
        self.cooldown = cooldown
        self.notifier = notifier
        self.escalator = escalator
        self._clock = clock
        self._running = False
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self.last_summary: PassSummary | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_scheduled(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_pass(self, owner_id: int | None, reporter: dict[str, Any] | None = None) -> PassSummary | None:
        """Evaluate every contact once. Returns None when skipped (no owner, or a pass is in progress)."""
        if owner_id is None:
            logger.info("No signed-in owner, skipping evaluation pass")
            return None
        if self._running:
            logger.info("Evaluation pass already running for owner=%s, skipping", owner_id)
            return None

        self._running = True
        summary = PassSummary(owner_id=owner_id, started_at=self._clock())
        try:
            thresholds = await self.thresholds.get_thresholds()
            contacts = await self.resolver.resolve(owner_id)
            logger.info("Checking %s contacts for owner=%s", len(contacts), owner_id)

            for contact in contacts:
                now = self._clock()
                tier = classify(contact.last_activity, thresholds, now)
                evaluation = ContactEvaluation(contact_id=contact.id, contact_name=contact.name, tier=tier)
                summary.evaluations.append(evaluation)
                if contact.last_activity is not None:
                    logger.debug(
                        "contact=%s %s (last active %s)",
                        contact.id,
                        tier.value,
                        format_elapsed(elapsed_minutes(contact.last_activity, now)),
                    )
                if not tier.is_alerting:
                    continue
                if not self.cooldown.should_send(contact.id, tier, now):
                    evaluation.cooldown_blocked = True
                    continue

                try:
                    result = await self.notifier.dispatch(owner_id, contact, tier, now=now)
                    evaluation.channels = result.summary()
                    if result.delivered:
                        self.cooldown.mark_sent(contact.id, tier, self._clock())
                        evaluation.notified = True
                    else:
                        logger.error("contact=%s %s not delivered, cooldown left unarmed", contact.id, tier.value)
                except Exception as exc:
                    logger.exception("Dispatch failed for contact=%s", contact.id)
                    evaluation.error = str(exc)

                # escalation runs whatever dispatch did and never touches the cooldown
                if tier is Tier.EMERGENCY and self.escalator is not None:
                    try:
                        evaluation.escalation = await self.escalator.escalate(owner_id, contact, reporter)
                    except Exception as exc:
                        logger.exception("Escalation failed for contact=%s", contact.id)
                        evaluation.error = evaluation.error or str(exc)
        except Exception:
            logger.exception("Evaluation pass failed for owner=%s", owner_id)
        finally:
            self._running = False
            summary.finished_at = self._clock()
            self.last_summary = summary

        logger.info("Evaluation pass done for owner=%s: %s notifications sent", owner_id, summary.notifications_sent)
        return summary

    def start(self, owner_id: int, interval_seconds: float, reporter: dict[str, Any] | None = None) -> asyncio.Task:
        """Run a pass now and then every interval until stop(). Must be called inside a running loop."""
        if self.is_scheduled:
            return self._task  # type: ignore[return-value]
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._loop(owner_id, interval_seconds, reporter, self._stop_event))
        logger.info("Periodic status check started for owner=%s every %ss", owner_id, interval_seconds)
        return self._task

    async def _loop(self, owner_id: int, interval: float, reporter: dict[str, Any] | None, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            await self.run_pass(owner_id, reporter)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def stop(self) -> None:
        """Stop scheduling new passes; an in-flight pass is allowed to finish."""
        if self._task is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        await self._task
        self._task = None
        self._stop_event = None
        logger.info("Periodic status check stopped")
