"""Wires the monitoring core together and keeps one monitor per owner."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from lonelycare.core.alert_policies import COOLDOWN_CACHE_KEY, ESCALATION_REPORTS_CACHE_KEY
from lonelycare.core.cache import LocalCache
from lonelycare.core.config import Settings
from lonelycare.services.channels import (
    AuditLogChannel,
    BannerChannel,
    EventSender,
    InteractionPermissions,
    NotificationHistory,
    PendingAlertQueue,
    PushChannel,
    SoundVibrationChannel,
    TakeoverChannel,
)
from lonelycare.services.cooldown import NotificationCooldown
from lonelycare.services.emergency_client import EmergencyServicesClient
from lonelycare.services.escalation_service import EmergencyEscalator, EmergencyHistory, EmergencyReporter
from lonelycare.services.friend_status_service import FriendStatusResolver
from lonelycare.services.monitor import StatusMonitor
from lonelycare.services.notifier import MultiChannelNotifier
from lonelycare.services.push_client import PushClient
from lonelycare.services.store import DocumentStore, SqlDocumentStore
from lonelycare.services.threshold_service import ThresholdManager

logger = logging.getLogger(__name__)


class MonitorRegistry:
    """Shared collaborators plus a lazily created StatusMonitor per owner.

    Cooldowns and the escalation guard are per owner: two owners watching the
    same contact notify and cool down independently.
    """

    def __init__(
        self,
        store: DocumentStore,
        cache: LocalCache,
        notifier: MultiChannelNotifier,
        *,
        emergency_client: EmergencyReporter | None = None,
        permissions: InteractionPermissions | None = None,
        pending: PendingAlertQueue | None = None,
        notification_history: NotificationHistory | None = None,
        diagnostic_mode: bool = False,
        suppress_tier_flapping: bool = False,
    ) -> None:
        self.store = store
        self.cache = cache
        self.notifier = notifier
        self.emergency_client = emergency_client
        self.permissions = permissions or InteractionPermissions()
        self.pending = pending or PendingAlertQueue()
        self.notification_history = notification_history or NotificationHistory(cache)
        self.emergency_history = EmergencyHistory(cache)
        self.thresholds = ThresholdManager(store, cache)
        self.resolver = FriendStatusResolver(store)
        self.diagnostic_mode = diagnostic_mode
        self.suppress_tier_flapping = suppress_tier_flapping
        self._monitors: dict[int, StatusMonitor] = {}

    def monitor_for(self, owner_id: int) -> StatusMonitor:
        monitor = self._monitors.get(owner_id)
        if monitor is None:
            cooldown = NotificationCooldown(
                diagnostic_mode=self.diagnostic_mode,
                cache=self.cache,
                suppress_tier_flapping=self.suppress_tier_flapping,
                cache_key=f"{COOLDOWN_CACHE_KEY}:{owner_id}",
            )
            escalator = EmergencyEscalator(
                self.store,
                self.notifier,
                self.emergency_history,
                self.emergency_client,
                cache=self.cache,
                cache_key=f"{ESCALATION_REPORTS_CACHE_KEY}:{owner_id}",
            )
            monitor = StatusMonitor(self.thresholds, self.resolver, cooldown, self.notifier, escalator)
            self._monitors[owner_id] = monitor
        return monitor

    async def run_once(self, owner_id: int, reporter: dict[str, Any] | None = None):
        return await self.monitor_for(owner_id).run_pass(owner_id, reporter)

    def start(self, owner_id: int, interval_seconds: float, reporter: dict[str, Any] | None = None) -> StatusMonitor:
        monitor = self.monitor_for(owner_id)
        monitor.start(owner_id, interval_seconds, reporter)
        return monitor

    async def stop(self, owner_id: int) -> bool:
        monitor = self._monitors.get(owner_id)
        if monitor is None or not monitor.is_scheduled:
            return False
        await monitor.stop()
        return True

    async def stop_all(self) -> None:
        for owner_id in list(self._monitors):
            await self.stop(owner_id)


def build_registry(
    settings: Settings,
    session_factory: sessionmaker[Session],
    sender: EventSender,
    cache: LocalCache,
) -> MonitorRegistry:
    """Production wiring from settings."""
    store = SqlDocumentStore(session_factory)
    permissions = InteractionPermissions()
    pending = PendingAlertQueue()
    history = NotificationHistory(cache)

    push_client = None
    if settings.push_endpoint_url:
        push_client = PushClient(settings.push_endpoint_url, timeout=settings.push_timeout_seconds)
    else:
        logger.info("Push endpoint not configured, push channel disabled")

    emergency_client = None
    if settings.emergency_api_url:
        emergency_client = EmergencyServicesClient(
            settings.emergency_api_url,
            settings.emergency_api_key,
            enabled=settings.emergency_enabled,
            auto_report=settings.emergency_auto_report,
            timeout=settings.emergency_timeout_seconds,
            retry_count=settings.emergency_retry_count,
        )
    else:
        logger.info("Emergency-services integration not configured, escalation uses backup notifications")

    notifier = MultiChannelNotifier(
        [
            PushChannel(push_client),
            BannerChannel(sender),
            AuditLogChannel(history),
            SoundVibrationChannel(sender, permissions),
            TakeoverChannel(sender),
        ],
        last_resort=pending.enqueue,
    )
    return MonitorRegistry(
        store,
        cache,
        notifier,
        emergency_client=emergency_client,
        permissions=permissions,
        pending=pending,
        notification_history=history,
        diagnostic_mode=settings.diagnostic_mode,
    )
