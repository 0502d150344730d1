"""Emergency-tier escalation to an emergency-services integration, with a notification fallback."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol

from lonelycare.core.alert_policies import (
    EMERGENCY_HISTORY_CACHE_KEY,
    EMERGENCY_HISTORY_LIMIT,
    ESCALATION_GUARD_HOURS,
    ESCALATION_REPORTS_CACHE_KEY,
)
from lonelycare.core.cache import LocalCache
from lonelycare.services.alert_levels import Tier, as_utc, elapsed_minutes, utcnow
from lonelycare.services.emergency_client import EmergencyReportResult
from lonelycare.services.friend_status_service import Contact
from lonelycare.services.notifier import MultiChannelNotifier
from lonelycare.services.store import DocumentStore

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

REPORTED = "reported_to_authorities"
BACKUP_SENT = "backup_notification_sent"
FAILED = "failed"
SKIPPED_RECENT = "skipped_recent_report"


class EmergencyReporter(Protocol):
    async def report_emergency(
        self, contact_id: int, profile: dict[str, Any], reporter: dict[str, Any] | None = None
    ) -> EmergencyReportResult: ...


class EmergencyHistory:
    """Append-only, capped log of escalation outcomes. Diagnostics only."""

    def __init__(self, cache: LocalCache, limit: int = EMERGENCY_HISTORY_LIMIT) -> None:
        self._cache = cache
        self.limit = limit

    def record(self, contact: Contact, status: str, timestamp: datetime, detail: str | None = None) -> dict[str, Any]:
        entry = {
            "contact_id": contact.id,
            "contact_name": contact.name,
            "status": status,
            "timestamp": timestamp.isoformat(),
            "last_activity": contact.last_activity.isoformat() if contact.last_activity else None,
            "detail": detail,
        }
        entries = list(self._cache.get(EMERGENCY_HISTORY_CACHE_KEY) or [])
        entries.append(entry)
        self._cache.set(EMERGENCY_HISTORY_CACHE_KEY, entries[-self.limit:])
        return entry

    def entries(self) -> list[dict[str, Any]]:
        return list(self._cache.get(EMERGENCY_HISTORY_CACHE_KEY) or [])


class EmergencyEscalator:
    def __init__(
        self,
        store: DocumentStore,
        notifier: MultiChannelNotifier,
        history: EmergencyHistory,
        reporter_client: EmergencyReporter | None = None,
        *,
        cache: LocalCache | None = None,
        guard: timedelta = timedelta(hours=ESCALATION_GUARD_HOURS),
        cache_key: str = ESCALATION_REPORTS_CACHE_KEY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._client = reporter_client
        self.history = history
        self._cache = cache
        self._cache_key = cache_key
        self.guard = guard
        self._clock = clock
        self._last_escalated: dict[int, datetime] = {}
        self._load()

    async def build_profile(self, contact: Contact) -> dict[str, Any]:
        """Extended profile with explicit placeholders for anything missing."""
        try:
            stored = await self._store.get_profile(contact.id) or {}
        except Exception as exc:
            logger.warning("Profile fetch failed for contact=%s: %s", contact.id, exc)
            stored = {}
        return {
            "id": contact.id,
            "name": contact.name or UNKNOWN,
            "phone": contact.phone or UNKNOWN,
            "last_activity": contact.last_activity.isoformat() if contact.last_activity else UNKNOWN,
            "address": stored.get("address") or UNKNOWN,
            "detail_address": stored.get("detail_address") or "",
            "postal_code": stored.get("postal_code") or "",
            "blood_type": stored.get("blood_type") or UNKNOWN,
            "medical_conditions": stored.get("medical_conditions") or [],
            "medications": stored.get("medications") or [],
            "allergies": stored.get("allergies") or [],
            "emergency_contacts": stored.get("emergency_contacts") or [],
            "emergency_contact_consent": stored.get("emergency_contact_consent"),
        }

    def recently_escalated(self, contact_id: int, now: datetime | None = None) -> bool:
        last = self._last_escalated.get(contact_id)
        if last is None:
            return False
        now = as_utc(now) if now is not None else self._clock()
        return (now - last) < self.guard

    async def escalate(self, owner_id: int, contact: Contact, reporter: dict[str, Any] | None = None) -> str:
        """Report contact to emergency services, or fall back to an urgent notification.

        Never raises; returns the recorded status.
        """
        now = self._clock()
        if self.recently_escalated(contact.id, now):
            logger.info("contact=%s already escalated within %s, not reporting again", contact.id, self.guard)
            return SKIPPED_RECENT

        profile = await self.build_profile(contact)
        reason = await self._report(contact, profile, reporter or {"id": owner_id})

        if reason is None:
            status = REPORTED
        else:
            logger.warning("Emergency report for contact=%s not completed (%s), sending backup notification", contact.id, reason)
            status = await self._send_backup(owner_id, contact)

        if status != FAILED:
            self._last_escalated[contact.id] = now
            self._persist()
        try:
            self.history.record(contact, status, now, detail=reason)
        except Exception as exc:
            logger.warning("Could not record escalation for contact=%s: %s", contact.id, exc)
        return status

    async def _report(self, contact: Contact, profile: dict[str, Any], reporter: dict[str, Any]) -> str | None:
        """None on success, otherwise the reason the report did not go through."""
        if profile.get("emergency_contact_consent") is False:
            return "contact declined emergency-contact consent"
        if self._client is None:
            return "emergency-services integration not configured"
        try:
            result = await self._client.report_emergency(contact.id, profile, reporter)
        except Exception as exc:
            logger.exception("Emergency-services integration raised for contact=%s", contact.id)
            return f"integration error: {exc}"
        if not result.success:
            return result.error or "integration reported failure"
        logger.info("contact=%s reported to emergency services (report=%s)", contact.id, result.report_id)
        return None

    async def _send_backup(self, owner_id: int, contact: Contact) -> str:
        hours = int(elapsed_minutes(contact.last_activity, self._clock()) // 60) if contact.last_activity else None
        title = "Emergency: no response from " + contact.name
        if hours is not None:
            body = f"{contact.name} has not been active for {hours} hours. Check on them immediately."
        else:
            body = f"{contact.name} needs an immediate safety check."
        try:
            result = await self._notifier.dispatch(
                owner_id, contact, Tier.EMERGENCY, title=title, body=body, urgent=True, now=self._clock()
            )
        except Exception:
            logger.exception("Backup emergency notification raised for contact=%s", contact.id)
            return FAILED
        return BACKUP_SENT if result.delivered else FAILED

    def _load(self) -> None:
        if self._cache is None:
            return
        raw = self._cache.get(self._cache_key) or {}
        try:
            self._last_escalated = {int(k): as_utc(datetime.fromisoformat(v)) for k, v in raw.items()}
        except (ValueError, AttributeError, TypeError) as exc:
            logger.warning("Ignoring unreadable escalation cache: %s", exc)
            self._last_escalated = {}

    def _persist(self) -> None:
        if self._cache is None:
            return
        try:
            self._cache.set(
                self._cache_key,
                {str(k): v.isoformat() for k, v in self._last_escalated.items()},
            )
        except Exception as exc:
            logger.warning("Could not persist escalation guard: %s", exc)
