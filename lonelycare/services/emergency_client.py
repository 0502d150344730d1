"""Emergency-services reporting integration."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import httpx

from lonelycare import __version__
from lonelycare.core.errors import EmergencyServiceError

logger = logging.getLogger(__name__)

EMERGENCY_TEMPLATE = (
    "[EMERGENCY] lonelycare inactivity report. Person: {name}, phone: {phone}, "
    "address: {address}, status: {status}, reported by: {reporter}, time: {timestamp}"
)


@dataclass
class EmergencyReportResult:
    success: bool
    report_id: str | None = None
    error: str | None = None
    attempts: int = 0
    response: dict[str, Any] | None = None


class EmergencyServicesClient:
    """Posts emergency reports with bounded retries.

    Disabled or auto-report-off configurations return a failed result rather
    than raising; a missing URL raises EmergencyServiceError.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        *,
        enabled: bool = True,
        auto_report: bool = True,
        timeout: float = 30.0,
        retry_count: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.enabled = enabled
        self.auto_report = auto_report
        self.timeout = timeout
        self.retry_count = max(1, retry_count)
        self._transport = transport
        self._sleep = sleep
        self._in_flight: set[int] = set()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": f"lonelycare/{__version__}"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def report_emergency(
        self,
        contact_id: int,
        profile: dict[str, Any],
        reporter: dict[str, Any] | None = None,
    ) -> EmergencyReportResult:
        if not self.enabled:
            return EmergencyReportResult(success=False, error="Emergency reporting is disabled")
        if not self.auto_report:
            return EmergencyReportResult(success=False, error="Automatic emergency reporting is disabled")
        if not self.api_url:
            raise EmergencyServiceError("Emergency API URL is not configured")
        if contact_id in self._in_flight:
            return EmergencyReportResult(success=False, error="A report for this contact is already in progress")

        report_id = f"report_{uuid.uuid4().hex[:12]}"
        reporter = reporter or {}
        timestamp = datetime.now(timezone.utc).isoformat()
        payload = {
            "report_id": report_id,
            "type": "emergency",
            "source": "lonelycare",
            "version": __version__,
            "timestamp": timestamp,
            "message": EMERGENCY_TEMPLATE.format(
                name=profile.get("name", "unknown"),
                phone=profile.get("phone", "unknown"),
                address=profile.get("address", "unknown"),
                status=profile.get("status", "no activity detected"),
                reporter=reporter.get("name", "unknown"),
                timestamp=timestamp,
            ),
            "user": profile,
            "reporter": reporter,
        }

        self._in_flight.add(contact_id)
        try:
            return await self._post_with_retries(report_id, payload)
        finally:
            self._in_flight.discard(contact_id)

    async def _post_with_retries(self, report_id: str, payload: dict[str, Any]) -> EmergencyReportResult:
        last_error: str | None = None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(1, self.retry_count + 1):
                try:
                    response = await client.post(self.api_url, json=payload, headers=self._headers())
                    if response.is_success:
                        try:
                            data = response.json()
                        except ValueError:
                            data = {"status": "sent"}
                        logger.info("Emergency report %s accepted (attempt %s)", report_id, attempt)
                        return EmergencyReportResult(
                            success=True,
                            report_id=report_id,
                            attempts=attempt,
                            response=data if isinstance(data, dict) else {"data": data},
                        )
                    last_error = f"HTTP {response.status_code}: {response.reason_phrase}"
                except httpx.TimeoutException:
                    last_error = "Connection timed out"
                except httpx.HTTPError as exc:
                    last_error = str(exc)
                logger.warning("Emergency report %s attempt %s/%s failed: %s", report_id, attempt, self.retry_count, last_error)
                if attempt < self.retry_count:
                    await self._sleep(1.0 * attempt)

        logger.error("Emergency report %s failed after %s attempts: %s", report_id, self.retry_count, last_error)
        return EmergencyReportResult(success=False, report_id=report_id, error=last_error, attempts=self.retry_count)
