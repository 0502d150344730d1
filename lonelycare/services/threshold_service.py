"""Notification threshold resolution: remote config, then local cache, then defaults."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from pydantic import ValidationError

from lonelycare.core.alert_policies import (
    MAX_THRESHOLD_MINUTES,
    THRESHOLD_CACHE_TTL_SECONDS,
    THRESHOLDS_CACHE_KEY,
)
from lonelycare.core.cache import LocalCache
from lonelycare.schemas.thresholds import Thresholds
from lonelycare.services.store import DocumentStore

logger = logging.getLogger(__name__)


def parse_threshold_config(raw: Any) -> Thresholds:
    """Build Thresholds from a stored config dict.

    Accepts minute keys (``warning``) or legacy hour keys (``warning_hours``).
    Raises ValueError when the config is missing values or not strictly increasing.
    """
    if not isinstance(raw, dict) or not raw:
        raise ValueError("Threshold config is empty")
    values: dict[str, Any] = {}
    for name in ("warning", "danger", "emergency"):
        if raw.get(name) is not None:
            values[name] = raw[name]
        elif raw.get(f"{name}_hours") is not None:
            hours = raw[f"{name}_hours"]
            try:
                values[name] = int(hours) * 60
            except (TypeError, ValueError, OverflowError) as exc:
                raise ValueError(f"Threshold '{name}_hours' is not a number: {hours!r}") from exc
        else:
            raise ValueError(f"Threshold config missing '{name}'")
    try:
        return Thresholds(**values)
    except ValidationError as exc:
        raise ValueError(f"Invalid threshold config: {exc.errors()[0]['msg']}") from exc


class ThresholdManager:
    """Supplies tier boundaries with a per-process cache and manual invalidation."""

    def __init__(
        self,
        store: DocumentStore | None,
        cache: LocalCache,
        ttl_seconds: float = THRESHOLD_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._cache = cache
        self._ttl = ttl_seconds
        self._clock = clock
        self._cached: Thresholds | None = None
        self._cached_at: float | None = None
        self.last_source: str | None = None

    def invalidate(self) -> None:
        self._cached = None
        self._cached_at = None

    def _cache_valid(self) -> bool:
        if self._cached is None or self._cached_at is None:
            return False
        return (self._clock() - self._cached_at) < self._ttl

    def _remember(self, thresholds: Thresholds, source: str) -> Thresholds:
        self._cached = thresholds
        self._cached_at = self._clock()
        self.last_source = source
        return thresholds

    async def get_thresholds(self) -> Thresholds:
        if self._cache_valid():
            return self._cached  # type: ignore[return-value]

        remote = await self._from_remote()
        if remote is not None:
            self._mirror(remote)
            return self._remember(remote, "remote")

        cached = self._from_local_cache()
        if cached is not None:
            return self._remember(cached, "cache")

        logger.info("Using default notification thresholds")
        return self._remember(Thresholds.defaults(), "default")

    async def _from_remote(self) -> Thresholds | None:
        if self._store is None:
            return None
        try:
            raw = await self._store.get_threshold_config()
        except Exception as exc:
            logger.warning("Remote threshold config unavailable: %s", exc)
            return None
        if not raw:
            return None
        try:
            return parse_threshold_config(raw)
        except ValueError as exc:
            logger.warning("Rejected remote threshold config %s: %s", raw, exc)
            return None

    def _from_local_cache(self) -> Thresholds | None:
        try:
            raw = self._cache.get(THRESHOLDS_CACHE_KEY)
        except Exception as exc:
            logger.warning("Local threshold cache unreadable: %s", exc)
            return None
        if not raw:
            return None
        try:
            return parse_threshold_config(raw)
        except ValueError as exc:
            logger.warning("Rejected cached threshold config: %s", exc)
            return None

    def _mirror(self, thresholds: Thresholds) -> None:
        try:
            self._cache.set(THRESHOLDS_CACHE_KEY, thresholds.model_dump())
        except Exception as exc:
            logger.warning("Could not mirror thresholds to local cache: %s", exc)

    async def update_thresholds(self, warning: int, danger: int, emergency: int, updated_by: str = "system") -> Thresholds:
        """Validate and store new thresholds as the remote config. Raises ValueError."""
        for name, value in (("warning", warning), ("danger", danger), ("emergency", emergency)):
            if value > MAX_THRESHOLD_MINUTES:
                raise ValueError(f"{name} threshold must be at most {MAX_THRESHOLD_MINUTES} minutes")
        thresholds = parse_threshold_config({"warning": warning, "danger": danger, "emergency": emergency})
        if self._store is None:
            raise ValueError("No remote configuration store available")
        await self._store.save_threshold_config(thresholds.model_dump(), updated_by=updated_by)
        self._mirror(thresholds)
        logger.info("Notification thresholds updated by %s: %s", updated_by, thresholds.model_dump())
        return self._remember(thresholds, "remote")
