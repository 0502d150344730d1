"""Threshold resolution tests."""

import asyncio
from datetime import timedelta

import pytest
from pydantic import ValidationError

from lonelycare.core.alert_policies import THRESHOLDS_CACHE_KEY
from lonelycare.core.cache import MemoryCache
from lonelycare.schemas.thresholds import Thresholds
from lonelycare.services.alert_levels import Tier, classify
from lonelycare.services.threshold_service import ThresholdManager, parse_threshold_config
from tests.fakes import NOW, FakeStore


class Ticker:
    def __init__(self):
        self.value = 0.0

    def __call__(self):
        return self.value


def test_thresholds_must_increase():
    with pytest.raises(ValidationError):
        Thresholds(warning=100, danger=50, emergency=200)
    with pytest.raises(ValidationError):
        Thresholds(warning=0, danger=50, emergency=200)


def test_parse_accepts_hour_keys():
    parsed = parse_threshold_config({"warning_hours": 12, "danger_hours": 24, "emergency_hours": 36})
    assert (parsed.warning, parsed.danger, parsed.emergency) == (720, 1440, 2160)


def test_parse_rejects_non_numeric_hours():
    with pytest.raises(ValueError):
        parse_threshold_config({"warning_hours": [24], "danger_hours": 48, "emergency_hours": 72})
    with pytest.raises(ValueError):
        parse_threshold_config({"warning_hours": {"h": 24}, "danger_hours": 48, "emergency_hours": 72})
    with pytest.raises(ValueError):
        parse_threshold_config({"warning_hours": float("inf"), "danger_hours": 48, "emergency_hours": 72})


def test_parse_rejects_missing_values():
    with pytest.raises(ValueError):
        parse_threshold_config({"warning": 10, "danger": 20})
    with pytest.raises(ValueError):
        parse_threshold_config(None)


def test_defaults_when_nothing_configured():
    manager = ThresholdManager(FakeStore(), MemoryCache())
    thresholds = asyncio.run(manager.get_thresholds())
    assert thresholds == Thresholds.defaults()
    assert manager.last_source == "default"


def test_remote_config_is_used_and_mirrored():
    store = FakeStore()
    store.threshold_config = {"warning": 60, "danger": 120, "emergency": 180}
    cache = MemoryCache()
    manager = ThresholdManager(store, cache)

    thresholds = asyncio.run(manager.get_thresholds())

    assert thresholds.warning == 60
    assert manager.last_source == "remote"
    assert cache.get(THRESHOLDS_CACHE_KEY) == {"warning": 60, "danger": 120, "emergency": 180}


def test_unreachable_remote_falls_back_to_cache():
    store = FakeStore()
    store.fail_config = True
    cache = MemoryCache()
    cache.set(THRESHOLDS_CACHE_KEY, {"warning": 30, "danger": 60, "emergency": 90})
    manager = ThresholdManager(store, cache)

    thresholds = asyncio.run(manager.get_thresholds())

    assert (thresholds.warning, thresholds.danger, thresholds.emergency) == (30, 60, 90)
    assert manager.last_source == "cache"


def test_non_increasing_remote_config_is_rejected():
    """A bad remote config falls back to defaults and classifies with them."""
    store = FakeStore()
    store.threshold_config = {"warning": 100, "danger": 50, "emergency": 200}
    cache = MemoryCache()
    manager = ThresholdManager(store, cache)

    thresholds = asyncio.run(manager.get_thresholds())

    assert thresholds == Thresholds.defaults()
    assert manager.last_source == "default"
    assert cache.get(THRESHOLDS_CACHE_KEY) is None
    assert classify(NOW - timedelta(hours=30), thresholds, NOW) is Tier.WARNING


def test_result_is_cached_until_ttl_or_invalidate():
    store = FakeStore()
    store.threshold_config = {"warning": 60, "danger": 120, "emergency": 180}
    ticker = Ticker()
    manager = ThresholdManager(store, MemoryCache(), ttl_seconds=300, clock=ticker)
    asyncio.run(manager.get_thresholds())

    store.threshold_config = {"warning": 10, "danger": 20, "emergency": 30}
    ticker.value = 299
    assert asyncio.run(manager.get_thresholds()).warning == 60

    ticker.value = 301
    assert asyncio.run(manager.get_thresholds()).warning == 10

    store.threshold_config = {"warning": 5, "danger": 20, "emergency": 30}
    manager.invalidate()
    assert asyncio.run(manager.get_thresholds()).warning == 5


def test_update_thresholds_saves_remote():
    store = FakeStore()
    cache = MemoryCache()
    manager = ThresholdManager(store, cache)

    updated = asyncio.run(manager.update_thresholds(120, 240, 360, updated_by="admin"))

    assert updated.danger == 240
    assert store.threshold_config == {"warning": 120, "danger": 240, "emergency": 360}
    assert cache.get(THRESHOLDS_CACHE_KEY)["emergency"] == 360
    assert manager.last_source == "remote"


def test_update_thresholds_rejects_invalid_values():
    store = FakeStore()
    manager = ThresholdManager(store, MemoryCache())
    with pytest.raises(ValueError):
        asyncio.run(manager.update_thresholds(300, 200, 400))
    with pytest.raises(ValueError):
        asyncio.run(manager.update_thresholds(60, 120, 20000))
    assert store.saved_configs == []


def test_malformed_remote_document_falls_back_to_cache_then_defaults():
    store = FakeStore()
    store.threshold_config = {"warning_hours": [24], "danger_hours": 48, "emergency_hours": 72}
    cache = MemoryCache()
    cache.set(THRESHOLDS_CACHE_KEY, {"warning": 30, "danger": 60, "emergency": 90})

    cached = asyncio.run(ThresholdManager(store, cache).get_thresholds())
    assert cached.warning == 30

    defaults_manager = ThresholdManager(store, MemoryCache())
    assert asyncio.run(defaults_manager.get_thresholds()) == Thresholds.defaults()
    assert defaults_manager.last_source == "default"
