"""lonelycare FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lonelycare.api import alerts, health, heartbeats, monitor, thresholds, ws
from lonelycare.core.cache import JsonFileCache
from lonelycare.core.config import settings
from lonelycare.core.ws_manager import ws_manager
from lonelycare.db.session import SessionLocal
from lonelycare.services.registry import build_registry

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.registry = build_registry(settings, SessionLocal, ws_manager, JsonFileCache(settings.cache_path))
    try:
        yield
    finally:
        # Scheduled monitors finish their current pass before the app exits
        await app.state.registry.stop_all()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(heartbeats.router)
app.include_router(monitor.router)
app.include_router(thresholds.router)
app.include_router(alerts.router)
app.include_router(ws.router)
