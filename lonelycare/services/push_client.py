"""Client for the backend push-notification dispatch endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from lonelycare.core.errors import PushDispatchError

logger = logging.getLogger(__name__)


class PushRequest(BaseModel):
    """The one request shape the dispatch endpoint accepts."""

    user_id: str
    title: str
    body: str
    tier: str
    type: str = "friend_status"
    metadata: dict[str, str] = Field(default_factory=dict)


class PushClient:
    def __init__(self, endpoint_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        if not endpoint_url:
            raise ValueError("Push endpoint URL is required")
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._transport = transport

    async def send(self, request: PushRequest) -> dict[str, Any]:
        """POST the request. Raises PushDispatchError on network failure or non-2xx."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint_url,
                    json=request.model_dump(),
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PushDispatchError(f"Push dispatch failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if isinstance(data, dict) and data.get("ok") is False:
            raise PushDispatchError(f"Push endpoint rejected notification: {data.get('error', 'unknown error')}")
        logger.debug("Push dispatched to user=%s status=%s", request.user_id, response.status_code)
        return data if isinstance(data, dict) else {}
