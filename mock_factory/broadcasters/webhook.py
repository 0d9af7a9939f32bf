"""Webhook broadcaster - POSTs every reading as JSON to an HTTP endpoint.

Requires the ``webhook`` extra::

    pip install mock-factory[webhook]
"""

from __future__ import annotations

import json
import logging

from mock_factory.broadcasters.base import Broadcaster
from mock_factory.models import SimulatedDevice

__all__ = ["WebhookBroadcaster"]

logger = logging.getLogger("mock_factory.broadcasters.webhook")

try:
    import httpx

    HTTPX_AVAILABLE = True
except ImportError:
    HTTPX_AVAILABLE = False


class WebhookBroadcaster(Broadcaster):
    """POST readings as JSON to an HTTP endpoint.

    Each ``publish()`` sends ``{"topic": ..., "payload": {...}}`` with the
    device snapshot under its wire field names.

    Parameters:
        url: Target endpoint (must accept ``POST``).
        headers: Extra HTTP headers (e.g. ``{"Authorization": "Bearer ..."}``).
        timeout_s: Per-request timeout in seconds.
    """

    def __init__(
        self,
        *,
        url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float = 5.0,
    ) -> None:
        if not HTTPX_AVAILABLE:
            raise ImportError(
                "httpx is required for WebhookBroadcaster.  Install with: pip install mock-factory[webhook]"
            )
        self._url = url
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = timeout_s
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers=self._headers,
        )
        logger.info("WebhookBroadcaster ready - target: %s", self._url)

    async def publish(self, topic: str, payload: SimulatedDevice) -> None:
        if self._client is None:
            raise RuntimeError("WebhookBroadcaster is not connected")

        body = json.dumps({"topic": topic, "payload": payload.to_dict()})
        resp = await self._client.post(self._url, content=body)
        resp.raise_for_status()

        logger.debug("POST %s - %s - HTTP %d", self._url, topic, resp.status_code)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("WebhookBroadcaster closed")
