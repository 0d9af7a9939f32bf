"""Tests for WebhookBroadcaster - mocked httpx dependency."""

from __future__ import annotations

import json
import sys
from types import ModuleType
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mock_factory.models import SimulatedDevice, SimulationConfig

# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------


def _make_device() -> SimulatedDevice:
    cfg = SimulationConfig.model_validate(
        {"name": "Line Pressure", "type": "PRESSURE", "min": 1, "max": 9, "simulationType": "CHAOS"}
    )
    return SimulatedDevice.from_config("5EED0001", cfg)


def _make_mock_httpx():
    """Create mock httpx module."""
    mock_httpx = ModuleType("httpx")

    mock_client = AsyncMock()
    mock_response = MagicMock()
    mock_response.status_code = 202
    mock_response.raise_for_status = MagicMock()
    mock_client.post = AsyncMock(return_value=mock_response)
    mock_client.aclose = AsyncMock()

    mock_httpx.AsyncClient = MagicMock(return_value=mock_client)
    mock_httpx.Timeout = MagicMock()

    return mock_httpx, mock_client, mock_response


# -----------------------------------------------------------------------
# Tests
# -----------------------------------------------------------------------


class TestWebhookBroadcaster:
    """WebhookBroadcaster with mocked httpx."""

    def _import_webhook(self, mock_module):
        with patch.dict(sys.modules, {"httpx": mock_module}):
            if "mock_factory.broadcasters.webhook" in sys.modules:
                del sys.modules["mock_factory.broadcasters.webhook"]
            from mock_factory.broadcasters.webhook import WebhookBroadcaster

            return WebhookBroadcaster

    @pytest.mark.asyncio
    async def test_connect_creates_client(self) -> None:
        mock_httpx, _mock_client, _ = _make_mock_httpx()
        WebhookBroadcaster = self._import_webhook(mock_httpx)

        broadcaster = WebhookBroadcaster(url="https://example.com/ingest", headers={"X-Key": "k"})
        await broadcaster.connect()
        mock_httpx.AsyncClient.assert_called_once()
        headers = mock_httpx.AsyncClient.call_args.kwargs["headers"]
        assert headers["X-Key"] == "k"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_publish_posts_wire_payload(self) -> None:
        mock_httpx, mock_client, mock_response = _make_mock_httpx()
        WebhookBroadcaster = self._import_webhook(mock_httpx)

        broadcaster = WebhookBroadcaster(url="https://example.com/ingest")
        await broadcaster.connect()
        await broadcaster.publish("telemetry.5EED0001", _make_device())

        mock_client.post.assert_awaited_once()
        args, kwargs = mock_client.post.call_args
        assert args[0] == "https://example.com/ingest"
        body = json.loads(kwargs["content"])
        assert body["topic"] == "telemetry.5EED0001"
        assert body["payload"]["id"] == "5EED0001"
        assert body["payload"]["simulationType"] == "CHAOS"
        mock_response.raise_for_status.assert_called_once()

    @pytest.mark.asyncio
    async def test_publish_without_connect_raises(self) -> None:
        mock_httpx, _, _ = _make_mock_httpx()
        WebhookBroadcaster = self._import_webhook(mock_httpx)

        broadcaster = WebhookBroadcaster(url="https://example.com/ingest")
        with pytest.raises(RuntimeError, match="not connected"):
            await broadcaster.publish("telemetry.5EED0001", _make_device())

    @pytest.mark.asyncio
    async def test_http_error_propagates(self) -> None:
        mock_httpx, _, mock_response = _make_mock_httpx()
        mock_response.raise_for_status.side_effect = RuntimeError("HTTP 500")
        WebhookBroadcaster = self._import_webhook(mock_httpx)

        broadcaster = WebhookBroadcaster(url="https://example.com/ingest")
        await broadcaster.connect()
        with pytest.raises(RuntimeError, match="HTTP 500"):
            await broadcaster.publish("telemetry.5EED0001", _make_device())

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        mock_httpx, mock_client, _ = _make_mock_httpx()
        WebhookBroadcaster = self._import_webhook(mock_httpx)

        broadcaster = WebhookBroadcaster(url="https://example.com/ingest")
        await broadcaster.connect()
        await broadcaster.close()
        mock_client.aclose.assert_awaited_once()
        await broadcaster.close()
        mock_client.aclose.assert_awaited_once()

    def test_missing_httpx_raises(self) -> None:
        with patch.dict(sys.modules, {"httpx": None}):
            if "mock_factory.broadcasters.webhook" in sys.modules:
                del sys.modules["mock_factory.broadcasters.webhook"]
            from mock_factory.broadcasters.webhook import WebhookBroadcaster

            with pytest.raises(ImportError, match="httpx is required"):
                WebhookBroadcaster(url="https://example.com/ingest")
