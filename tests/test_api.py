"""Tests for mock_factory.api - REST and WebSocket façade."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient  # noqa: E402

from mock_factory.api import create_app  # noqa: E402
from mock_factory.broadcasters.hub import TelemetryHub  # noqa: E402
from mock_factory.engine import SimulationEngine  # noqa: E402

BOILER = {
    "name": "Boiler-Room Temp",
    "type": "TEMPERATURE",
    "min": 0,
    "max": 150,
    "frequencyMs": 20,
    "simulationType": "REALISTIC",
}


@pytest.fixture
def engine() -> SimulationEngine:
    hub = TelemetryHub()
    return SimulationEngine(broadcasters=[hub], pool_size=4)


@pytest.fixture
def client(engine: SimulationEngine) -> Iterator[TestClient]:
    hub = engine.broadcasters[0]
    app = create_app(engine, hub)
    with TestClient(app) as test_client:
        yield test_client


class TestDeviceEndpoints:
    """Commission / list / inspect / decommission over HTTP."""

    def test_create_device(self, client: TestClient) -> None:
        resp = client.post("/api/devices", json=BOILER)
        assert resp.status_code == 201
        body = resp.json()
        assert len(body["id"]) == 8
        assert body["name"] == "Boiler-Room Temp"
        assert body["type"] == "TEMPERATURE"
        assert body["currentVal"] == 75.0
        assert body["lastValue"] == 75.0
        assert body["simulationType"] == "REALISTIC"
        assert body["frequencyMs"] == 20
        assert body["active"] is True

    def test_create_defaults(self, client: TestClient) -> None:
        resp = client.post("/api/devices", json={"name": "P", "type": "PRESSURE", "min": 1, "max": 3})
        assert resp.status_code == 201
        assert resp.json()["frequencyMs"] == 1000
        assert resp.json()["simulationType"] == "REALISTIC"

    @pytest.mark.parametrize(
        "payload",
        [
            {**BOILER, "min": 10, "max": 10},
            {**BOILER, "type": "HUMIDITY"},
            {**BOILER, "simulationType": "BROWNIAN"},
            {"name": "no bounds", "type": "PRESSURE"},
        ],
    )
    def test_invalid_request_rejected(self, client: TestClient, engine: SimulationEngine, payload: dict) -> None:
        resp = client.post("/api/devices", json=payload)
        assert resp.status_code == 422
        assert engine.device_count == 0

    def test_list_devices(self, client: TestClient) -> None:
        ids = {client.post("/api/devices", json={**BOILER, "name": f"d{i}"}).json()["id"] for i in range(3)}
        resp = client.get("/api/devices")
        assert resp.status_code == 200
        assert {d["id"] for d in resp.json()} == ids

    def test_get_device(self, client: TestClient) -> None:
        device_id = client.post("/api/devices", json=BOILER).json()["id"]
        resp = client.get(f"/api/devices/{device_id}")
        assert resp.status_code == 200
        assert resp.json()["id"] == device_id
        assert 0 <= resp.json()["currentVal"] <= 150

    def test_get_unknown_device(self, client: TestClient) -> None:
        resp = client.get("/api/devices/NOPE0000")
        assert resp.status_code == 404
        assert "NOPE0000" in resp.json()["detail"]

    def test_delete_device(self, client: TestClient, engine: SimulationEngine) -> None:
        device_id = client.post("/api/devices", json=BOILER).json()["id"]
        resp = client.delete(f"/api/devices/{device_id}")
        assert resp.status_code == 204
        assert engine.get_device(device_id) is None
        assert not engine.is_scheduled(device_id)
        assert client.get(f"/api/devices/{device_id}").status_code == 404

    def test_delete_unknown_device(self, client: TestClient) -> None:
        assert client.delete("/api/devices/NOPE0000").status_code == 404

    def test_health(self, client: TestClient) -> None:
        client.post("/api/devices", json=BOILER)
        assert client.get("/health").json() == {"status": "ok", "devices": 1}


class TestLifespan:
    """Start-up devices and shutdown."""

    def test_startup_devices_commissioned(self) -> None:
        hub = TelemetryHub()
        engine = SimulationEngine(broadcasters=[hub], pool_size=2)
        app = create_app(engine, hub, devices=[BOILER])
        with TestClient(app) as client:
            devices = client.get("/api/devices").json()
            assert [d["name"] for d in devices] == ["Boiler-Room Temp"]
        assert not engine.is_running

    def test_lifecycle_runs_off_the_event_loop(self, monkeypatch: pytest.MonkeyPatch) -> None:
        hub = TelemetryHub()
        engine = SimulationEngine(broadcasters=[hub], pool_size=2)
        seen: dict[str, bool] = {}

        def off_loop(name: str, method):
            def wrapper(*args, **kwargs):
                try:
                    asyncio.get_running_loop()
                    seen[name] = False
                except RuntimeError:
                    seen[name] = True
                return method(*args, **kwargs)

            return wrapper

        monkeypatch.setattr(engine, "start", off_loop("start", engine.start))
        monkeypatch.setattr(engine, "shutdown", off_loop("shutdown", engine.shutdown))
        with TestClient(create_app(engine, hub)) as client:
            assert client.get("/health").status_code == 200
        assert seen == {"start": True, "shutdown": True}
        assert not engine.is_running

    def test_default_engine(self) -> None:
        app = create_app()
        with TestClient(app) as client:
            assert client.get("/health").json()["devices"] == 0
        assert not app.state.engine.is_running


class TestTelemetryWebSocket:
    """Live readings over WebSocket."""

    def test_device_stream(self, client: TestClient) -> None:
        device_id = client.post("/api/devices", json=BOILER).json()["id"]
        with client.websocket_connect(f"/ws/telemetry/{device_id}") as ws:
            first = ws.receive_json()
            second = ws.receive_json()
        assert first["id"] == second["id"] == device_id
        assert second["lastValue"] == first["currentVal"]
        assert second["timestamp"] >= first["timestamp"]

    def test_all_devices_stream(self, client: TestClient) -> None:
        ids = {client.post("/api/devices", json={**BOILER, "name": f"d{i}"}).json()["id"] for i in range(2)}
        seen: set[str] = set()
        with client.websocket_connect("/ws/telemetry") as ws:
            for _ in range(20):
                seen.add(ws.receive_json()["id"])
                if seen == ids:
                    break
        assert seen == ids
