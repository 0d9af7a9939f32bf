"""HTTP + WebSocket façade over the simulation engine.

Requires the ``api`` extra::

    pip install mock-factory[api]

Endpoints:
  POST   /api/devices          commission a new device
  GET    /api/devices          list all devices
  GET    /api/devices/{id}     inspect a single device
  DELETE /api/devices/{id}     decommission a device
  GET    /health
  WS     /ws/telemetry         live readings of every device
  WS     /ws/telemetry/{id}    live readings of one device
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mock_factory.broadcasters.base import TOPIC_PREFIX, telemetry_topic
from mock_factory.broadcasters.hub import TelemetryHub
from mock_factory.engine import SimulationEngine
from mock_factory.errors import DeviceValidationError, StrategyResolutionError
from mock_factory.models import SimulationConfig

__all__ = ["create_app"]

logger = logging.getLogger("mock_factory.api")


def create_app(
    engine: SimulationEngine | None = None,
    hub: TelemetryHub | None = None,
    *,
    devices: Iterable[SimulationConfig] = (),
) -> FastAPI:
    """Build the FastAPI application.

    Parameters:
        engine: Engine to expose.  A new one publishing to *hub* is created
            when omitted.  When given, *hub* must already be one of its
            broadcasters for the WebSocket feeds to carry data.
        hub: Telemetry hub backing the WebSocket endpoints.
        devices: Devices to commission when the application starts.
    """
    hub = hub or TelemetryHub()
    engine = engine or SimulationEngine(broadcasters=[hub])
    startup_devices = list(devices)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Mock Factory API starting...")
        # start/shutdown block on the engine thread and run off the server loop
        await asyncio.to_thread(engine.start)
        await asyncio.to_thread(engine.commission_all, startup_devices)
        yield
        await asyncio.to_thread(engine.shutdown)
        logger.info("Mock Factory API stopped")

    app = FastAPI(
        title="Mock Factory - Industrial IoT Simulation API",
        description="Commission simulated sensors and stream their readings over WebSocket.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.engine = engine
    app.state.hub = hub

    @app.exception_handler(DeviceValidationError)
    async def _validation_error(request: Request, exc: DeviceValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    # -- REST ---------------------------------------------------------------

    @app.post("/api/devices", status_code=201)
    def create_device(config: SimulationConfig) -> dict:
        """Commission a new simulated device and start its telemetry stream."""
        try:
            device = engine.commission(config)
        except StrategyResolutionError as exc:
            raise HTTPException(500, str(exc)) from exc
        return device.to_dict()

    @app.get("/api/devices")
    def list_devices() -> list[dict]:
        """List every device currently on the simulated factory floor."""
        return [device.to_dict() for device in engine.list_devices()]

    @app.get("/api/devices/{device_id}")
    def get_device(device_id: str) -> dict:
        """Inspect a single device's latest process value."""
        device = engine.get_device(device_id)
        if device is None:
            raise HTTPException(404, f"Device '{device_id}' not found")
        return device.to_dict()

    @app.delete("/api/devices/{device_id}", status_code=204)
    def delete_device(device_id: str) -> Response:
        """Decommission a device - stops its scan cycle."""
        if not engine.decommission(device_id):
            raise HTTPException(404, f"Device '{device_id}' not found")
        return Response(status_code=204)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "devices": engine.device_count}

    # -- WebSocket ----------------------------------------------------------

    @app.websocket("/ws/telemetry")
    async def ws_all(websocket: WebSocket) -> None:
        await _stream(websocket, hub, f"{TOPIC_PREFIX}*")

    @app.websocket("/ws/telemetry/{device_id}")
    async def ws_device(websocket: WebSocket, device_id: str) -> None:
        await _stream(websocket, hub, telemetry_topic(device_id))

    return app


async def _stream(websocket: WebSocket, hub: TelemetryHub, pattern: str) -> None:
    """Forward hub readings matching *pattern* to a WebSocket client."""
    await websocket.accept()
    sub = hub.subscribe(pattern)
    logger.info("WS telemetry connected: %s", pattern)
    try:
        async for _topic, device in sub:
            await websocket.send_text(device.to_json())
    except WebSocketDisconnect:
        logger.info("WS telemetry disconnected: %s", pattern)
    finally:
        hub.unsubscribe(sub)
