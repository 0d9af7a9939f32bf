"""Broadcaster abstraction - the outbound edge of the simulation engine.

Every computed reading leaves the engine through a single call::

    await broadcaster.publish("telemetry.<device id>", device_snapshot)

The engine treats the broadcaster as a black box: it connects it on start,
closes it on shutdown, and swallows (logs) any exception a publish raises.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from mock_factory.models import SimulatedDevice

__all__ = ["TOPIC_PREFIX", "Broadcaster", "telemetry_topic"]

TOPIC_PREFIX = "telemetry."


def telemetry_topic(device_id: str) -> str:
    """Return the topic a device's readings are published on."""
    return f"{TOPIC_PREFIX}{device_id}"


class Broadcaster(ABC):
    """Abstract base class for all broadcasters.

    Concrete broadcasters must implement ``connect``, ``publish`` and
    ``close``.  ``publish`` is awaited from the engine's event loop and
    should not block it; offload blocking work to an executor.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection / open resources."""

    @abstractmethod
    async def publish(self, topic: str, payload: SimulatedDevice) -> None:
        """Deliver one device snapshot to everyone interested in *topic*."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources / close connections."""
