"""Fan-out broadcaster - delivers each reading to several broadcasters."""

from __future__ import annotations

import asyncio
import logging

from mock_factory.broadcasters.base import Broadcaster
from mock_factory.models import SimulatedDevice

__all__ = ["FanoutBroadcaster"]

logger = logging.getLogger("mock_factory.broadcasters.fanout")


class FanoutBroadcaster(Broadcaster):
    """Publishes to every wrapped broadcaster concurrently.

    A failing broadcaster is logged and skipped; the others still receive
    the reading.

    Parameters:
        broadcasters: The broadcasters to deliver to.
    """

    def __init__(self, broadcasters: list[Broadcaster]) -> None:
        self.broadcasters = list(broadcasters)

    async def connect(self) -> None:
        for broadcaster in self.broadcasters:
            await broadcaster.connect()

    async def publish(self, topic: str, payload: SimulatedDevice) -> None:
        results = await asyncio.gather(
            *(b.publish(topic, payload) for b in self.broadcasters),
            return_exceptions=True,
        )
        for broadcaster, result in zip(self.broadcasters, results):
            if isinstance(result, Exception):
                logger.error("%s publish to '%s' failed: %s", type(broadcaster).__name__, topic, result)

    async def close(self) -> None:
        for broadcaster in self.broadcasters:
            try:
                await broadcaster.close()
            except Exception as exc:
                logger.warning("%s close failed: %s", type(broadcaster).__name__, exc)
