"""In-process publish/subscribe hub for live telemetry.

The engine publishes from its own event-loop thread; subscribers usually
live on a different loop (a WebSocket handler, a test).  Each
:class:`Subscription` remembers the loop it was created on and readings are
handed over with ``call_soon_threadsafe``, so no queue is ever touched from
a foreign thread.

Topics are matched with shell-style wildcards::

    hub.subscribe("telemetry.3FA2C901")   # one device
    hub.subscribe("telemetry.*")          # every device
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import threading

from mock_factory.broadcasters.base import Broadcaster
from mock_factory.models import SimulatedDevice

__all__ = ["Subscription", "TelemetryHub"]

logger = logging.getLogger("mock_factory.broadcasters.hub")


class Subscription:
    """A bounded stream of readings for one topic pattern.

    When the queue is full the oldest reading is dropped to make room,
    so a slow consumer sees fresh values rather than stalling the hub.

    Must be created from inside a running event loop.
    """

    def __init__(self, pattern: str, *, max_queue_size: int = 1000) -> None:
        self.pattern = pattern
        self.dropped = 0
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[tuple[str, SimulatedDevice]] = asyncio.Queue(maxsize=max_queue_size)

    def matches(self, topic: str) -> bool:
        return fnmatch.fnmatchcase(topic, self.pattern)

    async def get(self) -> tuple[str, SimulatedDevice]:
        """Wait for the next ``(topic, device)`` pair."""
        return await self._queue.get()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> tuple[str, SimulatedDevice]:
        return await self.get()

    # -- called from the publisher's thread --

    def _offer(self, topic: str, payload: SimulatedDevice) -> None:
        self._loop.call_soon_threadsafe(self._put, topic, payload)

    # -- runs on the subscriber's loop --

    def _put(self, topic: str, payload: SimulatedDevice) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait((topic, payload))


class TelemetryHub(Broadcaster):
    """Fans each published reading out to every matching subscription.

    Parameters:
        max_queue_size: Per-subscription buffer size.
    """

    def __init__(self, *, max_queue_size: int = 1000) -> None:
        self._max_queue_size = max_queue_size
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, pattern: str) -> Subscription:
        """Register interest in topics matching *pattern*."""
        sub = Subscription(pattern, max_queue_size=self._max_queue_size)
        with self._lock:
            self._subscriptions.append(sub)
        logger.debug("Subscribed to '%s' (%d active)", pattern, len(self._subscriptions))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)
        logger.debug("Unsubscribed from '%s'", sub.pattern)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def connect(self) -> None:
        """No-op."""

    async def publish(self, topic: str, payload: SimulatedDevice) -> None:
        with self._lock:
            targets = [sub for sub in self._subscriptions if sub.matches(topic)]
        for sub in targets:
            try:
                sub._offer(topic, payload)
            except RuntimeError:
                # Subscriber's loop has been closed
                logger.debug("Dropping subscription '%s' - event loop closed", sub.pattern)
                self.unsubscribe(sub)

    async def close(self) -> None:
        with self._lock:
            self._subscriptions.clear()
