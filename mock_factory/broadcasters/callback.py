"""Callback broadcaster - delegates each reading to a user-provided callable.

This allows users to hook any custom logic into the engine without
having to subclass :class:`Broadcaster`::

    engine.add_broadcaster(lambda topic, device: print(topic, device.current_val))
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from mock_factory.broadcasters.base import Broadcaster
from mock_factory.models import SimulatedDevice

__all__ = ["CallbackBroadcaster"]


class CallbackBroadcaster(Broadcaster):
    """Wraps a user-supplied function as a broadcaster.

    The callable receives ``(topic, device)`` for every reading.  It can be
    a regular function, a coroutine function, or a lambda.  Regular
    functions run in the event loop's default executor (the engine's
    worker pool) so a slow callback never stalls other devices.

    Parameters:
        callback: ``(topic: str, device: SimulatedDevice) -> None`` or async variant.
    """

    def __init__(self, callback: Callable[[str, SimulatedDevice], Any]) -> None:
        self._callback = callback
        self._is_async = inspect.iscoroutinefunction(callback)

    async def connect(self) -> None:
        """No-op."""

    async def publish(self, topic: str, payload: SimulatedDevice) -> None:
        if self._is_async:
            await self._callback(topic, payload)
        else:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._callback, topic, payload)

    async def close(self) -> None:
        """No-op."""
