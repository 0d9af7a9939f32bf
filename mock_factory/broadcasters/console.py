"""Console broadcaster - prints every reading to stdout.

Useful for debugging, demos, and verifying the engine is ticking.
"""

from __future__ import annotations

import sys
from typing import IO

from mock_factory.broadcasters.base import Broadcaster
from mock_factory.models import SimulatedDevice

__all__ = ["ConsoleBroadcaster"]


class ConsoleBroadcaster(Broadcaster):
    """Writes readings to the console (stdout by default).

    Parameters:
        fmt: Output format - ``"text"`` (human-readable) or ``"json"``
             (one JSON object per reading, wire field names).
        stream: Writable file-like object (defaults to ``sys.stdout``).
    """

    def __init__(self, *, fmt: str = "text", stream: IO[str] | None = None) -> None:
        if fmt not in ("text", "json"):
            raise ValueError(f"Unknown console format '{fmt}' (expected 'text' or 'json')")
        self._fmt = fmt
        self._stream = stream or sys.stdout

    async def connect(self) -> None:
        """No-op - stdout is always available."""

    async def publish(self, topic: str, payload: SimulatedDevice) -> None:
        if self._fmt == "json":
            self._stream.write(payload.to_json() + "\n")
        else:
            out_of_range = not (payload.min_value <= payload.current_val <= payload.max_value)
            self._stream.write(
                f"[{topic}] {payload.name:<24s} "
                f"{payload.current_val:>10.2f} "
                f"(prev={payload.last_value:.2f}, type={payload.device_type}, "
                f"strategy={payload.simulation_type}"
                f"{', OUT OF RANGE' if out_of_range else ''})\n"
            )
        self._stream.flush()

    async def close(self) -> None:
        """No-op - we do not own stdout."""
