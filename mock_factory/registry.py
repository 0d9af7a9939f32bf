"""In-memory device registry - the single source of truth for which
devices exist.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterator

from mock_factory.models import SimulatedDevice

__all__ = ["DeviceRegistry"]

logger = logging.getLogger("mock_factory.registry")


class DeviceRegistry:
    """Thread-safe mapping of device id to :class:`SimulatedDevice`.

    Inserts and removals take a short lock; lookups and membership tests
    do not, so readers are never held up by unrelated writes.  Ids handed
    out by :meth:`new_id` are remembered for the lifetime of the registry
    and never issued twice.
    """

    def __init__(self) -> None:
        self._devices: dict[str, SimulatedDevice] = {}
        self._issued: set[str] = set()
        self._lock = threading.Lock()

    def new_id(self) -> str:
        """Reserve and return a fresh 8-character device tag."""
        with self._lock:
            while True:
                device_id = uuid.uuid4().hex[:8].upper()
                if device_id not in self._issued:
                    self._issued.add(device_id)
                    return device_id

    def add(self, device: SimulatedDevice) -> None:
        """Insert *device*.  Raises ``ValueError`` if its id is already present."""
        with self._lock:
            if device.id in self._devices:
                raise ValueError(f"Device '{device.id}' is already registered")
            self._issued.add(device.id)
            self._devices[device.id] = device
        logger.debug("Registered device [%s]", device.id)

    def remove(self, device_id: str) -> SimulatedDevice | None:
        """Remove and return the device, or ``None`` if it was not registered."""
        with self._lock:
            device = self._devices.pop(device_id, None)
        if device is not None:
            logger.debug("Unregistered device [%s]", device_id)
        return device

    def get(self, device_id: str) -> SimulatedDevice | None:
        return self._devices.get(device_id)

    def values(self) -> list[SimulatedDevice]:
        """Point-in-time list of registered devices (order not guaranteed)."""
        with self._lock:
            return list(self._devices.values())

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._devices)
