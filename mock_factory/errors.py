"""Exception types raised by the Mock Factory engine."""

from __future__ import annotations

__all__ = [
    "DeviceNotFoundError",
    "DeviceValidationError",
    "MockFactoryError",
    "StrategyResolutionError",
]


class MockFactoryError(Exception):
    """Base class for all Mock Factory errors."""


class DeviceValidationError(MockFactoryError, ValueError):
    """A commissioning request was malformed (``min >= max``, unknown type, ...).

    The device is never created when this is raised.
    """


class DeviceNotFoundError(MockFactoryError, KeyError):
    """An operation referenced a device id that is not registered."""

    def __init__(self, device_id: str) -> None:
        super().__init__(device_id)
        self.device_id = device_id

    def __str__(self) -> str:
        return f"Device '{self.device_id}' not found"


class StrategyResolutionError(MockFactoryError, LookupError):
    """No generation strategy is registered for a simulation type."""
