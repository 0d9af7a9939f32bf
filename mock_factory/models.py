"""Data models for the Mock Factory simulator.

Defines the device blueprint (``SimulationConfig``) accepted by the
commissioning call and the live device record (``SimulatedDevice``) that the
engine mutates on every scan cycle and broadcasts to subscribers.

Both models read and write the wire names used by the HTTP façade and the
telemetry payload (``currentVal``, ``frequencyMs``, ...) while exposing
snake_case attributes to Python callers.
"""

from __future__ import annotations

import math
import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

__all__ = [
    "DEFAULT_FREQUENCY_MS",
    "DeviceType",
    "SimulatedDevice",
    "SimulationConfig",
    "SimulationType",
    "now_ms",
    "range_error",
]

DEFAULT_FREQUENCY_MS = 1000


class DeviceType(StrEnum):
    """Industrial signal types.  Display only - does not affect generation."""

    TEMPERATURE = "TEMPERATURE"
    PRESSURE = "PRESSURE"
    VIBRATION = "VIBRATION"
    FLOW_RATE = "FLOW_RATE"


class SimulationType(StrEnum):
    """Signal generation algorithms."""

    REALISTIC = "REALISTIC"
    RANDOM = "RANDOM"
    SINE_WAVE = "SINE_WAVE"
    CHAOS = "CHAOS"


def _normalise_enum_name(value: Any) -> Any:
    """Accept ``"sine_wave"``, ``"Sine-Wave"`` etc. for enum fields."""
    if isinstance(value, str):
        return value.strip().upper().replace("-", "_").replace(" ", "_")
    return value


def now_ms() -> int:
    """Return the current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


def range_error(min_value: float, max_value: float) -> str | None:
    """Describe what is wrong with a device range, or ``None`` if it is usable.

    Besides ``min < max``, the span and twice either bound must stay finite:
    the strategies compute both and every reading must be a finite number.
    """
    if not min_value < max_value:
        return f"min ({min_value}) must be less than max ({max_value})"
    if not math.isfinite(max_value - min_value):
        return f"range [{min_value}, {max_value}] is too wide to simulate"
    if not (math.isfinite(2 * min_value) and math.isfinite(2 * max_value)):
        return f"range [{min_value}, {max_value}] has bounds too large to simulate"
    return None


class SimulationConfig(BaseModel):
    """Blueprint for commissioning a new simulated device.

    Attributes:
        name: Human-readable device name, e.g. ``"Boiler-Room Temp"``.
        device_type: Industrial signal type (wire name ``type``).
        min_value: Engineering-unit low range (wire name ``min``).
        max_value: Engineering-unit high range (wire name ``max``).
            Must be strictly greater than ``min_value``.
        frequency_ms: Scan-cycle interval in milliseconds (wire name
            ``frequencyMs``).  Non-positive or omitted means 1000.
        simulation_type: Generation algorithm (wire name ``simulationType``).
    """

    model_config = {"frozen": True, "populate_by_name": True}

    name: str
    device_type: DeviceType = Field(alias="type")
    min_value: float = Field(alias="min", allow_inf_nan=False)
    max_value: float = Field(alias="max", allow_inf_nan=False)
    frequency_ms: int = Field(default=DEFAULT_FREQUENCY_MS, alias="frequencyMs")
    simulation_type: SimulationType = Field(default=SimulationType.REALISTIC, alias="simulationType")

    @field_validator("device_type", "simulation_type", mode="before")
    @classmethod
    def _normalise_enums(cls, value: Any) -> Any:
        return _normalise_enum_name(value)

    @field_validator("frequency_ms", mode="before")
    @classmethod
    def _default_frequency(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_FREQUENCY_MS
        return value

    @field_validator("frequency_ms")
    @classmethod
    def _positive_frequency(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_FREQUENCY_MS

    @model_validator(mode="after")
    def _check_range(self) -> SimulationConfig:
        problem = range_error(self.min_value, self.max_value)
        if problem:
            raise ValueError(problem)
        return self

    @property
    def midpoint(self) -> float:
        return (self.min_value + self.max_value) / 2.0

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation (JSON-safe types)."""
        return self.model_dump(mode="json", by_alias=True)


class SimulatedDevice(BaseModel):
    """A single simulated industrial device - a virtual PLC register.

    The engine owns the live instance: only the device's own scan cycle
    writes ``current_val``, ``last_value`` and ``timestamp``.  Callers
    outside the engine always receive copies produced by :meth:`snapshot`.

    Attributes:
        id: Unique tag, 8 upper-case hex characters (e.g. ``"3FA2C901"``).
        name: Human-readable name.
        device_type: Industrial signal type (wire name ``type``).
        min_value: Engineering-unit low range (wire name ``min``).
        max_value: Engineering-unit high range (wire name ``max``).
        current_val: Latest published reading (wire name ``currentVal``).
        last_value: Reading consumed to produce ``current_val``
            (wire name ``lastValue``).
        simulation_type: Generation algorithm (wire name ``simulationType``).
        frequency_ms: Tick interval in milliseconds (wire name ``frequencyMs``).
        active: ``True`` while the device is scheduled.
        timestamp: Epoch milliseconds of the last update.
    """

    model_config = {"populate_by_name": True}

    id: str
    name: str
    device_type: DeviceType = Field(alias="type")
    min_value: float = Field(alias="min")
    max_value: float = Field(alias="max")
    current_val: float = Field(alias="currentVal")
    last_value: float = Field(alias="lastValue")
    simulation_type: SimulationType = Field(alias="simulationType")
    frequency_ms: int = Field(alias="frequencyMs")
    active: bool = True
    timestamp: int = Field(default_factory=now_ms)

    @classmethod
    def from_config(cls, device_id: str, config: SimulationConfig) -> SimulatedDevice:
        """Build a fresh record with both values at the range midpoint."""
        return cls(
            id=device_id,
            name=config.name,
            device_type=config.device_type,
            min_value=config.min_value,
            max_value=config.max_value,
            current_val=config.midpoint,
            last_value=config.midpoint,
            simulation_type=config.simulation_type,
            frequency_ms=config.frequency_ms,
            active=True,
        )

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def snapshot(self) -> SimulatedDevice:
        """Return an independent copy of the current state."""
        return self.model_copy()

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation (JSON-safe types)."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        """Return a compact JSON string using wire names."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulatedDevice:
        """Construct a ``SimulatedDevice`` from a wire or Python-named dict."""
        return cls.model_validate(data)
