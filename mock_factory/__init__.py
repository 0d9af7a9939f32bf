"""Mock Factory - simulate a fleet of industrial sensors and broadcast
their readings to live subscribers.

Quick start::

    from mock_factory import SimulationEngine
    from mock_factory.broadcasters import ConsoleBroadcaster

    engine = SimulationEngine(broadcasters=[ConsoleBroadcaster()])
    engine.commission({"name": "Boiler Temp", "type": "TEMPERATURE",
                       "min": 0, "max": 150, "frequencyMs": 500,
                       "simulationType": "SINE_WAVE"})
    engine.run(duration_s=10)
"""

from __future__ import annotations

from mock_factory.engine import SimulationEngine
from mock_factory.errors import (
    DeviceNotFoundError,
    DeviceValidationError,
    MockFactoryError,
    StrategyResolutionError,
)
from mock_factory.models import DeviceType, SimulatedDevice, SimulationConfig, SimulationType
from mock_factory.registry import DeviceRegistry

__all__ = [
    "DeviceNotFoundError",
    "DeviceRegistry",
    "DeviceType",
    "DeviceValidationError",
    "MockFactoryError",
    "SimulatedDevice",
    "SimulationConfig",
    "SimulationEngine",
    "SimulationType",
    "StrategyResolutionError",
]

__version__ = "0.1.0"
