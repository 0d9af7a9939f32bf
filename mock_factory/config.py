"""Configuration loader for Mock Factory YAML files.

Parses YAML files with the following top-level sections::

    engine:        # pool size, log level, optional run duration
    devices:       # devices commissioned at start-up
    broadcasters:  # list of broadcaster configs
    api:           # bind address for the HTTP façade

Example:

.. code-block:: yaml

    engine:
      pool_size: 16
      log_level: INFO

    devices:
      - name: Boiler-Room Temp
        type: TEMPERATURE
        min: 0
        max: 150
        frequencyMs: 1000
        simulationType: REALISTIC

    broadcasters:
      - type: console
        fmt: text

    api:
      host: 127.0.0.1
      port: 8080
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from mock_factory.engine import DEFAULT_POOL_SIZE
from mock_factory.errors import DeviceValidationError
from mock_factory.models import SimulationConfig

__all__ = ["MockFactoryConfig", "load_yaml_config"]

logger = logging.getLogger("mock_factory.config")


class MockFactoryConfig(BaseModel):
    """Parsed representation of the full YAML configuration.

    Attributes:
        pool_size: Worker threads available to the engine.
        log_level: Logging level string.
        duration_s: Optional run duration (seconds) for headless runs.
        devices: Devices to commission at start-up.
        broadcaster_configs: Raw dicts passed to the broadcaster factory.
        api_host: Bind address for ``mock-factory serve``.
        api_port: Bind port for ``mock-factory serve``.
    """

    pool_size: int = Field(default=DEFAULT_POOL_SIZE, ge=1)
    log_level: str = "INFO"
    duration_s: float | None = None
    devices: list[SimulationConfig] = Field(default_factory=list)
    broadcaster_configs: list[dict[str, Any]] = Field(default_factory=list)
    api_host: str = "127.0.0.1"
    api_port: int = 8080


def load_yaml_config(path: str | Path) -> MockFactoryConfig:
    """Load and validate a YAML configuration file.

    Raises:
        FileNotFoundError: *path* does not exist.
        DeviceValidationError: A device entry is malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    # --- engine section ---
    engine_section = raw.get("engine") or {}
    duration_s = engine_section.get("duration_s")

    # --- api section ---
    api_section = raw.get("api") or {}

    config = MockFactoryConfig(
        pool_size=int(engine_section.get("pool_size", DEFAULT_POOL_SIZE)),
        log_level=str(engine_section.get("log_level", "INFO")).upper(),
        duration_s=float(duration_s) if duration_s is not None else None,
        devices=_parse_devices(raw.get("devices") or []),
        broadcaster_configs=raw.get("broadcasters") or [],
        api_host=str(api_section.get("host", "127.0.0.1")),
        api_port=int(api_section.get("port", 8080)),
    )

    logger.info(
        "Loaded config: %d devices, %d broadcasters, pool_size=%d",
        len(config.devices),
        len(config.broadcaster_configs),
        config.pool_size,
    )
    return config


def _parse_devices(device_dicts: list[dict[str, Any]]) -> list[SimulationConfig]:
    """Convert raw YAML device dicts into ``SimulationConfig`` instances."""
    devices: list[SimulationConfig] = []
    for index, d in enumerate(device_dicts):
        try:
            devices.append(SimulationConfig.model_validate(d))
        except ValidationError as exc:
            name = d.get("name", "?") if isinstance(d, dict) else "?"
            raise DeviceValidationError(f"Invalid device #{index} ({name}): {exc}") from exc
    return devices
