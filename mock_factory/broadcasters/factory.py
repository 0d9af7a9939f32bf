"""Build broadcasters from the ``broadcasters:`` section of a YAML config.

Only broadcasters whose settings are plain data can be declared this way.
A :class:`~mock_factory.broadcasters.callback.CallbackBroadcaster` needs a
Python callable, so pass it to :class:`~mock_factory.engine.SimulationEngine`
directly instead.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from mock_factory.broadcasters.base import Broadcaster

__all__ = ["create_broadcaster", "register_broadcaster"]

logger = logging.getLogger("mock_factory.broadcasters.factory")

# type name -> (module path, class name); imported on first use
_BROADCASTER_REGISTRY: dict[str, tuple[str, str]] = {
    "console": ("mock_factory.broadcasters.console", "ConsoleBroadcaster"),
    "hub": ("mock_factory.broadcasters.hub", "TelemetryHub"),
    "webhook": ("mock_factory.broadcasters.webhook", "WebhookBroadcaster"),
}


def create_broadcaster(config: dict[str, Any]) -> Broadcaster:
    """Instantiate the broadcaster named by ``config["type"]``.

    Remaining keys become constructor keyword arguments, e.g.
    ``{"type": "webhook", "url": "https://example.com/ingest"}``.

    Raises:
        ValueError: ``type`` is missing or not registered.
    """
    settings = dict(config)
    kind = str(settings.pop("type", "") or "").lower().strip()
    if not kind:
        raise ValueError("Broadcaster config must include a 'type' key")
    if kind not in _BROADCASTER_REGISTRY:
        raise ValueError(f"Unknown broadcaster type '{kind}'. Available: {sorted(_BROADCASTER_REGISTRY)}")

    module_path, class_name = _BROADCASTER_REGISTRY[kind]
    cls = getattr(importlib.import_module(module_path), class_name)
    logger.debug("Creating %s broadcaster with %s", kind, sorted(settings))
    return cls(**settings)


def register_broadcaster(name: str, module_path: str, class_name: str) -> None:
    """Make a custom broadcaster available to YAML configs as ``type: <name>``."""
    _BROADCASTER_REGISTRY[name.lower().strip()] = (module_path, class_name)
