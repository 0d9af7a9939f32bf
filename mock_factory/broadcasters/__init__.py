"""Pluggable broadcasters for the Mock Factory engine.

Import any broadcaster you need directly from this package::

    from mock_factory.broadcasters import ConsoleBroadcaster, TelemetryHub
"""

from __future__ import annotations

import importlib
from typing import Any

from mock_factory.broadcasters.base import Broadcaster, telemetry_topic
from mock_factory.broadcasters.callback import CallbackBroadcaster
from mock_factory.broadcasters.console import ConsoleBroadcaster
from mock_factory.broadcasters.fanout import FanoutBroadcaster
from mock_factory.broadcasters.hub import Subscription, TelemetryHub

# Lazy-loaded broadcasters (require optional extras)
#   from mock_factory.broadcasters.webhook import WebhookBroadcaster

__all__ = [
    "Broadcaster",
    "CallbackBroadcaster",
    "ConsoleBroadcaster",
    "FanoutBroadcaster",
    "Subscription",
    "TelemetryHub",
    "telemetry_topic",
]


def __getattr__(name: str) -> Any:
    """Lazy-import broadcasters that require optional dependencies."""
    _lazy = {
        "WebhookBroadcaster": "mock_factory.broadcasters.webhook",
    }
    if name in _lazy:
        mod = importlib.import_module(_lazy[name])
        return getattr(mod, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
