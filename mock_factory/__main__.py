"""CLI entry point for Mock Factory.

Usage::

    mock-factory run --duration 10
    mock-factory run -s sine_wave -s chaos --frequency-ms 250
    mock-factory run --config factory.yaml
    mock-factory serve --config factory.yaml --port 8080
    mock-factory list-strategies
    mock-factory list-device-types
    mock-factory list-broadcasters
    mock-factory init-config --output factory.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap

# ---------------------------------------------------------------------------
# Extras mapping for list-broadcasters display
# ---------------------------------------------------------------------------
_BROADCASTER_EXTRAS: dict[str, str | None] = {
    "console": None,
    "hub": None,
    "webhook": "webhook",
}

_STRATEGY_DESCRIPTIONS: dict[str, str] = {
    "REALISTIC": "Brownian-motion walk, +/-1.5% of span per tick, bounces off the limits",
    "RANDOM": "Wider random walk, +/-5% of span per tick, bounces off the limits",
    "SINE_WAVE": "Smooth oscillation over 200 ticks, phase shared by all sine devices",
    "CHAOS": "Mostly stable, 5% of ticks inject -999 or 2*max faults",
}

# One demo device per strategy for quick runs without a config file
_DEMO_DEVICES: dict[str, dict[str, object]] = {
    "REALISTIC": {"name": "Boiler-Room Temp", "type": "TEMPERATURE", "min": 0.0, "max": 150.0},
    "RANDOM": {"name": "Pump-3 Vibration", "type": "VIBRATION", "min": 0.0, "max": 25.0},
    "SINE_WAVE": {"name": "Steam Header Pressure", "type": "PRESSURE", "min": 0.0, "max": 10.0},
    "CHAOS": {"name": "Cooling-Water Flow", "type": "FLOW_RATE", "min": 0.0, "max": 500.0},
}

# ---------------------------------------------------------------------------
# Sample YAML config template for init-config
# ---------------------------------------------------------------------------
_SAMPLE_CONFIG = """\
# Mock Factory configuration

engine:
  pool_size: 16                       # worker threads for blocking broadcasters
  # duration_s: 60                    # optional: auto-stop headless runs after N seconds
  # log_level: INFO                   # DEBUG, INFO, WARNING, ERROR

# Devices commissioned at start-up (more can be added over the HTTP API)
devices:
  - name: Boiler-Room Temp
    type: TEMPERATURE                 # TEMPERATURE, PRESSURE, VIBRATION, FLOW_RATE
    min: 0
    max: 150
    frequencyMs: 1000                 # scan-cycle interval
    simulationType: REALISTIC         # REALISTIC, RANDOM, SINE_WAVE, CHAOS

  - name: Steam Header Pressure
    type: PRESSURE
    min: 0
    max: 10
    frequencyMs: 500
    simulationType: SINE_WAVE

  - name: Cooling-Water Flow
    type: FLOW_RATE
    min: 0
    max: 500
    frequencyMs: 2000
    simulationType: CHAOS

# Broadcasters receive every reading (topic "telemetry.<device id>").
broadcasters:
  - type: console
    fmt: text                         # text or json

  # - type: webhook
  #   url: https://example.com/ingest
  #   timeout_s: 5.0
  #   headers:
  #     Authorization: Bearer my-token

# HTTP + WebSocket façade ('mock-factory serve')
api:
  host: 127.0.0.1
  port: 8080
"""

_KNOWN_COMMANDS = {"run", "serve", "list-strategies", "list-device-types", "list-broadcasters", "init-config"}


# ======================================================================
# Main entry point
# ======================================================================


def main(argv: list[str] | None = None) -> None:
    epilog = textwrap.dedent("""\
        examples:
          mock-factory run --duration 10
          mock-factory run -s sine_wave -s chaos --frequency-ms 250
          mock-factory run --config factory.yaml
          mock-factory serve --config factory.yaml --port 8080
          mock-factory list-strategies
          mock-factory init-config --output factory.yaml
    """)

    parser = argparse.ArgumentParser(
        prog="mock-factory",
        description="Simulate industrial sensors and broadcast their readings.",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", title="commands")

    # -- run ---------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        help="Run the engine headless, printing readings to the console.",
    )
    run_parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML config file. When set, --strategy/--frequency-ms are ignored.",
    )
    run_parser.add_argument(
        "--strategy",
        "-s",
        action="append",
        dest="strategies",
        type=str.upper,
        choices=list(_DEMO_DEVICES),
        help="Commission one demo device per strategy (repeatable). Default: all four.",
    )
    run_parser.add_argument(
        "--frequency-ms",
        type=int,
        default=1000,
        help="Scan-cycle interval for demo devices in milliseconds (default: 1000).",
    )
    run_parser.add_argument(
        "--pool-size",
        type=int,
        default=None,
        help="Engine worker pool size (default: 16, or the config value).",
    )
    run_parser.add_argument(
        "--duration",
        "-d",
        type=float,
        default=None,
        help="Run duration in seconds (default: indefinite, Ctrl-C to stop).",
    )
    run_parser.add_argument(
        "--format",
        type=str,
        default="text",
        choices=["text", "json"],
        help="Console output format (default: text).",
    )
    run_parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO).",
    )

    # -- serve -------------------------------------------------------------
    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve the REST + WebSocket API (requires the 'api' extra).",
    )
    serve_parser.add_argument("--config", "-c", type=str, default=None, help="Path to YAML config file.")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address (default: 127.0.0.1).")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port (default: 8080).")
    serve_parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO).",
    )

    # -- list-* ------------------------------------------------------------
    subparsers.add_parser("list-strategies", help="List the signal generation strategies.")
    subparsers.add_parser("list-device-types", help="List the supported device types.")
    subparsers.add_parser("list-broadcasters", help="List broadcaster types and install instructions.")

    # -- init-config -------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init-config",
        help="Generate a sample YAML configuration file.",
    )
    init_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write config to this file instead of stdout.",
    )

    # Bare flags (e.g. `mock-factory --duration 5`) imply the run command
    raw_args = argv if argv is not None else sys.argv[1:]
    if raw_args and raw_args[0] not in _KNOWN_COMMANDS and raw_args[0] not in ("-h", "--help"):
        raw_args = ["run", *list(raw_args)]

    args = parser.parse_args(raw_args)

    if args.command is None:
        parser.print_help()
        return

    # -- Dispatch ----------------------------------------------------------
    if args.command == "run":
        _cmd_run(args)
    elif args.command == "serve":
        _cmd_serve(args)
    elif args.command == "list-strategies":
        _cmd_list_strategies()
    elif args.command == "list-device-types":
        _cmd_list_device_types()
    elif args.command == "list-broadcasters":
        _cmd_list_broadcasters()
    elif args.command == "init-config":
        _cmd_init_config(args.output)
    else:
        parser.print_help()


# ======================================================================
# Command implementations
# ======================================================================


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(name)-30s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )


def _cmd_run(args: argparse.Namespace) -> None:
    """Run the engine headless until the duration elapses or Ctrl-C."""
    from mock_factory.broadcasters.console import ConsoleBroadcaster
    from mock_factory.engine import DEFAULT_POOL_SIZE, SimulationEngine

    _setup_logging(args.log_level)

    if args.config:
        from mock_factory.config import load_yaml_config

        cfg = load_yaml_config(args.config)
        logging.getLogger().setLevel(getattr(logging, cfg.log_level, logging.INFO))
        if args.pool_size is not None:
            cfg = cfg.model_copy(update={"pool_size": args.pool_size})

        extra = [] if cfg.broadcaster_configs else [ConsoleBroadcaster(fmt=args.format)]
        engine = SimulationEngine.from_config(cfg, extra_broadcasters=extra)
        devices = cfg.devices
        duration = args.duration if args.duration is not None else cfg.duration_s
    else:
        engine = SimulationEngine(
            broadcasters=[ConsoleBroadcaster(fmt=args.format)],
            pool_size=args.pool_size or DEFAULT_POOL_SIZE,
        )
        devices = [
            {**_DEMO_DEVICES[kind], "simulationType": kind, "frequencyMs": args.frequency_ms}
            for kind in (args.strategies or list(_DEMO_DEVICES))
        ]
        duration = args.duration

    engine.start()
    engine.commission_all(devices)
    engine.run(duration_s=duration)


def _cmd_serve(args: argparse.Namespace) -> None:
    """Serve the HTTP façade with uvicorn."""
    try:
        import uvicorn
    except ImportError:
        print("Error: the 'serve' command needs the api extra: pip install mock-factory[api]")
        sys.exit(1)

    from mock_factory.api import create_app
    from mock_factory.broadcasters.hub import TelemetryHub
    from mock_factory.config import MockFactoryConfig, load_yaml_config
    from mock_factory.engine import SimulationEngine

    _setup_logging(args.log_level)
    cfg = load_yaml_config(args.config) if args.config else MockFactoryConfig()

    hub = TelemetryHub()
    engine = SimulationEngine.from_config(cfg, extra_broadcasters=[hub])
    app = create_app(engine, hub, devices=cfg.devices)

    uvicorn.run(
        app,
        host=args.host or cfg.api_host,
        port=args.port or cfg.api_port,
        log_level=args.log_level.lower(),
    )


# -- list-strategies --------------------------------------------------------


def _cmd_list_strategies() -> None:
    from mock_factory.models import SimulationType

    print(f"\n{'Strategy':<12} {'Behaviour'}")
    print("-" * 84)
    for kind in SimulationType:
        print(f"{kind.value:<12} {_STRATEGY_DESCRIPTIONS.get(kind.value, '')}")
    print()


# -- list-device-types ------------------------------------------------------


def _cmd_list_device_types() -> None:
    from mock_factory.models import DeviceType

    print("\nDevice types:")
    for device_type in DeviceType:
        print(f"  {device_type.value}")
    print()


# -- list-broadcasters ------------------------------------------------------


def _cmd_list_broadcasters() -> None:
    from mock_factory.broadcasters.factory import _BROADCASTER_REGISTRY

    print(f"\n{'Type':<10} {'Class':<22} {'Install Extra'}")
    print("-" * 62)
    for name, (_module_path, class_name) in _BROADCASTER_REGISTRY.items():
        extra = _BROADCASTER_EXTRAS.get(name)
        extra_str = "(built-in)" if extra is None else f"pip install mock-factory[{extra}]"
        print(f"{name:<10} {class_name:<22} {extra_str}")
    print()


# -- init-config ------------------------------------------------------------


def _cmd_init_config(output_path: str | None) -> None:
    if output_path:
        from pathlib import Path

        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_text(_SAMPLE_CONFIG)
        print(f"Sample config written to {output_path}")
    else:
        print(_SAMPLE_CONFIG)


# ======================================================================
if __name__ == "__main__":
    main()
