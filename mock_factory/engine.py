"""Simulation engine - owns the device registry and one scan-cycle task
per active device.

Every scan cycle is an asyncio task on a single event loop that the engine
runs in a dedicated background thread.  Blocking broadcaster work
(synchronous callbacks) is offloaded to a bounded thread pool whose size is
the explicit ``pool_size`` setting.  The public methods (``commission``,
``decommission``, ``list_devices``, ``get_device``) are plain synchronous
calls and are safe to use from any thread.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import logging
import signal
import threading
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from mock_factory.broadcasters.base import Broadcaster, telemetry_topic
from mock_factory.broadcasters.callback import CallbackBroadcaster
from mock_factory.broadcasters.fanout import FanoutBroadcaster
from mock_factory.errors import DeviceNotFoundError, DeviceValidationError
from mock_factory.models import SimulatedDevice, SimulationConfig, SimulationType, now_ms, range_error
from mock_factory.registry import DeviceRegistry
from mock_factory.strategies import DataGenerationStrategy, build_strategies, resolve_strategy

if TYPE_CHECKING:
    from mock_factory.config import MockFactoryConfig

__all__ = ["DEFAULT_POOL_SIZE", "SimulationEngine"]

logger = logging.getLogger("mock_factory.engine")

DEFAULT_POOL_SIZE = 16


class SimulationEngine:
    """The factory floor: commissions devices and drives their scan cycles.

    Example::

        from mock_factory import SimulationEngine
        from mock_factory.broadcasters import ConsoleBroadcaster

        engine = SimulationEngine(broadcasters=[ConsoleBroadcaster()])
        engine.commission({"name": "Boiler Temp", "type": "TEMPERATURE",
                           "min": 0, "max": 150, "simulationType": "REALISTIC"})
        engine.run(duration_s=10)

    Parameters:
        broadcasters:
            Where every reading is published.  Bare callables
            ``(topic, device) -> Any`` are wrapped in
            :class:`CallbackBroadcaster`.
        pool_size:
            Worker threads available for blocking broadcaster work.  Bounds
            how many devices can publish with low jitter at the same time.
        strategies:
            Strategy instance per simulation type.  Defaults to one fresh
            instance of each built-in strategy; all devices of a type share
            it (and, for sine waves, its phase counter).
        registry:
            Device registry to use (a new, empty one by default).
    """

    def __init__(
        self,
        *,
        broadcasters: Iterable[Broadcaster | Callable[[str, SimulatedDevice], Any]] | None = None,
        pool_size: int = DEFAULT_POOL_SIZE,
        strategies: Mapping[SimulationType, DataGenerationStrategy] | None = None,
        registry: DeviceRegistry | None = None,
    ) -> None:
        if pool_size < 1:
            raise ValueError(f"pool_size must be at least 1, got {pool_size}")
        self.pool_size = pool_size
        self.registry = registry or DeviceRegistry()
        self._strategies = dict(strategies) if strategies is not None else build_strategies()
        self._broadcasters: list[Broadcaster] = []
        self._fanout: FanoutBroadcaster | None = None

        self._tasks: dict[str, concurrent.futures.Future[None]] = {}
        self._tasks_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._executor: concurrent.futures.ThreadPoolExecutor | None = None

        for broadcaster in broadcasters or []:
            self.add_broadcaster(broadcaster)

    # ------------------------------------------------------------------
    # Broadcaster management
    # ------------------------------------------------------------------

    def add_broadcaster(self, broadcaster: Broadcaster | Callable[[str, SimulatedDevice], Any]) -> None:
        """Register a broadcaster (or callable) to receive every reading.

        Must be called before the engine starts.
        """
        if self.is_running:
            raise RuntimeError("Cannot add broadcasters to a running engine")
        if not isinstance(broadcaster, Broadcaster):
            broadcaster = CallbackBroadcaster(broadcaster)
        self._broadcasters.append(broadcaster)

    @property
    def broadcasters(self) -> list[Broadcaster]:
        return list(self._broadcasters)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._loop is not None

    def start(self) -> None:
        """Start the event-loop thread and connect broadcasters.  Idempotent."""
        with self._state_lock:
            if self._loop is not None:
                return

            if not self._broadcasters:
                logger.warning("No broadcasters registered - readings will not leave the engine.")

            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self.pool_size,
                thread_name_prefix="mock-factory-worker",
            )
            loop = asyncio.new_event_loop()
            loop.set_default_executor(self._executor)

            ready = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(loop, ready),
                name="mock-factory-engine",
                daemon=True,
            )
            self._thread.start()
            ready.wait()

            self._fanout = FanoutBroadcaster(self._broadcasters)
            asyncio.run_coroutine_threadsafe(self._fanout.connect(), loop).result()
            self._loop = loop

        logger.info(
            "Engine started: pool_size=%d, %d broadcasters",
            self.pool_size,
            len(self._broadcasters),
        )

    def shutdown(self, timeout_s: float = 5.0) -> None:
        """Cancel every scan cycle and stop the event loop.

        In-flight ticks are not waited for.  Registered devices stay in the
        registry, marked inactive.
        """
        with self._state_lock:
            loop = self._loop
            if loop is None:
                return
            self._loop = None

            with self._tasks_lock:
                futures = list(self._tasks.values())
                self._tasks.clear()
            logger.info("Shutting down - cancelling %d simulations...", len(futures))
            for future in futures:
                future.cancel()
            for device in self.registry.values():
                device.active = False

            if self._fanout is not None:
                try:
                    asyncio.run_coroutine_threadsafe(self._fanout.close(), loop).result(timeout_s)
                except Exception as exc:
                    logger.warning("Broadcaster shutdown failed: %s", exc)
                self._fanout = None

            loop.call_soon_threadsafe(loop.stop)
            if self._thread is not None:
                self._thread.join(timeout_s)
                self._thread = None
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None

        logger.info("Engine stopped.")

    def run(self, duration_s: float | None = None) -> None:
        """Blocking entry point - start, wait, then shut down.

        Parameters:
            duration_s: If provided, stop automatically after this many
                        seconds.  ``None`` means run until Ctrl-C / SIGTERM.
        """
        self.start()
        stop_event = threading.Event()
        previous_handler: Any = None
        installed = False
        # ValueError: signal handlers can only be installed from the main thread
        with contextlib.suppress(ValueError):
            previous_handler = signal.signal(signal.SIGTERM, lambda *_: stop_event.set())
            installed = True

        try:
            if stop_event.wait(timeout=duration_s):
                logger.info("Stop signal received - shutting down")
            else:
                logger.info("Duration reached (%.1fs) - stopping", duration_s)
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            if installed:
                signal.signal(signal.SIGTERM, previous_handler)
            self.shutdown()

    def __enter__(self) -> SimulationEngine:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Device operations
    # ------------------------------------------------------------------

    def commission(self, config: SimulationConfig | Mapping[str, Any]) -> SimulatedDevice:
        """Commission a new device and start its scan cycle.

        The first reading is computed immediately, then every
        ``frequency_ms`` milliseconds.  Starts the engine if needed.

        Returns:
            A snapshot of the freshly registered device.

        Raises:
            DeviceValidationError: The request is malformed.
            StrategyResolutionError: No strategy exists for the requested
                simulation type.
            RuntimeError: The engine was shut down concurrently.
        """
        config = _coerce_config(config)
        strategy = resolve_strategy(config.simulation_type, self._strategies)

        self.start()
        device = SimulatedDevice.from_config(self.registry.new_id(), config)
        # Registration and scheduling are atomic with respect to shutdown()
        with self._state_lock:
            if self._loop is None:
                raise RuntimeError("Engine was shut down while commissioning")
            self.registry.add(device)
            registered = device.snapshot()
            self._schedule(device, strategy)

        logger.info(
            "Device commissioned: %s [%s] - strategy=%s, freq=%dms",
            device.name,
            device.id,
            device.simulation_type,
            device.frequency_ms,
        )
        return registered

    def commission_all(self, configs: Iterable[SimulationConfig | Mapping[str, Any]]) -> list[SimulatedDevice]:
        """Commission several devices; stops at the first invalid one."""
        return [self.commission(config) for config in configs]

    def decommission(self, device_id: str) -> bool:
        """Stop a device's scan cycle and remove it from the registry.

        Returns:
            ``True`` if the device existed and was removed.
        """
        with self._tasks_lock:
            future = self._tasks.pop(device_id, None)
        if future is not None:
            future.cancel()

        device = self.registry.remove(device_id)
        if device is None:
            return False

        device.active = False
        logger.info("Device decommissioned: %s [%s]", device.name, device_id)
        return True

    def remove_device(self, device_id: str) -> None:
        """Like :meth:`decommission` but raises for unknown ids."""
        if not self.decommission(device_id):
            raise DeviceNotFoundError(device_id)

    def list_devices(self) -> list[SimulatedDevice]:
        """Snapshot of every registered device."""
        return [device.snapshot() for device in self.registry.values()]

    def get_device(self, device_id: str) -> SimulatedDevice | None:
        """Snapshot of one device, or ``None`` if unknown."""
        device = self.registry.get(device_id)
        return device.snapshot() if device is not None else None

    def require_device(self, device_id: str) -> SimulatedDevice:
        """Like :meth:`get_device` but raises for unknown ids."""
        device = self.get_device(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    @property
    def device_count(self) -> int:
        return len(self.registry)

    def is_scheduled(self, device_id: str) -> bool:
        """``True`` while a scan-cycle task exists for *device_id*."""
        with self._tasks_lock:
            future = self._tasks.get(device_id)
        return future is not None and not future.done()

    # ------------------------------------------------------------------
    # Scan cycle
    # ------------------------------------------------------------------

    def _schedule(self, device: SimulatedDevice, strategy: DataGenerationStrategy) -> None:
        loop = self._loop
        if loop is None:
            raise RuntimeError("Engine is not running")
        future = asyncio.run_coroutine_threadsafe(self._scan_cycle(device, strategy), loop)
        with self._tasks_lock:
            self._tasks[device.id] = future
        future.add_done_callback(lambda f: self._forget_task(device.id, f))

    def _forget_task(self, device_id: str, future: concurrent.futures.Future[None]) -> None:
        with self._tasks_lock:
            if self._tasks.get(device_id) is future:
                del self._tasks[device_id]

    async def _scan_cycle(self, device: SimulatedDevice, strategy: DataGenerationStrategy) -> None:
        """Tick *device* at its fixed rate until it leaves the registry."""
        loop = asyncio.get_running_loop()
        interval = device.frequency_ms / 1000.0
        tick_count = 0
        try:
            while device.id in self.registry:
                tick_start = loop.time()
                await self._tick(device, strategy)

                tick_count += 1
                if tick_count % 100 == 0:
                    logger.debug("Device [%s] - tick %d", device.id, tick_count)

                tick_elapsed = loop.time() - tick_start
                await asyncio.sleep(max(0.0, interval - tick_elapsed))
        except asyncio.CancelledError:
            logger.debug("Scan cycle cancelled for device [%s] after %d ticks", device.id, tick_count)

    async def _tick(self, device: SimulatedDevice, strategy: DataGenerationStrategy) -> None:
        """One scan cycle: generate, update the record, publish a snapshot."""
        try:
            previous = device.current_val
            value = strategy.generate(previous, device.min_value, device.max_value)

            # Decommissioned while generating - leave the record untouched
            if device.id not in self.registry:
                return

            device.last_value = previous
            device.current_val = value
            device.timestamp = now_ms()

            fanout = self._fanout
            if fanout is not None:
                await fanout.publish(telemetry_topic(device.id), device.snapshot())
        except Exception as exc:
            logger.error("Scan-cycle error for device [%s]: %s", device.id, exc)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop, ready: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()

    # ------------------------------------------------------------------
    # Alternative constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: MockFactoryConfig,
        *,
        extra_broadcasters: Iterable[Broadcaster] | None = None,
    ) -> SimulationEngine:
        """Create an engine with the broadcasters and pool size of *config*.

        Devices listed in the config are not commissioned; call
        :meth:`commission_all` with ``config.devices`` once ready.
        """
        from mock_factory.broadcasters.factory import create_broadcaster

        broadcasters = [create_broadcaster(b) for b in config.broadcaster_configs]
        broadcasters.extend(extra_broadcasters or [])
        return cls(broadcasters=broadcasters, pool_size=config.pool_size)


def _coerce_config(config: SimulationConfig | Mapping[str, Any]) -> SimulationConfig:
    """Validate a commissioning request, raising ``DeviceValidationError``."""
    if not isinstance(config, SimulationConfig):
        try:
            config = SimulationConfig.model_validate(dict(config))
        except ValidationError as exc:
            raise DeviceValidationError(str(exc)) from exc
    # Guard against instances built with model_construct()
    problem = range_error(config.min_value, config.max_value)
    if problem:
        raise DeviceValidationError(problem)
    return config
