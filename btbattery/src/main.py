"""
Sampling loop and process entrypoint for the Bluetooth battery agent.

At startup the configured hardware address is resolved to a BlueZ object
path once. Then, every ``interval`` seconds, one tick:

1. Reads a DeviceSnapshot (a read error counts as disconnected).
2. Feeds the connection state to the ConnectionTracker, which logs
   "Connected" / "Disconnected" only on state edges.
3. Shapes the snapshot into the ``battery_level`` and ``connected`` gauges.
4. Pushes both gauges to the Pushgateway (a failure is logged, never fatal).

Startup failures (bad configuration, unreachable bus, enumeration failure,
unknown device) end the process with exit status 1. SIGTERM/SIGINT stop the
loop before the next tick and the process exits with 128 + signum; there is
no final flush.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-19: Exit with 128 + signum when a signal stops the loop
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from btbattery.src.gateway import PushError
from btbattery.src.reader import ReadError
from btbattery.src.shaper import shape

if TYPE_CHECKING:
    from btbattery.src.config import AgentSettings
    from btbattery.src.gateway import GatewayClient
    from btbattery.src.health import HealthWriter
    from btbattery.src.reader import DeviceReader

logger = logging.getLogger(__name__)


class StartupError(Exception):
    """The agent cannot start; the process exits with status 1."""


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging() -> None:
    """Configure structured JSON logging on stderr for the agent."""

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.INFO)


def log_config_summary(settings: AgentSettings) -> None:
    """Log the effective configuration at startup."""
    logger.info(
        "Battery agent starting with config: "
        "device=%s, endpoint=%s, job=%s, interval=%ss, adapter=%s, "
        "tls_verify=%s, request_timeout_s=%s, health_path=%s",
        settings.device,
        settings.endpoint,
        settings.job,
        settings.interval,
        settings.adapter,
        settings.tls_verify,
        settings.request_timeout_s,
        settings.health_path or "disabled",
    )
    if not settings.tls_verify and settings.endpoint.lower().startswith("https://"):
        logger.warning(
            "TLS certificate verification is disabled for %s", settings.endpoint
        )


# ---------------------------------------------------------------------------
# Connection edge logger
# ---------------------------------------------------------------------------


class ConnectionTracker:
    """Two-state edge logger for the device link.

    Starts LOST so the first connected observation logs "Connected".
    Only LOST -> PRESENT and PRESENT -> LOST transitions log; repeated
    observations of the same state are silent.
    """

    def __init__(self) -> None:
        self.lost = True

    def observe(self, connected: bool) -> None:
        """Update the state from one tick's observation."""
        if connected and self.lost:
            logger.info("Connected")
            self.lost = False
        elif not connected and not self.lost:
            logger.info("Disconnected")
            self.lost = True


# ---------------------------------------------------------------------------
# Single tick (easily testable)
# ---------------------------------------------------------------------------


async def _sample_once(
    *,
    reader: DeviceReader,
    handle: str,
    gateway: GatewayClient,
    address: str,
    tracker: ConnectionTracker,
    health: HealthWriter | None = None,
) -> bool:
    """Execute a single read-shape-push tick.

    Read and push failures are logged and absorbed so the caller's loop is
    never broken.

    Args:
        reader: Device reader bound to the controller.
        handle: Object path of the target device.
        gateway: Pushgateway client.
        address: Configured target address used as the ``address`` label.
        tracker: Connection edge logger carried across ticks.
        health: HealthWriter instance, or None to skip health writes.

    Returns:
        True if the push succeeded, False otherwise.
    """
    try:
        snapshot = await reader.read(handle)
    except ReadError as exc:
        logger.info("Device read failed, reporting disconnected: %s", exc)
        snapshot = None

    connected = snapshot is not None and snapshot.connected
    tracker.observe(connected)
    samples = shape(snapshot, address=address)

    pushed = False
    try:
        await gateway.push(samples)
        pushed = True
    except PushError as exc:
        logger.info("Push failed: %s", exc)

    if health is not None:
        try:
            health.record_sample(connected)
            if pushed:
                health.record_push()
        except OSError:
            logger.warning("Failed to write health file", exc_info=True)

    return pushed


async def run_sampling_loop(
    *,
    reader: DeviceReader,
    handle: str,
    gateway: GatewayClient,
    address: str,
    interval_s: float,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None = None,
) -> None:
    """Run ticks every *interval_s* seconds until shutdown_event is set.

    Args:
        reader: Device reader bound to the controller.
        handle: Object path of the target device.
        gateway: Pushgateway client.
        address: Configured target address.
        interval_s: Seconds to wait after each tick.
        shutdown_event: Event that stops the loop between ticks.
        health: HealthWriter instance, or None to skip health writes.
    """
    logger.info("Sampling loop started (interval=%ss, handle=%s)", interval_s, handle)
    tracker = ConnectionTracker()
    while not shutdown_event.is_set():
        await _sample_once(
            reader=reader,
            handle=handle,
            gateway=gateway,
            address=address,
            tracker=tracker,
            health=health,
        )
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval_s)
    logger.info("Sampling loop stopped")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main(argv: Sequence[str] | None = None) -> int | None:
    """Async entrypoint: load config, resolve the device, run the loop.

    Returns:
        The number of the signal that stopped the loop, or None if the
        loop returned without one.

    Raises:
        StartupError: On any startup-fatal condition.
    """
    configure_logging()

    from btbattery.src.bluez import BluezController
    from btbattery.src.config import ConfigError, load_settings
    from btbattery.src.controller import BusError
    from btbattery.src.directory import BluetoothDirectory, DirectoryError
    from btbattery.src.gateway import GatewayClient
    from btbattery.src.health import HealthWriter
    from btbattery.src.reader import DeviceReader

    try:
        settings = load_settings(argv)
    except ConfigError as exc:
        raise StartupError(f"invalid configuration: {exc}") from exc
    log_config_summary(settings)

    try:
        controller = await BluezController.connect(
            root_path=settings.adapter,
            timeout_s=settings.request_timeout_s,
        )
    except BusError as exc:
        raise StartupError(str(exc)) from exc

    try:
        reader = DeviceReader(controller)
        directory = BluetoothDirectory(controller, reader)
        try:
            handle = await directory.resolve(settings.device)
        except DirectoryError as exc:
            raise StartupError(str(exc)) from exc
        if handle is None:
            raise StartupError(f"no device found '{settings.device}'")

        gateway = GatewayClient(
            settings.endpoint,
            settings.job,
            verify_tls=settings.tls_verify,
            timeout_s=settings.request_timeout_s,
        )
        health = HealthWriter(settings.health_path) if settings.health_path else None

        shutdown_event = asyncio.Event()
        received: list[int] = []
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _handle_signal, shutdown_event, received, sig)

        await run_sampling_loop(
            reader=reader,
            handle=handle,
            gateway=gateway,
            address=settings.device,
            interval_s=settings.interval,
            shutdown_event=shutdown_event,
            health=health,
        )
    finally:
        controller.disconnect()

    return received[0] if received else None


def _handle_signal(
    shutdown_event: asyncio.Event, received: list[int], signum: int
) -> None:
    """Handle SIGTERM/SIGINT by recording the signal and stopping the loop."""
    logger.info("Received signal %d, stopping", signum)
    received.append(signum)
    shutdown_event.set()


def main(argv: Sequence[str] | None = None) -> None:
    """Synchronous entrypoint.

    Exits with status 1 on startup failure and with 128 + signum when a
    signal stops the loop. The loop never finishes on its own, so status 0
    is never used.
    """
    try:
        signum = asyncio.run(async_main(argv))
    except StartupError as exc:
        logger.error("Startup failed: %s", exc)
        sys.exit(1)
    if signum is not None:
        sys.exit(128 + signum)


if __name__ == "__main__":
    main()
