"""
Headless runner for the NILM event simulator.

Builds the engine and control surface from :class:`SimulatorSettings`, arms
the tick timer on the asyncio event loop, and runs a report loop that logs a
dashboard summary (aggregate power, active devices, history length, status)
every ``report_interval_s`` seconds. This stands in for the dashboard, which
only reads engine snapshots.

Graceful shutdown on SIGTERM/SIGINT sets a shared asyncio.Event; the report
loop finishes its current iteration, the tick timer is cancelled, and a final
summary is logged.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-17: Pass the configured log level to configure_logging
- 2026-10-17: Add clock override to build_control
- 2026-10-17: Initial creation (STORY-011)

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
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from nilm.src.control import ControlSurface
from nilm.src.engine import SimulationEngine

if TYPE_CHECKING:
    from collections.abc import Callable

    from nilm.src.config import SimulatorSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the simulator.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

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
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: SimulatorSettings) -> None:
    """Log the effective configuration at startup."""
    logger.info(
        "Simulator starting with config: "
        "speed_multiplier=%s, start_running=%s, "
        "history_capacity=%s, history_prefill=%s, "
        "base_interval_ms=%s, min_interval_ms=%s, "
        "seed=%s, report_interval_s=%s, log_level=%s",
        settings.speed_multiplier,
        settings.start_running,
        settings.history_capacity,
        settings.history_prefill,
        settings.base_interval_ms,
        settings.min_interval_ms,
        settings.seed,
        settings.report_interval_s,
        settings.log_level,
    )


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_control(
    settings: SimulatorSettings,
    *,
    clock: Callable[[], datetime] | None = None,
) -> ControlSurface:
    """Create the engine and its control surface from settings.

    *clock* overrides the engine's wall clock (UTC now).
    """
    engine = SimulationEngine(
        history_capacity=settings.history_capacity,
        history_prefill=settings.history_prefill,
        seed=settings.seed,
        clock=clock,
    )
    return ControlSurface(
        engine,
        running=settings.start_running,
        speed_multiplier=settings.speed_multiplier,
        base_interval_ms=settings.base_interval_ms,
        min_interval_ms=settings.min_interval_ms,
    )


# ---------------------------------------------------------------------------
# Report loop
# ---------------------------------------------------------------------------


def _report_once(control: ControlSurface) -> None:
    """Log one dashboard summary line from a fresh snapshot."""
    snap = control.snapshot()
    active = [device.label for device, _ in control.engine.active_devices()]
    logger.info(
        "Aggregate power %.0f W, active devices %d/%d %s, history %d samples, status=%s speed=%.2fx",
        snap.total_power_w,
        snap.active_count,
        len(snap.devices),
        active,
        len(snap.history),
        "receiving" if snap.running else "paused",
        snap.speed_multiplier,
    )


async def _report_loop(
    *,
    control: ControlSurface,
    report_interval_s: float,
    shutdown_event: asyncio.Event,
) -> None:
    """Log a summary every *report_interval_s* until shutdown_event is set."""
    logger.info("Report loop started (interval=%ss)", report_interval_s)
    while not shutdown_event.is_set():
        try:
            _report_once(control)
        except Exception:
            logger.error("Report cycle error", exc_info=True)
        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=report_interval_s,
            )
    logger.info("Report loop stopped")


async def run_simulation(
    *,
    control: ControlSurface,
    report_interval_s: float,
    shutdown_event: asyncio.Event,
) -> None:
    """Drive the simulation until shutdown.

    Attaches the control surface to the running loop, runs the report loop,
    and always cancels the tick timer on exit.
    """
    control.attach()
    try:
        await _report_loop(
            control=control,
            report_interval_s=report_interval_s,
            shutdown_event=shutdown_event,
        )
    finally:
        control.close()
    _report_once(control)
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build components, run until signalled.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    from nilm.src.config import SimulatorSettings

    settings = SimulatorSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    await run_simulation(
        control=build_control(settings),
        report_interval_s=settings.report_interval_s,
        shutdown_event=shutdown_event,
    )


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event."""
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the simulator."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
