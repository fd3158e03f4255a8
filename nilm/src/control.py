"""
Control surface: run/pause, speed, and manual toggles over a tick timer.

Schedules engine ticks on an asyncio event loop with ``loop.call_later``.
Exactly one timer handle is pending at a time: every reschedule cancels the
pending handle before arming a new one, so repeated speed changes never pile
up timers. Pausing only cancels the pending timer; a tick that is already
running completes, and device state and history are left as they are.

The control surface is bound to one event loop and its methods must be called
from that loop's thread. The engine it drives is lock-protected and may also
be read from other threads.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
import math

from nilm.src.engine import SimulationEngine
from nilm.src.errors import InvalidConfigurationError
from nilm.src.generator import BASE_INTERVAL_MS, MIN_INTERVAL_MS, tick_interval_ms
from nilm.src.models import DeviceState, EngineSnapshot

logger = logging.getLogger(__name__)


def _validate_positive(name: str, value: float) -> float:
    """Return *value* as float, or raise if it is not a finite number > 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigurationError(f"{name} must be a number (got {value!r})")
    if not math.isfinite(value) or value <= 0:
        raise InvalidConfigurationError(f"{name} must be > 0 (got {value!r})")
    return float(value)


class ControlSurface:
    """Write API and scheduling for a :class:`SimulationEngine`.

    Args:
        engine: The engine to drive.
        running: Whether ticks are scheduled once attached to a loop.
        speed_multiplier: Initial speed multiplier (> 0).
        base_interval_ms: Tick interval at speed 1.0.
        min_interval_ms: Fastest allowed tick interval.

    Raises:
        InvalidConfigurationError: If any numeric argument is not positive.
    """

    def __init__(
        self,
        engine: SimulationEngine,
        *,
        running: bool = True,
        speed_multiplier: float = 1.0,
        base_interval_ms: float = BASE_INTERVAL_MS,
        min_interval_ms: float = MIN_INTERVAL_MS,
    ) -> None:
        self.engine = engine
        self._speed = _validate_positive("speed_multiplier", speed_multiplier)
        self._base_interval_ms = _validate_positive("base_interval_ms", base_interval_ms)
        self._min_interval_ms = _validate_positive("min_interval_ms", min_interval_ms)
        self._running = bool(running)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.TimerHandle | None = None

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def speed_multiplier(self) -> float:
        return self._speed

    @property
    def interval_ms(self) -> float:
        """Delay used for the next scheduled tick."""
        return tick_interval_ms(
            self._speed,
            base_interval_ms=self._base_interval_ms,
            min_interval_ms=self._min_interval_ms,
        )

    @property
    def timer_pending(self) -> bool:
        """True while a tick timer is armed."""
        return self._timer is not None

    def snapshot(self) -> EngineSnapshot:
        """Return engine state together with the current control settings."""
        return self.engine.snapshot(
            running=self._running,
            speed_multiplier=self._speed,
            tick_interval_ms=self.interval_ms,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Bind to an event loop and arm the first timer if running.

        Args:
            loop: Loop to schedule on. Defaults to the running loop.
        """
        self._loop = loop if loop is not None else asyncio.get_running_loop()
        logger.info(
            "Control surface attached (running=%s, speed=%.2f, interval=%.0fms)",
            self._running,
            self._speed,
            self.interval_ms,
        )
        self._reschedule()

    def close(self) -> None:
        """Cancel any pending timer and detach from the loop."""
        self._cancel_timer()
        self._loop = None

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def set_running(self, running: bool) -> None:
        """Resume or pause automatic ticks without touching engine state."""
        running = bool(running)
        if running == self._running:
            return
        self._running = running
        logger.info("Simulation %s", "resumed" if running else "paused")
        self._reschedule()

    def set_speed(self, multiplier: float) -> None:
        """Change the speed multiplier and re-arm the tick timer.

        Raises:
            InvalidConfigurationError: If *multiplier* is not a finite
                number > 0. The previous multiplier stays in effect.
        """
        try:
            speed = _validate_positive("speed_multiplier", multiplier)
        except InvalidConfigurationError:
            logger.warning(
                "Rejected speed multiplier %r; keeping %.2f", multiplier, self._speed
            )
            raise
        self._speed = speed
        logger.info("Speed set to %.2f (interval=%.0fms)", speed, self.interval_ms)
        self._reschedule()

    def toggle_device(self, device_id: str) -> DeviceState:
        """Manually flip one device. See :meth:`SimulationEngine.toggle_device`."""
        return self.engine.toggle_device(device_id)

    # ------------------------------------------------------------------
    # Timer handling
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _reschedule(self) -> None:
        """Cancel the pending timer and arm one new timer if running."""
        self._cancel_timer()
        if self._loop is None or not self._running:
            return
        self._timer = self._loop.call_later(self.interval_ms / 1000.0, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if not self._running:
            return
        try:
            self.engine.tick()
        except Exception:
            logger.error("Tick failed", exc_info=True)
        self._reschedule()
