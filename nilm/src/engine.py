"""
Simulation engine: single-writer owner of device state and history.

The engine wires the catalog, state store, event generator, aggregator, and
history buffer together. Every mutation -- an automatic tick, a manual toggle,
or an external feed event -- runs under one lock and includes its history
append, so no reader or writer ever sees a half-applied change. Reads take the
same lock and return copies.

Mutations validate first and then apply; a rejected call leaves state
untouched.

CHANGELOG:
- 2026-10-17: Add apply_event for external device feeds (STORY-009)
- 2026-10-17: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from nilm.src.aggregator import compute_total, count_active
from nilm.src.catalog import DeviceCatalog
from nilm.src.errors import InvalidConfigurationError
from nilm.src.generator import EventGenerator
from nilm.src.history import DEFAULT_CAPACITY, HistoryBuffer
from nilm.src.models import (
    AggregatedSample,
    DeviceDescriptor,
    DeviceEvent,
    DeviceState,
    EngineSnapshot,
)
from nilm.src.store import DeviceStateStore

logger = logging.getLogger(__name__)

PREFILL_SPACING = timedelta(seconds=1)
"""Gap between the zero-power samples used to prefill the history."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SimulationEngine:
    """Owns device state and aggregate history for one simulated household.

    Args:
        catalog: Devices to simulate. Defaults to the built-in catalog.
        history_capacity: Maximum number of history samples (> 0).
        history_prefill: Number of zero-power samples, one second apart and
            ending at start time, placed in the history so a chart has a
            baseline before the first tick. Capped at *history_capacity*.
        rng: Random source for the event generator. Takes precedence over
            *seed*.
        seed: Seed for a private ``random.Random`` when *rng* is not given.
        clock: Returns the current time. Defaults to UTC wall clock.

    Raises:
        InvalidConfigurationError: If *history_capacity* is not positive or
            *history_prefill* is negative.
    """

    def __init__(
        self,
        catalog: DeviceCatalog | None = None,
        *,
        history_capacity: int = DEFAULT_CAPACITY,
        history_prefill: int = 0,
        rng: random.Random | None = None,
        seed: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if history_prefill < 0:
            raise InvalidConfigurationError(
                f"History prefill must be >= 0 (got {history_prefill})"
            )
        self.catalog = catalog if catalog is not None else DeviceCatalog.default()
        self._history = HistoryBuffer(history_capacity)
        self._clock = clock if clock is not None else _utcnow
        self._generator = EventGenerator(
            self.catalog,
            rng=rng if rng is not None else random.Random(seed),
        )
        self._lock = threading.RLock()

        now = self._clock()
        self._store = DeviceStateStore(self.catalog, now=now)
        count = min(history_prefill, history_capacity)
        for i in range(count):
            ts = now - PREFILL_SPACING * (count - 1 - i)
            self._history.append(AggregatedSample(ts=ts, total_power_w=0.0))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def tick(self, ts: datetime | None = None) -> AggregatedSample | None:
        """Run one automatic generator tick.

        The aggregate sample is computed from the store *after* the planned
        transitions are written.

        Args:
            ts: Tick timestamp. Defaults to the engine clock.

        Returns:
            The appended sample, or None when the catalog is empty (no
            device can be selected, so nothing changes and nothing is
            appended).
        """
        with self._lock:
            ts = ts if ts is not None else self._clock()
            plan = self._generator.plan_tick(self._store.get_all(), ts)
            if not plan.selected:
                logger.debug("Tick skipped: catalog is empty")
                return None
            for device_id, state in plan.changes.items():
                self._store.set_state(device_id, state)
            sample = self._record(ts)
        logger.debug(
            "Tick applied: flipped=%s total=%.0fW",
            sorted(plan.changes),
            sample.total_power_w,
        )
        return sample

    def toggle_device(self, device_id: str) -> DeviceState:
        """Flip one device on user request.

        Turning on sets exactly the nominal power (no noise); turning off
        sets 0 W. A history sample is appended immediately.

        Raises:
            UnknownDeviceError: If *device_id* is not in the catalog.
        """
        with self._lock:
            device = self.catalog.get(device_id)
            turn_on = not self._store.get(device_id).on
            state = self._apply(
                device,
                on=turn_on,
                power_w=device.nominal_power_w if turn_on else 0.0,
            )
        logger.info(
            "Manual toggle: device=%s on=%s power=%.0fW",
            device_id,
            state.on,
            state.current_power_w,
        )
        return state

    def apply_event(self, event: DeviceEvent) -> DeviceState:
        """Apply a device transition reported by an external feed.

        Uses the same mutation path as :meth:`toggle_device`. Off events
        always record 0 W. An event that repeats the current on/off state
        updates the power reading but keeps ``last_changed_at``.

        Raises:
            UnknownDeviceError: If the event references an unknown device.
        """
        with self._lock:
            device = self.catalog.get(event.id)
            state = self._apply(
                device,
                on=event.on,
                power_w=event.power if event.on else 0.0,
            )
        logger.info(
            "Feed event: device=%s on=%s power=%.0fW",
            event.id,
            state.on,
            state.current_power_w,
        )
        return state

    def _apply(self, device: DeviceDescriptor, *, on: bool, power_w: float) -> DeviceState:
        """Write one device state and record a sample. Caller holds the lock."""
        ts = self._clock()
        previous = self._store.get(device.id)
        state = DeviceState(
            on=on,
            current_power_w=power_w,
            last_changed_at=ts if on != previous.on else previous.last_changed_at,
        )
        self._store.set_state(device.id, state)
        self._record(ts)
        return state

    def _record(self, ts: datetime) -> AggregatedSample:
        """Append the aggregate of the current store. Caller holds the lock."""
        sample = AggregatedSample(ts=ts, total_power_w=compute_total(self._store.get_all()))
        self._history.append(sample)
        return sample

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def device_states(self) -> dict[str, DeviceState]:
        """Return a snapshot of every device state keyed by id."""
        with self._lock:
            return self._store.get_all()

    def device_state(self, device_id: str) -> DeviceState:
        """Return the state of one device.

        Raises:
            UnknownDeviceError: If *device_id* is not in the catalog.
        """
        with self._lock:
            return self._store.get(device_id)

    def aggregate_power(self) -> float:
        """Return the current total power in watts."""
        with self._lock:
            return compute_total(self._store.get_all())

    def history(self) -> list[AggregatedSample]:
        """Return the rolling history, oldest first."""
        with self._lock:
            return self._history.snapshot()

    @property
    def history_capacity(self) -> int:
        return self._history.capacity

    def active_devices(self) -> list[tuple[DeviceDescriptor, DeviceState]]:
        """Return ``(descriptor, state)`` for every device that is on, in catalog order."""
        with self._lock:
            states = self._store.get_all()
        return [(device, states[device.id]) for device in self.catalog if states[device.id].on]

    def snapshot(
        self,
        *,
        running: bool,
        speed_multiplier: float,
        tick_interval_ms: float,
    ) -> EngineSnapshot:
        """Return a consistent view of state, aggregate, and history.

        The scheduling fields are owned by the control surface and passed in.
        """
        with self._lock:
            states = self._store.get_all()
            history = self._history.snapshot()
        return EngineSnapshot(
            devices=states,
            total_power_w=compute_total(states),
            active_count=count_active(states),
            history=history,
            running=running,
            speed_multiplier=speed_multiplier,
            tick_interval_ms=tick_interval_ms,
        )
