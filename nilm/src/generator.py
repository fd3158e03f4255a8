"""
Randomized device event generator.

On every tick the generator picks one device (or, with a smaller probability,
two devices at once to exercise overlapping transitions), flips each picked
device with a fixed probability, and returns the resulting new states. It
reads a state snapshot and never writes the store itself; the engine applies
the planned changes under its lock.

All randomness comes from an injectable ``random.Random`` so a seed makes a
whole run reproducible.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from nilm.src.catalog import DeviceCatalog
from nilm.src.models import DeviceDescriptor, DeviceState

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_INTERVAL_MS: float = 1000.0
"""Tick interval at speed multiplier 1.0."""

MIN_INTERVAL_MS: float = 120.0
"""Fastest allowed tick interval, whatever the speed multiplier."""

MIN_EFFECTIVE_SPEED: float = 0.1
"""Speed multipliers below this are treated as this value."""

OVERLAP_PROBABILITY: float = 0.25
"""Chance that a tick touches two devices instead of one."""

FLIP_PROBABILITY: float = 0.8
"""Chance that a selected device actually changes state."""

NOISE_FRACTION: float = 0.08
"""Peak-to-peak width of the power noise as a fraction of nominal (+/-4%)."""


def tick_interval_ms(
    speed_multiplier: float,
    *,
    base_interval_ms: float = BASE_INTERVAL_MS,
    min_interval_ms: float = MIN_INTERVAL_MS,
) -> float:
    """Return the delay between ticks for a given speed multiplier.

    ``max(min_interval_ms, base_interval_ms / max(speed, 0.1))``
    """
    return max(min_interval_ms, base_interval_ms / max(speed_multiplier, MIN_EFFECTIVE_SPEED))


@dataclass(frozen=True, slots=True)
class TickPlan:
    """Outcome of one generator tick.

    Attributes:
        selected: Ids of the devices sampled this tick, in draw order.
        changes: New state for every selected device that actually flipped.
    """

    selected: tuple[str, ...] = ()
    changes: dict[str, DeviceState] = field(default_factory=dict)


class EventGenerator:
    """Plans simulated device transitions.

    Args:
        catalog: Devices eligible for selection (the whole catalog, never a
            filtered view).
        rng: Random source. Defaults to an unseeded ``random.Random``.
        overlap_probability: Chance of selecting two devices in one tick.
        flip_probability: Chance that a selected device flips.
        noise_fraction: Noise width applied to nominal power on a flip to on.
    """

    def __init__(
        self,
        catalog: DeviceCatalog,
        *,
        rng: random.Random | None = None,
        overlap_probability: float = OVERLAP_PROBABILITY,
        flip_probability: float = FLIP_PROBABILITY,
        noise_fraction: float = NOISE_FRACTION,
    ) -> None:
        self._catalog = catalog
        self._rng = rng if rng is not None else random.Random()
        self._overlap_probability = overlap_probability
        self._flip_probability = flip_probability
        self._noise_fraction = noise_fraction

    def choose_toggle_count(self) -> int:
        """Return 2 with ``overlap_probability``, otherwise 1."""
        return 2 if self._rng.random() < self._overlap_probability else 1

    def select_devices(self) -> list[DeviceDescriptor]:
        """Draw distinct devices uniformly without replacement.

        Returns an empty list when the catalog is empty.
        """
        devices = list(self._catalog)
        if not devices:
            return []
        count = min(self.choose_toggle_count(), len(devices))
        return self._rng.sample(devices, count)

    def noisy_power(self, device: DeviceDescriptor) -> float:
        """Return nominal power plus uniform noise, rounded to whole watts.

        Never negative.
        """
        nominal = device.nominal_power_w
        noise = round((self._rng.random() - 0.5) * nominal * self._noise_fraction)
        return max(0.0, float(nominal + noise))

    def plan_tick(self, snapshot: Mapping[str, DeviceState], ts: datetime) -> TickPlan:
        """Plan one tick against the current state *snapshot*.

        Args:
            snapshot: Current state of every device.
            ts: Tick timestamp, stamped on every device that flips.

        Returns:
            A :class:`TickPlan`. ``selected`` is empty only when the catalog
            is empty.
        """
        selected = self.select_devices()
        changes: dict[str, DeviceState] = {}
        for device in selected:
            if self._rng.random() >= self._flip_probability:
                # Sampled, but no transition this tick.
                continue
            turn_on = not snapshot[device.id].on
            changes[device.id] = DeviceState(
                on=turn_on,
                current_power_w=self.noisy_power(device) if turn_on else 0.0,
                last_changed_at=ts,
            )
        if selected:
            logger.debug(
                "Tick plan: selected=%s flipped=%s",
                [device.id for device in selected],
                sorted(changes),
            )
        return TickPlan(selected=tuple(device.id for device in selected), changes=changes)
