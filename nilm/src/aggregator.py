"""
Pure aggregation over device state snapshots.

No side effects, no I/O, no clock.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Mapping

from nilm.src.models import DeviceState


def compute_total(snapshot: Mapping[str, DeviceState]) -> float:
    """Return the summed power of every device that is on."""
    return sum(
        (state.current_power_w for state in snapshot.values() if state.on),
        0.0,
    )


def count_active(snapshot: Mapping[str, DeviceState]) -> int:
    """Return how many devices are on."""
    return sum(1 for state in snapshot.values() if state.on)
