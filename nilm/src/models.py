"""
Pydantic models for devices, device state, and aggregate samples.

All models are frozen: a state change replaces the whole value, so a snapshot
handed to a reader can never observe a later write.

CHANGELOG:
- 2026-10-17: Add DeviceEvent contract for external feeds (STORY-009)
- 2026-10-17: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class DeviceDescriptor(BaseModel):
    """Static identity and rated power of a catalog device.

    Attributes:
        id: Unique device identifier (e.g. ``"kettle"``).
        label: Human readable name shown on the dashboard.
        nominal_power_w: Rated power draw in watts when switched on.
    """

    id: str = Field(min_length=1)
    label: str
    nominal_power_w: float = Field(gt=0)

    model_config = {"frozen": True}


class DeviceState(BaseModel):
    """Current state of one device.

    Attributes:
        on: Whether the device is drawing power.
        current_power_w: Instantaneous power in watts. Always 0 when off.
        last_changed_at: Timestamp of the last on/off transition.
    """

    on: bool
    current_power_w: float = Field(ge=0)
    last_changed_at: datetime

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _off_means_zero_power(self) -> DeviceState:
        """Reject an off state that still reports power."""
        if not self.on and self.current_power_w != 0:
            raise ValueError(
                f"Device that is off must draw 0 W (got {self.current_power_w})"
            )
        return self

    @classmethod
    def off(cls, ts: datetime) -> DeviceState:
        """Return the initial off state stamped with *ts*."""
        return cls(on=False, current_power_w=0.0, last_changed_at=ts)


class AggregatedSample(BaseModel):
    """Total power across all devices at one instant.

    Attributes:
        ts: Time the sample was taken.
        total_power_w: Sum of power over devices that are on.
    """

    ts: datetime
    total_power_w: float = Field(ge=0)

    model_config = {"frozen": True}


class DeviceEvent(BaseModel):
    """A device transition pushed by an external feed.

    Wire shape: ``{"type": "device", "id": "kettle", "on": true, "power": 1480}``.
    """

    type: Literal["device"] = "device"
    id: str = Field(min_length=1)
    on: bool
    power: float = Field(default=0.0, ge=0)

    model_config = {"frozen": True}


class EngineSnapshot(BaseModel):
    """Consistent read model of everything a dashboard renders.

    Attributes:
        devices: Device state keyed by device id.
        total_power_w: Aggregate power at snapshot time.
        active_count: Number of devices currently on.
        history: Rolling aggregate samples, oldest first.
        running: Whether automatic ticks are scheduled.
        speed_multiplier: Current simulation speed multiplier.
        tick_interval_ms: Effective delay between ticks.
    """

    devices: dict[str, DeviceState]
    total_power_w: float
    active_count: int
    history: list[AggregatedSample]
    running: bool
    speed_multiplier: float
    tick_interval_ms: float

    model_config = {"frozen": True}


def parse_event(raw: str | bytes) -> DeviceEvent:
    """Parse a JSON device event.

    Raises:
        pydantic.ValidationError: If the payload does not match the contract.
    """
    return DeviceEvent.model_validate_json(raw)
