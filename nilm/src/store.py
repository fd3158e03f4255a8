"""
In-memory device state store.

Holds the authoritative :class:`DeviceState` for every catalog device. The
store itself is not locked; the engine serializes all access to it.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime

from nilm.src.catalog import DeviceCatalog
from nilm.src.errors import UnknownDeviceError
from nilm.src.models import DeviceState


class DeviceStateStore:
    """Keyed store of device state, one entry per catalog device.

    Every device starts off, drawing 0 W, with ``last_changed_at`` set to
    *now*.

    Args:
        catalog: Devices to track.
        now: Initialization timestamp.
    """

    def __init__(self, catalog: DeviceCatalog, *, now: datetime) -> None:
        self._catalog = catalog
        self._states: dict[str, DeviceState] = {
            device.id: DeviceState.off(now) for device in catalog
        }

    def get_all(self) -> dict[str, DeviceState]:
        """Return a copy of the id -> state mapping.

        States are frozen models, so a shallow copy is enough to keep the
        caller isolated from later writes.
        """
        return dict(self._states)

    def get(self, device_id: str) -> DeviceState:
        """Return the state of one device.

        Raises:
            UnknownDeviceError: If *device_id* is not in the catalog.
        """
        try:
            return self._states[device_id]
        except KeyError:
            raise UnknownDeviceError(device_id) from None

    def set_state(self, device_id: str, new_state: DeviceState) -> None:
        """Replace the state of one device.

        Raises:
            UnknownDeviceError: If *device_id* is not in the catalog.
        """
        if device_id not in self._catalog:
            raise UnknownDeviceError(device_id)
        self._states[device_id] = new_state
