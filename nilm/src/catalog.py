"""
Device catalog -- single source of truth for simulated devices.

Defines the fixed list of known devices with their rated power, and the
:class:`DeviceCatalog` lookup used by the state store, the event generator,
and the engine. The catalog is built once at startup and never mutated.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from nilm.src.errors import InvalidConfigurationError, UnknownDeviceError
from nilm.src.models import DeviceDescriptor

# ---------------------------------------------------------------------------
# Default household devices
# ---------------------------------------------------------------------------

DEFAULT_DEVICES: tuple[DeviceDescriptor, ...] = (
    DeviceDescriptor(id="kettle", label="Kettle", nominal_power_w=1500),
    DeviceDescriptor(id="iron", label="Iron", nominal_power_w=1100),
    DeviceDescriptor(id="bulb", label="Bulb 60W", nominal_power_w=60),
    DeviceDescriptor(id="fridge", label="Fridge", nominal_power_w=120),
    DeviceDescriptor(id="tv", label="TV", nominal_power_w=200),
    DeviceDescriptor(id="microwave", label="Microwave", nominal_power_w=1000),
)
"""Devices shown on the dashboard, in display order."""


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class DeviceCatalog:
    """Immutable, ordered collection of :class:`DeviceDescriptor`.

    Iteration yields descriptors in the order they were given.

    Args:
        devices: Descriptors to register. Ids must be unique.

    Raises:
        InvalidConfigurationError: If two descriptors share an id.
    """

    def __init__(self, devices: Iterable[DeviceDescriptor]) -> None:
        ordered = tuple(devices)
        by_id: dict[str, DeviceDescriptor] = {}
        for device in ordered:
            if device.id in by_id:
                raise InvalidConfigurationError(f"Duplicate device id in catalog: {device.id!r}")
            by_id[device.id] = device
        self._devices = ordered
        self._by_id = by_id

    @classmethod
    def default(cls) -> DeviceCatalog:
        """Return a catalog of :data:`DEFAULT_DEVICES`."""
        return cls(DEFAULT_DEVICES)

    def get(self, device_id: str) -> DeviceDescriptor:
        """Look up a descriptor by id.

        Raises:
            UnknownDeviceError: If *device_id* is not in the catalog.
        """
        try:
            return self._by_id[device_id]
        except KeyError:
            raise UnknownDeviceError(device_id) from None

    def ids(self) -> list[str]:
        """Return all device ids in catalog order."""
        return [device.id for device in self._devices]

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._by_id

    def __iter__(self) -> Iterator[DeviceDescriptor]:
        return iter(self._devices)

    def __len__(self) -> int:
        return len(self._devices)

    def __repr__(self) -> str:
        return f"DeviceCatalog({self.ids()!r})"
