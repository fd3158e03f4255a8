"""
Exception types raised by the simulation engine.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations


class NilmError(Exception):
    """Base class for all simulator errors."""


class UnknownDeviceError(NilmError, LookupError):
    """Raised when a device id is not present in the catalog.

    Args:
        device_id: The id that failed to resolve.
    """

    def __init__(self, device_id: str) -> None:
        super().__init__(f"Unknown device id: {device_id!r}")
        self.device_id = device_id


class InvalidConfigurationError(NilmError, ValueError):
    """Raised when a configuration value is rejected.

    The previously active value (if any) stays in effect.
    """
