"""
Simulator configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Every variable is prefixed with ``NILM_`` (e.g. ``NILM_SPEED_MULTIPLIER``)
and may also come from a ``.env`` file. All settings have defaults, so the
simulator starts with no environment at all.

CHANGELOG:
- 2026-10-17: Reject NaN and infinite speeds and intervals
- 2026-10-17: Initial creation (STORY-010)

TODO:
- None
"""

import logging
import math

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from nilm.src.errors import InvalidConfigurationError


class SimulatorSettings(BaseSettings):
    """Configuration for the NILM event simulator.

    Attributes:
        speed_multiplier: Initial simulation speed (> 0). 1.0 means one tick
            per base interval.
        start_running: Whether automatic ticks start immediately.
        history_capacity: Maximum number of aggregate samples kept (> 0).
        history_prefill: Zero-power samples placed in the history at start
            (0..history_capacity).
        base_interval_ms: Tick interval at speed 1.0 (> 0).
        min_interval_ms: Fastest allowed tick interval (> 0).
        seed: Random seed for reproducible runs. Unset means nondeterministic.
        report_interval_s: Seconds between dashboard summary log lines (> 0).
        log_level: Root log level name.
    """

    speed_multiplier: float = 1.0
    start_running: bool = True
    history_capacity: int = 30
    history_prefill: int = 6
    base_interval_ms: float = 1000.0
    min_interval_ms: float = 120.0
    seed: int | None = None
    report_interval_s: float = 5.0
    log_level: str = "INFO"

    @field_validator(
        "speed_multiplier",
        "base_interval_ms",
        "min_interval_ms",
        "report_interval_s",
    )
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        """Reject non-positive and non-finite durations and speeds."""
        if not math.isfinite(v) or v <= 0:
            raise InvalidConfigurationError(f"value must be a finite number > 0 (got {v})")
        return v

    @field_validator("history_capacity")
    @classmethod
    def history_capacity_must_be_positive(cls, v: int) -> int:
        """Validate history capacity is at least one sample."""
        if v < 1:
            raise InvalidConfigurationError("NILM_HISTORY_CAPACITY must be >= 1")
        return v

    @field_validator("history_prefill")
    @classmethod
    def history_prefill_must_be_non_negative(cls, v: int) -> int:
        """Validate history prefill is non-negative."""
        if v < 0:
            raise InvalidConfigurationError("NILM_HISTORY_PREFILL must be >= 0")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Normalize the log level name and reject unknown ones."""
        name = v.upper()
        if name not in logging.getLevelNamesMapping():
            raise InvalidConfigurationError(f"NILM_LOG_LEVEL is not a log level: {v!r}")
        return name

    @model_validator(mode="after")
    def _prefill_fits_history(self) -> "SimulatorSettings":
        """History prefill cannot exceed history capacity."""
        if self.history_prefill > self.history_capacity:
            raise InvalidConfigurationError(
                "NILM_HISTORY_PREFILL must be <= NILM_HISTORY_CAPACITY"
            )
        return self

    model_config = {"env_prefix": "NILM_", "env_file": ".env", "env_file_encoding": "utf-8"}
