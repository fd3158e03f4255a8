"""
Shared test fixtures for simulator tests.

Provides env isolation for SimulatorSettings tests, a controllable clock,
and small catalogs/engines for engine and control surface tests.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

import pytest
from nilm.src.catalog import DeviceCatalog
from nilm.src.engine import SimulationEngine
from nilm.src.models import DeviceDescriptor

# All SimulatorSettings environment variable names, used for cleanup.
_ALL_NILM_ENV_VARS = (
    "NILM_SPEED_MULTIPLIER",
    "NILM_START_RUNNING",
    "NILM_HISTORY_CAPACITY",
    "NILM_HISTORY_PREFILL",
    "NILM_BASE_INTERVAL_MS",
    "NILM_MIN_INTERVAL_MS",
    "NILM_SEED",
    "NILM_REPORT_INTERVAL_S",
    "NILM_LOG_LEVEL",
)

T0 = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)
"""Start time used by the fake clock."""


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture(autouse=True)
def _clean_nilm_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all NILM_* env vars and isolate from .env files before each test."""
    for var in _ALL_NILM_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def clock() -> FakeClock:
    """A fake clock starting at T0."""
    return FakeClock()


@pytest.fixture()
def two_device_catalog() -> DeviceCatalog:
    """Catalog with a 100 W and a 200 W device."""
    return DeviceCatalog(
        [
            DeviceDescriptor(id="lamp", label="Lamp", nominal_power_w=100),
            DeviceDescriptor(id="tv", label="TV", nominal_power_w=200),
        ]
    )


@pytest.fixture()
def engine(clock: FakeClock) -> SimulationEngine:
    """Engine over the default catalog with a seeded generator and no prefill."""
    return SimulationEngine(rng=random.Random(1234), clock=clock)
