"""
Unit tests for the simulation engine.

Tests verify:
- Manual toggle sets exactly nominal power and appends a post-toggle sample.
- Unknown device toggles raise and leave state and history unchanged.
- Ticks compute the appended sample from the post-tick state.
- Invariants hold over many seeded ticks (off => 0 W, noise bound,
  history length, lastChangedAt only moves on a flip).
- Empty catalog ticks are no-ops.
- External feed events share the manual mutation path.
- Concurrent toggles from threads are serialized.
- History prefill and read API snapshots.

CHANGELOG:
- 2026-10-17: Add feed event and concurrency tests (STORY-009)
- 2026-10-17: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import random
import threading
from datetime import timedelta

import pytest
from nilm.src.catalog import DeviceCatalog
from nilm.src.engine import SimulationEngine
from nilm.src.errors import InvalidConfigurationError, UnknownDeviceError
from nilm.src.models import DeviceEvent

# ---------------------------------------------------------------------------
# Manual toggles
# ---------------------------------------------------------------------------


class TestToggleDevice:
    """Manual override semantics."""

    def test_toggle_on_sets_exact_nominal(self, engine: SimulationEngine, clock) -> None:
        clock.advance(2)

        state = engine.toggle_device("kettle")

        assert state.on is True
        assert state.current_power_w == 1500
        assert state.last_changed_at == clock.now
        assert engine.device_state("kettle") == state
        assert engine.aggregate_power() == 1500

    def test_toggle_appends_post_toggle_sample(self, engine: SimulationEngine, clock) -> None:
        engine.toggle_device("kettle")
        clock.advance()
        engine.toggle_device("tv")

        history = engine.history()
        assert [s.total_power_w for s in history] == [1500, 1700]
        assert history[-1].ts == clock.now

    def test_toggle_twice_turns_off(self, engine: SimulationEngine) -> None:
        engine.toggle_device("iron")
        state = engine.toggle_device("iron")

        assert state.on is False
        assert state.current_power_w == 0
        assert engine.aggregate_power() == 0
        assert [s.total_power_w for s in engine.history()] == [1100, 0]

    def test_unknown_device_raises_and_changes_nothing(self, engine: SimulationEngine) -> None:
        engine.toggle_device("fridge")
        states_before = engine.device_states()
        history_before = engine.history()

        with pytest.raises(UnknownDeviceError) as exc_info:
            engine.toggle_device("unknown-id")

        assert exc_info.value.device_id == "unknown-id"
        assert engine.device_states() == states_before
        assert engine.history() == history_before

    def test_two_devices_on_then_one_off(
        self, two_device_catalog: DeviceCatalog, clock
    ) -> None:
        engine = SimulationEngine(two_device_catalog, clock=clock, seed=1)
        engine.toggle_device("lamp")
        engine.toggle_device("tv")
        assert engine.aggregate_power() == 300

        engine.toggle_device("tv")
        assert engine.aggregate_power() == 100

        engine.toggle_device("tv")
        engine.toggle_device("lamp")
        assert engine.aggregate_power() == 200


# ---------------------------------------------------------------------------
# Ticks
# ---------------------------------------------------------------------------


class TestTick:
    """Automatic generator ticks."""

    def test_tick_sample_reflects_post_tick_state(self, engine: SimulationEngine, clock) -> None:
        for _ in range(200):
            clock.advance()
            sample = engine.tick()

            assert sample is not None
            assert sample.ts == clock.now
            assert sample.total_power_w == engine.aggregate_power()
            assert engine.history()[-1] == sample

    def test_tick_uses_explicit_timestamp(self, engine: SimulationEngine, clock) -> None:
        ts = clock.now + timedelta(minutes=5)

        sample = engine.tick(ts)

        assert sample is not None
        assert sample.ts == ts

    def test_invariants_hold_over_many_ticks(self, clock) -> None:
        engine = SimulationEngine(rng=random.Random(2024), clock=clock, history_capacity=10)
        catalog = engine.catalog

        for _ in range(2000):
            before = engine.device_states()
            clock.advance(0.5)
            engine.tick()
            after = engine.device_states()

            assert len(engine.history()) <= 10
            for device in catalog:
                state = after[device.id]
                if not state.on:
                    assert state.current_power_w == 0
                else:
                    nominal = device.nominal_power_w
                    assert abs(state.current_power_w - nominal) <= 0.08 * nominal
                if state.on == before[device.id].on:
                    assert state.last_changed_at == before[device.id].last_changed_at
                else:
                    assert state.last_changed_at == clock.now

    def test_at_most_two_devices_change_per_tick(self, engine: SimulationEngine) -> None:
        for _ in range(500):
            before = engine.device_states()
            engine.tick()
            after = engine.device_states()
            changed = [k for k in before if before[k] != after[k]]
            assert len(changed) <= 2

    def test_empty_catalog_tick_is_noop(self, clock) -> None:
        engine = SimulationEngine(DeviceCatalog([]), clock=clock, seed=3)

        assert engine.tick() is None
        assert engine.history() == []
        assert engine.aggregate_power() == 0

    def test_same_seed_is_reproducible(self, clock) -> None:
        a = SimulationEngine(seed=11, clock=clock)
        b = SimulationEngine(seed=11, clock=clock)

        for _ in range(100):
            a.tick()
            b.tick()

        assert a.device_states() == b.device_states()
        assert a.history() == b.history()


# ---------------------------------------------------------------------------
# External feed events
# ---------------------------------------------------------------------------


class TestApplyEvent:
    """Feed events use the same mutation path as manual toggles."""

    def test_on_event_records_reported_power(self, engine: SimulationEngine, clock) -> None:
        state = engine.apply_event(DeviceEvent(id="kettle", on=True, power=1480))

        assert state.on is True
        assert state.current_power_w == 1480
        assert state.last_changed_at == clock.now
        assert engine.history()[-1].total_power_w == 1480

    def test_off_event_forces_zero_power(self, engine: SimulationEngine) -> None:
        engine.apply_event(DeviceEvent(id="tv", on=True, power=190))

        state = engine.apply_event(DeviceEvent(id="tv", on=False, power=12))

        assert state.on is False
        assert state.current_power_w == 0

    def test_repeated_state_keeps_last_changed(self, engine: SimulationEngine, clock) -> None:
        first = engine.apply_event(DeviceEvent(id="fridge", on=True, power=118))
        clock.advance(10)

        second = engine.apply_event(DeviceEvent(id="fridge", on=True, power=125))

        assert second.current_power_w == 125
        assert second.last_changed_at == first.last_changed_at
        assert engine.history()[-1].ts == clock.now

    def test_unknown_device_event_rejected(self, engine: SimulationEngine) -> None:
        before = engine.device_states()

        with pytest.raises(UnknownDeviceError):
            engine.apply_event(DeviceEvent(id="toaster", on=True, power=800))

        assert engine.device_states() == before
        assert engine.history() == []


# ---------------------------------------------------------------------------
# Construction, reads, serialization
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_history_prefill_zero_samples(self, clock) -> None:
        engine = SimulationEngine(clock=clock, history_prefill=6)

        history = engine.history()
        assert [s.total_power_w for s in history] == [0.0] * 6
        assert history[-1].ts == clock.now
        assert history[0].ts == clock.now - timedelta(seconds=5)

    def test_prefill_capped_at_capacity(self, clock) -> None:
        engine = SimulationEngine(clock=clock, history_capacity=3, history_prefill=10)

        assert len(engine.history()) == 3

    @pytest.mark.parametrize("capacity", [0, -5])
    def test_invalid_capacity_rejected(self, capacity: int) -> None:
        with pytest.raises(InvalidConfigurationError):
            SimulationEngine(history_capacity=capacity)

    def test_negative_prefill_rejected(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            SimulationEngine(history_prefill=-1)

    def test_history_capacity_exposed(self) -> None:
        assert SimulationEngine(history_capacity=12).history_capacity == 12


class TestReads:
    def test_snapshot_is_consistent(self, engine: SimulationEngine) -> None:
        engine.toggle_device("kettle")
        engine.toggle_device("bulb")

        snap = engine.snapshot(running=False, speed_multiplier=2.0, tick_interval_ms=500.0)

        assert snap.total_power_w == 1560
        assert snap.active_count == 2
        assert snap.devices["kettle"].on is True
        assert len(snap.history) == 2
        assert snap.running is False
        assert snap.speed_multiplier == 2.0
        assert snap.tick_interval_ms == 500.0

    def test_active_devices_in_catalog_order(self, engine: SimulationEngine) -> None:
        engine.toggle_device("tv")
        engine.toggle_device("kettle")

        active = engine.active_devices()

        assert [device.id for device, _ in active] == ["kettle", "tv"]
        assert all(state.on for _, state in active)

    def test_device_states_is_a_copy(self, engine: SimulationEngine) -> None:
        states = engine.device_states()
        states.clear()

        assert len(engine.device_states()) == len(engine.catalog)

    def test_unknown_device_state_lookup(self, engine: SimulationEngine) -> None:
        with pytest.raises(UnknownDeviceError):
            engine.device_state("nope")


class TestSerialization:
    """Mutations from several threads never interleave."""

    def test_concurrent_toggles_and_ticks(self, clock) -> None:
        engine = SimulationEngine(rng=random.Random(8), clock=clock, history_capacity=10_000)
        per_thread = 200

        def toggler(device_id: str) -> None:
            for _ in range(per_thread):
                engine.toggle_device(device_id)

        def ticker() -> None:
            for _ in range(per_thread):
                engine.tick()

        threads = [threading.Thread(target=toggler, args=(d,)) for d in ("kettle", "iron")]
        threads.append(threading.Thread(target=ticker))
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Every mutation appended exactly one sample.
        assert len(engine.history()) == 3 * per_thread
        assert engine.history()[-1].total_power_w == engine.aggregate_power()
