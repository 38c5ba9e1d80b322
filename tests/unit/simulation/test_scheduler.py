"""Unit tests for TickScheduler.

Most tests drive ticks synchronously with ``step()``; the timer tests use a
short interval and threading events instead of sleeps where possible.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import timedelta

import pytest

from archsim.chaos import ChaosEvent, ChaosKind
from archsim.engine import run_tick
from archsim.model import ComponentType, FailureKind
from archsim.settings import EngineSettings
from archsim.simulation import (
    SimulationStatus,
    TickScheduler,
    ValidationError,
    ValidationIssue,
    ValidationResult,
)

STEADY = EngineSettings(
    slow_node_probability=0.0,
    regional_outage_probability=0.0,
    tick_interval_s=0.01,
)


class RejectingValidator:
    def validate(self, components, connections, problem):
        return ValidationResult.from_issues([ValidationIssue("design has no entry point")])


@pytest.fixture
def design(component_factory, connection_factory):
    components = [
        component_factory("lb", ComponentType.LOAD_BALANCER, instances=2),
        component_factory("app", instances=2),
    ]
    return components, [connection_factory("lb", "app")]


@pytest.fixture
def make_scheduler(design, problem, clock):
    created = []

    def make(**kwargs):
        components, connections = kwargs.pop("design", design)
        kwargs.setdefault("settings", STEADY)
        kwargs.setdefault("incoming_rps", 200.0)
        kwargs.setdefault("clock", clock)
        scheduler = TickScheduler(components, connections, problem, **kwargs)
        created.append(scheduler)
        return scheduler

    yield make
    for scheduler in created:
        scheduler.close()


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    def test_start_runs(self, make_scheduler):
        scheduler = make_scheduler()

        scheduler.start(run_timer=False)

        assert scheduler.state.status is SimulationStatus.RUNNING

    def test_rejected_design_does_not_start(self, make_scheduler):
        scheduler = make_scheduler(validator=RejectingValidator())

        with pytest.raises(ValidationError, match="design has no entry point"):
            scheduler.start(run_timer=False)

        assert scheduler.state.is_idle

    def test_start_twice(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)

        with pytest.raises(RuntimeError, match="Cannot start"):
            scheduler.start(run_timer=False)

    def test_step_requires_a_run(self, make_scheduler):
        with pytest.raises(RuntimeError, match="Cannot step: simulation is not running"):
            make_scheduler().step()

    def test_stop_returns_to_idle(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)
        scheduler.step()

        scheduler.stop()

        assert scheduler.state.is_idle
        assert scheduler.state.tick_count == 1
        with pytest.raises(RuntimeError):
            scheduler.step()

    def test_restart_clears_previous_run(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)
        scheduler.step()
        scheduler.step()
        scheduler.stop()

        scheduler.start(run_timer=False)

        assert scheduler.state.tick_count == 0
        assert len(scheduler.history) == 0

    def test_restart_does_not_smooth_against_previous_run(self, make_scheduler, component_factory):
        scheduler = make_scheduler(design=([component_factory("app", capacity=1000)], []),
                                   incoming_rps=5000.0)
        scheduler.start(run_timer=False)
        for _ in range(20):
            scheduler.step()
        scheduler.stop()

        scheduler.incoming_rps = 10.0
        scheduler.start(run_timer=False)
        assert all(c.metrics is None for c in scheduler.components)
        restarted = scheduler.step()

        fresh = make_scheduler(design=([component_factory("app", capacity=1000)], []),
                               incoming_rps=10.0)
        fresh.start(run_timer=False)
        expected = fresh.step()

        assert restarted.component_metrics == expected.component_metrics
        assert restarted.component_metrics["app"].error_rate == 0.0
        assert restarted.component_metrics["app"].latency_ms < 50.0

    def test_paused_run_can_still_step(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)
        scheduler.pause()

        assert scheduler.step() is not None
        scheduler.resume()
        assert scheduler.state.is_running

    def test_fail(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)

        scheduler.fail("budget exhausted")

        assert scheduler.state.is_failed
        assert scheduler.state.failure_reason == "budget exhausted"

    def test_context_manager_closes(self, design, problem, clock):
        components, connections = design
        with TickScheduler(components, connections, problem, settings=STEADY, clock=clock) as s:
            s.start(run_timer=False)
            s.step()
        assert s.state.tick_count == 1


# =============================================================================
# Stepping
# =============================================================================


class TestStep:
    def test_step_applies_result(self, make_scheduler, design):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)

        result = scheduler.step()

        assert result.tick == 0
        assert scheduler.state.tick_count == 1
        assert scheduler.state.component_metrics == result.component_metrics
        assert scheduler.state.global_metrics == result.global_metrics
        assert scheduler.state.connection_traffic == result.connection_traffic
        components, _ = design
        assert components[0].metrics == result.component_metrics["lb"]

    def test_ticks_advance(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)

        ticks = [scheduler.step().tick for _ in range(3)]

        assert ticks == [0, 1, 2]
        assert len(scheduler.history) == 3

    def test_next_tick_sees_previous_snapshot(self, make_scheduler):
        inputs = []

        def recording(data):
            inputs.append(data)
            return run_tick(data)

        scheduler = make_scheduler(tick_fn=recording)
        scheduler.start(run_timer=False)
        first = scheduler.step()
        scheduler.step()

        assert inputs[1].previous_metrics == first.component_metrics
        assert inputs[1].previous_global == first.global_metrics

    def test_no_overlap(self, make_scheduler):
        """A step issued while a tick is in flight is skipped."""
        nested = []

        def reentrant(data):
            nested.append(scheduler.step())
            return run_tick(data)

        scheduler = make_scheduler(tick_fn=reentrant)
        scheduler.start(run_timer=False)

        assert scheduler.step() is not None
        assert nested == [None]
        assert scheduler.state.tick_count == 1

    def test_failed_tick_is_skipped(self, make_scheduler, caplog):
        calls = []

        def flaky(data):
            calls.append(data.tick)
            if len(calls) == 1:
                raise ValueError("boom")
            return run_tick(data)

        scheduler = make_scheduler(tick_fn=flaky)
        scheduler.start(run_timer=False)

        with caplog.at_level(logging.ERROR, logger="archsim"):
            assert scheduler.step() is None

        assert "Tick 0 failed" in caplog.text
        assert scheduler.state.tick_count == 0
        assert scheduler.state.is_running
        assert scheduler.step().tick == 0

    def test_completion_at_tick_limit(self, make_scheduler):
        scheduler = make_scheduler(settings=STEADY.with_overrides(max_ticks=3))
        scheduler.start(run_timer=False)

        for _ in range(4):
            scheduler.step()

        assert scheduler.state.is_completed
        assert scheduler.state.score is not None
        assert scheduler.summary is not None
        assert scheduler.summary.ticks == 4
        with pytest.raises(RuntimeError):
            scheduler.step()

    def test_manual_complete(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)
        scheduler.step()

        summary = scheduler.complete()

        assert scheduler.state.is_completed
        assert summary.ticks == 1
        assert summary.score is scheduler.state.score

    def test_update_design_picks_up_on_next_tick(self, make_scheduler, design, component_factory):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)
        scheduler.step()
        components, connections = design

        scheduler.update_design([*components, component_factory("worker", ComponentType.WORKER)],
                                connections)
        result = scheduler.step()

        assert "worker" in result.component_metrics


# =============================================================================
# Listeners
# =============================================================================


class TestListeners:
    def test_listener_receives_state_and_result(self, make_scheduler):
        scheduler = make_scheduler()
        seen = []
        scheduler.on_tick(lambda state, result: seen.append((state.tick_count, result.tick)))
        scheduler.start(run_timer=False)

        scheduler.step()
        scheduler.step()

        assert seen == [(1, 0), (2, 1)]

    def test_remove_listener(self, make_scheduler):
        scheduler = make_scheduler()
        seen = []
        listener_id = scheduler.on_tick(lambda state, result: seen.append(result.tick))
        scheduler.start(run_timer=False)

        scheduler.remove_listener(listener_id)
        scheduler.step()

        assert seen == []

    def test_remove_unknown_listener(self, make_scheduler):
        with pytest.raises(KeyError):
            make_scheduler().remove_listener("nope")

    def test_concurrent_registration(self, make_scheduler):
        scheduler = make_scheduler()
        barrier = threading.Barrier(8)
        ids = []

        def register():
            barrier.wait()
            for _ in range(50):
                listener_id = scheduler.on_tick(lambda state, result: None)
                ids.append(listener_id)
                scheduler.remove_listener(listener_id)

        threads = [threading.Thread(target=register) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(ids) == 400
        assert scheduler._listeners == {}

    def test_registration_waits_for_lock(self, make_scheduler):
        scheduler = make_scheduler()
        registered = threading.Event()

        def register():
            scheduler.on_tick(lambda state, result: None)
            registered.set()

        with scheduler._lock:
            thread = threading.Thread(target=register)
            thread.start()
            assert not registered.wait(0.05)
        thread.join()

        assert registered.is_set()


# =============================================================================
# Speed
# =============================================================================


class TestSpeed:
    def test_interval_scales_with_speed(self, make_scheduler):
        scheduler = make_scheduler(settings=EngineSettings(tick_interval_s=0.1))

        scheduler.set_speed(2.0)

        assert scheduler.speed == 2.0
        assert scheduler.interval == pytest.approx(0.05)

    def test_speed_capped(self, make_scheduler):
        scheduler = make_scheduler(settings=EngineSettings(tick_interval_s=0.1))

        scheduler.set_speed(10.0)

        assert scheduler.speed == 5.0
        assert scheduler.interval == pytest.approx(0.02)

    @pytest.mark.parametrize("speed", [0.0, -1.0])
    def test_speed_must_be_positive(self, make_scheduler, speed):
        with pytest.raises(ValueError, match="speed"):
            make_scheduler().set_speed(speed)


# =============================================================================
# Chaos and failures
# =============================================================================


class TestChaos:
    def test_active_chaos_applies(self, make_scheduler, clock):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)
        event_id = scheduler.add_chaos(ChaosEvent(
            ChaosKind.TRAFFIC_SPIKE, clock(), timedelta(seconds=30), {"multiplier": 2.0}
        ))

        assert [e.id for e in scheduler.active_chaos()] == [event_id]
        assert scheduler.step().incoming_rps == 400.0

    def test_expired_chaos_ignored(self, make_scheduler, clock):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)
        scheduler.add_chaos(ChaosEvent(
            ChaosKind.TRAFFIC_SPIKE, clock(), timedelta(seconds=30), {"multiplier": 2.0}
        ))

        clock.advance(31)

        assert scheduler.active_chaos() == []
        assert scheduler.step().incoming_rps == 200.0

    def test_remove_chaos(self, make_scheduler, clock):
        scheduler = make_scheduler()
        scheduler.start(run_timer=False)
        event_id = scheduler.add_chaos(ChaosEvent(
            ChaosKind.TRAFFIC_SPIKE, clock(), timedelta(seconds=30), {"multiplier": 2.0}
        ))

        scheduler.remove_chaos(event_id)

        assert scheduler.step().incoming_rps == 200.0

    def test_remove_unknown_chaos(self, make_scheduler):
        with pytest.raises(KeyError):
            make_scheduler().remove_chaos("nope")


class TestFailureVisibility:
    @pytest.fixture
    def fragile(self, component_factory):
        return [component_factory("lb", ComponentType.LOAD_BALANCER)], []

    def test_failures_visible_after_dwell(self, make_scheduler, fragile, clock):
        scheduler = make_scheduler(design=fragile)
        scheduler.start(run_timer=False)

        scheduler.step()
        assert [f.kind for f in scheduler.state.failures] == [FailureKind.SPOF]
        assert scheduler.state.visible_failures == []

        clock.advance(5)
        scheduler.step()
        assert [f.kind for f in scheduler.state.visible_failures] == [FailureKind.SPOF]

    def test_clear_failures_for(self, make_scheduler, fragile, clock):
        scheduler = make_scheduler(design=fragile)
        scheduler.start(run_timer=False)
        scheduler.step()
        clock.advance(5)
        scheduler.step()

        scheduler.clear_failures_for("lb")

        assert scheduler.state.failures == []
        assert scheduler.state.visible_failures == []
        scheduler.step()
        assert scheduler.state.visible_failures == []

    def test_spof_recorded_for_scoring(self, make_scheduler, fragile):
        scheduler = make_scheduler(design=fragile)
        scheduler.start(run_timer=False)
        scheduler.step()

        scheduler.complete()

        assert scheduler.history.spof_components == {"lb"}
        assert scheduler.summary.spof_components == ["lb"]


# =============================================================================
# Timer
# =============================================================================


class TestTimer:
    def test_timer_drives_ticks(self, make_scheduler):
        scheduler = make_scheduler()
        reached = threading.Event()
        scheduler.on_tick(lambda state, result: state.tick_count >= 3 and reached.set())

        scheduler.start()

        assert reached.wait(5.0)
        scheduler.stop()
        assert scheduler.state.tick_count >= 3

    def test_slow_tick_skips_firings_and_stop_discards_result(self, make_scheduler):
        entered = threading.Event()
        release = threading.Event()
        calls = []
        applied = []

        def blocking(data):
            calls.append(data.tick)
            entered.set()
            release.wait(5.0)
            return run_tick(data)

        scheduler = make_scheduler(tick_fn=blocking)
        scheduler.on_tick(lambda state, result: applied.append(result.tick))
        scheduler.start()

        assert entered.wait(5.0)
        time.sleep(0.1)
        assert calls == [0]
        assert scheduler.is_processing

        scheduler.stop()
        release.set()
        scheduler.close()

        assert applied == []
        assert scheduler.state.tick_count == 0

    def test_pause_halts_timer_ticks(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start()
        assert _wait_for(lambda: scheduler.state.tick_count >= 1)

        scheduler.pause()
        # let an in-flight tick land before sampling
        time.sleep(0.05)
        paused_at = scheduler.state.tick_count
        time.sleep(0.1)

        assert scheduler.state.tick_count == paused_at
        scheduler.stop()
