"""Drives the tick engine on a timer and owns the run state.

``TickScheduler`` is the only stateful piece of a run. A repeating timer
thread fires every ``tick_interval_s / speed`` seconds; each firing hands the
pure ``run_tick`` to a single-worker executor. At most one tick is in flight:
a firing that finds one still running is dropped, not queued. ``stop()``
bumps a run generation so a result that arrives afterwards is discarded.

Example::

    from archsim import TickScheduler

    scheduler = TickScheduler(components, connections, problem)
    scheduler.on_tick(lambda state, result: print(state.global_metrics.availability))
    scheduler.start()
    ...
    scheduler.stop()
    scheduler.close()

Headless, without the timer::

    scheduler.start(run_timer=False)
    for _ in range(100):
        scheduler.step()
    print(scheduler.complete())
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta

from archsim.chaos.event import ChaosEvent
from archsim.chaos.multipliers import compose_multipliers
from archsim.engine.tick import TickInput, TickResult, run_tick
from archsim.instrumentation.history import MetricsHistory
from archsim.instrumentation.summary import SimulationSummary
from archsim.model.component import Component
from archsim.model.connection import Connection
from archsim.model.problem import Problem
from archsim.settings import EngineSettings
from archsim.simulation.score import compute_score
from archsim.simulation.state import SimulationState, SimulationStatus
from archsim.simulation.validation import AcceptAllValidator, DesignValidator, ValidationError
from archsim.simulation.visibility import FailureVisibilityTracker

logger = logging.getLogger(__name__)

MAX_SPEED = 5.0

TickListener = Callable[[SimulationState, TickResult], None]


class _RepeatingTimer(threading.Thread):
    """Calls ``callback`` every ``interval`` seconds until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        super().__init__(name="archsim-ticker", daemon=True)
        self.interval = interval
        self._callback = callback
        self._cancelled = threading.Event()

    def run(self) -> None:
        while not self._cancelled.wait(self.interval):
            self._callback()

    def cancel(self) -> None:
        self._cancelled.set()


class TickScheduler:
    """Owns a ``SimulationState`` and advances it one tick at a time.

    Args:
        components: Components on the design.
        connections: Edges between them.
        problem: Targets the design is measured against.
        settings: Engine tunables. Defaults to ``EngineSettings()``.
        validator: Checked on ``start()``. Defaults to accepting every design.
        seed: Run seed threaded into every tick.
        incoming_rps: Fixed external rate replacing the traffic profile.
        clock: Wall-clock source for chaos windows, failure timestamps and
            the visibility dwell.
        tick_fn: The tick computation. Replaceable for tests.
    """

    def __init__(
        self,
        components: Sequence[Component],
        connections: Sequence[Connection],
        problem: Problem,
        settings: EngineSettings | None = None,
        validator: DesignValidator | None = None,
        seed: int = 0,
        incoming_rps: float | None = None,
        clock: Callable[[], datetime] = datetime.now,
        tick_fn: Callable[[TickInput], TickResult] = run_tick,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.problem = problem
        self.seed = seed
        self.incoming_rps = incoming_rps
        self.state = SimulationState()
        self.history = MetricsHistory()
        self.summary: SimulationSummary | None = None

        self._components: list[Component] = list(components)
        self._connections: list[Connection] = list(connections)
        self._validator = validator or AcceptAllValidator()
        self._clock = clock
        self._tick_fn = tick_fn
        self._visibility = FailureVisibilityTracker(
            dwell=timedelta(seconds=self.settings.failure_dwell_s), clock=clock
        )

        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None
        self._timer: _RepeatingTimer | None = None
        self._processing = False
        self._generation = 0
        self._speed = 1.0
        self._listeners: dict[str, TickListener] = {}

    # ------------------------------------------------------------------
    # Design
    # ------------------------------------------------------------------

    @property
    def components(self) -> list[Component]:
        return list(self._components)

    @property
    def connections(self) -> list[Connection]:
        return list(self._connections)

    def update_design(
        self,
        components: Sequence[Component],
        connections: Sequence[Connection],
    ) -> None:
        """Replace the design. The next tick picks up the change."""
        with self._lock:
            self._components = list(components)
            self._connections = list(connections)
        logger.debug(
            "Design updated: %d components, %d connections", len(components), len(connections)
        )

    def clear_failures_for(self, component_id: str) -> None:
        """Forget a component's failures, e.g. after a fix was applied to it."""
        with self._lock:
            self._visibility.clear_component(component_id)
            self.state.failures = [f for f in self.state.failures if f.component_id != component_id]
            self.state.visible_failures = [
                f for f in self.state.visible_failures if f.component_id != component_id
            ]

    # ------------------------------------------------------------------
    # Chaos
    # ------------------------------------------------------------------

    def add_chaos(self, event: ChaosEvent) -> str:
        """Inject a chaos event. Returns its id for early removal."""
        with self._lock:
            self.state.chaos_events.append(event)
        logger.info(
            "Chaos injected: %s (%s)", event.kind.value, event.id, extra={"chaos_id": event.id}
        )
        return event.id

    def remove_chaos(self, event_id: str) -> None:
        """Remove a chaos event before its window ends.

        Raises:
            KeyError: If no event has this id.
        """
        with self._lock:
            remaining = [e for e in self.state.chaos_events if e.id != event_id]
            if len(remaining) == len(self.state.chaos_events):
                raise KeyError(f"Chaos event {event_id!r} not found")
            self.state.chaos_events = remaining
        logger.info("Chaos removed: %s", event_id, extra={"chaos_id": event_id})

    def active_chaos(self) -> list[ChaosEvent]:
        now = self._clock()
        with self._lock:
            return [e for e in self.state.chaos_events if e.is_active(now)]

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_tick(self, callback: TickListener) -> str:
        """Register ``callback(state, result)``, called after each applied tick.

        Returns:
            Listener ID for later removal.
        """
        listener_id = str(uuid.uuid4())[:8]
        with self._lock:
            self._listeners[listener_id] = callback
        return listener_id

    def remove_listener(self, listener_id: str) -> None:
        """Remove a listener by its ID.

        Raises:
            KeyError: If the ID is not found.
        """
        with self._lock:
            if listener_id not in self._listeners:
                raise KeyError(f"Listener {listener_id!r} not found")
            del self._listeners[listener_id]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def interval(self) -> float:
        """Seconds between timer firings at the current speed."""
        return self.settings.tick_interval_s / self._speed

    @property
    def is_processing(self) -> bool:
        return self._processing

    def start(self, run_timer: bool = True) -> None:
        """Validate the design and begin a fresh run.

        Args:
            run_timer: Start the periodic timer. False leaves ticking to ``step()``.

        Raises:
            ValidationError: If the validator rejects the design.
            RuntimeError: If a run is already running or paused.
        """
        with self._lock:
            result = self._validator.validate(self._components, self._connections, self.problem)
            if not result.is_valid:
                logger.warning("Design rejected: %s", "; ".join(str(i) for i in result.issues))
                raise ValidationError(result)

            self.state.start()
            self._visibility.clear()
            for component in self._components:
                component.metrics = None
            self.history.clear()
            self.summary = None
            self._generation += 1
            self._processing = False
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="archsim-tick")
            if run_timer:
                self._start_timer()

        logger.info(
            "Simulation started: %d components, %d connections, interval %.3fs",
            len(self._components), len(self._connections), self.interval,
        )

    def pause(self) -> None:
        with self._lock:
            self.state.pause()
        logger.info("Simulation paused at tick %d", self.state.tick_count)

    def resume(self) -> None:
        with self._lock:
            self.state.resume()
        logger.info("Simulation resumed at tick %d", self.state.tick_count)

    def stop(self) -> None:
        """Cancel the timer and return to idle. An in-flight result is discarded."""
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            self._processing = False
            self.state.stop()
        logger.info("Simulation stopped at tick %d", self.state.tick_count)

    def complete(self) -> SimulationSummary:
        """Finish the run, score it and build its summary.

        Raises:
            RuntimeError: If the run is not running or paused.
        """
        with self._lock:
            self._complete_locked()
            return self.summary

    def fail(self, reason: str) -> None:
        """Mark the run failed. The engine never calls this itself."""
        with self._lock:
            self.state.fail(reason)
            self._cancel_timer()
            self._generation += 1
            self._processing = False

    def set_speed(self, speed: float) -> None:
        """Change the tick rate multiplier, capped at 5x.

        Restarts the timer if it is running; in-flight work is untouched.

        Raises:
            ValueError: If ``speed`` is not positive.
        """
        if speed <= 0:
            raise ValueError(f"speed must be > 0, got {speed}")
        with self._lock:
            self._speed = min(MAX_SPEED, float(speed))
            if self._timer is not None:
                self._cancel_timer()
                self._start_timer()
        logger.info("Simulation speed set to %.2fx (interval %.3fs)", self._speed, self.interval)

    def close(self) -> None:
        """Stop any run and release the worker thread."""
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            self._processing = False
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> TickScheduler:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def step(self) -> TickResult | None:
        """Run one tick synchronously on the calling thread.

        Shares the in-flight guard with the timer.

        Returns:
            The applied result, or None if the tick was skipped or failed.

        Raises:
            RuntimeError: If the run is not running or paused.
        """
        with self._lock:
            if self.state.status not in (SimulationStatus.RUNNING, SimulationStatus.PAUSED):
                raise RuntimeError("Cannot step: simulation is not running")
            if self._processing:
                logger.debug("Step skipped: tick in flight")
                return None
            self._processing = True
            generation = self._generation
            data = self._build_input()

        try:
            result = self._tick_fn(data)
        except Exception:
            logger.exception("Tick %d failed; skipping", data.tick, extra={"tick": data.tick})
            self._release(generation)
            return None
        return self._finish_tick(generation, result)

    def _on_timer(self) -> None:
        with self._lock:
            if not self.state.is_running:
                return
            if self._processing:
                logger.debug("Tick %d skipped: previous tick in flight", self.state.tick_count)
                return
            if self._executor is None:
                return
            self._processing = True
            generation = self._generation
            try:
                data = self._build_input()
                future = self._executor.submit(self._tick_fn, data)
            except Exception:
                logger.exception("Could not dispatch tick %d", self.state.tick_count)
                self._processing = False
                return
        future.add_done_callback(lambda f: self._on_done(generation, data.tick, f))

    def _on_done(self, generation: int, tick: int, future: Future) -> None:
        try:
            result = future.result()
        except Exception:
            logger.exception("Tick %d failed; skipping", tick, extra={"tick": tick})
            self._release(generation)
            return
        self._finish_tick(generation, result)

    def _release(self, generation: int) -> None:
        with self._lock:
            if generation == self._generation:
                self._processing = False

    def _finish_tick(self, generation: int, result: TickResult) -> TickResult | None:
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding stale result of tick %d", result.tick)
                return None
            self._processing = False
            if self.state.status not in (SimulationStatus.RUNNING, SimulationStatus.PAUSED):
                return None
            self._apply(result)
            if result.is_completed:
                logger.info("Tick limit reached at tick %d", result.tick)
                self._complete_locked()
            state = self.state
            listeners = list(self._listeners.values())

        for callback in listeners:
            callback(state, result)
        return result

    def _build_input(self) -> TickInput:
        now = self._clock()
        return TickInput(
            components=tuple(self._components),
            connections=tuple(self._connections),
            problem=self.problem,
            tick=self.state.tick_count,
            previous_global=self.state.global_metrics,
            previous_metrics=dict(self.state.component_metrics),
            multipliers=compose_multipliers(self.state.chaos_events, now),
            seed=self.seed,
            now=now,
            incoming_rps=self.incoming_rps,
            settings=self.settings,
        )

    def _apply(self, result: TickResult) -> None:
        state = self.state
        state.tick_count += 1
        state.component_metrics = dict(result.component_metrics)
        state.connection_traffic = dict(result.connection_traffic)
        state.failures = list(result.failures)
        state.visible_failures = self._visibility.update(result.failures)
        state.global_metrics = result.global_metrics
        for component in self._components:
            snapshot = result.component_metrics.get(component.id)
            if snapshot is not None:
                component.metrics = snapshot
        self.history.record(result)

    def _complete_locked(self) -> None:
        self.state.complete()
        self._cancel_timer()
        self._generation += 1
        self._processing = False
        self.state.score = compute_score(
            self.state.global_metrics,
            self.problem,
            spof_count=len(self.history.spof_components),
            component_count=len(self._components),
        )
        self.summary = SimulationSummary.from_history(self.history, score=self.state.score)
        logger.info(
            "Simulation completed after %d ticks: score %.1f (%s)",
            self.state.tick_count, self.state.score.overall, self.state.score.grade,
        )

    def _start_timer(self) -> None:
        self._timer = _RepeatingTimer(self.interval, self._on_timer)
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
