"""One simulation tick as a pure function.

``run_tick`` reads a ``TickInput`` and returns a ``TickResult``; it never
mutates its inputs. Every random draw comes from RNGs derived from
``(seed, tick)``, so running the same input twice yields the same result.

Example::

    from archsim.engine import TickInput, run_tick

    result = run_tick(TickInput(components, connections, problem, tick=0))
    print(result.global_metrics.availability_string)
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from archsim.chaos.multipliers import NEUTRAL, ChaosMultipliers
from archsim.engine.aggregate import aggregate
from archsim.engine.cascade import (
    detect_retry_storms,
    propagate_cascades,
    simulate_regional_outage,
)
from archsim.engine.consistency import detect_consistency_anomalies
from archsim.engine.evolution import (
    backpressure_ms,
    cross_region_penalty,
    evolve_component,
    inbound_rate,
)
from archsim.engine.rules import evaluate_rules
from archsim.engine.topology import DesignGraph
from archsim.engine.traffic import synthetic_rps
from archsim.model.component import Component
from archsim.model.connection import Connection
from archsim.model.failure import FailureEvent, FailureKind
from archsim.model.metrics import ComponentMetrics, GlobalMetrics
from archsim.model.problem import Problem
from archsim.settings import EngineSettings

logger = logging.getLogger(__name__)


def tick_rng(seed: int, tick: int, stream: str) -> random.Random:
    """Independent, reproducible random source for one pass of one tick."""
    return random.Random(f"{seed}:{tick}:{stream}")


@dataclass(frozen=True)
class TickInput:
    """Everything one tick reads.

    Attributes:
        components: Components on the design.
        connections: Edges between them.
        problem: Targets the design is measured against.
        tick: Tick index, also the seed of the traffic profile.
        previous_global: Global metrics of the previous tick.
        previous_metrics: Per-component snapshots of the previous tick. A
            component missing here falls back to its own ``metrics``.
        multipliers: Active chaos multipliers.
        seed: Run seed mixed into every per-tick RNG.
        now: Timestamp stamped on failures. None uses the current time.
        incoming_rps: Fixed external rate replacing the traffic profile.
        settings: Engine tunables.
    """

    components: Sequence[Component]
    connections: Sequence[Connection]
    problem: Problem
    tick: int = 0
    previous_global: GlobalMetrics = field(default_factory=GlobalMetrics)
    previous_metrics: Mapping[str, ComponentMetrics] = field(default_factory=dict)
    multipliers: ChaosMultipliers = NEUTRAL
    seed: int = 0
    now: datetime | None = None
    incoming_rps: float | None = None
    settings: EngineSettings = field(default_factory=EngineSettings)


@dataclass(frozen=True)
class TickResult:
    """Everything one tick produces.

    Attributes:
        tick: Index of the tick that produced this result.
        incoming_rps: External traffic that entered the design.
        component_metrics: New snapshot per component id.
        connection_traffic: Display flow in [0, 1] per connection id.
        failures: Every failure present this tick.
        global_metrics: System-wide aggregate.
        is_completed: The run has reached its tick limit.
    """

    tick: int
    incoming_rps: float
    component_metrics: dict[str, ComponentMetrics]
    connection_traffic: dict[str, float]
    failures: list[FailureEvent]
    global_metrics: GlobalMetrics
    is_completed: bool

    def failures_of(self, kind: FailureKind) -> list[FailureEvent]:
        return [f for f in self.failures if f.kind is kind]

    def failures_for(self, component_id: str) -> list[FailureEvent]:
        return [f for f in self.failures if f.component_id == component_id]


def run_tick(data: TickInput) -> TickResult:
    """Advance the design by one tick.

    Components are evolved in topological order so each sees its upstreams'
    fresh rates. Rule failures are collected per component; consistency,
    cascade, retry-storm and regional-outage passes run once all snapshots
    exist.
    """
    settings = data.settings
    multipliers = data.multipliers
    now = data.now or datetime.now()
    graph = DesignGraph(data.components, data.connections)

    if data.incoming_rps is not None:
        total_rps = max(0.0, data.incoming_rps * multipliers.traffic)
    else:
        total_rps = synthetic_rps(
            data.problem.constraints.effective_qps,
            data.tick,
            tick_rng(data.seed, data.tick, "traffic"),
            chaos_traffic=multipliers.traffic,
            variation=settings.traffic_variation,
        )

    def previous_of(component_id: str) -> ComponentMetrics | None:
        snapshot = data.previous_metrics.get(component_id)
        if snapshot is None and component_id in graph.by_id:
            snapshot = graph.by_id[component_id].metrics
        return snapshot

    previous_lookup = {c.id: s for c in graph.components if (s := previous_of(c.id)) is not None}
    partitioned = multipliers.partitioned_components
    crashed = multipliers.crashed_components
    silenced = partitioned | crashed

    evolve_rng = tick_rng(data.seed, data.tick, "evolve")
    computed: dict[str, ComponentMetrics] = {}
    failures: list[FailureEvent] = []

    for component in graph.topological_order():
        is_partitioned = component.id in partitioned
        rps = 0.0 if is_partitioned else inbound_rate(
            component, graph, computed, total_rps, silenced
        )
        extra_latency = (
            cross_region_penalty(component, graph, evolve_rng)
            + backpressure_ms(component, graph, previous_lookup)
        )
        metrics = evolve_component(
            component,
            rps,
            previous_lookup.get(component.id),
            evolve_rng,
            multipliers=multipliers,
            settings=settings,
            extra_latency_ms=extra_latency,
            crashed=component.id in crashed,
        )
        computed[component.id] = metrics
        failures.extend(evaluate_rules(
            component, metrics, data.problem.constraints, now, partitioned=is_partitioned
        ))

    connection_traffic: dict[str, float] = {}
    for conn in graph.connections:
        source = graph.by_id[conn.source_id]
        flow = computed[conn.source_id].current_rps / (source.total_capacity + 1)
        connection_traffic[conn.id] = min(1.0, max(0.0, flow))

    consistency = detect_consistency_anomalies(
        graph, computed, tick_rng(data.seed, data.tick, "consistency"), now
    )
    cascades = propagate_cascades(
        graph,
        failures + consistency,
        tick_rng(data.seed, data.tick, "cascade"),
        now,
        probability=settings.cascade_probability,
    )
    storms = detect_retry_storms(graph, computed, now)
    outage = simulate_regional_outage(
        graph.components,
        tick_rng(data.seed, data.tick, "outage"),
        now,
        probability=settings.regional_outage_probability,
    )

    all_failures = failures + consistency + cascades + storms
    if outage is not None:
        all_failures.append(outage)

    global_metrics = aggregate(graph.components, computed, data.problem.constraints)
    logger.debug(
        "tick %d: %.0f rps in, availability %.4f, %d failure(s)",
        data.tick, total_rps, global_metrics.availability, len(all_failures),
    )

    return TickResult(
        tick=data.tick,
        incoming_rps=total_rps,
        component_metrics=computed,
        connection_traffic=connection_traffic,
        failures=all_failures,
        global_metrics=global_metrics,
        is_completed=data.tick >= settings.max_ticks,
    )
