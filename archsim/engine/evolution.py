"""Per-component state evolution.

``evolve_component`` turns a component, the request rate reaching it and its
previous snapshot into the next ``ComponentMetrics``. The helpers around it
compute the graph-dependent inputs (inbound rate, cross-region penalty,
downstream backpressure) so the core model stays a function of plain values.

Latency, CPU, memory and queue depth are smoothed toward the previous snapshot
with an exponential moving average; error rate uses a fast weight while rising
and a slow one while recovering. With no previous snapshot the raw values are
used as-is.

Example::

    import random
    from archsim.engine.evolution import evolve_component

    metrics = evolve_component(component, inbound_rps=800.0, previous=None,
                               rng=random.Random(0))
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Mapping

from archsim.chaos.multipliers import NEUTRAL, ChaosMultipliers
from archsim.engine.topology import DesignGraph
from archsim.model.component import Component, ComponentType
from archsim.model.connection import ConnectionType
from archsim.model.metrics import ComponentMetrics
from archsim.settings import EngineSettings

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = EngineSettings()

MAX_QUEUE_DEPTH = 10_000.0
CONNECTIONS_PER_INSTANCE = 100
CROSS_REGION_PENALTY_MS = 100.0
CROSS_REGION_PENALTY_SPREAD_MS = 50.0
ASYNC_BACKPRESSURE_WEIGHT = 0.1
EVICTION_MEMORY_THRESHOLD = 0.8
EVICTIONS_PER_MEMORY_UNIT = 5000.0


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


def smooth(previous: float, raw: float, alpha: float) -> float:
    """Exponential moving average step: move ``alpha`` of the way to ``raw``."""
    return previous + alpha * (raw - previous)


def latency_load_multiplier(load: float) -> float:
    """Piecewise latency multiplier for a utilization ``load``.

    Near-linear below 70%, steep to 90%, then very steep from 90% on: 20x at
    full capacity and the same slope through any overflow. Continuous at
    every breakpoint.
    """
    if load < 0.7:
        return 1.0 + load * 0.3
    if load < 0.9:
        return 1.21 + (load - 0.7) / 0.2 * 3.79
    return 5.0 + (load - 0.9) / 0.1 * 15.0


def error_rate_for_load(
    load: float,
    knee: float = 0.85,
    steep_knee: float = 0.95,
) -> float:
    """Raw error rate for a utilization ``load``, before chaos or smoothing.

    Zero up to ``knee``, rising to 5% at ``steep_knee`` and to 50% at full
    capacity. Overflow keeps that steep slope, so the rate saturates at 100%
    a little past 105% load.
    """
    if load <= knee:
        return 0.0
    if load <= steep_knee:
        return (load - knee) / (steep_knee - knee) * 0.05
    return clamp(0.05 + (load - steep_knee) / (1.0 - steep_knee) * 0.45)


def inbound_rate(
    component: Component,
    graph: DesignGraph,
    computed: Mapping[str, ComponentMetrics],
    total_rps: float,
    silenced: frozenset[str] = frozenset(),
) -> float:
    """Request rate reaching ``component`` this tick.

    Entry points split ``total_rps`` evenly. Other components sum, per inbound
    edge, the upstream's rate divided by the upstream's out-degree. Upstreams
    not computed yet this tick (cycles) and upstreams in ``silenced``
    (partitioned or crashed) contribute nothing.
    """
    if graph.is_entry_point(component.id):
        entry_count = len(graph.entry_points)
        return total_rps / max(1, entry_count)

    rate = 0.0
    for conn in graph.incoming(component.id):
        upstream = computed.get(conn.source_id)
        if upstream is None or conn.source_id in silenced:
            continue
        out_degree = max(1, len(graph.outgoing(conn.source_id)))
        rate += upstream.current_rps / out_degree
    return rate


def cross_region_penalty(
    component: Component,
    graph: DesignGraph,
    rng: random.Random,
) -> float:
    """Extra latency when most inbound edges cross a region boundary.

    Applies 100-150 ms when strictly more than half of the inbound edges come
    from a component whose primary region differs from this one's.
    """
    incoming = graph.incoming(component.id)
    if not incoming:
        return 0.0

    region = component.config.primary_region
    crossing = sum(
        1 for conn in incoming
        if graph.by_id[conn.source_id].config.primary_region != region
    )
    if crossing * 2 > len(incoming):
        return CROSS_REGION_PENALTY_MS + rng.random() * CROSS_REGION_PENALTY_SPREAD_MS
    return 0.0


def backpressure_ms(
    component: Component,
    graph: DesignGraph,
    previous: Mapping[str, ComponentMetrics],
) -> float:
    """Latency inherited from the components this one calls.

    The maximum of the downstream targets' previous-tick latency. Async edges
    and every edge leaving a queue-style consumer are weighted 0.1;
    replication edges are ignored.
    """
    worst = 0.0
    for conn in graph.outgoing(component.id):
        if conn.type is ConnectionType.REPLICATION:
            continue
        target = previous.get(conn.target_id) or graph.by_id[conn.target_id].metrics
        if target is None:
            continue
        weight = 1.0
        if conn.type is ConnectionType.ASYNC or component.type.is_async_consumer:
            weight = ASYNC_BACKPRESSURE_WEIGHT
        worst = max(worst, target.latency_ms * weight)
    return worst


def _scale(
    component: Component,
    inbound_rps: float,
    previous: ComponentMetrics | None,
    settings: EngineSettings,
) -> tuple[int, int, int, int]:
    """Autoscaling step. Returns ``(target, ready, cold, warmup_ticks)``."""
    config = component.config

    if not config.autoscale:
        return config.instances, config.instances, 0, 0

    if previous is None:
        ready, cold, warmup = config.instances, 0, 0
    else:
        ready = previous.ready_instances
        cold = previous.cold_starting_instances
        warmup = previous.warmup_ticks
    ready = min(max(ready, config.min_instances), config.max_instances)

    if cold:
        warmup += 1
        if warmup >= settings.cold_start_ticks:
            logger.debug("%s: %d instance(s) warmed up", component.id, cold)
            ready = min(ready + cold, config.max_instances)
            cold, warmup = 0, 0

    if cold:
        return ready + cold, ready, cold, warmup

    load = inbound_rps / max(1, config.capacity * ready)
    if load > settings.autoscale_threshold:
        target = math.ceil(ready * settings.autoscale_factor)
        target = min(max(target, config.min_instances), config.max_instances)
        if target > ready:
            logger.debug(
                "%s: scaling %d -> %d instances (load %.2f)", component.id, ready, target, load
            )
            return target, ready, target - ready, 0
    elif load < settings.scale_in_threshold:
        floor = max(config.min_instances, config.instances)
        if ready > floor:
            ready -= 1

    return ready, ready, 0, 0


def evolve_component(
    component: Component,
    inbound_rps: float,
    previous: ComponentMetrics | None,
    rng: random.Random,
    multipliers: ChaosMultipliers = NEUTRAL,
    settings: EngineSettings = DEFAULT_SETTINGS,
    extra_latency_ms: float = 0.0,
    crashed: bool = False,
) -> ComponentMetrics:
    """Compute the next metrics snapshot of one component.

    Args:
        component: The component being evolved.
        inbound_rps: Request rate reaching the component this tick.
        previous: Snapshot from the previous tick, or None on the first tick.
        rng: Per-tick random source for slow-node episodes and CPU/memory noise.
        multipliers: Active chaos multipliers.
        settings: Engine tunables.
        extra_latency_ms: Cross-region penalty plus downstream backpressure.
        crashed: Force the component into the crashed state.

    Returns:
        A complete ``ComponentMetrics`` snapshot.
    """
    config = component.config
    ctype = component.type
    alpha = settings.smoothing

    # Rate limiting
    rate = max(0.0, inbound_rps)
    rejected_fraction = 0.0
    throttled = False
    if config.rate_limiting and config.rate_limit_rps is not None and rate > config.rate_limit_rps:
        admitted = float(max(0, config.rate_limit_rps))
        rejected_fraction = (rate - admitted) / rate
        rate = admitted
        throttled = True

    # Autoscaling and effective capacity
    target, ready, cold, warmup = _scale(component, rate, previous, settings)
    effective_capacity = config.capacity * (ready + cold * settings.cold_start_capacity)
    load = rate / max(1.0, effective_capacity)

    # Latency
    is_slow = rng.random() < settings.slow_node_probability
    slowness = 2.0 + rng.random() * 8.0 if is_slow else 1.0
    chaos_latency = multipliers.latency
    if ctype.is_database:
        chaos_latency *= multipliers.database_latency
    raw_latency = (
        ctype.base_latency_ms * latency_load_multiplier(load) * slowness * chaos_latency
        + extra_latency_ms
    )

    # CPU and memory
    raw_cpu = clamp(load * 0.85 + rng.random() * 0.15)
    raw_memory = clamp(load * 0.75 + rng.random() * 0.25)

    # Error rate
    raw_error = error_rate_for_load(load, settings.error_knee, settings.error_knee_steep)
    raw_error = clamp(raw_error * multipliers.failure_rate)
    if rejected_fraction:
        raw_error = 1.0 - (1.0 - raw_error) * (1.0 - rejected_fraction)

    if previous is None:
        latency, cpu, memory, error = raw_latency, raw_cpu, raw_memory, raw_error
    else:
        latency = smooth(previous.latency_ms, raw_latency, alpha)
        cpu = smooth(previous.cpu_usage, raw_cpu, alpha)
        memory = smooth(previous.memory_usage, raw_memory, alpha)
        error_alpha = (
            settings.error_smoothing_up if raw_error > previous.error_rate
            else settings.error_smoothing_down
        )
        error = smooth(previous.error_rate, raw_error, error_alpha)
    if crashed:
        error = 1.0

    # Type-specific metrics
    cache_hit_rate = 0.0
    eviction_rate = 0.0
    if ctype is ComponentType.CACHE:
        cache_hit_rate = clamp(0.9 - load * 0.3) * multipliers.cache_hit_rate
        if memory > EVICTION_MEMORY_THRESHOLD:
            eviction_rate = (memory - EVICTION_MEMORY_THRESHOLD) * EVICTIONS_PER_MEMORY_UNIT

    queue_depth = 0.0
    if ctype.is_queue_like:
        previous_depth = previous.queue_depth if previous is not None else 0.0
        raw_depth = previous_depth + (rate - effective_capacity) * settings.tick_seconds
        raw_depth = clamp(raw_depth, 0.0, MAX_QUEUE_DEPTH)
        queue_depth = raw_depth if previous is None else smooth(previous_depth, raw_depth, alpha)

    pool_utilization = 0.0
    active_connections = 0
    max_connections = CONNECTIONS_PER_INSTANCE * (ready + cold)
    if ctype.has_connection_pool:
        pool_utilization = clamp(load)
        active_connections = int(max_connections * pool_utilization)

    return ComponentMetrics(
        current_rps=rate,
        latency_ms=latency,
        p95_latency_ms=latency * settings.p95_factor,
        cpu_usage=clamp(cpu),
        memory_usage=clamp(memory),
        error_rate=clamp(error),
        queue_depth=queue_depth,
        cache_hit_rate=cache_hit_rate,
        eviction_rate=eviction_rate,
        jitter_ms=latency * 0.1 * (1.0 + load),
        connection_pool_utilization=pool_utilization,
        active_connections=active_connections,
        max_connections=max_connections,
        is_throttled=throttled,
        is_scaling=cold > 0,
        target_instances=target,
        ready_instances=ready,
        cold_starting_instances=cold,
        warmup_ticks=warmup,
        is_slow=is_slow,
        slowness_factor=slowness,
        is_crashed=crashed,
    )
