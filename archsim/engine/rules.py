"""Threshold rules evaluated against a component's fresh snapshot.

Each rule is independent; a component can trip several in one tick. A crashed
component reports only the crash.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from archsim.model.component import Component, ComponentType
from archsim.model.failure import FailureEvent, FailureKind, FixType
from archsim.model.metrics import ComponentMetrics
from archsim.model.problem import ProblemConstraints

OVERLOAD_CPU = 0.95
QUEUE_BACKLOG_DEPTH = 5000
POOL_EXHAUSTION = 0.9
CACHE_THRASHING_EVICTIONS = 500


def _scale_fix(component: Component) -> FixType:
    if component.config.autoscale:
        return FixType.INCREASE_REPLICAS
    return FixType.ENABLE_AUTOSCALING


def evaluate_rules(
    component: Component,
    metrics: ComponentMetrics,
    constraints: ProblemConstraints,
    timestamp: datetime,
    partitioned: bool = False,
) -> list[FailureEvent]:
    """Return every failure ``component`` exhibits in ``metrics``.

    Args:
        component: The component the snapshot belongs to.
        metrics: Snapshot computed this tick.
        constraints: Problem targets (latency SLA).
        timestamp: Timestamp stamped on the events.
        partitioned: The component is cut off by a network partition.
    """
    name = component.display_name
    config = component.config

    def event(kind: FailureKind, message: str, recommendation: str, severity: float,
              **extra) -> FailureEvent:
        return FailureEvent(
            timestamp=timestamp,
            component_id=component.id,
            kind=kind,
            message=message,
            recommendation=recommendation,
            severity=severity,
            **extra,
        )

    if metrics.is_crashed:
        return [event(
            FailureKind.COMPONENT_CRASH,
            f"{name} has crashed",
            "Run more instances behind a load balancer so a crash is survivable",
            1.0,
            fix_type=FixType.INCREASE_REPLICAS,
        )]

    failures: list[FailureEvent] = []

    # Admitted rate: a rate limiter holding traffic within capacity suppresses this.
    capacity = config.capacity * metrics.ready_instances
    if metrics.current_rps > capacity:
        overflow = (metrics.current_rps - capacity) / max(1, capacity)
        failures.append(event(
            FailureKind.CAPACITY_OVERFLOW,
            f"{name} receiving {metrics.current_rps:.0f} rps, "
            f"{overflow * 100:.0f}% over capacity ({capacity} rps)",
            "Add instances, enable autoscaling or rate limit inbound traffic",
            min(1.0, 0.5 + overflow / 2),
            fix_type=_scale_fix(component),
        ))

    if metrics.cpu_usage > OVERLOAD_CPU:
        failures.append(event(
            FailureKind.OVERLOAD,
            f"{name} is overloaded ({metrics.cpu_usage * 100:.0f}% CPU)",
            "Add more instances or enable autoscaling",
            0.9,
            fix_type=_scale_fix(component),
        ))

    if config.instances == 1 and not config.autoscale and component.type.is_critical_path:
        failures.append(event(
            FailureKind.SPOF,
            f"{name} is a single point of failure",
            "Increase instance count or enable autoscaling",
            0.8,
            fix_type=FixType.INCREASE_REPLICAS,
        ))

    if metrics.p95_latency_ms > constraints.latency_sla_p95_ms:
        failures.append(event(
            FailureKind.LATENCY_BREACH,
            f"P95 latency {metrics.p95_latency_ms:.0f}ms exceeds SLA "
            f"({constraints.latency_sla_p95_ms}ms)",
            "Optimize performance or add capacity",
            0.7,
            fix_type=_scale_fix(component),
        ))

    if component.type.is_database and not config.replication:
        failures.append(event(
            FailureKind.DATA_LOSS,
            "Database has no replication - risk of data loss",
            "Enable replication with factor >= 2",
            0.9,
            fix_type=FixType.ENABLE_REPLICATION,
            user_visible=False,
        ))

    if component.type.is_queue_like and metrics.queue_depth > QUEUE_BACKLOG_DEPTH:
        failures.append(event(
            FailureKind.QUEUE_OVERFLOW,
            f"Queue depth at {metrics.queue_depth:.0f} - backpressure building",
            "Add more consumers or increase processing capacity",
            min(0.9, max(0.5, metrics.queue_depth / 10_000)),
            fix_type=FixType.INCREASE_REPLICAS if config.dlq else FixType.ADD_DLQ,
        ))

    if metrics.connection_pool_utilization > POOL_EXHAUSTION:
        failures.append(event(
            FailureKind.CONNECTION_EXHAUSTION,
            f"Connection pool {metrics.connection_pool_utilization * 100:.0f}% full "
            f"({metrics.active_connections}/{metrics.max_connections})",
            "Increase connection pool size or add more instances",
            0.8,
            fix_type=FixType.INCREASE_CONNECTION_POOL,
        ))

    if metrics.is_slow:
        failures.append(event(
            FailureKind.SLOW_NODE,
            f"{name} responding {metrics.slowness_factor:.1f}x slower than normal",
            "Investigate node health, restart or replace slow instance",
            0.7,
            fix_type=FixType.INCREASE_REPLICAS,
            expected_recovery=timedelta(seconds=60),
        ))

    if metrics.is_scaling and metrics.cold_starting_instances > 0:
        failures.append(event(
            FailureKind.SCALE_UP_DELAY,
            f"Scaling up: {metrics.cold_starting_instances} instances still warming up",
            "Already autoscaling - wait for new capacity to come online",
            0.4,
            expected_recovery=timedelta(seconds=120),
            user_visible=False,
        ))
        failures.append(event(
            FailureKind.COLD_START,
            "Cold start penalty: new instances at 50% capacity",
            "Consider keeping min instances higher to avoid cold starts",
            0.3,
            user_visible=False,
        ))

    if component.type is ComponentType.CACHE and metrics.eviction_rate > CACHE_THRASHING_EVICTIONS:
        failures.append(event(
            FailureKind.CACHE_THRASHING,
            f"High eviction rate ({metrics.eviction_rate:.0f}/sec) - cache is thrashing",
            "Increase cache memory or optimize TTL strategy",
            0.6,
            fix_type=FixType.INCREASE_REPLICAS,
        ))

    if partitioned:
        failures.append(event(
            FailureKind.NETWORK_PARTITION,
            f"{name} is cut off by a network partition",
            "Deploy across regions and fail over on partition",
            0.9,
        ))

    return failures
