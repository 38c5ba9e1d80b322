"""Reduce per-component snapshots into one ``GlobalMetrics`` record."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from archsim.model.component import Component
from archsim.model.metrics import ComponentMetrics, GlobalMetrics
from archsim.model.problem import ProblemConstraints

P50_FACTOR = 1.1
P99_FACTOR = 1.8


def union_error_rate(error_rates: Sequence[float]) -> float:
    """Probability at least one independent component fails: 1 - prod(1 - e)."""
    success = 1.0
    for rate in error_rates:
        success *= 1.0 - min(1.0, max(0.0, rate))
    return 1.0 - success


def aggregate(
    components: Sequence[Component],
    metrics: Mapping[str, ComponentMetrics],
    constraints: ProblemConstraints,
) -> GlobalMetrics:
    """Build the system-wide record for one tick.

    Components without a snapshot still contribute their hourly cost. An
    empty design yields the neutral ``GlobalMetrics()``.
    """
    snapshots = [(c, metrics[c.id]) for c in components if c.id in metrics]
    if not snapshots:
        return GlobalMetrics()

    total_rps = sum(m.current_rps for _, m in snapshots)
    critical = [m.latency_ms for c, m in snapshots if c.type.is_critical_path]
    avg_latency = sum(critical) / len(critical) if critical else 0.0
    p95 = max(m.p95_latency_ms for _, m in snapshots)

    error_rate = union_error_rate([m.error_rate for _, m in snapshots])
    availability = 1.0 - error_rate

    burn_rate = error_rate / max(1e-9, constraints.error_budget)
    total_requests = int(total_rps)

    return GlobalMetrics(
        total_rps=total_rps,
        avg_latency_ms=avg_latency,
        p50_latency_ms=avg_latency * P50_FACTOR,
        p95_latency_ms=p95,
        p99_latency_ms=p95 * P99_FACTOR,
        error_rate=error_rate,
        availability=availability,
        total_cost_per_hour=sum(c.hourly_cost for c in components),
        total_requests=total_requests,
        successful_requests=int(total_rps * availability),
        failed_requests=int(total_rps * error_rate),
        error_budget_remaining=min(1.0, max(0.0, 1.0 - burn_rate)),
        error_budget_burn_rate=burn_rate,
    )
