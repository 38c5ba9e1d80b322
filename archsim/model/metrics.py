"""Per-component and system-wide metric snapshots.

Both records are immutable. A tick produces a fresh ``ComponentMetrics`` for
every component and one ``GlobalMetrics`` for the whole design; nothing is
updated in place.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

HOURS_PER_MONTH = 24 * 30


@dataclass(frozen=True)
class ComponentMetrics:
    """One tick's view of a single component.

    Attributes:
        current_rps: Admitted requests per second this tick.
        latency_ms: Smoothed mean latency.
        p95_latency_ms: Fixed multiple of ``latency_ms``.
        cpu_usage: Smoothed CPU utilization in [0, 1].
        memory_usage: Smoothed memory utilization in [0, 1].
        error_rate: Smoothed error rate in [0, 1].
        queue_depth: Backlog for queue-like types, 0 otherwise.
        cache_hit_rate: Hit rate for caches, 0 otherwise.
        eviction_rate: Evictions per second for caches.
        jitter_ms: Latency spread indicator for display.
        connection_pool_utilization: Pool usage in [0, 1] for pooled types.
        active_connections: Connections in use.
        max_connections: Pool size (100 per instance).
        is_throttled: Rate limiting rejected part of the inbound traffic.
        is_scaling: A scale-up is in progress.
        target_instances: Instance count autoscaling is working toward.
        ready_instances: Warm instances serving at full capacity.
        cold_starting_instances: Instances serving at reduced capacity.
        warmup_ticks: Ticks the current cold instances have been warming.
        is_slow: The component hit a slow-node episode this tick.
        slowness_factor: Latency multiplier of the slow episode (1.0 if not slow).
        is_crashed: A chaos event crashed this component.
    """

    current_rps: float = 0.0
    latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    error_rate: float = 0.0
    queue_depth: float = 0.0
    cache_hit_rate: float = 0.0
    eviction_rate: float = 0.0
    jitter_ms: float = 0.0
    connection_pool_utilization: float = 0.0
    active_connections: int = 0
    max_connections: int = 0
    is_throttled: bool = False
    is_scaling: bool = False
    target_instances: int = 1
    ready_instances: int = 1
    cold_starting_instances: int = 0
    warmup_ticks: int = 0
    is_slow: bool = False
    slowness_factor: float = 1.0
    is_crashed: bool = False

    @property
    def effective_instances(self) -> int:
        return self.ready_instances + self.cold_starting_instances

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GlobalMetrics:
    """System-wide aggregate of one tick.

    Attributes:
        total_rps: Sum of component request rates.
        avg_latency_ms: Mean latency over critical-path components.
        p50_latency_ms: Approximate median latency.
        p95_latency_ms: Worst component p95.
        p99_latency_ms: Approximate p99 derived from p95.
        error_rate: Union of independent component error rates.
        availability: ``1 - error_rate``.
        total_cost_per_hour: Sum of component hourly cost.
        total_requests: Requests per second counted this tick.
        successful_requests: Portion of ``total_requests`` that succeeded.
        failed_requests: Portion of ``total_requests`` that failed.
        error_budget_remaining: Fraction of the error budget not being burned.
        error_budget_burn_rate: Error rate relative to the allowed error rate.
    """

    total_rps: float = 0.0
    avg_latency_ms: float = 0.0
    p50_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0
    error_rate: float = 0.0
    availability: float = 1.0
    total_cost_per_hour: float = 0.0
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    error_budget_remaining: float = 1.0
    error_budget_burn_rate: float = 0.0

    @property
    def monthly_cost(self) -> float:
        return self.total_cost_per_hour * HOURS_PER_MONTH

    @property
    def availability_string(self) -> str:
        percentage = self.availability * 100
        if percentage >= 99.99:
            return f"{percentage:.3f}%"
        if percentage >= 99:
            return f"{percentage:.2f}%"
        return f"{percentage:.1f}%"

    @property
    def cost_string(self) -> str:
        if self.monthly_cost >= 1000:
            return f"${self.monthly_cost / 1000:.1f}K/mo"
        return f"${self.monthly_cost:.0f}/mo"

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["monthly_cost"] = self.monthly_cost
        return result
