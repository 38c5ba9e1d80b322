"""Problem targets the engine measures a design against."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from archsim.model.component import DEFAULT_REGION

REQUESTS_PER_USER_PER_DAY = 10
PEAK_SHARE = 0.8
PEAK_SECONDS = 8 * 60 * 60


@dataclass(frozen=True)
class ProblemConstraints:
    """Traffic, latency, availability and cost targets.

    Attributes:
        dau: Daily active users.
        qps: Explicit queries per second. 0 derives it from ``dau``.
        read_write_ratio: Reads per write.
        latency_sla_p50_ms: P50 latency target.
        latency_sla_p95_ms: P95 latency target.
        availability_target: e.g. 0.999 for three nines.
        budget_per_month: Monthly budget in USD.
        regions: Regions the design must serve.
    """

    dau: int = 100_000
    qps: int = 0
    read_write_ratio: float = 10.0
    latency_sla_p50_ms: int = 50
    latency_sla_p95_ms: int = 200
    availability_target: float = 0.999
    budget_per_month: int = 10_000
    regions: tuple[str, ...] = (DEFAULT_REGION,)

    def __post_init__(self) -> None:
        if not 0 < self.availability_target < 1:
            raise ValueError(
                f"availability_target must be in (0, 1), got {self.availability_target}"
            )
        if self.latency_sla_p95_ms <= 0:
            raise ValueError(f"latency_sla_p95_ms must be > 0, got {self.latency_sla_p95_ms}")

    @property
    def effective_qps(self) -> int:
        """Peak QPS: explicit ``qps``, or 10 requests/user/day with 80% in 8 peak hours."""
        if self.qps > 0:
            return self.qps
        peak_requests = int(self.dau * REQUESTS_PER_USER_PER_DAY * PEAK_SHARE)
        return math.ceil(peak_requests / PEAK_SECONDS)

    @property
    def read_qps(self) -> int:
        return int(self.effective_qps * self.read_write_ratio / (self.read_write_ratio + 1))

    @property
    def write_qps(self) -> int:
        return int(self.effective_qps / (self.read_write_ratio + 1))

    @property
    def error_budget(self) -> float:
        """Allowed error rate implied by the availability target."""
        return 1.0 - self.availability_target


@dataclass(frozen=True)
class Problem:
    """A design exercise: a scenario plus the constraints it is judged by.

    Attributes:
        id: Problem identity.
        title: Short title.
        constraints: Targets.
        optimal_components: Component type names of a reference solution.
    """

    id: str
    title: str
    constraints: ProblemConstraints = field(default_factory=ProblemConstraints)
    optimal_components: tuple[str, ...] = ()
