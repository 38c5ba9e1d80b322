"""Final score of a completed run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from archsim.model.metrics import GlobalMetrics
from archsim.model.problem import Problem

SPOF_PENALTY = 10.0

WEIGHTS = {
    "scalability": 0.25,
    "reliability": 0.25,
    "performance": 0.25,
    "cost": 0.15,
    "simplicity": 0.10,
}


def _clamp_score(value: float) -> float:
    return min(100.0, max(0.0, value))


@dataclass(frozen=True)
class Score:
    """Five 0-100 dimensions and their weighted overall.

    Attributes:
        scalability: Share of the target QPS served successfully.
        reliability: Availability against target, minus SPOF penalties.
        performance: P95 latency against the SLA.
        cost: Monthly cost against budget; under budget scores 80-100.
        simplicity: Component count against the reference solution.
    """

    scalability: float = 0.0
    reliability: float = 0.0
    performance: float = 0.0
    cost: float = 0.0
    simplicity: float = 0.0

    @property
    def overall(self) -> float:
        return sum(getattr(self, name) * weight for name, weight in WEIGHTS.items())

    @property
    def grade(self) -> str:
        overall = self.overall
        for threshold, grade in ((90, "S"), (80, "A"), (70, "B"), (60, "C"), (50, "D")):
            if overall >= threshold:
                return grade
        return "F"

    @property
    def stars(self) -> int:
        overall = self.overall
        for threshold, stars in ((90, 5), (75, 4), (60, 3), (40, 2)):
            if overall >= threshold:
                return stars
        return 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "scalability": self.scalability,
            "reliability": self.reliability,
            "performance": self.performance,
            "cost": self.cost,
            "simplicity": self.simplicity,
            "overall": self.overall,
            "grade": self.grade,
        }


def compute_score(
    metrics: GlobalMetrics,
    problem: Problem,
    spof_count: int,
    component_count: int,
) -> Score:
    """Score a run from its final global metrics.

    Args:
        metrics: Global metrics of the last applied tick.
        problem: The problem the design was built for.
        spof_count: Distinct components flagged as single points of failure.
        component_count: Components on the design.
    """
    constraints = problem.constraints

    target_qps = max(1, constraints.effective_qps)
    scalability = _clamp_score(metrics.successful_requests / target_qps * 100)

    availability_delta = (1 - metrics.availability) / constraints.error_budget
    reliability = _clamp_score(100 - availability_delta * 50)
    reliability = _clamp_score(reliability - spof_count * SPOF_PENALTY)

    performance = 100.0
    if metrics.p95_latency_ms > constraints.latency_sla_p95_ms:
        performance = _clamp_score(100 / (metrics.p95_latency_ms / constraints.latency_sla_p95_ms))

    budget = constraints.budget_per_month
    monthly = metrics.monthly_cost
    if budget <= 0:
        cost = 100.0 if monthly == 0 else 0.0
    elif monthly > budget:
        cost = _clamp_score(budget / monthly * 100)
    else:
        cost = 100 - monthly / budget * 20

    simplicity = 100.0
    optimal = len(problem.optimal_components)
    if optimal and component_count > optimal * 1.5:
        simplicity = _clamp_score(optimal / component_count * 100)
    elif optimal and component_count < optimal * 0.5:
        simplicity = 50.0

    return Score(
        scalability=scalability,
        reliability=reliability,
        performance=performance,
        cost=cost,
        simplicity=simplicity,
    )
