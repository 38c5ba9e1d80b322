"""Summary of a finished (or stopped) run.

``SimulationSummary.from_history`` condenses a ``MetricsHistory`` into
per-run and per-component statistics suitable for printing or JSON export.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from archsim.model.failure import FailureKind

if TYPE_CHECKING:
    from archsim.instrumentation.history import MetricsHistory
    from archsim.simulation.score import Score


@dataclass
class ComponentSummary:
    """Per-component statistics over a run."""
    component_id: str
    mean_rps: float
    peak_rps: float
    mean_latency_ms: float
    p95_latency_ms: float
    peak_cpu: float
    mean_error_rate: float
    peak_queue_depth: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "component_id": self.component_id,
            "mean_rps": self.mean_rps,
            "peak_rps": self.peak_rps,
            "mean_latency_ms": self.mean_latency_ms,
            "p95_latency_ms": self.p95_latency_ms,
            "peak_cpu": self.peak_cpu,
            "mean_error_rate": self.mean_error_rate,
            "peak_queue_depth": self.peak_queue_depth,
        }


@dataclass
class SimulationSummary:
    """Whole-run statistics."""
    ticks: int
    mean_rps: float
    mean_availability: float
    min_availability: float
    final_availability: float
    p95_latency_ms: float
    mean_cost_per_hour: float
    failure_counts: dict[FailureKind, int] = field(default_factory=dict)
    spof_components: list[str] = field(default_factory=list)
    components: dict[str, ComponentSummary] = field(default_factory=dict)
    score: Score | None = None

    @classmethod
    def from_history(cls, history: MetricsHistory, score: Score | None = None) -> SimulationSummary:
        availability = history.series("availability")
        components = {}
        for component_id, series in history.component_series.items():
            components[component_id] = ComponentSummary(
                component_id=component_id,
                mean_rps=series["current_rps"].mean(),
                peak_rps=series["current_rps"].max(),
                mean_latency_ms=series["latency_ms"].mean(),
                p95_latency_ms=series["latency_ms"].percentile(0.95),
                peak_cpu=series["cpu_usage"].max(),
                mean_error_rate=series["error_rate"].mean(),
                peak_queue_depth=series["queue_depth"].max(),
            )

        return cls(
            ticks=len(history),
            mean_rps=history.series("total_rps").mean(),
            mean_availability=availability.mean() if availability else 1.0,
            min_availability=availability.min() if availability else 1.0,
            final_availability=availability.last() if availability else 1.0,
            p95_latency_ms=history.series("p95_latency_ms").percentile(0.95),
            mean_cost_per_hour=history.series("total_cost_per_hour").mean(),
            failure_counts=dict(history.failure_totals),
            spof_components=sorted(history.spof_components),
            components=components,
            score=score,
        )

    def __str__(self) -> str:
        lines = [
            "Simulation Summary",
            f"  Ticks: {self.ticks}",
            f"  Throughput: {self.mean_rps:.0f} rps (mean)",
            f"  Availability: {self.mean_availability * 100:.3f}% mean, "
            f"{self.min_availability * 100:.3f}% min, {self.final_availability * 100:.3f}% final",
            f"  P95 latency: {self.p95_latency_ms:.1f}ms",
            f"  Cost: ${self.mean_cost_per_hour:.2f}/h",
        ]
        if self.failure_counts:
            lines.append("  Failures (tick-occurrences):")
            for kind, count in sorted(self.failure_counts.items(), key=lambda kv: -kv[1]):
                lines.append(f"    {kind.display_name}: {count}")
        if self.spof_components:
            lines.append(f"  Single points of failure: {', '.join(self.spof_components)}")
        if self.components:
            lines.append("  Components:")
            for cs in self.components.values():
                lines.append(
                    f"    {cs.component_id}: {cs.mean_rps:.0f} rps, "
                    f"{cs.mean_latency_ms:.1f}ms mean, cpu peak {cs.peak_cpu * 100:.0f}%, "
                    f"errors {cs.mean_error_rate * 100:.2f}%"
                )
        if self.score is not None:
            lines.append(
                f"  Score: {self.score.overall:.1f} ({self.score.grade})"
            )
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticks": self.ticks,
            "mean_rps": self.mean_rps,
            "mean_availability": self.mean_availability,
            "min_availability": self.min_availability,
            "final_availability": self.final_availability,
            "p95_latency_ms": self.p95_latency_ms,
            "mean_cost_per_hour": self.mean_cost_per_hour,
            "failure_counts": {k.value: v for k, v in self.failure_counts.items()},
            "spof_components": list(self.spof_components),
            "components": {cid: cs.to_dict() for cid, cs in self.components.items()},
            "score": self.score.to_dict() if self.score else None,
        }
