"""Run status and the mutable state a scheduler owns.

``SimulationState`` is the single long-lived value of a run. The scheduler
mutates it after each applied tick; observers receive it by reference and
should treat it as read-only.

Status transitions::

    idle -> running -> paused -> running
                    -> completed
                    -> failed
    any  -> idle    (stop)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from archsim.chaos.event import ChaosEvent
from archsim.model.failure import FailureEvent
from archsim.model.metrics import ComponentMetrics, GlobalMetrics

if TYPE_CHECKING:
    from archsim.simulation.score import Score

logger = logging.getLogger(__name__)


class SimulationStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SimulationState:
    """Everything a run accumulates between ticks.

    Attributes:
        status: Current run status.
        tick_count: Ticks applied since the run started.
        global_metrics: Aggregate of the last applied tick.
        component_metrics: Snapshot per component of the last applied tick.
        connection_traffic: Display flow per connection of the last tick.
        failures: Every failure of the last applied tick.
        visible_failures: Subset of ``failures`` past the visibility dwell.
        chaos_events: Chaos events injected into the run.
        failure_reason: Why the run entered FAILED, if it did.
        score: Final score, set on completion.
    """

    status: SimulationStatus = SimulationStatus.IDLE
    tick_count: int = 0
    global_metrics: GlobalMetrics = field(default_factory=GlobalMetrics)
    component_metrics: dict[str, ComponentMetrics] = field(default_factory=dict)
    connection_traffic: dict[str, float] = field(default_factory=dict)
    failures: list[FailureEvent] = field(default_factory=list)
    visible_failures: list[FailureEvent] = field(default_factory=list)
    chaos_events: list[ChaosEvent] = field(default_factory=list)
    failure_reason: str | None = None
    score: Score | None = None

    @property
    def is_idle(self) -> bool:
        return self.status is SimulationStatus.IDLE

    @property
    def is_running(self) -> bool:
        return self.status is SimulationStatus.RUNNING

    @property
    def is_paused(self) -> bool:
        return self.status is SimulationStatus.PAUSED

    @property
    def is_completed(self) -> bool:
        return self.status is SimulationStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status is SimulationStatus.FAILED

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Enter RUNNING from a fresh run, clearing the previous run's data.

        Raises:
            RuntimeError: If a run is already running or paused.
        """
        if self.status in (SimulationStatus.RUNNING, SimulationStatus.PAUSED):
            raise RuntimeError(f"Cannot start: simulation is {self.status.value}")
        self.reset()
        self.status = SimulationStatus.RUNNING

    def pause(self) -> None:
        if self.status is not SimulationStatus.RUNNING:
            raise RuntimeError("Cannot pause: simulation is not running")
        self.status = SimulationStatus.PAUSED

    def resume(self) -> None:
        if self.status is not SimulationStatus.PAUSED:
            raise RuntimeError("Cannot resume: simulation is not paused")
        self.status = SimulationStatus.RUNNING

    def stop(self) -> None:
        """Return to IDLE. Metrics and failures of the last tick are kept."""
        self.status = SimulationStatus.IDLE

    def complete(self) -> None:
        if self.status not in (SimulationStatus.RUNNING, SimulationStatus.PAUSED):
            raise RuntimeError(f"Cannot complete: simulation is {self.status.value}")
        self.status = SimulationStatus.COMPLETED

    def fail(self, reason: str) -> None:
        """Enter FAILED. Only callers drive this; the engine never does."""
        if self.status not in (SimulationStatus.RUNNING, SimulationStatus.PAUSED):
            raise RuntimeError(f"Cannot fail: simulation is {self.status.value}")
        self.status = SimulationStatus.FAILED
        self.failure_reason = reason
        logger.warning("Simulation failed: %s", reason)

    def reset(self) -> None:
        """Clear per-run data. Chaos events are kept."""
        self.tick_count = 0
        self.global_metrics = GlobalMetrics()
        self.component_metrics = {}
        self.connection_traffic = {}
        self.failures = []
        self.visible_failures = []
        self.failure_reason = None
        self.score = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "tick_count": self.tick_count,
            "global_metrics": self.global_metrics.to_dict(),
            "failures": [f.to_dict() for f in self.failures],
            "visible_failures": [f.to_dict() for f in self.visible_failures],
            "chaos_events": [e.to_dict() for e in self.chaos_events],
            "failure_reason": self.failure_reason,
            "score": self.score.to_dict() if self.score else None,
        }
