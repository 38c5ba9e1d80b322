"""Run control: status machine, scheduler, failure visibility, validation, score."""

from archsim.simulation.scheduler import TickScheduler
from archsim.simulation.score import Score, compute_score
from archsim.simulation.state import SimulationState, SimulationStatus
from archsim.simulation.validation import (
    AcceptAllValidator,
    DesignValidator,
    IssueSeverity,
    ValidationError,
    ValidationIssue,
    ValidationResult,
)
from archsim.simulation.visibility import FailureVisibilityTracker

__all__ = [
    "AcceptAllValidator",
    "DesignValidator",
    "FailureVisibilityTracker",
    "IssueSeverity",
    "Score",
    "SimulationState",
    "SimulationStatus",
    "TickScheduler",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
    "compute_score",
]
