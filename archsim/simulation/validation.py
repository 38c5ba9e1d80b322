"""Structural validation run before a simulation may start.

The validator itself belongs to the surrounding application; this module
defines the interface the scheduler calls and a permissive default.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from archsim.model.component import Component
from archsim.model.connection import Connection
from archsim.model.problem import Problem


class IssueSeverity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    """A single finding. Only ``ERROR`` issues fail validation."""

    message: str
    severity: IssueSeverity = IssueSeverity.ERROR
    component_id: str | None = None

    def __str__(self) -> str:
        where = f" [{self.component_id}]" if self.component_id else ""
        return f"{self.severity.value}{where}: {self.message}"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a design."""

    is_valid: bool
    issues: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @classmethod
    def from_issues(cls, issues: Sequence[ValidationIssue]) -> ValidationResult:
        """Valid unless at least one issue is an error."""
        return cls(
            is_valid=not any(i.severity is IssueSeverity.ERROR for i in issues),
            issues=tuple(issues),
        )

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity is IssueSeverity.ERROR]

    def to_dict(self) -> dict[str, Any]:
        return {"is_valid": self.is_valid, "issues": [str(i) for i in self.issues]}


@runtime_checkable
class DesignValidator(Protocol):
    """Anything that can vet a design before it runs."""

    def validate(
        self,
        components: Sequence[Component],
        connections: Sequence[Connection],
        problem: Problem,
    ) -> ValidationResult:
        ...


class AcceptAllValidator:
    """Default validator: every design passes."""

    def validate(
        self,
        components: Sequence[Component],
        connections: Sequence[Connection],
        problem: Problem,
    ) -> ValidationResult:
        return ValidationResult(is_valid=True)


class ValidationError(RuntimeError):
    """Raised when a run is started with a design that fails validation."""

    def __init__(self, result: ValidationResult) -> None:
        self.result = result
        details = "; ".join(str(i) for i in result.errors) or "design rejected"
        super().__init__(f"Cannot start: {details}")
