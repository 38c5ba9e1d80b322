"""Unit tests for design validation types."""

from __future__ import annotations

from archsim.simulation import (
    AcceptAllValidator,
    DesignValidator,
    ValidationError,
    ValidationIssue,
    ValidationResult,
)
from archsim.simulation.validation import IssueSeverity


class TestValidationResult:
    def test_errors_invalidate(self):
        result = ValidationResult.from_issues([
            ValidationIssue("no entry point"),
            ValidationIssue("unused cache", IssueSeverity.WARNING, "cache"),
        ])

        assert not result.is_valid
        assert [i.message for i in result.errors] == ["no entry point"]

    def test_warnings_alone_are_valid(self):
        result = ValidationResult.from_issues([ValidationIssue("odd", IssueSeverity.WARNING)])
        assert result.is_valid

    def test_issue_str(self):
        assert str(ValidationIssue("too slow", component_id="db")) == "error [db]: too slow"
        assert str(ValidationIssue("odd", IssueSeverity.WARNING)) == "warning: odd"

    def test_to_dict(self):
        result = ValidationResult.from_issues([ValidationIssue("bad")])
        assert result.to_dict() == {"is_valid": False, "issues": ["error: bad"]}


class TestValidators:
    def test_accept_all(self, problem):
        validator = AcceptAllValidator()

        assert isinstance(validator, DesignValidator)
        assert validator.validate([], [], problem).is_valid

    def test_validation_error_message(self):
        error = ValidationError(ValidationResult.from_issues([ValidationIssue("no entry point")]))

        assert isinstance(error, RuntimeError)
        assert str(error) == "Cannot start: error: no entry point"
        assert not error.result.is_valid
