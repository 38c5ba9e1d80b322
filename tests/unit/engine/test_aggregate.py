"""Unit tests for global aggregation."""

from __future__ import annotations

import random

import pytest

from archsim.engine import aggregate, union_error_rate
from archsim.model import ComponentMetrics, ComponentType, GlobalMetrics, ProblemConstraints


class TestUnionErrorRate:
    def test_independent_failures(self):
        assert union_error_rate([0.1, 0.2]) == pytest.approx(0.28)

    def test_empty(self):
        assert union_error_rate([]) == 0.0

    def test_certain_failure_dominates(self):
        assert union_error_rate([0.0, 1.0, 0.3]) == 1.0

    def test_out_of_range_rates_clamped(self):
        assert union_error_rate([-0.5, 1.5]) == 1.0


class TestAggregate:
    def test_no_snapshots_is_neutral(self, component_factory, problem):
        assert aggregate([component_factory("app")], {}, problem.constraints) == GlobalMetrics()

    def test_empty_design(self, problem):
        assert aggregate([], {}, problem.constraints) == GlobalMetrics()

    def test_latency_and_rates(self, component_factory, problem):
        components = [
            component_factory("app", cost_per_hour=1.0, instances=2),
            component_factory("worker", ComponentType.WORKER, cost_per_hour=0.5),
        ]
        metrics = {
            "app": ComponentMetrics(
                current_rps=600.0, latency_ms=40.0, p95_latency_ms=70.0, error_rate=0.5
            ),
            "worker": ComponentMetrics(
                current_rps=400.0, latency_ms=300.0, p95_latency_ms=525.0, error_rate=0.5
            ),
        }

        result = aggregate(components, metrics, problem.constraints)

        assert result.total_rps == 1000.0
        # only the app server is on the critical path
        assert result.avg_latency_ms == 40.0
        assert result.p50_latency_ms == pytest.approx(44.0)
        assert result.p95_latency_ms == 525.0
        assert result.p99_latency_ms == pytest.approx(945.0)
        assert result.error_rate == 0.75
        assert result.availability == 0.25
        assert result.total_cost_per_hour == pytest.approx(2.5)
        assert result.total_requests == 1000
        assert result.successful_requests == 250
        assert result.failed_requests == 750

    def test_no_critical_path_latency(self, component_factory, problem):
        components = [component_factory("worker", ComponentType.WORKER)]
        metrics = {"worker": ComponentMetrics(latency_ms=100.0)}

        assert aggregate(components, metrics, problem.constraints).avg_latency_ms == 0.0

    def test_cost_includes_components_without_snapshot(self, component_factory, problem):
        components = [
            component_factory("a", cost_per_hour=1.0),
            component_factory("b", cost_per_hour=2.0),
        ]

        result = aggregate(components, {"a": ComponentMetrics()}, problem.constraints)

        assert result.total_cost_per_hour == 3.0

    def test_error_budget_burn(self, component_factory):
        constraints = ProblemConstraints(qps=100, availability_target=0.99)
        components = [component_factory("app")]

        half = aggregate(components, {"app": ComponentMetrics(error_rate=0.005)}, constraints)
        assert half.error_budget_burn_rate == pytest.approx(0.5)
        assert half.error_budget_remaining == pytest.approx(0.5)

        blown = aggregate(components, {"app": ComponentMetrics(error_rate=0.5)}, constraints)
        assert blown.error_budget_burn_rate == pytest.approx(50.0)
        assert blown.error_budget_remaining == 0.0

    def test_bounds_hold_for_any_rates(self, component_factory, problem):
        rng = random.Random(42)
        components = [component_factory(f"c{i}") for i in range(5)]

        for _ in range(50):
            metrics = {
                c.id: ComponentMetrics(current_rps=rng.uniform(0, 5000), error_rate=rng.random())
                for c in components
            }
            result = aggregate(components, metrics, problem.constraints)

            assert 0.0 <= result.availability <= 1.0
            assert 0.0 <= result.error_budget_remaining <= 1.0
            assert result.availability == pytest.approx(1.0 - result.error_rate)
