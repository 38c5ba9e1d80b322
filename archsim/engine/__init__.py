"""Tick engine: the pure per-tick computation and its passes."""

from archsim.engine.aggregate import aggregate, union_error_rate
from archsim.engine.cascade import (
    detect_retry_storms,
    propagate_cascades,
    retry_amplification,
    simulate_regional_outage,
)
from archsim.engine.consistency import detect_consistency_anomalies
from archsim.engine.evolution import (
    error_rate_for_load,
    evolve_component,
    latency_load_multiplier,
)
from archsim.engine.rules import evaluate_rules
from archsim.engine.tick import TickInput, TickResult, run_tick
from archsim.engine.topology import DesignGraph, topological_order
from archsim.engine.traffic import synthetic_rps, traffic_multiplier

__all__ = [
    "DesignGraph",
    "TickInput",
    "TickResult",
    "aggregate",
    "detect_consistency_anomalies",
    "detect_retry_storms",
    "error_rate_for_load",
    "evaluate_rules",
    "evolve_component",
    "latency_load_multiplier",
    "propagate_cascades",
    "retry_amplification",
    "run_tick",
    "simulate_regional_outage",
    "synthetic_rps",
    "topological_order",
    "traffic_multiplier",
    "union_error_rate",
]
