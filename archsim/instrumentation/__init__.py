"""Run instrumentation: per-tick series, history and summaries."""

from archsim.instrumentation.data import BucketedData, Data
from archsim.instrumentation.history import MetricsHistory
from archsim.instrumentation.summary import ComponentSummary, SimulationSummary

__all__ = [
    "BucketedData",
    "ComponentSummary",
    "Data",
    "MetricsHistory",
    "SimulationSummary",
]
