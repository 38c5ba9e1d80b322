"""archsim: tick-based traffic and failure simulation of infrastructure designs.

Build a design from ``Component`` and ``Connection`` values, then either call
the pure ``run_tick`` directly or let a ``TickScheduler`` drive it.

Logging is silent by default. Enable it with ``archsim.enable_console_logging()``
or through the ``ARCHSIM_LOGGING`` environment variable and
``archsim.configure_from_env()``.
"""

import logging

logging.getLogger("archsim").addHandler(logging.NullHandler())

from archsim.chaos import NEUTRAL, ChaosEvent, ChaosKind, ChaosMultipliers, compose_multipliers
from archsim.engine import DesignGraph, TickInput, TickResult, run_tick, topological_order
from archsim.instrumentation import Data, MetricsHistory, SimulationSummary
from archsim.logging_config import (
    configure_from_env,
    disable_logging,
    enable_console_logging,
    enable_file_logging,
    enable_json_logging,
    set_level,
    set_module_level,
)
from archsim.model import (
    INFRASTRUCTURE_ID,
    Component,
    ComponentConfig,
    ComponentMetrics,
    ComponentType,
    Connection,
    ConnectionType,
    FailureEvent,
    FailureKind,
    FixType,
    GlobalMetrics,
    Problem,
    ProblemConstraints,
)
from archsim.settings import EngineSettings
from archsim.simulation import (
    AcceptAllValidator,
    DesignValidator,
    FailureVisibilityTracker,
    Score,
    SimulationState,
    SimulationStatus,
    TickScheduler,
    ValidationError,
    ValidationIssue,
    ValidationResult,
)

__version__ = "0.1.0"

__all__ = [
    # Model
    "Component",
    "ComponentConfig",
    "ComponentMetrics",
    "ComponentType",
    "Connection",
    "ConnectionType",
    "FailureEvent",
    "FailureKind",
    "FixType",
    "GlobalMetrics",
    "INFRASTRUCTURE_ID",
    "Problem",
    "ProblemConstraints",
    # Chaos
    "ChaosEvent",
    "ChaosKind",
    "ChaosMultipliers",
    "NEUTRAL",
    "compose_multipliers",
    # Engine
    "DesignGraph",
    "TickInput",
    "TickResult",
    "run_tick",
    "topological_order",
    # Simulation
    "AcceptAllValidator",
    "DesignValidator",
    "FailureVisibilityTracker",
    "Score",
    "SimulationState",
    "SimulationStatus",
    "TickScheduler",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
    # Instrumentation
    "Data",
    "MetricsHistory",
    "SimulationSummary",
    # Settings
    "EngineSettings",
    # Logging
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_logging",
    "set_level",
    "set_module_level",
]
