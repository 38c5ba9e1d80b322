"""Design model: components, connections, metrics, failures and problem targets."""

from archsim.model.component import (
    BASE_LATENCY_MS,
    CONNECTION_POOL_TYPES,
    CRITICAL_PATH_TYPES,
    DATABASE_TYPES,
    DEFAULT_REGION,
    QUEUE_LIKE_TYPES,
    Component,
    ComponentConfig,
    ComponentType,
    ReplicationTopology,
)
from archsim.model.connection import Connection, ConnectionType
from archsim.model.failure import INFRASTRUCTURE_ID, FailureEvent, FailureKind, FixType
from archsim.model.metrics import ComponentMetrics, GlobalMetrics
from archsim.model.problem import Problem, ProblemConstraints

__all__ = [
    "BASE_LATENCY_MS",
    "CONNECTION_POOL_TYPES",
    "CRITICAL_PATH_TYPES",
    "DATABASE_TYPES",
    "DEFAULT_REGION",
    "INFRASTRUCTURE_ID",
    "QUEUE_LIKE_TYPES",
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
    "Problem",
    "ProblemConstraints",
    "ReplicationTopology",
]
