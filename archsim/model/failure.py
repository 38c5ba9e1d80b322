"""Failure events: every anomaly the engine detects is reported as data.

A ``FailureEvent`` is ephemeral. Each tick produces a complete new list; the
scheduler only remembers when a (component, kind) key was first seen so it
can delay showing it to the user.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

INFRASTRUCTURE_ID = "infrastructure"
"""Component id used for system-wide events such as a regional outage."""


class FailureKind(Enum):
    """Kinds of failures and anomalies."""

    CAPACITY_OVERFLOW = "capacity_overflow"
    OVERLOAD = "overload"
    SPOF = "spof"
    LATENCY_BREACH = "latency_breach"
    DATA_LOSS = "data_loss"
    QUEUE_OVERFLOW = "queue_overflow"
    CONNECTION_EXHAUSTION = "connection_exhaustion"
    SLOW_NODE = "slow_node"
    SCALE_UP_DELAY = "scale_up_delay"
    COLD_START = "cold_start"
    CACHE_THRASHING = "cache_thrashing"
    COMPONENT_CRASH = "component_crash"
    REPLICATION_LAG = "replication_lag"
    STALE_READ = "stale_read"
    LOST_UPDATE = "lost_update"
    DUPLICATE_DELIVERY = "duplicate_delivery"
    CACHE_STAMPEDE = "cache_stampede"
    CASCADING_FAILURE = "cascading_failure"
    CIRCUIT_BREAKER_OPEN = "circuit_breaker_open"
    RETRY_STORM = "retry_storm"
    NETWORK_PARTITION = "network_partition"

    @property
    def display_name(self) -> str:
        return _KIND_NAMES.get(self, self.value.replace("_", " ").title())


_KIND_NAMES = {
    FailureKind.SPOF: "SPOF",
    FailureKind.DATA_LOSS: "Data Loss Risk",
    FailureKind.CAPACITY_OVERFLOW: "Capacity Overflow",
}


class FixType(Enum):
    """One-click remediation a UI can offer for a failure."""

    INCREASE_REPLICAS = "increase_replicas"
    ENABLE_AUTOSCALING = "enable_autoscaling"
    ENABLE_REPLICATION = "enable_replication"
    ADD_DLQ = "add_dlq"
    INCREASE_CONNECTION_POOL = "increase_connection_pool"
    ADD_CIRCUIT_BREAKER = "add_circuit_breaker"
    ENABLE_RATE_LIMITING = "enable_rate_limiting"


@dataclass(frozen=True)
class FailureEvent:
    """A failure or anomaly observed on one tick.

    Attributes:
        timestamp: Wall-clock time of the tick that produced the event.
        component_id: Owning component, or ``INFRASTRUCTURE_ID``.
        kind: Failure kind tag.
        message: Human-readable description.
        recommendation: Suggested remedy in prose.
        severity: Impact in [0, 1].
        affected_components: Other component ids involved.
        fix_type: Suggested one-click remediation.
        expected_recovery: How long the condition is expected to last.
        user_visible: Whether the condition should be surfaced to the end user.
    """

    timestamp: datetime
    component_id: str
    kind: FailureKind
    message: str
    recommendation: str
    severity: float
    affected_components: tuple[str, ...] = field(default_factory=tuple)
    fix_type: FixType | None = None
    expected_recovery: timedelta | None = None
    user_visible: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "severity", min(1.0, max(0.0, float(self.severity))))
        object.__setattr__(self, "affected_components", tuple(self.affected_components))

    @property
    def key(self) -> tuple[str, FailureKind]:
        """Identity used for deduplication and visibility tracking."""
        return (self.component_id, self.kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "component_id": self.component_id,
            "kind": self.kind.value,
            "message": self.message,
            "recommendation": self.recommendation,
            "severity": self.severity,
            "affected_components": list(self.affected_components),
            "fix_type": self.fix_type.value if self.fix_type else None,
            "expected_recovery_s": (
                self.expected_recovery.total_seconds() if self.expected_recovery else None
            ),
            "user_visible": self.user_visible,
        }
