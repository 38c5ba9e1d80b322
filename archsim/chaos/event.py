"""Chaos events: transient perturbations injected into a running simulation.

A ``ChaosEvent`` is inert data with an activity window. The engine never
schedules or expires events itself; each tick it reads the set of events that
are active at the tick's timestamp and folds them into multipliers (see
``archsim.chaos.multipliers``).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ChaosKind(Enum):
    """Kinds of chaos that can be injected.

    Recognized parameters per kind:

    - ``TRAFFIC_SPIKE``: ``multiplier`` (float, default 4.0)
    - ``NETWORK_LATENCY``: ``latency_ms`` (int, default 300)
    - ``NETWORK_PARTITION``: ``component_ids`` (list of ids cut off)
    - ``DATABASE_SLOWDOWN``: ``multiplier`` (float, default 8.0)
    - ``CACHE_MISS_STORM``: ``hit_rate_drop`` (float in [0, 1], default 0.9)
    - ``COMPONENT_CRASH``: ``component_id`` (optional id to crash outright)
    """

    TRAFFIC_SPIKE = "traffic_spike"
    NETWORK_LATENCY = "network_latency"
    NETWORK_PARTITION = "network_partition"
    DATABASE_SLOWDOWN = "database_slowdown"
    CACHE_MISS_STORM = "cache_miss_storm"
    COMPONENT_CRASH = "component_crash"


@dataclass(frozen=True)
class ChaosEvent:
    """A chaos injection active during ``[start, start + duration)``.

    Attributes:
        kind: What is perturbed.
        start: Wall-clock start of the window.
        duration: Length of the window.
        parameters: Kind-specific parameters.
        id: Identity used to remove the event early.
    """

    kind: ChaosKind
    start: datetime
    duration: timedelta
    parameters: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def __post_init__(self) -> None:
        if self.duration <= timedelta(0):
            raise ValueError(f"duration must be positive, got {self.duration}")

    @property
    def end(self) -> datetime:
        return self.start + self.duration

    def is_active(self, at: datetime) -> bool:
        """Whether ``at`` falls inside the activity window."""
        return self.start <= at < self.end

    def remaining(self, at: datetime) -> timedelta:
        """Time left in the window, never negative."""
        return max(self.end - at, timedelta(0))

    def progress(self, at: datetime) -> float:
        """Fraction of the window elapsed, clamped to [0, 1]."""
        elapsed = (at - self.start) / self.duration
        return min(1.0, max(0.0, elapsed))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "start": self.start.isoformat(),
            "duration_s": self.duration.total_seconds(),
            "parameters": dict(self.parameters),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosEvent:
        return cls(
            id=str(data["id"]),
            kind=ChaosKind(data["kind"]),
            start=datetime.fromisoformat(data["start"]),
            duration=timedelta(seconds=float(data["duration_s"])),
            parameters=dict(data.get("parameters", {})),
        )
