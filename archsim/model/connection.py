"""Directed edges between components."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConnectionType(Enum):
    """What flows over an edge."""

    REQUEST = "request"
    ASYNC = "async"
    REPLICATION = "replication"

    @property
    def is_synchronous(self) -> bool:
        return self is ConnectionType.REQUEST


@dataclass(frozen=True)
class Connection:
    """Directed edge from ``source_id`` to ``target_id``.

    Edges may form cycles and may reference ids that are not (or no longer)
    on the design; the engine skips such dangling references.

    Attributes:
        id: Identity of the edge.
        source_id: Upstream component id.
        target_id: Downstream component id.
        type: Synchronous request, asynchronous event, or replication.
        traffic_flow: Display-only flow intensity in [0, 1].
    """

    id: str
    source_id: str
    target_id: str
    type: ConnectionType = ConnectionType.REQUEST
    traffic_flow: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "type": self.type.value,
            "traffic_flow": self.traffic_flow,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Connection:
        return cls(
            id=str(data["id"]),
            source_id=str(data["source_id"]),
            target_id=str(data["target_id"]),
            type=ConnectionType(data.get("type", ConnectionType.REQUEST.value)),
            traffic_flow=float(data.get("traffic_flow", 0.0)),
        )
