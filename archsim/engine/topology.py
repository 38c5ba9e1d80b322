"""Graph indexing and topological ordering of a design.

``DesignGraph`` indexes components and connections once per tick so the other
engine passes can look up neighbours without rescanning the connection list.
Connections whose source or target is not a known component are dropped here,
which is the single place dangling references are filtered.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence

from archsim.model.component import Component
from archsim.model.connection import Connection

logger = logging.getLogger(__name__)


class DesignGraph:
    """Read-only adjacency index over components and connections.

    Args:
        components: Components on the design, in display order.
        connections: Edges between them. Dangling edges are ignored.
    """

    def __init__(self, components: Sequence[Component], connections: Sequence[Connection]):
        self.components: list[Component] = list(components)
        self.by_id: dict[str, Component] = {c.id: c for c in self.components}
        self.connections: list[Connection] = []
        self._outgoing: dict[str, list[Connection]] = {c.id: [] for c in self.components}
        self._incoming: dict[str, list[Connection]] = {c.id: [] for c in self.components}

        dangling = 0
        for conn in connections:
            if conn.source_id not in self.by_id or conn.target_id not in self.by_id:
                dangling += 1
                continue
            self.connections.append(conn)
            self._outgoing[conn.source_id].append(conn)
            self._incoming[conn.target_id].append(conn)

        if dangling:
            logger.debug("Skipped %d dangling connection(s)", dangling)

    def outgoing(self, component_id: str) -> list[Connection]:
        return self._outgoing.get(component_id, [])

    def incoming(self, component_id: str) -> list[Connection]:
        return self._incoming.get(component_id, [])

    def downstream_ids(self, component_id: str) -> list[str]:
        """Distinct direct targets of ``component_id``, in edge order."""
        seen: dict[str, None] = {}
        for conn in self.outgoing(component_id):
            seen.setdefault(conn.target_id, None)
        return list(seen)

    def is_entry_point(self, component_id: str) -> bool:
        """A component with no inbound edge receives external traffic."""
        return not self.incoming(component_id)

    @property
    def entry_points(self) -> list[Component]:
        return [c for c in self.components if self.is_entry_point(c.id)]

    def topological_order(self) -> list[Component]:
        """Order components so sources precede their targets.

        Kahn's algorithm over the non-dangling edges. Components left after
        the queue drains sit on (or behind) a cycle; they are appended in
        their original order so every component appears exactly once.
        """
        in_degree = {c.id: len(self._incoming[c.id]) for c in self.components}
        ready = deque(c.id for c in self.components if in_degree[c.id] == 0)
        ordered: list[Component] = []
        visited: set[str] = set()

        while ready:
            node_id = ready.popleft()
            visited.add(node_id)
            ordered.append(self.by_id[node_id])
            for conn in self._outgoing[node_id]:
                in_degree[conn.target_id] -= 1
                if in_degree[conn.target_id] == 0:
                    ready.append(conn.target_id)

        if len(ordered) < len(self.components):
            leftover = [c for c in self.components if c.id not in visited]
            logger.debug(
                "Cycle detected: appending %d component(s) in input order", len(leftover)
            )
            ordered.extend(leftover)

        return ordered


def topological_order(
    components: Sequence[Component],
    connections: Sequence[Connection],
) -> list[Component]:
    """Convenience wrapper around ``DesignGraph(...).topological_order()``."""
    return DesignGraph(components, connections).topological_order()
