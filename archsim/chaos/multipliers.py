"""Fold the active chaos events into scalar multipliers.

Multiplicative fields start neutral (1.0) and combine across events of the
same kind, so two simultaneous 2x traffic spikes give 4x traffic.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from archsim.chaos.event import ChaosEvent, ChaosKind

logger = logging.getLogger(__name__)

DEFAULT_SPIKE_MULTIPLIER = 4.0
DEFAULT_LATENCY_MS = 300
DEFAULT_DB_SLOWDOWN = 8.0
DEFAULT_HIT_RATE_DROP = 0.9
CRASH_FAILURE_MULTIPLIER = 10.0


@dataclass(frozen=True)
class ChaosMultipliers:
    """Scalar effect of all active chaos events.

    Attributes:
        traffic: Multiplier on synthetic inbound traffic.
        latency: Multiplier on every component's latency.
        database_latency: Extra multiplier on database latency.
        cache_hit_rate: Multiplier on cache hit rates.
        failure_rate: Multiplier on error rates.
        crashed_components: Components forced into the crashed state.
        partitioned_components: Components cut off from the network.
    """

    traffic: float = 1.0
    latency: float = 1.0
    database_latency: float = 1.0
    cache_hit_rate: float = 1.0
    failure_rate: float = 1.0
    crashed_components: frozenset[str] = field(default_factory=frozenset)
    partitioned_components: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_neutral(self) -> bool:
        return self == NEUTRAL


NEUTRAL = ChaosMultipliers()


def compose_multipliers(
    events: Iterable[ChaosEvent],
    now: datetime | None = None,
) -> ChaosMultipliers:
    """Combine chaos events into one ``ChaosMultipliers``.

    Args:
        events: Candidate events.
        now: Only events active at this instant count. None counts all events.

    Returns:
        The combined multipliers, ``NEUTRAL`` if nothing is active.
    """
    traffic = 1.0
    latency = 1.0
    database_latency = 1.0
    cache_hit_rate = 1.0
    failure_rate = 1.0
    crashed: set[str] = set()
    partitioned: set[str] = set()

    for event in events:
        if now is not None and not event.is_active(now):
            continue
        params = event.parameters

        if event.kind is ChaosKind.TRAFFIC_SPIKE:
            traffic *= float(params.get("multiplier", DEFAULT_SPIKE_MULTIPLIER))
        elif event.kind is ChaosKind.NETWORK_LATENCY:
            latency *= 1 + float(params.get("latency_ms", DEFAULT_LATENCY_MS)) / 100
        elif event.kind is ChaosKind.NETWORK_PARTITION:
            partitioned.update(str(c) for c in params.get("component_ids", ()))
        elif event.kind is ChaosKind.DATABASE_SLOWDOWN:
            database_latency *= float(params.get("multiplier", DEFAULT_DB_SLOWDOWN))
        elif event.kind is ChaosKind.CACHE_MISS_STORM:
            drop = min(1.0, max(0.0, float(params.get("hit_rate_drop", DEFAULT_HIT_RATE_DROP))))
            cache_hit_rate *= 1 - drop
        elif event.kind is ChaosKind.COMPONENT_CRASH:
            failure_rate *= CRASH_FAILURE_MULTIPLIER
            target = params.get("component_id")
            if target is not None:
                crashed.add(str(target))

    multipliers = ChaosMultipliers(
        traffic=traffic,
        latency=latency,
        database_latency=database_latency,
        cache_hit_rate=cache_hit_rate,
        failure_rate=failure_rate,
        crashed_components=frozenset(crashed),
        partitioned_components=frozenset(partitioned),
    )
    if not multipliers.is_neutral:
        logger.debug("Chaos multipliers: %s", multipliers)
    return multipliers
