"""Replication and durability anomalies.

Runs after the traffic pass over the finished snapshots. Probabilistic checks
draw from a caller-provided RNG so a tick can be replayed exactly.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from datetime import datetime

from archsim.engine.topology import DesignGraph
from archsim.model.component import ComponentType
from archsim.model.failure import FailureEvent, FailureKind, FixType
from archsim.model.metrics import ComponentMetrics

logger = logging.getLogger(__name__)

BASE_LAG_MS = 50
LAG_PER_CPU_MS = 2000
LAG_WARNING_MS = 500
STALE_READ_LAG_MS = 1000
LOST_UPDATE_MIN_RPS = 100
DUPLICATE_DELIVERY_CHANCE = 0.05
STAMPEDE_HIT_RATE = 0.3
STAMPEDE_MIN_RPS = 1000


def replication_lag_ms(cpu_usage: float) -> int:
    """Modelled replication lag: 50 ms idle up to about 2 s saturated."""
    return int(BASE_LAG_MS + cpu_usage * LAG_PER_CPU_MS)


def lost_update_probability(rps: float) -> float:
    return min(0.1, max(0.02, rps / 1000))


def detect_consistency_anomalies(
    graph: DesignGraph,
    metrics: Mapping[str, ComponentMetrics],
    rng: random.Random,
    timestamp: datetime,
) -> list[FailureEvent]:
    """Return replication lag, stale read, lost update, duplicate delivery
    and cache stampede events for this tick.

    Args:
        graph: Indexed design.
        metrics: Snapshots computed this tick. Components without one are skipped.
        rng: Random source seeded from the tick index.
        timestamp: Timestamp stamped on the events.
    """
    issues: list[FailureEvent] = []

    for component in graph.components:
        snapshot = metrics.get(component.id)
        if snapshot is None:
            continue
        config = component.config

        if component.type.is_database:
            if config.replication and config.replication_factor > 1:
                lag = replication_lag_ms(snapshot.cpu_usage)
                if lag > LAG_WARNING_MS:
                    issues.append(FailureEvent(
                        timestamp=timestamp,
                        component_id=component.id,
                        kind=FailureKind.REPLICATION_LAG,
                        message=f"Replication lag {lag}ms - users may see stale data",
                        recommendation="Use read-your-writes consistency or strong reads",
                        severity=min(0.7, max(0.3, lag / 2000)),
                        fix_type=FixType.INCREASE_REPLICAS,
                    ))
                if lag > STALE_READ_LAG_MS:
                    issues.append(FailureEvent(
                        timestamp=timestamp,
                        component_id=component.id,
                        kind=FailureKind.STALE_READ,
                        message=f"Replicas {lag}ms behind - reads are returning stale data",
                        recommendation="Route critical reads to the leader or use quorum reads",
                        severity=0.6,
                    ))

            if snapshot.current_rps > LOST_UPDATE_MIN_RPS and not config.has_quorum_writes:
                if rng.random() < lost_update_probability(snapshot.current_rps):
                    issues.append(FailureEvent(
                        timestamp=timestamp,
                        component_id=component.id,
                        kind=FailureKind.LOST_UPDATE,
                        message="Concurrent write conflict detected",
                        recommendation="Use optimistic locking or quorum writes",
                        severity=0.8,
                    ))

        elif component.type.is_async_consumer and snapshot.current_rps > 0:
            if rng.random() < DUPLICATE_DELIVERY_CHANCE:
                issues.append(FailureEvent(
                    timestamp=timestamp,
                    component_id=component.id,
                    kind=FailureKind.DUPLICATE_DELIVERY,
                    message="Message redelivered after a consumer timeout",
                    recommendation="Make consumers idempotent",
                    severity=0.3,
                    user_visible=False,
                ))

        elif (
            component.type is ComponentType.CACHE
            and snapshot.cache_hit_rate < STAMPEDE_HIT_RATE
            and snapshot.current_rps > STAMPEDE_MIN_RPS
        ):
            databases = [
                target_id for target_id in graph.downstream_ids(component.id)
                if graph.by_id[target_id].type.is_database
            ]
            if databases:
                issues.append(FailureEvent(
                    timestamp=timestamp,
                    component_id=component.id,
                    kind=FailureKind.CACHE_STAMPEDE,
                    message="Cache stampede overwhelming database",
                    recommendation="Use cache warming or probabilistic early expiration",
                    severity=0.7,
                    affected_components=databases,
                ))

    if issues:
        logger.debug("%d consistency anomalies", len(issues))
    return issues
