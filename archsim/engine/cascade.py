"""Secondary failures derived from the first-pass failures and the graph.

Three passes live here:

- ``propagate_cascades``: severe overloads, latency breaches and cache
  stampedes spill onto direct downstream components unless a circuit
  breaker stops them.
- ``detect_retry_storms``: retrying components with a high error rate and no
  breaker amplify their own traffic.
- ``simulate_regional_outage``: a rare infrastructure-level event that takes
  out every component whose primary region fails.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta

from archsim.engine.topology import DesignGraph
from archsim.model.component import Component
from archsim.model.failure import INFRASTRUCTURE_ID, FailureEvent, FailureKind, FixType
from archsim.model.metrics import ComponentMetrics

logger = logging.getLogger(__name__)

CASCADING_KINDS = frozenset({
    FailureKind.OVERLOAD,
    FailureKind.LATENCY_BREACH,
    FailureKind.CACHE_STAMPEDE,
})
CASCADE_SEVERITY_THRESHOLD = 0.6
CASCADE_ATTENUATION = 0.8
BREAKER_SEVERITY = 0.3

RETRY_ERROR_THRESHOLD = 0.2
RETRY_AMPLIFICATION_THRESHOLD = 1.5

KNOWN_REGIONS = ("us-east-1", "us-west-2", "eu-central-1", "ap-southeast-1")
OUTAGE_RECOVERY = timedelta(minutes=5)


def propagate_cascades(
    graph: DesignGraph,
    failures: Iterable[FailureEvent],
    rng: random.Random,
    timestamp: datetime,
    probability: float = 0.5,
) -> list[FailureEvent]:
    """Derive cascading failures from severe first-pass failures.

    Every qualifying failure is judged on its own, so a source with two
    severe failures gets two chances to spread to each downstream. A
    downstream component with a circuit breaker reports a low-severity,
    hidden ``CIRCUIT_BREAKER_OPEN``; otherwise the failure spreads with
    ``probability``.

    Args:
        graph: Indexed design.
        failures: Capacity and consistency failures from this tick.
        rng: Seeded random source for the spread decision.
        timestamp: Timestamp stamped on the events.
        probability: Chance an unprotected downstream inherits the failure.
    """
    cascaded: list[FailureEvent] = []

    for failure in failures:
        if failure.kind not in CASCADING_KINDS or failure.severity <= CASCADE_SEVERITY_THRESHOLD:
            continue

        for downstream_id in graph.downstream_ids(failure.component_id):
            downstream = graph.by_id[downstream_id]

            if downstream.config.circuit_breaker:
                cascaded.append(FailureEvent(
                    timestamp=timestamp,
                    component_id=downstream_id,
                    kind=FailureKind.CIRCUIT_BREAKER_OPEN,
                    message=f"{downstream.display_name} circuit breaker opened",
                    recommendation="Circuit breaker is containing the upstream failure",
                    severity=BREAKER_SEVERITY,
                    affected_components=(failure.component_id,),
                    user_visible=False,
                ))
            elif rng.random() < probability:
                cascaded.append(FailureEvent(
                    timestamp=timestamp,
                    component_id=downstream_id,
                    kind=FailureKind.CASCADING_FAILURE,
                    message=f"{downstream.display_name} affected by upstream failure",
                    recommendation="Add circuit breaker or fallback logic",
                    severity=failure.severity * CASCADE_ATTENUATION,
                    affected_components=(failure.component_id, downstream_id),
                    fix_type=FixType.ADD_CIRCUIT_BREAKER,
                ))

    if cascaded:
        logger.debug("%d cascade event(s)", len(cascaded))
    return cascaded


def retry_amplification(error_rate: float) -> float:
    """Traffic multiplier of three retries at ``error_rate``: 1 + e + e^2 + e^3."""
    e = error_rate
    return 1 + e + e * e + e * e * e


def detect_retry_storms(
    graph: DesignGraph,
    metrics: Mapping[str, ComponentMetrics],
    timestamp: datetime,
) -> list[FailureEvent]:
    """Flag retrying components whose retries amplify traffic past 1.5x."""
    storms: list[FailureEvent] = []

    for component in graph.components:
        config = component.config
        if not config.retries or config.circuit_breaker:
            continue
        snapshot = metrics.get(component.id)
        if snapshot is None or snapshot.error_rate <= RETRY_ERROR_THRESHOLD:
            continue

        amplification = retry_amplification(snapshot.error_rate)
        if amplification <= RETRY_AMPLIFICATION_THRESHOLD:
            continue

        storms.append(FailureEvent(
            timestamp=timestamp,
            component_id=component.id,
            kind=FailureKind.RETRY_STORM,
            message=(
                f"{component.display_name} retry storm: "
                f"{amplification:.2f}x traffic amplification"
            ),
            recommendation="Add circuit breaker to prevent retry storms, or use exponential backoff",
            severity=min(0.9, max(0.5, (amplification - 1) / 2)),
            affected_components=graph.downstream_ids(component.id),
            fix_type=FixType.ADD_CIRCUIT_BREAKER,
        ))

    return storms


def simulate_regional_outage(
    components: Sequence[Component],
    rng: random.Random,
    timestamp: datetime,
    probability: float = 0.0005,
    regions: Sequence[str] = KNOWN_REGIONS,
) -> FailureEvent | None:
    """Roll for a regional outage.

    Returns an infrastructure-level ``NETWORK_PARTITION`` naming every
    component whose primary region failed, or None if the roll misses or no
    component lives in the failed region.
    """
    if not regions or rng.random() >= probability:
        return None

    failed_region = rng.choice(list(regions))
    affected = [c.id for c in components if c.config.primary_region == failed_region]
    if not affected:
        return None

    logger.info("Regional outage in %s affects %d component(s)", failed_region, len(affected))
    return FailureEvent(
        timestamp=timestamp,
        component_id=INFRASTRUCTURE_ID,
        kind=FailureKind.NETWORK_PARTITION,
        message=f"Regional Outage: {failed_region} is down",
        recommendation="Enable multi-region failover and active-active replication",
        severity=1.0,
        affected_components=affected,
        expected_recovery=OUTAGE_RECOVERY,
    )
