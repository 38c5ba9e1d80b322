"""Delayed visibility of failures.

A failure key (component, kind) is shown only after it has been present on
every tick for at least the dwell time. A key missing from one tick starts
over, so single-tick noise never reaches the user.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from archsim.model.failure import FailureEvent, FailureKind

logger = logging.getLogger(__name__)

FailureKey = tuple[str, FailureKind]


class FailureVisibilityTracker:
    """Remembers when each failure key was first seen in the current streak.

    Args:
        dwell: Continuous presence required before a failure is visible.
        clock: Source of the current time. Injectable for tests.
    """

    def __init__(
        self,
        dwell: timedelta = timedelta(seconds=5),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if dwell < timedelta(0):
            raise ValueError(f"dwell must be >= 0, got {dwell}")
        self.dwell = dwell
        self._clock = clock
        self._first_seen: dict[FailureKey, datetime] = {}

    def update(self, failures: Iterable[FailureEvent]) -> list[FailureEvent]:
        """Record this tick's failures and return the visible ones.

        Keys absent from ``failures`` are forgotten.
        """
        now = self._clock()
        failures = list(failures)
        current = {f.key for f in failures}

        for key in current:
            self._first_seen.setdefault(key, now)
        for key in [k for k in self._first_seen if k not in current]:
            del self._first_seen[key]

        return [f for f in failures if now - self._first_seen[f.key] >= self.dwell]

    def first_seen(self, component_id: str, kind: FailureKind) -> datetime | None:
        return self._first_seen.get((component_id, kind))

    def clear_component(self, component_id: str) -> None:
        """Forget every key of one component, e.g. after a fix is applied."""
        for key in [k for k in self._first_seen if k[0] == component_id]:
            del self._first_seen[key]
        logger.debug("Cleared failure history for %s", component_id)

    def clear(self) -> None:
        self._first_seen.clear()

    def __len__(self) -> int:
        return len(self._first_seen)
