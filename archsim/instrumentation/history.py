"""Tick-by-tick record of a run.

``MetricsHistory`` keeps a ``Data`` series per global metric and per
(component, metric) pair, plus failure counts, so a finished run can be
summarized or exported with ``to_dataframe()``.

Example::

    history = MetricsHistory()
    scheduler.on_tick(lambda state, result: history.record(result))
    ...
    df = history.to_dataframe()
    df["availability"].plot()
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING

import pandas as pd

from archsim.instrumentation.data import Data
from archsim.model.failure import FailureKind

if TYPE_CHECKING:
    from archsim.engine.tick import TickResult

logger = logging.getLogger(__name__)

GLOBAL_FIELDS = (
    "total_rps",
    "avg_latency_ms",
    "p95_latency_ms",
    "error_rate",
    "availability",
    "total_cost_per_hour",
    "error_budget_remaining",
)

COMPONENT_FIELDS = (
    "current_rps",
    "latency_ms",
    "p95_latency_ms",
    "cpu_usage",
    "memory_usage",
    "error_rate",
    "queue_depth",
    "ready_instances",
)


class MetricsHistory:
    """Accumulates series from successive ``TickResult``s."""

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        """Drop everything recorded so far."""
        self.global_series: dict[str, Data] = {name: Data() for name in GLOBAL_FIELDS}
        self.incoming_rps = Data()
        self.failure_count = Data()
        self.component_series: dict[str, dict[str, Data]] = {}
        self.failure_totals: Counter[FailureKind] = Counter()
        self.spof_components: set[str] = set()
        self._ticks: list[int] = []

    def record(self, result: TickResult) -> None:
        tick = result.tick
        self._ticks.append(tick)

        for name in GLOBAL_FIELDS:
            self.global_series[name].add(tick, getattr(result.global_metrics, name))
        self.incoming_rps.add(tick, result.incoming_rps)
        self.failure_count.add(tick, len(result.failures))

        for component_id, metrics in result.component_metrics.items():
            series = self.component_series.setdefault(
                component_id, {name: Data() for name in COMPONENT_FIELDS}
            )
            for name in COMPONENT_FIELDS:
                series[name].add(tick, getattr(metrics, name))

        for failure in result.failures:
            self.failure_totals[failure.kind] += 1
            if failure.kind is FailureKind.SPOF:
                self.spof_components.add(failure.component_id)

    @property
    def ticks(self) -> list[int]:
        return list(self._ticks)

    def series(self, name: str, component_id: str | None = None) -> Data:
        """Look up a global series, or a component series if ``component_id`` is given.

        Raises:
            KeyError: If the metric or component is unknown.
        """
        if component_id is None:
            return self.global_series[name]
        return self.component_series[component_id][name]

    def to_dataframe(self) -> pd.DataFrame:
        """Global metrics as a DataFrame indexed by tick."""
        columns = {name: data.raw_values() for name, data in self.global_series.items()}
        columns["incoming_rps"] = self.incoming_rps.raw_values()
        columns["failures"] = self.failure_count.raw_values()
        return pd.DataFrame(columns, index=pd.Index(self._ticks, name="tick"))

    def component_dataframe(self) -> pd.DataFrame:
        """Per-component metrics in long form: one row per (tick, component)."""
        rows = []
        for component_id, series in self.component_series.items():
            samples = {name: data.samples for name, data in series.items()}
            for i, (tick, _) in enumerate(samples[COMPONENT_FIELDS[0]]):
                row = {"tick": tick, "component_id": component_id}
                row.update({name: samples[name][i][1] for name in COMPONENT_FIELDS})
                rows.append(row)
        frame = pd.DataFrame(rows, columns=["tick", "component_id", *COMPONENT_FIELDS])
        return frame.sort_values(["tick", "component_id"]).reset_index(drop=True)

    def __len__(self) -> int:
        return len(self._ticks)
