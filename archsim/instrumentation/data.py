"""Per-tick metric series.

``Data`` stores ``(tick, value)`` samples for one metric, appended in tick
order by ``MetricsHistory``. ``BucketedData`` is the result of grouping a
series into fixed windows of ticks.
"""

from __future__ import annotations

import statistics
from collections import defaultdict
from typing import Any


def percentile_of_sorted(sorted_values: list[float], p: float) -> float:
    """Linear-interpolated percentile of pre-sorted values, ``p`` in [0, 1]."""
    if not sorted_values:
        return 0.0
    if p <= 0:
        return float(sorted_values[0])
    if p >= 1:
        return float(sorted_values[-1])
    position = p * (len(sorted_values) - 1)
    lower = int(position)
    upper = min(lower + 1, len(sorted_values) - 1)
    fraction = position - lower
    return float(sorted_values[lower] * (1.0 - fraction) + sorted_values[upper] * fraction)


class Data:
    """One metric sampled once per tick.

    Aggregations return 0.0 on an empty series rather than raising, so a
    summary can be built for a run that never ticked.
    """

    def __init__(self) -> None:
        self._samples: list[tuple[int, float]] = []

    def add(self, tick: int, value: float) -> None:
        self._samples.append((tick, float(value)))

    def clear(self) -> None:
        self._samples.clear()

    @property
    def samples(self) -> list[tuple[int, float]]:
        return self._samples

    def ticks(self) -> list[int]:
        return [t for t, _ in self._samples]

    def raw_values(self) -> list[float]:
        return [v for _, v in self._samples]

    def last(self) -> float:
        """Most recent value, 0.0 if empty."""
        return self._samples[-1][1] if self._samples else 0.0

    def between(self, start_tick: int, end_tick: int) -> Data:
        """Samples with ``start_tick <= tick < end_tick`` as a new series."""
        result = Data()
        result._samples = [(t, v) for t, v in self._samples if start_tick <= t < end_tick]
        return result

    # === Aggregations ===

    def mean(self) -> float:
        values = self.raw_values()
        return statistics.fmean(values) if values else 0.0

    def min(self) -> float:
        values = self.raw_values()
        return min(values) if values else 0.0

    def max(self) -> float:
        values = self.raw_values()
        return max(values) if values else 0.0

    def std(self) -> float:
        """Population standard deviation, 0.0 with fewer than two samples."""
        values = self.raw_values()
        return statistics.pstdev(values) if len(values) > 1 else 0.0

    def percentile(self, p: float) -> float:
        """Interpolated percentile, ``p`` in [0, 1] (0.95 for p95)."""
        return percentile_of_sorted(sorted(self.raw_values()), p)

    def bucket(self, window_ticks: int = 10) -> BucketedData:
        """Group samples into windows of ``window_ticks`` ticks.

        Raises:
            ValueError: If ``window_ticks`` is not positive.
        """
        if window_ticks < 1:
            raise ValueError(f"window_ticks must be >= 1, got {window_ticks}")

        groups: dict[int, list[float]] = defaultdict(list)
        for tick, value in self._samples:
            groups[tick // window_ticks].append(value)

        result = BucketedData()
        for index in sorted(groups):
            values = sorted(groups[index])
            result.append(
                start_tick=index * window_ticks,
                mean=statistics.fmean(values),
                p50=percentile_of_sorted(values, 0.50),
                p95=percentile_of_sorted(values, 0.95),
                maximum=values[-1],
                count=len(values),
            )
        return result

    def __len__(self) -> int:
        return len(self._samples)

    def __bool__(self) -> bool:
        return bool(self._samples)


class BucketedData:
    """Per-window aggregates produced by ``Data.bucket``."""

    _COLUMNS = ("start_tick", "mean", "p50", "p95", "max", "count")

    def __init__(self) -> None:
        self._rows: list[tuple[int, float, float, float, float, int]] = []

    def append(self, start_tick: int, mean: float, p50: float, p95: float,
               maximum: float, count: int) -> None:
        self._rows.append((start_tick, mean, p50, p95, maximum, count))

    def _column(self, name: str) -> list:
        index = self._COLUMNS.index(name)
        return [row[index] for row in self._rows]

    def start_ticks(self) -> list[int]:
        return self._column("start_tick")

    def means(self) -> list[float]:
        return self._column("mean")

    def p50s(self) -> list[float]:
        return self._column("p50")

    def p95s(self) -> list[float]:
        return self._column("p95")

    def maxes(self) -> list[float]:
        return self._column("max")

    def counts(self) -> list[int]:
        return self._column("count")

    def to_dict(self) -> dict[str, list[Any]]:
        return {name: self._column(name) for name in self._COLUMNS}

    def __len__(self) -> int:
        return len(self._rows)

    def __bool__(self) -> bool:
        return bool(self._rows)
