"""Tunable constants for the tick engine and scheduler.

The defaults encode the simulator's "feel": the 0.7 autoscale trigger, the
85%/95% error knees, the 50% cascade probability and the 5 second failure
dwell. Change them per run through ``EngineSettings`` rather than editing the
engine modules.

Example::

    from archsim import EngineSettings

    settings = EngineSettings(max_ticks=600, failure_dwell_s=2.0)
    fast = settings.with_overrides(tick_interval_s=0.05)

Environment variables (read by ``EngineSettings.from_env``):
    ARCHSIM_TICK_INTERVAL: Base seconds between ticks at speed 1.0.
    ARCHSIM_MAX_TICKS: Tick count after which a run reports completion.
    ARCHSIM_FAILURE_DWELL: Seconds a failure must persist before it is visible.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineSettings:
    """Engine and scheduler tunables.

    Attributes:
        tick_interval_s: Timer period at simulation speed 1.0.
        max_ticks: Tick index at which a tick result reports completion.
        smoothing: EWMA weight on the new sample for latency, CPU, memory
            and queue depth.
        error_smoothing_up: EWMA weight used while the error rate rises.
        error_smoothing_down: EWMA weight used while the error rate decays.
        p95_factor: Fixed ratio of p95 latency to smoothed mean latency.
        autoscale_threshold: Load above which autoscaling adds instances.
        autoscale_factor: Multiplier applied to ready instances on scale-up.
        scale_in_threshold: Load below which one instance is removed per tick.
        cold_start_ticks: Ticks a cold instance warms before promotion.
        cold_start_capacity: Capacity fraction a cold instance contributes.
        slow_node_probability: Per-tick chance a component runs slow.
        error_knee: Load above which errors start.
        error_knee_steep: Load above which errors rise steeply.
        cascade_probability: Chance an unprotected downstream inherits a failure.
        failure_dwell_s: Continuous presence required before a failure is shown.
        regional_outage_probability: Per-tick chance of a regional outage.
        traffic_variation: Apply the day/night, noise and spike profile.
        tick_seconds: Synthetic time covered by one tick (queue accumulation).
    """

    tick_interval_s: float = 0.1
    max_ticks: int = 300
    smoothing: float = 0.2
    error_smoothing_up: float = 0.7
    error_smoothing_down: float = 0.1
    p95_factor: float = 1.75
    autoscale_threshold: float = 0.7
    autoscale_factor: float = 1.5
    scale_in_threshold: float = 0.3
    cold_start_ticks: int = 30
    cold_start_capacity: float = 0.5
    slow_node_probability: float = 0.05
    error_knee: float = 0.85
    error_knee_steep: float = 0.95
    cascade_probability: float = 0.5
    failure_dwell_s: float = 5.0
    regional_outage_probability: float = 0.0005
    traffic_variation: bool = True
    tick_seconds: float = 0.1

    def __post_init__(self) -> None:
        if self.tick_interval_s <= 0:
            raise ValueError(f"tick_interval_s must be > 0, got {self.tick_interval_s}")
        if self.max_ticks < 1:
            raise ValueError(f"max_ticks must be >= 1, got {self.max_ticks}")
        for name in ("smoothing", "error_smoothing_up", "error_smoothing_down"):
            value = getattr(self, name)
            if not 0 < value < 1:
                raise ValueError(f"{name} must be in (0, 1), got {value}")
        for name in (
            "slow_node_probability",
            "cascade_probability",
            "regional_outage_probability",
            "cold_start_capacity",
        ):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.p95_factor < 1:
            raise ValueError(f"p95_factor must be >= 1, got {self.p95_factor}")
        if self.autoscale_factor <= 1:
            raise ValueError(f"autoscale_factor must be > 1, got {self.autoscale_factor}")
        if not 0 < self.error_knee < self.error_knee_steep < 1:
            raise ValueError(
                "error knees must satisfy 0 < error_knee < error_knee_steep < 1, "
                f"got {self.error_knee}, {self.error_knee_steep}"
            )
        if self.cold_start_ticks < 0:
            raise ValueError(f"cold_start_ticks must be >= 0, got {self.cold_start_ticks}")
        if self.failure_dwell_s < 0:
            raise ValueError(f"failure_dwell_s must be >= 0, got {self.failure_dwell_s}")
        if self.tick_seconds <= 0:
            raise ValueError(f"tick_seconds must be > 0, got {self.tick_seconds}")

    def with_overrides(self, **overrides: object) -> EngineSettings:
        """Return a copy with the given fields replaced.

        Raises:
            ValueError: If a name is not a settings field or a value is invalid.
        """
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return replace(self, **overrides)

    @classmethod
    def from_env(cls) -> EngineSettings:
        """Build settings from ``ARCHSIM_*`` environment variables.

        Unset variables keep their defaults.
        """
        overrides: dict[str, object] = {}
        interval = os.environ.get("ARCHSIM_TICK_INTERVAL", "")
        max_ticks = os.environ.get("ARCHSIM_MAX_TICKS", "")
        dwell = os.environ.get("ARCHSIM_FAILURE_DWELL", "")

        if interval:
            overrides["tick_interval_s"] = float(interval)
        if max_ticks:
            overrides["max_ticks"] = int(max_ticks)
        if dwell:
            overrides["failure_dwell_s"] = float(dwell)

        if overrides:
            logger.info("Engine settings overridden from environment: %s", overrides)
        return cls(**overrides)
