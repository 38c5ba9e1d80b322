"""Synthetic external traffic.

The profile is a function of the tick index alone (it seeds its own RNG from
it), so replaying a tick yields the same traffic.
"""

from __future__ import annotations

import math
import random

DAY_PERIOD_TICKS = 200.0
DAY_AMPLITUDE = 0.3
NOISE_SPAN = 0.3
SPIKE_CHANCE = 0.04
DIP_CHANCE = 0.02
DIP_FACTOR = 0.6
MIN_MULTIPLIER = 0.2
MAX_MULTIPLIER = 10.0


def traffic_multiplier(tick: int) -> float:
    """Load multiplier for ``tick``: day/night cycle, noise, spikes and dips.

    The base cycle swings between 0.7 (night) and 1.3 (peak) over 200 ticks.
    On top of that: +/-15% noise, a 4% chance of a 1.5-3x flash crowd,
    otherwise a 2% chance of a 0.6x dip. Clamped to [0.2, 10].
    """
    rng = random.Random(tick)

    phase = (tick / DAY_PERIOD_TICKS) * 2 * math.pi
    multiplier = 1.0 + DAY_AMPLITUDE * math.sin(phase - math.pi / 2)
    multiplier += (rng.random() - 0.5) * NOISE_SPAN

    if rng.random() > 1 - SPIKE_CHANCE:
        multiplier *= 1.5 + rng.random() * 1.5
    elif rng.random() < DIP_CHANCE:
        multiplier *= DIP_FACTOR

    return min(MAX_MULTIPLIER, max(MIN_MULTIPLIER, multiplier))


def synthetic_rps(
    target_qps: float,
    tick: int,
    rng: random.Random,
    chaos_traffic: float = 1.0,
    variation: bool = True,
) -> float:
    """Total external requests per second entering the design this tick.

    Args:
        target_qps: The problem's peak QPS.
        tick: Tick index, drives the profile.
        rng: Per-tick RNG used for +/-5% jitter.
        chaos_traffic: Traffic multiplier from active chaos events.
        variation: Apply the profile and jitter. False yields a flat rate.
    """
    if not variation:
        return max(0.0, target_qps * chaos_traffic)
    jitter = 0.95 + rng.random() * 0.1
    return max(0.0, target_qps * traffic_multiplier(tick) * chaos_traffic * jitter)
