"""Chaos injection: transient events and the multipliers they produce."""

from archsim.chaos.event import ChaosEvent, ChaosKind
from archsim.chaos.multipliers import NEUTRAL, ChaosMultipliers, compose_multipliers

__all__ = [
    "NEUTRAL",
    "ChaosEvent",
    "ChaosKind",
    "ChaosMultipliers",
    "compose_multipliers",
]
