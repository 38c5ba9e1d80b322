"""
Shared pytest fixtures for archsim tests.
"""

import logging
import random
from datetime import datetime, timedelta

import pytest

from archsim.model import (
    Component,
    ComponentConfig,
    ComponentType,
    Connection,
    ConnectionType,
    Problem,
    ProblemConstraints,
)


FIXED_NOW = datetime(2026, 1, 15, 10, 30, 0)


@pytest.fixture
def now() -> datetime:
    """A fixed timestamp for failures and chaos windows."""
    return FIXED_NOW


class ManualClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(FIXED_NOW)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def problem() -> Problem:
    """A problem with a generous SLA and budget."""
    return Problem(
        id="url-shortener",
        title="URL Shortener",
        constraints=ProblemConstraints(
            dau=1_000_000,
            qps=1000,
            latency_sla_p95_ms=200,
            availability_target=0.999,
            budget_per_month=5000,
        ),
        optimal_components=("load_balancer", "app_server", "cache", "database"),
    )


def make_component(
    component_id: str,
    ctype: ComponentType = ComponentType.APP_SERVER,
    **config,
) -> Component:
    """Build a component with config overrides, e.g. ``capacity=1000``."""
    return Component(id=component_id, type=ctype, config=ComponentConfig(**config))


def make_connection(
    source_id: str,
    target_id: str,
    ctype: ConnectionType = ConnectionType.REQUEST,
) -> Connection:
    return Connection(id=f"{source_id}->{target_id}", source_id=source_id, target_id=target_id,
                      type=ctype)


@pytest.fixture
def component_factory():
    return make_component


@pytest.fixture
def connection_factory():
    return make_connection


@pytest.fixture(autouse=True)
def reset_archsim_logging():
    """Reset logging state before and after each test.

    Removes every handler but a NullHandler and resets the level so logging
    configured in one test cannot leak into another.
    """
    logger = logging.getLogger("archsim")

    def _reset():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            if not isinstance(handler, logging.NullHandler):
                handler.close()
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.NOTSET)

    _reset()
    yield
    _reset()
