"""A classic web stack under a mid-run chaos event.

This example shows:
1. Building a design from components and connections
2. Driving it headless with ``TickScheduler.step()`` on a simulated clock
3. Injecting a cache miss storm partway through the run
4. Plotting availability, latency and per-component load from the history

## Architecture Diagram

```
Traffic -> Load Balancer -> App Servers -> Cache -> Database (primary + replicas)
```

## Timeline

```
tick 0        tick 100          tick 160        tick 300
|---------------|-----------------|---------------|
   Warm steady    Cache miss storm    Recovery
```

While the storm is active the cache hit rate collapses, the cache reports a
stampede against the database, and latency backs up through the app tier.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

from archsim import (
    ChaosEvent,
    ChaosKind,
    Component,
    ComponentConfig,
    ComponentType,
    Connection,
    EngineSettings,
    Problem,
    ProblemConstraints,
    TickScheduler,
    enable_console_logging,
)


class SimulatedClock:
    """Wall clock advanced by the driver loop instead of real time."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# =============================================================================
# Design
# =============================================================================


def build_design() -> tuple[list[Component], list[Connection]]:
    components = [
        Component("lb", ComponentType.LOAD_BALANCER, ComponentConfig(instances=2)),
        Component(
            "app",
            ComponentType.APP_SERVER,
            ComponentConfig(capacity=800, instances=2, autoscale=True, max_instances=8),
        ),
        Component("cache", ComponentType.CACHE, ComponentConfig(instances=2)),
        Component(
            "db",
            ComponentType.DATABASE,
            ComponentConfig(
                capacity=3000, instances=2, replication=True, replication_factor=3,
                quorum_write=2,
            ),
        ),
    ]
    connections = [
        Connection("lb->app", "lb", "app"),
        Connection("app->cache", "app", "cache"),
        Connection("cache->db", "cache", "db"),
    ]
    return components, connections


def build_problem() -> Problem:
    return Problem(
        id="web-stack",
        title="Read-heavy web stack",
        constraints=ProblemConstraints(
            qps=1500,
            latency_sla_p95_ms=250,
            availability_target=0.999,
            budget_per_month=8000,
        ),
        optimal_components=("load_balancer", "app_server", "cache", "database"),
    )


# =============================================================================
# Run
# =============================================================================


def run(seed: int = 42, max_ticks: int = 300, storm_at: int = 100, storm_ticks: int = 60):
    components, connections = build_design()
    settings = EngineSettings(max_ticks=max_ticks)
    clock = SimulatedClock()

    scheduler = TickScheduler(
        components, connections, build_problem(), settings=settings, seed=seed, clock=clock
    )
    with scheduler:
        scheduler.start(run_timer=False)
        while not scheduler.state.is_completed:
            if scheduler.state.tick_count == storm_at:
                scheduler.add_chaos(ChaosEvent(
                    ChaosKind.CACHE_MISS_STORM,
                    clock(),
                    timedelta(seconds=storm_ticks * settings.tick_seconds),
                    {"hit_rate_drop": 0.9},
                ))
            scheduler.step()
            clock.advance(settings.tick_seconds)
    return scheduler


def visualize_results(scheduler: TickScheduler, output_dir: Path) -> None:
    """Save a 3-panel overview: availability, p95 latency, component load."""
    import matplotlib.pyplot as plt

    output_dir.mkdir(parents=True, exist_ok=True)
    df = scheduler.history.to_dataframe()
    per_component = scheduler.history.component_dataframe()

    fig, axes = plt.subplots(3, 1, figsize=(12, 9), sharex=True)

    axes[0].plot(df.index, df["availability"] * 100, color="tab:green")
    axes[0].set_ylabel("Availability (%)")
    axes[0].grid(True, alpha=0.3)

    axes[1].plot(df.index, df["p95_latency_ms"], color="tab:red")
    axes[1].axhline(scheduler.problem.constraints.latency_sla_p95_ms, linestyle="--",
                    color="gray", label="SLA")
    axes[1].set_ylabel("P95 latency (ms)")
    axes[1].legend()
    axes[1].grid(True, alpha=0.3)

    for component_id, group in per_component.groupby("component_id"):
        axes[2].plot(group["tick"], group["current_rps"], label=component_id)
    axes[2].set_ylabel("Requests/s")
    axes[2].set_xlabel("Tick")
    axes[2].legend()
    axes[2].grid(True, alpha=0.3)

    fig.suptitle("Web stack with a cache miss storm")
    fig.tight_layout()
    fig.savefig(output_dir / "web_stack_overview.png", dpi=150)
    plt.close(fig)
    print(f"Saved: {output_dir / 'web_stack_overview.png'}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Web stack under a cache miss storm")
    parser.add_argument("--seed", type=int, default=42, help="Run seed")
    parser.add_argument("--ticks", type=int, default=300, help="Tick limit")
    parser.add_argument("--storm-at", type=int, default=100, help="Tick the storm starts")
    parser.add_argument("--output", type=str, default="output/web_stack", help="Output directory")
    parser.add_argument("--no-viz", action="store_true", help="Skip visualization generation")
    parser.add_argument("--verbose", action="store_true", help="Log engine activity")
    args = parser.parse_args()

    if args.verbose:
        enable_console_logging("DEBUG")

    scheduler = run(seed=args.seed, max_ticks=args.ticks, storm_at=args.storm_at)
    print(scheduler.summary)

    if not args.no_viz:
        visualize_results(scheduler, Path(args.output))
