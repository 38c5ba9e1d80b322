"""Infrastructure components and the per-type behaviour tables.

``ComponentType`` is a closed enumeration. Anything the engine needs to know
about a type (base latency, whether it sits on the critical path, whether it
holds a connection pool) lives in one of the lookup tables below instead of in
conditionals at the call sites.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from archsim.model.metrics import ComponentMetrics

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


class ComponentType(Enum):
    """Kinds of components that can be placed on a design."""

    # Traffic & edge
    DNS = "dns"
    CDN = "cdn"
    LOAD_BALANCER = "load_balancer"
    API_GATEWAY = "api_gateway"

    # Compute
    APP_SERVER = "app_server"
    WORKER = "worker"
    SERVERLESS = "serverless"

    CLIENT = "client"

    # Data storage
    CACHE = "cache"
    DATABASE = "database"
    OBJECT_STORE = "object_store"

    # Messaging
    QUEUE = "queue"
    PUBSUB = "pubsub"
    STREAM = "stream"

    # Techniques
    SHARDING = "sharding"
    HASHING = "hashing"

    # Infrastructure primitives
    SHARD_NODE = "shard_node"
    PARTITION_NODE = "partition_node"
    REPLICA_NODE = "replica_node"
    INPUT_NODE = "input_node"
    OUTPUT_NODE = "output_node"

    CUSTOM_SERVICE = "custom_service"

    # Hand-drawn variants
    SKETCHY_SERVICE = "sketchy_service"
    SKETCHY_DATABASE = "sketchy_database"
    SKETCHY_LOGIC = "sketchy_logic"
    SKETCHY_QUEUE = "sketchy_queue"
    SKETCHY_CLIENT = "sketchy_client"

    # Annotations
    TEXT = "text"
    CIRCLE = "circle"
    RECTANGLE = "rectangle"
    DIAMOND = "diamond"
    ARROW = "arrow"
    LINE = "line"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES.get(self, self.value.replace("_", " ").title())

    @property
    def base_latency_ms(self) -> float:
        return BASE_LATENCY_MS.get(self, 0.0)

    @property
    def is_critical_path(self) -> bool:
        return self in CRITICAL_PATH_TYPES

    @property
    def is_queue_like(self) -> bool:
        return self in QUEUE_LIKE_TYPES

    @property
    def is_database(self) -> bool:
        return self in DATABASE_TYPES

    @property
    def has_connection_pool(self) -> bool:
        return self in CONNECTION_POOL_TYPES

    @property
    def is_async_consumer(self) -> bool:
        return self in ASYNC_CONSUMER_TYPES


_DISPLAY_NAMES: dict[ComponentType, str] = {
    ComponentType.DNS: "DNS",
    ComponentType.CDN: "CDN",
    ComponentType.API_GATEWAY: "API Gateway",
    ComponentType.PUBSUB: "Pub/Sub",
    ComponentType.QUEUE: "Message Queue",
    ComponentType.CLIENT: "Users",
    ComponentType.CUSTOM_SERVICE: "Service",
    ComponentType.SKETCHY_DATABASE: "Sketchy DB",
}

BASE_LATENCY_MS: dict[ComponentType, float] = {
    ComponentType.DNS: 1.0,
    ComponentType.CDN: 5.0,
    ComponentType.LOAD_BALANCER: 1.0,
    ComponentType.API_GATEWAY: 5.0,
    ComponentType.APP_SERVER: 20.0,
    ComponentType.WORKER: 100.0,
    ComponentType.SERVERLESS: 50.0,
    ComponentType.CLIENT: 1.0,
    ComponentType.CACHE: 2.0,
    ComponentType.DATABASE: 10.0,
    ComponentType.OBJECT_STORE: 50.0,
    ComponentType.QUEUE: 5.0,
    ComponentType.PUBSUB: 5.0,
    ComponentType.STREAM: 10.0,
    ComponentType.SHARD_NODE: 10.0,
    ComponentType.PARTITION_NODE: 10.0,
    ComponentType.REPLICA_NODE: 10.0,
    ComponentType.INPUT_NODE: 1.0,
    ComponentType.OUTPUT_NODE: 1.0,
    ComponentType.CUSTOM_SERVICE: 20.0,
    ComponentType.SKETCHY_SERVICE: 20.0,
    ComponentType.SKETCHY_DATABASE: 10.0,
    ComponentType.SKETCHY_LOGIC: 20.0,
    ComponentType.SKETCHY_QUEUE: 5.0,
    ComponentType.SKETCHY_CLIENT: 1.0,
}
"""Base latency per type in milliseconds. Types not listed cost 0 ms."""

CRITICAL_PATH_TYPES: frozenset[ComponentType] = frozenset({
    ComponentType.LOAD_BALANCER,
    ComponentType.API_GATEWAY,
    ComponentType.APP_SERVER,
    ComponentType.DATABASE,
    ComponentType.CACHE,
    ComponentType.SERVERLESS,
    ComponentType.CUSTOM_SERVICE,
})

QUEUE_LIKE_TYPES: frozenset[ComponentType] = frozenset({
    ComponentType.QUEUE,
    ComponentType.PUBSUB,
    ComponentType.STREAM,
    ComponentType.SKETCHY_QUEUE,
})

ASYNC_CONSUMER_TYPES: frozenset[ComponentType] = frozenset({
    ComponentType.QUEUE,
    ComponentType.PUBSUB,
    ComponentType.STREAM,
})

DATABASE_TYPES: frozenset[ComponentType] = frozenset({
    ComponentType.DATABASE,
    ComponentType.SKETCHY_DATABASE,
    ComponentType.SHARD_NODE,
    ComponentType.REPLICA_NODE,
})

CONNECTION_POOL_TYPES: frozenset[ComponentType] = frozenset({
    ComponentType.DATABASE,
    ComponentType.APP_SERVER,
    ComponentType.CUSTOM_SERVICE,
    ComponentType.SKETCHY_DATABASE,
    ComponentType.SKETCHY_SERVICE,
})


class ReplicationTopology(Enum):
    """How replicas of a data store are arranged."""

    NONE = "none"
    LEADER_FOLLOWER = "leader_follower"
    MULTI_LEADER = "multi_leader"
    LEADERLESS = "leaderless"


@dataclass(frozen=True)
class ComponentConfig:
    """User-editable configuration of one component.

    Construction normalizes values so the engine can divide by capacity,
    instances and replication factor without guarding: each is at least 1,
    and instances are clamped to ``[min_instances, max_instances]`` when
    autoscaling is enabled.

    Attributes:
        capacity: Requests per second one instance can serve.
        instances: Configured instance count.
        autoscale: Whether the engine may add instances under load.
        min_instances: Autoscaling floor.
        max_instances: Autoscaling ceiling.
        replication: Whether replication is enabled (data stores).
        replication_factor: Number of copies kept.
        quorum_read: Replicas consulted per read, None if not configured.
        quorum_write: Replicas acknowledging each write, None if not configured.
        replication_topology: Arrangement of replicas.
        rate_limiting: Whether inbound traffic is rate limited.
        rate_limit_rps: Admitted requests per second when rate limiting.
        circuit_breaker: Whether calls into this component are breaker-protected.
        retries: Whether this component retries failed calls.
        dlq: Whether a dead-letter queue is attached.
        cache_ttl_s: Cache entry time-to-live in seconds.
        regions: Regions the component runs in; the first is its primary.
        cost_per_hour: Cost of one instance-hour in USD.
    """

    capacity: int = 10_000
    instances: int = 1
    autoscale: bool = False
    min_instances: int = 1
    max_instances: int = 10
    replication: bool = False
    replication_factor: int = 1
    quorum_read: int | None = None
    quorum_write: int | None = None
    replication_topology: ReplicationTopology = ReplicationTopology.NONE
    rate_limiting: bool = False
    rate_limit_rps: int | None = None
    circuit_breaker: bool = False
    retries: bool = False
    dlq: bool = False
    cache_ttl_s: int = 300
    regions: tuple[str, ...] = (DEFAULT_REGION,)
    cost_per_hour: float = 0.10

    def __post_init__(self) -> None:
        # frozen dataclass: normalize through object.__setattr__
        capacity = max(1, int(self.capacity))
        instances = max(1, int(self.instances))
        min_instances = max(1, int(self.min_instances))
        max_instances = max(min_instances, int(self.max_instances))
        if self.autoscale:
            instances = min(max(instances, min_instances), max_instances)

        object.__setattr__(self, "capacity", capacity)
        object.__setattr__(self, "instances", instances)
        object.__setattr__(self, "min_instances", min_instances)
        object.__setattr__(self, "max_instances", max_instances)
        object.__setattr__(self, "replication_factor", max(1, int(self.replication_factor)))
        object.__setattr__(self, "regions", tuple(self.regions))
        if self.cost_per_hour < 0:
            raise ValueError(f"cost_per_hour must be >= 0, got {self.cost_per_hour}")

    @property
    def primary_region(self) -> str:
        return self.regions[0] if self.regions else DEFAULT_REGION

    @property
    def has_quorum_writes(self) -> bool:
        return self.quorum_write is not None and self.quorum_write > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "capacity": self.capacity,
            "instances": self.instances,
            "autoscale": self.autoscale,
            "min_instances": self.min_instances,
            "max_instances": self.max_instances,
            "replication": self.replication,
            "replication_factor": self.replication_factor,
            "quorum_read": self.quorum_read,
            "quorum_write": self.quorum_write,
            "replication_topology": self.replication_topology.value,
            "rate_limiting": self.rate_limiting,
            "rate_limit_rps": self.rate_limit_rps,
            "circuit_breaker": self.circuit_breaker,
            "retries": self.retries,
            "dlq": self.dlq,
            "cache_ttl_s": self.cache_ttl_s,
            "regions": list(self.regions),
            "cost_per_hour": self.cost_per_hour,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComponentConfig:
        """Build a config from ``to_dict()`` output. Missing keys use defaults.

        Raises:
            ValueError: On an unknown key or replication topology.
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        values = dict(data)
        if "replication_topology" in values:
            values["replication_topology"] = ReplicationTopology(values["replication_topology"])
        if "regions" in values:
            values["regions"] = tuple(values["regions"])
        return cls(**values)


@dataclass
class Component:
    """A node on the design.

    The component keeps the latest metrics snapshot published by the
    scheduler; the engine itself only ever reads it.

    Attributes:
        id: Identity, unique within a design.
        type: Kind of infrastructure.
        config: Configuration record.
        name: Optional display name.
        metrics: Latest published snapshot, None before the first tick.
    """

    id: str
    type: ComponentType
    config: ComponentConfig = field(default_factory=ComponentConfig)
    name: str | None = None
    metrics: ComponentMetrics | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.type.display_name

    @property
    def total_capacity(self) -> int:
        return self.config.capacity * self.config.instances

    @property
    def hourly_cost(self) -> float:
        return self.config.cost_per_hour * self.config.instances

    def with_config(self, **changes: Any) -> Component:
        """Return a copy of this component with config fields replaced."""
        return replace(self, config=replace(self.config, **changes))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "config": self.config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Component:
        """Build a component from ``to_dict()`` output.

        Raises:
            ValueError: On an unknown component type.
        """
        return cls(
            id=str(data["id"]),
            type=ComponentType(data["type"]),
            config=ComponentConfig.from_dict(data.get("config", {})),
            name=data.get("name"),
        )
