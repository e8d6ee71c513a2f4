# prax/models/server_group.py
"""Server group models describing primary/replica topologies.

These are declarative only: the library emits typed configuration for an
execution layer and never routes queries itself.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from prax.models.attribute import Attribute, AttributeValue, ValueKind
from prax.models.common import Span


def _normalize(value: str) -> str:
    return value.lower().replace("-", "").replace("_", "")


class ServerRole(str, Enum):
    """Role of a server inside its group."""

    PRIMARY = "primary"
    REPLICA = "replica"
    ANALYTICS = "analytics"
    ARCHIVE = "archive"
    SHARD = "shard"

    @classmethod
    def from_str(cls, value: str) -> Optional["ServerRole"]:
        return _ROLE_ALIASES.get(_normalize(value))


_ROLE_ALIASES = {
    "primary": ServerRole.PRIMARY,
    "master": ServerRole.PRIMARY,
    "writer": ServerRole.PRIMARY,
    "replica": ServerRole.REPLICA,
    "slave": ServerRole.REPLICA,
    "reader": ServerRole.REPLICA,
    "read": ServerRole.REPLICA,
    "analytics": ServerRole.ANALYTICS,
    "reporting": ServerRole.ANALYTICS,
    "olap": ServerRole.ANALYTICS,
    "archive": ServerRole.ARCHIVE,
    "historical": ServerRole.ARCHIVE,
    "shard": ServerRole.SHARD,
}


class ServerGroupStrategy(str, Enum):
    """How the servers of a group relate to each other."""

    READ_REPLICA = "ReadReplica"
    SHARDING = "Sharding"
    MULTI_REGION = "MultiRegion"
    HIGH_AVAILABILITY = "HighAvailability"
    CUSTOM = "Custom"

    @classmethod
    def from_str(cls, value: str) -> Optional["ServerGroupStrategy"]:
        return _STRATEGY_ALIASES.get(_normalize(value))


_STRATEGY_ALIASES = {
    "readreplica": ServerGroupStrategy.READ_REPLICA,
    "replication": ServerGroupStrategy.READ_REPLICA,
    "sharding": ServerGroupStrategy.SHARDING,
    "shard": ServerGroupStrategy.SHARDING,
    "partition": ServerGroupStrategy.SHARDING,
    "multiregion": ServerGroupStrategy.MULTI_REGION,
    "georeplica": ServerGroupStrategy.MULTI_REGION,
    "geographic": ServerGroupStrategy.MULTI_REGION,
    "highavailability": ServerGroupStrategy.HIGH_AVAILABILITY,
    "ha": ServerGroupStrategy.HIGH_AVAILABILITY,
    "failover": ServerGroupStrategy.HIGH_AVAILABILITY,
    "custom": ServerGroupStrategy.CUSTOM,
}


class LoadBalanceStrategy(str, Enum):
    """How queries are spread across eligible servers."""

    ROUND_ROBIN = "RoundRobin"
    RANDOM = "Random"
    LEAST_CONNECTIONS = "LeastConnections"
    WEIGHTED = "Weighted"
    NEAREST = "Nearest"
    STICKY = "Sticky"

    @classmethod
    def from_str(cls, value: str) -> Optional["LoadBalanceStrategy"]:
        return _LOAD_BALANCE_ALIASES.get(_normalize(value))


_LOAD_BALANCE_ALIASES = {
    "roundrobin": LoadBalanceStrategy.ROUND_ROBIN,
    "rr": LoadBalanceStrategy.ROUND_ROBIN,
    "random": LoadBalanceStrategy.RANDOM,
    "rand": LoadBalanceStrategy.RANDOM,
    "leastconnections": LoadBalanceStrategy.LEAST_CONNECTIONS,
    "leastconn": LoadBalanceStrategy.LEAST_CONNECTIONS,
    "least": LoadBalanceStrategy.LEAST_CONNECTIONS,
    "weighted": LoadBalanceStrategy.WEIGHTED,
    "weight": LoadBalanceStrategy.WEIGHTED,
    "nearest": LoadBalanceStrategy.NEAREST,
    "latency": LoadBalanceStrategy.NEAREST,
    "geo": LoadBalanceStrategy.NEAREST,
    "sticky": LoadBalanceStrategy.STICKY,
    "affinity": LoadBalanceStrategy.STICKY,
    "session": LoadBalanceStrategy.STICKY,
}


class Server(BaseModel):
    """A ``server name { key = value }`` entry."""

    name: str
    properties: dict[str, AttributeValue] = Field(default_factory=dict)
    documentation: Optional[str] = None
    span: Span = Span()

    def get_property(self, name: str) -> Optional[AttributeValue]:
        return self.properties.get(name)

    def _int_property(self, name: str) -> Optional[int]:
        value = self.get_property(name)
        return value.as_int() if value else None

    def _str_property(self, name: str) -> Optional[str]:
        value = self.get_property(name)
        return value.as_str() if value else None

    def url(self) -> Optional[str]:
        """Literal url, or the variable name of an ``env("X")`` url."""
        value = self.get_property("url")
        if value is None:
            return None
        return value.env_var() or value.as_str()

    def url_env(self) -> Optional[str]:
        value = self.get_property("url")
        return value.env_var() if value else None

    def role(self) -> Optional[ServerRole]:
        role = self._str_property("role")
        return ServerRole.from_str(role) if role else None

    def weight(self) -> Optional[int]:
        return self._int_property("weight")

    def region(self) -> Optional[str]:
        value = self.get_property("region")
        if value is not None and value.kind == ValueKind.STRING:
            return value.value
        return None

    def priority(self) -> Optional[int]:
        return self._int_property("priority")

    def is_read_only(self) -> bool:
        value = self.get_property("readOnly")
        flag = value.as_bool() if value else None
        if flag is not None:
            return flag
        return self.role() == ServerRole.REPLICA

    def max_connections(self) -> Optional[int]:
        return self._int_property("maxConnections")

    def health_check(self) -> Optional[str]:
        value = self.get_property("healthCheck")
        if value is not None and value.kind == ValueKind.STRING:
            return value.value
        return None

    def to_config(self) -> dict[str, Any]:
        url = self.get_property("url")
        role = self.role()
        return {
            "name": self.name,
            "url": url.to_python() if url else None,
            "role": role.value if role else None,
            "weight": self.weight(),
            "region": self.region(),
            "priority": self.priority(),
            "read_only": self.is_read_only(),
            "max_connections": self.max_connections(),
            "health_check": self.health_check(),
        }


class ServerGroup(BaseModel):
    """A ``serverGroup`` block."""

    name: str
    servers: dict[str, Server] = Field(default_factory=dict)
    attributes: list[Attribute] = Field(default_factory=list)
    documentation: Optional[str] = None
    span: Span = Span()

    def add_server(self, server: Server) -> None:
        self.servers.setdefault(server.name, server)

    def _attribute_text(self, name: str) -> Optional[str]:
        for attr in self.attributes:
            if attr.name == name:
                value = attr.first_arg()
                return value.as_str() if value else None
        return None

    def strategy(self) -> Optional[ServerGroupStrategy]:
        value = self._attribute_text("strategy")
        return ServerGroupStrategy.from_str(value) if value else None

    def load_balance(self) -> Optional[LoadBalanceStrategy]:
        value = self._attribute_text("loadBalance")
        return LoadBalanceStrategy.from_str(value) if value else None

    def health_check(self) -> Optional[str]:
        return self._attribute_text("healthCheck")

    def primary(self) -> Optional[Server]:
        for server in self.servers.values():
            if server.role() == ServerRole.PRIMARY:
                return server
        return None

    def primaries(self) -> list[Server]:
        return [s for s in self.servers.values() if s.role() == ServerRole.PRIMARY]

    def replicas(self) -> list[Server]:
        return [s for s in self.servers.values() if s.role() == ServerRole.REPLICA]

    def servers_in_region(self, region: str) -> list[Server]:
        return [s for s in self.servers.values() if s.region() == region]

    def failover_order(self) -> list[Server]:
        """Servers by ascending priority; servers without one come last."""
        return sorted(
            self.servers.values(),
            key=lambda s: (s.priority() is None, s.priority() or 0)
        )

    def to_config(self) -> dict[str, Any]:
        """Plain-dict configuration for an execution layer."""
        strategy = self.strategy()
        load_balance = self.load_balance()
        return {
            "name": self.name,
            "strategy": strategy.value if strategy else None,
            "load_balance": load_balance.value if load_balance else None,
            "health_check": self.health_check(),
            "servers": [s.to_config() for s in self.servers.values()],
        }
