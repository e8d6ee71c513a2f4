# prax/mongo/sharding.py
"""Sharding commands: ``shardCollection`` and zone assignment."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from prax.utils.exceptions import InvalidInputError


class ShardKeyType(str, Enum):
    RANGE = "range"
    HASHED = "hashed"

    @property
    def index_value(self) -> Any:
        return 1 if self is ShardKeyType.RANGE else "hashed"


@dataclass(frozen=True)
class ShardKey:
    fields: tuple[tuple[str, ShardKeyType], ...]
    unique: bool = False

    def index_spec(self) -> dict:
        return {name: key_type.index_value for name, key_type in self.fields}

    def shard_collection_command(self, database: str, collection: str) -> dict:
        return {
            "shardCollection": f"{database}.{collection}",
            "key": self.index_spec(),
            "unique": self.unique,
        }


class ShardKeyBuilder:
    def __init__(self):
        self._fields: list[tuple[str, ShardKeyType]] = []
        self._unique = False

    def range_field(self, name: str) -> "ShardKeyBuilder":
        self._fields.append((name, ShardKeyType.RANGE))
        return self

    def hashed_field(self, name: str) -> "ShardKeyBuilder":
        self._fields.append((name, ShardKeyType.HASHED))
        return self

    def unique(self, unique: bool = True) -> "ShardKeyBuilder":
        self._unique = unique
        return self

    def build(self) -> ShardKey:
        if not self._fields:
            raise InvalidInputError("fields", "shard key needs at least one field")
        hashed = [name for name, t in self._fields if t is ShardKeyType.HASHED]
        if len(hashed) > 1:
            raise InvalidInputError("fields", "a shard key may contain only one hashed field")
        if hashed and self._unique:
            raise InvalidInputError("unique", "hashed shard keys cannot be unique")
        return ShardKey(tuple(self._fields), self._unique)


@dataclass(frozen=True)
class ShardZone:
    """A named zone covering the shard key range ``[min, max)``."""

    name: str
    min: dict
    max: dict

    def update_zone_key_range_command(self, namespace: str) -> dict:
        return {"updateZoneKeyRange": namespace, "min": self.min, "max": self.max, "zone": self.name}

    def add_shard_to_zone_command(self, shard: str) -> dict:
        return {"addShardToZone": shard, "zone": self.name}


class ZoneShardingBuilder:
    """Collects zones and shard assignments for a namespace."""

    def __init__(self):
        self._zones: list[ShardZone] = []
        self._assignments: list[tuple[str, str]] = []

    def add_zone(self, name: str, min: dict, max: dict) -> "ZoneShardingBuilder":
        self._zones.append(ShardZone(name, min, max))
        return self

    def assign_shard(self, shard: str, zone: str) -> "ZoneShardingBuilder":
        self._assignments.append((shard, zone))
        return self

    def build_commands(self, namespace: str) -> list[dict]:
        """Shard-to-zone assignments first, then the zone key ranges."""
        known = {zone.name for zone in self._zones}
        commands = []
        for shard, zone in self._assignments:
            if zone not in known:
                raise InvalidInputError("zone", f"shard '{shard}' assigned to unknown zone '{zone}'")
            commands.append({"addShardToZone": shard, "zone": zone})
        commands.extend(zone.update_zone_key_range_command(namespace) for zone in self._zones)
        return commands
