# prax/mongo/__init__.py
"""MongoDB emitters. Every operation returns plain ``dict``/``list`` documents."""

from prax.mongo.update import ArrayOp, ArrayOperator, UpdateBuilder, UpdateOp, UpdateOperator
from prax.mongo.upsert import BulkUpsert, MongoUpsert, MongoUpsertBuilder
from prax.mongo.lookup import (
    GraphLookup,
    Lookup,
    LookupBuilder,
    UnionWith,
    graph_lookup,
    lookup,
    lookup_pipeline,
)
from prax.mongo.search import (
    AtlasSearchIndexBuilder,
    AtlasSearchQuery,
    FuzzyConfig,
    HighlightConfig,
    SearchFieldType,
)
from prax.mongo.sharding import ShardKey, ShardKeyBuilder, ShardKeyType, ShardZone, ZoneShardingBuilder
from prax.mongo.change_stream import (
    ChangeStreamBuilder,
    ChangeType,
    FullDocument,
    FullDocumentBeforeChange,
)
from prax.mongo.counter import CounterBuilder
from prax.mongo.functions import MongoAccumulator, MongoFunction

__all__ = [
    # Updates
    "ArrayOp",
    "ArrayOperator",
    "UpdateBuilder",
    "UpdateOp",
    "UpdateOperator",
    # Upsert
    "BulkUpsert",
    "MongoUpsert",
    "MongoUpsertBuilder",
    # Lookups
    "GraphLookup",
    "Lookup",
    "LookupBuilder",
    "UnionWith",
    "graph_lookup",
    "lookup",
    "lookup_pipeline",
    # Atlas Search
    "AtlasSearchIndexBuilder",
    "AtlasSearchQuery",
    "FuzzyConfig",
    "HighlightConfig",
    "SearchFieldType",
    # Sharding
    "ShardKey",
    "ShardKeyBuilder",
    "ShardKeyType",
    "ShardZone",
    "ZoneShardingBuilder",
    # Change streams
    "ChangeStreamBuilder",
    "ChangeType",
    "FullDocument",
    "FullDocumentBeforeChange",
    # Counters and functions
    "CounterBuilder",
    "MongoAccumulator",
    "MongoFunction",
]
