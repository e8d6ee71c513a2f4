# prax/query/__init__.py
"""Query-time SQL generation: filters, dialects and operation builders."""

from prax.query.dialect import (
    DatabaseType,
    SqlBuilder,
    escape_string,
    needs_quoting,
    resolve_dialect,
)
from prax.query.filter import Filter, FilterOp, Json, ScalarFilter, ScalarOp
from prax.query.upsert import (
    Assignment,
    ConflictAction,
    ConflictTarget,
    UpdateSpec,
    Upsert,
    UpsertBuilder,
)
from prax.query.partition import (
    HashPartitionDef,
    ListPartitionDef,
    Partition,
    PartitionBuilder,
    PartitionType,
    RangeBound,
    RangePartitionDef,
    monthly_partitions,
    quarterly_partitions,
    yearly_partitions,
)
from prax.query.cte import Cte, CteBuilder, WithClause, WithQueryBuilder
from prax.query.json import JsonAgg, JsonFilter, JsonIndex, JsonOp, JsonPath
from prax.query.search import (
    FullTextIndex,
    SearchLanguage,
    SearchMode,
    SearchQuery,
    SearchQueryBuilder,
    SearchSql,
)
from prax.query.sequence import Sequence, SequenceBuilder
from prax.query.trigger import (
    Trigger,
    TriggerBuilder,
    TriggerCondition,
    TriggerEvent,
    TriggerLevel,
    TriggerTiming,
)
from prax.query.procedure import Parameter, ParameterMode, ProcedureCall, ProcedureResult
from prax.query.pipeline import (
    BulkInsertPipeline,
    BulkUpdatePipeline,
    PipelineConfig,
    PipelineExecutor,
    PipelineQuery,
    PipelineResult,
    PipelineStats,
    QueryPipeline,
    renumber_params,
)

__all__ = [
    # Dialects
    "DatabaseType",
    "SqlBuilder",
    "escape_string",
    "needs_quoting",
    "resolve_dialect",
    # Filters
    "Filter",
    "FilterOp",
    "Json",
    "ScalarFilter",
    "ScalarOp",
    # Upsert
    "Assignment",
    "ConflictAction",
    "ConflictTarget",
    "UpdateSpec",
    "Upsert",
    "UpsertBuilder",
    # Partitioning
    "HashPartitionDef",
    "ListPartitionDef",
    "Partition",
    "PartitionBuilder",
    "PartitionType",
    "RangeBound",
    "RangePartitionDef",
    "monthly_partitions",
    "quarterly_partitions",
    "yearly_partitions",
    # CTE
    "Cte",
    "CteBuilder",
    "WithClause",
    "WithQueryBuilder",
    # JSON
    "JsonAgg",
    "JsonFilter",
    "JsonIndex",
    "JsonOp",
    "JsonPath",
    # Search
    "FullTextIndex",
    "SearchLanguage",
    "SearchMode",
    "SearchQuery",
    "SearchQueryBuilder",
    "SearchSql",
    # Sequences
    "Sequence",
    "SequenceBuilder",
    # Triggers
    "Trigger",
    "TriggerBuilder",
    "TriggerCondition",
    "TriggerEvent",
    "TriggerLevel",
    "TriggerTiming",
    # Procedures
    "Parameter",
    "ParameterMode",
    "ProcedureCall",
    "ProcedureResult",
    # Pipelines
    "BulkInsertPipeline",
    "BulkUpdatePipeline",
    "PipelineConfig",
    "PipelineExecutor",
    "PipelineQuery",
    "PipelineResult",
    "PipelineStats",
    "QueryPipeline",
    "renumber_params",
]
