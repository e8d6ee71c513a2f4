# prax/query/pipeline.py
"""Query pipelines, batching and bulk insert/update statement generation.

Nothing here executes SQL. ``PipelineExecutor`` is the boundary an
execution layer implements to run a pipeline against a live connection.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Protocol, Sequence, runtime_checkable

from prax.config import get_settings
from prax.query.dialect import DatabaseType, DialectLike, SqlBuilder, resolve_dialect
from prax.services.sql_checker import SQLSyntaxChecker
from prax.utils.exceptions import InvalidInputError, SQLCheckError, UnsupportedError

logger = logging.getLogger("prax.pipeline")

_NUMBERED_PARAM_RE = re.compile(r"\$(\d+)")

Statement = tuple[str, list[Any]]


def renumber_params(sql: str, offset: int) -> str:
    """Shift ``$n`` placeholders by ``offset``.

    Only digits directly after ``$`` are renumbered; any other ``$`` is kept
    as written.

    Args:
        sql: SQL text with PostgreSQL placeholders.
        offset: Amount to add to each placeholder number.

    Returns:
        The renumbered SQL, or ``sql`` itself when ``offset`` is 0.
    """
    if offset == 0:
        return sql
    return _NUMBERED_PARAM_RE.sub(lambda m: f"${int(m.group(1)) + offset}", sql)


@dataclass
class PipelineConfig:
    """Batching and execution options for a pipeline."""

    max_batch_size: int = field(default_factory=lambda: get_settings().pipeline_max_batch_size)
    execution_timeout: float = 60.0
    use_transaction: bool = False
    rollback_on_error: bool = True
    max_depth: int = 100
    collect_stats: bool = True

    def __post_init__(self):
        self.max_batch_size = max(1, self.max_batch_size)

    @classmethod
    def for_bulk_inserts(cls) -> "PipelineConfig":
        return cls(max_batch_size=5000, execution_timeout=300.0, use_transaction=True, max_depth=500)

    @classmethod
    def for_bulk_updates(cls) -> "PipelineConfig":
        return cls(max_batch_size=1000, execution_timeout=180.0, use_transaction=True, max_depth=200)

    @classmethod
    def for_mixed_operations(cls) -> "PipelineConfig":
        return cls(max_batch_size=500, execution_timeout=120.0, use_transaction=True)


@dataclass(frozen=True)
class PipelineQuery:
    """One statement queued in a pipeline."""

    sql: str
    params: tuple[Any, ...] = ()
    expects_rows: bool = True
    id: Optional[str] = None

    @classmethod
    def query(cls, sql: str, params: Iterable[Any] = (), id: Optional[str] = None) -> "PipelineQuery":
        return cls(sql, tuple(params), True, id)

    @classmethod
    def execute(cls, sql: str, params: Iterable[Any] = (), id: Optional[str] = None) -> "PipelineQuery":
        return cls(sql, tuple(params), False, id)


class QueryPipeline:
    """An ordered list of statements sent together.

    Example:
        >>> pipeline = (
        ...     QueryPipeline(db_type="postgresql")
        ...     .add_query("SELECT $1", [1])
        ...     .add_query("SELECT $1, $2", [2, 3])
        ... )
        >>> pipeline.to_batch_sql()
        ('SELECT $1;\\nSELECT $2, $3', [1, 2, 3])
    """

    def __init__(self, config: Optional[PipelineConfig] = None, db_type: DialectLike = None):
        self.config = config or PipelineConfig()
        self.db_type = resolve_dialect(db_type)
        self.queries: list[PipelineQuery] = []

    def __len__(self) -> int:
        return len(self.queries)

    def is_empty(self) -> bool:
        return not self.queries

    def for_database(self, db_type: DialectLike) -> "QueryPipeline":
        self.db_type = resolve_dialect(db_type)
        return self

    def push(self, query: PipelineQuery) -> "QueryPipeline":
        if len(self.queries) >= self.config.max_depth:
            logger.debug("Pipeline depth %s exceeds configured max_depth %s",
                         len(self.queries) + 1, self.config.max_depth)
        self.queries.append(query)
        return self

    def add_query(self, sql: str, params: Iterable[Any] = (), id: Optional[str] = None) -> "QueryPipeline":
        return self.push(PipelineQuery.query(sql, params, id))

    def add_execute(self, sql: str, params: Iterable[Any] = (), id: Optional[str] = None) -> "QueryPipeline":
        return self.push(PipelineQuery.execute(sql, params, id))

    def add_select(self, sql: str, params: Iterable[Any] = ()) -> "QueryPipeline":
        return self.add_query(sql, params)

    def add_insert(self, sql: str, params: Iterable[Any] = ()) -> "QueryPipeline":
        return self.add_execute(sql, params)

    def add_update(self, sql: str, params: Iterable[Any] = ()) -> "QueryPipeline":
        return self.add_execute(sql, params)

    def add_delete(self, sql: str, params: Iterable[Any] = ()) -> "QueryPipeline":
        return self.add_execute(sql, params)

    def to_batch_sql(self) -> Optional[Statement]:
        """Join all statements into one multi-statement string.

        PostgreSQL placeholders are renumbered with a running offset so the
        combined parameter list lines up.

        Returns:
            ``(sql, params)``, or None for an empty pipeline.

        Raises:
            UnsupportedError: For SQLite and SQL Server, whose drivers run
                one parameterized statement at a time.
        """
        if not self.queries:
            return None
        if self.db_type not in (DatabaseType.POSTGRESQL, DatabaseType.MYSQL):
            raise UnsupportedError(self.db_type.display_name, "multi-statement parameterized batches")

        parts = []
        params: list[Any] = []
        for query in self.queries:
            if self.db_type == DatabaseType.POSTGRESQL and query.params:
                parts.append(renumber_params(query.sql, len(params)))
            else:
                parts.append(query.sql)
            params.extend(query.params)
        return ";\n".join(parts), params

    def to_transaction_sql(self) -> list[Statement]:
        """Bracket the statements with BEGIN and COMMIT."""
        statements: list[Statement] = [(self.db_type.begin_transaction(), [])]
        statements.extend((q.sql, list(q.params)) for q in self.queries)
        statements.append((self.db_type.commit(), []))
        return statements

    def into_batches(self, max_size: Optional[int] = None) -> list[list[PipelineQuery]]:
        size = max(1, max_size or self.config.max_batch_size)
        return [self.queries[i:i + size] for i in range(0, len(self.queries), size)]

    def verify(self, checker: Optional[SQLSyntaxChecker] = None) -> None:
        """Parse every statement with sqlglot in the pipeline's dialect.

        Raises:
            SQLCheckError: For the first statement that does not parse.
        """
        checker = checker or SQLSyntaxChecker()
        for index, query in enumerate(self.queries):
            is_valid, error = checker.check(query.sql, self.db_type)
            if not is_valid:
                raise SQLCheckError(query.sql, f"statement {index}: {error}")
        logger.debug("Verified %s pipeline statements for %s", len(self.queries), self.db_type.display_name)


# === Results ===

class QueryOutcomeKind(str, Enum):
    ROWS = "rows"
    EXECUTED = "executed"
    ERROR = "error"


@dataclass(frozen=True)
class QueryOutcome:
    """Result of one pipeline statement."""

    kind: QueryOutcomeKind
    count: int = 0
    message: Optional[str] = None

    @classmethod
    def rows(cls, count: int) -> "QueryOutcome":
        return cls(QueryOutcomeKind.ROWS, count)

    @classmethod
    def executed(cls, rows_affected: int) -> "QueryOutcome":
        return cls(QueryOutcomeKind.EXECUTED, rows_affected)

    @classmethod
    def error(cls, message: str) -> "QueryOutcome":
        return cls(QueryOutcomeKind.ERROR, message=message)

    @property
    def is_success(self) -> bool:
        return self.kind != QueryOutcomeKind.ERROR

    @property
    def rows_affected(self) -> Optional[int]:
        return self.count if self.kind == QueryOutcomeKind.EXECUTED else None


@dataclass
class PipelineStats:
    total_queries: int = 0
    successful: int = 0
    failed: int = 0
    total_duration_ms: float = 0.0
    batches_used: int = 0

    @property
    def avg_batch_size(self) -> float:
        if self.batches_used == 0:
            return 0.0
        return self.total_queries / self.batches_used


@dataclass
class PipelineResult:
    """Per-statement outcomes of an executed pipeline."""

    results: list[QueryOutcome] = field(default_factory=list)
    stats: PipelineStats = field(default_factory=PipelineStats)

    @property
    def total_affected(self) -> int:
        return sum(r.rows_affected or 0 for r in self.results)

    @property
    def total_returned(self) -> int:
        return sum(r.count for r in self.results if r.kind == QueryOutcomeKind.ROWS)

    def all_succeeded(self) -> bool:
        return all(r.is_success for r in self.results)

    def first_error(self) -> Optional[str]:
        return next((r.message for r in self.results if not r.is_success), None)

    def success_count(self) -> int:
        return sum(1 for r in self.results if r.is_success)

    def error_count(self) -> int:
        return len(self.results) - self.success_count()


@runtime_checkable
class PipelineExecutor(Protocol):
    """Implemented by execution layers that run pipelines on a connection."""

    async def execute_pipeline(self, pipeline: QueryPipeline) -> PipelineResult:
        ...


# === Bulk operations ===

class BulkInsertPipeline:
    """Groups rows into multi-row INSERT statements."""

    def __init__(
        self,
        table: str,
        columns: Sequence[str],
        db_type: DialectLike = None,
        batch_size: Optional[int] = None
    ):
        if not columns:
            raise InvalidInputError("columns", "bulk insert needs at least one column")
        self.table = table
        self.columns = list(columns)
        self.db_type = resolve_dialect(db_type)
        self.batch_size = max(1, batch_size or get_settings().bulk_insert_batch_size)
        self.rows: list[list[Any]] = []

    def __len__(self) -> int:
        return len(self.rows)

    def is_empty(self) -> bool:
        return not self.rows

    def add_row(self, values: Sequence[Any]) -> "BulkInsertPipeline":
        if len(values) != len(self.columns):
            raise InvalidInputError(
                "row",
                f"row has {len(values)} values, expected {len(self.columns)}"
            )
        self.rows.append(list(values))
        return self

    def add_rows(self, rows: Iterable[Sequence[Any]]) -> "BulkInsertPipeline":
        for row in rows:
            self.add_row(row)
        return self

    @property
    def statement_count(self) -> int:
        return math.ceil(len(self.rows) / self.batch_size)

    def _build_insert(self, rows: list[list[Any]]) -> Statement:
        b = SqlBuilder(self.db_type)
        b.push(f"INSERT INTO {self.table} ({', '.join(self.columns)}) VALUES ")
        b.push_sep(
            rows, ", ",
            lambda b, row: b.push("(").push_sep(row, ", ", lambda b, v: b.push_param(v)).push(")")
        )
        return b.build()

    def to_insert_statements(self) -> list[Statement]:
        """One statement per batch, each numbered from 1."""
        return [
            self._build_insert(self.rows[i:i + self.batch_size])
            for i in range(0, len(self.rows), self.batch_size)
        ]

    def to_pipeline(self) -> QueryPipeline:
        pipeline = QueryPipeline(PipelineConfig.for_bulk_inserts(), self.db_type)
        for sql, params in self.to_insert_statements():
            pipeline.add_insert(sql, params)
        return pipeline


@dataclass(frozen=True)
class BulkUpdate:
    set: tuple[tuple[str, Any], ...]
    where: tuple[tuple[str, Any], ...] = ()


class BulkUpdatePipeline:
    """Emits one parameterized UPDATE per row."""

    def __init__(self, table: str, db_type: DialectLike = None):
        self.table = table
        self.db_type = resolve_dialect(db_type)
        self.updates: list[BulkUpdate] = []

    def __len__(self) -> int:
        return len(self.updates)

    def is_empty(self) -> bool:
        return not self.updates

    def add_update(
        self,
        set: Iterable[tuple[str, Any]],
        where: Iterable[tuple[str, Any]] = ()
    ) -> "BulkUpdatePipeline":
        update = BulkUpdate(tuple(set), tuple(where))
        if not update.set:
            raise InvalidInputError("set", "update needs at least one assignment")
        self.updates.append(update)
        return self

    def _build_update(self, update: BulkUpdate) -> Statement:
        b = SqlBuilder(self.db_type)
        b.push(f"UPDATE {self.table} SET ")
        b.push_sep(update.set, ", ", lambda b, kv: b.push(f"{kv[0]} = ").push_param(kv[1]))
        if update.where:
            b.push(" WHERE ")
            b.push_sep(update.where, " AND ", lambda b, kv: b.push(f"{kv[0]} = ").push_param(kv[1]))
        return b.build()

    def to_update_statements(self) -> list[Statement]:
        return [self._build_update(u) for u in self.updates]

    def to_pipeline(self) -> QueryPipeline:
        pipeline = QueryPipeline(PipelineConfig.for_bulk_updates(), self.db_type)
        for sql, params in self.to_update_statements():
            pipeline.add_update(sql, params)
        return pipeline
