# tests/test_pipeline.py
"""Tests for query pipelines and bulk operations."""

import math

import pytest

from prax.query.dialect import DatabaseType
from prax.query.pipeline import (
    BulkInsertPipeline,
    BulkUpdatePipeline,
    PipelineConfig,
    PipelineExecutor,
    PipelineResult,
    PipelineStats,
    QueryOutcome,
    QueryPipeline,
    renumber_params,
)
from prax.utils.exceptions import InvalidInputError, SQLCheckError, UnsupportedError


class FakeExecutor:
    """Records pipelines and reports one outcome per statement."""

    def __init__(self):
        self.seen = []

    async def execute_pipeline(self, pipeline: QueryPipeline) -> PipelineResult:
        self.seen.append(pipeline)
        results = [
            QueryOutcome.rows(1) if q.expects_rows else QueryOutcome.executed(2)
            for q in pipeline.queries
        ]
        stats = PipelineStats(total_queries=len(results), successful=len(results), batches_used=1)
        return PipelineResult(results, stats)


class TestRenumberParams:
    """renumber_params test suite."""

    def test_zero_offset_returns_input(self):
        sql = "SELECT $1, $2"
        assert renumber_params(sql, 0) is sql

    def test_shift(self):
        assert renumber_params("SELECT $1, $10 WHERE a = $2", 3) == "SELECT $4, $13 WHERE a = $5"

    def test_other_dollars_untouched(self):
        assert renumber_params("SELECT $tag$x$tag$, $1", 1) == "SELECT $tag$x$tag$, $2"


class TestQueryPipeline:
    """QueryPipeline test suite."""

    def test_postgres_batch_renumbers(self):
        pipeline = QueryPipeline(db_type="postgresql").add_query("SELECT $1", [1]).add_query("SELECT $1, $2", [2, 3])
        assert pipeline.to_batch_sql() == ("SELECT $1;\nSELECT $2, $3", [1, 2, 3])

    def test_statements_without_params_keep_numbering(self):
        pipeline = (
            QueryPipeline(db_type=DatabaseType.POSTGRESQL)
            .add_execute("DELETE FROM t")
            .add_query("SELECT $1", ["a"])
        )
        assert pipeline.to_batch_sql() == ("DELETE FROM t;\nSELECT $1", ["a"])

    def test_mysql_batch(self):
        pipeline = QueryPipeline(db_type=DatabaseType.MYSQL).add_query("SELECT ?", [1]).add_insert("INSERT INTO t VALUES (?)", [2])
        assert pipeline.to_batch_sql() == ("SELECT ?;\nINSERT INTO t VALUES (?)", [1, 2])

    @pytest.mark.parametrize("db_type", [DatabaseType.SQLITE, DatabaseType.MSSQL])
    def test_batch_unsupported(self, db_type):
        pipeline = QueryPipeline(db_type=db_type).add_query("SELECT 1")
        with pytest.raises(UnsupportedError):
            pipeline.to_batch_sql()

    def test_empty(self):
        pipeline = QueryPipeline(db_type=DatabaseType.POSTGRESQL)
        assert pipeline.is_empty()
        assert pipeline.to_batch_sql() is None

    def test_transaction(self):
        pipeline = QueryPipeline(db_type=DatabaseType.MYSQL).add_update("UPDATE t SET a = ?", [1])
        assert pipeline.to_transaction_sql() == [
            ("START TRANSACTION", []),
            ("UPDATE t SET a = ?", [1]),
            ("COMMIT", []),
        ]

    def test_into_batches(self):
        pipeline = QueryPipeline(PipelineConfig(max_batch_size=2), DatabaseType.POSTGRESQL)
        for i in range(5):
            pipeline.add_select("SELECT $1", [i])
        assert [len(b) for b in pipeline.into_batches()] == [2, 2, 1]
        assert [len(b) for b in pipeline.into_batches(10)] == [5]

    def test_expects_rows(self):
        pipeline = QueryPipeline(db_type=DatabaseType.POSTGRESQL).add_select("SELECT 1").add_delete("DELETE FROM t")
        assert [q.expects_rows for q in pipeline.queries] == [True, False]
        assert len(pipeline) == 2

    @pytest.mark.sqlcheck
    def test_verify(self):
        pipeline = QueryPipeline(db_type=DatabaseType.POSTGRESQL).add_query("SELECT 1").add_query("SELECT (")
        with pytest.raises(SQLCheckError) as exc:
            pipeline.verify()
        assert "statement 1" in exc.value.message


class TestPipelineConfig:
    """PipelineConfig presets."""

    def test_default_from_settings(self, monkeypatch):
        from prax.config import get_settings

        monkeypatch.setenv("PRAX_PIPELINE_MAX_BATCH_SIZE", "25")
        get_settings.cache_clear()
        assert PipelineConfig().max_batch_size == 25

    def test_minimum_batch_size(self):
        assert PipelineConfig(max_batch_size=0).max_batch_size == 1

    def test_presets(self):
        assert PipelineConfig.for_bulk_inserts().max_batch_size == 5000
        assert PipelineConfig.for_bulk_updates().use_transaction
        assert PipelineConfig.for_mixed_operations().max_batch_size == 500


class TestPipelineResult:
    """Result aggregation tests."""

    def test_totals(self):
        result = PipelineResult([QueryOutcome.rows(3), QueryOutcome.executed(4), QueryOutcome.error("boom")])
        assert result.total_returned == 3
        assert result.total_affected == 4
        assert not result.all_succeeded()
        assert result.first_error() == "boom"
        assert result.success_count() == 2
        assert result.error_count() == 1

    def test_avg_batch_size(self):
        assert PipelineStats().avg_batch_size == 0.0
        assert PipelineStats(total_queries=10, batches_used=4).avg_batch_size == 2.5


class TestPipelineExecutor:
    """Executor protocol tests."""

    def test_protocol(self):
        assert isinstance(FakeExecutor(), PipelineExecutor)

    @pytest.mark.anyio
    async def test_execute(self):
        executor = FakeExecutor()
        pipeline = QueryPipeline(db_type=DatabaseType.POSTGRESQL).add_select("SELECT 1").add_delete("DELETE FROM t")
        result = await executor.execute_pipeline(pipeline)
        assert executor.seen == [pipeline]
        assert result.all_succeeded()
        assert result.total_affected == 2
        assert result.stats.avg_batch_size == 2.0


class TestBulkInsert:
    """BulkInsertPipeline test suite."""

    def test_postgres_numbering(self):
        bulk = BulkInsertPipeline("users", ["name", "age"], DatabaseType.POSTGRESQL)
        bulk.add_rows([["a", 1], ["b", 2]])
        assert bulk.to_insert_statements() == [
            ("INSERT INTO users (name, age) VALUES ($1, $2), ($3, $4)", ["a", 1, "b", 2])
        ]

    def test_mssql_placeholders(self):
        bulk = BulkInsertPipeline("users", ["name"], DatabaseType.MSSQL).add_row(["a"])
        assert bulk.to_insert_statements() == [("INSERT INTO users (name) VALUES (@P1)", ["a"])]

    @pytest.mark.parametrize("rows,batch_size", [(1, 1), (10, 3), (1000, 1000), (1001, 1000), (7, 50)])
    def test_statement_count(self, rows, batch_size):
        bulk = BulkInsertPipeline("t", ["v"], DatabaseType.MYSQL, batch_size=batch_size)
        bulk.add_rows([i] for i in range(rows))
        statements = bulk.to_insert_statements()
        assert len(statements) == math.ceil(rows / batch_size) == bulk.statement_count
        assert sum(len(params) for _, params in statements) == rows

    def test_each_batch_numbered_from_one(self):
        bulk = BulkInsertPipeline("t", ["v"], DatabaseType.POSTGRESQL, batch_size=2)
        bulk.add_rows([[1], [2], [3]])
        assert bulk.to_insert_statements()[1] == ("INSERT INTO t (v) VALUES ($1)", [3])

    def test_row_width(self):
        bulk = BulkInsertPipeline("t", ["a", "b"], DatabaseType.SQLITE)
        with pytest.raises(InvalidInputError) as exc:
            bulk.add_row([1])
        assert exc.value.field == "row"

    def test_requires_columns(self):
        with pytest.raises(InvalidInputError):
            BulkInsertPipeline("t", [], DatabaseType.SQLITE)

    def test_to_pipeline(self):
        bulk = BulkInsertPipeline("t", ["v"], DatabaseType.POSTGRESQL, batch_size=1).add_rows([[1], [2]])
        pipeline = bulk.to_pipeline()
        assert len(pipeline) == 2
        assert not pipeline.queries[0].expects_rows
        assert pipeline.config.use_transaction


class TestBulkUpdate:
    """BulkUpdatePipeline test suite."""

    def test_statements(self):
        bulk = BulkUpdatePipeline("users", DatabaseType.POSTGRESQL)
        bulk.add_update([("name", "a"), ("age", 3)], [("id", 1)])
        bulk.add_update([("active", False)])
        assert bulk.to_update_statements() == [
            ("UPDATE users SET name = $1, age = $2 WHERE id = $3", ["a", 3, 1]),
            ("UPDATE users SET active = $1", [False]),
        ]

    def test_requires_assignment(self):
        with pytest.raises(InvalidInputError):
            BulkUpdatePipeline("users", DatabaseType.MYSQL).add_update([])

    def test_to_pipeline(self):
        bulk = BulkUpdatePipeline("users", DatabaseType.MYSQL).add_update([("a", 1)], [("id", 2)])
        pipeline = bulk.to_pipeline()
        assert pipeline.to_batch_sql() == ("UPDATE users SET a = ? WHERE id = ?", [1, 2])
