# tests/test_sequence.py
"""Tests for sequences, auto-increment columns and counters."""

import pytest

from prax.mongo.counter import CounterBuilder
from prax.query.dialect import DatabaseType
from prax.query.sequence import (
    Sequence,
    auto_increment_column,
    countdown,
    currval,
    default_nextval,
    invoice_number,
    last_insert_id,
    nextval,
    order_number,
    round_robin,
    set_start_value,
    setval,
)
from prax.services.sql_checker import SQLSyntaxChecker
from prax.utils.exceptions import InvalidInputError, UnsupportedError


class TestSequenceDdl:
    """CREATE/ALTER/DROP SEQUENCE tests."""

    def setup_method(self):
        """Set up test fixtures."""
        self.sequence = (
            Sequence.builder("order_seq")
            .schema("shop")
            .start(100)
            .increment(5)
            .min_value(1)
            .cache(20)
            .owned_by("orders", "id")
            .build()
        )

    def test_postgres_create(self):
        assert self.sequence.to_create_sql(DatabaseType.POSTGRESQL) == (
            "CREATE SEQUENCE shop.order_seq\n"
            "    INCREMENT BY 5\n"
            "    MINVALUE 1\n"
            "    NO MAXVALUE\n"
            "    START WITH 100\n"
            "    CACHE 20\n"
            "    NO CYCLE\n"
            "    OWNED BY orders.id;"
        )

    def test_mssql_create(self):
        assert self.sequence.to_create_sql(DatabaseType.MSSQL) == (
            "CREATE SEQUENCE shop.order_seq AS BIGINT\n"
            "    START WITH 100\n"
            "    INCREMENT BY 5\n"
            "    MINVALUE 1\n"
            "    NO MAXVALUE\n"
            "    CACHE 20\n"
            "    NO CYCLE;"
        )

    @pytest.mark.parametrize("db_type", [DatabaseType.MYSQL, DatabaseType.SQLITE])
    def test_unsupported_dialects(self, db_type):
        with pytest.raises(UnsupportedError) as exc:
            self.sequence.to_create_sql(db_type)
        assert "auto-increment" in exc.value.reason
        with pytest.raises(UnsupportedError):
            nextval("order_seq", db_type)

    def test_alter_mssql_no_cache(self):
        sequence = Sequence.builder("s").cycle().build()
        assert sequence.to_alter_sql(DatabaseType.MSSQL) == (
            "ALTER SEQUENCE s\n    INCREMENT BY 1\n    NO CACHE\n    CYCLE;"
        )

    def test_drop_and_restart(self):
        assert self.sequence.to_drop_sql(DatabaseType.POSTGRESQL) == "DROP SEQUENCE IF EXISTS shop.order_seq CASCADE;"
        assert self.sequence.to_drop_sql(DatabaseType.MSSQL) == "DROP SEQUENCE IF EXISTS shop.order_seq;"
        assert self.sequence.restart_sql(1, DatabaseType.POSTGRESQL) == (
            "ALTER SEQUENCE shop.order_seq RESTART WITH 1;"
        )

    def test_builder_validation(self):
        with pytest.raises(InvalidInputError) as exc:
            Sequence.builder("s").increment(0).build()
        assert exc.value.field == "increment"
        with pytest.raises(InvalidInputError) as exc:
            Sequence.builder("s").min_value(10).max_value(1).build()
        assert exc.value.field == "min_value"


class TestSequenceFunctions:
    """nextval/currval/setval tests."""

    def test_postgres(self):
        assert nextval("s", DatabaseType.POSTGRESQL) == "SELECT nextval('s')"
        assert currval("s", DatabaseType.POSTGRESQL) == "SELECT currval('s')"
        assert setval("s", 10, False, DatabaseType.POSTGRESQL) == "SELECT setval('s', 10, false)"
        assert default_nextval("s", DatabaseType.POSTGRESQL) == "nextval('s')"

    def test_mssql(self):
        assert nextval("s", DatabaseType.MSSQL) == "SELECT NEXT VALUE FOR s"
        assert setval("s", 10, db_type=DatabaseType.MSSQL) == "ALTER SEQUENCE s RESTART WITH 10"
        assert default_nextval("s", DatabaseType.MSSQL) == "NEXT VALUE FOR s"
        assert "sys.sequences" in currval("s", DatabaseType.MSSQL)

    def test_instance_nextval(self):
        sequence = Sequence.builder("s").schema("app").build()
        assert sequence.nextval_sql(DatabaseType.POSTGRESQL) == "SELECT nextval('app.s')"

    def test_last_insert_id(self):
        assert last_insert_id(DatabaseType.MYSQL) == "SELECT LAST_INSERT_ID()"
        assert last_insert_id(DatabaseType.SQLITE) == "SELECT last_insert_rowid()"


class TestAutoIncrement:
    """Auto-increment column tests."""

    @pytest.mark.parametrize("db_type,expected", [
        (DatabaseType.POSTGRESQL, "id BIGSERIAL"),
        (DatabaseType.MYSQL, "id BIGINT AUTO_INCREMENT"),
        (DatabaseType.SQLITE, "id INTEGER PRIMARY KEY AUTOINCREMENT"),
        (DatabaseType.MSSQL, "id BIGINT IDENTITY(1, 1)"),
    ])
    def test_column(self, db_type, expected):
        assert auto_increment_column("id", db_type) == expected

    def test_start_value(self):
        assert auto_increment_column("id", DatabaseType.MSSQL, start=100) == "id BIGINT IDENTITY(100, 1)"
        assert auto_increment_column("id", DatabaseType.POSTGRESQL, start=100) == (
            "id BIGINT GENERATED BY DEFAULT AS IDENTITY (START WITH 100)"
        )

    def test_set_start_value(self):
        assert set_start_value("users", 50, DatabaseType.MYSQL) == "ALTER TABLE users AUTO_INCREMENT = 50;"
        assert set_start_value("users", 50, DatabaseType.SQLITE) == (
            "UPDATE sqlite_sequence SET seq = 49 WHERE name = 'users';"
        )
        assert set_start_value("users", 50, DatabaseType.MSSQL) == "DBCC CHECKIDENT ('users', RESEED, 49);"


class TestSequencePatterns:
    """Canned sequence tests."""

    def test_order_number(self):
        sequence = order_number()
        assert sequence.start == 1000
        assert sequence.cache == 20

    def test_invoice_number(self):
        assert invoice_number(2024).name == "invoice_2024_seq"

    def test_round_robin_cycles(self):
        sequence = round_robin("rr", 4)
        assert sequence.cycle
        assert sequence.max_value == 4

    def test_countdown(self):
        sequence = countdown("launch", 10)
        assert sequence.increment == -1
        assert sequence.min_value == 0


class TestCounter:
    """MongoDB counter tests."""

    def test_next_value_command(self):
        assert CounterBuilder("order_id").next_value_command() == {
            "findAndModify": "counters",
            "query": {"_id": "order_id"},
            "update": {"$inc": {"seq": 1}},
            "new": True,
            "upsert": True,
        }

    def test_custom_collection_and_step(self):
        counter = CounterBuilder("order_id").collection("seqs").increment(10)
        assert counter.collection_name == "seqs"
        assert counter.increment_pipeline()[1] == {"$set": {"seq": {"$add": ["$seq", 10]}}}

    def test_documents(self):
        counter = CounterBuilder("order_id")
        assert counter.init_document(1000) == {"_id": "order_id", "seq": 1000}
        assert counter.reset_document() == {"$set": {"seq": 0}}

    def test_validation(self):
        with pytest.raises(InvalidInputError):
            CounterBuilder("")
        with pytest.raises(InvalidInputError):
            CounterBuilder("c").increment(0)


@pytest.mark.sqlcheck
class TestSequenceParses:
    """Check emitted sequence DDL with sqlglot."""

    def test_postgres_create(self):
        sql = Sequence.builder("s").start(10).build().to_create_sql(DatabaseType.POSTGRESQL)
        assert SQLSyntaxChecker().check(sql, DatabaseType.POSTGRESQL)[0], sql
