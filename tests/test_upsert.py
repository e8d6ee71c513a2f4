# tests/test_upsert.py
"""Tests for upsert generation."""

import re

import pytest

from prax.mongo.upsert import BulkUpsert, MongoUpsertBuilder
from prax.query.dialect import DatabaseType
from prax.query.upsert import Assignment, ConflictTarget, Upsert, UpsertBuilder
from prax.services.sql_checker import SQLSyntaxChecker
from prax.utils.exceptions import InvalidInputError, UnsupportedError


def _users_upsert(**kwargs) -> Upsert:
    builder = (
        Upsert.builder("users")
        .columns(["email", "name"])
        .on_conflict_columns(["email"])
        .do_update(["name"])
    )
    for name, value in kwargs.items():
        getattr(builder, name)(value)
    return builder.build()


class TestUpsertSql:
    """Per-dialect upsert SQL tests."""

    def test_postgres_do_update(self):
        """Test ON CONFLICT ... DO UPDATE with EXCLUDED."""
        assert _users_upsert().to_postgres_sql() == (
            "INSERT INTO users (email, name) VALUES ($1, $2) "
            "ON CONFLICT (email) DO UPDATE SET name = EXCLUDED.name"
        )

    def test_postgres_do_update_shape(self):
        """Test the DO UPDATE shape for several column sets."""
        pattern = re.compile(r"INSERT INTO .* ON CONFLICT .* DO UPDATE SET .* = EXCLUDED\.")
        for cols in (["a"], ["a", "b"], ["b", "c", "d"]):
            upsert = UpsertBuilder("t").columns(["k", *cols]).on_conflict_columns(["k"]).do_update(cols).build()
            assert pattern.match(upsert.to_postgres_sql())

    def test_postgres_where_and_returning(self):
        """Test WHERE on the update branch and RETURNING."""
        sql = _users_upsert(where="users.name IS NULL", returning=["id"]).to_postgres_sql()
        assert sql.endswith("DO UPDATE SET name = EXCLUDED.name WHERE users.name IS NULL RETURNING id")

    def test_postgres_targets(self):
        """Test constraint, index-expression and implicit targets."""
        base = UpsertBuilder("t").columns(["a"]).do_nothing()
        assert "ON CONFLICT ON CONSTRAINT t_a_key DO NOTHING" in base.on_conflict_constraint("t_a_key").build().to_postgres_sql()
        assert "ON CONFLICT (lower(a)) DO NOTHING" in base.on_conflict_index("lower(a)").build().to_postgres_sql()
        implicit = UpsertBuilder("t").columns(["a"]).on_conflict(ConflictTarget.implicit()).build()
        assert implicit.to_postgres_sql().endswith("ON CONFLICT DO NOTHING")

    def test_mysql_do_update(self):
        """Test ON DUPLICATE KEY UPDATE."""
        sql, params = _users_upsert(params=["a@b.c", "A"]).to_sql(DatabaseType.MYSQL)
        assert sql == (
            "INSERT INTO users (email, name) VALUES (?, ?) "
            "ON DUPLICATE KEY UPDATE name = VALUES(name)"
        )
        assert params == ["a@b.c", "A"]

    def test_mysql_do_nothing(self):
        """Test INSERT IGNORE."""
        upsert = UpsertBuilder("users").columns(["email"]).on_conflict_columns(["email"]).build()
        assert upsert.to_mysql_sql() == "INSERT IGNORE INTO users (email) VALUES (?)"

    def test_mysql_returning_dropped(self, caplog):
        """Test that RETURNING is dropped with a warning."""
        sql = _users_upsert(returning=["id"]).to_mysql_sql()
        assert "RETURNING" not in sql
        assert "RETURNING" in caplog.text

    def test_sqlite(self):
        """Test lowercase excluded."""
        assert _users_upsert().to_sqlite_sql() == (
            "INSERT INTO users (email, name) VALUES (?, ?) "
            "ON CONFLICT (email) DO UPDATE SET name = excluded.name"
        )

    def test_sqlite_constraint_unsupported(self):
        """Test that SQLite rejects named constraint targets."""
        upsert = UpsertBuilder("t").columns(["a"]).on_conflict_constraint("c").build()
        with pytest.raises(UnsupportedError, match="SQLite"):
            upsert.to_sqlite_sql()

    def test_mssql_merge(self):
        """Test the MERGE statement."""
        assert _users_upsert().to_mssql_sql() == (
            "MERGE INTO users AS target USING (SELECT @P1 AS email, @P2 AS name) AS source "
            "ON target.email = source.email "
            "WHEN MATCHED THEN UPDATE SET target.name = source.name "
            "WHEN NOT MATCHED THEN INSERT (email, name) VALUES (source.email, source.name);"
        )

    def test_mssql_do_nothing(self):
        """Test that DoNothing only inserts."""
        upsert = UpsertBuilder("t").columns(["a", "b"]).build()
        sql = upsert.to_mssql_sql()
        assert "WHEN MATCHED" not in sql
        assert "ON target.a = source.a" in sql
        assert sql.endswith(";")

    def test_mssql_constraint_unsupported(self):
        """Test that MERGE needs column keys."""
        upsert = UpsertBuilder("t").columns(["a"]).on_conflict_constraint("c").build()
        with pytest.raises(UnsupportedError):
            upsert.to_mssql_sql()

    def test_explicit_assignments(self):
        """Test expression and parameter assignments."""
        upsert = (
            UpsertBuilder("counters")
            .columns(["name", "hits"])
            .on_conflict_columns(["name"])
            .do_update_set([Assignment.expr("hits", "counters.hits + 1"), Assignment.param("name", 3)])
            .build()
        )
        assert upsert.to_postgres_sql().endswith("DO UPDATE SET hits = counters.hits + 1, name = $3")

    @pytest.mark.sqlcheck
    @pytest.mark.parametrize("db_type", list(DatabaseType))
    def test_output_parses(self, db_type):
        """Test that each dialect's upsert parses with sqlglot."""
        sql, _ = _users_upsert().to_sql(db_type)
        assert SQLSyntaxChecker().check(sql, db_type)[0], sql


class TestUpsertBuilder:
    """Builder validation tests."""

    def test_requires_table(self):
        """Test missing table."""
        with pytest.raises(InvalidInputError, match="table"):
            UpsertBuilder().columns(["a"]).build()

    def test_requires_columns(self):
        """Test missing columns."""
        with pytest.raises(InvalidInputError, match="columns"):
            UpsertBuilder("t").build()

    def test_values_must_match_columns(self):
        """Test a value count mismatch."""
        with pytest.raises(InvalidInputError, match="expected 2 values, got 1"):
            UpsertBuilder("t").columns(["a", "b"]).values(["$1"]).build()

    def test_explicit_values(self):
        """Test caller-supplied value expressions."""
        upsert = UpsertBuilder("t").columns(["a", "b"]).values(["$1", "NOW()"]).build()
        assert upsert.to_postgres_sql().startswith("INSERT INTO t (a, b) VALUES ($1, NOW())")


class TestMongoUpsert:
    """MongoDB upsert tests."""

    def setup_method(self):
        """Set up a builder for each test."""
        self.builder = (
            MongoUpsertBuilder()
            .filter_eq("email", "a@b.c")
            .set("name", "A")
            .set_on_insert("created", 1)
            .inc("logins", 1)
        )

    def test_build_update(self):
        """Test merged operator documents."""
        assert self.builder.build_update() == {
            "$set": {"name": "A"},
            "$setOnInsert": {"created": 1},
            "$inc": {"logins": 1},
        }

    def test_find_and_modify(self):
        """Test the findAndModify command."""
        assert self.builder.to_find_and_modify("users") == {
            "findAndModify": "users",
            "query": {"email": "a@b.c"},
            "update": self.builder.build_update(),
            "upsert": True,
            "new": True,
        }

    def test_update_one_with_array_filters(self):
        """Test arrayFilters in updateOne options."""
        doc = self.builder.array_filter({"elem.grade": {"$gte": 85}}).to_update_one()
        assert doc["options"] == {"upsert": True, "arrayFilters": [{"elem.grade": {"$gte": 85}}]}

    def test_find_one_and_update(self):
        """Test the returnDocument option."""
        assert self.builder.to_find_one_and_update()["options"]["returnDocument"] == "after"
        assert self.builder.to_find_one_and_update(False)["options"]["returnDocument"] == "before"

    def test_replace_one(self):
        """Test replaceOne with upsert."""
        doc = self.builder.to_replace_one({"email": "a@b.c", "name": "B"})
        assert doc == {
            "filter": {"email": "a@b.c"},
            "replacement": {"email": "a@b.c", "name": "B"},
            "options": {"upsert": True},
        }

    def test_unset_and_arrays(self):
        """Test $unset, $push and $addToSet."""
        update = MongoUpsertBuilder().unset("tmp").push("log", "x").add_to_set("tags", "a").build_update()
        assert update == {"$unset": {"tmp": ""}, "$push": {"log": "x"}, "$addToSet": {"tags": "a"}}

    def test_empty_update_rejected(self):
        """Test that an upsert needs an operator."""
        with pytest.raises(InvalidInputError):
            MongoUpsertBuilder().filter_eq("a", 1).build()

    def test_bulk_write(self):
        """Test bulkWrite with ordered option."""
        bulk = BulkUpsert(ordered=False).add({"_id": 1}, {"$set": {"a": 1}})
        assert bulk.to_bulk_write() == {
            "operations": [{"updateOne": {"filter": {"_id": 1}, "update": {"$set": {"a": 1}}, "upsert": True}}],
            "options": {"ordered": False},
        }
