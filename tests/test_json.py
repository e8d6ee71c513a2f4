# tests/test_json.py
"""Tests for JSON paths, filters, mutations, aggregates and indexes."""

import pytest

from prax.query.dialect import DatabaseType
from prax.query.filter import Json
from prax.query.json import JsonAgg, JsonFilter, JsonIndex, JsonOp, JsonPath, SegmentKind
from prax.utils.exceptions import InvalidInputError, UnsupportedError


class TestJsonPath:
    """JsonPath test suite."""

    def setup_method(self):
        """Set up test fixtures."""
        self.path = JsonPath("data").field("address").field("city")

    def test_immutable_extension(self):
        base = JsonPath("data")
        extended = base.field("a")
        assert base.segments == ()
        assert len(extended.segments) == 1

    def test_from_path(self):
        path = JsonPath.from_path("data", "$.items[0].tags[*]")
        assert [s.kind for s in path.segments] == [
            SegmentKind.FIELD, SegmentKind.INDEX, SegmentKind.FIELD, SegmentKind.WILDCARD
        ]
        assert path.to_jsonpath_string() == "$.items[0].tags[*]"

    def test_recursive_segment(self):
        assert JsonPath.from_path("data", "$.**").to_jsonpath_string() == "$.**"

    def test_postgres(self):
        assert self.path.to_sql(DatabaseType.POSTGRESQL) == "data -> 'address' -> 'city'"
        assert self.path.text().to_sql(DatabaseType.POSTGRESQL) == "data -> 'address' ->> 'city'"

    def test_postgres_index_and_wildcard(self):
        assert JsonPath("data").field("items").index(0).to_postgres_expr() == "data -> 'items' -> 0"
        assert JsonPath("data").field("items").all().to_postgres_expr() == (
            "jsonb_array_elements(data -> 'items')"
        )

    def test_mysql(self):
        assert self.path.to_sql(DatabaseType.MYSQL) == "JSON_EXTRACT(data, '$.address.city')"
        assert self.path.text().to_sql(DatabaseType.MYSQL) == (
            "JSON_UNQUOTE(JSON_EXTRACT(data, '$.address.city'))"
        )

    def test_sqlite(self):
        assert self.path.to_sql(DatabaseType.SQLITE) == "json_extract(data, '$.address.city')"

    def test_mssql(self):
        assert self.path.to_sql(DatabaseType.MSSQL) == "JSON_QUERY(data, '$.address.city')"
        assert self.path.text().to_sql(DatabaseType.MSSQL) == "JSON_VALUE(data, '$.address.city')"

    def test_mongodb_path(self):
        assert self.path.to_mongodb_path() == "data.address.city"
        assert JsonPath("data").field("items").index(2).to_mongodb_path() == "data.items.2"


class TestJsonFilter:
    """JsonFilter test suite."""

    def test_postgres_equals_text(self):
        path = JsonPath("data").field("status").text()
        assert JsonFilter.equals(path, "active").to_sql(DatabaseType.POSTGRESQL) == (
            "data ->> 'status' = $1", ["active"]
        )

    def test_postgres_equals_document(self):
        sql, params = JsonFilter.equals(JsonPath("data").field("meta"), {"a": 1}).to_sql(DatabaseType.POSTGRESQL)
        assert sql == "data -> 'meta' = $1::jsonb"
        assert params == [Json({"a": 1})]

    def test_postgres_contains_and_keys(self):
        assert JsonFilter.contains("data", {"tag": "x"}).to_sql(DatabaseType.POSTGRESQL)[0] == (
            "data @> $1::jsonb"
        )
        assert JsonFilter.has_key("data", "email").to_sql(DatabaseType.POSTGRESQL) == (
            "data ? $1", ["email"]
        )
        assert JsonFilter.has_all_keys("data", ["a", "b"]).to_sql(DatabaseType.POSTGRESQL) == (
            "data ?& ARRAY[$1, $2]", ["a", "b"]
        )

    def test_param_offset(self):
        sql, _ = JsonFilter.gt(JsonPath("data").field("age"), 18).to_sql(DatabaseType.POSTGRESQL, param_offset=2)
        assert sql == "(data -> 'age')::numeric > $3"

    def test_null_checks_bind_nothing(self):
        assert JsonFilter.is_null(JsonPath("data").field("x")).to_sql(DatabaseType.SQLITE) == (
            "json_extract(data, '$.x') IS NULL", []
        )

    def test_mysql(self):
        assert JsonFilter.has_key("data", "email").to_sql(DatabaseType.MYSQL) == (
            "JSON_CONTAINS_PATH(data, 'one', ?)", ["$.email"]
        )
        sql, _ = JsonFilter.array_contains(JsonPath("data").field("tags"), "x").to_sql(DatabaseType.MYSQL)
        assert sql == "JSON_CONTAINS(data, ?, '$.tags')"

    def test_sqlite_scalar_equality(self):
        assert JsonFilter.equals(JsonPath("data").field("n"), 3).to_sql(DatabaseType.SQLITE) == (
            "json_extract(data, '$.n') = ?", [3]
        )

    def test_mssql_scalar_only(self):
        sql, params = JsonFilter.equals(JsonPath("data").field("n"), 3).to_sql(DatabaseType.MSSQL)
        assert sql == "JSON_VALUE(data, '$.n') = @P1"
        assert params == [3]
        with pytest.raises(UnsupportedError):
            JsonFilter.equals(JsonPath("data").field("n"), {"a": 1}).to_sql(DatabaseType.MSSQL)

    def test_unsupported_contains(self):
        with pytest.raises(UnsupportedError) as exc:
            JsonFilter.contains("data", {"a": 1}).to_sql(DatabaseType.SQLITE)
        assert "SQLite" in str(exc.value)

    def test_path_match_postgres_only(self):
        assert JsonFilter.path_match("data", "$.a ? (@ > 1)").to_sql(DatabaseType.POSTGRESQL)[0] == (
            "data @? $1::jsonpath"
        )
        with pytest.raises(UnsupportedError):
            JsonFilter.path_match("data", "$.a").to_sql(DatabaseType.MYSQL)


class TestJsonOp:
    """JsonOp mutation tests."""

    def test_postgres_set(self):
        assert JsonOp.set("data", "$.a.b", 1).to_sql(DatabaseType.POSTGRESQL) == (
            "jsonb_set(data, '{a,b}', $1::jsonb)", [Json(1)]
        )

    def test_array_index_segments(self):
        """Test that a[0] splits into its own path element."""
        assert JsonOp.set("data", "$.items[0].qty", 2).to_sql(DatabaseType.POSTGRESQL)[0] == (
            "jsonb_set(data, '{items,0,qty}', $1::jsonb)"
        )
        assert JsonOp.remove("data", "$.items[0].qty").to_sql(DatabaseType.MSSQL)[0] == (
            "JSON_MODIFY(data, '$.items[0].qty', NULL)"
        )

    def test_postgres_remove(self):
        assert JsonOp.remove("data", "$.a").to_sql(DatabaseType.POSTGRESQL) == ("data #- '{a}'", [])

    def test_postgres_append_at_root(self):
        assert JsonOp.array_append("tags", "", "x").to_sql(DatabaseType.POSTGRESQL)[0] == "tags || $1::jsonb"

    def test_postgres_increment(self):
        assert JsonOp.increment("data", "$.count", 1).to_sql(DatabaseType.POSTGRESQL)[0] == (
            "jsonb_set(data, '{count}', to_jsonb((data #> '{count}')::numeric + $1))"
        )

    def test_mysql(self):
        assert JsonOp.set("data", "$.a", 1).to_sql(DatabaseType.MYSQL)[0] == (
            "JSON_SET(data, '$.a', CAST(? AS JSON))"
        )
        assert JsonOp.array_prepend("data", "$.tags", "x").to_sql(DatabaseType.MYSQL)[0] == (
            "JSON_ARRAY_INSERT(data, '$.tags[0]', CAST(? AS JSON))"
        )

    def test_sqlite_merge(self):
        assert JsonOp.merge("data", {"a": 1}).to_sql(DatabaseType.SQLITE)[0] == "json_patch(data, json(?))"

    def test_mssql(self):
        assert JsonOp.remove("data", "$.a").to_sql(DatabaseType.MSSQL)[0] == "JSON_MODIFY(data, '$.a', NULL)"
        assert JsonOp.array_append("data", "$.tags", "x").to_sql(DatabaseType.MSSQL)[0] == (
            "JSON_MODIFY(data, 'append $.tags', JSON_QUERY(@P1))"
        )
        with pytest.raises(UnsupportedError):
            JsonOp.merge("data", {}).to_sql(DatabaseType.MSSQL)


class TestJsonAgg:
    """JSON aggregate tests."""

    def test_array_agg(self):
        agg = JsonAgg.array_agg("name", distinct=True, order_by="name")
        assert agg.to_sql(DatabaseType.POSTGRESQL) == "jsonb_agg(DISTINCT name ORDER BY name)"
        assert agg.to_sql(DatabaseType.MYSQL) == "JSON_ARRAYAGG(name)"

    def test_build_object(self):
        agg = JsonAgg.build_object([("id", "u.id"), ("name", "u.name")])
        assert agg.to_sql(DatabaseType.SQLITE) == "json_object('id', u.id, 'name', u.name)"

    def test_mssql_unsupported(self):
        with pytest.raises(UnsupportedError):
            JsonAgg.build_array(["1"]).to_sql(DatabaseType.MSSQL)


class TestJsonIndex:
    """JSON index tests."""

    def test_postgres_gin(self):
        index = JsonIndex.builder("idx_data").on_table("docs").column("data").build()
        assert index.to_sql(DatabaseType.POSTGRESQL) == ["CREATE INDEX idx_data ON docs USING GIN (data);"]

    def test_postgres_path_btree(self):
        index = JsonIndex.builder("idx_city").on_table("docs").column("data").path("city").btree().build()
        assert index.to_sql(DatabaseType.POSTGRESQL) == [
            "CREATE INDEX idx_city ON docs USING BTREE ((data -> 'city'));"
        ]

    def test_mysql_generated_column(self):
        index = JsonIndex.builder("idx_city").on_table("docs").column("data").path("city").build()
        statements = index.to_sql(DatabaseType.MYSQL)
        assert len(statements) == 2
        assert "GENERATED ALWAYS AS (JSON_UNQUOTE(JSON_EXTRACT(data, '$.city'))) STORED" in statements[0]
        assert statements[1] == "CREATE INDEX idx_city ON docs (docs_data_city);"

    def test_mysql_requires_path(self):
        index = JsonIndex.builder("idx").on_table("docs").column("data").build()
        with pytest.raises(UnsupportedError):
            index.to_sql(DatabaseType.MYSQL)

    def test_builder_validation(self):
        with pytest.raises(InvalidInputError) as exc:
            JsonIndex.builder("idx").column("data").build()
        assert exc.value.field == "table"
