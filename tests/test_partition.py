# tests/test_partition.py
"""Tests for table partitioning and shard key commands."""

import pytest

from prax.mongo.sharding import ShardKeyBuilder, ShardKeyType, ZoneShardingBuilder
from prax.query.dialect import DatabaseType
from prax.query.partition import (
    Partition,
    PartitionType,
    RangeBound,
    monthly_partitions,
    quarterly_partitions,
    yearly_partitions,
)
from prax.utils.exceptions import InvalidInputError, UnsupportedError


def _events_by_month() -> Partition:
    return monthly_partitions("events", "created_at", 2024, 1, 3).build()


class TestRangeBound:
    """RangeBound rendering tests."""

    def test_unbounded(self):
        assert RangeBound.minvalue().to_sql() == "MINVALUE"
        assert RangeBound.maxvalue().to_sql() == "MAXVALUE"
        assert RangeBound.maxvalue().is_unbounded

    def test_values(self):
        assert RangeBound.int_(100).to_sql() == "100"
        assert RangeBound.date("2024-01-01").to_sql() == "'2024-01-01'"
        assert RangeBound.of("it's").to_sql() == "'it''s'"


class TestPartitionBuilder:
    """PartitionBuilder validation tests."""

    def test_missing_type(self):
        with pytest.raises(InvalidInputError) as exc:
            Partition.builder("t").column("c").build()
        assert exc.value.field == "partition_type"

    def test_missing_columns(self):
        with pytest.raises(InvalidInputError) as exc:
            Partition.builder("t").hash_partition().add_hash("p0", 2, 0).build()
        assert exc.value.field == "columns"

    def test_missing_partitions(self):
        with pytest.raises(InvalidInputError) as exc:
            Partition.builder("t").list_partition().column("region").build()
        assert exc.value.field == "partitions"

    def test_hash_partitions_named_by_index(self):
        part = Partition.builder("t").hash_partition().column("id").add_hash_partitions(4, "t_h").build()
        assert [p.name for p in part.partitions] == ["t_h_0", "t_h_1", "t_h_2", "t_h_3"]
        assert all(p.modulus == 4 for p in part.partitions)
        assert [p.remainder for p in part.partitions] == [0, 1, 2, 3]


class TestPostgresPartitions:
    """PostgreSQL declarative partitioning tests."""

    def test_partition_clause(self):
        part = _events_by_month()
        assert part.partition_type == PartitionType.RANGE
        assert part.to_create_table_suffix(DatabaseType.POSTGRESQL) == "PARTITION BY RANGE (created_at)"

    def test_range_child(self):
        statements = _events_by_month().to_sql(DatabaseType.POSTGRESQL)
        assert statements[0] == (
            "CREATE TABLE events_2024_01 PARTITION OF events\n"
            "    FOR VALUES FROM ('2024-01-01') TO ('2024-02-01');"
        )

    def test_tablespace_and_schema(self):
        part = (
            Partition.builder("events")
            .schema("app")
            .range_partition()
            .column("id")
            .add_range("events_low", RangeBound.minvalue(), RangeBound.int_(1000), tablespace="fast")
            .build()
        )
        assert part.to_sql("postgres") == [
            "CREATE TABLE events_low PARTITION OF app.events\n"
            "    FOR VALUES FROM (MINVALUE) TO (1000)\n"
            "    TABLESPACE fast;"
        ]

    def test_list_child(self):
        part = (
            Partition.builder("orders")
            .list_partition()
            .column("region")
            .add_list("orders_eu", ["de", "fr"])
            .build()
        )
        assert part.to_sql(DatabaseType.POSTGRESQL) == [
            "CREATE TABLE orders_eu PARTITION OF orders\n    FOR VALUES IN ('de', 'fr');"
        ]

    def test_hash_child(self):
        part = Partition.builder("t").hash_partition().column("id").add_hash_partitions(2, "t_h").build()
        assert part.to_sql(DatabaseType.POSTGRESQL)[1] == (
            "CREATE TABLE t_h_1 PARTITION OF t\n    FOR VALUES WITH (MODULUS 2, REMAINDER 1);"
        )

    def test_attach_detach_drop(self):
        part = _events_by_month()
        assert part.attach_partition_sql("p", DatabaseType.POSTGRESQL) == "ALTER TABLE events ATTACH PARTITION p;"
        assert part.detach_partition_sql("p", DatabaseType.POSTGRESQL) == "ALTER TABLE events DETACH PARTITION p;"
        assert part.drop_partition_sql("p", DatabaseType.POSTGRESQL) == "DROP TABLE IF EXISTS p;"


class TestMySqlPartitions:
    """MySQL inline partitioning tests."""

    def test_range_columns_for_dates(self):
        assert _events_by_month().to_sql(DatabaseType.MYSQL) == [
            "ALTER TABLE events PARTITION BY RANGE COLUMNS (created_at) (\n"
            "    PARTITION events_2024_01 VALUES LESS THAN ('2024-02-01'),\n"
            "    PARTITION events_2024_02 VALUES LESS THAN ('2024-03-01'),\n"
            "    PARTITION events_2024_03 VALUES LESS THAN ('2024-04-01')\n"
            ");"
        ]

    def test_plain_range_for_ints(self):
        part = (
            Partition.builder("t")
            .range_partition()
            .column("id")
            .add_range("p0", RangeBound.minvalue(), RangeBound.int_(100))
            .add_range("p1", RangeBound.int_(100), RangeBound.maxvalue())
            .build()
        )
        assert part.to_create_table_suffix(DatabaseType.MYSQL) == (
            "PARTITION BY RANGE (id) (\n"
            "    PARTITION p0 VALUES LESS THAN (100),\n"
            "    PARTITION p1 VALUES LESS THAN (MAXVALUE)\n"
            ")"
        )

    def test_hash(self):
        part = Partition.builder("t").hash_partition().column("id").add_hash_partitions(8, "p").build()
        assert part.to_create_table_suffix(DatabaseType.MYSQL) == "PARTITION BY HASH (id) PARTITIONS 8"

    def test_drop_and_unsupported_attach(self):
        part = _events_by_month()
        assert part.drop_partition_sql("p", DatabaseType.MYSQL) == "ALTER TABLE events DROP PARTITION p;"
        with pytest.raises(UnsupportedError):
            part.attach_partition_sql("p", DatabaseType.MYSQL)


class TestMsSqlPartitions:
    """SQL Server partition function and scheme tests."""

    def test_function_and_scheme(self):
        statements = _events_by_month().to_sql(DatabaseType.MSSQL)
        assert statements == [
            "CREATE PARTITION FUNCTION events_pf(datetime2)\n"
            "AS RANGE RIGHT FOR VALUES ('2024-02-01', '2024-03-01', '2024-04-01');",
            "CREATE PARTITION SCHEME events_ps\n"
            "AS PARTITION events_pf\n"
            "TO ([PRIMARY], [PRIMARY], [PRIMARY], [PRIMARY]);",
        ]

    def test_int_boundaries(self):
        part = (
            Partition.builder("t")
            .range_partition()
            .column("id")
            .add_range("p0", RangeBound.minvalue(), RangeBound.int_(10))
            .add_range("p1", RangeBound.int_(10), RangeBound.maxvalue())
            .build()
        )
        assert part.to_sql(DatabaseType.MSSQL)[0].startswith("CREATE PARTITION FUNCTION t_pf(int)")
        assert part.to_create_table_suffix(DatabaseType.MSSQL) == "ON t_ps(id)"

    def test_list_unsupported(self):
        part = Partition.builder("t").list_partition().column("c").add_list("p", ["a"]).build()
        with pytest.raises(UnsupportedError):
            part.to_sql(DatabaseType.MSSQL)

    def test_drop_unsupported(self):
        with pytest.raises(UnsupportedError):
            _events_by_month().drop_partition_sql("p", DatabaseType.MSSQL)


class TestSqlitePartitions:
    """SQLite has no partitioning."""

    def test_unsupported(self):
        part = _events_by_month()
        with pytest.raises(UnsupportedError) as exc:
            part.to_sql(DatabaseType.SQLITE)
        assert "SQLite" in str(exc.value)
        with pytest.raises(UnsupportedError):
            part.to_create_table_suffix(DatabaseType.SQLITE)


class TestPartitionHelpers:
    """Calendar helper tests."""

    def test_monthly_names_and_bounds(self):
        part = _events_by_month()
        assert [p.name for p in part.partitions] == ["events_2024_01", "events_2024_02", "events_2024_03"]
        # consecutive ranges share a boundary
        for prev, nxt in zip(part.partitions, part.partitions[1:]):
            assert prev.to == nxt.from_

    def test_monthly_wraps_year(self):
        part = monthly_partitions("logs", "ts", 2023, 11, 3).build()
        assert [p.name for p in part.partitions] == ["logs_2023_11", "logs_2023_12", "logs_2024_01"]
        assert part.partitions[1].to == RangeBound.date("2024-01-01")

    def test_quarterly(self):
        part = quarterly_partitions("sales", "sold_at", 2024, 5).build()
        assert [p.name for p in part.partitions][-2:] == ["sales_2024_q4", "sales_2025_q1"]
        assert part.partitions[1].from_ == RangeBound.date("2024-04-01")

    def test_yearly(self):
        part = yearly_partitions("audit", "ts", 2022, 2).build()
        assert [p.name for p in part.partitions] == ["audit_2022", "audit_2023"]
        assert part.partitions[1].to == RangeBound.date("2024-01-01")


class TestShardKeys:
    """Shard key and zone command tests."""

    def test_shard_collection(self):
        key = ShardKeyBuilder().range_field("tenant").hashed_field("user_id").build()
        assert key.shard_collection_command("app", "events") == {
            "shardCollection": "app.events",
            "key": {"tenant": 1, "user_id": "hashed"},
            "unique": False,
        }
        assert ShardKeyType.HASHED.index_value == "hashed"

    def test_key_validation(self):
        with pytest.raises(InvalidInputError):
            ShardKeyBuilder().build()
        with pytest.raises(InvalidInputError):
            ShardKeyBuilder().hashed_field("a").hashed_field("b").build()
        with pytest.raises(InvalidInputError) as exc:
            ShardKeyBuilder().hashed_field("a").unique().build()
        assert exc.value.field == "unique"

    def test_zone_commands(self):
        commands = (
            ZoneShardingBuilder()
            .add_zone("EU", {"region": "eu"}, {"region": "eu~"})
            .assign_shard("shard0", "EU")
            .build_commands("app.users")
        )
        assert commands == [
            {"addShardToZone": "shard0", "zone": "EU"},
            {"updateZoneKeyRange": "app.users", "min": {"region": "eu"}, "max": {"region": "eu~"}, "zone": "EU"},
        ]

    def test_unknown_zone(self):
        with pytest.raises(InvalidInputError):
            ZoneShardingBuilder().assign_shard("shard0", "US").build_commands("app.users")
