# prax/query/partition.py
"""Table partitioning DDL for PostgreSQL, MySQL and SQL Server."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Union

from prax.query.dialect import DatabaseType, DialectLike, escape_string, resolve_dialect
from prax.utils.exceptions import InvalidInputError, UnsupportedError

logger = logging.getLogger("prax.partition")


class PartitionType(str, Enum):
    """Partitioning strategy."""

    RANGE = "RANGE"
    LIST = "LIST"
    HASH = "HASH"


class RangeBoundKind(str, Enum):
    MINVALUE = "minvalue"
    MAXVALUE = "maxvalue"
    VALUE = "value"
    DATE = "date"
    INT = "int"


@dataclass(frozen=True)
class RangeBound:
    """One end of a range partition."""

    kind: RangeBoundKind
    value: Union[str, int, None] = None

    @classmethod
    def minvalue(cls) -> "RangeBound":
        return cls(RangeBoundKind.MINVALUE)

    @classmethod
    def maxvalue(cls) -> "RangeBound":
        return cls(RangeBoundKind.MAXVALUE)

    @classmethod
    def of(cls, value: str) -> "RangeBound":
        return cls(RangeBoundKind.VALUE, value)

    @classmethod
    def date(cls, value: str) -> "RangeBound":
        return cls(RangeBoundKind.DATE, value)

    @classmethod
    def int_(cls, value: int) -> "RangeBound":
        return cls(RangeBoundKind.INT, value)

    @property
    def is_unbounded(self) -> bool:
        return self.kind in (RangeBoundKind.MINVALUE, RangeBoundKind.MAXVALUE)

    def to_sql(self) -> str:
        if self.kind == RangeBoundKind.MINVALUE:
            return "MINVALUE"
        if self.kind == RangeBoundKind.MAXVALUE:
            return "MAXVALUE"
        if self.kind == RangeBoundKind.INT:
            return str(self.value)
        return f"'{escape_string(str(self.value))}'"


@dataclass(frozen=True)
class RangePartitionDef:
    name: str
    from_: RangeBound
    to: RangeBound
    tablespace: Optional[str] = None


@dataclass(frozen=True)
class ListPartitionDef:
    name: str
    values: tuple[Any, ...]
    tablespace: Optional[str] = None


@dataclass(frozen=True)
class HashPartitionDef:
    name: str
    modulus: int
    remainder: int
    tablespace: Optional[str] = None


PartitionDef = Union[RangePartitionDef, ListPartitionDef, HashPartitionDef]


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    return f"'{escape_string(str(value))}'"


def _tablespace(sql: str, tablespace: Optional[str]) -> str:
    if tablespace:
        sql += f"\n    TABLESPACE {tablespace}"
    return sql + ";"


@dataclass(frozen=True)
class Partition:
    """A partitioned table and its child partitions."""

    table: str
    partition_type: PartitionType
    columns: tuple[str, ...]
    partitions: tuple[PartitionDef, ...]
    schema: Optional[str] = None
    comment: Optional[str] = None

    @staticmethod
    def builder(table: str) -> "PartitionBuilder":
        return PartitionBuilder(table)

    def qualified_table(self) -> str:
        if self.schema:
            return f"{self.schema}.{self.table}"
        return self.table

    # === PostgreSQL ===

    def to_postgres_partition_clause(self) -> str:
        return f"PARTITION BY {self.partition_type.value} ({', '.join(self.columns)})"

    def to_postgres_create_partition(self, part: PartitionDef) -> str:
        """``CREATE TABLE ... PARTITION OF`` for one child."""
        head = f"CREATE TABLE {part.name} PARTITION OF {self.qualified_table()}\n    "
        if isinstance(part, RangePartitionDef):
            bounds = f"FOR VALUES FROM ({part.from_.to_sql()}) TO ({part.to.to_sql()})"
        elif isinstance(part, ListPartitionDef):
            bounds = f"FOR VALUES IN ({', '.join(_literal(v) for v in part.values)})"
        else:
            bounds = f"FOR VALUES WITH (MODULUS {part.modulus}, REMAINDER {part.remainder})"
        return _tablespace(head + bounds, part.tablespace)

    def to_postgres_create_all_partitions(self) -> list[str]:
        return [self.to_postgres_create_partition(p) for p in self.partitions]

    # === MySQL ===

    def _mysql_uses_columns(self) -> bool:
        if len(self.columns) > 1:
            return True
        if self.partition_type == PartitionType.RANGE:
            return any(
                not p.to.is_unbounded and p.to.kind != RangeBoundKind.INT
                for p in self.partitions
            )
        if self.partition_type == PartitionType.LIST:
            return any(
                not isinstance(v, int) or isinstance(v, bool)
                for p in self.partitions for v in p.values
            )
        return False

    def to_mysql_partition_clause(self) -> str:
        """Inline ``PARTITION BY`` clause with every partition listed."""
        kind = self.partition_type.value
        if self.partition_type != PartitionType.HASH and self._mysql_uses_columns():
            kind += " COLUMNS"
        sql = f"PARTITION BY {kind} ({', '.join(self.columns)})"

        if self.partition_type == PartitionType.HASH:
            return sql + f" PARTITIONS {len(self.partitions)}"

        lines = []
        for p in self.partitions:
            if isinstance(p, RangePartitionDef):
                lines.append(f"    PARTITION {p.name} VALUES LESS THAN ({p.to.to_sql()})")
            else:
                values = ", ".join(_literal(v) for v in p.values)
                lines.append(f"    PARTITION {p.name} VALUES IN ({values})")
        return sql + " (\n" + ",\n".join(lines) + "\n)"

    # === SQL Server ===

    @property
    def mssql_function_name(self) -> str:
        return f"{self.table}_pf"

    @property
    def mssql_scheme_name(self) -> str:
        return f"{self.table}_ps"

    def to_mssql_partition_sql(self) -> list[str]:
        """Partition function and scheme.

        Raises:
            UnsupportedError: For list and hash partitioning.
        """
        dialect = DatabaseType.MSSQL.display_name
        if self.partition_type == PartitionType.LIST:
            raise UnsupportedError(dialect, "list partitioning; use range partitioning")
        if self.partition_type == PartitionType.HASH:
            raise UnsupportedError(
                dialect,
                "hash partitioning; use a computed column with range partitioning"
            )
        bounds = [p.to for p in self.partitions if not p.to.is_unbounded]
        boundary_type = "int" if bounds and all(b.kind == RangeBoundKind.INT for b in bounds) else "datetime2"
        function_sql = (
            f"CREATE PARTITION FUNCTION {self.mssql_function_name}({boundary_type})\n"
            f"AS RANGE RIGHT FOR VALUES ({', '.join(b.to_sql() for b in bounds)});"
        )
        # RANGE RIGHT with n boundaries yields n + 1 partitions
        filegroups = ", ".join("[PRIMARY]" for _ in range(len(bounds) + 1))
        scheme_sql = (
            f"CREATE PARTITION SCHEME {self.mssql_scheme_name}\n"
            f"AS PARTITION {self.mssql_function_name}\n"
            f"TO ({filegroups});"
        )
        return [function_sql, scheme_sql]

    # === Dialect dispatch ===

    def to_create_table_suffix(self, db_type: DialectLike = None) -> str:
        """Clause appended to the parent ``CREATE TABLE`` statement."""
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return self.to_postgres_partition_clause()
        if db_type == DatabaseType.MYSQL:
            return self.to_mysql_partition_clause()
        if db_type == DatabaseType.MSSQL:
            self.to_mssql_partition_sql()
            return f"ON {self.mssql_scheme_name}({self.columns[0]})"
        raise UnsupportedError(db_type.display_name, "table partitioning")

    def to_sql(self, db_type: DialectLike = None) -> list[str]:
        """Statements that create the partitions of an existing parent.

        Args:
            db_type: Target dialect.

        Returns:
            Statements in execution order.

        Raises:
            UnsupportedError: For SQLite, and for SQL Server list or hash
                partitioning.
        """
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            statements = self.to_postgres_create_all_partitions()
        elif db_type == DatabaseType.MYSQL:
            statements = [f"ALTER TABLE {self.qualified_table()} {self.to_mysql_partition_clause()};"]
        elif db_type == DatabaseType.MSSQL:
            statements = self.to_mssql_partition_sql()
        else:
            raise UnsupportedError(db_type.display_name, "table partitioning")
        logger.debug(
            "Generated %d partition statements for %s on %s",
            len(statements), self.table, db_type.display_name
        )
        return statements

    def attach_partition_sql(self, partition_name: str, db_type: DialectLike = None) -> str:
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return f"ALTER TABLE {self.qualified_table()} ATTACH PARTITION {partition_name};"
        reasons = {
            DatabaseType.MYSQL: "ATTACH PARTITION; use ALTER TABLE ... REORGANIZE PARTITION",
            DatabaseType.SQLITE: "table partitioning",
            DatabaseType.MSSQL: "ATTACH PARTITION; use ALTER TABLE ... SWITCH",
        }
        raise UnsupportedError(db_type.display_name, reasons[db_type])

    def detach_partition_sql(self, partition_name: str, db_type: DialectLike = None) -> str:
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return f"ALTER TABLE {self.qualified_table()} DETACH PARTITION {partition_name};"
        reasons = {
            DatabaseType.MYSQL: "DETACH PARTITION; drop and recreate the partition",
            DatabaseType.SQLITE: "table partitioning",
            DatabaseType.MSSQL: "DETACH PARTITION; use ALTER TABLE ... SWITCH",
        }
        raise UnsupportedError(db_type.display_name, reasons[db_type])

    def drop_partition_sql(self, partition_name: str, db_type: DialectLike = None) -> str:
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return f"DROP TABLE IF EXISTS {partition_name};"
        if db_type == DatabaseType.MYSQL:
            return f"ALTER TABLE {self.qualified_table()} DROP PARTITION {partition_name};"
        if db_type == DatabaseType.MSSQL:
            raise UnsupportedError(
                db_type.display_name,
                "DROP PARTITION; use ALTER PARTITION FUNCTION ... MERGE RANGE"
            )
        raise UnsupportedError(db_type.display_name, "table partitioning")


class PartitionBuilder:
    """Chainable builder for ``Partition``."""

    def __init__(self, table: str):
        self._table = table
        self._schema: Optional[str] = None
        self._type: Optional[PartitionType] = None
        self._columns: list[str] = []
        self._ranges: list[RangePartitionDef] = []
        self._lists: list[ListPartitionDef] = []
        self._hashes: list[HashPartitionDef] = []
        self._comment: Optional[str] = None

    def schema(self, schema: str) -> "PartitionBuilder":
        self._schema = schema
        return self

    def range_partition(self) -> "PartitionBuilder":
        self._type = PartitionType.RANGE
        return self

    def list_partition(self) -> "PartitionBuilder":
        self._type = PartitionType.LIST
        return self

    def hash_partition(self) -> "PartitionBuilder":
        self._type = PartitionType.HASH
        return self

    def column(self, column: str) -> "PartitionBuilder":
        self._columns.append(column)
        return self

    def columns(self, columns: Iterable[str]) -> "PartitionBuilder":
        self._columns = list(columns)
        return self

    def add_range(
        self,
        name: str,
        from_: RangeBound,
        to: RangeBound,
        tablespace: Optional[str] = None
    ) -> "PartitionBuilder":
        self._ranges.append(RangePartitionDef(name, from_, to, tablespace))
        return self

    def add_list(
        self,
        name: str,
        values: Iterable[Any],
        tablespace: Optional[str] = None
    ) -> "PartitionBuilder":
        self._lists.append(ListPartitionDef(name, tuple(values), tablespace))
        return self

    def add_hash(self, name: str, modulus: int, remainder: int) -> "PartitionBuilder":
        self._hashes.append(HashPartitionDef(name, modulus, remainder))
        return self

    def add_hash_partitions(self, count: int, prefix: str) -> "PartitionBuilder":
        """Add ``count`` hash partitions named ``{prefix}_{i}``."""
        for i in range(count):
            self._hashes.append(HashPartitionDef(f"{prefix}_{i}", count, i))
        return self

    def comment(self, comment: str) -> "PartitionBuilder":
        self._comment = comment
        return self

    def build(self) -> Partition:
        """Validate and freeze the partition definition.

        Raises:
            InvalidInputError: If the type, the columns or the partitions
                of the chosen type are missing.
        """
        if self._type is None:
            raise InvalidInputError(
                "partition_type",
                "call range_partition(), list_partition() or hash_partition()"
            )
        if not self._columns:
            raise InvalidInputError("columns", "at least one partition column is required")
        partitions = {
            PartitionType.RANGE: self._ranges,
            PartitionType.LIST: self._lists,
            PartitionType.HASH: self._hashes,
        }[self._type]
        if not partitions:
            raise InvalidInputError(
                "partitions",
                f"at least one {self._type.value.lower()} partition is required"
            )
        return Partition(
            table=self._table,
            partition_type=self._type,
            columns=tuple(self._columns),
            partitions=tuple(partitions),
            schema=self._schema,
            comment=self._comment,
        )


def _first_of_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}-01"


def monthly_partitions(table: str, column: str, year: int, month: int, count: int) -> PartitionBuilder:
    """Consecutive monthly ranges named ``{table}_{YYYY}_{MM}``."""
    builder = Partition.builder(table).range_partition().column(column)
    for _ in range(count):
        next_year, next_month = (year + 1, 1) if month == 12 else (year, month + 1)
        builder.add_range(
            f"{table}_{year:04d}_{month:02d}",
            RangeBound.date(_first_of_month(year, month)),
            RangeBound.date(_first_of_month(next_year, next_month)),
        )
        year, month = next_year, next_month
    return builder


def quarterly_partitions(table: str, column: str, year: int, count: int) -> PartitionBuilder:
    """Consecutive quarterly ranges named ``{table}_{YYYY}_q{n}``, starting at Q1."""
    builder = Partition.builder(table).range_partition().column(column)
    quarter = 1
    for _ in range(count):
        next_year, next_quarter = (year + 1, 1) if quarter == 4 else (year, quarter + 1)
        builder.add_range(
            f"{table}_{year}_q{quarter}",
            RangeBound.date(_first_of_month(year, (quarter - 1) * 3 + 1)),
            RangeBound.date(_first_of_month(next_year, (next_quarter - 1) * 3 + 1)),
        )
        year, quarter = next_year, next_quarter
    return builder


def yearly_partitions(table: str, column: str, start_year: int, count: int) -> PartitionBuilder:
    builder = Partition.builder(table).range_partition().column(column)
    for year in range(start_year, start_year + count):
        builder.add_range(
            f"{table}_{year}",
            RangeBound.date(f"{year:04d}-01-01"),
            RangeBound.date(f"{year + 1:04d}-01-01"),
        )
    return builder
