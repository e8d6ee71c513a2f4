# prax/query/sequence.py
"""Sequences, sequence value functions and auto-increment columns.

PostgreSQL and SQL Server have native sequences. MySQL and SQLite only
offer auto-increment columns, so sequence DDL raises ``UnsupportedError``
there. MongoDB counters live in ``prax.mongo.counter``.
"""

from dataclasses import dataclass
from typing import Optional

from prax.query.dialect import DatabaseType, DialectLike, escape_string, resolve_dialect
from prax.utils.exceptions import InvalidInputError, UnsupportedError


def _require_sequences(db_type: DatabaseType) -> None:
    if db_type in (DatabaseType.MYSQL, DatabaseType.SQLITE):
        raise UnsupportedError(
            db_type.display_name,
            "sequences are not available; use an auto-increment column instead"
        )


@dataclass(frozen=True)
class OwnedBy:
    table: str
    column: str


@dataclass(frozen=True)
class Sequence:
    """A sequence definition."""

    name: str
    schema: Optional[str] = None
    start: int = 1
    increment: int = 1
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    cycle: bool = False
    cache: Optional[int] = None
    owned_by: Optional[OwnedBy] = None
    comment: Optional[str] = None

    @staticmethod
    def builder(name: str) -> "SequenceBuilder":
        return SequenceBuilder(name)

    @property
    def qualified_name(self) -> str:
        if self.schema:
            return f"{self.schema}.{self.name}"
        return self.name

    def _bounds(self) -> list[str]:
        return [
            f"MINVALUE {self.min_value}" if self.min_value is not None else "NO MINVALUE",
            f"MAXVALUE {self.max_value}" if self.max_value is not None else "NO MAXVALUE",
        ]

    def to_postgres_create_sql(self) -> str:
        lines = [f"INCREMENT BY {self.increment}", *self._bounds(), f"START WITH {self.start}"]
        if self.cache is not None:
            lines.append(f"CACHE {self.cache}")
        lines.append("CYCLE" if self.cycle else "NO CYCLE")
        if self.owned_by is not None:
            lines.append(f"OWNED BY {self.owned_by.table}.{self.owned_by.column}")
        return self._statement(f"CREATE SEQUENCE {self.qualified_name}", lines)

    def to_mssql_create_sql(self) -> str:
        lines = [f"START WITH {self.start}", f"INCREMENT BY {self.increment}", *self._bounds()]
        lines.append(f"CACHE {self.cache}" if self.cache is not None else "NO CACHE")
        lines.append("CYCLE" if self.cycle else "NO CYCLE")
        return self._statement(f"CREATE SEQUENCE {self.qualified_name} AS BIGINT", lines)

    @staticmethod
    def _statement(head: str, lines: list[str]) -> str:
        return head + "".join(f"\n    {line}" for line in lines) + ";"

    def to_create_sql(self, db_type: DialectLike = None) -> str:
        """Render ``CREATE SEQUENCE`` in the multi-line form.

        Raises:
            UnsupportedError: For MySQL and SQLite.
        """
        db_type = resolve_dialect(db_type)
        _require_sequences(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return self.to_postgres_create_sql()
        return self.to_mssql_create_sql()

    def to_alter_sql(self, db_type: DialectLike = None) -> str:
        db_type = resolve_dialect(db_type)
        _require_sequences(db_type)
        lines = [f"INCREMENT BY {self.increment}"]
        if self.min_value is not None:
            lines.append(f"MINVALUE {self.min_value}")
        if self.max_value is not None:
            lines.append(f"MAXVALUE {self.max_value}")
        if self.cache is not None:
            lines.append(f"CACHE {self.cache}")
        elif db_type == DatabaseType.MSSQL:
            lines.append("NO CACHE")
        lines.append("CYCLE" if self.cycle else "NO CYCLE")
        return self._statement(f"ALTER SEQUENCE {self.qualified_name}", lines)

    def to_drop_sql(self, db_type: DialectLike = None) -> str:
        db_type = resolve_dialect(db_type)
        _require_sequences(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return f"DROP SEQUENCE IF EXISTS {self.qualified_name} CASCADE;"
        return f"DROP SEQUENCE IF EXISTS {self.qualified_name};"

    def restart_sql(self, value: int, db_type: DialectLike = None) -> str:
        db_type = resolve_dialect(db_type)
        _require_sequences(db_type)
        return f"ALTER SEQUENCE {self.qualified_name} RESTART WITH {value};"

    def nextval_sql(self, db_type: DialectLike = None) -> str:
        return nextval(self.qualified_name, db_type)


class SequenceBuilder:
    """Chainable builder for ``Sequence``."""

    def __init__(self, name: str):
        self._name = name
        self._schema: Optional[str] = None
        self._start = 1
        self._increment = 1
        self._min_value: Optional[int] = None
        self._max_value: Optional[int] = None
        self._cycle = False
        self._cache: Optional[int] = None
        self._owned_by: Optional[OwnedBy] = None
        self._comment: Optional[str] = None

    def schema(self, schema: Optional[str]) -> "SequenceBuilder":
        self._schema = schema
        return self

    def start(self, value: int) -> "SequenceBuilder":
        self._start = value
        return self

    def increment(self, value: int) -> "SequenceBuilder":
        self._increment = value
        return self

    increment_by = increment

    def min_value(self, value: Optional[int]) -> "SequenceBuilder":
        self._min_value = value
        return self

    def no_min_value(self) -> "SequenceBuilder":
        return self.min_value(None)

    def max_value(self, value: Optional[int]) -> "SequenceBuilder":
        self._max_value = value
        return self

    def no_max_value(self) -> "SequenceBuilder":
        return self.max_value(None)

    def cycle(self, cycle: bool = True) -> "SequenceBuilder":
        self._cycle = cycle
        return self

    def cache(self, size: Optional[int]) -> "SequenceBuilder":
        self._cache = size
        return self

    def no_cache(self) -> "SequenceBuilder":
        return self.cache(None)

    def owned_by(self, table: str, column: str) -> "SequenceBuilder":
        self._owned_by = OwnedBy(table, column)
        return self

    def comment(self, comment: str) -> "SequenceBuilder":
        self._comment = comment
        return self

    def build(self) -> Sequence:
        if not self._name:
            raise InvalidInputError("name", "sequence name is empty")
        if self._increment == 0:
            raise InvalidInputError("increment", "must not be zero")
        if (
            self._min_value is not None
            and self._max_value is not None
            and self._min_value > self._max_value
        ):
            raise InvalidInputError("min_value", "greater than max_value")
        return Sequence(
            name=self._name,
            schema=self._schema,
            start=self._start,
            increment=self._increment,
            min_value=self._min_value,
            max_value=self._max_value,
            cycle=self._cycle,
            cache=self._cache,
            owned_by=self._owned_by,
            comment=self._comment,
        )


# === Sequence value functions ===

def nextval(sequence_name: str, db_type: DialectLike = None) -> str:
    db_type = resolve_dialect(db_type)
    _require_sequences(db_type)
    if db_type == DatabaseType.POSTGRESQL:
        return f"SELECT nextval('{escape_string(sequence_name)}')"
    return f"SELECT NEXT VALUE FOR {sequence_name}"


def currval(sequence_name: str, db_type: DialectLike = None) -> str:
    """Current value of a sequence. SQL Server reads it from ``sys.sequences``."""
    db_type = resolve_dialect(db_type)
    _require_sequences(db_type)
    if db_type == DatabaseType.POSTGRESQL:
        return f"SELECT currval('{escape_string(sequence_name)}')"
    return f"SELECT current_value FROM sys.sequences WHERE name = '{escape_string(sequence_name)}'"


def setval(sequence_name: str, value: int, is_called: bool = True, db_type: DialectLike = None) -> str:
    db_type = resolve_dialect(db_type)
    _require_sequences(db_type)
    if db_type == DatabaseType.POSTGRESQL:
        return f"SELECT setval('{escape_string(sequence_name)}', {value}, {str(is_called).lower()})"
    return f"ALTER SEQUENCE {sequence_name} RESTART WITH {value}"


def default_nextval(sequence_name: str, db_type: DialectLike = None) -> str:
    """Column DEFAULT expression drawing from a sequence."""
    db_type = resolve_dialect(db_type)
    _require_sequences(db_type)
    if db_type == DatabaseType.POSTGRESQL:
        return f"nextval('{escape_string(sequence_name)}')"
    return f"NEXT VALUE FOR {sequence_name}"


def last_insert_id(db_type: DialectLike = None) -> str:
    return {
        DatabaseType.POSTGRESQL: "SELECT lastval()",
        DatabaseType.MYSQL: "SELECT LAST_INSERT_ID()",
        DatabaseType.SQLITE: "SELECT last_insert_rowid()",
        DatabaseType.MSSQL: "SELECT SCOPE_IDENTITY()",
    }[resolve_dialect(db_type)]


# === Auto-increment columns ===

def auto_increment_column(column_name: str, db_type: DialectLike = None, start: Optional[int] = None) -> str:
    """Column definition for an auto-incrementing key.

    Args:
        column_name: The column.
        db_type: Target dialect.
        start: First value; SQLite ignores it.

    Returns:
        The column definition fragment.
    """
    db_type = resolve_dialect(db_type)
    if db_type == DatabaseType.POSTGRESQL:
        if start is None:
            return f"{column_name} BIGSERIAL"
        return f"{column_name} BIGINT GENERATED BY DEFAULT AS IDENTITY (START WITH {start})"
    if db_type == DatabaseType.MYSQL:
        return f"{column_name} BIGINT AUTO_INCREMENT"
    if db_type == DatabaseType.SQLITE:
        return f"{column_name} INTEGER PRIMARY KEY AUTOINCREMENT"
    return f"{column_name} BIGINT IDENTITY({1 if start is None else start}, 1)"


def set_start_value(table_name: str, value: int, db_type: DialectLike = None, column: str = "id") -> str:
    """Move a table's auto-increment counter so the next row gets ``value``."""
    db_type = resolve_dialect(db_type)
    if db_type == DatabaseType.POSTGRESQL:
        return f"ALTER TABLE {table_name} ALTER COLUMN {column} RESTART WITH {value};"
    if db_type == DatabaseType.MYSQL:
        return f"ALTER TABLE {table_name} AUTO_INCREMENT = {value};"
    if db_type == DatabaseType.SQLITE:
        return f"UPDATE sqlite_sequence SET seq = {value - 1} WHERE name = '{escape_string(table_name)}';"
    return f"DBCC CHECKIDENT ('{escape_string(table_name)}', RESEED, {value - 1});"


# === Patterns ===

def order_number(schema: Optional[str] = None) -> Sequence:
    return (
        Sequence.builder("order_number_seq")
        .schema(schema).start(1000).min_value(1).cache(20)
        .build()
    )


def invoice_number(year: int, schema: Optional[str] = None) -> Sequence:
    """Per-year invoice numbering, e.g. ``invoice_2024_seq``."""
    return (
        Sequence.builder(f"invoice_{year}_seq")
        .schema(schema).start(1).min_value(1).cache(10)
        .build()
    )


def high_volume_id(name: str, schema: Optional[str] = None) -> Sequence:
    return Sequence.builder(name).schema(schema).start(1).min_value(1).cache(1000).build()


def round_robin(name: str, max_value: int, schema: Optional[str] = None) -> Sequence:
    return (
        Sequence.builder(name)
        .schema(schema).start(1).min_value(1).max_value(max_value).cycle().cache(10)
        .build()
    )


def countdown(name: str, start: int, schema: Optional[str] = None) -> Sequence:
    return (
        Sequence.builder(name)
        .schema(schema).start(start).increment(-1).min_value(0).no_max_value()
        .build()
    )
