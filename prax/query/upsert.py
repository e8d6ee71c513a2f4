# prax/query/upsert.py
"""Upsert (insert with conflict handling) across SQL dialects.

PostgreSQL and SQLite use ``ON CONFLICT``, MySQL uses ``INSERT IGNORE`` or
``ON DUPLICATE KEY UPDATE`` and SQL Server uses ``MERGE``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Union

from prax.query.dialect import DatabaseType, DialectLike, resolve_dialect
from prax.utils.exceptions import InvalidInputError, UnsupportedError

logger = logging.getLogger("prax.upsert")


class ConflictTargetKind(str, Enum):
    """How a conflict is detected."""

    COLUMNS = "columns"
    CONSTRAINT = "constraint"
    INDEX_EXPRESSION = "index_expression"
    IMPLICIT = "implicit"


@dataclass(frozen=True)
class ConflictTarget:
    """What to match on for conflict detection."""

    kind: ConflictTargetKind
    cols: tuple[str, ...] = ()
    name: Optional[str] = None

    @classmethod
    def on_columns(cls, cols: Iterable[str]) -> "ConflictTarget":
        return cls(ConflictTargetKind.COLUMNS, cols=tuple(cols))

    @classmethod
    def on_constraint(cls, name: str) -> "ConflictTarget":
        return cls(ConflictTargetKind.CONSTRAINT, name=name)

    @classmethod
    def on_index_expression(cls, expr: str) -> "ConflictTarget":
        return cls(ConflictTargetKind.INDEX_EXPRESSION, name=expr)

    @classmethod
    def implicit(cls) -> "ConflictTarget":
        return cls(ConflictTargetKind.IMPLICIT)

    def to_postgres_sql(self) -> str:
        if self.kind == ConflictTargetKind.COLUMNS:
            return f"({', '.join(self.cols)})"
        if self.kind == ConflictTargetKind.CONSTRAINT:
            return f"ON CONSTRAINT {self.name}"
        if self.kind == ConflictTargetKind.INDEX_EXPRESSION:
            return f"({self.name})"
        return ""

    def to_sqlite_sql(self) -> str:
        if self.kind == ConflictTargetKind.COLUMNS:
            return f"({', '.join(self.cols)})"
        if self.kind == ConflictTargetKind.IMPLICIT:
            return ""
        raise UnsupportedError(
            DatabaseType.SQLITE.display_name,
            f"{self.kind.value.replace('_', ' ')} conflict targets"
        )


class AssignmentKind(str, Enum):
    EXCLUDED = "excluded"
    EXPRESSION = "expression"
    PARAM = "param"


@dataclass(frozen=True)
class Assignment:
    """A ``column = value`` pair of the update branch.

    ``value`` holds the SQL expression for ``EXPRESSION`` and the 1-based
    parameter index for ``PARAM``.
    """

    column: str
    kind: AssignmentKind = AssignmentKind.EXCLUDED
    value: Union[str, int, None] = None

    @classmethod
    def excluded(cls, column: str) -> "Assignment":
        return cls(column, AssignmentKind.EXCLUDED)

    @classmethod
    def expr(cls, column: str, expression: str) -> "Assignment":
        return cls(column, AssignmentKind.EXPRESSION, expression)

    @classmethod
    def param(cls, column: str, index: int) -> "Assignment":
        return cls(column, AssignmentKind.PARAM, index)

    def render(self, db_type: DatabaseType) -> str:
        if self.kind == AssignmentKind.EXPRESSION:
            value = self.value
        elif self.kind == AssignmentKind.PARAM:
            value = db_type.placeholder(self.value)
        elif db_type == DatabaseType.MYSQL:
            value = f"VALUES({self.column})"
        elif db_type == DatabaseType.SQLITE:
            value = f"excluded.{self.column}"
        elif db_type == DatabaseType.MSSQL:
            value = f"source.{self.column}"
        else:
            value = f"EXCLUDED.{self.column}"
        if db_type == DatabaseType.MSSQL:
            return f"target.{self.column} = {value}"
        return f"{self.column} = {value}"


@dataclass(frozen=True)
class UpdateSpec:
    assignments: tuple[Assignment, ...]

    @property
    def columns(self) -> list[str]:
        return [a.column for a in self.assignments]


class ConflictActionKind(str, Enum):
    DO_NOTHING = "do_nothing"
    DO_UPDATE = "do_update"


@dataclass(frozen=True)
class ConflictAction:
    kind: ConflictActionKind
    update: Optional[UpdateSpec] = None

    @classmethod
    def do_nothing(cls) -> "ConflictAction":
        return cls(ConflictActionKind.DO_NOTHING)

    @classmethod
    def do_update(cls, columns: Iterable[str]) -> "ConflictAction":
        """Update each column from the proposed row."""
        return cls(
            ConflictActionKind.DO_UPDATE,
            UpdateSpec(tuple(Assignment.excluded(c) for c in columns))
        )

    @classmethod
    def do_update_set(cls, assignments: Iterable[Assignment]) -> "ConflictAction":
        return cls(ConflictActionKind.DO_UPDATE, UpdateSpec(tuple(assignments)))

    @property
    def is_update(self) -> bool:
        return self.kind == ConflictActionKind.DO_UPDATE


@dataclass(frozen=True)
class Upsert:
    """An insert with conflict handling.

    ``values`` are SQL expressions, usually placeholders. When empty, one
    placeholder per column is generated in the target dialect's style.
    """

    table: str
    columns: tuple[str, ...]
    values: tuple[str, ...] = ()
    conflict_target: Optional[ConflictTarget] = None
    conflict_action: ConflictAction = ConflictAction.do_nothing()
    where_clause: Optional[str] = None
    returning: Optional[tuple[str, ...]] = None
    params: tuple[Any, ...] = ()

    @staticmethod
    def builder(table: Optional[str] = None) -> "UpsertBuilder":
        return UpsertBuilder(table)

    def value_expressions(self, db_type: DatabaseType) -> list[str]:
        if self.values:
            return list(self.values)
        return [db_type.placeholder(i + 1) for i in range(len(self.columns))]

    def _insert_prefix(self, db_type: DatabaseType, keyword: str = "INSERT INTO") -> str:
        return (
            f"{keyword} {self.table} ({', '.join(self.columns)}) "
            f"VALUES ({', '.join(self.value_expressions(db_type))})"
        )

    def _assignments(self, db_type: DatabaseType) -> str:
        return ", ".join(a.render(db_type) for a in self.conflict_action.update.assignments)

    def to_postgres_sql(self) -> str:
        db_type = DatabaseType.POSTGRESQL
        sql = self._insert_prefix(db_type) + " ON CONFLICT"
        if self.conflict_target is not None:
            target = self.conflict_target.to_postgres_sql()
            if target:
                sql += f" {target}"
        if self.conflict_action.is_update:
            sql += f" DO UPDATE SET {self._assignments(db_type)}"
            if self.where_clause:
                sql += f" WHERE {self.where_clause}"
        else:
            sql += " DO NOTHING"
        if self.returning:
            sql += f" RETURNING {', '.join(self.returning)}"
        return sql

    def to_mysql_sql(self) -> str:
        db_type = DatabaseType.MYSQL
        if self.returning:
            logger.warning("MySQL has no RETURNING clause; dropping it from upsert on %s", self.table)
        if not self.conflict_action.is_update:
            return self._insert_prefix(db_type, "INSERT IGNORE INTO")
        if self.where_clause:
            logger.warning("MySQL ON DUPLICATE KEY UPDATE has no WHERE; dropping it from upsert on %s", self.table)
        return f"{self._insert_prefix(db_type)} ON DUPLICATE KEY UPDATE {self._assignments(db_type)}"

    def to_sqlite_sql(self) -> str:
        db_type = DatabaseType.SQLITE
        sql = self._insert_prefix(db_type) + " ON CONFLICT"
        if self.conflict_target is not None:
            target = self.conflict_target.to_sqlite_sql()
            if target:
                sql += f" {target}"
        if self.conflict_action.is_update:
            sql += f" DO UPDATE SET {self._assignments(db_type)}"
            if self.where_clause:
                sql += f" WHERE {self.where_clause}"
        else:
            sql += " DO NOTHING"
        if self.returning:
            sql += f" RETURNING {', '.join(self.returning)}"
        return sql

    def merge_keys(self) -> list[str]:
        """Columns matched by the SQL Server ``MERGE``."""
        target = self.conflict_target
        if target is None or target.kind == ConflictTargetKind.IMPLICIT:
            return [self.columns[0]]
        if target.kind == ConflictTargetKind.COLUMNS:
            return list(target.cols)
        raise UnsupportedError(
            DatabaseType.MSSQL.display_name,
            f"{target.kind.value.replace('_', ' ')} conflict targets in MERGE"
        )

    def to_mssql_sql(self) -> str:
        db_type = DatabaseType.MSSQL
        keys = self.merge_keys()
        source = ", ".join(
            f"{v} AS {c}" for c, v in zip(self.columns, self.value_expressions(db_type))
        )
        match = " AND ".join(f"target.{k} = source.{k}" for k in keys)
        sql = f"MERGE INTO {self.table} AS target USING (SELECT {source}) AS source ON {match}"

        if self.conflict_action.is_update:
            assignments = [
                a for a in self.conflict_action.update.assignments if a.column not in keys
            ]
            if not assignments:
                fallback = next((c for c in self.columns if c not in keys), self.columns[0])
                assignments = [Assignment.excluded(fallback)]
            matched = " WHEN MATCHED"
            if self.where_clause:
                matched += f" AND {self.where_clause}"
            sql += f"{matched} THEN UPDATE SET {', '.join(a.render(db_type) for a in assignments)}"

        sources = ", ".join(f"source.{c}" for c in self.columns)
        sql += f" WHEN NOT MATCHED THEN INSERT ({', '.join(self.columns)}) VALUES ({sources})"
        if self.returning:
            sql += f" OUTPUT {', '.join(f'inserted.{c}' for c in self.returning)}"
        return sql + ";"

    def to_sql(self, db_type: DialectLike = None) -> tuple[str, list[Any]]:
        """Render the upsert for a dialect.

        Args:
            db_type: Target dialect. Defaults to the configured dialect.

        Returns:
            A tuple of (sql, params).
        """
        db_type = resolve_dialect(db_type)
        render = {
            DatabaseType.POSTGRESQL: self.to_postgres_sql,
            DatabaseType.MYSQL: self.to_mysql_sql,
            DatabaseType.SQLITE: self.to_sqlite_sql,
            DatabaseType.MSSQL: self.to_mssql_sql,
        }[db_type]
        return render(), list(self.params)


class UpsertBuilder:
    """Chainable builder for ``Upsert``."""

    def __init__(self, table: Optional[str] = None):
        self._table = table
        self._columns: list[str] = []
        self._values: list[str] = []
        self._target: Optional[ConflictTarget] = None
        self._action: Optional[ConflictAction] = None
        self._where: Optional[str] = None
        self._returning: Optional[list[str]] = None
        self._params: list[Any] = []

    def table(self, name: str) -> "UpsertBuilder":
        self._table = name
        return self

    def columns(self, cols: Iterable[str]) -> "UpsertBuilder":
        self._columns = list(cols)
        return self

    def values(self, vals: Iterable[str]) -> "UpsertBuilder":
        self._values = list(vals)
        return self

    def params(self, vals: Iterable[Any]) -> "UpsertBuilder":
        self._params = list(vals)
        return self

    def on_conflict(self, target: ConflictTarget) -> "UpsertBuilder":
        self._target = target
        return self

    def on_conflict_columns(self, cols: Iterable[str]) -> "UpsertBuilder":
        return self.on_conflict(ConflictTarget.on_columns(cols))

    def on_conflict_constraint(self, name: str) -> "UpsertBuilder":
        return self.on_conflict(ConflictTarget.on_constraint(name))

    def on_conflict_index(self, expr: str) -> "UpsertBuilder":
        return self.on_conflict(ConflictTarget.on_index_expression(expr))

    def do_nothing(self) -> "UpsertBuilder":
        self._action = ConflictAction.do_nothing()
        return self

    def do_update(self, cols: Iterable[str]) -> "UpsertBuilder":
        self._action = ConflictAction.do_update(cols)
        return self

    def do_update_set(self, assignments: Iterable[Assignment]) -> "UpsertBuilder":
        self._action = ConflictAction.do_update_set(assignments)
        return self

    def where(self, condition: str) -> "UpsertBuilder":
        self._where = condition
        return self

    def returning(self, cols: Iterable[str]) -> "UpsertBuilder":
        self._returning = list(cols)
        return self

    def build(self) -> Upsert:
        """Validate and freeze the upsert.

        Raises:
            InvalidInputError: If the table or columns are missing, or the
                number of values differs from the number of columns.
        """
        if not self._table:
            raise InvalidInputError("table", "upsert requires a table")
        if not self._columns:
            raise InvalidInputError("columns", "upsert requires at least one column")
        if self._values and len(self._values) != len(self._columns):
            raise InvalidInputError(
                "values",
                f"expected {len(self._columns)} values, got {len(self._values)}"
            )
        action = self._action or ConflictAction.do_nothing()
        if action.is_update and not action.update.assignments:
            raise InvalidInputError("do_update", "update action needs at least one column")
        return Upsert(
            table=self._table,
            columns=tuple(self._columns),
            values=tuple(self._values),
            conflict_target=self._target,
            conflict_action=action,
            where_clause=self._where,
            returning=tuple(self._returning) if self._returning is not None else None,
            params=tuple(self._params),
        )
