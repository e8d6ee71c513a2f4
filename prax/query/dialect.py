# prax/query/dialect.py
"""Dialect abstraction: placeholders, quoting, pagination and transactions."""

import re
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

from prax.config import get_settings
from prax.utils.constants import RESERVED_WORDS
from prax.utils.exceptions import UnsupportedError


_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DatabaseType(str, Enum):
    """SQL database dialects."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    MSSQL = "mssql"

    @classmethod
    def from_str(cls, value: str) -> "DatabaseType":
        """Parse a dialect name, accepting common aliases.

        Args:
            value: Dialect name such as "postgres" or "sqlserver".

        Returns:
            The matching dialect.
        """
        key = value.strip().lower()
        aliases = {
            "postgresql": cls.POSTGRESQL,
            "postgres": cls.POSTGRESQL,
            "pg": cls.POSTGRESQL,
            "mysql": cls.MYSQL,
            "mariadb": cls.MYSQL,
            "sqlite": cls.SQLITE,
            "mssql": cls.MSSQL,
            "sqlserver": cls.MSSQL,
            "tsql": cls.MSSQL,
        }
        if key not in aliases:
            raise ValueError(f"Unknown database type: {value}")
        return aliases[key]

    @property
    def display_name(self) -> str:
        return {
            DatabaseType.POSTGRESQL: "PostgreSQL",
            DatabaseType.MYSQL: "MySQL",
            DatabaseType.SQLITE: "SQLite",
            DatabaseType.MSSQL: "SQL Server",
        }[self]

    @property
    def sqlglot_dialect(self) -> str:
        """Name of the matching sqlglot dialect."""
        return {
            DatabaseType.POSTGRESQL: "postgres",
            DatabaseType.MYSQL: "mysql",
            DatabaseType.SQLITE: "sqlite",
            DatabaseType.MSSQL: "tsql",
        }[self]

    @property
    def uses_numbered_params(self) -> bool:
        return self in (DatabaseType.POSTGRESQL, DatabaseType.MSSQL)

    def placeholder(self, index: int) -> str:
        """Return the bind placeholder for the 1-based parameter index."""
        if self == DatabaseType.POSTGRESQL:
            return f"${index}"
        if self == DatabaseType.MSSQL:
            return f"@P{index}"
        return "?"

    def quote_identifier(self, name: str, force: bool = False) -> str:
        """Quote an identifier only when it needs quoting.

        Args:
            name: Identifier to quote.
            force: Quote even when the identifier is a plain word.

        Returns:
            The identifier, quoted in the dialect's style if necessary.
        """
        if not force and not needs_quoting(name):
            return name
        if self == DatabaseType.MYSQL:
            return "`" + name.replace("`", "``") + "`"
        if self == DatabaseType.MSSQL:
            return "[" + name.replace("]", "]]") + "]"
        return '"' + name.replace('"', '""') + '"'

    def limit_offset(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        has_order_by: bool = False
    ) -> str:
        """Render a pagination clause.

        Args:
            limit: Maximum number of rows.
            offset: Number of rows to skip.
            has_order_by: Whether the statement already has an ORDER BY.

        Returns:
            The clause with a leading space, or an empty string.
        """
        if limit is None and offset is None:
            return ""
        if self == DatabaseType.MSSQL:
            if not has_order_by:
                raise UnsupportedError(
                    self.display_name,
                    "OFFSET ... FETCH requires an ORDER BY clause; use TOP instead"
                )
            clause = f" OFFSET {offset or 0} ROWS"
            if limit is not None:
                clause += f" FETCH NEXT {limit} ROWS ONLY"
            return clause
        clause = ""
        if limit is not None:
            clause += f" LIMIT {limit}"
        elif offset is not None and self == DatabaseType.SQLITE:
            clause += " LIMIT -1"
        elif offset is not None and self == DatabaseType.MYSQL:
            clause += " LIMIT 18446744073709551615"
        if offset is not None:
            clause += f" OFFSET {offset}"
        return clause

    def top_clause(self, limit: int) -> str:
        if self != DatabaseType.MSSQL:
            raise UnsupportedError(self.display_name, "TOP is SQL Server syntax; use LIMIT")
        return f"TOP {limit}"

    def begin_transaction(self) -> str:
        return {
            DatabaseType.POSTGRESQL: "BEGIN",
            DatabaseType.MYSQL: "START TRANSACTION",
            DatabaseType.SQLITE: "BEGIN TRANSACTION",
            DatabaseType.MSSQL: "BEGIN TRANSACTION",
        }[self]

    def commit(self) -> str:
        return "COMMIT"

    def rollback(self) -> str:
        return "ROLLBACK"


DialectLike = Union[DatabaseType, str, None]


def resolve_dialect(db_type: DialectLike = None) -> DatabaseType:
    """Resolve a dialect argument, falling back to the configured default."""
    if isinstance(db_type, DatabaseType):
        return db_type
    if db_type is None:
        return DatabaseType.from_str(get_settings().default_dialect)
    return DatabaseType.from_str(db_type)


def needs_quoting(name: str) -> bool:
    """Check whether an identifier must be quoted.

    Args:
        name: The identifier.

    Returns:
        True for reserved words and names with non-identifier characters.
    """
    if not _IDENTIFIER_RE.match(name):
        return True
    lowered = name.lower()
    if lowered in RESERVED_WORDS:
        return True
    return lowered in get_settings().get_extra_reserved_words()


def escape_string(value: str) -> str:
    """Double single quotes for use inside a SQL string literal."""
    return value.replace("'", "''")


class SqlBuilder:
    """Incremental SQL text builder that tracks bound parameters.

    Placeholders are numbered from ``param_offset + 1`` in the dialect's
    style so fragments can be embedded in larger statements.
    """

    def __init__(self, db_type: DialectLike = None, param_offset: int = 0):
        self.db_type = resolve_dialect(db_type)
        self.param_offset = param_offset
        self.params: list[Any] = []
        self._parts: list[str] = []

    @property
    def param_count(self) -> int:
        return len(self.params)

    def push(self, text: str) -> "SqlBuilder":
        self._parts.append(text)
        return self

    def bind(self, value: Any) -> str:
        """Register a parameter and return its placeholder."""
        self.params.append(value)
        return self.db_type.placeholder(self.param_offset + len(self.params))

    def push_param(self, value: Any) -> "SqlBuilder":
        return self.push(self.bind(value))

    def push_identifier(self, name: str) -> "SqlBuilder":
        return self.push(self.db_type.quote_identifier(name))

    def push_sep(
        self,
        items: Iterable[Any],
        separator: str,
        render: Callable[["SqlBuilder", Any], Any]
    ) -> "SqlBuilder":
        """Render each item with ``render``, pushing ``separator`` between them."""
        for i, item in enumerate(items):
            if i > 0:
                self.push(separator)
            render(self, item)
        return self

    def build(self) -> tuple[str, list[Any]]:
        return "".join(self._parts), list(self.params)
