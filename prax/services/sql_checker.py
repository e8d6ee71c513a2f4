# prax/services/sql_checker.py
"""Syntactic checks of emitted SQL with sqlglot."""

import logging
import re
from typing import Any, Dict, List, Optional

import sqlglot
from sqlglot.errors import ParseError, TokenError

from prax.query.dialect import DialectLike, resolve_dialect
from prax.utils.exceptions import SQLCheckError

logger = logging.getLogger("prax.sql_checker")


class SQLSyntaxChecker:
    """Parses generated SQL in its target dialect.

    This does not execute anything. It catches emitter mistakes such as
    unbalanced parentheses or misplaced keywords before SQL reaches a
    database driver.
    """

    def check(self, sql: str, db_type: DialectLike = None) -> tuple[bool, Optional[str]]:
        """Parse SQL for a dialect.

        Args:
            sql: One or more statements.
            db_type: Target dialect.

        Returns:
            A tuple of (is_valid, error_message).
        """
        db_type = resolve_dialect(db_type)
        cleaned_sql = self._remove_comments(sql)
        if not cleaned_sql:
            return False, "Empty SQL statement"

        try:
            statements = sqlglot.parse(cleaned_sql, read=db_type.sqlglot_dialect)
        except (ParseError, TokenError) as e:
            logger.debug("SQL check failed for %s: %s", db_type.display_name, e)
            return False, f"SQL syntax error: {str(e)}"

        if not any(s is not None for s in statements):
            return False, "No statement found"
        return True, None

    def assert_valid(self, sql: str, db_type: DialectLike = None) -> None:
        """Raise ``SQLCheckError`` when ``check`` fails."""
        is_valid, error = self.check(sql, db_type)
        if not is_valid:
            raise SQLCheckError(sql, error)

    def statement_types(self, sql: str, db_type: DialectLike = None) -> List[str]:
        """Upper-cased sqlglot expression names of each statement."""
        db_type = resolve_dialect(db_type)
        statements = sqlglot.parse(self._remove_comments(sql), read=db_type.sqlglot_dialect)
        return [type(s).__name__.upper() for s in statements if s is not None]

    def extract_tables(self, sql: str, db_type: DialectLike = None) -> List[Dict[str, Any]]:
        """Extract table references from SQL.

        Args:
            sql: The SQL to inspect.
            db_type: Target dialect.

        Returns:
            List of table info dicts with name and alias.
        """
        db_type = resolve_dialect(db_type)
        tables = []
        seen = set()
        for parsed in sqlglot.parse(self._remove_comments(sql), read=db_type.sqlglot_dialect):
            if parsed is None:
                continue
            for node in parsed.find_all(sqlglot.exp.Table):
                table_name = node.name
                if table_name.lower() not in seen:
                    seen.add(table_name.lower())
                    tables.append({
                        "name": table_name,
                        "alias": node.alias if node.alias else None,
                    })
        return tables

    def _remove_comments(self, sql: str) -> str:
        """Remove SQL comments from the statement.

        Args:
            sql: The SQL statement with possible comments.

        Returns:
            The SQL statement without comments.
        """
        sql = re.sub(r"/\*.*?\*/", "", sql, flags=re.DOTALL)
        sql = re.sub(r"--.*$", "", sql, flags=re.MULTILINE)
        return sql.strip()
