# prax/query/cte.py
"""Common table expressions (WITH clauses)."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from prax.query.dialect import DatabaseType, DialectLike, resolve_dialect
from prax.utils.exceptions import InvalidInputError


_SET_QUANTIFIER = re.compile(r"^(DISTINCT|ALL)\s+", re.IGNORECASE)


class Materialized(str, Enum):
    YES = "MATERIALIZED"
    NO = "NOT MATERIALIZED"


class SearchMethod(str, Enum):
    BREADTH_FIRST = "BREADTH FIRST"
    DEPTH_FIRST = "DEPTH FIRST"


@dataclass(frozen=True)
class SearchClause:
    """PostgreSQL ``SEARCH ... FIRST BY ... SET ...`` clause."""

    method: SearchMethod
    columns: tuple[str, ...]
    set_column: str

    def to_sql(self) -> str:
        return f"SEARCH {self.method.value} BY {', '.join(self.columns)} SET {self.set_column}"


@dataclass(frozen=True)
class CycleClause:
    """PostgreSQL ``CYCLE ... SET ... USING ...`` clause."""

    columns: tuple[str, ...]
    set_column: str
    using_column: str
    mark_value: Optional[str] = None
    default_value: Optional[str] = None

    def to_sql(self) -> str:
        sql = f"CYCLE {', '.join(self.columns)} SET {self.set_column}"
        if self.mark_value is not None and self.default_value is not None:
            sql += f" TO {self.mark_value} DEFAULT {self.default_value}"
        return sql + f" USING {self.using_column}"


@dataclass(frozen=True)
class Cte:
    """A single named subquery of a WITH clause."""

    name: str
    query: str
    columns: tuple[str, ...] = ()
    recursive: bool = False
    materialized: Optional[Materialized] = None
    search: Optional[SearchClause] = None
    cycle: Optional[CycleClause] = None

    @staticmethod
    def builder(name: str) -> "CteBuilder":
        return CteBuilder(name)

    def to_sql(self, db_type: DialectLike = None) -> str:
        """Render ``name (cols) AS (query)``.

        Materialization hints and SEARCH/CYCLE clauses are emitted for
        PostgreSQL only.
        """
        db_type = resolve_dialect(db_type)
        postgres = db_type == DatabaseType.POSTGRESQL
        sql = self.name
        if self.columns:
            sql += f" ({', '.join(self.columns)})"
        sql += " AS "
        if postgres and self.materialized is not None:
            sql += f"{self.materialized.value} "
        sql += f"({self.query})"
        if postgres:
            if self.search is not None:
                sql += f" {self.search.to_sql()}"
            if self.cycle is not None:
                sql += f" {self.cycle.to_sql()}"
        return sql


class CteBuilder:
    """Chainable builder for ``Cte``."""

    def __init__(self, name: str):
        self._name = name
        self._columns: list[str] = []
        self._query: Optional[str] = None
        self._recursive = False
        self._materialized: Optional[Materialized] = None
        self._search: Optional[SearchClause] = None
        self._cycle: Optional[CycleClause] = None

    def columns(self, columns: Iterable[str]) -> "CteBuilder":
        self._columns = list(columns)
        return self

    def as_query(self, query: str) -> "CteBuilder":
        self._query = query
        return self

    def recursive(self) -> "CteBuilder":
        self._recursive = True
        return self

    def materialized(self) -> "CteBuilder":
        self._materialized = Materialized.YES
        return self

    def not_materialized(self) -> "CteBuilder":
        self._materialized = Materialized.NO
        return self

    def search_breadth_first(self, columns: Iterable[str], set_column: str) -> "CteBuilder":
        self._search = SearchClause(SearchMethod.BREADTH_FIRST, tuple(columns), set_column)
        return self

    def search_depth_first(self, columns: Iterable[str], set_column: str) -> "CteBuilder":
        self._search = SearchClause(SearchMethod.DEPTH_FIRST, tuple(columns), set_column)
        return self

    def cycle(
        self,
        columns: Iterable[str],
        set_column: str,
        using_column: str,
        mark_value: Optional[str] = None,
        default_value: Optional[str] = None
    ) -> "CteBuilder":
        self._cycle = CycleClause(tuple(columns), set_column, using_column, mark_value, default_value)
        return self

    def build(self) -> Cte:
        if not self._query:
            raise InvalidInputError("query", "CTE requires a query (use as_query())")
        return Cte(
            name=self._name,
            query=self._query,
            columns=tuple(self._columns),
            recursive=self._recursive,
            materialized=self._materialized,
            search=self._search,
            cycle=self._cycle,
        )


class WithClause:
    """One or more CTEs followed by a main query."""

    def __init__(self, ctes: Iterable[Cte] = (), main_query: Optional[str] = None):
        self.ctes: list[Cte] = list(ctes)
        self.main_query = main_query

    @property
    def recursive(self) -> bool:
        return any(c.recursive for c in self.ctes)

    def cte(self, cte: Cte) -> "WithClause":
        self.ctes.append(cte)
        return self

    def main(self, query: str) -> "WithClause":
        self.main_query = query
        return self

    def select(self, columns: str) -> "WithQueryBuilder":
        return WithQueryBuilder(self, columns)

    def to_sql(self, db_type: DialectLike = None) -> str:
        """Render the full statement.

        SQL Server has no ``RECURSIVE`` keyword; recursive CTEs are plain
        ``WITH`` there.

        Raises:
            InvalidInputError: If there are no CTEs or no main query.
        """
        db_type = resolve_dialect(db_type)
        if not self.ctes:
            raise InvalidInputError("ctes", "WITH clause requires at least one CTE")
        if not self.main_query:
            raise InvalidInputError("main_query", "WITH clause requires a main query")
        keyword = "WITH "
        if self.recursive and db_type != DatabaseType.MSSQL:
            keyword += "RECURSIVE "
        body = ", ".join(c.to_sql(db_type) for c in self.ctes)
        return f"{keyword}{body} {self.main_query}"


class WithQueryBuilder:
    """Builds the main SELECT of a ``WithClause``."""

    def __init__(self, with_clause: WithClause, columns: str):
        self._with = with_clause
        self._select = columns
        self._from: Optional[str] = None
        self._where: Optional[str] = None
        self._order_by: Optional[str] = None
        self._limit: Optional[int] = None

    def from_(self, table: str) -> "WithQueryBuilder":
        self._from = table
        return self

    def where(self, condition: str) -> "WithQueryBuilder":
        self._where = condition
        return self

    def order_by(self, order: str) -> "WithQueryBuilder":
        self._order_by = order
        return self

    def limit(self, limit: int) -> "WithQueryBuilder":
        self._limit = limit
        return self

    def build(self, db_type: DialectLike = None) -> str:
        db_type = resolve_dialect(db_type)
        select = self._select
        if self._limit is not None and db_type == DatabaseType.MSSQL and not self._order_by:
            # TOP goes after DISTINCT or ALL
            quantifier = _SET_QUANTIFIER.match(select)
            prefix = quantifier.group(0) if quantifier else ""
            select = f"{prefix}TOP {self._limit} {select[len(prefix):]}"
        main = f"SELECT {select}"
        if self._from:
            main += f" FROM {self._from}"
        if self._where:
            main += f" WHERE {self._where}"
        if self._order_by:
            main += f" ORDER BY {self._order_by}"
        if self._limit is not None:
            if db_type != DatabaseType.MSSQL:
                main += f" LIMIT {self._limit}"
            elif self._order_by:
                main += f" OFFSET 0 ROWS FETCH NEXT {self._limit} ROWS ONLY"
        return WithClause(self._with.ctes, main).to_sql(db_type)


# === Patterns ===

def tree_traversal(cte_name: str, table: str, id_col: str, parent_col: str, root_condition: str) -> Cte:
    """Recursive walk down a parent/child hierarchy with a depth column."""
    base = f"SELECT {id_col}, {parent_col}, 1 AS depth FROM {table} WHERE {root_condition}"
    step = (
        f"SELECT t.{id_col}, t.{parent_col}, c.depth + 1 FROM {table} t "
        f"INNER JOIN {cte_name} c ON t.{parent_col} = c.{id_col}"
    )
    return Cte(
        name=cte_name,
        query=f"{base} UNION ALL {step}",
        columns=(id_col, parent_col, "depth"),
        recursive=True,
    )


def graph_path(cte_name: str, edges_table: str, from_col: str, to_col: str, start_node: str) -> Cte:
    """Recursive path search over an edge table. PostgreSQL arrays track visited nodes."""
    base = (
        f"SELECT {from_col}, {to_col}, ARRAY[{from_col}] AS path, 1 AS length "
        f"FROM {edges_table} WHERE {from_col} = {start_node}"
    )
    step = (
        f"SELECT e.{from_col}, e.{to_col}, p.path || e.{to_col}, p.length + 1 "
        f"FROM {edges_table} e "
        f"INNER JOIN {cte_name} p ON e.{from_col} = p.{to_col} "
        f"WHERE NOT e.{to_col} = ANY(p.path)"
    )
    return Cte(
        name=cte_name,
        query=f"{base} UNION ALL {step}",
        columns=(from_col, to_col, "path", "length"),
        recursive=True,
    )


def paginated(cte_name: str, query: str, order_by: str) -> Cte:
    return Cte(
        name=cte_name,
        query=f"SELECT *, ROW_NUMBER() OVER (ORDER BY {order_by}) AS row_num FROM ({query}) AS page_source",
    )


def running_total(
    cte_name: str,
    table: str,
    value_col: str,
    order_col: str,
    partition_col: Optional[str] = None
) -> Cte:
    partition = f"PARTITION BY {partition_col} " if partition_col else ""
    return Cte(
        name=cte_name,
        query=(
            f"SELECT *, SUM({value_col}) OVER ({partition}ORDER BY {order_col}) AS running_total "
            f"FROM {table}"
        ),
    )
