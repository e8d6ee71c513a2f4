# prax/query/filter.py
"""Filter algebra with parameterized SQL and MongoDB emission."""

import re
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from prax.query.dialect import DatabaseType, DialectLike, SqlBuilder, resolve_dialect


@dataclass(frozen=True)
class Json:
    """Marks a parameter value as a JSON document."""

    value: Any


class FilterOp(str, Enum):
    """Filter variants."""

    NONE = "none"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    AND = "and"
    OR = "or"
    NOT = "not"


_COMPARISON_SQL = {
    FilterOp.LT: "<",
    FilterOp.LTE: "<=",
    FilterOp.GT: ">",
    FilterOp.GTE: ">=",
}

_MONGO_OPERATORS = {
    FilterOp.NOT_EQUALS: "$ne",
    FilterOp.LT: "$lt",
    FilterOp.LTE: "$lte",
    FilterOp.GT: "$gt",
    FilterOp.GTE: "$gte",
    FilterOp.IN: "$in",
    FilterOp.NOT_IN: "$nin",
}

_LEAF_OPS = frozenset(set(FilterOp) - {FilterOp.NONE, FilterOp.AND, FilterOp.OR, FilterOp.NOT})


def quote_column(db_type: DatabaseType, name: str) -> str:
    """Quote each part of a possibly qualified column name when needed."""
    return ".".join(db_type.quote_identifier(part) for part in name.split("."))


def bool_sql(db_type: DatabaseType, value: bool) -> str:
    """A constant predicate; SQL Server has no TRUE/FALSE literals."""
    if db_type == DatabaseType.MSSQL:
        return "1=1" if value else "1=0"
    return "TRUE" if value else "FALSE"


def escape_like(db_type: DatabaseType, value: Any) -> str:
    """Escape LIKE wildcards so ``value`` matches literally.

    SQL Server uses bracket classes. The other dialects use a backslash,
    which is the default LIKE escape on PostgreSQL and MySQL; SQLite
    needs an explicit ``ESCAPE`` clause.
    """
    text = str(value)
    if db_type == DatabaseType.MSSQL:
        return re.sub(r"([\[%_])", r"[\1]", text)
    return re.sub(r"([\\%_])", r"\\\1", text)


@dataclass(frozen=True)
class Filter:
    """An immutable filter tree.

    Build filters with the classmethod constructors. ``and_``, ``or_`` and
    ``not_`` drop ``none`` operands; ``conjunction`` and ``disjunction``
    keep exactly the operands given.
    """

    op: FilterOp
    field: Optional[str] = None
    value: Any = None
    filters: tuple["Filter", ...] = ()

    def __post_init__(self):
        if self.field is not None:
            object.__setattr__(self, "field", sys.intern(self.field))

    # === Constructors ===

    @classmethod
    def none(cls) -> "Filter":
        return cls(FilterOp.NONE)

    @classmethod
    def equals(cls, field: str, value: Any) -> "Filter":
        return cls(FilterOp.EQUALS, field, value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> "Filter":
        return cls(FilterOp.NOT_EQUALS, field, value)

    @classmethod
    def lt(cls, field: str, value: Any) -> "Filter":
        return cls(FilterOp.LT, field, value)

    @classmethod
    def lte(cls, field: str, value: Any) -> "Filter":
        return cls(FilterOp.LTE, field, value)

    @classmethod
    def gt(cls, field: str, value: Any) -> "Filter":
        return cls(FilterOp.GT, field, value)

    @classmethod
    def gte(cls, field: str, value: Any) -> "Filter":
        return cls(FilterOp.GTE, field, value)

    @classmethod
    def in_(cls, field: str, values: Iterable[Any]) -> "Filter":
        return cls(FilterOp.IN, field, tuple(values))

    @classmethod
    def not_in(cls, field: str, values: Iterable[Any]) -> "Filter":
        return cls(FilterOp.NOT_IN, field, tuple(values))

    @classmethod
    def contains(cls, field: str, value: str) -> "Filter":
        return cls(FilterOp.CONTAINS, field, value)

    @classmethod
    def starts_with(cls, field: str, value: str) -> "Filter":
        return cls(FilterOp.STARTS_WITH, field, value)

    @classmethod
    def ends_with(cls, field: str, value: str) -> "Filter":
        return cls(FilterOp.ENDS_WITH, field, value)

    @classmethod
    def is_null(cls, field: str) -> "Filter":
        return cls(FilterOp.IS_NULL, field)

    @classmethod
    def is_not_null(cls, field: str) -> "Filter":
        return cls(FilterOp.IS_NOT_NULL, field)

    @classmethod
    def conjunction(cls, filters: Iterable["Filter"]) -> "Filter":
        """``And`` over exactly these operands; empty renders ``TRUE``."""
        return cls(FilterOp.AND, filters=tuple(filters))

    @classmethod
    def disjunction(cls, filters: Iterable["Filter"]) -> "Filter":
        """``Or`` over exactly these operands; empty renders ``FALSE``."""
        return cls(FilterOp.OR, filters=tuple(filters))

    @classmethod
    def and_(cls, filters: Iterable[Optional["Filter"]]) -> "Filter":
        """Combine with AND, skipping ``none`` operands."""
        operands = [f for f in filters if f is not None and not f.is_none()]
        if not operands:
            return cls.none()
        if len(operands) == 1:
            return operands[0]
        return cls.conjunction(operands)

    @classmethod
    def or_(cls, filters: Iterable[Optional["Filter"]]) -> "Filter":
        """Combine with OR, skipping ``none`` operands."""
        operands = [f for f in filters if f is not None and not f.is_none()]
        if not operands:
            return cls.none()
        if len(operands) == 1:
            return operands[0]
        return cls.disjunction(operands)

    @classmethod
    def not_(cls, inner: Optional["Filter"]) -> "Filter":
        if inner is None or inner.is_none():
            return cls.none()
        return cls(FilterOp.NOT, filters=(inner,))

    # === Combinators ===

    def is_none(self) -> bool:
        return self.op == FilterOp.NONE

    def and_then(self, other: Optional["Filter"]) -> "Filter":
        """AND ``other`` onto this filter, extending an existing ``And``."""
        if other is None or other.is_none():
            return self
        if self.is_none():
            return other
        if self.op == FilterOp.AND:
            return Filter.conjunction(self.filters + (other,))
        return Filter.conjunction((self, other))

    def or_else(self, other: Optional["Filter"]) -> "Filter":
        """OR ``other`` onto this filter, extending an existing ``Or``."""
        if other is None or other.is_none():
            return self
        if self.is_none():
            return other
        if self.op == FilterOp.OR:
            return Filter.disjunction(self.filters + (other,))
        return Filter.disjunction((self, other))

    def fields(self) -> list[str]:
        """Field names referenced by the filter, in order of appearance."""
        if self.field is not None:
            return [self.field]
        names = []
        for child in self.filters:
            for name in child.fields():
                if name not in names:
                    names.append(name)
        return names

    # === SQL ===

    def to_sql(
        self,
        param_offset: int = 0,
        db_type: DialectLike = DatabaseType.POSTGRESQL
    ) -> tuple[str, list[Any]]:
        """Render the filter as a WHERE-clause fragment.

        Args:
            param_offset: Number of parameters already bound by the enclosing
                statement; placeholders start at ``param_offset + 1``.
            db_type: Dialect for placeholders and identifier quoting.

        Returns:
            A tuple of (sql, params).
        """
        builder = SqlBuilder(resolve_dialect(db_type), param_offset)
        self.write_sql(builder)
        return builder.build()

    def write_sql(self, builder: SqlBuilder) -> None:
        """Append this filter to an existing builder."""
        op = self.op
        if op == FilterOp.NONE:
            builder.push(bool_sql(builder.db_type, True))
            return
        if op in (FilterOp.AND, FilterOp.OR):
            if not self.filters:
                builder.push(bool_sql(builder.db_type, op == FilterOp.AND))
                return
            builder.push("(")
            builder.push_sep(self.filters, f" {op.value.upper()} ", lambda b, f: f.write_sql(b))
            builder.push(")")
            return
        if op == FilterOp.NOT:
            builder.push("NOT (")
            self.filters[0].write_sql(builder)
            builder.push(")")
            return

        column = quote_column(builder.db_type, self.field)
        if op == FilterOp.EQUALS:
            if self.value is None:
                builder.push(f"{column} IS NULL")
            else:
                builder.push(f"{column} = {builder.bind(self.value)}")
        elif op == FilterOp.NOT_EQUALS:
            if self.value is None:
                builder.push(f"{column} IS NOT NULL")
            else:
                builder.push(f"{column} != {builder.bind(self.value)}")
        elif op in _COMPARISON_SQL:
            builder.push(f"{column} {_COMPARISON_SQL[op]} {builder.bind(self.value)}")
        elif op in (FilterOp.IN, FilterOp.NOT_IN):
            if not self.value:
                builder.push(bool_sql(builder.db_type, op == FilterOp.NOT_IN))
                return
            keyword = "IN" if op == FilterOp.IN else "NOT IN"
            placeholders = ", ".join(builder.bind(v) for v in self.value)
            builder.push(f"{column} {keyword} ({placeholders})")
        elif op in (FilterOp.CONTAINS, FilterOp.STARTS_WITH, FilterOp.ENDS_WITH):
            text = escape_like(builder.db_type, self.value)
            pattern = {
                FilterOp.CONTAINS: f"%{text}%",
                FilterOp.STARTS_WITH: f"{text}%",
                FilterOp.ENDS_WITH: f"%{text}",
            }[op]
            sql = f"{column} LIKE {builder.bind(pattern)}"
            if builder.db_type == DatabaseType.SQLITE:
                sql += " ESCAPE '\\'"
            builder.push(sql)
        elif op == FilterOp.IS_NULL:
            builder.push(f"{column} IS NULL")
        elif op == FilterOp.IS_NOT_NULL:
            builder.push(f"{column} IS NOT NULL")

    # === MongoDB ===

    def to_mongo(self) -> dict[str, Any]:
        """Render the filter as a MongoDB query document."""
        op = self.op
        if op == FilterOp.NONE:
            return {}
        if op == FilterOp.AND:
            if not self.filters:
                return {}
            return {"$and": [f.to_mongo() for f in self.filters]}
        if op == FilterOp.OR:
            if not self.filters:
                return {"$expr": False}
            return {"$or": [f.to_mongo() for f in self.filters]}
        if op == FilterOp.NOT:
            inner = self.filters[0]
            if inner.op in _LEAF_OPS:
                return {inner.field: {"$not": inner._mongo_condition()}}
            return {"$nor": [inner.to_mongo()]}
        if op in (FilterOp.EQUALS, FilterOp.IS_NULL):
            return {self.field: _mongo_value(self.value)}
        return {self.field: self._mongo_condition()}

    def _mongo_condition(self) -> dict[str, Any]:
        """Operator document for a single-field predicate."""
        op = self.op
        if op == FilterOp.EQUALS:
            return {"$eq": _mongo_value(self.value)}
        if op == FilterOp.IS_NULL:
            return {"$eq": None}
        if op == FilterOp.IS_NOT_NULL:
            return {"$ne": None}
        if op == FilterOp.CONTAINS:
            return {"$regex": re.escape(self.value)}
        if op == FilterOp.STARTS_WITH:
            return {"$regex": "^" + re.escape(self.value)}
        if op == FilterOp.ENDS_WITH:
            return {"$regex": re.escape(self.value) + "$"}
        if op in (FilterOp.IN, FilterOp.NOT_IN):
            return {_MONGO_OPERATORS[op]: [_mongo_value(v) for v in self.value]}
        return {_MONGO_OPERATORS[op]: _mongo_value(self.value)}


def _mongo_value(value: Any) -> Any:
    if isinstance(value, Json):
        return value.value
    if isinstance(value, tuple):
        return [_mongo_value(v) for v in value]
    return value


class ScalarOp(str, Enum):
    """Operations of a single-column filter."""

    EQUALS = "equals"
    NOT = "not"
    IN = "in"
    NOT_IN = "not_in"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


_SCALAR_TO_FILTER = {
    ScalarOp.EQUALS: FilterOp.EQUALS,
    ScalarOp.NOT: FilterOp.NOT_EQUALS,
    ScalarOp.IN: FilterOp.IN,
    ScalarOp.NOT_IN: FilterOp.NOT_IN,
    ScalarOp.LT: FilterOp.LT,
    ScalarOp.LTE: FilterOp.LTE,
    ScalarOp.GT: FilterOp.GT,
    ScalarOp.GTE: FilterOp.GTE,
    ScalarOp.CONTAINS: FilterOp.CONTAINS,
    ScalarOp.STARTS_WITH: FilterOp.STARTS_WITH,
    ScalarOp.ENDS_WITH: FilterOp.ENDS_WITH,
    ScalarOp.IS_NULL: FilterOp.IS_NULL,
    ScalarOp.IS_NOT_NULL: FilterOp.IS_NOT_NULL,
}


@dataclass(frozen=True)
class ScalarFilter:
    """A filter on a column that has not been named yet."""

    op: ScalarOp
    value: Any = None

    @classmethod
    def equals(cls, value: Any) -> "ScalarFilter":
        return cls(ScalarOp.EQUALS, value)

    @classmethod
    def not_(cls, value: Any) -> "ScalarFilter":
        return cls(ScalarOp.NOT, value)

    @classmethod
    def in_(cls, values: Iterable[Any]) -> "ScalarFilter":
        return cls(ScalarOp.IN, tuple(values))

    @classmethod
    def not_in(cls, values: Iterable[Any]) -> "ScalarFilter":
        return cls(ScalarOp.NOT_IN, tuple(values))

    @classmethod
    def lt(cls, value: Any) -> "ScalarFilter":
        return cls(ScalarOp.LT, value)

    @classmethod
    def lte(cls, value: Any) -> "ScalarFilter":
        return cls(ScalarOp.LTE, value)

    @classmethod
    def gt(cls, value: Any) -> "ScalarFilter":
        return cls(ScalarOp.GT, value)

    @classmethod
    def gte(cls, value: Any) -> "ScalarFilter":
        return cls(ScalarOp.GTE, value)

    @classmethod
    def contains(cls, value: str) -> "ScalarFilter":
        return cls(ScalarOp.CONTAINS, value)

    @classmethod
    def starts_with(cls, value: str) -> "ScalarFilter":
        return cls(ScalarOp.STARTS_WITH, value)

    @classmethod
    def ends_with(cls, value: str) -> "ScalarFilter":
        return cls(ScalarOp.ENDS_WITH, value)

    @classmethod
    def is_null(cls) -> "ScalarFilter":
        return cls(ScalarOp.IS_NULL)

    @classmethod
    def is_not_null(cls) -> "ScalarFilter":
        return cls(ScalarOp.IS_NOT_NULL)

    def into_filter(self, column: str) -> Filter:
        return Filter(_SCALAR_TO_FILTER[self.op], column, self.value)
