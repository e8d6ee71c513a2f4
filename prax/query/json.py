# prax/query/json.py
"""JSON column paths, filters, mutations, aggregates and indexes."""

import logging
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable, Optional, Union

from prax.query.dialect import DatabaseType, DialectLike, SqlBuilder, escape_string, resolve_dialect
from prax.query.filter import Json
from prax.utils.exceptions import InvalidInputError, UnsupportedError

logger = logging.getLogger("prax.json")


class SegmentKind(str, Enum):
    FIELD = "field"
    INDEX = "index"
    WILDCARD = "wildcard"
    RECURSIVE = "recursive"


@dataclass(frozen=True)
class PathSegment:
    kind: SegmentKind
    key: Union[str, int, None] = None


@dataclass(frozen=True)
class JsonPath:
    """A path into a JSON column.

    Paths are immutable; ``field``, ``index``, ``all`` and ``text`` return
    extended copies.
    """

    column: str
    segments: tuple[PathSegment, ...] = ()
    as_text: bool = False

    @classmethod
    def from_path(cls, column: str, path: str) -> "JsonPath":
        """Parse ``$.a.b[0]``, ``$.items[*]`` and ``$.**`` style paths."""
        segments = []
        for part in path.lstrip("$").lstrip(".").split("."):
            if not part:
                continue
            if part == "**":
                segments.append(PathSegment(SegmentKind.RECURSIVE))
                continue
            name, bracket, rest = part.partition("[")
            if name:
                segments.append(PathSegment(SegmentKind.FIELD, name))
            while bracket:
                inner, _, rest = rest.partition("]")
                if inner == "*":
                    segments.append(PathSegment(SegmentKind.WILDCARD))
                elif inner.lstrip("-").isdigit():
                    segments.append(PathSegment(SegmentKind.INDEX, int(inner)))
                _, bracket, rest = rest.partition("[")
        return cls(column, tuple(segments))

    def field(self, name: str) -> "JsonPath":
        return replace(self, segments=self.segments + (PathSegment(SegmentKind.FIELD, name),))

    def index(self, idx: int) -> "JsonPath":
        return replace(self, segments=self.segments + (PathSegment(SegmentKind.INDEX, idx),))

    def all(self) -> "JsonPath":
        return replace(self, segments=self.segments + (PathSegment(SegmentKind.WILDCARD),))

    def text(self) -> "JsonPath":
        return replace(self, as_text=True)

    def to_jsonpath_string(self) -> str:
        path = "$"
        for seg in self.segments:
            if seg.kind == SegmentKind.FIELD:
                path += f".{seg.key}"
            elif seg.kind == SegmentKind.INDEX:
                path += f"[{seg.key}]"
            elif seg.kind == SegmentKind.WILDCARD:
                path += "[*]"
            else:
                path += ".**"
        return path

    def to_postgres_expr(self) -> str:
        expr = self.column
        last = len(self.segments) - 1
        for i, seg in enumerate(self.segments):
            arrow = "->>" if self.as_text and i == last else "->"
            if seg.kind == SegmentKind.FIELD:
                expr += f" {arrow} '{escape_string(seg.key)}'"
            elif seg.kind == SegmentKind.INDEX:
                expr += f" {arrow} {seg.key}"
            elif seg.kind == SegmentKind.WILDCARD:
                expr = f"jsonb_array_elements({expr})"
            else:
                expr = f"jsonb_path_query({expr}, '$.**')"
        return expr

    def to_mysql_expr(self) -> str:
        expr = f"JSON_EXTRACT({self.column}, '{escape_string(self.to_jsonpath_string())}')"
        return f"JSON_UNQUOTE({expr})" if self.as_text else expr

    def to_sqlite_expr(self) -> str:
        return f"json_extract({self.column}, '{escape_string(self.to_jsonpath_string())}')"

    def to_mssql_expr(self, scalar: Optional[bool] = None) -> str:
        """``JSON_VALUE`` for scalars (text paths), ``JSON_QUERY`` otherwise."""
        scalar = self.as_text if scalar is None else scalar
        func = "JSON_VALUE" if scalar else "JSON_QUERY"
        return f"{func}({self.column}, '{escape_string(self.to_jsonpath_string())}')"

    def to_mongodb_path(self) -> str:
        parts = [self.column]
        for seg in self.segments:
            if seg.kind in (SegmentKind.FIELD, SegmentKind.INDEX):
                parts.append(str(seg.key))
            elif seg.kind == SegmentKind.WILDCARD:
                parts.append("$")
        return ".".join(parts)

    def to_sql(self, db_type: DialectLike = None) -> str:
        db_type = resolve_dialect(db_type)
        return {
            DatabaseType.POSTGRESQL: self.to_postgres_expr,
            DatabaseType.MYSQL: self.to_mysql_expr,
            DatabaseType.SQLITE: self.to_sqlite_expr,
            DatabaseType.MSSQL: self.to_mssql_expr,
        }[db_type]()


class JsonFilterOp(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    CONTAINED_BY = "contained_by"
    HAS_KEY = "has_key"
    HAS_ANY_KEY = "has_any_key"
    HAS_ALL_KEYS = "has_all_keys"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EXISTS = "exists"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    ARRAY_CONTAINS = "array_contains"
    PATH_MATCH = "path_match"


_NUMERIC_OPS = {
    JsonFilterOp.GT: ">",
    JsonFilterOp.GTE: ">=",
    JsonFilterOp.LT: "<",
    JsonFilterOp.LTE: "<=",
}

_NULL_OPS = {
    JsonFilterOp.EXISTS: "IS NOT NULL",
    JsonFilterOp.IS_NULL: "IS NULL",
    JsonFilterOp.IS_NOT_NULL: "IS NOT NULL",
}


def _is_document(value: Any) -> bool:
    return isinstance(value, (dict, list, tuple, Json))


@dataclass(frozen=True)
class JsonFilter:
    """A predicate over a JSON column.

    ``target`` is a ``JsonPath`` for path predicates and a column name for
    whole-document predicates such as containment and key checks.
    """

    op: JsonFilterOp
    target: Union[JsonPath, str]
    value: Any = None

    @classmethod
    def equals(cls, path: JsonPath, value: Any) -> "JsonFilter":
        return cls(JsonFilterOp.EQUALS, path, value)

    @classmethod
    def not_equals(cls, path: JsonPath, value: Any) -> "JsonFilter":
        return cls(JsonFilterOp.NOT_EQUALS, path, value)

    @classmethod
    def contains(cls, column: str, value: Any) -> "JsonFilter":
        return cls(JsonFilterOp.CONTAINS, column, value)

    @classmethod
    def contained_by(cls, column: str, value: Any) -> "JsonFilter":
        return cls(JsonFilterOp.CONTAINED_BY, column, value)

    @classmethod
    def has_key(cls, column: str, key: str) -> "JsonFilter":
        return cls(JsonFilterOp.HAS_KEY, column, key)

    @classmethod
    def has_any_key(cls, column: str, keys: Iterable[str]) -> "JsonFilter":
        return cls(JsonFilterOp.HAS_ANY_KEY, column, tuple(keys))

    @classmethod
    def has_all_keys(cls, column: str, keys: Iterable[str]) -> "JsonFilter":
        return cls(JsonFilterOp.HAS_ALL_KEYS, column, tuple(keys))

    @classmethod
    def gt(cls, path: JsonPath, value: Any) -> "JsonFilter":
        return cls(JsonFilterOp.GT, path, value)

    @classmethod
    def gte(cls, path: JsonPath, value: Any) -> "JsonFilter":
        return cls(JsonFilterOp.GTE, path, value)

    @classmethod
    def lt(cls, path: JsonPath, value: Any) -> "JsonFilter":
        return cls(JsonFilterOp.LT, path, value)

    @classmethod
    def lte(cls, path: JsonPath, value: Any) -> "JsonFilter":
        return cls(JsonFilterOp.LTE, path, value)

    @classmethod
    def exists(cls, path: JsonPath) -> "JsonFilter":
        return cls(JsonFilterOp.EXISTS, path)

    @classmethod
    def is_null(cls, path: JsonPath) -> "JsonFilter":
        return cls(JsonFilterOp.IS_NULL, path)

    @classmethod
    def is_not_null(cls, path: JsonPath) -> "JsonFilter":
        return cls(JsonFilterOp.IS_NOT_NULL, path)

    @classmethod
    def array_contains(cls, path: JsonPath, value: Any) -> "JsonFilter":
        return cls(JsonFilterOp.ARRAY_CONTAINS, path, value)

    @classmethod
    def path_match(cls, column: str, predicate: str) -> "JsonFilter":
        """PostgreSQL ``@?`` jsonpath predicate."""
        return cls(JsonFilterOp.PATH_MATCH, column, predicate)

    @property
    def column(self) -> str:
        if isinstance(self.target, JsonPath):
            return self.target.column
        return self.target

    def to_sql(self, db_type: DialectLike = None, param_offset: int = 0) -> tuple[str, list[Any]]:
        """Render the predicate with placeholders from ``param_offset + 1``.

        Raises:
            UnsupportedError: If the dialect cannot express the predicate.
        """
        builder = SqlBuilder(resolve_dialect(db_type), param_offset)
        self.write_sql(builder)
        return builder.build()

    def write_sql(self, builder: SqlBuilder) -> None:
        db_type = builder.db_type
        writer = {
            DatabaseType.POSTGRESQL: self._postgres,
            DatabaseType.MYSQL: self._mysql,
            DatabaseType.SQLITE: self._sqlite,
            DatabaseType.MSSQL: self._mssql,
        }[db_type]
        sql = writer(builder)
        if sql is None:
            raise UnsupportedError(db_type.display_name, f"JSON filter '{self.op.value}'")
        builder.push(sql)

    def _postgres(self, b: SqlBuilder) -> Optional[str]:
        op = self.op
        if op in (JsonFilterOp.EQUALS, JsonFilterOp.NOT_EQUALS):
            sign = "=" if op == JsonFilterOp.EQUALS else "<>"
            if self.target.as_text:
                return f"{self.target.to_postgres_expr()} {sign} {b.bind(self.value)}"
            return f"{self.target.to_postgres_expr()} {sign} {b.bind(Json(self.value))}::jsonb"
        if op == JsonFilterOp.CONTAINS:
            return f"{self.target} @> {b.bind(Json(self.value))}::jsonb"
        if op == JsonFilterOp.CONTAINED_BY:
            return f"{self.target} <@ {b.bind(Json(self.value))}::jsonb"
        if op == JsonFilterOp.HAS_KEY:
            return f"{self.target} ? {b.bind(self.value)}"
        if op in (JsonFilterOp.HAS_ANY_KEY, JsonFilterOp.HAS_ALL_KEYS):
            sign = "?|" if op == JsonFilterOp.HAS_ANY_KEY else "?&"
            return f"{self.target} {sign} ARRAY[{', '.join(b.bind(k) for k in self.value)}]"
        if op in _NUMERIC_OPS:
            return f"({self.target.to_postgres_expr()})::numeric {_NUMERIC_OPS[op]} {b.bind(self.value)}"
        if op in _NULL_OPS:
            return f"{self.target.to_postgres_expr()} {_NULL_OPS[op]}"
        if op == JsonFilterOp.ARRAY_CONTAINS:
            return f"{self.target.to_postgres_expr()} @> {b.bind(Json(self.value))}::jsonb"
        if op == JsonFilterOp.PATH_MATCH:
            return f"{self.target} @? {b.bind(self.value)}::jsonpath"
        return None

    def _mysql(self, b: SqlBuilder) -> Optional[str]:
        op = self.op
        if op in (JsonFilterOp.EQUALS, JsonFilterOp.NOT_EQUALS):
            sign = "=" if op == JsonFilterOp.EQUALS else "<>"
            if self.target.as_text:
                return f"{self.target.to_mysql_expr()} {sign} {b.bind(self.value)}"
            return f"{self.target.to_mysql_expr()} {sign} CAST({b.bind(Json(self.value))} AS JSON)"
        if op == JsonFilterOp.CONTAINS:
            return f"JSON_CONTAINS({self.target}, {b.bind(Json(self.value))})"
        if op == JsonFilterOp.CONTAINED_BY:
            return f"JSON_CONTAINS({b.bind(Json(self.value))}, {self.target})"
        if op == JsonFilterOp.HAS_KEY:
            return f"JSON_CONTAINS_PATH({self.target}, 'one', {b.bind('$.' + self.value)})"
        if op in (JsonFilterOp.HAS_ANY_KEY, JsonFilterOp.HAS_ALL_KEYS):
            mode = "one" if op == JsonFilterOp.HAS_ANY_KEY else "all"
            paths = ", ".join(b.bind("$." + k) for k in self.value)
            return f"JSON_CONTAINS_PATH({self.target}, '{mode}', {paths})"
        if op in _NUMERIC_OPS:
            return f"{self.target.to_mysql_expr()} {_NUMERIC_OPS[op]} {b.bind(self.value)}"
        if op in _NULL_OPS:
            return f"{self.target.to_mysql_expr()} {_NULL_OPS[op]}"
        if op == JsonFilterOp.ARRAY_CONTAINS:
            path = escape_string(self.target.to_jsonpath_string())
            return f"JSON_CONTAINS({self.target.column}, {b.bind(Json(self.value))}, '{path}')"
        return None

    def _sqlite(self, b: SqlBuilder) -> Optional[str]:
        op = self.op
        if op in (JsonFilterOp.EQUALS, JsonFilterOp.NOT_EQUALS):
            sign = "=" if op == JsonFilterOp.EQUALS else "<>"
            if _is_document(self.value):
                return f"{self.target.to_sqlite_expr()} {sign} json({b.bind(Json(self.value))})"
            return f"{self.target.to_sqlite_expr()} {sign} {b.bind(self.value)}"
        if op == JsonFilterOp.HAS_KEY:
            return f"json_type({self.target}, {b.bind('$.' + self.value)}) IS NOT NULL"
        if op in _NUMERIC_OPS:
            return f"{self.target.to_sqlite_expr()} {_NUMERIC_OPS[op]} {b.bind(self.value)}"
        if op in _NULL_OPS:
            return f"{self.target.to_sqlite_expr()} {_NULL_OPS[op]}"
        return None

    def _mssql(self, b: SqlBuilder) -> Optional[str]:
        op = self.op
        if op in (JsonFilterOp.EQUALS, JsonFilterOp.NOT_EQUALS):
            if _is_document(self.value):
                return None
            sign = "=" if op == JsonFilterOp.EQUALS else "<>"
            return f"{self.target.to_mssql_expr(scalar=True)} {sign} {b.bind(self.value)}"
        if op == JsonFilterOp.HAS_KEY:
            return f"JSON_PATH_EXISTS({self.target}, {b.bind('$.' + self.value)}) = 1"
        if op in _NUMERIC_OPS:
            expr = self.target.to_mssql_expr(scalar=True)
            return f"CAST({expr} AS FLOAT) {_NUMERIC_OPS[op]} {b.bind(self.value)}"
        if op in _NULL_OPS:
            return f"{self.target.to_mssql_expr(scalar=True)} {_NULL_OPS[op]}"
        return None


class JsonOpKind(str, Enum):
    SET = "set"
    INSERT = "insert"
    REPLACE = "replace"
    REMOVE = "remove"
    ARRAY_APPEND = "array_append"
    ARRAY_PREPEND = "array_prepend"
    MERGE = "merge"
    INCREMENT = "increment"


_PATH_TOKEN = re.compile(r"\[(\d+)\]|([^.\[\]]+)")


def _path_segments(path: str) -> list[tuple[str, bool]]:
    """(segment, is_index) pairs of an ``a.b[0]`` style path."""
    return [(index, True) if index else (key, False) for index, key in _PATH_TOKEN.findall(path.lstrip("$"))]


def _path_parts(path: str) -> list[str]:
    return [segment for segment, _ in _path_segments(path)]


def _pg_path(path: str) -> str:
    return "'{" + ",".join(_path_parts(path)) + "}'"


def _dollar_path(path: str) -> str:
    segments = _path_segments(path)
    return "'$" + "".join(f"[{s}]" if is_index else f".{s}" for s, is_index in segments) + "'"


@dataclass(frozen=True)
class JsonOp:
    """An expression that produces a modified JSON document.

    Use the result as the right-hand side of ``SET column = ...``.
    """

    kind: JsonOpKind
    column: str
    path: str = ""
    value: Any = None

    @classmethod
    def set(cls, column: str, path: str, value: Any) -> "JsonOp":
        return cls(JsonOpKind.SET, column, path, value)

    @classmethod
    def insert(cls, column: str, path: str, value: Any) -> "JsonOp":
        return cls(JsonOpKind.INSERT, column, path, value)

    @classmethod
    def replace(cls, column: str, path: str, value: Any) -> "JsonOp":
        return cls(JsonOpKind.REPLACE, column, path, value)

    @classmethod
    def remove(cls, column: str, path: str) -> "JsonOp":
        return cls(JsonOpKind.REMOVE, column, path)

    @classmethod
    def array_append(cls, column: str, path: str, value: Any) -> "JsonOp":
        return cls(JsonOpKind.ARRAY_APPEND, column, path, value)

    @classmethod
    def array_prepend(cls, column: str, path: str, value: Any) -> "JsonOp":
        return cls(JsonOpKind.ARRAY_PREPEND, column, path, value)

    @classmethod
    def merge(cls, column: str, value: Any) -> "JsonOp":
        return cls(JsonOpKind.MERGE, column, "", value)

    @classmethod
    def increment(cls, column: str, path: str, amount: Union[int, float]) -> "JsonOp":
        return cls(JsonOpKind.INCREMENT, column, path, amount)

    @property
    def at_root(self) -> bool:
        return not _path_parts(self.path)

    def to_sql(self, db_type: DialectLike = None, param_offset: int = 0) -> tuple[str, list[Any]]:
        """Render the mutation expression.

        Raises:
            UnsupportedError: If the dialect has no equivalent function.
        """
        db_type = resolve_dialect(db_type)
        builder = SqlBuilder(db_type, param_offset)
        writer = {
            DatabaseType.POSTGRESQL: self._postgres,
            DatabaseType.MYSQL: self._mysql,
            DatabaseType.SQLITE: self._sqlite,
            DatabaseType.MSSQL: self._mssql,
        }[db_type]
        sql = writer(builder)
        if sql is None:
            raise UnsupportedError(db_type.display_name, f"JSON operation '{self.kind.value}'")
        builder.push(sql)
        return builder.build()

    def _postgres(self, b: SqlBuilder) -> Optional[str]:
        col, kind = self.column, self.kind
        path = _pg_path(self.path)
        if kind == JsonOpKind.SET:
            return f"jsonb_set({col}, {path}, {b.bind(Json(self.value))}::jsonb)"
        if kind == JsonOpKind.INSERT:
            return f"jsonb_insert({col}, {path}, {b.bind(Json(self.value))}::jsonb)"
        if kind == JsonOpKind.REPLACE:
            return f"jsonb_set({col}, {path}, {b.bind(Json(self.value))}::jsonb, false)"
        if kind == JsonOpKind.REMOVE:
            return f"{col} #- {path}"
        if kind == JsonOpKind.MERGE:
            return f"{col} || {b.bind(Json(self.value))}::jsonb"
        current = f"({col} #> {path})"
        if kind == JsonOpKind.ARRAY_APPEND:
            if self.at_root:
                return f"{col} || {b.bind(Json(self.value))}::jsonb"
            return f"jsonb_set({col}, {path}, {current} || {b.bind(Json(self.value))}::jsonb)"
        if kind == JsonOpKind.ARRAY_PREPEND:
            if self.at_root:
                return f"{b.bind(Json(self.value))}::jsonb || {col}"
            return f"jsonb_set({col}, {path}, {b.bind(Json(self.value))}::jsonb || {current})"
        if kind == JsonOpKind.INCREMENT:
            return f"jsonb_set({col}, {path}, to_jsonb({current}::numeric + {b.bind(self.value)}))"
        return None

    def _mysql(self, b: SqlBuilder) -> Optional[str]:
        col, kind = self.column, self.kind
        path = _dollar_path(self.path)
        functions = {
            JsonOpKind.SET: "JSON_SET",
            JsonOpKind.INSERT: "JSON_INSERT",
            JsonOpKind.REPLACE: "JSON_REPLACE",
            JsonOpKind.ARRAY_APPEND: "JSON_ARRAY_APPEND",
            JsonOpKind.ARRAY_PREPEND: "JSON_ARRAY_INSERT",
        }
        if kind in functions:
            if kind == JsonOpKind.ARRAY_PREPEND:
                path = path[:-1] + "[0]'"
            return f"{functions[kind]}({col}, {path}, CAST({b.bind(Json(self.value))} AS JSON))"
        if kind == JsonOpKind.REMOVE:
            return f"JSON_REMOVE({col}, {path})"
        if kind == JsonOpKind.MERGE:
            return f"JSON_MERGE_PATCH({col}, CAST({b.bind(Json(self.value))} AS JSON))"
        if kind == JsonOpKind.INCREMENT:
            return f"JSON_SET({col}, {path}, JSON_EXTRACT({col}, {path}) + {b.bind(self.value)})"
        return None

    def _sqlite(self, b: SqlBuilder) -> Optional[str]:
        col, kind = self.column, self.kind
        path = _dollar_path(self.path)
        functions = {
            JsonOpKind.SET: "json_set",
            JsonOpKind.INSERT: "json_insert",
            JsonOpKind.REPLACE: "json_replace",
        }
        if kind in functions:
            return f"{functions[kind]}({col}, {path}, json({b.bind(Json(self.value))}))"
        if kind == JsonOpKind.REMOVE:
            return f"json_remove({col}, {path})"
        if kind == JsonOpKind.MERGE:
            return f"json_patch({col}, json({b.bind(Json(self.value))}))"
        return None

    def _mssql(self, b: SqlBuilder) -> Optional[str]:
        col, kind = self.column, self.kind
        path = _dollar_path(self.path)
        if kind == JsonOpKind.SET:
            return f"JSON_MODIFY({col}, {path}, JSON_QUERY({b.bind(Json(self.value))}))"
        if kind == JsonOpKind.REMOVE:
            return f"JSON_MODIFY({col}, {path}, NULL)"
        if kind == JsonOpKind.ARRAY_APPEND:
            return f"JSON_MODIFY({col}, 'append {path[1:-1]}', JSON_QUERY({b.bind(Json(self.value))}))"
        return None


class JsonAggKind(str, Enum):
    ARRAY_AGG = "array_agg"
    OBJECT_AGG = "object_agg"
    BUILD_OBJECT = "build_object"
    BUILD_ARRAY = "build_array"


@dataclass(frozen=True)
class JsonAgg:
    """JSON aggregate and constructor expressions."""

    kind: JsonAggKind
    args: tuple[str, ...] = ()
    distinct: bool = False
    order_by: Optional[str] = None
    keys: tuple[str, ...] = ()

    @classmethod
    def array_agg(cls, column: str, distinct: bool = False, order_by: Optional[str] = None) -> "JsonAgg":
        return cls(JsonAggKind.ARRAY_AGG, (column,), distinct, order_by)

    @classmethod
    def object_agg(cls, key_column: str, value_column: str) -> "JsonAgg":
        return cls(JsonAggKind.OBJECT_AGG, (key_column, value_column))

    @classmethod
    def build_object(cls, pairs: Iterable[tuple[str, str]]) -> "JsonAgg":
        pairs = list(pairs)
        return cls(JsonAggKind.BUILD_OBJECT, tuple(v for _, v in pairs), keys=tuple(k for k, _ in pairs))

    @classmethod
    def build_array(cls, elements: Iterable[str]) -> "JsonAgg":
        return cls(JsonAggKind.BUILD_ARRAY, tuple(elements))

    def _object_args(self) -> str:
        return ", ".join(f"'{escape_string(k)}', {v}" for k, v in zip(self.keys, self.args))

    def to_sql(self, db_type: DialectLike = None) -> str:
        """Render the expression.

        Raises:
            UnsupportedError: For SQL Server, which builds JSON with FOR JSON.
        """
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.MSSQL:
            raise UnsupportedError(db_type.display_name, "JSON aggregates; use FOR JSON PATH")
        names = {
            DatabaseType.POSTGRESQL: ("jsonb_agg", "jsonb_object_agg", "jsonb_build_object", "jsonb_build_array"),
            DatabaseType.MYSQL: ("JSON_ARRAYAGG", "JSON_OBJECTAGG", "JSON_OBJECT", "JSON_ARRAY"),
            DatabaseType.SQLITE: ("json_group_array", "json_group_object", "json_object", "json_array"),
        }[db_type]
        if self.kind == JsonAggKind.ARRAY_AGG:
            inner = self.args[0]
            if db_type == DatabaseType.POSTGRESQL:
                if self.distinct:
                    inner = f"DISTINCT {inner}"
                if self.order_by:
                    inner += f" ORDER BY {self.order_by}"
            elif self.distinct or self.order_by:
                logger.debug("%s ignores DISTINCT/ORDER BY in JSON array aggregation", db_type.display_name)
            return f"{names[0]}({inner})"
        if self.kind == JsonAggKind.OBJECT_AGG:
            return f"{names[1]}({', '.join(self.args)})"
        if self.kind == JsonAggKind.BUILD_OBJECT:
            return f"{names[2]}({self._object_args()})"
        return f"{names[3]}({', '.join(self.args)})"


@dataclass(frozen=True)
class JsonIndex:
    name: str
    table: str
    column: str
    path: Optional[str] = None
    gin: bool = True

    @staticmethod
    def builder(name: str) -> "JsonIndexBuilder":
        return JsonIndexBuilder(name)

    def to_postgres_sql(self) -> str:
        if self.path is None:
            return f"CREATE INDEX {self.name} ON {self.table} USING GIN ({self.column});"
        method = "GIN" if self.gin else "BTREE"
        return (
            f"CREATE INDEX {self.name} ON {self.table} USING {method} "
            f"(({self.column} -> '{escape_string(self.path)}'));"
        )

    def to_mysql_sql(self) -> list[str]:
        """Generated column plus index; MySQL cannot index JSON directly."""
        if self.path is None:
            raise UnsupportedError(
                DatabaseType.MYSQL.display_name,
                "indexing a whole JSON column; give a path"
            )
        generated = f"{self.table}_{self.column}_{'_'.join(_path_parts(self.path))}"
        return [
            f"ALTER TABLE {self.table} ADD COLUMN {generated} VARCHAR(255) GENERATED ALWAYS AS "
            f"(JSON_UNQUOTE(JSON_EXTRACT({self.column}, {_dollar_path(self.path)}))) STORED;",
            f"CREATE INDEX {self.name} ON {self.table} ({generated});",
        ]

    def to_sql(self, db_type: DialectLike = None) -> list[str]:
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return [self.to_postgres_sql()]
        if db_type == DatabaseType.MYSQL:
            return self.to_mysql_sql()
        raise UnsupportedError(db_type.display_name, "JSON indexes")


class JsonIndexBuilder:
    def __init__(self, name: str):
        self._name = name
        self._table: Optional[str] = None
        self._column: Optional[str] = None
        self._path: Optional[str] = None
        self._gin = True

    def on_table(self, table: str) -> "JsonIndexBuilder":
        self._table = table
        return self

    def column(self, column: str) -> "JsonIndexBuilder":
        self._column = column
        return self

    def path(self, path: str) -> "JsonIndexBuilder":
        self._path = path
        return self

    def gin(self) -> "JsonIndexBuilder":
        self._gin = True
        return self

    def btree(self) -> "JsonIndexBuilder":
        self._gin = False
        return self

    def build(self) -> JsonIndex:
        if not self._table:
            raise InvalidInputError("table", "call on_table()")
        if not self._column:
            raise InvalidInputError("column", "call column()")
        return JsonIndex(self._name, self._table, self._column, self._path, self._gin)
