# prax/query/procedure.py
"""Stored procedure and function calls.

Only IN and INOUT parameters carry values to the server. OUT parameters are
declared and read back on SQL Server; the other dialects return them as a
result row or not at all.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from prax.query.dialect import DatabaseType, DialectLike, resolve_dialect
from prax.utils.exceptions import InvalidInputError, UnsupportedError


MSSQL_DEFAULT_OUTPUT_TYPE = "SQL_VARIANT"


class ParameterMode(str, Enum):
    IN = "in"
    OUT = "out"
    INOUT = "inout"


@dataclass(frozen=True)
class Parameter:
    """A named procedure argument."""

    name: str
    value: Any = None
    mode: ParameterMode = ParameterMode.IN
    type_hint: Optional[str] = None

    @classmethod
    def input(cls, name: str, value: Any) -> "Parameter":
        return cls(name, value, ParameterMode.IN)

    @classmethod
    def output(cls, name: str, type_hint: Optional[str] = None) -> "Parameter":
        return cls(name, None, ParameterMode.OUT, type_hint)

    @classmethod
    def inout(cls, name: str, value: Any, type_hint: Optional[str] = None) -> "Parameter":
        return cls(name, value, ParameterMode.INOUT, type_hint)

    @property
    def is_input(self) -> bool:
        return self.mode in (ParameterMode.IN, ParameterMode.INOUT)

    @property
    def is_output(self) -> bool:
        return self.mode in (ParameterMode.OUT, ParameterMode.INOUT)


@dataclass
class ProcedureResult:
    """Outcome of a procedure call as reported by an execution layer."""

    outputs: dict[str, Any] = field(default_factory=dict)
    return_value: Any = None
    rows_affected: Optional[int] = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.outputs.get(name, default)


class ProcedureCall:
    """A call to a stored procedure or function.

    Example:
        >>> ProcedureCall("get_orders").param("user_id", 42).to_sql("postgresql")
        ('CALL get_orders($1)', [42])
    """

    def __init__(
        self,
        name: str,
        is_function: bool = False,
        schema: Optional[str] = None,
        db_type: DialectLike = None
    ):
        if not name:
            raise InvalidInputError("name", "procedure name is empty")
        self.name = name
        self.is_function = is_function
        self.schema = schema
        self.db_type = resolve_dialect(db_type)
        self.parameters: list[Parameter] = []

    @classmethod
    def function(cls, name: str, schema: Optional[str] = None, db_type: DialectLike = None) -> "ProcedureCall":
        return cls(name, is_function=True, schema=schema, db_type=db_type)

    def with_schema(self, schema: str) -> "ProcedureCall":
        self.schema = schema
        return self

    def with_db_type(self, db_type: DialectLike) -> "ProcedureCall":
        self.db_type = resolve_dialect(db_type)
        return self

    def param(self, name: str, value: Any) -> "ProcedureCall":
        return self.add_parameter(Parameter.input(name, value))

    in_param = param

    def out_param(self, name: str, type_hint: Optional[str] = None) -> "ProcedureCall":
        return self.add_parameter(Parameter.output(name, type_hint))

    def inout_param(self, name: str, value: Any, type_hint: Optional[str] = None) -> "ProcedureCall":
        return self.add_parameter(Parameter.inout(name, value, type_hint))

    def add_parameter(self, parameter: Parameter) -> "ProcedureCall":
        self.parameters.append(parameter)
        return self

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name

    @property
    def has_outputs(self) -> bool:
        return any(p.is_output for p in self.parameters)

    def input_values(self) -> list[Any]:
        return [p.value for p in self.parameters if p.is_input]

    def _placeholders(self, db_type: DatabaseType) -> str:
        count = len(self.input_values())
        return ", ".join(db_type.placeholder(i) for i in range(1, count + 1))

    def to_postgres_sql(self) -> tuple[str, list[Any]]:
        keyword = "SELECT" if self.is_function else "CALL"
        return (
            f"{keyword} {self.qualified_name}({self._placeholders(DatabaseType.POSTGRESQL)})",
            self.input_values(),
        )

    def to_mysql_sql(self) -> tuple[str, list[Any]]:
        keyword = "SELECT" if self.is_function else "CALL"
        return (
            f"{keyword} {self.qualified_name}({self._placeholders(DatabaseType.MYSQL)})",
            self.input_values(),
        )

    def to_sqlite_sql(self) -> tuple[str, list[Any]]:
        """SQLite only has application-defined functions.

        Raises:
            UnsupportedError: For procedure calls.
        """
        if not self.is_function:
            raise UnsupportedError(
                DatabaseType.SQLITE.display_name,
                "stored procedures; register an application-defined function instead"
            )
        return (
            f"SELECT {self.qualified_name}({self._placeholders(DatabaseType.SQLITE)})",
            self.input_values(),
        )

    def to_mssql_sql(self) -> tuple[str, list[Any]]:
        """Render an EXEC, declaring and selecting OUT variables when present.

        Input placeholders are numbered in the order the inputs appear.
        """
        db_type = DatabaseType.MSSQL
        if self.is_function:
            return f"SELECT {self.qualified_name}({self._placeholders(db_type)})", self.input_values()
        if not self.has_outputs:
            sql = f"EXEC {self.qualified_name}"
            if self.parameters:
                sql += f" {self._placeholders(db_type)}"
            return sql, self.input_values()

        outputs = [p for p in self.parameters if p.is_output]
        declare = []
        args = []
        index = 0
        for p in self.parameters:
            if p.is_input:
                index += 1
            if p.mode == ParameterMode.IN:
                args.append(db_type.placeholder(index))
                continue
            variable = f"@{p.name} {p.type_hint or MSSQL_DEFAULT_OUTPUT_TYPE}"
            # INOUT variables start from the bound input value
            if p.mode == ParameterMode.INOUT:
                variable += f" = {db_type.placeholder(index)}"
            declare.append(variable)
            args.append(f"@{p.name} OUTPUT")
        declare = ", ".join(declare)
        select = ", ".join(f"@{p.name} AS {p.name}" for p in outputs)
        sql = f"DECLARE {declare}; EXEC {self.qualified_name} {', '.join(args)}; SELECT {select}"
        return sql, self.input_values()

    def to_sql(self, db_type: DialectLike = None) -> tuple[str, list[Any]]:
        db_type = resolve_dialect(db_type) if db_type is not None else self.db_type
        if db_type == DatabaseType.POSTGRESQL:
            return self.to_postgres_sql()
        if db_type == DatabaseType.MYSQL:
            return self.to_mysql_sql()
        if db_type == DatabaseType.SQLITE:
            return self.to_sqlite_sql()
        return self.to_mssql_sql()

    def result_from_row(self, row: dict[str, Any], rows_affected: Optional[int] = None) -> ProcedureResult:
        """Collect OUT parameter values from the row returned by the call."""
        outputs = {p.name: row.get(p.name) for p in self.parameters if p.is_output}
        return_value = None
        if self.is_function and row:
            return_value = next(iter(row.values()))
        return ProcedureResult(outputs, return_value, rows_affected)
