# prax/query/trigger.py
"""Trigger definitions and per-dialect CREATE/DROP TRIGGER SQL."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from prax.query.dialect import DatabaseType, DialectLike, resolve_dialect
from prax.utils.exceptions import InvalidInputError, UnsupportedError


_NEW_REF = re.compile(r"\bNEW\.", re.IGNORECASE)
_OLD_REF = re.compile(r"\bOLD\.", re.IGNORECASE)


class TriggerTiming(str, Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"
    INSTEAD_OF = "INSTEAD OF"


class TriggerEvent(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    TRUNCATE = "TRUNCATE"


class TriggerLevel(str, Enum):
    ROW = "FOR EACH ROW"
    STATEMENT = "FOR EACH STATEMENT"


@dataclass(frozen=True)
class TriggerCondition:
    """A WHEN condition over OLD/NEW row references."""

    expression: str

    @classmethod
    def column_changed(cls, column: str) -> "TriggerCondition":
        return cls(f"OLD.{column} IS DISTINCT FROM NEW.{column}")

    @classmethod
    def new_not_null(cls, column: str) -> "TriggerCondition":
        return cls(f"NEW.{column} IS NOT NULL")

    @classmethod
    def old_was_null(cls, column: str) -> "TriggerCondition":
        return cls(f"OLD.{column} IS NULL")

    def and_(self, other: "TriggerCondition") -> "TriggerCondition":
        return TriggerCondition(f"({self.expression}) AND ({other.expression})")

    def or_(self, other: "TriggerCondition") -> "TriggerCondition":
        return TriggerCondition(f"({self.expression}) OR ({other.expression})")


@dataclass(frozen=True)
class TriggerAction:
    """Either a function call (``function`` set) or inline SQL statements."""

    function: Optional[str] = None
    args: tuple[str, ...] = ()
    statements: tuple[str, ...] = ()

    @classmethod
    def call(cls, name: str, args: Iterable[str] = ()) -> "TriggerAction":
        return cls(function=name, args=tuple(args))

    @classmethod
    def inline_sql(cls, statements: Iterable[str]) -> "TriggerAction":
        return cls(statements=tuple(statements))

    @property
    def is_function(self) -> bool:
        return self.function is not None


@dataclass(frozen=True)
class Trigger:
    """A trigger on a table or view.

    Events keep the order in which they were added.
    """

    name: str
    table: str
    events: tuple[TriggerEvent, ...]
    action: TriggerAction
    timing: TriggerTiming = TriggerTiming.AFTER
    level: TriggerLevel = TriggerLevel.ROW
    schema: Optional[str] = None
    update_of: tuple[str, ...] = ()
    condition: Optional[TriggerCondition] = None
    comment: Optional[str] = None

    @staticmethod
    def builder(name: str) -> "TriggerBuilder":
        return TriggerBuilder(name)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name

    @property
    def qualified_table(self) -> str:
        return f"{self.schema}.{self.table}" if self.schema else self.table

    def _event_sql(self, event: TriggerEvent) -> str:
        if event == TriggerEvent.UPDATE and self.update_of:
            return f"UPDATE OF {', '.join(self.update_of)}"
        return event.value

    def _single_event(self, db_type: DatabaseType) -> TriggerEvent:
        if len(self.events) != 1:
            raise UnsupportedError(
                db_type.display_name,
                "triggers fire on exactly one event; create one trigger per event"
            )
        return self.events[0]

    def _reject_statement_level(self, db_type: DatabaseType) -> None:
        if self.level == TriggerLevel.STATEMENT:
            raise UnsupportedError(db_type.display_name, "statement-level triggers")

    def _reject_truncate(self, db_type: DatabaseType) -> None:
        if TriggerEvent.TRUNCATE in self.events:
            raise UnsupportedError(db_type.display_name, "TRUNCATE triggers")

    def _mysql_guard(self, event: TriggerEvent) -> Optional[str]:
        """IF condition standing in for ``UPDATE OF`` and ``WHEN``."""
        guards = []
        if event == TriggerEvent.UPDATE and self.update_of:
            guards.append(" OR ".join(f"NOT (OLD.{c} <=> NEW.{c})" for c in self.update_of))
        if self.condition is not None:
            guards.append(self.condition.expression)
        if not guards:
            return None
        if len(guards) == 1:
            return guards[0]
        return " AND ".join(f"({g})" for g in guards)

    def _mssql_guards(self) -> list[str]:
        """``IF ... RETURN`` lines that skip the body.

        SQL Server triggers fire once per statement, so a WHEN condition
        passes when any row in ``inserted`` (NEW) or ``deleted`` (OLD)
        satisfies it.
        """
        db_type = DatabaseType.MSSQL
        guards = []
        if self.update_of and TriggerEvent.UPDATE in self.events:
            changed = " OR ".join(f"UPDATE({c})" for c in self.update_of)
            if self.events == (TriggerEvent.UPDATE,):
                guards.append(f"IF NOT ({changed}) RETURN;")
            else:
                # only UPDATE statements fill both pseudo-tables
                guards.append(
                    "IF EXISTS (SELECT 1 FROM inserted) AND EXISTS (SELECT 1 FROM deleted) "
                    f"AND NOT ({changed}) RETURN;"
                )
        if self.condition is not None:
            expr = self.condition.expression
            uses_new = _NEW_REF.search(expr) is not None
            uses_old = _OLD_REF.search(expr) is not None
            if uses_new and uses_old:
                raise UnsupportedError(
                    db_type.display_name,
                    "WHEN conditions comparing OLD and NEW rows; join inserted and deleted in the body"
                )
            if uses_new:
                guards.append(f"IF NOT EXISTS (SELECT 1 FROM inserted WHERE {_NEW_REF.sub('inserted.', expr)}) RETURN;")
            elif uses_old:
                guards.append(f"IF NOT EXISTS (SELECT 1 FROM deleted WHERE {_OLD_REF.sub('deleted.', expr)}) RETURN;")
            else:
                guards.append(f"IF NOT ({expr}) RETURN;")
        return guards

    def to_postgres_sql(self) -> str:
        if not self.action.is_function:
            raise UnsupportedError(
                DatabaseType.POSTGRESQL.display_name,
                "triggers must execute a function, not inline SQL"
            )
        events = " OR ".join(self._event_sql(e) for e in self.events)
        sql = (
            f"CREATE TRIGGER {self.name}\n"
            f"    {self.timing.value} {events}\n"
            f"    ON {self.qualified_table}\n"
            f"    {self.level.value}\n"
        )
        if self.condition is not None:
            sql += f"    WHEN ({self.condition.expression})\n"
        return sql + f"    EXECUTE FUNCTION {self.action.function}({', '.join(self.action.args)});"

    def to_mysql_sql(self) -> str:
        db_type = DatabaseType.MYSQL
        self._reject_statement_level(db_type)
        if self.timing == TriggerTiming.INSTEAD_OF:
            raise UnsupportedError(db_type.display_name, "INSTEAD OF triggers")
        self._reject_truncate(db_type)
        event = self._single_event(db_type)
        sql = (
            f"CREATE TRIGGER {self.name}\n"
            f"    {self.timing.value} {event.value}\n"
            f"    ON {db_type.quote_identifier(self.table)}\n"
            f"    FOR EACH ROW\n"
        )
        if self.action.is_function:
            statements = [f"CALL {self.action.function}({', '.join(self.action.args)})"]
        else:
            statements = list(self.action.statements)
        guard = self._mysql_guard(event)
        if guard is not None:
            body = "".join(f"        {stmt};\n" for stmt in statements)
            return sql + f"BEGIN\n    IF {guard} THEN\n{body}    END IF;\nEND;"
        if len(statements) == 1:
            return sql + f"    {statements[0]};"
        body = "".join(f"    {stmt};\n" for stmt in statements)
        return sql + f"BEGIN\n{body}END;"

    def to_sqlite_sql(self) -> str:
        db_type = DatabaseType.SQLITE
        self._reject_statement_level(db_type)
        if self.schema:
            raise UnsupportedError(db_type.display_name, "schema-qualified trigger names")
        if self.action.is_function:
            raise UnsupportedError(db_type.display_name, "triggers must use inline SQL, not function calls")
        self._reject_truncate(db_type)
        event = self._single_event(db_type)
        sql = (
            f"CREATE TRIGGER {self.name}\n"
            f"    {self.timing.value} {self._event_sql(event)}\n"
            f"    ON {db_type.quote_identifier(self.table)}\n"
            f"    FOR EACH ROW\n"
        )
        if self.condition is not None:
            sql += f"    WHEN {self.condition.expression}\n"
        body = "".join(f"    {stmt};\n" for stmt in self.action.statements)
        return sql + f"BEGIN\n{body}END;"

    def to_mssql_sql(self) -> str:
        if self.timing == TriggerTiming.BEFORE:
            raise UnsupportedError(
                DatabaseType.MSSQL.display_name,
                "BEFORE triggers; use INSTEAD OF or AFTER"
            )
        self._reject_truncate(DatabaseType.MSSQL)
        events = ", ".join(e.value for e in self.events)
        sql = (
            f"CREATE TRIGGER {self.qualified_name}\n"
            f"ON {self.qualified_table}\n"
            f"{self.timing.value} {events}\n"
            "AS\nBEGIN\n    SET NOCOUNT ON;\n"
        )
        sql += "".join(f"    {guard}\n" for guard in self._mssql_guards())
        if self.action.is_function:
            call = f"EXEC {self.action.function}"
            if self.action.args:
                call += " " + ", ".join(self.action.args)
            sql += f"    {call};\n"
        else:
            sql += "".join(f"    {stmt};\n" for stmt in self.action.statements)
        return sql + "END;"

    def to_sql(self, db_type: DialectLike = None) -> str:
        """Render ``CREATE TRIGGER`` for the dialect.

        Raises:
            UnsupportedError: When the trigger uses a feature the dialect lacks.
        """
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return self.to_postgres_sql()
        if db_type == DatabaseType.MYSQL:
            return self.to_mysql_sql()
        if db_type == DatabaseType.SQLITE:
            return self.to_sqlite_sql()
        return self.to_mssql_sql()

    def drop_sql(self, db_type: DialectLike = None) -> str:
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return f"DROP TRIGGER IF EXISTS {self.name} ON {self.qualified_table};"
        if db_type == DatabaseType.MSSQL:
            return f"DROP TRIGGER IF EXISTS {self.qualified_name};"
        return f"DROP TRIGGER IF EXISTS {self.name};"


class TriggerBuilder:
    """Chainable builder for ``Trigger``."""

    def __init__(self, name: str):
        self._name = name
        self._schema: Optional[str] = None
        self._table: Optional[str] = None
        self._timing = TriggerTiming.AFTER
        self._events: list[TriggerEvent] = []
        self._level = TriggerLevel.ROW
        self._update_of: list[str] = []
        self._condition: Optional[TriggerCondition] = None
        self._action: Optional[TriggerAction] = None
        self._comment: Optional[str] = None

    def schema(self, schema: str) -> "TriggerBuilder":
        self._schema = schema
        return self

    def on_table(self, table: str) -> "TriggerBuilder":
        self._table = table
        return self

    on_view = on_table

    def timing(self, timing: TriggerTiming) -> "TriggerBuilder":
        self._timing = timing
        return self

    def before(self) -> "TriggerBuilder":
        return self.timing(TriggerTiming.BEFORE)

    def after(self) -> "TriggerBuilder":
        return self.timing(TriggerTiming.AFTER)

    def instead_of(self) -> "TriggerBuilder":
        return self.timing(TriggerTiming.INSTEAD_OF)

    def event(self, event: TriggerEvent) -> "TriggerBuilder":
        if event not in self._events:
            self._events.append(event)
        return self

    def events(self, events: Iterable[TriggerEvent]) -> "TriggerBuilder":
        for event in events:
            self.event(event)
        return self

    def on_insert(self) -> "TriggerBuilder":
        return self.event(TriggerEvent.INSERT)

    def on_update(self) -> "TriggerBuilder":
        return self.event(TriggerEvent.UPDATE)

    def on_delete(self) -> "TriggerBuilder":
        return self.event(TriggerEvent.DELETE)

    def on_truncate(self) -> "TriggerBuilder":
        return self.event(TriggerEvent.TRUNCATE)

    def level(self, level: TriggerLevel) -> "TriggerBuilder":
        self._level = level
        return self

    def for_each_row(self) -> "TriggerBuilder":
        return self.level(TriggerLevel.ROW)

    def for_each_statement(self) -> "TriggerBuilder":
        return self.level(TriggerLevel.STATEMENT)

    def update_of(self, columns: Iterable[str]) -> "TriggerBuilder":
        self._update_of = list(columns)
        return self

    def when(self, condition: TriggerCondition) -> "TriggerBuilder":
        self._condition = condition
        return self

    def when_expr(self, expression: str) -> "TriggerBuilder":
        return self.when(TriggerCondition(expression))

    def execute_function(self, name: str, args: Iterable[str] = ()) -> "TriggerBuilder":
        self._action = TriggerAction.call(name, args)
        return self

    def execute_sql(self, statements: Iterable[str]) -> "TriggerBuilder":
        self._action = TriggerAction.inline_sql(statements)
        return self

    def comment(self, comment: str) -> "TriggerBuilder":
        self._comment = comment
        return self

    def build(self) -> Trigger:
        if not self._table:
            raise InvalidInputError("table", "trigger must specify a table with on_table()")
        if not self._events:
            raise InvalidInputError("events", "trigger must have at least one event")
        if self._action is None:
            raise InvalidInputError("action", "use execute_function() or execute_sql()")
        return Trigger(
            name=self._name,
            table=self._table,
            events=tuple(self._events),
            action=self._action,
            timing=self._timing,
            level=self._level,
            schema=self._schema,
            update_of=tuple(self._update_of),
            condition=self._condition,
            comment=self._comment,
        )


# === Patterns ===

def audit_trigger(table: str, events: Iterable[TriggerEvent], function: str = "audit_trigger_func") -> TriggerBuilder:
    """Row-level AFTER trigger handing OLD/NEW rows to an audit function."""
    return (
        Trigger.builder(f"{table}_audit_trigger")
        .on_table(table).after().events(events).for_each_row()
        .execute_function(function)
    )


def soft_delete_trigger(table: str, deleted_at_column: str = "deleted_at") -> TriggerBuilder:
    return (
        Trigger.builder(f"{table}_soft_delete")
        .on_table(table).instead_of().on_delete().for_each_row()
        .execute_sql([f"UPDATE {table} SET {deleted_at_column} = NOW() WHERE id = OLD.id"])
    )


def updated_at_trigger(table: str, column: str = "updated_at") -> TriggerBuilder:
    return (
        Trigger.builder(f"{table}_updated_at")
        .on_table(table).before().on_update().for_each_row()
        .execute_sql([f"SET NEW.{column} = NOW()"])
    )


def validation_trigger(table: str, name: str, condition: str, error_message: str) -> TriggerBuilder:
    """BEFORE INSERT/UPDATE trigger raising ``error_message`` when ``condition`` holds."""
    message = error_message.replace("'", "''")
    return (
        Trigger.builder(name)
        .on_table(table).before().on_insert().on_update().for_each_row()
        .when_expr(condition)
        .execute_sql([f"RAISE EXCEPTION '{message}'"])
    )
