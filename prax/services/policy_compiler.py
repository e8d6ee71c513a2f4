# prax/services/policy_compiler.py
"""Row-level security policy compilation.

PostgreSQL policies compile to a single ``CREATE POLICY`` statement. SQL
Server needs a schema, a schema-bound predicate function and a security
policy, each created in its own batch.
"""

import logging
from typing import Optional

from prax.config import get_settings
from prax.models import MssqlPolicyStatements, Policy, PolicyCommand, Schema
from prax.query.dialect import DatabaseType, DialectLike, resolve_dialect
from prax.utils.exceptions import UnsupportedError

logger = logging.getLogger("prax.policy")


# PostgreSQL functions with a fixed SQL Server equivalent
MSSQL_SUBSTITUTIONS = (
    ("current_user_id()", "CAST(SESSION_CONTEXT(N'UserId') AS INT)"),
    ("auth.uid()", "CAST(SESSION_CONTEXT(N'UserId') AS INT)"),
    ("current_setting('app.current_org')", "SESSION_CONTEXT(N'OrgId')"),
)

# Constructs left behind after substitution that SQL Server cannot run
UNTRANSLATABLE_MARKERS = ("::", "current_setting(", "auth.", "current_user_id")


def translate_predicate(expr: str) -> tuple[str, list[str]]:
    """Translate a PostgreSQL predicate to T-SQL by substitution.

    Args:
        expr: The PostgreSQL ``USING`` expression.

    Returns:
        The translated expression and the leftover PostgreSQL constructs.
    """
    translated = expr
    for pg_text, mssql_text in MSSQL_SUBSTITUTIONS:
        translated = translated.replace(pg_text, mssql_text)
    leftovers = [m for m in UNTRANSLATABLE_MARKERS if m in translated]
    return translated, leftovers


class PolicyCompiler:
    """Compiles policies to PostgreSQL or SQL Server DDL."""

    def __init__(self, default_mssql_schema: Optional[str] = None):
        """Initialize the compiler.

        Args:
            default_mssql_schema: Schema for SQL Server policies that do not
                name one. Defaults to ``Settings.mssql_policy_schema``.
        """
        self.default_mssql_schema = default_mssql_schema or get_settings().mssql_policy_schema

    def to_postgres_sql(self, policy: Policy, table: Optional[str] = None) -> str:
        """Render a ``CREATE POLICY`` statement.

        PostgreSQL policies cover one command; when several are listed the
        first one is used. See ``to_postgres_sql_all``.

        Args:
            policy: The policy.
            table: Table name. Defaults to the policy's model name.

        Returns:
            The statement, without a trailing semicolon.
        """
        command = None
        if policy.commands and PolicyCommand.ALL not in policy.commands:
            command = policy.commands[0]
        return self._postgres_statement(policy, policy.name, command, table or policy.table.name)

    def to_postgres_sql_all(self, policy: Policy, table: Optional[str] = None) -> list[str]:
        """Render one ``CREATE POLICY`` per listed command.

        A single-command (or ``ALL``) policy keeps its name; otherwise each
        statement is named ``<policy>_<command>``.
        """
        table = table or policy.table.name
        if PolicyCommand.ALL in policy.commands or len(policy.commands) <= 1:
            return [self.to_postgres_sql(policy, table)]
        return [
            self._postgres_statement(policy, f"{policy.name}_{command.value.lower()}", command, table)
            for command in policy.commands
        ]

    def _postgres_statement(
        self,
        policy: Policy,
        name: str,
        command: Optional[PolicyCommand],
        table: str
    ) -> str:
        sql = f"CREATE POLICY {name} ON {table}"
        if policy.is_restrictive():
            sql += " AS RESTRICTIVE"
        if command is not None:
            sql += f" FOR {command.value}"
        sql += f" TO {', '.join(policy.effective_roles())}"
        if policy.using_expr:
            sql += f" USING ({policy.using_expr})"
        if policy.check_expr:
            sql += f" WITH CHECK ({policy.check_expr})"
        return sql

    def enable_rls_sql(self, table: str) -> str:
        return f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY"

    def mssql_predicate(self, policy: Policy) -> str:
        """T-SQL predicate for the policy's filter function."""
        if policy.mssql_using_expr:
            return policy.mssql_using_expr
        if not policy.using_expr:
            return "1 = 1"
        translated, leftovers = translate_predicate(policy.using_expr)
        if leftovers:
            logger.warning(
                "Policy %s: predicate still contains PostgreSQL constructs %s after translation; "
                "set mssqlUsing to supply a T-SQL predicate",
                policy.name, leftovers
            )
        return translated

    def to_mssql_statements(
        self,
        policy: Policy,
        column: str,
        table: Optional[str] = None
    ) -> MssqlPolicyStatements:
        """Render the SQL Server schema, predicate function and security policy.

        Args:
            policy: The policy.
            column: Column passed to the predicate function.
            table: Table name. Defaults to the policy's model name.

        Returns:
            The three statements.
        """
        table = table or policy.table.name
        schema = policy.effective_mssql_schema(self.default_mssql_schema)
        func_name = policy.mssql_predicate_function_name()
        predicate = self.mssql_predicate(policy)

        function_sql = (
            f"CREATE FUNCTION {schema}.{func_name}(@{column} AS INT)\n"
            f"    RETURNS TABLE\n"
            f"WITH SCHEMABINDING\n"
            f"AS\n"
            f"    RETURN SELECT 1 AS fn_securitypredicate_result\n"
            f"    WHERE {predicate}"
        )

        predicates = []
        if policy.using_expr or policy.mssql_using_expr:
            predicates.append(f"ADD FILTER PREDICATE {schema}.{func_name}({column}) ON {table}")
        for op in policy.effective_block_operations():
            predicates.append(f"ADD BLOCK PREDICATE {schema}.{func_name}({column}) ON {table} {op.value}")

        policy_sql = (
            f"CREATE SECURITY POLICY {schema}.{policy.name}\n"
            + ",\n".join(predicates)
            + "\nWITH (STATE = ON)"
        )

        return MssqlPolicyStatements(
            schema_sql=f"CREATE SCHEMA {schema}",
            function_sql=function_sql,
            policy_sql=policy_sql,
        )

    def compile_schema_policies(
        self,
        schema: Schema,
        db_type: DialectLike = None,
        mssql_column: str = "UserId"
    ) -> list[str]:
        """Compile every policy in a schema.

        Table names come from each model's ``@@map``. For PostgreSQL the
        ``ENABLE ROW LEVEL SECURITY`` statement of each table precedes its
        first policy.

        Args:
            schema: A validated schema.
            db_type: PostgreSQL or SQL Server.
            mssql_column: Predicate column for SQL Server policies.

        Returns:
            Statements in schema order.
        """
        db_type = resolve_dialect(db_type)
        if db_type not in (DatabaseType.POSTGRESQL, DatabaseType.MSSQL):
            raise UnsupportedError(db_type.display_name, "row-level security policies")

        statements = []
        enabled = set()
        for policy in schema.policies:
            model = schema.get_model(policy.table.name)
            table = model.table_name() if model else policy.table.name
            if db_type == DatabaseType.POSTGRESQL:
                if table not in enabled:
                    statements.append(self.enable_rls_sql(table))
                    enabled.add(table)
                statements.extend(self.to_postgres_sql_all(policy, table))
            else:
                statements.append(self.to_mssql_statements(policy, mssql_column, table).to_sql())
        logger.info("Compiled %d policies for %s", len(schema.policies), db_type.display_name)
        return statements


def to_postgres_sql(policy: Policy, table: Optional[str] = None) -> str:
    return PolicyCompiler().to_postgres_sql(policy, table)


def to_postgres_sql_all(policy: Policy, table: Optional[str] = None) -> list[str]:
    return PolicyCompiler().to_postgres_sql_all(policy, table)


def to_mssql_statements(policy: Policy, column: str, table: Optional[str] = None) -> MssqlPolicyStatements:
    return PolicyCompiler().to_mssql_statements(policy, column, table)


def enable_rls_sql(table: str) -> str:
    return PolicyCompiler().enable_rls_sql(table)


def compile_schema_policies(
    schema: Schema,
    db_type: DialectLike = None,
    mssql_column: str = "UserId"
) -> list[str]:
    return PolicyCompiler().compile_schema_policies(schema, db_type, mssql_column)
