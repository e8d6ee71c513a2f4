# tests/test_policy.py
"""Tests for row-level security policy compilation."""

import logging

import pytest

from prax.models import MssqlBlockOperation, Policy, PolicyCommand, PolicyType
from prax.models.common import Ident
from prax.query.dialect import DatabaseType
from prax.services.parser import parse_schema
from prax.services.policy_compiler import (
    PolicyCompiler,
    compile_schema_policies,
    enable_rls_sql,
    to_mssql_statements,
    to_postgres_sql,
    to_postgres_sql_all,
    translate_predicate,
)
from prax.utils.exceptions import UnsupportedError


def _read_own() -> Policy:
    schema = parse_schema('''
    policy ReadOwn on User {
      for SELECT
      to authenticated
      using "id = auth.uid()"
    }
    ''')
    return schema.get_policy("ReadOwn")


class TestPostgresPolicies:
    """PostgreSQL CREATE POLICY tests."""

    def test_read_own(self):
        """Test the canonical SELECT policy."""
        assert to_postgres_sql(_read_own(), "users") == (
            "CREATE POLICY ReadOwn ON users FOR SELECT TO authenticated USING (id = auth.uid())"
        )

    def test_defaults_to_model_name(self):
        """Test that the table defaults to the policy target."""
        assert to_postgres_sql(_read_own()).startswith("CREATE POLICY ReadOwn ON User ")

    def test_all_commands_and_public(self):
        """Test that ALL omits FOR and no roles means PUBLIC."""
        policy = Policy(
            name="Tenant",
            table=Ident(name="Doc"),
            policy_type=PolicyType.RESTRICTIVE,
            using_expr="org_id = 1",
            check_expr="org_id = 1",
        )
        assert to_postgres_sql(policy, "docs") == (
            "CREATE POLICY Tenant ON docs AS RESTRICTIVE TO PUBLIC "
            "USING (org_id = 1) WITH CHECK (org_id = 1)"
        )

    def test_using_and_check_both_emitted(self):
        """Test that UPDATE policies carry both clauses."""
        policy = Policy(
            name="Edit",
            table=Ident(name="Doc"),
            commands=[PolicyCommand.UPDATE],
            using_expr="owner = 1",
            check_expr="owner = 1",
        )
        sql = to_postgres_sql(policy)
        assert "USING (owner = 1)" in sql
        assert "WITH CHECK (owner = 1)" in sql

    def test_multi_command_uses_first(self):
        """Test that several commands emit the first one."""
        policy = Policy(
            name="W",
            table=Ident(name="Doc"),
            commands=[PolicyCommand.INSERT, PolicyCommand.DELETE],
            using_expr="true",
            check_expr="true",
        )
        assert " FOR INSERT " in to_postgres_sql(policy)

    def test_multi_command_all(self):
        """Test one statement per command with suffixed names."""
        policy = Policy(
            name="W",
            table=Ident(name="Doc"),
            commands=[PolicyCommand.INSERT, PolicyCommand.DELETE],
            using_expr="true",
            check_expr="true",
        )
        statements = to_postgres_sql_all(policy)
        assert [s.split(" ")[2] for s in statements] == ["W_insert", "W_delete"]
        assert " FOR DELETE " in statements[1]

    def test_enable_rls(self):
        """Test the ALTER TABLE statement."""
        assert enable_rls_sql("users") == "ALTER TABLE users ENABLE ROW LEVEL SECURITY"


class TestMssqlPolicies:
    """SQL Server security policy tests."""

    def test_read_own(self):
        """Test the translated predicate function and policy."""
        statements = to_mssql_statements(_read_own(), "UserId", "users")
        assert statements.schema_sql == "CREATE SCHEMA Security"
        assert "CAST(SESSION_CONTEXT(N'UserId') AS INT)" in statements.function_sql
        assert statements.function_sql.startswith(
            "CREATE FUNCTION Security.fn_ReadOwn_predicate(@UserId AS INT)"
        )
        assert statements.policy_sql.endswith("WITH (STATE = ON)")
        assert "ADD FILTER PREDICATE Security.fn_ReadOwn_predicate(UserId) ON users" in statements.policy_sql

    def test_select_has_no_block_predicates(self):
        """Test that a SELECT-only policy only filters."""
        statements = to_mssql_statements(_read_own(), "UserId", "users")
        assert "BLOCK PREDICATE" not in statements.policy_sql

    def test_all_has_filter_and_four_blocks(self):
        """Test that ALL yields one filter and four block predicates."""
        policy = Policy(
            name="Own",
            table=Ident(name="Doc"),
            using_expr="owner = current_user_id()",
            check_expr="owner = current_user_id()",
        )
        sql = to_mssql_statements(policy, "OwnerId", "docs").policy_sql
        assert sql.count("ADD FILTER PREDICATE") == 1
        assert sql.count("ADD BLOCK PREDICATE") == 4
        for op in MssqlBlockOperation:
            assert f"ON docs {op.value}" in sql

    def test_explicit_block_operations(self):
        """Test that listed block operations replace the defaults."""
        policy = Policy(
            name="Own",
            table=Ident(name="Doc"),
            using_expr="owner = 1",
            mssql_block_operations=[MssqlBlockOperation.BEFORE_DELETE],
        )
        sql = to_mssql_statements(policy, "OwnerId").policy_sql
        assert sql.count("ADD BLOCK PREDICATE") == 1

    def test_using_only_filters(self):
        """Test that ALL without a check expression only filters."""
        policy = Policy(name="Own", table=Ident(name="Doc"), using_expr="owner = 1")
        sql = to_mssql_statements(policy, "OwnerId", "docs").policy_sql
        assert sql == (
            "CREATE SECURITY POLICY Security.Own\n"
            "ADD FILTER PREDICATE Security.fn_Own_predicate(OwnerId) ON docs\n"
            "WITH (STATE = ON)"
        )

    def test_explicit_mssql_predicate(self):
        """Test that mssqlUsing bypasses translation."""
        policy = Policy(
            name="Org",
            table=Ident(name="Doc"),
            using_expr="org_id = current_setting('app.org')::int",
            mssql_using_expr="org_id = CAST(SESSION_CONTEXT(N'OrgId') AS INT)",
            mssql_schema="Rls",
        )
        statements = to_mssql_statements(policy, "OrgId")
        assert statements.schema_sql == "CREATE SCHEMA Rls"
        assert "WHERE org_id = CAST(SESSION_CONTEXT(N'OrgId') AS INT)" in statements.function_sql

    def test_lossy_translation_warns(self, caplog):
        """Test that leftover PostgreSQL constructs are logged."""
        policy = Policy(name="Org", table=Ident(name="Doc"), using_expr="org_id = current_setting('x.y')::uuid")
        with caplog.at_level(logging.WARNING, logger="prax.policy"):
            to_mssql_statements(policy, "OrgId")
        assert "mssqlUsing" in caplog.text

    def test_no_using_predicate(self):
        """Test the always-true predicate without a using expression."""
        policy = Policy(name="Ins", table=Ident(name="Doc"), commands=[PolicyCommand.INSERT], check_expr="true")
        statements = to_mssql_statements(policy, "OwnerId")
        assert statements.function_sql.endswith("WHERE 1 = 1")
        assert "FILTER PREDICATE" not in statements.policy_sql

    def test_to_sql_uses_go_batches(self):
        """Test joining the three batches."""
        sql = to_mssql_statements(_read_own(), "UserId").to_sql()
        assert sql.startswith("CREATE SCHEMA Security;\nGO\n\nCREATE FUNCTION")
        assert sql.endswith("WITH (STATE = ON);")

    def test_default_schema_from_compiler(self):
        """Test the compiler-level default schema."""
        statements = PolicyCompiler(default_mssql_schema="Guard").to_mssql_statements(_read_own(), "UserId")
        assert statements.schema_sql == "CREATE SCHEMA Guard"


class TestTranslation:
    """Predicate translation tests."""

    def test_substitutions(self):
        """Test the substitution table."""
        translated, leftovers = translate_predicate(
            "user_id = current_user_id() AND org = current_setting('app.current_org')"
        )
        assert translated == (
            "user_id = CAST(SESSION_CONTEXT(N'UserId') AS INT) AND org = SESSION_CONTEXT(N'OrgId')"
        )
        assert leftovers == []

    def test_leftovers(self):
        """Test detection of untranslatable constructs."""
        _, leftovers = translate_predicate("x = current_setting('a.b')::int")
        assert "::" in leftovers
        assert "current_setting(" in leftovers


class TestSchemaPolicies:
    """Whole-schema compilation tests."""

    def test_postgres(self, blog_schema):
        """Test that RLS is enabled before the first policy on a mapped table."""
        statements = compile_schema_policies(blog_schema, DatabaseType.POSTGRESQL)
        assert statements == [
            "ALTER TABLE users ENABLE ROW LEVEL SECURITY",
            "CREATE POLICY ReadOwn ON users FOR SELECT TO authenticated USING (id = auth.uid())",
        ]

    def test_mssql(self, blog_schema):
        """Test SQL Server compilation."""
        statements = compile_schema_policies(blog_schema, "sqlserver")
        assert len(statements) == 1
        assert "ON users" in statements[0]

    def test_unsupported_dialect(self, blog_schema):
        """Test that MySQL has no RLS."""
        with pytest.raises(UnsupportedError, match="MySQL"):
            compile_schema_policies(blog_schema, DatabaseType.MYSQL)
