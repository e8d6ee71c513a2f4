# tests/test_procedure.py
"""Tests for stored procedure calls and server-side MongoDB functions."""

import pytest

from prax.mongo.functions import MongoAccumulator, MongoFunction
from prax.query.dialect import DatabaseType
from prax.query.procedure import Parameter, ParameterMode, ProcedureCall
from prax.utils.exceptions import InvalidInputError, UnsupportedError


class TestParameter:
    """Parameter mode tests."""

    def test_modes(self):
        assert Parameter.input("a", 1).is_input
        assert not Parameter.input("a", 1).is_output
        assert Parameter.output("b").is_output
        assert not Parameter.output("b").is_input
        inout = Parameter.inout("c", 3, "INT")
        assert inout.is_input and inout.is_output
        assert inout.mode == ParameterMode.INOUT


class TestProcedureCall:
    """ProcedureCall rendering tests."""

    def test_postgres_call(self):
        call = ProcedureCall("get_orders").param("user_id", 42).param("status", "open")
        assert call.to_sql(DatabaseType.POSTGRESQL) == ("CALL get_orders($1, $2)", [42, "open"])

    def test_postgres_function(self):
        call = ProcedureCall.function("total_spent", schema="billing").param("user_id", 42)
        assert call.to_sql(DatabaseType.POSTGRESQL) == ("SELECT billing.total_spent($1)", [42])

    def test_mysql(self):
        call = ProcedureCall("get_orders").param("user_id", 42)
        assert call.to_sql(DatabaseType.MYSQL) == ("CALL get_orders(?)", [42])

    def test_sqlite_function_only(self):
        assert ProcedureCall.function("slugify").param("s", "A B").to_sql(DatabaseType.SQLITE) == (
            "SELECT slugify(?)", ["A B"]
        )
        with pytest.raises(UnsupportedError):
            ProcedureCall("get_orders").to_sql(DatabaseType.SQLITE)

    def test_mssql_exec(self):
        call = ProcedureCall("get_orders", schema="dbo").param("user_id", 42).param("limit", 10)
        assert call.to_sql(DatabaseType.MSSQL) == ("EXEC dbo.get_orders @P1, @P2", [42, 10])

    def test_mssql_exec_no_params(self):
        assert ProcedureCall("refresh").to_sql(DatabaseType.MSSQL) == ("EXEC refresh", [])

    def test_mssql_outputs(self):
        call = (
            ProcedureCall("transfer")
            .param("source", 1)
            .out_param("new_balance", "DECIMAL(10, 2)")
            .param("target", 2)
        )
        sql, params = call.to_sql(DatabaseType.MSSQL)
        assert sql == (
            "DECLARE @new_balance DECIMAL(10, 2); "
            "EXEC transfer @P1, @new_balance OUTPUT, @P2; "
            "SELECT @new_balance AS new_balance"
        )
        assert params == [1, 2]

    def test_mssql_inout_numbered_in_input_order(self):
        call = ProcedureCall("bump").param("a", "x").inout_param("counter", 5, "INT").out_param("status")
        sql, params = call.to_sql(DatabaseType.MSSQL)
        assert sql == (
            "DECLARE @counter INT = @P2, @status SQL_VARIANT; "
            "EXEC bump @P1, @counter OUTPUT, @status OUTPUT; "
            "SELECT @counter AS counter, @status AS status"
        )
        assert params == ["x", 5]

    def test_out_params_carry_no_value(self):
        call = ProcedureCall("p").out_param("x").param("y", 1)
        assert call.input_values() == [1]
        assert call.has_outputs

    def test_default_dialect(self):
        call = ProcedureCall("p", db_type="mysql").param("a", 1)
        assert call.to_sql() == ("CALL p(?)", [1])
        assert call.with_db_type("postgres").to_sql() == ("CALL p($1)", [1])

    def test_empty_name(self):
        with pytest.raises(InvalidInputError):
            ProcedureCall("")


class TestProcedureResult:
    """ProcedureResult collection tests."""

    def test_outputs_from_row(self):
        call = ProcedureCall("transfer").param("source", 1).out_param("new_balance")
        result = call.result_from_row({"new_balance": 90}, rows_affected=2)
        assert result.get("new_balance") == 90
        assert result.get("missing", "n/a") == "n/a"
        assert result.rows_affected == 2
        assert result.return_value is None

    def test_function_return_value(self):
        call = ProcedureCall.function("total_spent").param("user_id", 1)
        assert call.result_from_row({"total_spent": 12.5}).return_value == 12.5


class TestMongoFunctions:
    """$function and $accumulator tests."""

    def test_function(self):
        fn = MongoFunction("function(a, b) { return a + b; }", ("$x", "$y"))
        assert fn.to_expression() == {
            "$function": {"body": "function(a, b) { return a + b; }", "args": ["$x", "$y"], "lang": "js"}
        }

    def test_empty_body(self):
        with pytest.raises(InvalidInputError):
            MongoFunction("   ")

    def test_accumulator_key_order(self):
        acc = MongoAccumulator(
            init="function() { return 0; }",
            accumulate="function(s, v) { return s + v; }",
            merge="function(a, b) { return a + b; }",
            accumulate_args=("$amount",),
            init_args=(),
            finalize="function(s) { return s; }",
        )
        expression = acc.to_expression()["$accumulator"]
        assert list(expression) == [
            "init", "initArgs", "accumulate", "accumulateArgs", "merge", "finalize", "lang"
        ]
        assert expression["accumulateArgs"] == ["$amount"]

    def test_accumulator_optional_keys(self):
        acc = MongoAccumulator("i", "a", "m")
        assert "initArgs" not in acc.to_expression()["$accumulator"]
        assert "finalize" not in acc.to_expression()["$accumulator"]
