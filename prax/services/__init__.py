# prax/services/__init__.py
"""Schema services: parsing, validation, policy compilation, SQL checks."""

from prax.services.parser import parse_schema, parse_schema_file, PRAX_GRAMMAR
from prax.services.validator import SchemaValidator, validate_schema
from prax.services.policy_compiler import (
    PolicyCompiler,
    translate_predicate,
    to_postgres_sql,
    to_postgres_sql_all,
    to_mssql_statements,
    enable_rls_sql,
    compile_schema_policies,
)
from prax.services.sql_checker import SQLSyntaxChecker

__all__ = [
    "parse_schema",
    "parse_schema_file",
    "PRAX_GRAMMAR",
    "SchemaValidator",
    "validate_schema",
    "PolicyCompiler",
    "translate_predicate",
    "to_postgres_sql",
    "to_postgres_sql_all",
    "to_mssql_statements",
    "enable_rls_sql",
    "compile_schema_policies",
    "SQLSyntaxChecker",
]
