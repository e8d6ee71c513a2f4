# prax/utils/constants.py
"""Constants for prax."""

from enum import Enum


class ErrorCode(str, Enum):
    """Error code enumeration."""

    SYNTAX_ERROR = "PRAX_001"
    VALIDATION_FAILED = "PRAX_002"
    UNSUPPORTED_FOR_DIALECT = "PRAX_003"
    INVALID_INPUT = "PRAX_004"
    SCHEMA_LOAD_FAILED = "PRAX_005"
    SQL_CHECK_FAILED = "PRAX_006"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.SYNTAX_ERROR: "Schema source does not match the grammar",
    ErrorCode.VALIDATION_FAILED: "Schema failed validation",
    ErrorCode.UNSUPPORTED_FOR_DIALECT: "Operation is not supported by the target database",
    ErrorCode.INVALID_INPUT: "Builder is missing a required argument",
    ErrorCode.SCHEMA_LOAD_FAILED: "Unable to read schema file",
    ErrorCode.SQL_CHECK_FAILED: "Emitted SQL failed the syntax check",
}


# Words that must be quoted when used as identifiers.
RESERVED_WORDS = frozenset({
    "user", "order", "group", "select", "from", "where", "table", "index",
    "key", "primary", "foreign", "check", "default", "null", "not", "and",
    "or", "in", "is", "like", "between", "case", "when", "then", "else",
    "end", "as", "on", "join", "left", "right", "inner", "outer", "cross",
    "natural", "using", "limit", "offset", "union", "intersect", "except",
    "all", "distinct", "having", "create", "alter", "drop", "insert",
    "update", "delete", "into", "values", "set", "returning",
})

DEFAULT_MSSQL_POLICY_SCHEMA = "Security"
DEFAULT_BATCH_SIZE = 1000
