# prax/utils/__init__.py
"""Utility modules for prax."""

from prax.utils.constants import ErrorCode, ERROR_MESSAGES, RESERVED_WORDS
from prax.utils.exceptions import (
    PraxError,
    PraxSyntaxError,
    ValidationIssue,
    SchemaValidationError,
    UnsupportedError,
    InvalidInputError,
    SchemaLoadError,
    SQLCheckError,
)

__all__ = [
    "ErrorCode",
    "ERROR_MESSAGES",
    "RESERVED_WORDS",
    "PraxError",
    "PraxSyntaxError",
    "ValidationIssue",
    "SchemaValidationError",
    "UnsupportedError",
    "InvalidInputError",
    "SchemaLoadError",
    "SQLCheckError",
]
