# prax/__init__.py
"""prax: a schema language and multi-dialect query generation library."""

from prax.config import Settings, configure_logging, get_settings
from prax.models import Schema
from prax.query import DatabaseType, Filter
from prax.services import parse_schema, parse_schema_file, validate_schema
from prax.utils import (
    InvalidInputError,
    PraxError,
    PraxSyntaxError,
    SchemaValidationError,
    UnsupportedError,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Settings",
    "configure_logging",
    "get_settings",
    "Schema",
    "DatabaseType",
    "Filter",
    "parse_schema",
    "parse_schema_file",
    "validate_schema",
    "InvalidInputError",
    "PraxError",
    "PraxSyntaxError",
    "SchemaValidationError",
    "UnsupportedError",
]
