# prax/utils/exceptions.py
"""Exception classes for prax."""

from typing import Optional

from prax.utils.constants import ErrorCode, ERROR_MESSAGES


class PraxError(Exception):
    """Base exception class for prax."""

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        details: dict | None = None
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "Unknown error")
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert the exception to a dictionary format.

        Returns:
            A dictionary representation of the error.
        """
        return {
            "status": "error",
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details
            }
        }


class PraxSyntaxError(PraxError):
    """Raised when schema source text does not match the grammar."""

    def __init__(
        self,
        message: str,
        offset: int,
        length: int = 1,
        line: Optional[int] = None,
        column: Optional[int] = None
    ):
        self.offset = offset
        self.length = length
        self.line = line
        self.column = column
        super().__init__(
            code=ErrorCode.SYNTAX_ERROR,
            message=message,
            details={"offset": offset, "length": length, "line": line, "column": column}
        )


class ValidationIssue:
    """A single problem found by the schema validator."""

    def __init__(self, message: str, entity: Optional[str] = None, span=None):
        self.message = message
        self.entity = entity
        self.span = span

    def to_dict(self) -> dict:
        data = {"message": self.message, "entity": self.entity}
        if self.span is not None:
            data["span"] = [self.span.start, self.span.end]
        return data

    def __repr__(self) -> str:
        return f"ValidationIssue({self.message!r})"

    def __str__(self) -> str:
        return self.message


class SchemaValidationError(PraxError):
    """Raised with every validation problem found in a schema."""

    def __init__(self, errors: list[ValidationIssue]):
        self.errors = list(errors)
        super().__init__(
            code=ErrorCode.VALIDATION_FAILED,
            message=f"Schema validation failed with {len(self.errors)} error(s)",
            details={"errors": [e.to_dict() for e in self.errors]}
        )


class UnsupportedError(PraxError):
    """Operation is legal but the target dialect cannot express it."""

    def __init__(self, dialect: str, reason: str):
        self.dialect = dialect
        self.reason = reason
        super().__init__(
            code=ErrorCode.UNSUPPORTED_FOR_DIALECT,
            message=f"unsupported for {dialect}: {reason}",
            details={"dialect": dialect, "reason": reason}
        )


class InvalidInputError(PraxError):
    """Builder called without a required argument."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(
            code=ErrorCode.INVALID_INPUT,
            message=f"invalid input for '{field}': {reason}",
            details={"field": field}
        )


class SchemaLoadError(PraxError):
    """Schema file could not be read."""

    def __init__(self, message: str):
        super().__init__(
            code=ErrorCode.SCHEMA_LOAD_FAILED,
            message=message
        )


class SQLCheckError(PraxError):
    """Emitted SQL did not parse for its dialect."""

    def __init__(self, sql: str, reason: str):
        super().__init__(
            code=ErrorCode.SQL_CHECK_FAILED,
            message=f"SQL check failed: {reason}",
            details={"sql": sql}
        )
