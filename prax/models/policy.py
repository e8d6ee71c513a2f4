# prax/models/policy.py
"""Row-level security policy models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from prax.models.common import Ident, Span
from prax.utils.constants import DEFAULT_MSSQL_POLICY_SCHEMA


class PolicyType(str, Enum):
    """Whether a policy widens (permissive) or narrows (restrictive) access."""

    PERMISSIVE = "PERMISSIVE"
    RESTRICTIVE = "RESTRICTIVE"

    @classmethod
    def from_str(cls, value: str) -> Optional["PolicyType"]:
        try:
            return cls(value.upper())
        except ValueError:
            return None


class PolicyCommand(str, Enum):
    """SQL command a policy applies to."""

    ALL = "ALL"
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    @classmethod
    def from_str(cls, value: str) -> Optional["PolicyCommand"]:
        try:
            return cls(value.upper())
        except ValueError:
            return None

    def requires_using(self) -> bool:
        return self in (PolicyCommand.SELECT, PolicyCommand.DELETE)

    def requires_check(self) -> bool:
        return self == PolicyCommand.INSERT


class MssqlBlockOperation(str, Enum):
    """Operations a SQL Server block predicate can guard."""

    AFTER_INSERT = "AFTER INSERT"
    AFTER_UPDATE = "AFTER UPDATE"
    BEFORE_UPDATE = "BEFORE UPDATE"
    BEFORE_DELETE = "BEFORE DELETE"

    @classmethod
    def from_str(cls, value: str) -> Optional["MssqlBlockOperation"]:
        """Parse ``AFTER_INSERT``, ``after insert``, ``AfterInsert`` and so on."""
        key = value.upper().replace(" ", "").replace("_", "")
        for op in cls:
            if op.value.replace(" ", "") == key:
                return op
        return None


class Policy(BaseModel):
    """A ``policy Name on Model { ... }`` block."""

    name: str
    table: Ident
    policy_type: PolicyType = PolicyType.PERMISSIVE
    commands: list[PolicyCommand] = Field(default_factory=lambda: [PolicyCommand.ALL])
    roles: list[str] = Field(default_factory=list)
    using_expr: Optional[str] = None
    check_expr: Optional[str] = None
    mssql_schema: Optional[str] = None
    mssql_block_operations: list[MssqlBlockOperation] = Field(default_factory=list)
    mssql_using_expr: Optional[str] = None
    documentation: Optional[str] = None
    span: Span = Span()

    def applies_to(self, command: PolicyCommand) -> bool:
        return PolicyCommand.ALL in self.commands or command in self.commands

    def is_restrictive(self) -> bool:
        return self.policy_type == PolicyType.RESTRICTIVE

    def effective_roles(self) -> list[str]:
        """Roles the policy is granted to; ``PUBLIC`` when none are listed."""
        return list(self.roles) if self.roles else ["PUBLIC"]

    def effective_mssql_schema(self, default: str = DEFAULT_MSSQL_POLICY_SCHEMA) -> str:
        return self.mssql_schema or default

    def mssql_predicate_function_name(self) -> str:
        return f"fn_{self.name}_predicate"

    def effective_block_operations(self) -> list[MssqlBlockOperation]:
        """Explicit block operations, else the defaults implied by the commands.

        Defaults apply only when the policy has a check expression.
        """
        if self.mssql_block_operations:
            return list(self.mssql_block_operations)
        if not self.check_expr:
            return []
        ops = []
        if self.applies_to(PolicyCommand.INSERT):
            ops.append(MssqlBlockOperation.AFTER_INSERT)
        if self.applies_to(PolicyCommand.UPDATE):
            ops.append(MssqlBlockOperation.AFTER_UPDATE)
            ops.append(MssqlBlockOperation.BEFORE_UPDATE)
        if self.applies_to(PolicyCommand.DELETE):
            ops.append(MssqlBlockOperation.BEFORE_DELETE)
        return ops


class MssqlPolicyStatements(BaseModel):
    """The three batches SQL Server needs for one security policy."""

    schema_sql: str
    function_sql: str
    policy_sql: str

    def statements(self) -> list[str]:
        return [self.schema_sql, self.function_sql, self.policy_sql]

    def to_sql(self) -> str:
        """Join the batches with ``GO`` separators."""
        return f"{self.schema_sql};\nGO\n\n{self.function_sql};\nGO\n\n{self.policy_sql};"
