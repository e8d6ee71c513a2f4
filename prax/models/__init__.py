# prax/models/__init__.py
"""Schema AST models for prax."""

from prax.models.common import Span, Ident
from prax.models.attribute import (
    ValueKind,
    AttributeValue,
    AttributeArg,
    Attribute,
)
from prax.models.field import (
    ScalarType,
    FieldTypeKind,
    FieldType,
    TypeModifier,
    ReferentialAction,
    Relation,
    FieldAttributes,
    Field,
)
from prax.models.model import (
    IndexDef,
    Model,
    EnumVariant,
    EnumDef,
    CompositeType,
    View,
)
from prax.models.policy import (
    PolicyType,
    PolicyCommand,
    MssqlBlockOperation,
    Policy,
    MssqlPolicyStatements,
)
from prax.models.server_group import (
    ServerRole,
    ServerGroupStrategy,
    LoadBalanceStrategy,
    Server,
    ServerGroup,
)
from prax.models.datasource import (
    DatabaseProvider,
    PostgresExtension,
    Datasource,
    Generator,
    RawSql,
)
from prax.models.schema import (
    DuplicateDefinition,
    SchemaStats,
    Schema,
)

__all__ = [
    "Span",
    "Ident",
    "ValueKind",
    "AttributeValue",
    "AttributeArg",
    "Attribute",
    "ScalarType",
    "FieldTypeKind",
    "FieldType",
    "TypeModifier",
    "ReferentialAction",
    "Relation",
    "FieldAttributes",
    "Field",
    "IndexDef",
    "Model",
    "EnumVariant",
    "EnumDef",
    "CompositeType",
    "View",
    "PolicyType",
    "PolicyCommand",
    "MssqlBlockOperation",
    "Policy",
    "MssqlPolicyStatements",
    "ServerRole",
    "ServerGroupStrategy",
    "LoadBalanceStrategy",
    "Server",
    "ServerGroup",
    "DatabaseProvider",
    "PostgresExtension",
    "Datasource",
    "Generator",
    "RawSql",
    "DuplicateDefinition",
    "SchemaStats",
    "Schema",
]
