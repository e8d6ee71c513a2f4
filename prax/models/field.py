# prax/models/field.py
"""Field-level AST models: types, modifiers, relations."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field as PydanticField

from prax.models.attribute import Attribute, AttributeValue
from prax.models.common import Span


class ScalarType(str, Enum):
    """Built-in scalar field types."""

    INT = "Int"
    BIG_INT = "BigInt"
    FLOAT = "Float"
    DECIMAL = "Decimal"
    BOOLEAN = "Boolean"
    STRING = "String"
    DATE_TIME = "DateTime"
    DATE = "Date"
    TIME = "Time"
    JSON = "Json"
    BYTES = "Bytes"
    UUID = "Uuid"
    CUID = "Cuid"
    CUID2 = "Cuid2"
    NANO_ID = "NanoId"
    ULID = "Ulid"

    @classmethod
    def from_str(cls, name: str) -> Optional["ScalarType"]:
        try:
            return cls(name)
        except ValueError:
            return None

    @property
    def is_numeric(self) -> bool:
        return self in (ScalarType.INT, ScalarType.BIG_INT, ScalarType.FLOAT, ScalarType.DECIMAL)

    @property
    def is_textual(self) -> bool:
        return self in (
            ScalarType.STRING, ScalarType.UUID, ScalarType.CUID,
            ScalarType.CUID2, ScalarType.NANO_ID, ScalarType.ULID,
        )

    def postgres_type(self) -> str:
        return _POSTGRES_TYPES[self]

    def sql_type(self, db_type) -> str:
        """Column type for the given dialect."""
        from prax.query.dialect import DatabaseType, resolve_dialect

        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return self.postgres_type()
        if db_type == DatabaseType.MYSQL:
            return _MYSQL_TYPES[self]
        if db_type == DatabaseType.SQLITE:
            return _SQLITE_TYPES[self]
        return _MSSQL_TYPES[self]


_POSTGRES_TYPES = {
    ScalarType.INT: "INTEGER",
    ScalarType.BIG_INT: "BIGINT",
    ScalarType.FLOAT: "DOUBLE PRECISION",
    ScalarType.DECIMAL: "DECIMAL",
    ScalarType.STRING: "TEXT",
    ScalarType.BOOLEAN: "BOOLEAN",
    ScalarType.DATE_TIME: "TIMESTAMP WITH TIME ZONE",
    ScalarType.DATE: "DATE",
    ScalarType.TIME: "TIME",
    ScalarType.JSON: "JSONB",
    ScalarType.BYTES: "BYTEA",
    ScalarType.UUID: "UUID",
    ScalarType.CUID: "TEXT",
    ScalarType.CUID2: "TEXT",
    ScalarType.NANO_ID: "TEXT",
    ScalarType.ULID: "TEXT",
}

_MYSQL_TYPES = {
    ScalarType.INT: "INT",
    ScalarType.BIG_INT: "BIGINT",
    ScalarType.FLOAT: "DOUBLE",
    ScalarType.DECIMAL: "DECIMAL(65, 30)",
    ScalarType.STRING: "VARCHAR(191)",
    ScalarType.BOOLEAN: "TINYINT(1)",
    ScalarType.DATE_TIME: "DATETIME(3)",
    ScalarType.DATE: "DATE",
    ScalarType.TIME: "TIME",
    ScalarType.JSON: "JSON",
    ScalarType.BYTES: "LONGBLOB",
    ScalarType.UUID: "CHAR(36)",
    ScalarType.CUID: "VARCHAR(30)",
    ScalarType.CUID2: "VARCHAR(30)",
    ScalarType.NANO_ID: "VARCHAR(21)",
    ScalarType.ULID: "CHAR(26)",
}

_SQLITE_TYPES = {
    ScalarType.INT: "INTEGER",
    ScalarType.BIG_INT: "INTEGER",
    ScalarType.FLOAT: "REAL",
    ScalarType.DECIMAL: "NUMERIC",
    ScalarType.STRING: "TEXT",
    ScalarType.BOOLEAN: "INTEGER",
    ScalarType.DATE_TIME: "TEXT",
    ScalarType.DATE: "TEXT",
    ScalarType.TIME: "TEXT",
    ScalarType.JSON: "TEXT",
    ScalarType.BYTES: "BLOB",
    ScalarType.UUID: "TEXT",
    ScalarType.CUID: "TEXT",
    ScalarType.CUID2: "TEXT",
    ScalarType.NANO_ID: "TEXT",
    ScalarType.ULID: "TEXT",
}

_MSSQL_TYPES = {
    ScalarType.INT: "INT",
    ScalarType.BIG_INT: "BIGINT",
    ScalarType.FLOAT: "FLOAT",
    ScalarType.DECIMAL: "DECIMAL(32, 16)",
    ScalarType.STRING: "NVARCHAR(1000)",
    ScalarType.BOOLEAN: "BIT",
    ScalarType.DATE_TIME: "DATETIME2",
    ScalarType.DATE: "DATE",
    ScalarType.TIME: "TIME",
    ScalarType.JSON: "NVARCHAR(MAX)",
    ScalarType.BYTES: "VARBINARY(MAX)",
    ScalarType.UUID: "UNIQUEIDENTIFIER",
    ScalarType.CUID: "NVARCHAR(30)",
    ScalarType.CUID2: "NVARCHAR(30)",
    ScalarType.NANO_ID: "NVARCHAR(21)",
    ScalarType.ULID: "NCHAR(26)",
}


class FieldTypeKind(str, Enum):
    """Variants of a field type."""

    SCALAR = "scalar"
    ENUM = "enum"
    MODEL = "model"
    COMPOSITE = "composite"
    UNSUPPORTED = "unsupported"


class FieldType(BaseModel):
    """The declared type of a field.

    Non-scalar names are parsed as ``MODEL``; the validator rewrites them to
    ``ENUM`` or ``COMPOSITE`` once the schema is known.
    """

    kind: FieldTypeKind
    name: str
    scalar: Optional[ScalarType] = None

    @classmethod
    def from_name(cls, name: str) -> "FieldType":
        scalar = ScalarType.from_str(name)
        if scalar is not None:
            return cls(kind=FieldTypeKind.SCALAR, name=name, scalar=scalar)
        return cls(kind=FieldTypeKind.MODEL, name=name)

    @classmethod
    def unsupported(cls, raw: str) -> "FieldType":
        return cls(kind=FieldTypeKind.UNSUPPORTED, name=raw)

    @property
    def is_scalar(self) -> bool:
        return self.kind == FieldTypeKind.SCALAR

    @property
    def is_model(self) -> bool:
        return self.kind == FieldTypeKind.MODEL

    @property
    def is_enum(self) -> bool:
        return self.kind == FieldTypeKind.ENUM

    @property
    def is_composite(self) -> bool:
        return self.kind == FieldTypeKind.COMPOSITE

    def __str__(self) -> str:
        if self.kind == FieldTypeKind.UNSUPPORTED:
            return f'Unsupported("{self.name}")'
        return self.name


class TypeModifier(str, Enum):
    """Optionality and list-ness of a field."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    LIST = "list"
    OPTIONAL_LIST = "optional_list"

    @classmethod
    def from_markers(cls, is_list: bool, is_optional: bool) -> "TypeModifier":
        if is_list and is_optional:
            return cls.OPTIONAL_LIST
        if is_list:
            return cls.LIST
        if is_optional:
            return cls.OPTIONAL
        return cls.REQUIRED

    @property
    def is_optional(self) -> bool:
        return self in (TypeModifier.OPTIONAL, TypeModifier.OPTIONAL_LIST)

    @property
    def is_list(self) -> bool:
        return self in (TypeModifier.LIST, TypeModifier.OPTIONAL_LIST)

    def suffix(self) -> str:
        return {
            TypeModifier.REQUIRED: "",
            TypeModifier.OPTIONAL: "?",
            TypeModifier.LIST: "[]",
            TypeModifier.OPTIONAL_LIST: "[]?",
        }[self]


class ReferentialAction(str, Enum):
    """Foreign-key actions for ``onDelete`` / ``onUpdate``."""

    CASCADE = "Cascade"
    RESTRICT = "Restrict"
    NO_ACTION = "NoAction"
    SET_NULL = "SetNull"
    SET_DEFAULT = "SetDefault"

    @classmethod
    def from_str(cls, name: str) -> Optional["ReferentialAction"]:
        try:
            return cls(name)
        except ValueError:
            return None

    def as_sql(self) -> str:
        return {
            ReferentialAction.CASCADE: "CASCADE",
            ReferentialAction.RESTRICT: "RESTRICT",
            ReferentialAction.NO_ACTION: "NO ACTION",
            ReferentialAction.SET_NULL: "SET NULL",
            ReferentialAction.SET_DEFAULT: "SET DEFAULT",
        }[self]


class Relation(BaseModel):
    """A relation declared with ``@relation(...)``."""

    name: Optional[str] = None
    model: str
    target: str
    fields: list[str] = PydanticField(default_factory=list)
    references: list[str] = PydanticField(default_factory=list)
    on_delete: Optional[ReferentialAction] = None
    on_update: Optional[ReferentialAction] = None

    def foreign_key_sql(self, table: str, target_table: str) -> str:
        """``FOREIGN KEY`` constraint clause for this relation."""
        sql = (
            f"FOREIGN KEY ({', '.join(self.fields)}) "
            f"REFERENCES {target_table} ({', '.join(self.references)})"
        )
        if self.on_delete:
            sql += f" ON DELETE {self.on_delete.as_sql()}"
        if self.on_update:
            sql += f" ON UPDATE {self.on_update.as_sql()}"
        return sql


class FieldAttributes(BaseModel):
    """Field attributes extracted into typed flags."""

    is_id: bool = False
    is_auto: bool = False
    is_unique: bool = False
    is_indexed: bool = False
    is_updated_at: bool = False
    default: Optional[AttributeValue] = None
    map: Optional[str] = None
    relation: Optional[Relation] = None


class Field(BaseModel):
    """A model, view or composite-type field."""

    name: str
    field_type: FieldType
    modifier: TypeModifier = TypeModifier.REQUIRED
    attributes: list[Attribute] = PydanticField(default_factory=list)
    documentation: Optional[str] = None
    span: Span = Span()

    def get_attribute(self, name: str) -> Optional[Attribute]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    def has_attribute(self, name: str) -> bool:
        return self.get_attribute(name) is not None

    def is_optional(self) -> bool:
        return self.modifier.is_optional

    def is_list(self) -> bool:
        return self.modifier.is_list

    def is_id(self) -> bool:
        return self.has_attribute("id")

    def is_unique(self) -> bool:
        return self.has_attribute("unique")

    def is_auto(self) -> bool:
        return self.has_attribute("auto")

    def is_indexed(self) -> bool:
        return self.has_attribute("index")

    def is_updated_at(self) -> bool:
        return self.has_attribute("updated_at")

    def is_relation(self) -> bool:
        return self.field_type.is_model

    def default_value(self) -> Optional[AttributeValue]:
        attr = self.get_attribute("default")
        return attr.first_arg() if attr else None

    def column_name(self) -> str:
        attr = self.get_attribute("map")
        if attr:
            value = attr.first_arg()
            if value and value.as_str():
                return value.as_str()
        return self.name

    def relation(self, model_name: str = "") -> Optional[Relation]:
        """Build the relation declared by ``@relation`` on this field."""
        attr = self.get_attribute("relation")
        if attr is None:
            return None
        name_arg = attr.get_arg("name") or attr.first_arg()
        on_delete = attr.get_arg("onDelete")
        on_update = attr.get_arg("onUpdate")
        fields_arg = attr.get_arg("fields")
        refs_arg = attr.get_arg("references")
        return Relation(
            name=name_arg.as_str() if name_arg and name_arg.kind.value == "string" else None,
            model=model_name,
            target=self.field_type.name,
            fields=fields_arg.as_field_refs() if fields_arg else [],
            references=refs_arg.as_field_refs() if refs_arg else [],
            on_delete=ReferentialAction.from_str(on_delete.as_str() or "") if on_delete else None,
            on_update=ReferentialAction.from_str(on_update.as_str() or "") if on_update else None,
        )

    def extract_attributes(self, model_name: str = "") -> FieldAttributes:
        return FieldAttributes(
            is_id=self.is_id(),
            is_auto=self.is_auto(),
            is_unique=self.is_unique(),
            is_indexed=self.is_indexed(),
            is_updated_at=self.is_updated_at(),
            default=self.default_value(),
            map=self.column_name() if self.has_attribute("map") else None,
            relation=self.relation(model_name),
        )

    def type_display(self) -> str:
        return f"{self.field_type}{self.modifier.suffix()}"
