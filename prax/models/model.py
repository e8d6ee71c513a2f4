# prax/models/model.py
"""Models, enums, composite types and views."""

from typing import Optional

from pydantic import BaseModel, Field as PydanticField

from prax.models.attribute import Attribute
from prax.models.common import Span
from prax.models.field import Field


def _find_attribute(attributes: list[Attribute], name: str) -> Optional[Attribute]:
    for attr in attributes:
        if attr.name == name:
            return attr
    return None


def _mapped_name(attributes: list[Attribute], default: str) -> str:
    attr = _find_attribute(attributes, "map")
    if attr:
        value = attr.first_arg()
        if value and value.as_str():
            return value.as_str()
    return default


class IndexDef(BaseModel):
    """An index or unique constraint declared with ``@@index``/``@@unique``."""

    fields: list[str]
    name: Optional[str] = None
    unique: bool = False


class Model(BaseModel):
    """A ``model`` block."""

    name: str
    fields: dict[str, Field] = PydanticField(default_factory=dict)
    attributes: list[Attribute] = PydanticField(default_factory=list)
    documentation: Optional[str] = None
    span: Span = Span()

    def add_field(self, field: Field) -> None:
        self.fields.setdefault(field.name, field)

    def get_field(self, name: str) -> Optional[Field]:
        return self.fields.get(name)

    def get_attribute(self, name: str) -> Optional[Attribute]:
        return _find_attribute(self.attributes, name)

    def has_attribute(self, name: str) -> bool:
        return self.get_attribute(name) is not None

    def table_name(self) -> str:
        """Table name from ``@@map``, else the model name."""
        return _mapped_name(self.attributes, self.name)

    def id_fields(self) -> list[Field]:
        return [f for f in self.fields.values() if f.is_id()]

    def primary_key(self) -> list[str]:
        """Primary key columns: ``@id`` fields in order, else ``@@id([...])``."""
        ids = self.id_fields()
        if ids:
            return [f.name for f in ids]
        attr = self.get_attribute("id")
        return attr.field_refs() if attr else []

    def relation_fields(self) -> list[Field]:
        return [f for f in self.fields.values() if f.is_relation()]

    def scalar_fields(self) -> list[Field]:
        return [f for f in self.fields.values() if f.field_type.is_scalar]

    def _index_defs(self, attr_name: str, unique: bool) -> list[IndexDef]:
        result = []
        for attr in self.attributes:
            if attr.name != attr_name:
                continue
            name_arg = attr.get_arg("name") or attr.get_arg("map")
            result.append(IndexDef(
                fields=attr.field_refs(),
                name=name_arg.as_str() if name_arg else None,
                unique=unique,
            ))
        return result

    def indexes(self) -> list[IndexDef]:
        return self._index_defs("index", unique=False)

    def unique_constraints(self) -> list[IndexDef]:
        return self._index_defs("unique", unique=True)

    def search_fields(self) -> list[str]:
        attr = self.get_attribute("search")
        return attr.field_refs() if attr else []


class EnumVariant(BaseModel):
    """A single enum value."""

    name: str
    attributes: list[Attribute] = PydanticField(default_factory=list)
    documentation: Optional[str] = None
    span: Span = Span()

    def db_value(self) -> str:
        return _mapped_name(self.attributes, self.name)


class EnumDef(BaseModel):
    """An ``enum`` block."""

    name: str
    variants: list[EnumVariant] = PydanticField(default_factory=list)
    attributes: list[Attribute] = PydanticField(default_factory=list)
    documentation: Optional[str] = None
    span: Span = Span()

    def db_name(self) -> str:
        return _mapped_name(self.attributes, self.name)

    def variant_names(self) -> list[str]:
        return [v.name for v in self.variants]

    def has_variant(self, name: str) -> bool:
        return name in self.variant_names()

    def create_type_sql(self) -> str:
        """PostgreSQL ``CREATE TYPE ... AS ENUM`` statement."""
        values = ", ".join("'" + v.db_value().replace("'", "''") + "'" for v in self.variants)
        return f"CREATE TYPE {self.db_name()} AS ENUM ({values});"


class CompositeType(BaseModel):
    """A ``type`` block: a named group of fields without identity."""

    name: str
    fields: dict[str, Field] = PydanticField(default_factory=dict)
    attributes: list[Attribute] = PydanticField(default_factory=list)
    documentation: Optional[str] = None
    span: Span = Span()

    def get_field(self, name: str) -> Optional[Field]:
        return self.fields.get(name)


class View(BaseModel):
    """A ``view`` block."""

    name: str
    fields: dict[str, Field] = PydanticField(default_factory=dict)
    attributes: list[Attribute] = PydanticField(default_factory=list)
    documentation: Optional[str] = None
    span: Span = Span()

    def get_field(self, name: str) -> Optional[Field]:
        return self.fields.get(name)

    def get_attribute(self, name: str) -> Optional[Attribute]:
        return _find_attribute(self.attributes, name)

    def view_name(self) -> str:
        return _mapped_name(self.attributes, self.name)

    def sql(self) -> Optional[str]:
        """Defining query from ``@@sql``."""
        attr = self.get_attribute("sql")
        if attr is None:
            return None
        value = attr.first_arg()
        return value.as_str() if value else None

    def create_view_sql(self) -> Optional[str]:
        query = self.sql()
        if query is None:
            return None
        return f"CREATE VIEW {self.view_name()} AS {query};"
