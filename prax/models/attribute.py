# prax/models/attribute.py
"""Attribute models: ``@name(args)`` and ``@@name(args)``."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from prax.models.common import Span


class ValueKind(str, Enum):
    """Kinds of literal accepted as an attribute argument."""

    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOLEAN = "boolean"
    IDENT = "ident"
    FUNCTION = "function"
    FIELD_REF_LIST = "field_ref_list"
    ARRAY = "array"


class AttributeValue(BaseModel):
    """A literal argument value.

    ``value`` holds the scalar payload (or the function name for function
    calls); ``items`` holds function arguments or list elements.
    """

    kind: ValueKind
    value: Any = None
    items: list["AttributeValue"] = Field(default_factory=list)

    @classmethod
    def string(cls, value: str) -> "AttributeValue":
        return cls(kind=ValueKind.STRING, value=value)

    @classmethod
    def int_(cls, value: int) -> "AttributeValue":
        return cls(kind=ValueKind.INT, value=value)

    @classmethod
    def float_(cls, value: float) -> "AttributeValue":
        return cls(kind=ValueKind.FLOAT, value=value)

    @classmethod
    def boolean(cls, value: bool) -> "AttributeValue":
        return cls(kind=ValueKind.BOOLEAN, value=value)

    @classmethod
    def ident(cls, name: str) -> "AttributeValue":
        return cls(kind=ValueKind.IDENT, value=name)

    @classmethod
    def function(cls, name: str, args: Optional[list["AttributeValue"]] = None) -> "AttributeValue":
        return cls(kind=ValueKind.FUNCTION, value=name, items=args or [])

    @classmethod
    def field_refs(cls, names: list[str]) -> "AttributeValue":
        return cls(kind=ValueKind.FIELD_REF_LIST, items=[cls.ident(n) for n in names])

    @classmethod
    def array(cls, items: list["AttributeValue"]) -> "AttributeValue":
        return cls(kind=ValueKind.ARRAY, items=items)

    def as_str(self) -> Optional[str]:
        """String or identifier payload."""
        if self.kind in (ValueKind.STRING, ValueKind.IDENT):
            return self.value
        return None

    def as_int(self) -> Optional[int]:
        if self.kind == ValueKind.INT:
            return self.value
        return None

    def as_float(self) -> Optional[float]:
        if self.kind in (ValueKind.INT, ValueKind.FLOAT):
            return float(self.value)
        return None

    def as_bool(self) -> Optional[bool]:
        if self.kind == ValueKind.BOOLEAN:
            return self.value
        if self.kind == ValueKind.IDENT and self.value in ("true", "false"):
            return self.value == "true"
        return None

    def as_field_refs(self) -> list[str]:
        """Names in a field list; a bare identifier counts as a one-item list."""
        if self.kind == ValueKind.IDENT:
            return [self.value]
        if self.kind in (ValueKind.FIELD_REF_LIST, ValueKind.ARRAY):
            return [item.value for item in self.items if item.kind in (ValueKind.IDENT, ValueKind.STRING)]
        return []

    def is_function(self, name: Optional[str] = None) -> bool:
        if self.kind != ValueKind.FUNCTION:
            return False
        return name is None or self.value == name

    def env_var(self) -> Optional[str]:
        """Variable name of an ``env("X")`` call."""
        if self.is_function("env") and self.items:
            return self.items[0].as_str()
        return None

    def to_python(self) -> Any:
        """Convert to plain Python data."""
        if self.kind == ValueKind.FUNCTION:
            if self.value == "env":
                return {"env": self.env_var()}
            return {"function": self.value, "args": [a.to_python() for a in self.items]}
        if self.kind in (ValueKind.FIELD_REF_LIST, ValueKind.ARRAY):
            return [item.to_python() for item in self.items]
        return self.value

    def __str__(self) -> str:
        if self.kind == ValueKind.STRING:
            return f'"{self.value}"'
        if self.kind == ValueKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind == ValueKind.FUNCTION:
            return f"{self.value}({', '.join(str(a) for a in self.items)})"
        if self.kind in (ValueKind.FIELD_REF_LIST, ValueKind.ARRAY):
            return f"[{', '.join(str(a) for a in self.items)}]"
        return str(self.value)


class AttributeArg(BaseModel):
    """A positional (``name`` is None) or named argument."""

    name: Optional[str] = None
    value: AttributeValue
    span: Span = Span()

    @property
    def is_named(self) -> bool:
        return self.name is not None


class Attribute(BaseModel):
    """A field attribute (``@id``) or model attribute (``@@map("t")``)."""

    name: str
    args: list[AttributeArg] = Field(default_factory=list)
    span: Span = Span()
    is_model_attribute: bool = False

    def is_(self, name: str) -> bool:
        return self.name == name

    def first_arg(self) -> Optional[AttributeValue]:
        """The first positional argument."""
        for arg in self.args:
            if not arg.is_named:
                return arg.value
        return None

    def get_arg(self, name: str) -> Optional[AttributeValue]:
        for arg in self.args:
            if arg.name == name:
                return arg.value
        return None

    def positional_args(self) -> list[AttributeValue]:
        return [a.value for a in self.args if not a.is_named]

    def named_args(self) -> dict[str, AttributeValue]:
        return {a.name: a.value for a in self.args if a.is_named}

    def field_refs(self) -> list[str]:
        """Field list from the first positional or the ``fields`` argument."""
        value = self.first_arg() or self.get_arg("fields")
        return value.as_field_refs() if value else []

    def __str__(self) -> str:
        prefix = "@@" if self.is_model_attribute else "@"
        if not self.args:
            return f"{prefix}{self.name}"
        rendered = ", ".join(
            f"{a.name}: {a.value}" if a.is_named else str(a.value) for a in self.args
        )
        return f"{prefix}{self.name}({rendered})"


AttributeValue.model_rebuild()
