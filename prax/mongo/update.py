# prax/mongo/update.py
"""Update operator documents ($set, $inc, $push ...)."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional


class UpdateOperator(str, Enum):
    SET = "$set"
    UNSET = "$unset"
    INC = "$inc"
    MUL = "$mul"
    RENAME = "$rename"
    CURRENT_DATE = "$currentDate"
    MIN = "$min"
    MAX = "$max"
    SET_ON_INSERT = "$setOnInsert"


class ArrayOperator(str, Enum):
    PUSH = "$push"
    PULL = "$pull"
    PULL_ALL = "$pullAll"
    ADD_TO_SET = "$addToSet"
    POP = "$pop"


@dataclass(frozen=True)
class UpdateOp:
    """A single field update such as ``{"$inc": {"views": 1}}``."""

    operator: UpdateOperator
    field: str
    value: Any = None

    @classmethod
    def set(cls, field: str, value: Any) -> "UpdateOp":
        return cls(UpdateOperator.SET, field, value)

    @classmethod
    def unset(cls, field: str) -> "UpdateOp":
        return cls(UpdateOperator.UNSET, field, "")

    @classmethod
    def inc(cls, field: str, amount: Any = 1) -> "UpdateOp":
        return cls(UpdateOperator.INC, field, amount)

    @classmethod
    def mul(cls, field: str, factor: Any) -> "UpdateOp":
        return cls(UpdateOperator.MUL, field, factor)

    @classmethod
    def rename(cls, field: str, new_name: str) -> "UpdateOp":
        return cls(UpdateOperator.RENAME, field, new_name)

    @classmethod
    def current_date(cls, field: str) -> "UpdateOp":
        return cls(UpdateOperator.CURRENT_DATE, field, True)

    @classmethod
    def min(cls, field: str, value: Any) -> "UpdateOp":
        return cls(UpdateOperator.MIN, field, value)

    @classmethod
    def max(cls, field: str, value: Any) -> "UpdateOp":
        return cls(UpdateOperator.MAX, field, value)

    @classmethod
    def set_on_insert(cls, field: str, value: Any) -> "UpdateOp":
        return cls(UpdateOperator.SET_ON_INSERT, field, value)

    def to_document(self) -> dict:
        return {self.operator.value: {self.field: self.value}}


@dataclass(frozen=True)
class ArrayOp:
    """An array update. ``each`` wraps values in ``$each``."""

    operator: ArrayOperator
    field: str
    value: Any = None
    each: bool = False
    position: Optional[int] = None

    @classmethod
    def push(cls, field: str, value: Any, position: Optional[int] = None) -> "ArrayOp":
        if position is not None:
            return cls(ArrayOperator.PUSH, field, [value], each=True, position=position)
        return cls(ArrayOperator.PUSH, field, value)

    @classmethod
    def push_all(cls, field: str, values: Iterable[Any], position: Optional[int] = None) -> "ArrayOp":
        return cls(ArrayOperator.PUSH, field, list(values), each=True, position=position)

    @classmethod
    def pull(cls, field: str, value: Any) -> "ArrayOp":
        return cls(ArrayOperator.PULL, field, value)

    @classmethod
    def pull_all(cls, field: str, values: Iterable[Any]) -> "ArrayOp":
        return cls(ArrayOperator.PULL_ALL, field, list(values))

    @classmethod
    def add_to_set(cls, field: str, value: Any) -> "ArrayOp":
        return cls(ArrayOperator.ADD_TO_SET, field, value)

    @classmethod
    def add_to_set_all(cls, field: str, values: Iterable[Any]) -> "ArrayOp":
        return cls(ArrayOperator.ADD_TO_SET, field, list(values), each=True)

    @classmethod
    def pop(cls, field: str, first: bool = False) -> "ArrayOp":
        return cls(ArrayOperator.POP, field, -1 if first else 1)

    def to_document(self) -> dict:
        if not self.each:
            return {self.operator.value: {self.field: self.value}}
        modifier: dict[str, Any] = {"$each": self.value}
        if self.position is not None:
            modifier["$position"] = self.position
        return {self.operator.value: {self.field: modifier}}


def merge_update_documents(documents: Iterable[dict]) -> dict:
    """Merge operator documents so each operator appears once.

    Later assignments to the same field under the same operator win.
    """
    merged: dict[str, dict] = {}
    for document in documents:
        for operator, fields in document.items():
            merged.setdefault(operator, {}).update(fields)
    return merged


class UpdateBuilder:
    """Collects update and array operations into one update document."""

    def __init__(self):
        self._ops: list[dict] = []

    def op(self, op: "UpdateOp | ArrayOp") -> "UpdateBuilder":
        self._ops.append(op.to_document())
        return self

    def set(self, field: str, value: Any) -> "UpdateBuilder":
        return self.op(UpdateOp.set(field, value))

    def unset(self, field: str) -> "UpdateBuilder":
        return self.op(UpdateOp.unset(field))

    def inc(self, field: str, amount: Any = 1) -> "UpdateBuilder":
        return self.op(UpdateOp.inc(field, amount))

    def mul(self, field: str, factor: Any) -> "UpdateBuilder":
        return self.op(UpdateOp.mul(field, factor))

    def rename(self, field: str, new_name: str) -> "UpdateBuilder":
        return self.op(UpdateOp.rename(field, new_name))

    def current_date(self, field: str) -> "UpdateBuilder":
        return self.op(UpdateOp.current_date(field))

    def min(self, field: str, value: Any) -> "UpdateBuilder":
        return self.op(UpdateOp.min(field, value))

    def max(self, field: str, value: Any) -> "UpdateBuilder":
        return self.op(UpdateOp.max(field, value))

    def set_on_insert(self, field: str, value: Any) -> "UpdateBuilder":
        return self.op(UpdateOp.set_on_insert(field, value))

    def push(self, field: str, value: Any, position: Optional[int] = None) -> "UpdateBuilder":
        return self.op(ArrayOp.push(field, value, position))

    def push_all(self, field: str, values: Iterable[Any]) -> "UpdateBuilder":
        return self.op(ArrayOp.push_all(field, values))

    def pull(self, field: str, value: Any) -> "UpdateBuilder":
        return self.op(ArrayOp.pull(field, value))

    def pull_all(self, field: str, values: Iterable[Any]) -> "UpdateBuilder":
        return self.op(ArrayOp.pull_all(field, values))

    def add_to_set(self, field: str, value: Any) -> "UpdateBuilder":
        return self.op(ArrayOp.add_to_set(field, value))

    def pop(self, field: str, first: bool = False) -> "UpdateBuilder":
        return self.op(ArrayOp.pop(field, first))

    def build(self) -> dict:
        return merge_update_documents(self._ops)
