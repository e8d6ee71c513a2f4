# prax/mongo/upsert.py
"""Upsert commands: updateOne / findOneAndUpdate / findAndModify with ``upsert: true``."""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from prax.mongo.update import UpdateBuilder
from prax.utils.exceptions import InvalidInputError


@dataclass(frozen=True)
class MongoUpsert:
    """A filter plus update document, ready to render as a driver call."""

    filter: dict
    update: dict
    array_filters: tuple[dict, ...] = ()

    def _options(self, **extra: Any) -> dict:
        options: dict[str, Any] = {"upsert": True, **extra}
        if self.array_filters:
            options["arrayFilters"] = list(self.array_filters)
        return options

    def to_update_one(self) -> dict:
        return {"filter": self.filter, "update": self.update, "options": self._options()}

    def to_find_one_and_update(self, return_new: bool = True) -> dict:
        return {
            "filter": self.filter,
            "update": self.update,
            "options": self._options(returnDocument="after" if return_new else "before"),
        }

    def to_replace_one(self, replacement: dict) -> dict:
        return {"filter": self.filter, "replacement": replacement, "options": {"upsert": True}}

    def to_find_and_modify(self, collection: str, new: bool = True) -> dict:
        """The ``findAndModify`` database command."""
        command: dict[str, Any] = {
            "findAndModify": collection,
            "query": self.filter,
            "update": self.update,
            "upsert": True,
            "new": new,
        }
        if self.array_filters:
            command["arrayFilters"] = list(self.array_filters)
        return command


class MongoUpsertBuilder:
    """Chainable builder for ``MongoUpsert``.

    Example:
        >>> MongoUpsertBuilder().filter_eq("email", "a@b.c").set("name", "A").build().update
        {'$set': {'name': 'A'}}
    """

    def __init__(self):
        self._filter: dict[str, Any] = {}
        self._update = UpdateBuilder()
        self._array_filters: list[dict] = []

    def filter_eq(self, field: str, value: Any) -> "MongoUpsertBuilder":
        self._filter[field] = value
        return self

    def filter(self, document: dict) -> "MongoUpsertBuilder":
        self._filter = dict(document)
        return self

    def set(self, field: str, value: Any) -> "MongoUpsertBuilder":
        self._update.set(field, value)
        return self

    def set_on_insert(self, field: str, value: Any) -> "MongoUpsertBuilder":
        self._update.set_on_insert(field, value)
        return self

    def inc(self, field: str, amount: Any = 1) -> "MongoUpsertBuilder":
        self._update.inc(field, amount)
        return self

    def unset(self, field: str) -> "MongoUpsertBuilder":
        self._update.unset(field)
        return self

    def push(self, field: str, value: Any) -> "MongoUpsertBuilder":
        self._update.push(field, value)
        return self

    def add_to_set(self, field: str, value: Any) -> "MongoUpsertBuilder":
        self._update.add_to_set(field, value)
        return self

    def array_filter(self, document: dict) -> "MongoUpsertBuilder":
        self._array_filters.append(document)
        return self

    def build_update(self) -> dict:
        return self._update.build()

    def build(self) -> MongoUpsert:
        update = self.build_update()
        if not update:
            raise InvalidInputError("update", "upsert needs at least one update operator")
        return MongoUpsert(dict(self._filter), update, tuple(self._array_filters))

    def to_find_and_modify(self, collection: str, new: bool = True) -> dict:
        return self.build().to_find_and_modify(collection, new)

    def to_update_one(self) -> dict:
        return self.build().to_update_one()

    def to_find_one_and_update(self, return_new: bool = True) -> dict:
        return self.build().to_find_one_and_update(return_new)

    def to_replace_one(self, replacement: dict) -> dict:
        return MongoUpsert(dict(self._filter), {}, tuple(self._array_filters)).to_replace_one(replacement)


@dataclass
class BulkUpsert:
    """A ``bulkWrite`` made of ``updateOne`` upserts."""

    ordered: bool = True
    operations: list[MongoUpsert] = field(default_factory=list)

    def add(self, filter: dict, update: dict) -> "BulkUpsert":
        self.operations.append(MongoUpsert(filter, update))
        return self

    def extend(self, upserts: Iterable[MongoUpsert]) -> "BulkUpsert":
        self.operations.extend(upserts)
        return self

    def to_bulk_write(self, ordered: Optional[bool] = None) -> dict:
        ops = [
            {"updateOne": {"filter": op.filter, "update": op.update, "upsert": True}}
            for op in self.operations
        ]
        return {"operations": ops, "options": {"ordered": self.ordered if ordered is None else ordered}}
