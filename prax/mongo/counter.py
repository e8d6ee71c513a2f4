# prax/mongo/counter.py
"""Counter documents, the document-store replacement for sequences."""

from typing import Any

from prax.utils.exceptions import InvalidInputError


class CounterBuilder:
    """Atomic counters stored as ``{_id: name, seq: n}`` documents."""

    def __init__(self, name: str):
        if not name:
            raise InvalidInputError("name", "counter name must not be empty")
        self.name = name
        self._collection = "counters"
        self._increment = 1

    def collection(self, name: str) -> "CounterBuilder":
        self._collection = name
        return self

    def increment(self, step: int) -> "CounterBuilder":
        if step == 0:
            raise InvalidInputError("increment", "must not be zero")
        self._increment = step
        return self

    @property
    def collection_name(self) -> str:
        return self._collection

    def next_value_command(self) -> dict:
        return {
            "findAndModify": self._collection,
            "query": {"_id": self.name},
            "update": {"$inc": {"seq": self._increment}},
            "new": True,
            "upsert": True,
        }

    def increment_pipeline(self) -> list[dict]:
        return [
            {"$match": {"_id": self.name}},
            {"$set": {"seq": {"$add": ["$seq", self._increment]}}},
        ]

    def init_document(self, start: Any = 0) -> dict:
        return {"_id": self.name, "seq": start}

    def reset_document(self, value: Any = 0) -> dict:
        return {"$set": {"seq": value}}
