# prax/mongo/lookup.py
"""Join-like aggregation stages: $lookup, $graphLookup and $unionWith."""

from dataclasses import dataclass, field
from typing import Any, Optional

from prax.utils.exceptions import InvalidInputError


@dataclass(frozen=True)
class Lookup:
    """A ``$lookup`` stage, either an equality match or a sub-pipeline."""

    from_: str
    as_field: str
    local_field: Optional[str] = None
    foreign_field: Optional[str] = None
    pipeline: tuple[dict, ...] = ()
    let: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def simple(cls, from_: str, local_field: str, foreign_field: str, as_field: str) -> "Lookup":
        return cls(from_, as_field, local_field, foreign_field)

    @staticmethod
    def with_pipeline(from_: str, as_field: str) -> "LookupBuilder":
        return LookupBuilder(from_, as_field)

    def to_stage(self) -> dict:
        lookup: dict[str, Any] = {"from": self.from_}
        if self.local_field is not None and self.foreign_field is not None:
            lookup["localField"] = self.local_field
            lookup["foreignField"] = self.foreign_field
        lookup["as"] = self.as_field
        if self.pipeline:
            lookup["pipeline"] = list(self.pipeline)
        if self.let:
            lookup["let"] = dict(self.let)
        return {"$lookup": lookup}


class LookupBuilder:
    """Builds a correlated ``$lookup`` with ``let`` variables and a sub-pipeline."""

    def __init__(self, from_: str, as_field: str):
        self._from = from_
        self._as = as_field
        self._pipeline: list[dict] = []
        self._let: dict[str, Any] = {}

    def let_var(self, name: str, field_path: str) -> "LookupBuilder":
        """Bind ``$$name`` to the outer document's ``field_path``."""
        self._let[name] = f"${field_path}"
        return self

    def match_expr(self, expr: dict) -> "LookupBuilder":
        return self.stage({"$match": {"$expr": expr}})

    def stage(self, stage: dict) -> "LookupBuilder":
        self._pipeline.append(stage)
        return self

    def project(self, fields: dict) -> "LookupBuilder":
        return self.stage({"$project": fields})

    def sort(self, fields: dict) -> "LookupBuilder":
        return self.stage({"$sort": fields})

    def limit(self, n: int) -> "LookupBuilder":
        return self.stage({"$limit": n})

    def build(self) -> Lookup:
        return Lookup(self._from, self._as, pipeline=tuple(self._pipeline), let=dict(self._let))


@dataclass(frozen=True)
class GraphLookup:
    """A recursive ``$graphLookup`` stage."""

    from_: str
    start_with: str
    connect_from_field: str
    connect_to_field: str
    as_field: str
    max_depth: Optional[int] = None
    depth_field: Optional[str] = None
    restrict_search_with_match: Optional[dict] = None

    def __post_init__(self):
        if self.max_depth is not None and self.max_depth < 0:
            raise InvalidInputError("max_depth", "must be zero or positive")

    def to_stage(self) -> dict:
        graph: dict[str, Any] = {
            "from": self.from_,
            "startWith": f"${self.start_with}",
            "connectFromField": self.connect_from_field,
            "connectToField": self.connect_to_field,
            "as": self.as_field,
        }
        if self.max_depth is not None:
            graph["maxDepth"] = self.max_depth
        if self.depth_field is not None:
            graph["depthField"] = self.depth_field
        if self.restrict_search_with_match is not None:
            graph["restrictSearchWithMatch"] = self.restrict_search_with_match
        return {"$graphLookup": graph}


@dataclass(frozen=True)
class UnionWith:
    """A ``$unionWith`` stage, the aggregation analogue of UNION ALL."""

    coll: str
    pipeline: tuple[dict, ...] = ()

    def to_stage(self) -> dict:
        if self.pipeline:
            return {"$unionWith": {"coll": self.coll, "pipeline": list(self.pipeline)}}
        return {"$unionWith": self.coll}


def lookup(from_: str, local_field: str, foreign_field: str, as_field: str) -> dict:
    return Lookup.simple(from_, local_field, foreign_field, as_field).to_stage()


def lookup_pipeline(from_: str, as_field: str) -> LookupBuilder:
    return LookupBuilder(from_, as_field)


def graph_lookup(
    from_: str,
    start_with: str,
    connect_from_field: str,
    connect_to_field: str,
    as_field: str,
    max_depth: Optional[int] = None,
) -> dict:
    return GraphLookup(
        from_, start_with, connect_from_field, connect_to_field, as_field, max_depth=max_depth
    ).to_stage()
