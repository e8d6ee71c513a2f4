# prax/mongo/search.py
"""Atlas Search: the ``$search`` stage and search index definitions."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from prax.config import get_settings
from prax.utils.exceptions import InvalidInputError

logger = logging.getLogger("prax.mongo.search")


@dataclass(frozen=True)
class FuzzyConfig:
    max_edits: int = 2
    prefix_length: int = 0
    max_expansions: int = 50

    def to_document(self) -> dict:
        return {
            "maxEdits": self.max_edits,
            "prefixLength": self.prefix_length,
            "maxExpansions": self.max_expansions,
        }


@dataclass(frozen=True)
class HighlightConfig:
    path: str
    max_chars_to_examine: int = 500_000
    max_num_passages: int = 5

    def to_document(self) -> dict:
        return {
            "path": self.path,
            "maxCharsToExamine": self.max_chars_to_examine,
            "maxNumPassages": self.max_num_passages,
        }


class AtlasSearchQuery:
    """A text query against an Atlas Search index.

    Example:
        >>> AtlasSearchQuery("laptop").path("title").fuzzy().to_search_stage()
        {'$search': {'text': {'query': 'laptop', 'path': 'title', 'fuzzy': {...}}}}
    """

    def __init__(self, query: str, index: Optional[str] = None):
        if not query:
            raise InvalidInputError("query", "search text must not be empty")
        self.query = query
        self.index = index
        self._paths: list[str] = []
        self._fuzzy: Optional[FuzzyConfig] = None
        self._boost: Optional[float] = None
        self._highlight: Optional[HighlightConfig] = None

    def path(self, path: str) -> "AtlasSearchQuery":
        self._paths.append(path)
        return self

    def paths(self, paths: list[str]) -> "AtlasSearchQuery":
        self._paths.extend(paths)
        return self

    def fuzzy(self, max_edits: int = 2, prefix_length: int = 0, max_expansions: int = 50) -> "AtlasSearchQuery":
        if max_edits not in (1, 2):
            raise InvalidInputError("max_edits", "Atlas Search allows 1 or 2 edits")
        self._fuzzy = FuzzyConfig(max_edits, prefix_length, max_expansions)
        return self

    def boost(self, value: float) -> "AtlasSearchQuery":
        self._boost = value
        return self

    def highlight(self, path: str, max_num_passages: int = 5) -> "AtlasSearchQuery":
        self._highlight = HighlightConfig(path, max_num_passages=max_num_passages)
        return self

    def to_search_stage(self) -> dict:
        if not self._paths:
            raise InvalidInputError("path", "at least one search path is required")
        text: dict[str, Any] = {
            "query": self.query,
            "path": self._paths[0] if len(self._paths) == 1 else list(self._paths),
        }
        if self._fuzzy is not None:
            text["fuzzy"] = self._fuzzy.to_document()
        if self._boost is not None:
            text["score"] = {"boost": {"value": self._boost}}

        search: dict[str, Any] = {}
        if self.index is not None:
            search["index"] = self.index
        search["text"] = text
        if self._highlight is not None:
            search["highlight"] = self._highlight.to_document()
        return {"$search": search}

    def to_pipeline(self, score_field: Optional[str] = None) -> list[dict]:
        """The search stage followed by an ``$addFields`` exposing score metadata."""
        fields: dict[str, Any] = {
            score_field or get_settings().search_score_alias: {"$meta": "searchScore"},
        }
        if self._highlight is not None:
            fields["highlights"] = {"$meta": "searchHighlights"}
        return [self.to_search_stage(), {"$addFields": fields}]


class SearchFieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    OBJECT_ID = "objectId"
    GEO = "geo"
    AUTOCOMPLETE = "autocomplete"
    STRING_FACET = "stringFacet"
    NUMBER_FACET = "numberFacet"


class AtlasSearchIndexBuilder:
    """Builds an Atlas Search index definition document."""

    def __init__(self, name: str):
        self.name = name
        self._collection: Optional[str] = None
        self._analyzer = "lucene.standard"
        self._dynamic = False
        self._fields: dict[str, dict] = {}

    def collection(self, name: str) -> "AtlasSearchIndexBuilder":
        self._collection = name
        return self

    def analyzer(self, analyzer: str) -> "AtlasSearchIndexBuilder":
        self._analyzer = analyzer
        return self

    def dynamic(self, enabled: bool = True) -> "AtlasSearchIndexBuilder":
        self._dynamic = enabled
        return self

    def field(self, path: str, field_type: SearchFieldType, **options: Any) -> "AtlasSearchIndexBuilder":
        self._fields[path] = {"type": SearchFieldType(field_type).value, **options}
        return self

    def text_field(self, path: str) -> "AtlasSearchIndexBuilder":
        return self.field(path, SearchFieldType.STRING)

    def facet_field(self, path: str, field_type: SearchFieldType) -> "AtlasSearchIndexBuilder":
        return self.field(path, field_type)

    def autocomplete_field(self, path: str) -> "AtlasSearchIndexBuilder":
        return self.field(path, SearchFieldType.AUTOCOMPLETE)

    def build(self) -> dict:
        if not self._dynamic and not self._fields:
            raise InvalidInputError("fields", "a static index needs at least one field mapping")
        index: dict[str, Any] = {"name": self.name}
        if self._collection is not None:
            index["collectionName"] = self._collection
        index["analyzer"] = self._analyzer
        index["mappings"] = {"dynamic": self._dynamic, "fields": dict(self._fields)}
        logger.debug("Built search index %s with %d fields", self.name, len(self._fields))
        return index
