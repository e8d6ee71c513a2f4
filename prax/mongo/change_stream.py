# prax/mongo/change_stream.py
"""Change stream pipelines, the document-store counterpart of triggers."""

from enum import Enum
from typing import Any, Iterable, Optional

from prax.utils.exceptions import InvalidInputError


class ChangeType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    DROP = "drop"
    RENAME = "rename"
    DROP_DATABASE = "dropDatabase"
    INVALIDATE = "invalidate"


class FullDocument(str, Enum):
    DEFAULT = "default"
    UPDATE_LOOKUP = "updateLookup"
    WHEN_AVAILABLE = "whenAvailable"
    REQUIRED = "required"


class FullDocumentBeforeChange(str, Enum):
    OFF = "off"
    WHEN_AVAILABLE = "whenAvailable"
    REQUIRED = "required"


class ChangeStreamBuilder:
    """Builds the aggregation pipeline and watch options for a change stream.

    Example:
        >>> (ChangeStreamBuilder().operations([ChangeType.INSERT])
        ...     .full_document(FullDocument.UPDATE_LOOKUP).to_pipeline())
        [{'$changeStream': {'fullDocument': 'updateLookup'}},
         {'$match': {'operationType': {'$in': ['insert']}}}]
    """

    def __init__(self):
        self._collection: Optional[str] = None
        self._database: Optional[str] = None
        self._operations: list[ChangeType] = []
        self._namespace: Optional[tuple[str, str]] = None
        self._filters: list[dict] = []
        self._project: Optional[dict] = None
        self._full_document: Optional[FullDocument] = None
        self._before_change: Optional[FullDocumentBeforeChange] = None
        self._resume_after: Any = None
        self._start_after: Any = None
        self._start_at_operation_time: Any = None
        self._max_await_time_ms: Optional[int] = None
        self._batch_size: Optional[int] = None

    def collection(self, name: str) -> "ChangeStreamBuilder":
        self._collection = name
        return self

    def database(self, name: str) -> "ChangeStreamBuilder":
        self._database = name
        return self

    def operations(self, ops: Iterable[ChangeType]) -> "ChangeStreamBuilder":
        for op in ops:
            op = ChangeType(op)
            if op not in self._operations:
                self._operations.append(op)
        return self

    def namespace(self, db: str, coll: str) -> "ChangeStreamBuilder":
        self._namespace = (db, coll)
        return self

    def filter(self, match: dict) -> "ChangeStreamBuilder":
        self._filters.append(match)
        return self

    def project(self, fields: dict) -> "ChangeStreamBuilder":
        self._project = fields
        return self

    def full_document(self, mode: FullDocument) -> "ChangeStreamBuilder":
        self._full_document = FullDocument(mode)
        return self

    def full_document_before_change(self, mode: FullDocumentBeforeChange) -> "ChangeStreamBuilder":
        self._before_change = FullDocumentBeforeChange(mode)
        return self

    def resume_after(self, token: Any) -> "ChangeStreamBuilder":
        self._resume_after = token
        return self

    def start_after(self, token: Any) -> "ChangeStreamBuilder":
        self._start_after = token
        return self

    def start_at_operation_time(self, timestamp: Any) -> "ChangeStreamBuilder":
        self._start_at_operation_time = timestamp
        return self

    def max_await_time_ms(self, ms: int) -> "ChangeStreamBuilder":
        self._max_await_time_ms = ms
        return self

    def batch_size(self, size: int) -> "ChangeStreamBuilder":
        if size <= 0:
            raise InvalidInputError("batch_size", "must be positive")
        self._batch_size = size
        return self

    def _stage_options(self) -> dict:
        resume_points = [
            p for p in (self._resume_after, self._start_after, self._start_at_operation_time)
            if p is not None
        ]
        if len(resume_points) > 1:
            raise InvalidInputError(
                "resume",
                "resumeAfter, startAfter and startAtOperationTime are mutually exclusive",
            )
        options: dict[str, Any] = {}
        if self._full_document is not None:
            options["fullDocument"] = self._full_document.value
        if self._before_change is not None:
            options["fullDocumentBeforeChange"] = self._before_change.value
        if self._resume_after is not None:
            options["resumeAfter"] = self._resume_after
        if self._start_after is not None:
            options["startAfter"] = self._start_after
        if self._start_at_operation_time is not None:
            options["startAtOperationTime"] = self._start_at_operation_time
        return options

    def build_pipeline(self) -> list[dict]:
        """The stages that follow ``$changeStream``, as passed to ``watch()``."""
        stages: list[dict] = []
        if self._operations:
            stages.append({"$match": {"operationType": {"$in": [op.value for op in self._operations]}}})
        if self._namespace is not None:
            db, coll = self._namespace
            stages.append({"$match": {"ns": {"db": db, "coll": coll}}})
        stages.extend({"$match": f} for f in self._filters)
        if self._project is not None:
            stages.append({"$project": self._project})
        return stages

    def to_pipeline(self) -> list[dict]:
        return [{"$changeStream": self._stage_options()}, *self.build_pipeline()]

    def to_options(self) -> dict:
        """Driver-level watch options."""
        options = self._stage_options()
        if self._max_await_time_ms is not None:
            options["maxAwaitTimeMS"] = self._max_await_time_ms
        if self._batch_size is not None:
            options["batchSize"] = self._batch_size
        return options

    @property
    def target(self) -> Optional[str]:
        """The ``db.coll`` (or bare ``db``/``coll``) being watched, if set."""
        if self._database and self._collection:
            return f"{self._database}.{self._collection}"
        return self._collection or self._database
