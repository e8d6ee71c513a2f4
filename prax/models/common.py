# prax/models/common.py
"""Source locations shared by every AST node."""

from pydantic import BaseModel, ConfigDict


class Span(BaseModel):
    """Byte range ``[start, end)`` in the schema source."""

    start: int = 0
    end: int = 0

    model_config = ConfigDict(frozen=True)

    def __len__(self) -> int:
        return max(self.end - self.start, 0)

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def merge(self, other: "Span") -> "Span":
        """Return the smallest span covering both spans."""
        return Span(start=min(self.start, other.start), end=max(self.end, other.end))


class Ident(BaseModel):
    """An identifier together with where it was written."""

    name: str
    span: Span = Span()

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.name
