# prax/mongo/functions.py
"""Server-side JavaScript: ``$function`` and ``$accumulator`` expressions."""

from dataclasses import dataclass
from typing import Any, Optional

from prax.utils.exceptions import InvalidInputError


@dataclass(frozen=True)
class MongoFunction:
    body: str
    args: tuple[Any, ...] = ()
    lang: str = "js"

    def __post_init__(self):
        if not self.body.strip():
            raise InvalidInputError("body", "function body must not be empty")

    def to_expression(self) -> dict:
        return {"$function": {"body": self.body, "args": list(self.args), "lang": self.lang}}


@dataclass(frozen=True)
class MongoAccumulator:
    """A custom ``$group`` accumulator."""

    init: str
    accumulate: str
    merge: str
    accumulate_args: tuple[Any, ...] = ()
    init_args: Optional[tuple[Any, ...]] = None
    finalize: Optional[str] = None
    lang: str = "js"

    def to_expression(self) -> dict:
        acc: dict[str, Any] = {"init": self.init}
        if self.init_args is not None:
            acc["initArgs"] = list(self.init_args)
        acc["accumulate"] = self.accumulate
        acc["accumulateArgs"] = list(self.accumulate_args)
        acc["merge"] = self.merge
        if self.finalize is not None:
            acc["finalize"] = self.finalize
        acc["lang"] = self.lang
        return {"$accumulator": acc}
