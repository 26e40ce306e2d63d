from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Outcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class ResolvedFile:
    """Result of resolving one requested path against a source."""

    path: str
    outcome: Outcome
    content: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, path: str, content: str) -> "ResolvedFile":
        return cls(path=path, outcome=Outcome.OK, content=content)

    @classmethod
    def not_found(cls, path: str, message: str) -> "ResolvedFile":
        return cls(path=path, outcome=Outcome.NOT_FOUND, error=message)

    @classmethod
    def failed(cls, path: str, message: str) -> "ResolvedFile":
        return cls(path=path, outcome=Outcome.ERROR, error=message)
