"""Query and result data models shared by the resolver and the formatter."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class QueryMode(str, Enum):
    NONE = "none"
    OFFSET = "offset"
    EXPRESSION = "expression"


@dataclass(frozen=True)
class Query:
    """A definition query: a textual expression or a byte offset.

    A non-empty expression takes precedence over the offset, even when the
    offset is non-negative.
    """
    expression: str = ""
    offset: int = -1

    @property
    def mode(self) -> QueryMode:
        if self.expression:
            return QueryMode.EXPRESSION
        if self.offset >= 0:
            return QueryMode.OFFSET
        return QueryMode.NONE

    @property
    def ambiguous(self) -> bool:
        """True when both an expression and an offset were supplied."""
        return bool(self.expression) and self.offset >= 0


class Kind(str, Enum):
    BAD = "bad"
    FUNC = "func"
    VAR = "var"
    IMPORT = "import"
    CONST = "const"
    LABEL = "label"
    TYPE = "type"
    PATH = "path"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Position:
    filename: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.filename and self.line > 0:
            return f"{self.filename}:{self.line}:{self.column}"
        if self.line > 0:
            return f"{self.line}:{self.column}"
        if self.filename:
            return self.filename
        return "-"

    def to_dict(self) -> Dict[str, Any]:
        """Record form with zero and empty fields omitted."""
        out: Dict[str, Any] = {}
        if self.filename:
            out["filename"] = self.filename
        if self.line:
            out["line"] = self.line
        if self.column:
            out["column"] = self.column
        return out


@dataclass
class Result:
    name: str
    kind: Kind
    pkg: str = ""
    position: Position = field(default_factory=Position)
    members: List["Result"] = field(default_factory=list)
    type: Optional[str] = None
    value: Optional[str] = None

    @property
    def exported(self) -> bool:
        return is_exported(self.name)


def is_exported(name: str) -> bool:
    return bool(name) and name[0].isupper()
