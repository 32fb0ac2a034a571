"""Error kinds raised while answering a definition query.

Every error carries a single human-readable line as its message; the CLI
prints it verbatim regardless of the selected output mode.
"""

from __future__ import annotations


class GodefError(Exception):
    """Base exception for all godef errors."""


class NoQuerySpecified(GodefError):
    """Neither an expression nor a non-negative offset was given."""

    def __init__(self, message: str = "no expression or offset specified") -> None:
        super().__init__(message)


class ParseFailure(GodefError):
    """The principal source cannot be read or parsed at all."""


class GrammarUnavailable(ParseFailure):
    """tree-sitter or the Go grammar package is not installed."""


class UnresolvableExpression(GodefError):
    """A query expression is not an identifier or selector expression."""


class MalformedImportLiteral(GodefError):
    """An import path literal could not be unquoted."""


class ImportPathNotFound(GodefError):
    """An import path does not map to any package directory."""


class NoDeclarationFound(GodefError):
    """Both resolution tiers failed to find a declaring object."""

    def __init__(self, expr: str) -> None:
        self.expr = expr
        super().__init__(f"no declaration found for {expr}")


class NodeNotFound(GodefError):
    """No resolvable syntax node covers the requested offset."""

    def __init__(self, message: str = "no identifier found") -> None:
        super().__init__(message)


class NoMoreFiles(GodefError):
    """Package aggregation found no sibling files; never surfaced to users."""

    def __init__(self, message: str = "no more package files found") -> None:
        super().__init__(message)
