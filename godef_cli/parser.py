"""Go syntax engine built on Tree-sitter.

Wraps the ``tree-sitter-go`` grammar behind the three operations the
resolver needs:

- parse a whole file into a :class:`SourceFile`
- read only a file's package clause (cheap sibling pre-check)
- re-parse a bare expression so it resolves in another file's scope

Byte offsets are translated to line/column through an explicitly owned
:class:`FileSet`, created once per invocation and passed to every parse.
"""

from __future__ import annotations

import logging
import os
import re
from ast import literal_eval
from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .errors import GrammarUnavailable, ParseFailure, UnresolvableExpression
from .models import Position

if TYPE_CHECKING:
    from .scope import Object, Package

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Node kinds (tree-sitter-go grammar)
# ---------------------------------------------------------------------------
IDENT_TYPES = frozenset({
    "identifier", "type_identifier", "field_identifier",
    "package_identifier", "label_name",
    "true", "false", "nil", "iota",
})

# Selector-like node type -> field holding the selected name
SELECTOR_FIELDS: Dict[str, str] = {
    "selector_expression": "field",
    "qualified_type": "name",
}

EXPR_PLACEHOLDER = "<arg>"
BOM = b"\xef\xbb\xbf"

_LEADING_TRIVIA = re.compile(r"(?:\s+|//[^\n]*|/\*.*?\*/)*", re.S)
_PACKAGE_CLAUSE = re.compile(r"package\s+(\w+)")
_IGNORE_TAG = re.compile(r"^//\s*(?:go:build|\+build)\s+ignore\s*$", re.M)
_ESCAPE = re.compile(r'\\(?:[abfnrtv\\"]|[0-7]{3}|x[0-9a-fA-F]{2}|u[0-9a-fA-F]{4}|U[0-9a-fA-F]{8})')


class NodeKind(str, Enum):
    IDENTIFIER = "identifier"
    SELECTOR = "selector"
    IMPORT_SPEC = "import_spec"


def classify(node: Any) -> Optional[NodeKind]:
    """Return the resolvable kind of *node*, or None."""
    if node.type in IDENT_TYPES:
        return NodeKind.IDENTIFIER
    if node.type in SELECTOR_FIELDS:
        return NodeKind.SELECTOR
    if node.type == "import_spec":
        return NodeKind.IMPORT_SPEC
    return None


@dataclass(frozen=True)
class ResolvedNode:
    node: Any
    file: "SourceFile"
    kind: NodeKind


# ===================================================================
# Source files and the position table
# ===================================================================

class SourceFile:
    """One parsed Go file. Never mutated after parsing, apart from the
    back-reference to the package that absorbs it."""

    def __init__(
        self,
        filename: str,
        src: bytes,
        tree: Any,
        host: Optional["SourceFile"] = None,
    ) -> None:
        self.filename = filename
        self.src = src
        self.tree = tree
        self.root = tree.root_node
        self.host = host
        self.package: Optional["Package"] = None
        self.package_name = self._read_package_name()
        self.imports: Optional[Dict[str, "Object"]] = None
        self.dot_imports: List[str] = []
        self.line_starts = _line_starts(src)

    def __repr__(self) -> str:
        return f"SourceFile({self.filename!r})"

    def _read_package_name(self) -> str:
        for child in self.root.children:
            if child.type == "package_clause":
                for sub in child.named_children:
                    if sub.type == "package_identifier":
                        return self.text(sub)
        return ""

    @property
    def scope_file(self) -> "SourceFile":
        """The file whose imports and package scope names resolve in."""
        return self.host or self

    @property
    def directory(self) -> str:
        return os.path.dirname(self.scope_file.filename) or "."

    @property
    def has_errors(self) -> bool:
        return bool(self.root.has_error)

    def text(self, node: Any) -> str:
        return self.src[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def _line_starts(src: bytes) -> List[int]:
    starts = [0]
    i = src.find(b"\n")
    while i >= 0:
        starts.append(i + 1)
        i = src.find(b"\n", i + 1)
    return starts


class FileSet:
    """Position table for every file parsed during one invocation."""

    def __init__(self) -> None:
        self._files: List[SourceFile] = []

    def add(self, file: SourceFile) -> SourceFile:
        self._files.append(file)
        return file

    def __len__(self) -> int:
        return len(self._files)

    def position(self, file: SourceFile, offset: int) -> Position:
        line = bisect_right(file.line_starts, offset)
        column = offset - file.line_starts[line - 1] + 1
        return Position(filename=file.filename, line=line, column=column)


# ===================================================================
# Parser
# ===================================================================

class GoParser:
    """Error-tolerant Go parser built on Tree-sitter."""

    def __init__(self, fset: FileSet) -> None:
        self.fset = fset
        self._parser = self._init_parser()

    @staticmethod
    def _init_parser() -> Any:
        try:
            import tree_sitter_go  # type: ignore[import-untyped]
            from tree_sitter import Language, Parser as TSParser  # type: ignore[import-untyped]
        except ImportError as exc:
            raise GrammarUnavailable(
                "tree-sitter-go is not installed -- "
                "Install with: pip install tree-sitter tree-sitter-go"
            ) from exc
        # tree-sitter >=0.22 per-language packages expose a language()
        # function that returns the Language capsule.
        return TSParser(Language(tree_sitter_go.language()))

    def parse_file(self, filename: str, src: Optional[bytes] = None) -> SourceFile:
        """Parse *filename* (or *src* on its behalf).

        Syntax errors are tolerated; only an unreadable file or a missing
        package clause is a :class:`ParseFailure`.
        """
        if src is None:
            try:
                src = Path(filename).read_bytes()
            except OSError as exc:
                raise ParseFailure(f"cannot parse {filename}: {exc.strerror or exc}") from exc
        file = SourceFile(filename, src, self._parser.parse(_mask_bom(src)))
        if not file.package_name:
            raise ParseFailure(f"cannot parse {filename}: expected package clause")
        if file.has_errors:
            logger.debug("Syntax errors in %s; continuing with partial tree", filename)
        return self.fset.add(file)

    def parse_expr(self, expr: str, host: SourceFile) -> ResolvedNode:
        """Parse *expr* so that its names resolve in *host*'s scope."""
        wrapper = f"package expr\n\nvar _ = {expr}\n".encode("utf-8")
        file = SourceFile(EXPR_PLACEHOLDER, wrapper, self._parser.parse(wrapper), host=host)
        values = _expr_values(file.root)
        if file.has_errors or values is None or len(values) != 1:
            raise UnresolvableExpression(f"cannot parse expression: {expr!r} is not an expression")
        node = values[0]
        kind = classify(node)
        if kind not in (NodeKind.IDENTIFIER, NodeKind.SELECTOR):
            raise UnresolvableExpression("no identifier found in expression")
        self.fset.add(file)
        return ResolvedNode(node, file, kind)


def _mask_bom(src: bytes) -> bytes:
    """Blank a leading byte order mark; byte offsets stay unchanged."""
    if src.startswith(BOM):
        return b" " * len(BOM) + src[len(BOM):]
    return src


def _expr_values(root: Any) -> Optional[List[Any]]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "var_spec":
            value = node.child_by_field_name("value")
            return list(value.named_children) if value is not None else None
        stack.extend(reversed(node.named_children))
    return None


def unquote(literal: str) -> str:
    """Unquote a Go interpreted or raw string literal.

    Raises:
        ValueError: if *literal* is not a well-formed string literal.
    """
    if len(literal) >= 2 and literal[0] == literal[-1] == "`":
        body = literal[1:-1]
        if "`" in body:
            raise ValueError(f"invalid raw string literal {literal!r}")
        return body.replace("\r", "")
    if len(literal) >= 2 and literal[0] == literal[-1] == '"':
        body = literal[1:-1]
        if "\n" in body:
            raise ValueError(f"newline in string literal {literal!r}")
        if "\\" not in body:
            if '"' in body:
                raise ValueError(f"unescaped quote in {literal!r}")
            return body
        if "\\" in _ESCAPE.sub("", body):
            raise ValueError(f"invalid escape in {literal!r}")
        try:
            value = literal_eval(literal)
        except (SyntaxError, ValueError) as exc:
            raise ValueError(f"invalid escape in {literal!r}") from exc
        if not isinstance(value, str):
            raise ValueError(f"not a string literal: {literal!r}")
        return value
    raise ValueError(f"not a string literal: {literal!r}")


def _split_header(text: str) -> tuple[str, str]:
    """Split source text into (leading comments, remainder)."""
    text = text.removeprefix("\ufeff")
    m = _LEADING_TRIVIA.match(text)
    end = m.end() if m else 0
    return text[:end], text[end:]


def package_clause(filename: str) -> str:
    """Return the package name declared by *filename*, or "" on failure.

    Only the leading comments and the clause itself are examined.
    """
    try:
        with open(filename, "rb") as f:
            text = f.read().decode("utf-8", errors="replace")
    except OSError:
        return ""
    _, rest = _split_header(text)
    m = _PACKAGE_CLAUSE.match(rest)
    return m.group(1) if m else ""


def build_ignored(filename: str) -> bool:
    """True for files excluded from every build with an ``ignore`` tag."""
    try:
        with open(filename, "rb") as f:
            text = f.read().decode("utf-8", errors="replace")
    except OSError:
        return True
    header, _ = _split_header(text)
    return bool(_IGNORE_TAG.search(header))
