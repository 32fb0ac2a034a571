"""Answer a definition query: dispatch, two-tier resolution and result assembly.

The local tier sees only the principal file plus the packages it imports.
When that fails (or type output is wanted and the whole package is
configured for it), sibling files are aggregated into the package and the
query is resolved again against the merged scope.
"""

from __future__ import annotations

import logging
from typing import Optional

from . import config
from .aggregator import aggregate
from .errors import MalformedImportLiteral, NoDeclarationFound, NoMoreFiles, NoQuerySpecified
from .finder import find_identifier
from .importer import Importer, PackageLocator
from .inference import TypeChecker
from .models import Kind, Position, Query, QueryMode, Result
from .parser import FileSet, GoParser, NodeKind, ResolvedNode, SourceFile, unquote
from .scope import Object, Package

logger = logging.getLogger(__name__)


class Resolver:
    """One definition query's worth of state: position table, parser,
    importer and inference engine."""

    def __init__(
        self,
        locator: Optional[PackageLocator] = None,
        full_package_for_types: Optional[bool] = None,
    ) -> None:
        self.fset = FileSet()
        self.parser = GoParser(self.fset)
        self.locator = locator or PackageLocator()
        self.importer = Importer(self.parser, self.locator)
        self.checker = TypeChecker(self.importer)
        if full_package_for_types is None:
            full_package_for_types = config.full_package_for_types()
        self.full_package_for_types = full_package_for_types

    def load(self, filename: str, src: Optional[bytes] = None) -> SourceFile:
        """Parse the principal file into a single-file package."""
        file = self.parser.parse_file(filename, src)
        Package.for_file(file)
        return file

    def locate(self, query: Query, file: SourceFile) -> ResolvedNode:
        if query.ambiguous:
            logger.debug("Both expression and offset given; ignoring offset %d", query.offset)
        if query.mode is QueryMode.EXPRESSION:
            return self.parser.parse_expr(query.expression, host=file)
        if query.mode is QueryMode.OFFSET:
            return find_identifier(file, query.offset, self.parser)
        raise NoQuerySpecified()

    def define(
        self,
        filename: str,
        query: Query,
        src: Optional[bytes] = None,
        want_type: bool = False,
        want_members: bool = False,
    ) -> Result:
        """Load *filename*, locate the node *query* names and resolve it."""
        file = self.load(filename, src)
        target = self.locate(query, file)
        return self.resolve(target, want_type=want_type, want_members=want_members)

    def resolve(self, target: ResolvedNode, want_type: bool = False, want_members: bool = False) -> Result:
        if target.kind is NodeKind.IMPORT_SPEC:
            return self.import_path(target)

        expr = target.file.text(target.node)
        obj: Optional[Object] = None
        if want_type and self.full_package_for_types:
            logger.debug("Type requested; resolving %s against the whole package", expr)
        else:
            obj, _ = self.checker.expr_type(target.node, target.file)
            if obj is None:
                logger.debug("No local declaration for %s; aggregating package", expr)
        if obj is None:
            obj = self._package_tier(target)
        if obj is None:
            raise NoDeclarationFound(expr)
        logger.debug("Resolved %s to %r", expr, obj)
        return self.build(obj, want_members=want_members)

    def _package_tier(self, target: ResolvedNode) -> Optional[Object]:
        principal = target.file.scope_file
        try:
            aggregate(principal, self.parser)
        except NoMoreFiles as exc:
            logger.debug("Aggregation of %s: %s", principal.filename, exc)
        if target.file.host is not None:
            target = self.parser.parse_expr(target.file.text(target.node), host=principal)
        obj, _ = self.checker.expr_type(target.node, target.file)
        return obj

    def import_path(self, target: ResolvedNode) -> Result:
        path_node = target.node.child_by_field_name("path")
        literal = target.file.text(path_node) if path_node is not None else ""
        try:
            path = unquote(literal)
        except ValueError as exc:
            raise MalformedImportLiteral(f"invalid string literal {literal!r} in import spec") from exc
        directory = self.locator.find(path, target.file.directory)
        return Result(name=path, kind=Kind.PATH, value=directory)

    def position(self, obj: Object) -> Position:
        if obj.decl is None or obj.file is None:
            return Position()
        return self.fset.position(obj.file, obj.decl.start_byte)

    def build(self, obj: Object, want_members: bool = False) -> Result:
        result = Result(
            name=obj.name,
            kind=obj.kind,
            pkg=obj.pkg,
            position=self.position(obj),
            type=self.checker.type_string(obj),
            value=self.checker.value_string(obj),
        )
        if want_members and obj.kind is Kind.TYPE:
            for member in self.checker.members(obj):
                entry = self.build(member)
                entry.pkg = member.pkg if member.pkg != obj.pkg else ""
                result.members.append(entry)
        return result
