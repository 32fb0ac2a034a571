"""Declaring objects, lexical scopes and packages.

Objects are created straight from the name node that declares them, so the
same declaration always yields an equal :class:`Object` no matter whether it
was reached through a scope lookup or by pointing at the name itself.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .models import Kind
from .parser import SourceFile, unquote

logger = logging.getLogger(__name__)

FUNC_SCOPES = frozenset({"function_declaration", "method_declaration", "func_literal"})
DECL_STATEMENTS = frozenset({
    "short_var_declaration", "var_declaration", "const_declaration", "type_declaration",
})
SPEC_TYPES = frozenset({"var_spec", "const_spec", "type_spec", "type_alias"})

BUILTIN_TYPES = (
    "any", "bool", "byte", "comparable", "complex64", "complex128", "error",
    "float32", "float64", "int", "int8", "int16", "int32", "int64", "rune",
    "string", "uint", "uint8", "uint16", "uint32", "uint64", "uintptr",
)
BUILTIN_FUNCS = (
    "append", "cap", "clear", "close", "complex", "copy", "delete", "imag",
    "len", "make", "max", "min", "new", "panic", "print", "println", "real",
    "recover",
)


class Object:
    """An entity an identifier can name."""

    def __init__(
        self,
        kind: Kind,
        name: str,
        decl: Any = None,
        file: Optional[SourceFile] = None,
        pkg: str = "",
        type_node: Any = None,
        value_node: Any = None,
        value_index: int = 0,
        role: str = "",
        spec: Any = None,
        data: Any = None,
    ) -> None:
        self.kind = kind
        self.name = name
        self.decl = decl
        self.file = file
        self.pkg = pkg
        self.type_node = type_node
        self.value_node = value_node
        self.value_index = value_index
        self.role = role
        self.spec = spec
        self.data = data

    @property
    def builtin(self) -> bool:
        return self.decl is None

    @property
    def package(self) -> Optional["Package"]:
        return self.file.scope_file.package if self.file is not None else None

    def _key(self) -> Tuple[str, int, str]:
        filename = self.file.filename if self.file is not None else ""
        offset = self.decl.start_byte if self.decl is not None else -1
        return filename, offset, self.name

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Object) and self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return f"Object({self.kind.value} {self.name})"


class Scope:
    def __init__(self, outer: Optional["Scope"] = None) -> None:
        self.outer = outer
        self.objects: Dict[str, Object] = {}

    def lookup(self, name: str) -> Optional[Object]:
        scope: Optional[Scope] = self
        while scope is not None:
            obj = scope.objects.get(name)
            if obj is not None:
                return obj
            scope = scope.outer
        return None

    def insert(self, obj: Object) -> Object:
        """Insert *obj* unless the name is taken; return the bound object."""
        return self.objects.setdefault(obj.name, obj)


def _build_universe() -> Scope:
    scope = Scope()
    for name in BUILTIN_TYPES:
        scope.insert(Object(Kind.TYPE, name))
    for name in BUILTIN_FUNCS:
        scope.insert(Object(Kind.FUNC, name))
    for name in ("true", "false"):
        scope.insert(Object(Kind.CONST, name, data="bool"))
    scope.insert(Object(Kind.CONST, "iota", data="int"))
    scope.insert(Object(Kind.VAR, "nil"))
    return scope


UNIVERSE = _build_universe()


class Package:
    """Files sharing one package name, one merged scope and one method index."""

    def __init__(self, name: str, path: str = "") -> None:
        self.name = name
        self.path = path
        self.files: Dict[str, SourceFile] = {}
        self.scope = Scope(UNIVERSE)
        self.methods: Dict[str, Dict[str, Object]] = {}

    @classmethod
    def for_file(cls, file: SourceFile, path: str = "") -> "Package":
        pkg = cls(file.package_name, path)
        pkg.add_file(file)
        return pkg

    def __repr__(self) -> str:
        return f"Package({self.name!r}, files={len(self.files)})"

    def add_file(self, file: SourceFile) -> None:
        self.files[file.filename] = file
        file.package = self
        for obj in top_level_objects(file, self.path):
            if obj.role == "method":
                self.methods.setdefault(obj.data, {}).setdefault(obj.name, obj)
            elif obj.name != "_" and not (obj.kind is Kind.FUNC and obj.name == "init"):
                self.scope.insert(obj)

    def method_set(self, type_name: str) -> Dict[str, Object]:
        return self.methods.get(type_name, {})


# ===================================================================
# Declarations
# ===================================================================

def _same(a: Any, b: Any) -> bool:
    return a is not None and b is not None and (a.start_byte, a.end_byte) == (b.start_byte, b.end_byte)


def _index_of(node: Any, nodes: List[Any]) -> int:
    for i, n in enumerate(nodes):
        if _same(n, node):
            return i
    return -1


def expressions(expr_list: Any) -> List[Any]:
    if expr_list is None:
        return []
    if expr_list.type != "expression_list":
        return [expr_list]
    return [n for n in expr_list.named_children if n.type != "comment"]


def _value_at(expr_list: Any, index: int, count: int) -> Tuple[Any, int]:
    values = expressions(expr_list)
    if count > 1 and len(values) == 1:
        return values[0], index
    if index < len(values):
        return values[index], 0
    return None, 0


def _specs(decl: Any) -> Iterator[Any]:
    """Yield the specs of a var/const/type declaration, grouped or not."""
    for child in decl.named_children:
        if child.type in SPEC_TYPES:
            yield child
        elif child.type.endswith("_spec_list"):
            for spec in child.named_children:
                if spec.type in SPEC_TYPES:
                    yield spec


def declared_names(stmt: Any) -> List[Any]:
    """Name nodes declared by a statement-level declaration or clause."""
    t = stmt.type
    if t == "short_var_declaration":
        return [n for n in expressions(stmt.child_by_field_name("left")) if n.type == "identifier"]
    if t in ("var_declaration", "const_declaration", "type_declaration"):
        names: List[Any] = []
        for spec in _specs(stmt):
            names.extend(spec.children_by_field_name("name"))
        return names
    if t in ("range_clause", "receive_statement"):
        if any(c.type == ":=" for c in stmt.children):
            return [n for n in expressions(stmt.child_by_field_name("left")) if n.type == "identifier"]
        return []
    if t == "for_clause":
        init = stmt.child_by_field_name("initializer")
        return declared_names(init) if init is not None else []
    return []


def receiver_type_name(method: Any, file: SourceFile) -> str:
    """Base type name of a method declaration's receiver."""
    receiver = method.child_by_field_name("receiver")
    if receiver is None:
        return ""
    for param in receiver.named_children:
        if param.type != "parameter_declaration":
            continue
        t = param.child_by_field_name("type")
        while t is not None and t.type in ("pointer_type", "parenthesized_type", "generic_type"):
            t = t.child_by_field_name("type") if t.type == "generic_type" else _first_named(t)
        if t is not None and t.type == "type_identifier":
            return file.text(t)
    return ""


def _first_named(node: Any) -> Any:
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def object_for_name(node: Any, file: SourceFile, pkg: str = "") -> Optional[Object]:
    """Return the object declared by *node*, or None if it is not a declaring name."""
    parent = node.parent
    if parent is None:
        return None
    pt = parent.type
    name = file.text(node)

    if pt in ("function_declaration", "method_declaration"):
        if not _same(parent.child_by_field_name("name"), node):
            return None
        if pt == "method_declaration":
            return Object(Kind.FUNC, name, node, file, pkg, spec=parent, role="method",
                          data=receiver_type_name(parent, file))
        return Object(Kind.FUNC, name, node, file, pkg, spec=parent)

    if pt in ("type_spec", "type_alias"):
        if not _same(parent.child_by_field_name("name"), node):
            return None
        return Object(Kind.TYPE, name, node, file, pkg,
                      type_node=parent.child_by_field_name("type"), spec=parent)

    if pt == "type_parameter_declaration":
        if _index_of(node, parent.children_by_field_name("name")) < 0:
            return None
        return Object(Kind.TYPE, name, node, file, pkg,
                      type_node=parent.child_by_field_name("type"), spec=parent, role="typeparam")

    if pt == "var_spec":
        names = parent.children_by_field_name("name")
        idx = _index_of(node, names)
        if idx < 0:
            return None
        value, vindex = _value_at(parent.child_by_field_name("value"), idx, len(names))
        return Object(Kind.VAR, name, node, file, pkg, type_node=parent.child_by_field_name("type"),
                      value_node=value, value_index=vindex, spec=parent)

    if pt == "const_spec":
        return _const_object(node, parent, file, pkg)

    if pt in ("parameter_declaration", "variadic_parameter_declaration"):
        if _index_of(node, parent.children_by_field_name("name")) < 0:
            return None
        role = "variadic" if pt == "variadic_parameter_declaration" else "param"
        return Object(Kind.VAR, name, node, file, pkg,
                      type_node=parent.child_by_field_name("type"), spec=parent, role=role)

    if pt == "field_declaration":
        if _index_of(node, parent.children_by_field_name("name")) < 0:
            return None
        return Object(Kind.VAR, name, node, file, pkg,
                      type_node=parent.child_by_field_name("type"), spec=parent, role="field")

    if pt in ("method_elem", "method_spec"):
        if not _same(parent.child_by_field_name("name"), node):
            return None
        return Object(Kind.FUNC, name, node, file, pkg, spec=parent, role="interface")

    if pt == "labeled_statement":
        if not _same(parent.child_by_field_name("label"), node):
            return None
        return Object(Kind.LABEL, name, node, file, pkg, spec=parent)

    if pt == "import_spec" and _same(parent.child_by_field_name("name"), node):
        return import_object(parent, file, name)

    if pt == "expression_list":
        return _assigned_object(node, parent, file, pkg)

    return None


def _const_object(node: Any, spec: Any, file: SourceFile, pkg: str) -> Optional[Object]:
    names = spec.children_by_field_name("name")
    idx = _index_of(node, names)
    if idx < 0:
        return None
    group = spec.parent
    siblings = [c for c in group.named_children if c.type == "const_spec"] if group is not None else [spec]
    iota = max(_index_of(spec, siblings), 0)
    # Implicit repetition: a spec without values copies the last one that has them.
    source = spec
    for candidate in reversed(siblings[:iota + 1]):
        if candidate.child_by_field_name("value") is not None:
            source = candidate
            break
    value, vindex = _value_at(source.child_by_field_name("value"), idx, len(names))
    return Object(Kind.CONST, file.text(node), node, file, pkg,
                  type_node=source.child_by_field_name("type"),
                  value_node=value, value_index=vindex, spec=spec, data=iota)


def _assigned_object(node: Any, expr_list: Any, file: SourceFile, pkg: str) -> Optional[Object]:
    stmt = expr_list.parent
    if stmt is None or node.type != "identifier":
        return None
    names = expressions(expr_list)
    idx = _index_of(node, names)
    name = file.text(node)

    if stmt.type == "short_var_declaration" and _same(stmt.child_by_field_name("left"), expr_list):
        earlier = _redeclared(name, stmt, file, pkg)
        if earlier is not None:
            return earlier
        value, vindex = _value_at(stmt.child_by_field_name("right"), idx, len(names))
        return Object(Kind.VAR, name, node, file, pkg, value_node=value, value_index=vindex, spec=stmt)

    if stmt.type in ("range_clause", "receive_statement"):
        if not _same(stmt.child_by_field_name("left"), expr_list) or not declared_names(stmt):
            return None
        role = "range" if stmt.type == "range_clause" else ""
        return Object(Kind.VAR, name, node, file, pkg, value_node=stmt.child_by_field_name("right"),
                      value_index=idx, role=role, spec=stmt)

    if stmt.type == "type_switch_statement" and _same(stmt.child_by_field_name("alias"), expr_list):
        return Object(Kind.VAR, name, node, file, pkg, value_node=stmt.child_by_field_name("value"),
                      role="switch", spec=stmt)
    return None


def _redeclared(name: str, stmt: Any, file: SourceFile, pkg: str) -> Optional[Object]:
    """An earlier declaration of *name* in the same block reused by ``:=``."""
    container = stmt.parent
    if container is None:
        return None
    for sib in container.named_children:
        if sib.end_byte > stmt.start_byte:
            break
        if sib.type in DECL_STATEMENTS:
            for n in declared_names(sib):
                if file.text(n) == name:
                    return object_for_name(n, file, pkg)
    return None


def import_object(spec: Any, file: SourceFile, local_name: str) -> Optional[Object]:
    path_node = spec.child_by_field_name("path")
    if path_node is None:
        return None
    literal = file.text(path_node)
    try:
        path = unquote(literal)
    except ValueError:
        return None
    decl = spec.child_by_field_name("name") or path_node
    return Object(Kind.IMPORT, local_name, decl, file, spec=spec, data=path, value_node=path_node)


def import_specs(file: SourceFile) -> Iterator[Any]:
    for child in file.root.named_children:
        if child.type != "import_declaration":
            continue
        for sub in child.named_children:
            if sub.type == "import_spec":
                yield sub
            elif sub.type == "import_spec_list":
                for spec in sub.named_children:
                    if spec.type == "import_spec":
                        yield spec


def file_imports(file: SourceFile, package_name: Callable[[str, str], str]) -> Dict[str, Object]:
    """Import objects of *file* keyed by local name (computed once).

    *package_name* maps ``(import path, source dir)`` to the name an
    unaliased import binds.
    """
    if file.imports is not None:
        return file.imports
    imports: Dict[str, Object] = {}
    dots: List[str] = []
    for spec in import_specs(file):
        name_node = spec.child_by_field_name("name")
        path_node = spec.child_by_field_name("path")
        if path_node is None:
            continue
        try:
            path = unquote(file.text(path_node))
        except ValueError:
            logger.debug("Skipping malformed import %s in %s", file.text(path_node), file.filename)
            continue
        if name_node is not None:
            alias = file.text(name_node)
            if alias == ".":
                dots.append(path)
                continue
            if alias == "_":
                continue
            local = alias
        else:
            local = package_name(path, file.directory)
        obj = import_object(spec, file, local)
        if obj is not None:
            imports.setdefault(local, obj)
    file.imports = imports
    file.dot_imports = dots
    return imports


def top_level_objects(file: SourceFile, pkg: str = "") -> Iterator[Object]:
    for child in file.root.named_children:
        if child.type in ("function_declaration", "method_declaration"):
            name = child.child_by_field_name("name")
            obj = object_for_name(name, file, pkg) if name is not None else None
            if obj is not None:
                yield obj
        elif child.type in ("var_declaration", "const_declaration", "type_declaration"):
            for name in declared_names(child):
                obj = object_for_name(name, file, pkg)
                if obj is not None:
                    yield obj


# ===================================================================
# Lexical lookup inside function bodies
# ===================================================================

def lookup_local(name: str, node: Any, file: SourceFile, pkg: str = "") -> Optional[Object]:
    """Find the innermost local declaration of *name* visible at *node*."""
    cur = node
    parent = node.parent
    while parent is not None and parent.type != "source_file":
        obj = _lookup_in(name, cur, parent, file, pkg)
        if obj is not None:
            return obj
        cur, parent = parent, parent.parent
    return None


def _lookup_in(name: str, cur: Any, parent: Any, file: SourceFile, pkg: str) -> Optional[Object]:
    pt = parent.type
    if pt in FUNC_SCOPES or pt == "type_spec":
        return _lookup_signature(name, cur, parent, file, pkg)

    if pt == "type_switch_statement" and cur.type in ("type_case", "default_case"):
        alias = parent.child_by_field_name("alias")
        for n in expressions(alias):
            if file.text(n) == name:
                case_types = cur.children_by_field_name("type") if cur.type == "type_case" else []
                if len(case_types) == 1 and case_types[0].type != "nil":
                    return Object(Kind.VAR, name, n, file, pkg, type_node=case_types[0],
                                  role="switch", spec=parent)
                return object_for_name(n, file, pkg)

    for sib in parent.named_children:
        if sib.end_byte > cur.start_byte:
            break
        if sib.type in DECL_STATEMENTS or sib.type in ("range_clause", "for_clause", "receive_statement"):
            for n in declared_names(sib):
                if file.text(n) == name:
                    return object_for_name(n, file, pkg)
    return None


def _lookup_signature(name: str, cur: Any, fn: Any, file: SourceFile, pkg: str) -> Optional[Object]:
    fields = ["type_parameters"]
    if _same(fn.child_by_field_name("body"), cur):
        fields = ["receiver", "type_parameters", "parameters", "result"]
    for field in fields:
        params = fn.child_by_field_name(field)
        if params is None:
            continue
        for param in params.named_children:
            for n in param.children_by_field_name("name"):
                if file.text(n) == name:
                    return object_for_name(n, file, pkg)
    return None


def lookup_label(name: str, node: Any, file: SourceFile, pkg: str = "") -> Optional[Object]:
    fn = node.parent
    while fn is not None and fn.type not in FUNC_SCOPES:
        fn = fn.parent
    body = fn.child_by_field_name("body") if fn is not None else None
    if body is None:
        return None
    stack = [body]
    while stack:
        n = stack.pop()
        if n.type == "labeled_statement":
            label = n.child_by_field_name("label")
            if label is not None and file.text(label) == name:
                return object_for_name(label, file, pkg)
        stack.extend(c for c in reversed(n.named_children) if c.type != "func_literal")
    return None
