"""Syntax-directed inference of declaring objects and static types.

Given an expression node and the file it lives in, :class:`TypeChecker`
answers two questions: which :class:`~godef_cli.scope.Object` declares the
name, and what static :class:`Type` the expression has. It is deliberately
partial: generic type arguments are not substituted and untyped constant
arithmetic is not evaluated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .models import Kind
from .parser import IDENT_TYPES, SELECTOR_FIELDS, SourceFile
from .scope import (
    UNIVERSE,
    Object,
    _first_named,
    _same,
    file_imports,
    lookup_label,
    lookup_local,
    object_for_name,
)

if TYPE_CHECKING:
    from .importer import Importer

logger = logging.getLogger(__name__)

MAX_DEPTH = 48

SIGNATURES = frozenset({
    "function_declaration", "method_declaration", "method_elem", "method_spec",
    "func_literal", "function_type",
})
TYPE_EXPRESSIONS = frozenset({
    "pointer_type", "slice_type", "array_type", "implicit_length_array_type",
    "map_type", "struct_type", "interface_type", "function_type", "channel_type",
    "generic_type", "parenthesized_type", "negated_type", "union_type",
})
LIST_TYPES = frozenset({"slice_type", "array_type", "implicit_length_array_type"})
COMPARISONS = frozenset({"==", "!=", "<", "<=", ">", ">=", "&&", "||"})
LITERAL_TYPES: Dict[str, str] = {
    "int_literal": "int",
    "float_literal": "float64",
    "imaginary_literal": "complex128",
    "rune_literal": "rune",
    "interpreted_string_literal": "string",
    "raw_string_literal": "string",
}


@dataclass(frozen=True, eq=False)
class Type:
    """A static type: a type expression in a file, a named object, or a
    synthesised pointer to *base*."""
    node: Any = None
    file: Optional[SourceFile] = None
    obj: Optional[Object] = None
    base: Optional["Type"] = None
    variadic: bool = False

    @classmethod
    def named(cls, obj: Object) -> "Type":
        return cls(obj=obj)

    @classmethod
    def pointer(cls, base: "Type") -> "Type":
        return cls(base=base)

    @classmethod
    def builtin(cls, name: str) -> "Type":
        return cls(obj=UNIVERSE.lookup(name))


def _strip_parens(node: Any) -> Any:
    while node is not None and node.type in ("parenthesized_expression", "parenthesized_type"):
        node = _first_named(node)
    return node


def _arguments(call: Any) -> List[Any]:
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    return [a for a in args.named_children if a.type != "comment"]


def _field_declarations(struct: Any) -> List[Any]:
    out = []
    for child in struct.named_children:
        if child.type == "field_declaration_list":
            out.extend(c for c in child.named_children if c.type == "field_declaration")
    return out


def _embedded_pointer(field: Any) -> bool:
    return any(c.type == "*" for c in field.children)


class TypeChecker:
    """Expression inference against one invocation's loaded packages."""

    def __init__(self, importer: "Importer") -> None:
        self.importer = importer
        self._depth = 0

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    @staticmethod
    def label(file: SourceFile) -> str:
        pkg = file.scope_file.package
        return pkg.path if pkg is not None else ""

    def imports(self, file: SourceFile) -> Dict[str, Object]:
        return file_imports(file.scope_file, self.importer.package_name)

    def lookup(self, name: str, node: Any, file: SourceFile) -> Optional[Object]:
        """Resolve *name* as seen at *node*: locals, imports, package, universe."""
        host = file.scope_file
        if file.host is None:
            obj = lookup_local(name, node, file, self.label(file))
            if obj is not None:
                return obj
        obj = self.imports(host).get(name)
        if obj is not None:
            return obj
        if host.package is not None:
            obj = host.package.scope.objects.get(name)
            if obj is not None:
                return obj
        for path in host.dot_imports:
            pkg = self.importer.import_package(path, host.directory)
            if pkg is not None and name in pkg.scope.objects:
                return pkg.scope.objects[name]
        return UNIVERSE.lookup(name)

    def ident_object(self, node: Any, file: SourceFile) -> Optional[Object]:
        name = file.text(node)
        label = self.label(file)
        parent = node.parent
        if node.type == "label_name":
            if parent is not None and parent.type == "labeled_statement":
                return object_for_name(node, file, label)
            return lookup_label(name, node, file, label)
        obj = object_for_name(node, file, label)
        if obj is not None:
            return obj
        if parent is not None and parent.type == "package_clause":
            return None
        key_field = self._keyed_field(node, file)
        if key_field is not None:
            return key_field
        if node.type == "field_identifier":
            return None
        return self.lookup(name, node, file)

    def selector_object(self, node: Any, file: SourceFile) -> Optional[Object]:
        if node.type == "qualified_type":
            operand = node.child_by_field_name("package")
        else:
            operand = node.child_by_field_name("operand")
        field = node.child_by_field_name(SELECTOR_FIELDS[node.type])
        if operand is None or field is None:
            return None
        name = file.text(field)
        if operand.type in ("identifier", "package_identifier"):
            base = self.ident_object(operand, file)
            if base is not None and base.kind is Kind.IMPORT:
                pkg = self.importer.import_package(base.data, base.file.directory)
                if pkg is None:
                    logger.debug("Cannot load package %s for %s", base.data, name)
                    return None
                return pkg.scope.objects.get(name)
        t = self.type_of(operand, file)
        if t is None:
            return None
        return self.lookup_member(t, name)

    def _keyed_field(self, node: Any, file: SourceFile) -> Optional[Object]:
        """Struct field named by a composite literal key, if *node* is one."""
        container = node
        if node.parent is not None and node.parent.type == "literal_element":
            container = node.parent
        keyed = container.parent
        if keyed is None or keyed.type != "keyed_element":
            return None
        if not _same(_first_named(keyed), container):
            return None
        t = self._literal_type(keyed.parent, file, 0)
        if t is None:
            return None
        pointed = self.deref(t)
        u = self.underlying(pointed or t)
        if u.node is None or u.node.type != "struct_type":
            return None
        return self.lookup_member(t, file.text(node))

    def _literal_type(self, literal: Any, file: SourceFile, depth: int) -> Optional[Type]:
        if literal is None or literal.type != "literal_value" or depth > MAX_DEPTH:
            return None
        parent = literal.parent
        if parent is not None and parent.type == "composite_literal":
            return Type(node=parent.child_by_field_name("type"), file=file)
        # Elided element type: take it from the enclosing literal.
        if parent is not None and parent.type == "literal_element":
            parent = parent.parent
        if parent is None:
            return None
        if parent.type == "keyed_element":
            outer = self._literal_type(parent.parent, file, depth + 1)
            is_key = _same(_first_named(parent), literal) or _same(_first_named(parent), literal.parent)
            return self._key_type(outer) if is_key else self.element_type(outer) if outer else None
        if parent.type == "literal_value":
            outer = self._literal_type(parent, file, depth + 1)
            return self.element_type(outer) if outer else None
        return None

    def _key_type(self, t: Optional[Type]) -> Optional[Type]:
        if t is None:
            return None
        u = self.underlying(t)
        if u.node is not None and u.node.type == "map_type":
            return Type(node=u.node.child_by_field_name("key"), file=u.file)
        return None

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def named_object(self, t: Type) -> Optional[Object]:
        if t.obj is not None:
            return t.obj
        node = _strip_parens(t.node)
        if node is None or t.base is not None or t.variadic:
            return None
        if node.type == "generic_type":
            node = node.child_by_field_name("type")
            if node is None:
                return None
        obj: Optional[Object] = None
        if node.type in ("type_identifier", "identifier"):
            obj = self.lookup(t.file.text(node), node, t.file)
        elif node.type in SELECTOR_FIELDS:
            obj = self.selector_object(node, t.file)
        return obj if obj is not None and obj.kind is Kind.TYPE else None

    def underlying(self, t: Type) -> Type:
        """Follow named types to the type expression they stand for."""
        for _ in range(MAX_DEPTH):
            if t.base is not None or t.variadic:
                return t
            obj = self.named_object(t)
            if obj is None:
                return Type(node=_strip_parens(t.node), file=t.file)
            if obj.builtin or obj.type_node is None or obj.role == "typeparam":
                return Type.named(obj)
            t = Type(node=obj.type_node, file=obj.file)
        return t

    def deref(self, t: Type) -> Optional[Type]:
        """Base type of a pointer type, or None."""
        if t.base is not None:
            return t.base
        for candidate in (t, self.underlying(t)):
            node = _strip_parens(candidate.node)
            if node is not None and node.type == "pointer_type" and not candidate.variadic:
                return Type(node=_first_named(node), file=candidate.file)
        return None

    def element_type(self, t: Optional[Type]) -> Optional[Type]:
        """Element type of an indexed value: slice, array, map, string or pointer to array."""
        if t is None:
            return None
        if t.variadic:
            return Type(node=t.node, file=t.file)
        pointed = self.deref(t)
        u = self.underlying(pointed or t)
        if u.obj is not None:
            return Type.builtin("byte") if u.obj.name == "string" else None
        node = u.node
        if node is None:
            return None
        if node.type in LIST_TYPES:
            return Type(node=node.child_by_field_name("element"), file=u.file)
        if node.type == "map_type":
            return Type(node=node.child_by_field_name("value"), file=u.file)
        if node.type in SIGNATURES:
            # Instantiation of a generic function.
            return t
        return None

    def channel_element(self, t: Optional[Type]) -> Optional[Type]:
        if t is None:
            return None
        u = self.underlying(t)
        if u.node is not None and u.node.type == "channel_type":
            return Type(node=u.node.child_by_field_name("value"), file=u.file)
        return None

    def lookup_member(self, t: Type, name: str, depth: int = 0) -> Optional[Object]:
        """Field or method *name* of *t*, including promoted members."""
        if depth > MAX_DEPTH:
            return None
        pointed = self.deref(t)
        if pointed is not None:
            t = pointed
        obj = self.named_object(t)
        if obj is not None:
            if obj.builtin:
                return None
            pkg = obj.package
            if pkg is not None:
                method = pkg.method_set(obj.name).get(name)
                if method is not None:
                    return method
            if obj.type_node is None or obj.role == "typeparam":
                return None
            return self.lookup_member(Type(node=obj.type_node, file=obj.file), name, depth + 1)

        node = _strip_parens(t.node)
        if node is None or t.file is None:
            return None
        if node.type == "struct_type":
            embedded = []
            for field in _field_declarations(node):
                names = field.children_by_field_name("name")
                if names:
                    for n in names:
                        if t.file.text(n) == name:
                            return object_for_name(n, t.file, self.label(t.file))
                    continue
                member = self._embedded_field(field, t.file)
                if member is None:
                    continue
                if member.name == name:
                    return member
                embedded.append(member)
            for member in embedded:
                found = self.lookup_member(self.object_type(member), name, depth + 1)
                if found is not None:
                    return found
            return None
        if node.type == "interface_type":
            for elem in node.named_children:
                if elem.type in ("method_elem", "method_spec"):
                    n = elem.child_by_field_name("name")
                    if n is not None and t.file.text(n) == name:
                        return object_for_name(n, t.file, self.label(t.file))
                    continue
                for inner in self._embedded_interfaces(elem):
                    found = self.lookup_member(Type(node=inner, file=t.file), name, depth + 1)
                    if found is not None:
                        return found
        return None

    @staticmethod
    def _embedded_interfaces(elem: Any) -> List[Any]:
        if elem.type in ("type_identifier", "qualified_type", "generic_type", "interface_type_name"):
            return [elem]
        if elem.type in ("type_elem", "constraint_elem"):
            return [c for c in elem.named_children if c.type != "comment"]
        return []

    def _embedded_field(self, field: Any, file: SourceFile) -> Optional[Object]:
        """The implicit field an embedded type declares."""
        type_node = field.child_by_field_name("type")
        name_node = _strip_parens(type_node)
        if name_node is not None and name_node.type == "pointer_type":
            name_node = _first_named(name_node)
        if name_node is not None and name_node.type == "generic_type":
            name_node = name_node.child_by_field_name("type")
        if name_node is not None and name_node.type in SELECTOR_FIELDS:
            name_node = name_node.child_by_field_name(SELECTOR_FIELDS[name_node.type])
        if name_node is None or name_node.type not in ("type_identifier", "field_identifier", "identifier"):
            return None
        return Object(Kind.VAR, file.text(name_node), name_node, file, self.label(file),
                      type_node=type_node, spec=field, role="embedded", data=_embedded_pointer(field))

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def expr_type(self, node: Any, file: SourceFile) -> Tuple[Optional[Object], Optional[Type]]:
        """Return ``(declaring object, static type)`` for *node*."""
        if self._depth > MAX_DEPTH:
            logger.debug("Inference depth exceeded at %s", file.text(node)[:40])
            return None, None
        self._depth += 1
        try:
            if node.type in IDENT_TYPES:
                obj = self.ident_object(node, file)
            elif node.type in SELECTOR_FIELDS:
                obj = self.selector_object(node, file)
            else:
                return None, self._expr_type(node, file)
            return obj, (self.object_type(obj) if obj is not None else None)
        finally:
            self._depth -= 1

    def type_of(self, node: Any, file: SourceFile) -> Optional[Type]:
        return self.expr_type(node, file)[1]

    def _expr_type(self, node: Any, file: SourceFile) -> Optional[Type]:
        t = node.type
        if t in ("parenthesized_expression", "parenthesized_type"):
            inner = _first_named(node)
            return self.type_of(inner, file) if inner is not None else None
        if t == "call_expression":
            results = self.call_results(node, file)
            return results[0] if results else None
        if t == "composite_literal":
            return Type(node=node.child_by_field_name("type"), file=file)
        if t == "func_literal":
            return Type(node=node, file=file)
        if t == "unary_expression":
            return self._unary_type(node, file)
        if t == "binary_expression":
            op = node.child_by_field_name("operator")
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            if op is not None and op.type in COMPARISONS:
                return Type.builtin("bool")
            if op is not None and op.type in ("<<", ">>"):
                return self.type_of(left, file)
            if left is not None and left.type not in LITERAL_TYPES:
                return self.type_of(left, file) or self.type_of(right, file)
            return self.type_of(right, file) or self.type_of(left, file)
        if t == "index_expression":
            return self.element_type(self.type_of(node.child_by_field_name("operand"), file))
        if t == "slice_expression":
            return self.type_of(node.child_by_field_name("operand"), file)
        if t in ("type_assertion_expression", "type_conversion_expression"):
            return Type(node=node.child_by_field_name("type"), file=file)
        if t in LITERAL_TYPES:
            return Type.builtin(LITERAL_TYPES[t])
        if t in TYPE_EXPRESSIONS:
            return Type(node=node, file=file)
        return None

    def _unary_type(self, node: Any, file: SourceFile) -> Optional[Type]:
        op = node.child_by_field_name("operator")
        operand = node.child_by_field_name("operand")
        if operand is None:
            return None
        symbol = op.type if op is not None else ""
        if symbol == "!":
            return Type.builtin("bool")
        obj, t = self.expr_type(operand, file)
        if t is None:
            return None
        if symbol == "&":
            return Type.pointer(t)
        if symbol == "*":
            # *T in expression position denotes a pointer type.
            if obj is not None and obj.kind is Kind.TYPE:
                return Type.pointer(t)
            return self.deref(t)
        if symbol == "<-":
            return self.channel_element(t)
        return t

    def call_results(self, call: Any, file: SourceFile) -> List[Type]:
        fn = _strip_parens(call.child_by_field_name("function"))
        if fn is None:
            return []
        obj, t = self.expr_type(fn, file)
        if obj is not None and obj.kind is Kind.TYPE:
            return [Type.named(obj)]
        if obj is None and fn.type in TYPE_EXPRESSIONS - {"generic_type"}:
            return [Type(node=fn, file=file)]
        if obj is not None and obj.builtin and obj.kind is Kind.FUNC:
            return self._builtin_results(obj.name, call, file)
        if t is None:
            return []
        return self.signature_results(t)

    def _builtin_results(self, name: str, call: Any, file: SourceFile) -> List[Type]:
        args = _arguments(call)
        first = self.type_of(args[0], file) if args else None
        if name == "new":
            return [Type.pointer(first)] if first is not None else []
        if name in ("make", "append", "min", "max"):
            return [first] if first is not None else []
        if name in ("len", "cap", "copy"):
            return [Type.builtin("int")]
        if name == "complex":
            return [Type.builtin("complex128")]
        if name in ("real", "imag"):
            return [Type.builtin("float64")]
        if name == "recover":
            return [Type.builtin("any")]
        return []

    def signature_results(self, t: Type) -> List[Type]:
        sig = _strip_parens(t.node)
        if sig is None or sig.type not in SIGNATURES:
            u = self.underlying(t)
            sig, file = u.node, u.file
        else:
            file = t.file
        if sig is None or sig.type not in SIGNATURES:
            return []
        result = sig.child_by_field_name("result")
        if result is None:
            return []
        if result.type != "parameter_list":
            return [Type(node=result, file=file)]
        out: List[Type] = []
        for param in result.named_children:
            if param.type not in ("parameter_declaration", "variadic_parameter_declaration"):
                continue
            type_node = param.child_by_field_name("type")
            out.extend([Type(node=type_node, file=file)] * max(1, len(param.children_by_field_name("name"))))
        return out

    def value_type(self, expr: Any, file: SourceFile, index: int = 0) -> Optional[Type]:
        """Type of the *index*-th value produced by *expr*."""
        if index == 0:
            return self.type_of(expr, file)
        node = _strip_parens(expr)
        if node is None:
            return None
        if node.type == "call_expression":
            results = self.call_results(node, file)
            return results[index] if index < len(results) else None
        # Comma-ok forms: map index, type assertion, channel receive.
        if index == 1 and node.type in ("index_expression", "type_assertion_expression", "unary_expression"):
            return Type.builtin("bool")
        return None

    def range_type(self, expr: Any, file: SourceFile, index: int) -> Optional[Type]:
        t = self.type_of(expr, file)
        if t is None:
            return None
        if t.variadic:
            return Type.builtin("int") if index == 0 else Type(node=t.node, file=t.file)
        pointed = self.deref(t)
        u = self.underlying(pointed or t)
        if u.obj is not None:
            if u.obj.name == "string":
                return Type.builtin("int") if index == 0 else Type.builtin("rune")
            return t if index == 0 else None
        node = u.node
        if node is None:
            return None
        if node.type in LIST_TYPES:
            return Type.builtin("int") if index == 0 else Type(node=node.child_by_field_name("element"), file=u.file)
        if node.type == "map_type":
            return Type(node=node.child_by_field_name("key" if index == 0 else "value"), file=u.file)
        if node.type == "channel_type" and index == 0:
            return Type(node=node.child_by_field_name("value"), file=u.file)
        return None

    def object_type(self, obj: Object) -> Optional[Type]:
        """Static type of the entity *obj* declares."""
        if obj.kind is Kind.TYPE:
            return Type.named(obj)
        if obj.kind is Kind.FUNC:
            return Type(node=obj.spec, file=obj.file) if not obj.builtin else None
        if obj.kind not in (Kind.VAR, Kind.CONST):
            return None
        if obj.builtin:
            return Type.builtin(obj.data) if obj.data else None
        if obj.role == "embedded":
            t = Type(node=obj.type_node, file=obj.file)
            if obj.data:
                node = _strip_parens(obj.type_node)
                if node is None or node.type != "pointer_type":
                    return Type.pointer(t)
            return t
        if obj.role == "variadic":
            return Type(node=obj.type_node, file=obj.file, variadic=True)
        if obj.type_node is not None:
            return Type(node=obj.type_node, file=obj.file)
        if obj.value_node is None:
            return None
        if obj.role == "range":
            return self.range_type(obj.value_node, obj.file, obj.value_index)
        if obj.role == "switch":
            return self.type_of(obj.value_node, obj.file)
        if obj.kind is Kind.CONST and obj.value_node.type == "iota":
            return Type.builtin("int")
        return self.value_type(obj.value_node, obj.file, obj.value_index)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def members(self, obj: Object) -> List[Object]:
        """Fields and methods of type *obj*, promoted ones included, by name."""
        found: Dict[str, Object] = {}
        self._collect_members(Type.named(obj), found, set(), 0)
        return sorted(found.values(), key=lambda m: m.name)

    def _collect_members(self, t: Type, found: Dict[str, Object], seen: set, depth: int) -> None:
        if depth > MAX_DEPTH:
            return
        pointed = self.deref(t)
        if pointed is not None:
            t = pointed
        obj = self.named_object(t)
        if obj is not None:
            if obj.builtin or obj in seen:
                return
            seen.add(obj)
            pkg = obj.package
            if pkg is not None:
                for method in pkg.method_set(obj.name).values():
                    found.setdefault(method.name, method)
            if obj.type_node is None or obj.role == "typeparam":
                return
            t = Type(node=obj.type_node, file=obj.file)

        node = _strip_parens(t.node)
        if node is None or t.file is None:
            return
        if node.type == "struct_type":
            embedded = []
            for field in _field_declarations(node):
                names = field.children_by_field_name("name")
                for n in names:
                    member = object_for_name(n, t.file, self.label(t.file))
                    if member is not None:
                        found.setdefault(member.name, member)
                if not names:
                    member = self._embedded_field(field, t.file)
                    if member is not None:
                        found.setdefault(member.name, member)
                        embedded.append(member)
            for member in embedded:
                member_type = self.object_type(member)
                if member_type is not None:
                    self._collect_members(member_type, found, seen, depth + 1)
        elif node.type == "interface_type":
            nested = []
            for elem in node.named_children:
                if elem.type in ("method_elem", "method_spec"):
                    n = elem.child_by_field_name("name")
                    member = object_for_name(n, t.file, self.label(t.file)) if n is not None else None
                    if member is not None:
                        found.setdefault(member.name, member)
                else:
                    nested.extend(self._embedded_interfaces(elem))
            for inner in nested:
                self._collect_members(Type(node=inner, file=t.file), found, seen, depth + 1)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, t: Optional[Type]) -> Optional[str]:
        if t is None:
            return None
        if t.base is not None:
            inner = self.render(t.base)
            return f"*{inner}" if inner is not None else None
        if t.obj is not None and t.node is None:
            obj = t.obj
            pkg = obj.package
            if obj.builtin or pkg is None or pkg.path == "":
                return obj.name
            return f"{pkg.name}.{obj.name}"
        if t.node is None or t.file is None:
            return None
        if t.variadic:
            return "[]" + t.file.text(t.node)
        node = t.node
        if node.type in SIGNATURES and node.type != "function_type":
            params = node.child_by_field_name("parameters")
            result = node.child_by_field_name("result")
            text = "func" + (t.file.text(params) if params is not None else "()")
            if result is not None:
                text += " " + t.file.text(result)
            return text
        return t.file.text(node)

    def type_string(self, obj: Object) -> Optional[str]:
        """Rendered type of *obj*: the underlying type expression for types."""
        if obj.kind is Kind.TYPE:
            if obj.builtin or obj.type_node is None:
                return obj.name
            return self.render(Type(node=obj.type_node, file=obj.file))
        if obj.kind in (Kind.IMPORT, Kind.LABEL):
            return None
        return self.render(self.object_type(obj))

    @staticmethod
    def value_string(obj: Object) -> Optional[str]:
        if obj.kind is Kind.IMPORT:
            return obj.file.text(obj.value_node) if obj.value_node is not None else None
        if obj.kind is not Kind.CONST or obj.builtin or obj.value_node is None:
            return None
        text = obj.file.text(obj.value_node)
        if text == "iota":
            return str(obj.data)
        return text

