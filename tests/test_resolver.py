"""Tests for query dispatch, two-tier resolution and result assembly."""

from pathlib import Path

import pytest

from godef_cli.errors import (
    ImportPathNotFound,
    MalformedImportLiteral,
    NoDeclarationFound,
    NoQuerySpecified,
    ParseFailure,
    UnresolvableExpression,
)
from godef_cli.formatter import OutputMode, format_result
from godef_cli.models import Kind, Position, Query
from godef_cli.resolver import Resolver

MAIN = """package main

import (
	"fmt"

	"example.com/m/pkg"
)

type Foo struct {
	*pkg.Base
	Bar int
	baz string
}

func (f Foo) Describe() string { return f.baz }

const (
	A = iota
	B
)

func two() (int, error) { return 0, nil }

func newFoo() *Foo { return &Foo{Bar: 1} }

func sum(xs []int) int {
	total := 0
	for i, x := range xs {
		total += x * i
	}
	return total
}

func kind(v any) string {
	switch s := v.(type) {
	case string:
		return s
	}
	return ""
}

func main() {
	f := newFoo()
	n, err := two()
	fmt.Println(f.Bar, f.Name(), n, err, f.ID)
outer:
	for {
		break outer
	}
}
"""

BASE = """package pkg

// Base is embedded by main.Foo.
type Base struct {
	ID int
}

func (b *Base) Name() string { return "" }
"""


@pytest.fixture
def module(write_go) -> Path:
    """A module with an imported package and a principal file."""
    write_go("go.mod", "module example.com/m\n\ngo 1.21\n")
    write_go("pkg/base.go", BASE)
    return write_go("main.go", MAIN)


def _line_col(source: str, offset: int):
    line = source.count("\n", 0, offset) + 1
    column = offset - (source.rfind("\n", 0, offset) + 1) + 1
    return line, column


class TestEndToEnd:
    """The three canonical scenarios."""

    def test_builtin_type_has_no_position(self, write_go, resolver: Resolver, offset):
        src = "package main\n\ntype Foo struct{ Bar int }\n"
        path = write_go("a.go", src)

        result = resolver.define(str(path), Query(offset=offset(src, "int")))

        assert result.kind is Kind.TYPE
        assert result.name == "int"
        assert result.position == Position()
        assert str(result.position) == "-"

    def test_import_literal_yields_package_directory(self, write_go, resolver: Resolver, goroot: Path, offset):
        src = 'package main\n\nimport "fmt"\n\nfunc main() { fmt.Println("hi") }\n'
        path = write_go("a.go", src)

        result = resolver.define(str(path), Query(offset=offset(src, '"fmt"', delta=1)))

        assert result.kind is Kind.PATH
        assert result.value == str(goroot / "src" / "fmt")
        assert format_result(result) == str(goroot / "src" / "fmt") + "\n"

    def test_embedded_qualified_field_resolves_to_type(self, module: Path, resolver: Resolver, workspace: Path, offset):
        result = resolver.define(str(module), Query(offset=offset(MAIN, "pkg.Base", delta=5)))

        assert result.kind is Kind.TYPE
        assert result.name == "Base"
        assert result.pkg == "example.com/m/pkg"
        line, column = _line_col(BASE, BASE.index("Base struct"))
        assert result.position == Position(str(workspace / "pkg" / "base.go"), line, column)


class TestDispatch:
    def test_no_query(self, module: Path, resolver: Resolver):
        with pytest.raises(NoQuerySpecified, match="no expression or offset specified"):
            resolver.define(str(module), Query())

    def test_expression_wins_over_offset(self, module: Path, resolver: Resolver, offset):
        query = Query(expression="two", offset=offset(MAIN, "newFoo"))
        result = resolver.define(str(module), query)

        assert result.name == "two"
        assert result.kind is Kind.FUNC

    def test_unresolvable_expression(self, module: Path, resolver: Resolver):
        with pytest.raises(UnresolvableExpression):
            resolver.define(str(module), Query(expression="two()"))

    def test_unreadable_principal_file(self, tmp_path: Path, resolver: Resolver):
        with pytest.raises(ParseFailure):
            resolver.define(str(tmp_path / "missing.go"), Query(offset=0))


class TestLocalDeclarations:
    def test_field_through_call_result(self, module: Path, resolver: Resolver, offset):
        result = resolver.define(str(module), Query(offset=offset(MAIN, "f.Bar", delta=2)))

        assert result.kind is Kind.VAR
        assert result.name == "Bar"
        assert (result.position.line, result.position.column) == _line_col(MAIN, MAIN.index("Bar int"))

    def test_promoted_method_from_imported_package(self, module: Path, resolver: Resolver, offset):
        result = resolver.define(str(module), Query(offset=offset(MAIN, "f.Name", delta=2)))

        assert result.kind is Kind.FUNC
        assert result.name == "Name"
        assert result.pkg == "example.com/m/pkg"
        assert result.position.filename.endswith("base.go")

    def test_promoted_field(self, module: Path, resolver: Resolver, offset):
        result = resolver.define(str(module), Query(offset=offset(MAIN, "f.ID", delta=2)))

        assert result.name == "ID"
        assert result.position.line == _line_col(BASE, BASE.index("ID int"))[0]

    def test_composite_literal_key(self, module: Path, resolver: Resolver, offset):
        result = resolver.define(str(module), Query(offset=offset(MAIN, "Bar: 1")))

        assert result.name == "Bar"
        assert result.position.line == _line_col(MAIN, MAIN.index("Bar int"))[0]

    def test_package_function_in_goroot(self, module: Path, resolver: Resolver, goroot: Path):
        result = resolver.define(str(module), Query(expression="fmt.Println"))

        assert result.kind is Kind.FUNC
        assert result.pkg == "fmt"
        assert result.position.filename == str(goroot / "src" / "fmt" / "print.go")
        assert result.position.line == 4

    def test_label(self, module: Path, resolver: Resolver, offset):
        result = resolver.define(str(module), Query(offset=offset(MAIN, "break outer", delta=7)))

        assert result.kind is Kind.LABEL
        assert (result.position.line, result.position.column) == _line_col(MAIN, MAIN.index("outer:"))

    def test_receiver_parameter(self, module: Path, resolver: Resolver, offset):
        result = resolver.define(str(module), Query(offset=offset(MAIN, "f.baz", delta=0)))

        assert result.kind is Kind.VAR
        assert result.name == "f"
        assert result.position.line == _line_col(MAIN, MAIN.index("(f Foo)"))[0]

    def test_unknown_name(self, write_go, resolver: Resolver, offset):
        src = "package main\n\nfunc main() { missing() }\n"
        path = write_go("solo/a.go", src)

        with pytest.raises(NoDeclarationFound, match="no declaration found for missing"):
            resolver.define(str(path), Query(offset=offset(src, "missing")))


class TestTypes:
    """Type and value rendering with -t."""

    def _define(self, resolver: Resolver, path: Path, **query) -> str:
        result = resolver.define(str(path), Query(**query), want_type=True)
        return format_result(result, OutputMode.TYPE).splitlines()[1]

    def test_iota_constant(self, module: Path, resolver: Resolver):
        assert self._define(resolver, module, expression="B") == "const B int = 1"

    def test_pointer_variable(self, module: Path, resolver: Resolver, offset):
        assert self._define(resolver, module, offset=offset(MAIN, "f := newFoo")) == "f *Foo"

    def test_second_result_of_call(self, module: Path, resolver: Resolver, offset):
        assert self._define(resolver, module, offset=offset(MAIN, "n, err", delta=3)) == "err error"

    def test_range_value(self, module: Path, resolver: Resolver, offset):
        assert self._define(resolver, module, offset=offset(MAIN, "x * i")) == "x int"

    def test_type_switch_case(self, module: Path, resolver: Resolver, offset):
        assert self._define(resolver, module, offset=offset(MAIN, "return s", delta=7)) == "s string"

    def test_function_signature(self, module: Path, resolver: Resolver):
        assert self._define(resolver, module, expression="two") == "two func() (int, error)"

    def test_import(self, module: Path, resolver: Resolver):
        assert self._define(resolver, module, expression="fmt") == 'import (fmt "fmt")'

    def test_type_renders_underlying(self, module: Path, resolver: Resolver):
        assert self._define(resolver, module, expression="pkg.Base") == "type Base struct {"


class TestMembers:
    def test_members_are_sorted_and_filtered(self, module: Path, resolver: Resolver):
        result = resolver.define(str(module), Query(expression="Foo"), want_type=True, want_members=True)

        assert [m.name for m in result.members] == ["Bar", "Base", "Describe", "ID", "Name", "baz"]
        labels = {m.name: m.pkg for m in result.members}
        assert labels["Bar"] == ""
        assert labels["Name"] == "example.com/m/pkg"

        out = format_result(result, OutputMode.MEMBERS)
        assert "\tBar int\n\t\t" in out
        assert "\tBase *pkg.Base\n\t\t" in out
        assert "\tDescribe func() string\n" in out
        assert "\tbaz string\n\t\t" not in out
        assert "\tName" not in out

    def test_all_members_include_unexported_and_foreign(self, module: Path, resolver: Resolver):
        result = resolver.define(str(module), Query(expression="Foo"), want_type=True, want_members=True)
        out = format_result(result, OutputMode.ALL)

        assert "\tbaz string\n\t\t" in out
        assert "\tName func() string\n" in out
        assert "\tID int\n" in out

    def test_members_only_for_types(self, module: Path, resolver: Resolver):
        result = resolver.define(str(module), Query(expression="two"), want_type=True, want_members=True)
        assert result.members == []


class TestPackageTier:
    """Sibling files are consulted only when the principal file is not enough."""

    A = "package sib\n\nfunc main() {\n\thelper()\n\tlocal()\n}\n\nfunc local() {}\n"
    B = "package sib\n\n// helper lives in a sibling file.\nfunc helper() {}\n"

    @pytest.fixture
    def siblings(self, write_go) -> Path:
        write_go("sib/b.go", self.B)
        write_go("sib/broken.go", "package sib\n\nfunc broken( {\n")
        write_go("sib/other.go", "package other\n\nfunc helper() {}\n")
        return write_go("sib/a.go", self.A)

    def test_local_miss_then_package_hit(self, siblings: Path, offset):
        resolver = Resolver(full_package_for_types=False)
        result = resolver.define(str(siblings), Query(offset=offset(self.A, "helper")))

        assert result.kind is Kind.FUNC
        assert result.position == Position(str(siblings.parent / "b.go"), 4, 6)

    def test_expression_is_reparsed_against_merged_scope(self, siblings: Path):
        resolver = Resolver(full_package_for_types=False)
        result = resolver.define(str(siblings), Query(expression="helper"))

        assert result.position.filename == str(siblings.parent / "b.go")

    def test_local_hit_does_not_aggregate(self, siblings: Path, offset):
        resolver = Resolver(full_package_for_types=False)
        result = resolver.define(str(siblings), Query(offset=offset(self.A, "local()")))

        assert result.position.filename == str(siblings)
        assert len(resolver.fset) == 1

    def test_type_request_uses_whole_package(self, siblings: Path, offset):
        resolver = Resolver(full_package_for_types=True)
        result = resolver.define(str(siblings), Query(offset=offset(self.A, "local()")), want_type=True)

        assert result.position.filename == str(siblings)
        assert len(resolver.fset) > 1

    def test_results_agree_across_tiers(self, siblings: Path, offset):
        """The same query gives the same answer whichever tier produced it."""
        query = Query(offset=offset(self.A, "helper"))
        plain = Resolver(full_package_for_types=False).define(str(siblings), query)
        typed = Resolver(full_package_for_types=True).define(str(siblings), query, want_type=True)

        assert format_result(plain) == format_result(typed)

    def test_test_file_sibling_is_consulted(self, write_go, offset):
        src = "package t\n\nfunc run() { helper() }\n"
        write_go("t/a_test.go", "package t\n\nfunc helper() {}\n")
        path = write_go("t/a.go", src)

        result = Resolver(full_package_for_types=False).define(str(path), Query(offset=offset(src, "helper")))

        assert result.position == Position(str(path.parent / "a_test.go"), 3, 6)

    def test_repeated_query_is_byte_identical(self, write_go, offset):
        src = "package rep\n\ntype T struct {\n\tX int\n\ty string\n}\n\nfunc use(t T) { t.X = 1 }\n"
        write_go("rep/b.go", "package rep\n\nfunc (t T) Sibling() string { return t.y }\n")
        path = write_go("rep/a.go", src)
        query = Query(offset=offset(src, "T)"))

        outputs = [
            format_result(
                Resolver().define(str(path), query, want_type=True, want_members=True),
                OutputMode.ALL,
            )
            for _ in range(2)
        ]

        assert outputs[0] == outputs[1]
        assert "\tSibling func() string\n" in outputs[0]
        assert "\ty string\n" in outputs[0]

    def test_no_siblings(self, write_go, offset):
        src = "package solo\n\nfunc main() { missing() }\n"
        path = write_go("solo/a.go", src)

        with pytest.raises(NoDeclarationFound):
            Resolver(full_package_for_types=False).define(str(path), Query(offset=offset(src, "missing")))


class TestImportPaths:
    def test_unknown_import(self, write_go, resolver: Resolver, offset):
        src = 'package main\n\nimport "no/such/pkg"\n'
        path = write_go("a.go", src)

        with pytest.raises(ImportPathNotFound, match="error finding import path for no/such/pkg"):
            resolver.define(str(path), Query(offset=offset(src, "no/such")))

    def test_module_package(self, module: Path, resolver: Resolver, workspace: Path, offset):
        result = resolver.define(str(module), Query(offset=offset(MAIN, '"example.com/m/pkg"', delta=1)))

        assert result.kind is Kind.PATH
        assert result.value == str(workspace / "pkg")

    def test_malformed_literal(self, write_go, resolver: Resolver, offset):
        src = 'package main\n\nimport "bad\\q"\n'
        path = write_go("a.go", src)

        with pytest.raises(MalformedImportLiteral, match="invalid string literal"):
            resolver.define(str(path), Query(offset=offset(src, "bad")))
