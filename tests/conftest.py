"""Pytest configuration and fixtures for godef tests."""

from pathlib import Path
from typing import Callable, Dict

import pytest

from godef_cli.resolver import Resolver

FMT_SOURCE = """package fmt

// Println formats using the default formats for its operands.
func Println(a ...any) (n int, err error) {
	return 0, nil
}

// Stringer is implemented by any value that has a String method.
type Stringer interface {
	String() string
}
"""


@pytest.fixture(autouse=True)
def go_env(tmp_path: Path, monkeypatch) -> Dict[str, Path]:
    """Point GOROOT, GOPATH and GODEF_HOME at throw-away directories.

    GOROOT contains a minimal ``fmt`` package so standard imports resolve
    without a Go installation.
    """
    goroot = tmp_path / "goroot"
    gopath = tmp_path / "gopath"
    fmt_dir = goroot / "src" / "fmt"
    fmt_dir.mkdir(parents=True)
    (fmt_dir / "print.go").write_text(FMT_SOURCE)
    gopath.mkdir()

    monkeypatch.setenv("GOROOT", str(goroot))
    monkeypatch.setenv("GOPATH", str(gopath))
    monkeypatch.setenv("GOMODCACHE", str(gopath / "pkg" / "mod"))
    monkeypatch.setenv("GODEF_HOME", str(tmp_path / "godef_home"))
    return {"goroot": goroot, "gopath": gopath}


@pytest.fixture
def goroot(go_env: Dict[str, Path]) -> Path:
    return go_env["goroot"]


@pytest.fixture
def gopath(go_env: Dict[str, Path]) -> Path:
    return go_env["gopath"]


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Directory for the Go sources under test."""
    work = tmp_path / "work"
    work.mkdir()
    return work


@pytest.fixture
def write_go(workspace: Path) -> Callable[[str, str], Path]:
    """Write a source file below the workspace and return its path."""

    def _write(relpath: str, source: str) -> Path:
        path = workspace / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source)
        return path

    return _write


def offset_of(source: str, needle: str, occurrence: int = 0, delta: int = 0) -> int:
    """Byte offset of the *occurrence*-th *needle* in ASCII *source*, plus *delta*."""
    pos = -1
    for _ in range(occurrence + 1):
        pos = source.index(needle, pos + 1)
    return pos + delta


@pytest.fixture
def offset() -> Callable[..., int]:
    return offset_of


@pytest.fixture
def resolver() -> Resolver:
    """Resolver with the default type-query policy."""
    return Resolver(full_package_for_types=True)
