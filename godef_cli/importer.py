"""Import path lookup and on-demand loading of imported packages.

:class:`PackageLocator` answers "which directory holds import path P when
imported from directory D?" using GOROOT, the enclosing module (``go.mod``,
``replace`` directives, ``vendor/`` and the module cache) and GOPATH, in that
order. :class:`Importer` parses the located directory into a
:class:`~godef_cli.scope.Package`, caching per invocation.
"""

from __future__ import annotations

import logging
import os
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from . import config
from .errors import ImportPathNotFound, ParseFailure
from .parser import GoParser, build_ignored, package_clause
from .scope import Package

logger = logging.getLogger(__name__)

_MAJOR_VERSION = re.compile(r"v[0-9]+")
_GOPKG_VERSION = re.compile(r"\.v[0-9]+$")


@dataclass
class GoMod:
    root: str
    module: str
    requires: Dict[str, str] = field(default_factory=dict)
    replaces: Dict[str, Tuple[str, str]] = field(default_factory=dict)


def find_go_mod(directory: str) -> Optional[str]:
    """Return the nearest ``go.mod`` at or above *directory*."""
    current = os.path.abspath(directory)
    while True:
        candidate = os.path.join(current, "go.mod")
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def _directive_lines(text: str) -> List[Tuple[str, str]]:
    """Flatten go.mod into (verb, argument) pairs, expanding blocks."""
    out: List[Tuple[str, str]] = []
    block: Optional[str] = None
    for raw in text.splitlines():
        line = raw.split("//", 1)[0].strip()
        if not line:
            continue
        if block is not None:
            if line == ")":
                block = None
            else:
                out.append((block, line))
            continue
        verb, _, rest = line.partition(" ")
        rest = rest.strip()
        if rest == "(":
            block = verb
        else:
            out.append((verb, rest))
    return out


def read_go_mod(path: str) -> Optional[GoMod]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None
    mod = GoMod(root=os.path.dirname(path), module="")
    for verb, arg in _directive_lines(text):
        parts = arg.split()
        if verb == "module" and parts:
            mod.module = parts[0].strip('"')
        elif verb == "require" and len(parts) >= 2:
            mod.requires[parts[0]] = parts[1]
        elif verb == "replace" and "=>" in parts:
            arrow = parts.index("=>")
            target = parts[arrow + 1:]
            if parts and target:
                mod.replaces[parts[0]] = (target[0], target[1] if len(target) > 1 else "")
    return mod if mod.module else None


def escape_module_path(path: str) -> str:
    """Module cache case-encoding: upper-case letters become ``!`` + lower."""
    return "".join(f"!{c.lower()}" if c.isupper() else c for c in path)


def guess_package_name(path: str) -> str:
    """Best guess at the package name of *path* without reading it."""
    elems = [e for e in path.split("/") if e]
    if not elems:
        return ""
    last = elems[-1]
    if _MAJOR_VERSION.fullmatch(last) and len(elems) > 1:
        last = elems[-2]
    last = _GOPKG_VERSION.sub("", last)
    if last.startswith("go-"):
        last = last[3:]
    return re.sub(r"\W", "_", last)


def _within(path: str, prefix: str) -> Optional[str]:
    """Remainder of *path* below module *prefix*, or None."""
    if path == prefix:
        return ""
    if path.startswith(prefix + "/"):
        return path[len(prefix) + 1:]
    return None


class PackageLocator:
    """Maps import paths to package directories (no parsing)."""

    def __init__(
        self,
        goroot: Optional[str] = None,
        gopath: Optional[List[str]] = None,
        modcache: Optional[str] = None,
    ) -> None:
        self.goroot = goroot if goroot is not None else config.goroot()
        self.gopath = gopath if gopath is not None else config.gopath()
        self.modcache = modcache if modcache is not None else config.gomodcache()
        self._mods: Dict[str, Optional[GoMod]] = {}

    def _module_for(self, src_dir: str) -> Optional[GoMod]:
        gomod = find_go_mod(src_dir)
        if gomod is None:
            return None
        if gomod not in self._mods:
            self._mods[gomod] = read_go_mod(gomod)
        return self._mods[gomod]

    def find(self, path: str, src_dir: str) -> str:
        """Return the directory for import *path* imported from *src_dir*.

        Raises:
            ImportPathNotFound: when no candidate directory exists.
        """
        for candidate in self.candidates(path, src_dir):
            if os.path.isdir(candidate):
                return candidate
        raise ImportPathNotFound(f"error finding import path for {path}: cannot find package")

    def candidates(self, path: str, src_dir: str) -> List[str]:
        if path == "." or path.startswith("./") or path.startswith("../"):
            return [os.path.normpath(os.path.join(src_dir, path))]

        out: List[str] = []
        if self.goroot:
            out.append(os.path.join(self.goroot, "src", path))
            out.append(os.path.join(self.goroot, "src", "vendor", path))

        mod = self._module_for(src_dir)
        if mod is not None:
            out.extend(self._module_candidates(mod, path))

        for entry in self.gopath:
            out.append(os.path.join(entry, "src", path))
        return out

    def _module_candidates(self, mod: GoMod, path: str) -> List[str]:
        out: List[str] = []
        rest = _within(path, mod.module)
        if rest is not None:
            out.append(os.path.join(mod.root, rest) if rest else mod.root)
        for old, (target, version) in mod.replaces.items():
            rest = _within(path, old)
            if rest is None:
                continue
            if target.startswith((".", "/")):
                base = os.path.normpath(os.path.join(mod.root, target))
            else:
                base = os.path.join(self.modcache, f"{escape_module_path(target)}@{version}")
            out.append(os.path.join(base, rest) if rest else base)
        out.append(os.path.join(mod.root, "vendor", path))
        # Longest module path first so nested modules win.
        for required in sorted(mod.requires, key=len, reverse=True):
            rest = _within(path, required)
            if rest is None:
                continue
            base = os.path.join(self.modcache, f"{escape_module_path(required)}@{mod.requires[required]}")
            out.append(os.path.join(base, rest) if rest else base)
        return out


class Importer:
    """Loads imported packages on demand; one instance per invocation."""

    def __init__(self, parser: GoParser, locator: PackageLocator) -> None:
        self.parser = parser
        self.locator = locator
        self._packages: Dict[str, Optional[Package]] = {}
        self._names: Dict[str, str] = {}

    def import_package(self, path: str, src_dir: str) -> Optional[Package]:
        try:
            directory = self.locator.find(path, src_dir)
        except ImportPathNotFound as exc:
            logger.debug("%s", exc)
            return None
        if directory not in self._packages:
            self._packages[directory] = self._load(directory, path)
        return self._packages[directory]

    def package_name(self, path: str, src_dir: str) -> str:
        """Name bound by an unaliased import of *path*."""
        try:
            directory = self.locator.find(path, src_dir)
        except ImportPathNotFound:
            return guess_package_name(path)
        if directory not in self._names:
            self._names[directory] = self._dir_package_name(directory, path)
        return self._names[directory]

    @staticmethod
    def _source_files(directory: str) -> List[str]:
        try:
            entries = sorted(os.listdir(directory))
        except OSError as exc:
            logger.debug("Cannot list %s: %s", directory, exc)
            return []
        files = []
        for entry in entries:
            if not entry.endswith(config.SOURCE_EXTENSION) or entry.endswith(config.TEST_SUFFIX):
                continue
            full = os.path.join(directory, entry)
            if os.path.isfile(full) and not build_ignored(full):
                files.append(full)
        return files

    def _dir_package_name(self, directory: str, path: str) -> str:
        names = [n for n in (package_clause(f) for f in self._source_files(directory)) if n]
        if not names:
            return guess_package_name(path)
        guess = guess_package_name(path)
        if guess in names:
            return guess
        return Counter(names).most_common(1)[0][0]

    def _load(self, directory: str, path: str) -> Optional[Package]:
        name = self._dir_package_name(directory, path)
        pkg = Package(name, path)
        for filename in self._source_files(directory):
            if package_clause(filename) != name:
                continue
            try:
                pkg.add_file(self.parser.parse_file(filename))
            except ParseFailure as exc:
                logger.debug("Skipping %s while importing %s: %s", filename, path, exc)
        if not pkg.files:
            logger.debug("No usable files for import %s in %s", path, directory)
            return None
        logger.debug("Imported %s from %s (%d files)", path, directory, len(pkg.files))
        return pkg
