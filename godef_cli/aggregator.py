"""Merge sibling files of the principal file's package into one scope."""

from __future__ import annotations

import logging
import os
from typing import List

from . import config
from .errors import NoMoreFiles, ParseFailure
from .parser import GoParser, SourceFile, package_clause
from .scope import Package

logger = logging.getLogger(__name__)


def sibling_candidates(file: SourceFile) -> List[str]:
    """Sorted ``.go`` files next to *file*, excluding *file* itself."""
    directory = os.path.dirname(file.filename) or "."
    try:
        entries = sorted(os.listdir(directory))
    except OSError as exc:
        logger.debug("Cannot list %s: %s", directory, exc)
        return []
    own = os.path.basename(file.filename)
    out = []
    for entry in entries:
        if entry == own or not entry.endswith(config.SOURCE_EXTENSION):
            continue
        path = os.path.join(os.path.dirname(file.filename), entry)
        if os.path.isfile(path):
            out.append(path)
    return out


def aggregate(file: SourceFile, parser: GoParser) -> Package:
    """Return *file*'s package with every same-package sibling merged in.

    Siblings that fail to parse, or parse with syntax errors, are skipped.

    Raises:
        NoMoreFiles: when no sibling joined the package.
    """
    pkg = file.package if file.package is not None else Package.for_file(file)
    for path in sibling_candidates(file):
        if path in pkg.files:
            continue
        if package_clause(path) != pkg.name:
            logger.debug("Skipping %s: not package %s", path, pkg.name)
            continue
        try:
            sibling = parser.parse_file(path)
        except ParseFailure as exc:
            logger.debug("Skipping %s: %s", path, exc)
            continue
        if sibling.has_errors:
            logger.debug("Skipping %s: syntax errors", path)
            continue
        pkg.add_file(sibling)
    if len(pkg.files) < 2:
        raise NoMoreFiles("no more package files found")
    logger.debug("Aggregated package %s from %d files", pkg.name, len(pkg.files))
    return pkg
