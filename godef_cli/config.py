"""Go toolchain locations and resolver options.

Environment variables win over ``$GODEF_HOME/config.toml``, which wins over
the built-in fallbacks. Everything is read on call so a single process can
be re-pointed at another tree.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List

from .config_manager import load_section

logger = logging.getLogger(__name__)

SOURCE_EXTENSION = ".go"
TEST_SUFFIX = "_test.go"
DEFAULT_GOROOT = "/usr/local/go"


def _go_env(var: str) -> str:
    go = shutil.which("go")
    if go is None:
        return ""
    try:
        result = subprocess.run(
            [go, "env", var],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("go env %s failed: %s", var, exc)
        return ""
    return result.stdout.strip() if result.returncode == 0 else ""


def goroot() -> str:
    if os.environ.get("GOROOT"):
        return os.environ["GOROOT"]
    configured = load_section("go").get("goroot")
    if configured:
        return str(Path(configured).expanduser())
    return _go_env("GOROOT") or DEFAULT_GOROOT


def gopath() -> List[str]:
    raw = os.environ.get("GOPATH") or load_section("go").get("gopath") or ""
    if not raw:
        return [str(Path.home() / "go")]
    return [str(Path(p).expanduser()) for p in raw.split(os.pathsep) if p]


def gomodcache() -> str:
    raw = os.environ.get("GOMODCACHE") or load_section("go").get("gomodcache") or ""
    if raw:
        return str(Path(raw).expanduser())
    return os.path.join(gopath()[0], "pkg", "mod")


def full_package_for_types() -> bool:
    return bool(load_section("resolve").get("full_package_for_types", True))
