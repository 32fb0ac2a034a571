"""Configuration manager for godef using TOML files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import toml

logger = logging.getLogger(__name__)


def config_file() -> Path:
    base = Path(os.environ.get("GODEF_HOME", str(Path.home() / ".godef"))).expanduser()
    return base / "config.toml"


DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "go": {
        "goroot": "",
        "gopath": "",
        "gomodcache": "",
    },
    "resolve": {
        # Skip the local-declarations tier whenever type output is requested.
        "full_package_for_types": True,
    },
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections), or {} when absent."""
    path = config_file()
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def load_section(name: str) -> Dict[str, Any]:
    """Return one config section merged over its defaults."""
    section = dict(DEFAULT_CONFIG.get(name, {}))
    section.update(load_full_config().get(name, {}))
    return section
