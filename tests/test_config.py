"""Tests for configuration precedence and the TOML config file."""

from pathlib import Path

import pytest
import toml

from godef_cli import config
from godef_cli.config_manager import config_file, load_full_config, load_section


def _write_config(data: dict) -> None:
    path = config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        toml.dump(data, f)


@pytest.fixture
def no_go_env(monkeypatch):
    """Unset the Go environment and hide any go binary."""
    for var in ("GOROOT", "GOPATH", "GOMODCACHE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(config.shutil, "which", lambda name: None)


def test_config_file_under_godef_home(tmp_path: Path):
    assert config_file() == tmp_path / "godef_home" / "config.toml"


def test_missing_file_gives_defaults():
    assert load_full_config() == {}
    assert load_section("resolve") == {"full_package_for_types": True}
    assert config.full_package_for_types() is True


def test_file_sections_override_defaults():
    _write_config({"go": {"goroot": "/opt/go"}, "resolve": {"full_package_for_types": False}})

    assert load_full_config()["go"] == {"goroot": "/opt/go"}
    assert load_section("go") == {"goroot": "/opt/go", "gopath": "", "gomodcache": ""}
    assert config.full_package_for_types() is False


def test_unreadable_file_is_ignored():
    path = config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("[go\ngoroot = ")

    assert load_full_config() == {}


def test_environment_wins_over_file(goroot: Path):
    _write_config({"go": {"goroot": "/from/file"}})
    assert config.goroot() == str(goroot)


def test_file_used_without_environment(no_go_env, tmp_path: Path):
    _write_config({"go": {"goroot": "/from/file", "gopath": "/a:/b", "gomodcache": "/cache"}})

    assert config.goroot() == "/from/file"
    assert config.gopath() == ["/a", "/b"]
    assert config.gomodcache() == "/cache"


def test_fallbacks(no_go_env):
    assert config.goroot() == config.DEFAULT_GOROOT
    assert config.gopath() == [str(Path.home() / "go")]
    assert config.gomodcache() == str(Path.home() / "go" / "pkg" / "mod")
