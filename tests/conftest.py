"""Shared fixtures for all test modules."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from bootkit.config import BUILTIN_PLUGINS_DIR, Config


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep default data directories out of the real home directory."""
    monkeypatch.setenv("BOOTKIT_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("ACME_HOME", str(tmp_path / "home-acme"))


@pytest.fixture
def write_plugin() -> Callable[..., Path]:
    """Return a helper that writes a plugin directory with a plugin.yml.

    Usage::

        def test_something(write_plugin, tmp_path):
            write_plugin(tmp_path / "plugins", "php", {"registry": {...}})
    """

    def _write(root: Path, dirname: str, manifest: Any = None) -> Path:
        directory = root / dirname
        directory.mkdir(parents=True, exist_ok=True)
        with (directory / "plugin.yml").open("w") as f:
            if isinstance(manifest, str):
                f.write(manifest)
            else:
                yaml.safe_dump(manifest or {}, f)
        return directory

    return _write


@pytest.fixture
def config_data(tmp_path: Path) -> dict[str, Any]:
    """Config tree keeping every bootkit path under tmp_path.

    Global plugins live in ``tmp_path/plugins``; the builtin core plugin is
    discovered after them.
    """
    return {
        "core": {"caching": True, "release-channel": "stable"},
        "system": {
            "data-dir": str(tmp_path / "data"),
            "syscache-dir": str(tmp_path / "cache"),
            "managed-file": str(tmp_path / "data" / "config.yml"),
        },
        "plugin": {
            "dirs": [
                {"type": "global", "dir": str(tmp_path / "plugins"), "depth": 2},
                {"type": "core", "dir": str(BUILTIN_PLUGINS_DIR), "depth": 1},
            ],
            "global-install-dir": str(tmp_path / "plugins"),
            "index-dirs": [str(tmp_path / "index")],
            "disabled": [],
        },
    }


@pytest.fixture
def make_config(config_data: dict[str, Any]) -> Callable[..., Config]:
    """Return a helper building a Config over ``config_data``."""

    def _make(id: str = "acme", **sections: dict[str, Any]) -> Config:
        data = {**config_data}
        for name, values in sections.items():
            data[name] = {**data.get(name, {}), **values}
        return Config(id=id, data=data)

    return _make
