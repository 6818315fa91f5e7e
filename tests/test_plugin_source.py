"""Tests for plugin descriptors and discovery.

Tests cover:
    - Plugin identifier parsing
    - Loading plugins from directories
    - find_plugins depth handling
    - Discovery of enabled, disabled and invalid plugins
    - Discovery scopes and duplicate names
    - find_app
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from bootkit.errors import BootstrapError, BootstrapErrorCode
from bootkit.plugins.names import parse_package_name
from bootkit.plugins.plugin import Plugin, PluginType
from bootkit.plugins.source import (
    DiscoveryOptions,
    discover,
    find_app,
    find_plugins,
    normalize_plugins,
)


class TestParsePackageName:
    """Tests for parse_package_name()."""

    @pytest.mark.parametrize(
        ("identifier", "name", "scope", "version"),
        [
            ("php", "php", None, None),
            ("php@1.2.3", "php", None, "1.2.3"),
            ("@acme/php", "@acme/php", "acme", None),
            ("@acme/php@^1", "@acme/php", "acme", "^1"),
            ("/srv/plugins/php", "/srv/plugins/php", None, None),
        ],
    )
    def test_parses(
        self, identifier: str, name: str, scope: str | None, version: str | None
    ) -> None:
        """Verify names, scopes and versions are split."""
        parsed = parse_package_name(identifier)

        assert (parsed.name, parsed.scope, parsed.version) == (name, scope, version)


class TestPluginFromDirectory:
    """Tests for Plugin.from_directory()."""

    def test_loads_manifest(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify fields are read from plugin.yml."""
        location = write_plugin(
            tmp_path, "php", {"name": "php", "version": 1.2, "enabled": False}
        )

        plugin = Plugin.from_directory(location, type="core", channel="edge")

        assert plugin.name == "php"
        assert plugin.type == PluginType.CORE
        assert plugin.version == "1.2"
        assert plugin.enabled is False
        assert plugin.channel == "edge"
        assert plugin.location == str(location)

    def test_name_defaults_to_directory(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify the directory name (with scope) is the default name."""
        location = write_plugin(tmp_path / "@acme", "php", {})

        assert Plugin.from_directory(location).name == "@acme/php"

    def test_missing_manifest_raises(self, tmp_path: Path) -> None:
        """Verify a directory without plugin.yml is invalid."""
        with pytest.raises(BootstrapError) as exc_info:
            Plugin.from_directory(tmp_path)

        assert exc_info.value.code == BootstrapErrorCode.PLUGIN_INVALID

    def test_non_mapping_manifest_raises(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify a list manifest is invalid."""
        location = write_plugin(tmp_path, "php", "- just\n- a list\n")

        with pytest.raises(BootstrapError, match="mapping"):
            Plugin.from_directory(location)

    def test_remove_deletes_location(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify remove() deletes the plugin directory."""
        location = write_plugin(tmp_path, "php", {})

        Plugin.from_directory(location).remove()

        assert not location.exists()


class TestFindPlugins:
    """Tests for find_plugins()."""

    def test_respects_depth(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify scoped plugins need depth 2."""
        write_plugin(tmp_path, "php", {})
        write_plugin(tmp_path / "@acme", "node", {})

        assert find_plugins(tmp_path, depth=1) == [tmp_path / "php"]
        assert find_plugins(tmp_path, depth=2) == [
            tmp_path / "@acme" / "node",
            tmp_path / "php",
        ]

    def test_does_not_descend_into_plugins(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify nested directories of a plugin are not plugins."""
        outer = write_plugin(tmp_path, "php", {})
        write_plugin(outer, "fixtures", {})

        assert find_plugins(tmp_path, depth=3) == [outer]

    def test_expands_home(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        write_plugin: Callable[..., Path],
    ) -> None:
        """Verify ~ in plugin dirs points at the home directory."""
        monkeypatch.setenv("HOME", str(tmp_path))
        location = write_plugin(tmp_path / "plugins", "php", {})

        assert find_plugins("~/plugins") == [location]

    def test_missing_dir(self, tmp_path: Path) -> None:
        """Verify a missing directory yields nothing."""
        assert find_plugins(tmp_path / "missing") == []


class TestDiscover:
    """Tests for discover()."""

    def test_sorts_plugins(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify enabled, disabled and invalid plugins are separated."""
        write_plugin(tmp_path, "a-on", {"name": "a-on"})
        write_plugin(tmp_path, "b-off", {"name": "b-off", "enabled": False})
        write_plugin(tmp_path, "c-broken", "name: [unclosed\n")
        write_plugin(tmp_path, "d-muted", {"name": "d-muted"})

        result = discover(
            [{"type": "global", "dir": str(tmp_path)}],
            DiscoveryOptions(disabled=["d-muted"]),
        )

        assert list(result.enabled) == ["a-on"]
        assert list(result.disabled) == ["b-off", "d-muted"]
        assert list(result.invalids) == ["c-broken"]
        assert "Invalid YAML" in result.invalids["c-broken"].error

    def test_invalid_plugins_keep_scope(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify invalid scoped plugins are not collapsed by leaf name."""
        write_plugin(tmp_path / "@acme", "php", "- not a mapping\n")
        write_plugin(tmp_path / "@other", "php", "- not a mapping\n")

        result = discover([{"type": "global", "dir": str(tmp_path), "depth": 2}])

        assert list(result.invalids) == ["@acme/php", "@other/php"]
        assert result.invalids["@acme/php"].location == str(tmp_path / "@acme" / "php")

    def test_first_directory_wins_duplicates(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify a name found twice keeps the first occurrence."""
        write_plugin(tmp_path / "global", "php", {"name": "php", "version": "2"})
        write_plugin(tmp_path / "core", "php", {"name": "php", "version": "1"})

        result = discover(
            [
                {"type": "global", "dir": str(tmp_path / "global")},
                {"type": "core", "dir": str(tmp_path / "core")},
            ]
        )

        assert result.enabled["php"].version == "2"
        assert result.enabled["php"].type == PluginType.GLOBAL

    def test_scope_skips_app_dirs(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify app plugins are only discovered in the app scope."""
        write_plugin(tmp_path / "app", "local", {})
        write_plugin(tmp_path / "core", "base", {})
        dirs = [
            {"type": "app", "dir": str(tmp_path / "app")},
            {"type": "core", "dir": str(tmp_path / "core")},
        ]

        assert list(discover(dirs).enabled) == ["base"]
        assert list(
            discover(dirs, DiscoveryOptions(type=PluginType.APP)).enabled
        ) == ["local", "base"]

    def test_records_channel(
        self, tmp_path: Path, write_plugin: Callable[..., Path]
    ) -> None:
        """Verify the channel option is recorded on plugins."""
        write_plugin(tmp_path, "php", {})

        result = discover(
            [{"type": "global", "dir": str(tmp_path)}],
            DiscoveryOptions(channel="edge"),
        )

        assert result.enabled["php"].channel == "edge"

    def test_no_dirs(self) -> None:
        """Verify discovery over nothing is empty."""
        result = discover([])

        assert (result.enabled, result.disabled, result.invalids) == ({}, {}, {})


class TestHelpers:
    """Tests for normalize_plugins() and find_app()."""

    def test_normalize_keeps_first(self) -> None:
        """Verify the first plugin with a name wins."""
        first = Plugin(name="php", version="1")
        second = Plugin(name="php", version="2")

        assert normalize_plugins([first, second]) == {"php": first}

    def test_find_app_walks_up(self, tmp_path: Path) -> None:
        """Verify the closest app file above the start dir is found."""
        (tmp_path / ".acme.yml").write_text("name: app\n")
        start = tmp_path / "src" / "deep"
        start.mkdir(parents=True)

        assert find_app([".acme.yml"], start) == tmp_path.resolve() / ".acme.yml"

    def test_find_app_none(self, tmp_path: Path) -> None:
        """Verify None when no file exists."""
        assert find_app([".does-not-exist-anywhere.yml"], tmp_path) is None
