"""Plugin discovery.

This module finds plugin directories on disk and sorts what it finds into
enabled, disabled and invalid collections. Discovery never raises for a bad
plugin: the failure is recorded as an ``InvalidPlugin`` so callers can
report it.

Classes:
    - DiscoveryOptions: Filters applied during discovery

Functions:
    - find_plugins: List plugin directories below a directory
    - normalize_plugins: Key plugins by name, first occurrence wins
    - discover: Scan configured plugin dirs
    - find_app: Walk upwards looking for an app file
"""

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field

from bootkit.errors import BootstrapError
from bootkit.plugins.plugin import (
    DiscoveryResult,
    InvalidPlugin,
    Plugin,
    PluginType,
)

logger = structlog.get_logger()

# Plugin types visible from each discovery scope
SCOPES: dict[PluginType, set[PluginType]] = {
    PluginType.CORE: {PluginType.CORE},
    PluginType.GLOBAL: {PluginType.CORE, PluginType.GLOBAL},
    PluginType.APP: {PluginType.CORE, PluginType.GLOBAL, PluginType.APP},
}


class DiscoveryOptions(BaseModel):
    """Filters applied during discovery.

    Attributes:
        type: Discovery scope; directories of types outside it are skipped.
        channel: Release channel recorded on discovered plugins.
        disabled: Plugin names to report as disabled.
    """

    type: PluginType = PluginType.GLOBAL
    channel: str | None = None
    disabled: list[str] = Field(default_factory=list)


def find_plugins(directory: str | Path, depth: int = 1) -> list[Path]:
    """List plugin directories up to ``depth`` levels below ``directory``.

    A directory holding a manifest file is a plugin and is not searched
    further. Results are sorted by path within each level.
    """
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        return []

    found: list[Path] = []
    for child in sorted(p for p in directory.iterdir() if p.is_dir()):
        if Plugin.manifest_file(child) is not None:
            found.append(child)
        elif depth > 1:
            found.extend(find_plugins(child, depth - 1))
    return found


def normalize_plugins(plugins: Iterable[Any], by: str = "name") -> dict[str, Any]:
    """Key plugins by an attribute, keeping the first occurrence of each key."""
    normalized: dict[str, Any] = {}
    for plugin in plugins:
        key = getattr(plugin, by)
        if key not in normalized:
            normalized[key] = plugin
    return normalized


def discover(
    dirs: list[dict[str, Any]],
    options: DiscoveryOptions | None = None,
    log: Any = None,
) -> DiscoveryResult:
    """Discover plugins in the configured directories.

    Directories are scanned in order. When two plugins share a name the one
    found first wins and the other is ignored.

    Args:
        dirs: ``{"type", "dir", "depth"}`` specs, highest precedence first.
        options: Discovery filters.
        log: Logger to report on (defaults to the module logger).

    Returns:
        Enabled, disabled and invalid plugins in discovery order.
    """
    options = options or DiscoveryOptions()
    log = log or logger
    scope = SCOPES[PluginType(options.type)]
    disabled_names = set(options.disabled)

    plugins: list[Plugin] = []
    invalids: list[InvalidPlugin] = []

    for spec in dirs:
        plugin_type = PluginType(spec["type"])
        if plugin_type not in scope:
            log.debug("plugin_dir_skipped", dir=spec["dir"], type=plugin_type.value)
            continue

        for location in find_plugins(spec["dir"], int(spec.get("depth", 1))):
            try:
                plugin = Plugin.from_directory(
                    location, type=plugin_type, channel=options.channel
                )
            except BootstrapError as e:
                log.warning(
                    "plugin_invalid",
                    location=str(location),
                    error=e.message,
                )
                invalids.append(
                    InvalidPlugin(
                        name=Plugin.default_name(location),
                        location=str(location),
                        error=e.message,
                    )
                )
                continue

            if plugin.name in disabled_names:
                plugin.enabled = False
            plugins.append(plugin)

    result = DiscoveryResult(invalids=normalize_plugins(invalids))
    for name, plugin in normalize_plugins(plugins).items():
        if plugin.enabled:
            result.enabled[name] = plugin
        else:
            result.disabled[name] = plugin

    log.info(
        "plugin_discovery_finished",
        enabled=len(result.enabled),
        disabled=len(result.disabled),
        invalid=len(result.invalids),
    )
    return result


def find_app(files: list[str], start_from: str | Path) -> Path | None:
    """Find the closest app file at or above ``start_from``.

    Args:
        files: Candidate file names in priority order.
        start_from: Directory to start searching from.

    Returns:
        Path of the first matching file, or None.
    """
    start = Path(start_from).resolve()
    for directory in [start, *start.parents]:
        for filename in files:
            candidate = directory / filename
            if candidate.is_file():
                return candidate
    return None
