"""Plugin descriptors.

This module defines the data the bootstrap knows about a plugin and the
operations a plugin supports on its own: loading from a directory,
fetching through an installer, and removal.

Classes:
    - PluginType: Enum of plugin types
    - Plugin: A discovered plugin and its manifest fragment
    - InvalidPlugin: A plugin directory that failed to load
    - DiscoveryResult: The three collections produced by discovery
"""

import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError

from bootkit.errors import BootstrapError, BootstrapErrorCode
from bootkit.plugins.names import parse_package_name

logger = structlog.get_logger()

MANIFEST_FILES = ("plugin.yml", "plugin.yaml")


class PluginType(str, Enum):
    """Types of plugins.

    Attributes:
        CORE: Ships with the product and can never be removed.
        GLOBAL: Installed for the user, shared by every app.
        APP: Lives inside a single app.
    """

    CORE = "core"
    GLOBAL = "global"
    APP = "app"


class Installer(Protocol):
    """What ``Plugin.fetch`` needs from an installer component."""

    async def install(self, name: str, dest: Path, channel: str | None = None) -> Path:
        ...


class Plugin(BaseModel):
    """A discovered plugin.

    Attributes:
        name: Bare plugin name, e.g. ``php`` or ``@acme/php``.
        type: The plugin type.
        manifest: The raw manifest fragment as declared by the plugin.
        enabled: Whether the plugin takes part in manifest composition.
        location: Directory the plugin was loaded from.
        version: Declared version, if any.
        channel: Release channel the plugin was discovered under.
    """

    name: str
    type: PluginType = PluginType.GLOBAL
    manifest: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    location: str | None = None
    version: str | None = None
    channel: str | None = None

    @staticmethod
    def manifest_file(directory: str | Path) -> Path | None:
        """Return the manifest file inside ``directory``, if there is one."""
        for filename in MANIFEST_FILES:
            candidate = Path(directory) / filename
            if candidate.is_file():
                return candidate
        return None

    @staticmethod
    def default_name(directory: str | Path) -> str:
        """Return the name implied by a plugin directory, e.g. ``@acme/php``."""
        directory = Path(directory)
        if directory.parent.name.startswith("@"):
            return f"{directory.parent.name}/{directory.name}"
        return directory.name

    @classmethod
    def from_directory(
        cls,
        directory: str | Path,
        type: PluginType | str = PluginType.GLOBAL,
        channel: str | None = None,
    ) -> "Plugin":
        """Load a plugin from its directory.

        The plugin name defaults to the directory name (prefixed with the
        parent directory when that looks like an ``@scope``).

        Raises:
            BootstrapError: With ``PLUGIN_INVALID`` if the manifest is
                missing, unreadable, or fails validation.
        """
        directory = Path(directory)
        path = cls.manifest_file(directory)
        if path is None:
            raise BootstrapError(
                code=BootstrapErrorCode.PLUGIN_INVALID,
                message=f"No manifest file in {directory}",
            )

        try:
            with path.open() as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise BootstrapError(
                code=BootstrapErrorCode.PLUGIN_INVALID,
                message=f"Invalid YAML in {path}: {e}",
                cause=e,
            ) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise BootstrapError(
                code=BootstrapErrorCode.PLUGIN_INVALID,
                message=f"Manifest {path} must contain a mapping",
            )

        name = str(data.get("name") or cls.default_name(directory))

        try:
            return cls(
                name=parse_package_name(name).name,
                type=type,
                manifest=data,
                enabled=data.get("enabled", True),
                location=str(directory),
                version=None if data.get("version") is None else str(data["version"]),
                channel=channel,
            )
        except ValidationError as e:
            raise BootstrapError(
                code=BootstrapErrorCode.PLUGIN_INVALID,
                message=f"Invalid manifest {path}: {e}",
                cause=e,
            ) from e

    @classmethod
    async def fetch(
        cls,
        name: str,
        dest: str | Path,
        channel: str | None = None,
        installer: Installer | None = None,
        type: PluginType | str = PluginType.GLOBAL,
    ) -> "Plugin":
        """Install a plugin into ``dest`` and load it.

        Installer errors propagate unchanged. If the installed copy turns out
        not to be a valid plugin it is removed again.

        Raises:
            BootstrapError: With ``FETCH_FAILED`` if no installer is given,
                ``PLUGIN_INVALID`` if the installed plugin cannot be loaded.
        """
        if installer is None:
            raise BootstrapError(
                code=BootstrapErrorCode.FETCH_FAILED,
                message="No installer available to fetch plugins",
                plugin_name=name,
            )

        location = await installer.install(name, Path(dest), channel=channel)
        try:
            plugin = cls.from_directory(location, type=type, channel=channel)
        except BootstrapError:
            shutil.rmtree(location, ignore_errors=True)
            raise

        logger.info(
            "plugin_fetched",
            plugin=plugin.name,
            location=str(location),
            channel=channel,
        )
        return plugin

    def remove(self) -> None:
        """Delete the plugin from disk."""
        if self.location is None:
            raise BootstrapError(
                code=BootstrapErrorCode.PLUGIN_INVALID,
                message="Plugin has no location to remove",
                plugin_name=self.name,
            )

        shutil.rmtree(self.location)
        logger.info("plugin_removed", plugin=self.name, location=self.location)


class InvalidPlugin(BaseModel):
    """A plugin directory that could not be loaded during discovery."""

    name: str
    location: str
    error: str


@dataclass
class DiscoveryResult:
    """Result of plugin discovery.

    All three mappings are keyed by plugin name and keep discovery order.
    """

    enabled: dict[str, Plugin] = field(default_factory=dict)
    disabled: dict[str, Plugin] = field(default_factory=dict)
    invalids: dict[str, InvalidPlugin] = field(default_factory=dict)
