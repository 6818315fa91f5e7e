"""Layered configuration for the bootstrap.

This module provides the configuration facade consumed by the bootstrap and
the Pydantic models that describe its defaults.

Layers, highest priority first:
    1. Runtime overrides written with ``Config.set``
    2. The managed store, persisted to YAML by ``Config.save``
    3. User config files loaded with ``load_config``
    4. The literal ``data`` layer passed to ``Config``
    5. Named defaults sources added with ``Config.defaults``

Models:
    - ReleaseChannel: Enum of plugin release channels
    - CoreDefaults: The ``core`` section
    - SystemDefaults: The ``system`` section
    - PluginDirSpec: One entry of ``plugin.dirs``
    - PluginDefaults: The ``plugin`` section
    - ProductDefaults: Root defaults model

Functions:
    - product_defaults: Build the default tree for a product id
    - load_config: Load and validate a YAML config file
    - deep_merge: Recursively merge two mappings
"""

import copy
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bootkit.errors import ConfigError
from bootkit.hooks import HookPolicy
from bootkit.plugins.plugin import PluginType

BUILTIN_PLUGINS_DIR = Path(__file__).parent / "plugins" / "builtin"


class ReleaseChannel(str, Enum):
    """Release channels a plugin can be fetched from."""

    STABLE = "stable"
    EDGE = "edge"
    NONE = "none"


class CoreDefaults(BaseModel):
    """Settings for the ``core`` section.

    Attributes:
        caching: Whether derived state is persisted between runs.
        release_channel: Channel used when fetching plugins.
        hooks_source: Which manifest sub-key contributes hooks.
    """

    model_config = ConfigDict(populate_by_name=True)

    caching: bool = True
    release_channel: ReleaseChannel = Field(
        default=ReleaseChannel.STABLE, alias="release-channel"
    )
    hooks_source: HookPolicy = Field(default=HookPolicy.BOTH, alias="hooks-source")


class SystemDefaults(BaseModel):
    """Settings for the ``system`` section."""

    model_config = ConfigDict(populate_by_name=True)

    data_dir: str = Field(alias="data-dir")
    syscache_dir: str = Field(alias="syscache-dir")
    managed_file: str = Field(alias="managed-file")


class PluginDirSpec(BaseModel):
    """A directory scanned during plugin discovery.

    Attributes:
        type: Type assigned to every plugin found in this directory.
        dir: Directory to scan.
        depth: How many levels below ``dir`` a plugin may live.
    """

    type: PluginType
    dir: str
    depth: int = Field(default=1, ge=1)


class PluginDefaults(BaseModel):
    """Settings for the ``plugin`` section.

    Attributes:
        dirs: Ordered discovery directories; earlier entries win name clashes.
        global_install_dir: Where ``add_plugin`` installs plugins by default.
        index_dirs: Local directories the installer fetches plugins from.
        disabled: Names of plugins to report as disabled.
    """

    model_config = ConfigDict(populate_by_name=True)

    dirs: list[PluginDirSpec] = Field(default_factory=list)
    global_install_dir: str = Field(alias="global-install-dir")
    index_dirs: list[str] = Field(default_factory=list, alias="index-dirs")
    disabled: list[str] = Field(default_factory=list)


class ProductDefaults(BaseModel):
    """Root model for the defaults of one product."""

    core: CoreDefaults = Field(default_factory=CoreDefaults)
    system: SystemDefaults
    plugin: PluginDefaults


def product_defaults(id: str = "bootkit", env: str | None = None) -> dict[str, Any]:
    """Build the default configuration tree for a product.

    The data directory is ``~/.<id>`` unless ``<ENV>_HOME`` is set.

    Args:
        id: Product id, used to name directories.
        env: Environment variable prefix (defaults to ``id``).

    Returns:
        Plain dictionary keyed by the hyphenated config names.
    """
    prefix = re.sub(r"[^A-Z0-9]", "_", (env or id).upper())
    data_dir = Path(
        os.environ.get(f"{prefix}_HOME") or Path.home() / f".{id}"
    ).expanduser()

    defaults = ProductDefaults(
        system=SystemDefaults(
            data_dir=str(data_dir),
            syscache_dir=str(data_dir / "cache"),
            managed_file=str(data_dir / "config.yml"),
        ),
        plugin=PluginDefaults(
            dirs=[
                PluginDirSpec(
                    type=PluginType.GLOBAL, dir=str(data_dir / "plugins"), depth=2
                ),
                PluginDirSpec(
                    type=PluginType.CORE, dir=str(BUILTIN_PLUGINS_DIR), depth=1
                ),
            ],
            global_install_dir=str(data_dir / "plugins"),
            index_dirs=[str(data_dir / "index")],
        ),
    )
    return defaults.model_dump(mode="json", by_alias=True)


# Environment variable expansion pattern: ${VAR_NAME}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ``${VAR}`` patterns in strings, lists and dicts.

    Raises:
        ConfigError: If a referenced environment variable is not set.
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise ConfigError(f"Environment variable '{var_name}' not set")
        return env_value

    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def load_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML config file.

    Expands environment variables and validates the sections that have a
    schema (``core`` and ``plugin.dirs``) before returning the raw tree.

    Args:
        path: Path to the YAML file.

    Returns:
        The loaded configuration tree.

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or fails
            validation.
    """
    path = Path(path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", cause=e) from e

    # Handle empty file
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    data = expand_env_vars(data)

    try:
        CoreDefaults.model_validate(data.get("core") or {})
        for spec in (data.get("plugin") or {}).get("dirs") or []:
            PluginDirSpec.model_validate(spec)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}", cause=e) from e

    return data


def deep_merge(base: dict[str, Any], other: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated recursively with ``other``.

    Mappings merge key by key; any other value in ``other`` replaces the one
    in ``base``. Neither input is modified.
    """
    result = copy.deepcopy(base)
    for key, value in other.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def get_path(data: Any, path: str, default: Any = None) -> Any:
    """Read a dotted path from nested mappings.

    At each level the remaining path is first tried as a literal key, so
    flat dotted keys such as ``registry: {app.server: ...}`` resolve the
    same way as nested ones.
    """
    parts = path.split(".")
    current = data
    for index, part in enumerate(parts):
        if not isinstance(current, dict):
            return default
        rest = ".".join(parts[index:])
        if rest in current:
            return current[rest]
        if part not in current:
            return default
        current = current[part]
    return current


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    """Write a dotted path into nested mappings, creating levels as needed."""
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


class Config:
    """Layered key/value configuration.

    Attributes:
        id: Product id this configuration belongs to.
        managed: Prefix selecting the managed store in ``get``.

    Example:
        config = Config(id="acme", files=["./acme.yml"])
        config.defaults("product-defaults", product_defaults("acme"))
        config.get("core.caching")
        config.get("managed:system.instance")
        config.save({"system": {"instance": "abc123"}})
    """

    managed = "managed"

    def __init__(
        self,
        id: str = "bootkit",
        data: dict[str, Any] | None = None,
        files: list[str | Path] | None = None,
        managed_file: str | Path | None = None,
    ) -> None:
        """Initialize the configuration.

        Args:
            id: Product id.
            data: A literal layer sitting just above the defaults.
            files: YAML files to load; later files win.
            managed_file: Where ``save`` persists data. When omitted the
                ``system.managed-file`` value is used.
        """
        self.id = id
        self._defaults: dict[str, dict[str, Any]] = {}
        self._layers: list[dict[str, Any]] = [copy.deepcopy(data or {})]
        for path in files or []:
            self._layers.append(load_config(path))
        self._explicit_managed_file = Path(managed_file) if managed_file else None
        self._managed: dict[str, Any] = {}
        self._managed_loaded_from: Path | None = None
        self._overrides: dict[str, Any] = {}

    @classmethod
    def wrap(cls, data: dict[str, Any] | None, id: str = "wrapped") -> "Config":
        """Create a configuration view over a plain mapping."""
        return cls(id=id, data=data)

    def defaults(self, name: str, data: dict[str, Any]) -> None:
        """Add (or replace) a named defaults source.

        Sources added earlier take priority over sources added later.
        """
        self._defaults[name] = copy.deepcopy(data)

    def _unmanaged(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for data in reversed(list(self._defaults.values())):
            merged = deep_merge(merged, data)
        for layer in self._layers:
            merged = deep_merge(merged, layer)
        return merged

    def _managed_path(self) -> Path | None:
        if self._explicit_managed_file is not None:
            return self._explicit_managed_file
        path = get_path(self._unmanaged(), "system.managed-file")
        return Path(path).expanduser() if path else None

    def _managed_store(self) -> dict[str, Any]:
        path = self._managed_path()
        if path != self._managed_loaded_from:
            self._managed = load_config(path) if path and path.exists() else {}
            self._managed_loaded_from = path
        return self._managed

    def get(self, path: str | None = None, default: Any = None) -> Any:
        """Read a value by dotted path.

        Args:
            path: Dotted path, optionally prefixed with ``managed:`` to read
                only the managed store. ``None`` returns the whole tree.
            default: Returned when the path is not set.
        """
        prefix = f"{self.managed}:"
        if path is not None and path.startswith(prefix):
            value = get_path(self._managed_store(), path[len(prefix):], default)
            return copy.deepcopy(value)

        merged = deep_merge(self._unmanaged(), self._managed_store())
        merged = deep_merge(merged, self._overrides)
        if path is None:
            return merged
        return get_path(merged, path, default)

    def set(self, path: str, value: Any) -> None:
        """Override a value for the lifetime of this object."""
        set_path(self._overrides, path, copy.deepcopy(value))

    def save(self, data: dict[str, Any]) -> None:
        """Merge ``data`` into the managed store and persist it.

        Raises:
            ConfigError: If no managed file is configured.
        """
        path = self._managed_path()
        if path is None:
            raise ConfigError("No managed config file configured")

        self._managed = deep_merge(self._managed_store(), data)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            yaml.safe_dump(self._managed, f, default_flow_style=False, sort_keys=False)
