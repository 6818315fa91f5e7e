"""Bootstrap orchestration.

This module provides the Bootstrap: the object that discovers plugins,
composes their manifests, resolves components from the composed registry,
and keeps all of that derived state cached and consistent.

Derived state lives in a cache store under a fixed set of keys. The keys
are only ever flushed together, followed by a recompute of the plugins and
then the manifest, so the two can never come from different discovery runs.

Classes:
    - Bootstrap: Lifecycle owner for plugins, manifest and components

Functions:
    - generate_id: Create a new installation id
"""

import asyncio
import threading
import uuid
from pathlib import Path
from typing import Any

import structlog

from bootkit.cache import CacheStore, FileStorage, NoStorage
from bootkit.components import ComponentFactories, ComponentResolver, builtin_factories
from bootkit.config import Config, product_defaults
from bootkit.errors import BootstrapErrorCode, NotFoundError, ProtectedError
from bootkit.hooks import HookPolicy, HookRunner, aggregate_hooks
from bootkit.manifest import Manifest, build_manifest
from bootkit.plugins.names import parse_package_name
from bootkit.plugins.plugin import InvalidPlugin, Plugin, PluginType
from bootkit.plugins.source import (
    DiscoveryOptions,
    discover,
    find_app,
    find_plugins,
    normalize_plugins,
)

logger = structlog.get_logger()

CACHE_KEYS = (
    "plugins.enabled",
    "plugins.disabled",
    "plugins.invalid",
    "manifest",
    "hooks",
)

INSTALLER_COMPONENT = "core.plugin-installer"


def generate_id() -> str:
    """Create a new installation id."""
    return uuid.uuid4().hex


class Bootstrap:
    """Owns plugin discovery, manifest composition and component resolution.

    ``plugins`` and ``manifest`` are populated during construction and only
    recomputed by ``reinit`` (directly, or through ``add_plugin`` and
    ``remove_plugin``).

    Attributes:
        config: The layered configuration.
        id: Product id.
        plugins: Enabled plugins keyed by name, in discovery order.
        manifest: Manifest composed from ``plugins``.
        factories: Factory table backing component and hook resolution.

    Example:
        bootstrap = Bootstrap(Config(id="acme", files=["./acme.yml"]))
        bootstrap.get_plugin("php")
        installer = await bootstrap.get_component_instance("core.plugin-installer")
        await bootstrap.add_plugin("@acme/php@^1")
        await bootstrap.run_hook("post-install", {"name": "php"})
    """

    # Re-exported so callers holding a Bootstrap need no extra imports
    find_app = staticmethod(find_app)
    find_plugins = staticmethod(find_plugins)
    normalize_plugins = staticmethod(normalize_plugins)

    def __init__(
        self,
        config: Config | None = None,
        log: Any = None,
        factories: ComponentFactories | None = None,
        hook_runner: HookRunner | None = None,
    ) -> None:
        """Initialize the bootstrap and run the first init pass.

        Args:
            config: Configuration; a default ``Config`` when omitted.
            log: Logger to bind; the module logger when omitted.
            factories: Factory table; the bootkit builtins when omitted.
            hook_runner: Runner for ``run_hook``; one over ``factories`` when
                omitted.
        """
        self.config = config or Config()
        self.id = self.config.id or "bootkit"
        self.log = (log or logger).bind(product=self.id)
        self.factories = factories or builtin_factories()
        self._hook_runner = hook_runner or HookRunner(self.factories)

        # Per-instance component caches
        self._components_cache: dict[str, Any] = {}
        self._instances_cache: dict[str, Any] = {}

        self._lock = threading.RLock()
        self._plugin_lock = asyncio.Lock()

        self.config.defaults("product-defaults", product_defaults(id=self.id, env=self.id))

        if not self.config.get(f"{self.config.managed}:system.instance"):
            data = {"system": {"instance": generate_id()}}
            self.config.save(data)
            self.config.set("system.instance", data["system"]["instance"])
            self.log.debug(
                "instance_id_generated",
                instance=self.config.get("system.instance"),
            )

        cache_dir = self.config.get("system.syscache-dir")
        caching = bool(self.config.get("core.caching"))
        backend = FileStorage if caching else NoStorage
        self._cache: CacheStore = backend(cache_dir, log=self.log.bind(component="cache"))

        if not caching and cache_dir and Path(cache_dir).expanduser().exists():
            FileStorage.flush_directory(cache_dir, self.log.bind(component="flush"))

        self.plugins: dict[str, Plugin] = {}
        self.manifest = Manifest()
        self._init()

    def _init(self) -> None:
        with self._lock:
            plugins = self.get_plugins()
            manifest = self._get_manifest(plugins)
            self.plugins, self.manifest = plugins, manifest

    def _reinit(self) -> None:
        with self._lock:
            self._cache.flush()
            self.log.debug("cache_flushed", keys=list(CACHE_KEYS))
            self._init()

    def reinit(self) -> None:
        """Flush all derived state and recompute plugins, then the manifest."""
        self._reinit()

    def _discover(self, options: dict[str, Any] | None = None) -> Any:
        self.log.debug("plugin_discovery_started", dirs=len(self.config.get("plugin.dirs", [])))

        defaults = {
            "type": PluginType.GLOBAL,
            "channel": self.config.get("core.release-channel"),
            "disabled": self.config.get("plugin.disabled", []),
        }
        result = discover(
            self.config.get("plugin.dirs", []),
            DiscoveryOptions(**{**defaults, **(options or {})}),
            log=self.log.bind(component="get-plugins"),
        )

        self._cache.set(
            "plugins.disabled",
            {name: p.model_dump(mode="json") for name, p in result.disabled.items()},
        )
        self._cache.set(
            "plugins.enabled",
            {name: p.model_dump(mode="json") for name, p in result.enabled.items()},
        )
        self._cache.set(
            "plugins.invalid",
            {name: p.model_dump(mode="json") for name, p in result.invalids.items()},
        )
        return result

    def get_plugins(self, options: dict[str, Any] | None = None) -> dict[str, Plugin]:
        """Return the enabled plugins, running discovery if not cached.

        Args:
            options: Discovery options overriding the configured defaults
                (``type``, ``channel``, ``disabled``).
        """
        if self._cache.has("plugins.enabled"):
            return {
                name: Plugin.model_validate(data)
                for name, data in self._cache.get("plugins.enabled").items()
            }
        return self._discover(options).enabled

    def get_disabled_plugins(self) -> dict[str, Plugin]:
        """Return the plugins discovery found but did not enable."""
        if self._cache.has("plugins.disabled"):
            return {
                name: Plugin.model_validate(data)
                for name, data in self._cache.get("plugins.disabled").items()
            }
        return self._discover().disabled

    def get_invalid_plugins(self) -> dict[str, InvalidPlugin]:
        """Return the plugin directories that failed to load."""
        if self._cache.has("plugins.invalid"):
            return {
                name: InvalidPlugin.model_validate(data)
                for name, data in self._cache.get("plugins.invalid").items()
            }
        return self._discover().invalids

    def _get_manifest(self, plugins: dict[str, Plugin]) -> Manifest:
        if self._cache.has("manifest"):
            return Manifest.from_dict(self._cache.get("manifest"))

        self.log.debug("manifest_construction_started", plugins=len(plugins))
        manifest = build_manifest(plugins)
        self._cache.set("manifest", manifest.to_dict())
        return manifest

    def get_manifest(self) -> Manifest:
        """Return the manifest composed from the current plugins."""
        return self._get_manifest(self.plugins)

    def get_registry(self) -> dict[str, Any]:
        """Return the ``registry`` section of the current manifest."""
        return self.manifest.registry

    def get_plugin(self, name: str) -> Plugin | None:
        """Return the enabled plugin called ``name``, or None.

        ``name`` may carry a version, e.g. ``@acme/php@^1``.
        """
        return self.plugins.get(parse_package_name(name).name)

    async def add_plugin(self, name: str, dest: str | Path | None = None) -> Plugin:
        """Fetch and install a plugin, then reinit.

        Args:
            name: Plugin identifier or path to a plugin directory.
            dest: Install directory; ``plugin.global-install-dir`` by default.

        Returns:
            The installed plugin.

        Raises:
            BootstrapError: Whatever the installer raises. Nothing is flushed
                when fetching fails.
        """
        async with self._plugin_lock:
            dest = dest or self.config.get("plugin.global-install-dir")
            installer = await self.get_component_instance(
                INSTALLER_COMPONENT,
                {"index_dirs": self.config.get("plugin.index-dirs", [])},
            )
            plugin = await Plugin.fetch(
                name,
                dest,
                channel=self.config.get("core.release-channel"),
                installer=installer,
                type=PluginType.GLOBAL,
            )

            self._reinit()
            self.log.info("plugin_added", plugin=plugin.name, location=plugin.location)
            return plugin

    async def remove_plugin(self, name: str) -> Plugin:
        """Remove an enabled plugin from disk, then reinit.

        Returns:
            The removed plugin.

        Raises:
            NotFoundError: If no enabled plugin is called ``name``.
            ProtectedError: If the plugin is a core plugin.
        """
        async with self._plugin_lock:
            plugin = self.get_plugin(name)

            if plugin is None:
                raise NotFoundError(
                    code=BootstrapErrorCode.PLUGIN_NOT_FOUND,
                    message=f"Could not find a plugin called {name}",
                    plugin_name=name,
                )
            if plugin.type == PluginType.CORE:
                raise ProtectedError(
                    f"{plugin.name} is a core plugin and cannot be removed",
                    plugin_name=plugin.name,
                )

            await asyncio.to_thread(plugin.remove)

            self._reinit()
            self.log.info("plugin_removed", plugin=plugin.name)
            return plugin

    def get_hooks(self) -> list[dict[str, str]]:
        """Return hook descriptors aggregated from the manifest."""
        if self._cache.has("hooks"):
            return self._cache.get("hooks")

        self.log.debug("hook_discovery_started")
        policy = HookPolicy(self.config.get("core.hooks-source", HookPolicy.BOTH.value))
        # Stores were added in reverse discovery order
        hooks = aggregate_hooks(reversed(self.manifest.stores()), self.id, policy)

        self._cache.set("hooks", hooks)
        return hooks

    async def run_hook(self, event: str, data: Any = None) -> list[Any]:
        """Run the handlers registered for ``event``.

        Handlers receive ``data`` and a context exposing this bootstrap both
        under its id and as ``product``.
        """
        return await self._hook_runner.run(
            event,
            data,
            self.get_hooks(),
            {self.id: self, "product": self},
            self.log.bind(component="hooks"),
        )

    def _resolver(self) -> ComponentResolver:
        return ComponentResolver(
            self.get_registry(),
            self.factories,
            log=self.log.bind(component="get-component"),
        )

    def get_component(
        self,
        component: str,
        cache: dict[str, Any] | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> Any:
        """Resolve a component key to its factory without constructing it.

        Args:
            component: Dotted component key.
            cache: Reference cache; the bootstrap's own when omitted.
            defaults: Constructor arguments to bind.

        Raises:
            NotFoundError: If the registry has no such component.
        """
        return self._resolver().get(
            component,
            cache=self._components_cache if cache is None else cache,
            defaults=defaults,
        )

    async def get_component_instance(
        self,
        component: str,
        constructor: dict[str, Any] | None = None,
        cache: dict[str, Any] | None = None,
        defaults: dict[str, Any] | None = None,
        init: Any = True,
    ) -> Any:
        """Resolve a component key and construct it.

        Args:
            component: Dotted component key.
            constructor: Constructor arguments.
            cache: Instance cache; the bootstrap's own when omitted. Pass a
                fresh dict to force a new instance.
            defaults: Default constructor arguments.
            init: Initializer run after construction, see
                ``ComponentResolver.get_instance``.

        Raises:
            NotFoundError: If the registry has no such component.
        """
        return await self._resolver().get_instance(
            component,
            constructor,
            cache=self._instances_cache if cache is None else cache,
            defaults=defaults,
            init=init,
        )
