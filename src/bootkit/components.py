"""Registry-driven component resolution.

Components are named, late-bound pieces of behavior (installers, services,
hook handlers). Plugins name them in the ``registry`` section of their
manifest and point each key at a factory name; factories are Python
callables registered at startup in a ``ComponentFactories`` table::

    registry:
      core:
        plugin-installer:
          factory: bootkit.plugin-installer
          defaults:
            index_dirs: [/srv/plugins]
      app.php: acme.php-service

Classes:
    - RegistryEntry: A resolved registry value
    - ComponentFactories: Factory name to callable table
    - ComponentResolver: Resolves component keys against a registry

Functions:
    - builtin_factories: A factory table holding the bootkit builtins
"""

import functools
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from bootkit.config import get_path
from bootkit.errors import BootstrapErrorCode, NotFoundError

logger = structlog.get_logger()

Factory = Callable[..., Any]


@dataclass(frozen=True)
class RegistryEntry:
    """A component declared in the manifest registry.

    Attributes:
        key: The dotted component key.
        factory: Name of the factory in the factory table.
        defaults: Constructor arguments declared by the registry.
    """

    key: str
    factory: str
    defaults: dict[str, Any] = field(default_factory=dict)


class ComponentFactories:
    """Table mapping factory names to callables.

    Example:
        factories = ComponentFactories()

        @factories.register("acme.php-service")
        class PhpService:
            def __init__(self, version: str = "8.3") -> None:
                self.version = version

        factories.get("acme.php-service")
    """

    def __init__(self) -> None:
        self._factories: dict[str, Factory] = {}

    def register(self, name: str, factory: Factory | None = None) -> Any:
        """Register ``factory`` under ``name``.

        Called without ``factory`` it returns a decorator. Registering a
        name again replaces the previous factory.
        """
        if factory is None:

            def decorator(func: Factory) -> Factory:
                self._factories[name] = func
                return func

            return decorator

        self._factories[name] = factory
        return factory

    def get(self, name: str) -> Factory | None:
        """Return the factory registered under ``name``, or None."""
        return self._factories.get(name)

    def names(self) -> list[str]:
        """Return all registered factory names."""
        return list(self._factories)

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)


def builtin_factories() -> ComponentFactories:
    """Return a new factory table holding the bootkit builtins."""
    from bootkit.plugins.installer import PluginInstaller

    factories = ComponentFactories()
    factories.register("bootkit.plugin-installer", PluginInstaller)
    return factories


class ComponentResolver:
    """Resolves component keys against a registry.

    Attributes:
        registry: The merged ``registry`` section of the manifest.
        factories: Table used to turn factory names into callables.

    Example:
        resolver = ComponentResolver(manifest.registry, factories)
        Installer = resolver.get("core.plugin-installer", cache={})
        installer = await resolver.get_instance(
            "core.plugin-installer", {"index_dirs": ["/srv"]}, cache={}
        )
    """

    def __init__(
        self,
        registry: dict[str, Any] | None,
        factories: ComponentFactories,
        log: Any = None,
    ) -> None:
        self.registry = registry or {}
        self.factories = factories
        self._log = log or logger

    def entry(self, key: str) -> RegistryEntry:
        """Return the registry entry for ``key``.

        Raises:
            NotFoundError: If the registry has no entry for ``key``.
        """
        value = get_path(self.registry, key)

        if isinstance(value, str):
            return RegistryEntry(key=key, factory=value)
        if isinstance(value, dict) and isinstance(value.get("factory"), str):
            return RegistryEntry(
                key=key,
                factory=value["factory"],
                defaults=dict(value.get("defaults") or {}),
            )

        raise NotFoundError(
            code=BootstrapErrorCode.COMPONENT_NOT_FOUND,
            message=f"No component registered as {key!r}",
        )

    def _factory(self, entry: RegistryEntry) -> Factory:
        factory = self.factories.get(entry.factory)
        if factory is None:
            raise NotFoundError(
                code=BootstrapErrorCode.FACTORY_NOT_FOUND,
                message=(
                    f"Component {entry.key!r} points at unknown factory "
                    f"{entry.factory!r}"
                ),
            )
        return factory

    def get(
        self,
        key: str,
        cache: dict[str, Any] | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> Factory:
        """Resolve ``key`` to its factory without calling it.

        When the registry or ``defaults`` supply constructor arguments the
        factory is returned with them bound (``defaults`` win).

        Args:
            key: Dotted component key.
            cache: Reference cache; a cached reference is returned as is.
            defaults: Extra constructor arguments to bind.

        Raises:
            NotFoundError: If the key or its factory is unknown.
        """
        if cache is not None and key in cache:
            return cache[key]

        entry = self.entry(key)
        factory = self._factory(entry)
        merged = {**entry.defaults, **(defaults or {})}
        reference = functools.partial(factory, **merged) if merged else factory

        if cache is not None:
            cache[key] = reference
        self._log.debug("component_resolved", component=key, factory=entry.factory)
        return reference

    async def get_instance(
        self,
        key: str,
        constructor: dict[str, Any] | None = None,
        cache: dict[str, Any] | None = None,
        defaults: dict[str, Any] | None = None,
        init: bool | Callable[[Any], Any] = True,
    ) -> Any:
        """Resolve ``key`` and construct it.

        Constructor arguments are merged as registry defaults, then
        ``defaults``, then ``constructor``. After construction ``init`` runs:
        ``True`` calls the instance's ``init()`` method when it has one, a
        callable is called with the instance, and awaitables are awaited.

        Args:
            key: Dotted component key.
            constructor: Constructor arguments.
            cache: Instance cache; a cached instance is returned as is.
            defaults: Default constructor arguments.
            init: Initializer to run after construction.

        Raises:
            NotFoundError: If the key or its factory is unknown.
        """
        if cache is not None and key in cache:
            return cache[key]

        entry = self.entry(key)
        factory = self._factory(entry)
        kwargs = {**entry.defaults, **(defaults or {}), **(constructor or {})}
        instance = factory(**kwargs)

        result = None
        if callable(init):
            result = init(instance)
        elif init and callable(getattr(instance, "init", None)):
            result = instance.init()
        if inspect.isawaitable(result):
            await result

        if cache is not None:
            cache[key] = instance
        self._log.debug("component_instantiated", component=key, factory=entry.factory)
        return instance
