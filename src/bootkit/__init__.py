"""bootkit: plugin-assembled application bootstrap.

This package discovers plugins, composes their manifests into one
authoritative manifest, and resolves registry-declared components, keeping
the derived state cached and consistent.

Core Components:
    - bootstrap: Lifecycle owner (Bootstrap)
    - config: Layered configuration (Config)
    - manifest: Manifest composition (Manifest)
    - components: Component resolution (ComponentResolver, ComponentFactories)
    - cache: Derived-state cache stores (FileStorage, NoStorage)
    - hooks: Hook aggregation and execution (HookRunner)
    - errors: Error hierarchy (BootstrapError, NotFoundError, ProtectedError)
"""

from bootkit.errors import (
    BootstrapError,
    BootstrapErrorCode,
    ConfigError,
    NotFoundError,
    ProtectedError,
)

__all__ = [
    "BootstrapError",
    "BootstrapErrorCode",
    "ConfigError",
    "NotFoundError",
    "ProtectedError",
]


def __getattr__(name: str):
    """Lazy import for the heavier modules."""
    if name == "Bootstrap":
        from bootkit import bootstrap

        return bootstrap.Bootstrap
    if name == "Config":
        from bootkit import config

        return config.Config
    if name == "Manifest":
        from bootkit import manifest

        return manifest.Manifest
    if name in ("ComponentFactories", "ComponentResolver"):
        from bootkit import components

        return getattr(components, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
