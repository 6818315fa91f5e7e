"""The composed plugin manifest.

A manifest is an ordered set of literal stores, one per enabled plugin.
Reading a path merges the value at that path across every store, with the
store added last winning on collisions at the leaf level.

Classes:
    - Manifest: Ordered literal stores with merged reads

Functions:
    - sanitize_fragment: Strip plugin-local fields from a manifest fragment
    - build_manifest: Compose a manifest from enabled plugins
"""

import copy
from collections.abc import Mapping
from typing import Any

from bootkit.config import deep_merge, get_path
from bootkit.plugins.plugin import Plugin

# Fields that describe the plugin itself rather than what it contributes
PLUGIN_LOCAL_FIELDS = ("name", "description", "enabled", "hidden")


class Manifest:
    """Ordered literal stores merged on read.

    Example:
        manifest = Manifest()
        manifest.add("php", {"registry": {"app.php": "php.service"}})
        manifest.get("registry.app.php")
        data = manifest.to_dict()
        assert Manifest.from_dict(data).get("registry") == manifest.get("registry")
    """

    def __init__(self, id: str = "manifest") -> None:
        self.id = id
        self._stores: dict[str, dict[str, Any]] = {}

    def add(self, name: str, store: Mapping[str, Any], type: str = "literal") -> None:
        """Add a store. Re-adding a name moves it to the end.

        Raises:
            ValueError: For store types other than ``literal``.
        """
        if type != "literal":
            raise ValueError(f"Unsupported manifest store type: {type}")
        self._stores.pop(name, None)
        self._stores[name] = copy.deepcopy(dict(store))

    def stores(self) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(name, store)`` pairs in insertion order."""
        return [(name, copy.deepcopy(store)) for name, store in self._stores.items()]

    def get(self, path: str | None = None, default: Any = None) -> Any:
        """Read a dotted path merged across every store.

        Args:
            path: Dotted path; ``None`` returns the whole merged tree.
            default: Returned when no store sets the path.
        """
        merged: dict[str, Any] = {}
        for store in self._stores.values():
            merged = deep_merge(merged, store)
        if path is None:
            return merged
        return get_path(merged, path, default)

    @property
    def registry(self) -> dict[str, Any]:
        """The merged ``registry`` section."""
        return self.get("registry", {})

    def to_dict(self) -> dict[str, Any]:
        """Return the plain serializable form used for caching."""
        return {
            "id": self.id,
            "stores": [[name, copy.deepcopy(store)] for name, store in self._stores.items()],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Manifest":
        """Rebuild a manifest from ``to_dict`` output."""
        manifest = cls(id=data.get("id", "manifest"))
        for name, store in data.get("stores", []):
            manifest.add(name, store)
        return manifest

    def __len__(self) -> int:
        return len(self._stores)

    def __contains__(self, name: str) -> bool:
        return name in self._stores


def sanitize_fragment(fragment: Mapping[str, Any]) -> dict[str, Any]:
    """Return a deep copy of ``fragment`` without plugin-local fields."""
    store = copy.deepcopy(dict(fragment))
    for key in PLUGIN_LOCAL_FIELDS:
        store.pop(key, None)
    return store


def build_manifest(plugins: Mapping[str, Plugin]) -> Manifest:
    """Compose the manifest of the enabled plugins.

    Plugins are added in reverse discovery order, so the first discovered
    plugin is added last and wins conflicting values.

    Args:
        plugins: Enabled plugins keyed by name, in discovery order.
    """
    manifest = Manifest()
    for name, plugin in reversed(list(plugins.items())):
        manifest.add(name, sanitize_fragment(plugin.manifest))
    return manifest
