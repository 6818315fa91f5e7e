"""Plugin descriptors, discovery and installation.

Core Components:
    - plugin: Plugin descriptors (Plugin, PluginType, InvalidPlugin)
    - source: Discovery over plugin directories (discover, find_plugins)
    - installer: Local plugin installer component (PluginInstaller)
    - names: Plugin identifier parsing (parse_package_name)
"""

from bootkit.plugins.names import PackageName, parse_package_name
from bootkit.plugins.plugin import (
    DiscoveryResult,
    InvalidPlugin,
    Plugin,
    PluginType,
)

__all__ = [
    "DiscoveryResult",
    "InvalidPlugin",
    "PackageName",
    "Plugin",
    "PluginType",
    "parse_package_name",
]
