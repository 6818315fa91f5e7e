"""Local plugin installer component.

The installer copies a plugin from a local source into an install
directory. Sources are either an existing directory path or a plugin found
in one of the configured index directories, which may hold a subdirectory
per release channel::

    index/
      edge/php/plugin.yml
      php/plugin.yml

Classes:
    - PluginInstaller: Resolves and copies plugin sources
"""

import asyncio
import shutil
from pathlib import Path

import structlog

from bootkit.errors import BootstrapError, BootstrapErrorCode, NotFoundError
from bootkit.plugins.names import parse_package_name
from bootkit.plugins.plugin import Plugin

logger = structlog.get_logger()


class PluginInstaller:
    """Copies plugins from local sources into an install directory.

    Registered as the ``core.plugin-installer`` component by the builtin
    core plugin.

    Attributes:
        index_dirs: Directories searched for plugins by name.

    Example:
        installer = PluginInstaller(index_dirs=["/srv/plugins"])
        await installer.init()
        location = await installer.install("php", Path("~/.acme/plugins"))
    """

    def __init__(self, index_dirs: list[str | Path] | None = None) -> None:
        self.index_dirs = [Path(d).expanduser() for d in index_dirs or []]

    async def init(self) -> None:
        """Report index directories that do not exist."""
        for directory in self.index_dirs:
            if not directory.is_dir():
                logger.warning("plugin_index_missing", dir=str(directory))

    def resolve(self, name: str, channel: str | None = None) -> Path | None:
        """Return the source directory for ``name``, or None."""
        as_path = Path(name).expanduser()
        if Plugin.manifest_file(as_path) is not None:
            return as_path

        bare = parse_package_name(name).name
        for index in self.index_dirs:
            candidates = [index / bare]
            if channel:
                candidates.insert(0, index / channel / bare)
            for candidate in candidates:
                if Plugin.manifest_file(candidate) is not None:
                    return candidate
        return None

    async def install(
        self, name: str, dest: Path, channel: str | None = None
    ) -> Path:
        """Copy the plugin ``name`` into ``dest``.

        An existing copy at the target location is replaced. A source that
        already is the target is left untouched.

        Returns:
            The directory the plugin was installed to.

        Raises:
            NotFoundError: If no source exists for ``name``.
            BootstrapError: With ``FETCH_FAILED`` if the target lies inside
                the source.
        """
        source = self.resolve(name, channel)
        if source is None:
            raise NotFoundError(
                code=BootstrapErrorCode.FETCH_FAILED,
                message=f"Could not find a source for plugin {name}",
                plugin_name=name,
            )

        if Path(name).expanduser() == source:
            target = Path(dest).expanduser() / source.name
        else:
            target = Path(dest).expanduser() / parse_package_name(name).name

        if target.resolve() == source.resolve():
            logger.info("plugin_already_installed", plugin=name, target=str(target))
            return target
        if target.resolve().is_relative_to(source.resolve()):
            raise BootstrapError(
                code=BootstrapErrorCode.FETCH_FAILED,
                message=f"Cannot install {source} into itself ({target})",
                plugin_name=name,
            )

        def copy() -> None:
            if target.exists():
                shutil.rmtree(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, target)

        await asyncio.to_thread(copy)
        logger.info(
            "plugin_installed",
            plugin=name,
            source=str(source),
            target=str(target),
        )
        return target
