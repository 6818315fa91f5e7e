"""Cache stores for derived bootstrap state.

Classes:
    - CacheStore: Interface every cache backend implements
    - FileStorage: JSON files on disk with an in-memory mirror
    - NoStorage: A cache that never holds anything
"""

import json
import re
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger()

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class CacheStore(ABC):
    """Key/value store for derived values."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Return True if ``key`` holds a value."""
        ...

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the value stored under ``key``.

        Raises:
            KeyError: If ``key`` holds no value.
        """
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""
        ...

    @abstractmethod
    def flush(self) -> None:
        """Remove every stored value."""
        ...


class FileStorage(CacheStore):
    """Cache persisted as one JSON file per key.

    Values must be JSON-serializable. Reads are served from memory once a
    key has been loaded or written, so a value read twice is the same object.

    Attributes:
        dir: Directory holding the cache files.

    Example:
        cache = FileStorage(dir="~/.acme/cache")
        cache.set("manifest", {"stores": []})
        if cache.has("manifest"):
            data = cache.get("manifest")
        cache.flush()
    """

    def __init__(self, dir: str | Path, log: Any = None) -> None:
        self.dir = Path(dir).expanduser()
        self._log = log or logger
        self._memory: dict[str, Any] = {}

    @staticmethod
    def flush_directory(directory: str | Path, log: Any = None) -> None:
        """Remove a cache directory and everything in it."""
        log = log or logger
        directory = Path(directory).expanduser()
        shutil.rmtree(directory, ignore_errors=True)
        log.debug("cache_directory_flushed", dir=str(directory))

    def _path(self, key: str) -> Path:
        return self.dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def has(self, key: str) -> bool:
        return key in self._memory or self._path(key).is_file()

    def get(self, key: str) -> Any:
        if key not in self._memory:
            path = self._path(key)
            if not path.is_file():
                raise KeyError(key)
            with path.open() as f:
                self._memory[key] = json.load(f)
        return self._memory[key]

    def set(self, key: str, value: Any) -> None:
        self.dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        with tmp.open("w") as f:
            json.dump(value, f)
        tmp.replace(path)
        self._memory[key] = value
        self._log.debug("cache_set", key=key)

    def flush(self) -> None:
        self._memory.clear()
        self.flush_directory(self.dir, self._log)


class NoStorage(CacheStore):
    """Cache used when caching is disabled. Nothing is ever stored."""

    def __init__(self, dir: str | Path | None = None, log: Any = None) -> None:
        self.dir = dir

    def has(self, key: str) -> bool:
        return False

    def get(self, key: str) -> Any:
        raise KeyError(key)

    def set(self, key: str, value: Any) -> None:
        pass

    def flush(self) -> None:
        pass
