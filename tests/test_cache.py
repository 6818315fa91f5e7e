"""Tests for the cache stores.

Tests cover:
    - FileStorage set/has/get and persistence across instances
    - FileStorage flush and out-of-band directory flush
    - NoStorage never holding values
"""

from pathlib import Path

import pytest

from bootkit.cache import FileStorage, NoStorage


class TestFileStorage:
    """Tests for FileStorage."""

    @pytest.fixture
    def cache(self, tmp_path: Path) -> FileStorage:
        return FileStorage(dir=tmp_path / "cache")

    def test_set_then_get(self, cache: FileStorage) -> None:
        """Verify a stored value is returned."""
        cache.set("plugins.enabled", {"php": {"name": "php"}})

        assert cache.has("plugins.enabled")
        assert cache.get("plugins.enabled") == {"php": {"name": "php"}}

    def test_get_returns_same_object(self, cache: FileStorage) -> None:
        """Verify repeated reads are served from memory."""
        cache.set("hooks", [])

        assert cache.get("hooks") is cache.get("hooks")

    def test_missing_key(self, cache: FileStorage) -> None:
        """Verify unknown keys are reported as absent."""
        assert cache.has("manifest") is False
        with pytest.raises(KeyError):
            cache.get("manifest")

    def test_persists_across_instances(self, tmp_path: Path) -> None:
        """Verify a new store reads values written by an earlier one."""
        FileStorage(dir=tmp_path / "cache").set("manifest", {"stores": []})

        cache = FileStorage(dir=tmp_path / "cache")

        assert cache.has("manifest")
        assert cache.get("manifest") == {"stores": []}

    def test_unsafe_keys_stay_inside_dir(self, cache: FileStorage) -> None:
        """Verify keys cannot escape the cache directory."""
        cache.set("../escape", 1)

        assert list(cache.dir.iterdir()) == [cache.dir / ".._escape.json"]

    def test_flush_removes_everything(self, cache: FileStorage) -> None:
        """Verify flush() clears memory and disk."""
        cache.set("plugins.enabled", {})
        cache.set("manifest", {})

        cache.flush()

        assert not cache.has("plugins.enabled")
        assert not cache.has("manifest")
        assert not cache.dir.exists()

    def test_flush_directory(self, tmp_path: Path) -> None:
        """Verify the static flush removes a directory out of band."""
        directory = tmp_path / "stale"
        (directory / "nested").mkdir(parents=True)
        (directory / "nested" / "file.json").write_text("{}")

        FileStorage.flush_directory(directory)

        assert not directory.exists()

    def test_flush_directory_missing_is_noop(self, tmp_path: Path) -> None:
        """Verify flushing a missing directory does not raise."""
        FileStorage.flush_directory(tmp_path / "missing")


class TestNoStorage:
    """Tests for NoStorage."""

    def test_never_holds_values(self, tmp_path: Path) -> None:
        """Verify set() has no effect."""
        cache = NoStorage(dir=tmp_path / "cache")

        cache.set("manifest", {"stores": []})

        assert cache.has("manifest") is False
        with pytest.raises(KeyError):
            cache.get("manifest")
        assert not (tmp_path / "cache").exists()
