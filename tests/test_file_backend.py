"""
Tests for the JSON file backend and file-backed caches.
"""

from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from unicache import FileBackend, InvalidKeyError, UniCache
from unicache.types import MISSING


@pytest.fixture
async def backend(temp_dir: Path) -> FileBackend:
    """Create a connected file backend."""
    file_backend = FileBackend("test", save_path=temp_dir / "data")
    await file_backend.connect()
    yield file_backend
    await file_backend.close()


class TestFileBackendAggregate:
    """Tests for the aggregate document."""

    @pytest.mark.asyncio
    async def test_connect_creates_directory(self, temp_dir: Path) -> None:
        """Test that connect() creates the save path."""
        file_backend = FileBackend("test", save_path=temp_dir / "a" / "b")
        await file_backend.connect()
        await file_backend.connect()
        assert (temp_dir / "a" / "b").is_dir()

    @pytest.mark.asyncio
    async def test_fetch_missing_file(self, backend: FileBackend) -> None:
        """Test that a missing aggregate document reads as empty."""
        assert await backend.fetch() == {}

    @pytest.mark.asyncio
    async def test_save_and_fetch(self, backend: FileBackend, temp_dir: Path) -> None:
        """Test that the aggregate document is indented JSON."""
        await backend.save({"a": {"b": [1, 2]}})

        path = temp_dir / "data" / "test.json"
        assert path.exists()
        assert path.read_text(encoding="utf-8").startswith("{\n  ")
        assert await backend.fetch() == {"a": {"b": [1, 2]}}
        assert not list((temp_dir / "data").glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_corrupt_aggregate_reads_as_empty(
        self, backend: FileBackend, temp_dir: Path
    ) -> None:
        """Test that malformed JSON is logged and treated as empty."""
        messages: list[str] = []
        backend.log.log_function = messages.append
        (temp_dir / "data" / "test.json").write_text("{not json", encoding="utf-8")

        assert await backend.fetch() == {}
        assert any("Failed to parse JSON" in m for m in messages)

    @pytest.mark.asyncio
    async def test_non_mapping_aggregate_reads_as_empty(
        self, backend: FileBackend, temp_dir: Path
    ) -> None:
        """Test that a JSON list in the aggregate document is ignored."""
        (temp_dir / "data" / "test.json").write_bytes(orjson.dumps([1, 2]))
        assert await backend.fetch() == {}


class TestFileBackendObjects:
    """Tests for object documents."""

    @pytest.mark.asyncio
    async def test_create_and_retrieve(self, backend: FileBackend, temp_dir: Path) -> None:
        """Test one file per object key."""
        await backend.create_object("cust-1", {"balance": 100})

        assert (temp_dir / "data" / "cust-1.json").exists()
        assert await backend.retrieve_object("cust-1") == {"balance": 100}

    @pytest.mark.asyncio
    async def test_retrieve_missing(self, backend: FileBackend) -> None:
        """Test that a missing object is MISSING, not an error."""
        assert await backend.retrieve_object("nope") is MISSING

    @pytest.mark.asyncio
    async def test_retrieve_corrupt(self, backend: FileBackend, temp_dir: Path) -> None:
        """Test that an unreadable object is MISSING."""
        (temp_dir / "data" / "bad.json").write_text("[1,", encoding="utf-8")
        assert await backend.retrieve_object("bad") is MISSING

    @pytest.mark.asyncio
    async def test_create_object_removes_aggregate_entry(
        self, backend: FileBackend
    ) -> None:
        """Test that an object replaces a same-named aggregate entry."""
        await backend.save({"doc": 1, "other": 2})
        await backend.create_object("doc", {"v": 1})

        assert await backend.fetch() == {"other": 2}

    @pytest.mark.asyncio
    async def test_delete_object(self, backend: FileBackend, temp_dir: Path) -> None:
        """Test that delete_object reports whether a file existed."""
        await backend.create_object("doc", {})
        assert await backend.delete_object("doc") is True
        assert await backend.delete_object("doc") is False
        assert not (temp_dir / "data" / "doc.json").exists()

    @pytest.mark.asyncio
    async def test_list_object_keys(self, backend: FileBackend, temp_dir: Path) -> None:
        """Test that listing skips the aggregate document and foreign files."""
        await backend.save({"a": 1})
        await backend.create_object("one", 1)
        await backend.create_object("two", 2)
        (temp_dir / "data" / "notes.txt").write_text("x", encoding="utf-8")
        (temp_dir / "data" / "subdir.json").mkdir()

        assert await backend.list_object_keys() == {"one", "two"}

    @pytest.mark.asyncio
    async def test_list_recreates_missing_directory(self, temp_dir: Path) -> None:
        """Test that listing a missing directory returns nothing."""
        file_backend = FileBackend("test", save_path=temp_dir / "later")
        assert await file_backend.list_object_keys() == set()
        assert (temp_dir / "later").is_dir()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["a/b", "a\\b", "", None])
    async def test_invalid_keys_rejected(
        self, backend: FileBackend, temp_dir: Path, key: object
    ) -> None:
        """Test that unsafe keys fail before touching the disk."""
        with pytest.raises(InvalidKeyError):
            await backend.create_object(key, {})  # type: ignore[arg-type]
        with pytest.raises(InvalidKeyError):
            await backend.retrieve_object(key)  # type: ignore[arg-type]
        with pytest.raises(InvalidKeyError):
            await backend.delete_object(key)  # type: ignore[arg-type]
        assert list((temp_dir / "data").iterdir()) == []

    @pytest.mark.asyncio
    async def test_aggregate_name_rejected(self, backend: FileBackend) -> None:
        """Test that a key mapping onto the aggregate document is refused."""
        await backend.save({"settings": {"theme": "dark"}})

        with pytest.raises(InvalidKeyError):
            await backend.create_object("test", {"doc": True})

        assert await backend.fetch() == {"settings": {"theme": "dark"}}

    @pytest.mark.asyncio
    async def test_aggregate_name_rejected_custom_builder(self, temp_dir: Path) -> None:
        """Test the same guard when a custom builder produces the aggregate name."""
        file_backend = FileBackend(
            "test",
            save_path=temp_dir / "data",
            key_file_builder=lambda key: "test.json" if key == "main" else f"{key}.json",
        )
        await file_backend.connect()
        await file_backend.save({"a": 1})

        with pytest.raises(InvalidKeyError):
            await file_backend.create_object("main", {"b": 2})
        with pytest.raises(InvalidKeyError):
            await file_backend.retrieve_object("main")
        assert await file_backend.fetch() == {"a": 1}

    @pytest.mark.asyncio
    async def test_custom_filename_mapping(self, temp_dir: Path) -> None:
        """Test custom key-to-filename and filename-to-key functions."""
        file_backend = FileBackend(
            "test",
            save_path=temp_dir / "data",
            key_file_builder=lambda key: f"obj_{key}.json",
            filename_to_key=lambda name: (
                name[4:-5] if name.startswith("obj_") and name.endswith(".json") else None
            ),
        )
        await file_backend.connect()
        await file_backend.create_object("doc", {"v": 1})
        await file_backend.save({"plain": 1})

        assert (temp_dir / "data" / "obj_doc.json").exists()
        assert await file_backend.list_object_keys() == {"doc"}

    @pytest.mark.asyncio
    async def test_custom_extension(self, temp_dir: Path) -> None:
        """Test that the extension applies to every document."""
        file_backend = FileBackend("test", save_path=temp_dir, file_extension=".cache")
        await file_backend.save({})
        await file_backend.create_object("doc", {})

        assert (temp_dir / "test.cache").exists()
        assert await file_backend.list_object_keys() == {"doc"}


class TestFileBackedCache:
    """End-to-end tests through UniCache with the file backend."""

    @pytest.mark.asyncio
    async def test_object_survives_reopen(self, temp_dir: Path) -> None:
        """Test that a nested object edit persists across instances."""
        save_path = temp_dir / "data"
        cache = UniCache("bank", cache_type="file", save_path=save_path)
        await cache.init()
        await cache.create_object("cust-1", {"balance": 100})
        await cache.set("cust-1.balance", 150)
        await cache.sync()
        await cache.close()

        reopened = UniCache("bank", cache_type="file", save_path=save_path)
        await reopened.init()
        assert await reopened.get("cust-1.balance") == 150
        assert reopened.keys() == ["cust-1"]
        await reopened.close()

    @pytest.mark.asyncio
    async def test_aggregate_survives_reopen(self, temp_dir: Path) -> None:
        """Test that aggregate keys persist in one document."""
        save_path = temp_dir / "data"
        async with UniCache(
            "app", cache_type="file", save_path=save_path, sync_on_close=True
        ) as cache:
            await cache.set("settings.theme", "dark")
            await cache.push("log", "started")

        assert orjson.loads((save_path / "app.json").read_bytes()) == {
            "settings": {"theme": "dark"},
            "log": ["started"],
        }

        async with UniCache("app", cache_type="file", save_path=save_path) as cache:
            assert await cache.get("settings.theme") == "dark"
            assert await cache.get("log") == ["started"]

    @pytest.mark.asyncio
    async def test_demotion_persists(self, temp_dir: Path) -> None:
        """Test that replacing an object with a plain value removes its file."""
        save_path = temp_dir / "data"
        cache = UniCache("app", cache_type="file", save_path=save_path)
        await cache.init()
        await cache.create_object("k", {"a": 1}, sync_now=True)
        assert (save_path / "k.json").exists()

        await cache.set("k", 5, sync_now=True)
        assert not (save_path / "k.json").exists()
        await cache.close()

        async with UniCache("app", cache_type="file", save_path=save_path) as reopened:
            assert await reopened.get("k") == 5
            assert await reopened.retrieve_object("k") is None

    @pytest.mark.asyncio
    async def test_clear_removes_files(self, file_cache: UniCache, temp_dir: Path) -> None:
        """Test that a synced clear() leaves an empty aggregate and no objects."""
        await file_cache.set("a", 1)
        await file_cache.create_object("doc", {})
        await file_cache.sync()

        await file_cache.clear(sync_now=True)

        data_dir = temp_dir / "data"
        assert sorted(p.name for p in data_dir.iterdir()) == ["test.json"]
        assert orjson.loads((data_dir / "test.json").read_bytes()) == {}

    @pytest.mark.asyncio
    async def test_cache_name_key_keeps_aggregate(self, temp_dir: Path) -> None:
        """Test that an object named like the cache cannot clobber the aggregate."""
        save_path = temp_dir / "data"
        cache = UniCache("app", cache_type="file", save_path=save_path)
        await cache.init()
        await cache.set("settings", {"theme": "dark"})

        with pytest.raises(InvalidKeyError):
            await cache.create_object("app", {"doc": True})
        assert cache.keys() == ["settings"]

        await cache.sync()
        await cache.close()

        async with UniCache("app", cache_type="file", save_path=save_path) as reopened:
            assert await reopened.get("settings.theme") == "dark"
            assert reopened.keys() == ["settings"]

    @pytest.mark.asyncio
    async def test_separator_key_fails_before_io(
        self, file_cache: UniCache, temp_dir: Path
    ) -> None:
        """Test that create_object rejects path separators immediately."""
        with pytest.raises(InvalidKeyError):
            await file_cache.create_object("../escape", {})
        assert "../escape" not in file_cache.keys()
        assert file_cache.is_dirty is False
