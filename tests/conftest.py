"""
Pytest configuration and fixtures for unicache tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, AsyncGenerator, Generator
from unittest.mock import patch

import pytest

from unicache import (
    CacheBackend,
    UniCache,
    clear_settings_cache,
    register_backend,
    unregister_backend,
)
from unicache.config import CacheOptions
from unicache.logging import CacheLogger
from unicache.paths import deep_copy
from unicache.types import MISSING, Value


class RecordingBackend(CacheBackend):
    """In-memory backend that records every storage call.

    Instances created through the factory start from ``preset_aggregate``
    and ``preset_objects`` and register themselves in
    ``RecordingBackend.instances`` so tests can inspect them.
    """

    name = "recording"
    instances: list[RecordingBackend] = []
    preset_aggregate: dict[str, Value] = {}
    preset_objects: dict[str, Value] = {}

    def __init__(self, cache_name: str = "test") -> None:
        self.cache_name = cache_name
        self.aggregate: dict[str, Value] = {}
        self.objects: dict[str, Value] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_saves = 0
        self.closed = False

    @classmethod
    def from_options(cls, options: CacheOptions, log: CacheLogger) -> RecordingBackend:
        backend = cls(options.cache_name)
        backend.aggregate = deep_copy(cls.preset_aggregate)
        backend.objects = deep_copy(cls.preset_objects)
        cls.instances.append(backend)
        return backend

    def writes(self) -> list[tuple[str, Any]]:
        """Calls that changed storage."""
        return [c for c in self.calls if c[0] in ("save", "create_object", "delete_object")]

    async def connect(self) -> None:
        self.calls.append(("connect", None))

    async def fetch(self) -> dict[str, Value]:
        self.calls.append(("fetch", None))
        return deep_copy(self.aggregate)

    async def save(self, data: dict[str, Value]) -> None:
        if self.fail_saves:
            self.fail_saves -= 1
            raise OSError("disk unavailable")
        self.calls.append(("save", deep_copy(data)))
        self.aggregate = deep_copy(data)

    async def list_object_keys(self) -> set[str]:
        self.calls.append(("list_object_keys", None))
        return set(self.objects)

    async def create_object(self, key: str, value: Value) -> None:
        self.calls.append(("create_object", key))
        self.aggregate.pop(key, None)
        self.objects[key] = deep_copy(value)

    async def retrieve_object(self, key: str) -> Value:
        self.calls.append(("retrieve_object", key))
        return deep_copy(self.objects[key]) if key in self.objects else MISSING

    async def delete_object(self, key: str) -> bool:
        self.calls.append(("delete_object", key))
        return self.objects.pop(key, MISSING) is not MISSING

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "UNICACHE_DEFAULT_BACKEND": "file",
        "UNICACHE_SAVE_PATH": str(temp_dir / "env_data"),
        "UNICACHE_FILE_EXTENSION": "cache",
        "UNICACHE_SYNC_ON_WRITE": "true",
        "UNICACHE_SYNC_INTERVAL": "2.5",
        "UNICACHE_SYNC_ON_CLOSE": "true",
        "UNICACHE_DEBUG": "false",
        "UNICACHE_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def recording_backend() -> Generator[type[RecordingBackend], None, None]:
    """Register RecordingBackend under the name "recording"."""
    RecordingBackend.instances = []
    RecordingBackend.preset_aggregate = {}
    RecordingBackend.preset_objects = {}
    register_backend(RecordingBackend.name, RecordingBackend)
    yield RecordingBackend
    unregister_backend(RecordingBackend.name)
    RecordingBackend.instances = []
    RecordingBackend.preset_aggregate = {}
    RecordingBackend.preset_objects = {}


@pytest.fixture
async def memory_cache() -> AsyncGenerator[UniCache, None]:
    """Create an initialized memory-only cache."""
    cache = UniCache("test", cache_type="memory")
    await cache.init()
    yield cache
    await cache.close()


@pytest.fixture
async def recorded_cache(
    recording_backend: type[RecordingBackend],
) -> AsyncGenerator[UniCache, None]:
    """Create an initialized cache over a RecordingBackend."""
    cache = UniCache("test", cache_type="recording")
    await cache.init()
    yield cache
    await cache.close()


@pytest.fixture
async def file_cache(temp_dir: Path) -> AsyncGenerator[UniCache, None]:
    """Create an initialized file-backed cache in a temp directory."""
    cache = UniCache("test", cache_type="file", save_path=temp_dir / "data")
    await cache.init()
    yield cache
    await cache.close()
