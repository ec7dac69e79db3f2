"""
Path-addressed cache engine.

UniCache keeps a working copy of a named cache in memory and reconciles it
with a storage backend. Top-level keys come in two kinds:

- aggregate keys: ordinary values, persisted together in one document
- object keys: whole documents persisted one per key, loaded lazily on
  first touch (hydration)

A key is never both. create_object() promotes a key to an object key and a
plain set() on the bare key demotes it again. Mutations change memory first
and mark what is dirty; sync() writes the aggregate mapping, then pending
object deletions, then dirty objects, in that order.

Instances are meant for a single owner. Operations can interleave at
backend I/O when awaited concurrently, and no locking is provided.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from unicache.backends import CacheBackend, create_backend
from unicache.config import CacheOptions
from unicache.exceptions import ConfigurationError, InvalidKeyError
from unicache.logging import CacheLogger, get_logger, log_context
from unicache.paths import as_path, deep_copy, delete_path, get_path, set_path
from unicache.scheduler import SyncScheduler
from unicache.types import MISSING, PathInput, Value

logger = get_logger(__name__)


def _to_number(value: Any) -> int | float:
    """Coerce a value to a number; anything non-numeric becomes 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        text = value.strip()
        if "_" in text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return 0
        return number if math.isfinite(number) else 0
    return 0


class UniCache:
    """Key-value cache with dot-path access over a pluggable backend.

    Example:
        cache = UniCache("customers", cache_type="file", save_path="./data")
        await cache.init()

        await cache.set("settings.theme", "dark")
        await cache.create_object("cust-1", {"balance": 100})
        await cache.add("cust-1.balance", 50)
        await cache.sync()

        await cache.close()
    """

    def __init__(self, cache_name: str, **options: Any) -> None:
        """Create a cache. Call init() before use.

        Args:
            cache_name: Non-empty identifier; names the persisted documents.
            **options: CacheOptions fields (cache_type, sync_on_write,
                sync_interval, sync_on_close, save_path, file_extension,
                key_file_builder, filename_to_key, debug, log_function).

        Raises:
            ConfigurationError: If the name is missing or an option is invalid.
        """
        if not isinstance(cache_name, str) or not cache_name.strip():
            raise ConfigurationError(
                "UniCache requires a non-empty cache_name string",
                context={"cache_name": cache_name},
            )

        self.cache_name = cache_name
        self.options = CacheOptions.from_settings(cache_name, **options)
        self.log = CacheLogger(
            logger,
            cache_name,
            debug=self.options.debug,
            log_function=self.options.log_function,
        )

        self.backend: CacheBackend | None = None
        self._data: dict[str, Value] = {}
        self._object_keys: set[str] = set()
        self._object_cache: dict[str, Value] = {}
        self._dirty = False
        self._dirty_object_keys: set[str] = set()
        self._pending_deletes: set[str] = set()
        self._closed = False

        self.scheduler = SyncScheduler(
            self.sync,
            self.log,
            write_through=self.options.sync_on_write,
            interval=self.options.sync_interval,
        )

    @property
    def cache_type(self) -> str:
        """Backend in use: "memory" when running without one."""
        return self.backend.name if self.backend is not None else "memory"

    @property
    def is_dirty(self) -> bool:
        """True if anything is waiting to be flushed to the backend.

        Always False in memory mode, where there is nothing to flush to.
        """
        if self.backend is None:
            return False
        return bool(self._dirty or self._dirty_object_keys or self._pending_deletes)

    # Lifecycle

    async def init(self, seed: Mapping[str, Any] | None = None) -> None:
        """Connect the backend, load persisted state and start scheduling.

        Args:
            seed: Initial contents, written only if the cache is empty.
        """
        with log_context(cache_name=self.cache_name, operation="init"):
            self.backend = create_backend(self.options, self.log)
            if self.backend is not None:
                await self.backend.connect()
                await self._load_from_backend(self.backend)

            self.scheduler.start()

            if seed and self.is_empty():
                await self.save(seed)

    async def _load_from_backend(self, backend: CacheBackend) -> None:
        data = await backend.fetch()
        self._data = deep_copy(data) if isinstance(data, Mapping) else {}
        self._object_keys = set(await backend.list_object_keys())
        self._object_cache.clear()
        self._dirty = False
        self._dirty_object_keys.clear()
        self._pending_deletes.clear()

        # Object documents win over aggregate entries of the same name
        collisions = self._object_keys.intersection(self._data)
        for key in collisions:
            del self._data[key]
        if collisions:
            self._dirty = True
            self.log.warning(
                "Dropped aggregate entries shadowed by object documents",
                keys=sorted(collisions),
            )

        self.log.verbose(
            f"Loaded {len(self._data)} aggregate keys and "
            f"{len(self._object_keys)} object keys"
        )

    async def close(self) -> None:
        """Stop periodic syncing, optionally flush, and release the backend."""
        if self._closed:
            return
        self._closed = True

        with log_context(cache_name=self.cache_name, operation="close"):
            await self.scheduler.stop()
            if self.options.sync_on_close:
                await self.sync()
            if self.backend is not None:
                await self.backend.close()

    async def __aenter__(self) -> UniCache:
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Inspection

    def is_empty(self) -> bool:
        """True if there are no aggregate keys and no object keys."""
        return not self._data and not self._object_keys

    def aggregate_size(self) -> int:
        """Number of aggregate keys held in memory."""
        return len(self._data)

    def keys(self) -> list[str]:
        """All top-level keys, aggregate and object-backed."""
        return list(dict.fromkeys([*self._data, *self._object_keys]))

    def count(self) -> int:
        """Number of top-level keys."""
        return len(self.keys())

    def fetch(self) -> dict[str, Value]:
        """Copy of the aggregate mapping (object keys excluded)."""
        return deep_copy(self._data)

    # Path operations

    async def get(self, path: PathInput, default: Any = None) -> Value:
        """Read the value at ``path``.

        Args:
            path: Dot-separated string or list of segments.
            default: Returned when nothing is stored at ``path``.

        Returns:
            A deep copy of the stored value, or ``default``.
        """
        parts = as_path(path)
        if not parts:
            return default
        top, rest = parts[0], parts[1:]

        if top in self._object_keys:
            obj = await self._ensure_object_loaded(top)
            value = obj if not rest or obj is MISSING else get_path(obj, rest)
        else:
            value = get_path(self._data, parts)

        return default if value is MISSING else deep_copy(value)

    async def has(self, path: PathInput) -> bool:
        """True if a value is stored at ``path``.

        A bare object key counts as present without loading it.
        """
        parts = as_path(path)
        if not parts:
            return False
        top, rest = parts[0], parts[1:]

        if top in self._object_keys:
            if not rest:
                return True
            obj = await self._ensure_object_loaded(top)
            return obj is not MISSING and get_path(obj, rest) is not MISSING

        return get_path(self._data, parts) is not MISSING

    async def set(self, path: PathInput, value: Any, sync_now: bool | None = None) -> None:
        """Store a deep copy of ``value`` at ``path``.

        Setting a bare object key replaces the object with an aggregate
        value; nested paths under an object key write into the object.
        """
        parts = as_path(path)
        if not parts:
            return
        top, rest = parts[0], parts[1:]
        payload = deep_copy(value)

        if not rest:
            if top in self._object_keys:
                self._drop_object(top)
            self._data[top] = payload
            self._dirty = True
        elif top in self._object_keys:
            obj = await self._ensure_object_loaded(top)
            if not isinstance(obj, dict):
                obj = {}
                self._object_cache[top] = obj
            set_path(obj, rest, payload)
            self._mark_object_dirty(top)
        else:
            set_path(self._data, parts, payload)
            self._dirty = True

        await self._flush_if(sync_now)

    async def delete(self, path: PathInput, sync_now: bool | None = None) -> bool:
        """Remove the value at ``path``.

        Returns:
            True if something was removed.
        """
        parts = as_path(path)
        if not parts:
            return False
        top, rest = parts[0], parts[1:]

        if not rest:
            if top in self._object_keys:
                removed = self._drop_object(top)
            elif top in self._data:
                del self._data[top]
                self._dirty = removed = True
            else:
                removed = False
        elif top in self._object_keys:
            obj = await self._ensure_object_loaded(top)
            removed = obj is not MISSING and delete_path(obj, rest)
            if removed:
                self._mark_object_dirty(top)
        else:
            removed = delete_path(self._data, parts)
            if removed:
                self._dirty = True

        if removed:
            await self._flush_if(sync_now)
        return removed

    async def add(self, path: PathInput, delta: Any, sync_now: bool | None = None) -> None:
        """Add ``delta`` to the number at ``path`` (missing counts as 0)."""
        current = _to_number(await self.get(path))
        await self.set(path, current + _to_number(delta), sync_now)

    async def subtract(self, path: PathInput, delta: Any, sync_now: bool | None = None) -> None:
        """Subtract ``delta`` from the number at ``path`` (missing counts as 0)."""
        current = _to_number(await self.get(path))
        await self.set(path, current - _to_number(delta), sync_now)

    async def push(self, path: PathInput, element: Any, sync_now: bool | None = None) -> None:
        """Append ``element`` to the list at ``path``, creating it if needed."""
        current = await self.get(path)
        items = current if isinstance(current, list) else []
        items.append(deep_copy(element))
        await self.set(path, items, sync_now)

    async def save(self, data: Mapping[str, Any], sync_now: bool | None = None) -> None:
        """Write several top-level keys at once.

        Keys that are already object-backed are replaced through
        create_object(); everything else lands in the aggregate mapping.

        Raises:
            TypeError: If ``data`` is not a mapping.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"save() expects a mapping, got {type(data).__name__}")

        for key, value in data.items():
            key = str(key)
            if key in self._object_keys:
                await self.create_object(key, value, sync_now=False)
            else:
                self._data[key] = deep_copy(value)
                self._dirty = True

        await self._flush_if(sync_now)

    async def clear(self, sync_now: bool | None = None) -> None:
        """Remove everything. Object documents are scheduled for deletion."""
        previous_objects = set(self._object_keys)

        self._data = {}
        self._object_keys.clear()
        self._object_cache.clear()
        self._dirty = True
        self._dirty_object_keys.clear()
        self._pending_deletes.clear()
        if self.backend is not None:
            self._pending_deletes.update(previous_objects)

        if self.scheduler.should_flush(sync_now):
            await self.sync(force=True)

    # Object operations

    def _validate_object_key(self, key: Any) -> None:
        if self.backend is not None:
            self.backend.validate_key(key)
        elif not isinstance(key, str) or not key:
            raise InvalidKeyError(
                "Object operations require a non-empty string key",
                context={"key": key},
            )

    async def create_object(self, key: str, value: Any, sync_now: bool | None = None) -> None:
        """Store ``value`` as an independently persisted document.

        Any aggregate value under ``key`` is discarded.

        Raises:
            InvalidKeyError: If the key is empty, not a string, or unusable
                by the backend.
        """
        self._validate_object_key(key)

        self._object_keys.add(key)
        self._object_cache[key] = deep_copy(value)
        if key in self._data:
            del self._data[key]
            self._dirty = True
        self._pending_deletes.discard(key)
        self._mark_object_dirty(key)

        await self._flush_if(sync_now)

    async def retrieve_object(self, key: str, default: Any = None) -> Value:
        """Return a copy of the object stored under ``key``, or ``default``.

        Aggregate values are never returned here, even under the same key.
        """
        self._validate_object_key(key)
        if key not in self._object_keys:
            return default

        obj = await self._ensure_object_loaded(key)
        return default if obj is MISSING else deep_copy(obj)

    async def delete_object(self, key: str, sync_now: bool | None = None) -> bool:
        """Remove ``key`` whether object-backed or aggregate.

        Returns:
            True if anything was removed.
        """
        self._validate_object_key(key)
        removed = self._drop_object(key)
        if removed:
            await self._flush_if(sync_now)
        return removed

    # Sync

    async def sync(self, force: bool = False) -> None:
        """Flush pending changes to the backend.

        Args:
            force: Save the aggregate mapping even if it is not dirty.
        """
        if self.backend is None:
            return
        if not force and not self.is_dirty:
            return

        with log_context(cache_name=self.cache_name, operation="sync"):
            if self._dirty or force:
                await self.backend.save(deep_copy(self._data))
                self._dirty = False

            for key in sorted(self._pending_deletes):
                await self.backend.delete_object(key)
                self._pending_deletes.discard(key)

            for key in sorted(self._dirty_object_keys):
                if key in self._object_cache:
                    await self.backend.create_object(key, deep_copy(self._object_cache[key]))
                self._dirty_object_keys.discard(key)

            self.log.verbose("Sync complete")

    async def _flush_if(self, sync_now: bool | None) -> None:
        if self.scheduler.should_flush(sync_now):
            await self.sync()

    # Internal bookkeeping

    async def _ensure_object_loaded(self, key: str) -> Value:
        """Hydrate an object key from the backend on first access."""
        if key in self._object_cache:
            return self._object_cache[key]
        if self.backend is None:
            return MISSING

        obj = await self.backend.retrieve_object(key)
        if obj is MISSING:
            self.log.verbose(f'Object "{key}" has no stored document', key=key)
            return MISSING

        hydrated = deep_copy(obj)
        self._object_cache[key] = hydrated
        return hydrated

    def _mark_object_dirty(self, key: str) -> None:
        if self.backend is not None:
            self._dirty_object_keys.add(key)

    def _drop_object(self, key: str) -> bool:
        """Forget ``key`` in memory and schedule deletion of its document."""
        had_cache = self._object_cache.pop(key, MISSING) is not MISSING
        had_key = key in self._object_keys
        self._object_keys.discard(key)
        self._dirty_object_keys.discard(key)

        had_data = key in self._data
        if had_data:
            del self._data[key]
            self._dirty = True

        if self.backend is not None and (had_key or had_cache):
            self._pending_deletes.add(key)

        return had_cache or had_key or had_data
