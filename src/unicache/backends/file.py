"""
JSON file backend.

Layout inside ``save_path``:
- ``<cache_name><ext>``: the aggregate mapping
- ``<key><ext>`` (or ``key_file_builder(key)``): one document per object key

Documents are written to a temporary sibling and moved into place with
os.replace, so a crash never leaves a half-written file behind. Malformed
documents are logged and treated as empty/absent; other OS errors propagate.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import orjson

from unicache.backends.base import CacheBackend
from unicache.config import CacheOptions
from unicache.exceptions import InvalidKeyError
from unicache.logging import CacheLogger, get_logger
from unicache.types import MISSING, Value

logger = get_logger(__name__)

_SEPARATORS = ("/", "\\")


class FileBackend(CacheBackend):
    """Stores the aggregate mapping and object documents as JSON files."""

    name = "file"

    def __init__(
        self,
        cache_name: str,
        save_path: str | Path = "./data",
        file_extension: str = ".json",
        key_file_builder: Callable[[str], str] | None = None,
        filename_to_key: Callable[[str], str | None] | None = None,
        log: CacheLogger | None = None,
    ) -> None:
        """Initialize file backend.

        Args:
            cache_name: Name of the cache; also the aggregate file stem.
            save_path: Directory holding all documents of this cache.
            file_extension: Extension for every document.
            key_file_builder: Maps an object key to its file name.
            filename_to_key: Maps a file name back to an object key, or None
                for files that are not object documents.
            log: Logger bound to the owning cache.
        """
        self.cache_name = cache_name
        self.save_path = Path(save_path)
        self.file_extension = file_extension
        self.file_path = self.save_path / f"{cache_name}{file_extension}"
        self._key_file_builder = key_file_builder or self._default_key_file
        self._filename_to_key = filename_to_key or self._default_filename_to_key
        self.log = log or CacheLogger(logger, cache_name, prefix="[FileBackend]")

    @classmethod
    def from_options(cls, options: CacheOptions, log: CacheLogger) -> FileBackend:
        return cls(
            cache_name=options.cache_name,
            save_path=options.save_path,
            file_extension=options.file_extension,
            key_file_builder=options.key_file_builder,
            filename_to_key=options.filename_to_key,
            log=log.child(logger, "[FileBackend]"),
        )

    def _default_key_file(self, key: str) -> str:
        return f"{key}{self.file_extension}"

    def _default_filename_to_key(self, filename: str) -> str | None:
        if not filename.endswith(self.file_extension):
            return None
        key = filename[: -len(self.file_extension)]
        if not key or key == self.cache_name:
            return None
        return key

    def validate_key(self, key: Any) -> None:
        """Reject empty keys, path separators and the aggregate file name."""
        super().validate_key(key)
        if any(sep in key for sep in _SEPARATORS):
            raise InvalidKeyError(
                "Object keys must not contain path separators",
                context={"key": key, "backend": self.name},
            )
        if self._key_file_builder(key) == self.file_path.name:
            raise InvalidKeyError(
                "Object key maps onto the aggregate document",
                context={"key": key, "filename": self.file_path.name, "backend": self.name},
            )

    def _key_to_path(self, key: str) -> Path:
        self.validate_key(key)
        return self.save_path / self._key_file_builder(key)

    def _read_json(self, path: Path) -> Value:
        """Read a JSON document, returning MISSING if absent or malformed."""
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            self.log.verbose("Document not found", path=str(path))
            return MISSING

        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            self.log.warning(
                f"Failed to parse JSON from {path}: {e}. Treating as empty.",
                path=str(path),
            )
            return MISSING

    def _write_json(self, path: Path, value: Value) -> None:
        """Atomically replace ``path`` with the JSON encoding of ``value``."""
        payload = orjson.dumps(value, option=orjson.OPT_INDENT_2)
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, path)
        except OSError as e:
            self.log.error(f"Error writing {path}: {e}", path=str(path))
            tmp_path.unlink(missing_ok=True)
            raise

    def _load_aggregate(self) -> dict[str, Value]:
        data = self._read_json(self.file_path)
        if data is MISSING:
            return {}
        if not isinstance(data, dict):
            self.log.warning(
                f"Aggregate document {self.file_path} is not a mapping. Treating as empty.",
                path=str(self.file_path),
            )
            return {}
        return data

    async def connect(self) -> None:
        """Create the storage directory if needed."""
        self.save_path.mkdir(parents=True, exist_ok=True)
        self.log.verbose(f"Initialized for {self.cache_name} at {self.file_path}")

    async def fetch(self) -> dict[str, Value]:
        """Load the aggregate mapping."""
        return self._load_aggregate()

    async def save(self, data: dict[str, Value]) -> None:
        """Write the aggregate mapping."""
        self.save_path.mkdir(parents=True, exist_ok=True)
        self._write_json(self.file_path, data)
        self.log.verbose(f"Data saved to {self.file_path}")

    async def list_object_keys(self) -> set[str]:
        """List object keys from the files in ``save_path``."""
        keys: set[str] = set()
        try:
            entries = list(self.save_path.iterdir())
        except FileNotFoundError:
            await self.connect()
            return keys

        for entry in entries:
            if entry.name == self.file_path.name or not entry.is_file():
                continue
            key = self._filename_to_key(entry.name)
            if key:
                keys.add(key)
        return keys

    async def create_object(self, key: str, value: Value) -> None:
        """Write an object document and drop the same key from the aggregate."""
        path = self._key_to_path(key)
        self.save_path.mkdir(parents=True, exist_ok=True)

        aggregate = self._load_aggregate()
        if key in aggregate:
            del aggregate[key]
            self._write_json(self.file_path, aggregate)

        self._write_json(path, value)
        self.log.verbose(f"create_object wrote {path}", key=key)

    async def retrieve_object(self, key: str) -> Value:
        """Read an object document, or MISSING."""
        return self._read_json(self._key_to_path(key))

    async def delete_object(self, key: str) -> bool:
        """Unlink an object document."""
        path = self._key_to_path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            self.log.verbose(f"delete_object: key {key!r} not found", key=key)
            return False
        self.log.verbose(f"delete_object removed {path}", key=key)
        return True

    async def close(self) -> None:
        self.log.verbose(f"Close called for {self.cache_name}. No action needed.")
