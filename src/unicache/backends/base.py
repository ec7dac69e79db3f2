"""
Base class for cache backends.

A backend persists two things for one named cache:
- the aggregate mapping: every non-object top-level key, stored together
- object documents: one independently stored value per object key

The cache engine owns all in-memory state and decides when to call the
backend. Backends only translate those calls into storage I/O. Not-found is
never an error: fetch() returns an empty mapping and retrieve_object()
returns MISSING.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from unicache.exceptions import InvalidKeyError
from unicache.types import Value

if TYPE_CHECKING:
    from unicache.config import CacheOptions
    from unicache.logging import CacheLogger


class CacheBackend(ABC):
    """Abstract interface for cache storage backends."""

    name: str = "abstract"

    @classmethod
    @abstractmethod
    def from_options(cls, options: CacheOptions, log: CacheLogger) -> CacheBackend:
        """Construct the backend from validated cache options."""
        ...

    def validate_key(self, key: Any) -> None:
        """Reject object keys this backend cannot store.

        Raises:
            InvalidKeyError: If the key is not a non-empty string.
        """
        if not isinstance(key, str) or not key:
            raise InvalidKeyError(
                "Object operations require a non-empty string key",
                context={"key": key, "backend": self.name},
            )

    @abstractmethod
    async def connect(self) -> None:
        """Prepare storage. Safe to call more than once."""
        ...

    @abstractmethod
    async def fetch(self) -> dict[str, Value]:
        """Load the persisted aggregate mapping, or {} if there is none."""
        ...

    @abstractmethod
    async def save(self, data: dict[str, Value]) -> None:
        """Replace the persisted aggregate mapping with ``data``."""
        ...

    @abstractmethod
    async def list_object_keys(self) -> set[str]:
        """Enumerate keys that currently have an object document."""
        ...

    @abstractmethod
    async def create_object(self, key: str, value: Value) -> None:
        """Persist ``value`` as the object document for ``key``.

        Any aggregate entry with the same key must be removed.
        """
        ...

    @abstractmethod
    async def retrieve_object(self, key: str) -> Value:
        """Load the object document for ``key``, or MISSING."""
        ...

    @abstractmethod
    async def delete_object(self, key: str) -> bool:
        """Remove the object document for ``key``.

        Returns:
            True if a document existed.
        """
        ...

    async def close(self) -> None:
        """Release resources. Backends without any keep the default."""
        return None
