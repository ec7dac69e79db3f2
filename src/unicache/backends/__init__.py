"""
Storage backends and the factory that selects one by name.

The ``memory`` backend name means "no backend": the cache keeps everything
in process memory and sync() has nothing to do. Unknown names fall back to
memory with a logged notice.
"""

from __future__ import annotations

from unicache.backends.base import CacheBackend
from unicache.backends.file import FileBackend
from unicache.config import CacheOptions
from unicache.logging import CacheLogger

MEMORY = "memory"

_BACKENDS: dict[str, type[CacheBackend]] = {
    FileBackend.name: FileBackend,
}


def register_backend(name: str, backend_cls: type[CacheBackend]) -> None:
    """Make ``backend_cls`` selectable through ``cache_type=name``.

    Raises:
        ValueError: If the name is empty or reserved for memory mode.
    """
    key = name.strip().lower()
    if not key or key == MEMORY:
        raise ValueError(f"Invalid backend name: {name!r}")
    _BACKENDS[key] = backend_cls


def unregister_backend(name: str) -> None:
    """Remove a previously registered backend name."""
    _BACKENDS.pop(name.strip().lower(), None)


def available_backends() -> list[str]:
    """Return selectable backend names, memory included."""
    return [MEMORY, *sorted(_BACKENDS)]


def create_backend(options: CacheOptions, log: CacheLogger) -> CacheBackend | None:
    """Build the backend selected by ``options.cache_type``.

    Returns:
        A backend instance, or None for memory mode.
    """
    if options.cache_type == MEMORY:
        log.verbose(f'Cache "{options.cache_name}" running in memory mode.')
        return None

    backend_cls = _BACKENDS.get(options.cache_type)
    if backend_cls is None:
        log.warning(
            f'Unknown cacheType "{options.cache_type}". Falling back to memory mode.',
            cache_type=options.cache_type,
        )
        return None

    return backend_cls.from_options(options, log)


__all__ = [
    "CacheBackend",
    "FileBackend",
    "MEMORY",
    "available_backends",
    "create_backend",
    "register_backend",
    "unregister_backend",
]
