"""
unicache: an embeddable key-value cache with dot-path access.

Quick Start:
    from unicache import UniCache

    cache = UniCache("app", cache_type="file", save_path="./data")
    await cache.init()

    await cache.set("user.name", "Ada")
    await cache.push("user.tags", "admin")
    await cache.create_object("report-1", {"rows": []})
    await cache.sync()

    await cache.close()

Backends:
    - memory   Everything stays in process memory (default)
    - file     One JSON document for aggregate keys, one per object key
"""

from unicache.backends import (
    CacheBackend,
    FileBackend,
    available_backends,
    create_backend,
    register_backend,
    unregister_backend,
)
from unicache.cache import UniCache
from unicache.config import CacheOptions, Settings, clear_settings_cache, get_settings
from unicache.exceptions import ConfigurationError, InvalidKeyError, UniCacheError
from unicache.scheduler import SyncScheduler
from unicache.types import MISSING

__all__ = [
    # Main API
    "UniCache",
    "MISSING",
    # Backends
    "CacheBackend",
    "FileBackend",
    "available_backends",
    "create_backend",
    "register_backend",
    "unregister_backend",
    # Scheduling
    "SyncScheduler",
    # Configuration
    "CacheOptions",
    "Settings",
    "clear_settings_cache",
    "get_settings",
    # Exceptions
    "UniCacheError",
    "ConfigurationError",
    "InvalidKeyError",
]
