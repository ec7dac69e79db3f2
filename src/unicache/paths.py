"""
Dot-path helpers for nested mappings.

Pure functions with no I/O and no state. Paths are either dot-separated
strings ("profile.address.city") or sequences of segments. The empty path
addresses nothing: reads return MISSING, writes do nothing and deletes
report False.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

from unicache.types import MISSING, PathInput, Value


def as_path(path: PathInput | Any) -> list[str]:
    """Normalize a path input into a list of non-empty segments."""
    if isinstance(path, str):
        return [part for part in path.split(".") if part]
    if isinstance(path, (list, tuple)):
        return [str(part) for part in path if str(part)]
    return []


def get_path(container: Any, path: PathInput) -> Value:
    """Read the value at ``path`` inside ``container``.

    Returns:
        The stored value, or MISSING if any segment is absent or an
        intermediate value is not a mapping.
    """
    parts = as_path(path)
    if not parts:
        return MISSING

    current = container
    for part in parts:
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def set_path(container: MutableMapping[str, Any], path: PathInput, value: Value) -> None:
    """Assign ``value`` at ``path``, creating intermediate mappings.

    Intermediate values that are not mappings are replaced with empty ones.
    """
    parts = as_path(path)
    if not parts:
        return

    current = container
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, MutableMapping):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def delete_path(container: Any, path: PathInput) -> bool:
    """Remove the value at ``path`` and prune emptied parents.

    Ancestors left empty by the removal are deleted bottom-up, stopping at
    the first one that still holds other keys.

    Returns:
        True if the leaf existed and was removed.
    """
    parts = as_path(path)
    if not parts:
        return False

    trail: list[tuple[MutableMapping[str, Any], str]] = []
    current = container
    for part in parts[:-1]:
        if not isinstance(current, MutableMapping) or part not in current:
            return False
        trail.append((current, part))
        current = current[part]

    leaf = parts[-1]
    if not isinstance(current, MutableMapping) or leaf not in current:
        return False
    del current[leaf]

    for parent, segment in reversed(trail):
        candidate = parent[segment]
        if isinstance(candidate, Mapping) and not candidate:
            del parent[segment]
        else:
            break
    return True


def deep_copy(value: Value) -> Value:
    """Structurally copy a value so the result shares no mutable state.

    Mappings become dicts with string keys, lists and tuples become lists.
    Scalars (and any other object) are returned as-is.
    """
    if isinstance(value, Mapping):
        return {str(key): deep_copy(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [deep_copy(item) for item in value]
    return value
