"""
Core types for the cache.

Defines the shape of stored values, the accepted path inputs, and the
``MISSING`` sentinel used wherever "absent" must be told apart from a
stored ``None``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Final, TypeAlias

if TYPE_CHECKING:
    # Recursive JSON-compatible value
    Value: TypeAlias = (
        "None | bool | int | float | str | list[Value] | dict[str, Value]"
    )
else:
    Value: TypeAlias = Any

# Either "a.b.c" or an already segmented ["a", "b", "c"]
PathInput: TypeAlias = "str | Sequence[str]"


class _Missing:
    """Sentinel type for values that are not present."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Missing:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Missing:
        return self

    def __reduce__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()
