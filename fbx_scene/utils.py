"""Shared helper utilities."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Iterable, Optional, Tuple, Type, TypeVar

Vector3 = Tuple[float, float, float]
E = TypeVar("E", bound=Enum)

_RESERVED_RE = re.compile(r"[\[\]\.:/]")
_WHITESPACE_RE = re.compile(r"\s")


def resolve_enum_value(enum_holder: Type[E], target: Any, default: Optional[E] = None) -> E:
    """Return the member of ``enum_holder`` matching ``target``.

    FBX stores the same switch either as an integer (``LightType: 2``) or as a
    free-form string (``ShadingModel: "Phong"``), so the lookup accepts member
    values as well as case-insensitive member names or string values.  When
    nothing matches, ``default`` is returned if given.
    """

    if isinstance(target, enum_holder):
        return target

    if not isinstance(target, bool):
        for member in enum_holder:
            if member.value == target:
                return member

    if isinstance(target, str):
        lowered = target.lower()
        for member in enum_holder:
            if member.name.lower() == lowered:
                return member
            if isinstance(member.value, str) and member.value.lower() == lowered:
                return member

    if default is not None:
        return default
    raise ValueError(f"Unable to resolve enum value {target!r} from {enum_holder.__name__}")


def double3_to_tuple(vector: Iterable[Any]) -> Vector3:
    """Convert a three component property value into a plain float tuple."""

    values = list(vector)
    if len(values) != 3:
        raise ValueError("Expected a 3 component vector.")
    return (float(values[0]), float(values[1]), float(values[2]))


def sanitize_node_name(name: str) -> str:
    """Make ``name`` safe for use inside a property binding path.

    Whitespace becomes ``_``; the path separators ``[ ] . : /`` are removed.
    """

    return _RESERVED_RE.sub("", _WHITESPACE_RE.sub("_", name))
