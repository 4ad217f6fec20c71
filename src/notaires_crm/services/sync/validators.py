"""Predicates gating decoded rows before they enter the in-memory store.

They accept domain dataclasses as well as plain mappings (raw API payloads)
and never raise: anything unexpected is simply not valid.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any


def _field(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_valid_record(value: Any) -> bool:
    if value is None or isinstance(value, (str, bytes)):
        return False
    return _non_empty_str(_field(value, "id")) and _non_empty_str(_field(value, "name"))


def is_valid_interest_zone(value: Any, *, strict: bool = False) -> bool:
    """Check a zone; ``strict`` adds the requirements used at load time."""

    if value is None or isinstance(value, (str, bytes)):
        return False
    if not (_non_empty_str(_field(value, "id")) and _non_empty_str(_field(value, "name"))):
        return False
    if not strict:
        return True
    radius = _field(value, "radius_km")
    return (
        _is_number(radius)
        and radius > 0
        and _is_number(_field(value, "latitude"))
        and _is_number(_field(value, "longitude"))
        and isinstance(_field(value, "region"), str)
    )
