"""Helpers for YAML-style configuration trees."""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Callable, TypeVar

T = TypeVar("T")


def time_string(now: datetime | None = None) -> str:
    """Local time as YYYY-MM-DD-HH-MM-SS."""
    if now is None:
        now = datetime.now()
    return now.strftime("%Y-%m-%d-%H-%M-%S")


def as_or(node: Any, convert: Callable[[Any], T], default: T) -> T:
    """Convert ``node``, falling back to ``default`` if it is missing or fails to convert."""
    if node is None:
        return default
    try:
        return convert(node)
    except (ValueError, TypeError, KeyError, IndexError):
        return default


def merge_yaml(base: Any, override: Any) -> Any:
    """Merge ``override`` into ``base`` and return the result.

    Mappings are merged key by key, modifying ``base`` in place; anything
    else in ``override`` replaces the value in ``base``.
    """
    if not isinstance(override, dict):
        return override
    if not isinstance(base, dict):
        return copy.deepcopy(override)
    for key, value in override.items():
        if key in base:
            base[key] = merge_yaml(base[key], value)
        else:
            base[key] = value
    return base