"""Flatten nested objects into dotted field paths."""

from __future__ import annotations

from typing import Any


def flatten_keys(value: Any, prefix: str = "") -> list[str]:
    """Return every dotted key path in ``value``, parents before children.

    Only dicts are descended into. Arrays (and array elements) are leaves,
    so ``{"items": [{"sku": 1}]}`` yields just ``["items"]``.
    """
    if not isinstance(value, dict):
        return []

    keys: list[str] = []
    for key, child in value.items():
        current = f"{prefix}.{key}" if prefix else str(key)
        keys.append(current)
        if isinstance(child, dict):
            keys.extend(flatten_keys(child, current))
    return keys
