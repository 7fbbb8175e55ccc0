"""Payload coercion helpers shared by the backend-facing dataclasses."""

from __future__ import annotations

from typing import Any, Dict, Optional

_TRUTHY = {"1", "true", "yes", "on", "y"}


def pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First non-None value among ``keys`` (snake_case and camelCase aliases)."""
    for k in keys:
        v = data.get(k)
        if v is not None:
            return v
    return default


def to_int(v: Any, default: int = 0) -> int:
    if v is None or v == "":
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        try:
            return int(float(v))
        except (TypeError, ValueError):
            return default


def to_int_opt(v: Any) -> Optional[int]:
    if v is None or v == "":
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def to_float(v: Any, default: float = 0.0) -> float:
    if v is None or v == "":
        return default
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def to_bool(v: Any, default: bool = False) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in _TRUTHY


def to_str_opt(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None
