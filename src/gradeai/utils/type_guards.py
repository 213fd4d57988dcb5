"""
Type guard functions for runtime type checking.

Provider responses are untyped JSON; these helpers coerce individual
fields so adapters never trip over a wrong type.
"""

import math
from typing import Any


def has_any_key(data: Any, keys: list[str]) -> bool:
    """True if data is a dict with a truthy value under any of keys."""
    return isinstance(data, dict) and any(data.get(k) for k in keys)


def ensure_dict(data: Any, default: dict | None = None) -> dict[str, Any]:
    """
    Ensure data is a dict, returning default if not.

    Args:
        data: Value to check
        default: Default dict to return (default: empty dict)

    Returns:
        data if it's a dict, otherwise default or empty dict
    """
    if isinstance(data, dict):
        return data
    return default if default is not None else {}


def ensure_list(data: Any, default: list | None = None) -> list[Any]:
    """
    Ensure data is a list, returning default if not.

    Args:
        data: Value to check
        default: Default list to return (default: empty list)

    Returns:
        data if it's a list, otherwise default or empty list
    """
    if isinstance(data, list):
        return data
    return default if default is not None else []


def ensure_str(data: Any, default: str = "") -> str:
    """
    Ensure data is a string.

    Numbers are stringified (grades often arrive as 2 instead of "2").
    """
    if isinstance(data, str):
        return data
    if isinstance(data, bool) or data is None:
        return default
    if isinstance(data, (int, float)):
        return str(data)
    return default


def ensure_optional_str(data: Any) -> str | None:
    """Non-empty string or None."""
    value = ensure_str(data).strip()
    return value or None


def ensure_float(data: Any, default: float = 0.0) -> float:
    """
    Ensure data is a finite float, returning default if not.

    Args:
        data: Value to check
        default: Default float to return

    Returns:
        data converted to float if possible, otherwise default
    """
    if isinstance(data, bool):
        return default
    try:
        value = float(data)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def ensure_int(data: Any, default: int = 0) -> int:
    """Ensure data is an int (floats are truncated)."""
    value = ensure_float(data, float(default))
    return int(value)


def ensure_str_list(data: Any) -> list[str]:
    """List of non-empty strings; anything else is dropped."""
    return [s for s in (ensure_str(item).strip() for item in ensure_list(data)) if s]
