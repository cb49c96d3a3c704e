# src/attractor/core/dag/attributes.py
"""Typed coercion of raw DOT attribute strings.

Each helper raises ValueError with a short description; the parser turns
that into a ParseError carrying the attribute name and line number.
"""

from __future__ import annotations

import re

_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h|d)?$")
_DURATION_UNITS: dict[str, float] = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}
_TRUE = frozenset({"true", "yes", "1", "on"})
_FALSE = frozenset({"false", "no", "0", "off", ""})


def parse_duration(value: str) -> float:
    """Parse ``250ms``, ``30s``, ``5m``, ``1h``, ``1d`` or bare seconds.

    Returns:
        Duration in seconds.
    """
    match = _DURATION_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"expected a duration like 30s, 5m or 250ms, got {value!r}")
    amount = float(match.group(1))
    unit = match.group(2) or "s"
    seconds = amount * _DURATION_UNITS[unit]
    if seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"expected true or false, got {value!r}")


def parse_int(value: str, *, minimum: int = 0) -> int:
    try:
        number = int(value.strip())
    except ValueError:
        raise ValueError(f"expected an integer, got {value!r}") from None
    if number < minimum:
        raise ValueError(f"must be >= {minimum}, got {number}")
    return number


def parse_list(value: str, *, separator: str = ",") -> tuple[str, ...]:
    """Split a delimited attribute, dropping blanks."""
    return tuple(item.strip() for item in value.split(separator) if item.strip())


def class_name_from_label(label: str) -> str:
    """Derive a stylesheet class name from a subgraph label."""
    lowered = label.strip().lower().replace(" ", "-")
    return re.sub(r"[^a-z0-9_-]", "", lowered)
