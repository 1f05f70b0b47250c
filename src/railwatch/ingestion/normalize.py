"""Normalization helpers.

Centralizes defensive parsing of feed values.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, str):
        value = value.strip()
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def is_meaningful(value: Any) -> bool:
    """Return True if a feed value carries information."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() not in {"", "--", "NaN", "nan"}
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


def prune_record(record: dict[str, Any]) -> dict[str, Any]:
    """Drop placeholder values so model defaults apply instead."""
    return {key: value for key, value in record.items() if is_meaningful(value)}


def valid_coordinates(latitude: float | None, longitude: float | None) -> bool:
    if latitude is None or longitude is None:
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0
