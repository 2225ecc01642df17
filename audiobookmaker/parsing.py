"""Shared parsing helpers for config, CLI, and session payload normalization."""

from __future__ import annotations


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_speed(value: object, field_name: str = "speed") -> float:
    """Parse a speech speed multiplier from a number or numeric string.

    Raises:
        ValueError: If the value is not a positive finite number.
    """

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a positive number.")
    if isinstance(value, int | float):
        parsed = float(value)
    else:
        normalized = normalize_optional_string(value)
        if normalized is None:
            raise ValueError(f"`{field_name}` must be a positive number.")
        try:
            parsed = float(normalized)
        except ValueError as exc:
            raise ValueError(f"`{field_name}` must be a positive number.") from exc
    if not parsed > 0 or parsed == float("inf"):
        raise ValueError(f"`{field_name}` must be a positive number.")
    return parsed


def format_time_ago(seconds: float) -> str:
    """Render an elapsed duration as a compact relative label."""

    minutes = int(seconds // 60)
    hours = minutes // 60
    days = hours // 24
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    return f"{days}d ago"
