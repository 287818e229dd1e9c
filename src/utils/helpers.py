"""
Common utility functions used across the strategy editor.

These helpers handle edge cases from persisted or hand-authored configs.
"""

from typing import Any


def safe_float(value: Any, default: float = 0.0) -> float:
    """
    Safely convert value to float, handling edge cases from stored configs.

    Persisted strategies sometimes carry:
    - Empty strings "" instead of 0 or null
    - String numbers "123.45" instead of 123.45
    - None for optional fields

    Args:
        value: Value to convert (str, int, float, None, etc.)
        default: Default value if conversion fails

    Returns:
        Float value or default

    Examples:
        >>> safe_float("123.45")
        123.45
        >>> safe_float("")
        0.0
        >>> safe_float(None)
        0.0
        >>> safe_float("invalid", default=-1.0)
        -1.0
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def safe_int(value: Any, default: int = 0) -> int:
    """
    Safely convert value to int.

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        Int value or default
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        return int(float(value))  # Handle "123.0" -> 123
    except (ValueError, TypeError, OverflowError):
        return default


_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


def safe_bool(value: Any, default: bool = False) -> bool:
    """
    Safely convert value to bool.

    Stored configs may carry "true"/"false" strings, which plain bool()
    would read as True either way.

    Args:
        value: Value to convert
        default: Default value if None, empty or unrecognized

    Returns:
        Bool value or default

    Examples:
        >>> safe_bool("false")
        False
        >>> safe_bool(" TRUE ")
        True
        >>> safe_bool("maybe", default=True)
        True
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return default


def safe_str(value: Any, default: str = "") -> str:
    """
    Safely convert value to string.

    Args:
        value: Value to convert
        default: Default value if None

    Returns:
        String value or default
    """
    if value is None:
        return default
    return str(value)


def format_number(value: float) -> str:
    """Render a number without a trailing ".0" for integral values."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def wire_number(value: float) -> int | float:
    """Return an int for integral numbers so JSON shows 14, not 14.0."""
    number = float(value)
    if number.is_integer():
        return int(number)
    return number
