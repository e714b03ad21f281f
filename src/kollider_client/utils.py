"""
Utility functions for Kollider client.

Helpers for coercing the exchange's loosely typed JSON values.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Union


def to_float(value: Any) -> float:
    """Coerce a number or numeric string to float."""
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got boolean {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise ValueError(f"Expected a numeric string, got {value!r}") from None
    raise ValueError(f"Expected a number, got {type(value).__name__}")


def to_int(value: Any) -> int:
    """Coerce an integer or integral numeric string to int."""
    if isinstance(value, bool):
        raise ValueError(f"Expected an integer, got boolean {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Expected an integer, got {value!r}")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            number = to_float(text)
            if not number.is_integer():
                raise ValueError(f"Expected an integral string, got {value!r}") from None
            return int(number)
    raise ValueError(f"Expected an integer, got {type(value).__name__}")


def to_bool(value: Any) -> bool:
    """Accept a JSON boolean or the exact strings "true"/"false"."""
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    raise ValueError(f"Expected a boolean, got {value!r}")


def optional(converter, value: Any) -> Any:
    """Apply converter unless value is None."""
    if value is None:
        return None
    return converter(value)


def float_map(data: Dict[str, Any]) -> Dict[str, float]:
    """Unwrap a mapping of numeric-from-string values into plain floats."""
    if not isinstance(data, dict):
        raise ValueError(f"Expected an object, got {type(data).__name__}")
    return {key: to_float(value) for key, value in data.items()}


def int_map(data: Dict[str, Any]) -> Dict[str, int]:
    """Unwrap a mapping of integer values."""
    if not isinstance(data, dict):
        raise ValueError(f"Expected an object, got {type(data).__name__}")
    return {key: to_int(value) for key, value in data.items()}


def price_levels(data: Dict[str, Any]) -> Dict[int, int]:
    """Convert an order book side keyed by stringified price into int -> int."""
    if not isinstance(data, dict):
        raise ValueError(f"Expected an object, got {type(data).__name__}")
    return {to_int(price): to_int(quantity) for price, quantity in data.items()}


def sanitize_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Remove None values and empty strings from dictionary."""
    return {
        key: value for key, value in data.items()
        if value is not None and value != ""
    }


def to_unix_seconds(moment: Union[datetime, int, float]) -> int:
    """Convert a datetime or epoch value into whole Unix seconds."""
    if isinstance(moment, datetime):
        return int(moment.timestamp())
    return int(moment)


def validate_url(url: str, schemes: tuple = ("http://", "https://")) -> bool:
    """Validate URL format."""
    if not url or not isinstance(url, str):
        return False
    return url.startswith(schemes) and "." in url


def validate_symbol(symbol: str) -> bool:
    """Validate symbol format, e.g. "BTCUSD.PERP" or ".BTCUSD"."""
    if not symbol or not isinstance(symbol, str):
        return False
    return len(symbol) <= 32 and symbol.replace(".", "").replace("-", "").replace("_", "").isalnum()


def first_present(data: Dict[str, Any], *keys: str) -> Optional[Any]:
    """Return the value of the first key present in data."""
    for key in keys:
        if key in data:
            return data[key]
    return None
