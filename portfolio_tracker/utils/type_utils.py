from datetime import date
from pathlib import Path
import types
from typing import Any, Union, get_args, get_origin

TRUE_STRINGS = ("true", "1", "yes", "on")
FALSE_STRINGS = ("false", "0", "no", "off")


def convert_type(value: Any, expected_type: type | types.UnionType) -> Any:
    """Convert a config or CLI value to the expected type with clear errors."""

    if value is None:
        return None

    origin = get_origin(expected_type)

    # Handle Union or `|` (e.g., int | None)
    if origin is Union or origin is types.UnionType:
        for subtype in get_args(expected_type):
            if subtype is type(None):
                continue
            try:
                return convert_type(value, subtype)
            except (TypeError, ValueError):
                continue
        raise ValueError(f"Cannot convert {value!r} to any of {get_args(expected_type)}")

    if expected_type is Path:
        return Path(value)

    if expected_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered: str = value.strip().lower()
            if lowered in TRUE_STRINGS:
                return True
            if lowered in FALSE_STRINGS:
                return False
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise ValueError(f"Cannot convert {value!r} to bool")

    # YAML parses ISO dates itself; CLI values arrive as strings
    if expected_type is date:
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value).strip())

    if isinstance(expected_type, type):
        try:
            return expected_type(value)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"Invalid value: expected {expected_type.__name__}, "
                f"got {value!r} ({type(value).__name__})"
            ) from e

    raise TypeError(f"Expected a callable type, got {expected_type!r}")
