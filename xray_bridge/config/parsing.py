"""
Option Value Parsers.

Converts raw configuration values (mostly strings coming from environment
variables) into typed option values.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Callable, List, Mapping, Optional, TypeVar

T = TypeVar("T")

_TRUE_PATTERN = re.compile(r"^(?:y|yes|true|1|on)$", re.IGNORECASE)
_FALSE_PATTERN = re.compile(r"^(?:n|no|false|0|off)$", re.IGNORECASE)


def as_boolean(value: Any) -> bool:
    """
    Parse a boolean from a string such as "yes", "off", "1" or "TRUE".

    Raises:
        ValueError: If the value cannot be interpreted as a boolean.
    """
    if isinstance(value, bool):
        return value
    text = str(value).strip()
    if _TRUE_PATTERN.match(text):
        return True
    if _FALSE_PATTERN.match(text):
        return False
    raise ValueError(f"Failed to parse boolean value from string: {text}")


def as_string(value: Any) -> str:
    return str(value)


def as_float(value: Any) -> float:
    """
    Parse a finite number such as "12.5" or "30".

    Raises:
        ValueError: If the value is not a number or is infinite/NaN.
    """
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Expected a finite number, but got: {value!r}")
    return number


def as_array_of_strings(value: Any) -> List[str]:
    """
    Parse a non-empty list of strings.

    Strings are accepted as a JSON array (``'["a", "b"]'``) or as a comma
    separated list (``"a,b"``). Every element must be a primitive.

    Raises:
        ValueError: If the value is not a list of primitives or is empty.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except json.JSONDecodeError as e:
                raise ValueError(f"Failed to parse as array of strings: {text}") from e
        else:
            value = [part.strip() for part in text.split(",") if part.strip()]

    if not isinstance(value, (list, tuple)):
        raise ValueError(
            f"Failed to parse as array of strings: {value!r}\n"
            f"Expected an array of primitives, but got: {type(value).__name__}"
        )

    array: List[str] = []
    for index, element in enumerate(value):
        if isinstance(element, bool):
            array.append(str(element).lower())
        elif isinstance(element, (str, int, float)):
            array.append(str(element))
        else:
            raise ValueError(
                f"Failed to parse as array of strings: {value!r}\n"
                f"Expected a primitive element at index {index}, but got: {element!r}"
            )

    if not array:
        raise ValueError(
            f"Failed to parse as array of strings: {value!r}\n"
            f"Expected an array of primitives with at least one element"
        )
    return array


def parse(
    env: Mapping[str, Any],
    variable: str,
    parser: Callable[[Any], T],
) -> Optional[T]:
    """
    Parse an environment variable with the given parser.

    Returns:
        The parsed value, or None if the variable is not present.
    """
    if variable not in env:
        return None
    return parser(env[variable])
