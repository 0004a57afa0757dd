"""
Typed value coercion for raw cell text.

Cells arrive as text; placeholders are substituted with typed values so that
JSON payloads carry real numbers, booleans and nulls.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

# Decimal numbers only: no hex, no inf/nan, no bare whitespace
NUMBER_PATTERN = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')


def is_numeric_text(text: str) -> bool:
    """Check whether text is fully parseable as a decimal number."""
    return bool(NUMBER_PATTERN.match(text.strip()))


def parse_number(text: str) -> Any:
    """
    Parse numeric text into int or float.

    Text without a fraction or exponent becomes an int ("007" -> 7).
    """
    text = text.strip()
    if re.search(r'[.eE]', text):
        return float(text)
    return int(text)


def coerce_value(value: Any) -> Any:
    """
    Coerce a raw value into a typed value.

    - "" or "null" -> None
    - "true"/"false" -> bool
    - numeric text -> int or float
    - any other string -> unchanged
    - non-string values -> unchanged, so coercion is idempotent

    Args:
        value: Raw cell text or an already typed value

    Returns:
        Typed value
    """
    if not isinstance(value, str):
        return value

    if value == '' or value == 'null':
        return None
    if value == 'true':
        return True
    if value == 'false':
        return False
    if is_numeric_text(value):
        return parse_number(value)
    return value


def coerce_array_literal(value: Any, name: str = '') -> Any:
    """
    Parse an embedded array literal such as "1,2,3" or '["a","b"]'.

    Non-empty strings are wrapped in brackets when not already bracketed and
    parsed as JSON. Parse failures yield None with a warning.

    Args:
        value: Raw cell text or an already typed value
        name: Field name, for the warning message

    Returns:
        Parsed list, None on failure, or the regular coercion for
        empty and non-string values
    """
    if not isinstance(value, str) or value == '':
        return coerce_value(value)

    text = value.strip()
    if not (text.startswith('[') and text.endswith(']')):
        text = f"[{text}]"

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Could not parse array field '{name}' value {value!r}: {e}. Using null")
        return None


def to_text(value: Any) -> str:
    """
    Convert a typed value to its string form for URLs and messages.

    Args:
        value: Value to convert

    Returns:
        String representation
    """
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    # Complex types get JSON representation
    return json.dumps(value)
