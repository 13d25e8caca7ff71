"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Type inference for observed request and response values.

Wire payloads are decoded once and every decoded value is tagged with a
JsonKind before a schema fragment is built from it, so the rules below never
have to guess between arrays, objects and primitives.
"""

import json
import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional, Tuple
from urllib.parse import parse_qs

from specwatch.core.logging import get_logger
from specwatch.domain.models import SchemaFragment

logger = get_logger("specwatch.inference")

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_NUMBER_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")

JSON_MEDIA_TYPES = ("application/json",)
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"


class JsonKind(str, Enum):
    """Tag for a decoded wire value."""

    NULL = "null"
    BOOL = "boolean"
    INT = "integer"
    FLOAT = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    OTHER = "other"


def classify(value: Any) -> JsonKind:
    """Tag a decoded value with its JSON kind."""
    if value is None:
        return JsonKind.NULL
    # bool is a subclass of int and has to be checked first
    if isinstance(value, bool):
        return JsonKind.BOOL
    if isinstance(value, int):
        return JsonKind.INT
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return JsonKind.INT
        return JsonKind.FLOAT
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, Mapping):
        return JsonKind.OBJECT
    if isinstance(value, (list, tuple)):
        return JsonKind.ARRAY
    return JsonKind.OTHER


def infer(value: Any) -> Optional[SchemaFragment]:
    """
    Build a schema fragment describing an observed value.

    Args:
        value: A decoded JSON value (or any Python value)

    Returns:
        The schema fragment, or None for null values which callers omit
    """
    kind = classify(value)

    if kind is JsonKind.NULL:
        return None
    if kind is JsonKind.BOOL:
        return {"type": "boolean", "example": value}
    if kind is JsonKind.INT:
        return {"type": "integer", "example": int(value)}
    if kind is JsonKind.FLOAT:
        # NaN and Infinity have no JSON form, so they get no example
        if not math.isfinite(value):
            return {"type": "number"}
        return {"type": "number", "example": value}
    if kind is JsonKind.STRING:
        return {"type": "string", "example": value}
    if kind is JsonKind.OBJECT:
        properties = {}
        for key, item in value.items():
            fragment = infer(item)
            if fragment is not None:
                properties[str(key)] = fragment
        return {"type": "object", "properties": properties}
    if kind is JsonKind.ARRAY:
        return {"type": "array", "items": _infer_items(value)}

    return {"type": "string", "example": _textual(value)}


def _infer_items(values) -> SchemaFragment:
    for element in values:
        fragment = infer(element)
        if fragment is not None:
            return fragment
    return {}


def _textual(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    try:
        return str(value)
    except Exception:
        return repr(value)


def coerce_scalar(text: Any) -> Any:
    """
    Turn a textual path, query or header value into its most specific scalar.

    "1" becomes 1, "1.5" becomes 1.5, "true"/"false" become booleans; any
    other text is returned unchanged.
    """
    if not isinstance(text, str):
        return text
    candidate = text.strip()
    if _INTEGER_RE.match(candidate):
        return int(candidate)
    if _NUMBER_RE.match(candidate):
        number = float(candidate)
        if math.isfinite(number):
            return number
    if candidate in ("true", "false"):
        return candidate == "true"
    return text


def is_json_media_type(media_type: Optional[str]) -> bool:
    if not media_type:
        return False
    return media_type in JSON_MEDIA_TYPES or media_type.endswith("+json")


def parse_body(raw: Optional[bytes], media_type: Optional[str]) -> Tuple[bool, Any]:
    """
    Decode a captured body according to its declared media type.

    Args:
        raw: The captured body bytes, or None when nothing was captured
        media_type: Base media type from the Content-Type header

    Returns:
        (present, value); present is False for absent bodies and for JSON
        bodies that fail to decode
    """
    if not raw:
        return False, None

    if is_json_media_type(media_type):
        try:
            return True, json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping schema for malformed JSON body: {e}")
            return False, None

    text = raw.decode("utf-8", errors="replace")
    if media_type == FORM_MEDIA_TYPE:
        fields = parse_qs(text, keep_blank_values=True)
        return True, {key: coerce_scalar(values[0]) for key, values in fields.items()}

    return True, text
