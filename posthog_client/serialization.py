"""Conversion of caller supplied objects into JSON values.

Properties can be dicts, Pydantic models, dataclasses or anything else
pydantic-core knows how to serialize. ``json_default`` handles the remaining
custom types, the same way ``json.dumps(default=...)`` would.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional

from pydantic_core import to_jsonable_python

JsonDefault = Callable[[Any], Any]


def to_json_value(value: Any, json_default: Optional[JsonDefault] = None) -> Any:
    return to_jsonable_python(value, fallback=json_default)


def to_json_object(value: Any, json_default: Optional[JsonDefault] = None, *, what: str = "Properties") -> Dict[str, Any]:
    """Serialize ``value`` and require the result to be a JSON object.

    Raises:
        ValueError: If the value serializes to anything but an object (a list, a
            string, a number...), or cannot be serialized at all.
    """
    try:
        result = to_json_value(value, json_default)
    except Exception as e:
        raise ValueError(f"{what} could not be serialized to JSON: {e}") from e
    if not isinstance(result, dict):
        raise ValueError(f"{what} must be a JSON object")
    return result


def encode_payload(value: Any) -> Optional[str]:
    """Feature flag payloads are exposed as JSON text; strings pass through untouched."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))
