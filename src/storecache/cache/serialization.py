"""Payload codec for the distributed cache tier.

Values are stored as JSON text. Pydantic models are dumped in JSON mode;
on the way back a ``value_type`` (a model, ``list[Store]``, ...) rebuilds
the typed value through a pydantic ``TypeAdapter``. Without a ``value_type``
plain JSON shapes (strings, numbers, nested dicts and lists) come back as-is.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from storecache.errors import SerializationError


def _default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


@lru_cache(maxsize=128)
def _adapter(value_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(value_type)


def encode(key: str, value: Any) -> bytes:
    """Serialize a value to JSON bytes."""
    try:
        return orjson.dumps(value, default=_default)
    except TypeError as e:
        raise SerializationError(key, str(e)) from e


def decode(key: str, payload: bytes | str, value_type: Any = None) -> Any:
    """Deserialize JSON bytes, optionally validating into ``value_type``."""
    if not payload:
        raise SerializationError(key, "empty payload")
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise SerializationError(key, f"invalid JSON: {e}") from e

    if value_type is None:
        return data

    try:
        return _adapter(value_type).validate_python(data)
    except ValidationError as e:
        raise SerializationError(key, f"does not match {value_type!r}: {e}") from e
