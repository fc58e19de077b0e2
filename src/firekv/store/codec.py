"""
Conversion between native Python values and Firestore typed fields.

Firestore stores every field as a single-key object naming its type, e.g.
``{"stringValue": "x"}`` or ``{"mapValue": {"fields": {...}}}``. This module
models that shape as a small tagged union of frozen dataclasses and provides
two total conversions on each side of it:

    native  --to_typed-->  TypedValue  --to_wire-->    JSON
    native  <-from_typed-  TypedValue  <-from_wire--   JSON

``encode`` and ``decode`` are the document-level entry points used by the
store. Floats with an integral value are written as ``integerValue`` and so
come back as ``int``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from firekv.exceptions import CodecError


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()
"""Marker for a field that should not be written at all."""


@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class IntegerValue:
    value: int


@dataclass(frozen=True)
class DoubleValue:
    value: float


@dataclass(frozen=True)
class BooleanValue:
    value: bool


@dataclass(frozen=True)
class NullValue:
    pass


@dataclass(frozen=True)
class ArrayValue:
    values: tuple["TypedValue", ...]


@dataclass(frozen=True)
class MapValue:
    fields: tuple[tuple[str, "TypedValue"], ...]


TypedValue = Union[StringValue, IntegerValue, DoubleValue, BooleanValue, NullValue, ArrayValue, MapValue]


# --------------------------------------------------------------------------- #
# native <-> TypedValue
# --------------------------------------------------------------------------- #


def to_typed(value: Any) -> TypedValue:
    # bool is an int subclass; check it first
    if isinstance(value, bool):
        return BooleanValue(value)
    if value is None:
        return NullValue()
    if isinstance(value, str):
        return StringValue(value)
    if isinstance(value, int):
        return IntegerValue(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return IntegerValue(int(value))
        return DoubleValue(value)
    if isinstance(value, Mapping):
        return MapValue(_typed_fields(value))
    if isinstance(value, (list, tuple)):
        return ArrayValue(tuple(to_typed(v) for v in value if v is not UNSET))
    raise CodecError(f"Cannot store value of type {type(value).__name__}")


def _typed_fields(mapping: Mapping[str, Any]) -> tuple[tuple[str, TypedValue], ...]:
    out = []
    for key, value in mapping.items():
        if value is UNSET:
            continue
        if not isinstance(key, str):
            raise CodecError(f"Field names must be strings, got {type(key).__name__}")
        out.append((key, to_typed(value)))
    return tuple(out)


def from_typed(tv: TypedValue) -> Any:
    if isinstance(tv, (StringValue, IntegerValue, DoubleValue, BooleanValue)):
        return tv.value
    if isinstance(tv, NullValue):
        return None
    if isinstance(tv, ArrayValue):
        return [from_typed(v) for v in tv.values]
    if isinstance(tv, MapValue):
        return {k: from_typed(v) for k, v in tv.fields}
    raise CodecError(f"Unknown typed value {tv!r}")


# --------------------------------------------------------------------------- #
# TypedValue <-> wire JSON
# --------------------------------------------------------------------------- #


def to_wire(tv: TypedValue) -> dict[str, Any]:
    if isinstance(tv, StringValue):
        return {"stringValue": tv.value}
    if isinstance(tv, IntegerValue):
        return {"integerValue": str(tv.value)}
    if isinstance(tv, DoubleValue):
        return {"doubleValue": tv.value}
    if isinstance(tv, BooleanValue):
        return {"booleanValue": tv.value}
    if isinstance(tv, NullValue):
        return {"nullValue": None}
    if isinstance(tv, ArrayValue):
        return {"arrayValue": {"values": [to_wire(v) for v in tv.values]}}
    if isinstance(tv, MapValue):
        return {"mapValue": {"fields": {k: to_wire(v) for k, v in tv.fields}}}
    raise CodecError(f"Unknown typed value {tv!r}")


def from_wire(raw: Mapping[str, Any]) -> Optional[TypedValue]:
    """Parse one wire field. Returns None for tags this codec does not know."""
    if "stringValue" in raw:
        return StringValue(raw["stringValue"])
    if "integerValue" in raw:
        return IntegerValue(int(raw["integerValue"]))
    if "doubleValue" in raw:
        return DoubleValue(float(raw["doubleValue"]))
    if "booleanValue" in raw:
        return BooleanValue(bool(raw["booleanValue"]))
    if "nullValue" in raw:
        return NullValue()
    if "arrayValue" in raw:
        # Firestore omits "values" for an empty array
        items = (raw["arrayValue"] or {}).get("values") or []
        parsed = (from_wire(v) for v in items)
        return ArrayValue(tuple(v for v in parsed if v is not None))
    if "mapValue" in raw:
        return MapValue(_wire_fields((raw["mapValue"] or {}).get("fields") or {}))
    return None


def _wire_fields(fields: Mapping[str, Any]) -> tuple[tuple[str, TypedValue], ...]:
    out = []
    for key, raw in fields.items():
        tv = from_wire(raw) if isinstance(raw, Mapping) else None
        if tv is not None:
            out.append((key, tv))
    return tuple(out)


# --------------------------------------------------------------------------- #
# Document-level helpers
# --------------------------------------------------------------------------- #


_SCALAR_TAGS = frozenset({"stringValue", "integerValue", "doubleValue", "booleanValue", "nullValue"})


def _is_typed_field(raw: Mapping[str, Any]) -> bool:
    if len(raw) != 1:
        return False
    tag, inner = next(iter(raw.items()))
    if tag in _SCALAR_TAGS:
        return not isinstance(inner, Mapping)
    if tag == "arrayValue":
        return isinstance(inner, Mapping) and set(inner) <= {"values"}
    if tag == "mapValue":
        return isinstance(inner, Mapping) and set(inner) <= {"fields"}
    return False


def _is_document(raw: Mapping[str, Any]) -> bool:
    # A bare fields object may itself carry a user key named "fields".
    inner = raw.get("fields")
    if not isinstance(inner, Mapping):
        return False
    if isinstance(raw.get("name"), str):
        return True
    return all(isinstance(v, Mapping) and _is_typed_field(v) for v in inner.values())


def encode(data: Mapping[str, Any]) -> dict[str, Any]:
    """Encode a mapping into a Firestore ``fields`` object."""
    if not isinstance(data, Mapping):
        raise CodecError(f"Documents must be mappings, got {type(data).__name__}")
    return {k: to_wire(v) for k, v in _typed_fields(data)}


def decode(raw: Any) -> Any:
    """Decode a Firestore document, a ``fields`` object or a single typed field.

    Empty input, and a document without any decodable field, decode to None:
    callers read None as "this key does not exist".
    """
    if not raw or not isinstance(raw, Mapping):
        return None

    if _is_document(raw):
        fields_raw = raw["fields"]
    elif _is_typed_field(raw):
        tv = from_wire(raw)
        return from_typed(tv) if tv is not None else None
    elif isinstance(raw.get("name"), str):
        # a document without fields
        return None
    else:
        fields_raw = raw

    fields = _wire_fields(fields_raw)
    if not fields:
        return None
    return {k: from_typed(v) for k, v in fields}


__all__ = [
    "UNSET",
    "TypedValue",
    "StringValue",
    "IntegerValue",
    "DoubleValue",
    "BooleanValue",
    "NullValue",
    "ArrayValue",
    "MapValue",
    "to_typed",
    "from_typed",
    "to_wire",
    "from_wire",
    "encode",
    "decode",
]
