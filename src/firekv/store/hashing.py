from __future__ import annotations

import json
import math
from typing import Any, Mapping

import xxhash

HASH_SEED = 0xABCD


def hash_string(text: str) -> str:
    """64-bit XXH64 of ``text`` as lowercase hex (no padding)."""
    return format(xxhash.xxh64_intdigest(text.encode("utf-8"), seed=HASH_SEED), "x")


def _js_number(value: Any) -> Any:
    # JSON.stringify writes 2.0 as 2 and NaN/Infinity as null
    if isinstance(value, Mapping):
        return {k: _js_number(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_js_number(v) for v in value]
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return int(value)
    return value


def canonical_json(obj: Any) -> str:
    # Key order is kept as given: equal objects with different order hash differently.
    return json.dumps(_js_number(obj), separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def data_hash(obj: Any) -> str:
    return hash_string(canonical_json(obj))
