from __future__ import annotations
import copy
import json
import math
from typing import Any, Dict, Tuple

from .paths import MISSING


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def index_key(value: Any) -> str:
    """
    String form of a value as used for index keys and group keys.

    Numbers and numeric strings share a key (30 and "30"); this is relied upon
    by callers that look up numeric ids with string keys.
    """
    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return repr(value)
    if isinstance(value, str):
        return value
    return canonical_json(value)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equal(a: Any, b: Any) -> bool:
    """Equality without cross-type coercion (True != 1, "1" != 1)."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(strict_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(strict_equal(x, y) for x, y in zip(a, b))
    if type(a) is not type(b):
        return False
    return a == b


def typed_key(value: Any) -> Tuple[str, str]:
    """Hashable identity of a JSON value that keeps types apart."""
    if value is MISSING:
        return ("missing", "")
    if isinstance(value, bool):
        return ("bool", str(value))
    if is_number(value):
        return ("num", index_key(value))
    return (type(value).__name__, canonical_json(value))


def sort_key(value: Any) -> Tuple[int, Any]:
    """
    Total order over mixed JSON values: numbers < strings < containers,
    missing and None after everything else.
    """
    if value is MISSING or value is None:
        return (3, 0)
    if isinstance(value, bool):
        return (0, int(value))
    if is_number(value):
        if isinstance(value, float) and math.isnan(value):
            return (3, 0)
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, canonical_json(value))


def deep_merge(target: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in patch.items():
        if isinstance(v, dict) and isinstance(target.get(k), dict):
            deep_merge(target[k], v)
        else:
            target[k] = copy.deepcopy(v)
    return target
