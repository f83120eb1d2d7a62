from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Tuple, Union

from .errors import ConfigurationError


class OpKind(str, Enum):
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"
    PUSH = "push"
    CREATE_INDEX = "create_index"
    DROP_INDEX = "drop_index"


class WriteMode(Enum):
    """How a mutation reaches the backing file."""
    AUTO = "auto"          # flush right after the mutation
    DEFERRED = "deferred"  # leave it pending for an explicit save/flush


@dataclass(frozen=True)
class Operation:
    kind: OpKind
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, obj: Union["Operation", Mapping[str, Any], Tuple[Any, ...], list]) -> "Operation":
        """
        Accepts an Operation, {"method": "push", "args": [...], "kwargs": {...}}
        or ("push", path, value).
        """
        if isinstance(obj, Operation):
            return obj
        if isinstance(obj, Mapping):
            name = obj.get("method", obj.get("kind"))
            args = tuple(obj.get("args") or ())
            kwargs = dict(obj.get("kwargs") or {})
        elif isinstance(obj, (tuple, list)) and obj:
            name, args, kwargs = obj[0], tuple(obj[1:]), {}
        else:
            raise ConfigurationError(f"cannot parse batch operation: {obj!r}")
        return cls(_op_kind(name), args, kwargs)


def _op_kind(name: Any) -> OpKind:
    if isinstance(name, OpKind):
        return name
    try:
        return OpKind(str(name))
    except ValueError:
        # accept the camelCase spellings too
        camel = {"createIndex": OpKind.CREATE_INDEX, "dropIndex": OpKind.DROP_INDEX}
        if name in camel:
            return camel[name]
        allowed = ", ".join(k.value for k in OpKind)
        raise ConfigurationError(f"unsupported batch operation {name!r} (allowed: {allowed})") from None
