from __future__ import annotations
import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ConfigurationError


@dataclass
class DbOptions:
    auto_save: bool = True
    create_if_not_exists: bool = True
    default_value: Optional[Dict[str, Any]] = None
    enable_indexing: bool = True
    auto_index: bool = True

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "DbOptions":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigurationError(f"unknown database options: {', '.join(unknown)}")
        return cls(**dict(mapping))

    @classmethod
    def coerce(
        cls,
        options: Union["DbOptions", Mapping[str, Any], None],
        **overrides: Any,
    ) -> "DbOptions":
        if options is None:
            base = cls()
        elif isinstance(options, DbOptions):
            base = dataclasses.replace(options)
        elif isinstance(options, Mapping):
            base = cls.from_mapping(options)
        else:
            raise ConfigurationError(f"options must be DbOptions or a mapping, got {type(options).__name__}")
        if overrides:
            merged = dataclasses.asdict(base)
            merged.update(overrides)
            base = cls.from_mapping(merged)
        if base.default_value is not None and not isinstance(base.default_value, dict):
            raise ConfigurationError("default_value must be a dict")
        return base
