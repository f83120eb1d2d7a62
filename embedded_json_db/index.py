from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .errors import ConfigurationError
from .paths import MISSING, normalize_path, resolve
from .progress import Progress
from .utils import index_key

logger = logging.getLogger(__name__)


class IndexKind(str, Enum):
    UNIQUE = "unique"
    MULTI = "multi"

    @classmethod
    def coerce(cls, kind: Union["IndexKind", str]) -> "IndexKind":
        if isinstance(kind, IndexKind):
            return kind
        try:
            return cls(str(kind).lower())
        except ValueError:
            raise ConfigurationError(f"unknown index kind: {kind!r} (expected 'unique' or 'multi')") from None


@dataclass(frozen=True)
class IndexDefinition:
    path: str
    field: str
    kind: IndexKind = IndexKind.MULTI

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", normalize_path(self.path))
        object.__setattr__(self, "kind", IndexKind.coerce(self.kind))
        if not isinstance(self.field, str) or not self.field:
            raise ConfigurationError("index field must be a non-empty string")


# unique: key -> position; multi: key -> positions in array order
IndexEntry = Dict[str, Union[int, List[int]]]


class InMemoryIndex:
    """
    Derived (path, field) -> {index_key(value): position(s)} mappings.

    Entries are never patched: every build replaces the entry wholesale from a
    scan of the collection. An entry exists only while its definition does.
    """
    def __init__(self, progress: Optional[Progress] = None) -> None:
        self._defs: Dict[str, Dict[str, IndexDefinition]] = {}
        self._entries: Dict[Tuple[str, str], IndexEntry] = {}
        self._progress = progress or Progress()

    # ----- Definitions -----

    def define(self, definition: IndexDefinition) -> None:
        self._defs.setdefault(definition.path, {})[definition.field] = definition

    def drop(self, path: str, field: str) -> bool:
        path = normalize_path(path)
        fields = self._defs.get(path)
        if not fields or field not in fields:
            return False
        del fields[field]
        if not fields:
            del self._defs[path]
        self._entries.pop((path, field), None)
        logger.debug("dropped index %s:%s", path, field)
        return True

    def has_definitions(self, path: str) -> bool:
        return bool(self._defs.get(normalize_path(path)))

    def has_field(self, path: str, field: str) -> bool:
        return field in self._defs.get(normalize_path(path), {})

    def definitions(self) -> Dict[str, Dict[str, IndexDefinition]]:
        # IndexDefinition is frozen; fresh dicts are enough for independence
        return {path: dict(fields) for path, fields in self._defs.items()}

    def definitions_for(self, path: str) -> List[IndexDefinition]:
        return list(self._defs.get(normalize_path(path), {}).values())

    def kind_of(self, path: str, field: str) -> Optional[IndexKind]:
        definition = self._defs.get(normalize_path(path), {}).get(field)
        return definition.kind if definition is not None else None

    # ----- Builds -----

    def build(self, definition: IndexDefinition, collection: Any) -> None:
        entry: IndexEntry = {}
        if isinstance(collection, list):
            tracker = self._progress.track("index.build", len(collection), f"{definition.path}:{definition.field}")
            unique = definition.kind is IndexKind.UNIQUE
            for pos, item in enumerate(collection):
                tracker.advance(pos)
                if not isinstance(item, dict):
                    continue
                value = resolve(item, definition.field)
                if value is MISSING or value is None:
                    continue
                key = index_key(value)
                if unique:
                    entry[key] = pos
                else:
                    entry.setdefault(key, []).append(pos)
            tracker.finish()
        self._entries[(definition.path, definition.field)] = entry
        logger.debug(
            "built %s index %s:%s (%d keys)",
            definition.kind.value, definition.path, definition.field, len(entry),
        )

    def rebuild(self, path: str, collection: Any) -> None:
        for definition in self.definitions_for(path):
            self.build(definition, collection)

    def rebuild_all(self, resolve_collection: Callable[[str], Any]) -> None:
        self._entries.clear()
        for path in list(self._defs):
            self.rebuild(path, resolve_collection(path))

    # ----- Lookups -----

    def position_of(self, path: str, field: str, value: Any) -> Optional[int]:
        """Single position; for multi indexes the first recorded one."""
        hit = self._entries.get((normalize_path(path), field), {}).get(index_key(value))
        if hit is None:
            return None
        if isinstance(hit, int):
            return hit
        return hit[0] if hit else None

    def positions_of(self, path: str, field: str, value: Any) -> List[int]:
        hit = self._entries.get((normalize_path(path), field), {}).get(index_key(value))
        if hit is None:
            return []
        if isinstance(hit, int):
            return [hit]
        return list(hit)

    def lookup(self, path: str) -> Callable[[str, Any], Optional[List[int]]]:
        """Field lookup bound to one path; None means the field is not indexed."""
        path = normalize_path(path)

        def _lookup(field: str, value: Any) -> Optional[List[int]]:
            if not self.has_field(path, field):
                return None
            return self.positions_of(path, field, value)

        return _lookup
