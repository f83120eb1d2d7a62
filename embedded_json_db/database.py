from __future__ import annotations
import copy
import logging
import os
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .batch import Operation, OpKind, WriteMode
from .errors import (
    ConfigurationError,
    NotFoundError,
    PreconditionError,
    TypeMismatchError,
)
from .index import IndexDefinition, IndexKind, InMemoryIndex
from .options import DbOptions
from .paths import MISSING, has_path, normalize_path, parse_path, resolve, set_path, unset_path
from .progress import Progress, ProgressCallback
from .query import (
    AggregationResult,
    IndexLookup,
    PageResult,
    QueryResult,
    Where,
    as_predicate,
    execute,
)
from .storage import FileStorage
from .utils import deep_merge, index_key, strict_equal, typed_key

logger = logging.getLogger(__name__)

_KEY_LIST_TYPES = (list, tuple, set, frozenset)


class Database:
    """
    File-backed JSON document with path-addressed access, secondary indexes
    over array collections and a query pipeline.

    Mutators return the database so calls can be chained:

        db.set("users", []).push("users", {"id": 1}).create_index("users", "id", "unique")

    get() hands out live nodes of the document; mutating them directly
    bypasses pending-change tracking and index maintenance.
    """
    def __init__(
        self,
        path: Union[str, "os.PathLike[str]"],
        options: Union[DbOptions, Mapping[str, Any], None] = None,
        *,
        indexes: Optional[Iterable[Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        **overrides: Any,
    ) -> None:
        self.path = os.fspath(path)
        self.options = DbOptions.coerce(options, **overrides)
        self._progress = Progress(on_progress)
        self._fs = FileStorage(
            self.path,
            create_if_not_exists=self.options.create_if_not_exists,
            default_value=self.options.default_value,
        )
        self._index = InMemoryIndex(self._progress)
        self._data: Dict[str, Any] = {}
        self._pending = 0
        self._open(indexes or ())

    def _open(self, indexes: Iterable[Any]) -> None:
        self._progress.emit("open.start", 0, self.path)
        self._data = self._fs.read()
        self._pending = 0
        definitions = [_coerce_definition(d) for d in indexes]
        if definitions:
            if not self.options.enable_indexing:
                logger.warning("indexing disabled; ignoring %d index definitions", len(definitions))
            elif not self.options.auto_index:
                logger.warning("auto_index disabled; ignoring %d index definitions", len(definitions))
            else:
                for d in definitions:
                    self._index.define(d)
        if self.options.enable_indexing and self.options.auto_index:
            self._index.rebuild_all(self._resolve)
        logger.info("opened %s", self.path)
        self._progress.emit("open.done", 100, self.path)

    # ----- Persistence -----

    @property
    def pending_changes(self) -> int:
        return self._pending

    @property
    def document(self) -> Dict[str, Any]:
        """Deep copy of the whole document."""
        return copy.deepcopy(self._data)

    def save(self) -> "Database":
        if self._pending > 0:
            self._write()
        return self

    def reload(self) -> "Database":
        self._data = self._fs.read()
        self._pending = 0
        if self.options.enable_indexing:
            self._index.rebuild_all(self._resolve)
        return self

    def close(self) -> None:
        self.save()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()

    def _write(self) -> None:
        self._progress.emit("save.start", 0, self.path)
        self._fs.write(self._data)
        self._pending = 0
        self._progress.emit("save.done", 100, self.path)

    def _default_mode(self) -> WriteMode:
        return WriteMode.AUTO if self.options.auto_save else WriteMode.DEFERRED

    def _commit(self, mode: WriteMode) -> None:
        if mode is WriteMode.AUTO:
            self._write()

    # ----- Path access -----

    def _resolve(self, key: str) -> Any:
        return resolve(self._data, key)

    def get(self, key: str, default: Any = None) -> Any:
        val = self._resolve(key)
        return default if val is MISSING else val

    def has(self, key: str) -> bool:
        return has_path(self._data, key)

    # ----- Mutators -----

    def set(self, key: str, value: Any) -> "Database":
        return self._set(key, value, mode=self._default_mode())

    def update(
        self,
        key: str,
        predicate_or_patch: Union[Callable[[Any], Any], Mapping[str, Any]],
        patch: Optional[Mapping[str, Any]] = None,
    ) -> "Database":
        """
        On a list: find one element (index-assisted for condition mappings) and
        deep-merge patch into it. On a dict: apply a callable to the current
        value, or deep-merge a mapping into it.
        """
        return self._update(key, predicate_or_patch, patch, mode=self._default_mode())

    def delete(
        self,
        key: str,
        predicate_or_keys: Union[Callable[[Any], bool], Sequence[Any], None] = None,
        field: str = "id",
    ) -> "Database":
        return self._delete(key, predicate_or_keys, field, mode=self._default_mode())

    def push(self, key: str, value: Any) -> "Database":
        return self._push(key, value, mode=self._default_mode())

    def _set(self, key: str, value: Any, *, mode: WriteMode) -> "Database":
        set_path(self._data, key, copy.deepcopy(value))
        self._pending += 1
        self._reindex(key)
        self._commit(mode)
        return self

    def _update(
        self,
        key: str,
        predicate_or_patch: Any,
        patch: Optional[Mapping[str, Any]] = None,
        *,
        mode: WriteMode,
    ) -> "Database":
        data = self._resolve(key)
        if data is MISSING:
            raise NotFoundError(f'key "{key}" does not exist')
        if isinstance(data, list):
            if patch is None:
                raise PreconditionError("update on an array requires a patch")
            if not isinstance(patch, Mapping):
                raise PreconditionError(f"patch must be a mapping, got {type(patch).__name__}")
            pos = None
            if isinstance(predicate_or_patch, Mapping) and self._indexed(key):
                pos = self._indexed_position(key, predicate_or_patch)
            if pos is None:
                pred = as_predicate(predicate_or_patch)
                pos = next((i for i, item in enumerate(data) if pred(item)), None)
            if pos is None:
                raise NotFoundError(f'no item in "{key}" matches the predicate')
            target = data[pos]
            if not isinstance(target, dict):
                raise TypeMismatchError(f'item {pos} of "{key}" is not an object')
            deep_merge(target, patch)
        elif isinstance(data, dict):
            if callable(predicate_or_patch):
                set_path(self._data, key, copy.deepcopy(predicate_or_patch(data)))
            elif isinstance(predicate_or_patch, Mapping):
                deep_merge(data, predicate_or_patch)
            else:
                raise PreconditionError("update on an object requires a callable or a mapping")
        else:
            raise TypeMismatchError(f'key "{key}" does not reference a collection or array')
        self._pending += 1
        self._reindex(key)
        self._commit(mode)
        return self

    def _delete(
        self,
        key: str,
        predicate_or_keys: Any = None,
        field: str = "id",
        *,
        mode: WriteMode,
    ) -> "Database":
        if predicate_or_keys is not None and not (
            callable(predicate_or_keys) or isinstance(predicate_or_keys, _KEY_LIST_TYPES)
        ):
            raise PreconditionError("delete expects a predicate or a list of keys")
        data = self._resolve(key)
        if isinstance(data, list):
            if callable(predicate_or_keys):
                data[:] = [item for item in data if not predicate_or_keys(item)]
            elif isinstance(predicate_or_keys, _KEY_LIST_TYPES):
                keys = list(predicate_or_keys)
                if self.options.enable_indexing and self._index.has_field(key, field):
                    if self._index.kind_of(key, field) is IndexKind.UNIQUE:
                        # a unique entry holds only the last position of duplicated keys
                        wanted = {index_key(k) for k in keys}
                        doomed = {pos for pos, item in enumerate(data) if _key_of(item, field) in wanted}
                    else:
                        doomed = set()
                        for k in keys:
                            doomed.update(self._index.positions_of(key, field, k))
                    for pos in sorted(doomed, reverse=True):
                        del data[pos]
                else:
                    data[:] = [item for item in data if not _field_in(item, field, keys)]
            else:
                raise PreconditionError("predicate or keys array must be provided for array deletion")
        elif data is not MISSING:
            if callable(predicate_or_keys):
                raise PreconditionError(f'"{key}" is not an array; pass a list of keys to delete')
            if predicate_or_keys is not None:
                for item_key in predicate_or_keys:
                    unset_path(self._data, f"{key}.{item_key}")
            else:
                unset_path(self._data, key)
        else:
            raise NotFoundError(f'key "{key}" does not exist')
        self._reindex(key)
        self._pending += 1
        self._commit(mode)
        return self

    def _push(self, key: str, value: Any, *, mode: WriteMode) -> "Database":
        current = self._resolve(key)
        if current is MISSING:
            return self._set(key, list(value) if isinstance(value, list) else [value], mode=mode)
        if not isinstance(current, list):
            raise TypeMismatchError(f'key "{key}" is not an array')
        if isinstance(value, list):
            current.extend(copy.deepcopy(value))
        else:
            current.append(copy.deepcopy(value))
        self._pending += 1
        self._reindex(key)
        self._commit(mode)
        return self

    # ----- Batch -----

    def batch(self, operations: Iterable[Any]) -> "Database":
        """
        Run operations with writes deferred and flush once at the end. A failing
        operation propagates; the ones before it stay applied in memory.
        """
        ops = [Operation.parse(op) for op in operations]
        self._progress.emit("batch.start", 0, f"{len(ops)} operations")
        for op in ops:
            self._dispatch(op, WriteMode.DEFERRED)
        self._write()
        self._progress.emit("batch.done", 100, f"{len(ops)} operations")
        return self

    def _dispatch(self, op: Operation, mode: WriteMode) -> None:
        if op.kind is OpKind.SET:
            self._set(*op.args, **op.kwargs, mode=mode)
        elif op.kind is OpKind.UPDATE:
            self._update(*op.args, **op.kwargs, mode=mode)
        elif op.kind is OpKind.DELETE:
            self._delete(*op.args, **op.kwargs, mode=mode)
        elif op.kind is OpKind.PUSH:
            self._push(*op.args, **op.kwargs, mode=mode)
        elif op.kind is OpKind.CREATE_INDEX:
            self.create_index(*op.args, **op.kwargs)
        elif op.kind is OpKind.DROP_INDEX:
            self.drop_index(*op.args, **op.kwargs)
        else:
            raise ConfigurationError(f"unsupported batch operation: {op.kind!r}")

    # ----- Indexes -----

    def create_index(self, key: str, field: str, kind: Union[IndexKind, str] = IndexKind.MULTI) -> "Database":
        if not self.options.enable_indexing:
            raise ConfigurationError("indexing is not enabled; set enable_indexing=True")
        definition = IndexDefinition(key, field, kind)
        data = self._resolve(definition.path)
        if not isinstance(data, list):
            raise TypeMismatchError(f'cannot create index on non-array data at "{key}"')
        self._index.define(definition)
        self._index.build(definition, data)
        return self

    def drop_index(self, key: str, field: str) -> "Database":
        if self.options.enable_indexing:
            self._index.drop(key, field)
        return self

    def get_indexes(self) -> Dict[str, Dict[str, IndexDefinition]]:
        return self._index.definitions()

    def position_of(self, key: str, field: str, value: Any) -> Optional[int]:
        if not self.options.enable_indexing:
            return None
        return self._index.position_of(key, field, value)

    def positions_of(self, key: str, field: str, value: Any) -> List[int]:
        if not self.options.enable_indexing:
            return []
        return self._index.positions_of(key, field, value)

    def _indexed(self, key: str) -> bool:
        return self.options.enable_indexing and self._index.has_definitions(key)

    def _indexed_position(self, key: str, conditions: Mapping[str, Any]) -> Optional[int]:
        for field, value in conditions.items():
            if self._index.has_field(key, field):
                pos = self._index.position_of(key, field, value)
                if pos is not None:
                    return pos
        return None

    def _reindex(self, key: str) -> None:
        """Rebuild every index whose collection lies on, above or below key."""
        if not self.options.enable_indexing:
            return
        tokens = parse_path(key)
        for path in self._index.definitions():
            other = parse_path(path)
            n = min(len(tokens), len(other))
            if tokens[:n] == other[:n]:
                logger.debug("rebuilding indexes on %s after change at %s", path, normalize_path(key))
                self._index.rebuild(path, self._resolve(path))

    def _lookup(self, key: str) -> Optional[IndexLookup]:
        return self._index.lookup(key) if self.options.enable_indexing else None

    # ----- Reads -----

    def _array(self, key: str) -> List[Any]:
        data = self._resolve(key)
        if not isinstance(data, list):
            raise TypeMismatchError(f'key "{key}" does not reference an array')
        return data

    def _members(self, key: str) -> List[Any]:
        data = self._resolve(key)
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return list(data.values())
        raise TypeMismatchError(f'key "{key}" does not reference a collection or array')

    def find(self, key: str, predicate: Where) -> Any:
        pred = as_predicate(predicate)
        return next((item for item in self._members(key) if pred(item)), None)

    def filter(self, key: str, predicate: Where) -> List[Any]:
        pred = as_predicate(predicate)
        return [item for item in self._members(key) if pred(item)]

    def find_by_field(self, key: str, field: str, value: Any) -> Any:
        data = self._array(key)
        if self.options.enable_indexing and self._index.has_field(key, field):
            pos = self._index.position_of(key, field, value)
            return data[pos] if pos is not None else None
        return next((item for item in data if _field_in(item, field, [value])), None)

    def filter_by_field(self, key: str, field: str, values: Sequence[Any]) -> List[Any]:
        data = self._array(key)
        if self.options.enable_indexing and self._index.has_field(key, field):
            return [data[pos] for v in values for pos in self._index.positions_of(key, field, v)]
        return [item for item in data if _field_in(item, field, values)]

    # ----- Queries -----

    def query(
        self,
        key: str,
        where: Optional[Where] = None,
        *,
        sort: Any = None,
        skip: Optional[int] = None,
        limit: Optional[int] = None,
        pagination: Any = None,
        select: Optional[Sequence[str]] = None,
        aggregation: Any = None,
    ) -> QueryResult:
        return execute(
            self._array(key),
            self._lookup(key),
            where=where,
            sort=sort,
            skip=skip,
            limit=limit,
            pagination=pagination,
            select=select,
            aggregation=aggregation,
        )

    def order_by(self, key: str, sort: Any, limit: Optional[int] = None) -> List[Any]:
        return self.query(key, sort=sort, limit=limit).data

    def paginate(self, key: str, page: int, page_size: int, where: Optional[Where] = None) -> PageResult:
        res = self.query(key, where, pagination={"page": page, "page_size": page_size})
        return PageResult(data=res.data, pagination=res.pagination)

    def aggregate(self, key: str, aggregations: Any, where: Optional[Where] = None) -> List[AggregationResult]:
        return self.query(key, where, aggregation=aggregations).aggregations or []

    def count(self, key: str, where: Optional[Where] = None) -> int:
        res = self.aggregate(key, [{"type": "count"}], where)
        return res[0].value if res else 0

    def distinct(self, key: str, field: str, where: Optional[Where] = None) -> List[Any]:
        """Values of field in first-occurrence order; missing fields show up as None."""
        seen = set()
        out: List[Any] = []
        for item in self.query(key, where).data:
            val = resolve(item, field) if isinstance(item, (dict, list)) else MISSING
            ident = typed_key(None if val is MISSING else val)
            if ident in seen:
                continue
            seen.add(ident)
            out.append(None if val is MISSING else val)
        return out


def _field_in(item: Any, field: str, values: Iterable[Any]) -> bool:
    if not isinstance(item, dict):
        return False
    val = resolve(item, field)
    if val is MISSING:
        return False
    return any(strict_equal(val, v) for v in values)


def _key_of(item: Any, field: str) -> Optional[str]:
    """Index key of item's field, None where an index build would skip the item."""
    if not isinstance(item, dict):
        return None
    val = resolve(item, field)
    if val is MISSING or val is None:
        return None
    return index_key(val)


def _coerce_definition(obj: Any) -> IndexDefinition:
    if isinstance(obj, IndexDefinition):
        return obj
    if isinstance(obj, Mapping):
        try:
            return IndexDefinition(obj["path"], obj["field"], obj.get("kind", obj.get("type", IndexKind.MULTI)))
        except KeyError as e:
            raise ConfigurationError(f"index definition missing {e.args[0]!r}: {dict(obj)!r}") from None
    if isinstance(obj, (tuple, list)) and len(obj) in (2, 3):
        return IndexDefinition(*obj)
    raise ConfigurationError(f"unsupported index definition: {obj!r}")
