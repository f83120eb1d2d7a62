from __future__ import annotations
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .errors import ConfigurationError, PreconditionError
from .paths import MISSING, get_path, resolve, set_path
from .utils import index_key, is_number, sort_key, strict_equal

Predicate = Callable[[Any], bool]
Where = Union[Predicate, Mapping[str, Any]]
# field -> value -> positions, or None when the field carries no index
IndexLookup = Callable[[str, Any], Optional[List[int]]]

AGGREGATION_TYPES = ("count", "sum", "avg", "min", "max", "group")


@dataclass(frozen=True)
class Sort:
    field: str
    direction: str = "asc"

    def __post_init__(self) -> None:
        direction = str(self.direction).lower()
        if direction not in ("asc", "desc"):
            raise ConfigurationError(f"sort direction must be 'asc' or 'desc', got {self.direction!r}")
        object.__setattr__(self, "direction", direction)


@dataclass(frozen=True)
class Page:
    page: int
    page_size: int

    def __post_init__(self) -> None:
        if not isinstance(self.page_size, int) or isinstance(self.page_size, bool) or self.page_size < 1:
            raise PreconditionError(f"page_size must be a positive integer, got {self.page_size!r}")
        if not isinstance(self.page, int) or isinstance(self.page, bool):
            raise PreconditionError(f"page must be an integer, got {self.page!r}")


@dataclass(frozen=True)
class Aggregation:
    type: str
    field: Optional[str] = None
    group_by: Optional[str] = None


@dataclass
class Pagination:
    current_page: int
    page_size: int
    total_items: int
    total_pages: int
    has_previous: bool
    has_next: bool


@dataclass
class AggregationResult:
    type: str
    value: Any
    field: Optional[str] = None
    group_by: Optional[str] = None


@dataclass
class QueryStats:
    total_records: int
    filtered_records: int
    execution_time: float  # milliseconds
    used_index: bool


@dataclass
class QueryResult:
    data: List[Any]
    stats: QueryStats
    pagination: Optional[Pagination] = None
    aggregations: Optional[List[AggregationResult]] = None


@dataclass
class PageResult:
    data: List[Any]
    pagination: Pagination


@dataclass
class FilterResult:
    data: List[Any]
    used_index: bool = False


# ----- Option coercion -----

def coerce_sort(sort: Any) -> List[Sort]:
    if sort is None:
        return []
    if isinstance(sort, (Sort, Mapping, str)) or (isinstance(sort, tuple) and sort and isinstance(sort[0], str)):
        sort = [sort]
    out: List[Sort] = []
    for s in sort:
        if isinstance(s, Sort):
            out.append(s)
        elif isinstance(s, Mapping):
            if "field" not in s:
                raise ConfigurationError(f"sort option requires a field: {dict(s)!r}")
            out.append(Sort(s["field"], s.get("direction", "asc")))
        elif isinstance(s, str):
            out.append(Sort(s))
        elif isinstance(s, (tuple, list)) and 1 <= len(s) <= 2:
            out.append(Sort(*s))
        else:
            raise ConfigurationError(f"unsupported sort option: {s!r}")
    return out


def coerce_page(pagination: Any) -> Optional[Page]:
    if pagination is None or isinstance(pagination, Page):
        return pagination
    if isinstance(pagination, Mapping):
        size = pagination.get("page_size", pagination.get("pageSize"))
        if "page" not in pagination or size is None:
            raise PreconditionError("pagination requires page and page_size")
        return Page(pagination["page"], size)
    if isinstance(pagination, (tuple, list)) and len(pagination) == 2:
        return Page(*pagination)
    raise ConfigurationError(f"unsupported pagination option: {pagination!r}")


def coerce_aggregations(aggregation: Any) -> List[Aggregation]:
    if aggregation is None:
        return []
    if isinstance(aggregation, (Aggregation, Mapping, str)):
        aggregation = [aggregation]
    out: List[Aggregation] = []
    for a in aggregation:
        if isinstance(a, Aggregation):
            out.append(a)
        elif isinstance(a, Mapping):
            if "type" not in a:
                raise ConfigurationError(f"aggregation requires a type: {dict(a)!r}")
            out.append(Aggregation(a["type"], a.get("field"), a.get("group_by", a.get("groupBy"))))
        elif isinstance(a, str):
            out.append(Aggregation(a))
        else:
            raise ConfigurationError(f"unsupported aggregation option: {a!r}")
    return out


# ----- Filter -----

def matches_conditions(item: Any, conditions: Mapping[str, Any]) -> bool:
    """Equality on every condition; keys are dotted paths inside the element."""
    for path, expected in conditions.items():
        actual = resolve(item, path) if isinstance(item, (dict, list)) else MISSING
        if actual is MISSING or not strict_equal(actual, expected):
            return False
    return True


def as_predicate(where: Where) -> Predicate:
    if callable(where):
        return where
    if isinstance(where, Mapping):
        return lambda item: matches_conditions(item, where)
    raise PreconditionError(f"where must be a callable or a mapping, got {type(where).__name__}")


def apply_filter(data: Sequence[Any], where: Where, lookup: Optional[IndexLookup] = None) -> FilterResult:
    """
    Mapping conditions use the first indexed key: when it yields positions,
    the remaining conditions are checked against those candidates only. An
    indexed key with zero hits does not retry the other conditions through
    the linear path; the linear scan below then sees the same condition fail.
    """
    if callable(where):
        return FilterResult([item for item in data if where(item)])
    if not isinstance(where, Mapping):
        raise PreconditionError(f"where must be a callable or a mapping, got {type(where).__name__}")

    if lookup is not None:
        for field, value in where.items():
            positions = lookup(field, value)
            if positions is None:
                continue
            if positions:
                candidates = [data[pos] for pos in positions if 0 <= pos < len(data)]
                rest = {k: v for k, v in where.items() if k != field}
                if rest:
                    candidates = [item for item in candidates if matches_conditions(item, rest)]
                return FilterResult(candidates, used_index=True)
            break

    return FilterResult([item for item in data if matches_conditions(item, where)])


# ----- Sort / slice / page / select -----

def apply_sort(data: List[Any], sort: Sequence[Sort]) -> List[Any]:
    out = list(data)
    # last key first; list.sort is stable, including with reverse=True
    for s in reversed(sort):
        out.sort(
            key=lambda item: sort_key(resolve(item, s.field) if isinstance(item, (dict, list)) else MISSING),
            reverse=(s.direction == "desc"),
        )
    return out


def apply_skip_limit(data: List[Any], skip: Optional[int], limit: Optional[int]) -> List[Any]:
    if skip and skip > 0:
        data = data[skip:]
    if limit and limit > 0:
        data = data[:limit]
    return data


def apply_pagination(data: List[Any], page: Page) -> PageResult:
    total_items = len(data)
    total_pages = math.ceil(total_items / page.page_size)
    current = max(1, min(page.page, total_pages))
    start = (current - 1) * page.page_size
    return PageResult(
        data=data[start:start + page.page_size],
        pagination=Pagination(
            current_page=current,
            page_size=page.page_size,
            total_items=total_items,
            total_pages=total_pages,
            has_previous=current > 1,
            has_next=current < total_pages,
        ),
    )


def apply_select(data: Iterable[Any], fields: Sequence[str]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for item in data:
        picked: Dict[str, Any] = {}
        if isinstance(item, dict):
            for f in fields:
                val = resolve(item, f)
                if val is not MISSING:
                    set_path(picked, f, val)
        out.append(picked)
    return out


# ----- Aggregation -----

def _numbers(data: Iterable[Any], field: str) -> List[Union[int, float]]:
    vals = []
    for item in data:
        v = get_path(item, field) if isinstance(item, (dict, list)) else None
        if is_number(v):
            vals.append(v)
    return vals


def _aggregate_one(data: List[Any], agg: Aggregation) -> AggregationResult:
    kind = str(agg.type).lower()
    if kind == "count":
        return AggregationResult("count", len(data))
    if kind in ("sum", "avg", "min", "max"):
        if not agg.field:
            raise ConfigurationError(f"{kind} aggregation requires a field")
        nums = _numbers(data, agg.field)
        if kind == "sum":
            value: Any = sum(nums)
        elif kind == "avg":
            value = sum(nums) / len(data) if data else None
        elif kind == "min":
            value = min(nums) if nums else None
        else:
            value = max(nums) if nums else None
        return AggregationResult(kind, value, field=agg.field)
    if kind == "group":
        if not agg.group_by:
            raise ConfigurationError("group aggregation requires a group_by field")
        groups: Dict[str, List[Any]] = {}
        for item in data:
            v = resolve(item, agg.group_by) if isinstance(item, (dict, list)) else MISSING
            groups.setdefault(index_key(v), []).append(item)
        return AggregationResult("group", groups, group_by=agg.group_by)
    raise ConfigurationError(f"unsupported aggregation type {agg.type!r} (allowed: {', '.join(AGGREGATION_TYPES)})")


def apply_aggregation(data: List[Any], aggregations: Sequence[Aggregation]) -> List[AggregationResult]:
    return [_aggregate_one(data, agg) for agg in aggregations]


# ----- Pipeline -----

def execute(
    collection: List[Any],
    lookup: Optional[IndexLookup] = None,
    *,
    where: Optional[Where] = None,
    sort: Any = None,
    skip: Optional[int] = None,
    limit: Optional[int] = None,
    pagination: Any = None,
    select: Optional[Sequence[str]] = None,
    aggregation: Any = None,
) -> QueryResult:
    """
    filter -> sort -> skip/limit -> pagination -> select; aggregations are
    computed from a fresh filter pass over the whole collection.
    """
    started = time.perf_counter()
    sorts = coerce_sort(sort)
    page = coerce_page(pagination)
    aggs = coerce_aggregations(aggregation)
    if isinstance(select, str):
        select = [select]

    total = len(collection)
    data = list(collection)
    used_index = False
    if where is not None:
        res = apply_filter(data, where, lookup)
        data, used_index = res.data, res.used_index
    filtered = len(data)

    if sorts:
        data = apply_sort(data, sorts)
    data = apply_skip_limit(data, skip, limit)

    page_info: Optional[Pagination] = None
    if page is not None:
        paged = apply_pagination(data, page)
        data, page_info = paged.data, paged.pagination

    if select:
        data = apply_select(data, select)

    aggregations: Optional[List[AggregationResult]] = None
    if aggs:
        agg_data = list(collection)
        if where is not None:
            agg_data = apply_filter(agg_data, where, lookup).data
        aggregations = apply_aggregation(agg_data, aggs)

    return QueryResult(
        data=data,
        pagination=page_info,
        aggregations=aggregations,
        stats=QueryStats(
            total_records=total,
            filtered_records=filtered,
            execution_time=(time.perf_counter() - started) * 1000.0,
            used_index=used_index,
        ),
    )
