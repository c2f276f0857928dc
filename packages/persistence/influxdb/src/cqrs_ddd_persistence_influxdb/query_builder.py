"""Flux query builder.

A query is assembled as an ordered list of :class:`FluxClause` values,
one stage at a time, in a fixed order::

    source -> range -> measurement -> predicates -> sort -> skip -> limit -> projection

Flux is a pipeline language, so the order is part of the meaning of the
query, not just its layout. Each stage contributes zero or more clauses;
stages that are not requested are omitted without disturbing the others.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum
from typing import TYPE_CHECKING, Any, NamedTuple

from .exceptions import InfluxQueryError
from .filters.ast import Combinator, Comparison, Equality, FilterNode
from .filters.compiler import FluxFilterCompiler
from .filters.parser import FilterParser
from .filters.values import column_list, format_duration, format_string, format_time
from .options import TimeRange

if TYPE_CHECKING:
    from .options import InfluxServiceOptions, PaginationOptions

logger = logging.getLogger("cqrs_ddd.influxdb.query")

DEFAULT_START = "-1h"
DEFAULT_STOP = "now()"
# Flux has no row-dropping primitive without an upper bound, so skipping
# is expressed as an offset on a limit that can never be reached.
UNBOUNDED_ROWS = 9223372036854775807

RESERVED_KEYS: frozenset[str] = frozenset({"$select", "$sort", "$limit", "$skip"})

_ASCENDING = {"1", "asc", "ascending"}
_DESCENDING = {"-1", "desc", "descending"}


class QueryStage(IntEnum):
    SOURCE = 1
    RANGE = 2
    MEASUREMENT = 3
    PREDICATE = 4
    SORT = 5
    SKIP = 6
    LIMIT = 7
    PROJECTION = 8
    AGGREGATE = 9


@dataclass(frozen=True)
class FluxClause:
    stage: QueryStage
    text: str


@dataclass(frozen=True)
class FluxQuery:
    """Immutable, ordered Flux pipeline."""

    clauses: tuple[FluxClause, ...]

    @property
    def stages(self) -> list[QueryStage]:
        return [c.stage for c in self.clauses]

    def clauses_for(self, stage: QueryStage) -> list[str]:
        return [c.text for c in self.clauses if c.stage is stage]

    def render(self) -> str:
        if not self.clauses:
            return ""
        head, *rest = self.clauses
        return head.text + "".join(f"\n  |> {c.text}" for c in rest)

    def __str__(self) -> str:
        return self.render()


class QueryFilters(NamedTuple):
    """Reserved ``$`` directives split off the caller's query."""

    select: list[str] | None
    sort: Any
    limit: int | None
    skip: int


def _int_param(value: Any, key: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InfluxQueryError(f"'{key}' must be a non-negative integer", path=key)
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InfluxQueryError(
            f"'{key}' must be a non-negative integer, got {value!r}", path=key
        ) from exc
    if number < 0:
        raise InfluxQueryError(
            f"'{key}' must be a non-negative integer, got {value!r}", path=key
        )
    return number


def _parse_select(raw: Any) -> list[str] | None:
    if not raw:
        return None
    if isinstance(raw, str):
        return [f.strip() for f in raw.split(",") if f.strip()]
    if isinstance(raw, (list, tuple)):
        return [str(f) for f in raw]
    raise InfluxQueryError("'$select' must be a list of field names", path="$select")


def split_query(
    query: Mapping[str, Any] | None,
) -> tuple[QueryFilters, dict[str, Any]]:
    """Return ``(filters, predicate_query)``.

    Reserved keys never reach the filter compiler.
    """
    rest = dict(query or {})
    filters = QueryFilters(
        select=_parse_select(rest.pop("$select", None)),
        sort=rest.pop("$sort", None),
        limit=_int_param(rest.pop("$limit", None), "$limit"),
        skip=_int_param(rest.pop("$skip", None), "$skip") or 0,
    )
    return filters, rest


def get_limit(limit: int | None, paginate: PaginationOptions | None) -> int | None:
    """Effective page size: the default when unset, capped at the maximum."""
    if paginate is not None and (paginate.default or paginate.max):
        lower = limit if limit is not None else (paginate.default or 0)
        if paginate.max is not None:
            return min(lower, paginate.max)
        return lower
    return limit


def _direction_is_desc(field: str, direction: Any) -> bool:
    token = str(direction).strip().lower()
    if token in _ASCENDING:
        return False
    if token in _DESCENDING:
        return True
    raise InfluxQueryError(
        f"Invalid sort direction {direction!r} for '{field}'", path=f"$sort.{field}"
    )


def normalise_sort(sort: Any) -> list[tuple[str, bool]]:
    """Normalise sort input to ``[(field, descending)]``.

    Accepts ``{field: 1 | -1 | "asc" | "desc"}``, ``[(field, direction)]``
    or ``["field", "-field"]``.
    """
    if not sort:
        return []
    if isinstance(sort, Mapping):
        return [(f, _direction_is_desc(f, d)) for f, d in sort.items()]
    if isinstance(sort, str):
        sort = [s.strip() for s in sort.split(",") if s.strip()]
    result: list[tuple[str, bool]] = []
    for item in sort:
        if isinstance(item, (tuple, list)) and len(item) == 2:
            result.append((str(item[0]), _direction_is_desc(item[0], item[1])))
        elif isinstance(item, str):
            if item.startswith("-"):
                result.append((item[1:], True))
            else:
                result.append((item.lstrip("+"), False))
        else:
            raise InfluxQueryError(f"Invalid sort entry {item!r}", path="$sort")
    return result


def _time_bound(value: datetime | timedelta | str | None, default: str) -> str:
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        return format_time(value)
    if isinstance(value, timedelta):
        return format_duration(value)
    return str(value)


class FluxQueryBuilder:
    """Builds data and count queries for one measurement of one bucket."""

    def __init__(
        self,
        options: InfluxServiceOptions,
        *,
        parser: FilterParser | None = None,
        compiler: FluxFilterCompiler | None = None,
    ) -> None:
        self._options = options
        self._parser = parser or FilterParser(options.unknown_keys)
        self._compiler = compiler or FluxFilterCompiler()

    # -- individual stages ---------------------------------------------------

    def build_source(self) -> FluxClause:
        return FluxClause(
            QueryStage.SOURCE, f"from(bucket: {format_string(self._options.bucket)})"
        )

    def build_range(
        self, time_range: TimeRange | Mapping[str, Any] | None
    ) -> FluxClause:
        if time_range is not None and not isinstance(time_range, TimeRange):
            time_range = TimeRange.model_validate(time_range)
        if time_range is None or time_range.is_open:
            return FluxClause(QueryStage.RANGE, f"range(start: {DEFAULT_START})")
        start = _time_bound(time_range.start, DEFAULT_START)
        stop = _time_bound(time_range.stop, DEFAULT_STOP)
        return FluxClause(QueryStage.RANGE, f"range(start: {start}, stop: {stop})")

    def build_measurement(self) -> FluxClause:
        measurement = format_string(self._options.measurement)
        return FluxClause(
            QueryStage.MEASUREMENT,
            f"filter(fn: (r) => r._measurement == {measurement})",
        )

    def parse_filter(self, query: Mapping[str, Any] | FilterNode | None) -> FilterNode:
        if isinstance(query, (Equality, Comparison, Combinator)):
            return query
        return self._parser.parse(query)

    def build_predicates(
        self, query: Mapping[str, Any] | FilterNode | None
    ) -> list[FluxClause]:
        node = self.parse_filter(query)
        return [
            FluxClause(QueryStage.PREDICATE, f"filter(fn: (r) => {expr})")
            for expr in self._compiler.compile(node)
        ]

    def build_sort(self, sort: Any) -> FluxClause | None:
        keys = normalise_sort(sort)
        if not keys:
            return None
        desc = keys[0][1]
        if any(d != desc for _, d in keys[1:]):
            logger.warning(
                "Flux sorts all columns in one direction; using %s for %s",
                "descending" if desc else "ascending",
                [f for f, _ in keys],
            )
        columns = column_list(f for f, _ in keys)
        text = f"sort(columns: {columns}, desc: {'true' if desc else 'false'})"
        return FluxClause(QueryStage.SORT, text)

    def build_skip(self, skip: int | None) -> FluxClause | None:
        if not skip or skip <= 0:
            return None
        return FluxClause(
            QueryStage.SKIP, f"limit(n: {UNBOUNDED_ROWS}, offset: {int(skip)})"
        )

    def build_limit(self, limit: int | None) -> FluxClause | None:
        if not limit or limit <= 0:
            return None
        return FluxClause(QueryStage.LIMIT, f"limit(n: {int(limit)})")

    def build_project(self, fields: Sequence[str] | None) -> FluxClause | None:
        if not fields:
            return None
        return FluxClause(QueryStage.PROJECTION, f"keep(columns: {column_list(fields)})")

    # -- whole queries -------------------------------------------------------

    def _base(
        self,
        query: Mapping[str, Any] | FilterNode | None,
        time_range: TimeRange | Mapping[str, Any] | None,
    ) -> list[FluxClause]:
        return [
            self.build_source(),
            self.build_range(time_range),
            self.build_measurement(),
            *self.build_predicates(query),
        ]

    def build_query(
        self,
        query: Mapping[str, Any] | FilterNode | None = None,
        *,
        time_range: TimeRange | Mapping[str, Any] | None = None,
        sort: Any = None,
        skip: int | None = 0,
        limit: int | None = None,
        select: Sequence[str] | None = None,
    ) -> FluxQuery:
        """Assemble the data query."""
        clauses = self._base(query, time_range)
        for clause in (
            self.build_sort(sort),
            self.build_skip(skip),
            self.build_limit(limit),
            self.build_project(select),
        ):
            if clause is not None:
                clauses.append(clause)
        return FluxQuery(tuple(clauses))

    def build_count_query(
        self,
        query: Mapping[str, Any] | FilterNode | None = None,
        *,
        time_range: TimeRange | Mapping[str, Any] | None = None,
    ) -> FluxQuery:
        """Assemble the total-count query: same predicates, no paging.

        Yields one count per series table; the caller sums ``_value``.
        Tables are not regrouped, since fields of different types cannot
        share one ``_value`` column.
        """
        clauses = self._base(query, time_range)
        clauses.append(FluxClause(QueryStage.AGGREGATE, "count()"))
        return FluxQuery(tuple(clauses))
