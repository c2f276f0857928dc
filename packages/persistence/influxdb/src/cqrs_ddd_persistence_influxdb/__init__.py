"""InfluxDB persistence — Flux query building, point mapping and service."""

from __future__ import annotations

from .client import InfluxClientProvider, InfluxQueryExecutor, InfluxWriteChannel
from .connection import InfluxConnectionManager
from .error_handler import translate_error
from .exceptions import (
    InfluxConfigurationError,
    InfluxConnectionError,
    InfluxDBAdapterError,
    InfluxNotFoundError,
    InfluxOperatorNotFoundError,
    InfluxQueryError,
    InfluxStoreError,
    InfluxUnsupportedOperationError,
)
from .filters import (
    Combinator,
    Comparison,
    Equality,
    FilterNode,
    FilterOperator,
    FilterParser,
    FluxFilterCompiler,
    LogicalOperator,
    compile_filter,
)
from .mapper import FieldKind, InfluxPoint, classify_field, resolve_record, to_point
from .options import (
    InfluxServiceOptions,
    PaginationOptions,
    TimeRange,
    UnknownKeyPolicy,
    load_options,
)
from .ports import IInfluxClientProvider, IQueryExecutor, IWriteChannel
from .query_builder import FluxClause, FluxQuery, FluxQueryBuilder, QueryStage
from .service import InfluxDBService, Paginated

__all__ = [
    "Combinator",
    "Comparison",
    "Equality",
    "FieldKind",
    "FilterNode",
    "FilterOperator",
    "FilterParser",
    "FluxClause",
    "FluxFilterCompiler",
    "FluxQuery",
    "FluxQueryBuilder",
    "IInfluxClientProvider",
    "IQueryExecutor",
    "IWriteChannel",
    "InfluxClientProvider",
    "InfluxConfigurationError",
    "InfluxConnectionError",
    "InfluxConnectionManager",
    "InfluxDBAdapterError",
    "InfluxDBService",
    "InfluxNotFoundError",
    "InfluxOperatorNotFoundError",
    "InfluxPoint",
    "InfluxQueryError",
    "InfluxQueryExecutor",
    "InfluxServiceOptions",
    "InfluxStoreError",
    "InfluxUnsupportedOperationError",
    "InfluxWriteChannel",
    "LogicalOperator",
    "Paginated",
    "PaginationOptions",
    "QueryStage",
    "TimeRange",
    "UnknownKeyPolicy",
    "classify_field",
    "compile_filter",
    "load_options",
    "resolve_record",
    "to_point",
    "translate_error",
]
