"""Filter tree, parser and Flux predicate compiler."""

from __future__ import annotations

from .ast import (
    Combinator,
    Comparison,
    Equality,
    FilterNode,
    FilterOperator,
    LogicalOperator,
    match_all,
)
from .compiler import FluxFilterCompiler, compile_filter
from .parser import QUERY_MARKER, FilterParser
from .values import field_ref, format_time, format_value

__all__ = [
    "Combinator",
    "Comparison",
    "Equality",
    "FilterNode",
    "FilterOperator",
    "FilterParser",
    "FluxFilterCompiler",
    "LogicalOperator",
    "QUERY_MARKER",
    "compile_filter",
    "field_ref",
    "format_time",
    "format_value",
    "match_all",
]
