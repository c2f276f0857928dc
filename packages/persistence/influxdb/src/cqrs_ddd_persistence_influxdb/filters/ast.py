"""Filter tree nodes.

A parsed filter is one of three immutable node kinds:

- :class:`Equality`: ``{"device": "s1"}``
- :class:`Comparison`: ``{"temperature": {"gt": 20}}``
- :class:`Combinator`: ``{"or": [{...}, {...}]}``

The parser builds the tree in a single pass; the compiler never has to
inspect raw value types to decide what a key means.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FilterOperator(str, Enum):
    """Comparison operators accepted inside an operator object."""

    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    IN = "in"
    NIN = "nin"


class LogicalOperator(str, Enum):
    """Combinator keys."""

    AND = "and"
    OR = "or"


MEMBERSHIP_OPERATORS: frozenset[FilterOperator] = frozenset(
    {FilterOperator.IN, FilterOperator.NIN}
)


@dataclass(frozen=True)
class Equality:
    field: str
    value: Any


@dataclass(frozen=True)
class Comparison:
    field: str
    operator: FilterOperator
    value: Any


@dataclass(frozen=True)
class Combinator:
    kind: LogicalOperator
    children: tuple[FilterNode, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.children


FilterNode = Equality | Comparison | Combinator


def match_all() -> Combinator:
    """Return the empty filter (no predicate)."""
    return Combinator(LogicalOperator.AND)
