"""FilterParser — raw query mapping -> filter tree."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..exceptions import InfluxOperatorNotFoundError, InfluxQueryError
from ..options import UnknownKeyPolicy
from .ast import (
    MEMBERSHIP_OPERATORS,
    Combinator,
    Comparison,
    Equality,
    FilterNode,
    FilterOperator,
    LogicalOperator,
)

logger = logging.getLogger("cqrs_ddd.influxdb.filters")

QUERY_MARKER = "$"

_OPERATORS: dict[str, FilterOperator] = {m.value: m for m in FilterOperator}
_LOGICAL: dict[str, LogicalOperator] = {m.value: m for m in LogicalOperator}


def _strip_marker(key: str) -> str:
    return key[len(QUERY_MARKER) :] if key.startswith(QUERY_MARKER) else key


def _normalise_members(value: Any) -> tuple[Any, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted(value, key=repr))
    return (value,)


class FilterParser:
    """Parse a query mapping into a :class:`Combinator` rooted tree.

    Keys may carry the ``$`` marker (``$or``, ``$gt``) or not (``or``,
    ``gt``). Keys that are neither a field, a combinator nor a known
    operator are rejected or skipped according to *policy*.
    """

    def __init__(self, policy: UnknownKeyPolicy = UnknownKeyPolicy.REJECT) -> None:
        self._policy = UnknownKeyPolicy(policy)

    def parse(self, raw: Mapping[str, Any] | None) -> Combinator:
        if not raw:
            return Combinator(LogicalOperator.AND)
        return Combinator(LogicalOperator.AND, self._parse_mapping(raw, "<root>"))

    # -- internal ------------------------------------------------------------

    def _parse_mapping(
        self, raw: Mapping[str, Any], path: str
    ) -> tuple[FilterNode, ...]:
        if not isinstance(raw, Mapping):
            raise InfluxQueryError(
                f"Expected a mapping, got {type(raw).__name__}", path=path
            )
        nodes: list[FilterNode] = []
        for key, value in raw.items():
            if not isinstance(key, str) or not key:
                raise InfluxQueryError(f"Invalid filter key {key!r}", path=path)
            name = _strip_marker(key)
            if name in _LOGICAL:
                nodes.append(
                    self._parse_combinator(_LOGICAL[name], value, f"{path}.{key}")
                )
            elif key.startswith(QUERY_MARKER):
                self._unknown(f"Unknown query key '{key}'", f"{path}.{key}")
            elif value is None:
                continue
            elif isinstance(value, Mapping):
                nodes.extend(self._parse_operators(key, value, f"{path}.{key}"))
            else:
                nodes.append(Equality(key, value))
        return tuple(nodes)

    def _parse_combinator(
        self, kind: LogicalOperator, value: Any, path: str
    ) -> Combinator:
        if not isinstance(value, (list, tuple)):
            raise InfluxQueryError(
                f"'{kind.value}' expects a list of conditions, "
                f"got {type(value).__name__}",
                path=path,
            )
        children: list[FilterNode] = []
        for idx, child in enumerate(value):
            child_path = f"{path}[{idx}]"
            children.append(
                Combinator(LogicalOperator.AND, self._parse_mapping(child, child_path))
            )
        return Combinator(kind, tuple(children))

    def _parse_operators(
        self, field: str, ops: Mapping[str, Any], path: str
    ) -> list[FilterNode]:
        nodes: list[FilterNode] = []
        for key, value in ops.items():
            name = _strip_marker(str(key))
            operator = _OPERATORS.get(name)
            if operator is None:
                if self._policy is UnknownKeyPolicy.REJECT:
                    raise InfluxOperatorNotFoundError(
                        str(key), list(_OPERATORS), path=f"{path}.{key}"
                    )
                logger.warning("Ignoring unknown operator %r at %s", key, path)
                continue
            if operator in MEMBERSHIP_OPERATORS:
                value = _normalise_members(value)
            nodes.append(Comparison(field, operator, value))
        return nodes

    def _unknown(self, message: str, path: str) -> None:
        if self._policy is UnknownKeyPolicy.REJECT:
            raise InfluxQueryError(message, path=path)
        logger.warning("%s at %s; ignoring it", message, path)
