"""
Compile a filter tree into Flux predicate expressions.

``compile`` returns one boolean expression per clause; the query
assembler frames each of them as ``filter(fn: (r) => <expr>)``.
Clauses are implicitly AND-composed by the pipeline, so ``and`` simply
concatenates its children. ``or`` needs a single expression, which is
what ``compile_expression`` (expression mode) produces for each child.
"""

from __future__ import annotations

from .ast import (
    Combinator,
    Comparison,
    Equality,
    FilterNode,
    FilterOperator,
    LogicalOperator,
)
from .values import field_ref, format_array, format_value

_COMPARATORS: dict[FilterOperator, str] = {
    FilterOperator.EQ: "==",
    FilterOperator.NE: "!=",
    FilterOperator.LT: "<",
    FilterOperator.LTE: "<=",
    FilterOperator.GT: ">",
    FilterOperator.GTE: ">=",
}


def _compile_membership(node: Comparison) -> str:
    values = tuple(node.value)
    negate = node.operator is FilterOperator.NIN
    if not values:
        # empty set: nothing is a member
        return "true" if negate else "false"
    expr = f"contains(value: {field_ref(node.field)}, set: {format_array(values)})"
    return f"not {expr}" if negate else expr


def _compile_comparison(node: Comparison) -> str:
    comparator = _COMPARATORS.get(node.operator)
    if comparator is None:
        return _compile_membership(node)
    return f"{field_ref(node.field)} {comparator} {format_value(node.value)}"


class FluxFilterCompiler:
    """Pure translator from :mod:`~.ast` nodes to Flux expressions."""

    def compile(self, node: FilterNode) -> list[str]:
        """Return the ordered clause expressions for *node*."""
        if isinstance(node, Equality):
            return [f"{field_ref(node.field)} == {format_value(node.value)}"]
        if isinstance(node, Comparison):
            return [_compile_comparison(node)]
        if node.kind is LogicalOperator.AND:
            clauses: list[str] = []
            for child in node.children:
                clauses.extend(self.compile(child))
            return clauses
        return self._compile_or(node)

    def compile_expression(self, node: FilterNode) -> str | None:
        """Compile *node* to one boolean expression, or None if it is empty."""
        clauses = self.compile(node)
        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return " and ".join(f"({c})" for c in clauses)

    def _compile_or(self, node: Combinator) -> list[str]:
        expressions = [
            expr
            for expr in (self.compile_expression(c) for c in node.children)
            if expr is not None
        ]
        if not expressions:
            return []
        return [" or ".join(f"({e})" for e in expressions)]


def compile_filter(node: FilterNode) -> list[str]:
    """Module-level shortcut for :meth:`FluxFilterCompiler.compile`."""
    return FluxFilterCompiler().compile(node)
