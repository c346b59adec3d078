"""
Compile an ordered filter list into a single boolean SQL expression.

Filters form a left-to-right token stream: each filter's ``logical_operator``
names its connector to the next filter. Adjacent filters that share a
connector form one group; groups are AND-ed together. This is adjacency
grouping, not operator precedence:

    [A(OR), B(OR), C(AND)]  ->  (A OR B) AND C
    [A(AND), B(OR), C(AND)] ->  A AND B AND C

The grouping is materialized as a small expression tree before rendering.
"""

import logging
from typing import List, Optional, Sequence, Union

from .errors import ValidationError
from .fields import FieldResolver
from .schemas import Filter, FilterOperator, LogicalOperator, ObjectDefinition
from .values import LiteralRenderer, ParameterBinder

logger = logging.getLogger(__name__)

Renderer = Union[LiteralRenderer, ParameterBinder]

SCALAR_OPERATORS = {
    FilterOperator.EQUALS: "=",
    FilterOperator.NOT_EQUALS: "!=",
    FilterOperator.GREATER_THAN: ">",
    FilterOperator.LESS_THAN: "<",
}


# ===== EXPRESSION TREE =====


class ConditionNode:
    """A node of a compiled filter expression."""

    def render(self) -> str:
        raise NotImplementedError


class LeafNode(ConditionNode):
    def __init__(self, sql: str):
        self.sql = sql

    def render(self) -> str:
        return self.sql


class BooleanNode(ConditionNode):
    connector = LogicalOperator.AND

    def __init__(self, children: Sequence[ConditionNode], nested: bool = True):
        self.children = list(children)
        self.nested = nested

    def render(self) -> str:
        parts = [child.render() for child in self.children]
        text = f" {self.connector.value} ".join(parts)
        if self.nested and len(parts) > 1:
            return f"({text})"
        return text


class AndNode(BooleanNode):
    connector = LogicalOperator.AND


class OrNode(BooleanNode):
    connector = LogicalOperator.OR


# ===== COMPILER =====


class ConditionGroupCompiler:
    """Turns a filter list for one aliased object into a WHERE fragment."""

    def __init__(self, field_resolver: Optional[FieldResolver] = None, strict_operators: bool = False):
        self.field_resolver = field_resolver or FieldResolver()
        self.strict_operators = strict_operators

    def compile(
        self,
        filters: Sequence[Filter],
        alias: str,
        obj: ObjectDefinition,
        renderer: Optional[Renderer] = None,
    ) -> str:
        """Return the boolean expression for ``filters``, or an empty string."""
        tree = self.build_tree(filters, alias, obj, renderer or LiteralRenderer())
        return tree.render() if tree is not None else ""

    def build_tree(
        self,
        filters: Sequence[Filter],
        alias: str,
        obj: ObjectDefinition,
        renderer: Renderer,
    ) -> Optional[AndNode]:
        if not filters:
            return None

        groups: List[ConditionNode] = []
        current: List[ConditionNode] = []
        running: Optional[LogicalOperator] = None

        for index, filter_ in enumerate(filters):
            leaf = LeafNode(self.build_condition(filter_, alias, obj, renderer))
            if index == 0:
                current = [leaf]
                running = filter_.logical_operator
            elif filter_.logical_operator == running:
                current.append(leaf)
            else:
                groups.append(self._close_group(current, running))
                current = [leaf]
                running = filter_.logical_operator

        groups.append(self._close_group(current, running))
        return AndNode(groups, nested=False)

    def build_condition(self, filter_: Filter, alias: str, obj: ObjectDefinition, renderer: Renderer) -> str:
        """Render one filter as ``alias.column OPERATOR value``."""
        operator = self._resolve_operator(filter_.operator)
        column = self.field_resolver.resolve(obj, filter_.field, operator.value)
        name = f"{alias}.{column}"
        value = filter_.value

        if operator in (FilterOperator.IN, FilterOperator.NOT_IN):
            negated = operator == FilterOperator.NOT_IN
            if isinstance(value, list):
                if not value:
                    raise ValidationError(f"Operator '{operator.value}' on '{filter_.field}' needs at least one value")
                keyword = "NOT IN" if negated else "IN"
                return f"{name} {keyword} ({renderer.render_list(value)})"
            return f"{name} {'!=' if negated else '='} {renderer.render(value)}"

        if isinstance(value, list):
            raise ValidationError(f"Operator '{operator.value}' on '{filter_.field}' does not accept a list value")

        if operator in (FilterOperator.CONTAINS, FilterOperator.NOT_CONTAINS):
            keyword = "NOT LIKE" if operator == FilterOperator.NOT_CONTAINS else "LIKE"
            return f"{name} {keyword} {renderer.render(f'%{value}%')}"

        return f"{name} {SCALAR_OPERATORS[operator]} {renderer.render(value)}"

    def _resolve_operator(self, operator: str) -> FilterOperator:
        try:
            return FilterOperator(operator)
        except ValueError:
            if self.strict_operators:
                raise ValidationError(f"Unsupported filter operator: '{operator}'") from None
            logger.warning("Unsupported filter operator '%s' treated as 'equals'", operator)
            return FilterOperator.EQUALS

    @staticmethod
    def _close_group(members: List[ConditionNode], connector: Optional[LogicalOperator]) -> ConditionNode:
        if connector == LogicalOperator.OR:
            return OrNode(members)
        return AndNode(members)
