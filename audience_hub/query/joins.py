"""
Join assembly for cohort queries.

Listing mode uses a flat FROM/JOIN chain over every configured object. Count
and preview modes use a two-stage join: a ``qualified_<parent>`` CTE holding
the parent rows that pass the company filters, and the child table INNER
JOINed to it. Only a parent/child hierarchy is supported for the two-stage
form.
"""

import logging
import re
from collections import deque
from typing import Dict, List, Optional, Tuple

from .errors import ConfigurationError
from .schemas import AudienceConfiguration, AudienceObject, JoinStrategy, ObjectRole, Relationship
from .sql_validator import validate_join_condition

logger = logging.getLogger(__name__)


class JoinGraphAssembler:
    """Builds FROM/JOIN clauses and parent/child CTE joins for an audience."""

    def __init__(
        self,
        table_prefix: str = "{project}.",
        strategy: JoinStrategy = JoinStrategy.FIRST_MATCH,
        parent_marker_field: str = "ic_acc_name",
        child_marker_field: str = "ic_fname",
        child_key_field: str = "ic_cntid",
    ):
        self.table_prefix = table_prefix
        self.strategy = strategy
        self.parent_marker_field = parent_marker_field
        self.child_marker_field = child_marker_field
        self.child_key_field = child_key_field

    def table_reference(self, audience_object: AudienceObject) -> str:
        return f"`{self.table_prefix}{audience_object.object.physical_table}`"

    # ===== FLAT JOIN (LISTING) =====

    def build_flat_join(self, config: AudienceConfiguration) -> str:
        """Return ``FROM ... [JOIN ... ON ...]`` lines for every configured object."""
        root = config.root
        if root is None:
            raise ConfigurationError("Audience configuration has no objects")

        lines = [f"FROM {self.table_reference(root)} {root.alias}"]
        if self.strategy == JoinStrategy.GRAPH:
            joins = self._graph_joins(config)
        else:
            joins = self._first_match_joins(config)

        for audience_object, relationship in joins:
            condition = validate_join_condition(relationship.join_condition)
            lines.append(f"JOIN {self.table_reference(audience_object)} {audience_object.alias} ON {condition}")
        return "\n".join(lines)

    def _first_match_joins(self, config: AudienceConfiguration) -> List[Tuple[AudienceObject, Relationship]]:
        joins = []
        for audience_object in config.objects[1:]:
            relationship = next(
                (r for r in config.relationships if audience_object.alias in r.join_condition),
                None,
            )
            if relationship is None:
                # Unrelated objects are dropped from the listing
                logger.warning(
                    "No relationship mentions alias '%s'; object '%s' is not joined",
                    audience_object.alias,
                    audience_object.object.name,
                )
                continue
            joins.append((audience_object, relationship))
        return joins

    def _graph_joins(self, config: AudienceConfiguration) -> List[Tuple[AudienceObject, Relationship]]:
        aliases = [o.alias for o in config.objects]
        adjacency: Dict[str, List[Tuple[str, Relationship]]] = {alias: [] for alias in aliases}
        for relationship in config.relationships:
            endpoints = self._relationship_endpoints(relationship, aliases)
            if endpoints is None:
                continue
            left, right = endpoints
            adjacency[left].append((right, relationship))
            adjacency[right].append((left, relationship))

        root_alias = aliases[0]
        visited = {root_alias}
        queue = deque([root_alias])
        joins = []
        while queue:
            current = queue.popleft()
            for neighbour, relationship in adjacency[current]:
                if neighbour in visited:
                    continue
                visited.add(neighbour)
                queue.append(neighbour)
                joins.append((config.get_by_alias(neighbour), relationship))

        unreachable = [alias for alias in aliases if alias not in visited]
        if unreachable:
            raise ConfigurationError(f"Objects not reachable from '{root_alias}' through relationships: {unreachable}")
        return joins

    @staticmethod
    def _relationship_endpoints(relationship: Relationship, aliases: List[str]) -> Optional[Tuple[str, str]]:
        if relationship.from_object_alias and relationship.to_object_alias:
            pair = (relationship.from_object_alias, relationship.to_object_alias)
            if all(alias in aliases for alias in pair):
                return pair
            return None
        mentioned = [a for a in aliases if re.search(rf"\b{re.escape(a)}\.", relationship.join_condition)]
        if len(mentioned) == 2:
            return mentioned[0], mentioned[1]
        return None

    # ===== PARENT / CHILD RESOLUTION =====

    def resolve_hierarchy(self, config: AudienceConfiguration) -> Tuple[AudienceObject, AudienceObject]:
        """Identify the parent (company) and child (contact) objects of an audience."""
        parent = self._find_role(config, ObjectRole.PARENT)
        child = self._find_role(config, ObjectRole.CHILD)

        untagged = [o for o in config.objects if o.role is None]
        if parent is None:
            parent = next((o for o in untagged if o.object.has_field(self.parent_marker_field)), None)
        if child is None:
            child = next(
                (o for o in untagged if o is not parent and o.object.has_field(self.child_marker_field)),
                None,
            )

        if parent is None or child is None:
            raise ConfigurationError("Missing company or contact object configuration")
        return parent, child

    def resolve_listing_targets(
        self, config: AudienceConfiguration
    ) -> Tuple[Optional[AudienceObject], Optional[AudienceObject]]:
        """Objects that company and contact filters apply to in listing mode.

        Each side is taken from its role tag, then from its marker field among
        untagged objects, then from position (first object for companies, the
        next remaining one for contacts). A side stays None only when no object
        is left for it.
        """
        parent = self._find_role(config, ObjectRole.PARENT)
        child = self._find_role(config, ObjectRole.CHILD)

        untagged = [o for o in config.objects if o.role is None]
        if parent is None:
            parent = next(
                (o for o in untagged if o is not child and o.object.has_field(self.parent_marker_field)), None
            )
        if child is None:
            child = next(
                (o for o in untagged if o is not parent and o.object.has_field(self.child_marker_field)), None
            )

        if parent is None:
            parent = next((o for o in untagged if o is not child), None)
        if child is None:
            child = next((o for o in untagged if o is not parent), None)
        return parent, child

    def child_count_key(self, child: AudienceObject) -> str:
        """Column counted distinctly for ``people_count``: the child's primary key, else the configured key."""
        key = child.object.primary_key or self.child_key_field
        if child.object.fields and not child.object.has_field(key):
            raise ConfigurationError(f"Object '{child.object.name}' has no '{key}' field to count people by")
        return key

    @staticmethod
    def _find_role(config: AudienceConfiguration, role: ObjectRole) -> Optional[AudienceObject]:
        tagged = [o for o in config.objects if o.role == role]
        if len(tagged) > 1:
            raise ConfigurationError(f"More than one object tagged as {role.value}")
        return tagged[0] if tagged else None

    # ===== TWO-STAGE CTE JOIN (COUNT / PREVIEW) =====

    @staticmethod
    def qualified_cte_name(parent: AudienceObject) -> str:
        return "qualified_" + re.sub(r"\W+", "_", parent.object.name).strip("_").lower()

    @staticmethod
    def qualified_cte_alias(child: AudienceObject) -> str:
        return "qc" if child.alias != "qc" else "qc_"

    def build_qualified_cte(self, parent: AudienceObject, condition: str, columns: List[str]) -> str:
        """``qualified_<parent> AS (SELECT DISTINCT ... FROM parent [WHERE ...])``."""
        select_list = ",\n    ".join(f"{parent.alias}.{column}" for column in columns)
        lines = [
            f"{self.qualified_cte_name(parent)} AS (",
            "  SELECT DISTINCT",
            f"    {select_list}",
            f"  FROM {self.table_reference(parent)} {parent.alias}",
        ]
        if condition:
            lines.append(f"  WHERE {condition}")
        lines.append(")")
        return "\n".join(lines)

    def build_child_join(self, parent: AudienceObject, child: AudienceObject) -> str:
        """``FROM child INNER JOIN qualified_<parent>`` on the parent's join key."""
        cte_name = self.qualified_cte_name(parent)
        cte_alias = self.qualified_cte_alias(child)
        return (
            f"FROM {self.table_reference(child)} {child.alias}\n"
            f"INNER JOIN {cte_name} {cte_alias} "
            f"ON {child.alias}.{child.object.join_key} = {cte_alias}.{parent.object.join_key}"
        )
