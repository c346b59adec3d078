"""
Core QueryModeAssembler for constructing cohort SQL.

Listing, count and preview SQL are all composed from the same compiled
filter fragments, so every mode sees an identical interpretation of a
cohort's filters.
"""

from typing import List, Optional, Union

from .conditions import ConditionGroupCompiler
from .errors import ConfigurationError, ValidationError
from .joins import JoinGraphAssembler
from .schemas import (
    AudienceConfiguration,
    AudienceObject,
    CohortFilters,
    CompiledQuery,
    ObjectDefinition,
    QueryMode,
)
from .values import LiteralRenderer, ParameterBinder

PREVIEW_ROW_CAP = 25


class QueryModeAssembler:
    """
    Builds the SQL shapes used by the cohort builder.

    Every ``build_*`` method returns a :class:`CompiledQuery`. With
    ``bind_parameters`` off, filter values are inlined as escaped literals and
    ``parameters`` is empty; with it on, values become ``:pN`` placeholders.
    """

    def __init__(
        self,
        condition_compiler: Optional[ConditionGroupCompiler] = None,
        join_assembler: Optional[JoinGraphAssembler] = None,
        preview_limit: int = PREVIEW_ROW_CAP,
    ):
        self.condition_compiler = condition_compiler or ConditionGroupCompiler()
        self.join_assembler = join_assembler or JoinGraphAssembler()
        self.preview_limit = min(preview_limit, PREVIEW_ROW_CAP)

    # ===== LISTING =====

    def build_listing(
        self,
        filters: CohortFilters,
        config: AudienceConfiguration,
        limit: Optional[int] = None,
        bind_parameters: bool = False,
    ) -> CompiledQuery:
        """``SELECT DISTINCT`` of displayable fields over the flat join."""
        renderer = self._renderer(bind_parameters)
        select_fields = []
        for audience_object in config.objects:
            for field_def in audience_object.object.displayable_fields:
                alias = audience_object.alias
                select_fields.append(f"{alias}.{field_def.name} AS {alias}_{field_def.name}")
        if not select_fields:
            raise ConfigurationError("Audience configuration has no displayable fields")

        lines = ["SELECT DISTINCT", "  " + ",\n  ".join(select_fields)]
        lines.append(self.join_assembler.build_flat_join(config))

        where_conditions = []
        parent, child = self.join_assembler.resolve_listing_targets(config)
        for label, filter_list, target in (
            ("company", filters.company_filters, parent),
            ("contact", filters.contact_filters, child),
        ):
            if not filter_list:
                continue
            if target is None:
                raise ConfigurationError(f"No object in the audience to apply {label} filters to")
            condition = self._compile(filter_list, target, renderer)
            if condition:
                where_conditions.append(f"({condition})")

        if where_conditions:
            lines.append("WHERE " + " AND ".join(where_conditions))
        if limit is not None:
            lines.append(f"LIMIT {self._check_limit(limit)}")

        return CompiledQuery(sql="\n".join(lines), mode=QueryMode.LISTING, parameters=renderer.parameters)

    # ===== COUNT =====

    def build_count(
        self,
        filters: CohortFilters,
        config: AudienceConfiguration,
        bind_parameters: bool = False,
    ) -> CompiledQuery:
        """One row with ``company_count`` and ``people_count``."""
        renderer = self._renderer(bind_parameters)
        parent, child = self.join_assembler.resolve_hierarchy(config)
        count_key = self.join_assembler.child_count_key(child)
        parent_condition = self._compile(filters.company_filters, parent, renderer)
        child_condition = self._compile(filters.contact_filters, child, renderer)

        cte_name = self.join_assembler.qualified_cte_name(parent)
        cte = self.join_assembler.build_qualified_cte(parent, parent_condition, [parent.object.join_key])

        people_lines = [
            f"    SELECT COUNT(DISTINCT {child.alias}.{count_key})",
            self._indent(self.join_assembler.build_child_join(parent, child), 4),
        ]
        if child_condition:
            people_lines.append(f"    WHERE {child_condition}")

        sql = "\n".join(
            [
                f"WITH {cte}",
                "SELECT",
                f"  (SELECT COUNT(DISTINCT {parent.object.join_key}) FROM {cte_name}) AS company_count,",
                "  (",
                *people_lines,
                "  ) AS people_count",
            ]
        )
        return CompiledQuery(sql=sql, mode=QueryMode.COUNT, parameters=renderer.parameters)

    # ===== PREVIEW =====

    def preview_row_limit(self, requested: Optional[int] = None) -> int:
        """Requested preview size, never above the hard cap."""
        if requested is None:
            return self.preview_limit
        return min(self._check_limit(requested), self.preview_limit)

    def build_parent_preview(
        self,
        filters: CohortFilters,
        config: AudienceConfiguration,
        limit: Optional[int] = None,
        bind_parameters: bool = False,
    ) -> CompiledQuery:
        """Sample of the qualified parent rows."""
        renderer = self._renderer(bind_parameters)
        parent, _child = self.join_assembler.resolve_hierarchy(config)
        cte = self._preview_cte(filters, parent, renderer)
        sql = "\n".join(
            [
                f"WITH {cte}",
                "SELECT *",
                f"FROM {self.join_assembler.qualified_cte_name(parent)}",
                f"LIMIT {self.preview_row_limit(limit)}",
            ]
        )
        return CompiledQuery(sql=sql, mode=QueryMode.PREVIEW_PARENT, parameters=renderer.parameters)

    def build_child_preview(
        self,
        filters: CohortFilters,
        config: AudienceConfiguration,
        limit: Optional[int] = None,
        bind_parameters: bool = False,
    ) -> CompiledQuery:
        """Sample of child rows belonging to qualified parents."""
        renderer = self._renderer(bind_parameters)
        parent, child = self.join_assembler.resolve_hierarchy(config)
        cte = self._preview_cte(filters, parent, renderer)
        child_condition = self._compile(filters.contact_filters, child, renderer)

        columns = [f.name for f in child.object.displayable_fields]
        select_list = ",\n  ".join(f"{child.alias}.{c}" for c in columns) if columns else f"{child.alias}.*"
        lines = [
            f"WITH {cte}",
            "SELECT DISTINCT",
            f"  {select_list}",
            self.join_assembler.build_child_join(parent, child),
        ]
        if child_condition:
            lines.append(f"WHERE {child_condition}")
        lines.append(f"LIMIT {self.preview_row_limit(limit)}")
        return CompiledQuery(sql="\n".join(lines), mode=QueryMode.PREVIEW_CHILD, parameters=renderer.parameters)

    # ===== OBJECT-LEVEL QUERIES =====

    def build_distinct_values(
        self,
        target: Union[AudienceObject, ObjectDefinition],
        field_name: str,
        limit: Optional[int] = None,
    ) -> CompiledQuery:
        """Distinct non-null values of one field, for filter value pickers."""
        audience_object = self._as_audience_object(target)
        obj = audience_object.object
        field_def = obj.get_field(field_name)
        if field_def is None or not field_def.has_distinct_values:
            raise ConfigurationError(f"Field '{field_name}' on object '{obj.name}' does not expose distinct values")

        caps = [value for value in (limit, field_def.distinct_values_limit) if value]
        lines = [
            f"SELECT DISTINCT {field_def.name} AS value",
            f"FROM {self.join_assembler.table_reference(audience_object)}",
            f"WHERE {field_def.name} IS NOT NULL",
            f"ORDER BY {field_def.name}",
        ]
        if caps:
            lines.append(f"LIMIT {self._check_limit(min(caps))}")
        return CompiledQuery(sql="\n".join(lines), mode=QueryMode.DISTINCT_VALUES)

    def build_object_data(self, target: Union[AudienceObject, ObjectDefinition], limit: int) -> CompiledQuery:
        """First ``limit`` rows of an object's table, all catalogued fields."""
        audience_object = self._as_audience_object(target)
        columns = [f.name for f in audience_object.object.fields]
        if not columns:
            raise ConfigurationError(f"Object '{audience_object.object.name}' has no fields")
        sql = "\n".join(
            [
                "SELECT",
                "  " + ",\n  ".join(columns),
                f"FROM {self.join_assembler.table_reference(audience_object)}",
                f"LIMIT {self._check_limit(limit)}",
            ]
        )
        return CompiledQuery(sql=sql, mode=QueryMode.OBJECT_DATA)

    # ===== HELPERS =====

    def _preview_cte(self, filters: CohortFilters, parent: AudienceObject, renderer) -> str:
        join_key = parent.object.join_key
        columns = [join_key] + [f.name for f in parent.object.displayable_fields if f.name != join_key]
        condition = self._compile(filters.company_filters, parent, renderer)
        return self.join_assembler.build_qualified_cte(parent, condition, columns)

    def _compile(self, filters, audience_object: AudienceObject, renderer) -> str:
        return self.condition_compiler.compile(filters, audience_object.alias, audience_object.object, renderer)

    @staticmethod
    def _renderer(bind_parameters: bool):
        return ParameterBinder() if bind_parameters else LiteralRenderer()

    @staticmethod
    def _check_limit(limit) -> int:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValidationError(f"Limit must be a positive integer, got {limit!r}")
        return limit

    @staticmethod
    def _as_audience_object(target: Union[AudienceObject, ObjectDefinition]) -> AudienceObject:
        if isinstance(target, AudienceObject):
            return target
        return AudienceObject(object=target, alias="t")

    @staticmethod
    def _indent(text: str, spaces: int) -> str:
        pad = " " * spaces
        return "\n".join(pad + line for line in text.splitlines())
