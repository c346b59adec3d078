"""
SQLQueryAssembler: unified interface for cohort SQL generation and execution.

SQL shown to users (``generate_sql``) has literals inlined. SQL sent to the
warehouse always goes through the parameter-binding path, with the
connection, project and timeout supplied per call in an ExecutionContext.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from .builder import QueryModeAssembler
from .conditions import ConditionGroupCompiler
from .errors import AudienceQueryError, ExecutionError
from .fields import FieldResolver
from .joins import JoinGraphAssembler
from .schemas import (
    AudienceConfiguration,
    AudienceObject,
    CohortFilters,
    CompiledQuery,
    CountResult,
    ExecutionContext,
    JoinStrategy,
    ObjectDefinition,
    PreviewResult,
)

logger = logging.getLogger(__name__)

FiltersInput = Union[CohortFilters, Dict[str, Any]]
ConfigInput = Union[AudienceConfiguration, Dict[str, Any]]

# Called after every warehouse execution with
# (compiled query, context, duration in ms, row count or None, error or None)
ExecutionListener = Callable[[CompiledQuery, ExecutionContext, float, Optional[int], Optional[BaseException]], None]


class SQLQueryAssembler:
    """Facade over the cohort query compiler and the warehouse executor."""

    def __init__(
        self,
        builder: Optional[QueryModeAssembler] = None,
        default_timeout_seconds: Optional[float] = None,
        execution_listener: Optional[ExecutionListener] = None,
    ):
        self.builder = builder or QueryModeAssembler()
        self.default_timeout_seconds = default_timeout_seconds
        self.execution_listener = execution_listener

    @classmethod
    def from_settings(cls, settings, execution_listener: Optional[ExecutionListener] = None) -> "SQLQueryAssembler":
        """Wire the compiler components from application settings."""
        resolver = FieldResolver(strict=settings.strict_fields)
        compiler = ConditionGroupCompiler(resolver, strict_operators=settings.strict_operators)
        joins = JoinGraphAssembler(
            table_prefix=settings.warehouse_table_prefix,
            strategy=JoinStrategy(settings.join_strategy),
            parent_marker_field=settings.parent_marker_field,
            child_marker_field=settings.child_marker_field,
            child_key_field=settings.child_key_field,
        )
        builder = QueryModeAssembler(compiler, joins, preview_limit=settings.cohort_preview_limit)
        return cls(
            builder,
            default_timeout_seconds=settings.warehouse_query_timeout_seconds,
            execution_listener=execution_listener,
        )

    # ===== SQL GENERATION =====

    def generate_sql(self, filters: FiltersInput, config: ConfigInput, limit: Optional[int] = None) -> str:
        """Listing SQL with inline literals. Pure: same inputs give identical text."""
        return self.builder.build_listing(CohortFilters.parse(filters), AudienceConfiguration.parse(config), limit).sql

    def compile_listing(self, filters: FiltersInput, config: ConfigInput, limit: Optional[int] = None) -> CompiledQuery:
        return self.builder.build_listing(
            CohortFilters.parse(filters), AudienceConfiguration.parse(config), limit, bind_parameters=True
        )

    def compile_count(self, filters: FiltersInput, config: ConfigInput, bind_parameters: bool = True) -> CompiledQuery:
        return self.builder.build_count(
            CohortFilters.parse(filters), AudienceConfiguration.parse(config), bind_parameters=bind_parameters
        )

    def compile_preview(
        self,
        filters: FiltersInput,
        config: ConfigInput,
        limit: Optional[int] = None,
        bind_parameters: bool = True,
    ) -> List[CompiledQuery]:
        """Parent and child preview queries, in that order."""
        parsed_filters = CohortFilters.parse(filters)
        parsed_config = AudienceConfiguration.parse(config)
        return [
            self.builder.build_parent_preview(parsed_filters, parsed_config, limit, bind_parameters),
            self.builder.build_child_preview(parsed_filters, parsed_config, limit, bind_parameters),
        ]

    # ===== EXECUTION =====

    async def execute(
        self,
        filters: FiltersInput,
        config: ConfigInput,
        context: ExecutionContext,
        executor,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Run the listing query and return its rows."""
        compiled = self.compile_listing(filters, config, limit)
        return await self._run(compiled, context, executor)

    async def get_counts(
        self, filters: FiltersInput, config: ConfigInput, context: ExecutionContext, executor
    ) -> CountResult:
        """Distinct company and people counts for the filters."""
        compiled = self.compile_count(filters, config)
        rows = await self._run(compiled, context, executor)
        if not rows:
            raise ExecutionError("Count query returned no rows", mode=compiled.mode.value, sql=compiled.sql)

        row = rows[0]
        try:
            return CountResult(
                company_count=int(row.get("company_count") or 0),
                people_count=int(row.get("people_count") or 0),
            )
        except (TypeError, ValueError) as e:
            raise ExecutionError(
                f"Count query returned non-numeric values: {row}", mode=compiled.mode.value, sql=compiled.sql
            ) from e

    async def get_preview(
        self,
        filters: FiltersInput,
        config: ConfigInput,
        context: ExecutionContext,
        executor,
        limit: Optional[int] = None,
    ) -> PreviewResult:
        """Parent and child samples, fetched concurrently; both must succeed."""
        parent_query, child_query = self.compile_preview(filters, config, limit)
        tasks = [
            asyncio.ensure_future(self._run(parent_query, context, executor)),
            asyncio.ensure_future(self._run(child_query, context, executor)),
        ]
        try:
            company_rows, contact_rows = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        cap = self.builder.preview_row_limit(limit)
        return PreviewResult(company_preview=company_rows[:cap], contact_preview=contact_rows[:cap])

    async def get_field_distinct_values(
        self,
        target: Union[AudienceObject, ObjectDefinition],
        field_name: str,
        context: ExecutionContext,
        executor,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Distinct values of a field; empty when the field does not expose them."""
        obj = target.object if isinstance(target, AudienceObject) else target
        field_def = obj.get_field(field_name)
        if field_def is None or not field_def.has_distinct_values:
            return []
        compiled = self.builder.build_distinct_values(target, field_name, limit)
        return await self._run(compiled, context, executor)

    async def get_object_data(
        self,
        target: Union[AudienceObject, ObjectDefinition],
        context: ExecutionContext,
        executor,
        limit: int,
    ) -> List[Dict[str, Any]]:
        compiled = self.builder.build_object_data(target, limit)
        return await self._run(compiled, context, executor)

    async def test_connection(self, context: ExecutionContext, executor) -> bool:
        return await executor.validate_connection(context)

    async def _run(self, compiled: CompiledQuery, context: ExecutionContext, executor) -> List[Dict[str, Any]]:
        timeout = context.timeout_seconds or self.default_timeout_seconds
        mode = compiled.mode.value
        start_time = time.time()
        try:
            rows = await asyncio.wait_for(
                executor.execute_query(context, compiled.sql, compiled.parameters), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            error = ExecutionError(f"Warehouse query timed out after {timeout}s", mode=mode, sql=compiled.sql)
            self._notify(compiled, context, start_time, None, error)
            raise error from e
        except AudienceQueryError as e:
            self._notify(compiled, context, start_time, None, e)
            raise
        except Exception as e:
            logger.error("Warehouse %s query failed on connection '%s': %s", mode, context.connection_id, e)
            error = ExecutionError(f"Failed to execute {mode} query: {e}", mode=mode, sql=compiled.sql)
            self._notify(compiled, context, start_time, None, error)
            raise error from e

        self._notify(compiled, context, start_time, len(rows), None)
        return rows

    def _notify(
        self,
        compiled: CompiledQuery,
        context: ExecutionContext,
        start_time: float,
        row_count: Optional[int],
        error: Optional[BaseException],
    ) -> None:
        if self.execution_listener is None:
            return
        duration_ms = (time.time() - start_time) * 1000
        try:
            self.execution_listener(compiled, context, duration_ms, row_count, error)
        except Exception as listener_error:
            logger.error("Execution listener failed: %s", listener_error)
