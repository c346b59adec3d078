# audience_hub/audiences/service.py
"""Service layer for audiences, cohorts and warehouse objects."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from audience_hub.audiences.dao import AudienceDAO, CohortDAO, ObjectRelationshipDAO, WarehouseObjectDAO
from audience_hub.audiences.models import Cohort, WarehouseObject
from audience_hub.audiences.schemas import CohortCreate, CohortRead, CohortUpdate, ObjectRead
from audience_hub.core.config import Settings
from audience_hub.logging.service import QueryExecutionLogService
from audience_hub.query.engine import SQLQueryAssembler
from audience_hub.query.errors import AudienceQueryError
from audience_hub.query.schemas import (
    AudienceConfiguration,
    CohortFilters,
    CountResult,
    ExecutionContext,
    ObjectDefinition,
    PreviewResult,
)
from audience_hub.query.sql_validator import format_sql

logger = logging.getLogger(__name__)

COHORT_STATUS_PROCESSING = "processing"
COHORT_STATUS_ACTIVE = "active"
COHORT_STATUS_ERROR = "error"


def object_definition_from_record(record: WarehouseObject) -> ObjectDefinition:
    """Compiler view of a persisted object."""
    return ObjectDefinition.model_validate(
        {
            "name": record.name,
            "displayName": record.display_name,
            "physicalTable": record.physical_table,
            "fields": record.fields or [],
            "joinKey": record.join_key,
            "primaryKey": record.primary_key,
        }
    )


class AudienceConfigurationSource:
    """Builds an AudienceConfiguration from persisted audience, object and relationship records."""

    def __init__(self, audience_dao: AudienceDAO, relationship_dao: ObjectRelationshipDAO):
        self.audience_dao = audience_dao
        self.relationship_dao = relationship_dao

    def get_configuration(self, audience_id: str) -> AudienceConfiguration:
        audience = self.audience_dao.get_with_objects(audience_id)
        if not audience:
            raise HTTPException(status_code=404, detail=f"Audience {audience_id} not found")

        aliases: Dict[int, str] = {}
        objects = []
        for link in audience.objects:
            aliases.setdefault(link.object_id, link.alias)
            objects.append(
                {
                    "object": object_definition_from_record(link.object),
                    "alias": link.alias,
                    "role": link.role,
                }
            )

        relationships = [
            {
                "fromObjectAlias": aliases[relationship.from_object_id],
                "toObjectAlias": aliases[relationship.to_object_id],
                "joinCondition": relationship.join_condition,
            }
            for relationship in self.relationship_dao.get_between(list(aliases))
        ]
        return AudienceConfiguration.parse({"objects": objects, "relationships": relationships})


class CohortService:
    """Cohort lifecycle plus ad-hoc filter queries against an audience."""

    def __init__(
        self,
        cohort_dao: CohortDAO,
        configuration_source: AudienceConfigurationSource,
        assembler: SQLQueryAssembler,
        settings: Settings,
        execution_log_service: Optional[QueryExecutionLogService] = None,
    ):
        self.cohort_dao = cohort_dao
        self.configuration_source = configuration_source
        self.assembler = assembler
        self.settings = settings
        self.execution_log_service = execution_log_service

    def _to_response(self, cohort: Cohort) -> CohortRead:
        return CohortRead.model_validate(cohort)

    def _get_or_404(self, cohort_id: str) -> Cohort:
        cohort = self.cohort_dao.get_by_id(cohort_id)
        if not cohort:
            raise HTTPException(status_code=404, detail=f"Cohort {cohort_id} not found")
        return cohort

    def _assembler_for(self, audience_id: Optional[str] = None, cohort_id: Optional[str] = None) -> SQLQueryAssembler:
        if self.execution_log_service is None:
            return self.assembler
        return SQLQueryAssembler(
            self.assembler.builder,
            default_timeout_seconds=self.assembler.default_timeout_seconds,
            execution_listener=self.execution_log_service.as_listener(audience_id=audience_id, cohort_id=cohort_id),
        )

    # ===== COHORT CRUD =====

    def list_cohorts(
        self,
        tenant_id: Optional[str] = None,
        audience_id: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[CohortRead]:
        cohorts = self.cohort_dao.get_cohorts(
            tenant_id=tenant_id, audience_id=audience_id, search=search, skip=skip, limit=limit
        )
        return [self._to_response(cohort) for cohort in cohorts]

    def get_cohort(self, cohort_id: str) -> CohortRead:
        return self._to_response(self._get_or_404(cohort_id))

    async def create_cohort(
        self,
        cohort_data: CohortCreate,
        context: Optional[ExecutionContext] = None,
        executor=None,
    ) -> CohortRead:
        """Persist a cohort in ``processing`` state; counts are computed when a connection is given."""
        config = self.configuration_source.get_configuration(cohort_data.audience_id)
        # Reject filters that cannot compile before anything is stored
        self.assembler.compile_count(cohort_data.filters, config)

        cohort = self.cohort_dao.create(
            audience_id=cohort_data.audience_id,
            name=cohort_data.name,
            description=cohort_data.description,
            tenant_id=cohort_data.tenant_id,
            created_by=cohort_data.created_by,
            filters=cohort_data.filters.to_payload(),
            status=COHORT_STATUS_PROCESSING,
        )
        logger.info("Created cohort %s on audience %s", cohort.id, cohort.audience_id)

        if context is not None and executor is not None:
            try:
                await self._refresh_counts(cohort, config, context, executor)
            except AudienceQueryError as e:
                logger.warning("Initial count for cohort %s failed: %s", cohort.id, e)
        return self._to_response(cohort)

    def update_cohort(self, cohort_id: str, cohort_data: CohortUpdate) -> CohortRead:
        cohort = self._get_or_404(cohort_id)
        data = cohort_data.model_dump(exclude_unset=True, exclude={"filters"})
        if cohort_data.filters is not None:
            config = self.configuration_source.get_configuration(cohort.audience_id)
            self.assembler.compile_count(cohort_data.filters, config)
            data.update(
                filters=cohort_data.filters.to_payload(),
                status=COHORT_STATUS_PROCESSING,
                last_processed_at=None,
                error_message=None,
            )
        return self._to_response(self.cohort_dao.update(cohort, **data))

    def delete_cohort(self, cohort_id: str) -> bool:
        self._get_or_404(cohort_id)
        return self.cohort_dao.delete(cohort_id)

    # ===== STORED COHORT QUERIES =====

    async def get_cohort_counts(
        self,
        cohort_id: str,
        context: ExecutionContext,
        executor,
        force_refresh: bool = False,
    ) -> CountResult:
        """Cached counts while fresh; otherwise recomputed from the warehouse."""
        cohort = self._get_or_404(cohort_id)
        if not force_refresh and self._counts_are_fresh(cohort):
            return CountResult(company_count=cohort.company_count or 0, people_count=cohort.people_count or 0)

        config = self.configuration_source.get_configuration(cohort.audience_id)
        return await self._refresh_counts(cohort, config, context, executor)

    def _counts_are_fresh(self, cohort: Cohort) -> bool:
        if cohort.status != COHORT_STATUS_ACTIVE or cohort.last_processed_at is None:
            return False
        ttl = timedelta(hours=self.settings.cohort_count_ttl_hours)
        return datetime.now() - cohort.last_processed_at < ttl

    async def _refresh_counts(
        self, cohort: Cohort, config: AudienceConfiguration, context: ExecutionContext, executor
    ) -> CountResult:
        assembler = self._assembler_for(audience_id=cohort.audience_id, cohort_id=cohort.id)
        try:
            counts = await assembler.get_counts(cohort.filters, config, context, executor)
        except AudienceQueryError as e:
            self.cohort_dao.update(cohort, status=COHORT_STATUS_ERROR, error_message=str(e))
            raise

        self.cohort_dao.update(
            cohort,
            company_count=counts.company_count,
            people_count=counts.people_count,
            status=COHORT_STATUS_ACTIVE,
            last_processed_at=datetime.now(),
            error_message=None,
        )
        return counts

    async def preview_cohort_data(
        self,
        cohort_id: str,
        context: ExecutionContext,
        executor,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Listing rows for a stored cohort, capped at the default listing limit."""
        cohort = self._get_or_404(cohort_id)
        config = self.configuration_source.get_configuration(cohort.audience_id)
        assembler = self._assembler_for(audience_id=cohort.audience_id, cohort_id=cohort.id)
        return await assembler.execute(
            cohort.filters, config, context, executor, limit or self.settings.cohort_default_listing_limit
        )

    async def download_cohort_data(self, cohort_id: str, context: ExecutionContext, executor) -> List[Dict[str, Any]]:
        """Every listing row for a stored cohort."""
        cohort = self._get_or_404(cohort_id)
        config = self.configuration_source.get_configuration(cohort.audience_id)
        assembler = self._assembler_for(audience_id=cohort.audience_id, cohort_id=cohort.id)
        return await assembler.execute(cohort.filters, config, context, executor, limit=None)

    def generate_cohort_sql(self, cohort_id: str, limit: Optional[int] = None, pretty: bool = False) -> str:
        cohort = self._get_or_404(cohort_id)
        config = self.configuration_source.get_configuration(cohort.audience_id)
        sql = self.assembler.generate_sql(cohort.filters, config, limit)
        return format_sql(sql) if pretty else sql

    # ===== AD-HOC FILTER QUERIES =====

    async def get_filter_counts(
        self, audience_id: str, filters: CohortFilters, context: ExecutionContext, executor
    ) -> CountResult:
        config = self.configuration_source.get_configuration(audience_id)
        return await self._assembler_for(audience_id=audience_id).get_counts(filters, config, context, executor)

    async def get_filter_preview(
        self,
        audience_id: str,
        filters: CohortFilters,
        context: ExecutionContext,
        executor,
        limit: Optional[int] = None,
    ) -> PreviewResult:
        config = self.configuration_source.get_configuration(audience_id)
        return await self._assembler_for(audience_id=audience_id).get_preview(filters, config, context, executor, limit)

    async def get_filter_data(
        self,
        audience_id: str,
        filters: CohortFilters,
        context: ExecutionContext,
        executor,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        config = self.configuration_source.get_configuration(audience_id)
        assembler = self._assembler_for(audience_id=audience_id)
        return await assembler.execute(
            filters, config, context, executor, limit or self.settings.cohort_default_listing_limit
        )

    def get_filter_sql(
        self, audience_id: str, filters: CohortFilters, limit: Optional[int] = None, pretty: bool = False
    ) -> str:
        config = self.configuration_source.get_configuration(audience_id)
        sql = self.assembler.generate_sql(filters, config, limit)
        return format_sql(sql) if pretty else sql


class ObjectService:
    """Warehouse object catalog and object-level warehouse queries."""

    def __init__(
        self,
        object_dao: WarehouseObjectDAO,
        assembler: SQLQueryAssembler,
        execution_log_service: Optional[QueryExecutionLogService] = None,
    ):
        self.object_dao = object_dao
        self.assembler = assembler
        self.execution_log_service = execution_log_service

    def list_objects(self) -> List[ObjectRead]:
        return [ObjectRead.model_validate(record) for record in self.object_dao.get_all_ordered()]

    def get_object_definition(self, object_id: int) -> ObjectDefinition:
        record = self.object_dao.get_by_id(object_id)
        if not record:
            raise HTTPException(status_code=404, detail=f"Object {object_id} not found")
        return object_definition_from_record(record)

    def _logged(self) -> SQLQueryAssembler:
        if self.execution_log_service is None:
            return self.assembler
        return SQLQueryAssembler(
            self.assembler.builder,
            default_timeout_seconds=self.assembler.default_timeout_seconds,
            execution_listener=self.execution_log_service.as_listener(),
        )

    async def get_field_distinct_values(
        self,
        object_id: int,
        field_name: str,
        context: ExecutionContext,
        executor,
        limit: Optional[int] = None,
    ) -> List[Any]:
        """Values for a filter picker; empty when the field does not expose distinct values."""
        definition = self.get_object_definition(object_id)
        if not definition.has_field(field_name):
            raise HTTPException(status_code=404, detail=f"Field '{field_name}' not found on object {object_id}")
        rows = await self._logged().get_field_distinct_values(definition, field_name, context, executor, limit)
        return [row.get("value") for row in rows]

    async def get_object_data(
        self, object_id: int, context: ExecutionContext, executor, limit: int = 100
    ) -> List[Dict[str, Any]]:
        definition = self.get_object_definition(object_id)
        return await self._logged().get_object_data(definition, context, executor, limit)

    async def test_connection(self, context: ExecutionContext, executor) -> bool:
        return await self.assembler.test_connection(context, executor)
