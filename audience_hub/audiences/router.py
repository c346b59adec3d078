# audience_hub/audiences/router.py
"""API routers for ad-hoc audience filters, cohorts and warehouse objects."""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response

from audience_hub.audiences.dao import AudienceDAO, CohortDAO, ObjectRelationshipDAO, WarehouseObjectDAO
from audience_hub.audiences.schemas import (
    CohortCreate,
    CohortRead,
    CohortUpdate,
    ConnectionTestResponse,
    CountResponse,
    DataResponse,
    DistinctValuesResponse,
    ObjectRead,
    PreviewResponse,
    SqlResponse,
)
from audience_hub.audiences.service import AudienceConfigurationSource, CohortService, ObjectService
from audience_hub.core.dependencies import (
    AssemblerDep,
    ContextDep,
    ExecutorDep,
    OptionalContextDep,
    SessionDep,
    SettingsDep,
)
from audience_hub.logging.dao import QueryExecutionLogDAO
from audience_hub.logging.service import QueryExecutionLogService
from audience_hub.query.schemas import CohortFilters

audience_router = APIRouter(prefix="/audiences", tags=["audiences"])
cohort_router = APIRouter(prefix="/cohorts", tags=["cohorts"])
object_router = APIRouter(prefix="/objects", tags=["objects"])
connection_router = APIRouter(prefix="/connections", tags=["connections"])


# ===== DEPENDENCY INJECTION =====


def get_configuration_source(session: SessionDep) -> AudienceConfigurationSource:
    """Get AudienceConfigurationSource instance."""
    return AudienceConfigurationSource(AudienceDAO(session), ObjectRelationshipDAO(session))


def get_execution_log_service(session: SessionDep) -> QueryExecutionLogService:
    """Get QueryExecutionLogService instance."""
    return QueryExecutionLogService(QueryExecutionLogDAO(session))


def get_cohort_service(
    session: SessionDep,
    assembler: AssemblerDep,
    settings: SettingsDep,
    configuration_source: AudienceConfigurationSource = Depends(get_configuration_source),
    execution_log_service: QueryExecutionLogService = Depends(get_execution_log_service),
) -> CohortService:
    """Get CohortService instance."""
    return CohortService(CohortDAO(session), configuration_source, assembler, settings, execution_log_service)


def get_object_service(
    session: SessionDep,
    assembler: AssemblerDep,
    execution_log_service: QueryExecutionLogService = Depends(get_execution_log_service),
) -> ObjectService:
    """Get ObjectService instance."""
    return ObjectService(WarehouseObjectDAO(session), assembler, execution_log_service)


def _count_response(counts) -> CountResponse:
    return CountResponse(company_count=counts.company_count, people_count=counts.people_count)


# ===== AD-HOC FILTER ENDPOINTS =====


@audience_router.post("/{audience_id}/filters/counts", response_model=CountResponse)
async def get_filter_counts(
    audience_id: str,
    filters: CohortFilters,
    context: ContextDep,
    executor: ExecutorDep,
    service: CohortService = Depends(get_cohort_service),
) -> CountResponse:
    """Distinct company and people counts for unsaved filters."""
    counts = await service.get_filter_counts(audience_id, filters, context, executor)
    return _count_response(counts)


@audience_router.post("/{audience_id}/filters/preview", response_model=PreviewResponse)
async def get_filter_preview(
    audience_id: str,
    filters: CohortFilters,
    context: ContextDep,
    executor: ExecutorDep,
    limit: Optional[int] = Query(None, ge=1, description="Rows per sample, never more than 25"),
    service: CohortService = Depends(get_cohort_service),
) -> PreviewResponse:
    """Company and contact samples for unsaved filters."""
    preview = await service.get_filter_preview(audience_id, filters, context, executor, limit)
    return PreviewResponse(company_preview=preview.company_preview, contact_preview=preview.contact_preview)


@audience_router.post("/{audience_id}/filters/data", response_model=DataResponse)
async def get_filter_data(
    audience_id: str,
    filters: CohortFilters,
    context: ContextDep,
    executor: ExecutorDep,
    limit: Optional[int] = Query(None, ge=1, le=10000),
    service: CohortService = Depends(get_cohort_service),
) -> DataResponse:
    """Listing rows for unsaved filters."""
    rows = await service.get_filter_data(audience_id, filters, context, executor, limit)
    return DataResponse(rows=rows, row_count=len(rows))


@audience_router.post("/{audience_id}/filters/sql", response_model=SqlResponse)
def get_filter_sql(
    audience_id: str,
    filters: CohortFilters,
    limit: Optional[int] = Query(None, ge=1),
    pretty: bool = Query(False, description="Reindent the SQL for reading"),
    service: CohortService = Depends(get_cohort_service),
) -> SqlResponse:
    """Listing SQL with inline literals, for display."""
    return SqlResponse(sql=service.get_filter_sql(audience_id, filters, limit, pretty))


# ===== COHORT ENDPOINTS =====


@cohort_router.get("", response_model=List[CohortRead])
def get_cohorts(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant"),
    audience_id: Optional[str] = Query(None, description="Filter by audience"),
    search: Optional[str] = Query(None, description="Search cohort names and descriptions"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    service: CohortService = Depends(get_cohort_service),
) -> List[CohortRead]:
    """List cohorts, newest first."""
    return service.list_cohorts(tenant_id=tenant_id, audience_id=audience_id, search=search, skip=skip, limit=limit)


@cohort_router.post("", response_model=CohortRead, status_code=201)
async def create_cohort(
    cohort_data: CohortCreate,
    context: OptionalContextDep,
    executor: ExecutorDep,
    service: CohortService = Depends(get_cohort_service),
) -> CohortRead:
    """Save a cohort; counts are computed immediately when X-Connection-Id is sent."""
    return await service.create_cohort(cohort_data, context, executor)


@cohort_router.get("/{cohort_id}", response_model=CohortRead)
def get_cohort(cohort_id: str, service: CohortService = Depends(get_cohort_service)) -> CohortRead:
    return service.get_cohort(cohort_id)


@cohort_router.patch("/{cohort_id}", response_model=CohortRead)
def update_cohort(
    cohort_id: str,
    cohort_data: CohortUpdate,
    service: CohortService = Depends(get_cohort_service),
) -> CohortRead:
    """Update a cohort; changed filters invalidate cached counts."""
    return service.update_cohort(cohort_id, cohort_data)


@cohort_router.delete("/{cohort_id}")
def delete_cohort(cohort_id: str, service: CohortService = Depends(get_cohort_service)) -> Dict[str, str]:
    service.delete_cohort(cohort_id)
    return {"message": f"Cohort {cohort_id} deleted successfully"}


@cohort_router.get("/{cohort_id}/counts", response_model=CountResponse)
async def get_cohort_counts(
    cohort_id: str,
    context: ContextDep,
    executor: ExecutorDep,
    force_refresh: bool = Query(False, description="Ignore cached counts"),
    service: CohortService = Depends(get_cohort_service),
) -> CountResponse:
    """Cohort counts, served from cache while fresh."""
    counts = await service.get_cohort_counts(cohort_id, context, executor, force_refresh=force_refresh)
    return _count_response(counts)


@cohort_router.get("/{cohort_id}/data", response_model=DataResponse)
async def get_cohort_data(
    cohort_id: str,
    context: ContextDep,
    executor: ExecutorDep,
    limit: Optional[int] = Query(None, ge=1, le=10000),
    service: CohortService = Depends(get_cohort_service),
) -> DataResponse:
    """Listing rows for a saved cohort."""
    rows = await service.preview_cohort_data(cohort_id, context, executor, limit)
    return DataResponse(rows=rows, row_count=len(rows))


@cohort_router.get("/{cohort_id}/download", response_model=DataResponse)
async def download_cohort_data(
    cohort_id: str,
    response: Response,
    context: ContextDep,
    executor: ExecutorDep,
    service: CohortService = Depends(get_cohort_service),
) -> DataResponse:
    """Every listing row for a saved cohort, as a JSON attachment."""
    rows = await service.download_cohort_data(cohort_id, context, executor)
    response.headers["Content-Disposition"] = f'attachment; filename="cohort-{cohort_id}-data.json"'
    return DataResponse(rows=rows, row_count=len(rows))


@cohort_router.get("/{cohort_id}/sql", response_model=SqlResponse)
def get_cohort_sql(
    cohort_id: str,
    limit: Optional[int] = Query(None, ge=1),
    pretty: bool = Query(False, description="Reindent the SQL for reading"),
    service: CohortService = Depends(get_cohort_service),
) -> SqlResponse:
    return SqlResponse(sql=service.generate_cohort_sql(cohort_id, limit, pretty))


# ===== OBJECT ENDPOINTS =====


@object_router.get("", response_model=List[ObjectRead])
def get_objects(service: ObjectService = Depends(get_object_service)) -> List[ObjectRead]:
    """All warehouse objects with their field catalogs."""
    return service.list_objects()


@object_router.get("/{object_id}/fields/{field_name}/values", response_model=DistinctValuesResponse)
async def get_field_values(
    object_id: int,
    field_name: str,
    context: ContextDep,
    executor: ExecutorDep,
    limit: Optional[int] = Query(None, ge=1, le=10000),
    service: ObjectService = Depends(get_object_service),
) -> DistinctValuesResponse:
    """Distinct values of a field for filter pickers."""
    values = await service.get_field_distinct_values(object_id, field_name, context, executor, limit)
    return DistinctValuesResponse(object_id=object_id, field=field_name, values=values)


@object_router.get("/{object_id}/data", response_model=DataResponse)
async def get_object_data(
    object_id: int,
    context: ContextDep,
    executor: ExecutorDep,
    limit: int = Query(100, ge=1, le=10000),
    service: ObjectService = Depends(get_object_service),
) -> DataResponse:
    """Sample rows of an object's table."""
    rows = await service.get_object_data(object_id, context, executor, limit)
    return DataResponse(rows=rows, row_count=len(rows))


# ===== CONNECTION ENDPOINTS =====


@connection_router.get("/test", response_model=ConnectionTestResponse)
async def test_connection(
    context: ContextDep,
    executor: ExecutorDep,
    service: ObjectService = Depends(get_object_service),
) -> ConnectionTestResponse:
    """Check that the warehouse connection in X-Connection-Id answers a trivial query."""
    ok = await service.test_connection(context, executor)
    return ConnectionTestResponse(connection_id=context.connection_id, ok=ok)
