# audience_hub/logging/router.py
"""API router for warehouse query execution logs."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from audience_hub.core.dependencies import SessionDep
from audience_hub.logging.dao import QueryExecutionLogDAO
from audience_hub.logging.service import QueryExecutionLogService

router = APIRouter(
    prefix="/query-logs",
    tags=["query-logs"],
)


# ===== DEPENDENCY INJECTION =====


def get_execution_log_dao(session: SessionDep) -> QueryExecutionLogDAO:
    """Get QueryExecutionLogDAO instance."""
    return QueryExecutionLogDAO(session)


def get_execution_log_service(
    dao: QueryExecutionLogDAO = Depends(get_execution_log_dao),
) -> QueryExecutionLogService:
    """Get QueryExecutionLogService instance."""
    return QueryExecutionLogService(dao)


# ===== ENDPOINTS =====


@router.get("", response_model=List[Dict[str, Any]])
def get_query_logs(
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of logs to return"),
    mode: Optional[str] = Query(None, description="Filter by query mode"),
    audience_id: Optional[str] = Query(None, description="Filter by audience"),
    cohort_id: Optional[str] = Query(None, description="Filter by cohort"),
    success: Optional[bool] = Query(None, description="Only successful or only failed executions"),
    service: QueryExecutionLogService = Depends(get_execution_log_service),
) -> List[Dict[str, Any]]:
    """Recent warehouse executions, newest first."""
    return service.get_recent_executions(
        limit=limit, mode=mode, audience_id=audience_id, cohort_id=cohort_id, success=success
    )


@router.get("/performance", response_model=Dict[str, Any])
def get_query_performance(
    days_back: int = Query(30, ge=1, le=365),
    service: QueryExecutionLogService = Depends(get_execution_log_service),
) -> Dict[str, Any]:
    """Execution counts, success rates and average timings per query mode."""
    return service.get_performance_dashboard(days_back)
