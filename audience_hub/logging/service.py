# audience_hub/logging/service.py
"""Service for recording and reading warehouse query executions."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from audience_hub.core.config import get_settings
from audience_hub.logging.dao import QueryExecutionLogDAO
from audience_hub.logging.models import QueryExecutionLog
from audience_hub.query.schemas import CompiledQuery, ExecutionContext

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 1000


class QueryExecutionLogService:
    """Persists one log row per warehouse execution and formats them for the API."""

    def __init__(self, execution_log_dao: QueryExecutionLogDAO):
        self.execution_log_dao = execution_log_dao

    def log_execution(
        self,
        compiled: CompiledQuery,
        context: ExecutionContext,
        execution_time_ms: Optional[float] = None,
        row_count: Optional[int] = None,
        error: Optional[BaseException] = None,
        audience_id: Optional[str] = None,
        cohort_id: Optional[str] = None,
    ) -> QueryExecutionLog:
        """Log a query execution with its timing and outcome."""
        if execution_time_ms is not None and execution_time_ms < 0:
            execution_time_ms = 0.0

        error_message = str(error) if error is not None else None
        # Truncate error message if too long
        if error_message and len(error_message) > MAX_ERROR_LENGTH:
            error_message = error_message[: MAX_ERROR_LENGTH - 3] + "..."

        return self.execution_log_dao.create(
            mode=compiled.mode.value,
            audience_id=audience_id,
            cohort_id=cohort_id,
            connection_id=context.connection_id,
            project=context.project,
            sql_text=compiled.sql,
            parameters=compiled.parameters or None,
            execution_time_ms=execution_time_ms,
            row_count=row_count,
            success=error is None,
            error_message=error_message,
            application_id=get_settings().application_id,
            executed_at=datetime.now(),
        )

    def as_listener(self, audience_id: Optional[str] = None, cohort_id: Optional[str] = None):
        """Execution listener that records runs against the given audience or cohort."""

        def listener(compiled, context, duration_ms, row_count, error):
            self.log_execution(
                compiled,
                context,
                execution_time_ms=duration_ms,
                row_count=row_count,
                error=error,
                audience_id=audience_id,
                cohort_id=cohort_id,
            )
            if error is not None:
                logger.info("Recorded failed %s execution for audience %s", compiled.mode.value, audience_id)

        return listener

    def get_recent_executions(
        self,
        limit: int = 100,
        mode: Optional[str] = None,
        audience_id: Optional[str] = None,
        cohort_id: Optional[str] = None,
        success: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """Recent execution logs formatted for the API."""
        logs = self.execution_log_dao.get_recent_executions(
            limit=limit, mode=mode, audience_id=audience_id, cohort_id=cohort_id, success=success
        )
        return [
            {
                "id": log.id,
                "mode": log.mode,
                "audience_id": log.audience_id,
                "cohort_id": log.cohort_id,
                "connection_id": log.connection_id,
                "project": log.project,
                "sql": log.sql_text,
                "parameters": log.parameters or {},
                "execution_time_ms": log.execution_time_ms,
                "row_count": log.row_count,
                "success": log.success,
                "error_message": log.error_message,
                "executed_at": log.executed_at.isoformat() if log.executed_at else None,
            }
            for log in logs
        ]

    def get_performance_dashboard(self, days_back: int = 30) -> Dict[str, Any]:
        """Execution metrics per query mode with success rates."""
        metrics = self.execution_log_dao.get_performance_metrics(days_back)
        for mode_metrics in metrics["by_mode"].values():
            total = mode_metrics["total_executions"]
            mode_metrics["success_rate"] = (
                round(mode_metrics["successful_executions"] / total * 100, 2) if total else 0.0
            )
        return metrics
