# audience_hub/logging/dao.py
"""Data Access Object for query execution logs."""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import Float, case, cast, desc, func, select
from sqlalchemy.orm import Session

from audience_hub.core.base_dao import BaseDAO
from audience_hub.logging.models import QueryExecutionLog


class QueryExecutionLogDAO(BaseDAO[QueryExecutionLog]):
    """DAO for query execution log operations."""

    def __init__(self, db_session: Session):
        super().__init__(QueryExecutionLog, db_session)

    def get_recent_executions(
        self,
        limit: int = 100,
        mode: Optional[str] = None,
        audience_id: Optional[str] = None,
        cohort_id: Optional[str] = None,
        success: Optional[bool] = None,
    ) -> List[QueryExecutionLog]:
        """Most recent executions first, with optional filters."""
        query = select(self.model)
        conditions = self._filter_conditions(
            {"mode": mode, "audience_id": audience_id, "cohort_id": cohort_id, "success": success}
        )
        if conditions:
            query = query.where(*conditions)
        query = query.order_by(desc(self.model.executed_at), desc(self.model.id)).limit(limit)
        return list(self.db.execute(query).scalars().all())

    def get_performance_metrics(self, days_back: int = 30) -> Dict[str, Any]:
        """Execution totals and timing per query mode."""
        cutoff_date = datetime.now() - timedelta(days=days_back)
        query = (
            select(
                self.model.mode,
                func.count(self.model.id),
                func.sum(case((self.model.success.is_(True), 1), else_=0)),
                func.avg(cast(self.model.execution_time_ms, Float)),
            )
            .where(self.model.executed_at >= cutoff_date)
            .group_by(self.model.mode)
            .order_by(self.model.mode)
        )

        by_mode = {}
        total = 0
        for mode, count, successful, avg_time in self.db.execute(query).all():
            total += count
            by_mode[mode] = {
                "total_executions": count,
                "successful_executions": int(successful or 0),
                "avg_execution_time_ms": round(avg_time, 2) if avg_time is not None else None,
            }
        return {"days_back": days_back, "total_executions": total, "by_mode": by_mode}
