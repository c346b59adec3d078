# audience_hub/logging/models.py
"""Persisted record of warehouse query executions."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text

from audience_hub.core.database import Base


class QueryExecutionLog(Base):
    """One warehouse execution of a compiled cohort query."""

    __tablename__ = "query_execution_logs"

    id = Column(Integer, primary_key=True, index=True)
    mode = Column(String(32), nullable=False, index=True)  # listing, count, preview_parent, ...
    audience_id = Column(String(36), nullable=True, index=True)
    cohort_id = Column(String(36), nullable=True, index=True)
    connection_id = Column(String(128), nullable=False)
    project = Column(String(255), nullable=True)
    sql_text = Column(Text, nullable=False)
    parameters = Column(JSON, nullable=True)
    execution_time_ms = Column(Float, nullable=True)
    row_count = Column(Integer, nullable=True)
    success = Column(Boolean, nullable=False)
    error_message = Column(String, nullable=True)
    application_id = Column(String(255), nullable=True)
    executed_at = Column(DateTime, default=datetime.now, index=True)
