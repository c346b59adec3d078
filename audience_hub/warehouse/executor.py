# audience_hub/warehouse/executor.py
"""Warehouse query executors: the hand-off point for compiled cohort SQL."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from audience_hub.query.errors import ConfigurationError
from audience_hub.query.schemas import ExecutionContext
from audience_hub.warehouse.connections import WarehouseConnectionRegistry

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

PROJECT_PLACEHOLDER = "{project}"
PROJECT_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def render_project(sql: str, project: Optional[str]) -> str:
    """Substitute the project placeholder in table references."""
    if project:
        if not PROJECT_PATTERN.fullmatch(project):
            raise ConfigurationError(f"Invalid warehouse project '{project}'")
        return sql.replace(PROJECT_PLACEHOLDER, project)
    return sql.replace(PROJECT_PLACEHOLDER + ".", "").replace(PROJECT_PLACEHOLDER, "")


class WarehouseQueryExecutor(ABC):
    """Runs SQL against the warehouse identified by the execution context."""

    @abstractmethod
    async def execute_query(
        self, context: ExecutionContext, sql: str, parameters: Optional[Dict[str, Any]] = None
    ) -> List[Row]:
        """Execute ``sql`` and return rows as dictionaries."""

    async def validate_connection(self, context: ExecutionContext) -> bool:
        """Check the connection is usable."""
        try:
            await self.execute_query(context, "SELECT 1 AS ok")
            return True
        except Exception as e:
            logger.warning("Warehouse connection test failed for '%s': %s", context.connection_id, e)
            return False


class SQLAlchemyWarehouseExecutor(WarehouseQueryExecutor):
    """Executes queries through SQLAlchemy engines from a connection registry."""

    def __init__(self, registry: WarehouseConnectionRegistry):
        self.registry = registry

    async def execute_query(
        self, context: ExecutionContext, sql: str, parameters: Optional[Dict[str, Any]] = None
    ) -> List[Row]:
        engine = self.registry.get_engine(context.connection_id)
        statement = text(render_project(sql, context.project))
        return await asyncio.to_thread(self._run, engine, statement, parameters or {})

    @staticmethod
    def _run(engine, statement, parameters: Dict[str, Any]) -> List[Row]:
        with engine.connect() as connection:
            result = connection.execute(statement, parameters)
            return [dict(row._mapping) for row in result]
