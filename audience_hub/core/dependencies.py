# audience_hub/core/dependencies.py
"""Shared dependencies for the audience hub routers."""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from audience_hub.core.config import Settings, get_settings
from audience_hub.core.database import get_db
from audience_hub.query.engine import SQLQueryAssembler
from audience_hub.query.schemas import ExecutionContext
from audience_hub.warehouse import SQLAlchemyWarehouseExecutor, WarehouseConnectionRegistry, WarehouseQueryExecutor

# Core database dependency
SessionDep = Annotated[Session, Depends(get_db)]
SettingsDep = Annotated[Settings, Depends(get_settings)]

# One registry per process; engines are created on first use of a connection id
warehouse_registry = WarehouseConnectionRegistry(get_settings().warehouse_connections)


def get_warehouse_executor() -> WarehouseQueryExecutor:
    """Executor for compiled cohort SQL."""
    return SQLAlchemyWarehouseExecutor(warehouse_registry)


def get_query_assembler(settings: SettingsDep) -> SQLQueryAssembler:
    """Compiler wired from settings; execution listeners are attached per request by services."""
    return SQLQueryAssembler.from_settings(settings)


def get_execution_context(
    settings: SettingsDep,
    x_connection_id: Annotated[Optional[str], Header()] = None,
    x_warehouse_project: Annotated[Optional[str], Header()] = None,
) -> ExecutionContext:
    """Per-request execution context from the X-Connection-Id / X-Warehouse-Project headers."""
    if not x_connection_id:
        raise HTTPException(status_code=400, detail="X-Connection-Id header is required")
    return ExecutionContext(
        connection_id=x_connection_id,
        project=x_warehouse_project,
        timeout_seconds=settings.warehouse_query_timeout_seconds,
    )


def get_optional_execution_context(
    settings: SettingsDep,
    x_connection_id: Annotated[Optional[str], Header()] = None,
    x_warehouse_project: Annotated[Optional[str], Header()] = None,
) -> Optional[ExecutionContext]:
    """Like get_execution_context, but None when no connection is given."""
    if not x_connection_id:
        return None
    return get_execution_context(settings, x_connection_id, x_warehouse_project)


ExecutorDep = Annotated[WarehouseQueryExecutor, Depends(get_warehouse_executor)]
AssemblerDep = Annotated[SQLQueryAssembler, Depends(get_query_assembler)]
ContextDep = Annotated[ExecutionContext, Depends(get_execution_context)]
OptionalContextDep = Annotated[Optional[ExecutionContext], Depends(get_optional_execution_context)]
