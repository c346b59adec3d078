"""Warehouse access for compiled cohort queries."""

from .connections import WarehouseConnectionRegistry
from .executor import SQLAlchemyWarehouseExecutor, WarehouseQueryExecutor, render_project

__all__ = [
    "WarehouseConnectionRegistry",
    "WarehouseQueryExecutor",
    "SQLAlchemyWarehouseExecutor",
    "render_project",
]
