"""
Query module for the cohort builder.

This module turns structured cohort filters into warehouse SQL:
- FieldResolver / value formatting: columns and literals
- ConditionGroupCompiler: filter lists to boolean expressions
- JoinGraphAssembler: flat joins and parent/child CTE joins
- QueryModeAssembler: listing, count and preview SQL shapes
- SQLQueryAssembler: unified interface for generation and execution
"""

from .builder import QueryModeAssembler
from .conditions import AndNode, ConditionGroupCompiler, LeafNode, OrNode
from .engine import SQLQueryAssembler
from .errors import AudienceQueryError, ConfigurationError, ExecutionError, ValidationError
from .fields import FieldResolver
from .joins import JoinGraphAssembler
from .schemas import (
    # Configuration
    AudienceConfiguration,
    AudienceObject,
    FieldDefinition,
    ObjectDefinition,
    Relationship,
    # Filters
    CohortFilters,
    Filter,
    # Execution types
    CompiledQuery,
    CountResult,
    ExecutionContext,
    PreviewResult,
    # Enums
    FilterOperator,
    JoinStrategy,
    LogicalOperator,
    ObjectRole,
    QueryMode,
)
from .values import LiteralRenderer, ParameterBinder, format_value

__all__ = [
    # Main classes
    "SQLQueryAssembler",
    "QueryModeAssembler",
    "JoinGraphAssembler",
    "ConditionGroupCompiler",
    "FieldResolver",
    "LiteralRenderer",
    "ParameterBinder",
    "format_value",
    # Expression tree
    "AndNode",
    "OrNode",
    "LeafNode",
    # Errors
    "AudienceQueryError",
    "ConfigurationError",
    "ValidationError",
    "ExecutionError",
    # Types
    "AudienceConfiguration",
    "AudienceObject",
    "FieldDefinition",
    "ObjectDefinition",
    "Relationship",
    "CohortFilters",
    "Filter",
    "CompiledQuery",
    "CountResult",
    "ExecutionContext",
    "PreviewResult",
    # Enums
    "FilterOperator",
    "JoinStrategy",
    "LogicalOperator",
    "ObjectRole",
    "QueryMode",
]
