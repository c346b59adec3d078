# audience_hub/audiences/schemas.py
"""API schemas for objects, cohorts and ad-hoc filter queries."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from audience_hub.query.schemas import CohortFilters, FieldDefinition


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ===== OBJECT SCHEMAS =====


class ObjectRead(ApiModel):
    id: int
    name: str
    display_name: str
    description: Optional[str] = None
    physical_table: str
    fields: List[FieldDefinition] = Field(default_factory=list)
    join_key: str
    primary_key: Optional[str] = None


class DistinctValuesResponse(ApiModel):
    object_id: int
    field: str
    values: List[Any]


# ===== COHORT SCHEMAS =====


class CohortBase(ApiModel):
    name: str = Field(min_length=1, max_length=128)
    description: Optional[str] = None


class CohortCreate(CohortBase):
    audience_id: str
    filters: CohortFilters = Field(default_factory=CohortFilters)
    tenant_id: str = "default"
    created_by: str = "api_user"

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Cohort name cannot be blank")
        return value.strip()


class CohortUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=128)
    description: Optional[str] = None
    filters: Optional[CohortFilters] = None


class CohortRead(CohortBase):
    id: str
    audience_id: str
    tenant_id: str
    created_by: str
    filters: Dict[str, Any]
    company_count: Optional[int] = 0
    people_count: Optional[int] = 0
    status: str
    last_processed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ===== QUERY RESULT SCHEMAS =====


class CountResponse(ApiModel):
    company_count: int
    people_count: int


class PreviewResponse(ApiModel):
    company_preview: List[Dict[str, Any]]
    contact_preview: List[Dict[str, Any]]


class DataResponse(ApiModel):
    rows: List[Dict[str, Any]]
    row_count: int


class SqlResponse(ApiModel):
    sql: str


class ConnectionTestResponse(ApiModel):
    connection_id: str
    ok: bool
