"""
Query building schemas and types for cohort SQL compilation.

Input models (audience configuration, filters) are pydantic models that accept
the camelCase JSON produced by the UI and stored on audience records. Results
handed between the compiler and the executor are plain dataclasses.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError, ValidationError


IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class FilterOperator(str, Enum):
    """Operators a filter may use."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"


class LogicalOperator(str, Enum):
    """Connector between a filter and the filter that follows it."""

    AND = "AND"
    OR = "OR"


class ObjectRole(str, Enum):
    """Position of an object in the two-level company/contact hierarchy."""

    PARENT = "parent"
    CHILD = "child"


class QueryMode(str, Enum):
    """Shapes of SQL the compiler produces."""

    LISTING = "listing"
    COUNT = "count"
    PREVIEW_PARENT = "preview_parent"
    PREVIEW_CHILD = "preview_child"
    DISTINCT_VALUES = "distinct_values"
    OBJECT_DATA = "object_data"


class JoinStrategy(str, Enum):
    """How listing mode joins configured objects."""

    FIRST_MATCH = "first_match"  # first relationship whose condition mentions the alias
    GRAPH = "graph"  # breadth-first traversal of from/to aliases


FilterScalar = Union[StrictStr, StrictInt, StrictFloat]
FilterValue = Union[StrictStr, StrictInt, StrictFloat, List[FilterScalar]]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )


# ===== AUDIENCE CONFIGURATION =====


class FieldDefinition(_CamelModel):
    """A column of an object's table, as exposed to filter and display UIs."""

    name: str
    display_name: Optional[str] = None
    data_type: str = "string"
    category: Optional[str] = None
    is_filterable: bool = True
    is_displayable: bool = True
    allowed_operators: List[str] = Field(default_factory=list)
    has_distinct_values: bool = False
    distinct_values_limit: Optional[int] = None


class ObjectDefinition(_CamelModel):
    """A configured reference to one physical warehouse table."""

    name: Optional[str] = None
    display_name: Optional[str] = None
    physical_table: str = Field(
        validation_alias=AliasChoices("physicalTable", "physical_table", "table", "bigqueryTable")
    )
    fields: List[FieldDefinition] = Field(default_factory=list)
    join_key: str = "SalesForceID"
    primary_key: Optional[str] = None

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        for field_def in self.fields:
            if field_def.name == name:
                return field_def
        return None

    def has_field(self, name: str) -> bool:
        return self.get_field(name) is not None

    @property
    def displayable_fields(self) -> List[FieldDefinition]:
        return [f for f in self.fields if f.is_displayable]

    @model_validator(mode="after")
    def _name_defaults_to_table(self) -> "ObjectDefinition":
        if not self.name:
            self.name = self.physical_table
        return self


class Relationship(_CamelModel):
    """A literal SQL join predicate between two aliased objects."""

    from_object_alias: Optional[str] = None
    to_object_alias: Optional[str] = None
    join_condition: str

    def connects(self, alias: str) -> bool:
        if self.from_object_alias or self.to_object_alias:
            return alias in (self.from_object_alias, self.to_object_alias)
        return alias in self.join_condition


class AudienceObject(_CamelModel):
    """An object placed in an audience under an alias."""

    object: ObjectDefinition
    alias: str
    role: Optional[ObjectRole] = None

    @field_validator("alias")
    @classmethod
    def _alias_is_identifier(cls, value: str) -> str:
        if not IDENTIFIER_PATTERN.match(value):
            raise ValueError(f"Alias '{value}' is not a valid SQL identifier")
        return value


class AudienceConfiguration(_CamelModel):
    """Ordered object list plus the relationships available between them."""

    objects: List[AudienceObject] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)

    @classmethod
    def parse(cls, payload: Union["AudienceConfiguration", Dict[str, Any]]) -> "AudienceConfiguration":
        """Build a configuration from JSON-shaped data, raising ConfigurationError on bad input."""
        if isinstance(payload, cls):
            config = payload
        else:
            try:
                config = cls.model_validate(payload)
            except PydanticValidationError as e:
                raise ConfigurationError(f"Invalid audience configuration: {e}") from e
        config.check_aliases()
        return config

    def check_aliases(self) -> None:
        seen = set()
        for audience_object in self.objects:
            if audience_object.alias in seen:
                raise ConfigurationError(f"Duplicate alias '{audience_object.alias}' in audience configuration")
            seen.add(audience_object.alias)

    def get_by_alias(self, alias: str) -> Optional[AudienceObject]:
        for audience_object in self.objects:
            if audience_object.alias == alias:
                return audience_object
        return None

    @property
    def root(self) -> Optional[AudienceObject]:
        return self.objects[0] if self.objects else None


# ===== FILTERS =====


class Filter(_CamelModel):
    """A single user-authored condition.

    ``logical_operator`` is the connector to the *next* filter in the list.
    ``operator`` stays a plain string so that unknown operators reach the
    compiler, which decides whether to default or reject them.
    """

    id: Optional[str] = None
    category: Optional[str] = None
    field: str = Field(min_length=1)
    operator: str
    value: FilterValue
    logical_operator: Optional[LogicalOperator] = None

    @field_validator("logical_operator", mode="before")
    @classmethod
    def _normalize_connector(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() or None
        return value


class CohortFilters(_CamelModel):
    """Company and contact filter lists, compiled independently and AND-ed."""

    company_filters: List[Filter] = Field(default_factory=list)
    contact_filters: List[Filter] = Field(default_factory=list)

    @classmethod
    def parse(cls, payload: Union["CohortFilters", Dict[str, Any], None]) -> "CohortFilters":
        """Build filters from JSON-shaped data, raising ValidationError on bad input."""
        if isinstance(payload, cls):
            return payload
        if payload is None:
            return cls()
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid cohort filters: {e}") from e

    def to_payload(self) -> Dict[str, Any]:
        """Serialize back to the camelCase JSON stored on cohort records."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ===== EXECUTION TYPES =====


@dataclass(frozen=True)
class ExecutionContext:
    """Per-call execution settings threaded through every warehouse query."""

    connection_id: str
    project: Optional[str] = None
    timeout_seconds: Optional[float] = None


@dataclass
class CompiledQuery:
    """SQL text plus the bound parameter values it references."""

    sql: str
    mode: QueryMode
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CountResult:
    """Aggregate cohort sizes."""

    company_count: int
    people_count: int


@dataclass
class PreviewResult:
    """Bounded samples of the parent and child rows of a cohort."""

    company_preview: List[Dict[str, Any]]
    contact_preview: List[Dict[str, Any]]
