"""Resolve filter field names against an object's field catalog."""

import logging
from typing import Dict, Optional

from .errors import ConfigurationError, ValidationError
from .schemas import ObjectDefinition

logger = logging.getLogger(__name__)


# Historical UI field names and the warehouse columns they stand for.
LEGACY_FIELD_MAPPING: Dict[str, str] = {
    # Company fields
    "Account_size": "employee_count",
    "Account_country": "country",
    "Account_industry": "industry",
    "company_name": "company_name",
    "opportunity_stage": "opportunity_stage",
    "page_views": "page_views",
    "referrer_domain": "referrer_domain",
    "utm_params": "utm_params",
    "Linkedin_Followers": "linkedin_followers",
    "Intent_Score": "intent_score",
    # Contact fields
    "job_title": "job_title",
    "seniority_level": "seniority_level",
    "first_name": "first_name",
    "last_name": "last_name",
    "email": "email",
    "email_opens": "email_opens",
    "email_clicks": "email_clicks",
    "website_visits": "website_visits",
    "content_downloads": "content_downloads",
    "social_engagement": "social_engagement",
}


class FieldResolver:
    """
    Maps a filter's field name to the physical column it filters on.

    In strict mode an unknown field is a ConfigurationError. With strict mode
    off the name is passed through unchanged, which compiles but fails only
    when the warehouse runs the query.
    """

    def __init__(self, strict: bool = True, legacy_mapping: Optional[Dict[str, str]] = None):
        self.strict = strict
        self.legacy_mapping = LEGACY_FIELD_MAPPING if legacy_mapping is None else legacy_mapping

    def resolve(self, obj: ObjectDefinition, field_name: str, operator: Optional[str] = None) -> str:
        """Return the column name for ``field_name`` on ``obj``."""
        field_def = obj.get_field(field_name)
        if field_def is not None:
            if not field_def.is_filterable:
                raise ConfigurationError(f"Field '{field_name}' on object '{obj.name}' is not filterable")
            if operator and field_def.allowed_operators and operator not in field_def.allowed_operators:
                raise ValidationError(
                    f"Operator '{operator}' is not allowed for field '{field_name}'. "
                    f"Allowed: {field_def.allowed_operators}"
                )
            return field_def.name

        mapped = self.legacy_mapping.get(field_name)
        if mapped is not None and (not obj.fields or obj.has_field(mapped)):
            return self.resolve(obj, mapped, operator) if obj.fields else mapped

        if self.strict:
            available = [f.name for f in obj.fields]
            raise ConfigurationError(
                f"Field '{field_name}' not found on object '{obj.name}'. Available fields: {available}"
            )

        logger.warning("Unknown field '%s' on object '%s' passed through unchanged", field_name, obj.name)
        return field_name
