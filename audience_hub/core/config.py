# audience_hub/core/config.py
"""Environment-driven settings for the audience hub."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def parse_connections(raw: str) -> Dict[str, str]:
    """Parse ``id=url;id2=url2`` into a mapping of connection id to SQLAlchemy URL."""
    connections = {}
    for entry in raw.split(";"):
        entry = entry.strip()
        if not entry:
            continue
        connection_id, sep, url = entry.partition("=")
        if not sep or not connection_id.strip() or not url.strip():
            raise ValueError(f"Invalid WAREHOUSE_CONNECTIONS entry: '{entry}'")
        connections[connection_id.strip()] = url.strip()
    return connections


@dataclass
class Settings:
    # ===== CONFIG DATABASE =====
    # Stores objects, audiences, cohorts and execution logs
    database_url: str = "sqlite:///./audience_hub.db"

    # ===== WAREHOUSE =====
    warehouse_connections: Dict[str, str] = field(default_factory=dict)
    warehouse_table_prefix: str = "{project}."
    warehouse_query_timeout_seconds: float = 300.0

    # ===== COHORT QUERIES =====
    cohort_preview_limit: int = 25
    cohort_default_listing_limit: int = 100
    cohort_count_ttl_hours: int = 24
    strict_fields: bool = True
    strict_operators: bool = False
    join_strategy: str = "first_match"
    parent_marker_field: str = "ic_acc_name"
    child_marker_field: str = "ic_fname"
    child_key_field: str = "ic_cntid"

    application_id: str = "Unknown"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            warehouse_connections=parse_connections(os.getenv("WAREHOUSE_CONNECTIONS", "")),
            warehouse_table_prefix=os.getenv("WAREHOUSE_TABLE_PREFIX", cls.warehouse_table_prefix),
            warehouse_query_timeout_seconds=float(
                os.getenv("WAREHOUSE_QUERY_TIMEOUT_SECONDS", cls.warehouse_query_timeout_seconds)
            ),
            cohort_preview_limit=_env_int("COHORT_PREVIEW_LIMIT", cls.cohort_preview_limit),
            cohort_default_listing_limit=_env_int("COHORT_DEFAULT_LISTING_LIMIT", cls.cohort_default_listing_limit),
            cohort_count_ttl_hours=_env_int("COHORT_COUNT_TTL_HOURS", cls.cohort_count_ttl_hours),
            strict_fields=_env_bool("AUDIENCE_STRICT_FIELDS", cls.strict_fields),
            strict_operators=_env_bool("AUDIENCE_STRICT_OPERATORS", cls.strict_operators),
            join_strategy=os.getenv("AUDIENCE_JOIN_STRATEGY", cls.join_strategy),
            parent_marker_field=os.getenv("AUDIENCE_PARENT_MARKER_FIELD", cls.parent_marker_field),
            child_marker_field=os.getenv("AUDIENCE_CHILD_MARKER_FIELD", cls.child_marker_field),
            child_key_field=os.getenv("AUDIENCE_CHILD_KEY_FIELD", cls.child_key_field),
            application_id=os.getenv("APPLICATION_ID", cls.application_id),
        )


@lru_cache()
def get_settings() -> Settings:
    """Settings loaded once per process."""
    return Settings.from_env()
