# audience_hub/core/database.py
"""Config database setup: objects, audiences, cohorts and execution logs."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from audience_hub.core.config import get_settings

logger = logging.getLogger(__name__)

# ===== CONFIG DATABASE =====
# The warehouse itself is reached through audience_hub.warehouse, not from here.
DATABASE_URL = get_settings().database_url

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# ===== SESSION GENERATORS =====


def get_db():
    """Get config database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ===== TABLE CREATION =====


def create_all_tables():
    """Create all config database tables."""
    # Import models to ensure they're registered with Base
    from audience_hub.audiences.models import (  # noqa: F401
        Audience,
        AudienceObjectLink,
        Cohort,
        ObjectRelationship,
        WarehouseObject,
    )
    from audience_hub.logging.models import QueryExecutionLog  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Config database tables created")


def drop_all_tables():
    """Drop all config database tables (use with caution!)."""
    from audience_hub.audiences.models import (  # noqa: F401
        Audience,
        AudienceObjectLink,
        Cohort,
        ObjectRelationship,
        WarehouseObject,
    )
    from audience_hub.logging.models import QueryExecutionLog  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    logger.info("Config database tables dropped")


def init_db(force_recreate: bool = False):
    """Initialize the config database."""
    if force_recreate:
        drop_all_tables()
    create_all_tables()


if __name__ == "__main__":
    init_db()
