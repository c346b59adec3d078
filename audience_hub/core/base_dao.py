# audience_hub/core/base_dao.py
"""Generic base DAO for common database operations."""

from abc import ABC
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from audience_hub.core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseDAO(Generic[ModelType], ABC):
    """Primary-key CRUD shared by the config-database DAOs."""

    def __init__(self, model: Type[ModelType], db: Session):
        self.model = model
        self.db = db

    def get_by_id(self, id: Any) -> Optional[ModelType]:
        """Get record by primary key."""
        return self.db.get(self.model, id)

    def create(self, **data) -> ModelType:
        """Create new record."""
        db_obj = self.model(**data)
        self.db.add(db_obj)
        self.db.commit()
        self.db.refresh(db_obj)
        return db_obj

    def update(self, db_obj: ModelType, **data) -> ModelType:
        """Update existing record."""
        for field, value in data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        self.db.commit()
        self.db.refresh(db_obj)
        return db_obj

    def delete(self, id: Any) -> bool:
        """Delete record by primary key."""
        db_obj = self.get_by_id(id)
        if db_obj:
            self.db.delete(db_obj)
            self.db.commit()
            return True
        return False

    def _filter_conditions(self, filters: dict) -> list:
        """Equality conditions for the non-None filters naming a model column."""
        return [
            getattr(self.model, key) == value
            for key, value in filters.items()
            if hasattr(self.model, key) and value is not None
        ]
