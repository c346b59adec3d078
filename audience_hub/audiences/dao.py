# audience_hub/audiences/dao.py
"""Data Access Objects for objects, audiences and cohorts."""

from typing import List, Optional

from sqlalchemy import desc, or_, select
from sqlalchemy.orm import Session, selectinload

from audience_hub.audiences.models import (
    Audience,
    AudienceObjectLink,
    Cohort,
    ObjectRelationship,
    WarehouseObject,
)
from audience_hub.core.base_dao import BaseDAO


class WarehouseObjectDAO(BaseDAO[WarehouseObject]):
    """DAO for warehouse object definitions."""

    def __init__(self, db_session: Session):
        super().__init__(WarehouseObject, db_session)

    def get_all_ordered(self) -> List[WarehouseObject]:
        query = select(self.model).order_by(self.model.name)
        return list(self.db.execute(query).scalars().all())


class ObjectRelationshipDAO(BaseDAO[ObjectRelationship]):
    """DAO for join conditions between objects."""

    def __init__(self, db_session: Session):
        super().__init__(ObjectRelationship, db_session)

    def get_between(self, object_ids: List[int]) -> List[ObjectRelationship]:
        """Relationships whose both ends are among ``object_ids``, in insertion order."""
        if not object_ids:
            return []
        query = (
            select(self.model)
            .where(self.model.from_object_id.in_(object_ids), self.model.to_object_id.in_(object_ids))
            .order_by(self.model.id)
        )
        return list(self.db.execute(query).scalars().all())


class AudienceDAO(BaseDAO[Audience]):
    """DAO for audiences with their object links eagerly loaded."""

    def __init__(self, db_session: Session):
        super().__init__(Audience, db_session)

    def get_with_objects(self, audience_id: str) -> Optional[Audience]:
        query = (
            select(self.model)
            .options(selectinload(self.model.objects).selectinload(AudienceObjectLink.object))
            .where(self.model.id == audience_id)
        )
        return self.db.execute(query).scalars().first()


class CohortDAO(BaseDAO[Cohort]):
    """DAO for cohorts."""

    def __init__(self, db_session: Session):
        super().__init__(Cohort, db_session)

    def get_cohorts(
        self,
        tenant_id: Optional[str] = None,
        audience_id: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Cohort]:
        """Cohorts newest first, optionally scoped to a tenant or audience."""
        query = select(self.model)
        if tenant_id:
            query = query.where(self.model.tenant_id == tenant_id)
        if audience_id:
            query = query.where(self.model.audience_id == audience_id)
        if search:
            search_term = f"%{search}%"
            query = query.where(or_(self.model.name.ilike(search_term), self.model.description.ilike(search_term)))
        query = query.order_by(desc(self.model.created_at)).offset(skip).limit(limit)
        return list(self.db.execute(query).scalars().all())
