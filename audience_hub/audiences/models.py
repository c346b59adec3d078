# audience_hub/audiences/models.py
"""Persisted audience definitions: objects, relationships, audiences and cohorts."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from audience_hub.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class WarehouseObject(Base):
    """A warehouse table exposed to audience builders (e.g. companies, contacts)."""

    __tablename__ = "objects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), nullable=False, unique=True)
    display_name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    physical_table = Column(String(256), nullable=False)
    fields = Column(JSON, nullable=False, default=list)  # list of field definitions (camelCase JSON)
    join_key = Column(String(128), nullable=False, default="SalesForceID")
    primary_key = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class ObjectRelationship(Base):
    """How two objects can be joined."""

    __tablename__ = "relationships"

    id = Column(Integer, primary_key=True, index=True)
    from_object_id = Column(Integer, ForeignKey("objects.id"), nullable=False)
    to_object_id = Column(Integer, ForeignKey("objects.id"), nullable=False)
    join_condition = Column(String(256), nullable=False)  # e.g. 'c.SalesForceID = a.SalesForceID'
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)


class Audience(Base):
    """A saved data model connecting objects."""

    __tablename__ = "audiences"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    tenant_id = Column(String(255), nullable=False, index=True)
    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    objects = relationship(
        "AudienceObjectLink",
        back_populates="audience",
        cascade="all, delete-orphan",
        order_by="AudienceObjectLink.id",
    )
    cohorts = relationship("Cohort", back_populates="audience", cascade="all, delete-orphan")


class AudienceObjectLink(Base):
    """Which objects an audience includes, under which alias and role."""

    __tablename__ = "audience_objects"

    id = Column(Integer, primary_key=True, index=True)
    audience_id = Column(String(36), ForeignKey("audiences.id", ondelete="CASCADE"), nullable=False)
    object_id = Column(Integer, ForeignKey("objects.id"), nullable=False)
    alias = Column(String(8), nullable=False)  # e.g. 'a', 'c'
    role = Column(String(16), nullable=True)  # 'parent', 'child' or NULL
    created_at = Column(DateTime, default=datetime.now)

    audience = relationship("Audience", back_populates="objects")
    object = relationship("WarehouseObject")


class Cohort(Base):
    """A filtered subset of an audience with cached counts."""

    __tablename__ = "cohorts"

    id = Column(String(36), primary_key=True, default=_uuid)
    audience_id = Column(String(36), ForeignKey("audiences.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    tenant_id = Column(String(255), nullable=False, index=True)
    created_by = Column(String(255), nullable=False)

    # {"companyFilters": [...], "contactFilters": [...]}
    filters = Column(JSON, nullable=False, default=lambda: {"companyFilters": [], "contactFilters": []})

    company_count = Column(Integer, default=0)
    people_count = Column(Integer, default=0)

    status = Column(String(50), default="processing")  # processing, active, error
    last_processed_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    audience = relationship("Audience", back_populates="cohorts")
