"""
Test configuration and shared fixtures for the audience hub test suite.
Provides config database setup, a SQLite warehouse, and sample audiences.
"""

import os

# Keep the module-level config engine off disk before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from audience_hub.app import create_app
from audience_hub.audiences.models import Audience, AudienceObjectLink, Cohort, ObjectRelationship, WarehouseObject
from audience_hub.core.database import Base, get_db
from audience_hub.core.dependencies import get_warehouse_executor
from audience_hub.query.schemas import AudienceConfiguration
from audience_hub.warehouse import SQLAlchemyWarehouseExecutor, WarehouseConnectionRegistry

WAREHOUSE_CONNECTION_ID = "test-warehouse"

COMPANY_FIELDS: List[Dict[str, Any]] = [
    {"name": "SalesForceID", "displayName": "Salesforce ID", "isFilterable": False},
    {"name": "ic_acc_name", "displayName": "Company Name"},
    {"name": "country", "displayName": "Country", "hasDistinctValues": True, "distinctValuesLimit": 50},
    {"name": "industry", "displayName": "Industry", "hasDistinctValues": True},
    {"name": "employee_count", "displayName": "Employees", "dataType": "number"},
]

CONTACT_FIELDS: List[Dict[str, Any]] = [
    {"name": "ic_cntid", "displayName": "Contact ID", "isDisplayable": False},
    {"name": "SalesForceID", "displayName": "Salesforce ID", "isDisplayable": False},
    {"name": "ic_fname", "displayName": "First Name"},
    {"name": "job_title", "displayName": "Job Title"},
    {"name": "email", "displayName": "Email"},
]


# ===== DATABASE SETUP =====


@pytest.fixture(scope="session")
def config_engine():
    """Create in-memory SQLite engine for the config database"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # Import all config models to register them
    from audience_hub.logging.models import QueryExecutionLog  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def config_db_session(config_engine):
    """Create a database session for the config database"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=config_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()  # Rollback any uncommitted changes
        session.close()
        # Clean up all data after each test
        Base.metadata.drop_all(bind=config_engine)
        Base.metadata.create_all(bind=config_engine)


@pytest.fixture
def warehouse_engine(tmp_path):
    """File-backed SQLite warehouse so concurrent preview queries get their own connections"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'warehouse.db'}",
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE companies ("
                "SalesForceID TEXT PRIMARY KEY, ic_acc_name TEXT, country TEXT, industry TEXT, employee_count INTEGER)"
            )
        )
        connection.execute(
            text(
                "CREATE TABLE contacts ("
                "ic_cntid INTEGER PRIMARY KEY, SalesForceID TEXT, ic_fname TEXT, job_title TEXT, email TEXT)"
            )
        )
        connection.execute(
            text("INSERT INTO companies VALUES (:id, :name, :country, :industry, :employees)"),
            [
                {"id": "SF1", "name": "Acme", "country": "USA", "industry": "Software", "employees": 1200},
                {"id": "SF2", "name": "Globex", "country": "USA", "industry": "Retail", "employees": 300},
                {"id": "SF3", "name": "Initech", "country": "Canada", "industry": "Software", "employees": 80},
                {"id": "SF4", "name": "O'Reilly Auto", "country": "Ireland", "industry": "Automotive", "employees": 45},
            ],
        )
        connection.execute(
            text("INSERT INTO contacts VALUES (:id, :sf, :fname, :title, :email)"),
            [
                {"id": 1, "sf": "SF1", "fname": "Ada", "title": "Director of Engineering", "email": "ada@acme.test"},
                {"id": 2, "sf": "SF1", "fname": "Bob", "title": "Engineer", "email": "bob@acme.test"},
                {"id": 3, "sf": "SF2", "fname": "Cy", "title": "Sales Director", "email": "cy@globex.test"},
                {"id": 4, "sf": "SF3", "fname": "Di", "title": "Director", "email": "di@initech.test"},
                {"id": 5, "sf": "SF4", "fname": "Ed", "title": "Owner", "email": "ed@oreilly.test"},
            ],
        )
    yield engine
    engine.dispose()


@pytest.fixture
def warehouse_executor(warehouse_engine) -> SQLAlchemyWarehouseExecutor:
    """Executor with the SQLite warehouse registered under WAREHOUSE_CONNECTION_ID"""
    registry = WarehouseConnectionRegistry()
    registry.register(WAREHOUSE_CONNECTION_ID, engine=warehouse_engine)
    return SQLAlchemyWarehouseExecutor(registry)


@pytest.fixture
def client(config_db_session, warehouse_executor):
    """Create FastAPI test client with database and warehouse overrides"""
    app = create_app()

    def override_get_db():
        try:
            yield config_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_warehouse_executor] = lambda: warehouse_executor

    with TestClient(app) as test_client:
        yield test_client

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture
def warehouse_headers() -> Dict[str, str]:
    """Headers selecting the test warehouse"""
    return {"X-Connection-Id": WAREHOUSE_CONNECTION_ID}


# ===== SAMPLE CONFIGURATION FIXTURES =====


@pytest.fixture
def audience_config() -> AudienceConfiguration:
    """Company/contact audience as the compiler sees it"""
    return AudienceConfiguration.parse(
        {
            "objects": [
                {
                    "object": {
                        "name": "companies",
                        "displayName": "Companies",
                        "physicalTable": "companies",
                        "fields": COMPANY_FIELDS,
                    },
                    "alias": "a",
                    "role": "parent",
                },
                {
                    "object": {
                        "name": "contacts",
                        "displayName": "Contacts",
                        "physicalTable": "contacts",
                        "fields": CONTACT_FIELDS,
                        "primaryKey": "ic_cntid",
                    },
                    "alias": "c",
                    "role": "child",
                },
            ],
            "relationships": [
                {"fromObjectAlias": "c", "toObjectAlias": "a", "joinCondition": "c.SalesForceID = a.SalesForceID"}
            ],
        }
    )


@pytest.fixture
def sample_objects(config_db_session) -> List[WarehouseObject]:
    """Persisted company and contact objects with their relationship"""
    companies = WarehouseObject(
        name="companies",
        display_name="Companies",
        physical_table="companies",
        fields=COMPANY_FIELDS,
        join_key="SalesForceID",
    )
    contacts = WarehouseObject(
        name="contacts",
        display_name="Contacts",
        physical_table="contacts",
        fields=CONTACT_FIELDS,
        join_key="SalesForceID",
        primary_key="ic_cntid",
    )
    config_db_session.add_all([companies, contacts])
    config_db_session.flush()

    config_db_session.add(
        ObjectRelationship(
            from_object_id=contacts.id,
            to_object_id=companies.id,
            join_condition="c.SalesForceID = a.SalesForceID",
        )
    )
    config_db_session.commit()
    return [companies, contacts]


@pytest.fixture
def sample_audience(config_db_session, sample_objects) -> Audience:
    """Audience linking companies (a, parent) and contacts (c, child)"""
    companies, contacts = sample_objects
    audience = Audience(name="Accounts and people", tenant_id="tenant-1", created_by="test_user")
    config_db_session.add(audience)
    config_db_session.flush()

    config_db_session.add_all(
        [
            AudienceObjectLink(audience_id=audience.id, object_id=companies.id, alias="a", role="parent"),
            AudienceObjectLink(audience_id=audience.id, object_id=contacts.id, alias="c", role="child"),
        ]
    )
    config_db_session.commit()
    return audience


@pytest.fixture
def usa_directors_filters() -> Dict[str, Any]:
    """Companies in the USA, contacts whose title mentions Director"""
    return {
        "companyFilters": [{"id": "f1", "field": "country", "operator": "equals", "value": "USA"}],
        "contactFilters": [{"id": "f2", "field": "job_title", "operator": "contains", "value": "Director"}],
    }


@pytest.fixture
def sample_cohort(config_db_session, sample_audience, usa_directors_filters) -> Cohort:
    """Saved cohort with no counts computed yet"""
    cohort = Cohort(
        audience_id=sample_audience.id,
        name="US directors",
        description="Directors at US accounts",
        tenant_id="tenant-1",
        created_by="test_user",
        filters=usa_directors_filters,
        status="processing",
    )
    config_db_session.add(cohort)
    config_db_session.commit()
    return cohort
