import os
import sys

# Add the current directory to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from datetime import UTC, date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.db.base  # noqa: F401  (registers every model)
from app.core.security import Role, create_access_token
from app.db.base_class import Base
from app.services.availability import AvailabilityManager
from app.services.reservations import SlotReservationEngine
from app.services.slot_query import AvailabilityQuery

# 2025-01-06 is a Monday (day_of_week 1); 2025-01-05 a Sunday (0)
MONDAY = date(2025, 1, 6)
SUNDAY = date(2025, 1, 5)
NOW = datetime(2025, 1, 6, 12, 0, tzinfo=UTC)

PRO = "pro-1"


# One in-memory SQLite database per test
@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def TestingSessionLocal(engine):
    """Create a session factory for the test database."""
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db_session(TestingSessionLocal):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def manager(db_session):
    return AvailabilityManager(db_session)


@pytest.fixture
def query(db_session, manager):
    return AvailabilityQuery(db_session, manager)


@pytest.fixture
def reservations(db_session, manager):
    return SlotReservationEngine(db_session, manager)


@pytest.fixture
def monday_record(manager):
    """Default schedule on a Monday: 8 one-hour slots, lunch 13-14."""
    manager.generate_availability(PRO, [MONDAY])
    return manager.get_by_date(PRO, MONDAY)


# Override the database dependency to use our test database
@pytest.fixture
def override_get_db(TestingSessionLocal):
    def _override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    return _override_get_db


@pytest.fixture
def client(override_get_db):
    """Create a test client for API tests."""
    from fastapi.testclient import TestClient

    from app.db import get_db
    from app.main import app

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def bearer(sub: str, role: Role) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(sub, role)}"}


@pytest.fixture
def admin_headers():
    return bearer("admin-1", Role.ADMIN)


@pytest.fixture
def pro_headers():
    return bearer(PRO, Role.PROFESSIONAL)


@pytest.fixture
def customer_headers():
    return bearer("customer-1", Role.CUSTOMER)
