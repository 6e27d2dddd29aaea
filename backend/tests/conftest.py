"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- Test database sessions (in-memory SQLite with foreign keys enforced)
- Application settings
- Sample data factories (locations, series)
- FastAPI test client
"""

import os
import pytest
from datetime import datetime
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
os.environ['TIMEKEEPER_DB_URL'] = 'sqlite:///:memory:'
os.environ.setdefault('TIMEKEEPER_LOG_LEVEL', 'WARNING')

from backend.src.config.settings import AppSettings
from backend.src.models import Base, Location
from backend.src.services.series_service import RecurringSeriesService


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )

    # Enable foreign key constraints for SQLite
    # This must be set for each connection
    def _fk_pragma_on_connect(dbapi_con, con_record):
        dbapi_con.execute('pragma foreign_keys=ON')

    event.listen(engine, 'connect', _fk_pragma_on_connect)

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope='function')
def test_db_session(test_db_engine):
    """Create a test database session."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def test_settings():
    """Settings with the documented defaults, independent of the environment."""
    return AppSettings(
        default_occurrence_count=10,
        horizon_days=730,
        max_page_size=100,
    )


@pytest.fixture
def series_service(test_db_session, test_settings):
    """Create a RecurringSeriesService bound to the test session."""
    return RecurringSeriesService(test_db_session, settings=test_settings)


# ============================================================================
# Sample Data Factories
# ============================================================================

@pytest.fixture
def sample_location(test_db_session):
    """Factory for creating sample Location models in the database."""
    def _create(name='Studio A', address='12 Harbour Street', capacity=40, is_active=True):
        location = Location(
            name=name,
            address=address,
            capacity=capacity,
            is_active=is_active,
        )
        test_db_session.add(location)
        test_db_session.commit()
        test_db_session.refresh(location)
        return location
    return _create


@pytest.fixture
def sample_series(series_service):
    """
    Factory for creating series through the service.

    Defaults to a weekly series of 4 Monday occurrences, 09:00-10:00,
    starting 2023-01-02.
    """
    def _create(
        title='Morning Yoga',
        start=datetime(2023, 1, 2, 9, 0),
        end=datetime(2023, 1, 2, 10, 0),
        recurrence_rule='FREQ=WEEKLY;COUNT=4',
        description=None,
        location_guid=None,
    ):
        result = series_service.create(
            title=title,
            start=start,
            end=end,
            recurrence_rule=recurrence_rule,
            description=description,
            location_guid=location_guid,
        )
        return result.template
    return _create


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def test_client(test_db_session):
    """Create a test client for FastAPI application."""
    from fastapi.testclient import TestClient
    from backend.src.main import app
    from backend.src.db.database import get_db

    # Override dependencies
    def get_test_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = get_test_db

    with TestClient(app) as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()
