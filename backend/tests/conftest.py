import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.main as main_module
from app.database import Base, get_db
from app.dependencies import get_delete_attempt_tracker, get_pow_service, get_rate_limiter
from app.main import app
from app.middleware.rate_limit import limiter
from app.services.kv_store import InMemoryStore
from app.services.pow_service import PowService
from app.services.rate_limiter import FailedAttemptTracker
from tests.test_utils import TEST_POW_DIFFICULTY


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def pow_service():
    """A cheap PoW service with its own challenge cache."""
    return PowService(store=InMemoryStore(), difficulty=TEST_POW_DIFFICULTY, ttl_seconds=60)


@pytest.fixture
def attempt_tracker():
    return FailedAttemptTracker(store=InMemoryStore(), max_attempts=3, window_seconds=300)


@pytest.fixture
def client(db_session, pow_service, attempt_tracker):
    """Create a test client with the test database and disabled rate limiting."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pow_service] = lambda: pow_service
    app.dependency_overrides[get_rate_limiter] = lambda: None
    app.dependency_overrides[get_delete_attempt_tracker] = lambda: attempt_tracker

    # Disable rate limiting for tests
    limiter.enabled = False

    # Override the engine used by check_database_tables() so it checks the test database
    original_engine = main_module.engine
    main_module.engine = db_session.get_bind()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True
    main_module.engine = original_engine
