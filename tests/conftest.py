"""
Test fixtures for the farm portal authentication service.

This module provides pytest fixtures for an in-memory database, the API test
client, and users with issued tokens.
"""
import os

# Configure the service before any farm_auth module reads its settings
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from farm_auth.auth import AuthenticationManager
from farm_auth.database import Base, get_session
from farm_auth.models import User
from farm_auth.token import issue_token_pair
from main import app

TEST_PASSWORD = "password123"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine shared by every session in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """Create a FastAPI test client using the test database."""
    def override_get_session():
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def auth_manager(db_session):
    """Authentication manager bound to the test session."""
    return AuthenticationManager(db_session)


@pytest.fixture(scope="function")
def test_user(auth_manager):
    """Create a farmer with a complete enough profile for updates."""
    return auth_manager.create_user(
        "Test Farmer",
        "farmer@example.com",
        TEST_PASSWORD,
        phone="9876543210",
        location="Nashik",
        land_size=2.5,
        soil_type="Black",
    )


@pytest.fixture(scope="function")
def other_user(auth_manager):
    """Create a second user (a buyer)."""
    return auth_manager.create_user("Other Buyer", "buyer@example.com", TEST_PASSWORD, role="buyer")


@pytest.fixture(scope="function")
def user_tokens(test_user, db_session):
    """Issue a token pair for the test user."""
    return issue_token_pair(test_user, db_session)


@pytest.fixture(scope="function")
def auth_header(user_tokens):
    """Authorization header carrying the test user's access token."""
    return {"Authorization": f"Bearer {user_tokens.access_token}"}


@pytest.fixture(scope="function")
def reload_user(db_session):
    """Return a fresh copy of a user after requests made through the client."""
    def _reload(user_id: str) -> User:
        db_session.expire_all()
        return db_session.get(User, user_id)

    return _reload
