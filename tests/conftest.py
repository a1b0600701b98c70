"""Shared fixtures: in-memory SQLite per test, user/actor factories, API client."""
import itertools
import os
import tempfile

# Settings are read at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["AUDIT_LOG_DIR"] = tempfile.mkdtemp(prefix="cbo-audit-")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import cbo.models  # noqa: F401  registers every table on Base.metadata
from cbo.db.base import Base, get_db, unit_of_work
from cbo.main import app
from cbo.models.role import AppRole
from cbo.services.auth import create_user
from cbo.services.rbac import build_actor, grant_role_unchecked

PASSWORD = "password123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    """Register a user (member role + member record) and grant any extra roles."""
    counter = itertools.count(1)

    def _make_user(*roles, email=None, full_name=None):
        n = next(counter)
        user = create_user(
            db,
            email=email or f"user{n}@example.org",
            password=PASSWORD,
            full_name=full_name or f"Test User {n}",
        )
        if roles:
            with unit_of_work(db):
                for role in roles:
                    grant_role_unchecked(db, user.id, role)
        return user

    return _make_user


@pytest.fixture
def actor_for(db):
    def _actor_for(user):
        return build_actor(db, user.id)
    return _actor_for


@pytest.fixture
def admin(make_user, actor_for):
    return actor_for(make_user(AppRole.ADMIN, email="admin@example.org", full_name="Ada Admin"))


@pytest.fixture
def treasurer(make_user, actor_for):
    return actor_for(make_user(AppRole.TREASURER, email="treasurer@example.org", full_name="Tom Treasurer"))


@pytest.fixture
def member_actor(make_user, actor_for):
    return actor_for(make_user(full_name="Mary Member"))


@pytest.fixture
def other_member(make_user, actor_for):
    return actor_for(make_user(full_name="Otto Other"))


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Return bearer headers for an email/password pair."""
    def _login(email, password=PASSWORD):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _login
