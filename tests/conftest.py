"""Shared test fixtures for the Kontexto test suite.

Tests run against a throwaway SQLite database (override with
TEST_DATABASE_URL). The app creates its tables on import; each test starts
from empty tables.
"""

import os
import tempfile
from datetime import timedelta

# Use the test database and quiet logging before any app imports.
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'kontexto_test.db')}",
)
os.environ["LOG_FORMAT"] = "text"
os.environ["ENVIRONMENT"] = "development"

import pytest
from sqlalchemy import text
from fastapi.testclient import TestClient

from kontexto.database import get_db, SessionLocal
from kontexto.main import app
from kontexto.core.config import settings
from kontexto.core.token_factory import ROLE_SERVICE, create_token
from kontexto.models import Context, Job, User
from kontexto.models.job import utcnow
from kontexto.repositories import ContextRepository, UserRepository
from kontexto.schemas.job import AnalyzeRepoPayload

# Children before parents (contexts reference users).
_CLEAN_TABLES = ["jobs", "contexts", "users"]


@pytest.fixture(autouse=True)
def _clean_tables():
    """Empty all tables before each test.

    Runs before the test (not after) so test failures leave data
    available for debugging.
    """
    db = SessionLocal()
    try:
        for table in _CLEAN_TABLES:
            db.execute(text(f"DELETE FROM {table}"))
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def client(db):
    """FastAPI TestClient with the DB dependency overridden to use the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def user(db) -> User:
    return UserRepository(db).create(github_id="1001", name="Ada")


@pytest.fixture()
def other_user(db) -> User:
    return UserRepository(db).create(github_id="2002", name="Grace")


@pytest.fixture()
def context(db, user) -> Context:
    return make_context(db, user)


@pytest.fixture()
def auth_headers(user) -> dict:
    """Bearer headers for ``user``."""
    return headers_for(user.id)


@pytest.fixture()
def service_headers() -> dict:
    """Bearer headers for the analysis worker."""
    token = create_token("analysis-worker", settings.jwt_secret_key, role=ROLE_SERVICE)
    return {"Authorization": f"Bearer {token}"}


def headers_for(user_id: str = "", github_id: str = None) -> dict:
    token = create_token(user_id, settings.jwt_secret_key, github_id=github_id)
    return {"Authorization": f"Bearer {token}"}


def make_context(db, owner: User, name: str = "Demo", repo: str = "octo/demo", branch: str = None) -> Context:
    """Factory for contexts owned by *owner*."""
    return ContextRepository(db).create(
        owner_id=owner.id,
        name=name,
        repo_url=f"https://github.com/{repo}",
        branch=branch,
    )


def make_payload(context_id: str = "ctx-1", user_id: str = "user-1", **overrides) -> AnalyzeRepoPayload:
    """Factory for analyze_repo payloads."""
    fields = {
        "context_id": context_id,
        "user_id": user_id,
        "repo_url": "https://github.com/octo/demo",
        "branch": "main",
        "context_name": "Demo",
        "access_token": None,
    }
    fields.update(overrides)
    return AnalyzeRepoPayload(**fields)


def age_job(db, job_id: str, minutes: int) -> None:
    """Pretend *job_id* was last updated *minutes* ago."""
    db.query(Job).filter(Job.id == job_id).update(
        {Job.updated_at: utcnow() - timedelta(minutes=minutes)},
        synchronize_session=False,
    )
    db.commit()


def set_status(db, job_id: str, status: str, **fields) -> None:
    """Force a job's columns, bypassing the lifecycle rules."""
    values = {Job.status: status}
    values.update({getattr(Job, name): value for name, value in fields.items()})
    db.query(Job).filter(Job.id == job_id).update(values, synchronize_session=False)
    db.commit()
