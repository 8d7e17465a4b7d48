# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import datetime
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-urbanfix")
os.environ.setdefault("GEOCODING_ENABLED", "false")

from urbanfix.core.security import Principal, create_access_token
from urbanfix.core.settings import Settings
from urbanfix.db.session import Base, enable_sqlite_savepoints
from urbanfix.db.session import get_db as app_get_session
from urbanfix.db.time import utc_day, utcnow
from urbanfix.main import app as fastapi_app
from urbanfix.models import Issue, IssueReport, User
from urbanfix.models.issue import ISSUE_STATUS_PENDING

TEST_DB_URL = "sqlite://"

_ISSUE_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    # Services commit and roll back on their own, so each test runs against a
    # plain session and the tables are emptied afterwards.
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return Settings()  # type: ignore[call-arg]


@pytest.fixture()
def citizen() -> Principal:
    return Principal(user_id="citizen-1", role="user", email="citizen1@example.org")


@pytest.fixture()
def other_citizen() -> Principal:
    return Principal(user_id="citizen-2", role="user", email="citizen2@example.org")


@pytest.fixture()
def ngo() -> Principal:
    return Principal(user_id="ngo-1", role="ngo", email="team@ngo.example.org")


@pytest.fixture()
def admin() -> Principal:
    return Principal(user_id="admin-1", role="admin")


def auth_headers(principal: Principal) -> dict[str, str]:
    """Return a bearer header carrying a token for ``principal``."""
    token = create_access_token(
        principal.user_id,
        role=principal.role,
        email=principal.email,
        full_name=principal.full_name,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def citizen_headers(citizen: Principal) -> dict[str, str]:
    return auth_headers(citizen)


@pytest.fixture()
def other_citizen_headers(other_citizen: Principal) -> dict[str, str]:
    return auth_headers(other_citizen)


@pytest.fixture()
def ngo_headers(ngo: Principal) -> dict[str, str]:
    return auth_headers(ngo)


@pytest.fixture()
def admin_headers(admin: Principal) -> dict[str, str]:
    return auth_headers(admin)


@pytest.fixture()
def issue_factory(db_session: Session) -> Callable[..., Issue]:
    """Return a helper that persists an issue with its creator's report row."""

    def _create(
        *,
        latitude: float = 18.5204,
        longitude: float = 73.8567,
        status: str = ISSUE_STATUS_PENDING,
        created_by: str = "seed-user",
        created_at: datetime | None = None,
        priority_score: int = 0,
        users_reported: int = 1,
        ai_verified: bool = False,
        addressed_at: datetime | None = None,
    ) -> Issue:
        moment = created_at or utcnow()
        creator = db_session.get(User, created_by)
        if creator is None:
            creator = User(id=created_by, role="user")
            db_session.add(creator)
        day = utc_day(moment)
        if creator.last_issue_date is None or creator.last_issue_date < day:
            creator.last_issue_date = day
        issue = Issue(
            created_by=created_by,
            title=f"Seeded issue {next(_ISSUE_COUNTER)}",
            image_url="https://img.example.org/seed.jpg",
            latitude=latitude,
            longitude=longitude,
            status=status,
            ai_verified=ai_verified,
            priority_score=priority_score,
            users_reported=users_reported,
            created_at=moment,
            updated_at=moment,
            addressed_at=addressed_at,
        )
        db_session.add(issue)
        db_session.flush()
        db_session.add(
            IssueReport(issue_id=issue.id, user_id=created_by, created_at=moment)
        )
        db_session.commit()
        db_session.refresh(issue)
        return issue

    return _create
