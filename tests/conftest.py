"""Shared pytest fixtures for the Spendwise test-suite."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

import pytest


def _insert_repo_root() -> None:
    """Make the repository root importable without an editable install."""

    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_insert_repo_root()

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from spendwise import models  # noqa: E402
from spendwise.config import Settings  # noqa: E402
from spendwise.database import Base, Database, get_db  # noqa: E402
from spendwise.security import hash_password  # noqa: E402
from spendwise.server import create_app  # noqa: E402

TEST_SECRET = "test-secret"


def pytest_report_header(config: pytest.Config) -> Iterable[str]:  # pragma: no cover - pytest hook
    log_level = os.environ.get("SPENDWISE_LOG_LEVEL", "INFO")
    return [f"spendwise repo: {Path.cwd()}", f"SPENDWISE_LOG_LEVEL={log_level}"]


@pytest.fixture(autouse=True)
def _set_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SPENDWISE_LOG_LEVEL", "INFO")
    monkeypatch.delenv("SPENDWISE_JSON_LOGS", raising=False)


@pytest.fixture()
def settings() -> Settings:
    # Lowest bcrypt cost keeps the suite fast.
    return Settings(database_url="sqlite://", jwt_secret=TEST_SECRET, bcrypt_rounds=4)


@pytest.fixture(scope="session")
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture()
def db_session(engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    TestingSessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def make_user(db_session: Session) -> Callable[[str], models.User]:
    """Insert a user directly, bypassing the authenticator."""

    def _make(email: str) -> models.User:
        user = models.User(email=email, password_hash=hash_password("irrelevant", rounds=4))
        db_session.add(user)
        db_session.flush()
        return user

    return _make


@pytest.fixture()
def app(settings: Settings, db_session: Session):
    # Requests use the transactional test session; the handle only serves startup.
    handle = Database(settings.database_url)
    application = create_app(settings, database=handle)

    def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()
    handle.close()


@pytest.fixture()
def client(app) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def auth_headers(client: TestClient) -> Callable[..., dict[str, str]]:
    """Register and log in a user, returning the bearer header for it."""

    def _login(email: str = "a@x.com", password: str = "secret1") -> dict[str, str]:
        register = client.post("/register", json={"email": email, "password": password})
        assert register.status_code == 201, register.text
        login = client.post("/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        return {"Authorization": f"Bearer {login.json()['token']}"}

    return _login
