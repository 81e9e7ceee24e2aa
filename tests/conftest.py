from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from pytest import MonkeyPatch
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel

from tasktracker.core.config import get_settings
from tasktracker.db.engine import create_engine_from_url
from tasktracker.main import create_app
from tests.shared import SERVICE_API_KEY, ApiTestContext, FakeIdentityVerifier


def _to_sqlite_url(path: Path) -> str:
    return f"sqlite:///{path.as_posix()}"


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return _to_sqlite_url(tmp_path / "tasktracker-test.db")


@pytest.fixture
def engine(database_url: str) -> Iterator[Engine]:
    engine = create_engine_from_url(database_url)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def api_context(
    database_url: str,
    engine: Engine,
    monkeypatch: MonkeyPatch,
) -> Iterator[ApiTestContext]:
    """Temporary SQLite database plus a test client whose identity verifier is faked."""
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("SERVICE_API_KEY", SERVICE_API_KEY)
    get_settings.cache_clear()

    verifier = FakeIdentityVerifier()
    with TestClient(create_app(identity_verifier=verifier)) as client:
        yield ApiTestContext(
            client=client,
            engine=engine,
            database_url=database_url,
            verifier=verifier,
        )

    get_settings.cache_clear()
