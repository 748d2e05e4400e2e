"""Shared fixtures for LeadFlow tests."""

import os

import pytest

# Keep real provider credentials and databases out of the test run
for _var in (
    "OPENAI_API_KEY",
    "GOOGLE_GENERATIVE_AI_API_KEY",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "DATABASE_URL",
):
    os.environ.pop(_var, None)

from database.session import create_engine, create_session_factory, create_tables
from fakes import FakeClock, make_provider, scoring_reply


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'leadflow.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def broken_session_factory(tmp_path):
    """Session factory for a store whose tables were never created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing.db'}")
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def fake_providers():
    """Replaced per test to control what the app's providers return."""
    return [make_provider("OpenAI", reply=scoring_reply(), chunks=["Thanks", " for", " reaching out!"])]


@pytest.fixture
def client(tmp_path, monkeypatch, fake_providers):
    """FastAPI test client backed by a temporary SQLite database and fake providers."""
    from fastapi.testclient import TestClient

    from config.settings import get_settings
    from api.services import get_services

    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    get_settings.cache_clear()
    monkeypatch.setattr("api.services.build_providers", lambda settings: fake_providers)
    get_services().reset()

    from api.main import app

    with TestClient(app) as test_client:
        yield test_client

    get_services().reset()
    get_settings.cache_clear()
