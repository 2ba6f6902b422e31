"""Pytest configuration and fixtures for Blueberry tests.

Test isolation strategy:
- Every test gets its own in-memory SQLite database (one shared connection
  via StaticPool) with the schema created from the ORM metadata
- Uploaded files go to a per-test temporary directory
- The LLM provider is replaced by ScriptedAdapter; no network calls
"""

import sys
from collections.abc import Generator
from functools import partial
from pathlib import Path

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from blueberry.app import create_app
from blueberry.config import clear_settings_cache
from blueberry.db.engine import create_db_engine
from blueberry.db.models import Base
from blueberry.db.session import create_session_factory
from blueberry.logging import configure_logging
from blueberry.services.llm import LLMRouter
from tests.helpers import ScriptedAdapter


@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path) -> Generator[Path, None, None]:
    """Point settings at a test environment with a configured provider key."""
    uploads_dir = tmp_path / "uploads"
    monkeypatch.setenv("BLUEBERRY_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("UPLOADS_DIR", str(uploads_dir))
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-not-real")
    monkeypatch.setenv("LOG_JSON", "false")
    clear_settings_cache()
    yield uploads_dir
    clear_settings_cache()


@pytest.fixture(autouse=True)
def uncached_loggers(monkeypatch) -> None:
    """Keep structlog loggers uncached so capture_logs sees every module logger.

    create_app configures logging; a logger cached after that would keep
    the real processors for the rest of the session.
    """
    monkeypatch.setattr(
        "blueberry.app.configure_logging", partial(configure_logging, cache_loggers=False)
    )


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with the full schema."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def llm_adapter() -> ScriptedAdapter:
    """Provider stand-in. Tests set .deltas or .error before sending."""
    return ScriptedAdapter(deltas=["Hello", " there"])


@pytest.fixture
def app(session_factory, llm_adapter):
    router = LLMRouter(httpx.AsyncClient(), adapters={"gemini": llm_adapter})
    return create_app(session_factory=session_factory, llm_router=router)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """FastAPI test client bound to the per-test database."""
    with TestClient(app) as client:
        yield client
