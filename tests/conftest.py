"""
Pytest configuration and fixtures for ConvoSpace tests.

Provides an in-memory database, an API client wired to it, sample users
and a provider registry backed by scripted fake providers.
"""

import os

# Must be set before convospace.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "development")

from typing import Any, Generator, Iterator, Optional  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from convospace.config import Settings  # noqa: E402
from convospace.models.db import Base, User  # noqa: E402
from convospace.providers.base import LLMProvider, LLMResponse  # noqa: E402
from convospace.providers.catalog import ProviderSpec, build_catalog  # noqa: E402
from convospace.providers.errors import ErrorTracker  # noqa: E402
from convospace.providers.registry import ProviderRegistry  # noqa: E402
from convospace.security import create_access_token, hash_password  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},  # TestClient runs handlers in threads
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    Each test gets a fresh session with a transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection)()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def api_client(db_session: Session):
    """Create a test client for FastAPI with database dependency override."""
    from unittest.mock import patch

    from fastapi.testclient import TestClient

    from convospace.api.app import app
    from convospace.db.connection import get_db

    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    # Disable lifespan startup checks for testing
    with patch("convospace.api.app.run_all_startup_checks"):
        client = TestClient(app)
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_user(db_session: Session) -> User:
    """Create an active user with TEST_PASSWORD."""
    user = User(
        email="ada@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(sample_user: User) -> dict[str, str]:
    token = create_access_token(sample_user.id, sample_user.email)
    return {"Authorization": f"Bearer {token}"}


class FakeProvider(LLMProvider):
    """Provider returning scripted content or raising a scripted error."""

    def __init__(
        self,
        provider_id: str,
        model: str,
        content: str = "Hello from the fake provider",
        chunks: Optional[list[str]] = None,
        error: Optional[Exception] = None,
    ):
        self._provider_id = provider_id
        self._model = model
        self.content = content
        self.chunks = chunks if chunks is not None else [content]
        self.error = error
        self.calls: list[list[dict[str, str]]] = []

    @property
    def provider_name(self) -> str:
        return self._provider_id

    @property
    def model_name(self) -> str:
        return self._model

    def complete(self, messages, max_tokens=1024, temperature=0.7) -> LLMResponse:
        self.calls.append(messages)
        if self.error:
            raise self.error
        return LLMResponse(
            content=self.content,
            provider=self._provider_id,
            model=self._model,
            total_tokens=12,
        )

    def stream(self, messages, max_tokens=1024, temperature=0.7) -> Iterator[str]:
        self.calls.append(messages)
        if self.error:
            raise self.error
        yield from self.chunks


class ScriptedFactory:
    """Provider factory creating FakeProviders from per-provider scripts."""

    def __init__(self, scripts: dict[str, dict[str, Any]]):
        self.scripts = scripts
        self.created: list[FakeProvider] = []

    def __call__(self, spec: ProviderSpec, api_key: str, model: str) -> FakeProvider:
        provider = FakeProvider(spec.id, model, **self.scripts.get(spec.id, {}))
        self.created.append(provider)
        return provider


@pytest.fixture
def test_settings() -> Settings:
    """Settings with keys for openrouter, chutes and anthropic only."""
    return Settings(
        openrouter_api_key="sk-or-test",
        chutes_api_key="cpk-test",
        anthropic_api_key="sk-ant-test",
        google_api_key="",
        portkey_api_key="",
        openai_api_key="",
        local_openai_api_key="",
        circuit_breaker_threshold=3,
        circuit_breaker_reset_seconds=60.0,
    )


@pytest.fixture
def make_registry(test_settings: Settings):
    """Build a ProviderRegistry whose providers follow the given scripts."""

    def _make(scripts: Optional[dict[str, dict[str, Any]]] = None) -> ProviderRegistry:
        factory = ScriptedFactory(scripts or {})
        registry = ProviderRegistry(
            test_settings,
            provider_factory=factory,
            specs=build_catalog(test_settings),
        )
        registry.factory = factory
        return registry

    return _make


@pytest.fixture
def use_registry(api_client, make_registry):
    """Install a scripted registry and a fresh error tracker on the app."""
    from convospace.api.app import app
    from convospace.providers import get_error_tracker, get_registry

    def _install(scripts: Optional[dict[str, dict[str, Any]]] = None) -> ProviderRegistry:
        registry = make_registry(scripts)
        tracker = ErrorTracker()
        app.dependency_overrides[get_registry] = lambda: registry
        app.dependency_overrides[get_error_tracker] = lambda: tracker
        registry.tracker = tracker
        return registry

    return _install


@pytest.fixture
def user_password() -> str:
    """Plain-text password of sample_user."""
    return TEST_PASSWORD
