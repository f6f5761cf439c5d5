"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

# Must be set before any app imports that trigger Settings validation.
os.environ["STORE_BACKEND"] = "memory"

from core.config import Settings, get_settings  # noqa: E402
from db.memory_store import InMemoryStore  # noqa: E402
from services.token_repository import TokenRepository  # noqa: E402
from services.token_service import TokenService  # noqa: E402

START = datetime(2024, 5, 1, 9, 30, tzinfo=UTC)


class FrozenClock:
    """Controllable clock injected in place of the wall clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        """Move the clock forward by a timedelta given as keyword arguments."""
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    """A clock frozen at a fixed instant."""
    return FrozenClock()


@pytest.fixture
def store() -> InMemoryStore:
    """An empty in-memory document store."""
    return InMemoryStore()


@pytest.fixture
def repository(store: InMemoryStore, clock: FrozenClock) -> TokenRepository:
    """Token repository over the in-memory store."""
    return TokenRepository(store, clock=clock)


@pytest.fixture
def service(repository: TokenRepository, clock: FrozenClock) -> TokenService:
    """Token service sharing the repository and clock."""
    return TokenService(repository, clock=clock)


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, STORE_BACKEND="memory")


@pytest.fixture
async def client(
    store: InMemoryStore,
    service: TokenService,
    test_settings: Settings,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client wired to the in-memory store and frozen clock."""
    get_settings.cache_clear()

    from api.dependencies import get_store, get_token_service
    from api.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_token_service] = lambda: service
    app.dependency_overrides[get_settings] = lambda: test_settings

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
