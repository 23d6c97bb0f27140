"""
Pytest configuration and shared fixtures.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from futures_dashboard.api.main import app, get_refresher, get_service
from futures_dashboard.core.services import AccountService
from futures_dashboard.core.settings import Settings
from futures_dashboard.infrastructure.cache.response_cache import ResponseCache
from futures_dashboard.infrastructure.persistence.memory_repo import InMemoryArchive
from tests.helpers import NOW, FakeExchange


@pytest.fixture
def exchange():
    return FakeExchange()


@pytest.fixture
def archive():
    return InMemoryArchive()


@pytest.fixture
def settings():
    return Settings(trade_symbols=["BTCUSDT"], api_timeout_seconds=5.0)


@pytest.fixture
def service(exchange, archive, settings):
    return AccountService(exchange, archive, ResponseCache(ttl_seconds=60), settings, clock=lambda: NOW)


@pytest.fixture
async def client(service):
    """Async HTTP client for testing FastAPI endpoints."""
    app.dependency_overrides[get_service] = lambda: service
    app.dependency_overrides[get_refresher] = lambda: None
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
