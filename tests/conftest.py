import httpx
import pytest
from httpx import ASGITransport

SOURCE_URL = "https://www.booking.com/reviews/ke/hotel/test-house.html"

CONFIG_VARS = (
    "MPESA_CONSUMER_KEY",
    "MPESA_CONSUMER_SECRET",
    "MPESA_PASSKEY",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "FIRECRAWL_API_KEY",
    "LOVABLE_API_KEY",
)


@pytest.fixture
def clear_env(monkeypatch):
    for name in CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_env(monkeypatch, clear_env):
    monkeypatch.setenv("MPESA_CONSUMER_KEY", "test-consumer-key")
    monkeypatch.setenv("MPESA_CONSUMER_SECRET", "test-consumer-secret")
    monkeypatch.setenv("MPESA_PASSKEY", "test-passkey")
    monkeypatch.setenv("SUPABASE_URL", "https://db.test.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "test-anon-key")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")
    monkeypatch.setenv("FIRECRAWL_API_KEY", "test-fc-key")
    monkeypatch.setenv("LOVABLE_API_KEY", "test-ai-key")
    monkeypatch.setenv("REVIEW_SOURCE_URLS", f'["{SOURCE_URL}"]')
    monkeypatch.setenv("REVIEW_SEARCH_QUERY", "Test House reviews")


async def _app_client():
    from gateway.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c


@pytest.fixture
async def client(mock_env):
    async for c in _app_client():
        yield c


@pytest.fixture
async def unconfigured_client(clear_env):
    async for c in _app_client():
        yield c
