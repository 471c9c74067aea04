"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from connector_service.auth.session import SessionManager
from connector_service.config import Settings, get_settings
from connector_service.dependencies import ClientFactory, get_client_factory
from connector_service.infrastructure.redis import CacheService, MemoryStore, get_cache
from connector_service.main import create_app
from connector_service.services.token_store import TokenStore, clear_provider_token_cache
from mock_api import MockApi


@pytest.fixture(autouse=True)
def _reset_provider_token_cache() -> None:
    clear_provider_token_cache()


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        secret_key="test-secret",
        public_base_url="http://testserver",
        printful_client_id="pf-client",
        printful_client_secret="pf-secret",
        webflow_client_id="wf-client",
        webflow_client_secret="wf-secret",
        sync_schema_propagation_seconds=0,
    )


@pytest.fixture
def cache() -> CacheService:
    """Cache without Redis, backed by a fresh in-memory store."""
    return CacheService(None, MemoryStore())


@pytest.fixture
def mock_api() -> MockApi:
    return MockApi()


@pytest.fixture
def transport(mock_api: MockApi) -> httpx.MockTransport:
    return httpx.MockTransport(mock_api)


@pytest.fixture
def app(test_settings: Settings, cache: CacheService, transport: httpx.MockTransport) -> Any:
    """Create test application."""
    # Override settings
    def get_test_settings() -> Settings:
        return test_settings

    async def get_test_cache() -> CacheService:
        return cache

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    app.dependency_overrides[get_cache] = get_test_cache
    app.dependency_overrides[get_client_factory] = lambda: ClientFactory(transport)
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create asynchronous test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def connect(client: TestClient, cache: CacheService, test_settings: Settings) -> Callable[..., str]:
    """Attach a session cookie whose session holds the given provider tokens."""

    def _connect(printful: str | None = None, webflow: str | None = None) -> str:
        session_id = "test-session"
        store = TokenStore(cache)
        for provider, token in (("printful", printful), ("webflow", webflow)):
            if token:
                asyncio.run(store.store_token(provider, session_id, token))
        client.cookies.set(
            test_settings.session_cookie_name,
            SessionManager(test_settings).encode_session_id(session_id),
        )
        return session_id

    return _connect


@pytest.fixture
def printful_product() -> dict:
    """Printful store product detail with two variants."""
    return {
        "sync_product": {
            "id": 101,
            "name": "Classic Tee",
            "description": "Soft cotton tee",
            "thumbnail_url": "https://files.example/tee.png",
            "variants": 2,
        },
        "sync_variants": [
            {
                "id": 5001,
                "variant_id": 4011,
                "name": "Black / M",
                "retail_price": "19.99",
                "availability_status": "active",
                "thumbnail_url": "https://files.example/tee-black-m.png",
            },
            {
                "id": 5002,
                "variant_id": 4012,
                "name": "White / L",
                "retail_price": "21.50",
                "availability_status": "out_of_stock",
            },
        ],
    }
