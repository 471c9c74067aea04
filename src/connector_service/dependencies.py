"""FastAPI dependencies shared by the v1 routes."""

from collections.abc import AsyncGenerator

import httpx
from fastapi import Depends, Request

from connector_service.auth.session import SessionManager, SessionProfiles
from connector_service.clients import PrintfulClient, WebflowClient
from connector_service.config import Settings, get_settings
from connector_service.errors import NotConnectedError
from connector_service.infrastructure.redis import CacheService, get_cache
from connector_service.services.order_sync import OrderSyncService
from connector_service.services.product_sync import ProductSyncService
from connector_service.services.token_store import TokenStore
from shared.constants import PRINTFUL, WEBFLOW


class ClientFactory:
    """Builds vendor clients; tests swap in a mock transport."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.transport = transport

    def printful(self, access_token: str) -> PrintfulClient:
        return PrintfulClient(access_token, transport=self.transport)

    def webflow(self, access_token: str) -> WebflowClient:
        return WebflowClient(access_token, transport=self.transport)


def get_client_factory() -> ClientFactory:
    return ClientFactory()


def get_session_manager(settings: Settings = Depends(get_settings)) -> SessionManager:
    return SessionManager(settings)


def get_token_store(cache: CacheService = Depends(get_cache)) -> TokenStore:
    return TokenStore(cache)


def get_session_profiles(
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> SessionProfiles:
    return SessionProfiles(cache, settings.session_max_age_seconds)


def get_session_id(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
) -> str | None:
    return sessions.read_session_id(request)


async def get_session_tokens(
    session_id: str | None = Depends(get_session_id),
    tokens: TokenStore = Depends(get_token_store),
) -> dict[str, str | None]:
    return await tokens.get_session_tokens(session_id)


# ============================================================================
# Vendor clients bound to the caller's tokens
# ============================================================================


async def get_printful_client(
    tokens: dict[str, str | None] = Depends(get_session_tokens),
    factory: ClientFactory = Depends(get_client_factory),
) -> AsyncGenerator[PrintfulClient, None]:
    if not tokens[PRINTFUL]:
        raise NotConnectedError(PRINTFUL)
    async with factory.printful(tokens[PRINTFUL]) as client:
        yield client


async def get_webflow_client(
    tokens: dict[str, str | None] = Depends(get_session_tokens),
    factory: ClientFactory = Depends(get_client_factory),
) -> AsyncGenerator[WebflowClient, None]:
    if not tokens[WEBFLOW]:
        raise NotConnectedError(WEBFLOW)
    async with factory.webflow(tokens[WEBFLOW]) as client:
        yield client


async def get_optional_webflow_client(
    tokens: dict[str, str | None] = Depends(get_session_tokens),
    factory: ClientFactory = Depends(get_client_factory),
) -> AsyncGenerator[WebflowClient | None, None]:
    if not tokens[WEBFLOW]:
        yield None
        return
    async with factory.webflow(tokens[WEBFLOW]) as client:
        yield client


async def get_connected_clients(
    tokens: dict[str, str | None] = Depends(get_session_tokens),
    factory: ClientFactory = Depends(get_client_factory),
) -> AsyncGenerator[tuple[PrintfulClient, WebflowClient], None]:
    """Both clients; fails naming every provider that is not connected."""
    missing = [p for p in (WEBFLOW, PRINTFUL) if not tokens[p]]
    if missing:
        raise NotConnectedError(*missing)
    async with factory.printful(tokens[PRINTFUL]) as printful:
        async with factory.webflow(tokens[WEBFLOW]) as webflow:
            yield printful, webflow


# ============================================================================
# Services
# ============================================================================


def get_product_sync_service(
    clients: tuple[PrintfulClient, WebflowClient] = Depends(get_connected_clients),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> ProductSyncService:
    printful, webflow = clients
    return ProductSyncService(printful, webflow, cache, settings)


def get_order_sync_service(
    clients: tuple[PrintfulClient, WebflowClient] = Depends(get_connected_clients),
    settings: Settings = Depends(get_settings),
) -> OrderSyncService:
    printful, webflow = clients
    return OrderSyncService(printful, webflow, settings)
