"""Printful account and store product endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from connector_service.clients import PrintfulClient, WebflowClient
from connector_service.config import Settings, get_settings
from connector_service.dependencies import (
    get_optional_webflow_client,
    get_printful_client,
    get_session_id,
    get_session_tokens,
)
from connector_service.infrastructure.redis import CacheService, get_cache
from connector_service.services.product_sync import ProductSyncService
from connector_service.services.token_store import token_preview
from shared.constants import PRINTFUL

router = APIRouter()


@router.get("/whoami")
async def whoami(printful: PrintfulClient = Depends(get_printful_client)) -> dict[str, Any]:
    """Raw Printful whoami payload."""
    return await printful.whoami()


@router.get("/test")
async def token_test(
    session_id: str | None = Depends(get_session_id),
    tokens: dict[str, str | None] = Depends(get_session_tokens),
):
    """Report whether the session holds a Printful token, without revealing it."""
    if not session_id:
        return JSONResponse({"error": "Not authenticated", "session": None}, status_code=401)
    token = tokens[PRINTFUL]
    return {
        "authenticated": True,
        "hasAccessToken": bool(token),
        "accessTokenPreview": token_preview(token),
    }


@router.get("/store/products")
async def store_products(
    site_id: str | None = Query(None, alias="siteId"),
    printful: PrintfulClient = Depends(get_printful_client),
    webflow: WebflowClient | None = Depends(get_optional_webflow_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Store products with per-variant sync status.

    When a site is given (or ``sync_default_site_id`` is set) and Webflow
    is connected, variants linked to that site are reported as ``synced``.
    """
    service = ProductSyncService(printful, webflow, cache, settings)
    products = await service.list_products_with_status(
        site_id or settings.sync_default_site_id or None
    )
    return {"result": products}
