"""Webflow site listing and Printful → Webflow product sync endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from connector_service.clients import WebflowClient
from connector_service.dependencies import get_product_sync_service, get_webflow_client
from connector_service.errors import BadRequestError
from connector_service.services.product_sync import ProductSyncService

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================


class ProductSyncRequest(BaseModel):
    """Sync one Printful product into a Webflow site."""

    product_id: int | str | None = Field(None, alias="productId")
    site_id: str | None = Field(None, alias="siteId")
    collection_id: str | None = Field(None, alias="collectionId")


class SiteSyncRequest(BaseModel):
    """Sync every Printful product into a Webflow site."""

    site_id: str | None = Field(None, alias="siteId")


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/sites")
async def list_sites(webflow: WebflowClient = Depends(get_webflow_client)) -> dict[str, Any]:
    sites = await webflow.list_sites()
    if not sites:
        logger.warning("No Webflow sites found for token")
    return {"sites": sites, "count": len(sites)}


@router.post("/sync")
async def sync_product(
    body: ProductSyncRequest,
    service: ProductSyncService = Depends(get_product_sync_service),
) -> dict[str, Any]:
    """
    Sync a single Printful product.

    Creates the Webflow product and SKUs on first sync, adds SKUs for new
    variants afterwards, and refreshes stock once every variant is linked.
    """
    if not body.product_id or not body.site_id:
        raise BadRequestError("Missing required parameters: productId and siteId")
    return await service.sync_product(body.product_id, body.site_id, body.collection_id)


@router.post("/products/sync")
async def sync_all_products(
    body: SiteSyncRequest,
    service: ProductSyncService = Depends(get_product_sync_service),
) -> dict[str, Any]:
    if not body.site_id:
        raise BadRequestError("Webflow site ID is required")
    summary = await service.sync_all_products(body.site_id)
    return {"code": 200, "result": summary}
