"""Webflow order endpoints and Printful fulfillment."""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from connector_service.clients import WebflowClient
from connector_service.config import Settings, get_settings
from connector_service.dependencies import get_order_sync_service, get_webflow_client
from connector_service.errors import BadRequestError
from connector_service.services.order_sync import OrderSyncService

router = APIRouter()


class FulfillOrderRequest(BaseModel):
    order_id: str | None = Field(None, alias="orderId")
    site_id: str | None = Field(None, alias="siteId")


class BulkFulfillRequest(BaseModel):
    site_id: str | None = Field(None, alias="siteId")


@router.get("")
async def list_orders(
    site_id: str | None = Query(None, alias="siteId"),
    webflow: WebflowClient = Depends(get_webflow_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    if not site_id:
        raise BadRequestError("Site ID is required")
    service = OrderSyncService(None, webflow, settings)
    return {"result": await service.list_orders(site_id)}


@router.post("/fulfill")
async def fulfill_order(
    body: FulfillOrderRequest,
    service: OrderSyncService = Depends(get_order_sync_service),
) -> dict[str, Any]:
    if not body.order_id:
        raise BadRequestError("Order ID is required")
    return await service.fulfill_order(body.order_id, body.site_id)


@router.post("/fulfill-bulk")
async def fulfill_bulk(
    body: BulkFulfillRequest,
    service: OrderSyncService = Depends(get_order_sync_service),
) -> dict[str, Any]:
    if not body.site_id:
        raise BadRequestError("Site ID is required")
    return await service.fulfill_bulk(body.site_id)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    site_id: str | None = Query(None, alias="siteId"),
    webflow: WebflowClient = Depends(get_webflow_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    if not site_id:
        raise BadRequestError("Site ID is required")
    service = OrderSyncService(None, webflow, settings)
    return {"result": await service.get_order(site_id, order_id)}
