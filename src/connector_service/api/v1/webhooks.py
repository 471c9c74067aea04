"""Webflow webhook receiver."""

from typing import Any

import orjson
import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from connector_service.config import Settings, get_settings
from connector_service.dependencies import ClientFactory, get_client_factory, get_token_store
from connector_service.errors import BadRequestError, NotConnectedError
from connector_service.services.order_sync import OrderSyncService, verify_webhook_signature
from connector_service.services.token_store import TokenStore
from shared.constants import PRINTFUL

logger = structlog.get_logger()

router = APIRouter()


@router.post("/order")
async def order_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    tokens: TokenStore = Depends(get_token_store),
    factory: ClientFactory = Depends(get_client_factory),
) -> Any:
    """Create a Printful order for a new Webflow order.

    The signature is checked before the Printful token is looked up.
    Webhooks carry no browser session and use the provider-level token.
    """
    body = await request.body()

    if settings.webflow_webhook_secret and not verify_webhook_signature(
        settings.webflow_webhook_secret,
        request.headers.get("x-webflow-timestamp"),
        request.headers.get("x-webflow-signature"),
        body,
    ):
        logger.warning("Rejected webhook with invalid signature")
        return JSONResponse({"error": "Invalid webhook signature"}, status_code=401)

    try:
        payload = orjson.loads(body)
    except orjson.JSONDecodeError:
        raise BadRequestError("Webhook body is not valid JSON") from None
    if not isinstance(payload, dict):
        raise BadRequestError("Webhook body must be a JSON object")

    token = await tokens.get_provider_token(PRINTFUL)
    if not token:
        raise NotConnectedError(PRINTFUL)
    async with factory.printful(token) as printful:
        service = OrderSyncService(printful, None, settings)
        result = await service.create_order_from_webhook(payload)
    logger.info("Webhook order forwarded to Printful", **result)
    return {"code": 200, "result": result}
