"""Webflow order listing and Printful fulfillment."""

import asyncio
import hashlib
import hmac
from typing import Any

import structlog

from connector_service.clients import PrintfulClient, WebflowClient
from connector_service.config import Settings, get_settings
from connector_service.errors import InvalidOrderError, NotFoundError, ProviderApiError
from connector_service.services.variant_mapping import variant_id_from_sku
from shared.constants import (
    FULFILLMENT_CARRIER,
    NON_FULFILLABLE_ORDER_STATUSES,
    TRACKING_PREFIX,
)

logger = structlog.get_logger()


def _money(amount: dict[str, Any] | None) -> float:
    """Webflow money objects carry minor units in ``value``."""
    if not amount or amount.get("value") in (None, ""):
        return 0
    return float(amount["value"]) / 100


def _fulfillment_status(order: dict[str, Any]) -> str:
    return "fulfilled" if order.get("fulfilledOn") else "unfulfilled"


def summarize_order(order: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": order.get("orderId"),
        "orderNumber": order.get("orderId"),
        "createdOn": order.get("acceptedOn"),
        "customerName": (order.get("customerInfo") or {}).get("fullName"),
        "total": _money(order.get("customerPaid")),
        "status": order.get("status"),
        "fulfillmentStatus": _fulfillment_status(order),
    }


def describe_order(order: dict[str, Any]) -> dict[str, Any]:
    customer = order.get("customerInfo") or {}
    address = order.get("shippingAddress") or {}
    status = _fulfillment_status(order)
    return {
        "id": order.get("orderId"),
        "orderNumber": order.get("orderId"),
        "createdOn": order.get("acceptedOn"),
        "customerInfo": {
            "name": customer.get("fullName") or "",
            "email": customer.get("email") or "",
            "phone": customer.get("phone") or "",
            "address": {
                "line1": address.get("line1") or "",
                "line2": address.get("line2") or "",
                "city": address.get("city") or "",
                "state": address.get("state") or "",
                "postalCode": address.get("postalCode") or "",
                "country": address.get("country") or "",
            },
        },
        "orderItems": [
            {
                "id": item.get("variantId") or "",
                "name": item.get("productName") or "",
                "variantName": item.get("variantName") or "",
                "sku": item.get("variantSku") or "",
                "price": _money(item.get("variantPrice")),
                "quantity": item.get("count") or 0,
                "thumbnailUrl": (item.get("variantImage") or {}).get("url") or "",
                "status": status,
            }
            for item in order.get("purchasedItems") or []
        ],
        "total": _money(order.get("customerPaid")),
        "fulfillmentStatus": status,
        "notes": order.get("orderComment") or "",
        "shippingInfo": {
            "provider": order.get("shippingProvider") or "",
            "tracking": order.get("shippingTracking") or "",
            "trackingUrl": order.get("shippingTrackingURL") or order.get("shippingTrackingUrl") or "",
        },
    }


def is_fulfillable(order: dict[str, Any]) -> bool:
    return not order.get("fulfilledOn") and order.get("status") not in NON_FULFILLABLE_ORDER_STATUSES


def _order_item(item: dict[str, Any], order_id: Any, strict: bool) -> dict[str, Any]:
    quantity = item.get("count") or item.get("quantity") or 1
    sku = item.get("variantSku") or item.get("sku")
    if sku:
        variant_id = variant_id_from_sku(sku)
        if variant_id is not None:
            return {"variant_id": variant_id, "quantity": quantity}
        if strict:
            raise InvalidOrderError(f"Could not extract Printful variant ID from SKU: {sku}")
        return {"sku": sku, "quantity": quantity}

    if item.get("productId"):
        logger.info("Order item has no SKU, using product id", order_id=order_id)
        return {"product_id": item["productId"], "quantity": quantity}
    raise InvalidOrderError(f"Item is missing both SKU and product ID in order {order_id}")


def build_printful_order(
    order: dict[str, Any], *, strict: bool = False, shipping: str = "STANDARD"
) -> dict[str, Any]:
    """Translate a Webflow order into a Printful order request body.

    In strict mode every item must carry a ``PF-<variant_id>`` SKU.
    """
    order_id = order.get("orderId")
    customer = order.get("customerInfo") or {}
    address = order.get("shippingAddress") or {}
    items = order.get("purchasedItems") or []
    if not items:
        raise InvalidOrderError(f"Order {order_id} has no purchased items")

    return {
        "external_id": order_id,
        "shipping": shipping,
        "recipient": {
            "name": customer.get("fullName") or address.get("addressee") or "",
            "email": customer.get("email") or "",
            "address1": address.get("line1") or "",
            "address2": address.get("line2") or "",
            "city": address.get("city") or "",
            "state_code": address.get("state") or "",
            "country_code": address.get("country") or "",
            "zip": address.get("postalCode") or "",
            "phone": customer.get("phone") or "",
        },
        "items": [_order_item(item, order_id, strict) for item in items],
    }


def build_printful_order_from_legacy_payload(
    payload: dict[str, Any], *, shipping: str = "STANDARD"
) -> dict[str, Any]:
    """Printful order from the flat ``{orderId, orderItems, customerInfo}`` webhook shape."""
    customer = payload.get("customerInfo") or {}
    address = customer.get("address") or {}
    items = []
    for item in payload.get("orderItems") or []:
        try:
            variant_id = int(item["variantId"])
        except (KeyError, TypeError, ValueError):
            raise InvalidOrderError(
                f"Invalid variant id in order {payload.get('orderId')}"
            ) from None
        items.append({"variant_id": variant_id, "quantity": item.get("quantity") or 1})
    if not items:
        raise InvalidOrderError(f"Order {payload.get('orderId')} has no items")

    return {
        "external_id": payload.get("orderId"),
        "shipping": shipping,
        "recipient": {
            "name": customer.get("name") or "",
            "email": customer.get("email") or "",
            "address1": address.get("line1") or "",
            "address2": address.get("line2") or "",
            "city": address.get("city") or "",
            "state_code": address.get("state") or "",
            "country_code": address.get("country") or "",
            "zip": address.get("postalCode") or "",
            "phone": customer.get("phone") or "",
        },
        "items": items,
    }


def verify_webhook_signature(
    secret: str, timestamp: str | None, signature: str | None, body: bytes
) -> bool:
    """Check a Webflow ``x-webflow-signature`` (HMAC-SHA256 of ``timestamp:body``)."""
    if not timestamp or not signature:
        return False
    message = f"{timestamp}:".encode() + body
    expected = hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


class OrderSyncService:
    """Reads Webflow orders and forwards them to Printful for fulfillment."""

    def __init__(
        self,
        printful: PrintfulClient | None,
        webflow: WebflowClient | None,
        settings: Settings | None = None,
    ):
        self.printful = printful
        self.webflow = webflow
        self.settings = settings or get_settings()

    async def list_orders(self, site_id: str) -> list[dict[str, Any]]:
        orders = await self.webflow.list_orders(site_id, limit=self.settings.orders_page_limit)
        return [summarize_order(order) for order in orders]

    async def get_order(self, site_id: str, order_id: str) -> dict[str, Any]:
        try:
            order = await self.webflow.get_order(site_id, order_id)
        except ProviderApiError as e:
            if e.status_code == 404:
                raise NotFoundError("Order not found") from e
            raise
        if not order:
            raise NotFoundError("Order not found")
        return describe_order(order)

    async def _mark_fulfilled(
        self,
        site_id: str,
        order_id: str,
        printful_order_id: Any,
        send_email: bool,
    ) -> None:
        await self.webflow.update_order(
            site_id,
            order_id,
            {
                "shippingProvider": FULFILLMENT_CARRIER,
                "shippingTracking": f"{TRACKING_PREFIX}{printful_order_id}",
            },
        )
        await self.webflow.fulfill_order(site_id, order_id, send_email=send_email)

    async def fulfill_order(self, order_id: str, site_id: str | None = None) -> dict[str, Any]:
        """Send one Webflow order to Printful and mark it fulfilled."""
        if not site_id:
            sites = await self.webflow.list_sites()
            if not sites:
                raise NotFoundError("No Webflow sites found")
            site_id = sites[0]["id"]

        order = await self.webflow.get_order(site_id, order_id)
        printful_order = build_printful_order(
            order, strict=True, shipping=self.settings.order_shipping_method
        )
        created = await self.printful.create_order(printful_order)
        printful_order_id = created.get("id")

        try:
            await self._mark_fulfilled(site_id, order_id, printful_order_id, send_email=False)
        except ProviderApiError as e:
            logger.error("Error updating Webflow order status", order_id=order_id, error=str(e))

        return {
            "success": True,
            "message": "Order successfully sent to Printful",
            "printfulOrderId": printful_order_id,
        }

    async def _fulfill_one(self, site_id: str, order: dict[str, Any]) -> dict[str, Any]:
        order_id = order.get("orderId")
        try:
            if not order_id:
                raise InvalidOrderError("Order ID is missing")
            printful_order = build_printful_order(
                order, strict=False, shipping=self.settings.order_shipping_method
            )
            created = await self.printful.create_order(printful_order)
            await self._mark_fulfilled(site_id, order_id, created.get("id"), send_email=False)
        except (ProviderApiError, InvalidOrderError) as e:
            logger.error("Error processing order", order_id=order_id, error=str(e))
            return {"orderId": order_id, "success": False, "error": str(e)}
        return {"orderId": order_id, "success": True, "printfulOrderId": created.get("id")}

    async def fulfill_bulk(self, site_id: str) -> dict[str, Any]:
        """Forward every unfulfilled order of a site to Printful, concurrently."""
        orders = await self.webflow.list_orders(
            site_id, limit=self.settings.bulk_orders_page_limit
        )
        pending = [order for order in orders if is_fulfillable(order)]
        if not pending:
            return {"message": "No unfulfilled orders found", "success": True, "count": 0}

        results = await asyncio.gather(*(self._fulfill_one(site_id, o) for o in pending))
        succeeded = sum(1 for r in results if r["success"])
        failed = len(results) - succeeded
        logger.info("Bulk fulfillment finished", site_id=site_id, succeeded=succeeded, failed=failed)
        return {
            "success": True,
            "message": f"Successfully processed {succeeded} orders. Failed: {failed} orders.",
            "results": list(results),
            "totalProcessed": len(results),
        }

    async def create_order_from_webhook(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a Printful order from a Webflow order webhook body."""
        order = payload.get("payload") if "triggerType" in payload else payload
        if not isinstance(order, dict):
            raise InvalidOrderError("Webhook payload carries no order")

        if "purchasedItems" in order:
            printful_order = build_printful_order(
                order, strict=False, shipping=self.settings.order_shipping_method
            )
        else:
            printful_order = build_printful_order_from_legacy_payload(
                order, shipping=self.settings.order_shipping_method
            )

        created = await self.printful.create_order(printful_order)
        return {
            "webflowOrderId": printful_order["external_id"],
            "printfulOrderId": created.get("id"),
        }
