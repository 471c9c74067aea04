"""Webflow Data API v2 client."""

from typing import Any

import httpx
import structlog

from connector_service.clients.base import ApiClient
from connector_service.config import get_settings
from shared.constants import WEBFLOW, WEBFLOW_PAGE_SIZE

logger = structlog.get_logger()

API_VERSION = "2.0.0"


def extract_sites(body: Any) -> list[dict[str, Any]]:
    """Normalize the sites listing, which may be wrapped, bare, or a single site."""
    if isinstance(body, dict):
        if isinstance(body.get("sites"), list):
            return body["sites"]
        if "id" in body and ("displayName" in body or "name" in body):
            return [body]
        return []
    if isinstance(body, list):
        return body
    return []


class WebflowClient(ApiClient):
    """Async client for the Webflow sites, CMS, ecommerce and orders APIs."""

    provider = WEBFLOW

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        super().__init__(
            access_token,
            base_url or settings.webflow_api_base_url,
            timeout=timeout or settings.http_timeout_seconds,
            transport=transport,
            extra_headers={"accept-version": API_VERSION},
        )

    def _error_message(self, body: Any, response: httpx.Response) -> str:
        if isinstance(body, dict):
            for key in ("message", "msg", "err"):
                if body.get(key):
                    return str(body[key])
        return super()._error_message(body, response)

    # ------------------------------------------------------------------
    # Sites / token
    # ------------------------------------------------------------------

    async def list_sites(self) -> list[dict[str, Any]]:
        return extract_sites(await self._request("GET", "/sites"))

    async def authorized_by(self) -> dict[str, Any]:
        """The user who authorized the current token."""
        return await self._request("GET", "/token/authorized_by")

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def list_collections(self, site_id: str) -> list[dict[str, Any]]:
        body = await self._request("GET", f"/sites/{site_id}/collections")
        return body.get("collections") or []

    async def get_collection(self, collection_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/collections/{collection_id}")

    async def create_collection_field(
        self, collection_id: str, field: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request("POST", f"/collections/{collection_id}/fields", json=field)

    # ------------------------------------------------------------------
    # Ecommerce products and SKUs
    # ------------------------------------------------------------------

    async def list_products(self, site_id: str) -> list[dict[str, Any]]:
        """All products of a site; each item holds ``product`` and ``skus``."""
        items: list[dict[str, Any]] = []
        offset = 0
        while True:
            body = await self._request(
                "GET",
                f"/sites/{site_id}/products",
                params={"offset": offset, "limit": WEBFLOW_PAGE_SIZE},
            )
            page = body.get("items") or []
            items.extend(page)

            total = (body.get("pagination") or {}).get("total")
            offset += len(page)
            if not page or total is None or offset >= int(total):
                break
        return items

    async def create_product(self, site_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a product with its default SKU.

        ``payload`` is ``{"publishStatus", "product": {"fieldData"}, "sku": {"fieldData"}}``.
        """
        return await self._request("POST", f"/sites/{site_id}/products", json=payload)

    async def create_skus(
        self,
        site_id: str,
        product_id: str,
        skus: list[dict[str, Any]],
        publish_status: str = "live",
    ) -> list[dict[str, Any]]:
        body = await self._request(
            "POST",
            f"/sites/{site_id}/products/{product_id}/skus",
            json={"publishStatus": publish_status, "skus": skus},
        )
        return body.get("skus") or []

    async def update_sku(
        self,
        site_id: str,
        product_id: str,
        sku_id: str,
        field_data: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/sites/{site_id}/products/{product_id}/skus/{sku_id}",
            json={"sku": {"fieldData": field_data}},
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def list_orders(
        self, site_id: str, limit: int = 50, status: str | None = None
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit}
        if status:
            params["status"] = status
        body = await self._request("GET", f"/sites/{site_id}/orders", params=params)
        return body.get("orders") or []

    async def get_order(self, site_id: str, order_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/sites/{site_id}/orders/{order_id}")

    async def update_order(
        self, site_id: str, order_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request("PATCH", f"/sites/{site_id}/orders/{order_id}", json=fields)

    async def fulfill_order(
        self, site_id: str, order_id: str, send_email: bool = False
    ) -> dict[str, Any]:
        logger.info("Marking Webflow order fulfilled", site_id=site_id, order_id=order_id)
        return await self._request(
            "POST",
            f"/sites/{site_id}/orders/{order_id}/fulfill",
            json={"sendOrderFulfilledEmail": send_email},
        )
