"""Printful REST API client."""

from typing import Any

import httpx
import structlog

from connector_service.clients.base import ApiClient
from connector_service.config import get_settings
from shared.constants import PRINTFUL, PRINTFUL_PAGE_SIZE

logger = structlog.get_logger()


class PrintfulClient(ApiClient):
    """Async client for the Printful store API.

    Every Printful response is wrapped as ``{"code": 200, "result": ...}``;
    the public methods return the unwrapped ``result``.
    """

    provider = PRINTFUL

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
            base_url or settings.printful_api_base_url,
            timeout=timeout or settings.http_timeout_seconds,
            transport=transport,
        )

    def _error_message(self, body: Any, response: httpx.Response) -> str:
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(body.get("result"), str):
                return body["result"]
        return super()._error_message(body, response)

    async def _result(self, method: str, path: str, **kwargs) -> Any:
        body = await self._request(method, path, **kwargs)
        if isinstance(body, dict) and "result" in body:
            return body["result"]
        return body

    async def whoami(self) -> dict[str, Any]:
        """Raw whoami payload (envelope included)."""
        return await self._request("GET", "/whoami")

    async def list_store_products(self) -> list[dict[str, Any]]:
        """All sync products in the store, following offset paging."""
        products: list[dict[str, Any]] = []
        offset = 0
        while True:
            body = await self._request(
                "GET",
                "/store/products",
                params={"offset": offset, "limit": PRINTFUL_PAGE_SIZE},
            )
            if not isinstance(body, dict):
                break
            page = body.get("result") or []
            products.extend(page)

            total = (body.get("paging") or {}).get("total")
            offset += len(page)
            if not page or total is None or offset >= int(total):
                break

        logger.debug("Fetched Printful store products", count=len(products))
        return products

    async def get_store_product(self, product_id: int | str) -> dict[str, Any]:
        """``{"sync_product": {...}, "sync_variants": [...]}`` for one product."""
        result = await self._result("GET", f"/store/products/{product_id}")
        return result if isinstance(result, dict) else {}

    async def get_store_variant(self, variant_id: int | str) -> dict[str, Any]:
        result = await self._result("GET", f"/store/variants/{variant_id}")
        return result if isinstance(result, dict) else {}

    async def create_order(self, order: dict[str, Any]) -> dict[str, Any]:
        result = await self._result("POST", "/orders", json=order)
        logger.info(
            "Printful order created",
            external_id=order.get("external_id"),
            printful_order_id=result.get("id") if isinstance(result, dict) else None,
        )
        return result
