"""Persistent sync bookkeeping: Printful→Webflow links and sync status records."""

from datetime import datetime, timezone
from typing import Any

import structlog

from connector_service.infrastructure.redis import CacheService
from shared.constants import PRODUCT_LINK_PREFIX, SYNC_STATUS_PREFIX, VARIANT_LINK_PREFIX

logger = structlog.get_logger()

SYNC_STATUSES = ("idle", "running", "error")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncLinkStore:
    """Maps Printful sync variants and products to the Webflow records created for them.

    Links never expire; they are overwritten when a product is re-synced.
    """

    def __init__(self, cache: CacheService):
        self.cache = cache

    @staticmethod
    def _variant_key(sync_variant_id: Any) -> str:
        return f"{VARIANT_LINK_PREFIX}:{sync_variant_id}"

    @staticmethod
    def _product_key(product_id: Any) -> str:
        return f"{PRODUCT_LINK_PREFIX}:{product_id}"

    async def get_variant_links(
        self, sync_variant_ids: list[str], site_id: str | None = None
    ) -> dict[str, dict[str, Any]]:
        """Stored links for the given variants, optionally restricted to one site."""
        if not sync_variant_ids:
            return {}
        values = await self.cache.get_many([self._variant_key(v) for v in sync_variant_ids])
        links = {}
        for variant_id, link in zip(sync_variant_ids, values):
            if not link:
                continue
            if site_id and link.get("siteId") != site_id:
                continue
            links[variant_id] = link
        return links

    async def link_variant(
        self,
        sync_variant_id: Any,
        site_id: str,
        webflow_product_id: str,
        webflow_sku_id: str | None,
        synced_at: str | None = None,
    ) -> None:
        await self.cache.set(
            self._variant_key(sync_variant_id),
            {
                "siteId": site_id,
                "webflowProductId": webflow_product_id,
                "webflowSkuId": webflow_sku_id,
                "lastSynced": synced_at or utc_now_iso(),
            },
            ttl_seconds=None,
        )

    async def get_product_link(
        self, product_id: Any, site_id: str | None = None
    ) -> dict[str, Any] | None:
        link = await self.cache.get(self._product_key(product_id))
        if not link or (site_id and link.get("siteId") != site_id):
            return None
        return link

    async def link_product(
        self,
        product_id: Any,
        site_id: str,
        webflow_product_id: str,
        synced_at: str | None = None,
    ) -> None:
        await self.cache.set(
            self._product_key(product_id),
            {
                "siteId": site_id,
                "webflowProductId": webflow_product_id,
                "lastSynced": synced_at or utc_now_iso(),
            },
            ttl_seconds=None,
        )


class SyncStatusStore:
    """Status of long-running sync jobs, keyed by sync id."""

    def __init__(self, cache: CacheService):
        self.cache = cache

    @staticmethod
    def _key(sync_id: str) -> str:
        return f"{SYNC_STATUS_PREFIX}:{sync_id}"

    async def get(self, sync_id: str) -> dict[str, Any]:
        record = await self.cache.get(self._key(sync_id))
        if record:
            return record
        return {
            "id": sync_id,
            "status": "idle",
            "records_synced": 0,
            "last_sync_at": None,
            "updated_at": None,
            "error_message": None,
        }

    async def update(
        self,
        sync_id: str,
        status: str,
        records_synced: int = 0,
        error_message: str | None = None,
    ) -> dict[str, Any]:
        """Upsert a status record.

        ``records_synced`` keeps its previous value when 0 is passed, and
        ``last_sync_at`` only moves when a run finishes (status ``idle``).
        """
        if status not in SYNC_STATUSES:
            raise ValueError(f"Unknown sync status: {status}")

        previous = await self.cache.get(self._key(sync_id)) or {}
        now = utc_now_iso()
        record = {
            "id": sync_id,
            "status": status,
            "records_synced": records_synced or previous.get("records_synced", 0),
            "last_sync_at": now if status == "idle" else previous.get("last_sync_at"),
            "updated_at": now,
            "error_message": error_message,
        }
        await self.cache.set(self._key(sync_id), record, ttl_seconds=None)
        logger.debug("Sync status updated", sync_id=sync_id, status=status)
        return record
