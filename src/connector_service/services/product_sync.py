"""Product synchronization service.

Copies Printful store products into a Webflow site's ecommerce catalog: one
Webflow product per Printful sync product, one Webflow SKU per sync variant.
"""

import asyncio
from typing import Any

import structlog

from connector_service.clients import PrintfulClient, WebflowClient
from connector_service.config import Settings, get_settings
from connector_service.errors import NotFoundError, ProviderApiError
from connector_service.infrastructure.redis import CacheService
from connector_service.services.sync_state import SyncLinkStore, SyncStatusStore, utc_now_iso
from connector_service.services.variant_mapping import (
    build_product_payload,
    build_sku_payload,
    parse_color_size,
    quantity_for_variant,
    sku_code,
    slugify,
    variant_id_from_sku,
)
from shared.constants import LAST_SYNCED_FIELD

logger = structlog.get_logger()

PRODUCTS_SYNC_ID = "products"


def sync_variant_id(variant: dict[str, Any]) -> str:
    """Identifier of a Printful store (sync) variant."""
    return str(variant.get("sync_variant_id") or variant.get("id"))


def unpack_product_item(item: dict[str, Any]) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    """Split a Webflow product listing item into ``(product, skus)``.

    The default SKU comes first when the item carries it separately.
    """
    product = item.get("product") or item
    skus = list(item.get("skus") or [])
    default_sku = item.get("sku")
    if default_sku and all(s.get("id") != default_sku.get("id") for s in skus):
        skus.insert(0, default_sku)
    return product, skus


def _field_data(record: dict[str, Any]) -> dict[str, Any]:
    return record.get("fieldData") or {}


def _name_matches(product: dict[str, Any], product_name: str) -> bool:
    name = _field_data(product).get("name")
    return bool(name) and product_name.lower() in str(name).lower()


class ProductSyncService:
    """Find-or-create synchronization of Printful products into Webflow."""

    def __init__(
        self,
        printful: PrintfulClient,
        webflow: WebflowClient | None,
        cache: CacheService,
        settings: Settings | None = None,
    ):
        self.printful = printful
        self.webflow = webflow
        self.settings = settings or get_settings()
        self.links = SyncLinkStore(cache)
        self.status = SyncStatusStore(cache)

    # ------------------------------------------------------------------
    # Product listing
    # ------------------------------------------------------------------

    async def list_products_with_status(self, site_id: str | None = None) -> list[dict[str, Any]]:
        """Printful store products with per-variant Webflow sync status."""
        products = await self.printful.list_store_products()
        if not products:
            logger.info("No products found in Printful store")
            return []

        synced_at: dict[str, str | None] = {}
        if site_id and self.webflow:
            synced_at = await self._webflow_sync_markers(site_id)

        detailed = await asyncio.gather(
            *(self._product_with_details(p, site_id, synced_at) for p in products)
        )
        logger.info("Fetched product details", count=len(detailed))
        return list(detailed)

    async def _webflow_sync_markers(self, site_id: str) -> dict[str, str | None]:
        """sync variant id -> lastSynced, from Webflow field data."""
        markers: dict[str, str | None] = {}
        try:
            items = await self.webflow.list_products(site_id)
        except ProviderApiError as e:
            logger.warning("Could not load Webflow products", site_id=site_id, error=str(e))
            return markers

        for item in items:
            product, skus = unpack_product_item(item)
            for record in (product, *skus):
                data = _field_data(record)
                if data.get("sync_variant_id"):
                    markers[str(data["sync_variant_id"])] = data.get(LAST_SYNCED_FIELD)
        return markers

    async def _product_with_details(
        self,
        product: dict[str, Any],
        site_id: str | None,
        synced_at: dict[str, str | None],
    ) -> dict[str, Any]:
        product_id = str(product.get("id"))
        summary = {
            "id": product_id,
            "name": product.get("name"),
            "thumbnail_url": product.get("thumbnail_url"),
        }
        try:
            detail = await self.printful.get_store_product(product_id)
        except ProviderApiError as e:
            logger.warning("Failed to fetch product details", product_id=product_id, error=str(e))
            count = int(product.get("variants") or 0)
            summary["variants"] = [
                {
                    "id": f"temp-{product_id}-{index}",
                    "name": f"Variant {index + 1}",
                    "variant_id": f"temp-variant-{index}",
                    "product_id": product_id,
                    "retail_price": "0.00",
                    "sync_status": "not_synced",
                }
                for index in range(count)
            ]
            return summary
        except Exception as e:
            logger.error("Error fetching product details", product_id=product_id, error=str(e))
            summary["variants"] = []
            return summary

        variants = detail.get("sync_variants") or []
        links = {}
        if site_id:
            links = await self.links.get_variant_links(
                [sync_variant_id(v) for v in variants], site_id
            )

        summary["variants"] = []
        for variant in variants:
            key = sync_variant_id(variant)
            link = links.get(key)
            linked = link is not None or key in synced_at
            last_synced = (link or {}).get("lastSynced") or synced_at.get(key)
            summary["variants"].append(
                {
                    "id": str(variant.get("id")),
                    "name": variant.get("name"),
                    "variant_id": str(variant.get("variant_id")),
                    "product_id": product_id,
                    "retail_price": variant.get("retail_price") or "0.00",
                    "sync_status": "synced" if linked else "not_synced",
                    "lastSynced": last_synced if linked else None,
                    "sku": variant.get("sku") or "",
                }
            )
        return summary

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def ensure_last_synced_field(
        self, site_id: str, collection_id: str | None = None
    ) -> bool:
        """Make sure the products collection has a ``lastSynced`` DateTime field.

        Failures are logged and reported as ``False``; they never abort a sync.
        """
        try:
            if not collection_id:
                collections = await self.webflow.list_collections(site_id)
                collection = next(
                    (
                        c
                        for c in collections
                        if c.get("displayName") == self.settings.sync_products_collection_name
                    ),
                    None,
                )
                if collection is None:
                    logger.warning(
                        "Products collection not found",
                        site_id=site_id,
                        collection=self.settings.sync_products_collection_name,
                    )
                    return False
                collection_id = collection["id"]

            if await self._has_last_synced_field(collection_id):
                return True

            logger.info("Creating lastSynced field", collection_id=collection_id)
            try:
                await self.webflow.create_collection_field(
                    collection_id,
                    {"displayName": LAST_SYNCED_FIELD, "type": "DateTime", "isRequired": False},
                )
                await asyncio.sleep(self.settings.sync_schema_propagation_seconds)
            except ProviderApiError as e:
                logger.error("Error creating product field", error=str(e))

            if await self._has_last_synced_field(collection_id):
                return True
            logger.warning(
                "lastSynced field still missing after creation attempt",
                collection_id=collection_id,
            )
            return False
        except ProviderApiError as e:
            logger.warning("Could not verify collection schema", site_id=site_id, error=str(e))
            return False

    async def _has_last_synced_field(self, collection_id: str) -> bool:
        collection = await self.webflow.get_collection(collection_id)
        return any(
            field.get("displayName") == LAST_SYNCED_FIELD or field.get("slug") == LAST_SYNCED_FIELD
            for field in collection.get("fields") or []
        )

    # ------------------------------------------------------------------
    # Single product sync
    # ------------------------------------------------------------------

    async def _collect_linkage(
        self,
        product: dict[str, Any],
        variants: list[dict[str, Any]],
        items: list[dict[str, Any]],
        site_id: str,
    ) -> tuple[dict[str, dict[str, Any]], str | None]:
        """Existing Webflow records for each variant, plus the linked Webflow product id.

        Sources, in order of preference: stored links whose Webflow product
        and SKU are still listed, ``sync_variant_id`` in Webflow field data,
        then ``PF-<variant_id>`` SKU codes on products whose name matches the
        Printful product.
        """
        variant_ids = [sync_variant_id(v) for v in variants]
        linkage: dict[str, dict[str, Any]] = {}

        # Webflow product id -> ids of its SKUs, as currently listed
        live: dict[str, set[str]] = {}
        for item in items:
            wf_product, skus = unpack_product_item(item)
            live[wf_product.get("id")] = {sku.get("id") for sku in skus}

        stored = await self.links.get_variant_links(variant_ids, site_id)
        for key, link in stored.items():
            linked_product = link.get("webflowProductId")
            sku_id = link.get("webflowSkuId")
            if linked_product not in live or (sku_id and sku_id not in live[linked_product]):
                logger.info(
                    "Ignoring stale variant link",
                    sync_variant_id=key,
                    webflow_product_id=linked_product,
                    webflow_sku_id=sku_id,
                )
                continue
            linkage[key] = {"productId": linked_product, "skuId": sku_id}

        product_link = await self.links.get_product_link(product.get("id"), site_id)
        webflow_product_id = None
        if product_link and product_link.get("webflowProductId") in live:
            webflow_product_id = product_link["webflowProductId"]

        by_catalog_variant = {str(v.get("variant_id")): sync_variant_id(v) for v in variants}
        product_name = product.get("name") or ""

        for item in items:
            wf_product, skus = unpack_product_item(item)
            wf_product_id = wf_product.get("id")

            marker = _field_data(wf_product).get("sync_variant_id")
            if marker and str(marker) in variant_ids:
                linkage.setdefault(str(marker), {"productId": wf_product_id, "skuId": None})

            name_match = product_name and _name_matches(wf_product, product_name)
            for sku in skus:
                data = _field_data(sku)
                key = None
                if data.get("sync_variant_id") and str(data["sync_variant_id"]) in variant_ids:
                    key = str(data["sync_variant_id"])
                elif name_match or wf_product_id == webflow_product_id:
                    catalog_id = variant_id_from_sku(data.get("sku"))
                    if catalog_id is not None:
                        key = by_catalog_variant.get(str(catalog_id))
                if key is None:
                    continue
                current = linkage.get(key)
                if current is None or not current.get("skuId"):
                    linkage[key] = {"productId": wf_product_id, "skuId": sku.get("id")}

        if webflow_product_id is None:
            webflow_product_id = next(
                (link["productId"] for link in linkage.values() if link.get("productId")),
                None,
            )
        return linkage, webflow_product_id

    async def sync_product(
        self,
        product_id: int | str,
        site_id: str,
        collection_id: str | None = None,
    ) -> dict[str, Any]:
        """Sync one Printful product and its variants into a Webflow site."""
        logger.info(
            "Syncing Printful product",
            product_id=product_id,
            site_id=site_id,
            collection_id=collection_id,
        )
        detail = await self.printful.get_store_product(product_id)
        product = detail.get("sync_product") or {}
        variants = detail.get("sync_variants") or []
        if not variants:
            raise NotFoundError("No variants found for this Printful product")

        await self.ensure_last_synced_field(site_id, collection_id)

        items = await self.webflow.list_products(site_id)
        linkage, webflow_product_id = await self._collect_linkage(
            product, variants, items, site_id
        )
        now = utc_now_iso()
        variants_to_sync = [v for v in variants if sync_variant_id(v) not in linkage]

        if not variants_to_sync:
            return await self._refresh_stock(product, variants, linkage, items, site_id, now)

        if webflow_product_id:
            return await self._add_missing_skus(
                product, variants, variants_to_sync, webflow_product_id, site_id, now
            )

        return await self._create_product(product, variants_to_sync, site_id, now)

    async def _refresh_stock(
        self,
        product: dict[str, Any],
        variants: list[dict[str, Any]],
        linkage: dict[str, dict[str, Any]],
        items: list[dict[str, Any]],
        site_id: str,
        now: str,
    ) -> dict[str, Any]:
        logger.info("All variants already synced, refreshing stock", product_id=product.get("id"))
        updates = {"success": 0, "failed": 0}

        for variant in variants:
            key = sync_variant_id(variant)
            link = linkage.get(key) or {}
            target = None
            if link.get("productId") and link.get("skuId"):
                target = (link["productId"], link["skuId"])
            else:
                color, size = parse_color_size(variant.get("name", ""))
                target = await self.find_matching_sku(
                    site_id, product.get("name", ""), color, size, items=items
                )

            if target is None:
                logger.warning("Could not find matching SKU", variant=variant.get("name"))
                updates["failed"] += 1
                continue

            quantity = quantity_for_variant(variant, self.settings.sync_in_stock_quantity)
            if await self.update_sku_quantity(site_id, target[0], target[1], quantity):
                updates["success"] += 1
                await self.links.link_variant(key, site_id, target[0], target[1], now)
            else:
                updates["failed"] += 1

        return {
            "message": f"Updated stock information for {updates['success']} SKUs",
            "status": "stock_updated",
            "productId": product.get("id"),
            "stockUpdates": updates,
        }

    async def _create_skus(
        self,
        product: dict[str, Any],
        variants: list[dict[str, Any]],
        webflow_product_id: str,
        site_id: str,
        now: str,
    ) -> dict[str, Any]:
        """Bulk-create SKUs; failures are counted, not raised."""
        stats: dict[str, Any] = {"success": 0, "failed": 0, "errors": []}
        if not variants:
            return stats

        payloads = [
            build_sku_payload(
                product,
                variant,
                currency=self.settings.sync_currency,
                in_stock_quantity=self.settings.sync_in_stock_quantity,
            )
            for variant in variants
        ]
        try:
            created = await self.webflow.create_skus(
                site_id,
                webflow_product_id,
                payloads,
                publish_status=self.settings.sync_publish_status,
            )
        except ProviderApiError as e:
            logger.error(
                "Failed to create additional SKUs",
                webflow_product_id=webflow_product_id,
                error=str(e),
            )
            stats["failed"] = len(variants)
            stats["errors"].append(str(e))
            return stats

        stats["success"] = len(created)
        # Webflow does not promise request order; match on the SKU code first
        by_code = {sku_code(v.get("variant_id")): v for v in variants}
        for position, sku in enumerate(created):
            code = _field_data(sku).get("sku")
            if code not in by_code and position < len(variants):
                code = sku_code(variants[position].get("variant_id"))
            variant = by_code.pop(code, None)
            if variant is None:
                continue
            await self.links.link_variant(
                sync_variant_id(variant), site_id, webflow_product_id, sku.get("id"), now
            )
        logger.info(
            "Created SKUs",
            webflow_product_id=webflow_product_id,
            created=stats["success"],
        )
        return stats

    async def _add_missing_skus(
        self,
        product: dict[str, Any],
        variants: list[dict[str, Any]],
        variants_to_sync: list[dict[str, Any]],
        webflow_product_id: str,
        site_id: str,
        now: str,
    ) -> dict[str, Any]:
        logger.info(
            "Adding missing SKUs to linked product",
            product_id=product.get("id"),
            webflow_product_id=webflow_product_id,
            missing=len(variants_to_sync),
        )
        stats = await self._create_skus(product, variants_to_sync, webflow_product_id, site_id, now)
        await self.links.link_product(product.get("id"), site_id, webflow_product_id, now)
        return {
            "message": f"Added {stats['success']} missing SKUs to Webflow product",
            "productId": product.get("id"),
            "webflowProductId": webflow_product_id,
            "status": "success",
            "variantStats": {
                "total": len(variants),
                "skipped": len(variants) - len(variants_to_sync),
                **stats,
            },
        }

    async def _create_product(
        self,
        product: dict[str, Any],
        variants_to_sync: list[dict[str, Any]],
        site_id: str,
        now: str,
    ) -> dict[str, Any]:
        first_variant = variants_to_sync[0]
        payload = build_product_payload(
            product,
            first_variant,
            variants_to_sync,
            currency=self.settings.sync_currency,
            in_stock_quantity=self.settings.sync_in_stock_quantity,
            publish_status=self.settings.sync_publish_status,
        )
        logger.info("Creating product in Webflow", name=product.get("name"))
        result = await self.webflow.create_product(site_id, payload)

        webflow_product_id = (result.get("product") or {}).get("id")
        if not webflow_product_id:
            raise ProviderApiError("webflow", "Product creation returned no product id")

        default_skus = result.get("skus") or []
        default_sku_id = default_skus[0].get("id") if default_skus else None
        await self.links.link_variant(
            sync_variant_id(first_variant), site_id, webflow_product_id, default_sku_id, now
        )
        await self.links.link_product(product.get("id"), site_id, webflow_product_id, now)

        response: dict[str, Any] = {
            "message": "Product synced successfully to Webflow",
            "productId": product.get("id"),
            "webflowProductId": webflow_product_id,
            "status": "success",
        }
        remaining = variants_to_sync[1:]
        if remaining:
            stats = await self._create_skus(product, remaining, webflow_product_id, site_id, now)
            response["variantStats"] = {
                "total": len(variants_to_sync),
                "skipped": 1,
                **stats,
            }
        return response

    # ------------------------------------------------------------------
    # SKU lookup / stock
    # ------------------------------------------------------------------

    async def find_matching_sku(
        self,
        site_id: str,
        product_name: str,
        color: str,
        size: str,
        items: list[dict[str, Any]] | None = None,
    ) -> tuple[str, str] | None:
        """Locate a Webflow SKU by product name and color/size values.

        Returns ``(webflow_product_id, sku_id)`` or ``None``.
        """
        wanted = {"color": slugify(color), "size": slugify(size)}
        if items is None:
            try:
                items = await self.webflow.list_products(site_id)
            except ProviderApiError as e:
                logger.error("Error finding matching SKU", error=str(e))
                return None

        for item in items:
            product, skus = unpack_product_item(item)
            if not _name_matches(product, product_name):
                continue
            for sku in skus:
                values = _field_data(sku).get("sku-values") or {}
                if values.get("color") == wanted["color"] and values.get("size") == wanted["size"]:
                    return product.get("id"), sku.get("id")

        logger.info("No matching SKU found", product=product_name, color=color, size=size)
        return None

    async def update_sku_quantity(
        self, site_id: str, product_id: str, sku_id: str, quantity: int
    ) -> bool:
        try:
            await self.webflow.update_sku(site_id, product_id, sku_id, {"quantity": quantity})
        except ProviderApiError as e:
            logger.error("Failed to update SKU quantity", sku_id=sku_id, error=str(e))
            return False
        logger.debug("Updated SKU quantity", sku_id=sku_id, quantity=quantity)
        return True

    # ------------------------------------------------------------------
    # Full catalog sync
    # ------------------------------------------------------------------

    async def sync_all_products(self, site_id: str) -> dict[str, Any]:
        """
        Sync every Printful store product into a Webflow site.

        Products are processed one at a time; a failing product is recorded in
        the results and does not stop the run.

        Returns:
            Summary of sync operation
        """
        await self.status.update(PRODUCTS_SYNC_ID, "running")
        try:
            products = await self.printful.list_store_products()
        except ProviderApiError as e:
            await self.status.update(PRODUCTS_SYNC_ID, "error", error_message=str(e))
            raise

        logger.info("Starting product sync", total_products=len(products), site_id=site_id)
        results = []
        synced = stock_updated = errors = 0

        for product in products:
            product_id = product.get("id")
            try:
                result = await self.sync_product(product_id, site_id)
            except Exception as e:
                logger.error("Error syncing product", product_id=product_id, error=str(e))
                errors += 1
                results.append({"productId": product_id, "status": "error", "error": str(e)})
                continue

            if result.get("status") == "stock_updated":
                stock_updated += 1
            else:
                synced += 1
            results.append(result)

        summary = {
            "total": len(products),
            "synced": synced,
            "stock_updated": stock_updated,
            "errors": errors,
        }
        if errors and not (synced or stock_updated):
            await self.status.update(
                PRODUCTS_SYNC_ID,
                "error",
                error_message=f"{errors} products failed to sync",
            )
        else:
            await self.status.update(
                PRODUCTS_SYNC_ID, "idle", records_synced=synced + stock_updated
            )
        logger.info("Product sync completed", **summary)
        return {**summary, "syncId": PRODUCTS_SYNC_ID, "results": results}
