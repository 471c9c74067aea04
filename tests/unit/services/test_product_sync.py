"""Unit tests for the Printful to Webflow product sync."""

import json

import pytest

from connector_service.clients import PrintfulClient, WebflowClient
from connector_service.config import Settings
from connector_service.errors import NotFoundError
from connector_service.infrastructure.redis import CacheService
from connector_service.services.product_sync import (
    PRODUCTS_SYNC_ID,
    ProductSyncService,
    unpack_product_item,
)
from mock_api import PRINTFUL_API, WEBFLOW_API, MockApi

SITE = "site-1"
PRODUCTS_URL = f"{WEBFLOW_API}/sites/{SITE}/products"


@pytest.fixture
def service(transport, cache: CacheService, test_settings: Settings) -> ProductSyncService:
    return ProductSyncService(
        PrintfulClient("pf-token", transport=transport),
        WebflowClient("wf-token", transport=transport),
        cache,
        test_settings,
    )


@pytest.fixture
def catalog(mock_api: MockApi, printful_product: dict) -> MockApi:
    """Printful product 101 plus a Webflow site whose products collection is ready."""
    mock_api.add("GET", f"{PRINTFUL_API}/store/products/101", {"code": 200, "result": printful_product})
    mock_api.add(
        "GET",
        f"{WEBFLOW_API}/sites/{SITE}/collections",
        {"collections": [{"id": "col-1", "displayName": "Products"}]},
    )
    mock_api.add(
        "GET",
        f"{WEBFLOW_API}/collections/col-1",
        {"id": "col-1", "fields": [{"displayName": "lastSynced", "slug": "lastsynced"}]},
    )
    mock_api.add("GET", PRODUCTS_URL, {"items": [], "pagination": {"total": 0}})
    return mock_api


def _json(request) -> dict:
    return json.loads(request.read())


class TestUnpackProductItem:
    def test_default_sku_first(self) -> None:
        product, skus = unpack_product_item(
            {"product": {"id": "p"}, "sku": {"id": "a"}, "skus": [{"id": "b"}]}
        )
        assert product == {"id": "p"}
        assert [s["id"] for s in skus] == ["a", "b"]

    def test_default_sku_not_duplicated(self) -> None:
        _, skus = unpack_product_item(
            {"product": {"id": "p"}, "sku": {"id": "a"}, "skus": [{"id": "a"}, {"id": "b"}]}
        )
        assert [s["id"] for s in skus] == ["a", "b"]


class TestSyncProduct:
    @pytest.mark.asyncio
    async def test_creates_product_with_default_and_extra_skus(
        self, service: ProductSyncService, catalog: MockApi
    ) -> None:
        catalog.add(
            "POST",
            PRODUCTS_URL,
            {"product": {"id": "wf-p1"}, "skus": [{"id": "wf-sku-1"}]},
        )
        catalog.add("POST", f"{PRODUCTS_URL}/wf-p1/skus", {"skus": [{"id": "wf-sku-2"}]})

        result = await service.sync_product(101, SITE)

        assert result["status"] == "success"
        assert result["webflowProductId"] == "wf-p1"
        assert result["variantStats"] == {
            "total": 2,
            "skipped": 1,
            "success": 1,
            "failed": 0,
            "errors": [],
        }

        created = _json(catalog.calls("POST", PRODUCTS_URL)[0])
        assert created["product"]["fieldData"]["name"] == "Classic Tee"
        assert created["sku"]["fieldData"]["sku"] == "PF-4011"
        assert created["sku"]["fieldData"]["price"]["value"] == 1999

        extra = _json(catalog.calls("POST", f"{PRODUCTS_URL}/wf-p1/skus")[0])
        assert [s["fieldData"]["sku"] for s in extra["skus"]] == ["PF-4012"]
        assert extra["skus"][0]["fieldData"]["quantity"] == 0

        links = await service.links.get_variant_links(["5001", "5002"], SITE)
        assert links["5001"]["webflowSkuId"] == "wf-sku-1"
        assert links["5002"]["webflowSkuId"] == "wf-sku-2"
        assert (await service.links.get_product_link(101, SITE))["webflowProductId"] == "wf-p1"

    @pytest.mark.asyncio
    async def test_resync_refreshes_stock(
        self, service: ProductSyncService, catalog: MockApi
    ) -> None:
        await service.links.link_variant("5001", SITE, "wf-p1", "wf-sku-1")
        await service.links.link_variant("5002", SITE, "wf-p1", "wf-sku-2")
        catalog.add(
            "GET",
            PRODUCTS_URL,
            {
                "items": [
                    {
                        "product": {"id": "wf-p1", "fieldData": {"name": "Classic Tee"}},
                        "skus": [{"id": "wf-sku-1"}, {"id": "wf-sku-2"}],
                    }
                ],
                "pagination": {"total": 1},
            },
        )
        catalog.add("PATCH", f"{PRODUCTS_URL}/wf-p1/skus/wf-sku-1", {"id": "wf-sku-1"})
        catalog.add("PATCH", f"{PRODUCTS_URL}/wf-p1/skus/wf-sku-2", {"id": "wf-sku-2"})

        result = await service.sync_product(101, SITE)

        assert result["status"] == "stock_updated"
        assert result["message"] == "Updated stock information for 2 SKUs"
        assert result["stockUpdates"] == {"success": 2, "failed": 0}
        in_stock = _json(catalog.calls("PATCH", f"{PRODUCTS_URL}/wf-p1/skus/wf-sku-1")[0])
        sold_out = _json(catalog.calls("PATCH", f"{PRODUCTS_URL}/wf-p1/skus/wf-sku-2")[0])
        assert in_stock == {"sku": {"fieldData": {"quantity": 999}}}
        assert sold_out == {"sku": {"fieldData": {"quantity": 0}}}
        assert not catalog.calls("POST", PRODUCTS_URL)

    @pytest.mark.asyncio
    async def test_links_to_deleted_webflow_product_are_recreated(
        self, service: ProductSyncService, catalog: MockApi
    ) -> None:
        await service.links.link_variant("5001", SITE, "deleted-prod", "old-sku-1")
        await service.links.link_variant("5002", SITE, "deleted-prod", "old-sku-2")
        await service.links.link_product(101, SITE, "deleted-prod")
        catalog.add("POST", PRODUCTS_URL, {"product": {"id": "wf-p2"}, "skus": [{"id": "new-1"}]})
        catalog.add("POST", f"{PRODUCTS_URL}/wf-p2/skus", {"skus": [{"id": "new-2"}]})

        result = await service.sync_product(101, SITE)

        assert result["status"] == "success"
        assert result["webflowProductId"] == "wf-p2"
        assert len(catalog.calls("POST", PRODUCTS_URL)) == 1
        assert not [r for r in catalog.requests if r.method == "PATCH"]
        links = await service.links.get_variant_links(["5001", "5002"], SITE)
        assert links["5001"]["webflowSkuId"] == "new-1"
        assert links["5002"]["webflowSkuId"] == "new-2"

    @pytest.mark.asyncio
    async def test_created_skus_link_by_code_not_position(
        self, service: ProductSyncService, printful_product: dict, mock_api: MockApi,
        catalog: MockApi,
    ) -> None:
        variants = printful_product["sync_variants"]
        mock_api.add(
            "POST",
            f"{PRODUCTS_URL}/wf-p1/skus",
            {
                "skus": [
                    {"id": "sku-b", "fieldData": {"sku": "PF-4012"}},
                    {"id": "sku-a", "fieldData": {"sku": "PF-4011"}},
                ]
            },
        )

        stats = await service._create_skus(
            printful_product["sync_product"], variants, "wf-p1", SITE, "2024-06-01T00:00:00Z"
        )

        assert stats["success"] == 2
        links = await service.links.get_variant_links(["5001", "5002"], SITE)
        assert links["5001"]["webflowSkuId"] == "sku-a"
        assert links["5002"]["webflowSkuId"] == "sku-b"

        assert not catalog.calls("POST", PRODUCTS_URL)

    @pytest.mark.asyncio
    async def test_links_from_other_site_are_ignored(
        self, service: ProductSyncService, catalog: MockApi
    ) -> None:
        await service.links.link_variant("5001", "other-site", "wf-x", "wf-sku-x")
        await service.links.link_variant("5002", "other-site", "wf-x", "wf-sku-y")
        catalog.add("POST", PRODUCTS_URL, {"product": {"id": "wf-p1"}, "skus": [{"id": "s1"}]})
        catalog.add("POST", f"{PRODUCTS_URL}/wf-p1/skus", {"skus": [{"id": "s2"}]})

        result = await service.sync_product(101, SITE)

        assert result["status"] == "success"
        assert len(catalog.calls("POST", PRODUCTS_URL)) == 1

    @pytest.mark.asyncio
    async def test_adds_missing_skus_to_matching_product(
        self, service: ProductSyncService, catalog: MockApi
    ) -> None:
        catalog.add(
            "GET",
            PRODUCTS_URL,
            {
                "items": [
                    {
                        "product": {"id": "wf-p9", "fieldData": {"name": "Classic Tee"}},
                        "skus": [{"id": "wf-sku-9", "fieldData": {"sku": "PF-4011"}}],
                    }
                ],
                "pagination": {"total": 1},
            },
        )
        catalog.add("POST", f"{PRODUCTS_URL}/wf-p9/skus", {"skus": [{"id": "wf-sku-10"}]})

        result = await service.sync_product(101, SITE)

        assert result["status"] == "success"
        assert result["webflowProductId"] == "wf-p9"
        assert result["variantStats"]["skipped"] == 1
        assert result["variantStats"]["success"] == 1
        body = _json(catalog.calls("POST", f"{PRODUCTS_URL}/wf-p9/skus")[0])
        assert [s["fieldData"]["sku"] for s in body["skus"]] == ["PF-4012"]
        assert not catalog.calls("POST", PRODUCTS_URL)

    @pytest.mark.asyncio
    async def test_sku_codes_on_unrelated_products_do_not_link(
        self, service: ProductSyncService, catalog: MockApi
    ) -> None:
        catalog.add(
            "GET",
            PRODUCTS_URL,
            {
                "items": [
                    {
                        "product": {"id": "wf-mug", "fieldData": {"name": "Coffee Mug"}},
                        "skus": [{"id": "wf-sku-m", "fieldData": {"sku": "PF-4011"}}],
                    }
                ],
                "pagination": {"total": 1},
            },
        )
        catalog.add("POST", PRODUCTS_URL, {"product": {"id": "wf-p1"}, "skus": [{"id": "s1"}]})
        catalog.add("POST", f"{PRODUCTS_URL}/wf-p1/skus", {"skus": [{"id": "s2"}]})

        result = await service.sync_product(101, SITE)

        assert result["webflowProductId"] == "wf-p1"

    @pytest.mark.asyncio
    async def test_failed_sku_creation_is_counted(
        self, service: ProductSyncService, catalog: MockApi
    ) -> None:
        catalog.add("POST", PRODUCTS_URL, {"product": {"id": "wf-p1"}, "skus": [{"id": "s1"}]})
        catalog.add(
            "POST", f"{PRODUCTS_URL}/wf-p1/skus", {"message": "Validation failed"}, status=400
        )

        result = await service.sync_product(101, SITE)

        assert result["status"] == "success"
        assert result["variantStats"]["failed"] == 1
        assert result["variantStats"]["errors"] == ["webflow: Validation failed"]

    @pytest.mark.asyncio
    async def test_product_without_variants(
        self, service: ProductSyncService, mock_api: MockApi
    ) -> None:
        mock_api.add(
            "GET",
            f"{PRINTFUL_API}/store/products/7",
            {"result": {"sync_product": {"id": 7}, "sync_variants": []}},
        )

        with pytest.raises(NotFoundError):
            await service.sync_product(7, SITE)


class TestEnsureLastSyncedField:
    @pytest.mark.asyncio
    async def test_existing_field(self, service: ProductSyncService, catalog: MockApi) -> None:
        assert await service.ensure_last_synced_field(SITE) is True
        assert not catalog.calls("POST", f"{WEBFLOW_API}/collections/col-1/fields")

    @pytest.mark.asyncio
    async def test_creates_missing_field(
        self, service: ProductSyncService, catalog: MockApi
    ) -> None:
        catalog.add_sequence(
            "GET",
            f"{WEBFLOW_API}/collections/col-1",
            [(200, {"fields": []}), (200, {"fields": [{"displayName": "lastSynced"}]})],
        )
        catalog.add("POST", f"{WEBFLOW_API}/collections/col-1/fields", {"id": "f1"})

        assert await service.ensure_last_synced_field(SITE) is True
        field = _json(catalog.calls("POST", f"{WEBFLOW_API}/collections/col-1/fields")[0])
        assert field == {"displayName": "lastSynced", "type": "DateTime", "isRequired": False}

    @pytest.mark.asyncio
    async def test_missing_collection(
        self, service: ProductSyncService, mock_api: MockApi
    ) -> None:
        mock_api.add("GET", f"{WEBFLOW_API}/sites/{SITE}/collections", {"collections": []})
        assert await service.ensure_last_synced_field(SITE) is False

    @pytest.mark.asyncio
    async def test_webflow_errors_are_not_raised(
        self, service: ProductSyncService, mock_api: MockApi
    ) -> None:
        mock_api.add(
            "GET", f"{WEBFLOW_API}/sites/{SITE}/collections", {"message": "Forbidden"}, status=403
        )
        assert await service.ensure_last_synced_field(SITE) is False


class TestListProductsWithStatus:
    @pytest.mark.asyncio
    async def test_marks_synced_variants_and_placeholders(
        self, service: ProductSyncService, mock_api: MockApi, printful_product: dict
    ) -> None:
        mock_api.add(
            "GET",
            f"{PRINTFUL_API}/store/products",
            {
                "result": [
                    {"id": 101, "name": "Classic Tee", "variants": 2},
                    {"id": 102, "name": "Hoodie", "variants": 3},
                ],
                "paging": {"total": 2},
            },
        )
        mock_api.add("GET", f"{PRINTFUL_API}/store/products/101", {"result": printful_product})
        mock_api.add(
            "GET", f"{PRINTFUL_API}/store/products/102", {"result": "Server error"}, status=500
        )
        mock_api.add(
            "GET",
            PRODUCTS_URL,
            {
                "items": [
                    {
                        "product": {"id": "wf-p1", "fieldData": {"name": "Classic Tee"}},
                        "skus": [
                            {
                                "id": "s2",
                                "fieldData": {
                                    "sync_variant_id": "5002",
                                    "lastSynced": "2024-05-01T00:00:00Z",
                                },
                            }
                        ],
                    }
                ],
                "pagination": {"total": 1},
            },
        )
        await service.links.link_variant("5001", SITE, "wf-p1", "s1", "2024-06-01T00:00:00Z")

        products = await service.list_products_with_status(SITE)

        tee, hoodie = products
        assert [v["sync_status"] for v in tee["variants"]] == ["synced", "synced"]
        assert tee["variants"][0]["lastSynced"] == "2024-06-01T00:00:00Z"
        assert tee["variants"][1]["lastSynced"] == "2024-05-01T00:00:00Z"

        assert len(hoodie["variants"]) == 3
        assert hoodie["variants"][0] == {
            "id": "temp-102-0",
            "name": "Variant 1",
            "variant_id": "temp-variant-0",
            "product_id": "102",
            "retail_price": "0.00",
            "sync_status": "not_synced",
        }

    @pytest.mark.asyncio
    async def test_without_site_nothing_is_synced(
        self, service: ProductSyncService, mock_api: MockApi, printful_product: dict
    ) -> None:
        mock_api.add(
            "GET",
            f"{PRINTFUL_API}/store/products",
            {"result": [{"id": 101, "name": "Classic Tee"}], "paging": {"total": 1}},
        )
        mock_api.add("GET", f"{PRINTFUL_API}/store/products/101", {"result": printful_product})

        (tee,) = await service.list_products_with_status()

        assert {v["sync_status"] for v in tee["variants"]} == {"not_synced"}
        assert tee["variants"][0]["retail_price"] == "19.99"

    @pytest.mark.asyncio
    async def test_empty_store(self, service: ProductSyncService, mock_api: MockApi) -> None:
        mock_api.add("GET", f"{PRINTFUL_API}/store/products", {"result": [], "paging": {"total": 0}})
        assert await service.list_products_with_status(SITE) == []


class TestFindMatchingSku:
    @pytest.mark.asyncio
    async def test_matches_on_name_and_values(self, service: ProductSyncService) -> None:
        items = [
            {
                "product": {"id": "wf-p1", "fieldData": {"name": "Classic Tee"}},
                "skus": [
                    {"id": "a", "fieldData": {"sku-values": {"color": "white", "size": "l"}}},
                    {"id": "b", "fieldData": {"sku-values": {"color": "black", "size": "m"}}},
                ],
            }
        ]
        match = await service.find_matching_sku(SITE, "classic tee", "Black", "M", items=items)
        assert match == ("wf-p1", "b")

    @pytest.mark.asyncio
    async def test_no_match(self, service: ProductSyncService) -> None:
        assert await service.find_matching_sku(SITE, "Mug", "Black", "M", items=[]) is None


class TestSyncAllProducts:
    @pytest.mark.asyncio
    async def test_records_errors_and_status(
        self, service: ProductSyncService, catalog: MockApi
    ) -> None:
        catalog.add(
            "GET",
            f"{PRINTFUL_API}/store/products",
            {"result": [{"id": 101}, {"id": 404}], "paging": {"total": 2}},
        )
        catalog.add("POST", PRODUCTS_URL, {"product": {"id": "wf-p1"}, "skus": [{"id": "s1"}]})
        catalog.add("POST", f"{PRODUCTS_URL}/wf-p1/skus", {"skus": [{"id": "s2"}]})

        summary = await service.sync_all_products(SITE)

        assert summary["total"] == 2
        assert summary["synced"] == 1
        assert summary["errors"] == 1
        assert summary["syncId"] == PRODUCTS_SYNC_ID
        assert summary["results"][1]["productId"] == 404

        status = await service.status.get(PRODUCTS_SYNC_ID)
        assert status["status"] == "idle"
        assert status["records_synced"] == 1
        assert status["last_sync_at"] is not None

    @pytest.mark.asyncio
    async def test_all_failures_mark_error(
        self, service: ProductSyncService, mock_api: MockApi
    ) -> None:
        mock_api.add(
            "GET",
            f"{PRINTFUL_API}/store/products",
            {"result": [{"id": 404}], "paging": {"total": 1}},
        )

        await service.sync_all_products(SITE)

        status = await service.status.get(PRODUCTS_SYNC_ID)
        assert status["status"] == "error"
        assert status["error_message"] == "1 products failed to sync"
