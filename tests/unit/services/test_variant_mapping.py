"""Unit tests for Printful → Webflow field mapping."""

import pytest

from connector_service.services.variant_mapping import (
    build_product_payload,
    build_sku_payload,
    extract_sku_properties,
    generate_sku_values,
    parse_color_size,
    price_to_cents,
    quantity_for_variant,
    sku_code,
    slugify,
    variant_id_from_sku,
)


class TestSlugify:
    def test_collapses_runs_of_other_characters(self) -> None:
        assert slugify("Heather  Grey / XL!") == "heather-grey-xl-"

    def test_lowercases(self) -> None:
        assert slugify("NAVY") == "navy"

    def test_keeps_digits(self) -> None:
        assert slugify("2XL") == "2xl"


class TestParseColorSize:
    def test_color_and_size(self) -> None:
        assert parse_color_size("Black / M") == ("Black", "M")

    def test_extra_parts_are_ignored(self) -> None:
        assert parse_color_size("Black / M / Long") == ("Black", "M")

    def test_single_part_defaults_size(self) -> None:
        assert parse_color_size("Poster") == ("Poster", "One Size")


class TestSkuProperties:
    def test_color_then_size_with_unique_values(self) -> None:
        variants = [
            {"name": "Black / M"},
            {"name": "Black / L"},
            {"name": "White / M"},
        ]
        props = extract_sku_properties(variants)

        assert [p["name"] for p in props] == ["Color", "Size"]
        assert [p["id"] for p in props] == ["color", "size"]
        assert [e["name"] for e in props[0]["enum"]] == ["Black", "White"]
        assert [e["name"] for e in props[1]["enum"]] == ["M", "L"]
        assert props[0]["enum"][0] == {"id": "black", "name": "Black", "slug": "black"}

    def test_unsized_variant_gets_one_size(self) -> None:
        props = extract_sku_properties([{"name": "Sticker"}])
        assert props[1]["enum"] == [{"id": "one-size", "name": "One Size", "slug": "one-size"}]

    def test_sku_values_are_slugs(self) -> None:
        assert generate_sku_values({"name": "Heather Grey / 2XL"}) == {
            "color": "heather-grey",
            "size": "2xl",
        }


class TestQuantity:
    @pytest.mark.parametrize("status", ["out_of_stock", "temporary_out_of_stock"])
    def test_out_of_stock_is_zero(self, status: str) -> None:
        assert quantity_for_variant({"availability_status": status}) == 0

    def test_in_stock_uses_default(self) -> None:
        assert quantity_for_variant({"availability_status": "active"}) == 999
        assert quantity_for_variant({}, in_stock=5) == 5


class TestPriceToCents:
    def test_rounds_half_up(self) -> None:
        assert price_to_cents("19.99") == 1999
        assert price_to_cents("0.005") == 1
        assert price_to_cents("10.125") == 1013

    def test_numbers_are_accepted(self) -> None:
        assert price_to_cents(12) == 1200

    @pytest.mark.parametrize("value", [None, "", "abc", "NaN"])
    def test_missing_or_invalid_is_zero(self, value) -> None:
        assert price_to_cents(value) == 0


class TestSkuCodes:
    def test_code_round_trip(self) -> None:
        assert sku_code(4011) == "PF-4011"
        assert variant_id_from_sku("PF-4011") == 4011

    def test_pattern_found_anywhere(self) -> None:
        assert variant_id_from_sku("shop-PF-77-x") == 77

    @pytest.mark.parametrize("sku", [None, "", "TEE-BLACK", "PF-"])
    def test_no_match(self, sku) -> None:
        assert variant_id_from_sku(sku) is None


class TestPayloads:
    def test_sku_payload(self, printful_product: dict) -> None:
        product = printful_product["sync_product"]
        variant = printful_product["sync_variants"][0]

        data = build_sku_payload(product, variant)["fieldData"]

        assert data["name"] == "Classic Tee - Black / M"
        assert data["slug"] == "classic-tee-black-m"
        assert data["price"] == {"value": 1999, "unit": "USD", "currency": "USD"}
        assert data["quantity"] == 999
        assert data["main-image"] == variant["thumbnail_url"]
        assert data["sku-values"] == {"color": "black", "size": "m"}
        assert data["sku"] == "PF-4011"

    def test_sku_payload_falls_back_to_product_image(self, printful_product: dict) -> None:
        product = printful_product["sync_product"]
        variant = printful_product["sync_variants"][1]

        data = build_sku_payload(product, variant)["fieldData"]

        assert data["main-image"] == product["thumbnail_url"]
        assert data["quantity"] == 0

    def test_product_payload(self, printful_product: dict) -> None:
        product = printful_product["sync_product"]
        variants = printful_product["sync_variants"]

        payload = build_product_payload(product, variants[0], variants, publish_status="staging")

        assert payload["publishStatus"] == "staging"
        fields = payload["product"]["fieldData"]
        assert fields["name"] == "Classic Tee"
        assert fields["slug"] == "classic-tee"
        assert fields["description"] == "Soft cotton tee"
        assert len(fields["sku-properties"]) == 2
        assert payload["sku"]["fieldData"]["sku"] == "PF-4011"
