"""Printful sync product/variant to Webflow product/SKU field mapping."""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from shared.constants import (
    DEFAULT_SIZE,
    OUT_OF_STOCK_STATUSES,
    SKU_CODE_PATTERN,
    SKU_CODE_PREFIX,
    SKU_OPTION_NAMES,
    VARIANT_NAME_SEPARATOR,
)

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_SKU_CODE_RE = re.compile(SKU_CODE_PATTERN)


def slugify(value: str) -> str:
    return _SLUG_RE.sub("-", str(value).lower())


def parse_color_size(name: str) -> tuple[str, str]:
    """Split a ``"Color / Size"`` variant name.

    Names without a separator are treated as a color with a single size.
    """
    parts = name.split(VARIANT_NAME_SEPARATOR)
    if len(parts) > 1:
        return parts[0], parts[1]
    return name, DEFAULT_SIZE


def extract_sku_properties(variants: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Build the Webflow ``sku-properties`` list (Color, then Size)."""
    values: dict[str, dict[str, None]] = {option: {} for option in SKU_OPTION_NAMES}
    for variant in variants:
        color, size = parse_color_size(variant.get("name", ""))
        values["Color"].setdefault(color, None)
        values["Size"].setdefault(size, None)

    return [
        {
            "id": slugify(option),
            "name": option,
            "enum": [
                {"id": slugify(value), "name": value, "slug": slugify(value)}
                for value in option_values
            ],
        }
        for option, option_values in values.items()
    ]


def generate_sku_values(variant: dict[str, Any]) -> dict[str, str]:
    color, size = parse_color_size(variant.get("name", ""))
    return {"color": slugify(color), "size": slugify(size)}


def quantity_for_variant(variant: dict[str, Any], in_stock: int = 999) -> int:
    if variant.get("availability_status") in OUT_OF_STOCK_STATUSES:
        return 0
    return in_stock


def price_to_cents(price: Any) -> int:
    """Decimal price string to integer cents, rounding half up."""
    if price is None or price == "":
        return 0
    try:
        amount = Decimal(str(price))
    except InvalidOperation:
        return 0
    if not amount.is_finite():
        return 0
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sku_code(variant_id: Any) -> str:
    return f"{SKU_CODE_PREFIX}{variant_id}"


def variant_id_from_sku(sku: str | None) -> int | None:
    if not sku:
        return None
    match = _SKU_CODE_RE.search(sku)
    return int(match.group(1)) if match else None


def build_sku_payload(
    product: dict[str, Any],
    variant: dict[str, Any],
    *,
    currency: str = "USD",
    in_stock_quantity: int = 999,
) -> dict[str, Any]:
    """``{"fieldData": ...}`` for one Webflow SKU built from a Printful variant."""
    product_name = product.get("name", "")
    variant_name = variant.get("name", "")
    return {
        "fieldData": {
            "name": f"{product_name} - {variant_name}",
            "slug": f"{slugify(product_name)}-{slugify(variant_name)}",
            "price": {
                "value": price_to_cents(variant.get("retail_price")),
                "unit": currency,
                "currency": currency,
            },
            "quantity": quantity_for_variant(variant, in_stock_quantity),
            "main-image": variant.get("thumbnail_url") or product.get("thumbnail_url"),
            "sku-values": generate_sku_values(variant),
            "sku": sku_code(variant.get("variant_id")),
        }
    }


def build_product_payload(
    product: dict[str, Any],
    first_variant: dict[str, Any],
    variants: list[dict[str, Any]],
    *,
    currency: str = "USD",
    in_stock_quantity: int = 999,
    publish_status: str = "live",
) -> dict[str, Any]:
    """Create-product body: the product plus its default SKU."""
    name = product.get("name", "")
    return {
        "publishStatus": publish_status,
        "product": {
            "fieldData": {
                "name": name,
                "slug": slugify(name),
                "description": product.get("description") or "",
                "sku-properties": extract_sku_properties(variants),
            }
        },
        "sku": build_sku_payload(
            product,
            first_variant,
            currency=currency,
            in_stock_quantity=in_stock_quantity,
        ),
    }
