"""Shared constants across the application."""

# Providers
PRINTFUL = "printful"
WEBFLOW = "webflow"
PROVIDERS = (PRINTFUL, WEBFLOW)

# Token storage key prefixes
TOKEN_KEY_PREFIXES = {
    PRINTFUL: "auth:printful:token",
    WEBFLOW: "auth:webflow:token",
}

# Product link / sync status key prefixes
VARIANT_LINK_PREFIX = "sync:link:variant"
PRODUCT_LINK_PREFIX = "sync:link:product"
SYNC_STATUS_PREFIX = "sync:status"

# Printful availability statuses meaning "no stock"
OUT_OF_STOCK_STATUSES = frozenset({"out_of_stock", "temporary_out_of_stock"})

# Webflow SKU options derived from "Color / Size" variant names
SKU_OPTION_NAMES = ("Color", "Size")
DEFAULT_SIZE = "One Size"
VARIANT_NAME_SEPARATOR = " / "

# SKU codes carry the Printful catalog variant id
SKU_CODE_PREFIX = "PF-"
SKU_CODE_PATTERN = r"PF-(\d+)"

# Webflow collection field written on synced products
LAST_SYNCED_FIELD = "lastSynced"

# Webflow order statuses that must never be sent to Printful
NON_FULFILLABLE_ORDER_STATUSES = frozenset({"refunded", "disputed"})

# Fulfillment
FULFILLMENT_CARRIER = "Printful"
TRACKING_PREFIX = "PF"

# Batch sizes
PRINTFUL_PAGE_SIZE = 100
WEBFLOW_PAGE_SIZE = 100

# Per-session connected account profiles
SESSION_PROFILE_PREFIX = "auth:session:profile"
