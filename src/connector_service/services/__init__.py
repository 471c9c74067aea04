"""Business logic services."""

from connector_service.services.order_sync import OrderSyncService
from connector_service.services.product_sync import ProductSyncService
from connector_service.services.sync_state import SyncLinkStore, SyncStatusStore
from connector_service.services.token_store import TokenStore

__all__ = [
    "OrderSyncService",
    "ProductSyncService",
    "SyncLinkStore",
    "SyncStatusStore",
    "TokenStore",
]
