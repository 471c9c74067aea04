"""Sync job status endpoint."""

from typing import Any

from fastapi import APIRouter, Depends

from connector_service.infrastructure.redis import CacheService, get_cache
from connector_service.services.sync_state import SyncStatusStore

router = APIRouter()


@router.get("/status/{sync_id}")
async def get_sync_status(
    sync_id: str,
    cache: CacheService = Depends(get_cache),
) -> dict[str, Any]:
    """Last known status of a sync job; unknown ids report ``idle``."""
    return await SyncStatusStore(cache).get(sync_id)
