"""Async plumbing shared by the Celery tasks and the CLI scripts."""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from connector_service.clients import PrintfulClient, WebflowClient
from connector_service.config import get_settings
from connector_service.infrastructure.redis import CacheService, close_redis, get_redis_client
from connector_service.services.token_store import TokenStore
from shared.constants import PRINTFUL, WEBFLOW

logger = structlog.get_logger()

Job = Callable[[PrintfulClient, WebflowClient, CacheService, str], Awaitable[dict[str, Any]]]


def skipped(reason: str) -> dict[str, Any]:
    return {"status": "skipped", "reason": reason}


async def run_with_provider_clients(job: Job, site_id: str | None = None) -> dict[str, Any]:
    """Run ``job`` with clients bound to the provider-level tokens.

    Scheduled runs have no browser session, so they use the tokens stored by
    the most recent OAuth callback. Missing tokens or site skip the run.
    """
    settings = get_settings()
    try:
        cache = CacheService(await get_redis_client())
        tokens = await TokenStore(cache).get_provider_tokens()

        missing = [p for p in (PRINTFUL, WEBFLOW) if not tokens[p]]
        if missing:
            logger.warning("Skipping run, providers not connected", missing=missing)
            return skipped(f"not connected: {', '.join(missing)}")

        site_id = site_id or settings.sync_default_site_id
        if not site_id:
            logger.warning("Skipping run, no Webflow site configured")
            return skipped("no Webflow site configured")

        async with PrintfulClient(tokens[PRINTFUL]) as printful:
            async with WebflowClient(tokens[WEBFLOW]) as webflow:
                return await job(printful, webflow, cache, site_id)
    finally:
        # Each task runs in its own event loop; the pooled client must not outlive it.
        await close_redis()
