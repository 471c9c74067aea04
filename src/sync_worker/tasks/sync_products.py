"""Product synchronization tasks."""

import asyncio

import structlog
from celery import shared_task

from connector_service.errors import ProviderApiError
from connector_service.services.product_sync import ProductSyncService
from sync_worker.runner import run_with_provider_clients

logger = structlog.get_logger()


async def _sync_all(printful, webflow, cache, site_id: str) -> dict:
    service = ProductSyncService(printful, webflow, cache)
    summary = await service.sync_all_products(site_id)
    summary.pop("results", None)
    return summary


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def sync_products_for_site(self, site_id: str | None = None) -> dict:
    """
    Sync every Printful store product into a Webflow site.

    Uses the provider-level tokens and ``sync_default_site_id`` when no
    site is given.

    Returns:
        dict: Summary of sync operation, or a ``skipped`` marker
    """
    logger.info("Starting scheduled product sync", site_id=site_id)
    try:
        return asyncio.run(run_with_provider_clients(_sync_all, site_id))
    except ProviderApiError as exc:
        logger.warning("Product sync failed, retrying", error=str(exc))
        raise self.retry(exc=exc)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def sync_single_product(self, product_id: int | str, site_id: str | None = None) -> dict:
    """
    Sync a single Printful product.

    Useful for real-time updates when a product is modified in Printful.

    Args:
        product_id: The Printful sync product ID
        site_id: Target Webflow site, defaults to ``sync_default_site_id``

    Returns:
        dict: Sync result
    """
    logger.info("Syncing single product", product_id=product_id, site_id=site_id)

    async def job(printful, webflow, cache, site: str) -> dict:
        return await ProductSyncService(printful, webflow, cache).sync_product(product_id, site)

    try:
        return asyncio.run(run_with_provider_clients(job, site_id))
    except ProviderApiError as exc:
        raise self.retry(exc=exc)
