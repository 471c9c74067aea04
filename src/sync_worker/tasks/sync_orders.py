"""Order fulfillment tasks."""

import asyncio

import structlog
from celery import shared_task

from connector_service.errors import ProviderApiError
from connector_service.services.order_sync import OrderSyncService
from sync_worker.runner import run_with_provider_clients

logger = structlog.get_logger()


async def _fulfill(printful, webflow, cache, site_id: str) -> dict:
    return await OrderSyncService(printful, webflow).fulfill_bulk(site_id)


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def fulfill_unfulfilled_orders(self, site_id: str | None = None) -> dict:
    """
    Forward every unfulfilled Webflow order to Printful.

    Refunded and disputed orders are left alone. Per-order failures are
    reported in the results; only failing to list orders triggers a retry.

    Returns:
        dict: Bulk fulfillment summary, or a ``skipped`` marker
    """
    logger.info("Starting scheduled order fulfillment", site_id=site_id)
    try:
        return asyncio.run(run_with_provider_clients(_fulfill, site_id))
    except ProviderApiError as exc:
        logger.warning("Order fulfillment failed, retrying", error=str(exc))
        raise self.retry(exc=exc)
