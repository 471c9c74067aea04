#!/usr/bin/env python3
"""CLI script to sync Printful store products into a Webflow site."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import orjson
import structlog

from connector_service.services.product_sync import ProductSyncService
from sync_worker.runner import run_with_provider_clients

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--site-id",
        help="Webflow site id (defaults to SYNC_DEFAULT_SITE_ID)",
    )
    parser.add_argument(
        "--product-id",
        help="Sync only this Printful sync product",
    )
    return parser.parse_args(argv)


async def main(site_id: str | None, product_id: str | None) -> dict:
    """Main sync function."""

    async def job(printful, webflow, cache, site: str) -> dict:
        service = ProductSyncService(printful, webflow, cache)
        if product_id:
            return await service.sync_product(product_id, site)
        return await service.sync_all_products(site)

    logger.info("Starting product sync", site_id=site_id, product_id=product_id)
    result = await run_with_provider_clients(job, site_id)
    logger.info("Product sync finished", status=result.get("status"))
    return result


if __name__ == "__main__":
    args = parse_args()
    result = asyncio.run(main(args.site_id, args.product_id))
    sys.stdout.write(orjson.dumps(result, option=orjson.OPT_INDENT_2).decode() + "\n")
    sys.exit(1 if result.get("status") == "skipped" else 0)
