"""Celery application for sync worker."""

from datetime import timedelta

from celery import Celery

from connector_service.config import get_settings

settings = get_settings()

# Create Celery app
app = Celery(
    "sync_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "sync_worker.tasks.sync_products",
        "sync_worker.tasks.sync_orders",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=1800,  # 30 minutes
    task_soft_time_limit=1740,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="sync",
    task_routes={
        "sync_worker.tasks.*": {"queue": "sync"},
    },
)


def build_beat_schedule(interval_products: int, interval_orders: int, auto_fulfill: bool) -> dict:
    """Periodic jobs; bulk fulfillment only runs when auto fulfillment is on."""
    schedule = {
        "sync-products": {
            "task": "sync_worker.tasks.sync_products.sync_products_for_site",
            "schedule": timedelta(minutes=interval_products),
        },
    }
    if auto_fulfill:
        schedule["fulfill-orders"] = {
            "task": "sync_worker.tasks.sync_orders.fulfill_unfulfilled_orders",
            "schedule": timedelta(minutes=interval_orders),
        }
    return schedule


app.conf.beat_schedule = build_beat_schedule(
    settings.sync_products_interval_minutes,
    settings.fulfill_orders_interval_minutes,
    settings.auto_fulfill_orders,
)


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "sync"])


if __name__ == "__main__":
    run()
