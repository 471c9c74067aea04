"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from connector_service.api.v1 import (
    auth,
    health,
    orders,
    printful,
    sync_status,
    webflow,
    webhooks,
)

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Auth"],
)

api_router.include_router(
    printful.router,
    prefix="/printful",
    tags=["Printful"],
)

api_router.include_router(
    webflow.router,
    prefix="/webflow",
    tags=["Webflow"],
)

api_router.include_router(
    orders.router,
    prefix="/webflow/orders",
    tags=["Orders"],
)

api_router.include_router(
    webhooks.router,
    prefix="/webflow/webhooks",
    tags=["Webhooks"],
)

api_router.include_router(
    sync_status.router,
    prefix="/sync",
    tags=["Sync"],
)
