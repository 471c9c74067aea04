"""FastAPI application entry point."""

import structlog
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from connector_service import __version__
from connector_service.api.v1.router import api_router
from connector_service.config import get_settings
from connector_service.errors import ConnectorError, ProviderApiError
from connector_service.infrastructure.redis import close_redis
from connector_service.middleware.timing import RequestContextMiddleware

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(get_settings().log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting Printful-Webflow connector",
        app_env=settings.app_env,
        debug=settings.debug,
    )
    for provider, client_id in (
        ("printful", settings.printful_client_id),
        ("webflow", settings.webflow_client_id),
    ):
        if not client_id:
            logger.warning("Missing OAuth credentials", provider=provider)

    yield

    await close_redis()
    logger.info("Shutting down Printful-Webflow connector")


async def provider_error_handler(request: Request, exc: ProviderApiError) -> JSONResponse:
    logger.error(
        "Provider request failed",
        provider=exc.provider,
        status=exc.status_code,
        path=request.url.path,
        error=exc.message,
    )
    status_code = exc.status_code if 400 <= exc.status_code < 600 else 502
    return JSONResponse(
        {"error": f"{exc.provider.capitalize()} request failed", "details": exc.message},
        status_code=status_code,
    )


async def connector_error_handler(request: Request, exc: ConnectorError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        {"error": "Invalid request", "details": jsonable_errors(exc)},
        status_code=400,
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Printful-Webflow Connector API",
        description="OAuth connections plus product and order sync between Printful and Webflow",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ProviderApiError, provider_error_handler)
    app.add_exception_handler(ConnectorError, connector_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "connector_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()
