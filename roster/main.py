"""FastAPI application entry point and lifecycle management."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from roster.logging_config import configure_logging, get_logger
from roster.middleware import ContextMiddleware, RequestLoggingMiddleware
from roster.repositories.subscription_store import StoreError
from roster.services.role_actuator import DeliveryError
from roster.services.subscription_service import SubscriptionService, get_subscription_service

VERSION = "0.1.0"

# Initialize logger
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Builds the service graph, starts the sweep scheduler and tears both
    down on shutdown.
    """
    from roster.config import get_settings
    from roster.services.scheduler import SweepScheduler

    logger.info("roster_starting", version=VERSION)

    service = get_subscription_service()
    if service.dispatcher.is_enabled():
        logger.info("pubsub_enabled", message="Event dispatcher initialized and ready")
    else:
        logger.info("pubsub_disabled", message="Event dispatcher is disabled or failed to initialize")

    scheduler = SweepScheduler(service, get_settings().schedule)
    app.state.scheduler = scheduler
    try:
        scheduler.start()
        logger.info("roster_started", status="ready")
        yield
    finally:
        logger.info("roster_shutting_down")
        scheduler.shutdown()

        from roster.services.event_dispatcher import reset_event_dispatcher
        from roster.services.role_actuator import reset_role_actuator

        reset_event_dispatcher()
        reset_role_actuator()
        logger.info("roster_stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    # Configure logging
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_format = os.getenv("LOG_FORMAT", "json").lower() == "json"
    configure_logging(log_level=log_level, json_format=json_format)

    app = FastAPI(
        title="Roster",
        description="Time-bound role subscriptions for a chat community",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add logging middleware
    include_request_details = os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true"
    app.add_middleware(RequestLoggingMiddleware, include_request_details=include_request_details)
    app.add_middleware(ContextMiddleware)

    # Register routers
    from roster.api.admin import router as admin_router
    from roster.api.control import router as control_router
    from roster.api.dashboard import router as dashboard_router

    app.include_router(control_router)
    app.include_router(dashboard_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Liveness endpoint."""
        logger.debug("root_endpoint_called")
        return {
            "service": "roster",
            "status": "running",
            "version": VERSION,
        }

    @app.get("/health")
    def health(service: SubscriptionService = Depends(get_subscription_service)) -> dict[str, str]:
        """Detailed health check."""
        stats = service.get_statistics()
        return {
            "status": "healthy",
            "pubsub": "connected" if service.dispatcher.is_enabled() else "disabled",
            "roles": "enabled" if service.role_actuator.is_enabled() else "disabled",
            "store": f"{stats.total} subscriptions ({stats.active} active)",
        }

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("store_unavailable", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=503,
            content={
                "error": "store_unavailable",
                "message": "Subscription storage is unavailable, try again later",
            },
        )

    @app.exception_handler(DeliveryError)
    async def delivery_error_handler(request: Request, exc: DeliveryError) -> JSONResponse:
        logger.error("delivery_failed", error=str(exc), error_type=type(exc).__name__, path=request.url.path)
        return JSONResponse(
            status_code=502,
            content={
                "error": "delivery_failed",
                "message": "The chat platform could not be reached, try again later",
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    logger.info("app_created", endpoints=len(app.routes))
    return app


# Create app instance
app = create_app()
