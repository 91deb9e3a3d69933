"""Main FastAPI application entry point."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.dependencies.services import get_connection_registry, get_in_app_service, get_job_queue
from api.exception_handlers import setup_exception_handlers
from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.request_id import RequestIDMiddleware
from api.middleware.security import SecurityHeadersMiddleware
from api.routes import router as notifications_router
from api.routes.health import router as health_router
from api.routes.websocket import router as websocket_router
from core.config import settings
from core.logging import setup_logging
from core.rate_limit import limiter, rate_limit_exceeded_handler

logger = structlog.get_logger()

# Initialize structured logging
setup_logging()

RETENTION_INTERVAL_SECONDS = 24 * 60 * 60


async def notification_retention_loop() -> None:
    """Purge in-app notifications past the retention window once a day."""
    while True:
        await asyncio.sleep(RETENTION_INTERVAL_SECONDS)
        try:
            deleted = await get_in_app_service().purge_older_than(
                settings.notification_retention_days
            )
            if deleted > 0:
                logger.info(
                    "notification_retention_completed",
                    deleted_count=deleted,
                    retention_days=settings.notification_retention_days,
                )
        except Exception:
            logger.exception("notification_retention_failed")


async def websocket_heartbeat_loop() -> None:
    """Ping live sockets and close the ones that stopped answering."""
    registry = get_connection_registry()
    while True:
        await asyncio.sleep(settings.websocket_heartbeat_seconds)
        try:
            closed = await registry.sweep()
            if closed > 0:
                logger.info("websocket_heartbeat_reaped", closed_count=closed)
        except Exception:
            logger.exception("websocket_heartbeat_failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the retry/scheduling worker, the retention loop and the socket heartbeat."""
    queue = get_job_queue()
    queue.start()
    retention_task = asyncio.create_task(notification_retention_loop())
    heartbeat_task = asyncio.create_task(websocket_heartbeat_loop())

    yield

    heartbeat_task.cancel()
    retention_task.cancel()
    await queue.stop()
    await get_connection_registry().close_all()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        title=settings.app_name,
        description=(
            "## Dine Maison Notification Dispatch\n\n"
            "Delivers booking, payment, message, review and system events to "
            "guests and chefs over web/mobile push, email, SMS, WebSocket and "
            "the in-app notification center.\n\n"
            "### Features\n"
            "- **Notification center**: paginated in-app feed with read state\n"
            "- **Preferences**: per-type, per-channel opt-in with defaults\n"
            "- **Devices**: web push subscriptions and mobile push tokens\n"
            "- **Real time**: `notification:*` events on the WebSocket at "
            f"`{settings.websocket_path}`\n\n"
            "### Authentication\n"
            "All endpoints (except `/health`) require a valid JWT token "
            "in the Authorization header:\n"
            "```\nAuthorization: Bearer <your_token>\n```\n\n"
            "### Rate Limits\n"
            "- GET endpoints: 30 requests/minute\n"
            "- POST/PUT/PATCH/DELETE: 10 requests/minute"
        ),
        version="1.0.0",
        debug=settings.debug,
        contact={
            "name": "Dine Maison Engineering",
        },
        openapi_tags=[
            {
                "name": "health",
                "description": "Health check endpoints",
            },
            {
                "name": "notifications",
                "description": "Notification center, catalog, receipts and dispatch",
            },
            {
                "name": "preferences",
                "description": "Per-type channel preferences",
            },
            {
                "name": "devices",
                "description": "Web push subscriptions and mobile device tokens",
            },
        ],
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Security & tracking middleware (LIFO order - last added = outermost)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # GZip compression for responses > 1KB
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(notifications_router, prefix="/api/notifications")
    app.include_router(websocket_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )
