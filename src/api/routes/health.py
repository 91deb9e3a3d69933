"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies.services import get_connection_registry, get_job_queue
from core.config import settings
from infrastructure.database.session import get_async_session
from infrastructure.realtime.connection_registry import ConnectionRegistry
from infrastructure.scheduling.delayed_queue import DelayedJobQueue

API_VERSION = "1.0.0"

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    environment: str
    database: str | None = None
    channels: dict[str, bool] | None = None
    websocket_connections: int | None = None
    pending_jobs: int | None = None


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
async def health_check() -> HealthResponse:
    """Liveness check. Does not touch the database."""
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        environment=settings.app_env,
    )


@router.get(
    "/health/detailed",
    response_model=HealthResponse,
    summary="Detailed health check",
)
async def detailed_health_check(
    db: AsyncSession = Depends(get_async_session),
    registry: ConnectionRegistry = Depends(get_connection_registry),
    queue: DelayedJobQueue = Depends(get_job_queue),
) -> HealthResponse:
    """Database connectivity, configured providers and realtime load."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {e}"

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        version=API_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        environment=settings.app_env,
        database=db_status,
        channels={
            "web_push": settings.web_push_configured,
            "email": settings.smtp_configured,
            "sms": settings.sms_configured,
        },
        websocket_connections=registry.connection_count(),
        pending_jobs=len(queue),
    )
