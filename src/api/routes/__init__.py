"""API router configuration."""

from fastapi import APIRouter

from api.routes.devices import router as devices_router
from api.routes.notifications import router as notifications_router
from api.routes.preferences import router as preferences_router

router = APIRouter()
router.include_router(notifications_router)
router.include_router(preferences_router)
router.include_router(devices_router)
