"""Notification preference routes."""

from fastapi import APIRouter, Body, Depends, Request

from api.dependencies.auth import CurrentUser
from api.dependencies.services import get_preference_service
from api.schemas.preference import (
    ChannelPreferencesPatch,
    PreferenceMap,
    to_preference_map,
)
from core.rate_limit import limiter
from domain.services.notification_catalog import parse_category, parse_type
from domain.services.preference_service import PreferenceService

router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.get(
    "",
    response_model=PreferenceMap,
    summary="Get notification preferences",
    responses={
        200: {"description": "Channel flags for every notification type"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_preferences(
    request: Request,
    user: CurrentUser,
    service: PreferenceService = Depends(get_preference_service),
) -> PreferenceMap:
    return to_preference_map(await service.get_all_preferences(user.id))


@router.put(
    "",
    response_model=PreferenceMap,
    summary="Update notification preferences",
    responses={
        200: {"description": "The full preference map after the update"},
        400: {"description": "Unknown notification type"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def update_preferences(
    request: Request,
    user: CurrentUser,
    body: dict[str, ChannelPreferencesPatch] = Body(
        ...,
        examples=[{"booking_confirmed": {"email": False}, "payment_failed": {"sms": True}}],
    ),
    service: PreferenceService = Depends(get_preference_service),
) -> PreferenceMap:
    """Merge-patch by type. Types and channels left out keep their stored value."""
    patches = {parse_type(name): patch.as_patch() for name, patch in body.items()}
    return to_preference_map(await service.set_many(user.id, patches))


@router.patch(
    "/categories/{category}",
    response_model=PreferenceMap,
    summary="Update every type in a category",
    responses={
        200: {"description": "The full preference map after the update"},
        400: {"description": "Unknown category"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def update_category_preferences(
    request: Request,
    category: str,
    body: ChannelPreferencesPatch,
    user: CurrentUser,
    service: PreferenceService = Depends(get_preference_service),
) -> PreferenceMap:
    prefs = await service.set_category_preferences(
        user.id, parse_category(category), body.as_patch()
    )
    return to_preference_map(prefs)


@router.post(
    "/reset",
    response_model=PreferenceMap,
    summary="Reset preferences to defaults",
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def reset_preferences(
    request: Request,
    user: CurrentUser,
    service: PreferenceService = Depends(get_preference_service),
) -> PreferenceMap:
    await service.reset_all(user.id)
    return to_preference_map(await service.get_all_preferences(user.id))
