"""Notification center, catalog, receipts and dispatch routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from api.dependencies.auth import AdminUser, CurrentUser
from api.dependencies.services import get_delivery_tracker, get_dispatcher, get_in_app_service
from api.schemas.common import CountResponse
from api.schemas.notification import (
    DeliveryConfirmResponse,
    DispatchRequest,
    DispatchResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationTypeListResponse,
    NotificationTypeResponse,
)
from core.rate_limit import limiter
from domain.entities.notification import DispatchOptions, NotificationChannel
from domain.services.delivery_tracker import DeliveryTracker
from domain.services.dispatcher import NotificationDispatcher
from domain.services.in_app_service import InAppNotificationService
from domain.services.notification_catalog import all_entries

router = APIRouter(tags=["notifications"])


# --- In-app notification center ---


@router.get(
    "/in-app",
    response_model=NotificationListResponse,
    summary="List in-app notifications",
    responses={
        200: {"description": "Newest first, with the unread count"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_notifications(
    request: Request,
    user: CurrentUser,
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    offset: int = Query(0, ge=0, description="Rows to skip"),
    service: InAppNotificationService = Depends(get_in_app_service),
) -> NotificationListResponse:
    notifications = await service.list(user.id, limit=limit, offset=offset)
    unread = await service.unread_count(user.id)
    return NotificationListResponse(
        data=[NotificationResponse.from_entity(n) for n in notifications],
        meta={"limit": limit, "offset": offset, "unread_count": unread},
    )


@router.get(
    "/in-app/unread-count",
    response_model=CountResponse,
    summary="Get unread notification count",
)
@limiter.limit("60/minute")  # type: ignore[untyped-decorator]
async def get_unread_count(
    request: Request,
    user: CurrentUser,
    service: InAppNotificationService = Depends(get_in_app_service),
) -> CountResponse:
    return CountResponse(count=await service.unread_count(user.id))


@router.patch(
    "/in-app/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark notification as read",
    responses={
        204: {"description": "Marked as read, or already read / not found"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def mark_notification_read(
    request: Request,
    notification_id: UUID,
    user: CurrentUser,
    service: InAppNotificationService = Depends(get_in_app_service),
) -> None:
    """Idempotent: repeating the call, or naming another user's record, is a no-op."""
    await service.mark_read(user.id, notification_id)


@router.post(
    "/in-app/mark-all-read",
    response_model=CountResponse,
    summary="Mark all notifications as read",
    responses={
        200: {"description": "Number of notifications marked as read"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def mark_all_notifications_read(
    request: Request,
    user: CurrentUser,
    service: InAppNotificationService = Depends(get_in_app_service),
) -> CountResponse:
    return CountResponse(count=await service.mark_all_read(user.id))


@router.delete(
    "/in-app/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete notification",
    responses={
        204: {"description": "Deleted, or not found"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def delete_notification(
    request: Request,
    notification_id: UUID,
    user: CurrentUser,
    service: InAppNotificationService = Depends(get_in_app_service),
) -> None:
    await service.delete(user.id, notification_id)


# --- Catalog ---


@router.get(
    "/types",
    response_model=NotificationTypeListResponse,
    summary="List notification types",
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_notification_types(
    request: Request,
    user: CurrentUser,
) -> NotificationTypeListResponse:
    """Every notification type with its category and default priority."""
    return NotificationTypeListResponse(
        data=[NotificationTypeResponse.from_entry(e) for e in all_entries()]
    )


# --- Delivery receipts ---


@router.post(
    "/deliveries/{notification_id}/confirm",
    response_model=DeliveryConfirmResponse,
    summary="Confirm a notification reached the device",
    responses={
        200: {"description": "Whether a sent delivery was confirmed"},
    },
)
@limiter.limit("60/minute")  # type: ignore[untyped-decorator]
async def confirm_delivery(
    request: Request,
    notification_id: UUID,
    user: CurrentUser,
    channel: NotificationChannel = Query(NotificationChannel.PUSH),
    tracker: DeliveryTracker = Depends(get_delivery_tracker),
) -> DeliveryConfirmResponse:
    """Called by the service worker or mobile app when a push is displayed."""
    confirmed = await tracker.confirm_delivered(user.id, notification_id, channel)
    return DeliveryConfirmResponse(confirmed=confirmed)


# --- Administrative dispatch ---


@router.post(
    "/dispatch",
    response_model=DispatchResponse,
    summary="Send a notification",
    responses={
        200: {"description": "Per-channel outcome, or the scheduled time"},
        400: {"description": "Unknown notification type"},
        403: {"description": "Caller is not an administrator"},
        404: {"description": "Recipient not found"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def dispatch_notification(
    request: Request,
    body: DispatchRequest,
    admin: AdminUser,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DispatchResponse:
    options = DispatchOptions(
        channels=tuple(body.channels) if body.channels is not None else None,
        skip_preferences=body.skip_preferences,
        scheduled_for=body.scheduled_for,
        priority=body.priority,
    )
    result = await dispatcher.dispatch(body.type, body.user_id, body.data, options)
    return DispatchResponse.from_result(result)
