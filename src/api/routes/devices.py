"""Web push subscription and mobile device routes."""

from fastapi import APIRouter, Depends, Request, status

from api.dependencies.auth import CurrentUser
from api.dependencies.services import get_device_registry
from api.schemas.device import (
    DeviceListResponse,
    DeviceRegisterRequest,
    DeviceResponse,
    VapidPublicKeyResponse,
    WebPushSubscribeRequest,
    WebPushUnsubscribeRequest,
)
from core.config import settings
from core.exceptions import ServiceNotConfiguredError
from core.rate_limit import limiter
from domain.entities.notification import DevicePlatform, WebPushSubscription
from domain.services.device_registry import DeviceRegistry

router = APIRouter(tags=["devices"])


@router.get(
    "/vapid-public-key",
    response_model=VapidPublicKeyResponse,
    summary="Get the web push application server key",
    responses={
        503: {"description": "Web push is not configured"},
    },
)
async def get_vapid_public_key() -> VapidPublicKeyResponse:
    if not settings.web_push_configured:
        raise ServiceNotConfiguredError("Web push")
    return VapidPublicKeyResponse(public_key=settings.vapid_public_key)


@router.post(
    "/subscribe",
    response_model=DeviceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a browser push subscription",
    responses={
        201: {"description": "Subscription stored (or refreshed)"},
        400: {"description": "Subscription is incomplete"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def subscribe_web_push(
    request: Request,
    body: WebPushSubscribeRequest,
    user: CurrentUser,
    registry: DeviceRegistry = Depends(get_device_registry),
) -> DeviceResponse:
    device = await registry.subscribe_web(
        user.id,
        WebPushSubscription(endpoint=body.endpoint, p256dh=body.keys.p256dh, auth=body.keys.auth),
    )
    return DeviceResponse.from_entity(device)


@router.post(
    "/unsubscribe",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a browser push subscription",
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def unsubscribe_web_push(
    request: Request,
    body: WebPushUnsubscribeRequest,
    user: CurrentUser,
    registry: DeviceRegistry = Depends(get_device_registry),
) -> None:
    await registry.unsubscribe_web(user.id, body.endpoint)


@router.post(
    "/devices/register",
    response_model=DeviceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a mobile push token",
    responses={
        201: {"description": "Device stored (or refreshed)"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def register_device(
    request: Request,
    body: DeviceRegisterRequest,
    user: CurrentUser,
    registry: DeviceRegistry = Depends(get_device_registry),
) -> DeviceResponse:
    device = await registry.register(
        user.id,
        DevicePlatform(body.platform),
        body.device_id,
        token=body.token,
    )
    return DeviceResponse.from_entity(device)


@router.get(
    "/devices",
    response_model=DeviceListResponse,
    summary="List registered devices",
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_devices(
    request: Request,
    user: CurrentUser,
    registry: DeviceRegistry = Depends(get_device_registry),
) -> DeviceListResponse:
    devices = await registry.list_for_user(user.id)
    return DeviceListResponse(data=[DeviceResponse.from_entity(d) for d in devices])


@router.delete(
    "/devices/{device_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unregister a device",
    responses={
        204: {"description": "Removed, or was not registered"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def unregister_device(
    request: Request,
    device_id: str,
    user: CurrentUser,
    registry: DeviceRegistry = Depends(get_device_registry),
) -> None:
    await registry.unregister(user.id, device_id)
