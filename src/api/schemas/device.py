"""Pydantic schemas for push subscriptions and device tokens."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from domain.entities.notification import DeviceRecord


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PushSubscriptionKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class WebPushSubscribeRequest(BaseModel):
    """Browser ``PushSubscription.toJSON()`` output."""

    endpoint: str = Field(..., min_length=1)
    keys: PushSubscriptionKeys


class WebPushUnsubscribeRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)


class DeviceRegisterRequest(_CamelModel):
    """Mobile push token registration."""

    platform: Literal["ios", "android"]
    token: str = Field(..., min_length=1)
    device_id: str = Field(..., min_length=1, max_length=255)


class DeviceResponse(_CamelModel):
    id: UUID
    device_id: str
    platform: str
    registered_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, device: DeviceRecord) -> "DeviceResponse":
        return cls(
            id=device.id,
            device_id=device.device_id,
            platform=device.platform.value,
            registered_at=device.registered_at,
            updated_at=device.updated_at,
        )


class DeviceListResponse(BaseModel):
    data: list[DeviceResponse]


class VapidPublicKeyResponse(_CamelModel):
    public_key: str
