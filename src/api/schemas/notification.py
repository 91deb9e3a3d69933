"""Pydantic schemas for the notification center and dispatch API."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from domain.entities.notification import (
    ChannelOutcome,
    DispatchResult,
    InAppNotification,
    NotificationChannel,
    NotificationPriority,
)
from domain.services.notification_catalog import CatalogEntry


class NotificationResponse(BaseModel):
    """One in-app notification, shaped like the ``notification:new`` message."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    type: str
    title: str
    body: str
    data: dict[str, Any]
    category: str
    priority: str
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, notification: InAppNotification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            type=notification.type.value,
            title=notification.title,
            body=notification.body,
            data=notification.data,
            category=notification.category.value,
            priority=notification.priority.value,
            is_read=notification.is_read,
            read_at=notification.read_at,
            created_at=notification.created_at,
        )


class NotificationListResponse(BaseModel):
    """A page of the notification center."""

    data: list[NotificationResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class NotificationTypeResponse(BaseModel):
    """Catalog entry, used to build the preferences screen."""

    type: str
    category: str
    priority: str
    description: str

    @classmethod
    def from_entry(cls, entry: CatalogEntry) -> "NotificationTypeResponse":
        return cls(
            type=entry.type.value,
            category=entry.category.value,
            priority=entry.priority.value,
            description=entry.description,
        )


class NotificationTypeListResponse(BaseModel):
    data: list[NotificationTypeResponse]


class DispatchRequest(BaseModel):
    """Administrative trigger for one notification."""

    type: str = Field(..., description="Notification type, e.g. booking_confirmed")
    user_id: UUID
    data: dict[str, Any] = Field(default_factory=dict)
    channels: list[NotificationChannel] | None = Field(
        None, description="Restrict delivery to these channels (default: all)"
    )
    skip_preferences: bool = False
    scheduled_for: datetime | None = None
    priority: NotificationPriority | None = Field(
        None, description="Raise the catalog priority; lower values are ignored"
    )


class ChannelOutcomeResponse(BaseModel):
    status: str
    error_kind: str | None = None
    error_message: str | None = None
    attempts: int
    retry_scheduled: bool

    @classmethod
    def from_outcome(cls, outcome: ChannelOutcome) -> "ChannelOutcomeResponse":
        return cls(
            status=outcome.status.value,
            error_kind=outcome.error_kind.value if outcome.error_kind else None,
            error_message=outcome.error_message,
            attempts=outcome.attempts,
            retry_scheduled=outcome.retry_scheduled,
        )


class DispatchResponse(BaseModel):
    notification_id: UUID
    type: str
    recipient_id: UUID
    priority: str
    scheduled: bool
    scheduled_for: datetime | None = None
    in_app_notification_id: UUID | None = None
    channels: dict[str, ChannelOutcomeResponse]

    @classmethod
    def from_result(cls, result: DispatchResult) -> "DispatchResponse":
        return cls(
            notification_id=result.notification_id,
            type=result.type.value,
            recipient_id=result.recipient_id,
            priority=result.priority.value,
            scheduled=result.scheduled,
            scheduled_for=result.scheduled_for,
            in_app_notification_id=result.in_app_notification_id,
            channels={
                channel.value: ChannelOutcomeResponse.from_outcome(outcome)
                for channel, outcome in result.outcomes.items()
            },
        )


class DeliveryConfirmResponse(BaseModel):
    confirmed: bool
