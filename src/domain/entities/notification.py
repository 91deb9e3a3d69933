"""Notification domain entities and enumerations."""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4


class NotificationType(StrEnum):
    """Catalog of domain events that produce notifications."""

    # Booking notifications
    BOOKING_REQUESTED = "booking_requested"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_REMINDER = "booking_reminder"
    BOOKING_REJECTED = "booking_rejected"

    # Payment notifications
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REFUNDED = "payment_refunded"

    # Message notifications
    MESSAGE_RECEIVED = "message_received"

    # Review notifications
    REVIEW_RECEIVED = "review_received"
    REVIEW_RESPONSE = "review_response"

    # Chef application notifications
    CHEF_APPLICATION_APPROVED = "chef_application_approved"
    CHEF_APPLICATION_REJECTED = "chef_application_rejected"

    # System notifications
    SYSTEM_ANNOUNCEMENT = "system_announcement"
    ACCOUNT_UPDATE = "account_update"


class NotificationCategory(StrEnum):
    """Coarse grouping used for preference buckets and UI iconography."""

    BOOKING = "booking"
    PAYMENT = "payment"
    MESSAGE = "message"
    REVIEW = "review"
    SYSTEM = "system"


class NotificationPriority(StrEnum):
    """Delivery priority, ordered from least to most urgent."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @property
    def allows_sms(self) -> bool:
        """SMS is reserved for high and urgent notifications."""
        return self.rank >= _PRIORITY_RANK[NotificationPriority.HIGH]

    @property
    def requires_interaction(self) -> bool:
        return self.rank >= _PRIORITY_RANK[NotificationPriority.HIGH]


_PRIORITY_RANK = {
    NotificationPriority.LOW: 0,
    NotificationPriority.NORMAL: 1,
    NotificationPriority.HIGH: 2,
    NotificationPriority.URGENT: 3,
}


class NotificationChannel(StrEnum):
    """Delivery transports."""

    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"
    WEBSOCKET = "websocket"
    IN_APP = "in_app"


class NotificationDeliveryStatus(StrEnum):
    """Outcome of one channel attempt within one dispatch."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class ChannelErrorKind(StrEnum):
    """Why a channel attempt failed."""

    TIMEOUT = "timeout"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    NO_DESTINATION = "no_destination"
    NOT_CONFIGURED = "not_configured"
    ERROR = "error"

    @property
    def is_retryable(self) -> bool:
        return self in (ChannelErrorKind.TIMEOUT, ChannelErrorKind.TRANSIENT)


class DevicePlatform(StrEnum):
    """Push target platform."""

    WEB = "web"
    IOS = "ios"
    ANDROID = "android"


@dataclass(frozen=True, slots=True)
class NotificationAction:
    """A button shown with a push notification."""

    action: str
    title: str
    icon: str | None = None


@dataclass(frozen=True, slots=True)
class NotificationPayload:
    """Channel-agnostic rendered notification, built once per dispatch."""

    type: NotificationType
    title: str
    body: str
    category: NotificationCategory
    priority: NotificationPriority
    data: dict[str, Any] = field(default_factory=dict)
    require_interaction: bool = False
    actions: tuple[NotificationAction, ...] = ()
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def url(self) -> str | None:
        return self.data.get("url") or self.data.get("action_url")


@dataclass(frozen=True, slots=True)
class ChannelPreferences:
    """Per-channel opt-in flags for one user and notification type."""

    push: bool = True
    email: bool = True
    sms: bool = False
    in_app: bool = True

    def merge(self, patch: dict[str, bool | None]) -> "ChannelPreferences":
        """Return a copy with the non-null fields of ``patch`` applied."""
        known = {f.name for f in fields(self)}
        changes = {k: v for k, v in patch.items() if k in known and v is not None}
        return replace(self, **changes)

    def allows(self, channel: NotificationChannel) -> bool:
        """Check a stored preference. WebSocket is never a stored preference."""
        if channel == NotificationChannel.WEBSOCKET:
            return True
        return bool(getattr(self, channel.value))

    def as_dict(self) -> dict[str, bool]:
        return {"push": self.push, "email": self.email, "sms": self.sms, "in_app": self.in_app}


DEFAULT_CHANNEL_PREFERENCES = ChannelPreferences()


@dataclass
class Recipient:
    """A user that can receive notifications."""

    id: UUID
    email: str | None = None
    display_name: str | None = None
    phone_number: str | None = None
    phone_verified: bool = False


@dataclass
class InAppNotification:
    """Durable notification record shown in the notification center."""

    user_id: UUID
    type: NotificationType
    title: str
    body: str
    category: NotificationCategory
    priority: NotificationPriority
    id: UUID = field(default_factory=uuid4)
    data: dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class NotificationPreference:
    """Stored preference row for one user and notification type."""

    user_id: UUID
    notification_type: NotificationType
    channels: ChannelPreferences = DEFAULT_CHANNEL_PREFERENCES
    id: UUID = field(default_factory=uuid4)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True, slots=True)
class WebPushSubscription:
    """Browser push subscription as produced by PushManager.subscribe()."""

    endpoint: str
    p256dh: str
    auth: str


@dataclass
class DeviceRecord:
    """A push target: a web push subscription or a mobile device token."""

    user_id: UUID
    device_id: str
    platform: DevicePlatform
    id: UUID = field(default_factory=uuid4)
    token: str | None = None
    endpoint: str | None = None
    p256dh: str | None = None
    auth: str | None = None
    registered_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_web(self) -> bool:
        return self.platform == DevicePlatform.WEB

    def subscription_info(self) -> dict[str, Any]:
        """Web push subscription in the shape the push service expects."""
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


@dataclass
class DeliveryRecord:
    """Delivery status of one channel for one dispatch."""

    notification_id: UUID
    user_id: UUID
    channel: NotificationChannel
    id: UUID = field(default_factory=uuid4)
    status: NotificationDeliveryStatus = NotificationDeliveryStatus.PENDING
    error_kind: ChannelErrorKind | None = None
    error_message: str | None = None
    attempts: int = 0
    provider_message_id: str | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


# --- Channel send results ---


@dataclass(frozen=True, slots=True)
class DeviceSendResult:
    """Outcome of a push to one device."""

    device_id: str
    ok: bool
    error_kind: ChannelErrorKind | None = None
    error_message: str | None = None
    gone: bool = False


@dataclass(frozen=True, slots=True)
class SendResult:
    """What a channel sender reports back to the dispatcher."""

    ok: bool
    provider_message_id: str | None = None
    error_kind: ChannelErrorKind | None = None
    error_message: str | None = None
    device_results: tuple[DeviceSendResult, ...] = ()

    @classmethod
    def success(cls, provider_message_id: str | None = None) -> "SendResult":
        return cls(ok=True, provider_message_id=provider_message_id)

    @classmethod
    def failure(cls, error_kind: ChannelErrorKind, error_message: str | None = None) -> "SendResult":
        return cls(ok=False, error_kind=error_kind, error_message=error_message)


# --- Dispatch ---


@dataclass(frozen=True, slots=True)
class DispatchOptions:
    """Caller-controlled knobs for one dispatch."""

    channels: tuple[NotificationChannel, ...] | None = None
    skip_preferences: bool = False
    scheduled_for: datetime | None = None
    priority: NotificationPriority | None = None


@dataclass
class ChannelOutcome:
    """Per-channel summary returned to the caller of dispatch."""

    channel: NotificationChannel
    status: NotificationDeliveryStatus
    error_kind: ChannelErrorKind | None = None
    error_message: str | None = None
    provider_message_id: str | None = None
    attempts: int = 1
    retry_scheduled: bool = False


@dataclass
class DispatchResult:
    """Result of one dispatch call."""

    notification_id: UUID
    type: NotificationType
    recipient_id: UUID
    priority: NotificationPriority
    outcomes: dict[NotificationChannel, ChannelOutcome] = field(default_factory=dict)
    in_app_notification_id: UUID | None = None
    scheduled: bool = False
    scheduled_for: datetime | None = None

    @property
    def attempted_channels(self) -> set[NotificationChannel]:
        return set(self.outcomes)

    def status_of(self, channel: NotificationChannel) -> NotificationDeliveryStatus | None:
        outcome = self.outcomes.get(channel)
        return outcome.status if outcome else None
