"""Notification catalog: category, priority and copy for every notification type.

Titles and bodies are rendered from the templates below using the dispatch
``data`` mapping. Caller-supplied text is never used verbatim, which keeps the
copy consistent across channels. Missing template fields fall back to neutral
wording instead of failing the dispatch.
"""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from core.exceptions import InvalidCategoryError, InvalidEventTypeError
from domain.entities.notification import (
    NotificationAction,
    NotificationCategory,
    NotificationPayload,
    NotificationPriority,
    NotificationType,
)

DEFAULT_URL = "/dashboard?tab=bookings"
DEFAULT_EMAIL_ACTION_TEXT = "View Details"


@dataclass(frozen=True, slots=True)
class TemplateText:
    """Title and body templates for one notification variant."""

    title: str
    body: str


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """Static description of one notification type."""

    type: NotificationType
    category: NotificationCategory
    priority: NotificationPriority
    template: TemplateText
    url: str = DEFAULT_URL
    email_action_text: str = DEFAULT_EMAIL_ACTION_TEXT
    actions: tuple[NotificationAction, ...] = ()
    variants: dict[str, TemplateText] = field(default_factory=dict)
    description: str = ""


_VIEW_BOOKING = (NotificationAction(action="view", title="View Booking"),)

_CATALOG: dict[NotificationType, CatalogEntry] = {
    entry.type: entry
    for entry in (
        # Booking
        CatalogEntry(
            type=NotificationType.BOOKING_REQUESTED,
            category=NotificationCategory.BOOKING,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="Booking Request Sent",
                body="Your booking request with {chef_name} for {event_date} has been sent.",
            ),
            variants={
                "chef": TemplateText(
                    title="New Booking Request!",
                    body=(
                        "New booking request for {event_date} at {event_time} "
                        "for {guest_count} guests."
                    ),
                ),
            },
            email_action_text="View Booking",
            actions=_VIEW_BOOKING,
            description="A booking request was sent or received",
        ),
        CatalogEntry(
            type=NotificationType.BOOKING_CONFIRMED,
            category=NotificationCategory.BOOKING,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="Booking Confirmed!",
                body="{chef_name} has confirmed your booking for {event_date} at {event_time}.",
            ),
            email_action_text="View Booking Details",
            actions=(NotificationAction(action="view", title="View Details"),),
            description="A chef accepted a booking",
        ),
        CatalogEntry(
            type=NotificationType.BOOKING_CANCELLED,
            category=NotificationCategory.BOOKING,
            priority=NotificationPriority.HIGH,
            template=TemplateText(
                title="Booking Cancelled",
                body="Your booking with {chef_name} for {event_date} has been cancelled.",
            ),
            variants={
                "cancelled_by_chef": TemplateText(
                    title="Booking Cancelled",
                    body="{chef_name} has cancelled your booking for {event_date}.",
                ),
            },
            email_action_text="View Cancellation",
            actions=_VIEW_BOOKING,
            description="A booking was cancelled",
        ),
        CatalogEntry(
            type=NotificationType.BOOKING_COMPLETED,
            category=NotificationCategory.BOOKING,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="How was your experience?",
                body=(
                    "We hope you enjoyed your experience with {chef_name}! "
                    "Please take a moment to leave a review."
                ),
            ),
            actions=(NotificationAction(action="review", title="Leave a Review"),),
            description="A booking was completed",
        ),
        CatalogEntry(
            type=NotificationType.BOOKING_REMINDER,
            category=NotificationCategory.BOOKING,
            priority=NotificationPriority.HIGH,
            template=TemplateText(
                title="Booking Reminder",
                body=(
                    "Your experience with {chef_name} is tomorrow at {event_time}. "
                    "Location: {event_address}"
                ),
            ),
            email_action_text="View Booking",
            actions=_VIEW_BOOKING,
            description="An upcoming booking reminder",
        ),
        CatalogEntry(
            type=NotificationType.BOOKING_REJECTED,
            category=NotificationCategory.BOOKING,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="Booking Request Declined",
                body=(
                    "Unfortunately, {chef_name} is unable to accommodate your booking "
                    "request for {event_date}."
                ),
            ),
            description="A chef declined a booking request",
        ),
        # Payment
        CatalogEntry(
            type=NotificationType.PAYMENT_PENDING,
            category=NotificationCategory.PAYMENT,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="Payment Pending",
                body="Your payment of {amount} for your booking with {chef_name} is being processed.",
            ),
            description="A payment is being processed",
        ),
        CatalogEntry(
            type=NotificationType.PAYMENT_SUCCESS,
            category=NotificationCategory.PAYMENT,
            priority=NotificationPriority.HIGH,
            template=TemplateText(
                title="Payment Successful",
                body=(
                    "Your payment of {amount} for your booking with {chef_name} "
                    "was successful."
                ),
            ),
            email_action_text="View Receipt",
            description="A payment went through",
        ),
        CatalogEntry(
            type=NotificationType.PAYMENT_FAILED,
            category=NotificationCategory.PAYMENT,
            priority=NotificationPriority.URGENT,
            template=TemplateText(
                title="Payment Failed",
                body="Your payment of {amount} could not be processed. {reason}",
            ),
            email_action_text="Update Payment",
            actions=(NotificationAction(action="update_payment", title="Update Payment"),),
            description="A payment failed",
        ),
        CatalogEntry(
            type=NotificationType.PAYMENT_REFUNDED,
            category=NotificationCategory.PAYMENT,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="Payment Refunded",
                body="A refund of {amount} for your booking with {chef_name} has been issued.",
            ),
            email_action_text="View Receipt",
            description="A payment was refunded",
        ),
        # Message
        CatalogEntry(
            type=NotificationType.MESSAGE_RECEIVED,
            category=NotificationCategory.MESSAGE,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="Message from {sender_name}",
                body="{message_preview}",
            ),
            url="/dashboard?tab=messages",
            email_action_text="View Message",
            actions=(NotificationAction(action="view", title="View Message"),),
            description="A new chat message",
        ),
        # Review
        CatalogEntry(
            type=NotificationType.REVIEW_RECEIVED,
            category=NotificationCategory.REVIEW,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="New Review Received",
                body="{customer_name} left you a {rating}-star review!",
            ),
            url="/dashboard?tab=reviews",
            email_action_text="View Review",
            description="A customer reviewed a chef",
        ),
        CatalogEntry(
            type=NotificationType.REVIEW_RESPONSE,
            category=NotificationCategory.REVIEW,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="Your Review Got a Response",
                body="{chef_name} responded to your review.",
            ),
            url="/dashboard?tab=reviews",
            email_action_text="View Review",
            description="A chef responded to a review",
        ),
        # Chef applications
        CatalogEntry(
            type=NotificationType.CHEF_APPLICATION_APPROVED,
            category=NotificationCategory.SYSTEM,
            priority=NotificationPriority.HIGH,
            template=TemplateText(
                title="Welcome to Dine Maison!",
                body="Your chef application has been approved. You can now start accepting bookings.",
            ),
            url="/chef/dashboard",
            description="A chef application was approved",
        ),
        CatalogEntry(
            type=NotificationType.CHEF_APPLICATION_REJECTED,
            category=NotificationCategory.SYSTEM,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="Chef Application Update",
                body="Your chef application was not approved at this time. {reason}",
            ),
            url="/chef/apply",
            description="A chef application was declined",
        ),
        # System
        CatalogEntry(
            type=NotificationType.SYSTEM_ANNOUNCEMENT,
            category=NotificationCategory.SYSTEM,
            priority=NotificationPriority.LOW,
            template=TemplateText(title="{headline}", body="{message}"),
            url="/dashboard",
            description="A platform-wide announcement",
        ),
        CatalogEntry(
            type=NotificationType.ACCOUNT_UPDATE,
            category=NotificationCategory.SYSTEM,
            priority=NotificationPriority.NORMAL,
            template=TemplateText(
                title="Account Updated",
                body="{message}",
            ),
            url="/dashboard?tab=settings",
            description="A change to the user's account",
        ),
    )
}

# Neutral wording used when the event data omits a template field.
_FALLBACKS: dict[str, str] = {
    "chef_name": "your chef",
    "customer_name": "A customer",
    "sender_name": "a user",
    "event_date": "your upcoming date",
    "event_time": "the scheduled time",
    "event_address": "see booking details",
    "guest_count": "your",
    "amount": "the booking amount",
    "rating": "new",
    "reason": "Please update your payment method.",
    "message_preview": "You have a new message.",
    "headline": "Announcement",
    "message": "There is an update on your account.",
}


class _TemplateData(dict[str, Any]):
    """Mapping that substitutes a neutral fallback for missing keys."""

    def __missing__(self, key: str) -> str:
        return _FALLBACKS.get(key, "")


def get_entry(notification_type: NotificationType) -> CatalogEntry:
    """Get the catalog entry for a type."""
    return _CATALOG[notification_type]


def all_entries() -> list[CatalogEntry]:
    """All catalog entries in declaration order."""
    return list(_CATALOG.values())


def parse_type(value: NotificationType | str) -> NotificationType:
    """Coerce a raw value into a NotificationType or raise InvalidEventTypeError."""
    if isinstance(value, NotificationType):
        return value
    try:
        return NotificationType(value)
    except ValueError:
        raise InvalidEventTypeError(str(value)) from None


def parse_category(value: NotificationCategory | str) -> NotificationCategory:
    """Coerce a raw value into a NotificationCategory or raise InvalidCategoryError."""
    if isinstance(value, NotificationCategory):
        return value
    try:
        return NotificationCategory(value)
    except ValueError:
        raise InvalidCategoryError(str(value)) from None


def types_in_category(category: NotificationCategory) -> list[NotificationType]:
    """All notification types belonging to a category."""
    return [t for t, entry in _CATALOG.items() if entry.category == category]


def _render(template: str, data: dict[str, Any]) -> str:
    # Collapse whitespace left behind by empty fallbacks.
    return " ".join(template.format_map(_TemplateData(data)).split())


def build_payload(
    notification_type: NotificationType,
    data: dict[str, Any] | None = None,
    priority: NotificationPriority | None = None,
    notification_id: UUID | None = None,
) -> NotificationPayload:
    """Render the channel-agnostic payload for one dispatch.

    ``priority`` can raise the catalog priority but never lower it. The
    ``variant`` key in ``data`` selects alternate copy, e.g. the chef-facing
    text of a booking request.
    """
    entry = get_entry(notification_type)
    data = dict(data or {})

    effective = entry.priority
    if priority is not None and priority.rank > effective.rank:
        effective = priority

    template = entry.variants.get(data.get("variant") or "", entry.template)
    data.setdefault("url", entry.url)

    return NotificationPayload(
        type=notification_type,
        title=_render(template.title, data),
        body=_render(template.body, data),
        category=entry.category,
        priority=effective,
        data=data,
        require_interaction=effective.requires_interaction,
        actions=entry.actions,
        id=notification_id or uuid4(),
    )
