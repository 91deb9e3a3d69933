"""Notification hooks for booking, payment and review events.

Each helper is safe to call from a business operation: dispatch errors are
logged and swallowed so a notification problem never fails the booking.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

import structlog

from domain.entities.notification import DispatchResult, NotificationType
from domain.services.dispatcher import NotificationDispatcher

logger = structlog.get_logger()

BOOKINGS_URL = "/dashboard?tab=bookings"
REVIEWS_URL = "/dashboard?tab=reviews"


def format_event_date(value: date | datetime | str) -> str:
    """Render a date the way the product copy reads, e.g. ``March 5, 2026``."""
    if isinstance(value, str):
        return value
    return f"{value:%B} {value.day}, {value.year}"


def format_amount(value: float | Decimal) -> str:
    return f"${value:,.2f}"


class BookingNotifier:
    """One coroutine per marketplace event."""

    def __init__(self, dispatcher: NotificationDispatcher) -> None:
        self._dispatcher = dispatcher

    async def booking_requested(
        self,
        customer_id: UUID,
        chef_id: UUID,
        booking_id: str,
        chef_name: str,
        event_date: date | datetime,
        event_time: str,
        guest_count: int,
    ) -> None:
        """Confirm the request to the customer and alert the chef."""
        when = format_event_date(event_date)
        await self._notify(
            NotificationType.BOOKING_REQUESTED,
            customer_id,
            booking_id=booking_id,
            chef_name=chef_name,
            event_date=when,
            url=BOOKINGS_URL,
        )
        await self._notify(
            NotificationType.BOOKING_REQUESTED,
            chef_id,
            variant="chef",
            booking_id=booking_id,
            event_date=when,
            event_time=event_time,
            guest_count=guest_count,
            url=BOOKINGS_URL,
        )

    async def booking_confirmed(
        self,
        customer_id: UUID,
        booking_id: str,
        chef_name: str,
        event_date: date | datetime,
        event_time: str,
    ) -> None:
        await self._notify(
            NotificationType.BOOKING_CONFIRMED,
            customer_id,
            booking_id=booking_id,
            chef_name=chef_name,
            event_date=format_event_date(event_date),
            event_time=event_time,
            url=BOOKINGS_URL,
        )

    async def booking_cancelled(
        self,
        user_id: UUID,
        booking_id: str,
        chef_name: str,
        event_date: date | datetime,
        cancelled_by: Literal["customer", "chef"],
    ) -> None:
        await self._notify(
            NotificationType.BOOKING_CANCELLED,
            user_id,
            variant="cancelled_by_chef" if cancelled_by == "chef" else None,
            booking_id=booking_id,
            chef_name=chef_name,
            event_date=format_event_date(event_date),
            cancelled_by=cancelled_by,
            url=BOOKINGS_URL,
        )

    async def booking_rejected(
        self,
        customer_id: UUID,
        booking_id: str,
        chef_name: str,
        event_date: date | datetime,
    ) -> None:
        await self._notify(
            NotificationType.BOOKING_REJECTED,
            customer_id,
            booking_id=booking_id,
            chef_name=chef_name,
            event_date=format_event_date(event_date),
            url=BOOKINGS_URL,
        )

    async def booking_reminder(
        self,
        customer_id: UUID,
        booking_id: str,
        chef_name: str,
        event_time: str,
        event_address: str,
    ) -> None:
        """Sent the day before the event."""
        await self._notify(
            NotificationType.BOOKING_REMINDER,
            customer_id,
            booking_id=booking_id,
            chef_name=chef_name,
            event_time=event_time,
            event_address=event_address,
            url=BOOKINGS_URL,
        )

    async def booking_completed(self, customer_id: UUID, booking_id: str, chef_name: str) -> None:
        """Ask the customer for a review."""
        await self._notify(
            NotificationType.BOOKING_COMPLETED,
            customer_id,
            booking_id=booking_id,
            chef_name=chef_name,
            url=f"{BOOKINGS_URL}&review={booking_id}",
        )

    async def payment_success(
        self, user_id: UUID, booking_id: str, amount: float | Decimal, chef_name: str
    ) -> None:
        await self._notify(
            NotificationType.PAYMENT_SUCCESS,
            user_id,
            booking_id=booking_id,
            amount=format_amount(amount),
            chef_name=chef_name,
            url=BOOKINGS_URL,
        )

    async def payment_failed(
        self,
        user_id: UUID,
        booking_id: str,
        amount: float | Decimal,
        reason: str | None = None,
    ) -> None:
        await self._notify(
            NotificationType.PAYMENT_FAILED,
            user_id,
            booking_id=booking_id,
            amount=format_amount(amount),
            reason=reason,
            url=f"{BOOKINGS_URL}&payment={booking_id}",
        )

    async def review_received(
        self, chef_id: UUID, review_id: str, customer_name: str, rating: int
    ) -> None:
        await self._notify(
            NotificationType.REVIEW_RECEIVED,
            chef_id,
            review_id=review_id,
            customer_name=customer_name,
            rating=rating,
            url=REVIEWS_URL,
        )

    async def _notify(
        self, notification_type: NotificationType, user_id: UUID, **data: Any
    ) -> DispatchResult | None:
        payload = {k: v for k, v in data.items() if v is not None}
        try:
            return await self._dispatcher.dispatch(notification_type, user_id, payload)
        except Exception:
            logger.exception(
                "booking_notification_failed",
                type=notification_type.value,
                user_id=str(user_id),
                booking_id=data.get("booking_id"),
            )
            return None
