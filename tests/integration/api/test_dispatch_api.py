"""Integration tests for administrative dispatch and delivery receipts."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient

from core.config import settings

BASE = "/api/notifications"


@pytest.fixture(autouse=True)
def _no_external_providers(monkeypatch):
    monkeypatch.setattr(settings, "smtp_host", "")
    monkeypatch.setattr(settings, "sms_enabled", False)


def _booking_confirmed(user_id, **extra) -> dict:
    return {
        "type": "booking_confirmed",
        "user_id": str(user_id),
        "data": {"booking_id": "bk_42", "chef_name": "Chef Marie", "event_date": "May 1, 2026"},
        **extra,
    }


class TestDispatch:
    @pytest.mark.asyncio
    async def test_fans_out_and_lands_in_notification_center(
        self, admin_client: AsyncClient, authenticated_client: AsyncClient, test_user
    ) -> None:
        response = await admin_client.post(f"{BASE}/dispatch", json=_booking_confirmed(test_user.id))

        assert response.status_code == 200
        result = response.json()
        assert result["scheduled"] is False
        assert result["priority"] == "normal"
        channels = result["channels"]
        assert channels["in_app"]["status"] == "sent"
        assert channels["email"]["status"] == "sent"
        assert channels["push"]["status"] == "failed"
        assert channels["push"]["error_kind"] == "no_destination"
        assert channels["push"]["retry_scheduled"] is False
        assert "sms" not in channels
        assert "websocket" not in channels

        center = (await authenticated_client.get(f"{BASE}/in-app")).json()
        assert [n["id"] for n in center["data"]] == [result["in_app_notification_id"]]
        assert center["data"][0]["body"] == (
            "Chef Marie has confirmed your booking for May 1, 2026 at the scheduled time."
        )

    @pytest.mark.asyncio
    async def test_preferences_are_respected(
        self, admin_client: AsyncClient, authenticated_client: AsyncClient, test_user
    ) -> None:
        await authenticated_client.put(
            f"{BASE}/preferences", json={"booking_confirmed": {"email": False, "inApp": False}}
        )

        channels = (
            await admin_client.post(f"{BASE}/dispatch", json=_booking_confirmed(test_user.id))
        ).json()["channels"]

        assert set(channels) == {"push"}

    @pytest.mark.asyncio
    async def test_explicit_channel_subset(self, admin_client: AsyncClient, authenticated_client, test_user) -> None:
        result = (
            await admin_client.post(
                f"{BASE}/dispatch", json=_booking_confirmed(test_user.id, channels=["email"])
            )
        ).json()

        assert set(result["channels"]) == {"email"}
        assert result["in_app_notification_id"] is None

    @pytest.mark.asyncio
    async def test_future_dispatch_is_scheduled(
        self, admin_client: AsyncClient, authenticated_client: AsyncClient, test_user
    ) -> None:
        when = datetime.utcnow() + timedelta(hours=2)

        result = (
            await admin_client.post(
                f"{BASE}/dispatch",
                json=_booking_confirmed(test_user.id, scheduled_for=when.isoformat()),
            )
        ).json()

        assert result["scheduled"] is True
        assert result["channels"] == {}
        assert (await authenticated_client.get(f"{BASE}/in-app/unread-count")).json() == {"count": 0}

    @pytest.mark.asyncio
    async def test_unknown_recipient(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post(f"{BASE}/dispatch", json=_booking_confirmed(uuid4()))

        assert response.status_code == 404
        assert response.json()["error_code"] == "UNKNOWN_RECIPIENT"

    @pytest.mark.asyncio
    async def test_unknown_type(self, admin_client: AsyncClient, authenticated_client, test_user) -> None:
        response = await admin_client.post(
            f"{BASE}/dispatch", json={"type": "booking_exploded", "user_id": str(test_user.id)}
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_EVENT_TYPE"

    @pytest.mark.asyncio
    async def test_requires_admin(self, authenticated_client: AsyncClient, test_user) -> None:
        response = await authenticated_client.post(f"{BASE}/dispatch", json=_booking_confirmed(test_user.id))

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"


class TestDeliveryReceipts:
    @pytest.mark.asyncio
    async def test_recipient_confirms_sent_delivery(
        self, admin_client: AsyncClient, authenticated_client: AsyncClient, test_user
    ) -> None:
        result = (
            await admin_client.post(f"{BASE}/dispatch", json=_booking_confirmed(test_user.id))
        ).json()
        notification_id = result["notification_id"]

        email = await authenticated_client.post(
            f"{BASE}/deliveries/{notification_id}/confirm", params={"channel": "email"}
        )
        push = await authenticated_client.post(f"{BASE}/deliveries/{notification_id}/confirm")

        assert email.json() == {"confirmed": True}
        assert push.json() == {"confirmed": False}

    @pytest.mark.asyncio
    async def test_unknown_notification(self, authenticated_client: AsyncClient) -> None:
        response = await authenticated_client.post(f"{BASE}/deliveries/{uuid4()}/confirm")

        assert response.status_code == 200
        assert response.json() == {"confirmed": False}
