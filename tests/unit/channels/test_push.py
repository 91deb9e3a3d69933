"""Unit tests for the push channel (Web Push and Expo)."""

import asyncio
import json
import time
from types import SimpleNamespace

import httpx
import pytest
from pywebpush import WebPushException

from core.config import settings
from domain.entities.notification import (
    ChannelErrorKind,
    DevicePlatform,
    NotificationPriority,
    NotificationType,
    WebPushSubscription,
)
from domain.services.notification_catalog import build_payload
from infrastructure.channels import push as push_module
from infrastructure.channels.push import PushSender, expo_message, web_push_message


@pytest.fixture
def vapid(monkeypatch):
    monkeypatch.setattr(settings, "vapid_public_key", "BPublicKey")
    monkeypatch.setattr(settings, "vapid_private_key", "private-key")


@pytest.fixture
def payload():
    return build_payload(
        NotificationType.BOOKING_CONFIRMED,
        {"booking_id": "bk_9", "chef_name": "Chef Marie", "event_date": "May 1, 2026", "event_time": "6 PM"},
    )


P256DH = "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM"
AUTH = "tBHItJI5svbpez7KI4CCXg"


def _subscription(n: int | str) -> WebPushSubscription:
    return WebPushSubscription(endpoint=f"https://push.example/{n}", p256dh=P256DH, auth=AUTH)


def _expo_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestMessages:
    def test_web_push_message_carries_routing_data(self, payload):
        message = web_push_message(payload)

        assert message["tag"] == "booking-bk_9"
        assert message["data"]["notificationId"] == str(payload.id)
        assert message["data"]["url"] == payload.url
        assert message["requireInteraction"] is False
        assert message["actions"] == [{"action": "view", "title": "View Details"}]

    def test_urgent_notifications_require_interaction(self):
        urgent = build_payload(NotificationType.PAYMENT_FAILED, {"booking_id": "bk_1"})

        assert urgent.priority == NotificationPriority.URGENT
        assert web_push_message(urgent)["requireInteraction"] is True
        assert expo_message("ExponentPushToken[x]", urgent)["priority"] == "high"


class TestWebPush:
    @pytest.mark.asyncio
    async def test_sends_to_every_subscription(self, vapid, monkeypatch, device_registry, user_id, payload):
        calls = []
        monkeypatch.setattr(push_module, "webpush", lambda **kwargs: calls.append(kwargs))
        await device_registry.subscribe_web(user_id, _subscription(1))
        await device_registry.subscribe_web(user_id, _subscription(2))
        sender = PushSender(device_registry)

        devices = await device_registry.list_for_user(user_id)
        result = await sender.send(devices, payload)

        assert result.ok
        assert len(calls) == 2
        assert calls[0]["vapid_claims"] == {"sub": settings.vapid_subject}
        assert json.loads(calls[0]["data"])["title"] == "Booking Confirmed!"

    @pytest.mark.asyncio
    async def test_gone_subscription_is_removed(self, vapid, monkeypatch, device_registry, user_id, payload):
        gone_endpoint = _subscription(1).endpoint

        def fake_webpush(subscription_info, **kwargs):
            if subscription_info["endpoint"] == gone_endpoint:
                raise WebPushException("Push failed", response=SimpleNamespace(status_code=410))

        monkeypatch.setattr(push_module, "webpush", fake_webpush)
        await device_registry.subscribe_web(user_id, _subscription(1))
        await device_registry.subscribe_web(user_id, _subscription(2))

        result = await PushSender(device_registry).send(
            await device_registry.list_for_user(user_id), payload
        )

        assert result.ok
        remaining = await device_registry.list_for_user(user_id)
        assert [d.endpoint for d in remaining] == [_subscription(2).endpoint]

    @pytest.mark.asyncio
    async def test_all_gone_is_permanent(self, vapid, monkeypatch, device_registry, user_id, payload):
        def fake_webpush(**kwargs):
            raise WebPushException("Push failed", response=SimpleNamespace(status_code=404))

        monkeypatch.setattr(push_module, "webpush", fake_webpush)
        await device_registry.subscribe_web(user_id, _subscription(1))

        result = await PushSender(device_registry).send(
            await device_registry.list_for_user(user_id), payload
        )

        assert not result.ok
        assert result.error_kind == ChannelErrorKind.PERMANENT
        assert await device_registry.list_for_user(user_id) == []

    @pytest.mark.asyncio
    async def test_server_errors_are_transient(self, vapid, monkeypatch, device_registry, user_id, payload):
        def fake_webpush(**kwargs):
            raise WebPushException("Push failed", response=SimpleNamespace(status_code=503))

        monkeypatch.setattr(push_module, "webpush", fake_webpush)
        await device_registry.subscribe_web(user_id, _subscription(1))

        result = await PushSender(device_registry).send(
            await device_registry.list_for_user(user_id), payload
        )

        assert result.error_kind == ChannelErrorKind.TRANSIENT
        assert len(await device_registry.list_for_user(user_id)) == 1

    @pytest.mark.asyncio
    async def test_unusable_keys_are_permanent_and_removed(
        self, vapid, monkeypatch, device_registry, user_id, payload
    ):
        def fake_webpush(**kwargs):
            raise WebPushException("Invalid p256dh key specified")

        monkeypatch.setattr(push_module, "webpush", fake_webpush)
        await device_registry.subscribe_web(user_id, _subscription(1))

        result = await PushSender(device_registry).send(
            await device_registry.list_for_user(user_id), payload
        )

        assert result.error_kind == ChannelErrorKind.PERMANENT
        assert not result.error_kind.is_retryable
        assert result.device_results[0].gone is True
        assert await device_registry.list_for_user(user_id) == []


class TestDeviceTimeouts:
    @pytest.mark.asyncio
    async def test_hung_device_does_not_block_gone_cleanup(
        self, vapid, monkeypatch, device_registry, user_id, payload
    ):
        def fake_webpush(subscription_info, **kwargs):
            if subscription_info["endpoint"].endswith("/dead"):
                raise WebPushException("Push failed", response=SimpleNamespace(status_code=410))
            time.sleep(1.0)

        monkeypatch.setattr(push_module, "webpush", fake_webpush)
        await device_registry.subscribe_web(user_id, _subscription("dead"))
        await device_registry.subscribe_web(user_id, _subscription("slow"))
        sender = PushSender(device_registry, timeout_seconds=0.5)

        # Same bound the dispatcher puts around the whole channel.
        result = await asyncio.wait_for(
            sender.send(await device_registry.list_for_user(user_id), payload),
            timeout=sender.timeout_seconds,
        )

        assert not result.ok
        assert result.error_kind == ChannelErrorKind.TIMEOUT
        kinds = {r.device_id: r.error_kind for r in result.device_results}
        assert sorted(kinds.values()) == sorted([ChannelErrorKind.PERMANENT, ChannelErrorKind.TIMEOUT])
        remaining = await device_registry.list_for_user(user_id)
        assert [d.endpoint for d in remaining] == [_subscription("slow").endpoint]

    @pytest.mark.asyncio
    async def test_delivered_devices_count_when_a_sibling_hangs(
        self, vapid, monkeypatch, device_registry, user_id, payload
    ):
        def fake_webpush(subscription_info, **kwargs):
            if subscription_info["endpoint"].endswith("/slow"):
                time.sleep(1.0)

        monkeypatch.setattr(push_module, "webpush", fake_webpush)
        await device_registry.subscribe_web(user_id, _subscription("fast"))
        await device_registry.subscribe_web(user_id, _subscription("slow"))
        sender = PushSender(device_registry, timeout_seconds=0.5)

        result = await asyncio.wait_for(
            sender.send(await device_registry.list_for_user(user_id), payload),
            timeout=sender.timeout_seconds,
        )

        assert result.ok
        assert sorted(r.ok for r in result.device_results) == [False, True]

    def test_device_timeout_is_shorter_than_channel_timeout(self, device_registry):
        sender = PushSender(device_registry, timeout_seconds=10.0)

        assert sender.device_timeout_seconds < sender.timeout_seconds


class TestWebPushConfiguration:
    @pytest.mark.asyncio
    async def test_missing_vapid_keys(self, monkeypatch, device_registry, user_id, payload):
        monkeypatch.setattr(settings, "vapid_private_key", "")
        await device_registry.subscribe_web(user_id, _subscription(1))

        result = await PushSender(device_registry).send(
            await device_registry.list_for_user(user_id), payload
        )

        assert result.error_kind == ChannelErrorKind.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_no_devices_means_no_destination(self, device_registry, recipient):
        assert await PushSender(device_registry).resolve_destination(recipient) is None


class TestExpo:
    @pytest.mark.asyncio
    async def test_batches_tokens_and_removes_unregistered(self, device_registry, user_id, payload):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            messages = json.loads(request.content)
            requests.append(messages)
            tickets = [
                {"status": "error", "message": "not registered", "details": {"error": "DeviceNotRegistered"}}
                if m["to"] == "ExponentPushToken[dead]"
                else {"status": "ok", "id": "ticket"}
                for m in messages
            ]
            return httpx.Response(200, json={"data": tickets})

        await device_registry.register(user_id, DevicePlatform.IOS, "iphone", token="ExponentPushToken[live]")
        await device_registry.register(user_id, DevicePlatform.ANDROID, "pixel", token="ExponentPushToken[dead]")

        async with _expo_client(handler) as client:
            result = await PushSender(device_registry, http_client=client).send(
                await device_registry.list_for_user(user_id), payload
            )

        assert result.ok
        assert len(requests) == 1
        assert {m["to"] for m in requests[0]} == {"ExponentPushToken[live]", "ExponentPushToken[dead]"}
        assert [d.device_id for d in await device_registry.list_for_user(user_id)] == ["iphone"]

    @pytest.mark.asyncio
    async def test_http_failure_is_transient(self, device_registry, user_id, payload):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        await device_registry.register(user_id, DevicePlatform.IOS, "iphone", token="ExponentPushToken[a]")

        async with _expo_client(handler) as client:
            result = await PushSender(device_registry, http_client=client).send(
                await device_registry.list_for_user(user_id), payload
            )

        assert result.error_kind == ChannelErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_missing_tickets_are_transient(self, device_registry, user_id, payload):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": []})

        await device_registry.register(user_id, DevicePlatform.IOS, "iphone", token="ExponentPushToken[a]")

        async with _expo_client(handler) as client:
            result = await PushSender(device_registry, http_client=client).send(
                await device_registry.list_for_user(user_id), payload
            )

        assert result.error_kind == ChannelErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self, device_registry, user_id, payload):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"errors": [{"message": "bad request"}]})

        await device_registry.register(user_id, DevicePlatform.IOS, "iphone", token="ExponentPushToken[a]")

        async with _expo_client(handler) as client:
            result = await PushSender(device_registry, http_client=client).send(
                await device_registry.list_for_user(user_id), payload
            )

        assert result.error_kind == ChannelErrorKind.PERMANENT
