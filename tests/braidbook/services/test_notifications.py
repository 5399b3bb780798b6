import json
from datetime import date, time
from types import SimpleNamespace

import httpx
import pytest

from braidbook.services import notifications
from braidbook.services.notifications import LifecycleEvent


def _booking():
    return SimpleNamespace(
        id=7,
        provider_id=3,
        client_email='joana@example.com',
        booking_date=date(2025, 8, 1),
        booking_time=time(9, 0),
    )


def test_build_event_carries_booking_fields() -> None:
    event = notifications.build_event(LifecycleEvent.BOOKING_CANCELLED, _booking())

    assert event['event_type'] == 'BookingCancelled'
    assert event['event_id']
    assert event['occurred_at']
    assert event['data'] == {
        'booking_id': 7,
        'provider_id': 3,
        'client_email': 'joana@example.com',
        'slot_date': '2025-08-01',
        'slot_time': '09:00',
    }


def test_emit_swallows_and_logs_delivery_failures(caplog: pytest.LogCaptureFixture) -> None:
    class FailingGateway(notifications.NotificationGateway):
        def publish(self, event: dict) -> None:
            raise RuntimeError('smtp refused')

    event = notifications.emit(FailingGateway(), LifecycleEvent.BOOKING_CREATED, _booking())

    assert event['event_type'] == 'BookingCreated'
    assert 'Failed to deliver BookingCreated for booking 7' in caplog.text


def test_logging_gateway_writes_event(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level('INFO', logger='braidbook.services.notifications')

    notifications.emit(notifications.LoggingNotificationGateway(), LifecycleEvent.BOOKING_CONFIRMED, _booking())

    assert '"event_type":"BookingConfirmed"' in caplog.text


def test_webhook_gateway_posts_json(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def fake_post(url, content, headers, timeout):
        captured.update(url=url, body=json.loads(content), headers=headers, timeout=timeout)
        return httpx.Response(202, request=httpx.Request('POST', url))

    monkeypatch.setattr(notifications.httpx, 'post', fake_post)
    gateway = notifications.WebhookNotificationGateway('https://notify.example.com/events', timeout=1.5)

    event = notifications.emit(gateway, LifecycleEvent.BOOKING_REJECTED, _booking())

    assert captured['url'] == 'https://notify.example.com/events'
    assert captured['body'] == event
    assert captured['headers']['X-Event-Type'] == 'BookingRejected'
    assert captured['timeout'] == 1.5


def test_webhook_gateway_error_status_does_not_propagate(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(url, content, headers, timeout):
        return httpx.Response(500, request=httpx.Request('POST', url))

    monkeypatch.setattr(notifications.httpx, 'post', fake_post)
    gateway = notifications.WebhookNotificationGateway('https://notify.example.com/events')

    event = notifications.emit(gateway, LifecycleEvent.BOOKING_CREATED, _booking())

    assert event['data']['booking_id'] == 7


def test_default_gateway_uses_webhook_when_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(notifications, '_default_gateway', None)
    monkeypatch.setattr(notifications.config, 'NOTIFICATION_WEBHOOK_URL', 'https://notify.example.com/events')

    gateway = notifications.get_notification_gateway()

    assert isinstance(gateway, notifications.WebhookNotificationGateway)
    assert gateway.url == 'https://notify.example.com/events'


def test_default_gateway_falls_back_to_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(notifications, '_default_gateway', None)
    monkeypatch.setattr(notifications.config, 'NOTIFICATION_WEBHOOK_URL', '')

    assert isinstance(notifications.get_notification_gateway(), notifications.LoggingNotificationGateway)
