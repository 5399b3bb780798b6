"""Lifecycle events handed to the notification collaborator.

Delivery is fire-and-forget: a gateway failure is logged here and never
reaches the caller whose booking operation raised the event.
"""

import enum
import json
import logging
import uuid
from datetime import datetime, timezone

import httpx

from braidbook.core import config
from braidbook.models.booking import Booking

logger = logging.getLogger(__name__)


class LifecycleEvent(str, enum.Enum):
    BOOKING_CREATED = 'BookingCreated'
    BOOKING_CONFIRMED = 'BookingConfirmed'
    BOOKING_CANCELLED = 'BookingCancelled'
    BOOKING_REJECTED = 'BookingRejected'


def build_event(event_type: LifecycleEvent, booking: Booking) -> dict:
    return {
        'event_id': str(uuid.uuid4()),
        'event_type': event_type.value,
        'occurred_at': datetime.now(timezone.utc).isoformat(),
        'data': {
            'booking_id': booking.id,
            'provider_id': booking.provider_id,
            'client_email': booking.client_email,
            'slot_date': booking.booking_date.isoformat(),
            'slot_time': booking.booking_time.strftime('%H:%M'),
        },
    }


def to_json(event: dict) -> str:
    return json.dumps(event, separators=(',', ':'), ensure_ascii=False)


class NotificationGateway:
    def publish(self, event: dict) -> None:
        raise NotImplementedError


class LoggingNotificationGateway(NotificationGateway):
    """Writes events to the log. Used when no webhook is configured."""

    def publish(self, event: dict) -> None:
        logger.info('Lifecycle event %s', to_json(event))


class WebhookNotificationGateway(NotificationGateway):
    """POSTs each event as JSON to the notification service."""

    def __init__(self, url: str, timeout: float = config.NOTIFICATION_TIMEOUT_SECONDS):
        self.url = url
        self.timeout = timeout

    def publish(self, event: dict) -> None:
        response = httpx.post(
            self.url,
            content=to_json(event),
            headers={'Content-Type': 'application/json', 'X-Event-Type': event['event_type']},
            timeout=self.timeout,
        )
        response.raise_for_status()


_default_gateway: NotificationGateway | None = None


def get_notification_gateway() -> NotificationGateway:
    global _default_gateway

    if _default_gateway is None:
        if config.NOTIFICATION_WEBHOOK_URL:
            _default_gateway = WebhookNotificationGateway(config.NOTIFICATION_WEBHOOK_URL)
        else:
            _default_gateway = LoggingNotificationGateway()
    return _default_gateway


def emit(gateway: NotificationGateway | None, event_type: LifecycleEvent, booking: Booking) -> dict:
    gateway = gateway or get_notification_gateway()
    event = build_event(event_type, booking)

    try:
        gateway.publish(event)
    except Exception:
        logger.exception('Failed to deliver %s for booking %s', event_type.value, booking.id)

    return event
