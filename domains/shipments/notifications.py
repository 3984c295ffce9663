# domains/shipments/notifications.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.mail import send_mail

from .exceptions import NotificationFailure
from .models import Shipment
from .repository import ShipmentStore

logger = logging.getLogger(__name__)

ESTIMATE_UPDATED_DESCRIPTION = "Estimated delivery updated"


@dataclass
class TrackingNotification:
    recipient_contact: str
    tracking_number: str
    status: str
    location: str
    description: str
    estimated_delivery: Optional[str]

    def as_payload(self) -> Dict[str, Any]:
        return asdict(self)


class UserContactDirectory:
    """구매자 id → 이메일. 사용자/이메일이 없거나 id 형식이 맞지 않으면 None."""

    def contact_for(self, party_id: str) -> Optional[str]:
        User = get_user_model()
        try:
            email = (
                User.objects.filter(pk=party_id).values_list("email", flat=True).first()
            )
        except (ValueError, TypeError, ValidationError):
            return None
        return email or None


class EmailChannel:
    def send(self, notification: TrackingNotification) -> None:
        lines = [
            f"Tracking number: {notification.tracking_number}",
            f"Status: {notification.status}",
            f"Location: {notification.location}",
            notification.description,
        ]
        if notification.estimated_delivery:
            lines.append(f"Estimated delivery: {notification.estimated_delivery}")
        send_mail(
            subject=f"[{notification.tracking_number}] {notification.status}",
            message="\n".join(lines),
            from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
            recipient_list=[notification.recipient_contact],
            fail_silently=False,
        )


class WebhookChannel:
    def __init__(self, url: str, timeout: float = 5):
        self.url = url
        self.timeout = timeout

    def send(self, notification: TrackingNotification) -> None:
        payload = {"type": "tracking_update", "notification": notification.as_payload()}
        res = requests.post(self.url, json=payload, timeout=self.timeout)
        res.raise_for_status()


def default_channel():
    url = getattr(settings, "SHIPMENTS_NOTIFY_WEBHOOK", None)
    return WebhookChannel(url) if url else EmailChannel()


class NotificationDispatcher:
    """
    상태 변경 후 구매자에게 알릴지 결정하고 채널로 넘긴다.
    - 새 이력(sequence)도 예상 도착 변경도 없으면 알릴 것이 없음
    - 배송/구매자/연락처가 없으면 no-op (실패 아님)
    - 같은 이력 건은 한 번만 (notified_sequence 선점)
    - 예상 도착만 바뀐 경우는 최신 이력 기준으로 보내며 중복 제거는 하지 않음
    - 채널 오류는 로그만 남기고 삼킨다
    """

    def __init__(self, store=None, directory=None, channel=None):
        self.store = store or ShipmentStore()
        self.directory = directory or UserContactDirectory()
        self.channel = channel or default_channel()

    def dispatch(
        self, tracking_number: str, sequence: Optional[int], estimate_changed: bool = False
    ) -> Optional[TrackingNotification]:
        if not sequence and not estimate_changed:
            return None

        shipment = Shipment.objects.filter(tracking_number=tracking_number).first()
        if shipment is None:
            return None
        if sequence:
            event = shipment.history.filter(sequence=sequence).first()
        else:
            event = self.store.latest_event(shipment)
        if event is None:
            return None

        contact = self.directory.contact_for(shipment.buyer)
        if not contact:
            logger.debug("No contact for buyer %s of %s; skipping", shipment.buyer, tracking_number)
            return None

        if sequence and not self.store.claim_notification(shipment, sequence):
            logger.info("Notification for %s #%s already sent", tracking_number, sequence)
            return None

        notification = TrackingNotification(
            recipient_contact=contact,
            tracking_number=tracking_number,
            status=event.status,
            location=event.location,
            description=event.description if sequence else ESTIMATE_UPDATED_DESCRIPTION,
            estimated_delivery=(
                shipment.estimated_delivery.isoformat() if shipment.estimated_delivery else None
            ),
        )
        try:
            self.channel.send(notification)
        except Exception as e:
            failure = NotificationFailure(f"Notification for {tracking_number} #{sequence} failed: {e}")
            logger.warning("%s", failure, exc_info=True)
            return None

        logger.info("Buyer notified for %s #%s (%s)", tracking_number, sequence, event.status)
        return notification
