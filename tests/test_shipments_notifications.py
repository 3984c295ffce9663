"""
domains/shipments/notifications.py 테스트
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

from django.utils import timezone

import pytest
import requests

from domains.shipments.models import ShipmentStatus
from domains.shipments.notifications import (
    ESTIMATE_UPDATED_DESCRIPTION,
    EmailChannel,
    NotificationDispatcher,
    UserContactDirectory,
    WebhookChannel,
    default_channel,
)
from domains.shipments.repository import ShipmentStore
from tests.factories import create_shipment


def _advance(shipment, status=ShipmentStatus.IN_TRANSIT, location="Chicago"):
    """새 이력 1건을 붙이고 그 sequence 를 돌려준다."""
    ShipmentStore().update(
        shipment.tracking_number,
        {"status": status},
        {"status": status, "location": location, "description": f"Now {status}"},
    )
    return shipment.history.order_by("-sequence").first().sequence


@pytest.mark.django_db
class TestUserContactDirectory:
    def test_known_user(self, buyer):
        assert UserContactDirectory().contact_for(str(buyer.pk)) == "buyer@example.com"

    def test_unknown_or_malformed_ids(self, db):
        directory = UserContactDirectory()
        assert directory.contact_for("999999") is None
        assert directory.contact_for("not-a-number") is None

    def test_user_without_email(self, user_factory):
        u = user_factory()
        u.email = ""
        u.save(update_fields=["email"])
        assert UserContactDirectory().contact_for(str(u.pk)) is None


@pytest.mark.django_db
class TestDispatcher:
    def test_sends_email_for_new_entry(self, buyer, mailoutbox):
        shipment = create_shipment(buyer=buyer.pk)
        seq = _advance(shipment)

        notification = NotificationDispatcher(channel=EmailChannel()).dispatch(shipment.tracking_number, seq)

        assert notification is not None
        assert notification.as_payload()["status"] == "In Transit"
        assert notification.recipient_contact == "buyer@example.com"
        assert len(mailoutbox) == 1
        mail = mailoutbox[0]
        assert mail.to == ["buyer@example.com"]
        assert shipment.tracking_number in mail.subject
        assert "Chicago" in mail.body

    def test_duplicate_hook_sends_once(self, buyer):
        shipment = create_shipment(buyer=buyer.pk)
        seq = _advance(shipment)
        channel = MagicMock()
        dispatcher = NotificationDispatcher(channel=channel)

        dispatcher.dispatch(shipment.tracking_number, seq)
        second = dispatcher.dispatch(shipment.tracking_number, seq)

        assert second is None
        channel.send.assert_called_once()

    def test_no_sequence_is_noop(self, buyer):
        shipment = create_shipment(buyer=buyer.pk)
        channel = MagicMock()
        assert NotificationDispatcher(channel=channel).dispatch(shipment.tracking_number, None) is None
        channel.send.assert_not_called()

    def test_missing_shipment_is_noop(self, db):
        channel = MagicMock()
        assert NotificationDispatcher(channel=channel).dispatch("NOPE", 2) is None
        channel.send.assert_not_called()

    def test_missing_buyer_contact_is_noop(self, db):
        shipment = create_shipment(buyer="ghost")
        seq = _advance(shipment)
        channel = MagicMock()

        assert NotificationDispatcher(channel=channel).dispatch(shipment.tracking_number, seq) is None
        channel.send.assert_not_called()

    def test_channel_failure_is_logged_not_raised(self, buyer, caplog):
        shipment = create_shipment(buyer=buyer.pk)
        seq = _advance(shipment)
        channel = MagicMock()
        channel.send.side_effect = RuntimeError("smtp down")

        assert NotificationDispatcher(channel=channel).dispatch(shipment.tracking_number, seq) is None
        assert "smtp down" in caplog.text

    def test_estimate_only_change_uses_latest_entry(self, buyer):
        shipment = create_shipment(buyer=buyer.pk)
        _advance(shipment, location="Busan hub")
        channel = MagicMock()

        notification = NotificationDispatcher(channel=channel).dispatch(
            shipment.tracking_number, None, estimate_changed=True
        )

        assert notification.description == ESTIMATE_UPDATED_DESCRIPTION == "Estimated delivery updated"
        assert notification.status == "In Transit"
        assert notification.location == "Busan hub"
        assert notification.estimated_delivery is not None
        channel.send.assert_called_once_with(notification)

    def test_estimate_only_change_does_not_claim_sequence(self, buyer):
        shipment = create_shipment(buyer=buyer.pk)
        channel = MagicMock()
        dispatcher = NotificationDispatcher(channel=channel)

        dispatcher.dispatch(shipment.tracking_number, None, estimate_changed=True)
        dispatcher.dispatch(shipment.tracking_number, None, estimate_changed=True)

        shipment.refresh_from_db()
        assert channel.send.call_count == 2
        assert shipment.notified_sequence == 0


class TestChannels:
    def test_default_channel_is_email(self, settings):
        settings.SHIPMENTS_NOTIFY_WEBHOOK = None
        assert isinstance(default_channel(), EmailChannel)

    def test_default_channel_is_webhook_when_configured(self, settings):
        settings.SHIPMENTS_NOTIFY_WEBHOOK = "https://hooks.test/tracking"
        channel = default_channel()
        assert isinstance(channel, WebhookChannel)
        assert channel.url == "https://hooks.test/tracking"

    def test_webhook_channel_posts_payload(self):
        notification = MagicMock()
        notification.as_payload.return_value = {"tracking_number": "TN1"}
        with patch("domains.shipments.notifications.requests.post") as post:
            WebhookChannel("https://hooks.test/tracking").send(notification)
        args, kwargs = post.call_args
        assert args[0] == "https://hooks.test/tracking"
        assert kwargs["json"] == {"type": "tracking_update", "notification": {"tracking_number": "TN1"}}
        assert kwargs["timeout"] == 5

    def test_webhook_channel_raises_on_http_error(self):
        res = MagicMock()
        res.raise_for_status.side_effect = requests.HTTPError("500")
        with patch("domains.shipments.notifications.requests.post", return_value=res):
            with pytest.raises(requests.HTTPError):
                WebhookChannel("https://hooks.test/tracking").send(MagicMock())


@pytest.mark.django_db
class TestEndToEnd:
    def test_status_update_notifies_buyer_after_commit(
        self, service, order_data, buyer, mailoutbox, django_capture_on_commit_callbacks
    ):
        tn = service.create_shipment(order_data()).tracking_number

        with django_capture_on_commit_callbacks(execute=True):
            service.update_shipment_status(tn, {"status": "PICKED_UP", "location": "Seoul hub"})

        assert len(mailoutbox) == 1
        assert "Picked Up" in mailoutbox[0].subject

    def test_same_status_update_sends_nothing(self, service, order_data, mailoutbox, django_capture_on_commit_callbacks):
        tn = service.create_shipment(order_data()).tracking_number

        with django_capture_on_commit_callbacks(execute=True):
            service.update_shipment_status(tn, {"status": "Order Created"})

        assert mailoutbox == []

    def test_estimate_only_update_notifies_buyer(
        self, service, order_data, buyer, mailoutbox, django_capture_on_commit_callbacks
    ):
        tn = service.create_shipment(order_data()).tracking_number
        new_eta = (timezone.now() + timedelta(days=12)).isoformat()

        with django_capture_on_commit_callbacks(execute=True):
            service.update_shipment_status(tn, {"estimated_delivery": new_eta})

        assert len(mailoutbox) == 1
        assert "Estimated delivery updated" in mailoutbox[0].body
        assert "Order Created" in mailoutbox[0].subject

    def test_unchanged_estimate_sends_nothing(
        self, service, order_data, mailoutbox, django_capture_on_commit_callbacks
    ):
        created = service.create_shipment(order_data())

        with django_capture_on_commit_callbacks(execute=True):
            service.update_shipment_status(
                created.tracking_number, {"estimated_delivery": created.estimated_delivery.isoformat()}
            )

        assert mailoutbox == []
