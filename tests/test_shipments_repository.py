"""
domains/shipments/repository.py (ShipmentStore) 및 모델 가드 테스트
"""

from datetime import timedelta
from unittest.mock import patch

from django.utils import timezone

import pytest

from domains.shipments.exceptions import (
    DuplicateTrackingNumber,
    ImmutableFieldError,
    ShipmentNotFound,
)
from domains.shipments.models import Provider, Shipment, ShipmentEvent, ShipmentStatus
from domains.shipments.repository import ShipmentStore
from tests.factories import create_shipment


def _first_event():
    return {
        "status": ShipmentStatus.CREATED,
        "timestamp": timezone.now(),
        "location": "Seoul",
        "description": "Shipment created and ready for pickup",
        "source": "system",
    }


@pytest.mark.django_db
class TestInsert:
    def test_insert_saves_shipment_with_first_event(self):
        store = ShipmentStore()
        shipment = Shipment(tracking_number="BLOCINS1", seller="s", buyer="b")

        store.insert(shipment, _first_event())

        saved = store.find("BLOCINS1")
        history = store.history(saved)
        assert len(history) == 1
        assert history[0].sequence == 1
        assert history[0].status == ShipmentStatus.CREATED

    def test_duplicate_tracking_number_is_rejected(self):
        store = ShipmentStore()
        store.insert(Shipment(tracking_number="BLOCDUP", seller="s", buyer="b"), _first_event())

        with pytest.raises(DuplicateTrackingNumber):
            store.insert(Shipment(tracking_number="BLOCDUP", seller="x", buyer="y"), _first_event())

        assert Shipment.objects.filter(tracking_number="BLOCDUP").count() == 1
        assert ShipmentEvent.objects.filter(shipment__tracking_number="BLOCDUP").count() == 1

    def test_failed_history_write_rolls_back_shipment(self):
        store = ShipmentStore()
        with patch.object(ShipmentStore, "_append", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                store.insert(Shipment(tracking_number="BLOCROLL", seller="s", buyer="b"), _first_event())
        assert not Shipment.objects.filter(tracking_number="BLOCROLL").exists()


@pytest.mark.django_db
class TestReadAndUpdate:
    def test_find_missing_raises(self):
        with pytest.raises(ShipmentNotFound):
            ShipmentStore().find("NOPE")

    def test_update_applies_patch_and_appends_next_sequence(self):
        store = ShipmentStore()
        shipment = create_shipment(tracking_number="BLOCUPD")

        store.update(
            "BLOCUPD",
            {"status": ShipmentStatus.IN_TRANSIT},
            {"status": ShipmentStatus.IN_TRANSIT, "location": "Daejeon", "description": "moving"},
        )

        shipment.refresh_from_db()
        assert shipment.status == ShipmentStatus.IN_TRANSIT
        latest = store.latest_event(shipment)
        assert latest.sequence == 2
        assert latest.location == "Daejeon"

    def test_update_without_entry_leaves_history_alone(self):
        store = ShipmentStore()
        shipment = create_shipment(tracking_number="BLOCETA")
        new_eta = timezone.now() + timedelta(days=9)

        store.update("BLOCETA", {"estimated_delivery": new_eta})

        shipment.refresh_from_db()
        assert shipment.estimated_delivery == new_eta
        assert shipment.history.count() == 1

    def test_failed_append_rolls_back_status(self):
        store = ShipmentStore()
        create_shipment(tracking_number="BLOCATOM")

        with patch.object(ShipmentStore, "_append", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                store.update(
                    "BLOCATOM",
                    {"status": ShipmentStatus.PROCESSING},
                    {"status": ShipmentStatus.PROCESSING},
                )

        assert store.find("BLOCATOM").status == ShipmentStatus.CREATED

    def test_mark_synced(self):
        store = ShipmentStore()
        create_shipment(tracking_number="BLOCSYNC")
        store.mark_synced("BLOCSYNC")
        assert store.find("BLOCSYNC").last_synced_at is not None


@pytest.mark.django_db
class TestListByParty:
    def test_buyer_and_seller_views_newest_first(self):
        store = ShipmentStore()
        older = create_shipment(buyer="u1", seller="u9")
        newer = create_shipment(buyer="u1", seller="u8")
        Shipment.objects.filter(pk=older.pk).update(created_at=timezone.now() - timedelta(days=1))
        create_shipment(buyer="u2", seller="u1")

        as_buyer = list(store.list_by_party("u1", "buyer"))
        as_seller = list(store.list_by_party("u1", "seller"))

        assert [s.pk for s in as_buyer] == [newer.pk, older.pk]
        assert len(as_seller) == 1
        assert as_seller[0].buyer == "u2"

    def test_unknown_role_falls_back_to_buyer(self):
        store = ShipmentStore()
        create_shipment(buyer="u3")
        assert len(list(store.list_by_party("u3", "courier"))) == 1

    def test_paginate_counts_and_slices(self):
        store = ShipmentStore()
        for _ in range(5):
            create_shipment(buyer="u4")

        total, rows = store.paginate(store.list_by_party("u4"), page=3, size=2)

        assert total == 5
        assert len(rows) == 1

    def test_page_past_the_end_is_empty(self):
        store = ShipmentStore()
        create_shipment(buyer="u5")
        assert store.paginate(store.list_by_party("u5"), page=4, size=10) == (1, [])

    def test_status_counts(self):
        create_shipment()
        create_shipment(status=ShipmentStatus.IN_TRANSIT)
        create_shipment(status=ShipmentStatus.IN_TRANSIT)

        assert ShipmentStore().status_counts() == {
            ShipmentStatus.CREATED: 1,
            ShipmentStatus.IN_TRANSIT: 2,
        }


@pytest.mark.django_db
class TestImmutability:
    def test_tracking_number_cannot_change(self):
        shipment = create_shipment(tracking_number="BLOCIMM1")
        shipment = Shipment.objects.get(pk=shipment.pk)
        shipment.tracking_number = "OTHER"
        with pytest.raises(ImmutableFieldError):
            shipment.save()

    def test_provider_cannot_change(self):
        shipment = Shipment.objects.get(pk=create_shipment().pk)
        shipment.provider = Provider.DHL
        with pytest.raises(ImmutableFieldError):
            shipment.save()

    def test_events_are_append_only(self):
        event = create_shipment().history.get()
        event.description = "rewritten"
        with pytest.raises(ImmutableFieldError):
            event.save()


@pytest.mark.django_db
class TestClaimNotification:
    def test_claim_once_per_sequence(self):
        store = ShipmentStore()
        shipment = create_shipment()

        assert store.claim_notification(shipment, 2) is True
        assert store.claim_notification(shipment, 2) is False
        assert store.claim_notification(shipment, 1) is False
        assert store.claim_notification(shipment, 3) is True

        shipment.refresh_from_db()
        assert shipment.notified_sequence == 3
