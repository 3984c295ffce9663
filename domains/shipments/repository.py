"""Shipment Store: 운송장 번호로 Shipment 집합체(본문 + 이력)를 읽고 쓴다.

쓰기는 모두 ``transaction.atomic()`` 안에서 이루어지고, 상태 변경과 이력 추가는
같은 트랜잭션에 묶인다. 같은 운송장에 대한 동시 갱신은 ``select_for_update()``
행 잠금으로 직렬화된다 (다른 운송장끼리는 서로 막지 않음).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from django.db import IntegrityError, transaction
from django.db.models import Count, Max
from django.utils import timezone

from .exceptions import DuplicateTrackingNumber, ShipmentNotFound
from .models import Shipment, ShipmentEvent

logger = logging.getLogger(__name__)

ROLE_SELLER = "seller"
ROLE_BUYER = "buyer"


class ShipmentStore:
    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    def insert(self, shipment: Shipment, first_event: Dict[str, Any]) -> Shipment:
        """본문과 첫 이력을 한 번에 저장. 운송장 번호가 이미 있으면 DuplicateTrackingNumber."""
        try:
            with transaction.atomic():
                if Shipment.objects.filter(tracking_number=shipment.tracking_number).exists():
                    raise DuplicateTrackingNumber(shipment.tracking_number)
                shipment.save(force_insert=True)
                self._append(shipment, first_event, sequence=1)
        except IntegrityError as e:
            # 동시 생성으로 exists() 검사를 통과한 경우 unique 제약이 막아준다
            raise DuplicateTrackingNumber(shipment.tracking_number) from e
        return shipment

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def find(self, tracking_number: str) -> Shipment:
        shipment = Shipment.objects.filter(tracking_number=tracking_number).first()
        if shipment is None:
            raise ShipmentNotFound(tracking_number)
        return shipment

    def find_for_update(self, tracking_number: str) -> Shipment:
        """행 잠금 조회. 반드시 transaction.atomic() 안에서 호출."""
        shipment = (
            Shipment.objects.select_for_update()
            .filter(tracking_number=tracking_number)
            .first()
        )
        if shipment is None:
            raise ShipmentNotFound(tracking_number)
        return shipment

    def history(self, shipment: Shipment) -> List[ShipmentEvent]:
        return list(shipment.history.order_by("sequence"))

    def latest_event(self, shipment: Shipment) -> Optional[ShipmentEvent]:
        return shipment.history.order_by("-sequence").first()

    def list_by_party(self, party_id: str, role: str = ROLE_BUYER):
        qs = Shipment.objects.all()
        if role == ROLE_SELLER:
            qs = qs.filter(seller=str(party_id))
        else:
            qs = qs.filter(buyer=str(party_id))
        return qs.order_by("-created_at")

    def paginate(self, qs, page: int, size: int) -> Tuple[int, List[Shipment]]:
        """page 는 1부터. (전체 건수, 해당 페이지 행)"""
        total = qs.count()
        start = (page - 1) * size
        return total, list(qs[start : start + size])

    def status_counts(self) -> Dict[str, int]:
        rows = Shipment.objects.values("status").annotate(count=Count("id")).order_by()
        return {row["status"]: row["count"] for row in rows}

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------
    def update(
        self,
        tracking_number: str,
        patch: Dict[str, Any],
        history_entry: Optional[Dict[str, Any]] = None,
    ) -> Shipment:
        """
        patch 적용 + (있다면) 이력 추가를 하나의 트랜잭션으로.
        호출부가 이미 잠금 트랜잭션 안에 있으면 savepoint 로 중첩된다.
        """
        with transaction.atomic():
            shipment = self.find_for_update(tracking_number)
            for name, value in patch.items():
                setattr(shipment, name, value)
            shipment.save(update_fields=[*patch.keys(), "updated_at"])
            if history_entry is not None:
                self._append(shipment, history_entry)
        return shipment

    def mark_synced(self, tracking_number: str) -> None:
        Shipment.objects.filter(tracking_number=tracking_number).update(
            last_synced_at=timezone.now()
        )

    def claim_notification(self, shipment: Shipment, sequence: int) -> bool:
        """
        sequence 까지 알림을 보냈다고 조건부로 기록. 이미 더 큰 값이 기록돼 있으면 False.
        같은 이력 건에 대한 알림이 두 번 나가지 않게 한다.
        """
        claimed = Shipment.objects.filter(
            pk=shipment.pk, notified_sequence__lt=sequence
        ).update(notified_sequence=sequence)
        return bool(claimed)

    # ------------------------------------------------------------------
    # internal
    # ------------------------------------------------------------------
    def _append(
        self, shipment: Shipment, entry: Dict[str, Any], sequence: Optional[int] = None
    ) -> ShipmentEvent:
        if sequence is None:
            current = shipment.history.aggregate(m=Max("sequence"))["m"] or 0
            sequence = current + 1
        event = ShipmentEvent(
            shipment=shipment,
            sequence=sequence,
            status=entry["status"],
            timestamp=entry.get("timestamp") or timezone.now(),
            location=entry.get("location", ""),
            description=entry.get("description", ""),
            provider_code=entry.get("provider_code", ""),
            unmapped=bool(entry.get("unmapped", False)),
            source=entry.get("source", "internal"),
        )
        event.save(force_insert=True)
        logger.debug(
            "history appended %s #%s %s", shipment.tracking_number, sequence, event.status
        )
        return event
