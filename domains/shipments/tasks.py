# domains/shipments/tasks.py
from __future__ import annotations

import logging
from typing import Optional

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(name="domains.shipments.tasks.notify_shipment", ignore_result=True)
def notify_shipment(
    tracking_number: str, sequence: Optional[int] = None, estimate_changed: bool = False
) -> None:
    """상태 갱신 커밋 후 훅. 알릴지 여부는 디스패처가 결정."""
    # 지연 임포트로 순환참조 회피
    from .notifications import NotificationDispatcher

    NotificationDispatcher().dispatch(tracking_number, sequence, estimate_changed=estimate_changed)


@shared_task(name="domains.shipments.tasks.poll_shipment")
def poll_shipment(tracking_number: str) -> Optional[str]:
    """
    단일 운송장 폴링 → 택배사 조회 → 변경 시 상태 반영
    반환: 현재 상태값 (택배사 장애 시 마지막 저장 상태)
    재시도는 하지 않는다. 다음 주기 스윕이 다시 폴링함.
    """
    from .exceptions import ShipmentNotFound
    from .services import get_tracking_service

    try:
        result = get_tracking_service().track_shipment(tracking_number)
    except ShipmentNotFound:
        logger.warning("poll_shipment: %s no longer exists", tracking_number)
        return None
    return result.current_status


@shared_task(name="domains.shipments.tasks.poll_open_shipments")
def poll_open_shipments() -> int:
    """
    진행중인 외부 택배사 건만 순회 폴링 (429 쿨다운 중인 택배사는 건너뜀)
    """
    from .adapters.ratelimit import limited_providers
    from .models import TERMINAL_STATES, Provider, Shipment

    cooling = limited_providers(p for p in Provider.values if p != Provider.LOCAL)
    if cooling:
        logger.info("poll_open_shipments: skipping rate-limited providers %s", ", ".join(cooling))

    qs = (
        Shipment.objects.filter(auto_update=True)
        .exclude(provider=Provider.LOCAL)
        .exclude(provider__in=cooling)
        .exclude(status__in=TERMINAL_STATES)
        .values_list("tracking_number", flat=True)
    )
    count = 0
    for tracking_number in qs.iterator():
        poll_shipment.delay(tracking_number)
        count += 1
    return count
