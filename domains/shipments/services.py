# domains/shipments/services.py
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.db import DatabaseError, transaction
from django.utils import timezone

from .adapters import AdapterResult, CarrierAdapter, get_adapter, resolve_code
from .adapters.base import parse_datetime_safe
from .config import ProviderConfig, TrackingConfig
from .exceptions import (
    DuplicateTrackingNumber,
    InvalidStatusTransition,
    ProviderNotConfigured,
    ShipmentError,
    ShipmentNotFound,
    UnsupportedProvider,
)
from .models import (
    DELIVERY_DAYS,
    EventSource,
    Provider,
    ServiceLevel,
    Shipment,
    ShipmentEvent,
    ShipmentStatus,
    can_transition,
    coerce_status,
)
from .proof import DeliveryProofResult, get_delivery_proof, merge_delivery_proof
from .repository import ROLE_BUYER, ShipmentStore

logger = logging.getLogger(__name__)

CREATED_DESCRIPTION = "Shipment created and ready for pickup"
DEFAULT_ORIGIN_LOCATION = "Origin"
DEFAULT_UPDATE_LOCATION = "Unknown"
BULK_TRACK_LIMIT = 50

AdapterFactory = Callable[[str, Optional[ProviderConfig]], CarrierAdapter]


# ──────────────────────────────────────────────────────────────────────────────
# 결과 타입
# ──────────────────────────────────────────────────────────────────────────────
@dataclass
class ShipmentCreated:
    tracking_number: str
    shipment: Shipment
    estimated_delivery: datetime


@dataclass
class TrackingResult:
    tracking_number: str
    current_status: str
    estimated_delivery: Optional[datetime]
    history: List[ShipmentEvent]
    details: Dict[str, Any] = field(default_factory=dict)
    # 택배사 조회 실패로 마지막 저장 상태를 돌려준 경우 True
    stale: bool = False


@dataclass
class ShipmentSummary:
    tracking_number: str
    order_id: str
    status: str
    estimated_delivery: Optional[datetime]
    provider: str
    created: datetime


@dataclass
class ShipmentPage:
    total: int
    page: int
    size: int
    results: List[ShipmentSummary]


@dataclass
class BulkTrackItem:
    tracking_number: str
    success: bool
    data: Optional[TrackingResult] = None
    error: Optional[str] = None


@dataclass
class TrackingStats:
    total: int
    by_status: Dict[str, int]
    generated_at: datetime


class TrackingService:
    """
    배송 추적 오케스트레이터.
    - 생성: 운송장 발급 + 첫 이력 + (외부 택배사면) 택배사 등록 시도
    - 조회: 자동 갱신 대상이면 택배사 폴링 → 정규화 → 상태 반영
    - 갱신: 상태가 바뀐 경우에만 이력 추가, 커밋 후 알림 훅
    """

    def __init__(
        self,
        config: Optional[TrackingConfig] = None,
        store: Optional[ShipmentStore] = None,
        adapter_factory: Optional[AdapterFactory] = None,
    ):
        self.config = config if config is not None else TrackingConfig.from_settings()
        self.store = store or ShipmentStore()
        self._adapter_factory = adapter_factory or get_adapter

    # === 운송장 번호 / 예상 도착 ==============================================
    def generate_tracking_number(self, prefix: Optional[str] = None) -> str:
        """PREFIX + epoch ms 끝 8자리 + 랜덤 8 hex (대문자)."""
        prefix = prefix or self.config.tracking_prefix
        millis = str(int(time.time() * 1000))
        return f"{prefix}{millis[-8:]}{secrets.token_hex(4).upper()}"

    @staticmethod
    def calculate_estimated_delivery(service: Optional[str] = None, now: Optional[datetime] = None) -> datetime:
        days = DELIVERY_DAYS.get((service or "").lower(), DELIVERY_DAYS[ServiceLevel.STANDARD])
        return (now or timezone.now()) + timedelta(days=days)

    def adapter_for(self, provider: str) -> CarrierAdapter:
        return self._adapter_factory(provider, self.config.provider(provider))

    # === 생성 ================================================================
    def create_shipment(self, order_data: Dict[str, Any]) -> ShipmentCreated:
        provider = resolve_code(order_data.get("provider") or Provider.LOCAL)
        if provider not in Provider.values:
            raise UnsupportedProvider(f"Unsupported provider: {order_data.get('provider')!r}")

        service = str(order_data.get("service") or ServiceLevel.STANDARD).lower()
        if service not in ServiceLevel.values:
            service = ServiceLevel.STANDARD

        now = timezone.now()
        estimated = self.calculate_estimated_delivery(service, now)
        origin = order_data.get("origin") or {}
        origin_city = origin.get("city") if isinstance(origin, dict) else None
        first_event = {
            "status": ShipmentStatus.CREATED,
            "timestamp": now,
            "location": origin_city or DEFAULT_ORIGIN_LOCATION,
            "description": CREATED_DESCRIPTION,
            "source": EventSource.SYSTEM,
        }

        # 운송장 충돌 시 한 번만 재발급
        for attempt in (1, 2):
            shipment = Shipment(
                tracking_number=self.generate_tracking_number(),
                order_id=str(order_data.get("order_id") or ""),
                nft_id=str(order_data.get("nft_id") or ""),
                seller=str(order_data.get("seller") or ""),
                buyer=str(order_data.get("buyer") or ""),
                status=ShipmentStatus.CREATED,
                provider=provider,
                service=service,
                estimated_delivery=estimated,
                origin=origin,
                destination=order_data.get("destination") or {},
                weight=order_data.get("weight") or 0,
                dimensions=order_data.get("dimensions") or {},
                value=order_data.get("value") or 0,
                auto_update=order_data.get("auto_update", True),
            )
            try:
                self.store.insert(shipment, first_event)
                break
            except DuplicateTrackingNumber:
                if attempt == 2:
                    raise
                logger.warning("Tracking number collision on %s, regenerating", shipment.tracking_number)

        logger.info("Shipment %s created (%s/%s)", shipment.tracking_number, provider, service)

        if provider != Provider.LOCAL:
            self.create_external_shipment(shipment)

        return ShipmentCreated(
            tracking_number=shipment.tracking_number,
            shipment=shipment,
            estimated_delivery=estimated,
        )

    def create_external_shipment(self, shipment: Shipment) -> AdapterResult:
        """
        택배사에 배송 등록. 실패해도 생성은 성공으로 본다 (로컬 레코드가 기준).
        """
        payload = {
            "reference": shipment.tracking_number,
            "origin": shipment.origin,
            "destination": shipment.destination,
            "weight": float(shipment.weight or 0),
            "dimensions": shipment.dimensions,
            "service": shipment.service,
            "value": float(shipment.value or 0),
        }
        try:
            result = self.adapter_for(shipment.provider).register_shipment(payload)
        except ProviderNotConfigured as e:
            logger.warning("Provider %s not configured: %s", shipment.provider, e)
            return AdapterResult.fail(e)
        except Exception as e:
            logger.exception("Failed to create external shipment with %s", shipment.provider)
            return AdapterResult.fail(e)
        if not result.success:
            logger.warning(
                "Failed to create external shipment with %s: %s", shipment.provider, result.error
            )
        return result

    # === 조회 ================================================================
    def track_shipment(self, tracking_number: str) -> TrackingResult:
        shipment = self.store.find(tracking_number)
        stale = False
        if self._should_poll(shipment):
            shipment, stale = self._refresh_from_carrier(shipment)
        return TrackingResult(
            tracking_number=shipment.tracking_number,
            current_status=shipment.status,
            estimated_delivery=shipment.estimated_delivery,
            history=self.store.history(shipment),
            details={
                "origin": shipment.origin,
                "destination": shipment.destination,
                "provider": shipment.provider,
                "service": shipment.service,
            },
            stale=stale,
        )

    @staticmethod
    def _should_poll(shipment: Shipment) -> bool:
        # 자체 배송은 폴링하지 않고, 종결 상태는 더 이상 택배사 값으로 바꾸지 않음
        return (
            shipment.provider != Provider.LOCAL
            and shipment.auto_update
            and not shipment.is_terminal
        )

    def _refresh_from_carrier(self, shipment: Shipment) -> Tuple[Shipment, bool]:
        """반환: (최신 shipment, stale 여부). 택배사 장애는 여기서 흡수."""
        tracking_number = shipment.tracking_number
        try:
            result = self.adapter_for(shipment.provider).track(tracking_number)
        except ProviderNotConfigured as e:
            logger.warning("Skipping carrier poll for %s: %s", tracking_number, e)
            return shipment, True
        except Exception:
            logger.exception("Carrier poll crashed for %s", tracking_number)
            return shipment, True

        if not result.success:
            return shipment, True

        update = result.data
        if update.unmapped:
            logger.warning(
                "Unmapped %s status %r for %s; recorded as %s",
                shipment.provider,
                update.provider_code,
                tracking_number,
                update.status,
            )
        try:
            shipment = self.update_shipment_status(
                tracking_number, update.as_update(), source=EventSource.CARRIER
            )
        except InvalidStatusTransition as e:
            logger.warning("Ignoring carrier update for %s: %s", tracking_number, e)
        except DatabaseError:
            # 저장 실패는 롤백됨. 호출자에게는 마지막 저장 상태를 돌려준다
            logger.exception("Could not store carrier update for %s", tracking_number)
            return shipment, True
        self.store.mark_synced(tracking_number)
        return shipment, False

    def track_many(self, tracking_numbers: List[str], party_id: Optional[str] = None) -> List[BulkTrackItem]:
        """
        여러 운송장을 순서대로 조회. 한 건의 실패가 다른 건에 영향 주지 않음.
        party_id 가 주어지면 구매자/판매자가 아닌 건은 '없음'으로 보고.
        """
        if len(tracking_numbers) > BULK_TRACK_LIMIT:
            raise ValueError(f"Maximum {BULK_TRACK_LIMIT} tracking numbers allowed per request")

        items: List[BulkTrackItem] = []
        for tracking_number in tracking_numbers:
            try:
                if party_id is not None:
                    shipment = self.store.find(tracking_number)
                    if str(party_id) not in (shipment.buyer, shipment.seller):
                        raise ShipmentNotFound(tracking_number)
                result = self.track_shipment(tracking_number)
            except ShipmentError as e:
                items.append(BulkTrackItem(tracking_number=tracking_number, success=False, error=str(e)))
                continue
            items.append(BulkTrackItem(tracking_number=tracking_number, success=True, data=result))
        return items

    # === 갱신 ================================================================
    def update_shipment_status(
        self,
        tracking_number: str,
        update_data: Dict[str, Any],
        *,
        source: str = EventSource.INTERNAL,
    ) -> Shipment:
        """
        상태 전이의 유일한 진입점.
        - 상태가 바뀐 경우에만 이력 1건 추가 (같은 상태 반복은 이력 no-op)
        - estimated_delivery 가 오면 덮어씀
        - 전이표에 없는 전이는 InvalidStatusTransition
        - 커밋 후 알림 훅 (실패해도 갱신 결과에는 영향 없음)
        """
        data = dict(update_data or {})
        now = timezone.now()

        with transaction.atomic():
            shipment = self.store.find_for_update(tracking_number)
            current = shipment.status
            requested = data.get("status")
            new_status = coerce_status(requested) if requested else current
            if not can_transition(current, new_status):
                raise InvalidStatusTransition(current, new_status)

            patch: Dict[str, Any] = {}
            entry: Optional[Dict[str, Any]] = None
            changed = new_status != current
            location = data.get("location") or DEFAULT_UPDATE_LOCATION

            if changed:
                patch["status"] = new_status
                entry = {
                    "status": new_status,
                    "timestamp": now,
                    "location": location,
                    "description": data.get("description") or f"Status updated to {new_status}",
                    "provider_code": data.get("provider_code") or "",
                    "unmapped": bool(data.get("unmapped")),
                    "source": source,
                }

            if new_status == ShipmentStatus.DELIVERED and (changed or data.get("delivery_proof")):
                patch["delivery_proof"] = merge_delivery_proof(
                    shipment.delivery_proof,
                    data.get("delivery_proof"),
                    location=data.get("location") or "",
                    delivered_at=now,
                )

            estimate_changed = False
            if data.get("estimated_delivery"):
                eta = parse_datetime_safe(data["estimated_delivery"])
                if eta is None:
                    logger.warning(
                        "Ignoring unparsable estimated_delivery %r for %s",
                        data["estimated_delivery"],
                        tracking_number,
                    )
                else:
                    patch["estimated_delivery"] = eta
                    estimate_changed = eta != shipment.estimated_delivery

            shipment = self.store.update(tracking_number, patch, entry)
            sequence = self.store.latest_event(shipment).sequence if entry else None
            transaction.on_commit(
                partial(self._emit_status_hook, tracking_number, sequence, estimate_changed)
            )

        if changed:
            logger.info("Shipment %s: %s -> %s (%s)", tracking_number, current, new_status, source)
        return shipment

    def _emit_status_hook(
        self, tracking_number: str, sequence: Optional[int], estimate_changed: bool = False
    ) -> None:
        try:
            from .tasks import notify_shipment  # celery

            notify_shipment.delay(tracking_number, sequence, estimate_changed)
        except Exception:
            logger.exception("Notification enqueue failed for %s", tracking_number)

    def apply_carrier_push(self, provider: str, tracking_number: str, payload: Dict[str, Any]) -> Shipment:
        """택배사/기사 앱 웹훅 payload → 정규화 → 상태 반영."""
        shipment = self.store.find(tracking_number)
        code = resolve_code(provider)
        if code != shipment.provider:
            raise ShipmentNotFound(tracking_number)
        update = self.adapter_for(code).normalize(payload or {})
        return self.update_shipment_status(tracking_number, update.as_update(), source=EventSource.CARRIER)

    # === 목록 / 증빙 ==========================================================
    @staticmethod
    def _summary(s: Shipment) -> ShipmentSummary:
        return ShipmentSummary(
            tracking_number=s.tracking_number,
            order_id=s.order_id,
            status=s.status,
            estimated_delivery=s.estimated_delivery,
            provider=s.provider,
            created=s.created_at,
        )

    def get_user_shipments(self, user_id: Any, role: str = ROLE_BUYER) -> List[ShipmentSummary]:
        return [self._summary(s) for s in self.store.list_by_party(str(user_id), role)]

    def paginate_summaries(self, queryset, page: int = 1, size: int = 10) -> ShipmentPage:
        """목록 쿼리셋 → 요약 한 페이지 (count/slice 는 DB 에서)."""
        total, rows = self.store.paginate(queryset, page, size)
        return ShipmentPage(total=total, page=page, size=size, results=[self._summary(s) for s in rows])

    def get_stats(self) -> TrackingStats:
        counts = self.store.status_counts()
        by_status = {s.value: counts.get(s.value, 0) for s in ShipmentStatus}
        return TrackingStats(total=sum(counts.values()), by_status=by_status, generated_at=timezone.now())

    def get_delivery_proof(self, tracking_number: str) -> DeliveryProofResult:
        return get_delivery_proof(tracking_number, store=self.store)


def get_tracking_service() -> TrackingService:
    """settings 기반 기본 서비스."""
    return TrackingService(config=TrackingConfig.from_settings())
