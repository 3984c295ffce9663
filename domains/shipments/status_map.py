from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .models import Provider, ShipmentEvent, ShipmentStatus

UNKNOWN_LOCATION = "Unknown"
DEFAULT_DESCRIPTION = "Package in transit"

# 택배사별 상태 토큰 → 표준 상태 (키는 소문자)
DHL_STATUS_MAP = {
    "pre-transit": ShipmentStatus.PROCESSING,
    "transit": ShipmentStatus.IN_TRANSIT,
    "delivered": ShipmentStatus.DELIVERED,
    "returned": ShipmentStatus.RETURNED,
    "failure": ShipmentStatus.FAILED_DELIVERY,
}

FEDEX_STATUS_MAP = {
    "oc": ShipmentStatus.PROCESSING,
    "pu": ShipmentStatus.PICKED_UP,
    "it": ShipmentStatus.IN_TRANSIT,
    "od": ShipmentStatus.OUT_FOR_DELIVERY,
    "dl": ShipmentStatus.DELIVERED,
    "de": ShipmentStatus.FAILED_DELIVERY,
    "rs": ShipmentStatus.RETURNED,
    "ca": ShipmentStatus.CANCELLED,
}

UPS_STATUS_MAP = {
    "order processed": ShipmentStatus.PROCESSING,
    "pickup": ShipmentStatus.PICKED_UP,
    "in transit": ShipmentStatus.IN_TRANSIT,
    "out for delivery": ShipmentStatus.OUT_FOR_DELIVERY,
    "delivered": ShipmentStatus.DELIVERED,
    "delivery attempted": ShipmentStatus.FAILED_DELIVERY,
    "returned to sender": ShipmentStatus.RETURNED,
}

# 자체 배송은 표준 상태를 그대로 보냄 (멤버명/표시값 모두 허용)
LOCAL_STATUS_MAP = {
    **{s.name.lower(): s for s in ShipmentStatus},
    **{s.value.lower(): s for s in ShipmentStatus},
}

_TABLES = {
    Provider.DHL: DHL_STATUS_MAP,
    Provider.FEDEX: FEDEX_STATUS_MAP,
    Provider.UPS: UPS_STATUS_MAP,
    Provider.LOCAL: LOCAL_STATUS_MAP,
}


def map_provider_status(provider: str, provider_status: Any) -> Tuple[str, bool]:
    """
    택배사 상태 토큰을 표준 상태로 변환.
    반환: (표준 상태값, unmapped 여부)
    알 수 없는 토큰은 In Transit 으로 두되 unmapped=True 로 표시한다.
    """
    table = _TABLES.get((provider or "").strip().lower(), {})
    token = str(provider_status or "").strip().lower()
    status = table.get(token)
    if status is None:
        return ShipmentStatus.IN_TRANSIT.value, True
    return status.value, False


@dataclass(frozen=True)
class NormalizedUpdate:
    """택배사 응답을 정규화한 결과 (update_shipment_status 입력으로 사용)."""

    status: str = ShipmentStatus.IN_TRANSIT.value
    location: str = UNKNOWN_LOCATION
    description: str = DEFAULT_DESCRIPTION
    provider_code: str = ""
    unmapped: bool = False
    estimated_delivery: Optional[datetime] = None
    delivery_proof: Optional[Dict[str, Any]] = field(default=None, compare=False)

    def as_update(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status,
            "location": self.location,
            "description": self.description,
            "provider_code": self.provider_code,
            "unmapped": self.unmapped,
        }
        if self.estimated_delivery is not None:
            data["estimated_delivery"] = self.estimated_delivery
        if self.delivery_proof:
            data["delivery_proof"] = dict(self.delivery_proof)
        return data


def _clip(value: Any, field_name: str) -> str:
    """택배사 자유 텍스트를 이력 컬럼 길이에 맞춰 자름."""
    limit = ShipmentEvent._meta.get_field(field_name).max_length
    return str(value or "").strip()[:limit].rstrip()


def normalize(
    provider: str,
    token: Any,
    *,
    location: Any = None,
    description: Any = None,
    estimated_delivery: Optional[datetime] = None,
    delivery_proof: Optional[Dict[str, Any]] = None,
) -> NormalizedUpdate:
    status, unmapped = map_provider_status(provider, token)
    return NormalizedUpdate(
        status=status,
        location=_clip(location, "location") or UNKNOWN_LOCATION,
        description=str(description or "").strip() or DEFAULT_DESCRIPTION,
        provider_code=_clip(token, "provider_code"),
        unmapped=unmapped,
        estimated_delivery=estimated_delivery,
        delivery_proof=delivery_proof or None,
    )


def placeholder_update() -> NormalizedUpdate:
    """응답 구조를 못 읽었을 때의 기본값."""
    return NormalizedUpdate(unmapped=True)
