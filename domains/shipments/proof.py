from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from django.utils import timezone

from .models import Shipment, ShipmentStatus
from .repository import ShipmentStore

NOT_DELIVERED_ERROR = "Package not yet delivered"

PROOF_PLACEHOLDERS = {
    "delivered_at": "Unknown",
    "delivered_to": "Recipient",
    "location": "Delivery address",
}


@dataclass
class DeliveryProof:
    delivered_at: Any
    signature: Optional[str]
    photo: Optional[str]
    delivered_to: str
    location: str


@dataclass
class DeliveryProofResult:
    success: bool
    delivery_proof: Optional[DeliveryProof] = None
    error: str = ""

    def as_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "delivery_proof": asdict(self.delivery_proof)}


def build_delivery_proof(shipment: Shipment) -> DeliveryProofResult:
    """
    배송 완료 건의 증빙. 비어 있는 값은 None 대신 표시용 기본값으로 채운다.
    (서명/사진은 없으면 None)
    """
    if shipment.status != ShipmentStatus.DELIVERED:
        return DeliveryProofResult(success=False, error=NOT_DELIVERED_ERROR)

    proof = shipment.delivery_proof or {}
    return DeliveryProofResult(
        success=True,
        delivery_proof=DeliveryProof(
            delivered_at=proof.get("delivered_at") or PROOF_PLACEHOLDERS["delivered_at"],
            signature=proof.get("signature") or None,
            photo=proof.get("photo") or None,
            delivered_to=proof.get("delivered_to") or PROOF_PLACEHOLDERS["delivered_to"],
            location=proof.get("location") or PROOF_PLACEHOLDERS["location"],
        ),
    )


def get_delivery_proof(tracking_number: str, store: Optional[ShipmentStore] = None) -> DeliveryProofResult:
    """없는 운송장은 ShipmentNotFound (도메인 예외)."""
    store = store or ShipmentStore()
    return build_delivery_proof(store.find(tracking_number))


def merge_delivery_proof(
    existing: Optional[Dict[str, Any]],
    incoming: Optional[Dict[str, Any]],
    *,
    location: str = "",
    delivered_at=None,
) -> Dict[str, Any]:
    """배송 완료 진입 시 저장할 증빙. 들어온 값이 기존 값을 덮어쓴다."""
    merged = {
        k: (v.isoformat() if hasattr(v, "isoformat") else v)
        for k, v in {**(existing or {}), **(incoming or {})}.items()
    }
    merged.setdefault("delivered_at", (delivered_at or timezone.now()).isoformat())
    if location and "location" not in merged:
        merged["location"] = location
    return merged
