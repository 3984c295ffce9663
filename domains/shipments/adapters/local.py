from __future__ import annotations

from typing import Any, Dict

from ..models import Provider
from ..status_map import NormalizedUpdate, normalize
from .base import CarrierAdapter, parse_datetime_safe


class LocalCourierAdapter(CarrierAdapter):
    """
    자체 배송(로컬 택배) 어댑터.
    자체 배송 건은 폴링하지 않으며, 기사 앱이 웹훅으로 보내는 평평한 payload 정규화에만 쓰인다.
      {"status": "...", "location": "...", "description": "...",
       "estimatedDelivery": "...", "deliveryProof": {...}}
    """

    provider = Provider.LOCAL

    def normalize(self, raw: Dict[str, Any]) -> NormalizedUpdate:
        proof = raw.get("deliveryProof") or raw.get("delivery_proof")
        eta = raw.get("estimatedDelivery") or raw.get("estimated_delivery")
        return normalize(
            self.provider,
            raw.get("status"),
            location=raw.get("location"),
            description=raw.get("description"),
            estimated_delivery=parse_datetime_safe(eta),
            delivery_proof=dict(proof) if isinstance(proof, dict) else None,
        )
