from __future__ import annotations

from typing import Any, Dict

from ..models import Provider
from ..status_map import NormalizedUpdate, normalize, placeholder_update
from .base import CarrierAdapter, compact, dig, parse_datetime_safe


class FedExAdapter(CarrierAdapter):
    provider = Provider.FEDEX

    def normalize(self, raw: Dict[str, Any]) -> NormalizedUpdate:
        result = dig(raw, "output", "completeTrackResults", 0)
        # trackResults 로 한 번 더 감싸진 응답과 평평한 응답 모두 허용
        track = dig(result, "trackResults", 0) or result
        detail = dig(track, "latestStatusDetail")
        if not isinstance(detail, dict):
            return placeholder_update()

        eta = dig(track, "estimatedDeliveryTimeWindow", "window", "ends")
        proof = compact({"delivered_to": dig(track, "deliveryDetails", "receivedByName")})

        return normalize(
            self.provider,
            detail.get("code"),
            location=dig(detail, "scanLocation", "city"),
            description=detail.get("description"),
            estimated_delivery=parse_datetime_safe(eta),
            delivery_proof=proof,
        )
