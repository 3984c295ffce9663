from __future__ import annotations

from typing import Any, Dict

from ..models import Provider
from ..status_map import NormalizedUpdate, normalize, placeholder_update
from .base import CarrierAdapter, compact, dig, parse_datetime_safe


class DHLAdapter(CarrierAdapter):
    """DHL Shipment Tracking (unified) 응답 정규화."""

    provider = Provider.DHL

    def normalize(self, raw: Dict[str, Any]) -> NormalizedUpdate:
        shipment = dig(raw, "shipments", 0)
        if not isinstance(shipment, dict):
            return placeholder_update()

        status = shipment.get("status")
        if isinstance(status, dict):
            token = status.get("statusCode") or status.get("status")
            status_desc = status.get("description")
        else:
            token, status_desc = status, None

        event = dig(shipment, "events", 0, default={})
        pod = dig(shipment, "details", "proofOfDelivery", default={})
        proof = compact(
            {
                "signature": dig(pod, "signatureUrl"),
                "photo": dig(pod, "documentUrl"),
                "delivered_at": dig(pod, "timestamp"),
                "delivered_to": dig(shipment, "details", "receiver", "name"),
            }
        )

        return normalize(
            self.provider,
            token,
            location=dig(event, "location", "address", "addressLocality"),
            description=dig(event, "description") or status_desc,
            estimated_delivery=parse_datetime_safe(shipment.get("estimatedTimeOfDelivery")),
            delivery_proof=proof,
        )
