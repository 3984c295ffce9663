from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, Optional

from ..models import Provider
from ..status_map import NormalizedUpdate, normalize, placeholder_update
from .base import CarrierAdapter, dig


def _parse_ups_date(value: Any) -> Optional[datetime]:
    """UPS 날짜는 'YYYYMMDD' 문자열."""
    try:
        return datetime.strptime(str(value), "%Y%m%d").replace(tzinfo=dt_timezone.utc)
    except (TypeError, ValueError):
        return None


class UPSAdapter(CarrierAdapter):
    provider = Provider.UPS

    def normalize(self, raw: Dict[str, Any]) -> NormalizedUpdate:
        package = dig(raw, "trackResponse", "shipment", 0, "package", 0)
        if not isinstance(package, dict):
            return placeholder_update()

        activity = dig(package, "activity", 0, default={})
        token = dig(package, "currentStatus", "description") or dig(
            activity, "status", "description"
        )

        return normalize(
            self.provider,
            token,
            location=dig(activity, "location", "address", "city"),
            description=dig(activity, "status", "description") or token,
            estimated_delivery=_parse_ups_date(dig(package, "deliveryDate", 0, "date")),
        )
