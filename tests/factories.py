import itertools
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import requests
from django.utils import timezone

from domains.shipments.models import Provider, ServiceLevel, Shipment, ShipmentEvent, ShipmentStatus

_tn_seq = itertools.count(1)

PROVIDERS = {
    "dhl": {"base_url": "https://dhl.test/track", "api_key": "dhl-key"},
    "fedex": {"base_url": "https://fedex.test/track", "api_key": "fedex-key"},
    "ups": {"base_url": "https://ups.test/track", "api_key": "ups-key"},
    "local": {"base_url": "https://courier.test/api", "api_key": "local-key"},
}
WEBHOOK_SECRET = "test-webhook-secret"


def unique_tracking_number(prefix="TEST"):
    return f"{prefix}{next(_tn_seq):08d}"


def create_shipment(
    tracking_number=None,
    status=ShipmentStatus.CREATED,
    provider=Provider.LOCAL,
    buyer="1",
    seller="2",
    with_history=True,
    **extra,
):
    """
    서비스 레이어를 거치지 않고 배송 + 첫 이력을 바로 만든다.
    (status 가 CREATED 가 아니어도 이력은 해당 status 한 건)
    """
    fields = {
        "tracking_number": tracking_number or unique_tracking_number(),
        "order_id": "order-1",
        "seller": str(seller),
        "buyer": str(buyer),
        "status": status,
        "provider": provider,
        "service": ServiceLevel.STANDARD,
        "estimated_delivery": timezone.now() + timedelta(days=5),
        "origin": {"city": "Seoul"},
        "destination": {"city": "Busan"},
        "weight": Decimal("1.000"),
        "value": Decimal("10.00"),
    }
    fields.update(extra)
    shipment = Shipment.objects.create(**fields)
    if with_history:
        ShipmentEvent.objects.create(
            shipment=shipment,
            sequence=1,
            status=status,
            timestamp=timezone.now(),
            location="Seoul",
            description="seed",
            source="system",
        )
    return shipment


def fake_response(payload=None, status_code=200, json_error=False, headers=None):
    """requests.Response 흉내. raise_for_status / json / headers 동작만 맞춘다."""
    res = MagicMock()
    res.status_code = status_code
    res.headers = dict(headers or {})
    if status_code >= 400:
        res.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        res.raise_for_status.return_value = None
    if json_error:
        res.json.side_effect = ValueError("no json")
    else:
        res.json.return_value = payload if payload is not None else {}
    return res
