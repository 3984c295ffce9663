from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import models

from .exceptions import ImmutableFieldError, InvalidShipmentStatus


class ShipmentStatus(models.TextChoices):
    CREATED = "Order Created", "Order Created"
    PROCESSING = "Processing Order", "Processing Order"
    PICKED_UP = "Picked Up", "Picked Up"
    IN_TRANSIT = "In Transit", "In Transit"
    OUT_FOR_DELIVERY = "Out for Delivery", "Out for Delivery"
    DELIVERED = "Delivered", "Delivered"
    FAILED_DELIVERY = "Failed Delivery Attempt", "Failed Delivery Attempt"
    RETURNED = "Returned to Sender", "Returned to Sender"
    CANCELLED = "Cancelled", "Cancelled"


class Provider(models.TextChoices):
    DHL = "dhl", "DHL"
    FEDEX = "fedex", "FedEx"
    UPS = "ups", "UPS"
    LOCAL = "local", "Local courier"


class ServiceLevel(models.TextChoices):
    EXPRESS = "express", "Express"
    PRIORITY = "priority", "Priority"
    STANDARD = "standard", "Standard"
    ECONOMY = "economy", "Economy"


class EventSource(models.TextChoices):
    SYSTEM = "system", "System"
    INTERNAL = "internal", "Internal"
    CARRIER = "carrier", "Carrier"


DELIVERY_DAYS = {
    ServiceLevel.EXPRESS: 1,
    ServiceLevel.PRIORITY: 2,
    ServiceLevel.STANDARD: 5,
    ServiceLevel.ECONOMY: 7,
}

# ──────────────────────────────────────────────────────────────────────────────
# 상태 전이표
#   정상 경로는 앞으로만(건너뛰기 허용), 예외 상태는 비종결 상태 어디서든 진입
# ──────────────────────────────────────────────────────────────────────────────
HAPPY_PATH = (
    ShipmentStatus.CREATED,
    ShipmentStatus.PROCESSING,
    ShipmentStatus.PICKED_UP,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
    ShipmentStatus.DELIVERED,
)

TERMINAL_STATES: set[str] = {
    ShipmentStatus.DELIVERED,
    ShipmentStatus.RETURNED,
    ShipmentStatus.CANCELLED,
}

_EXCEPTION_STATES = {
    ShipmentStatus.FAILED_DELIVERY,
    ShipmentStatus.RETURNED,
    ShipmentStatus.CANCELLED,
}


def _build_transitions() -> dict[str, set[str]]:
    table: dict[str, set[str]] = {}
    for i, status in enumerate(HAPPY_PATH):
        if status in TERMINAL_STATES:
            table[status] = set()
            continue
        table[status] = set(HAPPY_PATH[i + 1:]) | _EXCEPTION_STATES
    table[ShipmentStatus.FAILED_DELIVERY] = {
        ShipmentStatus.OUT_FOR_DELIVERY,
        ShipmentStatus.RETURNED,
    }
    table[ShipmentStatus.RETURNED] = set()
    table[ShipmentStatus.CANCELLED] = set()
    return table


VALID_TRANSITIONS: dict[str, set[str]] = _build_transitions()


def can_transition(current: str, new: str) -> bool:
    """같은 상태는 전이가 아니므로 항상 허용(이력 추가 없음)."""
    if current == new:
        return True
    return new in VALID_TRANSITIONS.get(current, set())


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


_STATUS_LOOKUP: dict[str, str] = {}
for _member in ShipmentStatus:
    _STATUS_LOOKUP[_member.name.lower()] = _member.value
    _STATUS_LOOKUP[_member.value.lower()] = _member.value


def coerce_status(value) -> str:
    """'IN_TRANSIT' / 'In Transit' / ShipmentStatus.IN_TRANSIT → 'In Transit'."""
    if isinstance(value, ShipmentStatus):
        return value.value
    key = str(value or "").strip().lower()
    try:
        return _STATUS_LOOKUP[key]
    except KeyError:
        raise InvalidShipmentStatus(f"Unknown shipment status: {value!r}") from None


class Shipment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tracking_number = models.CharField(max_length=32, unique=True, editable=False)

    order_id = models.CharField(max_length=64, blank=True)
    nft_id = models.CharField(max_length=64, blank=True)
    seller = models.CharField(max_length=64, db_index=True)
    buyer = models.CharField(max_length=64, db_index=True)

    status = models.CharField(
        max_length=32,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.CREATED,
    )
    provider = models.CharField(
        max_length=16, choices=Provider.choices, default=Provider.LOCAL
    )
    service = models.CharField(
        max_length=16, choices=ServiceLevel.choices, default=ServiceLevel.STANDARD
    )
    estimated_delivery = models.DateTimeField(null=True, blank=True)

    origin = models.JSONField(default=dict, blank=True)
    destination = models.JSONField(default=dict, blank=True)
    weight = models.DecimalField(max_digits=10, decimal_places=3, default=Decimal("0"))
    dimensions = models.JSONField(default=dict, blank=True)
    value = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0"))

    auto_update = models.BooleanField(default=True)
    delivery_proof = models.JSONField(null=True, blank=True)
    notified_sequence = models.PositiveIntegerField(default=0)
    last_synced_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["buyer", "created_at"], name="shipments_buyer_created_idx"),
            models.Index(fields=["seller", "created_at"], name="shipments_seller_created_idx"),
            models.Index(fields=["status", "provider"], name="shipments_status_prov_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.provider}:{self.tracking_number}"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        # 로드 시점의 식별 값 보관 → save 에서 변경 여부 검사
        instance._loaded_identity = (
            instance.__dict__.get("tracking_number"),
            instance.__dict__.get("provider"),
        )
        return instance

    def save(self, *args, **kwargs):
        loaded = getattr(self, "_loaded_identity", None)
        if not self._state.adding and loaded is not None:
            tracking_number, provider = loaded
            if tracking_number is not None and tracking_number != self.tracking_number:
                raise ImmutableFieldError("tracking_number cannot be changed")
            if provider is not None and provider != self.provider:
                raise ImmutableFieldError("provider cannot be changed")
        super().save(*args, **kwargs)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)


class ShipmentEvent(models.Model):
    """이력 한 건. 추가만 가능하고 저장 이후에는 수정 불가."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shipment = models.ForeignKey(
        Shipment, on_delete=models.CASCADE, related_name="history"
    )
    sequence = models.PositiveIntegerField()
    status = models.CharField(max_length=32, choices=ShipmentStatus.choices)
    timestamp = models.DateTimeField()
    location = models.CharField(max_length=200, blank=True)
    description = models.TextField(blank=True)

    provider_code = models.CharField(max_length=80, blank=True)
    unmapped = models.BooleanField(default=False)
    source = models.CharField(
        max_length=16, choices=EventSource.choices, default=EventSource.INTERNAL
    )

    class Meta:
        ordering = ["sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=("shipment", "sequence"), name="uq_shipment_event_sequence"
            )
        ]

    def __str__(self) -> str:
        return f"{self.shipment_id}#{self.sequence} {self.status}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableFieldError("tracking events are append-only")
        super().save(*args, **kwargs)
