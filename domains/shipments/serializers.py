from __future__ import annotations

from rest_framework import serializers

from .exceptions import InvalidShipmentStatus
from .models import Provider, ServiceLevel, Shipment, ShipmentEvent, coerce_status
from .services import BULK_TRACK_LIMIT


# ---------------------------
# 출력용
# ---------------------------
class ShipmentEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShipmentEvent
        fields = (
            "sequence",
            "status",
            "timestamp",
            "location",
            "description",
            "provider_code",
            "unmapped",
            "source",
        )


class ShipmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Shipment
        fields = (
            "id",
            "tracking_number",
            "order_id",
            "nft_id",
            "seller",
            "buyer",
            "status",
            "provider",
            "service",
            "estimated_delivery",
            "origin",
            "destination",
            "weight",
            "dimensions",
            "value",
            "auto_update",
            "last_synced_at",
            "created_at",
            "updated_at",
        )


class ShipmentCreatedSerializer(serializers.Serializer):
    tracking_number = serializers.CharField()
    estimated_delivery = serializers.DateTimeField()
    shipment = ShipmentSerializer()


class TrackingDetailsSerializer(serializers.Serializer):
    origin = serializers.DictField()
    destination = serializers.DictField()
    provider = serializers.CharField()
    service = serializers.CharField()


class TrackingResultSerializer(serializers.Serializer):
    tracking_number = serializers.CharField()
    current_status = serializers.CharField()
    estimated_delivery = serializers.DateTimeField(allow_null=True)
    history = ShipmentEventSerializer(many=True)
    details = TrackingDetailsSerializer()
    stale = serializers.BooleanField()


class ShipmentSummarySerializer(serializers.Serializer):
    tracking_number = serializers.CharField()
    order_id = serializers.CharField()
    status = serializers.CharField()
    estimated_delivery = serializers.DateTimeField(allow_null=True)
    provider = serializers.CharField()
    created = serializers.DateTimeField()


class ShipmentPageSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    page = serializers.IntegerField()
    size = serializers.IntegerField()
    results = ShipmentSummarySerializer(many=True)


class BulkTrackItemSerializer(serializers.Serializer):
    tracking_number = serializers.CharField()
    success = serializers.BooleanField()
    data = TrackingResultSerializer(allow_null=True)
    error = serializers.CharField(allow_null=True)


class TrackingStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
    generated_at = serializers.DateTimeField()


class DeliveryProofSerializer(serializers.Serializer):
    delivered_at = serializers.CharField()
    signature = serializers.CharField(allow_null=True)
    photo = serializers.CharField(allow_null=True)
    delivered_to = serializers.CharField()
    location = serializers.CharField()


class DeliveryProofResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    delivery_proof = DeliveryProofSerializer(required=False, allow_null=True)
    error = serializers.CharField(required=False, allow_blank=True)


# ---------------------------
# 입력용
# ---------------------------
class CreateShipmentSerializer(serializers.Serializer):
    order_id = serializers.CharField(max_length=64)
    nft_id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    seller = serializers.CharField(max_length=64)
    buyer = serializers.CharField(max_length=64)
    # 별칭(dhl_express 등)은 서비스에서 해석하므로 문자열로 받는다
    provider = serializers.CharField(max_length=32, required=False, default=Provider.LOCAL)
    service = serializers.CharField(max_length=16, required=False, default=ServiceLevel.STANDARD)
    origin = serializers.DictField(required=False, default=dict)
    destination = serializers.DictField(required=False, default=dict)
    weight = serializers.DecimalField(max_digits=10, decimal_places=3, required=False, min_value=0)
    dimensions = serializers.DictField(required=False, default=dict)
    value = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, min_value=0)
    auto_update = serializers.BooleanField(required=False, default=True)


class StatusUpdateSerializer(serializers.Serializer):
    """status 는 'IN_TRANSIT' / 'In Transit' 둘 다 허용."""

    status = serializers.CharField(required=False)
    location = serializers.CharField(required=False, allow_blank=True, max_length=200)
    description = serializers.CharField(required=False, allow_blank=True)
    estimated_delivery = serializers.DateTimeField(required=False)
    delivery_proof = serializers.DictField(required=False)

    def validate_status(self, value):
        try:
            return coerce_status(value)
        except InvalidShipmentStatus as e:
            raise serializers.ValidationError(str(e))

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Nothing to update.")
        return attrs


class CarrierPushSerializer(serializers.Serializer):
    """
    택배사/기사 앱 웹훅 입력.
    payload 가 없으면 본문 전체를 택배사 원본 응답으로 본다.
    """

    tracking_number = serializers.CharField(max_length=32)
    payload = serializers.DictField(required=False)


class BulkTrackSerializer(serializers.Serializer):
    tracking_numbers = serializers.ListField(
        child=serializers.CharField(max_length=32),
        min_length=1,
        max_length=BULK_TRACK_LIMIT,
    )
