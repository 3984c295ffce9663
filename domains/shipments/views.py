# domains/shipments/views.py
import logging
import secrets

import django_filters as df
from django.conf import settings
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import parsers, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from shared.permissions import IsPartyOrStaff, IsStaff

from .exceptions import (
    DuplicateTrackingNumber,
    InvalidShipmentStatus,
    InvalidStatusTransition,
    ShipmentNotFound,
    UnsupportedProvider,
)
from .models import Provider, Shipment, ShipmentStatus
from .repository import ROLE_BUYER, ROLE_SELLER
from .serializers import (
    BulkTrackItemSerializer,
    BulkTrackSerializer,
    CarrierPushSerializer,
    CreateShipmentSerializer,
    DeliveryProofResultSerializer,
    ShipmentCreatedSerializer,
    ShipmentPageSerializer,
    ShipmentSerializer,
    StatusUpdateSerializer,
    TrackingResultSerializer,
    TrackingStatsSerializer,
)
from .services import get_tracking_service
from .tasks import poll_open_shipments

logger = logging.getLogger(__name__)

WEBHOOK_SECRET_HEADER = "X-Shipments-Webhook-Secret"

# 도메인 예외 → HTTP 상태
_ERROR_STATUS = (
    (ShipmentNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidStatusTransition, status.HTTP_409_CONFLICT),
    (DuplicateTrackingNumber, status.HTTP_409_CONFLICT),
    (InvalidShipmentStatus, status.HTTP_400_BAD_REQUEST),
    (UnsupportedProvider, status.HTTP_400_BAD_REQUEST),
)


class ShipmentAPIView(APIView):
    """배송 API 공통: 도메인 예외를 {"detail": ...} 응답으로 변환."""

    parser_classes = [parsers.JSONParser]

    def handle_exception(self, exc):
        for exc_type, code in _ERROR_STATUS:
            if isinstance(exc, exc_type):
                return Response({"detail": str(exc)}, status=code)
        return super().handle_exception(exc)

    def get_service(self):
        return get_tracking_service()

    def get_shipment(self, tracking_number: str):
        """조회 + 객체 권한 검사 (없으면 ShipmentNotFound → 404)."""
        shipment = self.get_service().store.find(tracking_number)
        self.check_object_permissions(self.request, shipment)
        return shipment


# -------------------------------
# Filters (목록)
# -------------------------------
class ShipmentFilter(df.FilterSet):
    status = df.ChoiceFilter(choices=ShipmentStatus.choices)
    provider = df.ChoiceFilter(choices=Provider.choices)

    class Meta:
        model = Shipment
        fields = ["status", "provider"]


# --------------------------------------------------------------------
# GET  /api/v1/shipments/   내 배송 목록 (?role=buyer|seller, page, size)
# POST /api/v1/shipments/   배송 생성 (staff)
# 응답 형태(GET): { "total": n, "page": p, "size": s, "results": [...] }
# --------------------------------------------------------------------
class ShipmentListCreateAPI(ShipmentAPIView):
    def get_permissions(self):
        if self.request.method == "POST":
            return [IsStaff()]
        return [permissions.IsAuthenticated()]

    @extend_schema(
        parameters=[
            OpenApiParameter(name="role", required=False, type=str, enum=[ROLE_BUYER, ROLE_SELLER]),
            OpenApiParameter(name="page", required=False, type=int, description="page number (1-base)"),
            OpenApiParameter(name="size", required=False, type=int, description="page size"),
            OpenApiParameter(name="status", required=False, type=str, enum=ShipmentStatus.values),
            OpenApiParameter(name="provider", required=False, type=str, enum=Provider.values),
        ],
        responses={200: ShipmentPageSerializer},
    )
    def get(self, request):
        role = (request.query_params.get("role") or ROLE_BUYER).strip().lower()
        if role not in (ROLE_BUYER, ROLE_SELLER):
            return Response({"detail": "role must be 'buyer' or 'seller'."}, status=status.HTTP_400_BAD_REQUEST)
        try:
            page = max(int(request.query_params.get("page") or 1), 1)
            size = max(min(int(request.query_params.get("size") or 10), 100), 1)
        except ValueError:
            return Response({"detail": "page/size must be integers."}, status=status.HTTP_400_BAD_REQUEST)

        service = self.get_service()
        fs = ShipmentFilter(request.query_params, queryset=service.store.list_by_party(request.user.pk, role))
        if not fs.is_valid():
            return Response(fs.errors, status=status.HTTP_400_BAD_REQUEST)

        result = service.paginate_summaries(fs.qs, page=page, size=size)
        return Response(ShipmentPageSerializer(result).data, status=status.HTTP_200_OK)

    @extend_schema(request=CreateShipmentSerializer, responses={201: ShipmentCreatedSerializer})
    def post(self, request):
        ser = CreateShipmentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        created = self.get_service().create_shipment(dict(ser.validated_data))
        return Response(ShipmentCreatedSerializer(created).data, status=status.HTTP_201_CREATED)


# --------------------------------------------------------------------
# GET /api/v1/shipments/{tracking_number}/   추적 (필요 시 택배사 폴링)
# --------------------------------------------------------------------
class ShipmentTrackAPI(ShipmentAPIView):
    permission_classes = [IsPartyOrStaff]

    @extend_schema(responses={200: TrackingResultSerializer})
    def get(self, request, tracking_number: str):
        self.get_shipment(tracking_number)
        result = self.get_service().track_shipment(tracking_number)
        return Response(TrackingResultSerializer(result).data, status=status.HTTP_200_OK)


# --------------------------------------------------------------------
# POST /api/v1/shipments/track/bulk/   여러 운송장 한 번에 추적 (최대 50건)
# 응답: { "results": [ {tracking_number, success, data, error}, ... ] }
# 일반 사용자는 본인이 구매자/판매자인 건만, 나머지는 not found 로 보고
# --------------------------------------------------------------------
class BulkTrackAPI(ShipmentAPIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(request=BulkTrackSerializer, responses={200: BulkTrackItemSerializer(many=True)})
    def post(self, request):
        ser = BulkTrackSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        party_id = None if request.user.is_staff else str(request.user.pk)
        items = self.get_service().track_many(ser.validated_data["tracking_numbers"], party_id=party_id)
        return Response(
            {"results": BulkTrackItemSerializer(items, many=True).data},
            status=status.HTTP_200_OK,
        )


# --------------------------------------------------------------------
# GET /api/v1/shipments/stats/   상태별 배송 건수 (staff)
# --------------------------------------------------------------------
class TrackingStatsAPI(ShipmentAPIView):
    permission_classes = [IsStaff]

    @extend_schema(responses={200: TrackingStatsSerializer})
    def get(self, request):
        stats = self.get_service().get_stats()
        return Response(TrackingStatsSerializer(stats).data, status=status.HTTP_200_OK)


# --------------------------------------------------------------------
# POST /api/v1/shipments/bulk-update/   미완료 배송 일괄 폴링 예약 (staff)
# --------------------------------------------------------------------
class BulkUpdateAPI(ShipmentAPIView):
    permission_classes = [IsStaff]

    @extend_schema(request=None, responses={202: None})
    def post(self, request):
        res = poll_open_shipments.delay()
        logger.info("Bulk tracking sweep queued by %s (%s)", request.user.pk, res.id)
        return Response({"task_id": res.id}, status=status.HTTP_202_ACCEPTED)


# --------------------------------------------------------------------
# POST /api/v1/shipments/{tracking_number}/status/   내부 상태 갱신 (staff)
# --------------------------------------------------------------------
class ShipmentStatusAPI(ShipmentAPIView):
    permission_classes = [IsStaff]

    @extend_schema(request=StatusUpdateSerializer, responses={200: ShipmentSerializer})
    def post(self, request, tracking_number: str):
        ser = StatusUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        shipment = self.get_service().update_shipment_status(tracking_number, dict(ser.validated_data))
        return Response(ShipmentSerializer(shipment).data, status=status.HTTP_200_OK)


# --------------------------------------------------------------------
# GET /api/v1/shipments/{tracking_number}/proof/   배송 완료 증빙
# 미배송 건은 409 + {"success": false, "error": "..."}
# --------------------------------------------------------------------
class DeliveryProofAPI(ShipmentAPIView):
    permission_classes = [IsPartyOrStaff]

    @extend_schema(responses={200: DeliveryProofResultSerializer, 409: DeliveryProofResultSerializer})
    def get(self, request, tracking_number: str):
        self.get_shipment(tracking_number)
        result = self.get_service().get_delivery_proof(tracking_number)
        code = status.HTTP_200_OK if result.success else status.HTTP_409_CONFLICT
        return Response(result.as_dict(), status=code)


# --------------------------------------------------------------------
# POST /api/v1/shipments/webhooks/{provider}/
#  -> 택배사 push: 공유 비밀 헤더 확인 후 정규화 + 상태 반영
# --------------------------------------------------------------------
class CarrierWebhookAPI(ShipmentAPIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def _secret_ok(self, request) -> bool:
        expected = getattr(settings, "SHIPMENTS_WEBHOOK_SECRET", "") or ""
        given = request.headers.get(WEBHOOK_SECRET_HEADER, "")
        # 비밀이 설정되지 않았으면 모두 거절
        return bool(expected) and secrets.compare_digest(given, expected)

    @extend_schema(
        request=CarrierPushSerializer,
        parameters=[OpenApiParameter(name=WEBHOOK_SECRET_HEADER, location=OpenApiParameter.HEADER, required=True)],
        responses={200: ShipmentSerializer},
    )
    def post(self, request, provider: str):
        if not self._secret_ok(request):
            logger.warning("Rejected %s webhook: bad or missing secret", provider)
            return Response({"detail": "Invalid webhook secret."}, status=status.HTTP_403_FORBIDDEN)

        ser = CarrierPushSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        tracking_number = ser.validated_data["tracking_number"]
        payload = ser.validated_data.get("payload")
        if payload is None:
            payload = {k: v for k, v in request.data.items() if k != "tracking_number"}

        shipment = self.get_service().apply_carrier_push(provider, tracking_number, payload)
        return Response(ShipmentSerializer(shipment).data, status=status.HTTP_200_OK)
