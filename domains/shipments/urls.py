from django.urls import path

from .views import (
    BulkTrackAPI,
    BulkUpdateAPI,
    CarrierWebhookAPI,
    DeliveryProofAPI,
    ShipmentListCreateAPI,
    ShipmentStatusAPI,
    ShipmentTrackAPI,
    TrackingStatsAPI,
)

app_name = "shipments"

urlpatterns = [
    # 목록 / 생성
    path("", ShipmentListCreateAPI.as_view(), name="shipment-list"),
    # 고정 경로: 운송장 라우트보다 먼저
    path("webhooks/<str:provider>/", CarrierWebhookAPI.as_view(), name="shipment-webhook"),
    path("track/bulk/", BulkTrackAPI.as_view(), name="shipment-track-bulk"),
    path("stats/", TrackingStatsAPI.as_view(), name="shipment-stats"),
    path("bulk-update/", BulkUpdateAPI.as_view(), name="shipment-bulk-update"),
    # 운송장 단위
    path("<str:tracking_number>/", ShipmentTrackAPI.as_view(), name="shipment-track"),
    path("<str:tracking_number>/status/", ShipmentStatusAPI.as_view(), name="shipment-status"),
    path("<str:tracking_number>/proof/", DeliveryProofAPI.as_view(), name="shipment-proof"),
]
