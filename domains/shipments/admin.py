from __future__ import annotations

from django.contrib import admin
from django.utils.html import format_html

from . import models


# ---------- ShipmentEvent Inline (이력은 추가 전용 → 전부 읽기 전용) ----------
class ShipmentEventInline(admin.TabularInline):
    model = models.ShipmentEvent
    extra = 0
    can_delete = False
    ordering = ("sequence",)
    fields = ("sequence", "status", "timestamp", "location", "description", "provider_code", "unmapped", "source")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


# ---------- Shipment Admin ----------
@admin.register(models.Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    inlines = [ShipmentEventInline]

    list_display = (
        "tracking_number",
        "provider",
        "service",
        "status",
        "buyer",
        "seller",
        "estimated_delivery",
        "last_synced_at",
        "created_at",
    )
    list_filter = ("provider", "status", "service", "auto_update")
    search_fields = ("tracking_number", "order_id", "buyer", "seller")
    ordering = ("-created_at",)

    # 운송장/택배사는 생성 후 불변, 상태는 서비스 경유로만 변경
    readonly_fields = (
        "id",
        "tracking_number",
        "provider",
        "status",
        "notified_sequence",
        "last_synced_at",
        "delivery_proof_display",
        "created_at",
        "updated_at",
    )
    exclude = ("delivery_proof",)

    def delivery_proof_display(self, obj):
        if not obj.delivery_proof:
            return "-"
        return format_html("<pre style='white-space:pre-wrap'>{}</pre>", obj.delivery_proof)

    delivery_proof_display.short_description = "Delivery proof"

    # 이력이 배송을 CASCADE 로 따라가므로 배송 삭제도 막음
    def has_delete_permission(self, request, obj=None):
        return False


# ---------- ShipmentEvent Admin ----------
@admin.register(models.ShipmentEvent)
class ShipmentEventAdmin(admin.ModelAdmin):
    list_display = ("shipment", "sequence", "status", "timestamp", "location", "provider_code", "unmapped", "source")
    list_filter = ("status", "unmapped", "source")
    search_fields = ("shipment__tracking_number", "description", "provider_code")
    ordering = ("-timestamp",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
