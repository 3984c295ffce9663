"""
domains/shipments/admin.py 권한 테스트
"""

from django.contrib import admin
from django.test import RequestFactory

import pytest

from domains.shipments.models import Shipment, ShipmentEvent
from tests.factories import create_shipment


@pytest.fixture
def admin_request(user_factory):
    request = RequestFactory().get("/admin/")
    request.user = user_factory(is_staff=True, is_superuser=True)
    return request


@pytest.mark.django_db
class TestAdminPermissions:
    def test_superuser_cannot_delete_shipments(self, admin_request):
        shipment = create_shipment()
        model_admin = admin.site._registry[Shipment]

        assert model_admin.has_delete_permission(admin_request) is False
        assert model_admin.has_delete_permission(admin_request, shipment) is False

    def test_superuser_cannot_touch_history(self, admin_request):
        event = create_shipment().history.get()
        model_admin = admin.site._registry[ShipmentEvent]

        assert model_admin.has_delete_permission(admin_request, event) is False
        assert model_admin.has_change_permission(admin_request, event) is False
        assert model_admin.has_add_permission(admin_request) is False

    def test_bulk_delete_action_is_hidden(self, admin_request):
        actions = admin.site._registry[Shipment].get_actions(admin_request)
        assert "delete_selected" not in actions
