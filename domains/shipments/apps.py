from django.apps import AppConfig


class ShipmentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "domains.shipments"
    label = "shipments"
    verbose_name = "Shipment tracking"
