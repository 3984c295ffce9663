import uuid
from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models

STATUS_CHOICES = [
    ("Order Created", "Order Created"),
    ("Processing Order", "Processing Order"),
    ("Picked Up", "Picked Up"),
    ("In Transit", "In Transit"),
    ("Out for Delivery", "Out for Delivery"),
    ("Delivered", "Delivered"),
    ("Failed Delivery Attempt", "Failed Delivery Attempt"),
    ("Returned to Sender", "Returned to Sender"),
    ("Cancelled", "Cancelled"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Shipment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("tracking_number", models.CharField(editable=False, max_length=32, unique=True)),
                ("order_id", models.CharField(blank=True, max_length=64)),
                ("nft_id", models.CharField(blank=True, max_length=64)),
                ("seller", models.CharField(db_index=True, max_length=64)),
                ("buyer", models.CharField(db_index=True, max_length=64)),
                ("status", models.CharField(choices=STATUS_CHOICES, default="Order Created", max_length=32)),
                (
                    "provider",
                    models.CharField(
                        choices=[("dhl", "DHL"), ("fedex", "FedEx"), ("ups", "UPS"), ("local", "Local courier")],
                        default="local",
                        max_length=16,
                    ),
                ),
                (
                    "service",
                    models.CharField(
                        choices=[
                            ("express", "Express"),
                            ("priority", "Priority"),
                            ("standard", "Standard"),
                            ("economy", "Economy"),
                        ],
                        default="standard",
                        max_length=16,
                    ),
                ),
                ("estimated_delivery", models.DateTimeField(blank=True, null=True)),
                ("origin", models.JSONField(blank=True, default=dict)),
                ("destination", models.JSONField(blank=True, default=dict)),
                ("weight", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=10)),
                ("dimensions", models.JSONField(blank=True, default=dict)),
                ("value", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=18)),
                ("auto_update", models.BooleanField(default=True)),
                ("delivery_proof", models.JSONField(blank=True, null=True)),
                ("notified_sequence", models.PositiveIntegerField(default=0)),
                ("last_synced_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["buyer", "created_at"], name="shipments_buyer_created_idx"),
                    models.Index(fields=["seller", "created_at"], name="shipments_seller_created_idx"),
                    models.Index(fields=["status", "provider"], name="shipments_status_prov_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ShipmentEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sequence", models.PositiveIntegerField()),
                ("status", models.CharField(choices=STATUS_CHOICES, max_length=32)),
                ("timestamp", models.DateTimeField()),
                ("location", models.CharField(blank=True, max_length=200)),
                ("description", models.TextField(blank=True)),
                ("provider_code", models.CharField(blank=True, max_length=80)),
                ("unmapped", models.BooleanField(default=False)),
                (
                    "source",
                    models.CharField(
                        choices=[("system", "System"), ("internal", "Internal"), ("carrier", "Carrier")],
                        default="internal",
                        max_length=16,
                    ),
                ),
                (
                    "shipment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="shipments.shipment",
                    ),
                ),
            ],
            options={
                "ordering": ["sequence"],
                "constraints": [
                    models.UniqueConstraint(fields=("shipment", "sequence"), name="uq_shipment_event_sequence"),
                ],
            },
        ),
    ]
