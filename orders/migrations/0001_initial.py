import uuid
from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("products", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Table",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50, unique=True)),
                ("status", models.CharField(choices=[("FREE", "Free"), ("OCCUPIED", "Occupied"), ("RESERVED", "Reserved")], db_index=True, default="FREE", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("PREPARING", "Preparing"), ("READY", "Ready"), ("SERVED", "Served"), ("PAID", "Paid"), ("CANCELLED", "Cancelled")], db_index=True, default="PENDING", max_length=20)),
                ("is_buffet", models.BooleanField(default=False)),
                ("party_size", models.PositiveIntegerField(default=1)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("tax", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("service_charge", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("tip", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("buffet_category", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="buffet_orders", to="products.category")),
                ("table", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="orders", to="orders.table")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["table", "status"], name="order_table_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("price_at_sale", models.DecimalField(decimal_places=2, help_text="Unit price recorded when the order was placed. 0.00 when included in a buffet.", max_digits=10)),
                ("notes", models.TextField(blank=True)),
                ("menu_item", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="order_items", to="products.menuitem")),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="orders.order")),
            ],
            options={
                "ordering": ["id"],
                "constraints": [models.CheckConstraint(condition=models.Q(("quantity__gte", 1)), name="order_item_quantity_positive")],
            },
        ),
    ]
