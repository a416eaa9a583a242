import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, help_text="Amount tendered for the order.", max_digits=10)),
                ("method", models.CharField(choices=[("CASH", "Cash"), ("CARD", "Card"), ("WALLET", "Wallet")], max_length=20)),
                ("reference", models.CharField(blank=True, help_text="External reference, e.g. a card terminal transaction id.", max_length=255)),
                ("batch_id", models.UUIDField(blank=True, db_index=True, help_text="Shared by every payment settled in the same batch.", null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("order", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="payment_details", to="orders.order")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
