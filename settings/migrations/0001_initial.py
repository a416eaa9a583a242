import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("products", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="GlobalSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("business_name", models.CharField(default="Restaurant", help_text="Name printed at the top of tickets and receipts.", max_length=100)),
                ("business_address", models.CharField(blank=True, help_text="Address line printed under the business name on receipts.", max_length=255)),
                ("currency", models.CharField(default="USD", help_text="Three-letter currency code (ISO 4217).", max_length=3)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name_plural": "global settings",
            },
        ),
        migrations.CreateModel(
            name="Printer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="Display name (e.g., 'Grill Station')", max_length=100, unique=True)),
                ("transport", models.CharField(choices=[("network", "Network (TCP)"), ("usb", "USB"), ("serial", "Serial")], default="network", max_length=20)),
                ("address", models.CharField(blank=True, help_text="Host name or IP address for network printers", max_length=255)),
                ("port", models.IntegerField(default=9100, help_text="Port number for printer communication")),
                ("vendor_id", models.CharField(blank=True, max_length=6)),
                ("product_id", models.CharField(blank=True, max_length=6)),
                ("serial_device", models.CharField(blank=True, help_text="Device path for serial printers (e.g., '/dev/ttyUSB0')", max_length=255)),
                ("is_receipt_printer", models.BooleanField(default=False, help_text="Customer receipts print here")),
                ("is_active", models.BooleanField(default=True, help_text="Whether this printer is currently active")),
                ("sort_order", models.IntegerField(default=0, help_text="Routing priority. When two printers claim a category, the lower value wins.")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["sort_order", "id"],
            },
        ),
        migrations.CreateModel(
            name="PrinterCategoryMapping",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("category", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="printer_mappings", to="products.category")),
                ("printer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="category_mappings", to="settings.printer")),
            ],
            options={
                "ordering": ["printer__sort_order", "printer_id", "id"],
                "unique_together": {("printer", "category")},
            },
        ),
        migrations.AddField(
            model_name="printer",
            name="categories",
            field=models.ManyToManyField(blank=True, help_text="Menu categories whose kitchen tickets print here", related_name="printers", through="settings.PrinterCategoryMapping", to="products.category"),
        ),
    ]
