from django.core.exceptions import ValidationError
from django.db import models


class GlobalSettings(models.Model):
    """
    Restaurant-wide settings. A single row; use GlobalSettings.load().
    Printed on receipts, tickets and fallback documents.
    """

    business_name = models.CharField(
        max_length=100,
        default="Restaurant",
        help_text="Name printed at the top of tickets and receipts.",
    )
    business_address = models.CharField(
        max_length=255,
        blank=True,
        help_text="Address line printed under the business name on receipts.",
    )
    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="Three-letter currency code (ISO 4217).",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "global settings"

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls) -> "GlobalSettings":
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj

    def __str__(self):
        return f"Settings for {self.business_name}"


class Printer(models.Model):
    """
    A physical receipt or kitchen printer.
    Only configuration lives here; connections are opened per print job.
    """

    class Transport(models.TextChoices):
        NETWORK = "network", "Network (TCP)"
        USB = "usb", "USB"
        SERIAL = "serial", "Serial"

    name = models.CharField(
        max_length=100,
        unique=True,
        help_text="Display name (e.g., 'Grill Station')",
    )
    transport = models.CharField(
        max_length=20,
        choices=Transport.choices,
        default=Transport.NETWORK,
    )

    # Network configuration
    address = models.CharField(
        max_length=255,
        blank=True,
        help_text="Host name or IP address for network printers",
    )
    port = models.IntegerField(
        default=9100,
        help_text="Port number for printer communication",
    )

    # USB configuration, hex strings as printed by lsusb (e.g. '04b8')
    vendor_id = models.CharField(max_length=6, blank=True)
    product_id = models.CharField(max_length=6, blank=True)

    # Serial configuration
    serial_device = models.CharField(
        max_length=255,
        blank=True,
        help_text="Device path for serial printers (e.g., '/dev/ttyUSB0')",
    )

    categories = models.ManyToManyField(
        "products.Category",
        through="PrinterCategoryMapping",
        related_name="printers",
        blank=True,
        help_text="Menu categories whose kitchen tickets print here",
    )

    is_receipt_printer = models.BooleanField(
        default=False,
        help_text="Customer receipts print here",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this printer is currently active",
    )
    sort_order = models.IntegerField(
        default=0,
        help_text="Routing priority. When two printers claim a category, the lower value wins.",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "id"]

    def clean(self):
        if self.transport == self.Transport.NETWORK and not self.address:
            raise ValidationError({"address": "Network printers need an address."})
        if self.transport == self.Transport.USB and not (self.vendor_id and self.product_id):
            raise ValidationError("USB printers need a vendor id and a product id.")
        if self.transport == self.Transport.SERIAL and not self.serial_device:
            raise ValidationError({"serial_device": "Serial printers need a device path."})

    def __str__(self):
        return f"{self.name} ({self.get_transport_display()})"


class PrinterCategoryMapping(models.Model):
    printer = models.ForeignKey(
        Printer, on_delete=models.CASCADE, related_name="category_mappings"
    )
    category = models.ForeignKey(
        "products.Category", on_delete=models.CASCADE, related_name="printer_mappings"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [["printer", "category"]]
        ordering = ["printer__sort_order", "printer_id", "id"]

    def __str__(self):
        return f"{self.category} -> {self.printer.name}"
