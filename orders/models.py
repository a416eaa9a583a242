import uuid
from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from products.models import Category, MenuItem


class Table(models.Model):
    class TableStatus(models.TextChoices):
        FREE = "FREE", _("Free")
        OCCUPIED = "OCCUPIED", _("Occupied")
        RESERVED = "RESERVED", _("Reserved")

    name = models.CharField(max_length=50, unique=True)
    status = models.CharField(
        max_length=20, choices=TableStatus.choices, default=TableStatus.FREE, db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"Table {self.name} ({self.status})"


class Order(models.Model):
    class OrderStatus(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        PREPARING = "PREPARING", _("Preparing")
        # READY and SERVED only exist on rows written by older releases.
        READY = "READY", _("Ready")
        SERVED = "SERVED", _("Served")
        PAID = "PAID", _("Paid")
        CANCELLED = "CANCELLED", _("Cancelled")

    TERMINAL_STATUSES = (OrderStatus.PAID, OrderStatus.CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    table = models.ForeignKey(Table, on_delete=models.PROTECT, related_name="orders")
    status = models.CharField(
        max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True
    )

    is_buffet = models.BooleanField(default=False)
    buffet_category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="buffet_orders",
    )
    party_size = models.PositiveIntegerField(default=1)

    # Fixed at creation; total = subtotal + tax - discount + service_charge + tip
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    service_charge = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    tip = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["table", "status"], name="order_table_status_idx"),
        ]

    @property
    def is_active(self) -> bool:
        return self.status not in self.TERMINAL_STATUSES

    @property
    def short_id(self) -> str:
        return str(self.id)[:8]

    def __str__(self):
        return f"Order {self.short_id} - {self.table.name} ({self.status})"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey(MenuItem, on_delete=models.PROTECT, related_name="order_items")
    quantity = models.PositiveIntegerField(default=1)
    price_at_sale = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text=_("Unit price recorded when the order was placed. 0.00 when included in a buffet."),
    )
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=1), name="order_item_quantity_positive"),
        ]

    @property
    def total_price(self) -> Decimal:
        return self.price_at_sale * self.quantity

    def __str__(self):
        return f"{self.quantity} x {self.menu_item.name} in Order {self.order.short_id}"
