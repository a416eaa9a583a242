import uuid

from django.db import models
from django.utils.translation import gettext_lazy as _

from orders.models import Order


class Payment(models.Model):
    """
    Settlement of a single Order. Written once by PaymentService and never
    updated or deleted; the one-to-one link is what guarantees an order
    cannot be paid twice.
    """

    class PaymentMethod(models.TextChoices):
        CASH = "CASH", _("Cash")
        CARD = "CARD", _("Card")
        WALLET = "WALLET", _("Wallet")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.OneToOneField(
        Order, on_delete=models.PROTECT, related_name="payment_details"
    )
    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text=_("Amount tendered for the order."),
    )
    method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    reference = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("External reference, e.g. a card terminal transaction id."),
    )
    batch_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text=_("Shared by every payment settled in the same batch."),
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Payment {str(self.id)[:8]} for Order {self.order_id} - {self.method} {self.amount}"
