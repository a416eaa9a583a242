from django.db import models


class OutboxEvent(models.Model):
    """
    An event recorded alongside the business write that produced it and
    delivered to real-time subscribers after commit.
    """

    class EventType(models.TextChoices):
        ORDER_CREATED = "order:created", "Order created"
        ORDER_UPDATED = "order:updated", "Order updated"
        ORDER_CANCELLED = "order:cancelled", "Order cancelled"
        TABLE_UPDATED = "table:updated", "Table updated"
        PAYMENT_COMPLETED = "payment:completed", "Payment completed"
        PRINTER_ERROR = "printer:error", "Printer error"

    class DeliveryStatus(models.TextChoices):
        PENDING = "PENDING", "Pending"
        DELIVERED = "DELIVERED", "Delivered"

    event_type = models.CharField(max_length=40, choices=EventType.choices)
    payload = models.JSONField(default=dict)
    groups = models.JSONField(default=list, help_text="Channel groups the event fans out to")
    status = models.CharField(
        max_length=20,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.PENDING,
        db_index=True,
    )
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.event_type} #{self.pk} ({self.status})"
