from django.db import models


class FallbackReceipt(models.Model):
    """
    A customer receipt that never reached a printer and was saved as a PDF
    instead, so staff can find and reprint it.
    """

    order_id = models.UUIDField(db_index=True)
    payment_ids = models.JSONField(default=list)
    file_path = models.CharField(max_length=500)
    reason = models.TextField(blank=True)
    reprinted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Fallback receipt for order {str(self.order_id)[:8]} at {self.file_path}"
