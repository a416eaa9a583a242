"""
Print service: turns orders and payments into print jobs and hands them to
the dispatch queue.

One PrintService is owned per process (get_print_service). Order and payment
services accept one as a parameter, so tests and alternative front-ends can
pass their own queue, registry or transport.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

from django.utils import timezone

from core_backend.exceptions import NotFoundError
from notifications.services import Notifier

from .documents import ReceiptData, format_receipt, format_test_page
from .fallback import ReceiptPDFSink
from .jobs import PrintJob, PrintJobKind
from .queue import PrintDispatchQueue
from .registry import PrinterRegistry
from .transports import send_via_escpos

logger = logging.getLogger(__name__)


class PrintService:
    def __init__(
        self,
        queue: Optional[PrintDispatchQueue] = None,
        registry: Optional[PrinterRegistry] = None,
        notifier: Optional[Notifier] = None,
        fallback_sink: Optional[ReceiptPDFSink] = None,
        sender=None,
        clock=None,
        **queue_options,
    ):
        self.registry = registry or PrinterRegistry()
        self.notifier = notifier or Notifier()
        self.fallback_sink = fallback_sink or ReceiptPDFSink()
        self.queue = queue or PrintDispatchQueue.from_settings(
            sender=sender or send_via_escpos,
            notifier=self.notifier,
            fallback_sink=self.fallback_sink,
            clock=clock,
            on_result=self._record_result,
            **queue_options,
        )

    def _record_result(self, job: PrintJob, ok: bool) -> None:
        if job.printer is not None:
            self.registry.mark_connected(job.printer.id, ok)

    def print_kitchen_tickets(self, order) -> List[PrintJob]:
        """Queue one kitchen ticket per station that has items from this order."""
        # Import here to avoid circular imports
        from orders.services.kitchen_service import KitchenService

        if not self.registry.available:
            logger.info(f"Printer routing unavailable, no kitchen tickets for order {order.short_id}")
            return []

        jobs = []
        for printer, lines in KitchenService.build_kitchen_tickets(order, self.registry):
            job = PrintJob(
                kind=PrintJobKind.KITCHEN_TICKET,
                document=lines,
                printer=printer,
                order_id=str(order.id),
            )
            jobs.append(self.queue.submit(job))
        return jobs

    def print_receipt(self, order, payment) -> PrintJob:
        return self._submit_receipt([order.id], [payment])

    def print_merged_receipt(self, orders: Sequence, payments: Sequence) -> PrintJob:
        """A single receipt covering several orders paid together."""
        return self._submit_receipt([order.id for order in orders], payments)

    def print_test(self, printer_id: int) -> PrintJob:
        printer = self.registry.get(printer_id)
        if printer is None:
            raise NotFoundError("Printer", printer_id)
        job = PrintJob(
            kind=PrintJobKind.TEST,
            document=format_test_page(printer),
            printer=printer,
        )
        return self.queue.submit(job)

    def reprint_fallback(self, fallback) -> PrintJob:
        """Send a receipt that previously went to the PDF fallback back to a printer."""
        from payments.models import Payment

        payments = list(Payment.objects.filter(id__in=fallback.payment_ids))
        if not payments:
            raise NotFoundError("Payment", ", ".join(fallback.payment_ids))
        job = self._submit_receipt([payment.order_id for payment in payments], payments)
        fallback.reprinted_at = timezone.now()
        fallback.save(update_fields=["reprinted_at"])
        return job

    def _submit_receipt(self, order_ids: Sequence, payments: Sequence) -> PrintJob:
        from orders.models import Order

        by_id = {
            order.id: order
            for order in Order.objects.filter(id__in=order_ids)
            .select_related("table")
            .prefetch_related("items__menu_item")
        }
        orders = [by_id[order_id] for order_id in order_ids if order_id in by_id]
        if not orders:
            raise NotFoundError("Order", ", ".join(str(order_id) for order_id in order_ids))

        receipt = ReceiptData.from_orders(orders, payments)
        job = PrintJob(
            kind=PrintJobKind.CUSTOMER_RECEIPT,
            document=format_receipt(receipt),
            printer=self.registry.receipt_printer(),
            order_id=receipt.order_id,
            payment_ids=tuple(receipt.payment_ids),
            receipt=receipt,
        )
        return self.queue.submit(job)

    def status(self) -> Dict[str, Any]:
        return {
            "feature_state": self.registry.feature_state.value,
            "printers": [
                {
                    "id": conn.id,
                    "name": conn.name,
                    "transport": conn.transport,
                    "endpoint": conn.endpoint,
                    "categories": sorted(conn.category_ids),
                    "connected": conn.is_connected,
                }
                for conn in self.registry.connections()
            ],
            "pending": self.queue.pending(),
            "scheduled": self.queue.scheduled(),
            "stats": vars(self.queue.stats).copy(),
        }


_print_service: Optional[PrintService] = None
_print_service_lock = threading.Lock()


def get_print_service() -> PrintService:
    """The process-wide PrintService, built on first use."""
    global _print_service
    with _print_service_lock:
        if _print_service is None:
            _print_service = PrintService()
        return _print_service


def set_print_service(service: Optional[PrintService]) -> Optional[PrintService]:
    """Install a PrintService for this process. Returns the one it replaced."""
    global _print_service
    with _print_service_lock:
        previous, _print_service = _print_service, service
        return previous
