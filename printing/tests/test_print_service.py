"""
Print Service Tests

End-to-end printing behaviour on top of real orders and payments: receipt
contents, the PDF fallback, reprints and test pages.
"""
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from core_backend.exceptions import NotFoundError
from core_backend.tests.fixtures import FakeSender
from notifications.models import OutboxEvent
from orders.models import Order
from orders.services import OrderService
from payments.models import Payment
from payments.services import PaymentService
from printing.documents import ReceiptData, ReceiptLine, format_receipt, format_test_page
from printing.fallback import ReceiptPDFSink
from printing.jobs import PrintJobKind
from printing.models import FallbackReceipt
from printing.registry import PrinterRegistry
from printing.services import PrintService, set_print_service


@pytest.fixture
def paid_order(table, noodles, soda, print_service):
    order = OrderService.create_order(
        table.id,
        [{"menu_item_id": noodles.id, "quantity": 2, "notes": "no peanuts"}, {"menu_item_id": soda.id}],
        tip=Decimal("2.00"),
        print_service=print_service,
    )
    OrderService.update_order_status(order.id, Order.OrderStatus.PREPARING)
    payment = PaymentService.process_payment(
        order.id, Decimal("21.00"), Payment.PaymentMethod.CARD, print_service=print_service
    )
    order.refresh_from_db()
    return order, payment


def sample_receipt(**kwargs):
    data = dict(
        order_ids=["5f1c7a5e-1111-4444-8888-000000000001"],
        payment_ids=["9a0c7a5e-2222-4444-8888-000000000002"],
        table_name="T1",
        payment_method="CASH",
        paid_at=datetime(2024, 5, 1, 19, 45, tzinfo=dt_timezone.utc),
        lines=[
            ReceiptLine("Fish & Chips", 2, Decimal("9.50"), notes="<no salt>"),
            ReceiptLine("Soda", 1, Decimal("3.00")),
        ],
        subtotal=Decimal("22.00"),
        tax=Decimal("0.00"),
        discount=Decimal("2.00"),
        service_charge=Decimal("0.00"),
        tip=Decimal("1.00"),
        total=Decimal("21.00"),
        business_name="Test Bistro",
    )
    data.update(kwargs)
    return ReceiptData(**data)


class TestDocuments:
    def test_receipt_lines(self):
        lines = format_receipt(sample_receipt())

        assert lines[0] == "TEST BISTRO"
        assert "  2 x USD 9.50 = USD 19.00" in lines
        assert "  Note: <no salt>" in lines
        assert "Discount: -USD 2.00" in lines
        assert "Tip: USD 1.00" in lines
        assert "TOTAL: USD 21.00" in lines
        assert not any(line.startswith("Service charge") for line in lines)
        assert "Thank you for your visit!" in lines

    def test_merged_receipt_label(self):
        receipt = sample_receipt(order_ids=["aaaaaaaa-1", "bbbbbbbb-2"])
        assert receipt.is_merged
        assert receipt.order_label == "#aaaaaaaa, #bbbbbbbb"
        assert receipt.order_id == "aaaaaaaa-1"

    def test_test_page(self, db, kitchen_printer):
        printer = PrinterRegistry().get(kitchen_printer.id)
        lines = format_test_page(printer)

        assert "TEST PRINT" in lines
        assert "Address: 192.168.1.50:9100" in lines
        assert "If you can read this, your printer is working!" in lines


@pytest.mark.django_db
class TestReceiptData:
    def test_built_from_paid_order(self, global_settings, paid_order):
        order, payment = paid_order
        receipt = ReceiptData.from_orders([order], [payment])

        assert receipt.order_ids == [str(order.id)]
        assert receipt.payment_ids == [str(payment.id)]
        assert receipt.payment_method == "CARD"
        assert receipt.business_name == "Test Bistro"
        assert receipt.tip == Decimal("2.00")
        assert receipt.total == Decimal("21.00")
        assert [(line.name, line.quantity) for line in receipt.lines] == [("Pad Thai", 2), ("Soda", 1)]


@pytest.mark.django_db
class TestFallbackSink:
    def test_writes_pdf_and_records_it(self, tmp_path):
        sink = ReceiptPDFSink(directory=str(tmp_path))
        receipt = sample_receipt()

        path = sink.write(receipt, reason="paper out")

        assert path.exists()
        assert path.read_bytes().startswith(b"%PDF")
        assert path.name.startswith(f"receipt-{receipt.order_id}-")
        record = FallbackReceipt.objects.get()
        assert str(record.order_id) == receipt.order_id
        assert record.payment_ids == receipt.payment_ids
        assert record.reason == "paper out"
        assert record.file_path == str(path)

    def test_creates_missing_directory(self, tmp_path):
        sink = ReceiptPDFSink(directory=str(tmp_path / "nested" / "receipts"))
        assert sink.write(sample_receipt()).exists()


@pytest.mark.django_db
class TestReceiptFailure:
    """
    CRITICAL: a receipt that cannot be printed is never lost

    Business Impact: the guest can still get a copy of their bill
    """

    def test_unprintable_receipt_goes_to_pdf(
        self, paid_order, print_service, fake_sender, receipt_printer, fallback_dir
    ):
        order, payment = paid_order
        fake_sender.always_fail = True
        OutboxEvent.objects.all().delete()

        job = print_service.print_receipt(order, payment)
        print_service.queue.drain()

        assert len(fake_sender.attempts) == 3
        fallback = FallbackReceipt.objects.get()
        assert fallback.order_id == order.id
        assert fallback.payment_ids == [str(payment.id)]
        assert list(fallback_dir.glob("*.pdf")) != []
        errors = OutboxEvent.objects.filter(event_type=OutboxEvent.EventType.PRINTER_ERROR)
        assert errors.count() == 1
        assert errors.get().payload["order_id"] == job.order_id
        assert errors.get().payload["job_kind"] == "customer_receipt"

    def test_payment_survives_printer_failure(self, paid_order, print_service, fake_sender):
        order, payment = paid_order
        fake_sender.always_fail = True

        print_service.print_receipt(order, payment)
        print_service.queue.drain()

        order.refresh_from_db()
        assert order.status == Order.OrderStatus.PAID
        assert Payment.objects.filter(pk=payment.pk).exists()

    def test_reprint_fallback(self, paid_order, print_service, fake_sender, receipt_printer):
        order, payment = paid_order
        fake_sender.always_fail = True
        print_service.print_receipt(order, payment)
        print_service.queue.drain()
        fallback = FallbackReceipt.objects.get()

        fake_sender.always_fail = False
        job = print_service.reprint_fallback(fallback)
        print_service.queue.drain()

        fallback.refresh_from_db()
        assert fallback.reprinted_at is not None
        assert job.kind == PrintJobKind.CUSTOMER_RECEIPT
        assert job.payment_ids == (str(payment.id),)
        assert fake_sender.printed == [job]

    def test_reprint_without_payments(self, db, print_service):
        fallback = FallbackReceipt.objects.create(
            order_id="5f1c7a5e-1111-4444-8888-000000000001", payment_ids=[], file_path="/tmp/x.pdf"
        )
        with pytest.raises(NotFoundError):
            print_service.reprint_fallback(fallback)


@pytest.mark.django_db
class TestTestPage:
    def test_test_page_goes_to_chosen_printer(self, bar_printer, print_service, fake_sender):
        job = print_service.print_test(bar_printer.id)
        print_service.queue.drain()

        assert job.kind == PrintJobKind.TEST
        assert fake_sender.printed[0].printer_name == "Bar"
        assert print_service.registry.get(bar_printer.id).is_connected

    def test_unknown_printer(self, db, print_service):
        with pytest.raises(NotFoundError):
            print_service.print_test(9999)

    def test_status_snapshot(self, kitchen_printer, mains_category, print_service):
        print_service.print_test(kitchen_printer.id)

        status = print_service.status()

        assert status["feature_state"] == "available"
        assert status["printers"][0]["name"] == "Kitchen"
        assert status["printers"][0]["categories"] == [mains_category.id]
        assert len(status["pending"]) == 1
        assert status["stats"]["submitted"] == 1


@pytest.mark.django_db
class TestPrintTestPageCommand:
    def _install(self, sender, tmp_path):
        from unittest.mock import MagicMock

        service = PrintService(
            notifier=MagicMock(),
            fallback_sink=ReceiptPDFSink(directory=str(tmp_path)),
            sender=sender,
            inter_job_delay=0,
            job_timeout=5,
        )
        set_print_service(service)
        return service

    def test_reports_working_printer(self, kitchen_printer, tmp_path):
        self._install(FakeSender(), tmp_path)
        out = StringIO()

        call_command("print_test_page", str(kitchen_printer.id), stdout=out)

        assert "Printer Kitchen is working" in out.getvalue()

    def test_reports_failed_printer(self, kitchen_printer, tmp_path):
        self._install(FakeSender(always_fail=True, retryable=False), tmp_path)

        with pytest.raises(CommandError, match="Test page failed"):
            call_command("print_test_page", str(kitchen_printer.id), stdout=StringIO())

    def test_unknown_printer(self, db, tmp_path):
        self._install(FakeSender(), tmp_path)

        with pytest.raises(CommandError, match="not found"):
            call_command("print_test_page", "9999", stdout=StringIO())
