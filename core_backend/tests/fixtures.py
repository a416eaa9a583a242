"""
Shared test fixtures for all backend tests.

This module provides reusable pytest fixtures for common test objects
like tables, menu items, printers and a print service wired to fakes.
"""
import pytest
from decimal import Decimal

from core_backend.exceptions import PrinterError
from notifications.services import Notifier
from orders.models import Table
from printing.fallback import ReceiptPDFSink
from printing.registry import PrinterRegistry
from printing.services import PrintService
from products.models import Category, MenuItem
from settings.models import GlobalSettings, Printer


# ============================================================================
# PRINTING FAKES
# ============================================================================

class FakeClock:
    """Clock whose sleep() advances time instantly."""

    def __init__(self, start=1000.0):
        self.current = start
        self.sleeps = []

    def now(self):
        return self.current

    def sleep(self, seconds):
        if seconds > 0:
            self.sleeps.append(seconds)
            self.current += seconds


class FakeSender:
    """
    Stands in for the ESC/POS transport. Fails the first `fail_times` calls
    (or every call when fail_times is None and always_fail is set).
    """

    def __init__(self, fail_times=0, always_fail=False, retryable=True):
        self.fail_times = fail_times
        self.always_fail = always_fail
        self.retryable = retryable
        self.attempts = []
        self.printed = []

    def __call__(self, job):
        self.attempts.append(job.id)
        if self.always_fail or len(self.attempts) <= self.fail_times:
            raise PrinterError("connect ECONNREFUSED", retryable=self.retryable)
        self.printed.append(job)


# ============================================================================
# SETTINGS FIXTURES
# ============================================================================

@pytest.fixture
def global_settings(db):
    """Restaurant settings printed on tickets and receipts"""
    return GlobalSettings.objects.create(
        business_name="Test Bistro",
        business_address="1 Main Street",
        currency="USD",
    )


# ============================================================================
# TABLE FIXTURES
# ============================================================================

@pytest.fixture
def table(db):
    return Table.objects.create(name="T1")


@pytest.fixture
def other_table(db):
    return Table.objects.create(name="T2")


# ============================================================================
# MENU FIXTURES
# ============================================================================

@pytest.fixture
def mains_category(db):
    return Category.objects.create(name="Mains", sort_order=1)


@pytest.fixture
def drinks_category(db):
    return Category.objects.create(name="Drinks", sort_order=2)


@pytest.fixture
def buffet_category(db):
    """All-you-can-eat at 25.00 per person"""
    return Category.objects.create(
        name="Dinner Buffet", is_buffet=True, buffet_price=Decimal("25.00"), sort_order=0
    )


@pytest.fixture
def other_buffet_category(db):
    return Category.objects.create(
        name="Lunch Buffet", is_buffet=True, buffet_price=Decimal("15.00"), sort_order=0
    )


@pytest.fixture
def premium_drink(drinks_category):
    """Always billed, even inside a buffet"""
    return MenuItem.objects.create(
        category=drinks_category, name="Craft Beer", price=Decimal("5.00"), always_priced=True
    )


@pytest.fixture
def soda(drinks_category):
    return MenuItem.objects.create(
        category=drinks_category, name="Soda", price=Decimal("3.00"), always_priced=True
    )


@pytest.fixture
def noodles(mains_category):
    return MenuItem.objects.create(
        category=mains_category, name="Pad Thai", price=Decimal("8.00")
    )


@pytest.fixture
def curry(mains_category):
    return MenuItem.objects.create(
        category=mains_category, name="Green Curry", price=Decimal("12.00")
    )


@pytest.fixture
def sold_out_item(mains_category):
    return MenuItem.objects.create(
        category=mains_category, name="Soft Shell Crab", price=Decimal("18.00"), available=False
    )


# ============================================================================
# PRINTER FIXTURES
# ============================================================================

@pytest.fixture
def kitchen_printer(mains_category):
    printer = Printer.objects.create(
        name="Kitchen", transport=Printer.Transport.NETWORK, address="192.168.1.50", sort_order=0
    )
    printer.categories.add(mains_category)
    return printer


@pytest.fixture
def bar_printer(drinks_category):
    printer = Printer.objects.create(
        name="Bar", transport=Printer.Transport.NETWORK, address="192.168.1.51", sort_order=1
    )
    printer.categories.add(drinks_category)
    return printer


@pytest.fixture
def receipt_printer(db):
    return Printer.objects.create(
        name="Front Counter",
        transport=Printer.Transport.USB,
        vendor_id="04b8",
        product_id="0202",
        is_receipt_printer=True,
        sort_order=5,
    )


# ============================================================================
# PRINT SERVICE FIXTURES
# ============================================================================

@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_sender():
    return FakeSender()


@pytest.fixture
def fallback_dir(tmp_path):
    return tmp_path / "receipts"


@pytest.fixture
def print_service(db, fake_sender, fake_clock, fallback_dir):
    """
    PrintService on fakes. The queue never starts a worker thread;
    tests call print_service.queue.drain() to run it.
    """
    return PrintService(
        registry=PrinterRegistry(),
        notifier=Notifier(),
        fallback_sink=ReceiptPDFSink(directory=str(fallback_dir)),
        sender=fake_sender,
        clock=fake_clock,
        autostart=False,
        inter_job_delay=0.5,
        job_timeout=None,
    )
