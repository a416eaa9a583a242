"""
Printer Registry Tests

These tests verify category routing, receipt printer selection and the
schema check that switches printer routing off on older databases.
"""
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from django.db import connections

from printing.registry import FeatureState, PrinterConnection, PrinterRegistry
from printing.services import set_print_service
from settings.models import Printer


def item(name, category_id):
    return SimpleNamespace(name=name, menu_item=SimpleNamespace(category_id=category_id))


@pytest.mark.django_db
class TestSchemaCheck:
    def test_available_when_tables_exist(self):
        registry = PrinterRegistry()
        assert registry.feature_state == FeatureState.AVAILABLE
        assert registry.available

    def test_unavailable_when_tables_missing(self, kitchen_printer, caplog):
        """
        CRITICAL: a database without printer tables disables routing
        instead of failing every order
        """
        introspection = connections["default"].introspection
        with patch.object(introspection, "table_names", return_value=["orders_order"]):
            registry = PrinterRegistry()
            assert registry.check_schema() == FeatureState.UNAVAILABLE

        assert not registry.available
        assert registry.refresh() == []
        assert registry.printer_for_category(kitchen_printer.categories.first().id) is None
        assert "missing tables" in caplog.text

    def test_state_is_checked_once(self):
        registry = PrinterRegistry()
        introspection = connections["default"].introspection
        with patch.object(introspection, "table_names", wraps=introspection.table_names) as spy:
            registry.feature_state
            registry.feature_state
            registry.available
        assert spy.call_count == 1

    def test_no_kitchen_tickets_when_unavailable(self, table, noodles, kitchen_printer, print_service):
        from orders.services import OrderService

        order = OrderService.create_order(table.id, [{"menu_item_id": noodles.id}], print_service=print_service)
        with patch.object(connections["default"].introspection, "table_names", return_value=[]):
            assert print_service.print_kitchen_tickets(order) == []

        assert print_service.queue.pending() == []
        assert print_service.status()["feature_state"] == "unavailable"


@pytest.mark.django_db
class TestRouting:
    def test_printers_load_in_priority_order(self, bar_printer, kitchen_printer, receipt_printer):
        names = [conn.name for conn in PrinterRegistry().connections()]
        assert names == ["Kitchen", "Bar", "Front Counter"]

    def test_inactive_printers_are_ignored(self, kitchen_printer, mains_category):
        kitchen_printer.is_active = False
        kitchen_printer.save()

        registry = PrinterRegistry()
        assert registry.connections() == []
        assert registry.printer_for_category(mains_category.id) is None

    def test_category_lookup(self, kitchen_printer, bar_printer, mains_category, drinks_category):
        registry = PrinterRegistry()
        assert registry.printer_for_category(mains_category.id).name == "Kitchen"
        assert registry.printer_for_category(drinks_category.id).name == "Bar"
        assert registry.printer_for_category(9999) is None

    def test_route_groups_items_by_printer(self, kitchen_printer, bar_printer, mains_category, drinks_category):
        registry = PrinterRegistry()
        groups = registry.route(
            [
                item("beer", drinks_category.id),
                item("noodles", mains_category.id),
                item("curry", mains_category.id),
                item("mystery", 9999),
            ]
        )

        assert [(printer.name, [i.name for i in items]) for printer, items in groups] == [
            ("Kitchen", ["noodles", "curry"]),
            ("Bar", ["beer"]),
        ]

    def test_route_with_custom_category_lookup(self, kitchen_printer, mains_category):
        groups = PrinterRegistry().route([mains_category.id], category_of=lambda category_id: category_id)
        assert groups[0][1] == [mains_category.id]

    def test_receipt_printer_preferred(self, kitchen_printer, receipt_printer):
        assert PrinterRegistry().receipt_printer().name == "Front Counter"

    def test_receipt_falls_back_to_first_printer(self, bar_printer, kitchen_printer):
        assert PrinterRegistry().receipt_printer().name == "Kitchen"

    def test_no_receipt_printer_configured(self, db):
        assert PrinterRegistry().receipt_printer() is None


@pytest.mark.django_db
class TestConnectionState:
    def test_mark_connected_survives_refresh(self, kitchen_printer):
        registry = PrinterRegistry()
        registry.connections()
        registry.mark_connected(kitchen_printer.id, True)

        registry.refresh()

        assert registry.get(kitchen_printer.id).is_connected

    def test_endpoints(self):
        network = PrinterConnection(id=1, name="A", transport="network", address="10.0.0.5", port=9100)
        usb = PrinterConnection(id=2, name="B", transport="usb", vendor_id="04b8", product_id="0202")
        serial = PrinterConnection(id=3, name="C", transport="serial", serial_device="/dev/ttyUSB0")

        assert network.endpoint == "10.0.0.5:9100"
        assert usb.endpoint == "usb 04b8:0202"
        assert serial.endpoint == "/dev/ttyUSB0"


@pytest.mark.django_db
class TestRegistryRefreshSignals:
    """Saving printer configuration reloads the live registry after commit"""

    def test_new_printer_appears_after_commit(
        self, mains_category, print_service, django_capture_on_commit_callbacks
    ):
        set_print_service(print_service)
        assert print_service.registry.connections() == []

        with django_capture_on_commit_callbacks(execute=True):
            printer = Printer.objects.create(name="Grill", address="192.168.1.60")
            printer.categories.add(mains_category)

        assert print_service.registry.printer_for_category(mains_category.id).name == "Grill"

    def test_deleted_printer_disappears(
        self, kitchen_printer, print_service, django_capture_on_commit_callbacks
    ):
        set_print_service(print_service)
        assert len(print_service.registry.connections()) == 1

        with django_capture_on_commit_callbacks(execute=True):
            kitchen_printer.categories.clear()
            kitchen_printer.delete()

        assert print_service.registry.connections() == []
