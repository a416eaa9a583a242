"""
Settings Tests

These tests verify the cached restaurant settings and printer configuration
validation.
"""
import pytest
from django.core.exceptions import ValidationError

from settings.config import app_settings
from settings.models import GlobalSettings, Printer


@pytest.mark.django_db
class TestAppSettings:
    def test_defaults_created_on_first_access(self):
        assert app_settings.business_name == "Restaurant"
        assert app_settings.currency == "USD"
        assert GlobalSettings.objects.count() == 1

    def test_save_reloads_cache(self, global_settings):
        assert app_settings.business_name == "Test Bistro"

        global_settings.business_name = "Night Market"
        global_settings.save()

        assert app_settings.business_name == "Night Market"

    def test_settings_row_is_a_singleton(self, global_settings):
        GlobalSettings(business_name="Second").save()

        assert GlobalSettings.objects.count() == 1
        assert GlobalSettings.load().business_name == "Second"

    def test_receipt_header(self, global_settings):
        assert app_settings.get_receipt_header() == {
            "business_name": "Test Bistro",
            "business_address": "1 Main Street",
            "currency": "USD",
        }

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            app_settings.tax_rate


@pytest.mark.django_db
class TestPrinterValidation:
    def test_network_printer_needs_address(self):
        with pytest.raises(ValidationError):
            Printer(name="Kitchen", transport=Printer.Transport.NETWORK).full_clean()

    def test_usb_printer_needs_ids(self):
        with pytest.raises(ValidationError):
            Printer(name="Counter", transport=Printer.Transport.USB, vendor_id="04b8").full_clean()

    def test_serial_printer_needs_device(self):
        with pytest.raises(ValidationError):
            Printer(name="Bar", transport=Printer.Transport.SERIAL).full_clean()

    def test_valid_network_printer(self):
        Printer(name="Kitchen", transport=Printer.Transport.NETWORK, address="10.0.0.5").full_clean()

    def test_str(self, kitchen_printer):
        assert str(kitchen_printer) == "Kitchen (Network (TCP))"
