"""
ESC/POS Transport Tests

The python-escpos device classes are patched out; these tests check which
device is opened, what is written, and that every connection is closed.
"""
from unittest.mock import MagicMock, patch

import pytest

from core_backend.exceptions import PrinterError, PrinterNotConfiguredError
from printing.jobs import PrintJob, PrintJobKind
from printing.registry import PrinterConnection
from printing.transports import EscposTransport, send_via_escpos


def network_printer(**kwargs):
    options = dict(id=1, name="Kitchen", transport="network", address="192.168.1.50", port=9100)
    options.update(kwargs)
    return PrinterConnection(**options)


def job_for(printer, lines=("1x Pad Thai",)):
    return PrintJob(kind=PrintJobKind.KITCHEN_TICKET, document=list(lines), printer=printer, order_id="o1")


class TestEscposTransport:
    @patch("printing.transports.Network")
    def test_network_job_prints_and_closes(self, network_cls):
        device = network_cls.return_value

        send_via_escpos(job_for(network_printer(), ["line one", "line two"]))

        network_cls.assert_called_once_with("192.168.1.50", port=9100, timeout=10)
        device.text.assert_called_once_with("line one\nline two\n")
        device.cut.assert_called_once()
        device.close.assert_called_once()

    @patch("printing.transports.Network")
    def test_network_port_defaults_to_9100(self, network_cls):
        send_via_escpos(job_for(network_printer(port=0)))

        network_cls.assert_called_once_with("192.168.1.50", port=9100, timeout=10)

    @patch("printing.transports.Network")
    def test_job_deadline_bounds_the_socket_timeout(self, network_cls):
        job = job_for(network_printer())
        job.deadline = 2.5

        send_via_escpos(job)

        network_cls.assert_called_once_with("192.168.1.50", port=9100, timeout=2.5)

    @patch("printing.transports.Usb")
    def test_usb_ids_are_hex(self, usb_cls):
        printer = PrinterConnection(id=2, name="Counter", transport="usb", vendor_id="04b8", product_id="0202")

        send_via_escpos(job_for(printer))

        usb_cls.assert_called_once_with(0x04B8, 0x0202)

    @patch("printing.transports.Serial")
    def test_serial_device(self, serial_cls):
        printer = PrinterConnection(id=3, name="Bar", transport="serial", serial_device="/dev/ttyUSB0")

        send_via_escpos(job_for(printer))

        serial_cls.assert_called_once_with(devfile="/dev/ttyUSB0", timeout=10)

    @patch("printing.transports.Network")
    def test_device_error_is_retryable_and_connection_closed(self, network_cls):
        """
        CRITICAL: a failed job never leaves its connection open
        """
        device = network_cls.return_value
        device.text.side_effect = OSError("Broken pipe")

        with pytest.raises(PrinterError) as exc_info:
            send_via_escpos(job_for(network_printer()))

        assert exc_info.value.retryable
        assert "192.168.1.50:9100" in str(exc_info.value)
        device.close.assert_called_once()

    @patch("printing.transports.Network")
    def test_connect_error_is_retryable(self, network_cls):
        network_cls.side_effect = ConnectionRefusedError("refused")

        with pytest.raises(PrinterError) as exc_info:
            send_via_escpos(job_for(network_printer()))

        assert exc_info.value.retryable

    @patch("printing.transports.Network")
    def test_close_error_is_logged_not_raised(self, network_cls, caplog):
        network_cls.return_value.close.side_effect = OSError("already closed")

        send_via_escpos(job_for(network_printer()))

        assert "Error closing connection to Kitchen" in caplog.text

    def test_missing_printer_is_not_retryable(self):
        job = PrintJob(kind=PrintJobKind.CUSTOMER_RECEIPT, document=["x"], order_id="o1")

        with pytest.raises(PrinterNotConfiguredError) as exc_info:
            send_via_escpos(job)
        assert exc_info.value.retryable is False

    def test_network_printer_without_address(self):
        with pytest.raises(PrinterNotConfiguredError, match="no network address"):
            send_via_escpos(job_for(network_printer(address="")))

    def test_invalid_usb_ids(self):
        printer = PrinterConnection(id=2, name="Counter", transport="usb", vendor_id="zz", product_id="0202")
        with pytest.raises(PrinterNotConfiguredError, match="invalid USB ids"):
            send_via_escpos(job_for(printer))

    def test_unknown_transport(self):
        with pytest.raises(PrinterNotConfiguredError, match="unsupported transport"):
            send_via_escpos(job_for(network_printer(transport="bluetooth")))

    def test_close_is_idempotent(self):
        transport = EscposTransport(network_printer())
        transport.device = MagicMock()
        transport.close()
        transport.close()
        assert transport.device is None
