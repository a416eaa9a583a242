"""
ESC/POS transport. A device handle is opened for each job and closed when
the job ends, so a printer that went away never leaves a stale socket
behind for the next job.
"""

import logging
from typing import List

from django.conf import settings
from escpos.printer import Network, Serial, Usb

from core_backend.exceptions import PrinterError, PrinterNotConfiguredError

from .jobs import PrintJob
from .registry import PrinterConnection

logger = logging.getLogger(__name__)

NETWORK_TIMEOUT = 10


class EscposTransport:
    def __init__(self, printer: PrinterConnection, timeout: float = NETWORK_TIMEOUT):
        self.printer = printer
        self.timeout = timeout
        self.device = None

    def open(self):
        conn = self.printer
        if conn.transport == "network":
            if not conn.address:
                raise PrinterNotConfiguredError(f"Printer {conn.name} has no network address")
            port = conn.port or settings.POS_PRINTING["DEFAULT_NETWORK_PORT"]
            self.device = Network(conn.address, port=port, timeout=self.timeout)
        elif conn.transport == "usb":
            try:
                vendor, product = int(conn.vendor_id, 16), int(conn.product_id, 16)
            except ValueError:
                raise PrinterNotConfiguredError(
                    f"Printer {conn.name} has invalid USB ids {conn.vendor_id!r}:{conn.product_id!r}"
                )
            self.device = Usb(vendor, product)
        elif conn.transport == "serial":
            if not conn.serial_device:
                raise PrinterNotConfiguredError(f"Printer {conn.name} has no serial device")
            self.device = Serial(devfile=conn.serial_device, timeout=self.timeout)
        else:
            raise PrinterNotConfiguredError(
                f"Printer {conn.name} uses unsupported transport {conn.transport!r}"
            )
        logger.debug(f"Opened {conn.transport} connection to {conn.name} ({conn.endpoint})")
        return self

    def print_lines(self, lines: List[str]) -> None:
        self.device.text("\n".join(lines) + "\n")
        self.device.cut()

    def close(self) -> None:
        if self.device is None:
            return
        try:
            self.device.close()
        except Exception as e:
            logger.warning(f"Error closing connection to {self.printer.name}: {e}")
        finally:
            self.device = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def send_via_escpos(job: PrintJob) -> None:
    """Default sender for the dispatch queue."""
    if job.printer is None:
        raise PrinterNotConfiguredError(f"No printer available for {job.kind.label} {job.id}")
    try:
        with EscposTransport(job.printer, timeout=job.deadline or NETWORK_TIMEOUT) as transport:
            transport.print_lines(job.document)
    except PrinterError:
        raise
    except Exception as e:
        raise PrinterError(f"{job.printer.name} ({job.printer.endpoint}): {e}") from e
