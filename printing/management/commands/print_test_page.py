"""
Send a test page to one printer and wait for the result.
"""

from django.core.management.base import BaseCommand, CommandError

from core_backend.exceptions import NotFoundError
from printing.services import get_print_service


class Command(BaseCommand):
    help = "Print a test page to check that a configured printer is reachable"

    def add_arguments(self, parser):
        parser.add_argument("printer_id", type=int, help="Printer id from the printer settings")
        parser.add_argument(
            "--timeout",
            type=float,
            default=60.0,
            help="Seconds to wait for the job, retries included",
        )

    def handle(self, *args, **options):
        service = get_print_service()
        if not service.registry.available:
            raise CommandError("Printer routing is unavailable: the printer tables are missing")

        try:
            job = service.print_test(options["printer_id"])
        except NotFoundError as e:
            raise CommandError(str(e))

        self.stdout.write(f"Sent test page to {job.printer_name} ({job.printer.endpoint})...")
        if not service.queue.wait_idle(timeout=options["timeout"]):
            raise CommandError(f"Timed out after {options['timeout']:g}s, job {job.id} still queued")

        printer = service.registry.get(options["printer_id"])
        if printer is not None and printer.is_connected:
            self.stdout.write(self.style.SUCCESS(f"Printer {printer.name} is working"))
        else:
            raise CommandError(f"Test page failed: {job.last_error or 'printer unreachable'}")
