from typing import List, Tuple
import logging

from django.utils import timezone

from orders.models import Order
from settings.config import app_settings

logger = logging.getLogger(__name__)


class KitchenService:
    """Kitchen ticket formatting and per-station routing."""

    @staticmethod
    def format_kitchen_ticket(order: Order, items, printer_name: str, printed_at=None) -> List[str]:
        """
        Generate a kitchen ticket for one station. Quantities and notes only,
        never prices.
        """
        printed_at = printed_at or timezone.now()

        ticket_lines = [
            app_settings.business_name.upper(),
            f"[{printer_name}]",
            "=" * 32,
            f"Time: {timezone.localtime(printed_at):%H:%M}",
            f"Order #{order.short_id}",
            f"Table: {order.table.name}",
        ]
        if order.is_buffet:
            ticket_lines.append(f"BUFFET x{order.party_size}")
        ticket_lines.append("-" * 32)

        for item in items:
            ticket_lines.append(f"{item.quantity}x {item.menu_item.name}")
            if item.notes:
                ticket_lines.append(f"   Note: {item.notes}")

        if order.notes:
            ticket_lines.append("-" * 32)
            ticket_lines.append(f"Notes: {order.notes}")
        ticket_lines.append("=" * 32)
        ticket_lines.append("")
        return ticket_lines

    @staticmethod
    def build_kitchen_tickets(order: Order, registry) -> List[Tuple[object, List[str]]]:
        """
        One ticket per responsible printer, each listing only the items whose
        category routes to it.
        """
        items = list(order.items.select_related("menu_item").all())
        if not items:
            return []

        tickets = []
        for printer, station_items in registry.route(items):
            tickets.append(
                (printer, KitchenService.format_kitchen_ticket(order, station_items, printer.name))
            )
        if not tickets:
            logger.warning(f"Order {order.short_id} has no items routed to a kitchen printer")
        return tickets
