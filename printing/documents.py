"""
Plain-text documents for thermal printers, plus the receipt data shared with
the PDF fallback.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from django.utils import timezone

from payments.money import format_money, sum_amounts
from settings.config import app_settings

LINE_WIDTH = 32
RULE = "=" * LINE_WIDTH
THIN_RULE = "-" * LINE_WIDTH


@dataclass
class ReceiptLine:
    name: str
    quantity: int
    unit_price: Decimal
    notes: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class ReceiptData:
    """Everything printed on a customer receipt, detached from the ORM."""

    order_ids: List[str]
    payment_ids: List[str]
    table_name: str
    payment_method: str
    paid_at: datetime
    lines: List[ReceiptLine]
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    service_charge: Decimal
    tip: Decimal
    total: Decimal
    business_name: str = "Restaurant"
    business_address: str = ""
    currency: str = "USD"
    notes: List[str] = field(default_factory=list)

    @property
    def order_id(self) -> str:
        return self.order_ids[0]

    @property
    def is_merged(self) -> bool:
        return len(self.order_ids) > 1

    @property
    def order_label(self) -> str:
        return ", ".join(f"#{order_id[:8]}" for order_id in self.order_ids)

    @classmethod
    def from_orders(cls, orders: Sequence, payments: Sequence) -> "ReceiptData":
        """
        Build receipt data from paid orders. Several orders produce a merged
        receipt with combined totals.
        """
        header = app_settings.get_receipt_header()
        currency = header["currency"]
        lines = []
        notes = []
        for order in orders:
            for item in order.items.all():
                lines.append(
                    ReceiptLine(
                        name=item.menu_item.name,
                        quantity=item.quantity,
                        unit_price=item.price_at_sale,
                        notes=item.notes,
                    )
                )
            if order.notes:
                notes.append(order.notes)

        methods = sorted({payment.method for payment in payments})
        paid_at = max((p.created_at for p in payments if p.created_at), default=None)
        tables = []
        for order in orders:
            if order.table.name not in tables:
                tables.append(order.table.name)

        def combined(attr):
            return sum_amounts(currency, [getattr(order, attr) for order in orders])

        return cls(
            order_ids=[str(order.id) for order in orders],
            payment_ids=[str(payment.id) for payment in payments],
            table_name=", ".join(tables),
            payment_method=", ".join(methods),
            paid_at=paid_at or timezone.now(),
            lines=lines,
            subtotal=combined("subtotal"),
            tax=combined("tax"),
            discount=combined("discount"),
            service_charge=combined("service_charge"),
            tip=combined("tip"),
            total=combined("total"),
            notes=notes,
            **header,
        )


def format_receipt(receipt: ReceiptData) -> List[str]:
    def money(amount):
        return format_money(receipt.currency, amount)

    lines = [receipt.business_name.upper()]
    if receipt.business_address:
        lines.append(receipt.business_address)
    lines += [
        RULE,
        f"Date: {timezone.localtime(receipt.paid_at):%Y-%m-%d %H:%M}",
        f"Order {receipt.order_label}",
        f"Table: {receipt.table_name}",
        f"Payment: {receipt.payment_method}",
        THIN_RULE,
    ]
    for line in receipt.lines:
        lines.append(line.name)
        lines.append(f"  {line.quantity} x {money(line.unit_price)} = {money(line.line_total)}")
        if line.notes:
            lines.append(f"  Note: {line.notes}")
    lines.append(THIN_RULE)

    lines.append(f"Subtotal: {money(receipt.subtotal)}")
    lines.append(f"Tax: {money(receipt.tax)}")
    if receipt.discount:
        lines.append(f"Discount: -{money(receipt.discount)}")
    if receipt.service_charge:
        lines.append(f"Service charge: {money(receipt.service_charge)}")
    if receipt.tip:
        lines.append(f"Tip: {money(receipt.tip)}")
    lines += [RULE, f"TOTAL: {money(receipt.total)}", RULE]

    for note in receipt.notes:
        lines.append(f"Note: {note}")
    lines += ["", "Thank you for your visit!", ""]
    return lines


def format_test_page(printer, printed_at: Optional[datetime] = None) -> List[str]:
    printed_at = printed_at or timezone.now()
    return [
        RULE,
        "TEST PRINT",
        RULE,
        f"Printer: {printer.name}",
        f"Type: {printer.transport}",
        f"Address: {printer.endpoint}",
        f"Time: {timezone.localtime(printed_at):%Y-%m-%d %H:%M:%S}",
        "",
        "If you can read this, your printer is working!",
        "",
    ]
