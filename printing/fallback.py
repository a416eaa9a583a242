"""
PDF fallback for customer receipts that could not be printed.
"""

import io
import logging
import time
from pathlib import Path
from typing import Optional
from xml.sax.saxutils import escape

from django.conf import settings
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from payments.money import format_money

from .documents import ReceiptData
from .models import FallbackReceipt

logger = logging.getLogger(__name__)

# 80 mm roll paper
PAGE_WIDTH = 80 * mm
MARGIN = 4 * mm


def _para(text, style) -> Paragraph:
    # Paragraph parses markup; menu names may contain "&" or "<"
    return Paragraph(escape(str(text)), style)


class ReceiptPDFSink:
    """Writes receipts as 80 mm wide PDFs and records them for staff."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory or settings.POS_PRINTING["FALLBACK_DIR"])

    def write(self, receipt: ReceiptData, reason: str = "") -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"receipt-{receipt.order_id}-{int(time.time() * 1000)}.pdf"
        path.write_bytes(self.render(receipt))

        FallbackReceipt.objects.create(
            order_id=receipt.order_id,
            payment_ids=list(receipt.payment_ids),
            file_path=str(path),
            reason=reason,
        )
        logger.info(f"Saved fallback receipt for order {receipt.order_id} to {path}")
        return path

    def render(self, receipt: ReceiptData) -> bytes:
        output = io.BytesIO()
        # Long enough for every line; thermal receipts have no page breaks.
        height = max(120 * mm, (len(receipt.lines) * 2 + 30) * 6 * mm)
        doc = SimpleDocTemplate(
            output,
            pagesize=(PAGE_WIDTH, height),
            leftMargin=MARGIN,
            rightMargin=MARGIN,
            topMargin=MARGIN,
            bottomMargin=MARGIN,
            title=f"Receipt {receipt.order_label}",
        )

        styles = getSampleStyleSheet()
        styles.add(
            ParagraphStyle(
                name="ReceiptTitle",
                parent=styles["Title"],
                alignment=TA_CENTER,
                fontSize=12,
                spaceAfter=2,
            )
        )
        styles.add(
            ParagraphStyle(
                name="ReceiptSmall",
                parent=styles["Normal"],
                fontSize=7,
                leading=9,
            )
        )
        small = styles["ReceiptSmall"]

        def money(amount):
            return format_money(receipt.currency, amount)

        story = [_para(receipt.business_name, styles["ReceiptTitle"])]
        if receipt.business_address:
            story.append(_para(receipt.business_address, small))
        story += [
            Spacer(1, 2 * mm),
            _para(f"Date: {timezone.localtime(receipt.paid_at):%Y-%m-%d %H:%M}", small),
            _para(f"Order {receipt.order_label}", small),
            _para(f"Table: {receipt.table_name}", small),
            _para(f"Payment: {receipt.payment_method}", small),
            Spacer(1, 2 * mm),
        ]

        rows = []
        for line in receipt.lines:
            rows.append([
                _para(f"{line.quantity} x {line.name}", small),
                money(line.line_total),
            ])
            if line.notes:
                rows.append([_para(f"Note: {line.notes}", small), ""])
        if rows:
            items_table = Table(rows, colWidths=[PAGE_WIDTH - 2 * MARGIN - 22 * mm, 22 * mm])
            items_table.setStyle(
                TableStyle([
                    ("FONTSIZE", (0, 0), (-1, -1), 7),
                    ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("LINEBELOW", (0, -1), (-1, -1), 0.5, colors.black),
                ])
            )
            story.append(items_table)

        totals = [
            ["Subtotal", money(receipt.subtotal)],
            ["Tax", money(receipt.tax)],
        ]
        if receipt.discount:
            totals.append(["Discount", f"-{money(receipt.discount)}"])
        if receipt.service_charge:
            totals.append(["Service charge", money(receipt.service_charge)])
        if receipt.tip:
            totals.append(["Tip", money(receipt.tip)])
        totals.append(["TOTAL", money(receipt.total)])

        totals_table = Table(totals, colWidths=[PAGE_WIDTH - 2 * MARGIN - 22 * mm, 22 * mm])
        totals_table.setStyle(
            TableStyle([
                ("FONTSIZE", (0, 0), (-1, -1), 7),
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("LINEABOVE", (0, -1), (-1, -1), 0.5, colors.black),
            ])
        )
        story += [Spacer(1, 2 * mm), totals_table, Spacer(1, 4 * mm)]

        for note in receipt.notes:
            story.append(_para(f"Note: {note}", small))
        story.append(_para("Thank you for your visit!", styles["ReceiptTitle"]))

        doc.build(story)
        return output.getvalue()
