import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from .documents import ReceiptData
    from .registry import PrinterConnection


class PrintJobKind(str, Enum):
    KITCHEN_TICKET = "kitchen_ticket"
    CUSTOMER_RECEIPT = "customer_receipt"
    TEST = "test"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


JOB_ID_PREFIX = {
    PrintJobKind.KITCHEN_TICKET: "kitchen",
    PrintJobKind.CUSTOMER_RECEIPT: "receipt",
    PrintJobKind.TEST: "test",
}


@dataclass
class PrintJob:
    """
    One document bound for one printer. Lives only in the dispatch queue:
    dropped on success, re-queued with a delay on a retryable failure.
    """

    kind: PrintJobKind
    document: List[str]
    printer: Optional["PrinterConnection"] = None
    order_id: Optional[str] = None
    payment_ids: Tuple[str, ...] = ()
    # Source data for the fallback PDF when a customer receipt never prints
    receipt: Optional["ReceiptData"] = None
    retries: int = 0
    max_retries: Optional[int] = None
    deadline: Optional[float] = None
    last_error: str = ""
    id: str = field(default="")

    def __post_init__(self):
        if not self.id:
            reference = self.order_id or (self.printer.id if self.printer else "none")
            stamp = int(time.time() * 1000)
            self.id = f"{JOB_ID_PREFIX[self.kind]}-{reference}-{stamp}-{uuid.uuid4().hex[:6]}"

    @property
    def printer_name(self) -> str:
        return self.printer.name if self.printer else "unassigned"
