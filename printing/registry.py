"""
Printer registry: the in-memory view of printer configuration and the
category routing built from it.

Deployments created before printer routing existed have no printer tables.
The registry checks the schema once and reports FeatureState.UNAVAILABLE
instead of probing tables that are not there.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from django.db import connections

logger = logging.getLogger(__name__)


class FeatureState(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass
class PrinterConnection:
    """Connection settings for one printer plus its last known reachability."""

    id: int
    name: str
    transport: str
    address: str = ""
    port: int = 9100
    vendor_id: str = ""
    product_id: str = ""
    serial_device: str = ""
    category_ids: FrozenSet[int] = field(default_factory=frozenset)
    is_receipt_printer: bool = False
    is_connected: bool = False

    @classmethod
    def from_model(cls, printer, category_ids: Iterable[int]) -> "PrinterConnection":
        return cls(
            id=printer.id,
            name=printer.name,
            transport=printer.transport,
            address=printer.address,
            port=printer.port,
            vendor_id=printer.vendor_id,
            product_id=printer.product_id,
            serial_device=printer.serial_device,
            category_ids=frozenset(category_ids),
            is_receipt_printer=printer.is_receipt_printer,
        )

    @property
    def endpoint(self) -> str:
        if self.transport == "network":
            return f"{self.address}:{self.port}"
        if self.transport == "usb":
            return f"usb {self.vendor_id}:{self.product_id}"
        return self.serial_device


class PrinterRegistry:
    def __init__(self, using: str = "default"):
        self.using = using
        self._lock = threading.RLock()
        self._connections: List[PrinterConnection] = []
        self._loaded = False
        self._feature_state: Optional[FeatureState] = None

    @staticmethod
    def required_tables() -> Tuple[str, ...]:
        from settings.models import Printer, PrinterCategoryMapping

        return (Printer._meta.db_table, PrinterCategoryMapping._meta.db_table)

    def check_schema(self) -> FeatureState:
        """Look up whether the printer tables exist in this database."""
        existing = set(connections[self.using].introspection.table_names())
        missing = [table for table in self.required_tables() if table not in existing]
        if missing:
            logger.warning(f"Printer routing unavailable, missing tables: {', '.join(missing)}")
            state = FeatureState.UNAVAILABLE
        else:
            state = FeatureState.AVAILABLE
        with self._lock:
            self._feature_state = state
        return state

    @property
    def feature_state(self) -> FeatureState:
        if self._feature_state is None:
            return self.check_schema()
        return self._feature_state

    @property
    def available(self) -> bool:
        return self.feature_state == FeatureState.AVAILABLE

    def refresh(self) -> List[PrinterConnection]:
        """Reload active printers, ordered by routing priority."""
        if not self.available:
            with self._lock:
                self._connections = []
                self._loaded = True
            return []

        from settings.models import Printer

        printers = (
            Printer.objects.using(self.using)
            .filter(is_active=True)
            .prefetch_related("category_mappings")
            .order_by("sort_order", "id")
        )
        with self._lock:
            previous = {conn.id: conn.is_connected for conn in self._connections}
            loaded = []
            for printer in printers:
                conn = PrinterConnection.from_model(
                    printer, (m.category_id for m in printer.category_mappings.all())
                )
                conn.is_connected = previous.get(conn.id, False)
                loaded.append(conn)
            self._connections = loaded
            self._loaded = True
        logger.info(f"Printer registry loaded {len(loaded)} active printer(s)")
        return list(loaded)

    def connections(self) -> List[PrinterConnection]:
        with self._lock:
            if not self._loaded:
                self.refresh()
            return list(self._connections)

    def get(self, printer_id: int) -> Optional[PrinterConnection]:
        for conn in self.connections():
            if conn.id == printer_id:
                return conn
        return None

    def printer_for_category(self, category_id: int) -> Optional[PrinterConnection]:
        """The first printer, by sort order, responsible for a category."""
        for conn in self.connections():
            if category_id in conn.category_ids:
                return conn
        return None

    def receipt_printer(self) -> Optional[PrinterConnection]:
        printers = self.connections()
        for conn in printers:
            if conn.is_receipt_printer:
                return conn
        return printers[0] if printers else None

    def route(
        self, items: Iterable, category_of: Callable = lambda item: item.menu_item.category_id
    ) -> List[Tuple[PrinterConnection, list]]:
        """
        Group items by responsible printer, in printer order. Items whose
        category has no printer are left out and logged.
        """
        groups: Dict[int, Tuple[PrinterConnection, list]] = {}
        for item in items:
            category_id = category_of(item)
            conn = self.printer_for_category(category_id)
            if conn is None:
                logger.warning(f"No printer assigned for category {category_id}, skipping {item}")
                continue
            groups.setdefault(conn.id, (conn, []))[1].append(item)

        order = {conn.id: index for index, conn in enumerate(self.connections())}
        return sorted(groups.values(), key=lambda group: order.get(group[0].id, 0))

    def mark_connected(self, printer_id: int, connected: bool) -> None:
        with self._lock:
            for conn in self._connections:
                if conn.id == printer_id:
                    if conn.is_connected != connected:
                        logger.info(
                            f"Printer {conn.name} is now {'connected' if connected else 'unreachable'}"
                        )
                    conn.is_connected = connected
                    return
