"""
Orders services package.

- OrderService: order lifecycle (create, status transitions, table occupancy)
- KitchenService: kitchen tickets and per-station routing
"""

from .order_service import OrderService
from .kitchen_service import KitchenService

__all__ = [
    "OrderService",
    "KitchenService",
]
