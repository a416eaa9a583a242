from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Union
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction

from core_backend.exceptions import (
    ConflictError,
    DataIntegrityError,
    InvalidStatusTransition,
    NotFoundError,
    ValidationError,
)
from orders.calculators import (
    BuffetCategorySnapshot,
    LineInput,
    MenuItemSnapshot,
    OrderPricingCalculator,
    PricingRequest,
)
from orders.models import Order, OrderItem, Table
from products.models import Category, MenuItem
from settings.config import app_settings

logger = logging.getLogger(__name__)


class OrderService:
    """Core service for order lifecycle management - creating orders, status changes, table occupancy."""

    # Valid status transitions for order state machine
    VALID_STATUS_TRANSITIONS = {
        Order.OrderStatus.PENDING: [
            Order.OrderStatus.PREPARING,
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.PREPARING: [
            Order.OrderStatus.PAID,
            Order.OrderStatus.CANCELLED,
        ],
        # READY and SERVED are only reachable from rows written by older releases
        Order.OrderStatus.READY: [
            Order.OrderStatus.PAID,
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.SERVED: [
            Order.OrderStatus.PAID,
        ],
        Order.OrderStatus.PAID: [],
        Order.OrderStatus.CANCELLED: [],
    }

    @staticmethod
    def create_order(
        table_id: int,
        items: Iterable[Union[LineInput, dict]],
        is_buffet: bool = False,
        buffet_category_id: Optional[int] = None,
        party_size: int = 1,
        discount: Decimal = Decimal("0"),
        service_charge: Decimal = Decimal("0"),
        tip: Decimal = Decimal("0"),
        notes: str = "",
        print_service=None,
        notifier=None,
    ) -> Order:
        """
        Prices and stores a new order and occupies its table in one transaction.

        After commit the kitchen tickets are queued for printing. Printing and
        notification failures are logged and never undo the order.

        Args:
            table_id: Table the order is for
            items: LineInput values or dicts with menu_item_id, quantity and notes
            is_buffet: Open (or join) a buffet on the table
            buffet_category_id: Buffet category, required when is_buffet
            party_size: Guests billed at the buffet rate

        Raises:
            ValidationError: unknown table, unknown or unavailable item, bad buffet input
            ConflictError: a different buffet is already running on the table
        """
        lines = [OrderService._to_line(item) for item in items]
        try:
            order = OrderService._create_order_atomic(
                table_id,
                lines,
                is_buffet,
                buffet_category_id,
                party_size,
                discount,
                service_charge,
                tip,
                notes,
                notifier or OrderService._default_notifier(),
                print_service,
            )
        except DatabaseError as e:
            logger.error(f"Order creation for table {table_id} rolled back: {e}")
            raise DataIntegrityError(f"Could not save the order: {e}") from e

        logger.info(
            f"Created order {order.short_id} on table {order.table.name}: "
            f"{len(lines)} line(s), total {order.total}"
        )
        return order

    @staticmethod
    @transaction.atomic
    def _create_order_atomic(
        table_id,
        lines: List[LineInput],
        is_buffet,
        buffet_category_id,
        party_size,
        discount,
        service_charge,
        tip,
        notes,
        notifier,
        print_service,
    ) -> Order:
        # Lock the table so buffet detection and occupancy see a stable picture
        try:
            table = Table.objects.select_for_update().get(pk=table_id)
        except Table.DoesNotExist:
            raise ValidationError(f"Table {table_id} does not exist")

        active_buffet = OrderService.get_active_buffet_order(table.id)

        buffet_category = None
        if is_buffet:
            if buffet_category_id is None:
                raise ValidationError("Buffet orders require a buffet category")
            try:
                category = Category.objects.get(pk=buffet_category_id)
            except Category.DoesNotExist:
                raise ValidationError(f"Category {buffet_category_id} does not exist")
            if active_buffet is not None and active_buffet.buffet_category_id != category.id:
                running = active_buffet.buffet_category
                raise ConflictError(
                    f"Table {table.name} already has an active "
                    f"'{running.name if running else 'unknown'}' buffet"
                )
            buffet_category = BuffetCategorySnapshot.from_model(category)

        menu_item_ids = {line.menu_item_id for line in lines}
        catalog = {
            item.id: MenuItemSnapshot.from_model(item)
            for item in MenuItem.objects.filter(id__in=menu_item_ids)
        }

        result = OrderPricingCalculator(
            PricingRequest(
                lines=lines,
                catalog=catalog,
                is_buffet=is_buffet,
                buffet_category=buffet_category,
                party_size=party_size,
                active_buffet=active_buffet is not None,
                discount=OrderService._to_amount(discount, "discount"),
                service_charge=OrderService._to_amount(service_charge, "service_charge"),
                tip=OrderService._to_amount(tip, "tip"),
                currency=app_settings.currency,
            )
        ).calculate()

        order = Order.objects.create(
            table=table,
            status=Order.OrderStatus.PENDING,
            is_buffet=is_buffet,
            buffet_category_id=buffet_category.id if buffet_category else None,
            party_size=party_size,
            subtotal=result.subtotal,
            tax=result.tax,
            discount=result.discount,
            service_charge=result.service_charge,
            tip=result.tip,
            total=result.total,
            notes=notes,
        )
        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    menu_item_id=line.menu_item_id,
                    quantity=line.quantity,
                    price_at_sale=line.unit_price,
                    notes=line.notes,
                )
                for line in result.lines
            ]
        )

        table_changed = table.status != Table.TableStatus.OCCUPIED
        if table_changed:
            table.status = Table.TableStatus.OCCUPIED
            table.save(update_fields=["status", "updated_at"])

        notifier.order_created(order)
        if table_changed:
            notifier.table_updated(table)

        if result.lines:
            order_id = order.pk
            transaction.on_commit(
                lambda: OrderService._enqueue_kitchen_tickets(order_id, print_service)
            )
        return order

    @staticmethod
    def update_order_status(order_id, new_status: str, notifier=None) -> Order:
        """
        Moves an order along the state machine. Reaching PAID or CANCELLED
        frees the table once no other order on it is still open.
        """
        try:
            with transaction.atomic():
                order = OrderService._lock_order(order_id)
                OrderService.transition(order, new_status, notifier)
        except DatabaseError as e:
            logger.error(f"Status update for order {order_id} rolled back: {e}")
            raise DataIntegrityError(f"Could not update the order: {e}") from e
        return order

    @staticmethod
    def cancel_order(order_id, notifier=None) -> Order:
        """Sets an order's status to CANCELLED. Paid orders can never be cancelled."""
        try:
            with transaction.atomic():
                order = OrderService._lock_order(order_id)
                if order.status == Order.OrderStatus.PAID:
                    raise ConflictError(f"Order {order.short_id} is paid and cannot be cancelled")
                OrderService.transition(order, Order.OrderStatus.CANCELLED, notifier)
        except DatabaseError as e:
            logger.error(f"Cancelling order {order_id} rolled back: {e}")
            raise DataIntegrityError(f"Could not cancel the order: {e}") from e
        return order

    @staticmethod
    def validate_transition(current_status: str, new_status: str) -> None:
        if new_status not in Order.OrderStatus.values:
            raise ValidationError(f"'{new_status}' is not a valid order status.")
        if new_status not in OrderService.VALID_STATUS_TRANSITIONS.get(current_status, []):
            raise InvalidStatusTransition(current_status, new_status)

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        return new_status in OrderService.VALID_STATUS_TRANSITIONS.get(current_status, [])

    @staticmethod
    def transition(order: Order, new_status: str, notifier=None) -> bool:
        """
        Applies a status change to an order the caller has locked, inside the
        caller's transaction. Returns True when the table was released.
        """
        notifier = notifier or OrderService._default_notifier()
        OrderService.validate_transition(order.status, new_status)

        old_status = order.status
        order.status = new_status
        order.save(update_fields=["status", "updated_at"])
        logger.info(f"Order {order.short_id}: {old_status} -> {new_status}")

        table_released = False
        if new_status in Order.TERMINAL_STATUSES:
            table_released = OrderService.release_table_if_idle(order.table)

        if new_status == Order.OrderStatus.CANCELLED:
            notifier.order_cancelled(order.id, order.table_id)
        else:
            notifier.order_updated(order)
        if table_released:
            notifier.table_updated(order.table)
        return table_released

    @staticmethod
    def release_table_if_idle(table: Table) -> bool:
        """
        Sets an occupied table FREE when none of its orders are still open.
        The given instance is locked and updated in place.
        """
        locked = Table.objects.select_for_update().get(pk=table.pk)
        table.status = locked.status
        still_open = (
            Order.objects.filter(table=table)
            .exclude(status__in=Order.TERMINAL_STATUSES)
            .exists()
        )
        if still_open or table.status != Table.TableStatus.OCCUPIED:
            return False

        table.status = Table.TableStatus.FREE
        table.save(update_fields=["status", "updated_at"])
        logger.info(f"Table {table.name} released")
        return True

    @staticmethod
    def get_active_orders(table_id: Optional[int] = None):
        """Orders not yet PAID or CANCELLED, oldest first."""
        orders = (
            Order.objects.exclude(status__in=Order.TERMINAL_STATUSES)
            .select_related("table")
            .prefetch_related("items__menu_item")
            .order_by("created_at")
        )
        if table_id is not None:
            orders = orders.filter(table_id=table_id)
        return orders

    @staticmethod
    def get_active_buffet_order(table_id: int) -> Optional[Order]:
        return (
            Order.objects.filter(table_id=table_id, is_buffet=True)
            .exclude(status__in=Order.TERMINAL_STATUSES)
            .select_related("buffet_category")
            .order_by("created_at")
            .first()
        )

    @staticmethod
    def _lock_order(order_id) -> Order:
        try:
            return Order.objects.select_for_update().select_related("table").get(pk=order_id)
        except (Order.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Order", order_id)

    @staticmethod
    def _to_line(item: Union[LineInput, dict]) -> LineInput:
        if isinstance(item, LineInput):
            return item
        try:
            return LineInput(
                menu_item_id=int(item["menu_item_id"]),
                quantity=int(item.get("quantity", 1)),
                notes=item.get("notes") or "",
            )
        except (KeyError, TypeError, ValueError):
            raise ValidationError(f"Invalid order line: {item!r}")

    @staticmethod
    def _to_amount(value, label: str) -> Decimal:
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Invalid {label.replace('_', ' ')}: {value!r}")

    @staticmethod
    def _enqueue_kitchen_tickets(order_id, print_service=None) -> None:
        try:
            if print_service is None:
                # Import here to avoid circular imports
                from printing.services import get_print_service

                print_service = get_print_service()
            order = Order.objects.select_related("table").get(pk=order_id)
            print_service.print_kitchen_tickets(order)
        except Exception as e:
            logger.error(f"Failed to queue kitchen tickets for order {order_id}: {e}")

    @staticmethod
    def _default_notifier():
        from notifications.services import Notifier

        return Notifier()
