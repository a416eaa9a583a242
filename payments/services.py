from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
import logging
import uuid

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from core_backend.exceptions import (
    ConflictError,
    DataIntegrityError,
    DuplicatePaymentError,
    NotFoundError,
    ValidationError,
)
from orders.models import Order, OrderItem
from orders.services import OrderService
from settings.config import app_settings

from .models import Payment
from .money import ZERO, quantize, sum_amounts, to_decimal, within_tolerance

logger = logging.getLogger(__name__)


@dataclass
class BatchPaymentResult:
    """
    Outcome of settling several orders at once. Batches are all-or-nothing,
    so after a successful call failed_count is 0 and errors is empty.
    """

    payments: List[Payment] = field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")
    success_count: int = 0
    failed_count: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class SalesReport:
    start: datetime
    end: datetime
    total_revenue: Decimal
    total_orders: int
    average_order_value: Decimal
    # [{"method", "count", "total"}], largest total first
    payment_methods: List[Dict[str, Any]] = field(default_factory=list)
    # [{"date", "revenue", "orders"}] when grouped by day
    daily_breakdown: Optional[List[Dict[str, Any]]] = None


class PaymentService:
    """
    Settles orders. Every payment write, the order's move to PAID and the
    table release happen in one transaction; receipts print after commit and
    a printing failure never touches the payment.
    """

    @staticmethod
    def process_payment(
        order_id,
        amount,
        method: str,
        reference: Optional[str] = None,
        print_service=None,
        notifier=None,
    ) -> Payment:
        """
        Records a payment for one order.

        Raises:
            NotFoundError: the order does not exist
            DuplicatePaymentError: the order already has a payment
            ConflictError: the order's status cannot move to PAID
            ValidationError: bad method, non-numeric amount, or amount differs
                from total by more than 0.01
        """
        PaymentService._validate_method(method)
        amount = to_decimal(amount)
        notifier = notifier or PaymentService._default_notifier()
        try:
            with transaction.atomic():
                order = PaymentService._lock_order(order_id)
                PaymentService._validate_payable(order)
                if not within_tolerance(amount, order.total):
                    raise ValidationError(
                        f"Payment amount {amount} does not match order total {order.total}"
                    )

                payment = PaymentService._settle(order, amount, method, reference, None, notifier)
                transaction.on_commit(
                    lambda: PaymentService._enqueue_receipts([order], [payment], False, print_service)
                )
        except DatabaseError as e:
            logger.error(f"Payment for order {order_id} rolled back: {e}")
            raise DataIntegrityError(f"Could not record the payment: {e}") from e

        logger.info(f"Order {order.short_id} paid: {payment.method} {payment.amount}")
        return payment

    @staticmethod
    def process_batch_payment(
        order_ids: Iterable,
        method: str,
        reference: Optional[str] = None,
        merged_receipt: bool = False,
        print_service=None,
        notifier=None,
    ) -> BatchPaymentResult:
        """
        Pays every listed order in full, typically all open orders of a table.

        Every order is checked before anything is written; one missing, paid
        or unpayable order rejects the whole batch. The combined amount is
        the sum of the order totals.

        Args:
            merged_receipt: print one receipt listing every order instead of one per order
        """
        PaymentService._validate_method(method)
        notifier = notifier or PaymentService._default_notifier()

        unique_ids = list(dict.fromkeys(order_ids))
        if not unique_ids:
            raise ValidationError("A batch payment needs at least one order")

        batch_id = uuid.uuid4()
        try:
            with transaction.atomic():
                # Lock in a fixed order so overlapping batches cannot deadlock
                locked = {
                    order_id: PaymentService._lock_order(order_id)
                    for order_id in sorted(unique_ids, key=str)
                }
                orders = [locked[order_id] for order_id in unique_ids]
                for order in orders:
                    PaymentService._validate_payable(order)

                currency = app_settings.currency
                payments = [
                    PaymentService._settle(order, order.total, method, reference, batch_id, notifier)
                    for order in orders
                ]
                total_amount = sum_amounts(currency, [order.total for order in orders])
                transaction.on_commit(
                    lambda: PaymentService._enqueue_receipts(orders, payments, merged_receipt, print_service)
                )
        except DatabaseError as e:
            logger.error(f"Batch payment {batch_id} rolled back: {e}")
            raise DataIntegrityError(f"Could not record the batch payment: {e}") from e

        logger.info(
            f"Batch payment {batch_id}: {len(payments)} order(s) paid by {method}, total {total_amount}"
        )
        return BatchPaymentResult(
            payments=payments,
            total_amount=total_amount,
            success_count=len(payments),
        )

    @staticmethod
    def get_payment_for_order(order_id) -> Optional[Payment]:
        return (
            Payment.objects.select_related("order", "order__table")
            .filter(order_id=order_id)
            .first()
        )

    # ------------------------------------------------------------------
    # Sales reporting
    # ------------------------------------------------------------------

    @staticmethod
    def get_daily_sales(day: Optional[date] = None) -> Decimal:
        """Payments taken on one local calendar day, today by default."""
        start = PaymentService._start_of_day(day or timezone.localdate())
        return PaymentService._sales_between(start, start + timedelta(days=1))

    @staticmethod
    def get_weekly_sales(day: Optional[date] = None) -> Decimal:
        """Payments taken in the Monday-to-Sunday week containing day."""
        day = day or timezone.localdate()
        start = PaymentService._start_of_day(day - timedelta(days=day.weekday()))
        return PaymentService._sales_between(start, start + timedelta(days=7))

    @staticmethod
    def get_monthly_sales(day: Optional[date] = None) -> Decimal:
        day = day or timezone.localdate()
        first = day.replace(day=1)
        next_month = (first + timedelta(days=32)).replace(day=1)
        return PaymentService._sales_between(
            PaymentService._start_of_day(first), PaymentService._start_of_day(next_month)
        )

    @staticmethod
    def get_sales_report(start: datetime, end: datetime, group_by: Optional[str] = None) -> SalesReport:
        """
        Revenue, payment count, average payment and per-method totals for
        payments taken between start and end, both inclusive.

        Args:
            group_by: "day" adds a per-day breakdown in local dates
        """
        if group_by not in (None, "day"):
            raise ValidationError(f"Unsupported grouping '{group_by}'; use 'day'")
        if start > end:
            raise ValidationError("Report start must not be after its end")

        currency = app_settings.currency
        payments = Payment.objects.filter(created_at__gte=start, created_at__lte=end)

        totals = payments.aggregate(revenue=Sum("amount"), count=Count("id"))
        revenue = quantize(currency, totals["revenue"] or ZERO)
        count = totals["count"]
        average = quantize(currency, revenue / count) if count else ZERO

        by_method = (
            payments.values("method")
            .annotate(count=Count("id"), total=Sum("amount"))
            .order_by("-total", "method")
        )
        report = SalesReport(
            start=start,
            end=end,
            total_revenue=revenue,
            total_orders=count,
            average_order_value=average,
            payment_methods=[
                {
                    "method": row["method"],
                    "count": row["count"],
                    "total": quantize(currency, row["total"]),
                }
                for row in by_method
            ],
        )

        if group_by == "day":
            by_day = (
                payments.annotate(day=TruncDate("created_at"))
                .values("day")
                .annotate(revenue=Sum("amount"), orders=Count("id"))
                .order_by("day")
            )
            report.daily_breakdown = [
                {
                    "date": row["day"].isoformat(),
                    "revenue": quantize(currency, row["revenue"]),
                    "orders": row["orders"],
                }
                for row in by_day
            ]
        return report

    @staticmethod
    def get_top_selling_items(
        limit: int = 10, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Menu items from paid orders ranked by quantity sold. With start and
        end, only orders created in that window count.
        """
        currency = app_settings.currency
        items = OrderItem.objects.filter(order__status=Order.OrderStatus.PAID)
        if start is not None and end is not None:
            items = items.filter(order__created_at__gte=start, order__created_at__lte=end)

        rows = (
            items.values("menu_item_id", "menu_item__name", "menu_item__category__name")
            .annotate(
                quantity=Sum("quantity"),
                revenue=Sum(
                    ExpressionWrapper(
                        F("price_at_sale") * F("quantity"),
                        output_field=DecimalField(max_digits=12, decimal_places=2),
                    )
                ),
            )
            .order_by("-quantity", "menu_item__name")[:limit]
        )
        return [
            {
                "menu_item_id": row["menu_item_id"],
                "name": row["menu_item__name"],
                "category": row["menu_item__category__name"],
                "quantity": row["quantity"],
                "revenue": quantize(currency, row["revenue"] or ZERO),
            }
            for row in rows
        ]

    @staticmethod
    def _start_of_day(day: date) -> datetime:
        return timezone.make_aware(datetime.combine(day, time.min))

    @staticmethod
    def _sales_between(start: datetime, end: datetime) -> Decimal:
        total = Payment.objects.filter(created_at__gte=start, created_at__lt=end).aggregate(
            total=Sum("amount")
        )["total"]
        return quantize(app_settings.currency, total or ZERO)

    @staticmethod
    def _settle(order: Order, amount, method, reference, batch_id, notifier) -> Payment:
        # Caller holds the order row lock inside a transaction
        payment = Payment.objects.create(
            order=order,
            amount=quantize(app_settings.currency, amount),
            method=method,
            reference=reference or "",
            batch_id=batch_id,
        )
        OrderService.transition(order, Order.OrderStatus.PAID, notifier)
        notifier.payment_completed(payment)
        return payment

    @staticmethod
    def _validate_payable(order: Order) -> None:
        if Payment.objects.filter(order_id=order.pk).exists():
            raise DuplicatePaymentError(order.pk)
        if not OrderService.can_transition(order.status, Order.OrderStatus.PAID):
            raise ConflictError(f"Order {order.short_id} is {order.status} and cannot be paid")

    @staticmethod
    def _validate_method(method: str) -> None:
        if method not in Payment.PaymentMethod.values:
            raise ValidationError(f"'{method}' is not a valid payment method.")

    @staticmethod
    def _lock_order(order_id) -> Order:
        try:
            return Order.objects.select_for_update().select_related("table").get(pk=order_id)
        except (Order.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Order", order_id)

    @staticmethod
    def _enqueue_receipts(orders, payments, merged: bool, print_service=None) -> None:
        """Deferred receipt printing - runs after the payment commits"""
        try:
            if print_service is None:
                # Import here to avoid circular imports
                from printing.services import get_print_service

                print_service = get_print_service()
            if merged:
                print_service.print_merged_receipt(orders, payments)
            else:
                for order, payment in zip(orders, payments):
                    print_service.print_receipt(order, payment)
        except Exception as e:
            # Log but don't raise - payment is already committed
            logger.error(f"Failed to queue receipts for {len(payments)} payment(s): {e}")

    @staticmethod
    def _default_notifier():
        from notifications.services import Notifier

        return Notifier()
