"""
Real-time event publishing through a transactional outbox.

Business services call the Notifier from inside their atomic blocks. Each
call records an OutboxEvent in a savepoint and schedules delivery for after
commit, so a broken channel layer can neither delay nor roll back an order
or a payment. Undelivered events stay PENDING and are retried by
notifications.tasks.deliver_pending_events.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import OutboxEvent

logger = logging.getLogger(__name__)

ORDERS_GROUP = "orders"
TABLES_GROUP = "tables"
KDS_GROUP = "kds"


def table_group(table_id) -> str:
    return f"table_{table_id}"


def convert_payload_to_str(data):
    """
    Recursively converts UUID, Decimal and datetime objects in a data structure to strings.
    This prepares the payload for JSON storage and the channels library.
    """
    if isinstance(data, dict):
        return {k: convert_payload_to_str(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [convert_payload_to_str(elem) for elem in data]
    elif isinstance(data, UUID):
        return str(data)
    elif isinstance(data, Decimal):
        return str(data)
    elif isinstance(data, datetime):
        return data.isoformat()
    return data


class OutboxDispatcher:
    """Delivers recorded events to their channel groups."""

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    def deliver_by_id(self, event_id: int) -> bool:
        try:
            event = OutboxEvent.objects.get(pk=event_id)
        except OutboxEvent.DoesNotExist:
            logger.warning(f"Outbox event {event_id} vanished before delivery")
            return False
        return self.deliver(event)

    def deliver(self, event: OutboxEvent) -> bool:
        """Send one event to every group it names. Returns True once delivered."""
        if event.status == OutboxEvent.DeliveryStatus.DELIVERED:
            return True

        layer = self.channel_layer
        if not layer:
            logger.warning("No channel layer available for notifications")
            return False

        try:
            for group in event.groups:
                async_to_sync(layer.group_send)(
                    group,
                    {
                        "type": "pos.event",
                        "event": event.event_type,
                        "data": event.payload,
                    },
                )
        except Exception as e:
            logger.error(f"Error delivering {event.event_type} event #{event.pk}: {e}")
            OutboxEvent.objects.filter(pk=event.pk).update(
                attempts=F("attempts") + 1, last_error=str(e)[:1000]
            )
            return False

        OutboxEvent.objects.filter(pk=event.pk).update(
            status=OutboxEvent.DeliveryStatus.DELIVERED,
            attempts=F("attempts") + 1,
            delivered_at=timezone.now(),
            last_error="",
        )
        event.status = OutboxEvent.DeliveryStatus.DELIVERED
        logger.debug(f"Delivered {event.event_type} event #{event.pk} to {event.groups}")
        return True

    def deliver_pending(self, limit: int = 100) -> int:
        """Retry undelivered events, oldest first. Returns how many went out."""
        pending = OutboxEvent.objects.filter(
            status=OutboxEvent.DeliveryStatus.PENDING
        ).order_by("id")[:limit]
        return sum(1 for event in list(pending) if self.deliver(event))


class EventOutbox:
    """Records events and schedules their delivery."""

    def __init__(self, dispatcher: Optional[OutboxDispatcher] = None):
        self.dispatcher = dispatcher or OutboxDispatcher()

    def record(
        self, event_type: str, payload: Dict[str, Any], groups: Iterable[str]
    ) -> Optional[OutboxEvent]:
        try:
            # Savepoint, so a failed insert leaves the caller's transaction usable
            with transaction.atomic():
                event = OutboxEvent.objects.create(
                    event_type=event_type,
                    payload=convert_payload_to_str(payload),
                    groups=list(groups),
                )
        except Exception as e:
            logger.error(f"Error recording {event_type} event: {e}")
            return None

        dispatcher = self.dispatcher
        if transaction.get_connection().in_atomic_block:
            logger.debug(f"Still in atomic block, deferring {event_type} delivery")
            transaction.on_commit(lambda: self._deliver_safely(dispatcher, event.pk))
        else:
            self._deliver_safely(dispatcher, event.pk)
        return event

    @staticmethod
    def _deliver_safely(dispatcher: OutboxDispatcher, event_id: int) -> None:
        try:
            dispatcher.deliver_by_id(event_id)
        except Exception as e:
            logger.error(f"Error dispatching outbox event #{event_id}: {e}")


class Notifier:
    """
    Fire-and-forget publisher used by the order, payment and printing services.
    None of its methods raise.
    """

    def __init__(self, outbox: Optional[EventOutbox] = None):
        self.outbox = outbox or EventOutbox()

    def order_created(self, order) -> Optional[OutboxEvent]:
        from orders.serializers import OrderEventSerializer

        return self._publish(
            OutboxEvent.EventType.ORDER_CREATED,
            lambda: OrderEventSerializer(order).data,
            [ORDERS_GROUP, KDS_GROUP, table_group(order.table_id)],
        )

    def order_updated(self, order) -> Optional[OutboxEvent]:
        from orders.serializers import OrderEventSerializer

        return self._publish(
            OutboxEvent.EventType.ORDER_UPDATED,
            lambda: OrderEventSerializer(order).data,
            [ORDERS_GROUP, KDS_GROUP, table_group(order.table_id)],
        )

    def order_cancelled(self, order_id, table_id) -> Optional[OutboxEvent]:
        return self._publish(
            OutboxEvent.EventType.ORDER_CANCELLED,
            lambda: {"order_id": order_id, "table_id": table_id},
            [ORDERS_GROUP, KDS_GROUP, table_group(table_id)],
        )

    def table_updated(self, table) -> Optional[OutboxEvent]:
        from orders.serializers import TableSerializer

        return self._publish(
            OutboxEvent.EventType.TABLE_UPDATED,
            lambda: TableSerializer(table).data,
            [TABLES_GROUP, table_group(table.id)],
        )

    def payment_completed(self, payment) -> Optional[OutboxEvent]:
        from payments.serializers import PaymentEventSerializer

        return self._publish(
            OutboxEvent.EventType.PAYMENT_COMPLETED,
            lambda: PaymentEventSerializer(payment).data,
            [ORDERS_GROUP, table_group(payment.order.table_id)],
        )

    def printer_error(self, message: str, job_kind: str, order_id=None) -> Optional[OutboxEvent]:
        return self._publish(
            OutboxEvent.EventType.PRINTER_ERROR,
            lambda: {"message": message, "job_kind": job_kind, "order_id": order_id},
            [ORDERS_GROUP],
        )

    def _publish(self, event_type: str, build_payload, groups: List[str]) -> Optional[OutboxEvent]:
        try:
            payload = build_payload()
        except Exception as e:
            logger.error(f"Error building {event_type} payload: {e}")
            return None
        return self.outbox.record(event_type, payload, groups)
