import json
import logging
from urllib.parse import parse_qs

from channels.generic.websocket import AsyncWebsocketConsumer
from django.utils import timezone

from .services import KDS_GROUP, ORDERS_GROUP, TABLES_GROUP, table_group

logger = logging.getLogger(__name__)

ROOMS = {ORDERS_GROUP, TABLES_GROUP, KDS_GROUP}


class POSEventConsumer(AsyncWebsocketConsumer):
    """
    WebSocket consumer for order, table, payment and printer events.

    Clients pick their rooms in the query string:
        ws/pos/?rooms=orders,kds&table=12
    """

    async def connect(self):
        query_params = parse_qs(self.scope.get("query_string", b"").decode())

        requested = set()
        for value in query_params.get("rooms", []):
            requested.update(room.strip() for room in value.split(",") if room.strip())

        unknown = requested - ROOMS
        if unknown:
            logger.warning(f"Connection rejected: unknown rooms {sorted(unknown)}")
            await self.close(code=4000)
            return

        self.groups_joined = sorted(requested) or [ORDERS_GROUP]
        table_id = (query_params.get("table") or [None])[0]
        if table_id:
            if not table_id.isdigit():
                logger.warning(f"Connection rejected: invalid table id {table_id!r}")
                await self.close(code=4000)
                return
            self.groups_joined.append(table_group(table_id))

        for group in self.groups_joined:
            await self.channel_layer.group_add(group, self.channel_name)

        await self.accept()
        await self.send(
            text_data=json.dumps(
                {
                    "type": "connection_established",
                    "rooms": self.groups_joined,
                    "timestamp": timezone.now().isoformat(),
                }
            )
        )

    async def disconnect(self, close_code):
        for group in getattr(self, "groups_joined", []):
            await self.channel_layer.group_discard(group, self.channel_name)

    async def receive(self, text_data):
        try:
            data = json.loads(text_data)
        except json.JSONDecodeError:
            logger.error("Invalid JSON received on POS event socket")
            return

        if data.get("type") == "ping":
            await self.send(
                text_data=json.dumps({"type": "pong", "timestamp": timezone.now().isoformat()})
            )
        else:
            logger.warning(f"Unknown message type on POS event socket: {data.get('type')}")

    # Channel layer handler for OutboxDispatcher messages
    async def pos_event(self, event):
        await self.send(text_data=json.dumps({"type": event["event"], "data": event["data"]}))
