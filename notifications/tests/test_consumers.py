"""
WebSocket Consumer Tests

These tests verify room selection on connect and that outbox messages sent
to a group reach the subscribed sockets.
"""
import json

import pytest
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator

from core_backend.asgi import application


async def connect(path):
    communicator = WebsocketCommunicator(application, path)
    connected, _ = await communicator.connect()
    return communicator, connected


@pytest.mark.asyncio
class TestPOSEventConsumer:
    async def test_default_room_is_orders(self, in_memory_channel_layer):
        communicator, connected = await connect("/ws/pos/")

        assert connected
        greeting = await communicator.receive_json_from()
        assert greeting["type"] == "connection_established"
        assert greeting["rooms"] == ["orders"]
        await communicator.disconnect()

    async def test_rooms_and_table_from_query(self, in_memory_channel_layer):
        communicator, connected = await connect("/ws/pos/?rooms=kds,tables&table=7")

        assert connected
        greeting = await communicator.receive_json_from()
        assert greeting["rooms"] == ["kds", "tables", "table_7"]
        await communicator.disconnect()

    async def test_unknown_room_rejected(self, in_memory_channel_layer):
        communicator, connected = await connect("/ws/pos/?rooms=payroll")

        assert not connected

    async def test_invalid_table_rejected(self, in_memory_channel_layer):
        communicator, connected = await connect("/ws/pos/?table=7;drop")

        assert not connected

    async def test_group_event_forwarded(self, in_memory_channel_layer):
        """
        HIGH: an event sent to the kds group reaches kitchen screens
        """
        communicator, _ = await connect("/ws/pos/?rooms=kds")
        await communicator.receive_json_from()

        await get_channel_layer().group_send(
            "kds",
            {"type": "pos.event", "event": "order:created", "data": {"id": "abc", "status": "PENDING"}},
        )

        message = await communicator.receive_json_from()
        assert message == {"type": "order:created", "data": {"id": "abc", "status": "PENDING"}}
        await communicator.disconnect()

    async def test_ping_pong(self, in_memory_channel_layer):
        communicator, _ = await connect("/ws/pos/")
        await communicator.receive_json_from()

        await communicator.send_to(text_data=json.dumps({"type": "ping"}))

        reply = await communicator.receive_json_from()
        assert reply["type"] == "pong"
        await communicator.disconnect()
