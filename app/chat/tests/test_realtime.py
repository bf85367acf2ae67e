"""
Tests for the Channels-backed realtime publisher.
"""

import uuid

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from chat.realtime import (
    REALTIME_MESSAGE_TYPE,
    ChannelLayerPublisher,
    chat_room,
    to_json_safe,
    user_channel,
)


def test_group_names_are_channel_layer_safe():
    chat_id = uuid.uuid4()

    assert chat_room(chat_id) == f"chat_{chat_id}"
    assert user_channel(7) == "user_7"


def test_to_json_safe_stringifies_uuids_and_datetimes():
    chat_id = uuid.uuid4()
    payload = to_json_safe({"chatId": chat_id, "nested": {"ids": [chat_id]}})

    assert payload == {"chatId": str(chat_id), "nested": {"ids": [str(chat_id)]}}


class TestChannelLayerPublisher:
    @pytest.fixture
    def layer(self):
        return get_channel_layer()

    def test_emit_to_room_reaches_group_members(self, layer):
        channel = async_to_sync(layer.new_channel)()
        room = chat_room(uuid.uuid4())
        async_to_sync(layer.group_add)(room, channel)

        ChannelLayerPublisher(layer).emit_to_room(room, "user_typing", {"userId": 1})

        message = async_to_sync(layer.receive)(channel)
        assert message == {
            "type": REALTIME_MESSAGE_TYPE,
            "event": "user_typing",
            "payload": {"userId": 1},
        }

    def test_layer_failure_is_swallowed(self, mocker):
        layer = mocker.Mock()
        layer.group_send = mocker.AsyncMock(side_effect=ConnectionError("redis down"))

        ChannelLayerPublisher(layer).emit_to_channel(user_channel(1), "new_chat", {})

        layer.group_send.assert_awaited_once()
