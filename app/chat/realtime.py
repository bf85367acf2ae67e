"""
Realtime publishing over the Channels layer.

Services never talk to sockets directly. They receive a RealtimePublisher
and emit named events to rooms (every socket joined to a chat) or to
personal channels (every socket of one user). The consumer forwards those
events to clients as ``{"event": ..., "payload": ...}``.

Groups:
    chat_<chatId>: Chat room, joined on ``join_chat``
    user_<userId>: Personal channel, joined on ``authenticate``

Usage:
    publisher = ChannelLayerPublisher()
    publisher.emit_to_room(chat_room(chat.id), "user_typing", {...})
    publisher.emit_to_channel(user_channel(user.id), "new_chat", {...})
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Protocol

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder

from chat.constants import GROUP_NAMES

if TYPE_CHECKING:
    from channels.layers import BaseChannelLayer

logger = logging.getLogger(__name__)

# Channel layer message type, dispatched to RealtimeConsumer.realtime_event
REALTIME_MESSAGE_TYPE = "realtime.event"


def chat_room(chat_id) -> str:
    """Group name for a chat room."""
    return f"{GROUP_NAMES.CHAT_ROOM_PREFIX}{chat_id}"


def user_channel(user_id) -> str:
    """Group name for a user's personal channel."""
    return f"{GROUP_NAMES.USER_CHANNEL_PREFIX}{user_id}"


def to_json_safe(payload: Any) -> Any:
    """
    Normalise a payload so it survives the channel layer's msgpack encoding.

    UUIDs, datetimes and Decimals become strings.
    """
    return json.loads(json.dumps(payload, cls=DjangoJSONEncoder))


class RealtimePublisher(Protocol):
    """Interface services use to fan out events."""

    def emit_to_room(self, room: str, event: str, payload: dict) -> None:
        ...

    def emit_to_channel(self, channel: str, event: str, payload: dict) -> None:
        ...


class ChannelLayerPublisher:
    """
    RealtimePublisher backed by the Channels layer.

    Delivery is best effort: a failing layer (e.g. Redis down) is logged and
    never propagates into the calling service.
    """

    def __init__(self, channel_layer: BaseChannelLayer | None = None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self) -> BaseChannelLayer | None:
        # Resolved lazily so settings overrides (tests) take effect
        return self._channel_layer or get_channel_layer()

    def emit_to_room(self, room: str, event: str, payload: dict) -> None:
        self._send(room, event, payload)

    def emit_to_channel(self, channel: str, event: str, payload: dict) -> None:
        self._send(channel, event, payload)

    def _send(self, group: str, event: str, payload: dict) -> None:
        layer = self.channel_layer
        if layer is None:
            logger.warning(f"No channel layer configured, dropping {event} for {group}")
            return

        message = {
            "type": REALTIME_MESSAGE_TYPE,
            "event": event,
            "payload": to_json_safe(payload),
        }
        try:
            async_to_sync(layer.group_send)(group, message)
        except Exception:
            logger.exception(f"Failed to publish {event} to {group}")
