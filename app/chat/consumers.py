"""
WebSocket consumer for the realtime gateway.

This module binds client socket events to the chat services and forwards
events published by the services back to the sockets that joined the
relevant groups.

Consumers:
    RealtimeConsumer: One socket per client, any number of chat rooms

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]. Sockets
    without a token may still identify themselves with ``authenticate``.

Channel Groups:
    - chat_<chatId>: joined on ``join_chat``, left on ``leave_chat``
    - user_<userId>: joined on ``authenticate``

Message Types (from client):
    {"type": "authenticate", "user_id": 1}
    {"type": "join_chat", "chat_id": "<uuid>"}
    {"type": "leave_chat", "chat_id": "<uuid>"}
    {"type": "new_message", "chat_id": "<uuid>", "content": "Hi", "reply_to_id": null}
    {"type": "typing", "chat_id": "<uuid>", "is_typing": true}
    {"type": "update_typing_status", "chat_id": "<uuid>", "is_typing": true}
    {"type": "mark_read", "message_id": "<uuid>"}
    {"type": "mark_all_read", "chat_id": "<uuid>"}
    {"type": "subscribe_user_notifications", "user_id": 1}
    {"type": "mark_notification_read", "notification_id": "<uuid>"}
    {"type": "get_unread_notifications"}
    {"type": "get_chats"}
    {"type": "get_chat_presence", "chat_id": "<uuid>"}

Message Types (to client):
    {"event": "<name>", "payload": {...}}
"""

from __future__ import annotations

import logging
from uuid import UUID

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth import get_user_model
from django.db import DatabaseError

from chat.constants import ChatErrorCode, RealtimeEvent
from chat.middleware import JWT_SUBPROTOCOL
from chat.models import ChatMember
from chat.providers import get_chat_services
from chat.realtime import REALTIME_MESSAGE_TYPE, chat_room, to_json_safe, user_channel
from chat.serializers import ChatSerializer, ChatUserStateSerializer, MessageSerializer
from core.services import ServiceResult
from notifications.serializers import NotificationSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


def parse_uuid(value) -> UUID | None:
    """Parse a client-supplied id, returning None when it is not a UUID."""
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def parse_user_id(value) -> int | None:
    """Parse a client-supplied user id, returning None when it is not a positive int."""
    if isinstance(value, bool):
        return None
    try:
        user_id = int(value)
    except (TypeError, ValueError):
        return None
    return user_id if user_id > 0 else None


class RealtimeConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for the realtime chat gateway.

    Handles:
        - Identifying the socket's user and joining their personal channel
        - Joining/leaving chat rooms with presence updates
        - Sending messages, typing indicators and read receipts
        - Notification read state and unread listing
        - Marking the user offline in every chat on disconnect

    Attributes:
        user_id: Id of the identified user (None until known)
        user_name: Display name of the identified user
        rooms: Chat room groups this socket joined
        personal_group: The user's personal channel group, once joined
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.services = None
        self.user_id: int | None = None
        self.user_name: str = ""
        self.rooms: set[str] = set()
        self.personal_group: str | None = None

    @property
    def scope_user(self):
        user = self.scope.get("user")
        if user is not None and user.is_authenticated:
            return user
        return None

    async def connect(self):
        """
        Accept the connection.

        Sockets carrying a JWT-authenticated user are identified right away
        and join their personal channel.
        """
        self.services = get_chat_services()

        subprotocol = None
        if JWT_SUBPROTOCOL in self.scope.get("subprotocols", []):
            subprotocol = JWT_SUBPROTOCOL
        await self.accept(subprotocol=subprotocol)

        user = self.scope_user
        if user is not None:
            await self._identify(user.id, user.get_full_name())

        logger.info(f"Realtime socket connected (user={self.user_id or 'anonymous'})")

    async def disconnect(self, close_code):
        """
        Leave every group and mark the user offline in each of their chats.

        Presence failures are logged per chat and never stop the others.
        """
        for group in list(self.rooms) + ([self.personal_group] if self.personal_group else []):
            await self.channel_layer.group_discard(group, self.channel_name)
        self.rooms.clear()
        self.personal_group = None

        if self.user_id is not None:
            await self._mark_offline_everywhere(self.user_id)

        logger.info(f"Realtime socket disconnected (user={self.user_id or 'anonymous'}, code={close_code})")

    async def receive_json(self, content, **kwargs):
        """
        Dispatch an incoming client event by its ``type``.

        Args:
            content: Parsed JSON message from client
        """
        if not isinstance(content, dict):
            await self._send_error("unknown", "Events must be JSON objects", ChatErrorCode.INVALID_REQUEST)
            return

        message_type = content.get("type")
        handler = self.handlers.get(message_type)
        if handler is None:
            await self._send_error(
                message_type,
                f"Unknown message type: {message_type}",
                ChatErrorCode.INVALID_REQUEST,
            )
            return

        await handler(self, content)

    # =========================================================================
    # Client events
    # =========================================================================

    async def handle_authenticate(self, content):
        """Identify the socket's user and join their personal channel."""
        user_id = parse_user_id(content.get("user_id"))
        scope_user = self.scope_user

        if user_id is None and scope_user is not None:
            user_id = scope_user.id
        if user_id is None:
            await self._send_error(content["type"], "A valid user_id is required", ChatErrorCode.INVALID_REQUEST)
            return
        if scope_user is not None and scope_user.id != user_id:
            await self._send_error(
                content["type"],
                "user_id does not match the authenticated user",
                ChatErrorCode.UNAUTHENTICATED,
            )
            return

        user_name = await self._get_user_name(user_id)
        if user_name is None:
            await self._send_error(content["type"], f"User {user_id} not found", ChatErrorCode.USER_NOT_FOUND)
            return

        await self._identify(user_id, user_name)

    async def handle_join_chat(self, content):
        """Join a chat room, marking the user online there when known."""
        chat_id = parse_uuid(content.get("chat_id"))
        if chat_id is None:
            await self._send_error(content["type"], "A valid chat_id is required", ChatErrorCode.INVALID_REQUEST)
            return

        if self.user_id is not None:
            result = await self._call(self.services.presence.update_presence, self.user_id, chat_id, True)
            if not result:
                await self._send_error(content["type"], result)
                return

        room = chat_room(chat_id)
        await self.channel_layer.group_add(room, self.channel_name)
        self.rooms.add(room)

    async def handle_leave_chat(self, content):
        """Leave a chat room, marking the user offline there when known."""
        chat_id = parse_uuid(content.get("chat_id"))
        if chat_id is None:
            await self._send_error(content["type"], "A valid chat_id is required", ChatErrorCode.INVALID_REQUEST)
            return

        room = chat_room(chat_id)
        await self.channel_layer.group_discard(room, self.channel_name)
        self.rooms.discard(room)

        if self.user_id is not None:
            result = await self._call(self.services.presence.update_presence, self.user_id, chat_id, False)
            if not result:
                logger.info(f"Presence not updated on leave for user {self.user_id}: {result.error}")

    async def handle_new_message(self, content):
        """
        Post a message and broadcast it to the room as ``message_received``.

        Failures go back to this socket only, as ``message_error``.
        """
        if self.user_id is None:
            await self._send_event(
                RealtimeEvent.MESSAGE_ERROR,
                {"error": "Authenticate before sending messages", "code": ChatErrorCode.UNAUTHENTICATED},
            )
            return

        chat_id = parse_uuid(content.get("chat_id"))
        reply_to_raw = content.get("reply_to_id")
        reply_to_id = parse_uuid(reply_to_raw) if reply_to_raw else None
        if chat_id is None or (reply_to_raw and reply_to_id is None):
            await self._send_event(
                RealtimeEvent.MESSAGE_ERROR,
                {"error": "Invalid chat_id or reply_to_id", "code": ChatErrorCode.INVALID_REQUEST},
            )
            return

        content_text = content.get("content")
        if not isinstance(content_text, str):
            content_text = ""

        result = await self._create_message(content_text, self.user_id, chat_id, reply_to_id)
        if not result:
            await self._send_event(RealtimeEvent.MESSAGE_ERROR, result.to_payload())
            return

        await self._group_event(chat_room(chat_id), RealtimeEvent.MESSAGE_RECEIVED, result.data)

    async def handle_typing(self, content):
        """Relay a typing indicator to the rest of the room without persisting it."""
        chat_id = parse_uuid(content.get("chat_id"))
        if chat_id is None or self.user_id is None:
            await self._send_error(content["type"], "Authenticate and provide a valid chat_id", ChatErrorCode.INVALID_REQUEST)
            return

        event = RealtimeEvent.USER_TYPING if content.get("is_typing", True) else RealtimeEvent.USER_TYPING_STOPPED
        await self._group_event(
            chat_room(chat_id),
            event,
            {"userId": self.user_id, "chatId": chat_id, "userName": self.user_name},
            skip_channel=self.channel_name,
        )

    async def handle_update_typing_status(self, content):
        """Persist the typing flag; the service broadcasts it to the room."""
        chat_id = parse_uuid(content.get("chat_id"))
        if chat_id is None or self.user_id is None:
            await self._send_error(content["type"], "Authenticate and provide a valid chat_id", ChatErrorCode.INVALID_REQUEST)
            return

        result = await self._call(
            self.services.presence.update_typing_status,
            self.user_id,
            chat_id,
            bool(content.get("is_typing", False)),
        )
        if not result:
            await self._send_error(content["type"], result)

    async def handle_mark_read(self, content):
        message_id = parse_uuid(content.get("message_id"))
        if message_id is None or self.user_id is None:
            await self._send_error(content["type"], "Authenticate and provide a valid message_id", ChatErrorCode.INVALID_REQUEST)
            return

        result = await self._call(self.services.presence.mark_message_as_read, self.user_id, message_id)
        if not result:
            await self._send_error(content["type"], result)

    async def handle_mark_all_read(self, content):
        chat_id = parse_uuid(content.get("chat_id"))
        if chat_id is None or self.user_id is None:
            await self._send_error(content["type"], "Authenticate and provide a valid chat_id", ChatErrorCode.INVALID_REQUEST)
            return

        result = await self._call(self.services.presence.mark_all_messages_as_read, self.user_id, chat_id)
        if not result:
            await self._send_error(content["type"], result)

    async def handle_mark_notification_read(self, content):
        """Mark a notification read and tell every socket of the user."""
        notification_id = parse_uuid(content.get("notification_id"))
        if notification_id is None or self.user_id is None:
            await self._send_error(
                content["type"],
                "Authenticate and provide a valid notification_id",
                ChatErrorCode.INVALID_REQUEST,
            )
            return

        result = await self._mark_notification_read(notification_id, self.user_id)
        if not result:
            await self._send_error(content["type"], result)
            return

        await self._group_event(user_channel(self.user_id), RealtimeEvent.NOTIFICATION_UPDATED, result.data)

    async def handle_get_unread_notifications(self, content):
        if self.user_id is None:
            await self._send_error(content["type"], "Authenticate first", ChatErrorCode.UNAUTHENTICATED)
            return

        notifications = await self._get_unread_notifications(self.user_id)
        await self._send_event(
            RealtimeEvent.UNREAD_NOTIFICATIONS,
            {"notifications": notifications, "count": len(notifications)},
        )

    async def handle_get_chats(self, content):
        if self.user_id is None:
            await self._send_error(content["type"], "Authenticate first", ChatErrorCode.UNAUTHENTICATED)
            return

        chats = await self._get_chats(self.user_id)
        await self._send_event(RealtimeEvent.CHATS, {"chats": chats})

    async def handle_get_chat_presence(self, content):
        """Reply with every member's presence, typing and unread state in a chat."""
        chat_id = parse_uuid(content.get("chat_id"))
        if chat_id is None or self.user_id is None:
            await self._send_error(content["type"], "Authenticate and provide a valid chat_id", ChatErrorCode.INVALID_REQUEST)
            return

        states = await self._get_chat_presence(self.user_id, chat_id)
        if states is None:
            await self._send_error(
                content["type"],
                f"User {self.user_id} is not a member of chat {chat_id}",
                ChatErrorCode.NOT_A_MEMBER,
            )
            return

        await self._send_event(RealtimeEvent.CHAT_PRESENCE, {"chatId": chat_id, "states": states})

    handlers = {
        "authenticate": handle_authenticate,
        "subscribe_user_notifications": handle_authenticate,
        "join_chat": handle_join_chat,
        "leave_chat": handle_leave_chat,
        "new_message": handle_new_message,
        "typing": handle_typing,
        "update_typing_status": handle_update_typing_status,
        "mark_read": handle_mark_read,
        "mark_all_read": handle_mark_all_read,
        "mark_notification_read": handle_mark_notification_read,
        "get_unread_notifications": handle_get_unread_notifications,
        "get_chats": handle_get_chats,
        "get_chat_presence": handle_get_chat_presence,
    }

    # =========================================================================
    # Channel layer events
    # =========================================================================

    async def realtime_event(self, event):
        """
        Handle realtime.event messages from the channel layer.

        Forwards the event to the client unless this socket originated it.
        """
        if event.get("skip_channel") == self.channel_name:
            return
        await self._send_event(event["event"], event["payload"])

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _identify(self, user_id: int, user_name: str):
        group = user_channel(user_id)
        if self.personal_group and self.personal_group != group:
            await self.channel_layer.group_discard(self.personal_group, self.channel_name)
        await self.channel_layer.group_add(group, self.channel_name)

        self.user_id = user_id
        self.user_name = user_name
        self.personal_group = group
        await self._send_event(RealtimeEvent.AUTHENTICATED, {"userId": user_id})

    async def _send_event(self, event: str, payload):
        await self.send_json({"event": event, "payload": to_json_safe(payload)})

    async def _send_error(self, request_type, error: ServiceResult | str, code: str | None = None):
        if isinstance(error, ServiceResult):
            payload = error.to_payload()
        else:
            payload = {"error": error, "code": code}
        payload["type"] = request_type
        await self._send_event(RealtimeEvent.ERROR, payload)

    async def _group_event(self, group: str, event: str, payload, skip_channel: str | None = None):
        message = {
            "type": REALTIME_MESSAGE_TYPE,
            "event": event,
            "payload": to_json_safe(payload),
        }
        if skip_channel:
            message["skip_channel"] = skip_channel
        await self.channel_layer.group_send(group, message)

    @database_sync_to_async
    def _call(self, func, *args):
        return func(*args)

    @database_sync_to_async
    def _get_user_name(self, user_id: int) -> str | None:
        user = User.objects.filter(id=user_id, is_active=True).first()
        return user.get_full_name() if user else None

    @database_sync_to_async
    def _create_message(self, content, sender_id, chat_id, reply_to_id) -> ServiceResult:
        result = self.services.messages.create_message(content, sender_id, chat_id, reply_to_id)
        if not result:
            return result
        message = self.services.messages.get_message_by_id(result.data.id) or result.data
        return ServiceResult.success(MessageSerializer(message).data)

    @database_sync_to_async
    def _mark_notification_read(self, notification_id, user_id) -> ServiceResult:
        result = self.services.notifications.mark_as_read(notification_id, user_id=user_id)
        if result and not isinstance(result.data, dict):
            return ServiceResult.success(NotificationSerializer(result.data).data)
        return result

    @database_sync_to_async
    def _get_unread_notifications(self, user_id) -> list:
        notifications = self.services.notifications.get_unread_notifications(user_id)
        return NotificationSerializer(notifications, many=True).data

    @database_sync_to_async
    def _get_chats(self, user_id) -> list:
        chats = self.services.chats.get_chats_by_user_id(user_id)
        return ChatSerializer(chats, many=True).data

    @database_sync_to_async
    def _get_chat_presence(self, user_id, chat_id) -> list | None:
        if not ChatMember.objects.filter(user_id=user_id, chat_id=chat_id).exists():
            return None
        states = self.services.presence.get_chat_presence_states(chat_id)
        return ChatUserStateSerializer(states, many=True).data

    @database_sync_to_async
    def _mark_offline_everywhere(self, user_id: int):
        try:
            chat_ids = list(
                ChatMember.objects.filter(user_id=user_id).values_list("chat_id", flat=True)
            )
        except DatabaseError:
            logger.exception(f"Could not list chats for user {user_id} on disconnect")
            return

        for chat_id in chat_ids:
            try:
                self.services.presence.update_presence(user_id, chat_id, False)
            except Exception:
                logger.exception(f"Failed to mark user {user_id} offline in chat {chat_id}")
