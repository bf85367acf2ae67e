"""
Notification dispatcher.

This module delivers chat notifications in real time and persists them
while the database is reachable.

Services:
    NotificationService: Create, fan out and mark notifications

Degraded Mode:
    A connectivity error (OperationalError, InterfaceError) while writing
    or reading notifications trips the persistence circuit. Until a health
    probe succeeds (at most once per DISPATCH_CONFIG.PROBE_INTERVAL_SECONDS):
    - create_notification emits an unpersisted notification
    - notify_new_message sends one room-wide new_message_notification
    - mark_as_read answers with a simulated {"id", "read": True}
    - get_unread_notifications returns []

Usage:
    from chat.providers import get_chat_services

    notifications = get_chat_services().notifications
    notifications.notify_new_message(message)

    result = notifications.mark_as_read(notification_id, user_id=user.id)
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError, InterfaceError, OperationalError
from django.utils import timezone

from chat.constants import RealtimeEvent
from chat.models import ChatMember, ChatUserState
from chat.realtime import chat_room, user_channel
from core.circuit_breaker import PersistenceCircuit
from core.services import BaseService, ServiceResult
from notifications.constants import DISPATCH_CONFIG, NotificationErrorCode
from notifications.models import Notification, NotificationType
from notifications.serializers import NotificationSerializer

if TYPE_CHECKING:
    from chat.models import Chat, Message
    from chat.realtime import RealtimePublisher

logger = logging.getLogger(__name__)

# Errors meaning the database cannot be reached, as opposed to bad data
CONNECTIVITY_ERRORS = (OperationalError, InterfaceError)


def new_message_content(sender_name: str, content: str) -> str:
    """Text of a NEW_MESSAGE notification."""
    length = DISPATCH_CONFIG.CONTENT_PREVIEW_LENGTH
    preview = content[:length] + ("..." if len(content) > length else "")
    return f"New message from {sender_name}: {preview}"


class NotificationService(BaseService):
    """
    Service for notification dispatch.

    Methods:
        create_notification: Persist (when possible) and emit one notification
        notify_new_message: NEW_MESSAGE to every unmuted member except the sender
        notify_chat_created: CHAT_CREATED to the invited participants
        notify_user_joined_chat: USER_JOINED_CHAT to existing members
        mark_as_read: Flag a notification as read
        get_unread_notifications: A user's unread notifications, newest first
    """

    def __init__(
        self,
        publisher: RealtimePublisher,
        circuit: PersistenceCircuit | None = None,
    ):
        self.publisher = publisher
        self.circuit = circuit or PersistenceCircuit(
            DISPATCH_CONFIG.CIRCUIT_NAME,
            recovery_interval=DISPATCH_CONFIG.PROBE_INTERVAL_SECONDS,
        )

    def create_notification(
        self,
        notification_type: str,
        recipient_id,
        content: str,
        sender_id=None,
        chat_id=None,
        message_id=None,
    ) -> Notification:
        """
        Create a notification and emit it to the recipient's personal channel.

        Always returns a Notification. When persistence is skipped or fails,
        the returned object is unsaved but carries a generated id and
        created_at, and is still delivered.

        Args:
            notification_type: NotificationType value
            recipient_id: User receiving the notification
            content: Rendered text
            sender_id: Optional user who triggered it
            chat_id: Optional related chat
            message_id: Optional related message
        """
        notification = Notification(
            id=uuid.uuid4(),
            notification_type=notification_type,
            recipient_id=recipient_id,
            sender_id=sender_id,
            chat_id=chat_id,
            message_id=message_id,
            content=content,
            is_read=False,
        )

        if self.circuit.is_available():
            try:
                with self.atomic():
                    notification.save(force_insert=True)
            except CONNECTIVITY_ERRORS as e:
                logger.warning(f"Notification not persisted, database unreachable: {e}")
                self.circuit.record_failure()
            except DatabaseError:
                logger.exception(
                    f"Failed to persist {notification_type} notification for user {recipient_id}"
                )

        if notification.created_at is None:
            notification.created_at = timezone.now()
            notification.updated_at = notification.created_at

        self.publisher.emit_to_channel(
            user_channel(recipient_id),
            RealtimeEvent.NOTIFICATION,
            NotificationSerializer(notification).data,
        )
        return notification

    def notify_new_message(self, message: Message) -> list[Notification]:
        """
        Notify chat members about a new message.

        Members who muted the chat and the sender are skipped. While
        degraded, a single ``new_message_notification`` goes to the whole
        room instead of per-user notifications.

        Returns:
            The notifications created (empty for the room-wide fallback)
        """
        if not self.circuit.is_available():
            self._broadcast_new_message(message)
            return []

        try:
            sender_name = message.sender.get_full_name()
            muted_ids = ChatUserState.objects.filter(
                chat_id=message.chat_id, is_muted=True
            ).values_list("user_id", flat=True)
            recipient_ids = list(
                ChatMember.objects.filter(chat_id=message.chat_id)
                .exclude(user_id=message.sender_id)
                .exclude(user_id__in=muted_ids)
                .values_list("user_id", flat=True)
            )
        except CONNECTIVITY_ERRORS as e:
            logger.warning(f"Could not list recipients for message {message.id}: {e}")
            self.circuit.record_failure()
            self._broadcast_new_message(message)
            return []

        content = new_message_content(sender_name, message.content)
        return [
            self.create_notification(
                NotificationType.NEW_MESSAGE,
                recipient_id,
                content,
                sender_id=message.sender_id,
                chat_id=message.chat_id,
                message_id=message.id,
            )
            for recipient_id in recipient_ids
        ]

    def notify_chat_created(
        self,
        chat: Chat,
        creator_id,
        participant_ids: list,
    ) -> list[Notification]:
        """Tell each participant they were added to a new chat."""
        content = f'You\'ve been added to chat "{chat.name or ""}"'
        return [
            self.create_notification(
                NotificationType.CHAT_CREATED,
                participant_id,
                content,
                sender_id=creator_id,
                chat_id=chat.id,
            )
            for participant_id in participant_ids
            if participant_id != creator_id
        ]

    def notify_user_joined_chat(
        self,
        chat_id,
        joined_user_id,
        joined_user_name: str,
    ) -> list[Notification]:
        """Tell the existing members of a chat that someone joined."""
        if not self.circuit.is_available():
            return []

        try:
            member_ids = list(
                ChatMember.objects.filter(chat_id=chat_id)
                .exclude(user_id=joined_user_id)
                .values_list("user_id", flat=True)
            )
        except CONNECTIVITY_ERRORS as e:
            logger.warning(f"Could not list members of chat {chat_id}: {e}")
            self.circuit.record_failure()
            return []

        content = f"{joined_user_name} joined the chat"
        return [
            self.create_notification(
                NotificationType.USER_JOINED_CHAT,
                member_id,
                content,
                sender_id=joined_user_id,
                chat_id=chat_id,
            )
            for member_id in member_ids
        ]

    def mark_as_read(
        self, notification_id, user_id=None
    ) -> ServiceResult[Notification | dict[str, Any]]:
        """
        Mark a notification as read.

        Args:
            notification_id: Notification to update
            user_id: When given, the notification must belong to this user

        Returns:
            ServiceResult with the updated Notification, or a simulated
            {"id": ..., "read": True} while the database is unreachable

        Error codes:
            NOTIFICATION_NOT_FOUND: Unknown id
            NOT_OWNER: Notification belongs to another user
        """
        simulated = {"id": str(notification_id), "read": True}
        if not self.circuit.is_available():
            return ServiceResult.success(simulated)

        try:
            notification = Notification.objects.filter(id=notification_id).first()
            if notification is None:
                return ServiceResult.failure(
                    f"Notification {notification_id} not found",
                    error_code=NotificationErrorCode.NOTIFICATION_NOT_FOUND,
                )
            if user_id is not None and notification.recipient_id != user_id:
                return ServiceResult.failure(
                    "Cannot modify another user's notification",
                    error_code=NotificationErrorCode.NOT_OWNER,
                )
            if not notification.is_read:
                notification.is_read = True
                notification.save(update_fields=["is_read", "updated_at"])
        except CONNECTIVITY_ERRORS as e:
            logger.warning(f"Notification {notification_id} not marked read, database unreachable: {e}")
            self.circuit.record_failure()
            return ServiceResult.success(simulated)

        return ServiceResult.success(notification)

    def get_unread_notifications(self, user_id) -> list[Notification]:
        """Unread notifications for a user, newest first. Empty while degraded."""
        if not self.circuit.is_available():
            return []

        try:
            return list(
                Notification.objects.filter(recipient_id=user_id, is_read=False).order_by(
                    "-created_at"
                )
            )
        except CONNECTIVITY_ERRORS as e:
            logger.warning(f"Unread notifications unavailable for user {user_id}: {e}")
            self.circuit.record_failure()
            return []

    def _broadcast_new_message(self, message: Message) -> None:
        sender_name = self._sender_name(message)
        self.publisher.emit_to_room(
            chat_room(message.chat_id),
            RealtimeEvent.NEW_MESSAGE_NOTIFICATION,
            {
                "senderId": message.sender_id,
                "senderName": sender_name,
                "content": message.content,
                "chatId": message.chat_id,
                "messageId": message.id,
                "timestamp": message.created_at,
            },
        )

    @staticmethod
    def _sender_name(message: Message) -> str:
        """Display name of the sender, or the sender id when it cannot be loaded."""
        try:
            return message.sender.get_full_name()
        except DatabaseError as e:
            logger.warning(f"Sender of message {message.id} unavailable: {e}")
            return str(message.sender_id)
