"""
Chat system service layer.

This module provides the business logic for the realtime chat core,
encapsulating all operations on chats, members, per-user state and messages.

Services:
    ChatService: Chat lifecycle (create, find, list, add member, delete)
    ChatPresenceService: Presence, typing, read receipts, unread counters,
        mute and per-user soft delete
    MessageService: Message pipeline (create with side effects, paging)

Design Principles:
    - Services receive their collaborators (realtime publisher, other
      services) at construction; see chat.providers for the wiring
    - Expected failures return ServiceResult.failure()
    - Unexpected failures raise exceptions
    - Side effects (notifications, unread counters, restore-on-message,
      realtime emits) are logged and swallowed, never failing the primary
      operation

Usage:
    from chat.providers import get_chat_services

    services = get_chat_services()
    result = services.chats.create_chat([alice.id, bob.id], ChatType.INDIVIDUAL)
    if result.success:
        chat = result.data

    result = services.messages.create_message("hi", alice.id, chat.id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError
from django.db.models import Exists, OuterRef, Prefetch
from django.utils import timezone

from chat.constants import (
    MESSAGE_CONFIG,
    TYPING_CONFIG,
    ChatErrorCode,
    RealtimeEvent,
    SendDenialReason,
)
from chat.models import (
    Chat,
    ChatMember,
    ChatType,
    ChatUserState,
    IndividualChatPair,
    Message,
)
from chat.realtime import chat_room, user_channel
from core.services import BaseService, ServiceResult
from notifications.models import Notification

if TYPE_CHECKING:
    from datetime import datetime

    from chat.realtime import RealtimePublisher
    from notifications.services import NotificationService

logger = logging.getLogger(__name__)

User = get_user_model()


def _not_a_member(user_id, chat_id) -> ServiceResult:
    return ServiceResult.failure(
        f"User {user_id} is not a member of chat {chat_id}",
        error_code=ChatErrorCode.NOT_A_MEMBER,
    )


def _is_member(user_id, chat_id) -> bool:
    return ChatMember.objects.filter(chat_id=chat_id, user_id=user_id).exists()


def _display_name(user_id) -> str:
    user = User.objects.filter(id=user_id).only("name", "email").first()
    return user.get_full_name() if user else ""


@dataclass(frozen=True)
class SendPermission:
    """Outcome of ChatPresenceService.can_send_messages()."""

    can_send: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.can_send


class ChatService(BaseService):
    """
    Service for chat lifecycle operations.

    Methods:
        create_chat: Create a chat with its memberships
        find_chat_by_id: Load a chat with members and message history
        get_chats_by_user_id: List a user's chats (minus soft-deleted ones)
        add_member_to_chat: Add a user to a group chat
        delete_chat: Soft delete for one user, cascading when all have deleted
        hard_delete_chat: Admin-only permanent delete
    """

    def __init__(
        self,
        publisher: RealtimePublisher,
        notifications: NotificationService,
    ):
        self.publisher = publisher
        self.notifications = notifications

    def create_chat(
        self,
        member_ids: list[int],
        chat_type: str = ChatType.GROUP,
        name: str | None = None,
        creator_id: int | None = None,
    ) -> ServiceResult[Chat]:
        """
        Create a chat and its memberships.

        Individual chats are unique per unordered user pair. The pair row
        is written in the same transaction as the chat, so a concurrent
        duplicate fails on the database constraint and is reported the
        same way as one found by the lookup.

        After commit, members other than the creator receive a
        CHAT_CREATED notification and a ``new_chat`` event (best effort).

        Args:
            member_ids: Users to add as members (the creator included)
            chat_type: ChatType value
            name: Optional chat name
            creator_id: User creating the chat; excluded from announcements

        Returns:
            ServiceResult with the new Chat

        Error codes:
            INVALID_MEMBER_COUNT: Individual chat without exactly two
                distinct members, or no members at all
            DUPLICATE_CHAT: Individual chat already exists for this pair
            USER_NOT_FOUND: One or more member ids do not exist
        """
        member_ids = list(member_ids)
        unique_ids = list(dict.fromkeys(member_ids))
        is_individual = chat_type == ChatType.INDIVIDUAL

        if is_individual and (len(member_ids) != 2 or len(unique_ids) != 2):
            return ServiceResult.failure(
                "Individual chats need exactly two distinct members",
                error_code=ChatErrorCode.INVALID_MEMBER_COUNT,
            )
        if not unique_ids:
            return ServiceResult.failure(
                "A chat needs at least one member",
                error_code=ChatErrorCode.INVALID_MEMBER_COUNT,
            )

        found = User.objects.filter(id__in=unique_ids).count()
        if found != len(unique_ids):
            return ServiceResult.failure(
                "One or more members do not exist",
                error_code=ChatErrorCode.USER_NOT_FOUND,
            )

        if is_individual:
            user_lower, user_higher = IndividualChatPair.canonical(*unique_ids)
            if IndividualChatPair.objects.filter(
                user_lower_id=user_lower, user_higher_id=user_higher
            ).exists():
                return self._duplicate_chat(user_lower, user_higher)

        try:
            with self.atomic():
                chat = Chat.objects.create(name=name, chat_type=chat_type)
                ChatMember.objects.bulk_create(
                    [ChatMember(chat=chat, user_id=user_id) for user_id in unique_ids]
                )
                if is_individual:
                    IndividualChatPair.objects.create(
                        chat=chat,
                        user_lower_id=user_lower,
                        user_higher_id=user_higher,
                    )
        except IntegrityError:
            if is_individual:
                return self._duplicate_chat(user_lower, user_higher)
            raise

        self.get_logger().info(
            f"Created {chat_type} chat {chat.id} with {len(unique_ids)} members"
        )

        self._announce_chat_created(chat, unique_ids, creator_id)
        return ServiceResult.success(chat)

    def find_chat_by_id(self, chat_id) -> Chat | None:
        """
        Load a chat with members (and their users) and its message history.

        Messages are ordered oldest first. Returns None if the chat
        does not exist.
        """
        return (
            Chat.objects.filter(id=chat_id)
            .prefetch_related(
                Prefetch(
                    "members",
                    queryset=ChatMember.objects.select_related("user"),
                ),
                Prefetch(
                    "messages",
                    queryset=Message.objects.select_related(
                        "sender", "reply_to"
                    ).order_by("created_at"),
                ),
            )
            .first()
        )

    def get_chats_by_user_id(self, user_id) -> list[Chat]:
        """
        List the chats a user is a member of, newest activity first.

        Chats the user has soft-deleted are excluded.
        """
        deleted_for_user = ChatUserState.objects.filter(
            chat_id=OuterRef("pk"),
            user_id=user_id,
            is_deleted=True,
        )
        return list(
            Chat.objects.filter(members__user_id=user_id)
            .exclude(Exists(deleted_for_user))
            .prefetch_related(
                Prefetch(
                    "members",
                    queryset=ChatMember.objects.select_related("user"),
                )
            )
            .order_by("-updated_at")
        )

    def add_member_to_chat(self, chat_id, user_id) -> ServiceResult[ChatMember]:
        """
        Add a user to a group or sub-group chat.

        Existing members are notified with USER_JOINED_CHAT (best effort).

        Error codes:
            CHAT_NOT_FOUND: Chat does not exist
            INVALID_MEMBER_COUNT: Individual chats cannot gain members
            USER_NOT_FOUND: User does not exist
            ALREADY_MEMBER: User is already in the chat
        """
        chat = Chat.objects.filter(id=chat_id).first()
        if chat is None:
            return ServiceResult.failure(
                f"Chat {chat_id} not found",
                error_code=ChatErrorCode.CHAT_NOT_FOUND,
            )
        if chat.is_individual:
            return ServiceResult.failure(
                "Individual chats cannot have more than two members",
                error_code=ChatErrorCode.INVALID_MEMBER_COUNT,
            )

        user = User.objects.filter(id=user_id).first()
        if user is None:
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code=ChatErrorCode.USER_NOT_FOUND,
            )

        if _is_member(user.id, chat.id):
            return self._already_member(user.id, chat.id)
        try:
            with self.atomic():
                member = ChatMember.objects.create(chat=chat, user=user)
        except IntegrityError:
            return self._already_member(user.id, chat.id)

        self.get_logger().info(f"Added user {user.id} to chat {chat.id}")

        try:
            self.notifications.notify_user_joined_chat(
                chat.id, user.id, user.get_full_name()
            )
        except Exception:
            logger.exception(f"Failed to notify members of chat {chat.id} about new member")

        return ServiceResult.success(member)

    def delete_chat(self, chat_id, requesting_user_id) -> ServiceResult[dict]:
        """
        Delete a chat for the requesting user.

        The chat is hidden for that user only (soft delete) and a
        ``chat_deleted`` event goes to their personal channel. When every
        current member has deleted the chat, it is removed permanently.

        Returns:
            ServiceResult with {"permanently_deleted": bool, "deleted_at": datetime}

        Error codes:
            CHAT_NOT_FOUND: Chat does not exist
            NOT_A_MEMBER: Requester is not a member
        """
        if not Chat.objects.filter(id=chat_id).exists():
            return ServiceResult.failure(
                f"Chat {chat_id} not found",
                error_code=ChatErrorCode.CHAT_NOT_FOUND,
            )
        if not _is_member(requesting_user_id, chat_id):
            return _not_a_member(requesting_user_id, chat_id)

        deleted_at = timezone.now()
        ChatUserState.objects.upsert(
            requesting_user_id,
            chat_id,
            is_deleted=True,
            deleted_at=deleted_at,
        )
        self.publisher.emit_to_channel(
            user_channel(requesting_user_id),
            RealtimeEvent.CHAT_DELETED,
            {
                "chatId": chat_id,
                "deletedBy": requesting_user_id,
                "deletedAt": deleted_at,
            },
        )

        permanently_deleted = False
        if self._all_members_deleted(chat_id):
            permanently_deleted = self._cascade_hard_delete(
                chat_id,
                deleted_by=requesting_user_id,
                require_all_deleted=True,
            )

        return ServiceResult.success(
            {"permanently_deleted": permanently_deleted, "deleted_at": deleted_at}
        )

    def hard_delete_chat(
        self,
        chat_id,
        requesting_user_id,
        is_admin: bool,
    ) -> ServiceResult[dict]:
        """
        Permanently delete a chat regardless of member state.

        Error codes:
            FORBIDDEN: Requester is not an administrator
            CHAT_NOT_FOUND: Chat does not exist
        """
        if not is_admin:
            return ServiceResult.failure(
                "Only administrators can permanently delete chats",
                error_code=ChatErrorCode.FORBIDDEN,
            )

        if not self._cascade_hard_delete(chat_id, deleted_by=requesting_user_id):
            return ServiceResult.failure(
                f"Chat {chat_id} not found",
                error_code=ChatErrorCode.CHAT_NOT_FOUND,
            )
        return ServiceResult.success({"permanently_deleted": True})

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _announce_chat_created(
        self,
        chat: Chat,
        member_ids: list[int],
        creator_id: int | None,
    ) -> None:
        recipients = [user_id for user_id in member_ids if user_id != creator_id]
        if not recipients:
            return

        try:
            self.notifications.notify_chat_created(chat, creator_id, recipients)
        except Exception:
            logger.exception(f"Failed to send chat-created notifications for chat {chat.id}")

        for user_id in recipients:
            self.publisher.emit_to_channel(
                user_channel(user_id),
                RealtimeEvent.NEW_CHAT,
                {
                    "chatId": chat.id,
                    "chatName": chat.name,
                    "creatorId": creator_id,
                    "type": chat.chat_type,
                },
            )

    def _all_members_deleted(self, chat_id) -> bool:
        member_ids = ChatMember.objects.filter(chat_id=chat_id).values_list(
            "user_id", flat=True
        )
        member_count = member_ids.count()
        deleted_count = (
            ChatUserState.objects.for_chat(chat_id)
            .deleted()
            .filter(user_id__in=member_ids)
            .count()
        )
        return member_count > 0 and deleted_count == member_count

    def _cascade_hard_delete(
        self,
        chat_id,
        deleted_by,
        require_all_deleted: bool = False,
    ) -> bool:
        """
        Remove a chat and every dependent row in one transaction.

        The chat row is locked first so concurrent cascades for the same
        chat run once: the second finds the chat gone and returns False.
        Children are removed before parents: notifications, messages,
        user states, memberships, then the chat (its pair row cascades).

        Returns:
            True if this call deleted the chat
        """
        with self.atomic():
            chat = Chat.objects.select_for_update().filter(id=chat_id).first()
            if chat is None:
                return False
            if require_all_deleted and not self._all_members_deleted(chat_id):
                return False

            member_ids = list(
                ChatMember.objects.filter(chat_id=chat_id).values_list(
                    "user_id", flat=True
                )
            )
            Notification.objects.filter(chat_id=chat_id).delete()
            Message.objects.filter(chat_id=chat_id).delete()
            ChatUserState.objects.filter(chat_id=chat_id).delete()
            ChatMember.objects.filter(chat_id=chat_id).delete()
            chat.delete()

        self.get_logger().info(
            f"Permanently deleted chat {chat_id} (requested by {deleted_by})"
        )

        for user_id in member_ids:
            self.publisher.emit_to_channel(
                user_channel(user_id),
                RealtimeEvent.CHAT_HARD_DELETED,
                {"chatId": chat_id, "deletedBy": deleted_by, "permanent": True},
            )
        return True

    @staticmethod
    def _duplicate_chat(user_lower: int, user_higher: int) -> ServiceResult:
        return ServiceResult.failure(
            f"An individual chat between users {user_lower} and {user_higher} already exists",
            error_code=ChatErrorCode.DUPLICATE_CHAT,
        )

    @staticmethod
    def _already_member(user_id, chat_id) -> ServiceResult:
        return ServiceResult.failure(
            f"User {user_id} is already a member of chat {chat_id}",
            error_code=ChatErrorCode.ALREADY_MEMBER,
        )


class ChatPresenceService(BaseService):
    """
    Service for per-user chat state.

    Every write goes through ``ChatUserState.objects.upsert()`` so the
    first touch of a (user, chat) pair creates its row exactly once.
    All operations on a chat require membership.
    """

    def __init__(self, publisher: RealtimePublisher):
        self.publisher = publisher

    def update_presence(
        self, user_id, chat_id, is_online: bool
    ) -> ServiceResult[ChatUserState]:
        """Record presence and broadcast ``user_presence_changed`` to the room."""
        if not _is_member(user_id, chat_id):
            return _not_a_member(user_id, chat_id)

        now = timezone.now()
        state = ChatUserState.objects.upsert(
            user_id, chat_id, is_online=is_online, last_seen=now
        )
        self.publisher.emit_to_room(
            chat_room(chat_id),
            RealtimeEvent.USER_PRESENCE_CHANGED,
            {
                "userId": user_id,
                "chatId": chat_id,
                "isOnline": is_online,
                "lastSeen": now,
            },
        )
        return ServiceResult.success(state)

    def update_typing_status(
        self, user_id, chat_id, is_typing: bool
    ) -> ServiceResult[ChatUserState]:
        """
        Record the typing flag and broadcast it to the room.

        Typing implies presence, so the user is also marked online.
        ``last_typing_at`` only moves when typing starts or continues.
        """
        if not _is_member(user_id, chat_id):
            return _not_a_member(user_id, chat_id)

        now = timezone.now()
        fields: dict[str, Any] = {
            "is_typing": is_typing,
            "is_online": True,
            "last_seen": now,
        }
        if is_typing:
            fields["last_typing_at"] = now

        state = ChatUserState.objects.upsert(user_id, chat_id, **fields)
        event = RealtimeEvent.USER_TYPING if is_typing else RealtimeEvent.USER_TYPING_STOPPED
        self.publisher.emit_to_room(
            chat_room(chat_id),
            event,
            {"userId": user_id, "chatId": chat_id, "userName": _display_name(user_id)},
        )
        return ServiceResult.success(state)

    def clear_expired_typing_states(self, now: datetime | None = None) -> ServiceResult[int]:
        """
        Clear typing flags older than the typing timeout.

        Each cleared row emits ``user_typing_stopped`` to its room. A row
        refreshed between the scan and the update is left alone.

        Returns:
            ServiceResult with the number of cleared rows
        """
        now = now or timezone.now()
        cutoff = now - timedelta(seconds=TYPING_CONFIG.TIMEOUT_SECONDS)

        cleared = 0
        for state in ChatUserState.objects.expired_typing(cutoff).select_related("user"):
            updated = ChatUserState.objects.filter(
                pk=state.pk,
                is_typing=True,
                last_typing_at=state.last_typing_at,
            ).update(is_typing=False, updated_at=now)
            if not updated:
                continue

            cleared += 1
            self.publisher.emit_to_room(
                chat_room(state.chat_id),
                RealtimeEvent.USER_TYPING_STOPPED,
                {
                    "userId": state.user_id,
                    "chatId": state.chat_id,
                    "userName": state.user.get_full_name(),
                },
            )

        if cleared:
            self.get_logger().debug(f"Cleared {cleared} expired typing states")
        return ServiceResult.success(cleared)

    def mark_message_as_read(self, user_id, message_id) -> ServiceResult[ChatUserState]:
        """
        Move the user's read marker to a message and reset the unread count.

        The sender hears about it via ``message_read`` unless they are
        the reader.

        Error codes:
            MESSAGE_NOT_FOUND: Message does not exist
            NOT_A_MEMBER: Reader is not a member of the message's chat
        """
        message = Message.objects.filter(id=message_id).first()
        if message is None:
            return ServiceResult.failure(
                f"Message {message_id} not found",
                error_code=ChatErrorCode.MESSAGE_NOT_FOUND,
            )
        if not _is_member(user_id, message.chat_id):
            return _not_a_member(user_id, message.chat_id)

        read_at = timezone.now()
        state = self._record_read(user_id, message, read_at)

        if message.sender_id != user_id:
            self.publisher.emit_to_channel(
                user_channel(message.sender_id),
                RealtimeEvent.MESSAGE_READ,
                {
                    "messageId": message.id,
                    "chatId": message.chat_id,
                    "readBy": user_id,
                    "readAt": read_at,
                },
            )
        return ServiceResult.success(state)

    def mark_all_messages_as_read(
        self, user_id, chat_id
    ) -> ServiceResult[ChatUserState | None]:
        """
        Mark everything in a chat as read, up to its latest message.

        Returns a successful result with None when the chat has no messages.
        """
        if not _is_member(user_id, chat_id):
            return _not_a_member(user_id, chat_id)

        latest = Message.objects.filter(chat_id=chat_id).order_by("-created_at").first()
        if latest is None:
            return ServiceResult.success(None)

        read_at = timezone.now()
        state = self._record_read(user_id, latest, read_at)

        if latest.sender_id != user_id:
            self.publisher.emit_to_channel(
                user_channel(latest.sender_id),
                RealtimeEvent.MESSAGES_ALL_READ,
                {"chatId": chat_id, "readBy": user_id, "readAt": read_at},
            )
        return ServiceResult.success(state)

    def increment_unread_counter(
        self, message_id, chat_id, sender_id
    ) -> ServiceResult[bool]:
        """
        Add one unread message for every member except the sender.

        Never raises: message delivery must not fail because of counter
        bookkeeping. A chat with no other members succeeds with True.

        Error codes:
            UNREAD_COUNTER_ERROR: The counters could not be updated
        """
        try:
            with self.atomic():
                recipient_ids = list(
                    ChatMember.objects.filter(chat_id=chat_id)
                    .exclude(user_id=sender_id)
                    .values_list("user_id", flat=True)
                )
                for user_id in recipient_ids:
                    ChatUserState.objects.increment_unread(user_id, chat_id)
        except Exception as e:
            return self.handle_exception(
                e,
                f"Unread counter update failed for message {message_id}",
                error_code=ChatErrorCode.UNREAD_COUNTER_ERROR,
                log_level=logging.WARNING,
            )
        return ServiceResult.success(True)

    def toggle_mute_status(
        self, user_id, chat_id, is_muted: bool
    ) -> ServiceResult[ChatUserState]:
        """Mute or unmute NEW_MESSAGE notifications for a chat."""
        if not _is_member(user_id, chat_id):
            return _not_a_member(user_id, chat_id)

        state = ChatUserState.objects.upsert(user_id, chat_id, is_muted=is_muted)
        return ServiceResult.success(state)

    def can_send_messages(self, user_id, chat_id) -> SendPermission:
        """
        Check whether a user may post to a chat.

        A user who has soft-deleted the chat cannot send until it is
        restored. Any database error collapses into reason ERROR.
        """
        try:
            if not _is_member(user_id, chat_id):
                return SendPermission(False, SendDenialReason.USER_NOT_MEMBER)
            if ChatUserState.objects.filter(
                user_id=user_id, chat_id=chat_id, is_deleted=True
            ).exists():
                return SendPermission(False, SendDenialReason.CHAT_DELETED_BY_USER)
        except DatabaseError:
            logger.exception(f"Send permission check failed for user {user_id} in chat {chat_id}")
            return SendPermission(False, SendDenialReason.ERROR)
        return SendPermission(True)

    def soft_delete_chat(self, user_id, chat_id) -> ServiceResult[ChatUserState]:
        """Hide a chat for one user. Does not trigger the cascade."""
        if not _is_member(user_id, chat_id):
            return _not_a_member(user_id, chat_id)

        state = ChatUserState.objects.upsert(
            user_id, chat_id, is_deleted=True, deleted_at=timezone.now()
        )
        return ServiceResult.success(state)

    def restore_chat(self, user_id, chat_id) -> ServiceResult[ChatUserState]:
        """Unhide a chat previously soft-deleted by the user."""
        if not _is_member(user_id, chat_id):
            return _not_a_member(user_id, chat_id)

        state = ChatUserState.objects.upsert(
            user_id, chat_id, is_deleted=False, deleted_at=None
        )
        return ServiceResult.success(state)

    def get_chat_presence_states(self, chat_id) -> list[ChatUserState]:
        return list(
            ChatUserState.objects.for_chat(chat_id).select_related("user", "last_read_message")
        )

    def get_unread_counts_by_user(self, user_id) -> list[ChatUserState]:
        """States with unread messages, excluding chats the user deleted."""
        return list(
            ChatUserState.objects.for_user(user_id)
            .active()
            .filter(unread_count__gt=0)
            .select_related("chat")
        )

    @staticmethod
    def _record_read(user_id, message: Message, read_at: datetime) -> ChatUserState:
        return ChatUserState.objects.upsert(
            user_id,
            message.chat_id,
            last_read_message=message,
            unread_count=0,
            is_online=True,
            last_seen=read_at,
        )


class MessageService(BaseService):
    """
    Service for the message pipeline.

    create_message persists first, then runs the side effects in order:
    restore the chat for members who had deleted it, bump unread counters,
    dispatch notifications. Only the persistence step can fail the call.
    """

    def __init__(
        self,
        publisher: RealtimePublisher,
        presence: ChatPresenceService,
        notifications: NotificationService,
    ):
        self.publisher = publisher
        self.presence = presence
        self.notifications = notifications

    def create_message(
        self,
        content: str,
        sender_id,
        chat_id,
        reply_to_id=None,
    ) -> ServiceResult[Message]:
        """
        Post a message to a chat.

        Args:
            content: Message text (surrounding whitespace is stripped)
            sender_id: Author; must be a member who has not deleted the chat
            chat_id: Target chat
            reply_to_id: Optional message in the same chat being answered

        Returns:
            ServiceResult with the persisted Message

        Error codes:
            EMPTY_CONTENT: Content is blank
            CONTENT_TOO_LONG: Content exceeds MESSAGE_CONFIG.MAX_CONTENT_LENGTH
            NOT_A_MEMBER: Sender is not a member
            CHAT_DELETED_BY_USER: Sender has deleted the chat
            SEND_CHECK_FAILED: Permission check hit a database error
            INVALID_REPLY: Reply target missing or in another chat
        """
        content = (content or "").strip()
        if len(content) < MESSAGE_CONFIG.MIN_CONTENT_LENGTH:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code=ChatErrorCode.EMPTY_CONTENT,
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message content cannot exceed {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code=ChatErrorCode.CONTENT_TOO_LONG,
            )

        permission = self.presence.can_send_messages(sender_id, chat_id)
        if not permission:
            return self._send_denied(permission, sender_id, chat_id)

        reply_to = None
        if reply_to_id:
            reply_to = Message.objects.filter(id=reply_to_id, chat_id=chat_id).first()
            if reply_to is None:
                return ServiceResult.failure(
                    f"Message {reply_to_id} is not in chat {chat_id}",
                    error_code=ChatErrorCode.INVALID_REPLY,
                )

        with self.atomic():
            message = Message.objects.create(
                content=content,
                sender_id=sender_id,
                chat_id=chat_id,
                reply_to=reply_to,
            )
            Chat.objects.filter(id=chat_id).update(updated_at=message.created_at)

        self.get_logger().debug(f"Message {message.id} created in chat {chat_id}")

        try:
            self._restore_for_deleted_members(message)
        except Exception:
            logger.exception(f"Restore on new message failed for chat {chat_id}")

        unread = self.presence.increment_unread_counter(message.id, chat_id, sender_id)
        if not unread:
            logger.warning(f"Unread counters not updated for message {message.id}: {unread.error}")

        try:
            self.notifications.notify_new_message(message)
        except Exception:
            logger.exception(f"Notification dispatch failed for message {message.id}")

        return ServiceResult.success(message)

    def get_messages(
        self,
        chat_id=None,
        user_id=None,
        limit: int = MESSAGE_CONFIG.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[Message]:
        """
        Page through messages, newest first.

        Args:
            chat_id: Only messages in this chat
            user_id: Only messages sent by this user
            limit: Page size (capped at MESSAGE_CONFIG.MAX_PAGE_SIZE)
            offset: Number of messages to skip
        """
        limit = max(1, min(limit, MESSAGE_CONFIG.MAX_PAGE_SIZE))
        offset = max(0, offset)

        queryset = Message.objects.select_related("sender", "reply_to__sender")
        if chat_id:
            queryset = queryset.filter(chat_id=chat_id)
        if user_id:
            queryset = queryset.filter(sender_id=user_id)
        return list(queryset.order_by("-created_at")[offset : offset + limit])

    def get_message_by_id(self, message_id) -> Message | None:
        """Load a message with its sender, reply target and direct replies."""
        return (
            Message.objects.filter(id=message_id)
            .select_related("sender", "reply_to")
            .prefetch_related(
                Prefetch("replies", queryset=Message.objects.select_related("sender"))
            )
            .first()
        )

    def _restore_for_deleted_members(self, message: Message) -> int:
        """
        Undo soft deletes for everyone except the sender.

        Each restored user gets a ``chat_restored`` event with a preview of
        the message. A failure for one user is logged and skipped.

        Returns:
            Number of users the chat was restored for
        """
        deleted_states = list(
            ChatUserState.objects.for_chat(message.chat_id)
            .deleted()
            .exclude(user_id=message.sender_id)
        )
        if not deleted_states:
            return 0

        sender = message.sender
        preview = message.preview(MESSAGE_CONFIG.PREVIEW_LENGTH, MESSAGE_CONFIG.PREVIEW_SUFFIX)

        restored = 0
        for state in deleted_states:
            try:
                with self.atomic():
                    state.restore()
            except Exception:
                logger.exception(
                    f"Failed to restore chat {message.chat_id} for user {state.user_id}"
                )
                continue

            restored += 1
            self.publisher.emit_to_channel(
                user_channel(state.user_id),
                RealtimeEvent.CHAT_RESTORED,
                {
                    "chatId": message.chat_id,
                    "restoredBecause": "new_message",
                    "messageFrom": {"id": sender.id, "name": sender.get_full_name()},
                    "messagePreview": preview,
                },
            )

        self.get_logger().info(
            f"Restored chat {message.chat_id} for {restored} user(s) after message {message.id}"
        )
        return restored

    @staticmethod
    def _send_denied(permission: SendPermission, sender_id, chat_id) -> ServiceResult:
        if permission.reason == SendDenialReason.USER_NOT_MEMBER:
            return _not_a_member(sender_id, chat_id)
        if permission.reason == SendDenialReason.CHAT_DELETED_BY_USER:
            return ServiceResult.failure(
                "You deleted this chat; restore it before sending",
                error_code=ChatErrorCode.CHAT_DELETED_BY_USER,
            )
        return ServiceResult.failure(
            "Could not verify send permission",
            error_code=ChatErrorCode.SEND_CHECK_FAILED,
        )
