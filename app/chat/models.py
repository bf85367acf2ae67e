"""
Chat system models.

This module defines the data models for the realtime chat core:
- Individual chats between exactly two users
- Group and sub-group chats with any number of members

Models:
    Chat: Container for messages between members
    IndividualChatPair: Helper enforcing one individual chat per user pair
    ChatMember: Membership of a user in a chat
    ChatUserState: Per-(user, chat) presence, typing, read and deletion state
    Message: Individual message within a chat

Design Decisions:
    - Individual chats have exactly two members; the pair table makes the
      "one chat per unordered pair" rule a database constraint
    - ChatUserState rows are created lazily on first touch via an atomic
      upsert keyed on the unique (user, chat) pair
    - Deleting a chat is per-user (soft delete on ChatUserState) until every
      member has deleted it, then the chat is removed permanently
    - Messages are immutable
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from chat.managers import ChatUserStateManager
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel


class ChatType(models.TextChoices):
    """
    Type of chat.

    INDIVIDUAL: Exactly two members, at most one chat per pair of users
    GROUP: Any number of members
    SUBGROUP: A group spun off another group; same rules as GROUP
    """

    INDIVIDUAL = "INDIVIDUAL", "Individual"
    GROUP = "GROUP", "Group"
    SUBGROUP = "SUBGROUP", "Subgroup"


class Chat(UUIDPrimaryKeyMixin, BaseModel):
    """
    A chat between two or more users.

    Fields:
        name: Optional display name (typically set for groups)
        chat_type: INDIVIDUAL, GROUP or SUBGROUP
        participants: Users with a ChatMember row

    ``updated_at`` is bumped on every new message so chat lists can be
    ordered by latest activity.
    """

    name = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Optional chat name",
    )
    chat_type = models.CharField(
        max_length=20,
        choices=ChatType.choices,
        default=ChatType.GROUP,
        db_index=True,
        help_text="Individual, group or sub-group chat",
    )
    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="ChatMember",
        related_name="chats",
        help_text="Users who are members of this chat",
    )

    class Meta:
        db_table = "chat_chat"
        ordering = ["-updated_at"]

    def __str__(self) -> str:
        return self.name or f"{self.get_chat_type_display()} chat {self.pk}"

    @property
    def is_individual(self) -> bool:
        return self.chat_type == ChatType.INDIVIDUAL


class IndividualChatPair(models.Model):
    """
    Enforces uniqueness of individual chats between two users.

    Stores user pairs in canonical order (lower user id first) so that
    regardless of who starts the chat, only one individual chat can exist
    for any pair.

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One chat per pair
        - CheckConstraint(user_lower_id < user_higher_id): Canonical order
    """

    chat = models.OneToOneField(
        Chat,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="individual_pair",
        help_text="The individual chat this pair represents",
    )
    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower id in this pair",
    )
    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher id in this pair",
    )

    class Meta:
        db_table = "chat_individual_chat_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_individual_chat_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="individual_pair_user_lower_less_than_higher",
            ),
        ]

    @staticmethod
    def canonical(user_a_id: int, user_b_id: int) -> tuple[int, int]:
        """Return the pair ordered (lower, higher)."""
        return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


class ChatMember(BaseModel):
    """
    Membership of a user in a chat.

    Created at chat creation or by an explicit add; never updated.
    Removed when the chat is permanently deleted.
    """

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="members",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_memberships",
    )

    class Meta:
        db_table = "chat_chat_member"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["chat", "user"],
                name="unique_chat_member",
            ),
        ]

    def __str__(self) -> str:
        return f"ChatMember(chat={self.chat_id}, user={self.user_id})"


class ChatUserState(SoftDeleteMixin, BaseModel):
    """
    Per-user state within a chat.

    Fields:
        is_online / last_seen: Presence in this chat
        is_typing / last_typing_at: Typing indicator (stale after 5 seconds)
        last_read_message: Newest message the user has read
        unread_count: Messages received since last read (never negative)
        is_muted: Suppresses NEW_MESSAGE notifications for this user
        is_deleted / deleted_at: Chat hidden for this user (from SoftDeleteMixin)

    Rows exist only for members and are created on first touch through
    ``ChatUserState.objects.upsert()``.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_states",
    )
    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="user_states",
    )
    is_online = models.BooleanField(default=False)
    last_seen = models.DateTimeField(null=True, blank=True)
    is_typing = models.BooleanField(default=False)
    last_typing_at = models.DateTimeField(null=True, blank=True)
    last_read_message = models.ForeignKey(
        "Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    unread_count = models.PositiveIntegerField(default=0)
    is_muted = models.BooleanField(default=False)

    objects = ChatUserStateManager()

    class Meta:
        db_table = "chat_chat_user_state"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "chat"],
                name="unique_chat_user_state",
            ),
        ]
        indexes = [
            # Typing sweep scans for stale typing flags
            models.Index(
                fields=["is_typing", "last_typing_at"],
                name="chat_state_typing_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"ChatUserState(chat={self.chat_id}, user={self.user_id})"


class Message(UUIDPrimaryKeyMixin, BaseModel):
    """
    A message in a chat.

    Fields:
        content: Message text
        sender: User who wrote it
        chat: Chat the message belongs to
        reply_to: Optional message in the same chat this one answers
    """

    content = models.TextField()
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_messages",
    )
    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="messages",
    )
    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["chat", "created_at"],
                name="chat_message_chat_time_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message(id={self.pk}, chat={self.chat_id})"

    def preview(self, length: int, suffix: str = "...") -> str:
        """Content truncated to ``length`` characters, with ``suffix`` when cut."""
        if len(self.content) <= length:
            return self.content
        return self.content[:length] + suffix
