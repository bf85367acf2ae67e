"""
QuerySet and Manager for ChatUserState.

Manager vs QuerySet:
    - QuerySet: Chainable filters (active, deleted, expired_typing)
    - Manager: Row-level write operations that must be race-safe

Usage:
    ChatUserState.objects.upsert(user_id, chat_id, is_online=True)
    ChatUserState.objects.increment_unread(user_id, chat_id)
    ChatUserState.objects.for_chat(chat_id).active()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.db import IntegrityError, models, transaction
from django.db.models import F
from django.utils import timezone

if TYPE_CHECKING:
    from datetime import datetime


class ChatUserStateQuerySet(models.QuerySet):
    """Chainable filters for chat user states."""

    def for_chat(self, chat_id) -> ChatUserStateQuerySet:
        return self.filter(chat_id=chat_id)

    def for_user(self, user_id) -> ChatUserStateQuerySet:
        return self.filter(user_id=user_id)

    def active(self) -> ChatUserStateQuerySet:
        """States where the user has not deleted the chat."""
        return self.filter(is_deleted=False)

    def deleted(self) -> ChatUserStateQuerySet:
        """States where the user has soft-deleted the chat."""
        return self.filter(is_deleted=True)

    def expired_typing(self, cutoff: datetime) -> ChatUserStateQuerySet:
        """Typing flags last refreshed before ``cutoff``."""
        return self.filter(is_typing=True, last_typing_at__lt=cutoff)


class ChatUserStateManager(models.Manager.from_queryset(ChatUserStateQuerySet)):
    """
    Manager providing atomic upserts for per-user chat state.

    Concurrent first-touch writers for the same (user, chat) must never
    produce two rows. Both write paths lean on the unique constraint:
    the loser of an insert race falls back to updating the winner's row.
    """

    def upsert(
        self,
        user_id: int,
        chat_id,
        defaults: dict[str, Any] | None = None,
        **fields: Any,
    ):
        """
        Create or update the state row for (user, chat).

        Args:
            user_id: Member the state belongs to
            chat_id: Chat the state belongs to
            defaults: Extra values applied only when the row is created
            **fields: Values written on both create and update

        Returns:
            The saved ChatUserState
        """
        state, _ = self.update_or_create(
            user_id=user_id,
            chat_id=chat_id,
            defaults=fields,
            create_defaults={**(defaults or {}), **fields},
        )
        return state

    def increment_unread(self, user_id: int, chat_id) -> None:
        """
        Add one to the user's unread counter, creating the row at 1.

        Uses an F() expression so concurrent increments never lose updates.
        """
        if self._bump_unread(user_id, chat_id):
            return

        try:
            with transaction.atomic():
                self.create(user_id=user_id, chat_id=chat_id, unread_count=1)
        except IntegrityError:
            # Another writer created the row first
            self._bump_unread(user_id, chat_id)

    def _bump_unread(self, user_id: int, chat_id) -> int:
        return self.filter(user_id=user_id, chat_id=chat_id).update(
            unread_count=F("unread_count") + 1,
            updated_at=timezone.now(),
        )
