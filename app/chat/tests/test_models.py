"""
Tests for chat models.

Covers:
- IndividualChatPair canonical ordering and constraints
- Message preview truncation
- ChatUserState uniqueness per (user, chat)
"""

from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction

from chat.models import Chat, ChatMember, ChatType, ChatUserState, IndividualChatPair
from chat.tests.factories import ChatFactory, MessageFactory


class TestIndividualChatPair:
    def test_canonical_orders_lower_id_first(self):
        assert IndividualChatPair.canonical(9, 3) == (3, 9)
        assert IndividualChatPair.canonical(3, 9) == (3, 9)

    def test_rejects_non_canonical_order(self, alice, bob):
        chat = ChatFactory(chat_type=ChatType.INDIVIDUAL)
        lower, higher = sorted([alice, bob], key=lambda u: u.id)

        with pytest.raises(IntegrityError), transaction.atomic():
            IndividualChatPair.objects.create(chat=chat, user_lower=higher, user_higher=lower)

    def test_rejects_second_chat_for_same_pair(self, alice, bob):
        lower, higher = sorted([alice, bob], key=lambda u: u.id)
        IndividualChatPair.objects.create(
            chat=ChatFactory(chat_type=ChatType.INDIVIDUAL), user_lower=lower, user_higher=higher
        )

        with pytest.raises(IntegrityError), transaction.atomic():
            IndividualChatPair.objects.create(
                chat=ChatFactory(chat_type=ChatType.INDIVIDUAL),
                user_lower=lower,
                user_higher=higher,
            )


class TestChat:
    def test_str_falls_back_to_type_and_id(self, db):
        chat = ChatFactory(name=None, chat_type=ChatType.GROUP)
        assert str(chat) == f"Group chat {chat.pk}"

    def test_participants_through_members(self, alice, bob):
        chat = ChatFactory(members=[alice, bob])
        assert set(chat.participants.values_list("id", flat=True)) == {alice.id, bob.id}
        assert ChatMember.objects.filter(chat=chat).count() == 2

    def test_is_individual(self, db):
        assert ChatFactory(chat_type=ChatType.INDIVIDUAL).is_individual
        assert not ChatFactory(chat_type=ChatType.SUBGROUP).is_individual

    def test_chats_ordered_by_latest_activity(self, db):
        older = ChatFactory()
        newer = ChatFactory()
        Chat.objects.filter(id=older.id).update(updated_at=newer.updated_at + timedelta(minutes=1))

        assert [chat.id for chat in Chat.objects.all()] == [older.id, newer.id]


class TestMessagePreview:
    def test_short_content_is_unchanged(self, db):
        message = MessageFactory(content="hello")
        assert message.preview(50) == "hello"

    def test_long_content_is_truncated_with_suffix(self, db):
        message = MessageFactory(content="x" * 60)
        assert message.preview(50) == "x" * 50 + "..."

    def test_exact_length_has_no_suffix(self, db):
        message = MessageFactory(content="y" * 50)
        assert message.preview(50) == "y" * 50


class TestChatUserState:
    def test_one_row_per_user_and_chat(self, alice):
        chat = ChatFactory(members=[alice])
        ChatUserState.objects.create(user=alice, chat=chat)

        with pytest.raises(IntegrityError), transaction.atomic():
            ChatUserState.objects.create(user=alice, chat=chat)

    def test_defaults(self, alice):
        state = ChatUserState.objects.create(user=alice, chat=ChatFactory(members=[alice]))
        assert state.unread_count == 0
        assert state.is_online is False
        assert state.is_muted is False
        assert state.is_deleted is False
