"""
Tests for ChatPresenceService: presence, typing, reads, counters, mute and
per-user deletion.
"""

from datetime import timedelta

from django.db import DatabaseError
from django.utils import timezone
from freezegun import freeze_time

from chat.constants import ChatErrorCode, RealtimeEvent, SendDenialReason
from chat.models import Chat, ChatUserState
from chat.realtime import chat_room, user_channel
from chat.tests.factories import ChatFactory, MessageFactory


class TestUpdatePresence:
    def test_member_goes_online_and_room_is_told(self, services, publisher, group_chat, alice):
        result = services.presence.update_presence(alice.id, group_chat.id, True)

        assert result.success is True
        state = ChatUserState.objects.get(user=alice, chat=group_chat)
        assert state.is_online is True
        assert state.last_seen is not None

        event = publisher.events_named(RealtimeEvent.USER_PRESENCE_CHANGED)[0]
        assert event.target == chat_room(group_chat.id)
        assert event.payload["isOnline"] is True
        assert event.payload["userId"] == alice.id

    def test_non_member_rejected_without_state(self, services, publisher, group_chat, outsider):
        result = services.presence.update_presence(outsider.id, group_chat.id, True)

        assert result.error_code == ChatErrorCode.NOT_A_MEMBER
        assert not ChatUserState.objects.filter(user=outsider).exists()
        assert publisher.events == []

    def test_repeated_updates_keep_one_row(self, services, group_chat, alice):
        services.presence.update_presence(alice.id, group_chat.id, True)
        services.presence.update_presence(alice.id, group_chat.id, False)

        assert ChatUserState.objects.filter(user=alice, chat=group_chat).count() == 1
        assert ChatUserState.objects.get(user=alice, chat=group_chat).is_online is False


class TestTypingStatus:
    def test_typing_marks_online_and_broadcasts_name(self, services, publisher, group_chat, alice):
        services.presence.update_typing_status(alice.id, group_chat.id, True)

        state = ChatUserState.objects.get(user=alice, chat=group_chat)
        assert state.is_typing is True
        assert state.is_online is True
        assert state.last_typing_at is not None
        event = publisher.events_named(RealtimeEvent.USER_TYPING)[0]
        assert event.payload["userName"] == "Alice Liddell"

    def test_stop_typing_keeps_last_typing_at(self, services, publisher, group_chat, alice):
        services.presence.update_typing_status(alice.id, group_chat.id, True)
        started = ChatUserState.objects.get(user=alice, chat=group_chat).last_typing_at

        services.presence.update_typing_status(alice.id, group_chat.id, False)

        state = ChatUserState.objects.get(user=alice, chat=group_chat)
        assert state.is_typing is False
        assert state.last_typing_at == started
        assert publisher.events_named(RealtimeEvent.USER_TYPING_STOPPED)

    def test_sweep_clears_only_expired_flags(self, services, publisher, group_chat, alice, bob):
        with freeze_time("2026-01-01 12:00:00"):
            services.presence.update_typing_status(alice.id, group_chat.id, True)
        with freeze_time("2026-01-01 12:00:04"):
            services.presence.update_typing_status(bob.id, group_chat.id, True)
        publisher.clear()

        with freeze_time("2026-01-01 12:00:06"):
            result = services.presence.clear_expired_typing_states()

        assert result.data == 1
        assert ChatUserState.objects.get(user=alice, chat=group_chat).is_typing is False
        assert ChatUserState.objects.get(user=bob, chat=group_chat).is_typing is True
        stopped = publisher.events_named(RealtimeEvent.USER_TYPING_STOPPED)
        assert [e.payload["userId"] for e in stopped] == [alice.id]
        assert stopped[0].target == chat_room(group_chat.id)

    def test_sweep_with_nothing_to_clear(self, services, db):
        assert services.presence.clear_expired_typing_states(now=timezone.now()).data == 0


class TestReadReceipts:
    def test_mark_message_as_read_resets_unread_and_tells_sender(
        self, services, publisher, group_chat, alice, bob
    ):
        message = MessageFactory(chat=group_chat, sender=alice)
        ChatUserState.objects.upsert(bob.id, group_chat.id, unread_count=3)

        result = services.presence.mark_message_as_read(bob.id, message.id)

        assert result.success is True
        state = ChatUserState.objects.get(user=bob, chat=group_chat)
        assert state.unread_count == 0
        assert state.last_read_message_id == message.id
        event = publisher.events_named(RealtimeEvent.MESSAGE_READ)[0]
        assert event.target == user_channel(alice.id)
        assert event.payload["readBy"] == bob.id

    def test_reading_own_message_sends_no_receipt(self, services, publisher, group_chat, alice):
        message = MessageFactory(chat=group_chat, sender=alice)

        services.presence.mark_message_as_read(alice.id, message.id)

        assert publisher.events_named(RealtimeEvent.MESSAGE_READ) == []

    def test_unknown_message(self, services, alice):
        result = services.presence.mark_message_as_read(
            alice.id, "00000000-0000-0000-0000-000000000000"
        )

        assert result.error_code == ChatErrorCode.MESSAGE_NOT_FOUND

    def test_non_member_cannot_read(self, services, group_chat, alice, outsider):
        message = MessageFactory(chat=group_chat, sender=alice)

        result = services.presence.mark_message_as_read(outsider.id, message.id)

        assert result.error_code == ChatErrorCode.NOT_A_MEMBER

    def test_mark_all_read_points_at_latest_message(self, services, publisher, group_chat, alice, bob):
        MessageFactory(chat=group_chat, sender=alice)
        latest = MessageFactory(chat=group_chat, sender=alice)

        result = services.presence.mark_all_messages_as_read(bob.id, group_chat.id)

        assert result.data.last_read_message_id == latest.id
        assert publisher.targets_of(RealtimeEvent.MESSAGES_ALL_READ) == [user_channel(alice.id)]

    def test_mark_all_read_clears_chat_from_unread_counts(self, services, group_chat, alice, bob):
        services.messages.create_message("one", alice.id, group_chat.id)
        services.messages.create_message("two", alice.id, group_chat.id)
        assert [s.chat_id for s in services.presence.get_unread_counts_by_user(bob.id)] == [
            group_chat.id
        ]

        services.presence.mark_all_messages_as_read(bob.id, group_chat.id)

        assert services.presence.get_unread_counts_by_user(bob.id) == []

    def test_mark_all_read_on_empty_chat(self, services, group_chat, bob):
        result = services.presence.mark_all_messages_as_read(bob.id, group_chat.id)

        assert result.success is True
        assert result.data is None


class TestUnreadCounter:
    def test_increments_everyone_but_sender(self, services, group_chat, alice, bob, carol):
        message = MessageFactory(chat=group_chat, sender=alice)

        result = services.presence.increment_unread_counter(message.id, group_chat.id, alice.id)

        assert result.data is True
        assert ChatUserState.objects.get(user=bob, chat=group_chat).unread_count == 1
        assert ChatUserState.objects.get(user=carol, chat=group_chat).unread_count == 1
        assert not ChatUserState.objects.filter(user=alice, chat=group_chat).exists()

    def test_chat_without_other_members_succeeds(self, services, alice):
        solo = ChatFactory(name="Notes", members=[alice])
        message = MessageFactory(chat=solo, sender=alice)

        result = services.presence.increment_unread_counter(message.id, solo.id, alice.id)

        assert result.success is True
        assert result.data is True
        assert not ChatUserState.objects.filter(chat=solo).exists()

    def test_failure_is_reported_not_raised(self, services, mocker, group_chat, alice):
        mocker.patch.object(
            ChatUserState.objects, "increment_unread", side_effect=DatabaseError("down")
        )

        result = services.presence.increment_unread_counter("m1", group_chat.id, alice.id)

        assert result.success is False
        assert result.error_code == ChatErrorCode.UNREAD_COUNTER_ERROR

    def test_unread_counts_skip_deleted_chats(self, services, group_chat, alice, bob):
        ChatUserState.objects.upsert(bob.id, group_chat.id, unread_count=2)
        ChatUserState.objects.upsert(alice.id, group_chat.id, unread_count=5, is_deleted=True)

        assert [s.unread_count for s in services.presence.get_unread_counts_by_user(bob.id)] == [2]
        assert services.presence.get_unread_counts_by_user(alice.id) == []


class TestMuteAndSendPermission:
    def test_toggle_mute(self, services, group_chat, bob):
        services.presence.toggle_mute_status(bob.id, group_chat.id, True)

        assert ChatUserState.objects.get(user=bob, chat=group_chat).is_muted is True

    def test_member_can_send(self, services, group_chat, alice):
        permission = services.presence.can_send_messages(alice.id, group_chat.id)

        assert permission.can_send is True
        assert bool(permission) is True

    def test_non_member_cannot_send(self, services, group_chat, outsider):
        permission = services.presence.can_send_messages(outsider.id, group_chat.id)

        assert permission.reason == SendDenialReason.USER_NOT_MEMBER

    def test_soft_deleted_chat_blocks_sending(self, services, group_chat, alice):
        services.presence.soft_delete_chat(alice.id, group_chat.id)

        permission = services.presence.can_send_messages(alice.id, group_chat.id)

        assert permission.reason == SendDenialReason.CHAT_DELETED_BY_USER

    def test_database_error_collapses_to_error(self, services, mocker, group_chat, alice):
        mocker.patch("chat.services._is_member", side_effect=DatabaseError("down"))

        permission = services.presence.can_send_messages(alice.id, group_chat.id)

        assert permission.can_send is False
        assert permission.reason == SendDenialReason.ERROR


class TestSoftDeleteAndRestore:
    def test_soft_delete_does_not_cascade(self, services, individual_chat, alice, bob):
        services.presence.soft_delete_chat(alice.id, individual_chat.id)
        services.presence.soft_delete_chat(bob.id, individual_chat.id)

        assert ChatUserState.objects.for_chat(individual_chat.id).deleted().count() == 2
        assert Chat.objects.filter(id=individual_chat.id).exists()

    def test_restore_clears_deleted_at(self, services, group_chat, alice):
        services.presence.soft_delete_chat(alice.id, group_chat.id)

        result = services.presence.restore_chat(alice.id, group_chat.id)

        assert result.data.is_deleted is False
        assert result.data.deleted_at is None

    def test_presence_states_listed_for_chat(self, services, group_chat, alice, bob):
        services.presence.update_presence(alice.id, group_chat.id, True)
        services.presence.update_presence(bob.id, group_chat.id, False)

        states = services.presence.get_chat_presence_states(group_chat.id)

        assert {s.user_id: s.is_online for s in states} == {alice.id: True, bob.id: False}


def test_typing_timeout_boundary(services, group_chat, alice):
    """A flag exactly at the timeout is still fresh; one second later it is stale."""
    start = timezone.now()
    ChatUserState.objects.upsert(alice.id, group_chat.id, is_typing=True, last_typing_at=start)

    assert services.presence.clear_expired_typing_states(now=start + timedelta(seconds=5)).data == 0
    assert services.presence.clear_expired_typing_states(now=start + timedelta(seconds=6)).data == 1
