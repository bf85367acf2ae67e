"""
Tests for chat Celery tasks.
"""

from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from chat import tasks
from chat.models import ChatUserState
from core.services import ServiceResult


class TestClearExpiredTypingStates:
    def test_clears_stale_typing_flags(self, mocker, services, group_chat, alice):
        mocker.patch("chat.tasks.get_chat_services", return_value=services)
        ChatUserState.objects.upsert(
            alice.id,
            group_chat.id,
            is_typing=True,
            last_typing_at=timezone.now() - timedelta(seconds=30),
        )

        cleared = tasks.clear_expired_typing_states.apply().get()

        assert cleared == 1
        assert ChatUserState.objects.get(user=alice, chat=group_chat).is_typing is False

    def test_failed_sweep_returns_zero(self, mocker):
        services = mocker.Mock()
        services.presence.clear_expired_typing_states.return_value = ServiceResult.failure("down")
        mocker.patch("chat.tasks.get_chat_services", return_value=services)

        assert tasks.clear_expired_typing_states() == 0

    def test_scheduled_by_beat(self):
        entry = settings.CELERY_BEAT_SCHEDULE["chat-clear-expired-typing-states"]

        assert entry["task"] == "chat.tasks.clear_expired_typing_states"
        assert entry["schedule"] == 10.0
