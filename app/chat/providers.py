"""
Service wiring for the chat core.

Services take their collaborators as constructor arguments. This module
builds the production graph once per process, sharing one realtime
publisher and one notification dispatcher (and so one persistence
circuit) between all services.

Usage:
    from chat.providers import get_chat_services

    services = get_chat_services()
    services.messages.create_message("hi", user.id, chat.id)
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from chat.realtime import ChannelLayerPublisher, RealtimePublisher
from chat.services import ChatPresenceService, ChatService, MessageService
from notifications.services import NotificationService


@dataclass(frozen=True)
class ChatServices:
    """The service graph shared by consumers and tasks."""

    publisher: RealtimePublisher
    notifications: NotificationService
    presence: ChatPresenceService
    messages: MessageService
    chats: ChatService


def build_chat_services(publisher: RealtimePublisher) -> ChatServices:
    """Wire the services around a publisher."""
    notifications = NotificationService(publisher)
    presence = ChatPresenceService(publisher)
    return ChatServices(
        publisher=publisher,
        notifications=notifications,
        presence=presence,
        messages=MessageService(publisher, presence, notifications),
        chats=ChatService(publisher, notifications),
    )


@lru_cache(maxsize=1)
def get_chat_services() -> ChatServices:
    """Process-wide services backed by the Channels layer."""
    return build_chat_services(ChannelLayerPublisher())
