"""
Factory Boy factories for chat models.

Provides test data generation for:
- Chat: Group chats by default
- ChatMember: Membership rows
- ChatUserState: Per-user state rows
- Message: Messages in a chat

Usage:
    from chat.tests.factories import ChatFactory, ChatMemberFactory, MessageFactory

    chat = ChatFactory(members=[alice, bob])
    message = MessageFactory(chat=chat, sender=alice)
"""

import factory

from authentication.tests.factories import UserFactory
from chat.models import Chat, ChatMember, ChatType, ChatUserState, Message


class ChatFactory(factory.django.DjangoModelFactory):
    """
    Factory for Chat model.

    Pass ``members=[...]`` to create ChatMember rows for those users.

    Examples:
        chat = ChatFactory()
        chat = ChatFactory(name="Project Team", members=[alice, bob, carol])
    """

    class Meta:
        model = Chat
        skip_postgeneration_save = True

    name = factory.Sequence(lambda n: f"Chat {n}")
    chat_type = ChatType.GROUP

    @factory.post_generation
    def members(self, create, extracted, **kwargs):
        if not create or not extracted:
            return
        for user in extracted:
            ChatMember.objects.create(chat=self, user=user)


class ChatMemberFactory(factory.django.DjangoModelFactory):
    """Factory for ChatMember model."""

    class Meta:
        model = ChatMember

    chat = factory.SubFactory(ChatFactory)
    user = factory.SubFactory(UserFactory)


class ChatUserStateFactory(factory.django.DjangoModelFactory):
    """Factory for ChatUserState model."""

    class Meta:
        model = ChatUserState

    chat = factory.SubFactory(ChatFactory)
    user = factory.SubFactory(UserFactory)


class MessageFactory(factory.django.DjangoModelFactory):
    """Factory for Message model."""

    class Meta:
        model = Message

    chat = factory.SubFactory(ChatFactory)
    sender = factory.SubFactory(UserFactory)
    content = factory.Faker("sentence")
