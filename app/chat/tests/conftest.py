"""
Test configuration and fixtures for chat tests.

This module provides:
- Services wired around the recording publisher (see app/conftest.py)
- Chat fixtures for common scenarios

Usage:
    def test_example(services, publisher, group_chat, alice):
        services.messages.create_message("hi", alice.id, group_chat.id)
        assert publisher.events_named("notification")
"""

import pytest

from chat.models import ChatType
from chat.providers import build_chat_services
from chat.tests.factories import ChatFactory


@pytest.fixture
def services(publisher):
    """Chat services wired around the recording publisher."""
    return build_chat_services(publisher)


@pytest.fixture
def group_chat(alice, bob, carol):
    """Group chat with alice, bob and carol as members."""
    return ChatFactory(name="Team", members=[alice, bob, carol])


@pytest.fixture
def individual_chat(services, publisher, alice, bob):
    """Individual chat between alice and bob, created through the service."""
    result = services.chats.create_chat(
        [alice.id, bob.id], ChatType.INDIVIDUAL, creator_id=alice.id
    )
    assert result.success
    publisher.clear()
    return result.data
