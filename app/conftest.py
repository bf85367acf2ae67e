"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os
from dataclasses import dataclass, field

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # No Redis in tests: in-process channel layer, tasks run inline
    settings.CHANNEL_LAYERS = {
        "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
    }
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_consumers.py → e2e (socket round trips through the ASGI stack)
    - test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_serializers.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_consumers.py"]

    integration_patterns = [
        "test_services.py",
        "test_presence.py",
        "test_messages.py",
        "test_tasks.py",
        "test_realtime.py",
        "test_middleware.py",
        "test_views.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_managers.py",
        "test_circuit_breaker.py",
        "test_soft_delete_mixin.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Realtime
# =============================================================================


@dataclass
class RecordedEvent:
    target: str
    event: str
    payload: dict


@dataclass
class RecordingPublisher:
    """RealtimePublisher that keeps every emit for assertions."""

    events: list[RecordedEvent] = field(default_factory=list)

    def emit_to_room(self, room: str, event: str, payload: dict) -> None:
        self.events.append(RecordedEvent(room, event, payload))

    def emit_to_channel(self, channel: str, event: str, payload: dict) -> None:
        self.events.append(RecordedEvent(channel, event, payload))

    def events_named(self, event: str) -> list[RecordedEvent]:
        return [e for e in self.events if e.event == event]

    def targets_of(self, event: str) -> list[str]:
        return [e.target for e in self.events_named(event)]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def publisher():
    return RecordingPublisher()


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def alice(db):
    from authentication.tests.factories import UserFactory

    return UserFactory(name="Alice Liddell")


@pytest.fixture
def bob(db):
    from authentication.tests.factories import UserFactory

    return UserFactory(name="Bob Builder")


@pytest.fixture
def carol(db):
    from authentication.tests.factories import UserFactory

    return UserFactory(name="Carol Danvers")


@pytest.fixture
def outsider(db):
    """A user who is not a member of any fixture chat."""
    from authentication.tests.factories import UserFactory

    return UserFactory(name="Outsider")
