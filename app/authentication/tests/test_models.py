"""
Tests for the User model.

Tests focus on observable behavior:
- Unique email constraint
- Display name helpers used by chat events
"""

import pytest
from django.db import IntegrityError

from authentication.tests.factories import UserFactory


class TestUserModel:
    """Tests for User fields and helpers."""

    def test_str_returns_email(self, user):
        assert str(user) == user.email

    def test_email_must_be_unique(self, db):
        """
        Given an existing user
        When another user is created with the same email
        Then the database rejects it
        """
        UserFactory(email="dup@example.com")

        with pytest.raises(IntegrityError):
            UserFactory(email="dup@example.com")

    def test_get_full_name_returns_name(self, db):
        user = UserFactory(name="Grace Hopper")

        assert user.get_full_name() == "Grace Hopper"

    def test_get_full_name_falls_back_to_email(self, db):
        """
        Why it matters: typing and notification payloads always need a
        non-empty userName.
        """
        user = UserFactory(name="")

        assert user.get_full_name() == user.email

    def test_get_short_name(self, db):
        assert UserFactory(name="Grace Hopper").get_short_name() == "Grace"
        assert UserFactory(name="", email="ada@example.com").get_short_name() == "ada"
