"""
Tests for UserManager.

The UserManager provides:
- create_user(): Creates regular users with optional password
- create_superuser(): Creates admin users with elevated privileges

Related files:
    - managers.py: Implementation under test
    - models.py: User model that uses this manager
"""

import pytest

from authentication.models import User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created with those credentials
        """
        user = User.objects.create_user(email="mgr@example.com", password="SecurePass123!")

        assert user.pk is not None
        assert user.email == "mgr@example.com"
        assert user.check_password("SecurePass123!") is True

    def test_normalizes_email_domain_to_lowercase(self, db):
        """The domain portion is lowercased, the local part is preserved."""
        user = User.objects.create_user(email="Test.User@EXAMPLE.COM")

        assert user.email == "Test.User@example.com"

    def test_raises_valueerror_when_email_is_empty(self, db):
        with pytest.raises(ValueError, match="Email field must be set"):
            User.objects.create_user(email="")

    def test_creates_user_without_password(self, db):
        """
        Given no password
        When create_user is called
        Then the user gets an unusable password
        """
        user = User.objects.create_user(email="tokenonly@example.com")

        assert user.has_usable_password() is False

    def test_sets_default_flags_for_regular_user(self, db):
        user = User.objects.create_user(email="flags@example.com")

        assert user.is_active is True
        assert user.is_staff is False
        assert user.is_superuser is False

    def test_accepts_display_name(self, db):
        user = User.objects.create_user(email="named@example.com", name="Ada Lovelace")

        assert user.name == "Ada Lovelace"


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_superuser_with_correct_flags(self, db):
        admin = User.objects.create_superuser(
            email="root@example.com", password="AdminPass123!"
        )

        assert admin.is_staff is True
        assert admin.is_superuser is True

    def test_raises_valueerror_when_is_staff_is_false(self, db):
        with pytest.raises(ValueError, match="is_staff=True"):
            User.objects.create_superuser(
                email="bad@example.com", password="x", is_staff=False
            )

    def test_raises_valueerror_when_is_superuser_is_false(self, db):
        with pytest.raises(ValueError, match="is_superuser=True"):
            User.objects.create_superuser(
                email="bad@example.com", password="x", is_superuser=False
            )
