"""
Tests for the WebSocket JWT middleware.
"""

from asgiref.sync import async_to_sync
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory
from chat.middleware import (
    JWTAuthMiddleware,
    get_token_from_query,
    get_token_from_subprotocol,
    get_user_from_token,
)


class TestTokenExtraction:
    def test_query_string(self):
        assert get_token_from_query({"query_string": b"token=abc&x=1"}) == "abc"
        assert get_token_from_query({"query_string": b""}) is None

    def test_subprotocol(self):
        assert get_token_from_subprotocol({"subprotocols": ["jwt", "abc"]}) == "abc"
        assert get_token_from_subprotocol({"subprotocols": ["chat"]}) is None


class TestUserResolution:
    def test_valid_token_resolves_user(self, transactional_db):
        user = UserFactory()

        resolved = async_to_sync(get_user_from_token)(str(AccessToken.for_user(user)))

        assert resolved == user

    def test_invalid_token_is_anonymous(self, transactional_db):
        resolved = async_to_sync(get_user_from_token)("not-a-token")

        assert resolved.is_authenticated is False

    def test_inactive_user_is_anonymous(self, transactional_db):
        user = UserFactory(is_active=False)

        resolved = async_to_sync(get_user_from_token)(str(AccessToken.for_user(user)))

        assert resolved.is_authenticated is False

    def test_deleted_user_is_anonymous(self, transactional_db):
        user = UserFactory()
        token = str(AccessToken.for_user(user))
        user.delete()

        assert async_to_sync(get_user_from_token)(token).is_authenticated is False


def test_middleware_attaches_anonymous_user_without_token():
    seen = {}

    async def inner(scope, receive, send):
        seen["user"] = scope["user"]

    async_to_sync(JWTAuthMiddleware(inner))({"type": "websocket", "query_string": b""}, None, None)

    assert seen["user"].is_authenticated is False
