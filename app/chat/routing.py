"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/realtime/ - Single realtime gateway; clients join chat rooms and
        their personal channel with events after connecting

Authentication:
    JWT token may be passed as query parameter ?token=<jwt_access_token>
    or as the "jwt" subprotocol. JWTAuthMiddleware attaches the user (or
    AnonymousUser) to the consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/realtime/", consumers.RealtimeConsumer.as_asgi()),
]
