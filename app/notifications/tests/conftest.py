"""
Test configuration and fixtures for notification tests.

Provides a NotificationService wired to the recording publisher with a
manually driven clock and probe, so degraded-mode transitions can be
tested without a real outage.
"""

import pytest

from core.circuit_breaker import PersistenceCircuit
from notifications.services import NotificationService


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def probe(mocker):
    """Health probe that reports the database down until told otherwise."""
    return mocker.Mock(return_value=False)


@pytest.fixture
def circuit(clock, probe):
    return PersistenceCircuit("notifications", recovery_interval=30, probe=probe, clock=clock)


@pytest.fixture
def dispatcher(publisher, circuit):
    return NotificationService(publisher, circuit=circuit)
