"""
Persistence circuit for degrading gracefully when the database is away.

The notification dispatcher keeps delivering realtime events while the
database is unreachable. This module tracks whether persistence should be
attempted, and when to probe for recovery.

States:
    - DB_CONNECTED: Normal operation, writes go to the database
    - DB_DEGRADED: Persistence is skipped; a health probe runs at most
      once per recovery interval and closes the circuit when it succeeds

Usage:
    from core.circuit_breaker import PersistenceCircuit

    circuit = PersistenceCircuit(name="notifications", recovery_interval=30)

    if circuit.is_available():
        try:
            Notification.objects.create(...)
        except OperationalError:
            circuit.record_failure()

Design Notes:
    - State is held in-process. Each worker probes on its own schedule
    - The clock and probe are injectable so tests can drive transitions
    - A probe that raises is treated as a failed probe, never propagated
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import TYPE_CHECKING

from django.db import DatabaseError, connection

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class PersistenceState(str, Enum):
    """Persistence circuit states."""

    CONNECTED = "DB_CONNECTED"
    DEGRADED = "DB_DEGRADED"


def database_probe() -> bool:
    """
    Run a trivial query against the default database.

    Returns:
        True when the database answered, False otherwise
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        return True
    except DatabaseError as e:
        logger.debug(f"Database probe failed: {e}")
        return False


class PersistenceCircuit:
    """
    Two-state circuit guarding database writes.

    Attributes:
        name: Identifier used in log records
        recovery_interval: Minimum seconds between health probes while degraded

    Example:
        circuit = PersistenceCircuit("notifications", recovery_interval=30)

        circuit.record_failure()
        circuit.state                  # PersistenceState.DEGRADED
        circuit.is_available()         # probes at most once per 30s
    """

    def __init__(
        self,
        name: str,
        recovery_interval: float = 30,
        probe: Callable[[], bool] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        """
        Initialize the circuit in the connected state.

        Args:
            name: Identifier for logging (e.g., "notifications")
            recovery_interval: Seconds between probes while degraded
            probe: Health check returning True when the database is back
            clock: Monotonic clock, defaults to time.monotonic
        """
        self.name = name
        self.recovery_interval = recovery_interval
        self._probe = probe or database_probe
        self._clock = clock or time.monotonic
        self._state = PersistenceState.CONNECTED
        self._last_probe_at: float | None = None

    @property
    def state(self) -> PersistenceState:
        return self._state

    @property
    def is_degraded(self) -> bool:
        return self._state == PersistenceState.DEGRADED

    def is_available(self) -> bool:
        """
        Check whether persistence should be attempted.

        While degraded, runs the health probe if the recovery interval has
        elapsed since the previous probe (or since entering degraded mode).

        Returns:
            True when connected (possibly after a successful probe)
        """
        if self._state == PersistenceState.CONNECTED:
            return True

        now = self._clock()
        if (
            self._last_probe_at is not None
            and now - self._last_probe_at < self.recovery_interval
        ):
            return False

        self._last_probe_at = now
        try:
            healthy = bool(self._probe())
        except Exception as e:
            logger.warning(
                f"Persistence probe raised: {e}",
                extra={"circuit": self.name},
            )
            healthy = False

        if healthy:
            self.record_success()
            return True
        return False

    def record_success(self) -> None:
        """Return to the connected state."""
        if self._state == PersistenceState.DEGRADED:
            logger.info(
                "Persistence restored, leaving degraded mode",
                extra={"circuit": self.name},
            )
        self._state = PersistenceState.CONNECTED
        self._last_probe_at = None

    def record_failure(self) -> None:
        """
        Enter degraded mode after a connectivity failure.

        The next probe is scheduled one recovery interval from now.
        """
        if self._state == PersistenceState.CONNECTED:
            logger.warning(
                "Persistence unavailable, entering degraded mode",
                extra={"circuit": self.name},
            )
        self._state = PersistenceState.DEGRADED
        self._last_probe_at = self._clock()

    def reset(self) -> None:
        """Manually reset the circuit to connected. Used by tests and admin tooling."""
        self._state = PersistenceState.CONNECTED
        self._last_probe_at = None

    def get_status(self) -> dict:
        """Current circuit status for health reporting."""
        status = {
            "name": self.name,
            "state": self._state.value,
            "recovery_interval": self.recovery_interval,
        }
        if self._last_probe_at is not None:
            status["seconds_since_probe"] = int(self._clock() - self._last_probe_at)
        return status

    def __repr__(self) -> str:
        return f"PersistenceCircuit(name={self.name!r}, state={self._state.value})"
