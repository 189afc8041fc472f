"""
CaproneClient DeadPool - Quarantine With Exponential Backoff
============================================================

Failed connections sit out for ``dead_timeout`` seconds. Each further
failure before a successful request doubles the sit-out, up to
``dead_timeout * 2 ** timeout_cutoff``. The failure count survives revival
on purpose: a node that keeps coming back broken gets benched for longer
each time. Only ``mark_alive`` (a request that actually succeeded) resets
it.

The dead pool holds plain references to connections owned by the
``ConnectionPool``; it is driven under the pool's lock.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .connection import Connection

logger = logging.getLogger("caproneclient")


@dataclass
class DeadEntry:
    """Quarantine record for one connection."""

    failures: int
    dead_since: float
    retry_at: float

    @property
    def timeout(self) -> float:
        return self.retry_at - self.dead_since


class DeadPool:
    """
    Tracks quarantined connections and when they may be tried again.

    Example:
        dead = DeadPool(dead_timeout=60)
        dead.mark_dead(conn)          # benched for 60s
        dead.revive_eligible()        # [] until the timeout elapses
    """

    def __init__(
        self,
        dead_timeout: float = 60.0,
        timeout_cutoff: int = 5,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            dead_timeout: Base quarantine in seconds for a first failure
            timeout_cutoff: Maximum number of doublings of ``dead_timeout``
            clock: Monotonic time source, injectable for tests
        """
        self.dead_timeout = dead_timeout
        self.timeout_cutoff = timeout_cutoff
        self.clock = clock
        self._dead: Dict[Connection, DeadEntry] = {}
        self._failures: Dict[Connection, int] = {}

    @property
    def max_timeout(self) -> float:
        return self.dead_timeout * 2 ** self.timeout_cutoff

    def __len__(self) -> int:
        return len(self._dead)

    def __contains__(self, connection) -> bool:
        return connection in self._dead

    def timeout_for(self, failures: int) -> float:
        """Quarantine length after ``failures`` consecutive failures."""
        exponent = min(max(failures - 1, 0), self.timeout_cutoff)
        return min(self.dead_timeout * 2 ** exponent, self.max_timeout)

    def entry(self, connection: Connection) -> Optional[DeadEntry]:
        return self._dead.get(connection)

    def failures(self, connection: Connection) -> int:
        """Consecutive failures recorded for a connection (dead or revived)."""
        return self._failures.get(connection, 0)

    def mark_dead(self, connection: Connection) -> DeadEntry:
        now = self.clock()
        failures = self._failures.get(connection, 0) + 1
        self._failures[connection] = failures
        timeout = self.timeout_for(failures)
        entry = DeadEntry(failures=failures, dead_since=now, retry_at=now + timeout)
        self._dead[connection] = entry
        logger.warning(
            "Connection %r marked dead (failures: %d, retry in %.1fs)",
            connection, failures, timeout
        )
        return entry

    def mark_alive(self, connection: Connection):
        """Forget a connection entirely, resetting its failure count."""
        was_dead = self._dead.pop(connection, None) is not None
        had_failures = self._failures.pop(connection, None) is not None
        if was_dead or had_failures:
            logger.info("Connection %r marked alive", connection)

    def revive_eligible(self) -> List[Connection]:
        """
        Remove and return every connection whose quarantine has elapsed.

        The failure count is kept so a relapse escalates the backoff.
        """
        now = self.clock()
        revived = [c for c, entry in self._dead.items() if entry.retry_at <= now]
        for connection in revived:
            del self._dead[connection]
            logger.info("Connection %r revived after timeout", connection)
        return revived

    def force_revive(self) -> Optional[Connection]:
        """
        Revive the connection that failed least recently, ignoring its timeout.

        Returns:
            The revived connection, or None if nothing is quarantined
        """
        if not self._dead:
            return None
        connection = min(self._dead, key=lambda c: self._dead[c].dead_since)
        del self._dead[connection]
        logger.warning("No live connections left, force-reviving %r", connection)
        return connection

    def clear(self):
        """Drop all quarantine and backoff state."""
        self._dead.clear()
        self._failures.clear()
