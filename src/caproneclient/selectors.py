"""
CaproneClient Selectors
=======================

A selector picks the connection that serves the next request from the
pool's current live list. Selectors keep only their own rotation state and
are always called under the pool's lock, so they need no locking of their
own.
"""

import random
from typing import Optional, Sequence

from .connection import Connection
from .exceptions import NoConnectionsAvailable


class Selector:
    """Strategy interface."""

    def select(self, connections: Sequence[Connection]) -> Connection:
        """
        Pick one connection from a non-empty live list.

        Raises:
            NoConnectionsAvailable: If ``connections`` is empty
        """
        raise NotImplementedError


class RoundRobinSelector(Selector):
    """
    Cycle through the live list in order.

    Rotation continues from the connection returned last. If that one has
    since left the list, the connection now sitting at its old position is
    next, so removing a failed node never skips its neighbour. A list that
    shrank or grew between calls is handled modulo its new length.
    """

    def __init__(self):
        self._cursor = 0
        self._last: Optional[Connection] = None

    def select(self, connections):
        if not connections:
            raise NoConnectionsAvailable("No live connections to select from")
        if self._last is not None and self._last in connections:
            index = (connections.index(self._last) + 1) % len(connections)
        else:
            index = self._cursor % len(connections)
        self._cursor = index
        self._last = connections[index]
        return self._last


class StickyRoundRobinSelector(Selector):
    """Keep using the same connection until it leaves the live list."""

    def __init__(self):
        self._current: Optional[Connection] = None
        self._cursor = 0

    def select(self, connections):
        if not connections:
            raise NoConnectionsAvailable("No live connections to select from")
        if self._current is not None and self._current in connections:
            return self._current
        index = self._cursor % len(connections)
        self._cursor = (index + 1) % len(connections)
        self._current = connections[index]
        return self._current


class RandomSelector(Selector):
    """Pick uniformly at random. Pass ``seed`` for reproducible runs."""

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)

    def select(self, connections):
        if not connections:
            raise NoConnectionsAvailable("No live connections to select from")
        return self._random.choice(list(connections))
