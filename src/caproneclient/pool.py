"""
CaproneClient ConnectionPool
============================

Owns the connections for one transport and partitions them into a live
list and the dead pool. Every state transition happens under a single
lock; the HTTP exchange itself never does, so one slow node cannot stall
requests going to the others.

Invariant: each connection is either in the live list or in the dead pool,
never both and never neither.
"""

import logging
import random
import threading
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .connection import Connection
from .deadpool import DeadPool
from .exceptions import NoConnectionsAvailable
from .nodes import NodeDescriptor
from .selectors import RoundRobinSelector, Selector

logger = logging.getLogger("caproneclient")

ConnectionFactory = Callable[[NodeDescriptor], Connection]


class ConnectionPool:
    """
    Live/dead bookkeeping plus selection for a set of nodes.

    Example:
        pool = ConnectionPool(
            Urllib3Connection,
            [NodeDescriptor("es1", 9200), NodeDescriptor("es2", 9200)],
        )
        conn = pool.get_connection()
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        nodes: Iterable[NodeDescriptor],
        selector: Optional[Selector] = None,
        dead_pool: Optional[DeadPool] = None,
        randomize_hosts: bool = True
    ):
        """
        Args:
            connection_factory: Builds a ``Connection`` for a node
            nodes: Initial node list; order is kept unless randomized
            selector: Selection strategy (default round-robin)
            dead_pool: Quarantine policy (default ``DeadPool()``)
            randomize_hosts: Shuffle the initial order once
        """
        self.connection_factory = connection_factory
        self.selector = selector or RoundRobinSelector()
        self.dead_pool = dead_pool or DeadPool()
        self._lock = threading.Lock()

        connections = self._build(nodes)
        if randomize_hosts:
            random.shuffle(connections)
        self._connections: List[Connection] = connections
        self._live: List[Connection] = list(connections)

    def __len__(self) -> int:
        return len(self._connections)

    @property
    def connections(self) -> Tuple[Connection, ...]:
        """Every member, live or dead, in pool order."""
        with self._lock:
            return tuple(self._connections)

    @property
    def live_connections(self) -> Tuple[Connection, ...]:
        with self._lock:
            return tuple(self._live)

    @property
    def dead_connections(self) -> Tuple[Connection, ...]:
        with self._lock:
            return tuple(c for c in self._connections if c in self.dead_pool)

    def get_connection(self) -> Connection:
        """
        Return the next connection to use.

        Quarantined connections whose timeout has elapsed are moved back to
        the live list first. If nothing is live, the connection that failed
        least recently is revived early instead of refusing the request.

        Raises:
            NoConnectionsAvailable: If the pool has no members at all
        """
        with self._lock:
            revived = self.dead_pool.revive_eligible()
            if revived:
                self._restore_live(revived)

            if not self._live:
                if not self._connections:
                    raise NoConnectionsAvailable("No nodes are configured")
                forced = self.dead_pool.force_revive()
                if forced is None:
                    raise NoConnectionsAvailable("No live or dead connections in pool")
                self._restore_live([forced])

            return self.selector.select(self._live)

    def mark_connection_failed(self, connection: Connection):
        with self._lock:
            if connection not in self._connections:
                # Replaced by a rebuild while the request was in flight.
                logger.debug("Ignoring failure of retired connection %r", connection)
                return
            if connection in self._live:
                self._live.remove(connection)
            self.dead_pool.mark_dead(connection)

    def mark_connection_alive(self, connection: Connection):
        with self._lock:
            if connection not in self._connections:
                return
            self.dead_pool.mark_alive(connection)
            if connection not in self._live:
                self._restore_live([connection])

    def rebuild(
        self,
        nodes: Sequence[NodeDescriptor],
        quarantine: Iterable[NodeDescriptor] = ()
    ) -> List[Connection]:
        """
        Replace the whole membership with fresh connections.

        All quarantine and backoff history is dropped, including for nodes
        that were already members. The swap is a single step under the
        lock, so concurrent callers see either the old or the new set.

        Args:
            nodes: The new membership
            quarantine: Nodes whose fresh connections start out dead, so a
                node that failed moments ago is not handed straight back

        Returns:
            The retired connections, for the caller to close
        """
        fresh = self._build(nodes)
        with self._lock:
            retired = self._connections
            self._connections = fresh
            self._live = list(fresh)
            self.dead_pool.clear()
            benched = set(quarantine)
            for connection in fresh:
                if connection.node in benched:
                    self._live.remove(connection)
                    self.dead_pool.mark_dead(connection)
        logger.info("Connection pool rebuilt with %d node(s): %s",
                    len(fresh), ", ".join(str(c.node) for c in fresh))
        return retired

    def close(self):
        with self._lock:
            connections = self._connections
        for connection in connections:
            connection.close()

    def _build(self, nodes: Iterable[NodeDescriptor]) -> List[Connection]:
        seen = set()
        connections = []
        for node in nodes:
            if node in seen:
                continue
            seen.add(node)
            connections.append(self.connection_factory(node))
        return connections

    def _restore_live(self, connections: Iterable[Connection]):
        """Put connections back on the live list, keeping pool order."""
        returning = set(connections)
        returning.update(self._live)
        self._live = [c for c in self._connections if c in returning]
