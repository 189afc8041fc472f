"""
CaproneClient Transport - Request Dispatch, Failover and Sniffing
=================================================================

``Transport.perform_request`` is the single entry point the document layer
uses. It picks a live node from the ``ConnectionPool``, runs the request,
quarantines nodes that fail at the network level and retries elsewhere, up
to ``max_retries`` extra attempts.

Sniffing refreshes the pool from the cluster's own view of its members. It
can run before the first request, every N requests, and right after a node
failure. A failed sniff is logged and ignored; it never fails a request.

Retry protocol:
    attempt 1 --ConnectionError--> mark dead -> attempt 2 -> ... -> attempt max_retries + 1
        |                                                                |
        +- 2xx -----> mark alive, return                                 +-> MaxRetriesException
        +- HttpError -> mark alive, re-raise (the node is healthy)
"""

import functools
import logging
import threading
from typing import Any, Iterable, List, Mapping, Optional, Type, Union

import urllib3
from elasticsearch.serializer import JsonSerializer

from .config import TransportConfig
from .connection import Connection, RequestResult, Urllib3Connection
from .deadpool import DeadPool
from .exceptions import (
    ConnectionError,
    HttpError,
    MaxRetriesException,
    SniffError,
)
from .nodes import NodeDescriptor, parse_host
from .pool import ConnectionPool
from .selectors import Selector
from .sniffer import Sniffer

logger = logging.getLogger("caproneclient")

DEFAULT_MAXSIZE = 10


class Transport:
    """
    Orchestrates connection selection, retries and sniffing.

    Example:
        transport = Transport(
            ["es1:9200", "es2:9200"],
            TransportConfig(max_retries=2, sniff_on_start=True),
        )
        result = transport.perform_request("GET", "/_cluster/health")
        print(result.data["status"])
    """

    def __init__(
        self,
        nodes: Iterable[Union[str, NodeDescriptor]],
        config: Optional[TransportConfig] = None,
        serializer: Optional[Any] = None,
        connection_class: Type[Connection] = Urllib3Connection,
        selector: Optional[Selector] = None,
        dead_pool: Optional[DeadPool] = None,
        sniffer: Optional[Sniffer] = None,
        pool_manager: Optional[urllib3.PoolManager] = None
    ):
        """
        Args:
            nodes: Seed nodes, descriptors or ``host[:port]`` strings
            config: Transport options (defaults when None)
            serializer: Body codec shared by all connections
            connection_class: Connection implementation to build per node
            selector: Overrides ``config.selector``
            dead_pool: Overrides the dead pool built from the config
            sniffer: Topology discovery strategy
            pool_manager: Shared urllib3 handle; created and owned when None
        """
        self.config = config or TransportConfig()
        self.serializer = serializer or JsonSerializer()
        self.sniffer = sniffer or Sniffer()

        connection_params = dict(self.config.connection_params)
        maxsize = connection_params.pop("maxsize", DEFAULT_MAXSIZE)
        self._owns_pool_manager = pool_manager is None
        self.pool_manager = pool_manager or urllib3.PoolManager(maxsize=maxsize)

        factory = functools.partial(
            connection_class,
            serializer=self.serializer,
            pool_manager=self.pool_manager,
            **connection_params
        )
        self.connection_pool = ConnectionPool(
            factory,
            [parse_host(n) if isinstance(n, str) else n for n in nodes],
            selector=selector or self.config.build_selector(),
            dead_pool=dead_pool or DeadPool(self.config.dead_timeout, self.config.timeout_cutoff),
            randomize_hosts=self.config.randomize_hosts
        )

        self._lock = threading.Lock()
        self._sniff_lock = threading.Lock()
        self._sniff_pending = self.config.sniff_on_start
        self.requests_since_sniff = 0

    def perform_request(
        self,
        method: str,
        uri: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None
    ) -> RequestResult:
        """
        Send a request to the cluster, failing over between nodes.

        Args:
            method: HTTP verb
            uri: Path, already url-encoded by the caller
            params: Query parameters
            body: Request body, passed through the serializer

        Returns:
            RequestResult from the node that answered

        Raises:
            HttpError: A node answered with a non-2xx status (not retried)
            MaxRetriesException: ``max_retries + 1`` attempts all failed
                at the network level
            NoConnectionsAvailable: No nodes are configured
        """
        if self._sniff_pending:
            self._sniff_on_start()

        try:
            return self._send_with_retries(method, uri, params, body)
        finally:
            self._count_request()

    def _send_with_retries(self, method, uri, params, body) -> RequestResult:
        max_retries = self.config.max_retries
        attempts = 0
        failed_nodes = []

        while True:
            connection = self.connection_pool.get_connection()
            attempts += 1
            try:
                result = connection.execute(method, uri, params, body)
            except ConnectionError as e:
                self.connection_pool.mark_connection_failed(connection)
                failed_nodes.append(connection.node)
                if self.config.sniff_on_connection_fail:
                    # Nodes that failed during this request stay quarantined across the rebuild.
                    self.sniff_hosts(quarantine=failed_nodes)
                if attempts > max_retries:
                    raise MaxRetriesException(
                        f"{method} {uri} failed after {attempts} attempt(s): {e}",
                        last_error=e,
                        attempts=attempts
                    ) from e
                logger.warning(
                    "%s %s failed on %s, retrying (%d of %d)",
                    method, uri, connection.node, attempts, max_retries
                )
                continue
            except HttpError:
                self.connection_pool.mark_connection_alive(connection)
                raise

            self.connection_pool.mark_connection_alive(connection)
            return result

    def sniff_hosts(self, quarantine: Iterable[NodeDescriptor] = ()) -> bool:
        """
        Refresh the pool from the cluster's node list.

        Each current connection is tried as a seed until one answers. If a
        sniff is already running on another thread this call returns
        immediately.

        Args:
            quarantine: Nodes that just failed; if the cluster still lists
                them they rejoin the pool as dead rather than live

        Returns:
            True if the pool was rebuilt
        """
        if not self._sniff_lock.acquire(blocking=False):
            logger.debug("Sniff already in progress, skipping")
            return False
        try:
            nodes = self._discover_nodes()
            if nodes is None:
                return False
            retired = self.connection_pool.rebuild(nodes, quarantine=quarantine)
            for connection in retired:
                connection.close()
            with self._lock:
                self.requests_since_sniff = 0
            return True
        finally:
            self._sniff_lock.release()

    def _discover_nodes(self) -> Optional[List[NodeDescriptor]]:
        seeds = self.connection_pool.live_connections or self.connection_pool.connections
        for connection in seeds:
            try:
                return self.sniffer.sniff(connection)
            except SniffError as e:
                logger.warning("Sniff failed: %s", e)
            except Exception:
                logger.exception("Sniff via %r failed unexpectedly", connection)
        logger.warning("Sniffing failed on every node, keeping the current node list")
        return None

    def _sniff_on_start(self):
        with self._lock:
            if not self._sniff_pending:
                return
            self._sniff_pending = False
        self.sniff_hosts()

    def _count_request(self):
        threshold = self.config.sniff_after_requests
        if not threshold:
            return
        with self._lock:
            self.requests_since_sniff += 1
            if self.requests_since_sniff < threshold:
                return
            self.requests_since_sniff = 0
        self.sniff_hosts()

    def close(self):
        """Close every connection and the shared HTTP handle."""
        self.connection_pool.close()
        if self._owns_pool_manager:
            self.pool_manager.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
