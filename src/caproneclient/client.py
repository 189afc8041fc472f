"""
CaproneClient Client - Document Operations
==========================================

The user-facing entry point. Document operations (index, get, update,
delete, search) are mapped onto REST endpoints and sent through a single
``Transport``, which handles node selection, failover and sniffing.

Usage:
    from caproneclient import Client

    client = Client(["es1:9200", "es2:9200"], max_retries=2, sniff_on_start=True)
    client.index("corpus", {"title": "Quantum Mechanics"}, id="10.5281/zenodo.123")
    client.search("quantum", index="corpus", params={"size": 10})
"""

from typing import Any, List, Optional, Union

from .config import TransportConfig, configure_logging
from .exceptions import CaproneClientError, InvalidArgumentException
from .namespaces import (
    ClusterNamespace,
    IndexNames,
    IndicesNamespace,
    Namespace,
    check_params,
    escape,
    join_names,
)
from .nodes import NodeDescriptor, parse_host
from .transport import Transport

INDEX_PARAMS = (
    "if_primary_term", "if_seq_no", "op_type", "pipeline", "refresh",
    "require_alias", "routing", "timeout", "version", "version_type",
    "wait_for_active_shards",
)

GET_PARAMS = (
    "_source", "_source_excludes", "_source_includes", "preference",
    "realtime", "refresh", "routing", "stored_fields", "version", "version_type",
)

UPDATE_PARAMS = (
    "_source", "if_primary_term", "if_seq_no", "lang", "refresh",
    "require_alias", "retry_on_conflict", "routing", "timeout",
    "wait_for_active_shards",
)

DELETE_PARAMS = (
    "conflicts", "if_primary_term", "if_seq_no", "q", "refresh", "routing",
    "timeout", "version", "version_type", "wait_for_active_shards",
)

SEARCH_PARAMS = (
    "_source", "allow_no_indices", "expand_wildcards", "explain", "from",
    "ignore_unavailable", "preference", "q", "request_cache", "routing",
    "scroll", "search_type", "size", "sort", "stats", "stored_fields",
    "timeout", "track_total_hits", "version",
)


def parse_hosts(hosts: Optional[List[str]]) -> List[NodeDescriptor]:
    """
    Turn the ``hosts`` argument into descriptors.

    Raises:
        InvalidArgumentException: If hosts is not a list or a port is invalid
    """
    if hosts is None:
        return [NodeDescriptor("localhost")]
    if not isinstance(hosts, (list, tuple)):
        raise InvalidArgumentException("Hosts parameter must be a list of strings")
    return [h if isinstance(h, NodeDescriptor) else parse_host(h) for h in hosts]


class Client(Namespace):
    """
    Cluster client.

    Keyword arguments other than ``transport`` are ``TransportConfig``
    options; unknown names raise ``UnexpectedValueException``.
    """

    def __init__(
        self,
        hosts: Optional[List[str]] = None,
        transport: Optional[Transport] = None,
        **params
    ):
        """
        Args:
            hosts: ``host``, ``host:port`` or URL strings (default localhost)
            transport: Pre-built transport, mostly for testing
            **params: Transport options such as max_retries, sniff_on_start
        """
        self.hosts = parse_hosts(hosts)
        self.config = TransportConfig.from_params(params)
        configure_logging(self.config)

        super().__init__(transport or Transport(self.hosts, self.config))
        self.indices = IndicesNamespace(self.transport)
        self.cluster = ClusterNamespace(self.transport)

    def index(
        self,
        index: str,
        document: Any,
        id: Optional[Union[str, int]] = None,
        params: Optional[dict] = None
    ) -> dict:
        """
        Index a document, creating or replacing it.

        Without ``id`` the cluster assigns one (POST); with it the document
        is written at that id (PUT).
        """
        check_params(params, INDEX_PARAMS)
        if id is None:
            return self._request("POST", f"/{escape(index)}/_doc", params, document)
        return self._request("PUT", f"/{escape(index)}/_doc/{escape(id)}", params, document)

    def get(self, index: str, id: Union[str, int], params: Optional[dict] = None) -> dict:
        """Fetch a document. A missing document raises ``NotFoundError``."""
        check_params(params, GET_PARAMS)
        return self._request("GET", f"/{escape(index)}/_doc/{escape(id)}", params)

    def update(self, index: str, id: Union[str, int], body: dict, params: Optional[dict] = None) -> dict:
        """
        Partially update a document.

        Args:
            index: Index name
            id: Document id
            body: ``{"doc": {...}}`` or ``{"script": {...}}``
            params: Optional parameters (retry_on_conflict, refresh, ...)
        """
        check_params(params, UPDATE_PARAMS)
        return self._request("POST", f"/{escape(index)}/_update/{escape(id)}", params, body)

    def delete(
        self,
        index: str,
        id: Optional[Union[str, int]] = None,
        body: Optional[dict] = None,
        params: Optional[dict] = None
    ) -> dict:
        """
        Delete one document by id, or every document matching a query.

        Raises:
            InvalidArgumentException: If neither an id nor a query
                (``body`` or ``params["q"]``) is given
        """
        check_params(params, DELETE_PARAMS)
        if id is not None:
            return self._request("DELETE", f"/{escape(index)}/_doc/{escape(id)}", params)
        if body is not None or (params and params.get("q") is not None):
            return self._request("POST", f"/{escape(index)}/_delete_by_query", params, body)
        raise InvalidArgumentException("An ID or query must be supplied to delete")

    def search(
        self,
        query: Union[str, dict],
        index: Optional[IndexNames] = None,
        params: Optional[dict] = None
    ) -> dict:
        """
        Search one, several or all indices.

        Args:
            query: Query-string text (sent as ``q``) or a request body
            index: Index name(s); all indices when None
            params: Optional parameters (size, from, sort, ...)
        """
        check_params(params, SEARCH_PARAMS)
        uri = "/_search" if index is None else f"/{join_names(index)}/_search"

        if isinstance(query, str):
            params = dict(params or {}, q=query)
            body = None
        elif isinstance(query, dict):
            body = query
        else:
            raise InvalidArgumentException("Query must be a string or dict")

        return self._request("POST" if body is not None else "GET", uri, params, body)

    def ping(self) -> bool:
        """True if some node answers ``HEAD /``."""
        try:
            self.transport.perform_request("HEAD", "/")
        except CaproneClientError:
            return False
        return True

    def sniff(self) -> bool:
        """Refresh the node list from the cluster now."""
        return self.transport.sniff_hosts()

    def close(self):
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
