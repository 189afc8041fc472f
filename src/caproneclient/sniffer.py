"""
CaproneClient Sniffer - Cluster Topology Discovery
==================================================

Asks a node for the HTTP addresses of every cluster member
(``GET /_nodes/_all/http``) and turns the answer into node descriptors.

Publish addresses come in a few shapes depending on the cluster version
and network setup:

    127.0.0.1:9200            plain address
    es1.internal/10.0.0.5:9200  hostname and ip, hostname is preferred
    inet[/10.0.0.5:9200]      legacy 0.90/1.x format
    [::1]:9200                IPv6
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from .connection import Connection
from .exceptions import ConnectionError, HttpError, SerializationError, SniffError
from .nodes import NodeDescriptor

logger = logging.getLogger("caproneclient")

SNIFF_PATH = "/_nodes/_all/http"

_LEGACY_ADDRESS = re.compile(r"^inet\[(.*)\]$")

NodeFilter = Callable[[Dict[str, Any]], bool]


def skip_master_only(node_info: Dict[str, Any]) -> bool:
    """Default filter: dedicated master nodes do not serve client traffic."""
    roles = node_info.get("roles")
    return not (isinstance(roles, list) and roles == ["master"])


def parse_publish_address(address: str) -> NodeDescriptor:
    """
    Parse one ``http.publish_address`` value.

    Raises:
        SniffError: If the address has no usable host and port
    """
    if not isinstance(address, str):
        raise SniffError(f"Publish address must be a string, got {address!r}")
    address = address.strip()
    legacy = _LEGACY_ADDRESS.match(address)
    if legacy:
        address = legacy.group(1)

    if "/" in address:
        hostname, _, address = address.partition("/")
    else:
        hostname = ""

    host, sep, port_text = address.rpartition(":")
    if not sep or not port_text.isdigit():
        raise SniffError(f"Malformed publish address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    host = hostname or host
    if not host:
        raise SniffError(f"Malformed publish address: {address!r}")
    return NodeDescriptor(host, int(port_text))


class Sniffer:
    """
    Discovers cluster members through a live connection.

    Example:
        sniffer = Sniffer()
        nodes = sniffer.sniff(pool.get_connection())
        pool.rebuild(nodes)
    """

    def __init__(self, node_filter: Optional[NodeFilter] = skip_master_only, timeout: Optional[str] = None):
        """
        Args:
            node_filter: Predicate over each node's info; None keeps all
            timeout: Optional server-side timeout passed with the request
        """
        self.node_filter = node_filter
        self.timeout = timeout

    def sniff(self, connection: Connection) -> List[NodeDescriptor]:
        """
        Fetch and parse the cluster's node list.

        Scheme and extra params are copied from the seed connection's node.

        Raises:
            SniffError: On network failure, error status, or a response
                that yields no nodes
        """
        params = {"timeout": self.timeout} if self.timeout else None
        logger.info("Sniffing cluster nodes via %r", connection)
        try:
            result = connection.execute("GET", SNIFF_PATH, params)
        except (ConnectionError, HttpError, SerializationError) as e:
            raise SniffError(f"Sniff via {connection.node} failed: {e}") from e

        nodes = self.parse(result.data, seed=connection.node)
        logger.info("Sniff found %d node(s): %s", len(nodes), ", ".join(str(n) for n in nodes))
        return nodes

    def parse(self, data: Any, seed: Optional[NodeDescriptor] = None) -> List[NodeDescriptor]:
        if not isinstance(data, dict) or not isinstance(data.get("nodes"), dict):
            raise SniffError("Sniff response has no 'nodes' object")

        nodes: List[NodeDescriptor] = []
        for node_id, info in data["nodes"].items():
            if not isinstance(info, dict):
                raise SniffError(f"Malformed node entry for {node_id}")
            if self.node_filter is not None and not self.node_filter(info):
                continue
            http = info.get("http") or {}
            if not isinstance(http, dict):
                raise SniffError(f"Malformed http section for {node_id}: {http!r}")
            address = http.get("publish_address") or info.get("http_address")
            if not address:
                # Node has HTTP disabled.
                continue
            node = parse_publish_address(address)
            if seed is not None:
                node = NodeDescriptor(node.host, node.port, scheme=seed.scheme, params=seed.params)
            if node not in nodes:
                nodes.append(node)

        if not nodes:
            raise SniffError("Sniff response contained no usable nodes")
        return nodes
