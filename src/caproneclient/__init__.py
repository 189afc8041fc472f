"""
CaproneClient - Self-Healing Cluster Client
===========================================

A client for Elasticsearch-style search clusters whose transport treats
the cluster as a pool of interchangeable nodes:

- Round-robin (or sticky / random) node selection
- Dead-node quarantine with exponential backoff and timed revival
- Bounded retries on a different node after network failures
- Sniffing: refresh the node list from the cluster's own topology
- Thread-safe pool shared by every request of a client

Architecture:
    Client  →  Transport  →  ConnectionPool  →  Selector / DeadPool
                   |
                   +-- Sniffer  →  GET /_nodes/_all/http

Usage:
    from caproneclient import Client

    client = Client(["es1:9200", "es2:9200", "es3:9200"], sniff_on_start=True)
    client.index("corpus", {"title": "Quantum Mechanics"}, id="q1")
    results = client.search("quantum", index="corpus")

License: MIT
"""

__version__ = "0.1.0"
__author__ = "Caprazli"

from .client import Client
from .config import SelectorType, TransportConfig
from .connection import Connection, RequestResult, Urllib3Connection
from .deadpool import DeadPool
from .exceptions import (
    CaproneClientError,
    ConnectionError,
    ConnectionTimeout,
    HttpError,
    MaxRetriesException,
    NoConnectionsAvailable,
    NotFoundError,
    SniffError,
)
from .nodes import NodeDescriptor
from .pool import ConnectionPool
from .selectors import RandomSelector, RoundRobinSelector, Selector, StickyRoundRobinSelector
from .sniffer import Sniffer
from .transport import Transport

__all__ = [
    "Client",
    "Transport",
    "TransportConfig",
    "SelectorType",
    "ConnectionPool",
    "DeadPool",
    "Sniffer",
    "Connection",
    "Urllib3Connection",
    "RequestResult",
    "NodeDescriptor",
    "Selector",
    "RoundRobinSelector",
    "StickyRoundRobinSelector",
    "RandomSelector",
    "CaproneClientError",
    "ConnectionError",
    "ConnectionTimeout",
    "HttpError",
    "NotFoundError",
    "MaxRetriesException",
    "NoConnectionsAvailable",
    "SniffError",
]
