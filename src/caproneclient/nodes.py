"""
CaproneClient Nodes
===================

A ``NodeDescriptor`` identifies one cluster member. Two descriptors are the
same node when host and port match; scheme and extra parameters ride along
but do not take part in equality.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from .exceptions import InvalidArgumentException

DEFAULT_PORT = 9200


@dataclass(frozen=True)
class NodeDescriptor:
    """
    Address of one cluster node.

    Example:
        node = NodeDescriptor("es1.internal", 9200)
        node.url  # "http://es1.internal:9200"
    """

    host: str
    port: Optional[int] = None
    scheme: str = field(default="http", compare=False)
    params: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        if not self.host:
            raise InvalidArgumentException("Host must be a non-empty string")
        if self.port is not None and not isinstance(self.port, int):
            raise InvalidArgumentException("Port must be a valid integer")
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def url(self) -> str:
        """Base URL of the node, without trailing slash."""
        host = self.host
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{self.scheme}://{host}:{self.port or DEFAULT_PORT}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port or DEFAULT_PORT}"


def parse_host(value: str) -> NodeDescriptor:
    """
    Parse a host string into a descriptor.

    Accepts ``host``, ``host:port``, ``[ipv6]:port`` and full URLs such as
    ``https://es1:9243``.

    Raises:
        InvalidArgumentException: If the value is empty or the port is not
            an integer
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentException("Hosts must be non-empty strings")
    value = value.strip()

    if "://" in value:
        parts = urlsplit(value)
        try:
            port = parts.port
        except ValueError:
            raise InvalidArgumentException("Port must be a valid integer")
        if not parts.hostname:
            raise InvalidArgumentException(f"Cannot parse host from {value!r}")
        return NodeDescriptor(parts.hostname, port, scheme=parts.scheme)

    if value.startswith("["):
        # [::1]:9200
        host, _, rest = value[1:].partition("]")
        port_text = rest[1:] if rest.startswith(":") else ""
        return NodeDescriptor(host, _parse_port(port_text) if port_text else None)

    if value.count(":") == 1:
        host, port_text = value.split(":")
        return NodeDescriptor(host, _parse_port(port_text))

    return NodeDescriptor(value)


def _parse_port(text: str) -> int:
    if not text.isdigit():
        raise InvalidArgumentException("Port must be a valid integer")
    return int(text)
