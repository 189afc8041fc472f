"""
CaproneClient Connection - One HTTP Endpoint
============================================

A ``Connection`` is bound to exactly one ``NodeDescriptor`` and knows how
to run a single HTTP exchange against it. It keeps no state between calls
apart from its configuration; failure bookkeeping lives in the pool.

The concrete ``Urllib3Connection`` sends through a ``urllib3.PoolManager``
that the transport owns and hands to every connection, so sockets are
pooled across the whole cluster rather than per node.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlencode

import urllib3
from elasticsearch.exceptions import SerializationError as SerializerError
from elasticsearch.serializer import JsonSerializer

from .exceptions import (
    ConnectionError,
    ConnectionTimeout,
    HttpError,
    SerializationError,
    UnexpectedValueException,
)
from .nodes import NodeDescriptor

logger = logging.getLogger("caproneclient")
tracer = logging.getLogger("caproneclient.trace")

DEFAULT_TIMEOUT = 10.0

NODE_PARAMS = ("timeout", "headers")

DEFAULT_HEADERS = {
    "accept": "application/json",
    "content-type": "application/json",
}


@dataclass
class RequestResult:
    """
    Outcome of a successful request.

    Attributes:
        status: HTTP status code (2xx)
        data: Decoded response body
        headers: Raw response headers
        url: Full URL that served the request
        duration: Seconds spent on the exchange
    """

    status: int
    data: Any
    headers: Mapping[str, str] = field(default_factory=dict)
    url: str = ""
    duration: float = 0.0


class Connection:
    """
    Base connection: URL building, body encoding and status handling.

    Subclasses implement ``send`` for a particular HTTP library.
    """

    def __init__(
        self,
        node: NodeDescriptor,
        serializer: Optional[Any] = None,
        pool_manager: Optional[Any] = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Dict[str, str]] = None
    ):
        """
        Args:
            node: The node this connection talks to
            serializer: Object with ``dumps``/``loads`` (default JSON)
            pool_manager: Shared HTTP handle owned by the transport
            timeout: Connect and read timeout in seconds
            headers: Extra headers sent with every request

        ``timeout`` and ``headers`` in ``node.params`` override the shared
        values for this node only; node headers are merged over the shared
        ones.

        Raises:
            UnexpectedValueException: For any other key in ``node.params``
        """
        for key in node.params:
            if key not in NODE_PARAMS:
                raise UnexpectedValueException(f"{key} is not a recognized node parameter")

        self.node = node
        self.serializer = serializer or JsonSerializer()
        self.pool_manager = pool_manager
        self.timeout = node.params.get("timeout", timeout)
        self.headers = dict(DEFAULT_HEADERS)
        for extra in (headers, node.params.get("headers")):
            if extra:
                self.headers.update({k.lower(): v for k, v in extra.items()})

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.node.url}>"

    def execute(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None
    ) -> RequestResult:
        """
        Run one request against this node.

        Returns:
            RequestResult for any 2xx answer

        Raises:
            ConnectionError: The node could not be reached
            HttpError: The node answered with a non-2xx status
            SerializationError: The body could not be encoded or decoded
        """
        url = self.build_url(path, params)
        payload = self._encode(body)

        logger.debug("%s %s", method, url)
        start = time.monotonic()
        try:
            status, headers, raw = self.send(method, url, payload, self.headers)
        except ConnectionError as e:
            logger.warning(
                "%s %s [failed after %.3fs]: %s",
                method, url, time.monotonic() - start, e
            )
            raise
        duration = time.monotonic() - start

        self._trace(method, url, payload, status, raw, duration)

        if not 200 <= status < 300:
            data = self._decode(raw, headers, strict=False)
            logger.warning("%s %s [status:%s request:%.3fs]", method, url, status, duration)
            raise HttpError.from_status(status, data)

        logger.info("%s %s [status:%s request:%.3fs]", method, url, status, duration)
        return RequestResult(
            status=status,
            data=self._decode(raw, headers),
            headers=headers,
            url=url,
            duration=duration
        )

    def send(
        self,
        method: str,
        url: str,
        body: Optional[bytes],
        headers: Mapping[str, str]
    ) -> Tuple[int, Dict[str, str], bytes]:
        """Perform the HTTP exchange. Returns ``(status, headers, raw body)``."""
        raise NotImplementedError

    def close(self):
        """Release node-specific resources."""

    def build_url(self, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        if not path.startswith("/"):
            path = "/" + path
        url = self.node.url + path
        query = encode_params(params)
        if query:
            url += ("&" if "?" in url else "?") + query
        return url

    def _encode(self, body: Any) -> Optional[bytes]:
        if body is None:
            return None
        try:
            return self.serializer.dumps(body)
        except SerializerError as e:
            raise SerializationError(f"Unable to serialize request body: {e}") from e

    def _decode(self, raw: bytes, headers: Mapping[str, str], strict: bool = True) -> Any:
        if not raw:
            return None
        content_type = _header(headers, "content-type")
        if content_type and "json" not in content_type:
            return raw.decode("utf-8", "replace")
        try:
            return self.serializer.loads(raw)
        except SerializerError as e:
            if not strict:
                return raw.decode("utf-8", "replace")
            raise SerializationError(f"Unable to deserialize response body: {e}") from e

    def _trace(self, method, url, payload, status, raw, duration):
        if not tracer.isEnabledFor(logging.INFO):
            return
        command = f"curl -X{method} '{url}'"
        if payload:
            command += f" -d '{payload.decode('utf-8', 'replace')}'"
        tracer.info(command)
        tracer.debug("#[%s] (%.3fs)\n#%s", status, duration, raw.decode("utf-8", "replace"))


class Urllib3Connection(Connection):
    """
    Connection backed by ``urllib3``.

    Example:
        manager = urllib3.PoolManager(maxsize=10)
        conn = Urllib3Connection(NodeDescriptor("localhost", 9200), pool_manager=manager)
        conn.execute("GET", "/_cluster/health")
    """

    def __init__(self, node: NodeDescriptor, **kwargs):
        super().__init__(node, **kwargs)
        self._owns_pool_manager = self.pool_manager is None
        if self._owns_pool_manager:
            self.pool_manager = urllib3.PoolManager()
        self._timeout = urllib3.Timeout(connect=self.timeout, read=self.timeout)

    def send(self, method, url, body, headers):
        try:
            response = self.pool_manager.request(
                method,
                url,
                body=body,
                headers=dict(headers),
                timeout=self._timeout,
                retries=False,
                redirect=False
            )
        except urllib3.exceptions.NewConnectionError as e:
            raise ConnectionError(f"Connection refused: {url}", error=e, url=url) from e
        except urllib3.exceptions.TimeoutError as e:
            raise ConnectionTimeout(f"Connection timed out: {url}", error=e, url=url) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise ConnectionError(f"Connection failed: {url}: {e}", error=e, url=url) from e

        return response.status, dict(response.headers), response.data

    def close(self):
        if self._owns_pool_manager:
            self.pool_manager.clear()


def encode_params(params: Optional[Mapping[str, Any]]) -> str:
    """
    Url-encode query parameters the way the cluster expects them.

    Booleans become ``true``/``false``, lists and tuples are comma-joined
    and ``None`` values are dropped.
    """
    if not params:
        return ""
    pairs = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        pairs.append((key, value))
    return urlencode(pairs)


def _header(headers: Mapping[str, str], name: str) -> str:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return ""
