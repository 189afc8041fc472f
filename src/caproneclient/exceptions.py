"""
CaproneClient Exceptions
========================

Error taxonomy for the transport and the document layer.

Only ``ConnectionError`` means "this node is broken": it quarantines the
connection and is retried on another node. ``HttpError`` means the node
answered, so it is handed back to the caller untouched.
"""

from typing import Any, Optional


class CaproneClientError(Exception):
    """Base class for every error raised by caproneclient."""


class TransportError(CaproneClientError):
    """Base class for failures of the request-dispatch machinery."""


class ConnectionError(TransportError):
    """
    Network-level failure talking to a node (refused, reset, DNS, timeout).

    Attributes:
        error: The underlying exception raised by the HTTP library
        url: The URL that was being requested
    """

    def __init__(self, message: str, error: Optional[BaseException] = None, url: str = ""):
        super().__init__(message)
        self.error = error
        self.url = url


class ConnectionTimeout(ConnectionError):
    """The node did not answer within the configured connect/read timeout."""


class NoConnectionsAvailable(TransportError):
    """The pool holds no connections at all, live or dead."""


class MaxRetriesException(TransportError):
    """
    Every allowed attempt failed with a ``ConnectionError``.

    Attributes:
        last_error: The ``ConnectionError`` from the final attempt
        attempts: Number of execution attempts made
    """

    def __init__(self, message: str, last_error: Optional[ConnectionError] = None, attempts: int = 0):
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class HttpError(CaproneClientError):
    """
    The node answered with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the node
        data: Decoded response body (often the cluster's error document)
    """

    def __init__(self, status_code: int, data: Any = None, message: str = ""):
        self.status_code = status_code
        self.data = data
        super().__init__(message or f"HTTP {status_code}: {_error_reason(data)}")

    @classmethod
    def from_status(cls, status_code: int, data: Any = None) -> "HttpError":
        """Build the most specific ``HttpError`` subclass for a status code."""
        error_class = HTTP_EXCEPTIONS.get(status_code, cls)
        return error_class(status_code, data)


class BadRequestError(HttpError):
    """400 Bad Request."""


class NotFoundError(HttpError):
    """404 Not Found."""


class ConflictError(HttpError):
    """409 Conflict, usually a version conflict."""


HTTP_EXCEPTIONS = {
    400: BadRequestError,
    404: NotFoundError,
    409: ConflictError,
}


class SniffError(CaproneClientError):
    """Cluster topology could not be fetched or parsed."""


class SerializationError(CaproneClientError):
    """A request body could not be encoded or a response body decoded."""


class InvalidArgumentException(CaproneClientError, ValueError):
    """A caller passed a value the client cannot use."""


class UnexpectedValueException(CaproneClientError, ValueError):
    """A caller passed a parameter name the client does not recognize."""


def _error_reason(data: Any) -> str:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return str(error.get("reason") or error.get("type") or error)
        if error is not None:
            return str(error)
    return str(data) if data else "no body"
