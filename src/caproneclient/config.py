"""
CaproneClient Configuration
===========================

Every option the transport understands lives on ``TransportConfig``.
Components are chosen with enum values or by passing instances to
``Transport`` directly; nothing is looked up by class-name strings.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from .exceptions import InvalidArgumentException, UnexpectedValueException
from .selectors import RandomSelector, RoundRobinSelector, Selector, StickyRoundRobinSelector


class SelectorType(Enum):
    ROUND_ROBIN = "round_robin"
    STICKY_ROUND_ROBIN = "sticky_round_robin"
    RANDOM = "random"


SELECTORS = {
    SelectorType.ROUND_ROBIN: RoundRobinSelector,
    SelectorType.STICKY_ROUND_ROBIN: StickyRoundRobinSelector,
    SelectorType.RANDOM: RandomSelector,
}

CONNECTION_PARAMS = ("timeout", "headers", "maxsize")


@dataclass
class TransportConfig:
    """
    Transport options.

    Attributes:
        max_retries: Retries after the first attempt (4 attempts total by default)
        dead_timeout: Base quarantine in seconds for a failed node
        timeout_cutoff: Maximum doublings of ``dead_timeout``
        randomize_hosts: Shuffle the configured hosts once at start
        sniff_on_start: Refresh the node list before the first request
        sniff_after_requests: Refresh after this many requests (None/0 = off)
        sniff_on_connection_fail: Refresh as soon as a node fails
        selector: Selection strategy, enum value or instance
        connection_params: ``timeout``, ``headers`` and ``maxsize`` for connections
        log_path: File for the event log (no handler when None)
        log_level: Level for the event log file
        trace_path: File for the curl-style request trace (no handler when None)
        trace_level: Level for the trace file
    """

    max_retries: int = 3
    dead_timeout: float = 60.0
    timeout_cutoff: int = 5
    randomize_hosts: bool = True
    sniff_on_start: bool = False
    sniff_after_requests: Optional[int] = None
    sniff_on_connection_fail: bool = False
    selector: Union[SelectorType, Selector] = SelectorType.ROUND_ROBIN
    connection_params: Dict[str, Any] = field(default_factory=dict)
    log_path: Optional[str] = None
    log_level: int = logging.WARNING
    trace_path: Optional[str] = None
    trace_level: int = logging.WARNING

    def __post_init__(self):
        if not isinstance(self.max_retries, int) or isinstance(self.max_retries, bool) or self.max_retries < 0:
            raise InvalidArgumentException("max_retries must be a non-negative integer")
        if not _is_number(self.dead_timeout) or self.dead_timeout <= 0:
            raise InvalidArgumentException("dead_timeout must be a positive number")
        if not isinstance(self.timeout_cutoff, int) or self.timeout_cutoff < 0:
            raise InvalidArgumentException("timeout_cutoff must be a non-negative integer")
        if self.sniff_after_requests is not None and (
            not isinstance(self.sniff_after_requests, int) or self.sniff_after_requests < 0
        ):
            raise InvalidArgumentException("sniff_after_requests must be a non-negative integer")
        if isinstance(self.selector, str):
            try:
                self.selector = SelectorType(self.selector)
            except ValueError:
                raise InvalidArgumentException(f"Unknown selector: {self.selector!r}")
        for key in self.connection_params:
            if key not in CONNECTION_PARAMS:
                raise UnexpectedValueException(f"{key} is not a recognized connection parameter")

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]] = None) -> "TransportConfig":
        """
        Build a config from a plain mapping, rejecting unknown keys.

        Raises:
            UnexpectedValueException: For a key that is not an option
            InvalidArgumentException: For an option with an invalid value
        """
        if params is None:
            return cls()
        if not isinstance(params, Mapping):
            raise InvalidArgumentException("Parameters must be a mapping")
        known = {f.name for f in fields(cls)}
        for key in params:
            if key not in known:
                raise UnexpectedValueException(f"{key} is not a recognized parameter")
        return cls(**params)

    def build_selector(self) -> Selector:
        if isinstance(self.selector, Selector):
            return self.selector
        return SELECTORS[self.selector]()


def configure_logging(config: TransportConfig):
    """
    Attach file handlers for the event log and the request trace.

    Does nothing for a logger whose path is unset, leaving handler setup to
    the application.
    """
    targets = (
        ("caproneclient", config.log_path, config.log_level,
         "%(asctime)s %(levelname)s [%(name)s] %(module)s:%(lineno)d %(message)s"),
        ("caproneclient.trace", config.trace_path, config.trace_level, "%(message)s"),
    )
    for name, path, level, fmt in targets:
        if not path:
            continue
        logger = logging.getLogger(name)
        if any(getattr(h, "baseFilename", None) == os.path.abspath(path) for h in logger.handlers):
            continue
        handler = logging.FileHandler(path)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(handler)
        if name.endswith(".trace"):
            logger.propagate = False
        if logger.level == logging.NOTSET or logger.level > level:
            logger.setLevel(level)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
