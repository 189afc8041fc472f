"""Shared fixtures: a controllable clock and connections that answer from a script."""

import functools
import json

import pytest

from caproneclient.connection import Connection
from caproneclient.exceptions import ConnectionError
from caproneclient.nodes import NodeDescriptor

FAIL = "fail"

OK_BODY = json.dumps({"acknowledged": True}).encode()


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ScriptedConnection(Connection):
    """
    Connection whose answers come from ``script``, keyed by host.

    A script value is ``FAIL`` (raise ``ConnectionError``), a
    ``(status, body)`` tuple, or a callable ``(method, url, body)``
    returning one of those. Every send is appended to ``log``.
    """

    def __init__(self, node, script=None, log=None, **kwargs):
        super().__init__(node, **kwargs)
        self.script = script if script is not None else {}
        self.log = log if log is not None else []

    def send(self, method, url, body, headers):
        self.log.append((self.node.host, method, url, body))
        action = self.script.get(self.node.host, (200, OK_BODY))
        if callable(action):
            action = action(method, url, body)
        if action == FAIL:
            raise ConnectionError(f"Connection refused: {url}", url=url)
        status, raw = action
        return status, {"content-type": "application/json"}, raw


def scripted(script=None, log=None):
    """Connection class bound to a script, usable as a factory or ``connection_class``."""
    return functools.partial(ScriptedConnection, script=script, log=log)


def nodes(*hosts):
    return [NodeDescriptor(h, 9200) for h in hosts]


def sniff_body(*addresses):
    return json.dumps({
        "nodes": {
            f"node-{i}": {"roles": ["data", "ingest"], "http": {"publish_address": a}}
            for i, a in enumerate(addresses)
        }
    }).encode()


@pytest.fixture
def clock():
    return FakeClock()
