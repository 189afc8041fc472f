import json

import pytest

from caproneclient.exceptions import SniffError
from caproneclient.nodes import NodeDescriptor
from caproneclient.sniffer import Sniffer, parse_publish_address

from conftest import FAIL, ScriptedConnection, sniff_body


@pytest.mark.parametrize("address, host, port", [
    ("127.0.0.1:9200", "127.0.0.1", 9200),
    ("es1.internal/10.0.0.5:9201", "es1.internal", 9201),
    ("/10.0.0.5:9200", "10.0.0.5", 9200),
    ("inet[/10.0.0.6:9202]", "10.0.0.6", 9202),
    ("[::1]:9200", "::1", 9200),
])
def test_parse_publish_address(address, host, port):
    node = parse_publish_address(address)
    assert (node.host, node.port) == (host, port)


@pytest.mark.parametrize("address", ["localhost", "10.0.0.1:http", ":9200"])
def test_parse_malformed_address(address):
    with pytest.raises(SniffError):
        parse_publish_address(address)


def seed(script):
    return ScriptedConnection(NodeDescriptor("seed", 9200, scheme="https", params={"headers": {"x-zone": "a"}}), script=script)


def test_sniff_returns_nodes_with_seed_scheme():
    conn = seed({"seed": (200, sniff_body("10.0.0.1:9200", "10.0.0.2:9200"))})
    found = Sniffer().sniff(conn)

    assert found == [NodeDescriptor("10.0.0.1", 9200), NodeDescriptor("10.0.0.2", 9200)]
    assert all(n.scheme == "https" for n in found)
    assert found[0].params["headers"] == {"x-zone": "a"}


def test_sniff_hits_nodes_endpoint():
    log = []
    conn = ScriptedConnection(NodeDescriptor("seed", 9200), script={"seed": (200, sniff_body("a:9200"))}, log=log)
    Sniffer().sniff(conn)
    assert log[0][1:3] == ("GET", "http://seed:9200/_nodes/_all/http")


def test_master_only_nodes_skipped():
    body = json.dumps({"nodes": {
        "m": {"roles": ["master"], "http": {"publish_address": "10.0.0.9:9200"}},
        "d": {"roles": ["master", "data"], "http": {"publish_address": "10.0.0.1:9200"}},
        "x": {"roles": ["data"]},
    }}).encode()
    assert Sniffer().sniff(seed({"seed": (200, body)})) == [NodeDescriptor("10.0.0.1", 9200)]


def test_filter_can_be_disabled():
    body = json.dumps({"nodes": {
        "m": {"roles": ["master"], "http": {"publish_address": "10.0.0.9:9200"}},
    }}).encode()
    assert Sniffer(node_filter=None).sniff(seed({"seed": (200, body)})) == [NodeDescriptor("10.0.0.9", 9200)]


@pytest.mark.parametrize("answer", [
    FAIL,
    (500, b'{"error": "boom"}'),
    (200, b'{"cluster_name": "x"}'),
    (200, b'{"nodes": {}}'),
    (200, b"not json"),
])
def test_sniff_failures_raise_sniff_error(answer):
    with pytest.raises(SniffError):
        Sniffer().sniff(seed({"seed": answer}))


@pytest.mark.parametrize("address", [9200, 92.5, ["10.0.0.1:9200"]])
def test_parse_non_string_address(address):
    with pytest.raises(SniffError):
        parse_publish_address(address)


@pytest.mark.parametrize("entry", [
    {"roles": ["data"], "http": "disabled"},
    {"roles": ["data"], "http": {"publish_address": 9200}},
    {"roles": "data", "http": {"publish_address": {"ip": "10.0.0.1"}}},
])
def test_malformed_node_entry_raises_sniff_error(entry):
    body = json.dumps({"nodes": {"n1": entry}}).encode()
    with pytest.raises(SniffError):
        Sniffer().sniff(seed({"seed": (200, body)}))
