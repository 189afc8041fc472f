import json
from unittest import mock

import pytest
import urllib3

from caproneclient.connection import Urllib3Connection, encode_params
from caproneclient.exceptions import (
    ConflictError,
    ConnectionError,
    ConnectionTimeout,
    HttpError,
    NotFoundError,
    SerializationError,
    UnexpectedValueException,
)
from caproneclient.nodes import NodeDescriptor


def response(status=200, body=b"", content_type="application/json"):
    return mock.Mock(status=status, data=body, headers={"content-type": content_type})


@pytest.fixture
def manager():
    return mock.Mock(spec=urllib3.PoolManager)


@pytest.fixture
def conn(manager):
    return Urllib3Connection(NodeDescriptor("es1", 9200), pool_manager=manager, timeout=5)


def test_success_decodes_json(conn, manager):
    manager.request.return_value = response(200, b'{"found": true}')
    result = conn.execute("GET", "/corpus/_doc/1", {"realtime": False})

    assert result.status == 200
    assert result.data == {"found": True}
    assert result.url == "http://es1:9200/corpus/_doc/1?realtime=false"

    args, kwargs = manager.request.call_args
    assert args == ("GET", "http://es1:9200/corpus/_doc/1?realtime=false")
    assert kwargs["retries"] is False
    assert kwargs["body"] is None


def test_body_is_serialized(conn, manager):
    manager.request.return_value = response(201, b'{"result": "created"}')
    conn.execute("PUT", "/corpus/_doc/1", body={"title": "Quantum"})

    body = manager.request.call_args[1]["body"]
    assert json.loads(body) == {"title": "Quantum"}


def test_empty_body_decodes_to_none(conn, manager):
    manager.request.return_value = response(200, b"")
    assert conn.execute("HEAD", "/corpus").data is None


def test_text_response_returned_as_text(conn, manager):
    manager.request.return_value = response(200, b"green\n", content_type="text/plain")
    assert conn.execute("GET", "/_cat/health").data == "green\n"


@pytest.mark.parametrize("status, error_class", [(404, NotFoundError), (409, ConflictError), (503, HttpError)])
def test_error_status_raises_http_error(conn, manager, status, error_class):
    manager.request.return_value = response(status, b'{"error": {"reason": "nope"}}')
    with pytest.raises(error_class) as info:
        conn.execute("GET", "/corpus/_doc/1")
    assert info.value.status_code == status
    assert info.value.data == {"error": {"reason": "nope"}}
    assert not isinstance(info.value, ConnectionError)


def test_refused_raises_connection_error(conn, manager):
    manager.request.side_effect = urllib3.exceptions.NewConnectionError(None, "refused")
    with pytest.raises(ConnectionError) as info:
        conn.execute("GET", "/")
    assert not isinstance(info.value, ConnectionTimeout)
    assert isinstance(info.value.error, urllib3.exceptions.NewConnectionError)


def test_read_timeout_raises_connection_timeout(conn, manager):
    manager.request.side_effect = urllib3.exceptions.ReadTimeoutError(None, "/", "timed out")
    with pytest.raises(ConnectionTimeout):
        conn.execute("GET", "/")


def test_protocol_error_raises_connection_error(conn, manager):
    manager.request.side_effect = urllib3.exceptions.ProtocolError("reset")
    with pytest.raises(ConnectionError):
        conn.execute("GET", "/")


def test_malformed_json_raises_serialization_error(conn, manager):
    manager.request.return_value = response(200, b"{not json")
    with pytest.raises(SerializationError):
        conn.execute("GET", "/")


def test_owns_pool_manager_when_none_given():
    conn = Urllib3Connection(NodeDescriptor("es1"))
    assert isinstance(conn.pool_manager, urllib3.PoolManager)
    conn.close()


def test_encode_params():
    assert encode_params({"refresh": True, "fields": ["a", "b"], "skip": None, "size": 10}) == \
        "refresh=true&fields=a%2Cb&size=10"
    assert encode_params(None) == ""


def test_node_params_override_shared_settings(manager):
    node = NodeDescriptor("es1", 9200, params={"timeout": 30, "headers": {"X-Zone": "eu-1"}})
    conn = Urllib3Connection(node, pool_manager=manager, timeout=5, headers={"X-App": "caprone"})
    manager.request.return_value = response(200, b"{}")
    conn.execute("GET", "/")

    assert conn.timeout == 30
    headers = manager.request.call_args[1]["headers"]
    assert headers["x-zone"] == "eu-1"
    assert headers["x-app"] == "caprone"
    assert manager.request.call_args[1]["timeout"].read_timeout == 30


def test_unknown_node_param_rejected(manager):
    with pytest.raises(UnexpectedValueException, match="zone is not a recognized node parameter"):
        Urllib3Connection(NodeDescriptor("es1", params={"zone": "a"}), pool_manager=manager)
