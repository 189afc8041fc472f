"""
CaproneClient Namespaces - Cluster and Index Administration
===========================================================

Thin request builders grouped the way the cluster's REST API groups them.
Each method checks its query parameters against an allow-list, escapes
path segments and hands a method/URI/body triple to the transport.

Example:
    client = Client(["es1:9200"])
    client.cluster.health()
    client.indices.create("corpus", {"settings": {"number_of_shards": 5}})
"""

from typing import Any, Iterable, Mapping, Optional, Union
from urllib.parse import quote

from .exceptions import NotFoundError, UnexpectedValueException

IndexNames = Union[str, Iterable[str]]


def escape(value: Any) -> str:
    """Url-encode one path segment."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    return quote(str(value), safe="")


def join_names(names: IndexNames) -> str:
    """Escape one index name, or comma-join several."""
    if isinstance(names, str):
        return escape(names)
    return ",".join(escape(n) for n in names)


def check_params(params: Optional[Mapping[str, Any]], allowed: Iterable[str]):
    """
    Raises:
        UnexpectedValueException: For the first key not in ``allowed``
    """
    if not params:
        return
    allowed = set(allowed)
    for key in params:
        if key not in allowed:
            raise UnexpectedValueException(f"{key} is not a valid parameter")


class Namespace:
    """Base for request builders bound to a transport."""

    def __init__(self, transport):
        self.transport = transport

    def _request(self, method: str, uri: str, params=None, body=None) -> Any:
        return self.transport.perform_request(method, uri, params, body).data


class ClusterNamespace(Namespace):
    """Cluster-level read operations."""

    def health(self, index: Optional[IndexNames] = None, params: Optional[dict] = None) -> dict:
        """
        Get cluster health, optionally for specific indices.

        Args:
            index: Index name(s) to scope the health check to
            params: level, local, timeout, wait_for_status, ...
        """
        check_params(params, (
            "level", "local", "master_timeout", "timeout", "wait_for_active_shards",
            "wait_for_nodes", "wait_for_no_relocating_shards", "wait_for_status",
        ))
        uri = "/_cluster/health"
        if index is not None:
            uri += "/" + join_names(index)
        return self._request("GET", uri, params)

    def state(
        self,
        metric: Optional[IndexNames] = None,
        index: Optional[IndexNames] = None,
        params: Optional[dict] = None
    ) -> dict:
        check_params(params, ("local", "master_timeout", "expand_wildcards", "flat_settings"))
        uri = "/_cluster/state"
        if metric is not None:
            uri += "/" + join_names(metric)
            if index is not None:
                uri += "/" + join_names(index)
        elif index is not None:
            uri += "/_all/" + join_names(index)
        return self._request("GET", uri, params)

    def stats(self, params: Optional[dict] = None) -> dict:
        check_params(params, ("flat_settings", "timeout"))
        return self._request("GET", "/_cluster/stats", params)

    def nodes_info(self, metric: Optional[IndexNames] = None, params: Optional[dict] = None) -> dict:
        """Node information, the same data sniffing reads."""
        check_params(params, ("flat_settings", "timeout"))
        uri = "/_nodes/_all"
        if metric is not None:
            uri += "/" + join_names(metric)
        return self._request("GET", uri, params)


class IndicesNamespace(Namespace):
    """Index lifecycle and maintenance."""

    def create(self, index: str, body: Optional[dict] = None, params: Optional[dict] = None) -> dict:
        """
        Create an index.

        Args:
            index: Index name
            body: Settings and mappings
            params: timeout, master_timeout, wait_for_active_shards
        """
        check_params(params, ("master_timeout", "timeout", "wait_for_active_shards"))
        return self._request("PUT", "/" + escape(index), params, body)

    def delete(self, index: IndexNames, params: Optional[dict] = None) -> dict:
        check_params(params, (
            "allow_no_indices", "expand_wildcards", "ignore_unavailable",
            "master_timeout", "timeout",
        ))
        return self._request("DELETE", "/" + join_names(index), params)

    def exists(self, index: IndexNames, params: Optional[dict] = None) -> bool:
        """True if every named index exists."""
        check_params(params, (
            "allow_no_indices", "expand_wildcards", "ignore_unavailable", "local",
        ))
        try:
            self.transport.perform_request("HEAD", "/" + join_names(index), params)
        except NotFoundError:
            return False
        return True

    def refresh(self, index: Optional[IndexNames] = None, params: Optional[dict] = None) -> dict:
        """Make recent changes searchable."""
        check_params(params, ("allow_no_indices", "expand_wildcards", "ignore_unavailable"))
        uri = "/_refresh" if index is None else f"/{join_names(index)}/_refresh"
        return self._request("POST", uri, params)

    def forcemerge(self, index: Optional[IndexNames] = None, params: Optional[dict] = None) -> dict:
        check_params(params, (
            "allow_no_indices", "expand_wildcards", "flush", "ignore_unavailable",
            "max_num_segments", "only_expunge_deletes", "wait_for_completion",
        ))
        uri = "/_forcemerge" if index is None else f"/{join_names(index)}/_forcemerge"
        return self._request("POST", uri, params)

    def put_alias(self, index: IndexNames, name: str, body: Optional[dict] = None,
                  params: Optional[dict] = None) -> dict:
        check_params(params, ("master_timeout", "timeout"))
        return self._request("PUT", f"/{join_names(index)}/_alias/{escape(name)}", params, body)

    def stats(self, index: Optional[IndexNames] = None, metric: Optional[IndexNames] = None,
              params: Optional[dict] = None) -> dict:
        check_params(params, ("expand_wildcards", "fields", "groups", "level"))
        uri = "/_stats" if index is None else f"/{join_names(index)}/_stats"
        if metric is not None:
            uri += "/" + join_names(metric)
        return self._request("GET", uri, params)
