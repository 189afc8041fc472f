import threading

import pytest

from caproneclient.deadpool import DeadPool
from caproneclient.exceptions import NoConnectionsAvailable
from caproneclient.pool import ConnectionPool

from conftest import nodes, scripted


def make_pool(clock, *hosts, **kwargs):
    kwargs.setdefault("randomize_hosts", False)
    return ConnectionPool(
        scripted(),
        nodes(*hosts),
        dead_pool=DeadPool(dead_timeout=60, clock=clock),
        **kwargs
    )


def hosts_of(connections):
    return [c.node.host for c in connections]


def test_round_robin_visits_each_node_once(clock):
    pool = make_pool(clock, "a", "b", "c")
    picked = [pool.get_connection() for _ in range(3)]
    assert hosts_of(picked) == ["a", "b", "c"]
    assert hosts_of(pool.get_connection() for _ in range(3)) == ["a", "b", "c"]


def test_duplicate_nodes_collapse(clock):
    pool = make_pool(clock, "a", "a", "b")
    assert hosts_of(pool.connections) == ["a", "b"]


def test_mark_failed_moves_connection_to_dead_set(clock):
    pool = make_pool(clock, "a", "b")
    conn = pool.connections[0]
    pool.mark_connection_failed(conn)

    assert conn not in pool.live_connections
    assert conn in pool.dead_connections
    assert pool.dead_pool.entry(conn).retry_at > clock()


def test_never_returns_dead_connection(clock):
    pool = make_pool(clock, "a", "b", "c")
    dead = pool.connections[1]
    pool.mark_connection_failed(dead)
    for _ in range(10):
        assert pool.get_connection() is not dead


def test_dead_connection_revived_after_timeout(clock):
    pool = make_pool(clock, "a", "b")
    conn = pool.connections[0]
    pool.mark_connection_failed(conn)

    clock.advance(61)
    pool.get_connection()
    assert conn in pool.live_connections
    assert hosts_of(pool.live_connections) == ["a", "b"]


def test_single_failed_node_is_force_revived(clock):
    pool = make_pool(clock, "a")
    conn = pool.connections[0]
    pool.mark_connection_failed(conn)

    assert pool.get_connection() is conn
    assert conn in pool.live_connections
    assert pool.dead_connections == ()


def test_empty_pool_raises(clock):
    pool = make_pool(clock)
    with pytest.raises(NoConnectionsAvailable):
        pool.get_connection()


def test_mark_alive_restores_pool_order(clock):
    pool = make_pool(clock, "a", "b", "c")
    first = pool.connections[0]
    pool.mark_connection_failed(first)
    pool.mark_connection_alive(first)

    assert hosts_of(pool.live_connections) == ["a", "b", "c"]
    assert pool.dead_pool.failures(first) == 0


def test_every_connection_in_exactly_one_set(clock):
    pool = make_pool(clock, "a", "b", "c")
    a, b, _ = pool.connections
    pool.mark_connection_failed(a)
    pool.mark_connection_failed(b)
    pool.mark_connection_alive(a)

    live = set(pool.live_connections)
    dead = set(pool.dead_connections)
    assert live.isdisjoint(dead)
    assert live | dead == set(pool.connections)


def test_rebuild_replaces_membership_and_history(clock):
    pool = make_pool(clock, "a", "b")
    old = pool.connections
    pool.mark_connection_failed(old[0])

    retired = pool.rebuild(nodes("b", "c"))

    assert retired == list(old)
    assert hosts_of(pool.connections) == ["b", "c"]
    assert hosts_of(pool.live_connections) == ["b", "c"]
    assert len(pool.dead_pool) == 0
    assert not set(old) & set(pool.connections)


def test_failure_of_retired_connection_is_ignored(clock):
    pool = make_pool(clock, "a")
    stale = pool.connections[0]
    pool.rebuild(nodes("b"))
    pool.mark_connection_failed(stale)

    assert len(pool.dead_pool) == 0
    assert hosts_of(pool.live_connections) == ["b"]


def test_randomize_hosts_keeps_membership(clock):
    pool = make_pool(clock, *"abcdefgh", randomize_hosts=True)
    assert sorted(hosts_of(pool.connections)) == list("abcdefgh")


def test_rebuild_is_atomic_for_concurrent_readers(clock):
    old_hosts = ["a", "b", "c"]
    new_hosts = ["x", "y", "z"]
    pool = make_pool(clock, *old_hosts)
    stop = threading.Event()
    seen = []

    def rebuilder():
        i = 0
        while not stop.is_set():
            pool.rebuild(nodes(*(new_hosts if i % 2 == 0 else old_hosts)))
            i += 1

    def reader():
        for _ in range(300):
            snapshot = hosts_of(pool.connections)
            live = hosts_of(pool.live_connections)
            seen.append((snapshot, live, pool.get_connection().node.host))

    writer = threading.Thread(target=rebuilder)
    readers = [threading.Thread(target=reader) for _ in range(4)]
    writer.start()
    for t in readers:
        t.start()
    for t in readers:
        t.join()
    stop.set()
    writer.join()

    assert len(seen) == 1200
    for snapshot, live, host in seen:
        assert snapshot in (old_hosts, new_hosts)
        assert live in (old_hosts, new_hosts)
        assert host in old_hosts + new_hosts
