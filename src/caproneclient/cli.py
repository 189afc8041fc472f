"""
CaproneClient CLI - Command-Line Interface
==========================================

Usage:
    caproneclient cluster health
    caproneclient --hosts es1:9200,es2:9200 cluster nodes
    caproneclient create myindex --shards 5
    caproneclient put myindex '{"title": "Quantum"}' --id q1
    caproneclient get myindex q1
    caproneclient search myindex "quantum mechanics"
    caproneclient delete myindex -f
"""

import argparse
import json
import logging
import time
from typing import List, Optional

from .exceptions import CaproneClientError, HttpError


def get_hosts(args) -> List[str]:
    """Extract hosts from args."""
    if args.hosts:
        return args.hosts.split(",")
    return ["localhost:9200"]


def make_client(args):
    from .client import Client

    params = {
        "max_retries": args.max_retries,
        "sniff_on_start": args.sniff_on_start,
        "randomize_hosts": False,
    }
    if args.log_path:
        params["log_path"] = args.log_path
        params["log_level"] = logging.getLevelName(args.log_level.upper())
    return Client(get_hosts(args), **params)


def cmd_cluster_health(args):
    """Show cluster health."""
    with make_client(args) as client:
        health = client.cluster.health()
        pool = client.transport.connection_pool
        live = len(pool.live_connections)
        dead = len(pool.dead_connections)

    print(f"\n{health['cluster_name']}: {health['status']}")
    print(f"Cluster nodes: {health['number_of_nodes']} ({health['number_of_data_nodes']} data)")
    print(f"Shards: {health['active_shards']} active, {health['unassigned_shards']} unassigned")
    print(f"Client pool: {live} live, {dead} quarantined")


def cmd_cluster_nodes(args):
    """Sniff the cluster and list the nodes the pool would use."""
    with make_client(args) as client:
        if not client.sniff():
            print("Sniffing failed, showing configured hosts")
        pool = client.transport.connection_pool
        live = set(pool.live_connections)

        print(f"\n{'Node':<40} {'State':<6}")
        print("-" * 47)
        for conn in pool.connections:
            print(f"{conn.node.url:<40} {'live' if conn in live else 'dead':<6}")


def cmd_create(args):
    """Create a new index."""
    body = {
        "settings": {
            "number_of_shards": args.shards,
            "number_of_replicas": args.replicas
        }
    }
    with make_client(args) as client:
        client.indices.create(args.index, body)

    print(f"Created index: {args.index}")
    print(f"  Shards: {args.shards}")
    print(f"  Replicas: {args.replicas}")


def cmd_delete(args):
    """Delete an index."""
    if not args.force:
        confirm = input(f"Delete index '{args.index}'? [y/N] ")
        if confirm.lower() != 'y':
            print("Aborted.")
            return

    with make_client(args) as client:
        client.indices.delete(args.index)
    print(f"Deleted index: {args.index}")


def cmd_put(args):
    """Index one JSON document."""
    document = json.loads(args.document)
    with make_client(args) as client:
        response = client.index(args.index, document, id=args.id)
    print(f"{response.get('result', 'indexed')}: {response.get('_id')}")


def cmd_get(args):
    """Print one document."""
    with make_client(args) as client:
        response = client.get(args.index, args.id)
    print(json.dumps(response.get("_source", response), indent=2))


def cmd_search(args):
    """Search an index."""
    with make_client(args) as client:
        start = time.time()
        response = client.search(args.query, index=args.index, params={"size": args.limit})
        elapsed_ms = (time.time() - start) * 1000

    hits = response["hits"]["hits"]
    print(f"\nQuery: {args.query}")
    print(f"Results: {len(hits)} (in {elapsed_ms:.1f}ms)\n")

    for hit in hits:
        source = json.dumps(hit.get("_source", {}))
        preview = source[:70] + "..." if len(source) > 70 else source
        print(f"[{hit.get('_score') or 0:.2f}] {hit['_id']}")
        print(f"  {preview}\n")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="caproneclient",
        description="CaproneClient - Self-Healing Cluster Client"
    )

    # Global options
    parser.add_argument(
        "--hosts",
        help="Cluster nodes (comma-separated host:port)",
        default=None
    )
    parser.add_argument(
        "--max-retries",
        dest="max_retries",
        type=int,
        default=3,
        help="Retries on other nodes after a connection failure"
    )
    parser.add_argument(
        "--sniff-on-start",
        dest="sniff_on_start",
        action="store_true",
        help="Discover cluster nodes before the first request"
    )
    parser.add_argument("--log-path", dest="log_path", default=None, help="Write the event log here")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Event log level"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # cluster command
    cluster_parser = subparsers.add_parser("cluster", help="Cluster operations")
    cluster_sub = cluster_parser.add_subparsers(dest="cluster_cmd")

    cluster_sub.add_parser("health", help="Show cluster health")
    cluster_sub.add_parser("nodes", help="Sniff and list cluster nodes")

    # create command
    create_parser = subparsers.add_parser("create", help="Create an index")
    create_parser.add_argument("index", help="Index name")
    create_parser.add_argument("--shards", type=int, default=5, help="Primary shards")
    create_parser.add_argument("--replicas", type=int, default=1, help="Replica shards")

    # delete command
    delete_parser = subparsers.add_parser("delete", help="Delete an index")
    delete_parser.add_argument("index", help="Index name")
    delete_parser.add_argument("-f", "--force", action="store_true", help="Skip confirmation")

    # put command
    put_parser = subparsers.add_parser("put", help="Index a JSON document")
    put_parser.add_argument("index", help="Index name")
    put_parser.add_argument("document", help="Document as a JSON string")
    put_parser.add_argument("--id", help="Document id (assigned by the cluster if omitted)")

    # get command
    get_parser = subparsers.add_parser("get", help="Get a document")
    get_parser.add_argument("index", help="Index name")
    get_parser.add_argument("id", help="Document id")

    # search command
    search_parser = subparsers.add_parser("search", help="Search an index")
    search_parser.add_argument("index", help="Index name")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--limit", type=int, default=20, help="Max results")

    # Parse and dispatch
    args = parser.parse_args(argv)

    commands = {
        "create": cmd_create,
        "delete": cmd_delete,
        "put": cmd_put,
        "get": cmd_get,
        "search": cmd_search,
    }

    try:
        if args.command == "cluster":
            if args.cluster_cmd == "health":
                cmd_cluster_health(args)
            elif args.cluster_cmd == "nodes":
                cmd_cluster_nodes(args)
            else:
                cluster_parser.print_help()
        elif args.command in commands:
            commands[args.command](args)
        else:
            parser.print_help()
    except HttpError as e:
        print(f"Error: {e}")
        return 1
    except CaproneClientError as e:
        print(f"Error: {e}")
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
