"""Cypher statements shared by both channels.

Labels and relationship types cannot be parameterized in Cypher, so they are
interpolated here, only ever from ``AssetKind`` and ``RelationKind`` members.
"""

from __future__ import annotations

import re

from kubepath.graph.models import RelationKind
from kubepath.models.assets import AssetKind

MAX_PATH_HOPS = 5

CLEAR_GRAPH = "MATCH (n) DETACH DELETE n"

PING = "RETURN 1 AS ok"

ALL_NODES = "MATCH (n) RETURN n"

ALL_EDGES = "MATCH ()-[r]->() RETURN r"

NODE_COUNTS = "MATCH (n) RETURN n.type AS kind, count(n) AS count"

EDGE_COUNT = "MATCH ()-[r]->() RETURN count(r) AS count"

SHORTEST_PATH = (
    "MATCH (start {name: $startName}), (end {name: $endName}) "
    "WHERE start <> end "
    f"MATCH path = shortestPath((start)-[*..{MAX_PATH_HOPS}]-(end)) "
    "RETURN path"
)

VULNERABILITY_PATTERN = (
    "MATCH (a:Pod)-[:CONNECTS_TO]->(b:Service) "
    "MATCH (c:Pod)-[:RUNS_AS]->(d:ServiceAccount) "
    "WHERE d.name = 'default' "
    "RETURN a, b, c, d"
)


def _snake(kind: AssetKind) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", kind.value).lower()


def index_statement(kind: AssetKind) -> str:
    return f"CREATE INDEX {_snake(kind)}_name_index IF NOT EXISTS FOR (n:{kind.value}) ON (n.name)"


def create_nodes_statement(kind: AssetKind) -> str:
    return f"UNWIND $rows AS props CREATE (n:{kind.value}) SET n = props"


def merge_edges_statement(relation: RelationKind) -> str:
    """Match both endpoints by (type, name, namespace) and merge the typed edge.

    Returns the number of rows whose endpoints both existed.
    """
    return (
        "UNWIND $rows AS row "
        "MATCH (a {type: row.sourceType, name: row.sourceName}) "
        "WHERE coalesce(a.namespace, '') = coalesce(row.sourceNamespace, '') "
        "MATCH (b {type: row.targetType, name: row.targetName}) "
        "WHERE coalesce(b.namespace, '') = coalesce(row.targetNamespace, '') "
        f"MERGE (a)-[r:{relation.value}]->(b) "
        "RETURN count(r) AS merged"
    )
