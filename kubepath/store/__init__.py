"""Graph store adapters for kubepath.

Two interchangeable channels reach the same Neo4j database:

    HttpGraphStore -- stateless request/response over the HTTP API (httpx).
    BoltGraphStore -- pooled sessions and explicit transactions (neo4j driver).

Both implement the GraphStore contract and must produce equivalent graphs
for the same input.
"""

from __future__ import annotations

from kubepath.models.config import Neo4jConfig
from kubepath.store.base import Channel, GraphStore
from kubepath.store.bolt import BoltGraphStore, create_bolt_driver
from kubepath.store.errors import GraphStoreError, PartialImportError, QueryError, StoreUnavailableError
from kubepath.store.rest import HttpGraphStore, create_http_client
from kubepath.store.values import (
    GraphEdge,
    GraphNode,
    GraphPath,
    GraphQueryResult,
    GraphValue,
    ImportResult,
    Record,
    Scalar,
)

__all__ = [
    "BoltGraphStore",
    "Channel",
    "GraphEdge",
    "GraphNode",
    "GraphPath",
    "GraphQueryResult",
    "GraphStore",
    "GraphStoreError",
    "GraphValue",
    "HttpGraphStore",
    "ImportResult",
    "PartialImportError",
    "QueryError",
    "Record",
    "Scalar",
    "StoreUnavailableError",
    "build_graph_stores",
]


def build_graph_stores(config: Neo4jConfig) -> dict[Channel, GraphStore]:
    """Construct one adapter per channel with freshly owned clients."""
    return {
        Channel.REST: HttpGraphStore(create_http_client(config), database=config.database),
        Channel.BOLT: BoltGraphStore(create_bolt_driver(config), database=config.database),
    }
