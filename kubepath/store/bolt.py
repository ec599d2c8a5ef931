"""Session/transaction channel over Bolt using the official neo4j async driver.

One session is acquired per call and released on every exit path. An
import runs two explicit transactions in that session:

1. clear the graph and create every node,
2. merge every relationship.

Any failure rolls the open transaction back and propagates, so a failed
node transaction leaves the previous snapshot untouched.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from neo4j import AsyncGraphDatabase
from neo4j.exceptions import AuthError, DriverError, Neo4jError, ServiceUnavailable, SessionExpired
from neo4j.graph import Node, Path
from neo4j.graph import Relationship as BoltRelationship

from kubepath.models.config import Neo4jConfig
from kubepath.store import cypher
from kubepath.store.base import Channel, GraphStore, scalar_int
from kubepath.store.errors import StoreUnavailableError, server_error
from kubepath.store.serialize import ImportPlan
from kubepath.store.values import GraphEdge, GraphNode, GraphPath, GraphValue, Record, Scalar

_log = structlog.get_logger(component="store.bolt")


def create_bolt_driver(config: Neo4jConfig) -> Any:
    """Build the pooled driver owned by the application bootstrap."""
    return AsyncGraphDatabase.driver(
        config.bolt_url,
        auth=(config.user, config.password),
        max_connection_pool_size=config.max_pool_size,
        connection_acquisition_timeout=config.acquisition_timeout_seconds,
    )


class BoltGraphStore(GraphStore):
    """Graph store adapter using pooled Bolt sessions and explicit transactions.

    Args:
        driver:   Shared ``neo4j.AsyncDriver``. Owned by the caller.
        database: Target database name.
    """

    channel = Channel.BOLT

    def __init__(self, driver: Any, database: str = "neo4j") -> None:
        self._driver = driver
        self._database = database

    async def close(self) -> None:
        await self._driver.close()

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        channel = self.channel.value
        try:
            yield
        except AuthError as exc:
            raise StoreUnavailableError(channel, f"authentication failed: {exc}", retryable=False) from exc
        except (ServiceUnavailable, SessionExpired) as exc:
            raise StoreUnavailableError(channel, f"store unreachable: {exc}") from exc
        except TimeoutError as exc:
            raise StoreUnavailableError(channel, f"connection acquisition timed out: {exc}") from exc
        except Neo4jError as exc:
            raise server_error(channel, exc.message or str(exc), exc.code) from exc
        except DriverError as exc:
            raise StoreUnavailableError(channel, f"driver error: {exc}") from exc

    async def _run(
        self,
        statement: str,
        parameters: dict[str, Any],
        path_columns: frozenset[str] = frozenset(),
    ) -> list[Record]:
        with self._translate_errors():
            async with self._driver.session(database=self._database) as session:
                result = await session.run(statement, parameters)
                return await _records(result, path_columns)

    async def _write_plan(self, plan: ImportPlan) -> int:
        with self._translate_errors():
            async with self._driver.session(database=self._database) as session:
                tx = await session.begin_transaction()
                try:
                    await _records(await tx.run(cypher.CLEAR_GRAPH, {}))
                    for kind, rows in plan.node_batches:
                        await _records(await tx.run(cypher.create_nodes_statement(kind), {"rows": rows}))
                    await tx.commit()
                except BaseException:
                    await _rollback(tx, "nodes")
                    raise
                _log.debug("node_transaction_committed", nodes=plan.node_count)

                merged = 0
                tx = await session.begin_transaction()
                try:
                    for relation, rows in plan.edge_batches:
                        records = await _records(await tx.run(cypher.merge_edges_statement(relation), {"rows": rows}))
                        merged += scalar_int(records, "merged")
                    await tx.commit()
                except BaseException:
                    await _rollback(tx, "relationships")
                    raise
                _log.debug("edge_transaction_committed", edges=merged)
                return merged


async def _rollback(tx: Any, batch: str) -> None:
    if tx.closed():
        return
    await tx.rollback()
    _log.warning("transaction_rolled_back", batch=batch)


async def _records(result: Any, path_columns: frozenset[str] = frozenset()) -> list[Record]:
    return [
        {key: decode_bolt_value(value, as_path=key in path_columns) for key, value in record.items()}
        async for record in result
    ]


# ---------------------------------------------------------------------------
# Value decoding
# ---------------------------------------------------------------------------


def _bolt_node(node: Node) -> GraphNode:
    return GraphNode(element_id=str(node.element_id), labels=tuple(sorted(node.labels)), properties=dict(node.items()))


def _bolt_edge(rel: BoltRelationship) -> GraphEdge:
    return GraphEdge(
        element_id=str(rel.element_id),
        type=str(rel.type),
        start_id=str(rel.start_node.element_id),
        end_id=str(rel.end_node.element_id),
        properties=dict(rel.items()),
    )


def _row_form(value: Any) -> Any:
    """Render a value the way the HTTP row format does: entities as their properties."""
    if isinstance(value, Path):
        parts: list[Any] = [dict(value.start_node.items())]
        for rel, node in zip(value.relationships, value.nodes[1:], strict=True):
            parts.extend((dict(rel.items()), dict(node.items())))
        return parts
    if isinstance(value, (Node, BoltRelationship)):
        return dict(value.items())
    if isinstance(value, list):
        return [_row_form(v) for v in value]
    if isinstance(value, dict):
        return {k: _row_form(v) for k, v in value.items()}
    return value


def decode_bolt_value(value: Any, as_path: bool = False) -> GraphValue:
    """Classify a driver value into a node, edge, path (where requested) or scalar."""
    if isinstance(value, Node):
        return _bolt_node(value)
    if isinstance(value, BoltRelationship):
        return _bolt_edge(value)
    if as_path and isinstance(value, Path):
        return GraphPath(
            nodes=tuple(_bolt_node(n) for n in value.nodes),
            edges=tuple(_bolt_edge(r) for r in value.relationships),
        )
    return Scalar(_row_form(value))
