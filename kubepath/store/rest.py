"""Stateless request/response channel over the Neo4j HTTP API.

Each statement is POSTed on its own to ``/db/{database}/tx/commit`` and runs
in its own auto-commit transaction. Nothing spans requests, so a full import
is a sequence of independent writes: if one fails after the clear has
landed, the graph is left partially rebuilt and the failure is reported as
``PartialImportError`` with the counts that completed. This is weaker than
the Bolt channel's guarantee and is intentional, not equalized.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from kubepath.models.config import Neo4jConfig
from kubepath.store import cypher
from kubepath.store.base import Channel, GraphStore, scalar_int
from kubepath.store.errors import GraphStoreError, PartialImportError, StoreUnavailableError, server_error
from kubepath.store.serialize import ImportPlan
from kubepath.store.values import GraphEdge, GraphNode, GraphPath, GraphValue, Record, Scalar

_log = structlog.get_logger(component="store.rest")

_RESULT_CONTENTS = ["row", "graph"]


def create_http_client(config: Neo4jConfig) -> httpx.AsyncClient:
    """Build the long-lived HTTP client owned by the application bootstrap."""
    return httpx.AsyncClient(
        base_url=config.http_url,
        auth=(config.user, config.password),
        timeout=httpx.Timeout(
            config.request_timeout_seconds,
            connect=config.acquisition_timeout_seconds,
            pool=config.acquisition_timeout_seconds,
        ),
        limits=httpx.Limits(max_connections=config.max_pool_size),
        headers={"Accept": "application/json"},
    )


class HttpGraphStore(GraphStore):
    """Graph store adapter speaking the Neo4j transactional HTTP endpoint.

    Args:
        client:   Shared ``httpx.AsyncClient`` whose ``base_url`` points at the
                  Neo4j HTTP port. Owned by the caller.
        database: Target database name.
    """

    channel = Channel.REST

    def __init__(self, client: httpx.AsyncClient, database: str = "neo4j") -> None:
        self._client = client
        self._commit_path = f"/db/{database}/tx/commit"

    async def close(self) -> None:
        await self._client.aclose()

    async def _run(
        self,
        statement: str,
        parameters: dict[str, Any],
        path_columns: frozenset[str] = frozenset(),
    ) -> list[Record]:
        payload = {
            "statements": [
                {
                    "statement": statement,
                    "parameters": parameters,
                    "resultDataContents": _RESULT_CONTENTS,
                }
            ]
        }
        try:
            response = await self._client.post(self._commit_path, json=payload)
        except httpx.TimeoutException as exc:
            raise StoreUnavailableError(self.channel.value, f"request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise StoreUnavailableError(self.channel.value, f"store unreachable: {exc}") from exc

        if response.status_code in (401, 403):
            raise StoreUnavailableError(self.channel.value, "authentication failed", retryable=False)
        if response.is_error:
            raise StoreUnavailableError(
                self.channel.value,
                f"unexpected HTTP {response.status_code}: {response.text[:200]}",
                retryable=response.status_code >= 500,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise StoreUnavailableError(self.channel.value, f"malformed response body: {exc}") from exc
        if not isinstance(body, dict):
            raise StoreUnavailableError(self.channel.value, "malformed response body: expected a JSON object")

        errors = body.get("errors") or []
        if errors:
            first = errors[0]
            raise server_error(self.channel.value, str(first.get("message", "")), first.get("code"))
        results = body.get("results") or []
        if not results:
            return []
        return decode_http_result(results[0], path_columns)

    async def _write_plan(self, plan: ImportPlan) -> int:
        await self._run(cypher.CLEAR_GRAPH, {})
        nodes_done = 0
        edges_done = 0
        try:
            for kind, rows in plan.node_batches:
                await self._run(cypher.create_nodes_statement(kind), {"rows": rows})
                nodes_done += len(rows)
                _log.debug("node_batch_written", kind=kind.value, count=len(rows))
            for relation, rows in plan.edge_batches:
                records = await self._run(cypher.merge_edges_statement(relation), {"rows": rows})
                edges_done += scalar_int(records, "merged")
                _log.debug("edge_batch_written", relation=relation.value, count=len(rows))
        except GraphStoreError as exc:
            raise PartialImportError(
                self.channel.value,
                f"import interrupted: {exc.message}",
                nodes_completed=nodes_done,
                edges_completed=edges_done,
            ) from exc
        return edges_done


# ---------------------------------------------------------------------------
# Response decoding
# ---------------------------------------------------------------------------


def _entity_id(entity: dict[str, Any], id_key: str = "id", element_key: str = "elementId") -> str:
    return str(entity.get(element_key) or entity.get(id_key))


def _http_node(entity: dict[str, Any], fallback: Any) -> GraphNode:
    return GraphNode(
        element_id=_entity_id(entity),
        labels=tuple(sorted(entity.get("labels") or ())),
        properties=dict(entity.get("properties") or fallback or {}),
    )


def _http_edge(entity: dict[str, Any], fallback: Any) -> GraphEdge:
    return GraphEdge(
        element_id=_entity_id(entity),
        type=str(entity.get("type", "")),
        start_id=_entity_id(entity, "startNode", "startNodeElementId"),
        end_id=_entity_id(entity, "endNode", "endNodeElementId"),
        properties=dict(entity.get("properties") or fallback or {}),
    )


def _is_path_meta(meta: list[Any]) -> bool:
    if len(meta) < 3 or len(meta) % 2 == 0:
        return False
    expected = ("node", "relationship")
    return all(isinstance(m, dict) and m.get("type") == expected[i % 2] for i, m in enumerate(meta))


def _decode_http_value(
    value: Any,
    meta: Any,
    nodes: dict[str, dict[str, Any]],
    edges: dict[str, dict[str, Any]],
    as_path: bool = False,
) -> GraphValue:
    # The row/meta format renders a path and a list alternating nodes and
    # relationships identically, so paths are only decoded where requested.
    if isinstance(meta, dict):
        entity_id = str(meta.get("id"))
        if meta.get("type") == "node":
            return _http_node(nodes.get(entity_id, {"id": entity_id, "elementId": meta.get("elementId")}), value)
        if meta.get("type") == "relationship":
            return _http_edge(edges.get(entity_id, {"id": entity_id, "elementId": meta.get("elementId")}), value)
    if as_path and isinstance(meta, list) and _is_path_meta(meta):
        parts = value if isinstance(value, list) else [None] * len(meta)
        decoded = [_decode_http_value(part, m, nodes, edges) for part, m in zip(parts, meta, strict=False)]
        return GraphPath(
            nodes=tuple(v for v in decoded if isinstance(v, GraphNode)),
            edges=tuple(v for v in decoded if isinstance(v, GraphEdge)),
        )
    return Scalar(value)


def decode_http_result(result: dict[str, Any], path_columns: frozenset[str] = frozenset()) -> list[Record]:
    """Decode one ``results[]`` entry requested with row and graph contents.

    Columns named in *path_columns* are decoded as paths; elsewhere a path or
    list is returned in its row form as a ``Scalar``.
    """
    columns: list[str] = result.get("columns") or []
    records: list[Record] = []
    for entry in result.get("data") or []:
        graph = entry.get("graph") or {}
        nodes = {str(n.get("id")): n for n in graph.get("nodes") or []}
        edges = {str(r.get("id")): r for r in graph.get("relationships") or []}
        row = entry.get("row") or []
        meta = entry.get("meta") or []
        records.append(
            {
                column: _decode_http_value(
                    row[i] if i < len(row) else None,
                    meta[i] if i < len(meta) else None,
                    nodes,
                    edges,
                    as_path=column in path_columns,
                )
                for i, column in enumerate(columns)
            }
        )
    return records
