"""Channel-independent graph store contract.

GraphStore -- ABC implementing every public operation in terms of two
              channel hooks: ``_run`` (send one statement, decode records)
              and ``_write_plan`` (apply a full-replace import with the
              channel's transaction mechanics).

Both variants therefore share query semantics exactly; they differ only in
transport and in what a failed import leaves behind.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

import structlog

from kubepath.graph.models import Relationship
from kubepath.models.assets import Asset, AssetKind
from kubepath.observability.metrics import (
    graph_edges_missing_total,
    graph_imports_total,
    graph_queries_total,
)
from kubepath.store import cypher
from kubepath.store.errors import GraphStoreError, PartialImportError, QueryError
from kubepath.store.serialize import ImportPlan, build_import_plan
from kubepath.store.values import GraphPath, GraphQueryResult, ImportResult, Record, Scalar

_log = structlog.get_logger(component="store")


class Channel(StrEnum):
    """Transport used to reach the graph store."""

    REST = "rest"
    BOLT = "bolt"


def scalar_int(records: list[Record], key: str) -> int:
    """Read an integer column from the first record, 0 when absent."""
    if not records:
        return 0
    value = records[0].get(key)
    if isinstance(value, Scalar) and value.value is not None:
        return int(value.value)
    return 0


class GraphStore(ABC):
    """Abstract graph store adapter; one concrete subclass per channel."""

    channel: Channel

    # ------------------------------------------------------------------
    # Channel hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _run(
        self,
        statement: str,
        parameters: dict[str, Any],
        path_columns: frozenset[str] = frozenset(),
    ) -> list[Record]:
        """Send one statement and return its decoded records.

        Only columns named in *path_columns* are decoded as ``GraphPath``.

        Raises:
            StoreUnavailableError: transport, authentication or transient
                server failure.
            QueryError: the store rejected the statement.
        """

    @abstractmethod
    async def _write_plan(self, plan: ImportPlan) -> int:
        """Clear the graph and write *plan*; return how many edges materialized."""

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying client or driver."""

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    async def execute_query(
        self,
        statement: str,
        parameters: Mapping[str, Any] | None = None,
        *,
        path_columns: Iterable[str] = (),
    ) -> list[Record]:
        """Run a caller-supplied statement and return its records.

        Columns listed in *path_columns* decode to ``GraphPath``; a path in any
        other column comes back in row form, identically on both channels.
        """
        try:
            records = await self._run(statement, dict(parameters or {}), frozenset(path_columns))
        except GraphStoreError:
            graph_queries_total.labels(channel=self.channel.value, outcome="error").inc()
            raise
        graph_queries_total.labels(channel=self.channel.value, outcome="ok").inc()
        return records

    async def provision_indexes(self) -> int:
        """Ensure a name index exists per kind; return how many were verified.

        Rejected index statements are logged and skipped.
        """
        verified = 0
        for kind in AssetKind:
            try:
                await self.execute_query(cypher.index_statement(kind))
                verified += 1
            except QueryError as exc:
                _log.warning("index_provision_warning", channel=self.channel.value, kind=kind.value, error=exc.message)
        _log.info("indexes_provisioned", channel=self.channel.value, verified=verified)
        return verified

    async def clear_graph(self) -> None:
        await self.execute_query(cypher.CLEAR_GRAPH)
        _log.info("graph_cleared", channel=self.channel.value)

    async def import_assets(
        self,
        assets: Mapping[AssetKind, Iterable[Asset]],
        relationships: Iterable[Relationship],
    ) -> ImportResult:
        """Replace the whole graph with *assets* and *relationships*.

        Relationships whose endpoints do not exist are not fatal; they are
        reported as ``edges_missing``.
        """
        plan = build_import_plan(assets, relationships)
        _log.info(
            "graph_import_started",
            channel=self.channel.value,
            nodes=plan.node_count,
            edges=plan.edge_count,
        )
        try:
            merged = await self._write_plan(plan)
        except PartialImportError as exc:
            graph_imports_total.labels(channel=self.channel.value, outcome="partial").inc()
            _log.error(
                "graph_import_partial",
                channel=self.channel.value,
                nodes_completed=exc.nodes_completed,
                edges_completed=exc.edges_completed,
                error=exc.message,
            )
            raise
        except GraphStoreError as exc:
            graph_imports_total.labels(channel=self.channel.value, outcome="failed").inc()
            _log.error("graph_import_failed", channel=self.channel.value, error=exc.message)
            raise

        missing = max(plan.edge_count - merged, 0)
        if missing:
            graph_edges_missing_total.labels(channel=self.channel.value).inc(missing)
            _log.warning("edges_not_materialized", channel=self.channel.value, missing=missing)
        graph_imports_total.labels(channel=self.channel.value, outcome="ok").inc()
        _log.info(
            "graph_import_finished",
            channel=self.channel.value,
            nodes=plan.node_count,
            edges=merged,
            edges_missing=missing,
        )
        return ImportResult(
            success=True,
            message=f"{self.channel.value} import completed",
            nodes_created=plan.node_count,
            edges_created=merged,
            edges_missing=missing,
        )

    async def query_graph(self, statement: str, parameters: Mapping[str, Any] | None = None) -> GraphQueryResult:
        return GraphQueryResult.from_records(await self.execute_query(statement, parameters))

    async def find_shortest_path(self, start_name: str, end_name: str) -> list[GraphPath]:
        """Undirected shortest path of at most five hops; ``[]`` when none exists."""
        records = await self.execute_query(
            cypher.SHORTEST_PATH,
            {"startName": start_name, "endName": end_name},
            path_columns=("path",),
        )
        return [record["path"] for record in records if isinstance(record.get("path"), GraphPath)]

    async def find_fixed_vulnerability_pattern(self) -> list[Record]:
        return await self.execute_query(cypher.VULNERABILITY_PATTERN)

    async def stats(self) -> dict[str, int]:
        """Node counts per kind plus the total relationship count."""
        counts = {kind.value: 0 for kind in AssetKind}
        for record in await self.execute_query(cypher.NODE_COUNTS):
            kind, count = record.get("kind"), record.get("count")
            if isinstance(kind, Scalar) and isinstance(count, Scalar) and kind.value:
                counts[str(kind.value)] = int(count.value)
        counts["relationships"] = scalar_int(await self.execute_query(cypher.EDGE_COUNT), "count")
        return counts

    async def ping(self) -> bool:
        """Return True if the channel can run a trivial statement."""
        try:
            await self.execute_query(cypher.PING)
        except GraphStoreError as exc:
            _log.warning("graph_store_health_check_failed", channel=self.channel.value, error=exc.message)
            return False
        return True
