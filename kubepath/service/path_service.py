"""Query/Path service: channel dispatch with request validation.

PathService holds one GraphStore per channel and forwards each operation to
the store the caller names. It owns no query semantics; it only rejects
requests that are incomplete before they reach a store.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog

from kubepath.collector import AssetCollector
from kubepath.observability.logging import graph_operation
from kubepath.store import Channel, GraphPath, GraphQueryResult, GraphStore, ImportResult, Record

_log = structlog.get_logger(component="service")


class InvalidRequestError(ValueError):
    """The caller omitted or malformed a required parameter."""


class PathService:
    """Uniform entry point for imports, queries and path lookups.

    Imports issued through one service are serialized with a lock because a
    clear/create sequence interleaved with another would corrupt the graph.
    Imports from other processes are not coordinated. Queries are not
    serialized against imports and may observe an empty or partially rebuilt
    graph while one is in flight.
    """

    def __init__(
        self,
        stores: Mapping[Channel, GraphStore],
        collector: AssetCollector | None = None,
        default_channel: Channel = Channel.BOLT,
        default_namespace: str | None = None,
    ) -> None:
        self._stores = dict(stores)
        self._collector = collector
        self._default_channel = default_channel
        self._default_namespace = default_namespace
        self._import_lock = asyncio.Lock()

    @property
    def channels(self) -> list[Channel]:
        return list(self._stores)

    def store(self, channel: Channel | str | None = None) -> GraphStore:
        """Return the adapter for *channel*; None selects the default channel."""
        if channel is None:
            channel = self._default_channel
        try:
            return self._stores[Channel(channel)]
        except (ValueError, KeyError) as exc:
            raise InvalidRequestError(f"Unknown graph channel: {channel!r}") from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def execute_query(
        self,
        channel: Channel | str | None,
        statement: str | None,
        parameters: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        store = self.store(channel)
        return await store.execute_query(_require_statement(statement), parameters)

    async def query_graph(
        self,
        channel: Channel | str | None,
        statement: str | None,
        parameters: Mapping[str, Any] | None = None,
    ) -> GraphQueryResult:
        store = self.store(channel)
        return await store.query_graph(_require_statement(statement), parameters)

    async def find_shortest_path(
        self,
        channel: Channel | str | None,
        start_name: str | None,
        end_name: str | None,
    ) -> list[GraphPath]:
        store = self.store(channel)
        if not start_name or not end_name or not start_name.strip() or not end_name.strip():
            raise InvalidRequestError("Both start and end node names are required")
        return await store.find_shortest_path(start_name, end_name)

    async def find_fixed_vulnerability_pattern(self, channel: Channel | str | None) -> list[Record]:
        return await self.store(channel).find_fixed_vulnerability_pattern()

    async def graph_stats(self, channel: Channel | str | None = None) -> dict[str, int]:
        return await self.store(channel).stats()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def import_snapshot(self, channel: Channel | str | None, namespace: str | None = None) -> dict[str, Any]:
        """Collect one snapshot and fully replace the graph through *channel*.

        *namespace* limits namespaced kinds; None falls back to the configured
        default, which itself defaults to every namespace.
        """
        store = self.store(channel)
        if self._collector is None:
            raise InvalidRequestError("No asset collector is configured")
        namespace = namespace or self._default_namespace
        async with self._import_lock:
            with graph_operation(store.channel.value, namespace or "*"):
                snapshot = await self._collector.collect_snapshot(namespace)
                result: ImportResult = await store.import_assets(snapshot.assets, snapshot.relationships)
        return {
            "result": result.to_dict(),
            "assets_count": snapshot.asset_count,
            "relationships_count": len(snapshot.relationships),
        }

    async def clear_graph(self, channel: Channel | str | None) -> None:
        store = self.store(channel)
        async with self._import_lock:
            with graph_operation(store.channel.value):
                await store.clear_graph()

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health(self) -> dict[str, Any]:
        """Report each channel's reachability and the cluster's independently.

        ``cluster`` is None when the service has no collector.
        """
        channels = list(self._stores)
        results = await asyncio.gather(*(self._stores[c].ping() for c in channels))
        status = {channel.value: ok for channel, ok in zip(channels, results, strict=True)}
        _log.debug("graph_store_health", **status)
        cluster = await self._collector.cluster_health() if self._collector is not None else None
        return {"channels": status, "cluster": cluster}


def _require_statement(statement: str | None) -> str:
    if not statement or not statement.strip():
        raise InvalidRequestError("A non-empty query statement is required")
    return statement
