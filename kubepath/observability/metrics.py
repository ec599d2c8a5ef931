"""Prometheus metrics for collection, import and query paths."""

from __future__ import annotations

from prometheus_client import Counter

assets_collected_total = Counter(
    "kubepath_assets_collected_total",
    "Assets normalized by the collector",
    ["kind"],
)

collection_failures_total = Counter(
    "kubepath_collection_failures_total",
    "Per-kind listings that failed and were recovered as an empty list",
    ["kind"],
)

graph_imports_total = Counter(
    "kubepath_graph_imports_total",
    "Full-replace graph imports by channel and outcome",
    ["channel", "outcome"],
)

graph_edges_missing_total = Counter(
    "kubepath_graph_edges_missing_total",
    "Relationships whose endpoints were absent when the edge was merged",
    ["channel"],
)

graph_queries_total = Counter(
    "kubepath_graph_queries_total",
    "Statements sent to the graph store by channel and outcome",
    ["channel", "outcome"],
)
