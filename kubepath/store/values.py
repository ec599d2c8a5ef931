"""Decoded graph values returned by both channels.

Every value a statement returns is classified once, at the adapter
boundary, into ``GraphValue = GraphNode | GraphEdge | GraphPath | Scalar``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class GraphNode:
    """A persisted asset: labels plus flat properties."""

    element_id: str
    labels: tuple[str, ...]
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> tuple[Any, Any, Any]:
        """(type, namespace, name) as persisted; namespace is None when absent."""
        props = self.properties
        return (props.get("type"), props.get("namespace"), props.get("name"))

    def structured(self, key: str) -> Any:
        """Decode a property that was flattened to a JSON string on import."""
        value = self.properties.get(key)
        if isinstance(value, str):
            return json.loads(value)
        return value

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.element_id, "labels": list(self.labels), "properties": self.properties}


@dataclass(frozen=True)
class GraphEdge:
    """A persisted relationship between two nodes."""

    element_id: str
    type: str
    start_id: str
    end_id: str
    properties: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.element_id,
            "type": self.type,
            "start": self.start_id,
            "end": self.end_id,
            "properties": self.properties,
        }


@dataclass(frozen=True)
class GraphPath:
    """An alternating node/edge walk; ``nodes`` has one more entry than ``edges``."""

    nodes: tuple[GraphNode, ...]
    edges: tuple[GraphEdge, ...]

    @property
    def segments(self) -> list[tuple[GraphNode, GraphEdge, GraphNode]]:
        return [(self.nodes[i], edge, self.nodes[i + 1]) for i, edge in enumerate(self.edges)]

    def __len__(self) -> int:
        return len(self.edges)

    def to_dict(self) -> dict[str, Any]:
        return {
            "length": len(self.edges),
            "segments": [
                {"start": start.to_dict(), "relationship": edge.to_dict(), "end": end.to_dict()}
                for start, edge, end in self.segments
            ],
        }


@dataclass(frozen=True)
class Scalar:
    """Any returned value that is not a node, edge or path."""

    value: Any

    def to_dict(self) -> Any:
        return self.value


GraphValue = GraphNode | GraphEdge | GraphPath | Scalar

Record = dict[str, GraphValue]


@dataclass
class GraphQueryResult:
    """Nodes and edges separated out of a statement's records."""

    nodes: list[GraphNode] = field(default_factory=list)
    relationships: list[GraphEdge] = field(default_factory=list)

    @classmethod
    def from_records(cls, records: list[Record]) -> GraphQueryResult:
        """Keep nodes and edges, deduplicated by element id in first-seen order."""
        result = cls()
        seen: set[tuple[str, str]] = set()
        for record in records:
            for value in record.values():
                if isinstance(value, GraphNode) and ("n", value.element_id) not in seen:
                    seen.add(("n", value.element_id))
                    result.nodes.append(value)
                elif isinstance(value, GraphEdge) and ("r", value.element_id) not in seen:
                    seen.add(("r", value.element_id))
                    result.relationships.append(value)
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "relationships": [edge.to_dict() for edge in self.relationships],
        }


@dataclass
class ImportResult:
    """Outcome of a full-replace import."""

    success: bool
    message: str
    nodes_created: int = 0
    edges_created: int = 0
    edges_missing: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "nodes_created": self.nodes_created,
            "edges_created": self.edges_created,
            "edges_missing": self.edges_missing,
        }


def record_to_dict(record: Record) -> dict[str, Any]:
    return {key: value.to_dict() for key, value in record.items()}
