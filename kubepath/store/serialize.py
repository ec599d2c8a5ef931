"""Flattening of assets and relationships into store-ready parameter rows.

Property graphs only hold scalars (and lists of scalars), so every map or
list attribute is stored as a JSON string. Null attributes are omitted, which
is what ``SET n = props`` does with them anyway.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from kubepath.graph.models import Relationship, RelationKind
from kubepath.models.assets import Asset, AssetKind

_log = structlog.get_logger(component="store.serialize")


def _scalar(value: Any) -> Any:
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, sort_keys=True, default=str)
    return value


def node_properties(asset: Asset) -> dict[str, Any]:
    """Return the persisted property map for *asset*."""
    props: dict[str, Any] = {"name": asset.name, "type": asset.kind.value}
    if asset.namespace is not None and not asset.kind.cluster_scoped:
        props["namespace"] = asset.namespace
    if asset.creation_time is not None:
        props["creationTime"] = asset.creation_time
    props["labels"] = _scalar(asset.labels)
    for key, value in asset.attributes.items():
        if value is None or key in props:
            continue
        props[key] = _scalar(value)
    return props


def edge_row(relationship: Relationship) -> dict[str, Any]:
    source, target = relationship.source, relationship.target
    return {
        "sourceType": source.kind.value,
        "sourceName": source.name,
        "sourceNamespace": source.namespace,
        "targetType": target.kind.value,
        "targetName": target.name,
        "targetNamespace": target.namespace,
    }


@dataclass
class ImportPlan:
    """Node batches per kind and edge batches per relation kind, in write order."""

    node_batches: list[tuple[AssetKind, list[dict[str, Any]]]] = field(default_factory=list)
    edge_batches: list[tuple[RelationKind, list[dict[str, Any]]]] = field(default_factory=list)
    duplicates: int = 0

    @property
    def node_count(self) -> int:
        return sum(len(rows) for _, rows in self.node_batches)

    @property
    def edge_count(self) -> int:
        return sum(len(rows) for _, rows in self.edge_batches)


def build_import_plan(
    assets: Mapping[AssetKind, Iterable[Asset]],
    relationships: Iterable[Relationship],
) -> ImportPlan:
    """Group assets and relationships into batches.

    Assets sharing an identity key are collapsed to the first occurrence so
    two nodes never claim the same (type, namespace, name).
    """
    plan = ImportPlan()
    seen: set[tuple[str, str | None, str]] = set()
    for kind in AssetKind:
        rows: list[dict[str, Any]] = []
        for asset in assets.get(kind) or []:
            if asset.key in seen:
                plan.duplicates += 1
                _log.warning("duplicate_asset_identity", kind=kind.value, namespace=asset.namespace, name=asset.name)
                continue
            seen.add(asset.key)
            rows.append(node_properties(asset))
        if rows:
            plan.node_batches.append((kind, rows))

    by_relation: dict[RelationKind, list[dict[str, Any]]] = {}
    for relationship in relationships:
        by_relation.setdefault(relationship.relation, []).append(edge_row(relationship))
    plan.edge_batches = [(relation, by_relation[relation]) for relation in RelationKind if relation in by_relation]
    return plan
