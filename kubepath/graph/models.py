"""Data structures for inferred asset relationships."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from kubepath.models.assets import Asset, AssetKind


class RelationKind(StrEnum):
    """Types of directed relationships between cluster assets."""

    BELONGS_TO = "BELONGS_TO"
    SELECTS = "SELECTS"
    MANAGES = "MANAGES"
    PROVIDES_IDENTITY = "PROVIDES_IDENTITY"


@dataclass(frozen=True)
class AssetRef:
    """Reference to an asset by identity key."""

    kind: AssetKind
    name: str
    namespace: str | None = None

    @classmethod
    def of(cls, asset: Asset) -> AssetRef:
        _, namespace, name = asset.key
        return cls(kind=asset.kind, name=name, namespace=namespace)

    @property
    def key(self) -> tuple[str, str | None, str]:
        return (self.kind.value, self.namespace, self.name)


@dataclass(frozen=True)
class Relationship:
    """A derived, directed edge between two assets of the same collection pass."""

    source: AssetRef
    target: AssetRef
    relation: RelationKind

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": {"type": self.source.kind.value, "name": self.source.name, "namespace": self.source.namespace},
            "target": {"type": self.target.kind.value, "name": self.target.name, "namespace": self.target.namespace},
            "relation": self.relation.value,
        }


@dataclass
class AssetSnapshot:
    """Assets and their inferred relationships from one collection pass."""

    assets: dict[AssetKind, list[Asset]] = field(default_factory=dict)
    relationships: list[Relationship] = field(default_factory=list)

    @property
    def asset_count(self) -> int:
        return sum(len(items) for items in self.assets.values())
