"""Normalized cluster asset records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class AssetKind(StrEnum):
    """Resource kinds collected from the cluster control plane."""

    NAMESPACE = "Namespace"
    POD = "Pod"
    SERVICE = "Service"
    DEPLOYMENT = "Deployment"
    INGRESS = "Ingress"
    ROLE = "Role"
    CLUSTER_ROLE = "ClusterRole"
    SERVICE_ACCOUNT = "ServiceAccount"

    @property
    def cluster_scoped(self) -> bool:
        return self in (AssetKind.NAMESPACE, AssetKind.CLUSTER_ROLE)


@dataclass(frozen=True)
class Asset:
    """A single resource flattened into graph-friendly attributes.

    Produced by the collector, consumed by the inference engine and the
    graph stores. ``attributes`` holds the kind-specific fields using the
    property names they are persisted under (``podIP``, ``serviceAccount``,
    ``selector``...).
    """

    kind: AssetKind
    name: str
    namespace: str | None = None
    creation_time: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str | None, str]:
        """Return the identity key; cluster-scoped kinds ignore namespace."""
        namespace = None if self.kind.cluster_scoped else self.namespace
        return (self.kind.value, namespace, self.name)

    def get(self, attribute: str, default: Any = None) -> Any:
        return self.attributes.get(attribute, default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "namespace": self.namespace,
            "creationTime": self.creation_time,
            "labels": dict(self.labels),
            **self.attributes,
        }
