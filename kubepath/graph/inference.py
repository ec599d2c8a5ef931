"""Relationship inference over one collection pass.

Rules are applied in a fixed order; relation kinds are disjoint, so the
order only affects output ordering:

1. Pod -> Namespace                 BELONGS_TO (always, 1:1)
2. Service -> Pod                   SELECTS (selector match)
3. Deployment -> Pod                MANAGES (selector match)
4. ServiceAccount -> Pod            PROVIDES_IDENTITY (namespace + name)

Role and ClusterRole assets never receive edges: binding resources
(RoleBinding, ClusterRoleBinding) are not collected, so there is nothing to
infer subject or scope from.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from kubepath.graph.models import AssetRef, Relationship, RelationKind
from kubepath.models.assets import Asset, AssetKind


def matches_selector(labels: Mapping[str, str] | None, selector: Mapping[str, str] | None) -> bool:
    """Return True if every selector pair is present in *labels* with an equal value.

    An empty or absent selector matches nothing.
    """
    if not selector or labels is None:
        return False
    return all(key in labels and labels[key] == value for key, value in selector.items())


def _kind(assets: Mapping[AssetKind, list[Asset]], kind: AssetKind) -> list[Asset]:
    return assets.get(kind) or []


def _selector_edges(
    owners: Iterable[Asset],
    pods: list[Asset],
    relation: RelationKind,
) -> list[Relationship]:
    edges: list[Relationship] = []
    for owner in owners:
        selector = owner.get("selector")
        if not selector:
            continue
        source = AssetRef.of(owner)
        for pod in pods:
            if matches_selector(pod.labels, selector):
                edges.append(Relationship(source=source, target=AssetRef.of(pod), relation=relation))
    return edges


def infer_relationships(assets: Mapping[AssetKind, list[Asset]]) -> list[Relationship]:
    """Derive the relationship set for one collection pass."""
    pods = _kind(assets, AssetKind.POD)
    relationships: list[Relationship] = []

    for pod in pods:
        relationships.append(
            Relationship(
                source=AssetRef.of(pod),
                target=AssetRef(kind=AssetKind.NAMESPACE, name=pod.namespace or ""),
                relation=RelationKind.BELONGS_TO,
            )
        )

    relationships.extend(_selector_edges(_kind(assets, AssetKind.SERVICE), pods, RelationKind.SELECTS))
    relationships.extend(_selector_edges(_kind(assets, AssetKind.DEPLOYMENT), pods, RelationKind.MANAGES))

    for account in _kind(assets, AssetKind.SERVICE_ACCOUNT):
        source = AssetRef.of(account)
        for pod in pods:
            if pod.namespace == account.namespace and pod.get("serviceAccount") == account.name:
                relationships.append(
                    Relationship(source=source, target=AssetRef.of(pod), relation=RelationKind.PROVIDES_IDENTITY)
                )

    return relationships


def dangling_references(
    assets: Mapping[AssetKind, list[Asset]],
    relationships: Iterable[Relationship],
) -> list[Relationship]:
    """Return relationships whose source or target is not in *assets*."""
    known = {asset.key for items in assets.values() for asset in items}
    return [rel for rel in relationships if rel.source.key not in known or rel.target.key not in known]
