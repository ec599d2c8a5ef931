"""Per-kind normalization of serialized Kubernetes API objects.

Every function takes the camelCase dict produced by
``ApiClient.sanitize_for_serialization`` and returns a flat ``Asset``.
Missing optional sections normalize to empty values; only a missing
``metadata.name`` is treated as malformed.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from kubepath.models.assets import Asset, AssetKind


class MalformedResourceError(ValueError):
    """Raised when an API object lacks the fields needed to identify it."""


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def _map(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def _base(kind: AssetKind, raw: dict[str, Any], attributes: dict[str, Any]) -> Asset:
    metadata = _section(raw, "metadata")
    name = metadata.get("name")
    if not name:
        raise MalformedResourceError(f"{kind} object has no metadata.name")
    namespace = None if kind.cluster_scoped else metadata.get("namespace")
    created = metadata.get("creationTimestamp")
    return Asset(
        kind=kind,
        name=str(name),
        namespace=namespace,
        creation_time=str(created) if created is not None else None,
        labels={str(k): str(v) for k, v in _map(metadata.get("labels")).items()},
        attributes=attributes,
    )


def _container(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": raw.get("name"),
        "image": raw.get("image"),
        "ports": _list(raw.get("ports")),
        "resources": _map(raw.get("resources")),
        "securityContext": _map(raw.get("securityContext")),
    }


def _containers(spec: dict[str, Any]) -> list[dict[str, Any]]:
    return [_container(c) for c in _list(spec.get("containers")) if isinstance(c, dict)]


def normalize_namespace(raw: dict[str, Any]) -> Asset:
    metadata = _section(raw, "metadata")
    status = _section(raw, "status")
    return _base(
        AssetKind.NAMESPACE,
        raw,
        {"status": status.get("phase"), "annotations": _map(metadata.get("annotations"))},
    )


def normalize_pod(raw: dict[str, Any]) -> Asset:
    spec = _section(raw, "spec")
    status = _section(raw, "status")
    return _base(
        AssetKind.POD,
        raw,
        {
            "status": status.get("phase"),
            "podIP": status.get("podIP"),
            "hostIP": status.get("hostIP"),
            "nodeName": spec.get("nodeName"),
            "serviceAccount": spec.get("serviceAccountName") or spec.get("serviceAccount"),
            "containers": _containers(spec),
        },
    )


def normalize_service(raw: dict[str, Any]) -> Asset:
    spec = _section(raw, "spec")
    return _base(
        AssetKind.SERVICE,
        raw,
        {
            "serviceType": spec.get("type"),
            "clusterIP": spec.get("clusterIP"),
            "externalIPs": _list(spec.get("externalIPs")),
            "ports": _list(spec.get("ports")),
            "selector": _map(spec.get("selector")),
        },
    )


def normalize_deployment(raw: dict[str, Any]) -> Asset:
    spec = _section(raw, "spec")
    status = _section(raw, "status")
    template = _section(spec, "template")
    return _base(
        AssetKind.DEPLOYMENT,
        raw,
        {
            "replicas": spec.get("replicas"),
            "readyReplicas": status.get("readyReplicas") or 0,
            "selector": _map(_section(spec, "selector").get("matchLabels")),
            "template": {
                "labels": _map(_section(template, "metadata").get("labels")),
                "containers": _containers(_section(template, "spec")),
            },
        },
    )


def normalize_ingress(raw: dict[str, Any]) -> Asset:
    metadata = _section(raw, "metadata")
    spec = _section(raw, "spec")
    return _base(
        AssetKind.INGRESS,
        raw,
        {
            "rules": _list(spec.get("rules")),
            "tls": _list(spec.get("tls")),
            "annotations": _map(metadata.get("annotations")),
        },
    )


def normalize_role(raw: dict[str, Any]) -> Asset:
    return _base(AssetKind.ROLE, raw, {"rules": _list(raw.get("rules"))})


def normalize_cluster_role(raw: dict[str, Any]) -> Asset:
    return _base(AssetKind.CLUSTER_ROLE, raw, {"rules": _list(raw.get("rules"))})


def normalize_service_account(raw: dict[str, Any]) -> Asset:
    return _base(AssetKind.SERVICE_ACCOUNT, raw, {"secrets": _list(raw.get("secrets"))})


NORMALIZERS: dict[AssetKind, Callable[[dict[str, Any]], Asset]] = {
    AssetKind.NAMESPACE: normalize_namespace,
    AssetKind.POD: normalize_pod,
    AssetKind.SERVICE: normalize_service,
    AssetKind.DEPLOYMENT: normalize_deployment,
    AssetKind.INGRESS: normalize_ingress,
    AssetKind.ROLE: normalize_role,
    AssetKind.CLUSTER_ROLE: normalize_cluster_role,
    AssetKind.SERVICE_ACCOUNT: normalize_service_account,
}
