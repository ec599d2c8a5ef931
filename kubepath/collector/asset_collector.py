"""Read-only asset collection from the Kubernetes control plane.

Collection is best-effort: a failed listing for one kind is logged and
recovered as an empty list, and a malformed item is skipped. Nothing here
raises to the caller, so downstream consumers must tolerate empty kinds.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from kubepath.collector.normalize import NORMALIZERS
from kubepath.graph.inference import dangling_references, infer_relationships
from kubepath.graph.models import AssetSnapshot, Relationship
from kubepath.models.assets import Asset, AssetKind
from kubepath.observability.metrics import assets_collected_total, collection_failures_total

_log = structlog.get_logger(component="collector")


class AssetCollector:
    """Lists the eight collected kinds and normalizes them into ``Asset`` records.

    The API objects are shared, long-lived clients owned by the caller; they
    are safe for concurrent reads, so the eight listings run concurrently.

    Args:
        api_client:    kubernetes-asyncio ``ApiClient`` used to serialize models.
        core_v1:       ``CoreV1Api`` (namespaces, pods, services, service accounts).
        apps_v1:       ``AppsV1Api`` (deployments).
        networking_v1: ``NetworkingV1Api`` (ingresses).
        rbac_v1:       ``RbacAuthorizationV1Api`` (roles, cluster roles).
    """

    def __init__(
        self,
        api_client: Any,
        core_v1: Any,
        apps_v1: Any,
        networking_v1: Any,
        rbac_v1: Any,
    ) -> None:
        self._api_client = api_client
        self._core_v1 = core_v1
        self._apps_v1 = apps_v1
        self._networking_v1 = networking_v1
        self._rbac_v1 = rbac_v1

    @classmethod
    def from_api_client(cls, api_client: Any) -> AssetCollector:
        """Build a collector whose typed APIs all share *api_client*."""
        from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

        return cls(
            api_client=api_client,
            core_v1=k8s_client.CoreV1Api(api_client),
            apps_v1=k8s_client.AppsV1Api(api_client),
            networking_v1=k8s_client.NetworkingV1Api(api_client),
            rbac_v1=k8s_client.RbacAuthorizationV1Api(api_client),
        )

    # ------------------------------------------------------------------
    # Per-kind collection
    # ------------------------------------------------------------------

    async def collect_namespaces(self) -> list[Asset]:
        return await self._collect(AssetKind.NAMESPACE, self._core_v1.list_namespace)

    async def collect_pods(self, namespace: str | None = None) -> list[Asset]:
        if namespace:
            return await self._collect(AssetKind.POD, lambda: self._core_v1.list_namespaced_pod(namespace), namespace)
        return await self._collect(AssetKind.POD, self._core_v1.list_pod_for_all_namespaces)

    async def collect_services(self, namespace: str | None = None) -> list[Asset]:
        if namespace:
            return await self._collect(
                AssetKind.SERVICE, lambda: self._core_v1.list_namespaced_service(namespace), namespace
            )
        return await self._collect(AssetKind.SERVICE, self._core_v1.list_service_for_all_namespaces)

    async def collect_deployments(self, namespace: str | None = None) -> list[Asset]:
        if namespace:
            return await self._collect(
                AssetKind.DEPLOYMENT, lambda: self._apps_v1.list_namespaced_deployment(namespace), namespace
            )
        return await self._collect(AssetKind.DEPLOYMENT, self._apps_v1.list_deployment_for_all_namespaces)

    async def collect_ingresses(self, namespace: str | None = None) -> list[Asset]:
        if namespace:
            return await self._collect(
                AssetKind.INGRESS, lambda: self._networking_v1.list_namespaced_ingress(namespace), namespace
            )
        return await self._collect(AssetKind.INGRESS, self._networking_v1.list_ingress_for_all_namespaces)

    async def collect_roles(self, namespace: str | None = None) -> list[Asset]:
        if namespace:
            return await self._collect(AssetKind.ROLE, lambda: self._rbac_v1.list_namespaced_role(namespace), namespace)
        return await self._collect(AssetKind.ROLE, self._rbac_v1.list_role_for_all_namespaces)

    async def collect_cluster_roles(self) -> list[Asset]:
        return await self._collect(AssetKind.CLUSTER_ROLE, self._rbac_v1.list_cluster_role)

    async def collect_service_accounts(self, namespace: str | None = None) -> list[Asset]:
        if namespace:
            return await self._collect(
                AssetKind.SERVICE_ACCOUNT,
                lambda: self._core_v1.list_namespaced_service_account(namespace),
                namespace,
            )
        return await self._collect(AssetKind.SERVICE_ACCOUNT, self._core_v1.list_service_account_for_all_namespaces)

    async def collect_kind(self, kind: AssetKind, namespace: str | None = None) -> list[Asset]:
        """Collect a single kind; Namespace and ClusterRole ignore *namespace*."""
        if kind is AssetKind.NAMESPACE:
            return await self.collect_namespaces()
        if kind is AssetKind.CLUSTER_ROLE:
            return await self.collect_cluster_roles()
        collectors = {
            AssetKind.POD: self.collect_pods,
            AssetKind.SERVICE: self.collect_services,
            AssetKind.DEPLOYMENT: self.collect_deployments,
            AssetKind.INGRESS: self.collect_ingresses,
            AssetKind.ROLE: self.collect_roles,
            AssetKind.SERVICE_ACCOUNT: self.collect_service_accounts,
        }
        return await collectors[kind](namespace)

    # ------------------------------------------------------------------
    # Whole-cluster passes
    # ------------------------------------------------------------------

    async def collect_all_assets(self, namespace: str | None = None) -> dict[AssetKind, list[Asset]]:
        """Run all eight collections concurrently, keyed by kind."""
        _log.info("asset_collection_started", namespace=namespace or "*")
        kinds = list(AssetKind)
        results = await asyncio.gather(*(self.collect_kind(kind, namespace) for kind in kinds))
        assets = dict(zip(kinds, results, strict=True))
        _log.info(
            "asset_collection_finished",
            namespace=namespace or "*",
            total=sum(len(items) for items in results),
            **{kind.value: len(items) for kind, items in assets.items()},
        )
        return assets

    async def collect_snapshot(self, namespace: str | None = None) -> AssetSnapshot:
        """Collect assets once and infer their relationships from the same pass."""
        assets = await self.collect_all_assets(namespace)
        relationships = infer_relationships(assets)
        dangling = dangling_references(assets, relationships)
        if dangling:
            _log.warning(
                "dangling_relationships",
                count=len(dangling),
                sample=[f"{r.source.kind}/{r.source.name}->{r.target.kind}/{r.target.name}" for r in dangling[:5]],
            )
        _log.info("relationships_inferred", count=len(relationships))
        return AssetSnapshot(assets=assets, relationships=relationships)

    async def collect_asset_relationships(self, namespace: str | None = None) -> dict[str, list[Relationship]]:
        snapshot = await self.collect_snapshot(namespace)
        return {"relationships": snapshot.relationships}

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    async def cluster_health(self) -> dict[str, Any]:
        """Probe the control plane by listing namespaces.

        Collection hides a failed listing behind an empty kind, so an
        unreachable cluster is indistinguishable from an empty one there.
        This probe reports the failure instead.
        """
        try:
            response = await self._core_v1.list_namespace()
        except Exception as exc:  # noqa: BLE001
            _log.warning("cluster_health_check_failed", error=str(exc))
            return {"connected": False, "namespaces": 0, "error": str(exc)}
        return {"connected": True, "namespaces": len(getattr(response, "items", None) or [])}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _collect(
        self,
        kind: AssetKind,
        fetch: Callable[[], Awaitable[Any]],
        namespace: str | None = None,
    ) -> list[Asset]:
        try:
            response = await fetch()
        except Exception as exc:  # noqa: BLE001
            collection_failures_total.labels(kind=kind.value).inc()
            _log.error("asset_collection_failed", kind=kind.value, namespace=namespace, error=str(exc))
            return []

        normalize = NORMALIZERS[kind]
        assets: list[Asset] = []
        for item in getattr(response, "items", None) or []:
            try:
                assets.append(normalize(self._api_client.sanitize_for_serialization(item)))
            except Exception as exc:  # noqa: BLE001
                _log.warning("asset_skipped", kind=kind.value, namespace=namespace, error=str(exc))

        assets_collected_total.labels(kind=kind.value).inc(len(assets))
        return assets
