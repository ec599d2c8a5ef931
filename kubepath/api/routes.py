"""Route handlers for the kubepath REST API.

Handlers are thin: they read the collector and path service from
``request.app.state`` and serialize what those return. Error mapping lives
in the exception handlers registered by ``create_app``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request

from kubepath.api.schemas import AttackPathRequest, ImportResponse, QueryRequest
from kubepath.models.assets import AssetKind
from kubepath.service import InvalidRequestError, PathService
from kubepath.store.values import record_to_dict

router = APIRouter()


def _service(request: Request) -> PathService:
    return request.app.state.service


def _collector(request: Request) -> Any:
    collector = request.app.state.collector
    if collector is None:
        raise InvalidRequestError("No asset collector is configured")
    return collector


def _kind(value: str) -> AssetKind:
    for kind in AssetKind:
        if kind.value.lower() == value.lower():
            return kind
    raise InvalidRequestError(f"Unknown asset kind: {value!r}")


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


@router.get("/assets")
async def list_assets(request: Request, namespace: str | None = Query(default=None)) -> dict[str, Any]:
    assets = await _collector(request).collect_all_assets(namespace)
    return {kind.value: [asset.to_dict() for asset in items] for kind, items in assets.items()}


@router.get("/assets/{kind}")
async def list_assets_of_kind(
    request: Request,
    kind: str,
    namespace: str | None = Query(default=None),
) -> dict[str, Any]:
    asset_kind = _kind(kind)
    assets = await _collector(request).collect_kind(asset_kind, namespace)
    return {"kind": asset_kind.value, "items": [asset.to_dict() for asset in assets]}


@router.get("/relationships")
async def list_relationships(request: Request, namespace: str | None = Query(default=None)) -> dict[str, Any]:
    result = await _collector(request).collect_asset_relationships(namespace)
    return {"relationships": [rel.to_dict() for rel in result["relationships"]]}


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


@router.post("/graph/{channel}/import", response_model=ImportResponse)
async def import_graph(
    request: Request,
    channel: str,
    namespace: str | None = Query(default=None),
) -> ImportResponse:
    outcome = await _service(request).import_snapshot(channel, namespace)
    return ImportResponse(
        **outcome["result"],
        assets_count=outcome["assets_count"],
        relationships_count=outcome["relationships_count"],
    )


@router.delete("/graph/{channel}")
async def clear_graph(request: Request, channel: str) -> dict[str, Any]:
    await _service(request).clear_graph(channel)
    return {"success": True, "channel": channel}


@router.post("/graph/{channel}/query")
async def query_graph(request: Request, channel: str, body: QueryRequest) -> dict[str, Any]:
    result = await _service(request).query_graph(channel, body.cypher, body.params)
    return result.to_dict()


@router.post("/graph/{channel}/attack-paths")
async def attack_paths(request: Request, channel: str, body: AttackPathRequest) -> dict[str, Any]:
    paths = await _service(request).find_shortest_path(channel, body.start_node, body.end_node)
    return {"paths": [path.to_dict() for path in paths]}


@router.get("/graph/{channel}/vulnerabilities")
async def vulnerabilities(request: Request, channel: str) -> dict[str, Any]:
    records = await _service(request).find_fixed_vulnerability_pattern(channel)
    return {"matches": [record_to_dict(record) for record in records]}


@router.get("/graph/{channel}/stats")
async def graph_stats(request: Request, channel: str) -> dict[str, Any]:
    return {"channel": channel, "counts": await _service(request).graph_stats(channel)}


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    from kubepath import __version__

    report = await _service(request).health()
    channels, cluster = report["channels"], report["cluster"]
    healthy = bool(channels) and all(channels.values()) and (cluster is None or cluster["connected"])
    return {
        "status": "ok" if healthy else "degraded",
        "version": __version__,
        "channels": channels,
        "cluster": cluster,
    }
