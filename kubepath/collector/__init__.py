"""Collector package for kubepath.

Lists cluster resources through kubernetes-asyncio and normalizes them into
flat ``Asset`` records.

Submodules
----------
normalize       -- Pure per-kind normalizers from serialized API objects.
asset_collector -- AssetCollector: concurrent, best-effort listing of all kinds.
"""

from kubepath.collector.asset_collector import AssetCollector
from kubepath.collector.normalize import MalformedResourceError

__all__ = ["AssetCollector", "MalformedResourceError"]
