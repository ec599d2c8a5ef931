"""Core data structures for kubepath."""

from kubepath.models.assets import Asset, AssetKind
from kubepath.models.config import KubePathConfig

__all__ = [
    "Asset",
    "AssetKind",
    "KubePathConfig",
]
