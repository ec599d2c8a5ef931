"""Asset relationship inference.

Derives typed, directed edges between normalized assets using label-selector
matching (Service/Deployment -> Pod), namespace membership (Pod -> Namespace)
and identity references (ServiceAccount -> Pod).
"""

from kubepath.graph.inference import dangling_references, infer_relationships, matches_selector
from kubepath.graph.models import AssetRef, AssetSnapshot, Relationship, RelationKind

__all__ = [
    "AssetRef",
    "AssetSnapshot",
    "RelationKind",
    "Relationship",
    "dangling_references",
    "infer_relationships",
    "matches_selector",
]
