"""Pydantic request/response models for the kubepath REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error envelope returned for every non-2xx response."""

    error: str
    detail: str


class QueryRequest(BaseModel):
    """Free-form Cypher statement with optional parameters."""

    cypher: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


class AttackPathRequest(BaseModel):
    """Shortest-path lookup between two named nodes."""

    model_config = ConfigDict(populate_by_name=True)

    start_node: str = Field(..., min_length=1, alias="startNode")
    end_node: str = Field(..., min_length=1, alias="endNode")


class ImportResponse(BaseModel):
    """Outcome of a collect-and-import run."""

    success: bool
    message: str
    nodes_created: int
    edges_created: int
    edges_missing: int
    assets_count: int
    relationships_count: int
