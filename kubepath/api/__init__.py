"""REST API layer for kubepath.

Exposes:
    create_app -- FastAPI application factory.
    build_app  -- Alias for create_app (used by kubepath.app bootstrap).
"""

from kubepath.api.app import create_app

build_app = create_app

__all__ = ["build_app", "create_app"]
