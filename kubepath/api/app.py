"""FastAPI application factory for kubepath.

Usage::

    from kubepath.api.app import create_app

    app = create_app(service=service, collector=collector, config=config)

The factory is designed for use by both the production bootstrap
(``kubepath.app``) and unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from kubepath.api.routes import router
from kubepath.api.schemas import ErrorResponse
from kubepath.service import InvalidRequestError
from kubepath.store.errors import PartialImportError, QueryError, StoreUnavailableError

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def _error(status_code: int, error: str, detail: str, **extra: Any) -> JSONResponse:
    content = ErrorResponse(error=error, detail=detail).model_dump()
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def create_app(service: Any, collector: Any = None, config: Any = None) -> FastAPI:
    """Create and configure the kubepath FastAPI application.

    Args:
        service:   PathService instance.
        collector: Optional AssetCollector backing the asset listing routes.
        config:    KubePathConfig, kept on ``app.state`` for handlers.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kubepath import __version__

    app = FastAPI(
        title="kubepath",
        summary="Kubernetes asset graph and attack path API",
        version=__version__,
        description=(
            "kubepath collects cluster assets, infers their relationships and "
            "persists them to a Neo4j graph for attack path analysis."
        ),
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.service = service
    app.state.collector = collector
    app.state.config = config

    app.include_router(router, prefix=_API_PREFIX)
    app.mount("/metrics", make_asgi_app())

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map Pydantic validation errors to the error envelope."""
        errors = exc.errors()
        detail = ""
        if errors:
            locs = errors[0].get("loc", ())
            field = str(locs[-1]) if locs else ""
            detail = f"{field}: {errors[0].get('msg', '')}" if field else str(errors[0].get("msg", ""))
        return _error(400, "INVALID_REQUEST", detail)

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(_request: Request, exc: InvalidRequestError) -> JSONResponse:
        return _error(400, "INVALID_REQUEST", str(exc))

    @app.exception_handler(QueryError)
    async def query_error_handler(_request: Request, exc: QueryError) -> JSONResponse:
        return _error(400, "QUERY_ERROR", str(exc), code=exc.code)

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        _log.warning("graph_store_unavailable", path=str(request.url.path), error=str(exc))
        return _error(503, "STORE_UNAVAILABLE", str(exc), retryable=exc.retryable)

    @app.exception_handler(PartialImportError)
    async def partial_import_handler(request: Request, exc: PartialImportError) -> JSONResponse:
        _log.error("partial_import", path=str(request.url.path), error=str(exc))
        return _error(
            500,
            "PARTIAL_IMPORT",
            str(exc),
            nodes_completed=exc.nodes_completed,
            edges_completed=exc.edges_completed,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return _error(500, "INTERNAL_ERROR", "An unexpected error occurred.")

    return app
