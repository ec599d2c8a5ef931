"""Query/Path service package."""

from kubepath.service.path_service import InvalidRequestError, PathService

__all__ = ["InvalidRequestError", "PathService"]
