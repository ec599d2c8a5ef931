"""Graph store error taxonomy shared by both channels."""

from __future__ import annotations


class GraphStoreError(Exception):
    """Base class for failures reported by a graph store adapter."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"[{channel}] {message}")
        self.channel = channel
        self.message = message


class StoreUnavailableError(GraphStoreError):
    """The channel could not reach or authenticate against the store.

    ``retryable`` is True for connectivity failures and timeouts, False for
    authentication failures that will not resolve by retrying.
    """

    def __init__(self, channel: str, message: str, retryable: bool = True) -> None:
        super().__init__(channel, message)
        self.retryable = retryable


class QueryError(GraphStoreError):
    """The store rejected a statement; ``message`` is the store's diagnostic."""

    def __init__(self, channel: str, message: str, code: str | None = None) -> None:
        super().__init__(channel, message)
        self.code = code


class PartialImportError(GraphStoreError):
    """A non-transactional import failed after writes had already landed."""

    def __init__(
        self,
        channel: str,
        message: str,
        nodes_completed: int,
        edges_completed: int,
    ) -> None:
        super().__init__(
            channel,
            f"{message} (nodes completed: {nodes_completed}, edges completed: {edges_completed})",
        )
        self.nodes_completed = nodes_completed
        self.edges_completed = edges_completed


_TRANSIENT_PREFIX = "Neo.TransientError."
_UNAVAILABLE_SUFFIX = ".DatabaseUnavailable"


def is_transient_code(code: str | None) -> bool:
    """True for status codes the server marks as safe to retry."""
    if not code:
        return False
    return code.startswith(_TRANSIENT_PREFIX) or code.endswith(_UNAVAILABLE_SUFFIX)


def server_error(channel: str, message: str, code: str | None) -> GraphStoreError:
    """Classify a failure the server reported with a Neo4j status code.

    Transient and database-unavailable codes become a retryable
    ``StoreUnavailableError``; everything else is a ``QueryError``.
    """
    if is_transient_code(code):
        return StoreUnavailableError(channel, f"{message} ({code})")
    return QueryError(channel, message, code=code)
