"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubepath.models.config import (
    APIConfig,
    CollectorConfig,
    KubePathConfig,
    LogConfig,
    Neo4jConfig,
)

_CHANNELS = {"rest", "bolt"}


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEPATH_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_channel(value: str) -> str:
    if value.lower() not in _CHANNELS:
        raise ValueError(f"Invalid graph channel: {value}. Must be one of {_CHANNELS}")
    return value.lower()


def load_config() -> KubePathConfig:
    """Load configuration from KUBEPATH_* environment variables."""
    return KubePathConfig(
        neo4j=Neo4jConfig(
            http_url=_env("NEO4J_HTTP_URL", "http://localhost:7474").rstrip("/"),
            bolt_url=_env("NEO4J_BOLT_URL", "bolt://localhost:7687"),
            user=_env("NEO4J_USER", "neo4j"),
            password=_env("NEO4J_PASSWORD", ""),
            database=_env("NEO4J_DATABASE", "neo4j"),
            max_pool_size=_env_int("NEO4J_MAX_POOL_SIZE", 50, min_val=1, max_val=500),
            acquisition_timeout_seconds=_env_int("NEO4J_ACQUISITION_TIMEOUT", 60, min_val=1, max_val=300),
            request_timeout_seconds=_env_int("NEO4J_REQUEST_TIMEOUT", 30, min_val=1, max_val=300),
            default_channel=_validate_channel(_env("DEFAULT_CHANNEL", "bolt")),
        ),
        collector=CollectorConfig(
            kubeconfig=_env("KUBECONFIG", ""),
            namespace=_env("NAMESPACE", ""),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
