"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Neo4jConfig:
    """Graph store connection settings shared by both channels."""

    http_url: str = "http://localhost:7474"
    bolt_url: str = "bolt://localhost:7687"
    user: str = "neo4j"
    password: str = ""
    database: str = "neo4j"
    max_pool_size: int = 50
    acquisition_timeout_seconds: int = 60
    request_timeout_seconds: int = 30
    default_channel: str = "bolt"


@dataclass
class CollectorConfig:
    """Kubernetes asset collector configuration."""

    kubeconfig: str = ""
    namespace: str = ""


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubePathConfig:
    """Top-level kubepath configuration."""

    neo4j: Neo4jConfig = field(default_factory=Neo4jConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
