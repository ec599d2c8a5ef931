"""kubepath: Kubernetes asset graph for attack path analysis."""

__version__ = "0.1.0"
