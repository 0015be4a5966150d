# kubewit/__init__.py
from typing import Optional

from kubewit.core.config import KubeClientConfig, settings
from kubewit.core.errors import (
    ConfigurationError,
    KubeClientError,
    MalformedResponseError,
    NotFoundError,
    SpaceMismatchError,
    TransportError,
)
from kubewit.core.logging import configure_logging
from kubewit.services.kube_client import KubeClient


def create_client(config: Optional[KubeClientConfig] = None) -> KubeClient:
    """Factory function to create a KubeClient from environment settings."""
    if config is None:
        config = KubeClientConfig.from_settings(settings)
    return KubeClient(config)


__all__ = [
    "KubeClient",
    "KubeClientConfig",
    "create_client",
    "configure_logging",
    "KubeClientError",
    "NotFoundError",
    "MalformedResponseError",
    "SpaceMismatchError",
    "ConfigurationError",
    "TransportError",
]
