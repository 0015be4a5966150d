# kubewit/core/config.py
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Cluster API settings - the API URL may point at a proxy
    KUBE_API_URL: str = ""
    KUBE_API_TOKEN: str = ""

    # Cluster used for console, logging and metrics URLs
    KUBE_CLUSTER_URL: Optional[str] = None
    KUBE_CLUSTER_TOKEN: Optional[str] = None

    # Namespace of type 'user', holds builds and the environments config map
    KUBE_USER_NAMESPACE: str = ""

    # Transport settings
    KUBE_REQUEST_TIMEOUT: float = 30.0
    KUBE_VERIFY_SSL: bool = True

    # Number of environments queried in parallel by get_application
    KUBE_ENV_FANOUT_WORKERS: int = 4

    LOG_LEVEL: str = "INFO"

    @field_validator("KUBE_CLUSTER_URL", mode="before")
    @classmethod
    def default_cluster_url(cls, v, info):
        """Use KUBE_CLUSTER_URL from environment or fall back to the API URL."""
        if v:
            return v
        return info.data.get("KUBE_API_URL") or None

    @field_validator("KUBE_CLUSTER_TOKEN", mode="before")
    @classmethod
    def default_cluster_token(cls, v, info):
        """Use KUBE_CLUSTER_TOKEN from environment or fall back to the API token."""
        if v:
            return v
        return info.data.get("KUBE_API_TOKEN") or None

    model_config = SettingsConfigDict(
        case_sensitive=True, env_file=".env", validate_default=True
    )


class KubeClientConfig(BaseModel):
    """Everything a KubeClient needs to reach the cluster"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    # Provides URLs for all APIs, and also access tokens
    url_provider: Any
    # Kubernetes namespace in the cluster of type 'user'
    user_namespace: str
    # Seconds, applied to cluster and metrics requests; None disables it
    timeout: Optional[float] = 30.0
    verify_ssl: bool = True
    env_fanout_workers: int = 4
    # Non-default httpx transport for the OpenShift and metrics clients
    transport: Optional[Any] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "KubeClientConfig":
        """Build a client configuration from environment settings"""
        # kubewit.services imports this module
        from kubewit.services.url_provider import ClusterURLProvider

        provider = ClusterURLProvider(
            api_url=settings.KUBE_API_URL,
            api_token=settings.KUBE_API_TOKEN,
            cluster_url=settings.KUBE_CLUSTER_URL,
            cluster_token=settings.KUBE_CLUSTER_TOKEN,
        )
        return cls(
            url_provider=provider,
            user_namespace=settings.KUBE_USER_NAMESPACE,
            timeout=settings.KUBE_REQUEST_TIMEOUT,
            verify_ssl=settings.KUBE_VERIFY_SSL,
            env_fanout_workers=settings.KUBE_ENV_FANOUT_WORKERS,
        )


settings = Settings()
