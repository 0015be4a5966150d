"""Base URLs and tokens for the cluster, console, logging and metrics APIs

Typical URLs for a cluster whose API is at https://api.cluster.example.com:
    console: https://console.cluster.example.com/console/
    metrics: https://metrics.cluster.example.com/
"""

import logging
from typing import Dict, List, Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel

from kubewit.core.errors import ConfigurationError


logger = logging.getLogger(__name__)


class BaseURLProvider(Protocol):
    """Provides the base URL of every API used for deployments"""

    def get_api_url(self) -> str: ...

    def get_api_token(self) -> str: ...

    def get_metrics_url(self, namespace: str) -> str: ...

    def get_metrics_token(self, namespace: str) -> str: ...

    def get_console_url(self, namespace: str) -> str: ...

    def get_logging_url(self, namespace: str, rc_name: str) -> str: ...


def modify_url(api_url: str, prefix: str, path: str) -> str:
    """Swap the leading "api" of a cluster hostname and replace the path

    Args:
        api_url: Cluster API URL, e.g. https://api.example.com:8443
        prefix: Replacement for "api", e.g. "console"
        path: Path of the new URL

    Returns:
        URL with the same scheme, the modified hostname and the given path.
        The port of the API URL is dropped.

    Raises:
        ConfigurationError: If the URL cannot be parsed or its hostname
            does not begin with "api"
    """
    try:
        parts = urlsplit(api_url)
        hostname = parts.hostname or ""
    except ValueError as e:
        raise ConfigurationError(f"invalid cluster URL {api_url!r}") from e
    if not hostname.startswith("api"):
        raise ConfigurationError(
            f'cluster URL does not begin with "api": {hostname or api_url}'
        )
    new_hostname = prefix + hostname[len("api"):]
    if path and not path.startswith("/"):
        path = "/" + path
    return urlunsplit((parts.scheme, new_hostname, path, "", ""))


class ClusterURLProvider:
    """URL provider for a single cluster

    API calls go to ``api_url``, which may be a proxy in front of the
    cluster. Console, logging and metrics URLs are derived from
    ``cluster_url``.
    """

    def __init__(
        self,
        api_url: str,
        api_token: str,
        cluster_url: Optional[str] = None,
        cluster_token: Optional[str] = None,
    ):
        if not api_url:
            raise ConfigurationError("cluster API URL is required")
        self.api_url = api_url
        self.api_token = api_token
        self.cluster_url = cluster_url or api_url
        self.cluster_token = cluster_token or api_token

    def get_api_url(self) -> str:
        return self.api_url

    def get_api_token(self) -> str:
        return self.api_token

    def get_metrics_url(self, namespace: str) -> str:
        # Substitute "api" with "metrics" in the cluster URL
        return modify_url(self.cluster_url, "metrics", "")

    def get_metrics_token(self, namespace: str) -> str:
        return self.cluster_token

    def get_console_url(self, namespace: str) -> str:
        return modify_url(self.cluster_url, "console", f"console/project/{namespace}")

    def get_logging_url(self, namespace: str, rc_name: str) -> str:
        console_url = self.get_console_url(namespace)
        return f"{console_url}/browse/rc/{rc_name}?tab=logs"


class TenantNamespace(BaseModel):
    """Namespace attributes as reported by the tenant service"""

    name: str
    cluster_url: str
    type: Optional[str] = None
    cluster_console_url: Optional[str] = None
    cluster_logging_url: Optional[str] = None
    cluster_metrics_url: Optional[str] = None


class TenantURLProvider:
    """URL provider built from a tenant's namespaces

    Each namespace may live on its own cluster and may carry explicit
    console, logging and metrics URLs. Missing URLs are derived from the
    namespace's cluster URL.
    """

    def __init__(
        self,
        namespaces: List[TenantNamespace],
        token: str,
        api_url: Optional[str] = None,
        tenant_name: str = "",
    ):
        self.token = token
        self.tenant_name = tenant_name
        self.namespaces: Dict[str, TenantNamespace] = {ns.name: ns for ns in namespaces}

        default_cluster_url = ""
        if namespaces:
            # The first namespace's cluster is the default
            default_cluster_url = namespaces[0].cluster_url
        else:
            logger.error(f"Tenant {tenant_name!r} has no namespaces")
        self.api_url = api_url or default_cluster_url
        if not self.api_url:
            raise ConfigurationError(f"no cluster API URL for tenant {tenant_name!r}")

    def _namespace(self, namespace: str) -> TenantNamespace:
        ns = self.namespaces.get(namespace)
        if ns is None:
            raise ConfigurationError(
                f"namespace {namespace!r} is not in tenant {self.tenant_name!r}"
            )
        return ns

    def get_api_url(self) -> str:
        return self.api_url

    def get_api_token(self) -> str:
        return self.token

    def get_metrics_url(self, namespace: str) -> str:
        ns = self._namespace(namespace)
        if ns.cluster_metrics_url:
            return ns.cluster_metrics_url
        return modify_url(ns.cluster_url, "metrics", "")

    def get_metrics_token(self, namespace: str) -> str:
        return self.token

    def get_console_url(self, namespace: str) -> str:
        ns = self._namespace(namespace)
        # The tenant service appends /console to console and logging URLs
        base_url = ns.cluster_console_url or modify_url(ns.cluster_url, "console", "/console")
        return f"{base_url.rstrip('/')}/project/{namespace}"

    def get_logging_url(self, namespace: str, rc_name: str) -> str:
        ns = self._namespace(namespace)
        base_url = ns.cluster_logging_url or modify_url(ns.cluster_url, "console", "/console")
        return f"{base_url.rstrip('/')}/project/{namespace}/browse/rc/{rc_name}?tab=logs"
