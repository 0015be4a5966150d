"""Service layer for cluster access and deployment resolution"""

from kubewit.services.access_control import AccessControl
from kubewit.services.deployment_resolver import Deployment, DeploymentResolver
from kubewit.services.kube_api import KubeRESTAPI
from kubewit.services.kube_client import KubeClient
from kubewit.services.metrics_client import MetricsClient
from kubewit.services.resource_fetcher import ResourceFetcher
from kubewit.services.route_resolver import RouteResolver
from kubewit.services.url_provider import ClusterURLProvider, TenantURLProvider

__all__ = [
    "AccessControl",
    "Deployment",
    "DeploymentResolver",
    "KubeRESTAPI",
    "KubeClient",
    "MetricsClient",
    "ResourceFetcher",
    "RouteResolver",
    "ClusterURLProvider",
    "TenantURLProvider",
]
