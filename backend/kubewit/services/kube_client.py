"""Deployment views of a space's applications across environments"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from kubewit.core.config import KubeClientConfig
from kubewit.core.errors import ConfigurationError, MalformedResponseError
from kubewit.models.deployments import (
    DeploymentLinks,
    EnvStatCores,
    EnvStatMemory,
    EnvStats,
    PodsQuota,
    SimpleApp,
    SimpleAppAttributes,
    SimpleDeployment,
    SimpleDeploymentAttributes,
    SimpleDeploymentStatSeries,
    SimpleDeploymentStats,
    SimpleDeploymentStatsAttributes,
    SimpleEnvironment,
    SimpleEnvironmentAttributes,
    SimpleSpace,
    SimpleSpaceAttributes,
    TimedNumberTuple,
)
from kubewit.models.resources import ConfigMap, Pod, ResourceQuota, Scale, decode
from kubewit.services.access_control import ENVIRONMENT_TYPE_USER, AccessControl
from kubewit.services.deployment_resolver import SPACE_LABEL, Deployment, DeploymentResolver
from kubewit.services.kube_api import KubeRESTAPI
from kubewit.services.metrics_client import MetricsClient
from kubewit.services.pod_status import classify, format_pod_status
from kubewit.services.resource_fetcher import ResourceFetcher
from kubewit.services.route_resolver import RouteResolver
from kubewit.utils.quantity import resource_to_float

logger = logging.getLogger(__name__)

ENVIRONMENTS_CONFIG_MAP = "fabric8-environments"
PROVIDER_LABEL = "provider"
PROVIDER_FABRIC8 = "fabric8"
NAMESPACE_PROPERTY = "namespace"

COMPUTE_RESOURCES_QUOTA = "compute-resources"
LIMITS_CPU = "limits.cpu"
LIMITS_MEMORY = "limits.memory"
MEMORY_UNITS = "bytes"

MetricsFactory = Callable[[str, str], MetricsClient]


def parse_environments(config_map: ConfigMap, user_namespace: str) -> Dict[str, str]:
    """Build the environment name to namespace map from the environments config map

    Each data key is an environment name; its value holds a
    ``namespace: <name>`` line.

    Raises:
        ConfigurationError: If the config map is not provided by fabric8 or an
            environment has no namespace
    """
    if config_map.metadata.labels.get(PROVIDER_LABEL) != PROVIDER_FABRIC8:
        raise ConfigurationError(
            f"unknown or missing provider {PROVIDER_FABRIC8} for environments "
            f"config map in namespace {user_namespace}"
        )

    env_map = {}
    for env_name, value in config_map.data.items():
        namespace = ""
        for line in value.split("\n"):
            if not line.startswith(NAMESPACE_PROPERTY):
                continue
            if ":" not in line:
                raise ConfigurationError("malformed environments config map")
            namespace = line.split(":", 1)[1].strip()
        if not namespace:
            raise ConfigurationError(f"no namespace for environment {env_name} in config map")
        env_map[env_name] = namespace
    return env_map


def get_pods_quota(pods: Iterable[Pod]) -> PodsQuota:
    """Sum the CPU and memory limits of all containers"""
    cores = 0.0
    memory = 0.0
    for pod in pods:
        for container in pod.spec.containers:
            cores += resource_to_float(container.resources.limits, "cpu")
            memory += resource_to_float(container.resources.limits, "memory")
    return PodsQuota(cpucores=cores, memory=memory)


def env_stats_from_quota(quota: ResourceQuota) -> EnvStats:
    hard = quota.status.hard
    used = quota.status.used
    return EnvStats(
        cpucores=EnvStatCores(
            quota=resource_to_float(hard, LIMITS_CPU),
            used=resource_to_float(used, LIMITS_CPU),
        ),
        memory=EnvStatMemory(
            quota=resource_to_float(hard, LIMITS_MEMORY),
            used=resource_to_float(used, LIMITS_MEMORY),
            units=MEMORY_UNITS,
        ),
    )


def get_timestamp_endpoints(
    *series: List[TimedNumberTuple],
) -> Tuple[Optional[float], Optional[float]]:
    """Earliest and latest sample times over time-ordered series"""
    min_time = None
    max_time = None
    for samples in series:
        if not samples:
            continue
        first = samples[0].time
        last = samples[-1].time
        if min_time is None or first < min_time:
            min_time = first
        if max_time is None or last > max_time:
            max_time = last
    return min_time, max_time


class KubeClient:
    """Reads deployments of a user's applications from the cluster

    Collaborators that are not passed in are built from the config.
    Instances are safe to share between threads and should be closed
    after use, or used as a context manager.
    """

    def __init__(
        self,
        config: KubeClientConfig,
        kube_api=None,
        openshift_api=None,
        metrics_factory: Optional[MetricsFactory] = None,
    ):
        """Initialize the client and read the environments of the user

        Args:
            config: Cluster URLs, tokens and transport settings
            kube_api: Core API access, defaults to KubeRESTAPI
            openshift_api: OpenShift API access, defaults to ResourceFetcher
            metrics_factory: Builds a metrics client from a metrics URL and
                token, defaults to MetricsClient

        Raises:
            ConfigurationError: If the environments config map is invalid
        """
        self.config = config
        self.url_provider = config.url_provider
        self._owned = []

        if kube_api is None:
            kube_api = KubeRESTAPI(
                config.url_provider, timeout=config.timeout, verify_ssl=config.verify_ssl
            )
            self._owned.append(kube_api)
        if openshift_api is None:
            openshift_api = ResourceFetcher(
                config.url_provider,
                timeout=config.timeout,
                transport=config.transport,
                verify=config.verify_ssl,
            )
            self._owned.append(openshift_api)
        self.kube_api = kube_api
        self.openshift_api = openshift_api
        self.metrics_factory = metrics_factory or self._new_metrics_client

        self._metrics_clients: Dict[str, MetricsClient] = {}
        self._metrics_lock = threading.Lock()

        try:
            self.env_map = self._get_environments_from_config_map()
        except Exception:
            self.close()
            raise

        self.deployments = DeploymentResolver(kube_api, openshift_api, config.user_namespace)
        self.routes = RouteResolver(kube_api, openshift_api)
        self.access = AccessControl(
            openshift_api, self._get_access_namespace, lambda: list(self.env_map)
        )

    def __enter__(self) -> "KubeClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the metrics clients and HTTP connections held by this client"""
        with self._metrics_lock:
            metrics_clients = list(self._metrics_clients.values())
            self._metrics_clients.clear()
        for metrics_client in metrics_clients:
            metrics_client.close()
        for api in self._owned:
            api.close()
        self._owned = []

    def _new_metrics_client(self, metrics_url: str, token: str) -> MetricsClient:
        return MetricsClient(
            metrics_url,
            token,
            timeout=self.config.timeout,
            transport=self.config.transport,
            verify=self.config.verify_ssl,
        )

    def _get_environments_from_config_map(self) -> Dict[str, str]:
        user_namespace = self.config.user_namespace
        config_map = self.kube_api.get_config_map(user_namespace, ENVIRONMENTS_CONFIG_MAP)
        return parse_environments(config_map, user_namespace)

    def get_environment_namespace(self, env_name: str) -> str:
        """Namespace of an environment listed in the environments config map

        Raises:
            ConfigurationError: If the environment is unknown
        """
        namespace = self.env_map.get(env_name)
        if namespace is None:
            raise ConfigurationError(f"unknown environment: {env_name}")
        return namespace

    def _get_access_namespace(self, env_name: str) -> str:
        # Authorization checks also cover builds in the user namespace
        if env_name == ENVIRONMENT_TYPE_USER:
            return self.config.user_namespace
        return self.get_environment_namespace(env_name)

    def get_metrics_client(self, namespace: str) -> MetricsClient:
        """Metrics client for a namespace, created on first use"""
        with self._metrics_lock:
            metrics_client = self._metrics_clients.get(namespace)
        if metrics_client is not None:
            return metrics_client

        metrics_client = self.metrics_factory(
            self.url_provider.get_metrics_url(namespace),
            self.url_provider.get_metrics_token(namespace),
        )
        with self._metrics_lock:
            cached = self._metrics_clients.setdefault(namespace, metrics_client)
        if cached is not metrics_client:
            # Another thread created one first
            metrics_client.close()
        return cached

    # Spaces and applications

    def get_space(self, space: str) -> SimpleSpace:
        """All applications of a space, one per BuildConfig in the user namespace"""
        build_configs = self.openshift_api.get_build_configs(
            self.config.user_namespace, f"{SPACE_LABEL}={space}"
        )
        applications = []
        for build_config in build_configs.items:
            if not build_config.metadata.name:
                raise MalformedResponseError(
                    "malformed metadata in build config; 'name' is missing or invalid"
                )
            applications.append(self.get_application(space, build_config.metadata.name))
        return SimpleSpace(attributes=SimpleSpaceAttributes(name=space, applications=applications))

    def get_application(self, space: str, app_name: str) -> SimpleApp:
        """Deployments of an application in every environment it is deployed to"""
        env_names = list(self.env_map)
        with ThreadPoolExecutor(max_workers=max(1, self.config.env_fanout_workers)) as executor:
            results = list(
                executor.map(lambda env: self.get_deployment(space, app_name, env), env_names)
            )
        deployments = [deployment for deployment in results if deployment is not None]
        return SimpleApp(
            id=app_name,
            attributes=SimpleAppAttributes(name=app_name, deployments=deployments),
        )

    # Deployments

    def _get_current_deployment(
        self, space: str, app_name: str, namespace: str
    ) -> Optional[Tuple[Deployment, List[Pod]]]:
        deployment = self.deployments.resolve_deployment(space, app_name, namespace)
        if deployment is None or deployment.current is None:
            return None
        rc_uid = deployment.current.metadata.uid
        if not rc_uid:
            raise MalformedResponseError(
                f"replication controller of {deployment.dc_name} in {namespace} has no UID"
            )
        pods = self.deployments.get_pods(namespace, rc_uid)
        return deployment, pods

    def get_deployment(self, space: str, app_name: str, env_name: str) -> Optional[SimpleDeployment]:
        """Current deployment of an application in an environment

        Returns:
            The deployment, None if the application was never deployed there
        """
        namespace = self.get_environment_namespace(env_name)
        current = self._get_current_deployment(space, app_name, namespace)
        if current is None:
            return None
        deployment, pods = current

        pods_quota = get_pods_quota(pods)
        tally, total = classify(pods)

        links = DeploymentLinks(
            console=self.url_provider.get_console_url(namespace),
            logs=self.url_provider.get_logging_url(namespace, deployment.current.metadata.name),
            application=self.routes.resolve_application_url(namespace, deployment),
        )
        return SimpleDeployment(
            id=env_name,
            attributes=SimpleDeploymentAttributes(
                name=env_name,
                version=deployment.app_version,
                pods=format_pod_status(tally),
                pod_total=total,
                pods_quota=pods_quota,
            ),
            links=links,
        )

    def scale_deployment(self, space: str, app_name: str, env_name: str, count: int) -> int:
        """Set the desired number of replicas of an application

        Returns:
            The previous desired number of replicas
        """
        namespace = self.get_environment_namespace(env_name)
        dc_name = self.deployments.get_deployment_config_name(namespace, app_name, space)

        scale_doc = self.openshift_api.get_deployment_config_scale(namespace, dc_name)
        scale = decode(Scale, scale_doc, f"scale of deployment config {dc_name}")
        # replicas is omitted from the spec when it is 0
        old_count = scale.spec.replicas or 0

        scale_doc["spec"]["replicas"] = count
        self.openshift_api.set_deployment_config_scale(namespace, dc_name, scale_doc)

        logger.info(
            f"Scaled deployment {dc_name} of application {app_name} in space {space}, "
            f"environment {env_name} from {old_count} to {count} replicas"
        )
        return old_count

    def get_deployment_stats(
        self, space: str, app_name: str, env_name: str, start_time: datetime
    ) -> Optional[SimpleDeploymentStats]:
        """Usage of a deployment over one minute after start_time"""
        namespace = self.get_environment_namespace(env_name)
        current = self._get_current_deployment(space, app_name, namespace)
        if current is None:
            return None
        _, pods = current

        metrics = self.get_metrics_client(namespace)
        return SimpleDeploymentStats(
            attributes=SimpleDeploymentStatsAttributes(
                cores=metrics.get_cpu_metrics(pods, namespace, start_time),
                memory=metrics.get_memory_metrics(pods, namespace, start_time),
                net_tx=metrics.get_network_sent_metrics(pods, namespace, start_time),
                net_rx=metrics.get_network_recv_metrics(pods, namespace, start_time),
            )
        )

    def get_deployment_stat_series(
        self,
        space: str,
        app_name: str,
        env_name: str,
        start_time: datetime,
        end_time: datetime,
        limit: int = -1,
    ) -> Optional[SimpleDeploymentStatSeries]:
        """Usage of a deployment as time series, at most limit samples each if limit >= 0"""
        namespace = self.get_environment_namespace(env_name)
        current = self._get_current_deployment(space, app_name, namespace)
        if current is None:
            return None
        _, pods = current

        metrics = self.get_metrics_client(namespace)
        cores = metrics.get_cpu_metrics_range(pods, namespace, start_time, end_time, limit)
        memory = metrics.get_memory_metrics_range(pods, namespace, start_time, end_time, limit)
        net_tx = metrics.get_network_sent_metrics_range(pods, namespace, start_time, end_time, limit)
        net_rx = metrics.get_network_recv_metrics_range(pods, namespace, start_time, end_time, limit)

        start, end = get_timestamp_endpoints(cores, memory)
        return SimpleDeploymentStatSeries(
            cores=cores,
            memory=memory,
            net_tx=net_tx,
            net_rx=net_rx,
            start=start,
            end=end,
        )

    # Environments

    def get_environments(self) -> List[SimpleEnvironment]:
        return [self.get_environment(env_name) for env_name in self.env_map]

    def get_environment(self, env_name: str) -> SimpleEnvironment:
        """Resource quota of an environment"""
        namespace = self.get_environment_namespace(env_name)
        quota = self.kube_api.get_resource_quota(namespace, COMPUTE_RESOURCES_QUOTA)
        return SimpleEnvironment(
            attributes=SimpleEnvironmentAttributes(name=env_name, quota=env_stats_from_quota(quota))
        )

    def get_pods_in_namespace(self, namespace: str, app_name: str) -> List[Pod]:
        pods = self.kube_api.list_pods(namespace, label_selector=f"app={app_name}")
        return pods.items

    # Authorization

    def can_deploy(self, env_name: str) -> bool:
        return self.access.can_deploy(env_name)

    def can_get_space(self) -> bool:
        return self.access.can_get_space()

    def can_get_application(self) -> bool:
        return self.access.can_get_application()

    def can_get_deployment(self, env_name: str) -> bool:
        return self.access.can_get_deployment(env_name)

    def can_scale_deployment(self, env_name: str) -> bool:
        return self.access.can_scale_deployment(env_name)

    def can_get_deployment_stats(self, env_name: str) -> bool:
        return self.access.can_get_deployment_stats(env_name)

    def can_get_deployment_stat_series(self, env_name: str) -> bool:
        return self.access.can_get_deployment_stat_series(env_name)

    def can_get_environments(self) -> bool:
        return self.access.can_get_environments()

    def can_get_environment(self, env_name: str) -> bool:
        return self.access.can_get_environment(env_name)
