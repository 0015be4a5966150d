"""Kubernetes core API access"""

import logging
from typing import Optional, Type

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from kubewit.core.errors import NotFoundError, TransportError
from kubewit.models.resources import (
    ConfigMap,
    ModelT,
    PodList,
    ReplicationControllerList,
    ResourceQuota,
    ServiceList,
    decode,
)
from kubewit.services.url_provider import BaseURLProvider


logger = logging.getLogger(__name__)


class KubeRESTAPI:
    """Read core v1 resources (ConfigMaps, RCs, Pods, Services, quotas)"""

    def __init__(
        self,
        url_provider: BaseURLProvider,
        timeout: Optional[float] = 30.0,
        verify_ssl: bool = True,
        core_v1: Optional[client.CoreV1Api] = None,
    ):
        """Initialize the Kubernetes client

        Args:
            url_provider: Supplies the API URL and bearer token
            timeout: Request timeout in seconds, None for no timeout
            verify_ssl: Verify the cluster's TLS certificate
            core_v1: Pre-built CoreV1Api, used by tests
        """
        self.timeout = timeout
        if core_v1 is None:
            configuration = client.Configuration()
            configuration.host = url_provider.get_api_url().rstrip("/")
            configuration.api_key = {"authorization": url_provider.get_api_token()}
            configuration.api_key_prefix = {"authorization": "Bearer"}
            configuration.verify_ssl = verify_ssl
            self.api_client = client.ApiClient(configuration)
            core_v1 = client.CoreV1Api(self.api_client)
        else:
            self.api_client = core_v1.api_client
        self.core_v1 = core_v1

    def close(self) -> None:
        self.api_client.close()

    def _call(self, model: Type[ModelT], what: str, method, *args, **kwargs) -> ModelT:
        """Invoke a CoreV1Api method and decode the result into a model

        Raises:
            NotFoundError: If the API answers 404
            TransportError: For other API errors and connection failures
            MalformedResponseError: If the result does not fit the model
        """
        if self.timeout is not None:
            kwargs["_request_timeout"] = self.timeout
        try:
            result = method(*args, **kwargs)
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"{what} not found") from e
            logger.error(f"Failed to get {what}: {e.status} - {e.reason}")
            raise TransportError(
                f"could not get {what}", self.api_client.configuration.host, e.status
            ) from e
        except HTTPError as e:
            logger.error(f"Connection error getting {what}: {e}")
            raise TransportError(
                f"could not get {what} ({e})", self.api_client.configuration.host
            ) from e
        data = self.api_client.sanitize_for_serialization(result)
        return decode(model, data, what)

    def get_config_map(self, namespace: str, name: str) -> ConfigMap:
        return self._call(
            ConfigMap,
            f"config map {name} in {namespace}",
            self.core_v1.read_namespaced_config_map,
            name,
            namespace,
        )

    def list_replication_controllers(self, namespace: str) -> ReplicationControllerList:
        return self._call(
            ReplicationControllerList,
            f"replication controllers in {namespace}",
            self.core_v1.list_namespaced_replication_controller,
            namespace,
        )

    def list_pods(self, namespace: str, label_selector: Optional[str] = None) -> PodList:
        kwargs = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        return self._call(
            PodList,
            f"pods in {namespace}",
            self.core_v1.list_namespaced_pod,
            namespace,
            **kwargs,
        )

    def list_services(self, namespace: str) -> ServiceList:
        return self._call(
            ServiceList,
            f"services in {namespace}",
            self.core_v1.list_namespaced_service,
            namespace,
        )

    def get_resource_quota(self, namespace: str, name: str) -> ResourceQuota:
        return self._call(
            ResourceQuota,
            f"resource quota {name} in {namespace}",
            self.core_v1.read_namespaced_resource_quota,
            name,
            namespace,
        )
