# tests/conftest.py
"""Pytest configuration and fixtures for kubewit tests."""

import json
from typing import Callable, Dict, List, Optional, Tuple

import httpx
import pytest
import yaml

from kubewit.core.config import KubeClientConfig
from kubewit.core.errors import NotFoundError
from kubewit.models.resources import (
    ConfigMap,
    PodList,
    ReplicationControllerList,
    ResourceQuota,
    ServiceList,
    decode,
)
from kubewit.services.kube_client import KubeClient
from kubewit.services.metrics_client import MetricsClient
from kubewit.services.resource_fetcher import ResourceFetcher
from kubewit.services.url_provider import ClusterURLProvider

from builders import ENVIRONMENTS, USER_NAMESPACE, environments_config_map

API_URL = "https://api.cluster.example.com:8443"
API_TOKEN = "api-token"


class FakeKubeAPI:
    """In-memory replacement for KubeRESTAPI, backed by raw resource documents"""

    def __init__(self):
        self.config_maps: Dict[Tuple[str, str], dict] = {}
        self.replication_controllers: Dict[str, List[dict]] = {}
        self.pods: Dict[str, List[dict]] = {}
        self.services: Dict[str, List[dict]] = {}
        self.resource_quotas: Dict[Tuple[str, str], dict] = {}
        self.closed = False

    def get_config_map(self, namespace: str, name: str) -> ConfigMap:
        data = self.config_maps.get((namespace, name))
        if data is None:
            raise NotFoundError(f"config map {name} in {namespace} not found")
        return decode(ConfigMap, data, "config map")

    def list_replication_controllers(self, namespace: str) -> ReplicationControllerList:
        items = self.replication_controllers.get(namespace, [])
        return decode(ReplicationControllerList, {"items": items}, "replication controllers")

    def list_pods(self, namespace: str, label_selector: Optional[str] = None) -> PodList:
        items = self.pods.get(namespace, [])
        if label_selector:
            key, value = label_selector.split("=", 1)
            items = [p for p in items if p["metadata"].get("labels", {}).get(key) == value]
        return decode(PodList, {"items": items}, "pods")

    def list_services(self, namespace: str) -> ServiceList:
        return decode(ServiceList, {"items": self.services.get(namespace, [])}, "services")

    def get_resource_quota(self, namespace: str, name: str) -> ResourceQuota:
        data = self.resource_quotas.get((namespace, name))
        if data is None:
            raise NotFoundError(f"resource quota {name} in {namespace} not found")
        return decode(ResourceQuota, data, "resource quota")

    def close(self) -> None:
        self.closed = True


class FakeOpenShift:
    """Serves OpenShift API documents by path through an httpx.MockTransport

    GET answers with YAML, 404 for unknown paths. PUT stores the YAML body.
    POST answers with the JSON document registered for the path.
    """

    def __init__(self):
        self.resources: Dict[str, dict] = {}
        self.requests: List[httpx.Request] = []
        self.errors: Dict[str, int] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.errors:
            return httpx.Response(self.errors[path], text="failure")

        if request.method == "PUT":
            document = yaml.safe_load(request.content)
            self.resources[path] = document
            return httpx.Response(200, text=yaml.safe_dump(document))

        document = self.resources.get(path)
        if document is None:
            return httpx.Response(404, text="not found")
        if request.method == "POST":
            return httpx.Response(201, json=document)
        return httpx.Response(
            200, text=yaml.safe_dump(document), headers={"Content-Type": "application/yaml"}
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_for(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


class FakeMetrics:
    """Hawkular stand-in answering every query with the configured buckets"""

    def __init__(self):
        self.buckets: Dict[str, list] = {}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        tags = request.url.params.get("tags", "")
        descriptor = tags.split(",")[0].split(":", 1)[1]
        buckets = self.buckets.get(descriptor)
        if buckets is None:
            return httpx.Response(204)
        return httpx.Response(200, content=json.dumps(buckets))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def url_provider() -> ClusterURLProvider:
    """URL provider for a cluster reached directly at API_URL."""
    return ClusterURLProvider(api_url=API_URL, api_token=API_TOKEN)


@pytest.fixture
def fake_kube() -> FakeKubeAPI:
    """Core API fake holding a valid environments config map."""
    kube = FakeKubeAPI()
    kube.config_maps[(USER_NAMESPACE, "fabric8-environments")] = environments_config_map(
        ENVIRONMENTS
    )
    return kube


@pytest.fixture
def openshift() -> FakeOpenShift:
    return FakeOpenShift()


@pytest.fixture
def fetcher(url_provider, openshift):
    """ResourceFetcher talking to the fake OpenShift API."""
    fetcher = ResourceFetcher(url_provider, transport=openshift.transport())
    yield fetcher
    fetcher.close()


@pytest.fixture
def metrics_backend() -> FakeMetrics:
    return FakeMetrics()


@pytest.fixture
def client_config(url_provider) -> KubeClientConfig:
    return KubeClientConfig(url_provider=url_provider, user_namespace=USER_NAMESPACE)


@pytest.fixture
def make_client(client_config, fake_kube, fetcher, metrics_backend) -> Callable[[], KubeClient]:
    """Factory for KubeClients wired to the fakes; clients are closed after the test."""
    clients = []

    def metrics_factory(metrics_url: str, token: str) -> MetricsClient:
        return MetricsClient(metrics_url, token, transport=metrics_backend.transport())

    def factory() -> KubeClient:
        client = KubeClient(
            client_config,
            kube_api=fake_kube,
            openshift_api=fetcher,
            metrics_factory=metrics_factory,
        )
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()
