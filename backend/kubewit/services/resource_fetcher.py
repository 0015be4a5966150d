"""OpenShift REST API client service"""

import logging
from typing import Any, Dict, Optional

import httpx
import yaml
from httpx import HTTPStatusError, RequestError

from kubewit.core.errors import MalformedResponseError, TransportError
from kubewit.models.resources import (
    BuildConfigList,
    BuildList,
    DeploymentConfig,
    RouteList,
    SelfSubjectRulesReview,
    decode,
)
from kubewit.services.url_provider import BaseURLProvider

logger = logging.getLogger(__name__)

YAML_CONTENT_TYPE = "application/yaml"


class ResourceFetcher:
    """Client for the OpenShift resources under /oapi/v1

    Documents are exchanged as YAML, except the rules review which the
    API only accepts as JSON.
    """

    def __init__(
        self,
        url_provider: BaseURLProvider,
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        verify: bool = True,
    ):
        """Initialize the fetcher

        Args:
            url_provider: Supplies the API URL and bearer token
            timeout: Request timeout in seconds, None for no timeout
            transport: Non-default httpx transport, used by tests
            verify: Verify the cluster's TLS certificate
        """
        self.url_provider = url_provider
        self.api_url = url_provider.get_api_url().rstrip("/")

        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            verify=verify,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def _request(
        self, method: str, path: str, allow_missing: bool = False, **kwargs
    ) -> Optional[httpx.Response]:
        """Make an authenticated HTTP request to the cluster API

        Args:
            method: HTTP method
            path: API path (relative to the API URL)
            allow_missing: Return None instead of raising on 404
            **kwargs: Additional request parameters

        Returns:
            HTTP response, or None for a tolerated 404

        Raises:
            TransportError: For HTTP and network errors
        """
        url = f"{self.api_url}{path}"

        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self.url_provider.get_api_token()}"

        logger.debug(f"{method} {url}")
        try:
            response = self.client.request(method=method, url=url, headers=headers, **kwargs)
            if allow_missing and response.status_code == 404:
                logger.debug(f"{url} not found")
                return None
            response.raise_for_status()
            return response
        except HTTPStatusError as e:
            logger.error(f"Cluster API error: {e.response.status_code} - {e.response.text}")
            raise TransportError(
                f"could not {method} resource", url, e.response.status_code
            ) from e
        except RequestError as e:
            logger.error(f"Cluster connection error: {e}")
            raise TransportError(f"could not {method} resource ({e})", url) from e

    @staticmethod
    def _decode_yaml(response: httpx.Response) -> Dict[str, Any]:
        try:
            document = yaml.safe_load(response.text)
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML from {response.request.url}: {e}")
            raise MalformedResponseError(f"invalid YAML from {response.request.url}") from e
        if not isinstance(document, dict):
            raise MalformedResponseError(
                f"expected a mapping from {response.request.url}, got {type(document).__name__}"
            )
        return document

    def get_resource(
        self,
        path: str,
        allow_missing: bool = False,
        params: Optional[Dict[str, str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """GET a resource as a YAML document

        Args:
            path: API path, e.g. /oapi/v1/namespaces/my-run/routes
            allow_missing: Return None if the resource does not exist
            params: Query parameters, e.g. a labelSelector

        Returns:
            Decoded document, or None if missing and allowed
        """
        response = self._request(
            "GET",
            path,
            allow_missing=allow_missing,
            params=params or {},
            headers={"Accept": YAML_CONTENT_TYPE},
        )
        if response is None:
            return None
        return self._decode_yaml(response)

    def put_resource(self, path: str, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """PUT a resource as a YAML document

        Args:
            path: API path of the resource
            body: Document to store

        Returns:
            Decoded document returned by the API, None if the body is empty
        """
        response = self._request(
            "PUT",
            path,
            content=yaml.safe_dump(body, default_flow_style=False),
            headers={"Content-Type": YAML_CONTENT_TYPE, "Accept": YAML_CONTENT_TYPE},
        )
        if not response.content:
            return None
        return self._decode_yaml(response)

    def post_resource(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON document and return the decoded JSON response"""
        response = self._request("POST", path, json=body, headers={"Accept": "application/json"})
        try:
            document = response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from {response.request.url}: {e}")
            raise MalformedResponseError(f"invalid JSON from {response.request.url}") from e
        if not isinstance(document, dict):
            raise MalformedResponseError(f"expected a JSON object from {response.request.url}")
        return document

    # OpenShift resources

    def get_build_configs(self, namespace: str, label_selector: str) -> BuildConfigList:
        data = self.get_resource(
            f"/oapi/v1/namespaces/{namespace}/buildconfigs",
            params={"labelSelector": label_selector},
        )
        return decode(BuildConfigList, data, f"build configs in {namespace}")

    def get_builds(self, namespace: str, label_selector: str) -> BuildList:
        data = self.get_resource(
            f"/oapi/v1/namespaces/{namespace}/builds",
            params={"labelSelector": label_selector},
        )
        return decode(BuildList, data, f"builds in {namespace}")

    def get_deployment_config(self, namespace: str, name: str) -> Optional[DeploymentConfig]:
        """Get a DeploymentConfig, None if it does not exist"""
        data = self.get_resource(
            f"/oapi/v1/namespaces/{namespace}/deploymentconfigs/{name}", allow_missing=True
        )
        if data is None:
            return None
        return decode(DeploymentConfig, data, f"deployment config {name}")

    def get_deployment_config_scale(self, namespace: str, name: str) -> Dict[str, Any]:
        """Get the scale sub-resource of a DeploymentConfig as a raw document

        The document is written back as a whole by set_deployment_config_scale,
        so fields that kubewit does not model are preserved.
        """
        return self.get_resource(f"/oapi/v1/namespaces/{namespace}/deploymentconfigs/{name}/scale")

    def set_deployment_config_scale(
        self, namespace: str, name: str, scale: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        return self.put_resource(
            f"/oapi/v1/namespaces/{namespace}/deploymentconfigs/{name}/scale", scale
        )

    def get_routes(self, namespace: str, label_selector: Optional[str] = None) -> RouteList:
        params = {"labelSelector": label_selector} if label_selector else None
        data = self.get_resource(f"/oapi/v1/namespaces/{namespace}/routes", params=params)
        return decode(RouteList, data, f"routes in {namespace}")

    def create_self_subject_rules_review(self, namespace: str) -> SelfSubjectRulesReview:
        """Ask the cluster which actions the token holder may perform in a namespace"""
        body = {"apiVersion": "v1", "kind": "SelfSubjectRulesReview"}
        data = self.post_resource(
            f"/oapi/v1/namespaces/{namespace}/selfsubjectrulesreviews", body
        )
        return decode(SelfSubjectRulesReview, data, f"rules review in {namespace}")
