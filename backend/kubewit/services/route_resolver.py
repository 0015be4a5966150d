"""Choose the URL under which a deployment is reachable

Routes are scored with the same heuristics as the cluster web console:
admitted routes first, then routes with alternate backends, custom
hostnames and TLS.
"""

import logging
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from kubewit.core.errors import MalformedResponseError
from kubewit.models.resources import Route, RouteIngress, Service
from kubewit.services.deployment_resolver import Deployment

logger = logging.getLogger(__name__)

HOST_GENERATED_ANNOTATION = "openshift.io/host.generated"
CONDITION_ADMITTED = "Admitted"
SERVICE_KIND = "Service"

SCORE_ADMITTED = 11
SCORE_ALTERNATE_BACKENDS = 5
SCORE_CUSTOM_HOST = 3
SCORE_TLS = 1


class RouteCandidate(BaseModel):
    host: str = ""
    path: str = ""
    tls: bool = False
    admitted: bool = False
    has_alternate_backends: bool = False
    custom_host: bool = True


def service_matches(selector: Dict[str, str], labels: Dict[str, str]) -> bool:
    """True if every selector label is set to the same value in labels

    An empty selector matches nothing.
    """
    if not selector:
        return False
    return all(labels.get(key) == value for key, value in selector.items())


def matching_services(services: Iterable[Service], template_labels: Dict[str, str]) -> List[str]:
    """Names of the services selecting pods with the given template labels"""
    return [
        service.metadata.name
        for service in services
        if service.metadata.name and service_matches(service.spec.selector, template_labels)
    ]


def find_oldest_admitted_ingress(ingresses: Iterable[RouteIngress]) -> Optional[RouteIngress]:
    """Find the ingress admitted the longest time ago

    Raises:
        MalformedResponseError: If an admitted condition has no transition time
    """
    oldest = None
    oldest_time = None
    for ingress in ingresses:
        for condition in ingress.conditions:
            if condition.type != CONDITION_ADMITTED or condition.status != "True":
                continue
            if condition.last_transition_time is None:
                raise MalformedResponseError("missing last transition time from ingress condition")
            if oldest is None or condition.last_transition_time < oldest_time:
                oldest = ingress
                oldest_time = condition.last_transition_time
    return oldest


def route_service_names(route: Route) -> List[str]:
    """Services a route sends traffic to: its destination, then its alternate backends

    Raises:
        MalformedResponseError: If the route has no destination service name
    """
    if not route.spec.to.name:
        raise MalformedResponseError(
            f"service name missing or invalid for route {route.metadata.name}"
        )
    names = [route.spec.to.name]
    for backend in route.spec.alternate_backends:
        if backend.kind == SERVICE_KIND and backend.name:
            names.append(backend.name)
    return names


def route_candidate(route: Route) -> RouteCandidate:
    """Extract the scoring attributes of a route

    Raises:
        MalformedResponseError: If the admitted ingress has no host
    """
    ingress = find_oldest_admitted_ingress(route.status.ingress)
    if ingress is not None:
        if ingress.host is None:
            raise MalformedResponseError(
                f"hostname missing from ingress in route {route.metadata.name}"
            )
        host = ingress.host
    else:
        host = route.spec.host or ""

    tls = route.spec.tls is not None and bool(route.spec.tls.termination)
    host_generated = route.metadata.annotations.get(HOST_GENERATED_ANNOTATION)
    return RouteCandidate(
        host=host,
        path=route.spec.path or "",
        tls=tls,
        admitted=ingress is not None,
        has_alternate_backends=bool(route.spec.alternate_backends),
        custom_host=host_generated != "true",
    )


def score_route(candidate: RouteCandidate) -> int:
    score = 0
    if candidate.admitted:
        score += SCORE_ADMITTED
    if candidate.has_alternate_backends:
        score += SCORE_ALTERNATE_BACKENDS
    if candidate.custom_host:
        score += SCORE_CUSTOM_HOST
    if candidate.tls:
        score += SCORE_TLS
    return score


def best_route(candidates: Iterable[RouteCandidate]) -> Optional[RouteCandidate]:
    """Highest scoring candidate, the first one wins ties"""
    best = None
    best_score = -1
    for candidate in candidates:
        score = score_route(candidate)
        if score > best_score:
            best = candidate
            best_score = score
    return best


def route_url(candidate: RouteCandidate) -> str:
    scheme = "https" if candidate.tls else "http"
    path = candidate.path
    if path and not path.startswith("/"):
        path = "/" + path
    return f"{scheme}://{candidate.host}{path}"


class RouteResolver:
    """Finds the best route to the current deployment of an application"""

    def __init__(self, kube_api, openshift_api):
        self.kube_api = kube_api
        self.openshift_api = openshift_api

    def get_routes_by_service(
        self, namespace: str, deployment: Deployment
    ) -> Dict[str, List[RouteCandidate]]:
        """Route candidates for each service selecting the deployment's pods

        Raises:
            MalformedResponseError: If the current controller has no pod template
        """
        template = deployment.current.spec.template if deployment.current else None
        if template is None:
            raise MalformedResponseError(
                f"no pod template for current deployment in namespace {namespace}"
            )

        services = self.kube_api.list_services(namespace)
        routes_by_service: Dict[str, List[RouteCandidate]] = {
            name: [] for name in matching_services(services.items, template.metadata.labels)
        }

        routes = self.openshift_api.get_routes(namespace)
        for route in routes.items:
            service_names = [
                name for name in route_service_names(route) if name in routes_by_service
            ]
            if not service_names:
                continue
            candidate = route_candidate(route)
            # A route naming one service twice is associated with it twice
            for name in service_names:
                routes_by_service[name].append(candidate)
        return routes_by_service

    def resolve_application_url(self, namespace: str, deployment: Deployment) -> Optional[str]:
        routes_by_service = self.get_routes_by_service(namespace, deployment)
        candidates = [c for routes in routes_by_service.values() for c in routes]
        best = best_route(candidates)
        if best is None:
            logger.debug(f"No route to deployment {deployment.dc_name} in {namespace}")
            return None
        return route_url(best)
