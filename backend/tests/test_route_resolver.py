"""Tests for choosing the application URL from routes"""

from datetime import timedelta

import pytest

from kubewit.core.errors import MalformedResponseError
from kubewit.models.resources import ReplicationController, Route
from kubewit.services.deployment_resolver import Deployment
from kubewit.services.route_resolver import (
    RouteCandidate,
    RouteResolver,
    best_route,
    matching_services,
    route_candidate,
    route_url,
    score_route,
)

from builders import DEFAULT_TIME, replication_controller, route, route_list, service

ROUTES_PATH = "/oapi/v1/namespaces/my-run/routes"
T1 = DEFAULT_TIME
T2 = DEFAULT_TIME + timedelta(minutes=5)


def make_route(**kwargs) -> Route:
    return Route.model_validate(route(kwargs.pop("name", "r"), kwargs.pop("to", "myapp"), **kwargs))


def make_deployment(template_labels=None) -> Deployment:
    current = ReplicationController.model_validate(
        replication_controller("myapp-1", "rc1", template_labels=template_labels)
    )
    return Deployment(dc_name="myapp", dc_uid="dc-uid", app_version="1.0.2", current=current)


@pytest.fixture
def resolver(fake_kube, fetcher):
    fake_kube.services["my-run"] = [
        service("myapp", selector={"deploymentconfig": "myapp"}),
        service("other", selector={"deploymentconfig": "other"}),
        service("headless"),
    ]
    return RouteResolver(fake_kube, fetcher)


class TestRouteCandidate:
    """Test attributes extracted from a route"""

    def test_oldest_admitted_ingress_host(self):
        document = route("r", "myapp", host="spec.example.com", admitted=[T2, T1])
        candidate = route_candidate(Route.model_validate(document))
        # The second ingress was admitted first
        assert candidate.host == "1.spec.example.com"
        assert candidate.admitted

    def test_unadmitted_uses_spec_host(self):
        candidate = route_candidate(make_route(host="spec.example.com"))
        assert candidate.host == "spec.example.com"
        assert not candidate.admitted

    def test_not_admitted_condition_ignored(self):
        document = route("r", "myapp", admitted=[T1])
        document["status"]["ingress"][0]["conditions"][0]["status"] = "False"
        assert not route_candidate(Route.model_validate(document)).admitted

    def test_admitted_without_transition_time(self):
        document = route("r", "myapp", admitted=[T1])
        del document["status"]["ingress"][0]["conditions"][0]["lastTransitionTime"]
        with pytest.raises(MalformedResponseError):
            route_candidate(Route.model_validate(document))

    def test_admitted_without_host(self):
        document = route("r", "myapp", admitted=[T1])
        del document["status"]["ingress"][0]["host"]
        with pytest.raises(MalformedResponseError):
            route_candidate(Route.model_validate(document))

    def test_flags(self):
        candidate = route_candidate(
            make_route(
                tls="edge",
                path="/app",
                host_generated=True,
                alternate_backends=[{"kind": "Service", "name": "canary"}],
            )
        )
        assert candidate.tls
        assert candidate.path == "/app"
        assert not candidate.custom_host
        assert candidate.has_alternate_backends


class TestScoring:
    """Test route ranking"""

    def test_scores(self):
        assert score_route(RouteCandidate(custom_host=False)) == 0
        assert score_route(RouteCandidate(admitted=True, custom_host=False)) == 11
        assert score_route(RouteCandidate(has_alternate_backends=True, custom_host=False)) == 5
        assert score_route(RouteCandidate()) == 3
        assert score_route(RouteCandidate(tls=True, custom_host=False)) == 1

    def test_admitted_beats_everything_else(self):
        """Test an admitted route outranks any combination of other attributes"""
        admitted = RouteCandidate(host="a", admitted=True, custom_host=False)
        other = RouteCandidate(host="b", has_alternate_backends=True, custom_host=True, tls=True)
        assert best_route([other, admitted]) is admitted

    def test_first_wins_ties(self):
        first = RouteCandidate(host="first")
        second = RouteCandidate(host="second")
        assert best_route([first, second]) is first

    def test_no_candidates(self):
        assert best_route([]) is None

    @pytest.mark.parametrize(
        "candidate,expected",
        [
            (RouteCandidate(host="app.example.com"), "http://app.example.com"),
            (RouteCandidate(host="app.example.com", tls=True), "https://app.example.com"),
            (RouteCandidate(host="app.example.com", path="/api"), "http://app.example.com/api"),
            (RouteCandidate(host="app.example.com", path="api"), "http://app.example.com/api"),
        ],
    )
    def test_route_url(self, candidate, expected):
        assert route_url(candidate) == expected


class TestRouteResolver:
    """Test route lookup against the fake cluster"""

    def test_matching_services(self, fake_kube, resolver):
        services = fake_kube.list_services("my-run").items
        labels = {"app": "myapp", "deploymentconfig": "myapp"}
        assert matching_services(services, labels) == ["myapp"]

    def test_resolve_url(self, resolver, openshift):
        openshift.resources[ROUTES_PATH] = route_list(
            route("plain", "myapp", host="plain.example.com", host_generated=True),
            route("secure", "myapp", host="secure.example.com", tls="edge", admitted=[T1]),
            route("elsewhere", "other", host="other.example.com", admitted=[T1], tls="edge"),
        )
        assert resolver.resolve_application_url("my-run", make_deployment()) == "https://secure.example.com"

    def test_alternate_backend_associates_route(self, resolver, openshift):
        openshift.resources[ROUTES_PATH] = route_list(
            route(
                "split",
                "other",
                host="split.example.com",
                alternate_backends=[{"kind": "Service", "name": "myapp"}],
            )
        )
        routes = resolver.get_routes_by_service("my-run", make_deployment())
        assert [c.host for c in routes["myapp"]] == ["split.example.com"]
        assert "other" not in routes

    def test_duplicate_association(self, resolver, openshift):
        openshift.resources[ROUTES_PATH] = route_list(
            route("dup", "myapp", alternate_backends=[{"kind": "Service", "name": "myapp"}])
        )
        routes = resolver.get_routes_by_service("my-run", make_deployment())
        assert len(routes["myapp"]) == 2

    def test_no_routes(self, resolver, openshift):
        openshift.resources[ROUTES_PATH] = route_list()
        assert resolver.resolve_application_url("my-run", make_deployment()) is None

    def test_no_matching_service(self, resolver, openshift):
        openshift.resources[ROUTES_PATH] = route_list(route("r", "myapp"))
        deployment = make_deployment(template_labels={"deploymentconfig": "nothing"})
        assert resolver.resolve_application_url("my-run", deployment) is None

    def test_route_without_destination(self, resolver, openshift):
        document = route("r", "myapp")
        del document["spec"]["to"]["name"]
        openshift.resources[ROUTES_PATH] = route_list(document)
        with pytest.raises(MalformedResponseError):
            resolver.get_routes_by_service("my-run", make_deployment())

    def test_controller_without_template(self, resolver):
        deployment = make_deployment()
        deployment.current.spec.template = None
        with pytest.raises(MalformedResponseError):
            resolver.get_routes_by_service("my-run", deployment)
