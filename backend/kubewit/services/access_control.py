"""Authorization checks based on the cluster's self subject rules review

Each check answers whether the token holder may call one KubeClient
operation. A denial is reported as False, never raised.
"""

import logging
import threading
from typing import Callable, Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Set

from pydantic import ValidationError

from kubewit.models.resources import PolicyRule, SelfSubjectRulesReview

logger = logging.getLogger(__name__)

VERB_GET = "get"
VERB_LIST = "list"
VERB_UPDATE = "update"

# Pseudo-environment for the namespace holding builds and build configs
ENVIRONMENT_TYPE_USER = "user"


class QualifiedResource(NamedTuple):
    """Resource type named by API group and resource, "" is the legacy group"""

    group: str
    resource: str


class RequestedAccess(NamedTuple):
    """Verbs on a resource type required by an operation"""

    resource: QualifiedResource
    verbs: FrozenSet[str]


def _access(resource: str, *verbs: str) -> RequestedAccess:
    return RequestedAccess(QualifiedResource("", resource), frozenset(verbs))


GET_DEPLOYMENT_RULES = [
    _access("deploymentconfigs", VERB_GET),
    _access("replicationcontrollers", VERB_LIST),
    _access("pods", VERB_LIST),
    _access("services", VERB_LIST),
    _access("routes", VERB_LIST),
]

SCALE_DEPLOYMENT_RULES = [
    _access("deploymentconfigs", VERB_GET),
    _access("deploymentconfigs/scale", VERB_GET, VERB_UPDATE),
]

GET_DEPLOYMENT_STATS_RULES = [
    _access("deploymentconfigs", VERB_GET),
    _access("replicationcontrollers", VERB_LIST),
    _access("pods", VERB_LIST),
]

GET_BUILDS_RULES = [_access("builds", VERB_LIST)]

GET_BUILD_CONFIGS_AND_BUILDS_RULES = [
    _access("buildconfigs", VERB_LIST),
    _access("builds", VERB_LIST),
]

GET_ENVIRONMENT_RULES = [_access("resourcequotas", VERB_LIST)]


class AccessRules:
    """Verbs permitted per resource type in one namespace"""

    def __init__(self, rules: Optional[Dict[QualifiedResource, Set[str]]] = None):
        self.rules: Dict[QualifiedResource, Set[str]] = rules or {}

    def add_rule(self, rule: PolicyRule) -> None:
        """Record the verbs granted by a rule

        Rules limited to resource names or non-resource URLs are ignored,
        so they never grant access to a whole resource type.
        """
        if rule.resource_names or rule.non_resource_urls:
            return
        # An empty group list covers both the kubernetes and origin groups
        groups = rule.api_groups or [""]
        for resource in rule.resources:
            for group in groups:
                self.rules.setdefault(QualifiedResource(group, resource), set()).update(rule.verbs)

    def is_authorized(self, requirements: Iterable[RequestedAccess]) -> bool:
        """True if every requested verb is permitted on every requested resource"""
        for requirement in requirements:
            verbs = self.rules.get(requirement.resource)
            if verbs is None or not verbs.issuperset(requirement.verbs):
                return False
        return True

    @classmethod
    def from_review(cls, review: SelfSubjectRulesReview, namespace: str) -> "AccessRules":
        """Build the rule set from a rules review, skipping malformed rules"""
        access_rules = cls()
        for raw_rule in review.status.rules:
            if not isinstance(raw_rule, dict):
                logger.warning(f"Skipping rule in {namespace} that is not an object: {raw_rule!r}")
                continue
            try:
                rule = PolicyRule.model_validate(raw_rule)
            except ValidationError as e:
                logger.warning(f"Skipping malformed rule in {namespace}: {raw_rule!r} ({e})")
                continue
            access_rules.add_rule(rule)
        return access_rules


class AccessControl:
    """Answers whether the current user may perform KubeClient operations

    Rules are looked up once per namespace and cached for the lifetime of
    the instance.
    """

    def __init__(
        self,
        openshift_api,
        namespace_resolver: Callable[[str], str],
        environment_names: Callable[[], List[str]],
    ):
        """Initialize the evaluator

        Args:
            openshift_api: Provides create_self_subject_rules_review(namespace)
            namespace_resolver: Maps an environment name to its namespace
            environment_names: Returns the names of all known environments
        """
        self.openshift_api = openshift_api
        self.namespace_resolver = namespace_resolver
        self.environment_names = environment_names
        self._rules_cache: Dict[str, AccessRules] = {}
        self._lock = threading.Lock()

    @staticmethod
    def can_deploy(env_name: str) -> bool:
        """Whether applications can be deployed to an environment"""
        return env_name != ENVIRONMENT_TYPE_USER

    def get_rules(self, namespace: str) -> AccessRules:
        with self._lock:
            rules = self._rules_cache.get(namespace)
        if rules is not None:
            return rules

        review = self.openshift_api.create_self_subject_rules_review(namespace)
        rules = AccessRules.from_review(review, namespace)

        with self._lock:
            # Keep whichever lookup finished first
            return self._rules_cache.setdefault(namespace, rules)

    def can_perform(self, env_name: str, required_actions: List[RequestedAccess]) -> bool:
        namespace = self.namespace_resolver(env_name)
        return self.get_rules(namespace).is_authorized(required_actions)

    def _can_perform_with_builds(self, env_name: str, required_actions: List[RequestedAccess]) -> bool:
        # Builds live in the user namespace
        if not self.can_perform(ENVIRONMENT_TYPE_USER, GET_BUILDS_RULES):
            return False
        return self.can_perform(env_name, required_actions)

    def _can_perform_in_deploy_environments(self, required_actions: List[RequestedAccess]) -> bool:
        for env_name in self.environment_names():
            if self.can_deploy(env_name) and not self.can_perform(env_name, required_actions):
                return False
        return True

    def can_get_space(self) -> bool:
        if not self.can_perform(ENVIRONMENT_TYPE_USER, GET_BUILD_CONFIGS_AND_BUILDS_RULES):
            return False
        return self._can_perform_in_deploy_environments(GET_DEPLOYMENT_RULES)

    def can_get_application(self) -> bool:
        if not self.can_perform(ENVIRONMENT_TYPE_USER, GET_BUILDS_RULES):
            return False
        return self._can_perform_in_deploy_environments(GET_DEPLOYMENT_RULES)

    def can_get_deployment(self, env_name: str) -> bool:
        return self._can_perform_with_builds(env_name, GET_DEPLOYMENT_RULES)

    def can_scale_deployment(self, env_name: str) -> bool:
        return self._can_perform_with_builds(env_name, SCALE_DEPLOYMENT_RULES)

    def can_get_deployment_stats(self, env_name: str) -> bool:
        return self._can_perform_with_builds(env_name, GET_DEPLOYMENT_STATS_RULES)

    def can_get_deployment_stat_series(self, env_name: str) -> bool:
        return self._can_perform_with_builds(env_name, GET_DEPLOYMENT_STATS_RULES)

    def can_get_environments(self) -> bool:
        return self._can_perform_in_deploy_environments(GET_ENVIRONMENT_RULES)

    def can_get_environment(self, env_name: str) -> bool:
        return self.can_perform(env_name, GET_ENVIRONMENT_RULES)
