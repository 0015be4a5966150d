"""Locate the current deployment of an application in an environment

The DeploymentConfig of an application is found through the builds in the
user namespace. The current deployment is the newest ReplicationController
owned by that DeploymentConfig.
"""

import logging
from typing import Iterable, List, Optional, TypeVar

import yaml
from pydantic import BaseModel

from kubewit.core.errors import MalformedResponseError, SpaceMismatchError
from kubewit.models.resources import (
    Build,
    DeploymentConfig,
    ObjectMeta,
    Pod,
    ReplicationController,
)

logger = logging.getLogger(__name__)

SPACE_LABEL = "space"
VERSION_LABEL = "version"
BUILD_CONFIG_LABEL = "openshift.io/build-config.name"
ENV_SERVICES_ANNOTATION_PREFIX = "environment.services.fabric8.io"
ENV_SERVICES_DEPLOYMENT_VERSIONS = "deploymentVersions"
BUILD_PHASE_COMPLETE = "Complete"

ResourceT = TypeVar("ResourceT", ReplicationController, Pod)


class Deployment(BaseModel):
    """A DeploymentConfig and, once rolled out, its current ReplicationController"""

    dc_name: str
    dc_uid: str
    app_version: str
    current: Optional[ReplicationController] = None


def is_owned_by(meta: ObjectMeta, uid: str) -> bool:
    """True if the object's controlling owner has the given UID"""
    return any(ref.uid == uid and ref.controller for ref in meta.owner_references)


def filter_owned(items: Iterable[ResourceT], uid: str) -> List[ResourceT]:
    return [item for item in items if is_owned_by(item.metadata, uid)]


def select_current_controller(
    rcs: List[ReplicationController],
) -> Optional[ReplicationController]:
    """Pick the ReplicationController with the latest creation timestamp

    On equal timestamps the one enumerated last wins.
    """
    current = None
    for rc in rcs:
        created = rc.metadata.creation_timestamp
        if current is None:
            current = rc
            continue
        current_created = current.metadata.creation_timestamp
        if created is not None and (current_created is None or created >= current_created):
            current = rc
    return current


def pods_for_controller(pods: Iterable[Pod], rc_uid: str) -> List[Pod]:
    return filter_owned(pods, rc_uid)


def latest_completed_build(builds: Iterable[Build]) -> Optional[Build]:
    latest = None
    for build in builds:
        if build.status.phase != BUILD_PHASE_COMPLETE or build.status.completion_timestamp is None:
            continue
        if latest is None or build.status.completion_timestamp > latest.status.completion_timestamp:
            latest = build
    return latest


def name_from_env_services(yaml_text: str) -> Optional[str]:
    """Read the DeploymentConfig name from an environment services annotation

    The annotation is a YAML document whose ``deploymentVersions`` mapping
    is keyed by DeploymentConfig name. Only the first entry is used.

    Returns:
        The DeploymentConfig name, or None if the document names none

    Raises:
        MalformedResponseError: If the annotation is not a YAML mapping
    """
    try:
        document = yaml.safe_load(yaml_text)
    except yaml.YAMLError as e:
        raise MalformedResponseError(
            f"failed to parse {ENV_SERVICES_ANNOTATION_PREFIX} YAML: {e}"
        ) from e
    if document is None:
        return None
    if not isinstance(document, dict):
        raise MalformedResponseError(f"{ENV_SERVICES_ANNOTATION_PREFIX} is not a YAML mapping")

    versions = document.get(ENV_SERVICES_DEPLOYMENT_VERSIONS)
    if not isinstance(versions, dict):
        return None
    for name in versions:
        if not isinstance(name, str):
            raise MalformedResponseError(f"{ENV_SERVICES_DEPLOYMENT_VERSIONS} does not contain a string")
        return name
    return None


def parse_deployment_config(dc: DeploymentConfig, dc_name: str, space: str) -> Deployment:
    """Check a DeploymentConfig belongs to the space and read its UID and version

    Raises:
        SpaceMismatchError: If the DeploymentConfig belongs to another space
        MalformedResponseError: If the UID, space label or version label is missing
    """
    labels = dc.metadata.labels
    space_label = labels.get(SPACE_LABEL)
    if not space_label:
        logger.error(f"Space label missing from deployment config {dc_name}")
        raise MalformedResponseError(f"space label missing from deployment config {dc_name}")
    if space_label != space:
        raise SpaceMismatchError(dc_name, space_label, space)

    if not dc.metadata.uid:
        raise MalformedResponseError(f"malformed metadata in deployment config {dc_name}")
    version = labels.get(VERSION_LABEL)
    if not version:
        raise MalformedResponseError(f"version missing from deployment config {dc_name}")

    return Deployment(dc_name=dc_name, dc_uid=dc.metadata.uid, app_version=version)


class DeploymentResolver:
    """Resolves the current deployment of an application in a namespace"""

    def __init__(self, kube_api, openshift_api, user_namespace: str):
        """Initialize the resolver

        Args:
            kube_api: Core API access, see KubeRESTAPI
            openshift_api: OpenShift API access, see ResourceFetcher
            user_namespace: Namespace holding the builds
        """
        self.kube_api = kube_api
        self.openshift_api = openshift_api
        self.user_namespace = user_namespace

    def get_deployment_config_name(self, namespace: str, app_name: str, space: str) -> str:
        """Find the DeploymentConfig name of an application

        The name may differ from the application name. The latest completed
        build records it per environment; without one the application name
        is used.
        """
        selector = f"{BUILD_CONFIG_LABEL}={app_name},{SPACE_LABEL}={space}"
        builds = self.openshift_api.get_builds(self.user_namespace, selector)

        build = latest_completed_build(builds.items)
        if build is None:
            return app_name

        env_services = build.metadata.annotations.get(f"{ENV_SERVICES_ANNOTATION_PREFIX}/{namespace}")
        if env_services is None:
            return app_name
        try:
            dc_name = name_from_env_services(env_services)
        except MalformedResponseError as e:
            logger.warning(
                f"Failed to determine deployment config name for {app_name} "
                f"in space {space}, namespace {namespace}: {e}"
            )
            return app_name
        return dc_name or app_name

    def get_deployment_config(self, namespace: str, dc_name: str, space: str) -> Optional[Deployment]:
        dc = self.openshift_api.get_deployment_config(namespace, dc_name)
        if dc is None:
            return None
        return parse_deployment_config(dc, dc_name, space)

    def resolve_deployment(self, space: str, app_name: str, namespace: str) -> Optional[Deployment]:
        """Find the current deployment of an application

        Returns:
            The deployment, None if there is no DeploymentConfig. The
            deployment has no current controller if it was never rolled out.
        """
        dc_name = self.get_deployment_config_name(namespace, app_name, space)
        deployment = self.get_deployment_config(namespace, dc_name, space)
        if deployment is None:
            return None

        rcs = self.kube_api.list_replication_controllers(namespace)
        owned = filter_owned(rcs.items, deployment.dc_uid)
        deployment.current = select_current_controller(owned)
        return deployment

    def get_pods(self, namespace: str, rc_uid: str) -> List[Pod]:
        """Pods created by a ReplicationController"""
        pods = self.kube_api.list_pods(namespace)
        return pods_for_controller(pods.items, rc_uid)
