"""Pydantic models for the cluster resources read by kubewit

Only the fields the resolvers use are declared; everything else in a
response is ignored. Decoding goes through ``decode`` so that a response
with an unexpected shape surfaces as ``MalformedResponseError``.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from kubewit.core.errors import MalformedResponseError

ModelT = TypeVar("ModelT", bound=BaseModel)


class ResourceModel(BaseModel):
    """Base for cluster resources, accepts camelCase keys from the API"""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        """Treat explicit nulls like absent keys, so defaults apply"""
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


def decode(model: Type[ModelT], data: Any, what: str) -> ModelT:
    """Validate a decoded document against a resource model

    Args:
        model: Resource model class
        data: Decoded JSON/YAML document
        what: Description used in the error message

    Returns:
        The validated model

    Raises:
        MalformedResponseError: If the document does not fit the model
    """
    if data is None:
        raise MalformedResponseError(f"empty response for {what}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"malformed {what}: {e}") from e


# Metadata


class OwnerReference(ResourceModel):
    uid: str
    kind: Optional[str] = None
    name: Optional[str] = None
    controller: Optional[bool] = None


class ObjectMeta(ResourceModel):
    name: Optional[str] = None
    namespace: Optional[str] = None
    uid: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    owner_references: List[OwnerReference] = Field(default_factory=list)
    creation_timestamp: Optional[datetime] = None
    deletion_timestamp: Optional[datetime] = None


# Core v1 resources


class ConfigMap(ResourceModel):
    metadata: ObjectMeta
    data: Dict[str, str] = Field(default_factory=dict)


class PodTemplateSpec(ResourceModel):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)


class ReplicationControllerSpec(ResourceModel):
    replicas: Optional[int] = None
    selector: Dict[str, str] = Field(default_factory=dict)
    template: Optional[PodTemplateSpec] = None


class ReplicationControllerStatus(ResourceModel):
    replicas: int = 0


class ReplicationController(ResourceModel):
    metadata: ObjectMeta
    spec: ReplicationControllerSpec = Field(default_factory=ReplicationControllerSpec)
    status: ReplicationControllerStatus = Field(
        default_factory=ReplicationControllerStatus
    )


class ReplicationControllerList(ResourceModel):
    items: List[ReplicationController] = Field(default_factory=list)


class ResourceRequirements(ResourceModel):
    limits: Dict[str, str] = Field(default_factory=dict)
    requests: Dict[str, str] = Field(default_factory=dict)


class Container(ResourceModel):
    name: str
    image: Optional[str] = None
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)


class PodSpec(ResourceModel):
    containers: List[Container] = Field(default_factory=list)


class ContainerStateWaiting(ResourceModel):
    reason: Optional[str] = None


class ContainerStateRunning(ResourceModel):
    started_at: Optional[datetime] = None


class ContainerStateTerminated(ResourceModel):
    exit_code: int = 0
    reason: Optional[str] = None


class ContainerState(ResourceModel):
    waiting: Optional[ContainerStateWaiting] = None
    running: Optional[ContainerStateRunning] = None
    terminated: Optional[ContainerStateTerminated] = None


class ContainerStatus(ResourceModel):
    name: Optional[str] = None
    ready: bool = False
    state: ContainerState = Field(default_factory=ContainerState)


class PodStatus(ResourceModel):
    phase: Optional[str] = None
    container_statuses: List[ContainerStatus] = Field(default_factory=list)


class Pod(ResourceModel):
    metadata: ObjectMeta
    spec: PodSpec = Field(default_factory=PodSpec)
    status: PodStatus = Field(default_factory=PodStatus)


class PodList(ResourceModel):
    items: List[Pod] = Field(default_factory=list)


class ServiceSpec(ResourceModel):
    selector: Dict[str, str] = Field(default_factory=dict)


class Service(ResourceModel):
    metadata: ObjectMeta
    spec: ServiceSpec = Field(default_factory=ServiceSpec)


class ServiceList(ResourceModel):
    items: List[Service] = Field(default_factory=list)


class ResourceQuotaStatus(ResourceModel):
    hard: Dict[str, str] = Field(default_factory=dict)
    used: Dict[str, str] = Field(default_factory=dict)


class ResourceQuota(ResourceModel):
    metadata: ObjectMeta
    status: ResourceQuotaStatus = Field(default_factory=ResourceQuotaStatus)


# OpenShift resources


class BuildConfig(ResourceModel):
    metadata: ObjectMeta


class BuildConfigList(ResourceModel):
    kind: Literal["BuildConfigList"]
    items: List[BuildConfig] = Field(default_factory=list)


class BuildStatus(ResourceModel):
    phase: Optional[str] = None
    completion_timestamp: Optional[datetime] = None


class Build(ResourceModel):
    metadata: ObjectMeta
    status: BuildStatus


class BuildList(ResourceModel):
    kind: Literal["BuildList"]
    items: List[Build] = Field(default_factory=list)


class DeploymentConfig(ResourceModel):
    kind: Literal["DeploymentConfig"]
    metadata: ObjectMeta


class ScaleSpec(ResourceModel):
    replicas: Optional[StrictInt] = None


class Scale(ResourceModel):
    spec: ScaleSpec


class RouteTargetReference(ResourceModel):
    kind: Optional[str] = None
    name: Optional[str] = None


class TLSConfig(ResourceModel):
    termination: Optional[str] = None


class RouteSpec(ResourceModel):
    host: Optional[str] = None
    path: Optional[str] = None
    to: RouteTargetReference
    alternate_backends: List[RouteTargetReference] = Field(default_factory=list)
    tls: Optional[TLSConfig] = None


class RouteIngressCondition(ResourceModel):
    type: Optional[str] = None
    status: Optional[str] = None
    last_transition_time: Optional[datetime] = None


class RouteIngress(ResourceModel):
    host: Optional[str] = None
    conditions: List[RouteIngressCondition] = Field(default_factory=list)


class RouteStatus(ResourceModel):
    ingress: List[RouteIngress] = Field(default_factory=list)


class Route(ResourceModel):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: RouteSpec
    status: RouteStatus = Field(default_factory=RouteStatus)


class RouteList(ResourceModel):
    kind: Literal["RouteList"]
    items: List[Route] = Field(default_factory=list)


class PolicyRule(ResourceModel):
    """One rule of a rules review, decoded on its own so bad rules can be skipped"""

    verbs: List[StrictStr]
    api_groups: List[StrictStr] = Field(default_factory=list)
    resources: List[StrictStr] = Field(default_factory=list)
    resource_names: List[StrictStr] = Field(default_factory=list)
    non_resource_urls: List[StrictStr] = Field(
        default_factory=list, alias="nonResourceURLs"
    )


class SelfSubjectRulesReviewStatus(ResourceModel):
    rules: List[Any]


class SelfSubjectRulesReview(ResourceModel):
    status: SelfSubjectRulesReviewStatus
