"""
Pydantic schemas for the space, application, deployment and environment views
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class TimedNumberTuple(BaseModel):
    """A metrics sample, time is in Unix milliseconds"""

    time: float
    value: float


class PodsQuota(BaseModel):
    """Sum of container limits over the pods of a deployment"""

    cpucores: float
    memory: float


class EnvStatCores(BaseModel):
    quota: float
    used: float


class EnvStatMemory(BaseModel):
    quota: float
    used: float
    units: str = "bytes"


class EnvStats(BaseModel):
    """Resource quota snapshot of an environment"""

    cpucores: EnvStatCores
    memory: EnvStatMemory


class SimpleEnvironmentAttributes(BaseModel):
    name: str
    quota: EnvStats


class SimpleEnvironment(BaseModel):
    type: Literal["environment"] = "environment"
    attributes: SimpleEnvironmentAttributes


class DeploymentLinks(BaseModel):
    console: Optional[str] = None
    logs: Optional[str] = None
    application: Optional[str] = None


class SimpleDeploymentAttributes(BaseModel):
    name: str
    version: str
    # [status, count] pairs, e.g. [["Running", "2"]]
    pods: List[List[str]] = Field(default_factory=list)
    pod_total: int = 0
    pods_quota: PodsQuota


class SimpleDeployment(BaseModel):
    """Current deployment of an application in one environment"""

    type: Literal["deployment"] = "deployment"
    id: str
    attributes: SimpleDeploymentAttributes
    links: Optional[DeploymentLinks] = None


class SimpleAppAttributes(BaseModel):
    name: str
    deployments: List[SimpleDeployment] = Field(default_factory=list)


class SimpleApp(BaseModel):
    type: Literal["application"] = "application"
    id: str
    attributes: SimpleAppAttributes


class SimpleSpaceAttributes(BaseModel):
    name: str
    applications: List[SimpleApp] = Field(default_factory=list)


class SimpleSpace(BaseModel):
    type: Literal["space"] = "space"
    attributes: SimpleSpaceAttributes


class SimpleDeploymentStatsAttributes(BaseModel):
    cores: Optional[TimedNumberTuple] = None
    memory: Optional[TimedNumberTuple] = None
    net_tx: Optional[TimedNumberTuple] = None
    net_rx: Optional[TimedNumberTuple] = None


class SimpleDeploymentStats(BaseModel):
    """Usage of a deployment over one minute after a start time"""

    type: Literal["deploymentstats"] = "deploymentstats"
    attributes: SimpleDeploymentStatsAttributes


class SimpleDeploymentStatSeries(BaseModel):
    """Usage of a deployment as time series bounded by start and end"""

    cores: List[TimedNumberTuple] = Field(default_factory=list)
    memory: List[TimedNumberTuple] = Field(default_factory=list)
    net_tx: List[TimedNumberTuple] = Field(default_factory=list)
    net_rx: List[TimedNumberTuple] = Field(default_factory=list)
    start: Optional[float] = None
    end: Optional[float] = None
