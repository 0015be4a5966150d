"""Models for cluster resources and deployment views"""

from kubewit.models.deployments import (
    EnvStats,
    PodsQuota,
    SimpleApp,
    SimpleDeployment,
    SimpleDeploymentStatSeries,
    SimpleDeploymentStats,
    SimpleEnvironment,
    SimpleSpace,
    TimedNumberTuple,
)

__all__ = [
    "EnvStats",
    "PodsQuota",
    "SimpleApp",
    "SimpleDeployment",
    "SimpleDeploymentStatSeries",
    "SimpleDeploymentStats",
    "SimpleEnvironment",
    "SimpleSpace",
    "TimedNumberTuple",
]
