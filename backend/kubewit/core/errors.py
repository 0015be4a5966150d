"""Exceptions raised by the cluster integration layer

Authorization denials are reported as ``False`` by the access control
evaluator and never raised. Resources that are allowed to be absent are
returned as ``None``.
"""

from typing import Optional


class KubeClientError(Exception):
    """Base class for all errors raised by kubewit"""


class NotFoundError(KubeClientError):
    """A resource that must exist is absent from the cluster"""


class MalformedResponseError(KubeClientError):
    """The cluster returned a document with an unexpected shape"""


class SpaceMismatchError(KubeClientError):
    """A DeploymentConfig belongs to a different space than the one requested"""

    def __init__(self, dc_name: str, actual_space: str, expected_space: str):
        self.dc_name = dc_name
        self.actual_space = actual_space
        self.expected_space = expected_space
        super().__init__(
            f"deployment config {dc_name} is part of space {actual_space}, "
            f"expected space {expected_space}"
        )


class ConfigurationError(KubeClientError):
    """Unknown environment, bad cluster URL or bad environments config map"""


class TransportError(KubeClientError):
    """Non-2xx HTTP status or network failure"""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        if status_code is not None:
            message = f"{message}: {url} returned status code {status_code}"
        else:
            message = f"{message}: {url}"
        super().__init__(message)
