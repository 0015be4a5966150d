"""Tests for settings, logging setup and quantity helpers"""

import logging

import pytest

from kubewit import configure_logging, create_client
from kubewit.core.config import KubeClientConfig, Settings, settings
from kubewit.core.errors import ConfigurationError, MalformedResponseError
from kubewit.services.url_provider import ClusterURLProvider
from kubewit.utils.quantity import quantity_to_float, resource_to_float

KUBE_ENV_VARS = [
    "KUBE_API_URL",
    "KUBE_API_TOKEN",
    "KUBE_CLUSTER_URL",
    "KUBE_CLUSTER_TOKEN",
    "KUBE_USER_NAMESPACE",
    "KUBE_REQUEST_TIMEOUT",
    "KUBE_VERIFY_SSL",
    "KUBE_ENV_FANOUT_WORKERS",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in KUBE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    """Test environment driven settings"""

    def test_defaults(self, clean_env):
        settings = Settings(_env_file=None)
        assert settings.KUBE_API_URL == ""
        assert settings.KUBE_CLUSTER_URL is None
        assert settings.KUBE_REQUEST_TIMEOUT == 30.0
        assert settings.KUBE_VERIFY_SSL is True
        assert settings.KUBE_ENV_FANOUT_WORKERS == 4
        assert settings.LOG_LEVEL == "INFO"

    def test_cluster_falls_back_to_api(self, clean_env):
        clean_env.setenv("KUBE_API_URL", "https://api.example.com")
        clean_env.setenv("KUBE_API_TOKEN", "tok")
        settings = Settings(_env_file=None)
        assert settings.KUBE_CLUSTER_URL == "https://api.example.com"
        assert settings.KUBE_CLUSTER_TOKEN == "tok"

    def test_explicit_cluster(self, clean_env):
        clean_env.setenv("KUBE_API_URL", "https://proxy.example.com")
        clean_env.setenv("KUBE_CLUSTER_URL", "https://api.cluster.example.com")
        clean_env.setenv("KUBE_VERIFY_SSL", "false")
        settings = Settings(_env_file=None)
        assert settings.KUBE_CLUSTER_URL == "https://api.cluster.example.com"
        assert settings.KUBE_VERIFY_SSL is False

    def test_client_config_from_settings(self, clean_env):
        clean_env.setenv("KUBE_API_URL", "https://api.example.com")
        clean_env.setenv("KUBE_API_TOKEN", "tok")
        clean_env.setenv("KUBE_USER_NAMESPACE", "my")
        clean_env.setenv("KUBE_REQUEST_TIMEOUT", "5")

        config = KubeClientConfig.from_settings(Settings(_env_file=None))

        assert isinstance(config.url_provider, ClusterURLProvider)
        assert config.url_provider.get_console_url("my-run") == (
            "https://console.example.com/console/project/my-run"
        )
        assert config.user_namespace == "my"
        assert config.timeout == 5.0

    def test_client_config_without_api_url(self, clean_env):
        with pytest.raises(ConfigurationError):
            KubeClientConfig.from_settings(Settings(_env_file=None))

    def test_create_client_with_config(self, client_config, fake_kube, monkeypatch):
        """Test create_client builds and owns its cluster API clients"""
        monkeypatch.setattr("kubewit.services.kube_client.KubeRESTAPI", lambda *args, **kwargs: fake_kube)

        client = create_client(client_config)
        assert client.env_map == {"run": "my-run", "stage": "my-stage"}

        client.close()
        assert fake_kube.closed
        assert client.openshift_api.client.is_closed


class TestLogging:
    """Test the logging setup"""

    def test_configure_logging_quiets_httpx(self):
        configure_logging("debug")
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_level_defaults_to_setting(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        monkeypatch.setattr(settings, "LOG_LEVEL", "debug")

        configure_logging()
        configure_logging("warning")

        assert [call["level"] for call in calls] == ["DEBUG", "WARNING"]


class TestQuantity:
    """Test resource quantity conversion"""

    @pytest.mark.parametrize(
        "quantity,expected",
        [
            ("500m", 0.5),
            ("2", 2.0),
            ("1Gi", 1024.0 ** 3),
            ("256Mi", 256 * 1024.0 ** 2),
            ("1k", 1000.0),
            (None, 0.0),
            ("", 0.0),
        ],
    )
    def test_quantity_to_float(self, quantity, expected):
        assert quantity_to_float(quantity) == pytest.approx(expected)

    def test_invalid_quantity(self):
        with pytest.raises(MalformedResponseError):
            quantity_to_float("lots")

    def test_resource_lookup(self):
        assert resource_to_float({"limits.cpu": "700m"}, "limits.cpu") == pytest.approx(0.7)
        assert resource_to_float({}, "limits.cpu") == 0.0
