"""Tests for provisioner configuration loading."""

import pytest

from core.errors.exceptions import ConfigurationError
from core.resilience.circuit_breaker import CircuitState
from repo_provisioner.config import ProvisionerConfig
from repo_provisioner.github.api_client import DEFAULT_API_URL

ENV_VARS = [
    "GITHUB_API_URL",
    "GITHUB_TIMEOUT_SECONDS",
    "GITHUB_MAX_CONCURRENT",
    "RETRY_BASE_DELAY_SECONDS",
    "RETRY_MAX_DELAY_SECONDS",
    "RETRY_MAX_RETRIES",
    "RETRY_JITTER",
    "RETRY_DEADLINE_SECONDS",
    "CIRCUIT_FAILURE_THRESHOLD",
    "CIRCUIT_RESET_TIMEOUT_SECONDS",
    "LOG_DIR",
    "LOG_LEVEL",
    "LOG_JSON",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        """
provisioner:
  api_url: https://github.example.com/api/v3
  timeout_seconds: 10
  retry:
    base_delay_seconds: 2
    max_delay_seconds: 20
    max_retries: 4
    jitter: false
  circuit_breaker:
    failure_threshold: 3
    reset_timeout_seconds: 30
  logging:
    level: debug
    json: false
"""
    )
    return path


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = ProvisionerConfig.load_config(tmp_path / "missing.yaml")

        assert config.api_url == DEFAULT_API_URL
        assert config.timeout_seconds == 30.0
        assert config.backoff.base_delay == 3.0
        assert config.backoff.max_delay == 30.0
        assert config.backoff.max_retries == 5
        assert config.backoff.jitter is True
        assert config.backoff.deadline_seconds is None
        assert config.circuit.failure_threshold == 5
        assert config.circuit.reset_timeout_seconds == 60.0
        assert config.log_dir is None
        assert config.json_logs is True

    def test_yaml_values(self, config_file):
        config = ProvisionerConfig.load_config(config_file)

        assert config.api_url == "https://github.example.com/api/v3"
        assert config.timeout_seconds == 10.0
        assert config.backoff.base_delay == 2.0
        assert config.backoff.max_retries == 4
        assert config.backoff.jitter is False
        assert config.circuit.failure_threshold == 3
        assert config.circuit.reset_timeout_seconds == 30.0
        assert config.log_level == "DEBUG"
        assert config.json_logs is False

    def test_env_overrides_yaml(self, config_file, monkeypatch, tmp_path):
        monkeypatch.setenv("RETRY_MAX_RETRIES", "7")
        monkeypatch.setenv("RETRY_JITTER", "true")
        monkeypatch.setenv("RETRY_DEADLINE_SECONDS", "120")
        monkeypatch.setenv("CIRCUIT_FAILURE_THRESHOLD", "9")
        monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))

        config = ProvisionerConfig.load_config(config_file)

        assert config.backoff.max_retries == 7
        assert config.backoff.jitter is True
        assert config.backoff.deadline_seconds == 120.0
        assert config.backoff.base_delay == 2.0
        assert config.circuit.failure_threshold == 9
        assert config.log_dir == tmp_path / "logs"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("RETRY_MAX_RETRIES", "many"),
            ("RETRY_MAX_RETRIES", "-1"),
            ("RETRY_BASE_DELAY_SECONDS", "0"),
            ("RETRY_JITTER", "maybe"),
            ("CIRCUIT_FAILURE_THRESHOLD", "0"),
            ("GITHUB_TIMEOUT_SECONDS", "-5"),
            ("LOG_LEVEL", "LOUD"),
        ],
    )
    def test_invalid_values_raise_configuration_error(
        self, name, value, monkeypatch, tmp_path
    ):
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError):
            ProvisionerConfig.load_config(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("provisioner: [unclosed")

        with pytest.raises(ConfigurationError):
            ProvisionerConfig.load_config(path)


class TestBuildExecutor:
    def test_executor_uses_configured_policies(self, config_file):
        config = ProvisionerConfig.load_config(config_file)

        executor = config.build_executor()

        assert executor.backoff is config.backoff
        assert executor.breaker.config is config.circuit
        assert executor.breaker.state == CircuitState.CLOSED
        assert executor.name == "protect_branch"
