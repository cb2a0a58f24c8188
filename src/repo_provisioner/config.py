"""
Provisioner configuration.

Load priority:
    1. Environment variables
    2. config.yaml (under 'provisioner:' key)
    3. Dataclass defaults

Example config.yaml:

    provisioner:
      api_url: https://api.github.com
      timeout_seconds: 30
      retry:
        base_delay_seconds: 3
        max_delay_seconds: 30
        max_retries: 5
        jitter: true
      circuit_breaker:
        failure_threshold: 5
        reset_timeout_seconds: 60
      logging:
        level: INFO
        json: true

logging.json (LOG_JSON) selects the file log format only; it has no effect
unless logging.dir (LOG_DIR) is set. Console output is always human-readable.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

from core.errors.exceptions import ConfigurationError
from core.resilience.backoff import BackoffConfig
from core.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from core.resilience.executor import ResilientExecutor
from repo_provisioner.github.api_client import DEFAULT_API_URL

# Default config path: config.yaml in src/ directory
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _convert(name: str, value: Any, converter: Callable[[Any], Any]) -> Any:
    try:
        return converter(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}", cause=e) from e


def _setting(
    env_var: str,
    section: Dict[str, Any],
    key: str,
    default: Any,
    converter: Callable[[Any], Any] = str,
) -> Any:
    """Environment variable, then yaml section value, then default."""
    raw = os.getenv(env_var)
    if raw is not None and raw != "":
        return _convert(env_var, raw, converter)
    if key in section and section[key] is not None:
        return _convert(key, section[key], converter)
    return default


@dataclass
class ProvisionerConfig:
    """
    Runtime configuration for the provisioner and deleter.

    The credential is deliberately not part of this object; it is passed per
    invocation so config dumps can never leak it.
    """

    api_url: str = DEFAULT_API_URL
    timeout_seconds: float = 30.0
    max_concurrent: int = 10
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    circuit: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    log_dir: Optional[Path] = None
    log_level: str = "INFO"
    # File log format; ignored without log_dir
    json_logs: bool = True

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )
        if self.max_concurrent < 1:
            raise ConfigurationError(
                f"max_concurrent must be at least 1, got {self.max_concurrent}"
            )
        if logging.getLevelName(self.log_level.upper()) not in (
            logging.DEBUG,
            logging.INFO,
            logging.WARNING,
            logging.ERROR,
            logging.CRITICAL,
        ):
            raise ConfigurationError(f"Unknown log level: {self.log_level!r}")
        self.log_level = self.log_level.upper()

    @property
    def console_level(self) -> int:
        return logging.getLevelName(self.log_level)

    @classmethod
    def load_config(cls, config_path: Optional[Path] = None) -> "ProvisionerConfig":
        """Load configuration from config.yaml and environment variables.

        Priority order:
        1. Environment variables (highest)
        2. config.yaml file (under 'provisioner:' key)
        3. Dataclass defaults (lowest)

        Args:
            config_path: Path to config.yaml (default: src/config.yaml)

        Raises:
            ConfigurationError: If the file cannot be parsed or a value is invalid
        """
        config_path = config_path or DEFAULT_CONFIG_PATH

        yaml_data: Dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path, "r") as f:
                    yaml_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Could not parse {config_path}", cause=e
                ) from e
        data = yaml_data.get("provisioner", {}) or {}
        retry_data = data.get("retry", {}) or {}
        circuit_data = data.get("circuit_breaker", {}) or {}
        logging_data = data.get("logging", {}) or {}

        def _bool(name: str) -> Callable[[Any], bool]:
            return lambda v: _parse_bool(name, v)

        def _optional_float(v: Any) -> Optional[float]:
            return None if str(v).strip().lower() in ("", "none", "null") else float(v)

        defaults = BackoffConfig()
        backoff = BackoffConfig(
            base_delay=_setting(
                "RETRY_BASE_DELAY_SECONDS", retry_data, "base_delay_seconds",
                defaults.base_delay, float,
            ),
            max_delay=_setting(
                "RETRY_MAX_DELAY_SECONDS", retry_data, "max_delay_seconds",
                defaults.max_delay, float,
            ),
            max_retries=_setting(
                "RETRY_MAX_RETRIES", retry_data, "max_retries",
                defaults.max_retries, int,
            ),
            jitter=_setting(
                "RETRY_JITTER", retry_data, "jitter",
                defaults.jitter, _bool("jitter"),
            ),
            deadline_seconds=_setting(
                "RETRY_DEADLINE_SECONDS", retry_data, "deadline_seconds",
                defaults.deadline_seconds, _optional_float,
            ),
        )

        circuit_defaults = CircuitBreakerConfig()
        circuit = CircuitBreakerConfig(
            failure_threshold=_setting(
                "CIRCUIT_FAILURE_THRESHOLD", circuit_data, "failure_threshold",
                circuit_defaults.failure_threshold, int,
            ),
            reset_timeout_seconds=_setting(
                "CIRCUIT_RESET_TIMEOUT_SECONDS", circuit_data, "reset_timeout_seconds",
                circuit_defaults.reset_timeout_seconds, float,
            ),
        )

        log_dir = _setting("LOG_DIR", logging_data, "dir", None, Path)

        return cls(
            api_url=_setting("GITHUB_API_URL", data, "api_url", DEFAULT_API_URL),
            timeout_seconds=_setting(
                "GITHUB_TIMEOUT_SECONDS", data, "timeout_seconds", 30.0, float
            ),
            max_concurrent=_setting(
                "GITHUB_MAX_CONCURRENT", data, "max_concurrent", 10, int
            ),
            backoff=backoff,
            circuit=circuit,
            log_dir=log_dir,
            log_level=_setting("LOG_LEVEL", logging_data, "level", "INFO"),
            json_logs=_setting("LOG_JSON", logging_data, "json", True, _bool("json")),
        )

    def build_executor(self, name: str = "protect_branch") -> ResilientExecutor:
        """
        Executor for verify+protect, with its own circuit breaker.

        Build it once per process and reuse it so the breaker sees every
        workflow that goes through the same hosting API.
        """
        breaker = CircuitBreaker("github_api", self.circuit)
        return ResilientExecutor(self.backoff, breaker, name=name)
