"""
Run configuration for psachecker.

Settings come from, in increasing precedence: defaults, a JSON or YAML
configuration file, environment variables, and command-line flags.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import Any

import yaml

from psachecker.errors import SetupError
from psachecker.levels import PolicyVersion

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("human", "json")


@dataclass
class CheckerConfiguration:
    """
    Settings for one run.

    Attributes:
        policy_version: Pod Security policy version, ``latest`` or ``v1.N``
        timeout_seconds: Deadline for the whole evaluation; 0 disables it
        resource_workers: Resources evaluated concurrently
        log_level: Log level name
        log_format: ``human`` or ``json``
        kubeconfig: Path to kubeconfig file
        context: Kubernetes context to use
        in_cluster: Use in-cluster configuration
    """

    policy_version: str = "latest"
    timeout_seconds: float = 0
    resource_workers: int = 1
    log_level: str = "WARNING"
    log_format: str = "human"
    kubeconfig: str | None = None
    context: str | None = None
    in_cluster: bool = False

    def validate(self) -> None:
        """
        Check every setting.

        Raises:
            SetupError: If a setting is invalid
        """
        try:
            PolicyVersion.parse(self.policy_version)
        except ValueError as e:
            raise SetupError(f"invalid policy version: {e}") from e
        if self.timeout_seconds < 0:
            raise SetupError(f"timeout must not be negative, got {self.timeout_seconds}")
        if self.resource_workers < 1:
            raise SetupError(f"resource workers must be at least 1, got {self.resource_workers}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise SetupError(f"invalid log level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise SetupError(f"invalid log format: {self.log_format}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckerConfiguration:
        """
        Create from dictionary.

        Raises:
            SetupError: If a key is unknown or a value has the wrong type
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise SetupError(f"unknown configuration keys: {', '.join(unknown)}")

        config = cls()
        try:
            if "policy_version" in data:
                config.policy_version = str(data["policy_version"])
            if "timeout_seconds" in data:
                config.timeout_seconds = float(data["timeout_seconds"])
            if "resource_workers" in data:
                config.resource_workers = int(data["resource_workers"])
            if "log_level" in data:
                config.log_level = str(data["log_level"]).upper()
            if "log_format" in data:
                config.log_format = str(data["log_format"])
            if data.get("kubeconfig") is not None:
                config.kubeconfig = str(data["kubeconfig"])
            if data.get("context") is not None:
                config.context = str(data["context"])
            if "in_cluster" in data:
                config.in_cluster = bool(data["in_cluster"])
        except (TypeError, ValueError) as e:
            raise SetupError(f"invalid configuration value: {e}") from e

        config.validate()
        return config

    @classmethod
    def from_file(cls, path: str) -> CheckerConfiguration:
        """
        Load configuration from a JSON or YAML file.

        Raises:
            SetupError: If the file cannot be read or parsed
        """
        path = os.path.expanduser(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except OSError as e:
            raise SetupError(f"failed to read configuration file {path}: {e}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SetupError(f"failed to parse configuration file {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SetupError(f"configuration file {path} must contain a mapping")
        return cls.from_dict(data)


def load_config_from_env(environ: dict[str, str] | None = None) -> CheckerConfiguration:
    """
    Load configuration from environment variables.

    Environment variables:
        PSACHECKER_CONFIG_FILE: Path to configuration file (read first)
        PSACHECKER_POLICY_VERSION: Pod Security policy version
        PSACHECKER_TIMEOUT: Evaluation deadline in seconds
        PSACHECKER_RESOURCE_WORKERS: Resources evaluated concurrently
        PSACHECKER_LOG_LEVEL: Log level
        PSACHECKER_LOG_FORMAT: Log format (human, json)
        KUBECONFIG: Path to kubeconfig file

    Raises:
        SetupError: If a value is invalid
    """
    env = os.environ if environ is None else environ

    config_file = env.get("PSACHECKER_CONFIG_FILE")
    config = CheckerConfiguration.from_file(config_file) if config_file else CheckerConfiguration()

    try:
        if env.get("PSACHECKER_POLICY_VERSION"):
            config.policy_version = env["PSACHECKER_POLICY_VERSION"]
        if env.get("PSACHECKER_TIMEOUT"):
            config.timeout_seconds = float(env["PSACHECKER_TIMEOUT"])
        if env.get("PSACHECKER_RESOURCE_WORKERS"):
            config.resource_workers = int(env["PSACHECKER_RESOURCE_WORKERS"])
    except ValueError as e:
        raise SetupError(f"invalid environment setting: {e}") from e

    if env.get("PSACHECKER_LOG_LEVEL"):
        config.log_level = env["PSACHECKER_LOG_LEVEL"].upper()
    if env.get("PSACHECKER_LOG_FORMAT"):
        config.log_format = env["PSACHECKER_LOG_FORMAT"]
    # Multi-path KUBECONFIG values are left to the client loader.
    kubeconfig = env.get("KUBECONFIG")
    if kubeconfig and config.kubeconfig is None and os.pathsep not in kubeconfig:
        config.kubeconfig = kubeconfig

    config.validate()
    logger.debug(f"Loaded configuration: {config.to_dict()}")
    return config
