"""Typed configuration loaded from environment variables at startup."""

from __future__ import annotations

import logging
from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger: logging.Logger = logging.getLogger(__name__)


class LogLevel(StrEnum):
    """Log verbosity accepted by ``KEYPROV_LOG_LEVEL``."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Rendering of log records on stderr."""

    CONSOLE = "console"
    JSON = "json"


class ProvisionerConfig(BaseSettings):
    """Fully validated provisioner configuration.

    All values are sourced from environment variables (or a ``.env`` file)
    at startup. AWS credentials themselves are resolved by the boto3
    default chain; these settings only narrow which profile, region and
    endpoints are used.
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYPROV_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    aws_region: str | None = None
    aws_profile: str | None = None
    ec2_endpoint_url: str | None = None
    secretsmanager_endpoint_url: str | None = None
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    read_timeout_seconds: float = Field(default=30.0, gt=0)
    secret_description: str = "SSH KEY"
    kms_key_id: str | None = None
    key_tags: dict[str, str] = Field(default_factory=dict)
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.CONSOLE

    @classmethod
    def load(cls) -> ProvisionerConfig:
        """Load and validate configuration from the environment.

        Raises ``pydantic.ValidationError`` on invalid values.
        """
        return cls()

    def log_settings(self) -> None:
        """Log each resolved setting at DEBUG level, once logging is configured."""
        logger.debug(
            "provisioner_config_loaded",
            extra={
                "aws_region": self.aws_region,
                "aws_profile": self.aws_profile,
                "connect_timeout_seconds": self.connect_timeout_seconds,
                "read_timeout_seconds": self.read_timeout_seconds,
                "log_level": self.log_level.value,
                "log_format": self.log_format.value,
            },
        )
