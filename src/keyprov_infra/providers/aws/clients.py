"""boto3 client construction shared by the AWS providers."""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from keyprov_infra.config import ProvisionerConfig

logger: logging.Logger = logging.getLogger(__name__)


def client_error_code(exc: ClientError) -> str | None:
    """Return the AWS error code carried by ``exc``, if any."""
    return exc.response.get("Error", {}).get("Code")


def botocore_config(config: ProvisionerConfig) -> Config:
    """Bound every call by the configured timeouts and disable retries."""
    return Config(
        connect_timeout=config.connect_timeout_seconds,
        read_timeout=config.read_timeout_seconds,
        retries={"total_max_attempts": 1, "mode": "standard"},
    )


def build_clients(config: ProvisionerConfig) -> tuple[Any, Any]:
    """Create ``(ec2, secretsmanager)`` clients from one boto3 session.

    Credentials come from the default boto3 chain, optionally narrowed to
    ``aws_profile``.
    """
    session = boto3.session.Session(
        profile_name=config.aws_profile,
        region_name=config.aws_region,
    )
    client_config = botocore_config(config)
    ec2 = session.client(
        "ec2", config=client_config, endpoint_url=config.ec2_endpoint_url
    )
    secretsmanager = session.client(
        "secretsmanager",
        config=client_config,
        endpoint_url=config.secretsmanager_endpoint_url,
    )
    logger.debug(
        "aws_clients_created",
        extra={"region": session.region_name, "profile": config.aws_profile},
    )
    return ec2, secretsmanager
