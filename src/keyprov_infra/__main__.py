"""Command-line entry point: provision one SSH key pair."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

import structlog
from botocore.exceptions import BotoCoreError
from pydantic import ValidationError

from keyprov_infra.config import ProvisionerConfig
from keyprov_infra.keys import DEFAULT_STRENGTH_BITS
from keyprov_infra.logs import configure_logging
from keyprov_infra.providers.aws.clients import build_clients
from keyprov_infra.providers.aws.registry import Ec2KeyRegistry
from keyprov_infra.providers.aws.secrets import SecretsManagerStore
from keyprov_infra.provisioner import (
    EXIT_INTERRUPTED,
    EXIT_ORPHANED,
    EXIT_USAGE,
    KeyProvisioner,
    ProvisioningOutcome,
    ProvisioningRequest,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keyprov",
        description=(
            "Generate an RSA SSH key pair, import the public key into EC2 and "
            "store the private key in Secrets Manager."
        ),
    )
    parser.add_argument(
        "--bits",
        "--bitSize",
        dest="bits",
        type=int,
        default=DEFAULT_STRENGTH_BITS,
        help="RSA modulus size in bits (default: %(default)s)",
    )
    parser.add_argument("--name", required=True, help="name of the key pair and secret")
    parser.add_argument(
        "--dry-run",
        "--dryrun",
        dest="dry_run",
        action="store_true",
        help="validate the EC2 import without creating anything",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run one provisioning invocation and return the process exit code."""
    args = build_parser().parse_args(argv)
    log = structlog.get_logger("keyprov_infra")

    try:
        config = ProvisionerConfig.load()
        request = ProvisioningRequest(
            name=args.name, strength_bits=args.bits, dry_run=args.dry_run
        )
    except ValidationError as exc:
        print(f"keyprov: invalid configuration: {exc}", file=sys.stderr)
        return EXIT_USAGE

    configure_logging(config.log_level, config.log_format)
    config.log_settings()

    try:
        ec2, secretsmanager = build_clients(config)
    except BotoCoreError as exc:
        print(f"keyprov: cannot create AWS clients: {exc}", file=sys.stderr)
        return EXIT_USAGE

    provisioner = KeyProvisioner(
        registry=Ec2KeyRegistry(ec2, tags=config.key_tags),
        secret_store=SecretsManagerStore(secretsmanager, kms_key_id=config.kms_key_id),
        secret_description=config.secret_description,
    )
    try:
        result = provisioner.run(request)
    except KeyboardInterrupt as exc:
        notes = getattr(exc, "__notes__", [])
        exit_code = EXIT_ORPHANED if notes else EXIT_INTERRUPTED
        log.error("keyprov_interrupted", exit_code=exit_code)
        print("keyprov: interrupted", file=sys.stderr)
        for note in notes:
            print(f"keyprov: {note}", file=sys.stderr)
        return exit_code

    if result.outcome == ProvisioningOutcome.SUCCEEDED:
        print("Saved in EC2", result.key_id)
        print("Saved in Secrets Manager", result.secret_arn)
    elif result.outcome == ProvisioningOutcome.DRY_RUN:
        print(result.describe())
    else:
        log.error("keyprov_failed", outcome=result.outcome.value, exit_code=result.exit_code)
        print(f"keyprov: {result.describe()}", file=sys.stderr)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
