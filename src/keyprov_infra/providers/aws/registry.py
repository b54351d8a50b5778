"""AWS EC2 key pair implementation of KeyRegistry."""

from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from keyprov_infra.components.registry import RegisteredKeyHandle
from keyprov_infra.errors import RegistryConflictError, RegistryError
from keyprov_infra.providers.aws.clients import client_error_code

logger: logging.Logger = logging.getLogger(__name__)

_DRY_RUN_OK = "DryRunOperation"
_DUPLICATE = "InvalidKeyPair.Duplicate"


class Ec2KeyRegistry:
    """Imports and deletes EC2 key pairs, satisfying ``KeyRegistry``.

    EC2 reports a permitted dry run as the ``DryRunOperation`` error; that
    is translated into a dry-run handle with no key id.
    """

    def __init__(self, client: Any, tags: dict[str, str] | None = None) -> None:
        """Initialise the registry.

        Args:
            client: A boto3 ``ec2`` client.
            tags: Resource tags applied to every imported key pair.
        """
        self._client: Any = client
        self._tags: dict[str, str] = dict(tags or {})

    def register(self, name: str, public_key: bytes, dry_run: bool) -> RegisteredKeyHandle:
        params: dict[str, Any] = {
            "KeyName": name,
            "PublicKeyMaterial": public_key,
            "DryRun": dry_run,
        }
        if self._tags:
            params["TagSpecifications"] = [
                {
                    "ResourceType": "key-pair",
                    "Tags": [{"Key": k, "Value": v} for k, v in sorted(self._tags.items())],
                }
            ]

        logger.debug("importing_key_pair", extra={"key_name": name, "dry_run": dry_run})
        try:
            response = self._client.import_key_pair(**params)
        except ClientError as exc:
            code = client_error_code(exc)
            if dry_run and code == _DRY_RUN_OK:
                logger.info("key_pair_dry_run_passed", extra={"key_name": name})
                return RegisteredKeyHandle(key_id="", name=name, dry_run=True)
            if code == _DUPLICATE:
                raise RegistryConflictError(
                    f"key pair {name!r} already exists", "ImportKeyPair", code
                ) from exc
            raise RegistryError(
                f"failed to import key pair {name!r}: {exc}", "ImportKeyPair", code
            ) from exc
        except BotoCoreError as exc:
            raise RegistryError(
                f"failed to import key pair {name!r}: {exc}", "ImportKeyPair"
            ) from exc

        key_id = response.get("KeyPairId") or ""
        if not key_id:
            raise RegistryError(
                f"ImportKeyPair returned no key pair id for {name!r}", "ImportKeyPair"
            )
        logger.info("key_pair_imported", extra={"key_name": name, "key_id": key_id})
        return RegisteredKeyHandle(key_id=key_id, name=response.get("KeyName", name))

    def deregister(self, key_id: str, dry_run: bool) -> None:
        if not key_id:
            raise RegistryError("cannot delete a key pair without an id", "DeleteKeyPair")

        logger.debug("deleting_key_pair", extra={"key_id": key_id, "dry_run": dry_run})
        try:
            self._client.delete_key_pair(KeyPairId=key_id, DryRun=dry_run)
        except ClientError as exc:
            code = client_error_code(exc)
            if dry_run and code == _DRY_RUN_OK:
                return
            raise RegistryError(
                f"failed to delete key pair {key_id!r}: {exc}", "DeleteKeyPair", code
            ) from exc
        except BotoCoreError as exc:
            raise RegistryError(
                f"failed to delete key pair {key_id!r}: {exc}", "DeleteKeyPair"
            ) from exc
        logger.info("key_pair_deleted", extra={"key_id": key_id})
