"""AWS Secrets Manager implementation of SecretStore."""

from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from keyprov_infra.components.secrets import SecretHandle
from keyprov_infra.errors import SecretStoreConflictError, SecretStoreError
from keyprov_infra.providers.aws.clients import client_error_code

logger: logging.Logger = logging.getLogger(__name__)


class SecretsManagerStore:
    """Creates Secrets Manager secrets, satisfying ``SecretStore``.

    The secret value is written as ``SecretString``; encryption at rest is
    delegated to Secrets Manager and ``kms_key_id`` when one is configured.
    """

    def __init__(self, client: Any, kms_key_id: str | None = None) -> None:
        self._client: Any = client
        self._kms_key_id: str | None = kms_key_id

    def store(self, name: str, secret: bytes, description: str) -> SecretHandle:
        try:
            secret_string = secret.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SecretStoreError(
                f"secret {name!r} is not valid UTF-8 text", "CreateSecret"
            ) from exc
        params: dict[str, Any] = {
            "Name": name,
            "Description": description,
            "SecretString": secret_string,
        }
        if self._kms_key_id:
            params["KmsKeyId"] = self._kms_key_id

        logger.debug("creating_secret", extra={"secret_name": name})
        try:
            response = self._client.create_secret(**params)
        except ClientError as exc:
            code = client_error_code(exc)
            if code == "ResourceExistsException":
                raise SecretStoreConflictError(
                    f"secret {name!r} already exists", "CreateSecret", code
                ) from exc
            raise SecretStoreError(
                f"failed to create secret {name!r}: {exc}", "CreateSecret", code
            ) from exc
        except BotoCoreError as exc:
            raise SecretStoreError(
                f"failed to create secret {name!r}: {exc}", "CreateSecret"
            ) from exc

        arn = response.get("ARN") or ""
        if not arn:
            raise SecretStoreError(f"CreateSecret returned no ARN for {name!r}", "CreateSecret")
        logger.info("secret_created", extra={"secret_name": name, "secret_arn": arn})
        return SecretHandle(secret_arn=arn, name=response.get("Name", name))
