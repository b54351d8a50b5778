"""Error kinds raised by the key provisioning pipeline."""

from __future__ import annotations


class KeyProvisioningError(Exception):
    """Base class for every failure the provisioning pipeline reports."""


class GenerationError(KeyProvisioningError):
    """Key pair generation or validation failed."""


class EncodingError(KeyProvisioningError):
    """Key material could not be serialized or parsed."""


class RemoteServiceError(KeyProvisioningError):
    """A call to a remote AWS service failed.

    Attributes:
        operation: Name of the API operation, e.g. ``"ImportKeyPair"``.
        code: AWS error code when the service returned one, else ``None``.
    """

    def __init__(self, message: str, operation: str, code: str | None = None) -> None:
        super().__init__(message)
        self.operation: str = operation
        self.code: str | None = code


class RegistryError(RemoteServiceError):
    """The key pair registry rejected or failed a request."""


class RegistryConflictError(RegistryError):
    """A key pair with the requested name already exists."""


class SecretStoreError(RemoteServiceError):
    """The secret store rejected or failed a request."""


class SecretStoreConflictError(SecretStoreError):
    """A secret with the requested name already exists."""


class RollbackError(KeyProvisioningError):
    """The compensating deregister failed, leaving ``key_id`` orphaned."""

    def __init__(self, key_id: str, cause: Exception) -> None:
        super().__init__(
            f"failed to deregister key pair {key_id!r}, manual cleanup required: {cause}"
        )
        self.key_id: str = key_id
        self.cause: Exception = cause
