"""Provider-agnostic key pair registry interface."""

from __future__ import annotations

import logging
from typing import Protocol

logger: logging.Logger = logging.getLogger(__name__)


class RegisteredKeyHandle:
    """A public key record created in the registry."""

    def __init__(self, key_id: str, name: str, dry_run: bool = False) -> None:
        """Initialise the handle.

        Args:
            key_id: Registry-assigned key identifier; empty for dry runs.
            name: Name the key was registered under.
            dry_run: ``True`` when nothing was created remotely.
        """
        self.key_id: str = key_id
        self.name: str = name
        self.dry_run: bool = dry_run

    @property
    def can_deregister(self) -> bool:
        """Whether this handle refers to a real remote record."""
        return bool(self.key_id) and not self.dry_run

    def __repr__(self) -> str:
        return f"RegisteredKeyHandle(key_id={self.key_id!r}, name={self.name!r}, dry_run={self.dry_run})"


class KeyRegistry(Protocol):
    """Registers SSH public keys with a compute provisioning service."""

    def register(self, name: str, public_key: bytes, dry_run: bool) -> RegisteredKeyHandle:
        """Create a named public key record.

        Raises ``RegistryConflictError`` when ``name`` is taken and
        ``RegistryError`` on any other failure.
        """
        ...

    def deregister(self, key_id: str, dry_run: bool) -> None:
        """Delete a previously registered key. Raises ``RegistryError``."""
        ...
