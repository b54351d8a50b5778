"""Provider-agnostic secret store interface."""

from __future__ import annotations

import logging
from typing import Protocol

logger: logging.Logger = logging.getLogger(__name__)


class SecretHandle:
    """A secret created in the secret store."""

    def __init__(self, secret_arn: str, name: str) -> None:
        self.secret_arn: str = secret_arn
        self.name: str = name

    def __repr__(self) -> str:
        return f"SecretHandle(secret_arn={self.secret_arn!r}, name={self.name!r})"


class SecretStore(Protocol):
    def store(self, name: str, secret: bytes, description: str) -> SecretHandle:
        """Create a new secret; never overwrites.

        Raises ``SecretStoreConflictError`` when ``name`` is taken and
        ``SecretStoreError`` on any other failure.
        """
        ...
