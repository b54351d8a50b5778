"""Generate, register and store an SSH key pair with rollback on failure."""

from __future__ import annotations

import logging
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from keyprov_infra.components.registry import KeyRegistry, RegisteredKeyHandle
from keyprov_infra.components.secrets import SecretStore
from keyprov_infra.errors import (
    KeyProvisioningError,
    RollbackError,
    SecretStoreError,
)
from keyprov_infra.keys import (
    DEFAULT_STRENGTH_BITS,
    encode_private_key,
    encode_public_key,
    generate_key_pair,
)

logger: logging.Logger = logging.getLogger(__name__)

EXIT_OK: int = 0
EXIT_FAILED: int = 1
EXIT_USAGE: int = 2
EXIT_ORPHANED: int = 3
EXIT_INTERRUPTED: int = 130


class ProvisioningStage(StrEnum):
    """Last stage the pipeline reached, in execution order."""

    START = "start"
    KEY_GENERATED = "key_generated"
    PUBLIC_KEY_ENCODED = "public_key_encoded"
    REGISTERED = "registered"
    SECRET_STORED = "secret_stored"


class ProvisioningOutcome(StrEnum):
    SUCCEEDED = "succeeded"
    DRY_RUN = "dry_run"
    FAILED = "failed"
    ORPHANED = "orphaned"


_FAILED_STEPS: dict[ProvisioningStage, str] = {
    ProvisioningStage.START: "key generation",
    ProvisioningStage.KEY_GENERATED: "public key encoding",
    ProvisioningStage.PUBLIC_KEY_ENCODED: "registration",
    ProvisioningStage.REGISTERED: "secret store",
}


class ProvisioningRequest(BaseModel):
    """Immutable parameters of a single provisioning run."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    strength_bits: int = DEFAULT_STRENGTH_BITS
    dry_run: bool = False

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        return value


class ProvisioningResult:
    """Terminal result of a provisioning run."""

    def __init__(
        self,
        request: ProvisioningRequest,
        stage: ProvisioningStage,
        outcome: ProvisioningOutcome,
        key_id: str = "",
        secret_arn: str = "",
        error: KeyProvisioningError | None = None,
        rollback_error: RollbackError | None = None,
    ) -> None:
        self.request: ProvisioningRequest = request
        self.stage: ProvisioningStage = stage
        self.outcome: ProvisioningOutcome = outcome
        self.key_id: str = key_id
        self.secret_arn: str = secret_arn
        self.error: KeyProvisioningError | None = error
        self.rollback_error: RollbackError | None = rollback_error

    @property
    def succeeded(self) -> bool:
        return self.outcome in (ProvisioningOutcome.SUCCEEDED, ProvisioningOutcome.DRY_RUN)

    @property
    def exit_code(self) -> int:
        """Process exit status; orphaned registry entries get their own code."""
        if self.succeeded:
            return EXIT_OK
        if self.outcome == ProvisioningOutcome.ORPHANED:
            return EXIT_ORPHANED
        return EXIT_FAILED

    @property
    def failed_step(self) -> str | None:
        """The step that failed, derived from the last stage completed."""
        if self.succeeded:
            return None
        return _FAILED_STEPS.get(self.stage, self.stage.value)

    def describe(self) -> str:
        """Human-readable summary naming the failed stage and rollback status."""
        if self.outcome == ProvisioningOutcome.SUCCEEDED:
            return f"provisioned key {self.key_id} and secret {self.secret_arn}"
        if self.outcome == ProvisioningOutcome.DRY_RUN:
            return f"dry run passed for key pair {self.request.name!r}"

        message = f"{self.failed_step} failed: {self.error}"
        if self.rollback_error is not None:
            message += (
                f"; rollback FAILED, key pair {self.rollback_error.key_id} is orphaned"
                f" in the registry and must be removed manually ({self.rollback_error.cause})"
            )
        elif self.key_id:
            message += f"; key pair {self.key_id} was rolled back"
        return message


class KeyProvisioner:
    """Runs the generate, register, store pipeline for one request.

    The orchestrator is the only layer that catches provisioning errors. A
    failed secret store triggers exactly one compensating deregister of the
    key registered earlier in the same run.
    """

    def __init__(
        self,
        registry: KeyRegistry,
        secret_store: SecretStore,
        secret_description: str = "SSH KEY",
    ) -> None:
        self._registry: KeyRegistry = registry
        self._secret_store: SecretStore = secret_store
        self._secret_description: str = secret_description

    def run(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Execute the pipeline and map its outcome to a result.

        Errors outside the :class:`KeyProvisioningError` hierarchy propagate
        unchanged; when they occur while storing the secret the registered
        key is rolled back first.
        """
        logger.info(
            "provisioning_started",
            extra={
                "key_name": request.name,
                "strength_bits": request.strength_bits,
                "dry_run": request.dry_run,
            },
        )
        stage = ProvisioningStage.START
        try:
            key_pair = generate_key_pair(request.strength_bits)
            stage = ProvisioningStage.KEY_GENERATED

            private_pem = encode_private_key(key_pair)
            public_line = encode_public_key(key_pair)
            stage = ProvisioningStage.PUBLIC_KEY_ENCODED

            handle = self._registry.register(request.name, public_line, request.dry_run)
        except KeyProvisioningError as exc:
            return self._fail(request, stage, exc)

        stage = ProvisioningStage.REGISTERED
        if request.dry_run:
            logger.info("provisioning_dry_run_completed", extra={"key_name": request.name})
            return ProvisioningResult(request, stage, ProvisioningOutcome.DRY_RUN)

        try:
            secret = self._secret_store.store(
                request.name, private_pem, self._secret_description
            )
        except SecretStoreError as exc:
            rollback_error = self._rollback(handle)
            return self._fail(request, stage, exc, handle.key_id, rollback_error)
        except BaseException as exc:
            rollback_error = self._rollback(handle)
            if rollback_error is not None:
                exc.add_note(
                    f"key pair {rollback_error.key_id} is orphaned in the registry"
                    f" and must be removed manually ({rollback_error.cause})"
                )
            raise

        logger.info(
            "provisioning_succeeded",
            extra={
                "key_name": request.name,
                "key_id": handle.key_id,
                "secret_arn": secret.secret_arn,
            },
        )
        return ProvisioningResult(
            request,
            ProvisioningStage.SECRET_STORED,
            ProvisioningOutcome.SUCCEEDED,
            key_id=handle.key_id,
            secret_arn=secret.secret_arn,
        )

    def _rollback(self, handle: RegisteredKeyHandle) -> RollbackError | None:
        """Deregister ``handle``; return the failure instead of raising it."""
        if not handle.can_deregister:
            logger.warning(
                "rollback_skipped",
                extra={"key_name": handle.name, "dry_run": handle.dry_run},
            )
            return None
        logger.warning("rolling_back_key_pair", extra={"key_id": handle.key_id})
        try:
            self._registry.deregister(handle.key_id, False)
        except Exception as exc:
            rollback_error = RollbackError(handle.key_id, exc)
            logger.error(
                "rollback_failed",
                extra={"key_id": handle.key_id, "error": str(exc)},
            )
            return rollback_error
        logger.info("rollback_succeeded", extra={"key_id": handle.key_id})
        return None

    def _fail(
        self,
        request: ProvisioningRequest,
        stage: ProvisioningStage,
        error: KeyProvisioningError,
        key_id: str = "",
        rollback_error: RollbackError | None = None,
    ) -> ProvisioningResult:
        outcome = (
            ProvisioningOutcome.ORPHANED
            if rollback_error is not None
            else ProvisioningOutcome.FAILED
        )
        logger.error(
            "provisioning_failed",
            extra={
                "key_name": request.name,
                "stage": stage.value,
                "error_type": type(error).__name__,
                "error": str(error),
                "outcome": outcome.value,
            },
        )
        return ProvisioningResult(
            request,
            stage,
            outcome,
            key_id=key_id,
            error=error,
            rollback_error=rollback_error,
        )
