"""Upload orchestrator: publishes a local backup to a storage backend.

Steps, strictly in order::

    connect -> authenticate -> select-namespace -> read-artifact
            -> store -> derive-result

A failure at any step aborts the remaining steps and is returned as an
:class:`UploadFailure` naming that step. Nothing is retried. The local
artifact is only ever read, so it is intact whatever happens remotely.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from skybackup.core.hasher import sha256_hex
from skybackup.decisions import BackupDecisions, OperationCancelled
from skybackup.models.artifacts import BackupFormat
from skybackup.models.upload import (
    Namespace,
    Principal,
    UploadFailure,
    UploadResult,
    UploadStep,
)
from skybackup.storage import AuthenticationRequired, StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_PREFIX = "https://w3s.link/ipfs/"

T = TypeVar("T")


class NamespaceUnavailableError(RuntimeError):
    """Raised when no namespace could be selected or created."""


class UploadStepError(RuntimeError):
    """Carries the failure of a single upload step out of the step runner."""

    def __init__(self, failure: UploadFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure


_STEP_MESSAGES: dict[UploadStep, str] = {
    UploadStep.CONNECT: "Connection failed",
    UploadStep.AUTHENTICATE: "Authentication failed",
    UploadStep.SELECT_NAMESPACE: "Failed to select or create a storage space",
    UploadStep.READ_ARTIFACT: "Could not read the backup file",
    UploadStep.STORE: "Store failed",
    UploadStep.DERIVE_RESULT: "Could not derive the gateway reference",
}


def gateway_url(content_id: str, prefix: str = DEFAULT_GATEWAY_PREFIX) -> str:
    """Public gateway URL for a content identifier."""
    if not content_id:
        raise ValueError("Empty content identifier")
    return f"{prefix}{content_id}"


class UploadOrchestrator:
    """Drives a single upload through the storage backend.

    Parameters
    ----------
    backend:
        The storage backend client.
    decisions:
        Answers namespace and identity questions.
    gateway_prefix:
        Prefix prepended to content identifiers for the gateway URL.
    identity:
        Cached storage identity. When absent and the backend requires
        one, it is requested from *decisions*.
    """

    def __init__(
        self,
        backend: StorageBackend,
        decisions: BackupDecisions,
        *,
        gateway_prefix: str = DEFAULT_GATEWAY_PREFIX,
        identity: str | None = None,
    ) -> None:
        self._backend = backend
        self._decisions = decisions
        self._gateway_prefix = gateway_prefix
        self._identity = identity or None

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(
        self, artifact_path: Path | str, fmt: BackupFormat | None = None
    ) -> UploadResult | UploadFailure:
        """Upload the artifact at *artifact_path*.

        Returns an :class:`UploadResult` on success or an
        :class:`UploadFailure` naming the failed step. Does not raise for
        step failures.
        """
        path = Path(artifact_path)
        logger.info("Uploading %s", path)
        try:
            client = self._run(UploadStep.CONNECT, path, self._connect)
            principal = self._run(UploadStep.AUTHENTICATE, path, self._authenticate, client)
            namespace = self._run(
                UploadStep.SELECT_NAMESPACE, path, self._select_namespace, client, principal
            )
            fmt, data = self._run(UploadStep.READ_ARTIFACT, path, self._read, path, fmt)
            logger.debug("Read %d bytes (sha256 %s) from %s", len(data), sha256_hex(data), path)
            content_id = self._run(
                UploadStep.STORE,
                path,
                self._backend.store,
                client,
                data,
                fmt.mime_type,
                namespace=namespace,
                name=path.name,
            )
            url = self._run(
                UploadStep.DERIVE_RESULT, path, gateway_url, content_id, self._gateway_prefix
            )
        except UploadStepError as exc:
            return exc.failure

        logger.info("Uploaded %s as %s", path.name, content_id)
        return UploadResult(
            content_id=content_id,
            gateway_url=url,
            artifact_path=path,
            namespace=namespace,
            size_bytes=len(data),
        )

    def check_connection(self) -> tuple[Principal, Namespace] | UploadFailure:
        """Run the connect, authenticate and select-namespace steps only."""
        try:
            client = self._run(UploadStep.CONNECT, None, self._connect)
            principal = self._run(UploadStep.AUTHENTICATE, None, self._authenticate, client)
            namespace = self._run(
                UploadStep.SELECT_NAMESPACE, None, self._select_namespace, client, principal
            )
        except UploadStepError as exc:
            return exc.failure
        return principal, namespace

    def _run(
        self, step: UploadStep, path: Path | None, fn: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        """Run one step, converting any exception into an UploadStepError."""
        logger.debug("Upload step %s", step.value)
        try:
            return fn(*args, **kwargs)
        except OperationCancelled as exc:
            logger.info("Upload cancelled during %s", step.value)
            raise UploadStepError(
                UploadFailure(
                    step=step,
                    message=f"Cancelled during {step.value}",
                    artifact_path=path,
                    error_type=type(exc).__name__,
                    cancelled=True,
                )
            ) from exc
        except Exception as exc:  # noqa: BLE001
            message = f"{_STEP_MESSAGES[step]} ({step.value}): {exc}"
            logger.error("Upload of %s aborted at %s: %s", path or "(no artifact)", step.value, exc)
            raise UploadStepError(
                UploadFailure(
                    step=step,
                    message=message,
                    artifact_path=path,
                    error_type=type(exc).__name__,
                )
            ) from exc

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _connect(self) -> Any:
        client = self._backend.connect()
        if client is None:
            raise ConnectionError("Storage backend returned no client")
        return client

    def _authenticate(self, client: Any) -> Principal:
        try:
            return self._backend.authenticate(client, self._identity)
        except AuthenticationRequired:
            if self._identity is not None:
                raise
            logger.info("No cached storage identity, asking the operator")
        self._identity = self._decisions.provide_identity()
        return self._backend.authenticate(client, self._identity)

    def _select_namespace(self, client: Any, principal: Principal) -> Namespace:
        """Choose an existing namespace or create one.

        Having no namespaces yet is normal: a name is requested and the
        namespace is created.
        """
        namespaces = self._backend.list_namespaces(client)
        logger.info(
            "Found %d space%s", len(namespaces), "" if len(namespaces) == 1 else "s"
        )

        chosen: Namespace | None = None
        if namespaces:
            chosen = self._decisions.choose_namespace(namespaces)
        if chosen is None:
            name = self._decisions.name_new_namespace().strip()
            if not name:
                raise NamespaceUnavailableError("Space name cannot be blank")
            chosen = self._backend.create_namespace(client, name, principal)
            if chosen is None:
                raise NamespaceUnavailableError(f"Could not create space {name!r}")
            logger.info("Created space %s", chosen.label)
        else:
            logger.info("Selected space %s", chosen.label)
        return chosen

    @staticmethod
    def _read(path: Path, fmt: BackupFormat | None) -> tuple[BackupFormat, bytes]:
        fmt = fmt or BackupFormat.from_path(path)
        return fmt, path.read_bytes()
