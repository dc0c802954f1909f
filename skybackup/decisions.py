"""Decision points: the choices a backup run needs from the operator.

The pipeline, upload orchestrator and backup selector never prompt
directly. They call a :class:`BackupDecisions` implementation: the CLI
supplies an interactive one, tests and non-interactive runs supply
:class:`ScriptedDecisions`.

Raising :class:`OperationCancelled` from any decision unwinds the current
operation. Files already written stay where they are.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from skybackup.models.artifacts import BackupArtifact, BackupFormat
from skybackup.models.upload import Namespace

logger = logging.getLogger(__name__)


class OperationCancelled(Exception):
    """The operator aborted an interactive decision."""


@runtime_checkable
class BackupDecisions(Protocol):
    """Protocol for everything a backup run may ask the operator."""

    def choose_format(self, default: BackupFormat) -> BackupFormat:
        """Pick the backup representation."""
        ...

    def confirm_upload(self, artifact: BackupArtifact) -> bool:
        """Whether to upload a freshly written artifact."""
        ...

    def choose_namespace(self, namespaces: Sequence[Namespace]) -> Namespace | None:
        """Pick an existing namespace, or ``None`` to create a new one."""
        ...

    def name_new_namespace(self) -> str:
        """Name for a namespace about to be created."""
        ...

    def choose_backup(self, artifacts: Sequence[BackupArtifact]) -> BackupArtifact | None:
        """Pick an existing backup to upload, or ``None`` to skip."""
        ...

    def provide_identity(self) -> str:
        """Credential or account identity for the storage backend."""
        ...


class ScriptedDecisions:
    """Non-interactive decisions with fixed answers.

    Every answer has a default, so a bare ``ScriptedDecisions()`` backs
    up in the default format, uploads, and uses the first namespace.

    Parameters
    ----------
    fmt:
        Format to choose; ``None`` accepts the caller's default.
    upload:
        Answer to the upload confirmation.
    namespace:
        Name or id of the namespace to choose. ``None`` picks the first
        existing namespace; ``""`` asks for a new one.
    new_namespace_name:
        Name used when a namespace has to be created.
    backup_index:
        Index into the newest-first backup list; ``None`` skips.
    identity:
        Value returned when the storage backend asks for an identity.
    """

    def __init__(
        self,
        *,
        fmt: BackupFormat | None = None,
        upload: bool = True,
        namespace: str | None = None,
        new_namespace_name: str = "bluesky-backups",
        backup_index: int | None = 0,
        identity: str = "",
    ) -> None:
        self.fmt = fmt
        self.upload = upload
        self.namespace = namespace
        self.new_namespace_name = new_namespace_name
        self.backup_index = backup_index
        self.identity = identity
        self.asked: list[str] = []

    def choose_format(self, default: BackupFormat) -> BackupFormat:
        self.asked.append("choose_format")
        return self.fmt or default

    def confirm_upload(self, artifact: BackupArtifact) -> bool:
        self.asked.append("confirm_upload")
        return self.upload

    def choose_namespace(self, namespaces: Sequence[Namespace]) -> Namespace | None:
        self.asked.append("choose_namespace")
        if self.namespace == "":
            return None
        if self.namespace is None:
            return namespaces[0] if namespaces else None
        for ns in namespaces:
            if self.namespace in (ns.name, ns.namespace_id):
                return ns
        logger.warning("Namespace %r not found, creating a new one", self.namespace)
        return None

    def name_new_namespace(self) -> str:
        self.asked.append("name_new_namespace")
        return self.new_namespace_name

    def choose_backup(self, artifacts: Sequence[BackupArtifact]) -> BackupArtifact | None:
        self.asked.append("choose_backup")
        if self.backup_index is None or self.backup_index >= len(artifacts):
            return None
        return artifacts[self.backup_index]

    def provide_identity(self) -> str:
        self.asked.append("provide_identity")
        if not self.identity:
            raise OperationCancelled("No storage identity available")
        return self.identity
