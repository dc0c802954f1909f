"""Existing-backup selector: re-upload a backup without fetching again.

Backups are listed newest first. The ordering relies on the artifact
name embedding a lexicographically sortable timestamp.
"""

from __future__ import annotations

import logging
from pathlib import Path

from skybackup.core.upload_orchestrator import UploadOrchestrator
from skybackup.decisions import BackupDecisions
from skybackup.models.artifacts import BackupArtifact, BackupFormat
from skybackup.models.upload import UploadFailure, UploadResult

logger = logging.getLogger(__name__)

_BACKUP_EXTENSIONS = {fmt.extension: fmt for fmt in BackupFormat}


def format_file_size(size: int) -> str:
    """Human-readable size: ``512B``, ``1.5KiB``, ``3.2MB``."""
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KiB"
    return f"{size / (1024 * 1024):.1f}MB"


class BackupSelector:
    """Lists backups in a directory and forwards one to the uploader.

    Parameters
    ----------
    backup_dir:
        Directory the backup writer writes into.
    uploader:
        Upload orchestrator used by :meth:`select_and_upload`.
    decisions:
        Picks which backup to upload.
    """

    def __init__(
        self,
        backup_dir: Path,
        uploader: UploadOrchestrator,
        decisions: BackupDecisions,
    ) -> None:
        self._dir = Path(backup_dir)
        self._uploader = uploader
        self._decisions = decisions

    def list_artifacts(self) -> list[BackupArtifact]:
        """Backups in the directory, newest first.

        Only regular files with a backup extension are listed; in-progress
        ``.part`` files and anything else are ignored. A missing directory
        yields an empty list.
        """
        if not self._dir.is_dir():
            logger.info("No backup directory at %s", self._dir)
            return []

        artifacts: list[BackupArtifact] = []
        for entry in sorted(self._dir.iterdir(), key=lambda p: p.name, reverse=True):
            fmt = _BACKUP_EXTENSIONS.get(entry.suffix.lower())
            if fmt is None or entry.name.startswith(".") or not entry.is_file():
                continue
            artifacts.append(
                BackupArtifact(path=entry, format=fmt, size_bytes=entry.stat().st_size)
            )
        return artifacts

    def select_and_upload(
        self, fmt: BackupFormat | None = None
    ) -> UploadResult | UploadFailure | None:
        """Let the operator pick a backup and upload it.

        Returns ``None`` when there is nothing to upload or the operator
        skipped. The chosen file's format comes from its extension unless
        *fmt* is given.
        """
        artifacts = self.list_artifacts()
        if not artifacts:
            logger.info("No backup files found in %s", self._dir)
            return None

        chosen = self._decisions.choose_backup(artifacts)
        if chosen is None:
            logger.info("No backup selected")
            return None

        logger.info(
            "Selected %s (%s)", chosen.name, format_file_size(chosen.size_bytes)
        )
        return self._uploader.upload(chosen.path, fmt or chosen.format)
