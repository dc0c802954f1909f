"""Backup writer: persists records or archive bytes as a local artifact.

Layout: {backup_dir}/{prefix}-{timestamp}.{json|car}

The timestamp is UTC ISO-8601 with millisecond precision, ``:`` and
``.`` replaced by ``-``, so names sort lexicographically in time order.
Artifacts are written once and never overwritten.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

from skybackup.core.hasher import sha256_hex
from skybackup.models.artifacts import (
    BackupArtifact,
    BackupEnvelope,
    BackupFormat,
    format_timestamp,
)
from skybackup.models.records import DecodedRecord, ListedRecord

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "bluesky-posts"

RecordLike = Union[DecodedRecord, ListedRecord, dict]


class NoRecordsError(RuntimeError):
    """Raised when a document backup would contain no records.

    Terminal: nothing was written and there is nothing to upload.
    """


class BackupCollisionError(FileExistsError):
    """Raised when an artifact with the same name already exists."""


def artifact_name(prefix: str, fmt: BackupFormat, moment: datetime) -> str:
    """Deterministic artifact file name for *moment*."""
    stamp = format_timestamp(moment).replace(":", "-").replace(".", "-")
    return f"{prefix}-{stamp}{fmt.extension}"


def _record_document(record: RecordLike) -> dict[str, Any]:
    if isinstance(record, (DecodedRecord, ListedRecord)):
        return record.to_document()
    return dict(record)


class BackupWriter:
    """Writes backup artifacts into a backup directory.

    Parameters
    ----------
    backup_dir:
        Root directory for backups. Created on first write.
    prefix:
        File name prefix shared by every artifact.
    clock:
        Returns the current time; injectable for deterministic names.
    """

    def __init__(
        self,
        backup_dir: Path,
        *,
        prefix: str = DEFAULT_PREFIX,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._dir = Path(backup_dir)
        self._prefix = prefix
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def backup_dir(self) -> Path:
        return self._dir

    def ensure_dir(self) -> Path:
        """Create the backup directory (and ancestors) if absent."""
        self._dir.mkdir(parents=True, exist_ok=True)
        return self._dir

    def artifact_path(self, fmt: BackupFormat, moment: datetime) -> Path:
        return self._dir / artifact_name(self._prefix, fmt, moment)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write(
        self, source: Iterable[RecordLike] | bytes, fmt: BackupFormat
    ) -> BackupArtifact:
        """Write *source* in the representation selected by *fmt*.

        ``DOCUMENT`` takes a record sequence, ``ARCHIVE`` takes raw bytes.
        """
        if fmt is BackupFormat.ARCHIVE:
            if not isinstance(source, (bytes, bytearray, memoryview)):
                raise TypeError("Archive backups take the raw archive bytes")
            return self.write_archive(bytes(source))
        if isinstance(source, (bytes, bytearray, memoryview)):
            raise TypeError("Document backups take a record sequence, not bytes")
        return self.write_document(source)

    def write_document(self, records: Iterable[RecordLike]) -> BackupArtifact:
        """Write records as an indented JSON envelope.

        Raises
        ------
        NoRecordsError
            If *records* is empty. The directory is still created; no file is.
        """
        self.ensure_dir()
        posts = [_record_document(r) for r in records]
        if not posts:
            logger.info("No records found, skipping local backup")
            raise NoRecordsError("No records found; nothing was written")

        moment = self._clock()
        envelope = BackupEnvelope(backup_date=moment, post_count=len(posts), posts=posts)
        data = json.dumps(envelope.to_json_dict(), indent=2, ensure_ascii=False).encode(
            "utf-8"
        )
        path = self._write_new(self.artifact_path(BackupFormat.DOCUMENT, moment), data)
        logger.info("Saved %d records to %s", len(posts), path)
        return BackupArtifact(
            path=path,
            format=BackupFormat.DOCUMENT,
            size_bytes=len(data),
            record_count=len(posts),
        )

    def write_archive(self, data: bytes) -> BackupArtifact:
        """Write archive bytes verbatim."""
        self.ensure_dir()
        moment = self._clock()
        path = self._write_new(self.artifact_path(BackupFormat.ARCHIVE, moment), data)
        logger.info(
            "Saved archive (%d bytes, sha256 %s) to %s", len(data), sha256_hex(data)[:12], path
        )
        return BackupArtifact(path=path, format=BackupFormat.ARCHIVE, size_bytes=len(data))

    @staticmethod
    def _write_new(path: Path, data: bytes) -> Path:
        """Write *data* to a new file at *path*, all or nothing.

        The bytes land in a hidden ``.part`` sibling first and are hard-linked
        into place once complete. Linking fails if *path* already exists, so
        an existing backup is never replaced.
        """
        if path.exists():
            raise BackupCollisionError(f"Backup already exists: {path}")
        partial = path.with_name(f".{path.name}.part")
        try:
            partial.write_bytes(data)
            try:
                os.link(partial, path)
            except FileExistsError as exc:
                raise BackupCollisionError(f"Backup already exists: {path}") from exc
        finally:
            partial.unlink(missing_ok=True)
        return path
