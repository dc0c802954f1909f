"""Backup pipeline: fetch, decode, write, confirm, upload.

Stages run strictly one after another, each consuming the previous
stage's output::

    fetch -> decode (archive-derived documents only) -> write
          -> confirm upload -> upload

Fetch and write errors propagate to the caller. Upload failures do not:
once the artifact is written the run reports it as safe locally.
"""

from __future__ import annotations

import logging

from skybackup.core.backup_writer import BackupWriter, NoRecordsError
from skybackup.core.car_reader import CarReader
from skybackup.core.decoder import decode_archive
from skybackup.core.upload_orchestrator import UploadOrchestrator
from skybackup.decisions import BackupDecisions, OperationCancelled
from skybackup.models.artifacts import BackupArtifact, BackupFormat, RecordSource
from skybackup.models.runs import BackupRun, RunStatus
from skybackup.models.upload import UploadFailure
from skybackup.sources import SnapshotSource

logger = logging.getLogger(__name__)


class BackupPipeline:
    """Runs one backup from snapshot source to storage backend.

    Parameters
    ----------
    source:
        Supplies the repository archive or record listing.
    writer:
        Writes the local artifact.
    uploader:
        Publishes the artifact once the operator confirms.
    decisions:
        Format choice and upload confirmation.
    default_format:
        Offered as the default when asking for a format.
    document_source:
        Where document backups take their records from.
    """

    def __init__(
        self,
        source: SnapshotSource,
        writer: BackupWriter,
        uploader: UploadOrchestrator,
        decisions: BackupDecisions,
        *,
        default_format: BackupFormat = BackupFormat.ARCHIVE,
        document_source: RecordSource = RecordSource.LISTED,
    ) -> None:
        self.source = source
        self.writer = writer
        self.uploader = uploader
        self.decisions = decisions
        self.default_format = default_format
        self.document_source = document_source

    def run(
        self,
        identity: str,
        fmt: BackupFormat | None = None,
        *,
        record_source: RecordSource | None = None,
        limit: int | None = None,
    ) -> BackupRun:
        """Back up the repository of *identity*.

        Raises
        ------
        SnapshotFetchError
            If the source cannot supply the snapshot.
        CarFormatError
            If the archive container cannot be opened.
        OSError
            If the artifact cannot be written.
        """
        try:
            fmt = fmt or self.decisions.choose_format(self.default_format)
        except OperationCancelled:
            return BackupRun(status=RunStatus.CANCELLED, message="Backup cancelled")

        try:
            artifact = self._produce(identity, fmt, record_source or self.document_source, limit)
        except NoRecordsError as exc:
            return BackupRun(status=RunStatus.NO_RECORDS, format=fmt, message=str(exc))

        return self._offer_upload(fmt, artifact)

    def _produce(
        self,
        identity: str,
        fmt: BackupFormat,
        record_source: RecordSource,
        limit: int | None,
    ) -> BackupArtifact:
        if fmt is BackupFormat.ARCHIVE:
            data = self.source.fetch_archive(identity)
            reader = CarReader.from_bytes(data)
            logger.info("Archive roots: %s", ", ".join(reader.roots) or "(none)")
            return self.writer.write_archive(data)

        if record_source is RecordSource.ARCHIVE:
            records = list(decode_archive(self.source.fetch_archive(identity)))
        else:
            records = self.source.list_records(identity, limit)
        return self.writer.write_document(records)

    def _offer_upload(self, fmt: BackupFormat, artifact: BackupArtifact) -> BackupRun:
        try:
            confirmed = self.decisions.confirm_upload(artifact)
        except OperationCancelled:
            return BackupRun(
                status=RunStatus.CANCELLED,
                format=fmt,
                artifact=artifact,
                message="Upload cancelled; backup saved locally",
            )
        if not confirmed:
            return BackupRun(
                status=RunStatus.SAVED_LOCALLY,
                format=fmt,
                artifact=artifact,
                message=f"Backup saved to {artifact.path}",
            )

        outcome = self.uploader.upload(artifact.path, fmt)
        if isinstance(outcome, UploadFailure):
            status = RunStatus.CANCELLED if outcome.cancelled else RunStatus.UPLOAD_FAILED
            return BackupRun(
                status=status,
                format=fmt,
                artifact=artifact,
                upload=outcome,
                message=f"{outcome.message}. Your backup is still saved locally.",
            )
        return BackupRun(
            status=RunStatus.UPLOADED,
            format=fmt,
            artifact=artifact,
            upload=outcome,
            message=f"Backup uploaded: {outcome.gateway_url}",
        )
