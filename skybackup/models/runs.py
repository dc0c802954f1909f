"""Backup run outcome models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from skybackup.models.artifacts import BackupArtifact, BackupFormat
from skybackup.models.upload import UploadFailure, UploadResult


class RunStatus(str, Enum):
    """Terminal state of one backup run."""

    UPLOADED = "uploaded"
    SAVED_LOCALLY = "saved-locally"  # upload declined
    UPLOAD_FAILED = "upload-failed"  # local artifact still valid
    NO_RECORDS = "no-records"  # nothing was produced
    CANCELLED = "cancelled"


class BackupRun(BaseModel):
    """Outcome of :meth:`BackupPipeline.run`."""

    model_config = ConfigDict(frozen=True)

    status: RunStatus
    format: BackupFormat | None = None
    artifact: BackupArtifact | None = None
    upload: UploadResult | UploadFailure | None = None
    message: str = ""

    @property
    def data_safe_locally(self) -> bool:
        """Whether a usable local artifact exists for this run."""
        return self.artifact is not None
