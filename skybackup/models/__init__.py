"""Skybackup data models: all Pydantic v2, all frozen (immutable)."""

from skybackup.models.artifacts import (
    BackupArtifact,
    BackupEnvelope,
    BackupFormat,
    RecordSource,
)
from skybackup.models.records import (
    Block,
    DecodedRecord,
    ListedRecord,
    RawPayload,
    StructuredPayload,
)
from skybackup.models.runs import BackupRun, RunStatus
from skybackup.models.upload import (
    UPLOAD_STEPS,
    Namespace,
    Principal,
    UploadFailure,
    UploadResult,
    UploadStep,
)

__all__ = [
    # records
    "Block",
    "StructuredPayload",
    "RawPayload",
    "DecodedRecord",
    "ListedRecord",
    # artifacts
    "BackupFormat",
    "RecordSource",
    "BackupArtifact",
    "BackupEnvelope",
    # upload
    "UploadStep",
    "UPLOAD_STEPS",
    "Principal",
    "Namespace",
    "UploadResult",
    "UploadFailure",
    # runs
    "RunStatus",
    "BackupRun",
]
