"""Upload models: storage principals, namespaces and upload outcomes."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class UploadStep(str, Enum):
    """The strictly sequential steps of an upload."""

    CONNECT = "connect"
    AUTHENTICATE = "authenticate"
    SELECT_NAMESPACE = "select-namespace"
    READ_ARTIFACT = "read-artifact"
    STORE = "store"
    DERIVE_RESULT = "derive-result"


UPLOAD_STEPS: list[UploadStep] = list(UploadStep)


class Principal(BaseModel):
    """An authenticated identity on the storage backend."""

    model_config = ConfigDict(frozen=True)

    principal_id: str
    display_name: str = ""


class Namespace(BaseModel):
    """A logical storage destination ("space") on the storage backend."""

    model_config = ConfigDict(frozen=True)

    namespace_id: str
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or f"{self.namespace_id[:16]}..."


class UploadResult(BaseModel):
    """A successful upload. Ephemeral, never persisted."""

    model_config = ConfigDict(frozen=True)

    content_id: str
    gateway_url: str
    artifact_path: Path
    namespace: Namespace
    size_bytes: int


class UploadFailure(BaseModel):
    """An aborted upload.

    The local artifact is untouched whatever step failed, so the backup
    can be uploaded again later from the backup directory.
    """

    model_config = ConfigDict(frozen=True)

    step: UploadStep
    message: str
    artifact_path: Path | None = None
    error_type: str = ""
    cancelled: bool = False
