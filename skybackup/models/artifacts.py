"""Backup artifact models.

An artifact is a file under the backup directory, written once by the
backup writer and never mutated afterwards.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BackupFormat(str, Enum):
    """On-disk representation of a backup."""

    DOCUMENT = "json"  # structured document aggregating records
    ARCHIVE = "car"  # verbatim repository archive bytes

    @property
    def extension(self) -> str:
        return f".{self.value}"

    @property
    def mime_type(self) -> str:
        if self is BackupFormat.DOCUMENT:
            return "application/json"
        return "application/vnd.ipld.car"

    @property
    def label(self) -> str:
        return "JSON" if self is BackupFormat.DOCUMENT else "CAR"

    @classmethod
    def from_path(cls, path: Path | str) -> BackupFormat:
        """Infer the format from a file extension.

        Raises
        ------
        ValueError
            If the extension is not a known backup extension.
        """
        suffix = Path(path).suffix.lower()
        for fmt in cls:
            if fmt.extension == suffix:
                return fmt
        raise ValueError(f"Not a backup file extension: {suffix or '(none)'}")


class RecordSource(str, Enum):
    """Where the records of a document backup come from."""

    LISTED = "records"  # repository record listing
    ARCHIVE = "archive"  # decoded repository archive


class BackupArtifact(BaseModel):
    """Metadata for a backup file on local storage."""

    model_config = ConfigDict(frozen=True)

    path: Path
    format: BackupFormat
    size_bytes: int
    record_count: int | None = None  # known only for freshly written documents

    @property
    def name(self) -> str:
        return self.path.name


class BackupEnvelope(BaseModel):
    """The top-level object of a structured-document backup."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    backup_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="backupDate",
    )
    post_count: int = Field(alias="postCount")
    posts: list[dict[str, Any]]

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "backupDate": format_timestamp(self.backup_date),
            "postCount": self.post_count,
            "posts": self.posts,
        }


def format_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"
