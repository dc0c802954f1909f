"""Runtime configuration: env-driven via pydantic-settings.

Reads ``SKYBACKUP_*`` environment variables and an optional ``.env`` file.
Only the CLI reads settings; core components receive the values they
need as constructor arguments.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from skybackup.models.artifacts import BackupFormat, RecordSource


class BackupSettings(BaseSettings):
    """Backup settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export SKYBACKUP_DID=did:plc:abc123
        export SKYBACKUP_BACKUP_DIR=/data/bsky-backup
        export SKYBACKUP_STORAGE_API_URL=http://ipfs.internal:5001
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SKYBACKUP_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Local backups
    backup_dir: Path = Field(default_factory=lambda: Path.home() / "bsky-backup")
    file_prefix: str = "bluesky-posts"
    default_format: BackupFormat = BackupFormat.ARCHIVE
    document_source: RecordSource = RecordSource.LISTED

    # Source service (PDS)
    service_url: str = "https://bsky.social"
    did: str = ""
    access_token: str = ""
    request_timeout: float = 30.0
    list_limit: int = 50

    # Storage backend
    storage_api_url: str = "http://127.0.0.1:5001"
    storage_token: str = ""  # cached storage identity
    storage_root: str = "/skybackup"
    gateway_prefix: str = "https://w3s.link/ipfs/"
