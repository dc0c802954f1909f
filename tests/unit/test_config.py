"""Unit tests for BackupSettings environment handling."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from skybackup.config import BackupSettings
from skybackup.models.artifacts import BackupFormat, RecordSource


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """Keep a developer's .env and SKYBACKUP_* variables out of the tests."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("SKYBACKUP_"):
            monkeypatch.delenv(key)


class TestBackupSettings:
    def test_defaults(self):
        settings = BackupSettings()
        assert settings.backup_dir == Path.home() / "bsky-backup"
        assert settings.file_prefix == "bluesky-posts"
        assert settings.default_format is BackupFormat.ARCHIVE
        assert settings.document_source is RecordSource.LISTED
        assert settings.gateway_prefix == "https://w3s.link/ipfs/"
        assert settings.list_limit == 50

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SKYBACKUP_BACKUP_DIR", str(tmp_path / "b"))
        monkeypatch.setenv("SKYBACKUP_DEFAULT_FORMAT", "json")
        monkeypatch.setenv("SKYBACKUP_DID", "did:plc:abc123")
        monkeypatch.setenv("SKYBACKUP_LIST_LIMIT", "7")
        settings = BackupSettings()
        assert settings.backup_dir == tmp_path / "b"
        assert settings.default_format is BackupFormat.DOCUMENT
        assert settings.did == "did:plc:abc123"
        assert settings.list_limit == 7

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("SKYBACKUP_STORAGE_TOKEN=from-dotenv\n")
        assert BackupSettings().storage_token == "from-dotenv"

    def test_unknown_keys_ignored(self, monkeypatch):
        monkeypatch.setenv("SKYBACKUP_NOT_A_SETTING", "x")
        assert BackupSettings().log_level == "INFO"
