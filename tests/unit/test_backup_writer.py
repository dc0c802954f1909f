"""Unit tests for BackupWriter: naming, envelope, empty guard and atomicity."""

from __future__ import annotations

import json
import os
from datetime import timedelta
from pathlib import Path

import pytest

from conftest import FIXED_MOMENT, StepClock
from skybackup.core.backup_writer import (
    BackupCollisionError,
    BackupWriter,
    NoRecordsError,
    artifact_name,
)
from skybackup.models.artifacts import BackupFormat
from skybackup.models.records import DecodedRecord, ListedRecord, RawPayload, StructuredPayload


def _records():
    return [
        DecodedRecord(identifier="bafyreia", payload=StructuredPayload(document={"text": "a"})),
        DecodedRecord(identifier="bafkreib", payload=RawPayload(data=b"\x01\x02")),
    ]


class TestNaming:
    def test_document_name(self):
        assert (
            artifact_name("bluesky-posts", BackupFormat.DOCUMENT, FIXED_MOMENT)
            == "bluesky-posts-2026-10-19T09-30-12-045Z.json"
        )

    def test_archive_name(self):
        assert artifact_name("p", BackupFormat.ARCHIVE, FIXED_MOMENT) == "p-2026-10-19T09-30-12-045Z.car"

    def test_names_sort_in_time_order(self):
        moments = [FIXED_MOMENT + timedelta(milliseconds=ms) for ms in (0, 5, 999, 1000, 60000)]
        names = [artifact_name("p", BackupFormat.ARCHIVE, m) for m in moments]
        assert sorted(names) == names


class TestWriteDocument:
    def test_envelope_layout(self, writer, backup_dir):
        artifact = writer.write_document(_records())
        assert artifact.path.parent == backup_dir
        assert artifact.format is BackupFormat.DOCUMENT
        assert artifact.record_count == 2

        body = json.loads(artifact.path.read_text(encoding="utf-8"))
        assert body["backupDate"] == "2026-10-19T09:30:12.045Z"
        assert body["postCount"] == 2
        assert body["posts"] == [
            {"cid": "bafyreia", "data": {"text": "a"}},
            {"cid": "bafkreib", "data": {"bytes": [1, 2]}},
        ]
        assert artifact.size_bytes == artifact.path.stat().st_size

    def test_json_is_indented(self, writer):
        text = writer.write_document(_records()).path.read_text(encoding="utf-8")
        assert text.startswith('{\n  "backupDate"')

    def test_listed_records(self, writer):
        record = ListedRecord(
            uri="at://did:plc:abc/app.bsky.feed.post/1",
            cid="bafyreic",
            value={"text": "héllo", "createdAt": "2026-10-01T00:00:00Z"},
        )
        artifact = writer.write_document([record])
        text = artifact.path.read_text(encoding="utf-8")
        assert "héllo" in text
        assert json.loads(text)["posts"][0]["uri"] == record.uri

    def test_empty_records_write_nothing(self, writer, backup_dir):
        with pytest.raises(NoRecordsError):
            writer.write_document([])
        assert backup_dir.is_dir()
        assert list(backup_dir.iterdir()) == []


class TestWriteArchive:
    def test_bytes_are_written_verbatim(self, writer):
        data = bytes(range(256)) * 4
        artifact = writer.write_archive(data)
        assert artifact.path.read_bytes() == data
        assert artifact.path.suffix == ".car"
        assert artifact.size_bytes == len(data)
        assert artifact.record_count is None

    def test_creates_nested_backup_dir(self, tmp_path):
        target = tmp_path / "a" / "b" / "c"
        artifact = BackupWriter(target, clock=StepClock()).write_archive(b"car")
        assert artifact.path.parent == target


class TestWriteDispatch:
    def test_archive_requires_bytes(self, writer):
        with pytest.raises(TypeError):
            writer.write(_records(), BackupFormat.ARCHIVE)

    def test_document_rejects_bytes(self, writer):
        with pytest.raises(TypeError):
            writer.write(b"car", BackupFormat.DOCUMENT)

    def test_dispatches_by_format(self, writer):
        assert writer.write(b"car", BackupFormat.ARCHIVE).format is BackupFormat.ARCHIVE
        assert writer.write(_records(), BackupFormat.DOCUMENT).format is BackupFormat.DOCUMENT


class TestNoOverwrite:
    def test_collision_raises_and_keeps_original(self, backup_dir):
        writer = BackupWriter(backup_dir, clock=StepClock())
        first = writer.write_archive(b"first")
        with pytest.raises(BackupCollisionError):
            writer.write_archive(b"second")
        assert first.path.read_bytes() == b"first"
        assert len(list(backup_dir.iterdir())) == 1

    def test_collision_is_a_file_exists_error(self):
        assert issubclass(BackupCollisionError, FileExistsError)

    def test_consecutive_writes_get_distinct_names(self, writer):
        a = writer.write_archive(b"one")
        b = writer.write_archive(b"two")
        assert a.path != b.path
        assert a.path.read_bytes() == b"one"


class TestAtomicity:
    def test_failed_link_leaves_no_files(self, writer, backup_dir, monkeypatch):
        def fail(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "link", fail)
        with pytest.raises(OSError, match="disk full"):
            writer.write_archive(b"data")
        assert list(backup_dir.iterdir()) == []

    def test_no_partial_file_left_after_success(self, writer, backup_dir):
        artifact = writer.write_archive(b"data")
        assert [p.name for p in backup_dir.iterdir()] == [artifact.name]

    def test_file_created_during_write_is_not_replaced(self, writer, backup_dir, monkeypatch):
        real_link = os.link

        def racing_link(src, dst):
            Path(dst).write_bytes(b"other writer")
            real_link(src, dst)

        monkeypatch.setattr(os, "link", racing_link)
        with pytest.raises(BackupCollisionError):
            writer.write_archive(b"data")
        (existing,) = list(backup_dir.iterdir())
        assert existing.read_bytes() == b"other writer"

    def test_unwritable_directory_propagates(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(OSError):
            BackupWriter(blocker, clock=StepClock()).write_archive(b"data")
