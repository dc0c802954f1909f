"""Snapshot source protocol.

A snapshot source supplies repository data for a backup, either as the
raw archive export or as an already enumerated list of post records.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from skybackup.models.records import ListedRecord


class SnapshotFetchError(RuntimeError):
    """Raised when the source service cannot supply the snapshot."""


@runtime_checkable
class SnapshotSource(Protocol):
    """Protocol every snapshot source implements."""

    def fetch_archive(self, identity: str) -> bytes:
        """Return the repository archive (CAR bytes) for *identity*."""
        ...

    def list_records(self, identity: str, limit: int | None = None) -> list[ListedRecord]:
        """Return up to *limit* post records for *identity*."""
        ...
