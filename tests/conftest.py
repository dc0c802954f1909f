"""Shared test fixtures for Skybackup."""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import dag_cbor
import pytest
from multiformats import CID

from skybackup.core.backup_writer import BackupWriter
from skybackup.core.upload_orchestrator import UploadOrchestrator
from skybackup.decisions import ScriptedDecisions
from skybackup.models.records import ListedRecord
from skybackup.models.upload import Namespace, Principal, UploadStep
from skybackup.storage import AuthenticationRequired, StorageError

DAG_CBOR = 0x71
RAW = 0x55

FIXED_MOMENT = datetime(2026, 10, 19, 9, 30, 12, 45000, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# CAR construction helpers
# ---------------------------------------------------------------------------


def encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def make_cid(data: bytes, codec: int = DAG_CBOR) -> bytes:
    """Binary CIDv1 with a sha2-256 multihash over *data*."""
    return bytes([0x01, codec, 0x12, 0x20]) + hashlib.sha256(data).digest()


def make_car(
    payloads: Sequence[bytes],
    *,
    codecs: Sequence[int] | None = None,
    roots: Sequence[bytes] | None = None,
) -> bytes:
    """Build a CARv1 container holding *payloads* in order."""
    codecs = codecs or [DAG_CBOR] * len(payloads)
    cids = [make_cid(p, c) for p, c in zip(payloads, codecs)]
    if roots is None:
        roots = cids[:1]
    header = dag_cbor.encode({"version": 1, "roots": [CID.decode(r) for r in roots]})
    out = bytearray(encode_varint(len(header)) + header)
    for cid, payload in zip(cids, payloads):
        out += encode_varint(len(cid) + len(payload)) + cid + payload
    return bytes(out)


@pytest.fixture
def car_builder() -> Callable[..., bytes]:
    return make_car


@pytest.fixture
def sample_car() -> bytes:
    """Three blocks: two posts and one payload the codec rejects."""
    return make_car(
        [
            dag_cbor.encode({"text": "a"}),
            dag_cbor.encode({"text": "b"}),
            b"\x1c\x1d\x1e\x1f\x00",
        ]
    )


# ---------------------------------------------------------------------------
# Writer fixtures
# ---------------------------------------------------------------------------


class StepClock:
    """Returns a fixed moment, advancing by *step* on every call."""

    def __init__(self, start: datetime = FIXED_MOMENT, step: timedelta = timedelta(0)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        moment = self.now
        self.now = self.now + self.step
        return moment


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    """A backup directory that does not exist yet."""
    return tmp_path / "bsky-backup"


@pytest.fixture
def clock() -> StepClock:
    return StepClock(step=timedelta(seconds=1))


@pytest.fixture
def writer(backup_dir: Path, clock: StepClock) -> BackupWriter:
    return BackupWriter(backup_dir, clock=clock)


# ---------------------------------------------------------------------------
# Storage and decision fixtures
# ---------------------------------------------------------------------------


class FakeStorageBackend:
    """In-memory storage backend with per-step fault injection.

    Parameters
    ----------
    namespaces:
        Namespaces listed by the backend.
    fail_at:
        Upload step whose backend call raises.
    required_identity:
        When set, ``authenticate`` rejects any other identity.
    """

    def __init__(
        self,
        namespaces: Sequence[Namespace] = (),
        *,
        fail_at: UploadStep | None = None,
        required_identity: str | None = None,
        content_id: str | None = None,
    ) -> None:
        self.namespaces = list(namespaces)
        self.fail_at = fail_at
        self.required_identity = required_identity
        self.content_id = content_id
        self.calls: list[str] = []
        self.stored: list[dict[str, Any]] = []

    def connect(self) -> object:
        self.calls.append("connect")
        if self.fail_at is UploadStep.CONNECT:
            raise ConnectionError("node unreachable")
        return object()

    def authenticate(self, client: Any, identity: str | None) -> Principal:
        self.calls.append("authenticate")
        if self.fail_at is UploadStep.AUTHENTICATE:
            raise StorageError("token expired")
        if self.required_identity is not None and identity != self.required_identity:
            raise AuthenticationRequired("identity required")
        return Principal(principal_id="did:key:z6Mkfake", display_name="fake")

    def list_namespaces(self, client: Any) -> list[Namespace]:
        self.calls.append("list_namespaces")
        if self.fail_at is UploadStep.SELECT_NAMESPACE:
            raise StorageError("listing refused")
        return list(self.namespaces)

    def create_namespace(self, client: Any, name: str, principal: Principal) -> Namespace:
        self.calls.append("create_namespace")
        namespace = Namespace(namespace_id=f"did:key:{name}", name=name)
        self.namespaces.append(namespace)
        return namespace

    def store(
        self, client: Any, data: bytes, mime_type: str, *, namespace: Namespace, name: str
    ) -> str:
        self.calls.append("store")
        if self.fail_at is UploadStep.STORE:
            raise StorageError("upload rejected")
        self.stored.append(
            {"data": data, "mime_type": mime_type, "namespace": namespace, "name": name}
        )
        if self.content_id is not None:
            return self.content_id
        return "bafk" + hashlib.sha256(data).hexdigest()[:24]


class FakeSnapshotSource:
    """Snapshot source serving canned archive bytes and records."""

    def __init__(
        self, archive: bytes = b"", records: Sequence[ListedRecord] = ()
    ) -> None:
        self.archive = archive
        self.records = list(records)
        self.calls: list[tuple[str, str]] = []

    def fetch_archive(self, identity: str) -> bytes:
        self.calls.append(("fetch_archive", identity))
        return self.archive

    def list_records(self, identity: str, limit: int | None = None) -> list[ListedRecord]:
        self.calls.append(("list_records", identity))
        return self.records[:limit] if limit else list(self.records)


@pytest.fixture
def space() -> Namespace:
    return Namespace(namespace_id="did:key:z6Mkspace", name="bluesky-backups")


@pytest.fixture
def backend(space: Namespace) -> FakeStorageBackend:
    return FakeStorageBackend([space])


@pytest.fixture
def decisions() -> ScriptedDecisions:
    return ScriptedDecisions()


@pytest.fixture
def uploader(backend: FakeStorageBackend, decisions: ScriptedDecisions) -> UploadOrchestrator:
    return UploadOrchestrator(backend, decisions)
