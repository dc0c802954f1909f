"""Unit tests for the XRPC snapshot source, against a stubbed session."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from skybackup.sources import SnapshotFetchError, SnapshotSource
from skybackup.sources.xrpc import POST_COLLECTION, XrpcSnapshotSource

DID = "did:plc:abc123"


def _response(*, content: bytes = b"", body: dict | None = None, status: int = 200) -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.content = content
    response.status_code = status
    response.json.return_value = body or {}
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    return response


def _record(i: int) -> dict:
    return {
        "uri": f"at://{DID}/{POST_COLLECTION}/{i}",
        "cid": f"bafyreipost{i}",
        "value": {"text": f"post {i}", "createdAt": "2026-10-01T00:00:00Z"},
    }


@pytest.fixture
def session() -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


class TestXrpcSnapshotSource:
    def test_satisfies_protocol(self, session):
        assert isinstance(XrpcSnapshotSource(session=session), SnapshotSource)

    def test_access_token_sets_header(self, session):
        XrpcSnapshotSource(access_token="jwt", session=session)
        assert session.headers["Authorization"] == "Bearer jwt"

    def test_fetch_archive(self, session):
        session.get.return_value = _response(content=b"car bytes")
        source = XrpcSnapshotSource("https://pds.example/", session=session)

        assert source.fetch_archive(DID) == b"car bytes"
        args, kwargs = session.get.call_args
        assert args[0] == "https://pds.example/xrpc/com.atproto.sync.getRepo"
        assert kwargs["params"] == {"did": DID}

    def test_fetch_archive_http_error(self, session):
        session.get.return_value = _response(status=500)
        with pytest.raises(SnapshotFetchError, match="Failed to get repository archive"):
            XrpcSnapshotSource(session=session).fetch_archive(DID)

    def test_fetch_archive_transport_error(self, session):
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(SnapshotFetchError):
            XrpcSnapshotSource(session=session).fetch_archive(DID)

    def test_missing_did(self, session):
        with pytest.raises(SnapshotFetchError):
            XrpcSnapshotSource(session=session).fetch_archive("")

    def test_list_records_single_page(self, session):
        session.get.return_value = _response(body={"records": [_record(0), _record(1)]})
        records = XrpcSnapshotSource(session=session).list_records(DID, limit=10)

        assert [r.text for r in records] == ["post 0", "post 1"]
        params = session.get.call_args.kwargs["params"]
        assert params == {"repo": DID, "collection": POST_COLLECTION, "limit": 10}

    def test_list_records_follows_cursor(self, session):
        session.get.side_effect = [
            _response(body={"records": [_record(0), _record(1)], "cursor": "c1"}),
            _response(body={"records": [_record(2)], "cursor": "c2"}),
        ]
        records = XrpcSnapshotSource(session=session).list_records(DID, limit=3)

        assert len(records) == 3
        second = session.get.call_args_list[1].kwargs["params"]
        assert second["cursor"] == "c1"
        assert second["limit"] == 1

    def test_list_records_stops_on_empty_page(self, session):
        session.get.return_value = _response(body={"records": [], "cursor": "c1"})
        assert XrpcSnapshotSource(session=session).list_records(DID) == []
        assert session.get.call_count == 1

    def test_list_records_http_error(self, session):
        session.get.return_value = _response(status=400)
        with pytest.raises(SnapshotFetchError, match="Failed to get posts"):
            XrpcSnapshotSource(session=session).list_records(DID)
