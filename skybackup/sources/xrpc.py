"""XRPC snapshot source: reads a repository from an atproto PDS over HTTP.

Endpoints used:

- ``com.atproto.sync.getRepo``: the full repository as a CAR archive.
- ``com.atproto.repo.listRecords``: post records, paginated by cursor.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from skybackup.models.records import ListedRecord
from skybackup.sources import SnapshotFetchError

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_URL = "https://bsky.social"
POST_COLLECTION = "app.bsky.feed.post"
DEFAULT_LIST_LIMIT = 50
_MAX_PAGE_SIZE = 100


class XrpcSnapshotSource:
    """Snapshot source backed by a PDS's XRPC endpoints.

    Parameters
    ----------
    service_url:
        Base URL of the PDS, e.g. ``https://bsky.social``.
    access_token:
        Optional bearer token for authenticated requests.
    timeout:
        Per-request timeout in seconds.
    session:
        A ``requests.Session`` to reuse; one is created if omitted.
    """

    def __init__(
        self,
        service_url: str = DEFAULT_SERVICE_URL,
        *,
        access_token: str = "",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base = service_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        if access_token:
            self._session.headers["Authorization"] = f"Bearer {access_token}"

    @property
    def service_url(self) -> str:
        return self._base

    def _get(self, method: str, action: str, params: dict[str, Any]) -> requests.Response:
        url = f"{self._base}/xrpc/{method}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SnapshotFetchError(f"Failed to {action}: {exc}") from exc
        return response

    def fetch_archive(self, identity: str) -> bytes:
        """Download the repository of *identity* (a DID) as CAR bytes."""
        if not identity:
            raise SnapshotFetchError("No DID given for repository export")
        response = self._get(
            "com.atproto.sync.getRepo", "get repository archive", {"did": identity}
        )
        logger.info("Retrieved %d bytes of CAR data for %s", len(response.content), identity)
        return response.content

    def list_records(self, identity: str, limit: int | None = None) -> list[ListedRecord]:
        """List post records of *identity*, following cursors up to *limit*."""
        if not identity:
            raise SnapshotFetchError("No DID given for record listing")
        remaining = limit or DEFAULT_LIST_LIMIT
        cursor: str | None = None
        records: list[ListedRecord] = []

        while remaining > 0:
            params: dict[str, Any] = {
                "repo": identity,
                "collection": POST_COLLECTION,
                "limit": min(remaining, _MAX_PAGE_SIZE),
            }
            if cursor:
                params["cursor"] = cursor
            response = self._get("com.atproto.repo.listRecords", "get posts", params)
            try:
                body = response.json()
                page = [ListedRecord.model_validate(r) for r in body.get("records", [])]
            except ValueError as exc:
                raise SnapshotFetchError(f"Failed to get posts: malformed response: {exc}") from exc

            records.extend(page)
            remaining -= len(page)
            cursor = body.get("cursor")
            if not page or not cursor:
                break

        logger.info(
            "Retrieved %d post%s for %s", len(records), "" if len(records) == 1 else "s", identity
        )
        return records
