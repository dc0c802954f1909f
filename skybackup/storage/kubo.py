"""IPFS Kubo RPC storage backend.

Talks to a Kubo node's RPC API (``/api/v0``). Namespaces are MFS
directories under a root directory (``/skybackup`` by default); storing a
backup adds and pins the bytes, then links them into the namespace
directory under the backup's file name.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import requests

from skybackup.models.upload import Namespace, Principal
from skybackup.storage import AuthenticationRequired, StorageError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://127.0.0.1:5001"
DEFAULT_ROOT = "/skybackup"
_MFS_DIRECTORY = 1
_AUTH_STATUSES = (401, 403)


class KuboClient:
    """Client handle returned by :meth:`KuboStorageBackend.connect`."""

    def __init__(self, api_url: str, session: requests.Session, timeout: float) -> None:
        self.api_url = api_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self.version = ""

    def call(
        self,
        command: str,
        *,
        params: list[tuple[str, str]] | dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> requests.Response:
        """POST an RPC command and return the response.

        Raises
        ------
        StorageError
            For transport errors and non-success responses.
        """
        url = f"{self.api_url}/api/v0/{command}"
        try:
            response = self.session.post(url, params=params, files=files, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StorageError(f"{command}: {exc}") from exc
        if response.status_code in _AUTH_STATUSES:
            raise AuthenticationRequired(f"{command}: HTTP {response.status_code}")
        if not response.ok:
            raise StorageError(f"{command}: {_error_message(response)}")
        return response


def _error_message(response: requests.Response) -> str:
    try:
        return str(response.json().get("Message") or response.reason)
    except ValueError:
        return f"HTTP {response.status_code} {response.reason}"


def _last_json_line(text: str) -> dict[str, Any]:
    """Parse the final JSON object of a (possibly streamed) RPC response."""
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise StorageError("Empty response from storage node")
    try:
        return json.loads(lines[-1])
    except ValueError as exc:
        raise StorageError(f"Malformed response from storage node: {exc}") from exc


class KuboStorageBackend:
    """Storage backend for an IPFS Kubo node.

    Parameters
    ----------
    api_url:
        RPC endpoint, e.g. ``http://127.0.0.1:5001``.
    root:
        MFS directory holding one subdirectory per namespace.
    timeout:
        Per-request timeout in seconds.
    session_factory:
        Builds the HTTP session; injectable for tests.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        *,
        root: str = DEFAULT_ROOT,
        timeout: float = 60.0,
        session_factory: Any = requests.Session,
    ) -> None:
        self._api_url = api_url
        self._root = "/" + root.strip("/")
        self._timeout = timeout
        self._session_factory = session_factory

    def connect(self) -> KuboClient:
        client = KuboClient(self._api_url, self._session_factory(), self._timeout)
        try:
            body = client.call("version").json()
            client.version = str(body.get("Version", ""))
        except AuthenticationRequired:
            # reachable, credentials come in the authenticate step
            logger.debug("Storage node at %s requires authentication", self._api_url)
        logger.info("Connected to storage node at %s", self._api_url)
        return client

    def authenticate(self, client: KuboClient, identity: str | None) -> Principal:
        if identity:
            scheme = identity if " " in identity else f"Bearer {identity}"
            client.session.headers["Authorization"] = scheme
        try:
            body = client.call("id").json()
        except AuthenticationRequired:
            if identity:
                raise StorageError("Storage node rejected the supplied credentials")
            raise
        peer_id = str(body.get("ID", ""))
        if not peer_id:
            raise StorageError("Storage node did not report a peer identity")
        return Principal(principal_id=peer_id, display_name=str(body.get("AgentVersion", "")))

    def list_namespaces(self, client: KuboClient) -> list[Namespace]:
        client.call("files/mkdir", params={"arg": self._root, "parents": "true"})
        body = client.call("files/ls", params={"arg": self._root, "long": "true"}).json()
        entries = body.get("Entries") or []
        return [
            Namespace(namespace_id=f"{self._root}/{e['Name']}", name=e["Name"])
            for e in entries
            if e.get("Type") == _MFS_DIRECTORY
        ]

    def create_namespace(self, client: KuboClient, name: str, principal: Principal) -> Namespace:
        if not name or "/" in name:
            raise StorageError(f"Invalid space name: {name!r}")
        path = f"{self._root}/{name}"
        client.call("files/mkdir", params={"arg": path, "parents": "true"})
        logger.info("Created space %s for %s", path, principal.principal_id)
        return Namespace(namespace_id=path, name=name)

    def store(
        self,
        client: KuboClient,
        data: bytes,
        mime_type: str,
        *,
        namespace: Namespace,
        name: str,
    ) -> str:
        response = client.call(
            "add",
            params={"cid-version": "1", "pin": "true"},
            files={"file": (name, data, mime_type)},
        )
        content_id = str(_last_json_line(response.text).get("Hash", ""))
        if not content_id:
            raise StorageError("Storage node did not return a content identifier")

        target = f"{namespace.namespace_id}/{name}"
        try:
            client.call("files/cp", params=[("arg", f"/ipfs/{content_id}"), ("arg", target)])
        except StorageError as exc:
            if "already" not in str(exc):
                raise
            logger.info("%s is already linked in %s", name, namespace.label)
        return content_id
