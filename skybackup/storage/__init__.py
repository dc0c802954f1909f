"""Storage backend protocol for publishing backups.

A storage backend is a client of some content-addressed storage service.
The upload orchestrator drives it through five calls: ``connect``,
``authenticate``, ``list_namespaces`` / ``create_namespace`` and
``store``. Backends raise :class:`StorageError` (or any exception); the
orchestrator turns every failure into an aborted upload.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from skybackup.models.upload import Namespace, Principal


class StorageError(RuntimeError):
    """Raised when the storage backend rejects or fails a request."""


class AuthenticationRequired(StorageError):
    """Raised by ``authenticate`` when no usable identity was supplied."""


@runtime_checkable
class StorageBackend(Protocol):
    """Protocol every storage backend implements.

    The client handle returned by ``connect`` is opaque to callers and is
    passed back into every other call.
    """

    def connect(self) -> Any:
        """Open a client session with the backend."""
        ...

    def authenticate(self, client: Any, identity: str | None) -> Principal:
        """Resolve the authenticated principal for *client*."""
        ...

    def list_namespaces(self, client: Any) -> list[Namespace]:
        """Namespaces visible to the principal. May be empty."""
        ...

    def create_namespace(self, client: Any, name: str, principal: Principal) -> Namespace:
        """Create a namespace owned by *principal*."""
        ...

    def store(
        self,
        client: Any,
        data: bytes,
        mime_type: str,
        *,
        namespace: Namespace,
        name: str,
    ) -> str:
        """Store *data* and return its content identifier."""
        ...
