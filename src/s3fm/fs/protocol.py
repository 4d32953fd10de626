"""StorageBackend and ObjectStore protocols — runtime-checkable interfaces.

``StorageBackend`` is the hierarchical contract the dispatcher depends on.
``ObjectStore`` is the flat key/value contract the listing and mutation
engines are built on.  A concrete backend is chosen once at start-up from
configuration; nothing downstream inspects its type.
"""

from __future__ import annotations

from typing import IO, TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .types import FileEntry, ObjectListing, UserContext
    from .upload import UploadSource


@runtime_checkable
class StorageBackend(Protocol):
    """Core interface every storage backend must implement.

    Paths may carry a trailing slash to denote a directory.
    """

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Called at start-up.  No-op if not needed."""
        ...

    async def close(self) -> None:
        """Called on shutdown."""
        ...

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def list(self, path: str, user: UserContext) -> list[FileEntry]: ...

    async def upload(self, path: str, content: UploadSource, user: UserContext) -> None: ...

    async def delete(self, path: str, user: UserContext) -> None: ...

    async def move(self, from_path: str, to_path: str, user: UserContext) -> None: ...

    async def open_read(self, path: str, user: UserContext) -> AsyncIterator[bytes]: ...


@runtime_checkable
class ObjectStore(Protocol):
    """Flat, prefix-addressable key/value store (S3 and friends)."""

    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def list_objects(self, prefix: str, delimiter: str = "/") -> ObjectListing: ...

    async def list_keys(self, prefix: str) -> list[str]: ...

    async def put_object(
        self,
        key: str,
        body: IO[bytes],
        content_length: int,
        content_type: str | None = None,
    ) -> None: ...

    async def copy_object(self, source_key: str, dest_key: str) -> None: ...

    async def delete_object(self, key: str) -> None: ...

    async def delete_objects(self, keys: list[str]) -> None: ...

    async def get_object(self, key: str) -> AsyncIterator[bytes]: ...
