"""ObjectStorageBackend — the StorageBackend contract over a flat ObjectStore."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import PathNotFoundError, StorageFailure, ValidationError
from .listing import ListingEngine
from .mutations import MutationEngine
from .utils import ROOT, canonicalize, is_directory_path, path_to_key

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .protocol import ObjectStore
    from .types import FileEntry, UserContext
    from .upload import UploadSource


class ObjectStorageBackend:
    """Hierarchical view over any ``ObjectStore``.

    Implements the ``StorageBackend`` protocol.  Listing goes through the
    ``ListingEngine``; every mutation goes through the ``MutationEngine``.
    ``upload`` of a trailing-slash path creates a folder placeholder.

    Usage::

        backend = ObjectStorageBackend(S3ObjectStore(...))
        await backend.open()
        entries = await backend.list("/reports", user)
        await backend.close()
    """

    def __init__(self, store: ObjectStore, *, log: logging.Logger | None = None) -> None:
        self._store = store
        self._listing = ListingEngine(store, log=log)
        self._mutations = MutationEngine(store, self._listing, log=log)

    @property
    def store(self) -> ObjectStore:
        return self._store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        await self._store.open()

    async def close(self) -> None:
        await self._store.close()

    # ------------------------------------------------------------------
    # StorageBackend protocol
    # ------------------------------------------------------------------

    async def list(self, path: str, user: UserContext) -> list[FileEntry]:
        return await self._listing.list(path)

    async def upload(self, path: str, content: UploadSource, user: UserContext) -> None:
        if is_directory_path(path) and canonicalize(path) != ROOT:
            await self._mutations.create_folder(path)
        else:
            await self._mutations.upload(path, content)

    async def delete(self, path: str, user: UserContext) -> None:
        await self._mutations.delete(path)

    async def move(self, from_path: str, to_path: str, user: UserContext) -> None:
        await self._mutations.move(from_path, to_path)

    async def open_read(self, path: str, user: UserContext) -> AsyncIterator[bytes]:
        canonical = canonicalize(path)
        if is_directory_path(path) or canonical == ROOT:
            raise ValidationError(f"Cannot download a folder: {canonical}")
        key = path_to_key(canonical, is_directory=False)
        try:
            return await self._store.get_object(key)
        except PathNotFoundError as e:
            raise StorageFailure(f"File not found: {canonical}", paths=[canonical], cause=e) from e
        except Exception as e:
            raise StorageFailure(f"Failed to read {canonical}", paths=[canonical], cause=e) from e
