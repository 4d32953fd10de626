"""Mutation engine — folder creation, upload, delete, and move over flat keys.

Object stores have no rename.  Moves are copy-then-delete: every copy
completes before any source key is removed, so a failure part-way leaves
the source intact and the caller can retry.
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

from .exceptions import PathNotFoundError, StorageFailure, ValidationError
from .upload import to_seekable
from .utils import ROOT, canonicalize, guess_content_type, is_directory_path, path_to_key

if TYPE_CHECKING:
    from .listing import ListingEngine
    from .protocol import ObjectStore
    from .upload import UploadSource

logger = logging.getLogger(__name__)


class MutationEngine:
    """Create, upload, delete, and move against an ``ObjectStore``.

    Paths with a trailing slash denote directories.  All store errors
    surface as ``StorageFailure`` carrying the attempted path(s); the only
    tolerated error is a missing placeholder when deleting an empty folder.
    """

    def __init__(
        self,
        store: ObjectStore,
        listing: ListingEngine,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._listing = listing
        self._log = log or logger

    # ------------------------------------------------------------------
    # Create / Upload
    # ------------------------------------------------------------------

    async def create_folder(self, path: str) -> str:
        """Write a zero-length placeholder.  Existing folders are overwritten."""
        canonical = self._require_non_root(path, "create")
        key = path_to_key(canonical, is_directory=True)
        try:
            await self._store.put_object(key, io.BytesIO(b""), 0)
        except Exception as e:
            raise StorageFailure(
                f"Failed to create folder {canonical}", paths=[canonical], cause=e
            ) from e
        self._log.debug("Created folder placeholder %s", key)
        return key

    async def upload(self, path: str, content: UploadSource) -> str:
        canonical = self._require_non_root(path, "upload to")
        key = path_to_key(canonical, is_directory=False)
        try:
            body, length = await to_seekable(content)
            await self._store.put_object(
                key, body, length, content_type=guess_content_type(canonical)
            )
        except Exception as e:
            raise StorageFailure(
                f"Failed to upload {canonical}", paths=[canonical], cause=e
            ) from e
        self._log.debug("Uploaded %s (%d bytes)", key, length)
        return key

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, path: str) -> list[str]:
        """Delete a file, or every key under a directory prefix.

        Returns the keys that were removed.
        """
        canonical = self._require_non_root(path, "delete")

        if not is_directory_path(path):
            key = path_to_key(canonical, is_directory=False)
            self._log.debug("Deleting file %s", key)
            try:
                await self._store.delete_object(key)
            except Exception as e:
                raise StorageFailure(
                    f"Failed to delete {canonical}", paths=[canonical], cause=e
                ) from e
            return [key]

        prefix = path_to_key(canonical, is_directory=True)
        keys = await self._listing.list_keys(prefix)
        self._log.debug("Deleting directory %s: %d keys", prefix, len(keys))

        if keys:
            await self._delete_keys(keys, canonical)
            return keys

        # The folder may only ever have existed as an inferred prefix.
        try:
            await self._store.delete_object(prefix)
        except PathNotFoundError:
            self._log.debug("Placeholder %s not found; treating as deleted", prefix)
            return []
        except Exception as e:
            raise StorageFailure(
                f"Failed to delete folder {canonical}", paths=[canonical], cause=e
            ) from e
        return [prefix]

    # ------------------------------------------------------------------
    # Move / Rename
    # ------------------------------------------------------------------

    async def move(self, from_path: str, to_path: str) -> list[tuple[str, str]]:
        """Move a file or a directory tree.

        Returns the ``(source_key, destination_key)`` pairs that were copied.
        """
        source = self._require_non_root(from_path, "move")
        destination = self._require_non_root(to_path, "move to")

        src_prefix = path_to_key(source, is_directory=True)
        keys: list[str] = []
        if is_directory_path(from_path):
            is_directory = True
        else:
            keys = await self._listing.list_keys(src_prefix)
            is_directory = bool(keys)
        self._log.debug(
            "Move %s -> %s detected as %s", source, destination, "directory" if is_directory else "file"
        )

        if not is_directory:
            src_key = path_to_key(source, is_directory=False)
            dest_key = path_to_key(destination, is_directory=False)
            if src_key == dest_key:
                self._log.debug("Move source and destination are identical: %s", src_key)
                return []
            await self._copy(src_key, dest_key, source, destination)
            try:
                await self._store.delete_object(src_key)
            except Exception as e:
                raise StorageFailure(
                    f"Copied but failed to delete source {source}",
                    paths=[source, destination],
                    cause=e,
                ) from e
            return [(src_key, dest_key)]

        dest_prefix = path_to_key(destination, is_directory=True)
        if dest_prefix == src_prefix:
            self._log.debug("Move source and destination are identical: %s", src_prefix)
            return []
        if dest_prefix.startswith(src_prefix):
            raise ValidationError(f"Cannot move {source} into itself")

        if not keys:
            keys = await self._listing.list_keys(src_prefix)
        if not keys:
            raise StorageFailure(
                f"Nothing to move under {source}", paths=[source, destination]
            )

        pairs = [(key, dest_prefix + key[len(src_prefix):]) for key in keys]
        for src_key, dest_key in pairs:
            await self._copy(src_key, dest_key, source, destination)
            self._log.debug("Copied %s -> %s", src_key, dest_key)

        await self._delete_keys(keys, source)
        return pairs

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _copy(self, src_key: str, dest_key: str, source: str, destination: str) -> None:
        try:
            await self._store.copy_object(src_key, dest_key)
        except Exception as e:
            raise StorageFailure(
                f"Failed to copy {source} -> {destination}",
                paths=[source, destination],
                cause=e,
            ) from e

    async def _delete_keys(self, keys: list[str], path: str) -> None:
        try:
            await self._store.delete_objects(keys)
        except StorageFailure:
            raise
        except Exception as e:
            raise StorageFailure(f"Failed to delete {path}", paths=[path], cause=e) from e

    @staticmethod
    def _require_non_root(path: str, verb: str) -> str:
        canonical = canonicalize(path)
        if canonical == ROOT:
            raise ValidationError(f"Cannot {verb} the root folder")
        return canonical
