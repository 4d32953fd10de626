"""Listing engine — infer a one-level directory view from flat object keys."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import StorageFailure
from .types import FileEntry
from .utils import (
    ROOT,
    canonicalize,
    is_folder_key,
    key_to_path,
    leaf_name,
    path_to_key,
    strip_folder,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .protocol import ObjectStore
    from .types import ObjectListing

logger = logging.getLogger(__name__)


def merge_entries(path: str, entries: Iterable[FileEntry]) -> list[FileEntry]:
    """Deduplicate *entries* for a listing of *path*.

    Entries are keyed by their stored path without the trailing slash
    (case-insensitive).  Directory entries win over same-named file
    entries, and the entry for *path* itself is dropped.  First-seen order
    is kept among the survivors.
    """
    self_key = canonicalize(path).casefold()
    chosen: dict[str, FileEntry] = {}
    for entry in entries:
        key = strip_folder(entry.path).casefold()
        if key == self_key:
            continue
        existing = chosen.get(key)
        if existing is None or (entry.is_directory and not existing.is_directory):
            chosen[key] = entry
    return list(chosen.values())


class ListingEngine:
    """Builds ``FileEntry`` views over an ``ObjectStore``.

    Three entry classes are reconciled:

    - common prefixes reported by the store (virtual folders)
    - zero-byte objects whose key ends in ``/`` (folder placeholders)
    - ordinary objects (files)
    """

    def __init__(self, store: ObjectStore, *, log: logging.Logger | None = None) -> None:
        self._store = store
        self._log = log or logger

    async def list(self, path: str) -> list[FileEntry]:
        canonical = canonicalize(path)
        prefix = path_to_key(canonical, is_directory=True)
        try:
            listing = await self._store.list_objects(prefix, delimiter="/")
        except StorageFailure:
            raise
        except Exception as e:
            raise StorageFailure(
                f"Failed to list {canonical}", paths=[canonical], cause=e
            ) from e

        entries = merge_entries(canonical, self._entries_from(listing))
        self._log.debug(
            "Listed %s: %d prefixes, %d objects -> %d entries",
            canonical,
            len(listing.common_prefixes),
            len(listing.objects),
            len(entries),
        )
        return entries

    async def list_keys(self, prefix: str) -> list[str]:
        """Recursive key enumeration, wrapped in ``StorageFailure`` on error."""
        try:
            return await self._store.list_keys(prefix)
        except StorageFailure:
            raise
        except Exception as e:
            path = key_to_path(prefix)
            raise StorageFailure(f"Failed to enumerate {path}", paths=[path], cause=e) from e

    @staticmethod
    def _entries_from(listing: ObjectListing) -> list[FileEntry]:
        entries: list[FileEntry] = []

        for prefix in listing.common_prefixes:
            if prefix == listing.prefix:
                continue
            entries.append(
                FileEntry(name=leaf_name(prefix), path=key_to_path(prefix), is_directory=True)
            )

        for obj in listing.objects:
            if obj.key == listing.prefix:
                continue
            if is_folder_key(obj.key):
                entries.append(
                    FileEntry(
                        name=leaf_name(obj.key),
                        path=key_to_path(obj.key),
                        is_directory=True,
                        last_modified=obj.last_modified,
                    )
                )
            else:
                entries.append(
                    FileEntry(
                        name=leaf_name(obj.key),
                        path=key_to_path(obj.key),
                        is_directory=False,
                        size=obj.size,
                        last_modified=obj.last_modified,
                    )
                )

        return [e for e in entries if e.path != ROOT]
