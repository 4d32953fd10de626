"""MemoryObjectStore — dict-backed ObjectStore for development and tests."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import IO, TYPE_CHECKING

from .exceptions import PathNotFoundError
from .types import ObjectInfo, ObjectListing

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_CHUNK_SIZE = 64 * 1024


class MemoryObjectStore:
    """In-process object store with S3 listing semantics.

    Keys are kept in a plain dict.  ``list_objects`` folds keys below the
    first delimiter into common prefixes the way S3 does.  Unlike S3,
    ``delete_object`` reports missing keys with ``PathNotFoundError``.
    """

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self._objects: dict[str, tuple[bytes, datetime]] = {}
        for key, data in (objects or {}).items():
            self._objects[key] = (data, datetime.now(UTC))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    def keys(self) -> list[str]:
        return sorted(self._objects)

    def read(self, key: str) -> bytes:
        return self._objects[key][0]

    # ------------------------------------------------------------------
    # ObjectStore protocol
    # ------------------------------------------------------------------

    async def list_objects(self, prefix: str, delimiter: str = "/") -> ObjectListing:
        listing = ObjectListing(prefix=prefix)
        seen_prefixes: set[str] = set()
        for key in sorted(self._objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            idx = rest.find(delimiter) if delimiter else -1
            if idx != -1:
                common = prefix + rest[: idx + 1]
                if common not in seen_prefixes:
                    seen_prefixes.add(common)
                    listing.common_prefixes.append(common)
                continue
            data, modified = self._objects[key]
            listing.objects.append(ObjectInfo(key=key, size=len(data), last_modified=modified))
        return listing

    async def list_keys(self, prefix: str) -> list[str]:
        return [key for key in sorted(self._objects) if key.startswith(prefix)]

    async def put_object(
        self,
        key: str,
        body: IO[bytes],
        content_length: int,
        content_type: str | None = None,
    ) -> None:
        self._objects[key] = (body.read(content_length), datetime.now(UTC))

    async def copy_object(self, source_key: str, dest_key: str) -> None:
        if source_key not in self._objects:
            raise PathNotFoundError(source_key)
        data, _ = self._objects[source_key]
        self._objects[dest_key] = (data, datetime.now(UTC))

    async def delete_object(self, key: str) -> None:
        if self._objects.pop(key, None) is None:
            raise PathNotFoundError(key)

    async def delete_objects(self, keys: list[str]) -> None:
        for key in keys:
            self._objects.pop(key, None)

    async def get_object(self, key: str) -> AsyncIterator[bytes]:
        if key not in self._objects:
            raise PathNotFoundError(key)
        data = self._objects[key][0]
        return _iter_chunks(data)


async def _iter_chunks(data: bytes) -> AsyncIterator[bytes]:
    for start in range(0, len(data), _CHUNK_SIZE):
        yield data[start : start + _CHUNK_SIZE]
