"""Turn arbitrary upload byte streams into seekable buffers."""

from __future__ import annotations

import inspect
import io
import os
from typing import IO, Any, Protocol, Union, runtime_checkable

_READ_CHUNK = 1024 * 1024


@runtime_checkable
class AsyncReadable(Protocol):
    """Anything with ``async read(size)`` (e.g. Starlette ``UploadFile``)."""

    async def read(self, size: int = -1) -> bytes: ...


UploadSource = Union[bytes, bytearray, memoryview, IO[bytes], AsyncReadable]


def _is_seekable(stream: Any) -> bool:
    seekable = getattr(stream, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


async def to_seekable(content: UploadSource) -> tuple[IO[bytes], int]:
    """Return ``(buffer, length)`` positioned at the start of the payload.

    Random-access streams are used in place; anything else is read fully
    into memory first so the content length is known up front.
    """
    if isinstance(content, (bytes, bytearray, memoryview)):
        data = bytes(content)
        return io.BytesIO(data), len(data)

    if not inspect.iscoroutinefunction(getattr(content, "read", None)) and _is_seekable(content):
        stream: IO[bytes] = content  # type: ignore[assignment]
        start = stream.tell()
        end = stream.seek(0, os.SEEK_END)
        stream.seek(start)
        return stream, end - start

    buffer = io.BytesIO()
    while True:
        chunk = content.read(_READ_CHUNK)
        if inspect.isawaitable(chunk):
            chunk = await chunk
        if not chunk:
            break
        buffer.write(chunk)
    length = buffer.tell()
    buffer.seek(0)
    return buffer, length
