"""Shared fixtures for s3fm tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from s3fm.audit import AuditEmitter, AuditEvent
from s3fm.dispatcher import RequestDispatcher
from s3fm.fs.memory_store import MemoryObjectStore
from s3fm.fs.object_fs import ObjectStorageBackend
from s3fm.fs.permissions import AllowAllAccessPolicy, PermissionGate
from s3fm.fs.types import UserContext

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


class RecordingStore(MemoryObjectStore):
    """MemoryObjectStore that records every protocol call as ``(method, args)``."""

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        super().__init__(objects)
        self.calls: list[tuple[str, tuple]] = []
        self.fail_on: dict[str, Exception] = {}

    def _note(self, method: str, *args: object) -> None:
        self.calls.append((method, args))
        error = self.fail_on.get(method)
        if error is not None:
            raise error

    def methods(self) -> list[str]:
        return [m for m, _ in self.calls]

    async def list_objects(self, prefix, delimiter="/"):
        self._note("list_objects", prefix, delimiter)
        return await super().list_objects(prefix, delimiter)

    async def list_keys(self, prefix):
        self._note("list_keys", prefix)
        return await super().list_keys(prefix)

    async def put_object(self, key, body, content_length, content_type=None):
        self._note("put_object", key)
        await super().put_object(key, body, content_length, content_type)

    async def copy_object(self, source_key, dest_key):
        self._note("copy_object", source_key, dest_key)
        await super().copy_object(source_key, dest_key)

    async def delete_object(self, key):
        self._note("delete_object", key)
        await super().delete_object(key)

    async def delete_objects(self, keys):
        self._note("delete_objects", *keys)
        await super().delete_objects(keys)

    async def get_object(self, key):
        self._note("get_object", key)
        return await super().get_object(key)


class CollectingSink:
    """Audit sink that keeps events in memory."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def log(self, event: AuditEvent) -> None:
        self.events.append(event)


@pytest.fixture
def user() -> UserContext:
    return UserContext(id="alice", roles=("staff",))


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore(
        {
            "docs/a.txt": b"alpha",
            "docs/reports/": b"",
            "docs/reports/q1.csv": b"1,2,3",
            "readme.md": b"# hi",
        }
    )


@pytest.fixture
def backend(store: RecordingStore) -> ObjectStorageBackend:
    return ObjectStorageBackend(store)


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def dispatcher(backend: ObjectStorageBackend, sink: CollectingSink) -> RequestDispatcher:
    return RequestDispatcher(
        backend, PermissionGate(AllowAllAccessPolicy()), AuditEmitter([sink])
    )


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
