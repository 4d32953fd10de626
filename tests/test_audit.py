"""Tests for AuditEmitter and the stock audit sinks."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest
from conftest import CollectingSink
from sqlmodel import select

from s3fm.audit import (
    AuditAction,
    AuditEmitter,
    AuditEvent,
    AuditSink,
    DatabaseAuditSink,
    LoggingAuditSink,
    create_audit_tables,
)
from s3fm.models.audit import AuditRecord

# =========================================================================
# Helpers
# =========================================================================


class _FailingSink:
    async def log(self, event: AuditEvent) -> None:
        raise RuntimeError(f"boom on {event.path}")


def _event(**overrides) -> AuditEvent:
    values = {"user_id": "alice", "action": AuditAction.UPLOAD, "path": "/docs/a.txt"}
    values.update(overrides)
    return AuditEvent(**values)


# =========================================================================
# AuditEvent
# =========================================================================


class TestAuditEvent:
    def test_timestamp_is_utc(self):
        event = _event()
        assert event.timestamp.tzinfo is UTC

    def test_frozen(self):
        event = _event()
        with pytest.raises(AttributeError):
            event.path = "/other"  # type: ignore[misc]

    def test_action_values(self):
        assert AuditAction.CREATE_FOLDER.value == "CreateFolder"
        assert AuditAction.MOVE.value == "Move"
        assert len({a.value for a in AuditAction}) == len(AuditAction)


# =========================================================================
# AuditEmitter
# =========================================================================


class TestAuditEmitter:
    async def test_fans_out_in_order(self):
        first, second = CollectingSink(), CollectingSink()
        emitter = AuditEmitter([first])
        emitter.register(second)
        event = _event()

        await emitter.record(event)

        assert emitter.sink_count == 2
        assert first.events == [event]
        assert second.events == [event]

    async def test_failing_sink_swallowed(self, caplog: pytest.LogCaptureFixture):
        after = CollectingSink()
        emitter = AuditEmitter([_FailingSink(), after])

        with caplog.at_level(logging.WARNING, logger="s3fm.audit"):
            await emitter.record(_event())

        assert len(after.events) == 1
        assert any("Audit sink" in r.getMessage() for r in caplog.records)

    async def test_no_sinks(self):
        await AuditEmitter().record(_event())

    def test_sinks_satisfy_protocol(self):
        assert isinstance(LoggingAuditSink(), AuditSink)
        assert isinstance(CollectingSink(), AuditSink)


# =========================================================================
# Sinks
# =========================================================================


class TestLoggingAuditSink:
    async def test_writes_one_info_line(self, caplog: pytest.LogCaptureFixture):
        stamp = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        with caplog.at_level(logging.INFO, logger="s3fm.audit"):
            await LoggingAuditSink().log(
                _event(action=AuditAction.RENAME, path="/a -> /b", timestamp=stamp)
            )

        records = [r for r in caplog.records if r.name == "s3fm.audit"]
        assert len(records) == 1
        message = records[0].getMessage()
        assert message.startswith("[AUDIT] 2024-05-01T12:00:00+00:00")
        assert "User=alice" in message
        assert "Action=Rename" in message
        assert "Path=/a -> /b" in message


class TestDatabaseAuditSink:
    async def test_persists_record(self, session_factory):
        sink = DatabaseAuditSink(session_factory)
        await sink.log(_event(details="3 bytes"))

        async with session_factory() as session:
            rows = (await session.execute(select(AuditRecord))).scalars().all()

        assert len(rows) == 1
        assert rows[0].user_id == "alice"
        assert rows[0].action == "Upload"
        assert rows[0].path == "/docs/a.txt"
        assert rows[0].details == "3 bytes"

    async def test_create_audit_tables_is_idempotent(self, async_engine):
        await create_audit_tables(async_engine)
        await create_audit_tables(async_engine)
