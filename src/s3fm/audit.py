"""Audit trail events, sinks, and the emitter that fans events out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlmodel import SQLModel

from s3fm.models.audit import AuditRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    """Logical operations recorded in the audit trail."""

    LIST = "List"
    DETAILS = "Details"
    CREATE_FOLDER = "CreateFolder"
    UPLOAD = "Upload"
    DELETE = "Delete"
    RENAME = "Rename"
    MOVE = "Move"
    DOWNLOAD = "Download"


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """Immutable record of one completed unit of work.

    Attributes:
        user_id: Id of the user who performed the operation.
        action: The kind of operation.
        path: Affected path; ``"<source> -> <destination>"`` for moves.
        details: Optional free-form detail.
        timestamp: UTC time the event was created.
    """

    user_id: str
    action: AuditAction
    path: str
    details: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@runtime_checkable
class AuditSink(Protocol):
    """Destination for audit events."""

    async def log(self, event: AuditEvent) -> None: ...


class AuditEmitter:
    """Fans audit events out to registered sinks.

    Sinks are called sequentially in registration order.  Exceptions are
    logged but never propagated: the storage operation being audited has
    already completed and is not rolled back.
    """

    def __init__(self, sinks: Iterable[AuditSink] = ()) -> None:
        self._sinks: list[AuditSink] = list(sinks)

    def register(self, sink: AuditSink) -> None:
        """Append *sink*."""
        self._sinks.append(sink)

    @property
    def sink_count(self) -> int:
        return len(self._sinks)

    async def record(self, event: AuditEvent) -> None:
        """Dispatch *event* to every sink."""
        for sink in self._sinks:
            try:
                await sink.log(event)
            except Exception:
                logger.warning(
                    "Audit sink %r failed for %s on %s",
                    sink,
                    event.action.value,
                    event.path,
                    exc_info=True,
                )


# =============================================================================
# Sinks
# =============================================================================


class LoggingAuditSink:
    """Writes one INFO line per event to the ``s3fm.audit`` logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    async def log(self, event: AuditEvent) -> None:
        self._log.info(
            "[AUDIT] %s User=%s Action=%s Path=%s Details=%s",
            event.timestamp.isoformat(),
            event.user_id,
            event.action.value,
            event.path,
            event.details or "",
        )


class DatabaseAuditSink:
    """Persists events as ``AuditRecord`` rows, one commit per event."""

    def __init__(self, session_factory: Callable[..., AsyncSession]) -> None:
        self._session_factory = session_factory

    async def log(self, event: AuditEvent) -> None:
        record = AuditRecord(
            timestamp=event.timestamp,
            user_id=event.user_id,
            action=event.action.value,
            path=event.path,
            details=event.details,
        )
        async with self._session_factory() as session:
            session.add(record)
            await session.commit()


async def create_audit_tables(engine: AsyncEngine) -> None:
    """Create the audit table if it does not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all, tables=[AuditRecord.__table__])
