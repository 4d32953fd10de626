"""AuditRecord model — persisted audit trail rows.

Provides ``AuditRecordBase`` (non-table) and ``AuditRecord`` (concrete table).
Subclass ``AuditRecordBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class AuditRecordBase(SQLModel):
    """Base fields for an audit record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
        index=True,
    )
    user_id: str = Field(index=True)
    action: str = Field(index=True)
    path: str
    details: str | None = None


class AuditRecord(AuditRecordBase, table=True):
    """Default audit table — ``s3fm_audit_events``."""

    __tablename__ = "s3fm_audit_events"
