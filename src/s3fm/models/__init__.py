"""SQLModel tables."""

from s3fm.models.audit import AuditRecord, AuditRecordBase

__all__ = ["AuditRecord", "AuditRecordBase"]
