"""s3fm: a folder-and-file view over S3-compatible object storage.

Permission-gated, audited listing, upload, download, delete, rename and move.
"""

__version__ = "0.1.0"

from s3fm.audit import (
    AuditAction,
    AuditEmitter,
    AuditEvent,
    AuditSink,
    DatabaseAuditSink,
    LoggingAuditSink,
)
from s3fm.config import Settings
from s3fm.dispatcher import (
    DownloadResult,
    OperationOutcome,
    OperationRequest,
    OutcomeStatus,
    RequestDispatcher,
    UploadItem,
)
from s3fm.fs.object_fs import ObjectStorageBackend
from s3fm.fs.permissions import (
    AccessRule,
    AllowAllAccessPolicy,
    Permission,
    PermissionGate,
    PrefixAccessPolicy,
)
from s3fm.fs.types import FileEntry, UserContext

__all__ = [
    "AccessRule",
    "AllowAllAccessPolicy",
    "AuditAction",
    "AuditEmitter",
    "AuditEvent",
    "AuditSink",
    "DatabaseAuditSink",
    "DownloadResult",
    "FileEntry",
    "LoggingAuditSink",
    "ObjectStorageBackend",
    "OperationOutcome",
    "OperationRequest",
    "OutcomeStatus",
    "Permission",
    "PermissionGate",
    "PrefixAccessPolicy",
    "RequestDispatcher",
    "Settings",
    "UploadItem",
    "UserContext",
    "__version__",
]
