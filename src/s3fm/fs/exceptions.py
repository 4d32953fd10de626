"""Custom exception hierarchy for the s3fm storage layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .permissions import Permission


class S3fmError(Exception):
    """Base exception for all s3fm errors."""


class ValidationError(S3fmError):
    """Raised on malformed or missing request fields."""


class ConfigurationError(S3fmError):
    """Raised when required settings are missing or invalid."""


class AuthorizationDenied(S3fmError):
    """Raised by the permission gate before any storage call is issued."""

    def __init__(self, path: str, required: Permission | str) -> None:
        self.path = path
        self.required = required
        label = required if isinstance(required, str) else _flag_label(required)
        super().__init__(f"Permission denied: {label} required on {path}")


class StorageFailure(S3fmError):
    """Raised on object store I/O failures.

    Carries the attempted path(s) and the underlying cause.  The message is
    safe to log; callers must not forward ``cause`` to clients.
    """

    def __init__(
        self,
        message: str,
        *,
        paths: Iterable[str] = (),
        cause: BaseException | None = None,
    ) -> None:
        self.paths = tuple(paths)
        self.cause = cause
        super().__init__(message)


class PathNotFoundError(S3fmError):
    """Raised by object stores when a key does not exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Object not found: {key}")


def _flag_label(flags: Permission) -> str:
    names = [member.name for member in type(flags) if member.name and member in flags]
    return "|".join(n for n in names if n not in ("NONE", "ALL")) or "NONE"
