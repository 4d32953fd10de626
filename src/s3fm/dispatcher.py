"""RequestDispatcher — canonicalize, authorize, execute, audit, respond.

Every operation follows the same sequence.  Engines and the permission
gate raise the typed exceptions from ``s3fm.fs.exceptions``; this module is
the boundary where they become ``OperationOutcome`` values.  Batch actions
run their items in order and stop at the first failure; items completed
before it stay applied.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from s3fm.audit import AuditAction, AuditEvent
from s3fm.fs.exceptions import AuthorizationDenied, StorageFailure, ValidationError
from s3fm.fs.utils import (
    ROOT,
    canonicalize,
    combine,
    ensure_folder,
    guess_content_type,
    leaf_name,
    parent_of,
    resolve_item_path,
    strip_folder,
)
from s3fm.responses import DEFAULT_ROOT_ALIAS, build_details_response, build_listing_response

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Mapping

    from s3fm.audit import AuditEmitter
    from s3fm.fs.permissions import PermissionGate
    from s3fm.fs.protocol import StorageBackend
    from s3fm.fs.types import UserContext
    from s3fm.fs.upload import UploadSource

logger = logging.getLogger(__name__)

DEFAULT_FOLDER_NAME = "New Folder"
DEFAULT_DOWNLOAD_NAME = "download"


# =============================================================================
# Request / outcome values
# =============================================================================


class OutcomeStatus(Enum):
    """Kinds of operation outcome."""

    OK = "ok"
    BAD_REQUEST = "bad_request"
    FORBIDDEN = "forbidden"
    STORAGE_FAILURE = "storage_failure"


@dataclass
class OperationOutcome:
    """Result of one dispatched operation."""

    status: OutcomeStatus
    data: Any = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.OK

    @classmethod
    def ok(cls, data: Any = None) -> OperationOutcome:
        return cls(OutcomeStatus.OK, data=data)

    @classmethod
    def bad_request(cls, message: str) -> OperationOutcome:
        return cls(OutcomeStatus.BAD_REQUEST, error=message)

    @classmethod
    def forbidden(cls, message: str = "Forbidden") -> OperationOutcome:
        return cls(OutcomeStatus.FORBIDDEN, error=message)

    @classmethod
    def storage_failure(cls, message: str = "Internal server error") -> OperationOutcome:
        return cls(OutcomeStatus.STORAGE_FAILURE, error=message)


def _pick(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _pick_str(payload: Mapping[str, Any], *keys: str) -> str | None:
    value = _pick(payload, *keys)
    return None if value is None else str(value)


@dataclass
class OperationRequest:
    """The single query/mutation envelope sent by the file browser."""

    action: str | None = None
    path: str | None = None
    target_path: str | None = None
    name: str | None = None
    new_name: str | None = None
    names: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> OperationRequest:
        """Build from a JSON body; accepts camelCase and snake_case keys."""
        names = _pick(payload, "names") or []
        if isinstance(names, str):
            names = [names]
        return cls(
            action=_pick_str(payload, "action"),
            path=_pick_str(payload, "path"),
            target_path=_pick_str(payload, "targetPath", "target_path"),
            name=_pick_str(payload, "name"),
            new_name=_pick_str(payload, "newName", "new_name"),
            names=[str(n) for n in names if n is not None],
        )


@dataclass
class UploadItem:
    """One file payload of an upload request."""

    filename: str
    content: UploadSource


@dataclass
class DownloadResult:
    """An object stream ready to be sent back to the caller."""

    path: str
    file_name: str
    content_type: str
    stream: AsyncIterator[bytes]


def _first_non_blank(*values: str | None) -> str | None:
    for value in values:
        if value is not None and value.strip():
            return value
    return None


def resolve_download_path(path: str | None, download_input: str | None) -> str:
    """Work out which object a download request refers to.

    An explicit *path* wins.  Otherwise *download_input* is parsed as the
    widget's JSON selection payload and tried in order: the first selected
    entry's absolute ``path``, the first of ``names`` (absolute as-is,
    relative against the payload ``path``), then the first entry's ``name``.
    Anything unusable falls back to ``/``.
    """
    if _first_non_blank(path):
        return canonicalize(path)
    if not _first_non_blank(download_input):
        return ROOT

    try:
        payload = json.loads(download_input or "")
    except ValueError:
        logger.debug("Ignoring unparsable download input")
        return ROOT
    if not isinstance(payload, dict):
        return ROOT

    base = payload.get("path") if isinstance(payload.get("path"), str) else ROOT
    selection = payload.get("data") or payload.get("items")
    if not isinstance(selection, list):
        selection = []
    first = selection[0] if selection and isinstance(selection[0], dict) else {}

    entry_path = first.get("path")
    if isinstance(entry_path, str) and entry_path.strip().startswith("/"):
        return canonicalize(entry_path)

    names = payload.get("names")
    name = names[0] if isinstance(names, list) and names else None
    if isinstance(name, str) and name.strip():
        return canonicalize(name) if name.startswith("/") else canonicalize(combine(base, name))

    entry_name = first.get("name")
    if isinstance(entry_name, str) and entry_name.strip():
        return canonicalize(combine(base, entry_name))

    return ROOT


# =============================================================================
# Dispatcher
# =============================================================================


class RequestDispatcher:
    """Orchestrates one request at a time; holds no per-request state.

    Usage::

        dispatcher = RequestDispatcher(backend, PermissionGate(policy), AuditEmitter([sink]))
        outcome = await dispatcher.handle(OperationRequest(action="read", path="/"), user)
    """

    def __init__(
        self,
        backend: StorageBackend,
        gate: PermissionGate,
        audit: AuditEmitter,
        *,
        root_alias: str = DEFAULT_ROOT_ALIAS,
    ) -> None:
        self._backend = backend
        self._gate = gate
        self._audit = audit
        self._root_alias = root_alias or DEFAULT_ROOT_ALIAS
        self._handlers: dict[
            str, Callable[[OperationRequest, UserContext], Awaitable[Any]]
        ] = {
            "read": self._read,
            "details": self._details,
            "create": self._create,
            "delete": self._delete,
            "rename": self._rename,
            "move": self._move,
            "paste": self._move,
        }

    @property
    def actions(self) -> list[str]:
        return sorted(self._handlers)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle(self, request: OperationRequest, user: UserContext) -> OperationOutcome:
        """Dispatch an operation envelope."""
        action = (request.action or "").strip().lower()
        handler = self._handlers.get(action)
        if handler is None:
            logger.info("Unsupported action %r from user=%s", request.action, user.id)
            return OperationOutcome.bad_request("Unsupported action")
        return await self._run(action, user, handler(request, user))

    async def upload(
        self, path: str | None, files: list[UploadItem], user: UserContext
    ) -> OperationOutcome:
        return await self._run("upload", user, self._upload(path, files, user))

    async def download(
        self, path: str | None, download_input: str | None, user: UserContext
    ) -> OperationOutcome:
        return await self._run("download", user, self._download(path, download_input, user))

    async def _run(
        self, action: str, user: UserContext, operation: Awaitable[Any]
    ) -> OperationOutcome:
        try:
            return OperationOutcome.ok(await operation)
        except ValidationError as e:
            logger.info("Rejected %s from user=%s: %s", action, user.id, e)
            return OperationOutcome.bad_request(str(e))
        except AuthorizationDenied as e:
            logger.info("Forbidden %s for user=%s on %s", action, user.id, e.path)
            return OperationOutcome.forbidden()
        except StorageFailure as e:
            logger.error(
                "Storage failure during %s for user=%s paths=%s: %s",
                action,
                user.id,
                list(e.paths),
                e,
                exc_info=e.cause or e,
            )
            return OperationOutcome.storage_failure()
        except Exception:
            logger.exception("Unexpected failure during %s for user=%s", action, user.id)
            return OperationOutcome.storage_failure()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _read(self, request: OperationRequest, user: UserContext) -> dict[str, Any]:
        path = self._current_path(request)
        await self._gate.require_read(user, path)
        entries = await self._backend.list(path, user)
        await self._record(user, AuditAction.LIST, path)
        return build_listing_response(path, entries, self._root_alias)

    async def _details(self, request: OperationRequest, user: UserContext) -> dict[str, Any]:
        path = self._current_path(request)
        await self._gate.require_read(user, path)
        entries = await self._backend.list(path, user)
        wanted = {n.casefold() for n in request.names}
        selected = [e for e in entries if not wanted or e.name.casefold() in wanted]
        await self._record(user, AuditAction.DETAILS, path)
        return build_details_response(path, entries, selected, self._root_alias)

    async def _create(self, request: OperationRequest, user: UserContext) -> dict[str, Any]:
        path = self._current_path(request)
        await self._gate.require_write_or_upload(user, path)
        folder_name = _first_non_blank(request.new_name, request.name) or DEFAULT_FOLDER_NAME
        folder_path = ensure_folder(canonicalize(combine(path, folder_name)))
        await self._backend.upload(folder_path, b"", user)
        await self._record(user, AuditAction.CREATE_FOLDER, folder_path)
        return await self._listing(path, user)

    async def _delete(self, request: OperationRequest, user: UserContext) -> dict[str, Any]:
        path = self._current_path(request)
        if not request.names:
            raise ValidationError("No items to delete")

        for name in request.names:
            item_path = resolve_item_path(path, name, is_directory=False)
            await self._gate.require_delete(user, item_path)
            if await self._is_directory(name, item_path, user):
                item_path = ensure_folder(item_path)
            logger.debug("Deleting %r resolved to %s", name, item_path)
            await self._backend.delete(item_path, user)
            await self._record(user, AuditAction.DELETE, item_path)

        return await self._listing(path, user)

    async def _rename(self, request: OperationRequest, user: UserContext) -> dict[str, Any]:
        path = self._current_path(request)
        name = request.names[0] if request.names else request.name
        if name is None or not name.strip():
            raise ValidationError("Missing name for rename")
        new_name = _first_non_blank(request.new_name, request.name if request.names else None)
        if new_name is None:
            raise ValidationError("Missing new name")

        source = resolve_item_path(path, name, is_directory=False)
        destination = canonicalize(combine(parent_of(source), new_name))
        await self._gate.require_rename(user, source, destination)

        if await self._is_directory(name, source, user):
            source = ensure_folder(source)
            destination = ensure_folder(destination)
        await self._backend.move(source, destination, user)
        await self._record(user, AuditAction.RENAME, f"{source} -> {destination}")

        return await self._listing(parent_of(destination), user)

    async def _move(self, request: OperationRequest, user: UserContext) -> dict[str, Any]:
        path = self._current_path(request)
        if not request.names:
            raise ValidationError("No items to move")
        target = canonicalize(_first_non_blank(request.target_path) or path)

        for name in request.names:
            source = resolve_item_path(path, name, is_directory=False)
            destination = canonicalize(combine(target, leaf_name(source)))
            await self._gate.require_move(user, source, destination)

            if await self._is_directory(name, source, user):
                source = ensure_folder(source)
                destination = ensure_folder(destination)
            if source == destination:
                logger.debug("Skipping move of %s onto itself", source)
                continue
            await self._backend.move(source, destination, user)
            await self._record(user, AuditAction.MOVE, f"{source} -> {destination}")

        return await self._listing(target, user)

    async def _upload(
        self, path: str | None, files: list[UploadItem], user: UserContext
    ) -> dict[str, Any]:
        directory = canonicalize(path if _first_non_blank(path) else ROOT)
        if not files:
            raise ValidationError("No files to upload")
        await self._gate.require_write_or_upload(user, directory)

        for item in files:
            if not _first_non_blank(item.filename):
                raise ValidationError("Uploaded file has no name")
            target = canonicalize(combine(directory, item.filename))
            await self._backend.upload(target, item.content, user)
            await self._record(user, AuditAction.UPLOAD, target)

        return await self._listing(directory, user)

    async def _download(
        self, path: str | None, download_input: str | None, user: UserContext
    ) -> DownloadResult:
        target = resolve_download_path(path, download_input)
        await self._gate.require_read(user, target)
        stream = await self._backend.open_read(target, user)
        await self._record(user, AuditAction.DOWNLOAD, target)
        file_name = leaf_name(target) or DEFAULT_DOWNLOAD_NAME
        return DownloadResult(
            path=target,
            file_name=file_name,
            content_type=guess_content_type(file_name),
            stream=stream,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _current_path(request: OperationRequest) -> str:
        return canonicalize(request.path if _first_non_blank(request.path) else ROOT)

    async def _listing(self, path: str, user: UserContext) -> dict[str, Any]:
        entries = await self._backend.list(path, user)
        return build_listing_response(path, entries, self._root_alias)

    async def _is_directory(self, name: str, item_path: str, user: UserContext) -> bool:
        """Directory if the name says so, else if the parent listing does."""
        if name.endswith("/"):
            return True
        siblings = await self._backend.list(parent_of(item_path), user)
        wanted = strip_folder(item_path).casefold()
        return any(
            e.is_directory and strip_folder(e.path).casefold() == wanted for e in siblings
        )

    async def _record(
        self, user: UserContext, action: AuditAction, path: str, details: str | None = None
    ) -> None:
        await self._audit.record(
            AuditEvent(user_id=user.id, action=action, path=path, details=details)
        )
