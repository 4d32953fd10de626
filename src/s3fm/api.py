"""HTTP endpoints and the application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Annotated, Any
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from starlette.datastructures import UploadFile

from s3fm import __version__
from s3fm.audit import (
    AuditEmitter,
    AuditSink,
    DatabaseAuditSink,
    LoggingAuditSink,
    create_audit_tables,
)
from s3fm.config import Settings, build_backend, build_policy
from s3fm.dispatcher import (
    DownloadResult,
    OperationOutcome,
    OperationRequest,
    OutcomeStatus,
    RequestDispatcher,
    UploadItem,
)
from s3fm.fs.permissions import AccessPolicy, PermissionGate
from s3fm.fs.protocol import StorageBackend
from s3fm.fs.types import UserContext
from s3fm.responses import error_response

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    OutcomeStatus.OK: 200,
    OutcomeStatus.BAD_REQUEST: 400,
    OutcomeStatus.FORBIDDEN: 403,
    OutcomeStatus.STORAGE_FAILURE: 500,
}

router = APIRouter(prefix="/api/files")


# ------------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------------


def get_dispatcher(request: Request) -> RequestDispatcher:
    return request.app.state.dispatcher


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user(request: Request) -> UserContext:
    """The user an upstream authentication layer attached, else anonymous."""
    user = getattr(request.state, "user", None)
    if isinstance(user, UserContext):
        return user
    return UserContext.anonymous()


def _respond(outcome: OperationOutcome) -> JSONResponse:
    status_code = _STATUS_CODES[outcome.status]
    if outcome.success:
        return JSONResponse(outcome.data, status_code=status_code)
    return JSONResponse(error_response(outcome.error or "Error"), status_code=status_code)


def _form_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------


@router.post("/operations")
async def operations(
    payload: Annotated[dict[str, Any], Body()],
    dispatcher: Annotated[RequestDispatcher, Depends(get_dispatcher)],
    user: Annotated[UserContext, Depends(get_user)],
) -> Response:
    outcome = await dispatcher.handle(OperationRequest.from_dict(payload), user)
    return _respond(outcome)


@router.post("/upload")
async def upload(
    request: Request,
    dispatcher: Annotated[RequestDispatcher, Depends(get_dispatcher)],
    settings: Annotated[Settings, Depends(get_settings)],
    user: Annotated[UserContext, Depends(get_user)],
) -> Response:
    form = await request.form()
    files = [value for _, value in form.multi_items() if isinstance(value, UploadFile)]
    for file in files:
        if file.size is not None and file.size > settings.max_upload_bytes:
            return JSONResponse(error_response("File too large"), status_code=413)
    items = [UploadItem(filename=f.filename or "", content=f) for f in files]
    try:
        outcome = await dispatcher.upload(_form_str(form.get("path")), items, user)
    finally:
        for file in files:
            await file.close()
    return _respond(outcome)


@router.post("/download")
async def download(
    request: Request,
    dispatcher: Annotated[RequestDispatcher, Depends(get_dispatcher)],
    user: Annotated[UserContext, Depends(get_user)],
) -> Response:
    form = await request.form()
    outcome = await dispatcher.download(
        _form_str(form.get("path")), _form_str(form.get("downloadInput")), user
    )
    if not outcome.success:
        return _respond(outcome)
    result: DownloadResult = outcome.data
    ascii_name = result.file_name.encode("ascii", "ignore").decode() or "download"
    disposition = (
        f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(result.file_name)}"
    )
    return StreamingResponse(
        result.stream,
        media_type=result.content_type,
        headers={"Content-Disposition": disposition},
    )


# ------------------------------------------------------------------
# Application factory
# ------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    *,
    backend: StorageBackend | None = None,
    policy: AccessPolicy | None = None,
    audit_sinks: Iterable[AuditSink] | None = None,
) -> FastAPI:
    """Wire backend, permission gate, audit, and dispatcher into an app.

    Anything not passed explicitly is built from *settings* (read from the
    environment when omitted).
    """
    settings = settings or Settings.from_env()
    if backend is None:
        settings.validate()
        backend = build_backend(settings)
    if policy is None:
        policy = build_policy(settings)

    audit_engine: AsyncEngine | None = None
    if audit_sinks is None:
        sinks: list[AuditSink] = [LoggingAuditSink()]
        if settings.audit_database_url:
            audit_engine = create_async_engine(settings.audit_database_url, echo=False)
            factory = async_sessionmaker(
                audit_engine, class_=AsyncSession, expire_on_commit=False
            )
            sinks.append(DatabaseAuditSink(factory))
    else:
        sinks = list(audit_sinks)

    dispatcher = RequestDispatcher(
        backend,
        PermissionGate(policy),
        AuditEmitter(sinks),
        root_alias=settings.root_alias,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await backend.open()
        if audit_engine is not None:
            await create_audit_tables(audit_engine)
        logger.info("s3fm %s started", __version__)
        try:
            yield
        finally:
            await backend.close()
            if audit_engine is not None:
                await audit_engine.dispose()

    app = FastAPI(title="s3fm", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.include_router(router)
    return app
