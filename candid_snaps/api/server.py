"""FastAPI gateway for hosts and guests.

Routes that reach Drive, Google's token endpoint or the state file are plain
``def`` handlers so FastAPI runs them in its threadpool.
"""

from __future__ import annotations

import hmac
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.background import BackgroundTask

from ..config import CandidSnapsConfig
from ..device import DEVICE_HEADER, fingerprint
from ..errors import NotConnected, SnapError
from ..runtime import CandidSnapsRuntime

logger = logging.getLogger(__name__)

runtime = CandidSnapsRuntime.bootstrap(CandidSnapsConfig.from_env())


@asynccontextmanager
async def _lifespan(app: FastAPI):
    logger.info("Candid Snaps API starting (public site %s)", runtime.config.public.public_base_url)
    try:
        yield
    finally:
        runtime.telemetry.flush()
        logger.info("Candid Snaps API stopped")


app = FastAPI(title="Candid Snaps API", version="0.1.0", lifespan=_lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=runtime.config.public.cors_origins or ["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SnapError)
async def _snap_error_handler(request: Request, exc: SnapError):
    if isinstance(exc, NotConnected) and exc.event_id and not exc.connect_url:
        exc.connect_url = _connect_url(request, exc.event_id)
    if exc.status_code >= 500:
        logger.error("%s: %s (%s %s)", exc.kind, exc.detail, request.method, request.url.path)
    else:
        logger.info("%s: %s (%s %s)", exc.kind, exc.detail, request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


class EventCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    drive_folder_id: Optional[str] = Field(default=None, alias="driveFolderId")


class CommentRequest(BaseModel):
    comment: Optional[str] = Field(default="")


class UploaderNameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uploader_name: Optional[str] = Field(default="", alias="uploaderName")


class AdminCheckRequest(BaseModel):
    passcode: Optional[str] = None


async def get_device_hash(request: Request) -> str:
    client_host = request.client.host if request.client else None
    return fingerprint(request.headers.get(DEVICE_HEADER), client_host)


@app.get("/")
async def health_check():
    return {"ok": True, "status": "alive"}


@app.post("/auth/admin-check")
async def admin_check(payload: AdminCheckRequest):
    expected = runtime.config.public.admin_passcode
    if not expected:
        return JSONResponse(status_code=500, content={"ok": False, "error": "Admin passcode not configured"})
    provided = (payload.passcode or "").strip()
    if not provided or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        return JSONResponse(status_code=401, content={"ok": False, "error": "Invalid passcode"})
    return {"ok": True}


@app.get("/auth/google/start")
def start_owner_authorization(event_id: Optional[str] = Query(default=None, alias="eventId")):
    if not event_id:
        raise HTTPException(status_code=400, detail="Missing eventId")
    return RedirectResponse(runtime.owner_auth.authorization_url(event_id))


@app.get("/oauth2/callback")
def complete_owner_authorization(code: Optional[str] = None, state: Optional[str] = None):
    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing code/state")
    event = runtime.owner_auth.complete(code, state)
    return RedirectResponse(_public_event_url(event.id))


@app.post("/events")
def create_event(request: Request, payload: Optional[EventCreateRequest] = None):
    payload = payload or EventCreateRequest()
    event = runtime.events.create(payload.name, payload.drive_folder_id)
    return {
        "ok": True,
        "eventId": event.id,
        "driveFolderId": event.drive_folder_id,
        "publicUrl": _public_event_url(event.id),
        "connectUrl": _connect_url(request, event.id),
    }


@app.get("/events/{event_id}")
async def get_event_config(event_id: str):
    event = runtime.events.get(event_id)
    return {
        "ok": True,
        "name": event.name,
        "uploadLimit": event.upload_limit,
        "windowHours": event.window_hours,
        "isConnected": runtime.resolver.is_connected(event),
        "isOwnerConnected": runtime.resolver.is_owner_connected(event),
        "isServiceAccountActive": runtime.resolver.has_service_account,
    }


@app.get("/events/{event_id}/uploads")
async def list_uploads(request: Request, event_id: str, limit: Optional[int] = None):
    event = runtime.events.get(event_id)
    uploads = runtime.ledger.list_all(event.id, limit)
    base = _api_base(request)
    return {"ok": True, "items": [_serialize_upload(upload, base) for upload in uploads]}


@app.get("/events/{event_id}/my-uploads")
async def list_my_uploads(request: Request, event_id: str, device_hash: str = Depends(get_device_hash)):
    event = runtime.events.get(event_id)
    uploads = runtime.ledger.list_mine(event.id, device_hash)
    base = _api_base(request)
    return {"ok": True, "items": [_serialize_upload(upload, base) for upload in uploads]}


@app.post("/events/{event_id}/upload")
def upload_file(
    request: Request,
    event_id: str,
    file: Optional[UploadFile] = File(default=None),
    uploader_name: Optional[str] = Header(default=None, alias="X-Uploader-Name"),
    device_hash: str = Depends(get_device_hash),
):
    data = b""
    content_type = None
    if file is not None:
        limit = runtime.config.blobs.max_upload_bytes
        try:
            # One byte past the cap is enough for the size check to reject it.
            data = file.file.read(limit + 1) if limit else file.file.read()
            content_type = file.content_type
        finally:
            file.file.close()
    upload = runtime.proxy.upload(event_id, device_hash, data, content_type, uploader_name)
    return {"ok": True, **_serialize_upload(upload, _api_base(request))}


@app.delete("/events/{event_id}/uploads/{upload_id}")
def delete_upload(event_id: str, upload_id: str, device_hash: str = Depends(get_device_hash)):
    runtime.proxy.delete(event_id, upload_id, device_hash)
    return {"ok": True}


@app.patch("/events/{event_id}/uploads/{upload_id}/comment")
def update_comment(
    event_id: str,
    upload_id: str,
    payload: CommentRequest,
    device_hash: str = Depends(get_device_hash),
):
    upload = runtime.proxy.set_comment(event_id, upload_id, device_hash, payload.comment)
    return {"ok": True, "comment": upload.comment}


@app.patch("/events/{event_id}/uploader-name")
def update_uploader_name(
    event_id: str,
    payload: UploaderNameRequest,
    device_hash: str = Depends(get_device_hash),
):
    updated = runtime.proxy.set_uploader_name(event_id, device_hash, payload.uploader_name)
    return {"ok": True, "updated": updated}


@app.get("/events/{event_id}/files/{blob_id}")
def stream_file(event_id: str, blob_id: str):
    stream = runtime.proxy.stream_source(event_id, blob_id)
    return StreamingResponse(
        stream,
        media_type=stream.content_type,
        headers={"Cache-Control": "public, max-age=300"},
        background=BackgroundTask(stream.close),
    )


def _api_base(request: Request) -> str:
    configured = runtime.config.public.api_public_base_url
    if configured:
        return configured.rstrip("/")
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or request.url.netloc
    return f"{proto}://{host}"


def _connect_url(request: Request, event_id: str) -> str:
    return f"{_api_base(request)}/auth/google/start?eventId={event_id}"


def _public_event_url(event_id: str) -> str:
    return f"{runtime.config.public.public_base_url.rstrip('/')}/?e={event_id}"


def _serialize_upload(upload, base: str) -> dict:
    return {
        "id": upload.id,
        "uploadId": upload.id,
        "blobId": upload.blob_id,
        "uploaderName": upload.uploader_name,
        "comment": upload.comment,
        "createdAt": upload.created_at.isoformat(),
        "updatedAt": upload.updated_at.isoformat() if upload.updated_at else None,
        "url": f"{base}/events/{upload.event_id}/files/{upload.blob_id}",
    }


def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, runtime.config.observability.log_level, logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8080")), access_log=False)


if __name__ == "__main__":
    main()
