"""Blob store adapters: Google Drive and a disk-backed store for demos."""

from __future__ import annotations

import io
import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Protocol

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import Error as GoogleApiError
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from ..errors import NotFound, UpstreamFailure
from ..services.credential_service import CredentialResolver, DriveCredential

logger = logging.getLogger(__name__)

STREAM_CHUNK_BYTES = 1024 * 1024
DEFAULT_CONTENT_TYPE = "image/jpeg"

DRIVE_ERRORS = (GoogleApiError, GoogleAuthError, httplib2.HttpLib2Error, OSError, ValueError)


@dataclass
class BlobStream:
    """An open remote binary; iterate ``chunks`` once, then ``close``."""

    content_type: str
    chunks: Iterator[bytes]
    on_close: Optional[Callable[[], None]] = None
    _closed: bool = field(default=False, init=False, repr=False)

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self.chunks
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close_chunks = getattr(self.chunks, "close", None)
        if callable(close_chunks):
            close_chunks()
        if self.on_close:
            self.on_close()


class BlobStore(Protocol):
    def create(self, credential: DriveCredential, folder_id: str, name: str, data: bytes, mime_type: str) -> str:
        ...

    def delete(self, credential: DriveCredential, blob_id: str) -> None:
        ...

    def open(self, credential: DriveCredential, blob_id: str) -> BlobStream:
        ...


def drive_service(credentials: Any, *, timeout: float = 30.0):
    """Build a Drive v3 client whose HTTP transport honours ``timeout``."""
    http = google_auth_httplib2.AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
    return build("drive", "v3", http=http, cache_discovery=False)


class DriveBlobStore:
    """Google Drive v3 through the API client, one service per call."""

    def __init__(
        self,
        resolver: CredentialResolver,
        *,
        timeout: float = 30.0,
        service_factory: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        self.resolver = resolver
        self.timeout = timeout
        self._service_factory = service_factory or (lambda credentials: drive_service(credentials, timeout=timeout))

    def _files(self, credential: DriveCredential):
        return self._service_factory(self.resolver.google_credentials(credential)).files()

    def create(self, credential: DriveCredential, folder_id: str, name: str, data: bytes, mime_type: str) -> str:
        try:
            created = (
                self._files(credential)
                .create(
                    body={"name": name, "parents": [folder_id]},
                    media_body=MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False),
                    fields="id",
                )
                .execute()
            )
        except DRIVE_ERRORS as exc:
            raise UpstreamFailure(f"Drive upload failed: {exc}") from exc
        blob_id = created.get("id") if isinstance(created, dict) else None
        if not blob_id:
            raise UpstreamFailure("Drive upload returned no file id")
        return str(blob_id)

    def delete(self, credential: DriveCredential, blob_id: str) -> None:
        try:
            self._files(credential).delete(fileId=blob_id).execute()
        except DRIVE_ERRORS as exc:
            raise UpstreamFailure(f"Drive delete failed: {exc}") from exc

    def open(self, credential: DriveCredential, blob_id: str) -> BlobStream:
        try:
            files = self._files(credential)
            metadata = files.get(fileId=blob_id, fields="mimeType").execute()
        except HttpError as exc:
            if exc.resp is not None and int(exc.resp.status) == 404:
                raise NotFound("File not found in Drive") from exc
            raise UpstreamFailure(f"Drive fetch failed: {exc}") from exc
        except DRIVE_ERRORS as exc:
            raise UpstreamFailure(f"Drive fetch failed: {exc}") from exc
        content_type = (metadata or {}).get("mimeType") or DEFAULT_CONTENT_TYPE
        return BlobStream(
            content_type=content_type,
            chunks=_iter_download(files.get_media(fileId=blob_id), blob_id),
        )


def _iter_download(request, blob_id: str) -> Iterator[bytes]:
    buffer = io.BytesIO()
    downloader = MediaIoBaseDownload(buffer, request, chunksize=STREAM_CHUNK_BYTES)
    done = False
    try:
        while not done:
            _, done = downloader.next_chunk()
            chunk = buffer.getvalue()
            buffer.seek(0)
            buffer.truncate()
            if chunk:
                yield chunk
    except DRIVE_ERRORS as exc:
        # Bytes already sent cannot be retracted; end the body here.
        logger.error("Drive stream error for %s: %s", blob_id, exc)


_SAFE_ID = re.compile(r"[A-Za-z0-9_-]+")


class LocalBlobStore:
    """Blobs on local disk, one directory per Drive folder id.

    Each blob is written as ``<folder>/<blob_id>`` next to a
    ``<blob_id>.json`` sidecar holding its name and MIME type.
    """

    def __init__(self, base_path: str):
        self.root = Path(base_path).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)

    def _locate(self, blob_id: str) -> Optional[Path]:
        if not _SAFE_ID.fullmatch(blob_id or ""):
            return None
        for sidecar in self.root.glob(f"*/{blob_id}.json"):
            data_path = sidecar.with_suffix("")
            if data_path.exists():
                return data_path
        return None

    def describe(self, blob_id: str) -> Optional[Dict[str, Any]]:
        data_path = self._locate(blob_id)
        if data_path is None:
            return None
        try:
            meta = json.loads(data_path.with_suffix(".json").read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable sidecar for blob %s: %s", blob_id, exc)
            return None
        meta["folder_id"] = data_path.parent.name
        return meta

    def create(self, credential: DriveCredential, folder_id: str, name: str, data: bytes, mime_type: str) -> str:
        if not _SAFE_ID.fullmatch(folder_id or ""):
            raise UpstreamFailure(f"Invalid folder id: {folder_id!r}")
        blob_id = uuid.uuid4().hex
        folder = self.root / folder_id
        try:
            folder.mkdir(parents=True, exist_ok=True)
            (folder / blob_id).write_bytes(data)
            (folder / f"{blob_id}.json").write_text(
                json.dumps({"name": name, "mime_type": mime_type, "size_bytes": len(data)}),
                encoding="utf-8",
            )
        except OSError as exc:
            raise UpstreamFailure(f"Unable to persist upload: {exc}") from exc
        return blob_id

    def delete(self, credential: DriveCredential, blob_id: str) -> None:
        data_path = self._locate(blob_id)
        if data_path is None:
            raise UpstreamFailure(f"Blob {blob_id} not found")
        try:
            data_path.unlink()
            data_path.with_suffix(".json").unlink()
        except OSError as exc:
            raise UpstreamFailure(f"Unable to remove blob: {exc}") from exc

    def open(self, credential: DriveCredential, blob_id: str) -> BlobStream:
        meta = self.describe(blob_id)
        if meta is None:
            raise NotFound("Blob not found")
        try:
            handle = (self.root / meta["folder_id"] / blob_id).open("rb")
        except OSError as exc:
            raise UpstreamFailure(f"Blob unavailable: {exc}") from exc
        return BlobStream(
            content_type=str(meta.get("mime_type") or DEFAULT_CONTENT_TYPE),
            chunks=iter(lambda: handle.read(STREAM_CHUNK_BYTES), b""),
            on_close=handle.close,
        )


def build_blob_store(backend: str, resolver: CredentialResolver, *, local_dir: str, timeout: float) -> BlobStore:
    if backend == "drive":
        return DriveBlobStore(resolver, timeout=timeout)
    if backend == "local":
        return LocalBlobStore(local_dir)
    raise ValueError(f"Unknown blob store backend: {backend}")
