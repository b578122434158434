"""Composition point for guest actions against the blob store and ledger."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, TypeVar

from ..errors import InvalidContent, NotConnected, NotFound, SnapError
from ..models import Upload
from ..storage.blob_store import BlobStore, BlobStream
from .base import BaseService
from .credential_service import CredentialResolver
from .event_service import EventStore
from .upload_ledger import UploadLedger

logger = logging.getLogger(__name__)

T = TypeVar("T")


def best_effort(action: Callable[[], T], *, description: str) -> Optional[T]:
    """Run ``action``; on failure log it and return None instead of raising."""
    try:
        return action()
    except (SnapError, OSError) as exc:
        logger.warning("%s failed (continuing): %s", description, exc)
        return None


def snap_name() -> str:
    return f"wedding-snap-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.jpg"


@dataclass
class BlobProxy(BaseService):
    events: EventStore
    ledger: UploadLedger
    resolver: CredentialResolver
    blobs: BlobStore

    def upload(
        self,
        event_id: str,
        device_hash: str,
        data: bytes,
        mime_type: Optional[str],
        uploader_name: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> Upload:
        event = self.events.get(event_id)
        if not self.resolver.is_connected(event):
            raise NotConnected(event_id=event.id)
        if not (mime_type or "").lower().startswith("image/"):
            raise InvalidContent()
        if not data:
            raise InvalidContent("Missing file")
        max_bytes = self.config.blobs.max_upload_bytes
        if max_bytes and len(data) > max_bytes:
            raise InvalidContent(f"File exceeds {max_bytes} bytes")
        self.ledger.ensure_within_limit(event, device_hash, now=now)

        credential = self.resolver.resolve(event)
        blob_id = self.blobs.create(credential, event.drive_folder_id, snap_name(), data, mime_type)
        upload = self.ledger.record(event.id, device_hash, blob_id, uploader_name=uploader_name, created_at=now)
        self.observe("upload_bytes", float(len(data)), event_id=event.id)
        return upload

    def delete(self, event_id: str, upload_id: str, device_hash: str) -> None:
        event = self.events.get(event_id)
        upload = self.ledger.get_owned(event.id, upload_id, device_hash)
        if upload.blob_id:
            best_effort(
                lambda: self.blobs.delete(self.resolver.resolve(event), upload.blob_id),
                description=f"Blob delete for upload {upload.id}",
            )
        self.ledger.delete(upload.id)

    def set_comment(self, event_id: str, upload_id: str, device_hash: str, text: Optional[str]) -> Upload:
        event = self.events.get(event_id)
        upload = self.ledger.get_owned(event.id, upload_id, device_hash)
        return self.ledger.set_comment(upload, text)

    def set_uploader_name(self, event_id: str, device_hash: str, name: Optional[str]) -> int:
        event = self.events.get(event_id)
        return self.ledger.rename_uploader(event.id, device_hash, name)

    def stream_source(self, event_id: str, blob_id: str) -> BlobStream:
        event = self.events.get(event_id)
        if not self.resolver.is_connected(event):
            raise NotConnected("Drive not connected for this event", event_id=event.id)
        if not self.ledger.exists(event.id, blob_id):
            raise NotFound("File not found for this event")
        return self.blobs.open(self.resolver.resolve(event), blob_id)
