"""Upload ledger: per-event upload records, windowed counting and ownership."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import ClassVar, Dict, List, Optional
import uuid

from ..errors import Forbidden, LimitExceeded, NotFound
from ..models import COMMENT_MAX, UPLOADER_NAME_MAX, Event, Upload, clean_text, utcnow
from .base import PersistentService

DEFAULT_LIST_LIMIT = 80
MAX_LIST_LIMIT = 200


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIST_LIMIT
    return min(MAX_LIST_LIMIT, max(1, int(limit)))


@dataclass
class UploadLedger(PersistentService):
    section_name: ClassVar[str] = "uploads"
    _uploads: Dict[str, Upload] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._uploads = self._restore()

    def record(
        self,
        event_id: str,
        device_hash: str,
        blob_id: str,
        *,
        uploader_name: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Upload:
        upload = Upload(
            id=uuid.uuid4().hex,
            event_id=event_id,
            device_hash=device_hash,
            blob_id=blob_id or "",
            uploader_name=clean_text(uploader_name, UPLOADER_NAME_MAX),
            created_at=created_at or utcnow(),
        )
        self._uploads[upload.id] = upload
        self._persist()
        self.record_event("upload_recorded", event_id=event_id, upload_id=upload.id)
        return upload

    def get(self, upload_id: str) -> Upload:
        upload = self._uploads.get(str(upload_id))
        if upload is None:
            raise NotFound("Upload not found")
        return upload

    # Rate limiting --------------------------------------------------------

    def count_recent(
        self,
        event_id: str,
        device_hash: str,
        window_hours: float,
        *,
        now: Optional[datetime] = None,
    ) -> int:
        # Inclusive cutoff: an upload created exactly at the window edge still counts.
        since = (now or utcnow()) - timedelta(hours=window_hours)
        return sum(
            1
            for upload in self._uploads.values()
            if upload.event_id == event_id
            and upload.device_hash == device_hash
            and upload.created_at >= since
        )

    def ensure_within_limit(self, event: Event, device_hash: str, *, now: Optional[datetime] = None) -> None:
        recent = self.count_recent(event.id, device_hash, event.window_hours, now=now)
        if recent >= event.upload_limit:
            self.record_event("limit_exceeded", event_id=event.id, recent=str(recent))
            raise LimitExceeded()

    # Listing --------------------------------------------------------------

    def list_all(self, event_id: str, limit: Optional[int] = None) -> List[Upload]:
        uploads = [u for u in self._uploads.values() if u.event_id == event_id and u.is_complete]
        uploads.sort(key=lambda upload: upload.created_at, reverse=True)
        return uploads[: clamp_limit(limit)]

    def list_mine(self, event_id: str, device_hash: str) -> List[Upload]:
        uploads = [
            u
            for u in self._uploads.values()
            if u.event_id == event_id and u.device_hash == device_hash and u.is_complete
        ]
        uploads.sort(key=lambda upload: upload.created_at)
        return uploads

    def exists(self, event_id: str, blob_id: str) -> bool:
        if not blob_id:
            return False
        return any(u.event_id == event_id and u.blob_id == blob_id for u in self._uploads.values())

    # Ownership-checked mutation ------------------------------------------

    def get_owned(self, event_id: str, upload_id: str, device_hash: str) -> Upload:
        upload = self.get(upload_id)
        if upload.event_id != event_id:
            raise Forbidden("Upload does not belong to this event")
        if upload.device_hash != device_hash:
            raise Forbidden("You can only change photos uploaded from this device")
        return upload

    def set_comment(self, upload: Upload, text: Optional[str]) -> Upload:
        upload.comment = clean_text(text, COMMENT_MAX)
        upload.updated_at = utcnow()
        self._persist()
        self.record_event("comment_updated", upload_id=upload.id)
        return upload

    def rename_uploader(self, event_id: str, device_hash: str, name: Optional[str]) -> int:
        uploader_name = clean_text(name, UPLOADER_NAME_MAX)
        touched = 0
        now = utcnow()
        for upload in self._uploads.values():
            if upload.event_id == event_id and upload.device_hash == device_hash:
                upload.uploader_name = uploader_name
                upload.updated_at = now
                touched += 1
        if touched:
            self._persist()
        return touched

    def delete(self, upload_id: str) -> None:
        removed = self._uploads.pop(str(upload_id), None)
        if removed is not None:
            self._persist()
            self.record_event("upload_deleted", event_id=removed.event_id, upload_id=removed.id)

    def _persist(self) -> None:
        self._store(self._uploads)
