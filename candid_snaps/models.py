"""Data models shared across the event and upload services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Event:
    id: str
    name: str
    drive_folder_id: str
    upload_limit: int
    window_hours: float
    owner_refresh_token: str = ""
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Upload:
    id: str
    event_id: str
    device_hash: str
    blob_id: str = ""
    uploader_name: str = ""
    comment: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.blob_id)


UPLOADER_NAME_MAX = 80
COMMENT_MAX = 200


def clean_text(value: Optional[str], limit: int) -> str:
    """Trim surrounding whitespace and cap the length of free text."""
    return str(value or "").strip()[:limit]
