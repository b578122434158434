"""Event bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, Optional
import uuid

from ..errors import NotFound
from ..models import Event, utcnow
from .base import PersistentService


@dataclass
class EventStore(PersistentService):
    section_name: ClassVar[str] = "events"
    _events: Dict[str, Event] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._events = self._restore()

    def create(
        self,
        name: Optional[str] = None,
        drive_folder_id: Optional[str] = None,
        *,
        upload_limit: Optional[int] = None,
        window_hours: Optional[float] = None,
    ) -> Event:
        defaults = self.config.events
        event = Event(
            id=uuid.uuid4().hex,
            name=(name or "").strip() or defaults.name,
            drive_folder_id=(drive_folder_id or "").strip() or defaults.drive_folder_id,
            upload_limit=upload_limit if upload_limit and upload_limit > 0 else defaults.upload_limit,
            window_hours=window_hours if window_hours and window_hours > 0 else defaults.window_hours,
            created_at=utcnow(),
        )
        self._events[event.id] = event
        self._persist()
        self.record_event("event_created", event_id=event.id, drive_folder_id=event.drive_folder_id)
        return event

    def get(self, event_id: str) -> Event:
        event = self._events.get(str(event_id))
        if event is None:
            raise NotFound("Event not found")
        return event

    def set_owner_token(self, event_id: str, token: str) -> Event:
        event = self.get(event_id)
        event.owner_refresh_token = token
        self._persist()
        self.record_event("owner_connected", event_id=event.id)
        return event

    def _persist(self) -> None:
        self._store(self._events)
