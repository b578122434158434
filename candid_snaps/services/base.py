"""Shared plumbing for the event and upload services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Dict, Optional

from ..config import CandidSnapsConfig
from ..storage.state_file import StateFile
from ..telemetry import TelemetryCollector


@dataclass
class BaseService:
    config: CandidSnapsConfig
    telemetry: TelemetryCollector

    def observe(self, name: str, value: float, **labels: str) -> None:
        self.telemetry.observe(name, value, labels)

    def record_event(self, message: str, **attrs: str) -> None:
        self.telemetry.record(message, attrs)


@dataclass
class PersistentService(BaseService):
    """Service whose records live in one named section of a shared state file.

    Without a state file the records are process-local and lost on restart.
    """

    state_file: Optional[StateFile] = None
    section_name: ClassVar[str] = ""

    def _restore(self) -> Dict[str, object]:
        if self.state_file:
            return self.state_file.section(self.section_name)
        return {}

    def _store(self, records: Dict[str, object]) -> None:
        if self.state_file:
            self.state_file.save_section(self.section_name, records)
