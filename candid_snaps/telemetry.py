"""In-process telemetry: running metric totals and a bounded event trail."""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

from .config import ObservabilityConfig

logger = logging.getLogger("candid_snaps.telemetry")

EVENT_TRAIL_SIZE = 500


@dataclass
class TelemetryEvent:
    message: str
    attributes: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class TelemetryCollector:
    """Aggregates metrics per name and keeps the most recent events.

    Nothing leaves the process: ``flush`` writes a one-line summary to the
    ``candid_snaps.telemetry`` logger and starts a new period.
    """

    config: ObservabilityConfig
    totals: Counter = field(default_factory=Counter)
    samples: Counter = field(default_factory=Counter)
    events: Deque[TelemetryEvent] = field(default_factory=lambda: deque(maxlen=EVENT_TRAIL_SIZE))

    def observe(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        self.totals[name] += value
        self.samples[name] += 1
        logger.debug("metric %s=%s %s", name, value, labels or {})

    def record(self, message: str, attributes: Optional[Dict[str, str]] = None) -> None:
        event = TelemetryEvent(message=message, attributes=dict(attributes or {}))
        self.events.append(event)
        logger.debug("%s %s", message, event.attributes)

    def events_named(self, message: str) -> List[TelemetryEvent]:
        return [event for event in self.events if event.message == message]

    def summary(self) -> Dict[str, Dict[str, float]]:
        metrics = {name: {"count": self.samples[name], "total": self.totals[name]} for name in self.samples}
        events = Counter(event.message for event in self.events)
        return {"metrics": metrics, "events": dict(events)}

    def flush(self) -> Dict[str, Dict[str, float]]:
        snapshot = self.summary()
        if snapshot["metrics"] or snapshot["events"]:
            logger.info("Telemetry summary: metrics=%s events=%s", snapshot["metrics"], snapshot["events"])
        self.totals.clear()
        self.samples.clear()
        self.events.clear()
        return snapshot
