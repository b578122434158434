from __future__ import annotations

import logging
import pickle
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class StateFile:
    """Pickle snapshot on disk, replaced atomically on every save."""

    def __init__(self, path: str) -> None:
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            with self.path.open("rb") as handle:
                snapshot = pickle.load(handle)
        except (OSError, pickle.PickleError, EOFError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return None
        return snapshot if isinstance(snapshot, dict) else None

    def save(self, payload: Dict[str, Any]) -> None:
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with temp_path.open("wb") as handle:
                pickle.dump(payload, handle)
            temp_path.replace(self.path)
        except OSError as exc:
            logger.error("Unable to persist state to %s: %s", self.path, exc)

    def section(self, name: str) -> Dict[str, Any]:
        snapshot = self.load() or {}
        value = snapshot.get(name)
        return value if isinstance(value, dict) else {}

    def save_section(self, name: str, value: Dict[str, Any]) -> None:
        snapshot = self.load() or {}
        snapshot[name] = value
        self.save(snapshot)
