"""Guest photo uploads for events, backed by Google Drive."""

from .config import CandidSnapsConfig  # noqa: F401
from .runtime import CandidSnapsRuntime  # noqa: F401
