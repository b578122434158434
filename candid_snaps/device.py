"""Anonymous device fingerprints used for rate limiting and ownership."""

from __future__ import annotations

import hashlib
from typing import Optional

DEVICE_HEADER = "X-Device-Id"


def fingerprint(client_supplied_id: Optional[str], fallback_address: Optional[str] = None) -> str:
    """Return a SHA-256 hex digest of the first non-empty identity source.

    The client-supplied id wins, then the network address, then the literal
    ``"unknown"``. Any client can forge the header; the hash is advisory.
    """
    source = client_supplied_id or fallback_address or "unknown"
    return hashlib.sha256(source.encode("utf-8")).hexdigest()
