"""Error taxonomy surfaced by the event, upload and blob services."""

from __future__ import annotations

from typing import Optional


class SnapError(Exception):
    """Base error carrying a machine-readable kind and an HTTP status."""

    kind = "Error"
    status_code = 500
    default_detail = "Unexpected error"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_payload(self) -> dict:
        return {"ok": False, "error": self.kind, "detail": self.detail}


class NotFound(SnapError):
    kind = "NotFound"
    status_code = 404
    default_detail = "Not found"


class Forbidden(SnapError):
    kind = "Forbidden"
    status_code = 403
    default_detail = "Not allowed from this device"


class NotConnected(SnapError):
    kind = "NotConnected"
    status_code = 400
    default_detail = "Drive not connected for this event yet. Owner must connect Google Drive first."

    def __init__(self, detail: Optional[str] = None, *, event_id: Optional[str] = None) -> None:
        super().__init__(detail)
        self.event_id = event_id
        self.connect_url: Optional[str] = None

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.connect_url:
            payload["connectUrl"] = self.connect_url
        return payload


class LimitExceeded(SnapError):
    kind = "LimitExceeded"
    status_code = 429
    default_detail = "Upload limit reached for this device (windowed)"


class InvalidContent(SnapError):
    kind = "InvalidContent"
    status_code = 400
    default_detail = "Only images allowed"


class UpstreamFailure(SnapError):
    kind = "UpstreamFailure"
    status_code = 502
    default_detail = "Blob store request failed"


class AuthorizationIncomplete(SnapError):
    kind = "AuthorizationIncomplete"
    status_code = 400
    default_detail = (
        "No refresh_token returned. Remove app access from your Google Account and try again "
        "(consent must be forced)."
    )
