"""Configuration primitives for the Candid Snaps service."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

DRIVE_FILE_SCOPE = "https://www.googleapis.com/auth/drive.file"
TEST_DRIVE_FOLDER_ID = "1b9PoSR_UxREh5QuCOwR2i7hm3V5Y0XMt"


@dataclass(frozen=True)
class OAuthConfig:
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    scopes: tuple[str, ...] = (DRIVE_FILE_SCOPE,)
    auth_uri: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_uri: str = "https://oauth2.googleapis.com/token"

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


@dataclass(frozen=True)
class ServiceAccountConfig:
    info: Optional[Dict[str, Any]] = None
    scopes: tuple[str, ...] = (DRIVE_FILE_SCOPE,)

    @property
    def is_configured(self) -> bool:
        return bool(self.info)


@dataclass(frozen=True)
class EventDefaults:
    name: str = "Wedding"
    drive_folder_id: str = TEST_DRIVE_FOLDER_ID
    upload_limit: int = 4
    window_hours: float = 24


@dataclass(frozen=True)
class StoreConfig:
    state_path: Optional[str] = None


@dataclass(frozen=True)
class BlobStoreConfig:
    backend: str = "local"
    local_dir: str = field(default_factory=lambda: str(Path.cwd() / "data" / "blobs"))
    request_timeout: float = 30.0
    max_upload_bytes: int = 2 * 1024 * 1024


@dataclass(frozen=True)
class PublicConfig:
    public_base_url: str = "http://localhost:5173"
    api_public_base_url: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])
    admin_passcode: str = ""


@dataclass(frozen=True)
class ObservabilityConfig:
    log_level: str = "INFO"


@dataclass(frozen=True)
class CandidSnapsConfig:
    oauth: OAuthConfig
    service_account: ServiceAccountConfig
    events: EventDefaults
    store: StoreConfig
    blobs: BlobStoreConfig
    public: PublicConfig
    observability: ObservabilityConfig

    @staticmethod
    def default() -> "CandidSnapsConfig":
        return CandidSnapsConfig(
            oauth=OAuthConfig(),
            service_account=ServiceAccountConfig(),
            events=EventDefaults(),
            store=StoreConfig(),
            blobs=BlobStoreConfig(),
            public=PublicConfig(),
            observability=ObservabilityConfig(),
        )

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "CandidSnapsConfig":
        env = os.environ if environ is None else environ
        public_base = env.get("PUBLIC_BASE_URL", PublicConfig().public_base_url).rstrip("/")
        extra_origins = [origin.strip() for origin in env.get("CORS_ORIGINS", "").split(",") if origin.strip()]
        origins = list(dict.fromkeys([public_base, *extra_origins]))
        defaults = EventDefaults()
        return CandidSnapsConfig(
            oauth=OAuthConfig(
                client_id=env.get("GOOGLE_OAUTH_CLIENT_ID", ""),
                client_secret=env.get("GOOGLE_OAUTH_CLIENT_SECRET", ""),
                redirect_uri=env.get("GOOGLE_OAUTH_REDIRECT_URI", ""),
            ),
            service_account=ServiceAccountConfig(info=load_service_account_info(env)),
            events=EventDefaults(
                drive_folder_id=env.get("DEFAULT_DRIVE_FOLDER_ID", defaults.drive_folder_id),
            ),
            store=StoreConfig(state_path=env.get("CANDID_SNAPS_STATE_PATH") or None),
            blobs=BlobStoreConfig(
                backend=env.get("CANDID_SNAPS_BLOB_BACKEND", "drive").strip().lower(),
                local_dir=env.get("CANDID_SNAPS_BLOB_DIR", BlobStoreConfig().local_dir),
            ),
            public=PublicConfig(
                public_base_url=public_base,
                api_public_base_url=(env.get("API_PUBLIC_BASE_URL") or "").rstrip("/") or None,
                cors_origins=origins,
                admin_passcode=env.get("ADMIN_PASSCODE", ""),
            ),
            observability=ObservabilityConfig(log_level=env.get("LOG_LEVEL", "INFO").upper()),
        )


def load_service_account_info(env: Mapping[str, str]) -> Optional[Dict[str, Any]]:
    """Parse service-account credentials from inline JSON or a JSON file path.

    A malformed value is reported and treated as "not configured" so the
    service can still run with per-event owner tokens.
    """
    raw = env.get("GOOGLE_SERVICE_ACCOUNT_JSON")
    if raw:
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Invalid GOOGLE_SERVICE_ACCOUNT_JSON: %s", exc)
            return None
    path = env.get("GOOGLE_SERVICE_ACCOUNT_JSON_PATH")
    if path:
        try:
            return json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Invalid GOOGLE_SERVICE_ACCOUNT_JSON_PATH: %s", exc)
            return None
    return None
