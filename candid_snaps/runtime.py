"""Runtime wiring for the event, upload and blob services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import CandidSnapsConfig
from .services.blob_proxy import BlobProxy
from .services.credential_service import CredentialResolver
from .services.event_service import EventStore
from .services.oauth_service import OwnerAuthorization
from .services.upload_ledger import UploadLedger
from .storage.blob_store import BlobStore, build_blob_store
from .storage.state_file import StateFile
from .telemetry import TelemetryCollector

logger = logging.getLogger(__name__)


@dataclass
class CandidSnapsRuntime:
    config: CandidSnapsConfig
    telemetry: TelemetryCollector
    resolver: CredentialResolver
    events: EventStore
    ledger: UploadLedger
    blobs: BlobStore
    proxy: BlobProxy
    owner_auth: OwnerAuthorization

    @classmethod
    def bootstrap(
        cls,
        config: Optional[CandidSnapsConfig] = None,
        *,
        blob_store: Optional[BlobStore] = None,
    ) -> "CandidSnapsRuntime":
        cfg = config or CandidSnapsConfig.default()
        telemetry = TelemetryCollector(cfg.observability)
        resolver = CredentialResolver(oauth=cfg.oauth, service_account=cfg.service_account)
        state_file = StateFile(cfg.store.state_path) if cfg.store.state_path else None

        events = EventStore(config=cfg, telemetry=telemetry, state_file=state_file)
        ledger = UploadLedger(config=cfg, telemetry=telemetry, state_file=state_file)
        blobs = blob_store or build_blob_store(
            cfg.blobs.backend,
            resolver,
            local_dir=cfg.blobs.local_dir,
            timeout=cfg.blobs.request_timeout,
        )
        proxy = BlobProxy(
            config=cfg,
            telemetry=telemetry,
            events=events,
            ledger=ledger,
            resolver=resolver,
            blobs=blobs,
        )
        owner_auth = OwnerAuthorization(config=cfg, telemetry=telemetry, events=events)
        logger.info(
            "Candid Snaps runtime ready (blob backend=%s, service account=%s, state=%s)",
            cfg.blobs.backend if blob_store is None else type(blob_store).__name__,
            resolver.has_service_account,
            cfg.store.state_path or "memory",
        )
        return cls(
            config=cfg,
            telemetry=telemetry,
            resolver=resolver,
            events=events,
            ledger=ledger,
            blobs=blobs,
            proxy=proxy,
            owner_auth=owner_auth,
        )
