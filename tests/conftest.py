from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from candid_snaps.config import CandidSnapsConfig, ServiceAccountConfig
from candid_snaps.runtime import CandidSnapsRuntime

FAKE_SERVICE_ACCOUNT = {"type": "service_account", "client_email": "uploader@example.iam.gserviceaccount.com"}


def make_config(tmp_path: Path, *, service_account: bool = True, state: bool = False) -> CandidSnapsConfig:
    base = CandidSnapsConfig.default()
    return replace(
        base,
        service_account=ServiceAccountConfig(info=dict(FAKE_SERVICE_ACCOUNT) if service_account else None),
        blobs=replace(base.blobs, backend="local", local_dir=str(tmp_path / "blobs")),
        store=replace(base.store, state_path=str(tmp_path / "state.pkl") if state else None),
        public=replace(base.public, admin_passcode="open-sesame"),
    )


def make_runtime(tmp_path: Path, **kwargs) -> CandidSnapsRuntime:
    return CandidSnapsRuntime.bootstrap(make_config(tmp_path, **kwargs))


@pytest.fixture
def runtime(tmp_path: Path) -> CandidSnapsRuntime:
    return make_runtime(tmp_path)


@pytest.fixture
def offline_runtime(tmp_path: Path) -> CandidSnapsRuntime:
    """Runtime with neither a service account nor any owner token."""
    return make_runtime(tmp_path, service_account=False)


@pytest.fixture
def runtime_factory(tmp_path: Path):
    def _factory(**kwargs) -> CandidSnapsRuntime:
        return make_runtime(tmp_path, **kwargs)

    return _factory
