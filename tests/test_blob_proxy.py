"""Policy tests for uploads, deletes, comments and streaming."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from candid_snaps.errors import Forbidden, InvalidContent, LimitExceeded, NotConnected, NotFound, UpstreamFailure
from candid_snaps.services.blob_proxy import best_effort

JPEG = b"\xff\xd8\xff\xe0fake-jpeg-bytes"
T0 = datetime(2026, 6, 20, 15, 0, tzinfo=timezone.utc)


class _FailingBlobs:
    def __init__(self, inner, *, fail_create=False, fail_delete=False):
        self.inner = inner
        self.fail_create = fail_create
        self.fail_delete = fail_delete
        self.deleted = []

    def create(self, credential, folder_id, name, data, mime_type):
        if self.fail_create:
            raise UpstreamFailure("drive unavailable")
        return self.inner.create(credential, folder_id, name, data, mime_type)

    def delete(self, credential, blob_id):
        self.deleted.append(blob_id)
        if self.fail_delete:
            raise UpstreamFailure("drive unavailable")
        self.inner.delete(credential, blob_id)

    def open(self, credential, blob_id):
        return self.inner.open(credential, blob_id)


def test_fifth_upload_from_same_device_is_rejected(runtime):
    event = runtime.events.create()
    for _ in range(4):
        runtime.proxy.upload(event.id, "dev-d", JPEG, "image/jpeg")

    with pytest.raises(LimitExceeded):
        runtime.proxy.upload(event.id, "dev-d", JPEG, "image/jpeg")
    other = runtime.proxy.upload(event.id, "dev-d2", JPEG, "image/jpeg")
    assert other.blob_id


def test_preconditions_short_circuit_in_order(offline_runtime, runtime):
    with pytest.raises(NotFound):
        runtime.proxy.upload("missing", "dev", JPEG, "image/jpeg")

    offline_event = offline_runtime.events.create()
    with pytest.raises(NotConnected) as excinfo:
        offline_runtime.proxy.upload(offline_event.id, "dev", b"", "text/plain")
    assert excinfo.value.event_id == offline_event.id

    event = runtime.events.create(upload_limit=1)
    runtime.proxy.upload(event.id, "dev", JPEG, "image/png")
    with pytest.raises(InvalidContent):
        runtime.proxy.upload(event.id, "dev", b"%PDF", "application/pdf")
    with pytest.raises(LimitExceeded):
        runtime.proxy.upload(event.id, "dev", JPEG, "image/jpeg")


def test_empty_and_oversized_payloads_are_invalid(runtime):
    event = runtime.events.create()
    with pytest.raises(InvalidContent):
        runtime.proxy.upload(event.id, "dev", b"", "image/jpeg")
    with pytest.raises(InvalidContent):
        runtime.proxy.upload(event.id, "dev", b"x" * (2 * 1024 * 1024 + 1), "image/jpeg")


def test_failed_store_write_records_nothing(runtime):
    event = runtime.events.create(upload_limit=1)
    runtime.proxy.blobs = _FailingBlobs(runtime.blobs, fail_create=True)

    with pytest.raises(UpstreamFailure):
        runtime.proxy.upload(event.id, "dev", JPEG, "image/jpeg")
    assert runtime.ledger.count_recent(event.id, "dev", event.window_hours) == 0

    runtime.proxy.blobs.fail_create = False
    assert runtime.proxy.upload(event.id, "dev", JPEG, "image/jpeg").blob_id


def test_owner_token_takes_precedence_for_writes(offline_runtime):
    event = offline_runtime.events.create()
    offline_runtime.events.set_owner_token(event.id, "refresh-abc")
    upload = offline_runtime.proxy.upload(event.id, "dev", JPEG, "image/jpeg", "  Grandma  ")
    assert upload.uploader_name == "Grandma"
    assert offline_runtime.blobs.describe(upload.blob_id)["folder_id"] == event.drive_folder_id


def test_delete_requires_owning_device(runtime):
    event = runtime.events.create()
    upload = runtime.proxy.upload(event.id, "dev-1", JPEG, "image/jpeg")

    with pytest.raises(Forbidden):
        runtime.proxy.delete(event.id, upload.id, "dev-2")
    runtime.proxy.delete(event.id, upload.id, "dev-1")

    assert runtime.ledger.list_all(event.id) == []
    assert runtime.blobs.describe(upload.blob_id) is None
    with pytest.raises(NotFound):
        runtime.proxy.delete(event.id, upload.id, "dev-1")


def test_delete_survives_blob_store_failure(runtime):
    event = runtime.events.create()
    upload = runtime.proxy.upload(event.id, "dev-1", JPEG, "image/jpeg")
    runtime.proxy.blobs = _FailingBlobs(runtime.blobs, fail_delete=True)

    runtime.proxy.delete(event.id, upload.id, "dev-1")

    assert runtime.proxy.blobs.deleted == [upload.blob_id]
    assert runtime.ledger.list_mine(event.id, "dev-1") == []


def test_delete_without_any_credential_still_removes_record(offline_runtime):
    event = offline_runtime.events.create()
    blob_id = offline_runtime.blobs.create(None, event.drive_folder_id, "snap.jpg", JPEG, "image/jpeg")
    upload = offline_runtime.ledger.record(event.id, "dev-1", blob_id)
    assert not offline_runtime.resolver.is_connected(event)

    offline_runtime.proxy.delete(event.id, upload.id, "dev-1")

    assert offline_runtime.ledger.list_mine(event.id, "dev-1") == []
    with pytest.raises(NotFound):
        offline_runtime.ledger.get(upload.id)
    # The blob could not be removed without a credential.
    assert offline_runtime.blobs.describe(blob_id) is not None


def test_upload_metrics_are_summarised(runtime):
    event = runtime.events.create()
    runtime.proxy.upload(event.id, "dev-1", JPEG, "image/jpeg")
    runtime.proxy.upload(event.id, "dev-2", JPEG, "image/jpeg")

    snapshot = runtime.telemetry.flush()

    assert snapshot["metrics"]["upload_bytes"] == {"count": 2, "total": float(2 * len(JPEG))}
    assert snapshot["events"]["upload_recorded"] == 2
    assert runtime.telemetry.summary() == {"metrics": {}, "events": {}}


def test_comment_update_is_owner_only(runtime):
    event = runtime.events.create()
    upload = runtime.proxy.upload(event.id, "dev-1", JPEG, "image/jpeg")

    with pytest.raises(Forbidden):
        runtime.proxy.set_comment(event.id, upload.id, "dev-2", "hijack")
    updated = runtime.proxy.set_comment(event.id, upload.id, "dev-1", "  First dance  ")
    assert updated.comment == "First dance"
    assert updated.updated_at is not None


def test_cross_event_ids_are_rejected(runtime):
    first = runtime.events.create()
    second = runtime.events.create()
    upload = runtime.proxy.upload(first.id, "dev-1", JPEG, "image/jpeg")

    with pytest.raises(Forbidden):
        runtime.proxy.delete(second.id, upload.id, "dev-1")
    with pytest.raises(Forbidden):
        runtime.proxy.set_comment(second.id, upload.id, "dev-1", "nope")
    with pytest.raises(NotFound):
        runtime.proxy.stream_source(second.id, upload.blob_id)


def test_stream_source_returns_registered_bytes(runtime):
    event = runtime.events.create()
    upload = runtime.proxy.upload(event.id, "dev-1", JPEG, "image/png")

    stream = runtime.proxy.stream_source(event.id, upload.blob_id)
    assert stream.content_type == "image/png"
    assert b"".join(stream) == JPEG

    with pytest.raises(NotFound):
        runtime.proxy.stream_source(event.id, "unregistered-blob")


def test_stream_requires_connection(offline_runtime):
    event = offline_runtime.events.create()
    offline_runtime.ledger.record(event.id, "dev-1", "blob-1")
    with pytest.raises(NotConnected):
        offline_runtime.proxy.stream_source(event.id, "blob-1")


def test_best_effort_returns_none_on_failure():
    def boom():
        raise UpstreamFailure("gone")

    assert best_effort(boom, description="test action") is None
    assert best_effort(lambda: 7, description="test action") == 7


def test_end_to_end_single_upload_window(runtime):
    event = runtime.events.create(upload_limit=1, window_hours=1)

    first = runtime.proxy.upload(event.id, "abc", JPEG, "image/jpeg", now=T0)
    assert first.blob_id
    with pytest.raises(LimitExceeded):
        runtime.proxy.upload(event.id, "abc", JPEG, "image/jpeg", now=T0 + timedelta(minutes=30))
    runtime.proxy.upload(event.id, "xyz", JPEG, "image/jpeg", now=T0 + timedelta(minutes=31))

    with pytest.raises(Forbidden):
        runtime.proxy.delete(event.id, first.id, "xyz")
    runtime.proxy.delete(event.id, first.id, "abc")
    assert runtime.ledger.list_mine(event.id, "abc") == []
