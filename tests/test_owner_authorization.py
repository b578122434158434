from __future__ import annotations

from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from candid_snaps.errors import AuthorizationIncomplete, NotFound, UpstreamFailure


class _StubFlow:
    """Stands in for ``google_auth_oauthlib.flow.Flow`` during code exchange."""

    def __init__(self, refresh_token=None, error=None):
        self.refresh_token = refresh_token
        self.error = error
        self.codes = []
        self.credentials = None

    def fetch_token(self, code):
        self.codes.append(code)
        if self.error is not None:
            raise self.error
        self.credentials = SimpleNamespace(token="access", refresh_token=self.refresh_token)


def _use_flows(runtime, *flows):
    pending = list(flows)
    runtime.owner_auth.flow_factory = lambda oauth: pending.pop(0)


def test_authorization_url_forces_offline_consent(runtime):
    event = runtime.events.create()
    url = urlparse(runtime.owner_auth.authorization_url(event.id))
    query = parse_qs(url.query)

    assert url.netloc == "accounts.google.com"
    assert query["state"] == [event.id]
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert query["response_type"] == ["code"]
    assert "drive.file" in query["scope"][0]
    assert "code_challenge" not in query
    with pytest.raises(NotFound):
        runtime.owner_auth.authorization_url("missing")


def test_reauthorization_is_last_write_wins(runtime):
    event = runtime.events.create()
    first, second = _StubFlow("first"), _StubFlow("second")
    _use_flows(runtime, first, second)

    runtime.owner_auth.complete("code-1", event.id)
    runtime.owner_auth.complete("code-2", event.id)

    assert runtime.events.get(event.id).owner_refresh_token == "second"
    assert runtime.resolver.resolve(runtime.events.get(event.id)).refresh_token == "second"
    assert second.codes == ["code-2"]


def test_missing_refresh_token_is_reported(runtime):
    event = runtime.events.create()
    _use_flows(runtime, _StubFlow(refresh_token=None))

    with pytest.raises(AuthorizationIncomplete):
        runtime.owner_auth.complete("code-1", event.id)
    assert runtime.events.get(event.id).owner_refresh_token == ""


def test_token_endpoint_failure_is_upstream_failure(runtime):
    event = runtime.events.create()
    _use_flows(runtime, _StubFlow(error=requests.ConnectionError("token endpoint down")))

    with pytest.raises(UpstreamFailure):
        runtime.owner_auth.complete("bad-code", event.id)


def test_unknown_state_is_not_found(runtime):
    _use_flows(runtime, _StubFlow("never-used"))
    with pytest.raises(NotFound):
        runtime.owner_auth.complete("code", "no-such-event")
