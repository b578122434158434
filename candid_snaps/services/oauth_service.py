"""Owner authorization handshake through google-auth-oauthlib."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import requests
from google.auth.exceptions import GoogleAuthError
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from ..config import OAuthConfig
from ..errors import AuthorizationIncomplete, UpstreamFailure
from ..models import Event
from .base import BaseService
from .event_service import EventStore


def build_flow(oauth: OAuthConfig) -> Flow:
    return Flow.from_client_config(
        {
            "web": {
                "client_id": oauth.client_id,
                "client_secret": oauth.client_secret,
                "auth_uri": oauth.auth_uri,
                "token_uri": oauth.token_uri,
                "redirect_uris": [oauth.redirect_uri],
            }
        },
        scopes=list(oauth.scopes),
        redirect_uri=oauth.redirect_uri,
        # The callback builds a fresh flow, so no PKCE verifier survives to it.
        autogenerate_code_verifier=False,
    )


@dataclass
class OwnerAuthorization(BaseService):
    events: EventStore
    flow_factory: Callable[[OAuthConfig], Flow] = build_flow

    def authorization_url(self, event_id: str) -> str:
        event = self.events.get(event_id)
        flow = self.flow_factory(self.config.oauth)
        # offline + forced consent so Google returns a refresh token every time
        url, _ = flow.authorization_url(access_type="offline", prompt="consent", state=event.id)
        return url

    def complete(self, code: str, state: str) -> Event:
        event = self.events.get(state)
        refresh_token = self._exchange_code(code)
        if not refresh_token:
            raise AuthorizationIncomplete()
        return self.events.set_owner_token(event.id, refresh_token)

    def _exchange_code(self, code: str) -> Optional[str]:
        flow = self.flow_factory(self.config.oauth)
        try:
            flow.fetch_token(code=code)
        except (OAuth2Error, GoogleAuthError, requests.RequestException, ValueError) as exc:
            raise UpstreamFailure(f"Token exchange failed: {exc}") from exc
        return flow.credentials.refresh_token
