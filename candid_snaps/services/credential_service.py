"""Drive credential selection: per-event owner token or service account."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account

from ..config import OAuthConfig, ServiceAccountConfig
from ..errors import NotConnected
from ..models import Event


@dataclass(frozen=True)
class OwnerToken:
    refresh_token: str


@dataclass(frozen=True)
class ServiceAccount:
    pass


@dataclass(frozen=True)
class NoCredential:
    pass


DriveCredential = Union[OwnerToken, ServiceAccount]


@dataclass(frozen=True)
class CredentialResolver:
    """Picks the Drive credential for an event.

    The owner's refresh token always wins over the process-wide service
    account. Nothing is cached: every call builds a fresh credential.
    """

    oauth: OAuthConfig
    service_account: ServiceAccountConfig

    @property
    def has_service_account(self) -> bool:
        return self.service_account.is_configured

    def select(self, event: Event) -> Union[OwnerToken, ServiceAccount, NoCredential]:
        if event.owner_refresh_token:
            return OwnerToken(event.owner_refresh_token)
        if self.has_service_account:
            return ServiceAccount()
        return NoCredential()

    def resolve(self, event: Event) -> DriveCredential:
        credential = self.select(event)
        if isinstance(credential, NoCredential):
            raise NotConnected(event_id=event.id)
        return credential

    def is_connected(self, event: Event) -> bool:
        return not isinstance(self.select(event), NoCredential)

    def is_owner_connected(self, event: Event) -> bool:
        return bool(event.owner_refresh_token)

    def google_credentials(self, credential: DriveCredential):
        """Build google-auth credentials for the Drive adapter."""
        if isinstance(credential, OwnerToken):
            return user_credentials.Credentials(
                token=None,
                refresh_token=credential.refresh_token,
                token_uri=self.oauth.token_uri,
                client_id=self.oauth.client_id,
                client_secret=self.oauth.client_secret,
                scopes=list(self.oauth.scopes),
            )
        if isinstance(credential, ServiceAccount):
            if not self.has_service_account:
                raise NotConnected("Service account credentials not configured")
            return service_account.Credentials.from_service_account_info(
                self.service_account.info,
                scopes=list(self.service_account.scopes),
            )
        raise NotConnected()
