"""In-memory credential store for the Gmail refresh-token lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from google.oauth2.credentials import Credentials

if TYPE_CHECKING:
    from src.config import SweeperConfig

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GMAIL_SCOPES: list[str] = ["https://www.googleapis.com/auth/gmail.modify"]


class Unauthenticated(Exception):
    """Raised when no refresh credential has been configured or obtained."""


@dataclass(frozen=True)
class Credential:
    """Point-in-time view of the credential held by the store."""

    access_token: str | None
    refresh_token: str
    expiry: datetime | None = None


class CredentialStore:
    """Holds the long-lived refresh token and the live google-auth credentials.

    The store never refreshes by itself: google-auth renews the access token
    transparently inside the Gmail HTTP transport whenever it is missing or
    expired, mutating the shared `Credentials` object this store hands out.
    `ensure_valid_credential()` therefore always reflects the latest renewal.

    Nothing is persisted.  After a restart the refresh token has to be
    supplied again through `GOOGLE_REFRESH_TOKEN`.

    Usage::

        store = CredentialStore.from_config(config)
        store.ensure_valid_credential()        # raises Unauthenticated if empty
        gateway = GmailGateway.from_store(store)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str | None = None,
        token_uri: str = GOOGLE_TOKEN_URI,
        scopes: list[str] | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_uri = token_uri
        self._scopes = list(scopes or GMAIL_SCOPES)
        self._credentials: Credentials | None = None
        if refresh_token:
            self._credentials = self._build(refresh_token)

    @classmethod
    def from_config(cls, config: SweeperConfig) -> CredentialStore:
        return cls(
            client_id=config.google_client_id,
            client_secret=config.google_client_secret,
            refresh_token=config.google_refresh_token,
        )

    @property
    def is_authenticated(self) -> bool:
        return self._credentials is not None and bool(self._credentials.refresh_token)

    def ensure_valid_credential(self) -> Credential:
        """Return the current credential snapshot.

        Raises:
            Unauthenticated: if no refresh token is held yet.
        """
        creds = self.google_credentials()
        return Credential(
            access_token=creds.token,
            refresh_token=str(creds.refresh_token),
            expiry=creds.expiry,
        )

    def google_credentials(self) -> Credentials:
        """Return the live google-auth credentials shared with the gateway."""
        if not self.is_authenticated:
            raise Unauthenticated("Not authorized. Visit /oauth/authorize")
        assert self._credentials is not None
        return self._credentials

    def adopt(
        self,
        refresh_token: str | None,
        access_token: str | None = None,
        expiry: datetime | None = None,
    ) -> Credential:
        """Install credentials from a completed authorization exchange.

        A new refresh token replaces the previous one.  Google omits the
        refresh token on repeat consents, in which case the one already held
        is kept and only the access token is updated.

        Raises:
            Unauthenticated: if neither the exchange nor the store has a
                refresh token.
        """
        current = self._credentials.refresh_token if self._credentials else None
        effective = refresh_token or current
        if not effective:
            raise Unauthenticated("Authorization exchange returned no refresh token")

        self._credentials = self._build(effective, access_token, expiry)
        if refresh_token and refresh_token != current:
            logger.info("Adopted a new refresh token")
        return self.ensure_valid_credential()

    def _build(
        self,
        refresh_token: str,
        access_token: str | None = None,
        expiry: datetime | None = None,
    ) -> Credentials:
        return Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=self._token_uri,
            client_id=self._client_id,
            client_secret=self._client_secret,
            scopes=self._scopes,
            expiry=expiry,
        )
