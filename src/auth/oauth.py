"""One-time OAuth consent that yields the long-lived Gmail refresh token."""

from __future__ import annotations

import logging
from typing import Any

from google_auth_oauthlib.flow import Flow, InstalledAppFlow

from src.auth.credentials import GMAIL_SCOPES, GOOGLE_TOKEN_URI, Credential, CredentialStore
from src.config import SweeperConfig

logger = logging.getLogger(__name__)

_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"


def _client_config(config: SweeperConfig, kind: str) -> dict[str, Any]:
    client_id, client_secret = config.require_oauth_client()
    return {
        kind: {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": _AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": [config.redirect_uri],
        }
    }


def _log_new_refresh_token(refresh_token: str | None) -> None:
    # Operators copy this into GOOGLE_REFRESH_TOKEN; the process keeps no copy on disk.
    if refresh_token:
        logger.warning("NEW_REFRESH_TOKEN: %s", refresh_token)


class AuthorizationFlow:
    """Web-server consent flow backing /oauth/authorize and /oauth/callback.

    The same Flow instance must serve both halves of the exchange, so keep one
    AuthorizationFlow per running app.
    """

    def __init__(self, config: SweeperConfig, store: CredentialStore) -> None:
        self._config = config
        self._store = store
        self._flow: Flow | None = None

    def _get_flow(self) -> Flow:
        if self._flow is None:
            self._flow = Flow.from_client_config(
                _client_config(self._config, "web"),
                scopes=GMAIL_SCOPES,
                redirect_uri=self._config.redirect_uri,
                autogenerate_code_verifier=False,
            )
        return self._flow

    def authorization_url(self) -> str:
        """Return the Google consent URL (offline access, consent forced)."""
        url, _state = self._get_flow().authorization_url(
            access_type="offline",
            prompt="consent",
        )
        return url

    def exchange_code(self, code: str) -> Credential:
        """Trade an authorization code for tokens and install them in the store."""
        flow = self._get_flow()
        flow.fetch_token(code=code)
        creds = flow.credentials
        _log_new_refresh_token(creds.refresh_token)
        return self._store.adopt(
            refresh_token=creds.refresh_token,
            access_token=creds.token,
            expiry=creds.expiry,
        )


def run_local_authorization(config: SweeperConfig, store: CredentialStore) -> Credential:
    """Run the installed-app consent flow on a local loopback port.

    Opens the browser, waits for the redirect, and installs the resulting
    tokens in `store`.  Used by `inbox-sweeper authorize`.
    """
    flow = InstalledAppFlow.from_client_config(
        _client_config(config, "installed"),
        scopes=GMAIL_SCOPES,
    )
    creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")
    _log_new_refresh_token(creds.refresh_token)
    return store.adopt(
        refresh_token=creds.refresh_token,
        access_token=creds.token,
        expiry=creds.expiry,
    )
