"""Process configuration — read once from the environment at startup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "http://localhost:3000"
_DEFAULT_OWNER = "Nathan"
_DEFAULT_MAX_RESULTS = 10
_DEFAULT_INTERVAL_MINUTES = 15
_DEFAULT_PORT = 3000


class ConfigurationMissing(Exception):
    """Raised when a credential required for a sweep is not configured."""


def _env_int(name: str, default: int) -> int:
    """Parse an integer env var. Falls back to `default` on a malformed value."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Invalid %s %r; defaulting to %d", name, raw, default)
        return default


@dataclass
class SweeperConfig:
    """Everything the sweeper reads from its environment.

    Secrets stay in memory only; the refresh token in particular is never
    written back anywhere by this process.
    """

    base_url: str = _DEFAULT_BASE_URL
    google_client_id: str = ""
    google_client_secret: str = ""
    google_refresh_token: str | None = None
    anthropic_api_key: str = ""
    sweep_secret: str = ""
    owner_name: str = _DEFAULT_OWNER
    default_max_results: int = _DEFAULT_MAX_RESULTS
    sweep_interval_minutes: int = _DEFAULT_INTERVAL_MINUTES
    host: str = "0.0.0.0"
    port: int = _DEFAULT_PORT

    @classmethod
    def from_env(cls) -> SweeperConfig:
        """Build SweeperConfig from environment variables."""
        return cls(
            base_url=os.environ.get("BASE_URL", _DEFAULT_BASE_URL).rstrip("/"),
            google_client_id=os.environ.get("GOOGLE_CLIENT_ID", ""),
            google_client_secret=os.environ.get("GOOGLE_CLIENT_SECRET", ""),
            google_refresh_token=os.environ.get("GOOGLE_REFRESH_TOKEN") or None,
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            sweep_secret=os.environ.get("SWEEP_SECRET", ""),
            owner_name=os.environ.get("SWEEP_OWNER_NAME", "") or _DEFAULT_OWNER,
            default_max_results=_env_int("SWEEP_MAX_RESULTS", _DEFAULT_MAX_RESULTS),
            sweep_interval_minutes=_env_int(
                "SWEEP_INTERVAL_MINUTES", _DEFAULT_INTERVAL_MINUTES
            ),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=_env_int("PORT", _DEFAULT_PORT),
        )

    @property
    def redirect_uri(self) -> str:
        return f"{self.base_url}/oauth/callback"

    def require_decision_key(self) -> str:
        """Return the Claude API key or raise ConfigurationMissing."""
        if not self.anthropic_api_key:
            raise ConfigurationMissing("Missing ANTHROPIC_API_KEY env var")
        return self.anthropic_api_key

    def require_oauth_client(self) -> tuple[str, str]:
        """Return (client_id, client_secret) or raise ConfigurationMissing."""
        if not self.google_client_id or not self.google_client_secret:
            raise ConfigurationMissing(
                "Missing GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET env vars"
            )
        return self.google_client_id, self.google_client_secret
