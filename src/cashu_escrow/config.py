"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup, so a malformed value fails fast with a clear error message.

Usage:
    from cashu_escrow.config import get_settings
    settings = get_settings()
    print(settings.relay_list)
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the escrow trade client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_log_level: str = "INFO"
    log_json: bool = False

    # --- Relays ---
    # Comma-separated relay URLs. Parties can only exchange messages
    # through relays they have in common.
    nostr_relays: str = (
        "wss://relay.damus.io,"
        "wss://relay.primal.net,"
        "wss://relay.nostr.band,"
        "wss://ftp.halifax.rwth-aachen.de/nostr,"
        "wss://nostr.mom"
    )

    # --- Ecash ---
    mint_url: str = "http://localhost:3338"

    # --- Protocol ---
    message_timeout_seconds: float = 10.0
    default_time_limit_seconds: int = 86400  # 24 hours

    # --- Driver retry policy ---
    phase_retry_attempts: int = 1  # 1 = no retry
    phase_retry_min_wait_seconds: float = 1.0
    phase_retry_max_wait_seconds: float = 10.0

    @property
    def relay_list(self) -> list[str]:
        """Parse comma-separated relay URLs into a list."""
        if not self.nostr_relays:
            return []
        return [r.strip() for r in self.nostr_relays.split(",") if r.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
