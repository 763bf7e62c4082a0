"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    store_backend: str = "memory"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    supabase_table: str = "store_nodes"
    store_poll_interval_seconds: float = 1.0
    yelp_api_key: str | None = None
    yelp_base_url: str = "https://api.yelp.com/v3"
    yelp_location: str = "San Francisco, CA"
    atomic_roster_updates: bool = False
    code_generation_attempts: int = 5
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_store_backend(raw: str | None) -> str:
    """Normalize the configured store backend name."""
    if raw is None:
        return "memory"
    cleaned = raw.strip().lower()
    if cleaned in {"", "memory", "in-memory", "inmemory"}:
        return "memory"
    if cleaned == "supabase":
        return "supabase"
    raise ValueError(f"Unknown store backend: {raw}")
