"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with BIOPULSE_ prefix.
Both services (API on 8000, AI analysis on 3001) read the same Settings.

Learn: the module-level `settings` is the default, but create_app()
accepts its own Settings so tests can shorten live-update intervals
without touching the environment.
"""

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via BIOPULSE_* env vars."""

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:4200",
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Live updates
    live_update_min_interval: float = 2.0  # seconds
    live_update_max_interval: float = 3.0
    live_update_max_delta: float = 5.0  # absolute units, not percent
    live_update_min_batch: int = 2
    live_update_max_batch: int = 3

    # Seed data
    random_seed: Optional[int] = None
    seed_patients: list[str] = [
        "John Smith",
        "Sarah Johnson",
        "Michael Brown",
        "Emily Davis",
        "Robert Wilson",
    ]

    # AI analysis service (client side)
    mcp_url: str = "http://localhost:3001"
    mcp_timeout_seconds: float = 60.0

    # AI analysis service (server side)
    google_api_key: str = ""
    ai_model: str = "gemini-2.5-flash"
    ai_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    ai_host: str = "0.0.0.0"
    ai_port: int = 3001

    model_config = {"env_prefix": "BIOPULSE_"}

    @model_validator(mode="after")
    def validate_live_update_settings(self):
        """Reject interval/batch combinations the broadcaster cannot honour."""
        if self.live_update_min_interval <= 0:
            raise ValueError("BIOPULSE_LIVE_UPDATE_MIN_INTERVAL must be positive")
        if self.live_update_min_interval > self.live_update_max_interval:
            raise ValueError(
                "BIOPULSE_LIVE_UPDATE_MIN_INTERVAL must not exceed "
                "BIOPULSE_LIVE_UPDATE_MAX_INTERVAL"
            )
        if not 1 <= self.live_update_min_batch <= self.live_update_max_batch:
            raise ValueError(
                "Live update batch bounds must satisfy 1 <= min <= max"
            )
        if self.live_update_max_delta < 0:
            raise ValueError("BIOPULSE_LIVE_UPDATE_MAX_DELTA must not be negative")
        return self


# Default for the ASGI entry points and the CLI
settings = Settings()
