"""
Music Journal Backend — Application Configuration
===================================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
       The encryption key in particular must be checked before the first
       journal entry is written, not when the first read fails.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time; validated before the app starts.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have development defaults except ENCRYPTION_KEY, which
    must be provided. Production deployments also override DATABASE_URL
    and CORS_ORIGINS.
    """

    # ── Database ──────────────────────────────────────────────────────────
    # Format: sqlite+aiosqlite:///./file.db or postgresql+asyncpg://user:pw@host/db
    database_url: str = Field(
        default="sqlite+aiosqlite:///./musicjournal.db",
        description="Async SQLAlchemy connection URL",
    )

    # Pool sizing only applies to server databases; SQLite ignores it.
    db_pool_size: int = Field(default=20, ge=5, le=100)
    db_max_overflow: int = Field(default=10, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    # ── Encryption ────────────────────────────────────────────────────────
    # What: AES-256 key as 64 hex characters
    # How to generate: python -c "import secrets; print(secrets.token_hex(32))"
    # No runtime rotation: changing it makes existing rows undecryptable.
    encryption_key: str = Field(
        default="",
        description="Hex-encoded 256-bit key for journal field encryption",
    )

    # ── Spotify ───────────────────────────────────────────────────────────
    spotify_api_base_url: str = Field(default="https://api.spotify.com/v1")
    spotify_timeout_seconds: float = Field(default=10.0, gt=0, le=60)

    # Tenacity retry settings for the Spotify profile lookup.
    # Only transport failures are retried; the record store never retries.
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: int = Field(default=1, ge=0, le=30)
    retry_max_wait: int = Field(default=5, ge=1, le=120)

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=5000, ge=1024, le=65535)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        How:   Collects every problem and raises one ValueError listing them.
        """
        errors = []
        key = self.encryption_key.strip()
        if not key:
            errors.append(
                "ENCRYPTION_KEY is not set. "
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        elif len(key) != 64:
            errors.append(
                f"ENCRYPTION_KEY must be 64 hex characters (256 bits), got {len(key)}."
            )
        else:
            try:
                bytes.fromhex(key)
            except ValueError:
                errors.append("ENCRYPTION_KEY contains non-hex characters.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


settings = Settings()
